#!/usr/bin/env python3
"""
Точка входа для запуска SiteAudit через командную строку.

Команды:
  scan      Обойти сайт начиная с URL и вывести/сохранить отчёты
  config    Показать итоговую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (необязательно)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (только консоль, если не указан)
  --log-format FORMAT Формат логирования

Команда scan опции:
  --internal-domain   Дополнительный внутренний домен (можно несколько раз)
  --skip VALUE        assets, external, тип URL или регулярное выражение
  --skip-domain HOST  Не сканировать домен
  --timeout SEC       Таймаут на запрос/рендер
  --follow-redirects  Добавлять цели редиректов в очередь
  --engine NAME       chromium, firefox или webkit
  --screenshots       Сохранять скриншоты (--full-page для всей страницы)
  --json PATH         Сохранить JSON-отчёт в файл
  --html PATH         Сохранить HTML-отчёт в файл
  --scan-timeout SEC  Остановить обход после SEC секунд (отчёт сохраняется)

Ctrl+C также останавливает обход после текущего раунда; отчёт сохраняется.

Пример:
  site-audit scan https://example.com --skip external --json reports/report.json
"""
import asyncio
import json
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
from pydantic import ValidationError

from site_audit import __version__
from site_audit.config import build_config, read_config_file
from site_audit.crawler.errors import BrowserLaunchError
from site_audit.crawler.models import UrlType
from site_audit.crawler.renderer import RenderingEngine
from site_audit.engine import start_scan, summarize
from site_audit.logger import DEFAULT_FORMAT, init_logging
from site_audit.report.html_report import render_html
from site_audit.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

_SKIP_ALIASES = {
    "assets": [UrlType.INTERNAL_ASSET, UrlType.EXTERNAL_ASSET],
    "external": [UrlType.EXTERNAL_PAGE, UrlType.EXTERNAL_ASSET],
}


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def parse_skip(values: Tuple[str, ...]) -> Tuple[List[str], List[str]]:
    """Разделяет значения --skip на типы URL и регулярные выражения."""
    types: List[str] = []
    patterns: List[str] = []
    known = {t.value for t in UrlType}
    for value in values:
        key = value.strip().lower()
        if key in _SKIP_ALIASES:
            types.extend(t.value for t in _SKIP_ALIASES[key])
        elif key in known:
            types.append(key)
        else:
            patterns.append(value)
    return list(dict.fromkeys(types)), patterns


def parse_headers(values: Tuple[str, ...]) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for value in values:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"ожидается формат 'Name: value', получено {value!r}")
        headers[name.strip()] = content.strip()
    return headers


def _install_interrupt(loop: asyncio.AbstractEventLoop, cancel_event: asyncio.Event) -> bool:
    """Ctrl+C завершает текущий раунд вместо аварийного выхода."""
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Windows или не главный поток: остаётся KeyboardInterrupt
        return False
    return True


async def _run(cfg, scan_timeout: Optional[float]):
    loop = asyncio.get_running_loop()
    cancel_event = asyncio.Event()
    handle = None
    if scan_timeout:
        handle = loop.call_later(scan_timeout, cancel_event.set)
    interrupt = _install_interrupt(loop, cancel_event)
    try:
        frontier = await start_scan(cfg, cancel_event=cancel_event)
    finally:
        if handle is not None:
            handle.cancel()
        if interrupt:
            loop.remove_signal_handler(signal.SIGINT)
    return frontier, cancel_event.is_set()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteAudit, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (только консоль, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """Группа команд SiteAudit CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    base: Dict[str, Any] = {}
    if config_path is not None:
        try:
            base = read_config_file(config_path)
        except Exception as e:
            print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['base'] = base


def _make_config(ctx, overrides: Dict[str, Any]):
    try:
        return build_config(ctx.obj['base'], overrides)
    except ValidationError as e:
        print_error(f'Ошибка конфигурации: {e}')


@cli.command('scan', context_settings=CONTEXT_SETTINGS)
@click.argument('seeds', nargs=-1)
@click.option('--internal-domain', '-d', 'internal_domains', multiple=True,
              help='Дополнительный внутренний домен')
@click.option('--skip', '-s', 'skip', multiple=True,
              help='assets, external, тип URL или регулярное выражение')
@click.option('--skip-domain', 'skip_domains', multiple=True, help='Не сканировать домен')
@click.option('--timeout', '-t', type=float, default=None, help='Таймаут на запрос (секунд)')
@click.option('--follow-redirects', is_flag=True, help='Добавлять цели редиректов в очередь')
@click.option('--engine', '-e', 'engine', default=None,
              type=click.Choice([e.value for e in RenderingEngine]), help='Движок рендеринга')
@click.option('--screenshots', is_flag=True, help='Сохранять скриншоты внутренних страниц')
@click.option('--full-page', is_flag=True, help='Скриншот всей страницы')
@click.option('--report-path', '-p', default=None, type=click.Path(file_okay=False, path_type=Path),
              help='Папка для отчётов и скриншотов')
@click.option('--user-agent', default=None, help='Заголовок User-Agent')
@click.option('--header', '-H', 'headers', multiple=True, help="Доп. заголовок 'Name: value'")
@click.option('--max-concurrency', type=int, default=None, help='Лимит одновременных запросов')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблоном report.html.j2'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.option(
    '--scan-timeout', 'scan_timeout',
    type=float,
    default=None,
    help='Остановить обход через SEC секунд'
)
@click.pass_context
def scan(ctx, seeds, internal_domains, skip, skip_domains, timeout, follow_redirects, engine,
         screenshots, full_page, report_path, user_agent, headers, max_concurrency,
         json_output, html_output, template_dir, pretty, scan_timeout):
    """Обойти сайт и сгенерировать отчёты."""
    skip_types, skip_patterns = parse_skip(skip)
    cfg = _make_config(ctx, {
        'seeds': list(seeds),
        'internal_domains': list(internal_domains),
        'skip_url_types': skip_types,
        'skip_patterns': skip_patterns,
        'skip_domains': list(skip_domains),
        'timeout': timeout,
        'follow_redirects': follow_redirects or None,
        'rendering_engine': engine,
        'save_screenshots': screenshots or None,
        'full_page_screenshots': full_page or None,
        'report_path': report_path,
        'user_agent': user_agent,
        'request_headers': parse_headers(headers) or None,
        'max_concurrency': max_concurrency,
    })
    click.echo(f'Starting scan: {", ".join(cfg.seed_urls)}', err=True)
    try:
        frontier, cancelled = asyncio.run(_run(cfg, scan_timeout))
    except BrowserLaunchError as e:
        print_error(f'Не удалось запустить браузер: {e}')
    except Exception as e:
        print_error(f'Ошибка при сканировании: {e}')

    if cancelled:
        click.secho('Сканирование остановлено, в отчёте только обработанные записи', fg='yellow', err=True)

    report = summarize(cfg, frontier)

    # Если не сохраняем в файл, печатаем в stdout
    if not json_output and not html_output:
        click.echo(report.json(pretty=pretty))
        return

    # JSON-отчёт
    if json_output:
        try:
            saved_json = render_json(report, json_output)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    # HTML-отчёт
    if html_output:
        try:
            saved_html = render_html(report, template_dir, html_output)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.argument('seeds', nargs=-1)
@click.pass_context
def show_config(ctx, seeds):
    """Показать итоговую конфигурацию в JSON."""
    cfg = _make_config(ctx, {'seeds': list(seeds)})
    click.echo(json.dumps(cfg.model_dump(mode='json'), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
