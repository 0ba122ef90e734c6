"""
site_audit.engine: точка запуска обхода, используемая CLI и тестами.
"""
from __future__ import annotations

import asyncio
from typing import Optional

from site_audit.aggregator import ScanReport, build_report
from site_audit.config import CrawlConfig
from site_audit.crawler.crawler import SiteCrawler
from site_audit.crawler.frontier import Frontier
from site_audit.crawler.renderer import Renderer
from site_audit.logger import logger


async def start_scan(
    cfg: CrawlConfig,
    renderer: Optional[Renderer] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> Frontier:
    """
    Запускает обход в контексте SiteCrawler и возвращает итоговый Frontier.

    Parameters
    ----------
    cfg : CrawlConfig
        Конфигурация обхода.
    renderer : Renderer, optional
        Движок рендеринга; по умолчанию Playwright с движком из конфига.
    cancel_event : asyncio.Event, optional
        Токен отмены: проверяется между раундами и перед каждой записью.

    Returns
    -------
    Frontier
        Все найденные записи, включая ошибочные и пропущенные.
    """
    async with SiteCrawler(cfg, renderer=renderer, cancel_event=cancel_event) as crawler:
        return await crawler.crawl()


def summarize(cfg: CrawlConfig, frontier: Frontier) -> ScanReport:
    """Строит отчёт по Frontier и пишет краткую сводку в лог."""
    report = build_report(frontier, seeds=cfg.seed_urls)
    stats = report.stats
    logger.info(
        "Entries: %d, processed: %d, skipped: %d, failed: %d",
        stats.total,
        stats.processed,
        stats.skipped,
        stats.failed,
    )
    return report


__all__ = ["start_scan", "summarize"]
