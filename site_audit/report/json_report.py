# site_audit/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteAudit.

Сериализация объекта ScanReport в файл.
"""
import json
from pathlib import Path

from site_audit.aggregator import ScanReport


def render_json(report: ScanReport, output_path: Path | str, *, include_raw: bool = True) -> Path:
    """
    Сохраняет отчёт report в формате JSON по указанному пути.

    :param report: объект ScanReport с данными обхода
    :param output_path: путь к JSON-файлу
    :param include_raw: сохранять полные записи (ответы, ошибки, доступность)
    :return: Path сохранённого файла

    Пример:
    ```python
    from site_audit.report.json_report import render_json
    report_path = render_json(report, 'reports/report.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    data = report.as_dict(include_raw=include_raw)

    # Запись в файл с отступами и Unicode
    with output.open('w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)

    return output
