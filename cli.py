# cli.py

"""
Запуск SiteAudit из корня репозитория без установки пакета.

Пример запуска:
    python cli.py scan https://example.com --json reports/report.json --html reports/report.html
"""
from site_audit.cli import cli

if __name__ == "__main__":
    cli()
