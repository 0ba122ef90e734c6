"""site_audit.report: генерация JSON- и HTML-отчётов по результатам обхода."""

from __future__ import annotations

from site_audit.report.html_report import DEFAULT_TEMPLATE_DIR, render_html
from site_audit.report.json_report import render_json

__all__ = ["render_json", "render_html", "DEFAULT_TEMPLATE_DIR"]
