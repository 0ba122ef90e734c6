"""site_audit.aggregator: сводный отчёт по итоговому Frontier."""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from site_audit.crawler.models import CrawlEntry, ResponseSource


class EntryInfo(TypedDict, total=False):
    """Строка отчёта для одной записи обхода."""

    id: str
    url: str
    url_type: str
    status: Optional[int]
    status_description: Optional[str]
    content_type: Optional[str]
    size: Optional[int]
    elapsed_ms: Optional[int]
    title: Optional[str]
    linked_from: List[str]
    error: Optional[Dict[str, Any]]
    skipped: bool
    redirect_target: Optional[str]
    violations: int
    screenshot_saved: bool


@dataclass(slots=True)
class ScanStats:
    """Агрегированная статистика обхода."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    status_codes: Dict[str, int] = field(default_factory=dict)
    error_kinds: Dict[str, int] = field(default_factory=dict)
    url_types: Dict[str, int] = field(default_factory=dict)
    accessibility_impacts: Dict[str, int] = field(default_factory=dict)
    pages_without_title: int = 0


@dataclass(slots=True)
class ScanReport:
    """Результаты обхода: записи и статистика."""

    seeds: List[str] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    entries: List[EntryInfo] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)

    raw_entries: Optional[List[Dict[str, Any]]] = None

    def as_dict(self, *, include_raw: bool = False) -> Dict[str, Any]:
        output = asdict(self)
        if not include_raw:
            output.pop("raw_entries", None)
        return output

    def json(self, *, pretty: bool = False, include_raw: bool = False) -> str:
        """Возвращает JSON-представление ScanReport."""
        return json.dumps(
            self.as_dict(include_raw=include_raw),
            ensure_ascii=False,
            indent=2 if pretty else None,
            default=str,
        )


def _entry_info(entry: CrawlEntry) -> EntryInfo:
    response = entry.response
    result = entry.accessibility_result
    return {
        "id": entry.id,
        "url": entry.url,
        "url_type": entry.url_type.value,
        "status": response.status_code if response else None,
        "status_description": response.status_description if response else None,
        "content_type": response.content_type if response else None,
        "size": response.size if response else None,
        "elapsed_ms": response.elapsed_ms if response else None,
        "title": response.title if response else None,
        "linked_from": list(entry.linked_from),
        "error": asdict(entry.error) if entry.error else None,
        "skipped": entry.skipped,
        "redirect_target": entry.redirect_target,
        "violations": len(result.violations) if result else 0,
        "screenshot_saved": entry.screenshot_saved,
    }


def _stats(entries: List[CrawlEntry]) -> ScanStats:
    stats = ScanStats(total=len(entries))
    statuses: Counter[str] = Counter()
    errors: Counter[str] = Counter()
    types: Counter[str] = Counter()
    impacts: Counter[str] = Counter()
    for entry in entries:
        types[entry.url_type.value] += 1
        stats.processed += entry.processed
        stats.skipped += entry.skipped
        if entry.error:
            stats.failed += 1
            errors[entry.error.kind.value] += 1
        response = entry.response
        if response:
            statuses[f"{response.status_code} {response.status_description}".strip()] += 1
            if entry.url_type.is_page and response.source is not ResponseSource.PROBE and not response.title:
                stats.pages_without_title += 1
        if entry.accessibility_result:
            for issue in entry.accessibility_result.violations:
                impacts[issue.impact or "unknown"] += 1
    stats.status_codes = dict(statuses)
    stats.error_kinds = dict(errors)
    stats.url_types = dict(types)
    stats.accessibility_impacts = dict(impacts)
    return stats


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def build_report(entries: Iterable[CrawlEntry], seeds: Optional[List[str]] = None) -> ScanReport:
    """Собирает ScanReport из записей Frontier (в порядке создания)."""
    items = list(entries)
    started = [e.started_at for e in items if e.started_at]
    finished = [e.finished_at for e in items if e.finished_at]
    return ScanReport(
        seeds=list(seeds or []),
        started_at=_iso(min(started)) if started else None,
        finished_at=_iso(max(finished)) if finished else None,
        entries=[_entry_info(e) for e in items],
        stats=_stats(items),
        raw_entries=[e.to_dict() for e in items],
    )
