"""
Data models for the SiteAudit crawler.
"""
from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UrlType(str, Enum):
    """Crawl classification of a URL."""

    INTERNAL_PAGE = "internal_page"
    INTERNAL_ASSET = "internal_asset"
    EXTERNAL_PAGE = "external_page"
    EXTERNAL_ASSET = "external_asset"

    @property
    def is_page(self) -> bool:
        return self in (UrlType.INTERNAL_PAGE, UrlType.EXTERNAL_PAGE)

    @property
    def is_internal(self) -> bool:
        return self in (UrlType.INTERNAL_PAGE, UrlType.INTERNAL_ASSET)


class ResponseSource(str, Enum):
    """Which fetch phase produced a response."""

    PROBE = "probe"
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"


class ErrorKind(str, Enum):
    UNRESOLVABLE_HOSTNAME = "unresolvable_hostname"
    REQUEST_TIMEOUT = "request_timeout"
    UNHANDLED = "unhandled"


@dataclass(frozen=True, slots=True)
class MetaTag:
    """A single <meta> element of a rendered document."""

    charset: Optional[str] = None
    content: Optional[str] = None
    http_equiv: Optional[str] = None
    name: Optional[str] = None
    property: Optional[str] = None


@dataclass(frozen=True, slots=True)
class NormalizedResponse:
    """Outcome of one successful fetch attempt (probe or render)."""

    source: ResponseSource
    status_code: int
    status_description: str
    headers: Dict[str, str]
    size: Optional[int]
    content_type: Optional[str]
    elapsed_ms: int
    title: Optional[str] = None
    meta_tags: Tuple[MetaTag, ...] = ()

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return bool(self.content_type) and "html" in self.content_type  # type: ignore[operator]


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """Recoverable failure of one fetch attempt."""

    kind: ErrorKind
    message: str
    phase: ResponseSource
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AccessibilityNode:
    html: Optional[str] = None
    impact: Optional[str] = None
    message: Optional[str] = None
    target: List[str] = field(default_factory=list)
    xpath: List[str] = field(default_factory=list)


@dataclass(slots=True)
class AccessibilityIssue:
    id: Optional[str] = None
    description: Optional[str] = None
    help: Optional[str] = None
    help_url: Optional[str] = None
    impact: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    nodes: List[AccessibilityNode] = field(default_factory=list)

    @classmethod
    def from_axe(cls, item: Dict[str, Any]) -> AccessibilityIssue:
        nodes = []
        for node in item.get("nodes") or []:
            checks = node.get("any") or []
            nodes.append(
                AccessibilityNode(
                    html=node.get("html"),
                    impact=node.get("impact"),
                    message=checks[0].get("message") if checks else None,
                    target=[str(t) for t in node.get("target") or []],
                    xpath=[str(t) for t in node.get("xpath") or []],
                )
            )
        return cls(
            id=item.get("id"),
            description=item.get("description"),
            help=item.get("help"),
            help_url=item.get("helpUrl"),
            impact=item.get("impact"),
            tags=list(item.get("tags") or []),
            nodes=nodes,
        )


@dataclass(slots=True)
class AccessibilityResult:
    """Violations and incomplete checks reported by axe-core."""

    violations: List[AccessibilityIssue] = field(default_factory=list)
    incomplete: List[AccessibilityIssue] = field(default_factory=list)

    @classmethod
    def from_axe(cls, results: Dict[str, Any]) -> AccessibilityResult:
        return cls(
            violations=[AccessibilityIssue.from_axe(i) for i in results.get("violations") or []],
            incomplete=[AccessibilityIssue.from_axe(i) for i in results.get("incomplete") or []],
        )


class CrawlEntry:
    """One unit of crawl work and its result, one per normalized URL."""

    __slots__ = (
        "id",
        "url",
        "_url_type",
        "created_at",
        "started_at",
        "finished_at",
        "linked_from",
        "responses",
        "error",
        "_processed",
        "skipped",
        "redirect_target",
        "accessibility_result",
        "screenshot_saved",
    )

    def __init__(self, url: str, url_type: UrlType) -> None:
        self.id: str = uuid.uuid4().hex
        self.url = url
        self._url_type = url_type
        self.created_at: datetime = _utcnow()
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.linked_from: List[str] = []
        self.responses: List[NormalizedResponse] = []
        self.error: Optional[ClassifiedError] = None
        self._processed = False
        self.skipped = False
        self.redirect_target: Optional[str] = None
        self.accessibility_result: Optional[AccessibilityResult] = None
        self.screenshot_saved = False

    def __repr__(self) -> str:
        return f"CrawlEntry({self.url!r}, {self._url_type.value}, processed={self._processed})"

    @property
    def url_type(self) -> UrlType:
        return self._url_type

    @property
    def processed(self) -> bool:
        return self._processed

    @property
    def response(self) -> Optional[NormalizedResponse]:
        """Most recent successful response, if any."""
        return self.responses[-1] if self.responses else None

    def mark_started(self) -> None:
        self.started_at = _utcnow()

    def mark_finished(self) -> None:
        self.finished_at = _utcnow()

    def mark_processed(self, *, skipped: bool = False) -> None:
        if self._processed:
            raise ValueError(f"entry already processed: {self.url}")
        self._processed = True
        if skipped:
            self.skipped = True

    def to_dict(self) -> Dict[str, Any]:
        """Plain representation used by the report writers."""
        return {
            "id": self.id,
            "url": self.url,
            "url_type": self._url_type.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "linked_from": list(self.linked_from),
            "responses": [asdict(r) for r in self.responses],
            "error": asdict(self.error) if self.error else None,
            "processed": self._processed,
            "skipped": self.skipped,
            "redirect_target": self.redirect_target,
            "accessibility_result": (
                asdict(self.accessibility_result) if self.accessibility_result else None
            ),
            "screenshot_saved": self.screenshot_saved,
        }
