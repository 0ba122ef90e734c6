from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlsplit

import pytest

from site_audit.config import CrawlConfig
from site_audit.crawler.renderer import RenderingEngine
from site_audit.logger import LOGGER_NAME


class FakeDocument:
    """In-memory RenderedDocument."""

    def __init__(self, renderer: "FakeRenderer", url: str, html: str, status: int = 200) -> None:
        self._renderer = renderer
        self.url = url
        self.status = status
        self.headers = {"Content-Type": "text/html; charset=utf-8"}
        self.elapsed_ms = 5
        self.size = len(html.encode("utf-8"))
        self.html = html
        self.closed = False

    async def content(self) -> str:
        if self._renderer.content_error is not None:
            raise self._renderer.content_error
        return self.html

    async def audit_accessibility(self) -> Dict[str, Any]:
        if self._renderer.audit_error is not None:
            raise self._renderer.audit_error
        return self._renderer.audit_result

    async def screenshot(self, path: Path, full_page: bool) -> None:
        self._renderer.screenshots.append((path, full_page))
        path.write_bytes(b"\x89PNG")

    async def close(self) -> None:
        self.closed = True
        self._renderer.open_documents -= 1


class FakeRenderer:
    """Renderer serving HTML by URL path; tracks opened/closed documents."""

    def __init__(self, pages: Optional[Dict[str, str]] = None) -> None:
        self.engine = RenderingEngine.CHROMIUM
        self.pages = pages or {}
        self.calls: List[str] = []
        self.documents: List[FakeDocument] = []
        self.open_documents = 0
        self.started = False
        self.stopped = False
        self.start_error: Optional[BaseException] = None
        self.render_errors: Dict[str, BaseException] = {}
        self.content_error: Optional[BaseException] = None
        self.audit_error: Optional[BaseException] = None
        self.audit_result: Dict[str, Any] = {"violations": [], "incomplete": []}
        self.screenshots: List[tuple] = []

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def render(self, url: str, timeout: float) -> FakeDocument:
        self.calls.append(url)
        path = urlsplit(url).path or "/"
        if path in self.render_errors:
            raise self.render_errors[path]
        document = FakeDocument(self, url, self.pages.get(path, "<html></html>"))
        self.documents.append(document)
        self.open_documents += 1
        return document

    async def close(self) -> None:
        self.stopped = True


@pytest.fixture()
def make_renderer() -> Callable[..., FakeRenderer]:
    """Factory for renderers serving the given {path: html} mapping."""
    return FakeRenderer


@pytest.fixture()
def make_config(tmp_path: Path) -> Callable[..., CrawlConfig]:
    """Build a CrawlConfig writing reports under tmp_path."""

    def _make(*seeds: str, **kwargs: Any) -> CrawlConfig:
        kwargs.setdefault("timeout", 2.0)
        kwargs.setdefault("report_path", tmp_path / "reports")
        return CrawlConfig(seeds=list(seeds or ["https://example.com/"]), **kwargs)

    return _make


@pytest.fixture(autouse=True)
def reset_project_logger():
    """CLI tests reconfigure the project logger; restore defaults afterwards."""
    yield
    lg = logging.getLogger(LOGGER_NAME)
    for handler in list(lg.handlers):
        lg.removeHandler(handler)
        handler.close()
    lg.propagate = True
    lg.setLevel(logging.NOTSET)
