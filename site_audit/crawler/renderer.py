"""
Browser rendering capability.

The crawl engine only sees :class:`Renderer` and :class:`RenderedDocument`;
the Playwright implementation picks chromium, firefox or webkit once at launch.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

from playwright.async_api import Browser, BrowserContext, Page, Playwright, Response, async_playwright
from playwright.async_api import Error as PlaywrightError

from site_audit.crawler.errors import BrowserLaunchError, RenderError
from site_audit.crawler.models import ResponseSource

__all__ = (
    "RenderingEngine",
    "RenderedDocument",
    "Renderer",
    "PlaywrightDocument",
    "PlaywrightRenderer",
)

logger = logging.getLogger("SiteAudit")


class RenderingEngine(str, Enum):
    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @property
    def source(self) -> ResponseSource:
        return ResponseSource(self.value)


class RenderedDocument(Protocol):
    """A navigated browser page owned by exactly one worker until closed."""

    url: str
    status: int
    headers: Dict[str, str]
    elapsed_ms: int
    size: Optional[int]

    async def content(self) -> str: ...

    async def audit_accessibility(self) -> Dict[str, Any]: ...

    async def screenshot(self, path: Path, full_page: bool) -> None: ...

    async def close(self) -> None: ...


class Renderer(Protocol):
    engine: RenderingEngine

    async def start(self) -> None: ...

    async def render(self, url: str, timeout: float) -> RenderedDocument: ...

    async def close(self) -> None: ...


class PlaywrightDocument:
    """RenderedDocument backed by a Playwright page in its own browser context."""

    def __init__(
        self,
        context: BrowserContext,
        page: Page,
        response: Response,
        elapsed_ms: int,
        size: Optional[int],
        headers: Dict[str, str],
        axe_script: str,
        timeout: float,
    ) -> None:
        self._context = context
        self._page = page
        self._axe_script = axe_script
        self._timeout_ms = timeout * 1000
        self.url = response.url
        self.status = response.status
        self.headers = headers
        self.elapsed_ms = elapsed_ms
        self.size = size

    async def content(self) -> str:
        return await self._page.content()

    async def audit_accessibility(self) -> Dict[str, Any]:
        if self._axe_script.startswith(("http://", "https://")):
            await self._page.add_script_tag(url=self._axe_script)
        else:
            await self._page.add_script_tag(path=self._axe_script)
        return await self._page.evaluate("async () => await axe.run()")

    async def screenshot(self, path: Path, full_page: bool) -> None:
        await self._page.screenshot(path=str(path), full_page=full_page, timeout=self._timeout_ms)

    async def close(self) -> None:
        await self._context.close()


class PlaywrightRenderer:
    """Shares one browser per run; every render gets a fresh context."""

    def __init__(
        self,
        engine: RenderingEngine = RenderingEngine.CHROMIUM,
        *,
        user_agent: Optional[str] = None,
        extra_headers: Optional[Mapping[str, str]] = None,
        viewport: Optional[Dict[str, int]] = None,
        axe_script: str = "",
        headless: bool = True,
    ) -> None:
        self.engine = engine
        self._user_agent = user_agent
        self._extra_headers = dict(extra_headers or {})
        self._viewport = viewport
        self._axe_script = axe_script
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        logger.info("Launching %s browser…", self.engine.value)
        try:
            self._playwright = await async_playwright().start()
            browser_type = getattr(self._playwright, self.engine.value)
            self._browser = await browser_type.launch(headless=self._headless)
        except Exception as exc:
            await self.close()
            raise BrowserLaunchError(f"Unable to launch {self.engine.value}: {exc}") from exc

    async def render(self, url: str, timeout: float) -> PlaywrightDocument:
        if self._browser is None:
            raise RuntimeError("Browser not started")
        options: Dict[str, Any] = {"extra_http_headers": self._extra_headers}
        if self._user_agent:
            options["user_agent"] = self._user_agent
        if self._viewport:
            options["viewport"] = self._viewport
        context = await self._browser.new_context(**options)
        try:
            page = await context.new_page()
            start = time.monotonic()
            response = await page.goto(url, timeout=timeout * 1000)
            elapsed_ms = int((time.monotonic() - start) * 1000)
            if response is None:
                raise RenderError(f"Unable to get a valid HTTP response from {url}")
            headers = await response.all_headers()
            size: Optional[int] = None
            try:
                size = len(await response.body())
            except PlaywrightError:
                # body is unavailable for redirected navigations
                size = None
            return PlaywrightDocument(
                context,
                page,
                response,
                elapsed_ms,
                size,
                headers,
                self._axe_script,
                timeout,
            )
        except BaseException:
            await context.close()
            raise

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
