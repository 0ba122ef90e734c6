from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiohttp import ClientSession, ClientTimeout

from site_audit.config import CrawlConfig
from site_audit.crawler.context import CrawlContext
from site_audit.crawler.fetcher import RequestExecutor
from site_audit.crawler.frontier import Frontier
from site_audit.crawler.renderer import PlaywrightRenderer, Renderer
from site_audit.crawler.scheduler import CrawlScheduler

__all__ = ("SiteCrawler",)


class SiteCrawler:
    """Owns the HTTP session and browser engine for one crawl run."""

    def __init__(
        self,
        config: CrawlConfig,
        renderer: Optional[Renderer] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        self.config = config
        self.ctx = CrawlContext.create(config, cancel_event)
        self.renderer: Renderer = renderer or PlaywrightRenderer(
            config.rendering_engine,
            user_agent=config.user_agent,
            extra_headers=config.request_headers,
            viewport={"width": config.viewport_width, "height": config.viewport_height},
            axe_script=config.axe_script,
        )
        self.session: Optional[ClientSession] = None
        self.scheduler: Optional[CrawlScheduler] = None
        self.logger = logging.getLogger("SiteAudit")

    @property
    def frontier(self) -> Frontier:
        return self.ctx.frontier

    async def __aenter__(self) -> SiteCrawler:
        # Browser launch failure is fatal and must surface before any round starts.
        await self.renderer.start()
        self.session = ClientSession(
            timeout=ClientTimeout(total=self.config.timeout),
            headers={"User-Agent": self.config.user_agent, "Accept": "*/*", **self.config.request_headers},
            raise_for_status=False,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if self.session and not self.session.closed:
                await self.session.close()
        finally:
            await self.renderer.close()

    async def crawl(self) -> Frontier:
        if not self.session:
            raise RuntimeError("Session not initialized")
        self.logger.info("Crawl started: %s", ", ".join(self.config.seed_urls))
        executor = RequestExecutor(self.ctx, self.session, self.renderer)
        self.scheduler = CrawlScheduler(self.ctx, executor.execute)
        await self.scheduler.run()
        return self.ctx.frontier
