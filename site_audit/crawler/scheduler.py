"""
Round-based crawl scheduler.

Each round takes a snapshot of the unprocessed frontier entries, marks the
ones matching a skip rule, dispatches the rest concurrently and waits for all
of them before the next snapshot. Entries discovered mid-round are picked up
by the following round.
"""
from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from site_audit.crawler.context import CrawlContext
from site_audit.crawler.models import CrawlEntry

__all__ = ("SchedulerState", "CrawlScheduler")

logger = logging.getLogger("SiteAudit")

Dispatch = Callable[[CrawlEntry], Awaitable[None]]


class SchedulerState(str, Enum):
    IDLE = "idle"
    ROUND = "round"
    DRAINED = "drained"


class CrawlScheduler:
    def __init__(self, ctx: CrawlContext, dispatch: Dispatch) -> None:
        self.ctx = ctx
        self._dispatch = dispatch
        self.state = SchedulerState.IDLE
        self.round = 0
        limit = ctx.config.max_concurrency
        self._semaphore: Optional[asyncio.Semaphore] = asyncio.Semaphore(limit) if limit else None

    async def run(self) -> None:
        """Run rounds until the frontier has no unprocessed entries or the run is cancelled."""
        start = time.monotonic()
        while not self.ctx.cancelled:
            snapshot = self.ctx.frontier.unprocessed_snapshot()
            if not snapshot:
                break
            self.round += 1
            self.state = SchedulerState.ROUND
            await self._run_round(snapshot)
        if self.ctx.cancelled:
            logger.info("Crawl cancelled after %d round(s)", self.round)
        self.state = SchedulerState.DRAINED
        duration = time.monotonic() - start
        logger.info(
            "Finished: %d entries in %d round(s), %.2f s",
            len(self.ctx.frontier),
            self.round,
            duration,
        )

    def partition(self, snapshot: List[CrawlEntry]) -> Tuple[List[CrawlEntry], List[CrawlEntry]]:
        """Split a snapshot into (skip, process)."""
        skip: List[CrawlEntry] = []
        process: List[CrawlEntry] = []
        for entry in snapshot:
            (skip if self.ctx.skip_rules.matches(entry) else process).append(entry)
        return skip, process

    async def _run_round(self, snapshot: List[CrawlEntry]) -> None:
        skip, process = self.partition(snapshot)
        logger.info(
            "Round %d: %d to process, %d skipped, %d known",
            self.round,
            len(process),
            len(skip),
            len(self.ctx.frontier),
        )
        for entry in skip:
            entry.mark_processed(skipped=True)
            logger.debug("Skipped %s", entry.url)

        results = await asyncio.gather(
            *(self._guarded(entry) for entry in process), return_exceptions=True
        )
        for entry, result in zip(process, results):
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error("Unexpected failure while crawling %s: %r", entry.url, result)
            if entry.started_at is not None:
                entry.mark_processed()

    async def _guarded(self, entry: CrawlEntry) -> None:
        if self._semaphore is None:
            await self._dispatch_one(entry)
            return
        async with self._semaphore:
            await self._dispatch_one(entry)

    async def _dispatch_one(self, entry: CrawlEntry) -> None:
        if self.ctx.cancelled:
            return
        if entry.started_at is None:
            entry.mark_started()
        await self._dispatch(entry)
