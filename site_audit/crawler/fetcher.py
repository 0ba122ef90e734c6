"""
Request executor: cheap HTTP probe, then a browser render for HTML pages.

Every probe/render failure is classified and stored on the entry; nothing
raised here reaches the scheduler except cancellation.
"""
from __future__ import annotations

import asyncio
import logging
import time
from http import HTTPStatus
from typing import Mapping, Optional

from aiohttp import ClientSession, ClientTimeout

from site_audit.crawler.augmenters import extract_metadata, run_accessibility_audit, save_screenshot
from site_audit.crawler.classifier import LinkOrigin, classify, resolve_url
from site_audit.crawler.context import CrawlContext
from site_audit.crawler.errors import classify_exception
from site_audit.crawler.link_extractor import extract_links
from site_audit.crawler.models import CrawlEntry, NormalizedResponse, ResponseSource, UrlType
from site_audit.crawler.renderer import RenderedDocument, Renderer
from site_audit.logger import level_for_status

__all__ = ("RequestExecutor", "status_description", "content_type_of")

logger = logging.getLogger("SiteAudit")


def status_description(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return ""


def content_type_of(headers: Mapping[str, str]) -> Optional[str]:
    value = headers.get("content-type")
    if not value:
        return None
    return value.split(";", 1)[0].strip().lower() or None


def _lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    result: dict[str, str] = {}
    for key, value in headers.items():
        result.setdefault(key.lower(), value)
    return result


class RequestExecutor:
    """Resolves one crawl entry: probe, conditional render, post-render side effects."""

    def __init__(self, ctx: CrawlContext, session: ClientSession, renderer: Renderer) -> None:
        self.ctx = ctx
        self.config = ctx.config
        self.session = session
        self.renderer = renderer
        self.timeout = ctx.config.timeout
        self.screenshot_dir = ctx.config.report_path / "screenshots"

    async def execute(self, entry: CrawlEntry) -> None:
        if entry.started_at is None:
            entry.mark_started()
        try:
            probe = await self._run_probe(entry)
            if probe is not None and self._should_render(entry, probe):
                await self._run_render(entry)
        finally:
            entry.mark_finished()

    @staticmethod
    def _should_render(entry: CrawlEntry, probe: NormalizedResponse) -> bool:
        return entry.url_type.is_page and probe.is_success and probe.is_html

    # -- probe ---------------------------------------------------------------

    async def probe(self, url: str) -> NormalizedResponse:
        """GET *url* without following redirects and describe the response."""
        start = time.monotonic()
        async with self.session.get(
            url, allow_redirects=False, timeout=ClientTimeout(total=self.timeout)
        ) as resp:
            body = await resp.read()
            elapsed_ms = int((time.monotonic() - start) * 1000)
            headers = _lower_headers(resp.headers)
            return NormalizedResponse(
                source=ResponseSource.PROBE,
                status_code=resp.status,
                status_description=status_description(resp.status),
                headers=headers,
                size=len(body),
                content_type=content_type_of(headers),
                elapsed_ms=elapsed_ms,
            )

    async def _run_probe(self, entry: CrawlEntry) -> Optional[NormalizedResponse]:
        try:
            response = await self.probe(entry.url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            entry.error = classify_exception(exc, entry.url, self.timeout, ResponseSource.PROBE)
            logger.warning("Probe failed for %s: %s", entry.url, entry.error.message)
            return None
        entry.responses.append(response)
        self._log_response(entry, response)
        self._follow_redirect(entry, response)
        return response

    def _follow_redirect(self, entry: CrawlEntry, response: NormalizedResponse) -> None:
        if not self.config.follow_redirects or not 300 <= response.status_code < 400:
            return
        target_url = resolve_url(entry.url, response.headers.get("location"))
        if target_url is None or target_url == entry.url:
            return
        url_type = classify(target_url, LinkOrigin.REDIRECT, self.ctx.internal_domains)
        target, is_new = self.ctx.frontier.try_add(target_url, url_type)
        self.ctx.frontier.add_reference(target, entry.url)
        entry.redirect_target = target.url
        if is_new:
            logger.debug("Added redirect target %s to queue", target.url)

    # -- render --------------------------------------------------------------

    async def _run_render(self, entry: CrawlEntry) -> None:
        source = self.renderer.engine.source
        try:
            document = await self.renderer.render(entry.url, self.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            entry.error = classify_exception(exc, entry.url, self.timeout, source)
            logger.warning("Render failed for %s: %s", entry.url, entry.error.message)
            return

        try:
            try:
                html = await document.content()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                entry.error = classify_exception(exc, entry.url, self.timeout, source)
                logger.warning("Render failed for %s: %s", entry.url, entry.error.message)
                return
            title, meta_tags = extract_metadata(html)
            headers = _lower_headers(document.headers)
            response = NormalizedResponse(
                source=source,
                status_code=document.status,
                status_description=status_description(document.status),
                headers=headers,
                size=document.size if document.size is not None else len(html.encode("utf-8")),
                content_type=content_type_of(headers),
                elapsed_ms=document.elapsed_ms,
                title=title,
                meta_tags=meta_tags,
            )
            entry.responses.append(response)
            self._log_response(entry, response)
            await self._after_render(entry, document, html)
        finally:
            await self._release(entry, document)

    async def _after_render(self, entry: CrawlEntry, document: RenderedDocument, html: str) -> None:
        if entry.url_type is not UrlType.INTERNAL_PAGE:
            return
        try:
            extract_links(entry, html, self.ctx)
        except Exception as exc:
            logger.warning("Link extraction failed for %s: %s", entry.url, exc)
        await run_accessibility_audit(entry, document)
        if self.config.save_screenshots:
            await save_screenshot(
                entry, document, self.screenshot_dir, self.config.full_page_screenshots
            )

    @staticmethod
    async def _release(entry: CrawlEntry, document: RenderedDocument) -> None:
        try:
            await document.close()
        except Exception as exc:
            logger.debug("Closing page for %s failed: %s", entry.url, exc)

    @staticmethod
    def _log_response(entry: CrawlEntry, response: NormalizedResponse) -> None:
        level = level_for_status(response.status_code)
        logger.log(
            level,
            "%s %s %d %s, %s bytes, %d ms",
            response.source.value,
            entry.url,
            response.status_code,
            response.status_description,
            response.size if response.size is not None else "?",
            response.elapsed_ms,
        )
