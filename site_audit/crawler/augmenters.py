"""
Best-effort per-page analysis: title/meta extraction, accessibility audit, screenshots.

Augmenter failures are logged and swallowed; they never set ``entry.error``.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.crawler.models import AccessibilityResult, CrawlEntry, MetaTag
from site_audit.crawler.renderer import RenderedDocument

__all__ = ("extract_metadata", "run_accessibility_audit", "save_screenshot")

logger = logging.getLogger("SiteAudit")


def _attr(tag: Tag, name: str) -> Optional[str]:
    value = tag.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value


def extract_metadata(html: str) -> Tuple[Optional[str], Tuple[MetaTag, ...]]:
    """Return the document title and all <meta> tags of *html*."""
    try:
        soup = BeautifulSoup(html, "html.parser")
        title_tag = soup.find("title")
        title = title_tag.get_text(strip=True) if isinstance(title_tag, Tag) else None
        metas = tuple(
            MetaTag(
                charset=_attr(tag, "charset"),
                content=_attr(tag, "content"),
                http_equiv=_attr(tag, "http-equiv"),
                name=_attr(tag, "name"),
                property=_attr(tag, "property"),
            )
            for tag in soup.find_all("meta")
            if isinstance(tag, Tag)
        )
        return title, metas
    except Exception as exc:
        logger.debug("Metadata extraction failed: %s", exc)
        return None, ()


async def run_accessibility_audit(entry: CrawlEntry, document: RenderedDocument) -> bool:
    try:
        results = await document.audit_accessibility()
        entry.accessibility_result = AccessibilityResult.from_axe(results or {})
    except Exception as exc:
        logger.debug("Accessibility audit failed for %s: %s", entry.url, exc)
        return False
    return True


async def save_screenshot(
    entry: CrawlEntry, document: RenderedDocument, directory: Path, full_page: bool
) -> Optional[Path]:
    """Save ``screenshot-<entry id>.png`` under *directory*."""
    path = directory / f"screenshot-{entry.id}.png"
    try:
        directory.mkdir(parents=True, exist_ok=True)
        await document.screenshot(path, full_page)
    except Exception as exc:
        logger.debug("Screenshot failed for %s: %s", entry.url, exc)
        return None
    entry.screenshot_saved = True
    return path
