"""
Link extraction from rendered documents.
"""
from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_audit.crawler.classifier import LinkOrigin, classify, resolve_url
from site_audit.crawler.context import CrawlContext
from site_audit.crawler.models import CrawlEntry

__all__ = ("LINK_SELECTORS", "iter_references", "extract_links")

logger = logging.getLogger("SiteAudit")

# (tag, attribute, origin)
LINK_SELECTORS: Tuple[Tuple[str, str, LinkOrigin], ...] = (
    ("a", "href", LinkOrigin.HYPERLINK),
    ("img", "src", LinkOrigin.IMAGE),
    ("link", "href", LinkOrigin.STYLESHEET),
    ("script", "src", LinkOrigin.SCRIPT),
)


def iter_references(base_url: str, html: str) -> Iterator[Tuple[str, LinkOrigin]]:
    """
    Yield absolute, normalized HTTP(S) references found in *html*.

    Ignores mailto:, javascript:, fragments and anything without a host.
    """
    soup = BeautifulSoup(html, "html.parser")
    for tag_name, attr, origin in LINK_SELECTORS:
        for tag in soup.find_all(tag_name, attrs={attr: True}):
            if not isinstance(tag, Tag):
                continue
            raw = tag.get(attr)
            if not isinstance(raw, str):
                continue
            url = resolve_url(base_url, raw)
            if url is not None:
                yield url, origin


def extract_links(entry: CrawlEntry, html: str, ctx: CrawlContext) -> List[CrawlEntry]:
    """
    Add every reference in *html* to the frontier and record *entry* as referrer.

    Returns the entries created by this call.
    """
    created: List[CrawlEntry] = []
    for url, origin in iter_references(entry.url, html):
        if url == entry.url:
            continue
        target, is_new = ctx.frontier.try_add(url, classify(url, origin, ctx.internal_domains))
        ctx.frontier.add_reference(target, entry.url)
        if is_new:
            logger.debug("Added %s to queue (%s)", target.url, target.url_type.value)
            created.append(target)
    return created
