"""
URL classification and normalization for SiteAudit.
"""
from __future__ import annotations

import posixpath
from enum import Enum
from typing import AbstractSet, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from site_audit.crawler.models import UrlType

__all__ = ("LinkOrigin", "WEBPAGE_EXTENSIONS", "classify", "normalize_url", "resolve_url")

WEBPAGE_EXTENSIONS: frozenset[str] = frozenset(
    (".asp", ".aspx", ".htm", ".html", ".jsp", ".php", ".shtml", ".xhtml")
)

_DEFAULT_PORTS = {"http": 80, "https": 443}
_ALLOWED_SCHEMES = ("http", "https")


class LinkOrigin(str, Enum):
    """Where a URL was discovered."""

    SEED = "seed"
    HYPERLINK = "hyperlink"
    REDIRECT = "redirect"
    IMAGE = "image"
    SCRIPT = "script"
    STYLESHEET = "stylesheet"

    @property
    def is_embedded(self) -> bool:
        return self in (LinkOrigin.IMAGE, LinkOrigin.SCRIPT, LinkOrigin.STYLESHEET)


def _is_page(url: str, origin: LinkOrigin) -> bool:
    if origin.is_embedded:
        return False
    if origin is LinkOrigin.REDIRECT:
        return True
    last = urlsplit(url).path.rsplit("/", 1)[-1]
    ext = posixpath.splitext(last)[1].lower()
    if not ext:
        return True
    return ext in WEBPAGE_EXTENSIONS


def classify(url: str, origin: LinkOrigin, internal_domains: AbstractSet[str]) -> UrlType:
    """
    Classify *url* as internal/external page/asset.

    Embedded resources are always assets; hyperlinks are pages unless the last
    path segment carries a non-webpage extension.
    """
    host = (urlsplit(url).hostname or "").lower()
    internal = host in internal_domains
    if _is_page(url, origin):
        return UrlType.INTERNAL_PAGE if internal else UrlType.EXTERNAL_PAGE
    return UrlType.INTERNAL_ASSET if internal else UrlType.EXTERNAL_ASSET


def normalize_url(url: str) -> str:
    """
    Normalize URL: lowercase scheme and host, drop default port and fragment,
    empty path becomes "/". Path and query are kept as they are.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    netloc = host if port is None or _DEFAULT_PORTS.get(scheme) == port else f"{host}:{port}"
    if parts.username:
        auth = parts.username + (f":{parts.password}" if parts.password else "")
        netloc = f"{auth}@{netloc}"
    path = parts.path or "/"
    return urlunsplit((scheme, netloc, path.replace(" ", "%20"), parts.query, ""))


def resolve_url(base: str, raw: Optional[str]) -> Optional[str]:
    """
    Resolve *raw* against *base* and normalize it.

    Returns None for empty references, non-HTTP(S) schemes and URLs without a host.
    """
    if raw is None:
        return None
    raw = raw.strip()
    if not raw or raw.startswith("#"):
        return None
    try:
        absolute = urljoin(base, raw)
        parts = urlsplit(absolute)
        if parts.scheme.lower() not in _ALLOWED_SCHEMES or not parts.hostname:
            return None
        return normalize_url(absolute)
    except ValueError:
        # invalid port or bracketed host
        return None
