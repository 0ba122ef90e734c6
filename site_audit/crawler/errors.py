"""
Error taxonomy for the crawl engine.

Fetch failures are never raised past the request executor: they are mapped to a
:class:`~site_audit.crawler.models.ClassifiedError` and stored on the entry.
Only a browser launch failure is fatal.
"""
from __future__ import annotations

import asyncio
import socket
from typing import Iterator, Optional
from urllib.parse import urlsplit

from aiohttp import ClientConnectorDNSError, ClientConnectorError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_audit.crawler.models import ClassifiedError, ErrorKind, ResponseSource

__all__ = (
    "SiteAuditError",
    "BrowserLaunchError",
    "RenderError",
    "classify_exception",
)

# Name-resolution failure markers from browsers and system resolvers.
_DNS_MARKERS = (
    "ERR_NAME_NOT_RESOLVED",
    "NS_ERROR_UNKNOWN_HOST",
    "Could not resolve host",
    "Name or service not known",
    "nodename nor servname provided",
    "Temporary failure in name resolution",
    "No address associated with hostname",
    "getaddrinfo failed",
    # c-ares messages when aiohttp resolves through aiodns
    "Domain name not found",
    "Could not contact DNS servers",
)


class SiteAuditError(Exception):
    """Base class for SiteAudit errors."""


class BrowserLaunchError(SiteAuditError):
    """The rendering engine could not be started."""


class RenderError(SiteAuditError):
    """The browser produced no usable response for a navigation."""


def _causes(exc: BaseException) -> Iterator[BaseException]:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if isinstance(current, ClientConnectorError):
            yield current.os_error
        current = current.__cause__ or current.__context__


def _is_dns_failure(exc: BaseException) -> bool:
    for cause in _causes(exc):
        if isinstance(cause, (socket.gaierror, ClientConnectorDNSError)):
            return True
        text = str(cause).lower()
        if any(marker.lower() in text for marker in _DNS_MARKERS):
            return True
    return False


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, PlaywrightTimeoutError))


def classify_exception(
    exc: BaseException,
    url: str,
    timeout: float,
    phase: ResponseSource,
    hostname: Optional[str] = None,
) -> ClassifiedError:
    """Map a probe/render exception to an error kind."""
    if _is_timeout(exc):
        return ClassifiedError(
            kind=ErrorKind.REQUEST_TIMEOUT,
            message=f"Timeout after {timeout:g} seconds from {url}",
            phase=phase,
            data={"timeout": timeout},
        )
    if _is_dns_failure(exc):
        host = hostname or urlsplit(url).hostname or ""
        return ClassifiedError(
            kind=ErrorKind.UNRESOLVABLE_HOSTNAME,
            message=f"Unresolvable hostname {host}",
            phase=phase,
            data={"hostname": host},
        )
    return ClassifiedError(
        kind=ErrorKind.UNHANDLED,
        message=str(exc) or exc.__class__.__name__,
        phase=phase,
        data={"category": f"{exc.__class__.__module__}.{exc.__class__.__qualname__}"},
    )
