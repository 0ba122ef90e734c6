import asyncio
import socket
from types import SimpleNamespace

import pytest
from aiohttp import ClientConnectorDNSError, ClientConnectorError
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_audit.crawler.errors import classify_exception
from site_audit.crawler.models import ErrorKind, ResponseSource

URL = "https://missing.example.invalid/page"


def test_timeout_message():
    error = classify_exception(asyncio.TimeoutError(), URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.REQUEST_TIMEOUT
    assert error.message == f"Timeout after 5 seconds from {URL}"
    assert error.phase is ResponseSource.PROBE


def test_playwright_timeout():
    exc = PlaywrightTimeoutError("Timeout 5000ms exceeded.")
    error = classify_exception(exc, URL, 0.5, ResponseSource.CHROMIUM)
    assert error.kind is ErrorKind.REQUEST_TIMEOUT
    assert error.message == f"Timeout after 0.5 seconds from {URL}"
    assert error.phase is ResponseSource.CHROMIUM


def test_gaierror_is_unresolvable():
    exc = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert error.message == "Unresolvable hostname missing.example.invalid"
    assert error.data == {"hostname": "missing.example.invalid"}


def test_wrapped_gaierror_is_unresolvable():
    try:
        try:
            raise socket.gaierror(socket.EAI_NONAME, "lookup failed")
        except socket.gaierror as inner:
            raise RuntimeError("connect failed") from inner
    except RuntimeError as exc:
        error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME


@pytest.mark.parametrize(
    "message",
    [
        "net::ERR_NAME_NOT_RESOLVED at https://missing.example.invalid/page",
        "NS_ERROR_UNKNOWN_HOST",
        "Could not resolve host: missing.example.invalid",
    ],
)
def test_browser_dns_errors(message):
    error = classify_exception(PlaywrightError(message), URL, 5.0, ResponseSource.FIREFOX)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert error.phase is ResponseSource.FIREFOX


def test_unhandled_keeps_category():
    error = classify_exception(ConnectionResetError("reset by peer"), URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNHANDLED
    assert error.message == "reset by peer"
    assert error.data["category"] == "builtins.ConnectionResetError"


def test_unhandled_without_message_uses_class_name():
    error = classify_exception(RuntimeError(), URL, 5.0, ResponseSource.WEBKIT)
    assert error.message == "RuntimeError"


def _connection_key(host="missing.example.invalid", port=443):
    return SimpleNamespace(host=host, port=port, ssl=True)


def test_connector_error_wrapping_gaierror():
    os_error = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    exc = ClientConnectorError(_connection_key(), os_error)
    error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert error.data == {"hostname": "missing.example.invalid"}


def test_connector_dns_error_from_async_resolver():
    exc = ClientConnectorDNSError(_connection_key(), OSError(None, "Domain name not found"))
    error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert error.message == "Unresolvable hostname missing.example.invalid"


def test_c_ares_message_is_unresolvable():
    try:
        raise RuntimeError("connect failed") from OSError(None, "Domain name not found")
    except RuntimeError as exc:
        error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME


def test_connector_error_without_dns_cause_is_unhandled():
    exc = ClientConnectorError(_connection_key(), ConnectionRefusedError(111, "Connection refused"))
    error = classify_exception(exc, URL, 5.0, ResponseSource.PROBE)
    assert error.kind is ErrorKind.UNHANDLED
    assert error.data["category"] == "aiohttp.client_exceptions.ClientConnectorError"
