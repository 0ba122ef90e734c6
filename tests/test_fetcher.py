# File: tests/test_fetcher.py
# Request executor: probe, conditional render and post-render side effects.
from __future__ import annotations

import asyncio
import socket
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import ClientSession, web
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from site_audit.crawler.context import CrawlContext
from site_audit.crawler.fetcher import RequestExecutor, content_type_of, status_description
from site_audit.crawler.models import ErrorKind, ResponseSource, UrlType

HOME = """
<html><head>
  <title>Home</title>
  <meta charset="utf-8">
  <meta name="description" content="Welcome">
</head><body>
  <a href="/">Home</a>
  <a href="/about">About</a>
  <a href="mailto:info@example.com">Mail</a>
  <a href="https://other.org/">Other</a>
  <img src="/logo.png">
</body></html>
"""

ABOUT = "<html><head><title>About</title></head><body><p>About us</p></body></html>"

#: seconds the slow handler sleeps; the timeout tests use a much smaller limit
SLOW_SLEEP: float = 1.0


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


@pytest_asyncio.fixture
async def site(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def handle_root(_):
        return web.Response(text=HOME, content_type="text/html")

    async def handle_about(_):
        return web.Response(text=ABOUT, content_type="text/html")

    async def handle_logo(_):
        return web.Response(body=b"\x89PNG\r\n\x1a\n", content_type="image/png")

    async def handle_feed(_):
        return web.json_response({"items": []})

    async def handle_missing(_):
        return web.Response(status=404, text="<h1>nope</h1>", content_type="text/html")

    async def handle_moved(_):
        return web.Response(status=301, headers={"Location": "/about"})

    async def handle_slow(_):
        await asyncio.sleep(SLOW_SLEEP)
        return web.Response(text="late", content_type="text/html")

    app.router.add_get("/", handle_root)
    app.router.add_get("/about", handle_about)
    app.router.add_get("/logo.png", handle_logo)
    app.router.add_get("/feed", handle_feed)
    app.router.add_get("/missing", handle_missing)
    app.router.add_get("/moved", handle_moved)
    app.router.add_get("/slow", handle_slow)

    async for url in _serve_app(app, unused_tcp_port):
        yield url


@pytest.fixture()
def renderer(make_renderer):
    return make_renderer({"/": HOME, "/about": ABOUT})


async def execute(ctx: CrawlContext, renderer, url: str, url_type: UrlType = UrlType.INTERNAL_PAGE):
    entry, _ = ctx.frontier.try_add(url, url_type)
    async with ClientSession() as session:
        await RequestExecutor(ctx, session, renderer).execute(entry)
    return entry


@pytest.mark.asyncio()
async def test_html_page_probed_then_rendered(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    assert entry.error is None
    assert [r.source for r in entry.responses] == [ResponseSource.PROBE, ResponseSource.CHROMIUM]
    probe = entry.responses[0]
    assert probe.status_code == 200
    assert probe.status_description == "OK"
    assert probe.content_type == "text/html"
    assert probe.size == len(HOME.encode("utf-8"))

    rendered = entry.response
    assert rendered.title == "Home"
    assert ("description", "Welcome") in {(m.name, m.content) for m in rendered.meta_tags}
    assert any(m.charset == "utf-8" for m in rendered.meta_tags)
    assert entry.started_at is not None and entry.finished_at is not None
    assert entry.accessibility_result is not None
    assert renderer.open_documents == 0


@pytest.mark.asyncio()
async def test_links_from_internal_page(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    about = ctx.frontier.get(f"{site}/about")
    logo = ctx.frontier.get(f"{site}/logo.png")
    other = ctx.frontier.get("https://other.org/")
    assert about.url_type is UrlType.INTERNAL_PAGE
    assert logo.url_type is UrlType.INTERNAL_ASSET
    assert other.url_type is UrlType.EXTERNAL_PAGE
    for target in (about, logo, other):
        assert target.linked_from == [entry.url]
    assert entry.linked_from == []
    assert not any(e.url.startswith("mailto:") for e in ctx.frontier)
    assert len(ctx.frontier) == 4


@pytest.mark.asyncio()
async def test_asset_is_probed_only(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/logo.png", UrlType.INTERNAL_ASSET)

    assert entry.error is None
    assert [r.source for r in entry.responses] == [ResponseSource.PROBE]
    assert entry.response.status_code == 200
    assert entry.response.content_type == "image/png"
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_non_html_page_is_not_rendered(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/feed")

    assert entry.response.content_type == "application/json"
    assert len(entry.responses) == 1
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_error_status_is_a_response(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/missing")

    assert entry.error is None
    assert entry.response.status_code == 404
    assert entry.response.status_description == "Not Found"
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_external_page_rendered_without_extraction(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    external = site.replace("localhost", "127.0.0.1") + "/"
    entry = await execute(ctx, renderer, external, UrlType.EXTERNAL_PAGE)

    assert entry.error is None
    assert entry.response.source is ResponseSource.CHROMIUM
    assert entry.response.title == "Home"
    assert entry.accessibility_result is None
    assert len(ctx.frontier) == 2
    assert renderer.open_documents == 0


@pytest.mark.asyncio()
async def test_redirect_target_followed(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site, follow_redirects=True))
    entry = await execute(ctx, renderer, f"{site}/moved")

    assert entry.response.status_code == 301
    assert entry.redirect_target == f"{site}/about"
    target = ctx.frontier.get(f"{site}/about")
    assert target is not None
    assert target.url_type is UrlType.INTERNAL_PAGE
    assert target.linked_from == [entry.url]
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_redirect_not_followed_by_default(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/moved")

    assert entry.response.status_code == 301
    assert entry.redirect_target is None
    assert ctx.frontier.get(f"{site}/about") is None


@pytest.mark.asyncio()
async def test_probe_timeout(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site, timeout=0.2))
    entry = await execute(ctx, renderer, f"{site}/slow")

    assert entry.error is not None
    assert entry.error.kind is ErrorKind.REQUEST_TIMEOUT
    assert entry.error.phase is ResponseSource.PROBE
    assert entry.error.message == f"Timeout after 0.2 seconds from {site}/slow"
    assert entry.responses == []
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_unresolvable_hostname(renderer, make_config):
    class NoDnsExecutor(RequestExecutor):
        async def probe(self, url):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    ctx = CrawlContext.create(make_config("https://nonexistent.invalid/"))
    entry = ctx.frontier.get("https://nonexistent.invalid/")
    async with ClientSession() as session:
        await NoDnsExecutor(ctx, session, renderer).execute(entry)

    assert entry.error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert entry.error.message == "Unresolvable hostname nonexistent.invalid"
    assert entry.responses == []
    assert entry.finished_at is not None
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_unresolvable_hostname_through_client(renderer, make_config):
    # .invalid never resolves; the failure arrives wrapped by the aiohttp connector
    ctx = CrawlContext.create(make_config("http://nonexistent.invalid/", timeout=10.0))
    entry = ctx.frontier.get("http://nonexistent.invalid/")
    async with ClientSession() as session:
        await RequestExecutor(ctx, session, renderer).execute(entry)

    assert entry.error.kind is ErrorKind.UNRESOLVABLE_HOSTNAME
    assert entry.error.phase is ResponseSource.PROBE
    assert entry.error.data == {"hostname": "nonexistent.invalid"}
    assert entry.responses == []
    assert renderer.calls == []


@pytest.mark.asyncio()
async def test_render_failure_keeps_probe_response(site, renderer, make_config):
    renderer.render_errors["/"] = PlaywrightTimeoutError("Timeout 2000ms exceeded.")
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    assert entry.error.kind is ErrorKind.REQUEST_TIMEOUT
    assert entry.error.phase is ResponseSource.CHROMIUM
    assert [r.source for r in entry.responses] == [ResponseSource.PROBE]
    assert len(ctx.frontier) == 1


@pytest.mark.asyncio()
async def test_document_closed_when_content_fails(site, renderer, make_config):
    renderer.content_error = PlaywrightError("Target page, context or browser has been closed")
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    assert entry.error.kind is ErrorKind.UNHANDLED
    assert entry.error.phase is ResponseSource.CHROMIUM
    assert renderer.documents and all(d.closed for d in renderer.documents)
    assert renderer.open_documents == 0


@pytest.mark.asyncio()
async def test_audit_failure_is_not_an_error(site, renderer, make_config):
    renderer.audit_error = PlaywrightError("axe is not defined")
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    assert entry.error is None
    assert entry.accessibility_result is None
    assert ctx.frontier.get(f"{site}/about") is not None
    assert renderer.open_documents == 0


@pytest.mark.asyncio()
async def test_accessibility_violations_recorded(site, renderer, make_config):
    renderer.audit_result = {
        "violations": [
            {
                "id": "image-alt",
                "impact": "critical",
                "help": "Images must have alternate text",
                "helpUrl": "https://dequeuniversity.com/rules/axe/4.10/image-alt",
                "tags": ["wcag2a"],
                "nodes": [{"html": '<img src="/logo.png">', "target": ["img"], "any": [{"message": "no alt"}]}],
            }
        ],
        "incomplete": [],
    }
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    [issue] = entry.accessibility_result.violations
    assert issue.id == "image-alt"
    assert issue.impact == "critical"
    assert issue.help_url.endswith("image-alt")
    assert issue.nodes[0].message == "no alt"
    assert issue.nodes[0].target == ["img"]


@pytest.mark.asyncio()
async def test_screenshot_saved(site, renderer, make_config):
    cfg = make_config(site, save_screenshots=True, full_page_screenshots=True)
    ctx = CrawlContext.create(cfg)
    entry = await execute(ctx, renderer, f"{site}/")

    path = cfg.report_path / "screenshots" / f"screenshot-{entry.id}.png"
    assert entry.screenshot_saved is True
    assert path.exists()
    assert renderer.screenshots == [(path, True)]


@pytest.mark.asyncio()
async def test_no_screenshot_by_default(site, renderer, make_config):
    ctx = CrawlContext.create(make_config(site))
    entry = await execute(ctx, renderer, f"{site}/")

    assert entry.screenshot_saved is False
    assert renderer.screenshots == []


@pytest.mark.parametrize(
    "code,expected",
    [(200, "OK"), (301, "Moved Permanently"), (404, "Not Found"), (503, "Service Unavailable"), (599, "")],
)
def test_status_description(code, expected):
    assert status_description(code) == expected


def test_content_type_of():
    assert content_type_of({"content-type": "Text/HTML; charset=utf-8"}) == "text/html"
    assert content_type_of({}) is None
