# File: tests/test_crawler.py
# Test-suite for the PageScout recursive crawler
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web

from conftest import BASE, FakeFetcher, html_page, make_config, serve_app
from page_scout.crawler.crawler import AsyncCrawler
from page_scout.crawler.ledger import LedgerError, VisitationLedger
from page_scout.crawler.models import FetchResult

#: seconds a “slow” handler sleeps
SLOW_SLEEP: float = 0.05


async def run_crawler(config, fetcher=None, timeout: float = 15.0):
    """Run the crawler with an overall timeout; returns (pages, crawler)."""
    async with AsyncCrawler(config, fetcher=fetcher) as crawler:
        pages = await asyncio.wait_for(crawler.crawl(), timeout=timeout)
    return pages, crawler


# --------------------------------------------------------------------------- #
#                         Scripted fetcher scenarios                          #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_page_budget_of_one_returns_only_seed():
    fetcher = FakeFetcher({f"{BASE}/": html_page("/a", "/b", "/c", "/d", h1="Home")})
    pages, crawler = await run_crawler(make_config(max_pages=1), fetcher)

    assert list(pages) == ["example.com"]
    assert pages["example.com"].h1 == "Home"
    assert fetcher.calls == [f"{BASE}/"]
    assert crawler.signal.is_set()


@pytest.mark.asyncio()
async def test_404_is_claimed_but_not_recorded():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("/missing", "/ok"),
        f"{BASE}/ok": html_page(h1="OK"),
    })
    pages, crawler = await run_crawler(make_config(), fetcher)

    assert set(pages) == {"example.com", "example.com/ok"}
    assert "example.com/missing" in crawler.ledger.claimed
    assert crawler.ledger.claimed_count == 3


@pytest.mark.asyncio()
async def test_failed_fetch_counts_toward_budget():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("/a-missing", "/b"),
        f"{BASE}/b": html_page("/c"),
        f"{BASE}/c": html_page(),
    })
    pages, crawler = await run_crawler(make_config(max_pages=3), fetcher)

    assert crawler.ledger.claimed == {"example.com", "example.com/a-missing", "example.com/b"}
    assert set(pages) == {"example.com", "example.com/b"}
    assert f"{BASE}/c" not in fetcher.calls


@pytest.mark.asyncio()
async def test_non_html_response_is_not_recorded():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("/logo.png"),
        f"{BASE}/logo.png": FetchResult(f"{BASE}/logo.png", 200, "image/png"),
    })
    pages, crawler = await run_crawler(make_config(), fetcher)

    assert set(pages) == {"example.com"}
    assert "example.com/logo.png" in crawler.ledger.claimed


@pytest.mark.asyncio()
async def test_equivalent_links_fetch_target_once():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page(
            "/target", "/target/", "HTTP://EXAMPLE.COM/target", "https://example.com/Target"
        ),
        f"{BASE}/target": html_page(h1="Target"),
    })
    _, crawler = await run_crawler(make_config(), fetcher)

    target_calls = [u for u in fetcher.calls if u.lower().rstrip("/").endswith("/target")]
    assert len(target_calls) == 1
    assert crawler.ledger.claimed == {"example.com", "example.com/target"}


@pytest.mark.asyncio()
async def test_cross_host_links_are_never_claimed():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("http://other.com/page", "https://sub.example.com/", "/local"),
        f"{BASE}/local": html_page(),
    })
    pages, crawler = await run_crawler(make_config(), fetcher)

    assert fetcher.calls == [f"{BASE}/", f"{BASE}/local"]
    assert crawler.ledger.claimed == {"example.com", "example.com/local"}
    assert "http://other.com/page" in pages["example.com"].outgoing_links


@pytest.mark.asyncio()
async def test_cycles_terminate():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("/a"),
        f"{BASE}/a": html_page("/b", "/"),
        f"{BASE}/b": html_page("/a", "/"),
    })
    pages, _ = await run_crawler(make_config(), fetcher, timeout=5)

    assert set(pages) == {"example.com", "example.com/a", "example.com/b"}
    assert len(fetcher.calls) == 3


@pytest.mark.asyncio()
async def test_claims_never_exceed_budget_on_wide_site():
    site = {f"{BASE}/": html_page(*(f"/p{i}" for i in range(50)))}
    for i in range(50):
        site[f"{BASE}/p{i}"] = html_page(*(f"/p{i}/{j}" for j in range(5)))
    fetcher = FakeFetcher(site, delay=0.001)

    pages, crawler = await run_crawler(make_config(max_pages=7, max_concurrency=3), fetcher)

    assert crawler.ledger.claimed_count == 7
    assert set(pages) <= crawler.ledger.claimed
    assert len(fetcher.calls) <= 7


@pytest.mark.asyncio()
async def test_max_concurrency_one_never_overlaps():
    site = {f"{BASE}/": html_page(*(f"/p{i}" for i in range(6)))}
    site.update({f"{BASE}/p{i}": html_page() for i in range(6)})
    fetcher = FakeFetcher(site, delay=0.01)

    pages, _ = await run_crawler(make_config(max_concurrency=1), fetcher)

    assert len(pages) == 7
    assert fetcher.peak == 1


@pytest.mark.asyncio()
async def test_siblings_are_fetched_concurrently():
    site = {f"{BASE}/": html_page(*(f"/p{i}" for i in range(6)))}
    site.update({f"{BASE}/p{i}": html_page() for i in range(6)})
    fetcher = FakeFetcher(site, delay=0.02)

    await run_crawler(make_config(max_concurrency=4), fetcher)

    assert 1 < fetcher.peak <= 4


@pytest.mark.asyncio()
async def test_budget_aborts_in_flight_fetches():
    fetcher = FakeFetcher(
        {
            f"{BASE}/": html_page("/a-slow", "/b"),
            f"{BASE}/a-slow": html_page(),
            f"{BASE}/b": html_page("/c"),
            f"{BASE}/c": html_page(h1="Last"),
        },
        delays={f"{BASE}/a-slow": 30.0},
    )
    pages, crawler = await run_crawler(make_config(max_pages=4), fetcher, timeout=5)

    assert fetcher.cancelled == [f"{BASE}/a-slow"]
    assert set(pages) == {"example.com", "example.com/b", "example.com/c"}
    assert crawler.ledger.claimed_count == 4
    assert len(crawler.tracker) == 0


@pytest.mark.asyncio()
async def test_concurrent_visits_of_same_url_claim_once():
    fetcher = FakeFetcher({f"{BASE}/page": html_page()}, delay=0.01)
    crawler = AsyncCrawler(make_config(), fetcher=fetcher)

    await asyncio.gather(*(crawler.visit(f"{BASE}/page") for _ in range(10)))
    await crawler.tracker.drain()

    assert fetcher.calls == [f"{BASE}/page"]
    assert crawler.ledger.claimed == {"example.com/page"}


@pytest.mark.asyncio()
async def test_branch_error_does_not_stop_siblings():
    fetcher = FakeFetcher({
        f"{BASE}/": html_page("/boom", "/fine"),
        f"{BASE}/boom": RuntimeError("unexpected"),
        f"{BASE}/fine": html_page(),
    })
    pages, crawler = await run_crawler(make_config(), fetcher)

    assert set(pages) == {"example.com", "example.com/fine"}
    assert len(crawler.tracker.errors) == 1
    assert isinstance(crawler.tracker.errors[0], RuntimeError)


@pytest.mark.asyncio()
async def test_ledger_invariant_violation_is_surfaced(monkeypatch):
    def broken_record(self, key, page):
        raise LedgerError(f"record() for unclaimed key {key!r}")

    monkeypatch.setattr(VisitationLedger, "record", broken_record)
    fetcher = FakeFetcher({f"{BASE}/": html_page()})

    with pytest.raises(LedgerError):
        await run_crawler(make_config(), fetcher)


@pytest.mark.asyncio()
async def test_each_crawl_starts_fresh():
    fetcher = FakeFetcher({f"{BASE}/": html_page("/a"), f"{BASE}/a": html_page()})
    async with AsyncCrawler(make_config(), fetcher=fetcher) as crawler:
        first = await crawler.crawl()
        second = await crawler.crawl()

    assert first == second
    assert len(fetcher.calls) == 4


@pytest.mark.asyncio()
async def test_crawl_without_fetcher_fails():
    crawler = AsyncCrawler(make_config())
    with pytest.raises(RuntimeError):
        await crawler.crawl()


# --------------------------------------------------------------------------- #
#                            Test-server fixtures                             #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture
async def site_server(unused_tcp_port: int) -> AsyncIterator[tuple[str, dict]]:
    app = web.Application()
    stats = {"active": 0, "peak": 0, "hits": []}

    async def tracked(request: web.Request, text: str, **kwargs) -> web.Response:
        stats["hits"].append(request.path)
        stats["active"] += 1
        stats["peak"] = max(stats["peak"], stats["active"])
        try:
            await asyncio.sleep(SLOW_SLEEP)
        finally:
            stats["active"] -= 1
        return web.Response(text=text, **kwargs)

    async def handle_root(request):
        links = '<a href="/page1">P1</a><a href="page2/">P2</a><a href="/missing">Broken</a>'
        links += f'<a href="http://127.0.0.1:{unused_tcp_port}/elsewhere">Other host</a>'
        links += '<a href="/data.json">Data</a><img src="/img/logo.png">'
        return await tracked(
            request,
            f"<html><body><h1>Root</h1><main><p>Intro, with comma</p></main>{links}</body></html>",
            content_type="text/html",
        )

    async def handle_page1(request):
        return await tracked(request, '<h1>Page1</h1><a href="/">Home</a>', content_type="text/html")

    async def handle_page2(request):
        return await tracked(request, '<h1>Page2</h1><a href="/page1">P1</a>', content_type="text/html")

    async def handle_json(request):
        return await tracked(request, '{"a": 1}', content_type="application/json")

    async def handle_elsewhere(request):
        return await tracked(request, "<h1>Elsewhere</h1>", content_type="text/html")

    app.router.add_get("/", handle_root)
    app.router.add_get("/page1", handle_page1)
    app.router.add_get("/page2", handle_page2)
    app.router.add_get("/page2/", handle_page2)
    app.router.add_get("/data.json", handle_json)
    app.router.add_get("/elsewhere", handle_elsewhere)

    async for url in serve_app(app, unused_tcp_port):
        yield url, stats


# --------------------------------------------------------------------------- #
#                           Tests against a server                            #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_basic_crawl(site_server):
    base, stats = site_server
    pages, crawler = await run_crawler(make_config(base_url=base))

    root_key = "localhost"
    assert set(pages) == {root_key, "localhost/page1", "localhost/page2"}
    root = pages[root_key]
    assert root.h1 == "Root"
    assert root.first_paragraph == "Intro, with comma"
    assert f"{base}/page1" in root.outgoing_links
    assert f"{base}/page2/" in root.outgoing_links
    assert root.image_urls == {f"{base}/img/logo.png"}
    assert "localhost/missing" in crawler.ledger.claimed
    assert "localhost/data.json" in crawler.ledger.claimed
    assert "/elsewhere" not in stats["hits"]
    assert all(not key.startswith("127.0.0.1") for key in crawler.ledger.claimed)


@pytest.mark.asyncio()
async def test_server_concurrency_one(site_server):
    base, stats = site_server
    await run_crawler(make_config(base_url=base, max_concurrency=1))
    assert stats["peak"] == 1


@pytest.mark.asyncio()
async def test_server_budget(site_server):
    base, stats = site_server
    pages, crawler = await run_crawler(make_config(base_url=base, max_pages=1))
    assert set(pages) == {"localhost"}
    assert stats["hits"] == ["/"]


@pytest.mark.asyncio()
async def test_retry_on_server_error(unused_tcp_port: int):
    app = web.Application()
    call_count = {"n": 0}

    async def flaky(_):
        call_count["n"] += 1
        if call_count["n"] == 1:
            return web.Response(status=500)
        return web.Response(text="<h1>Recover</h1>", content_type="text/html")

    async def root(_):
        return web.Response(text='<a href="/flaky">Flaky</a>', content_type="text/html")

    app.router.add_get("/", root)
    app.router.add_get("/flaky", flaky)

    async for base in serve_app(app, unused_tcp_port):
        pages, _ = await run_crawler(make_config(base_url=base, retry_times=1))

    assert pages["localhost/flaky"].h1 == "Recover"
    assert call_count["n"] == 2


@pytest.mark.asyncio()
async def test_connection_refused_is_not_fatal(unused_tcp_port: int):
    pages, crawler = await run_crawler(make_config(base_url=f"http://localhost:{unused_tcp_port}"))
    assert pages == {}
    assert crawler.ledger.claimed == {"localhost"}
