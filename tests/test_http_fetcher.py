from __future__ import annotations

import allure
import httpx
import pytest

from news_scraper.errors import FetchError
from news_scraper.http.fetcher import HttpFetcher

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Listing Fetch"),
]


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(transport=httpx.MockTransport(handler))


def test_fetch_returns_body_and_content_type() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            text="<html><body>ok</body></html>",
            headers={"content-type": "text/html; charset=utf-8"},
        )

    with _fetcher(handler) as fetcher:
        document = fetcher.fetch("https://example.com/section/us")

    assert document.status_code == 200
    assert document.content == "<html><body>ok</body></html>"
    assert document.content_type.startswith("text/html")
    assert "NewsScraperBot" in seen[0].headers["user-agent"]


def test_fetch_follows_redirects_but_reports_requested_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"location": "https://example.com/new"})
        return httpx.Response(200, text="<p>moved</p>", headers={"content-type": "text/html"})

    with _fetcher(handler) as fetcher:
        document = fetcher.fetch("https://example.com/old")

    assert document.url == "https://example.com/old"
    assert document.content == "<p>moved</p>"


def test_non_success_status_is_fetch_error() -> None:
    with _fetcher(lambda request: httpx.Response(503, text="down")) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            fetcher.fetch("https://example.com/section/us")

    assert exc_info.value.status_code == 503
    assert exc_info.value.url == "https://example.com/section/us"
    assert exc_info.value.code == "fetch_error"


def test_timeout_is_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError, match="Timeout"):
            fetcher.fetch("https://example.com/section/us")


def test_connection_failure_is_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError, match="refused") as exc_info:
            fetcher.fetch("https://example.com/section/us")

    assert exc_info.value.status_code is None
