"""Blocking HTTP client for the source listing page."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from news_scraper.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; NewsScraperBot/0.1)"


@dataclass(slots=True)
class FetchedDocument:
    """Body of a successful fetch."""

    url: str
    status_code: int
    content: str
    content_type: str


class HttpFetcher:
    """HTTP client wrapper with retry, timeout, and user-agent configuration.

    Connection errors are retried by the transport; timeouts, transport
    failures and non-2xx responses are raised as ``FetchError``.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        timeout = httpx.Timeout(
            timeout_seconds,
            connect=min(timeout_seconds, DEFAULT_CONNECT_TIMEOUT_SECONDS),
        )
        base_headers = {"User-Agent": user_agent}
        if headers:
            base_headers.update(headers)
        self._client = httpx.Client(
            timeout=timeout,
            headers=base_headers,
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    def fetch(self, url: str) -> FetchedDocument:
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(message=f"Timeout fetching {url}", url=url) from exc
        except httpx.HTTPError as exc:
            raise FetchError(message=f"HTTP error fetching {url}: {exc}", url=url) from exc

        if not response.is_success:
            raise FetchError(
                message=f"HTTP {response.status_code} fetching {url}",
                url=url,
                status_code=response.status_code,
            )

        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return FetchedDocument(
            url=url,
            status_code=response.status_code,
            content=response.text,
            content_type=response.headers.get("content-type", ""),
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
