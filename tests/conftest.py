"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from news_scraper.config import Settings
from news_scraper.http.fetcher import FetchedDocument
from news_scraper.storage.repository import SQLiteRepository

ListingItem = tuple[str, str | None]


def render_listing(*items: ListingItem) -> str:
    """Listing page in the latest-panel layout; ``None`` url omits the story link."""

    stories = []
    for title, url in items:
        meta = f'<div class="story-meta"><h2 class="headline">{title}</h2></div>'
        if url is not None:
            meta = f'<a class="story-link" href="{url}">{meta}</a>'
        stories.append(
            f'<article class="story theme-summary"><div class="story-body">{meta}</div></article>',
        )
    return (
        f'<html><body><div id="latest-panel">{"".join(stories)}</div></body></html>'
    )


class StaticFetcher:
    """Serves one canned document for every url."""

    def __init__(self, content: str, content_type: str = "text/html; charset=utf-8") -> None:
        self.content = content
        self.content_type = content_type
        self.calls: list[str] = []

    def fetch(self, url: str) -> FetchedDocument:
        self.calls.append(url)
        return FetchedDocument(
            url=url,
            status_code=200,
            content=self.content,
            content_type=self.content_type,
        )


@pytest.fixture(autouse=True)
def _clean_scraper_env(monkeypatch) -> None:
    for name in list(os.environ):
        if name.startswith("NEWS_SCRAPER_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "news.db"


@pytest.fixture()
def repository(db_path: Path) -> Iterator[SQLiteRepository]:
    repository = SQLiteRepository(db_path)
    repository.init_schema()
    yield repository
    repository.close()


@pytest.fixture()
def settings(db_path: Path) -> Settings:
    return Settings(db_path=db_path)


@pytest.fixture()
def listing() -> Callable[..., str]:
    return render_listing


@pytest.fixture()
def static_fetcher() -> Callable[..., StaticFetcher]:
    return StaticFetcher
