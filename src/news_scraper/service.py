"""Operations offered to the request layer: ingestion, listing, saving and notes."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from news_scraper.config import Settings
from news_scraper.http.fetcher import HttpFetcher
from news_scraper.ingestion.models import ArticleView, NoteView
from news_scraper.ingestion.pipeline import DocumentFetcher, IngestionCoordinator, IngestionSummary
from news_scraper.notes.relationships import NoteRelationshipManager
from news_scraper.storage.repository import SQLiteRepository


class ScraperService:
    """Single entry point over one store.

    Without an injected fetcher, each ingestion run opens its own
    ``HttpFetcher`` configured from ``settings.source``.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        repository: SQLiteRepository,
        fetcher: DocumentFetcher | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.fetcher = fetcher
        self.notes = NoteRelationshipManager(repository)

    def run_ingestion(self) -> IngestionSummary:
        if self.fetcher is not None:
            return self._coordinator(self.fetcher).run()
        with HttpFetcher(
            timeout_seconds=self.settings.source.request_timeout_seconds,
            max_retries=self.settings.source.max_retries,
        ) as fetcher:
            return self._coordinator(fetcher).run()

    def list_articles(self, *, saved: bool) -> list[ArticleView]:
        return self.repository.list_articles(saved=saved)

    def set_saved(self, article_id: int, saved: bool) -> None:
        self.notes.set_saved(article_id, saved)

    def list_notes(self, article_id: int) -> list[NoteView]:
        return self.notes.list_notes(article_id)

    def add_note(self, article_id: int, body: str) -> NoteView:
        return self.notes.add_note(article_id, body)

    def remove_note(self, note_id: int) -> None:
        self.notes.remove_note(note_id)

    def _coordinator(self, fetcher: DocumentFetcher) -> IngestionCoordinator:
        return IngestionCoordinator(
            settings=self.settings,
            repository=self.repository,
            fetcher=fetcher,
        )


@contextmanager
def open_service(
    settings: Settings,
    *,
    fetcher: DocumentFetcher | None = None,
) -> Iterator[ScraperService]:
    """Open the store at ``settings.db_path``, migrate it, and close it on exit."""

    repository = SQLiteRepository(settings.db_path)
    try:
        repository.init_schema()
        yield ScraperService(settings=settings, repository=repository, fetcher=fetcher)
    finally:
        repository.close()
