"""End-to-end ingestion: snapshot titles, fetch, extract, dedup, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from news_scraper.config import Settings
from news_scraper.errors import PersistenceError, ScraperError
from news_scraper.http.fetcher import FetchedDocument
from news_scraper.ingestion.dedup import build_known_keys, filter_novel
from news_scraper.ingestion.extractor import ExtractionTemplate, extract_candidates
from news_scraper.ingestion.models import IngestionRunCounters, RunStatus
from news_scraper.storage.repository import SQLiteRepository

logger = logging.getLogger(__name__)


class DocumentFetcher(Protocol):
    """Anything that can fetch the listing page."""

    def fetch(self, url: str) -> FetchedDocument:
        """Return the document or raise ``FetchError``."""
        raise NotImplementedError


@dataclass(slots=True)
class IngestionSummary:
    """Result of one ingestion run."""

    run_id: str
    status: RunStatus
    counters: IngestionRunCounters

    @property
    def new_record_count(self) -> int:
        return self.counters.new_record_count


class IngestionCoordinator:
    """Runs one ingestion pass against the configured source.

    The known-title snapshot is read once, before the fetch. Runs are not
    mutually excluded unless ``exclusive_runs`` is enabled, so two overlapping
    runs may both insert a title that neither saw in its snapshot.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        repository: SQLiteRepository,
        fetcher: DocumentFetcher,
        template: ExtractionTemplate | None = None,
    ) -> None:
        self.settings = settings
        self.repository = repository
        self.fetcher = fetcher
        self.template = template or settings.source.template

    def run(self) -> IngestionSummary:
        source = self.settings.source
        normalize = self.settings.dedup.normalize_titles
        exclusive = self.settings.ingestion.exclusive_runs
        run_id = self.repository.start_run(
            source=source.name,
            exclusive=exclusive,
            stale_after=timedelta(seconds=self.settings.ingestion.active_run_stale_after_seconds),
        )
        try:
            return self._ingest(run_id=run_id, normalize=normalize)
        finally:
            if exclusive:
                self._release_lock(run_id)

    def _ingest(
        self,
        *,
        run_id: str,
        normalize: bool,
    ) -> IngestionSummary:
        source = self.settings.source
        counters = IngestionRunCounters()
        try:
            known_keys = build_known_keys(self.repository.list_titles(), normalize=normalize)
            document = self.fetcher.fetch(source.url)

            # Whole page is parsed before the first insert.
            candidates = list(
                extract_candidates(
                    document.content,
                    self.template,
                    content_type=document.content_type,
                ),
            )
            counters.candidates_count = len(candidates)
            complete = [candidate for candidate in candidates if candidate.has_required_fields()]
            counters.missing_url_count = len(candidates) - len(complete)

            report = filter_novel(known_keys, complete, normalize=normalize)
            counters.duplicates_count = report.suppressed_count

            inserted_ids = self.repository.insert_articles(report.novel, run_id=run_id)
            counters.new_record_count = len(inserted_ids)
        except Exception as exc:
            kind = exc.code if isinstance(exc, ScraperError) else "unexpected_error"
            logger.error(
                "Ingestion run failed (run_id=%s source=%s kind=%s): %s",
                run_id,
                source.name,
                kind,
                exc,
            )
            self._record_failure(run_id=run_id, counters=counters, kind=kind, summary=str(exc))
            raise

        # Articles are committed at this point; only the run row is at stake.
        try:
            self.repository.finish_run(
                run_id=run_id,
                status=RunStatus.SUCCEEDED,
                counters=counters,
            )
        except PersistenceError:
            logger.exception(
                "Could not record completed ingestion run %s (new=%d articles stored)",
                run_id,
                counters.new_record_count,
            )
        logger.info(
            "Ingestion run completed (run_id=%s source=%s candidates=%d missing_url=%d "
            "duplicates=%d new=%d)",
            run_id,
            source.name,
            counters.candidates_count,
            counters.missing_url_count,
            counters.duplicates_count,
            counters.new_record_count,
        )
        return IngestionSummary(run_id=run_id, status=RunStatus.SUCCEEDED, counters=counters)

    def _record_failure(
        self,
        *,
        run_id: str,
        counters: IngestionRunCounters,
        kind: str,
        summary: str,
    ) -> None:
        counters.new_record_count = 0
        try:
            self.repository.finish_run(
                run_id=run_id,
                status=RunStatus.FAILED,
                counters=counters,
                error_kind=kind,
                error_summary=summary,
            )
        except PersistenceError:
            logger.exception("Could not record failed ingestion run %s", run_id)

    def _release_lock(self, run_id: str) -> None:
        try:
            self.repository.release_lock(run_id)
        except PersistenceError:
            logger.exception("Could not release ingestion lock held by run %s", run_id)


def run_ingestion(
    *,
    settings: Settings,
    repository: SQLiteRepository,
    fetcher: DocumentFetcher,
) -> IngestionSummary:
    """Run one ingestion pass with provided dependencies."""

    return IngestionCoordinator(
        settings=settings,
        repository=repository,
        fetcher=fetcher,
    ).run()
