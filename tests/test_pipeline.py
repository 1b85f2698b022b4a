from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import allure
import pytest

from news_scraper.config import DedupSettings, IngestionSettings, Settings
from news_scraper.errors import FetchError, IngestionLockedError, ParseError, PersistenceError
from news_scraper.http.fetcher import FetchedDocument
from news_scraper.ingestion.models import RunStatus
from news_scraper.ingestion.pipeline import run_ingestion
from news_scraper.storage.repository import SQLiteRepository

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Ingestion Coordinator"),
]


class FailingFetcher:
    def fetch(self, url: str) -> FetchedDocument:
        raise FetchError(message=f"HTTP 503 fetching {url}", url=url, status_code=503)


class HookedFetcher:
    """Calls ``on_fetch`` before returning the page, i.e. after the title snapshot."""

    def __init__(self, content: str, on_fetch: Callable[[], None]) -> None:
        self.content = content
        self.on_fetch = on_fetch

    def fetch(self, url: str) -> FetchedDocument:
        self.on_fetch()
        return FetchedDocument(
            url=url,
            status_code=200,
            content=self.content,
            content_type="text/html",
        )


def _article_count(repository: SQLiteRepository) -> int:
    row = repository._connection.execute("SELECT COUNT(*) AS c FROM articles").fetchone()
    return int(row["c"])


def test_mixed_page_persists_only_new_complete_records(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    page = listing(("A", "/a"), ("B", ""), ("A", "/a2"))

    summary = run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(page),
    )

    assert summary.status is RunStatus.SUCCEEDED
    assert summary.new_record_count == 1
    assert summary.counters.candidates_count == 3
    assert summary.counters.missing_url_count == 1
    assert summary.counters.duplicates_count == 1

    articles = repository.list_articles()
    assert [(a.title, a.article_url, a.saved) for a in articles] == [("A", "/a", False)]
    assert articles[0].note_ids == []


def test_second_run_over_same_page_reports_zero(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    fetcher = static_fetcher(listing(("One", "/1"), ("Two", "/2")))

    first = run_ingestion(settings=settings, repository=repository, fetcher=fetcher)
    second = run_ingestion(settings=settings, repository=repository, fetcher=fetcher)

    assert first.new_record_count == 2
    assert second.new_record_count == 0
    assert second.counters.duplicates_count == 2
    assert _article_count(repository) == 2
    assert fetcher.calls == [settings.source.url, settings.source.url]


def test_every_complete_record_ends_up_stored(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(listing(("Known", "/known"))),
    )

    page = listing(("Known", "/elsewhere"), ("Fresh", "/fresh"), ("No link", None))
    run_ingestion(settings=settings, repository=repository, fetcher=static_fetcher(page))

    titles = set(repository.list_titles())
    assert {"Known", "Fresh"} <= titles
    assert "No link" not in titles


def test_title_set_only_grows_and_save_state_is_untouched(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(listing(("Kept", "/kept"))),
    )
    repository.set_saved(1, True)
    before = set(repository.list_titles())

    run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(listing(("Kept", "/kept"), ("Later", "/later"))),
    )

    assert before < set(repository.list_titles())
    kept = repository.get_article(1)
    assert kept is not None
    assert kept.saved is True


def test_empty_page_succeeds_with_nothing_new(
    repository: SQLiteRepository,
    settings: Settings,
    static_fetcher,
) -> None:
    summary = run_ingestion(settings=settings, repository=repository, fetcher=static_fetcher(""))

    assert summary.status is RunStatus.SUCCEEDED
    assert summary.new_record_count == 0
    assert repository.list_recent_runs()[0].status == "succeeded"


def test_normalized_titles_are_treated_as_duplicates(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(listing(("Storm hits coast", "/storm"))),
    )

    summary = run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=static_fetcher(listing(("  STORM  hits coast", "/storm-2"))),
    )

    assert summary.new_record_count == 0


def test_strict_titles_keep_case_variants(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    strict = replace(settings, dedup=DedupSettings(normalize_titles=False))
    run_ingestion(
        settings=strict,
        repository=repository,
        fetcher=static_fetcher(listing(("Storm hits coast", "/storm"))),
    )

    summary = run_ingestion(
        settings=strict,
        repository=repository,
        fetcher=static_fetcher(listing(("STORM HITS COAST", "/storm-2"))),
    )

    assert summary.new_record_count == 1


def test_fetch_failure_persists_nothing_and_records_failed_run(
    repository: SQLiteRepository,
    settings: Settings,
    caplog,
) -> None:
    caplog.set_level(logging.ERROR, logger="news_scraper.ingestion.pipeline")

    with pytest.raises(FetchError) as exc_info:
        run_ingestion(settings=settings, repository=repository, fetcher=FailingFetcher())

    assert exc_info.value.status_code == 503
    assert _article_count(repository) == 0
    run = repository.list_recent_runs(limit=1)[0]
    assert run.status == "failed"
    assert run.error_kind == "fetch_error"
    assert run.new_record_count == 0
    assert "kind=fetch_error" in caplog.text


@pytest.mark.parametrize(
    ("content", "content_type"),
    [
        ("Service temporarily unavailable", "text/html"),
        ('{"articles": []}', "application/json"),
    ],
)
def test_parse_failure_persists_nothing(
    repository: SQLiteRepository,
    settings: Settings,
    static_fetcher,
    content: str,
    content_type: str,
) -> None:
    with pytest.raises(ParseError):
        run_ingestion(
            settings=settings,
            repository=repository,
            fetcher=static_fetcher(content, content_type=content_type),
        )

    assert _article_count(repository) == 0
    run = repository.list_recent_runs(limit=1)[0]
    assert run.status == "failed"
    assert run.error_kind == "parse_error"


def test_store_failure_rolls_back_the_whole_batch(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
) -> None:
    repository._connection.execute(
        """
        CREATE TRIGGER reject_second_article
        BEFORE INSERT ON articles
        WHEN NEW.title = 'Second'
        BEGIN
            SELECT RAISE(ABORT, 'disk full');
        END
        """,
    )
    repository._connection.commit()

    with pytest.raises(PersistenceError):
        run_ingestion(
            settings=settings,
            repository=repository,
            fetcher=static_fetcher(listing(("First", "/1"), ("Second", "/2"))),
        )

    assert _article_count(repository) == 0
    run = repository.list_recent_runs(limit=1)[0]
    assert run.status == "failed"
    assert run.error_kind == "persistence_error"


def test_overlapping_runs_can_store_the_same_title_twice(
    repository: SQLiteRepository,
    settings: Settings,
    db_path: Path,
    listing,
    static_fetcher,
) -> None:
    page = listing(("Breaking", "/breaking"))

    def overlapping_run() -> None:
        other = SQLiteRepository(db_path)
        try:
            run_ingestion(settings=settings, repository=other, fetcher=static_fetcher(page))
        finally:
            other.close()

    summary = run_ingestion(
        settings=settings,
        repository=repository,
        fetcher=HookedFetcher(page, on_fetch=overlapping_run),
    )

    assert summary.new_record_count == 1
    assert repository.list_titles() == ["Breaking", "Breaking"]


def test_exclusive_runs_reject_overlap(
    repository: SQLiteRepository,
    settings: Settings,
    db_path: Path,
    listing,
    static_fetcher,
) -> None:
    exclusive = replace(settings, ingestion=IngestionSettings(exclusive_runs=True))
    page = listing(("Breaking", "/breaking"))
    rejected: list[IngestionLockedError] = []

    def overlapping_run() -> None:
        other = SQLiteRepository(db_path)
        try:
            run_ingestion(settings=exclusive, repository=other, fetcher=static_fetcher(page))
        except IngestionLockedError as error:
            rejected.append(error)
        finally:
            other.close()

    first = run_ingestion(
        settings=exclusive,
        repository=repository,
        fetcher=HookedFetcher(page, on_fetch=overlapping_run),
    )

    assert len(rejected) == 1
    assert rejected[0].run_id == first.run_id
    assert repository.list_titles() == ["Breaking"]

    after = run_ingestion(settings=exclusive, repository=repository, fetcher=static_fetcher(page))
    assert after.new_record_count == 0


def test_unrecorded_success_keeps_count_and_frees_lock(
    repository: SQLiteRepository,
    settings: Settings,
    listing,
    static_fetcher,
    caplog,
) -> None:
    exclusive = replace(settings, ingestion=IngestionSettings(exclusive_runs=True))
    repository._connection.execute(
        """
        CREATE TRIGGER reject_run_success
        BEFORE UPDATE ON ingestion_runs
        WHEN NEW.status = 'succeeded'
        BEGIN
            SELECT RAISE(ABORT, 'disk full');
        END
        """,
    )
    repository._connection.commit()
    page = listing(("A", "/a"))

    first = run_ingestion(settings=exclusive, repository=repository, fetcher=static_fetcher(page))

    assert first.status is RunStatus.SUCCEEDED
    assert first.new_record_count == 1
    assert repository.list_titles() == ["A"]
    assert "Could not record completed ingestion run" in caplog.text
    locks = repository._connection.execute("SELECT COUNT(*) AS c FROM ingestion_locks").fetchone()
    assert int(locks["c"]) == 0

    second = run_ingestion(settings=exclusive, repository=repository, fetcher=static_fetcher(page))
    assert second.new_record_count == 0


def test_failed_run_frees_lock_even_when_failure_is_not_recorded(
    repository: SQLiteRepository,
    settings: Settings,
) -> None:
    exclusive = replace(settings, ingestion=IngestionSettings(exclusive_runs=True))
    repository._connection.execute(
        """
        CREATE TRIGGER reject_run_updates
        BEFORE UPDATE ON ingestion_runs
        BEGIN
            SELECT RAISE(ABORT, 'disk full');
        END
        """,
    )
    repository._connection.commit()

    with pytest.raises(FetchError):
        run_ingestion(settings=exclusive, repository=repository, fetcher=FailingFetcher())

    locks = repository._connection.execute("SELECT COUNT(*) AS c FROM ingestion_locks").fetchone()
    assert int(locks["c"]) == 0
