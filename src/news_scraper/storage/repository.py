"""SQLModel-backed store for articles, notes and ingestion runs."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, delete, select

from news_scraper.errors import IngestionLockedError, PersistenceError
from news_scraper.ingestion.models import (
    ArticleView,
    CandidateRecord,
    IngestionRunCounters,
    IngestionRunView,
    IngestionWindowStats,
    NoteView,
    RunStatus,
)
from news_scraper.storage.alembic_runner import upgrade_head
from news_scraper.storage.common import (
    build_sqlite_engine,
    connect_sqlite_with_policy,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from news_scraper.storage.sqlmodel_models import (
    Article,
    ArticleNote,
    IngestionLock,
    IngestionRun,
    Note,
)

logger = logging.getLogger(__name__)
DEFAULT_ACTIVE_RUN_STALE_AFTER = timedelta(minutes=30)


class SQLiteRepository:
    """Facade that persists articles, notes and run accounting using SQLModel and Alembic.

    Every SQLAlchemy failure leaves the store as ``PersistenceError``.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path)

        # Keep low-level connection for tests and ad-hoc debugging queries.
        self._connection = connect_sqlite_with_policy(db_path=db_path)

    def close(self) -> None:
        self._connection.close()
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    # Articles

    def list_titles(self) -> list[str]:
        with self._session("title read") as session:
            return list(session.exec(select(Article.title)).all())

    def insert_articles(self, records: Iterable[CandidateRecord], *, run_id: str) -> list[int]:
        """Insert all records in one transaction; nothing is kept if any insert fails."""

        with self._session("article batch insert") as session:
            now = utc_now()
            rows = [
                Article(
                    article_url=record.article_url,
                    title=record.title,
                    synopsis=record.synopsis,
                    image_url=record.image_url,
                    authors=record.authors,
                    saved=False,
                    ingested_at=now,
                    run_id=run_id,
                )
                for record in records
            ]
            if not rows:
                return []
            session.add_all(rows)
            session.flush()
            article_ids = [int(row.article_id) for row in rows if row.article_id is not None]
            session.commit()
            return article_ids

    def list_articles(self, *, saved: bool | None = None) -> list[ArticleView]:
        with self._session("article read") as session:
            statement = select(Article).order_by(col(Article.article_id))
            if saved is not None:
                statement = statement.where(Article.saved == saved)
            rows = session.exec(statement).all()
            refs = self._note_refs_by_article(
                session,
                article_ids=[int(row.article_id) for row in rows if row.article_id is not None],
            )
            return [_article_view(row, refs.get(int(row.article_id or 0), [])) for row in rows]

    def get_article(self, article_id: int) -> ArticleView | None:
        with self._session("article read") as session:
            row = session.get(Article, article_id)
            if row is None:
                return None
            refs = self._note_refs_by_article(session, article_ids=[article_id])
            return _article_view(row, refs.get(article_id, []))

    def article_exists(self, article_id: int) -> bool:
        with self._session("article read") as session:
            return session.get(Article, article_id) is not None

    def set_saved(self, article_id: int, saved: bool) -> bool:
        """Set the saved flag; returns False when the article does not exist."""

        with self._session("article update") as session:
            row = session.get(Article, article_id)
            if row is None:
                return False
            if row.saved != saved:
                row.saved = saved
                session.add(row)
                session.commit()
            return True

    # Notes

    def create_note(self, body: str) -> NoteView:
        with self._session("note insert") as session:
            row = Note(body=body, created_at=utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _note_view(row)

    def append_note_ref(self, *, article_id: int, note_id: int) -> None:
        with self._session("note reference append") as session:
            session.add(ArticleNote(article_id=article_id, note_id=note_id, created_at=utc_now()))
            session.commit()

    def list_note_refs(self, article_id: int) -> list[int]:
        with self._session("note reference read") as session:
            return self._note_refs_by_article(session, article_ids=[article_id]).get(
                article_id,
                [],
            )

    def get_notes(self, note_ids: Iterable[int]) -> dict[int, NoteView]:
        wanted = list(dict.fromkeys(note_ids))
        if not wanted:
            return {}
        with self._session("note read") as session:
            rows = session.exec(select(Note).where(col(Note.note_id).in_(wanted))).all()
            return {int(row.note_id): _note_view(row) for row in rows if row.note_id is not None}

    def delete_note(self, note_id: int) -> bool:
        """Delete the note row only; article references to it are left in place."""

        with self._session("note delete") as session:
            row = session.get(Note, note_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    # Ingestion runs

    def start_run(
        self,
        source: str,
        *,
        exclusive: bool = False,
        stale_after: timedelta = DEFAULT_ACTIVE_RUN_STALE_AFTER,
    ) -> str:
        if stale_after.total_seconds() <= 0:
            raise ValueError("stale_after must be > 0")

        run_id = str(uuid4())
        if exclusive:
            self._acquire_lock(source=source, run_id=run_id, stale_after=stale_after)

        try:
            with self._session("run start") as session:
                session.add(
                    IngestionRun(
                        run_id=run_id,
                        source=source,
                        status=RunStatus.RUNNING.value,
                        started_at=utc_now(),
                    ),
                )
                session.commit()
        except PersistenceError:
            if exclusive:
                self.release_lock(run_id)
            raise
        return run_id

    def release_lock(self, run_id: str) -> None:
        """Drop the source lock held by ``run_id``; no-op when it holds none."""

        with self._session("lock release") as session:
            session.exec(delete(IngestionLock).where(col(IngestionLock.run_id) == run_id))
            session.commit()

    def finish_run(
        self,
        run_id: str,
        status: RunStatus,
        counters: IngestionRunCounters,
        *,
        error_kind: str | None = None,
        error_summary: str | None = None,
    ) -> None:
        with self._session("run finish") as session:
            run = session.get(IngestionRun, run_id)
            if run is None:
                raise RuntimeError(f"Run not found: {run_id}")

            run.status = status.value
            run.finished_at = utc_now()
            run.candidates_count = counters.candidates_count
            run.missing_url_count = counters.missing_url_count
            run.duplicates_count = counters.duplicates_count
            run.new_record_count = counters.new_record_count
            run.error_kind = error_kind
            run.error_summary = error_summary
            session.add(run)
            session.exec(delete(IngestionLock).where(col(IngestionLock.run_id) == run_id))
            session.commit()

    def list_recent_runs(
        self,
        *,
        limit: int = 5,
        source: str | None = None,
    ) -> list[IngestionRunView]:
        with self._session("run read") as session:
            statement = select(IngestionRun)
            if source is not None:
                statement = statement.where(IngestionRun.source == source)
            rows = session.exec(
                statement.order_by(col(IngestionRun.started_at).desc()).limit(limit),
            ).all()
            return [_run_view(row) for row in rows]

    def summarize_runs(
        self,
        *,
        since: datetime,
        until: datetime,
        source: str | None = None,
    ) -> IngestionWindowStats:
        with self._session("run read") as session:
            statement = select(IngestionRun).where(
                IngestionRun.started_at >= to_db_datetime(since),
                IngestionRun.started_at < to_db_datetime(until),
            )
            if source is not None:
                statement = statement.where(IngestionRun.source == source)
            rows = session.exec(statement).all()

        summary = IngestionWindowStats()
        for row in rows:
            summary.runs_count += 1
            summary.candidates_count += row.candidates_count
            summary.missing_url_count += row.missing_url_count
            summary.duplicates_count += row.duplicates_count
            summary.new_record_count += row.new_record_count

            if row.status == RunStatus.SUCCEEDED.value:
                summary.succeeded_runs_count += 1
            elif row.status == RunStatus.FAILED.value:
                summary.failed_runs_count += 1
                kind = row.error_kind or "unknown"
                summary.failures_by_kind[kind] = summary.failures_by_kind.get(kind, 0) + 1
            else:
                summary.other_runs_count += 1
        return summary

    def _acquire_lock(self, *, source: str, run_id: str, stale_after: timedelta) -> None:
        while True:
            with self._session("lock acquire") as session:
                session.add(IngestionLock(source=source, run_id=run_id, acquired_at=utc_now()))
                try:
                    session.commit()
                    return
                except IntegrityError:
                    session.rollback()

                holder = session.get(IngestionLock, source)
                if holder is None:
                    continue
                acquired_at = to_utc_aware_datetime(holder.acquired_at)
                if utc_now() - acquired_at <= stale_after:
                    raise IngestionLockedError(
                        message=(
                            "Another ingestion run is already active for this source "
                            f"(source={source}, run_id={holder.run_id}, "
                            f"acquired_at={acquired_at.isoformat()})."
                        ),
                        run_id=holder.run_id,
                    )

                stale_run = session.get(IngestionRun, holder.run_id)
                if stale_run is not None and stale_run.status == RunStatus.RUNNING.value:
                    stale_run.status = RunStatus.FAILED.value
                    stale_run.finished_at = utc_now()
                    stale_run.error_summary = "Auto-recovered stale lock after crash/interruption."
                    session.add(stale_run)
                session.delete(holder)
                session.commit()
                logger.warning(
                    "Recovered stale ingestion lock (source=%s stale_run_id=%s acquired_at=%s).",
                    source,
                    holder.run_id,
                    acquired_at.isoformat(),
                )

    @staticmethod
    def _note_refs_by_article(
        session: Session,
        *,
        article_ids: list[int],
    ) -> dict[int, list[int]]:
        if not article_ids:
            return {}
        rows = session.exec(
            select(ArticleNote)
            .where(col(ArticleNote.article_id).in_(article_ids))
            .order_by(col(ArticleNote.position)),
        ).all()
        refs: dict[int, list[int]] = defaultdict(list)
        for row in rows:
            refs[row.article_id].append(row.note_id)
        return dict(refs)

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        with Session(self.engine) as session:
            try:
                yield session
            except SQLAlchemyError as error:
                session.rollback()
                logger.error("Store %s failed: %s", action, error)
                raise PersistenceError(message=f"Store {action} failed: {error}") from error


def _article_view(row: Article, note_ids: list[int]) -> ArticleView:
    return ArticleView(
        article_id=int(row.article_id or 0),
        article_url=row.article_url,
        title=row.title,
        synopsis=row.synopsis,
        image_url=row.image_url,
        authors=row.authors,
        saved=row.saved,
        ingested_at=to_utc_aware_datetime(row.ingested_at),
        note_ids=list(note_ids),
    )


def _note_view(row: Note) -> NoteView:
    return NoteView(
        note_id=int(row.note_id or 0),
        body=row.body,
        created_at=to_utc_aware_datetime(row.created_at),
    )


def _run_view(row: IngestionRun) -> IngestionRunView:
    return IngestionRunView(
        run_id=row.run_id,
        source=row.source,
        status=row.status,
        started_at=to_utc_aware_datetime(row.started_at),
        finished_at=(
            to_utc_aware_datetime(row.finished_at) if row.finished_at is not None else None
        ),
        candidates_count=row.candidates_count,
        missing_url_count=row.missing_url_count,
        duplicates_count=row.duplicates_count,
        new_record_count=row.new_record_count,
        error_kind=row.error_kind,
        error_summary=row.error_summary,
    )
