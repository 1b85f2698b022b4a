"""Domain models for ingestion, storage, and note stages."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum


class RunStatus(str, Enum):
    """Lifecycle states for ingestion runs."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class CandidateRecord:
    """Article fields read from one listing item, before validation and dedup."""

    article_url: str = ""
    title: str = ""
    synopsis: str = ""
    image_url: str = ""
    authors: str = ""

    def has_required_fields(self) -> bool:
        return bool(self.article_url.strip())


CANDIDATE_FIELDS = frozenset(item.name for item in fields(CandidateRecord))


@dataclass(slots=True)
class IngestionRunCounters:
    """Counters tracked for ingestion run statistics."""

    candidates_count: int = 0
    missing_url_count: int = 0
    duplicates_count: int = 0
    new_record_count: int = 0


@dataclass(slots=True)
class IngestionWindowStats:
    """Aggregated ingestion counters for a time window."""

    runs_count: int = 0
    succeeded_runs_count: int = 0
    failed_runs_count: int = 0
    other_runs_count: int = 0
    candidates_count: int = 0
    missing_url_count: int = 0
    duplicates_count: int = 0
    new_record_count: int = 0
    failures_by_kind: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class IngestionRunView:
    """Compact run view for CLI reporting."""

    run_id: str
    source: str
    status: str
    started_at: datetime
    finished_at: datetime | None
    candidates_count: int
    missing_url_count: int
    duplicates_count: int
    new_record_count: int
    error_kind: str | None
    error_summary: str | None


@dataclass(slots=True)
class ArticleView:
    """Stored article with its ordered note references."""

    article_id: int
    article_url: str
    title: str
    synopsis: str
    image_url: str
    authors: str
    saved: bool
    ingested_at: datetime
    note_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class NoteView:
    """Stored note."""

    note_id: int
    body: str
    created_at: datetime
