"""Error taxonomy shared by ingestion, storage and note operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ScraperError(Exception):
    """Base error carrying a stable machine-readable code."""

    message: str
    code: str = "scraper_error"

    def __str__(self) -> str:
        return self.message


@dataclass
class IngestionError(ScraperError):
    """Ingestion run failed before anything was persisted."""

    code: str = "ingestion_error"


@dataclass
class FetchError(IngestionError):
    """Transport failure, timeout or non-success response from the source."""

    code: str = "fetch_error"
    url: str | None = None
    status_code: int | None = None


@dataclass
class ParseError(IngestionError):
    """Fetched content could not be read as markup under the template."""

    code: str = "parse_error"


@dataclass
class IngestionLockedError(IngestionError):
    """Another exclusive ingestion run holds the source lock."""

    code: str = "ingestion_locked"
    run_id: str | None = None


@dataclass
class ValidationError(ScraperError):
    """Input rejected before it reached the store."""

    code: str = "validation_error"


@dataclass
class NotFoundError(ScraperError):
    """Referenced article or note does not exist."""

    code: str = "not_found"
    entity: str | None = None
    entity_id: int | None = None


@dataclass
class PersistenceError(ScraperError):
    """Store read or write failed."""

    code: str = "persistence_error"
