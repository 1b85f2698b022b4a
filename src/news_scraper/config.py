"""Runtime configuration for the scraper, store and ingestion runs."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from news_scraper.ingestion.extractor import NYT_US_TEMPLATE, ExtractionTemplate

DEFAULT_SOURCE_URL = "https://www.nytimes.com/section/us"
DEFAULT_SOURCE_NAME = "nytimes-us"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class SourceSettings:
    """Remote listing page and the template used to read it."""

    url: str = DEFAULT_SOURCE_URL
    name: str = DEFAULT_SOURCE_NAME
    template: ExtractionTemplate = field(default_factory=lambda: NYT_US_TEMPLATE)
    request_timeout_seconds: float = 30.0
    max_retries: int = 3


@dataclass(slots=True)
class DedupSettings:
    """Title deduplication settings."""

    normalize_titles: bool = True


@dataclass(slots=True)
class IngestionSettings:
    """Ingestion run settings."""

    exclusive_runs: bool = False
    active_run_stale_after_seconds: int = 1_800


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".news_scraper.db")
    source: SourceSettings = field(default_factory=SourceSettings)
    dedup: DedupSettings = field(default_factory=DedupSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, db_path: Path | None = None, source_url: str | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("NEWS_SCRAPER_DB_PATH", ".news_scraper.db")),
            source=SourceSettings(
                url=(
                    source_url or os.getenv("NEWS_SCRAPER_SOURCE_URL", DEFAULT_SOURCE_URL)
                ).strip(),
                name=os.getenv("NEWS_SCRAPER_SOURCE_NAME", DEFAULT_SOURCE_NAME).strip(),
                request_timeout_seconds=_env_float(
                    "NEWS_SCRAPER_REQUEST_TIMEOUT_SECONDS",
                    default=30.0,
                ),
                max_retries=_env_int("NEWS_SCRAPER_MAX_RETRIES", default=3),
            ),
            dedup=DedupSettings(
                normalize_titles=_env_bool("NEWS_SCRAPER_DEDUP_NORMALIZE_TITLES", default=True),
            ),
            ingestion=IngestionSettings(
                exclusive_runs=_env_bool("NEWS_SCRAPER_EXCLUSIVE_RUNS", default=False),
                active_run_stale_after_seconds=_env_int(
                    "NEWS_SCRAPER_ACTIVE_RUN_STALE_AFTER_SECONDS",
                    default=1_800,
                ),
            ),
            log_level=os.getenv("NEWS_SCRAPER_LOG_LEVEL", "WARNING").strip().upper(),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        parsed = urlparse(self.source.url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                "Invalid NEWS_SCRAPER_SOURCE_URL: "
                f"{self.source.url!r}. Expected an absolute URL with http:// or https:// scheme.",
            )
        if not self.source.name:
            raise ValueError("NEWS_SCRAPER_SOURCE_NAME must not be empty.")
        if self.source.request_timeout_seconds <= 0:
            raise ValueError("NEWS_SCRAPER_REQUEST_TIMEOUT_SECONDS must be > 0.")
        if self.source.max_retries < 0:
            raise ValueError("NEWS_SCRAPER_MAX_RETRIES must be >= 0.")
        if self.ingestion.active_run_stale_after_seconds <= 0:
            raise ValueError("NEWS_SCRAPER_ACTIVE_RUN_STALE_AFTER_SECONDS must be > 0.")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid NEWS_SCRAPER_LOG_LEVEL: {self.log_level!r}. "
                f"Expected one of {', '.join(LOG_LEVELS)}.",
            )


def configure_logging(level: str) -> None:
    """Send package log records to stderr at the requested level."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
