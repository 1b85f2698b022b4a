"""Controllers for ingestion CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

from news_scraper.config import Settings
from news_scraper.service import open_service


@dataclass(slots=True)
class ScrapeCommand:
    """CLI inputs for one ingestion run."""

    db_path: Path | None
    source_url: str | None = None


@dataclass(slots=True)
class IngestionStatsCommand:
    """CLI inputs for stats command."""

    db_path: Path | None
    hours: int
    recent_runs: int


class IngestionCliController:
    """Coordinates ingestion command execution."""

    def scrape(self, command: ScrapeCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path, source_url=command.source_url)
        settings.validate()
        with open_service(settings) as service:
            summary = service.run_ingestion()

        counters = summary.counters
        return [
            "Scrape completed: "
            f"run_id={summary.run_id} status={summary.status.value} "
            f"new={counters.new_record_count} "
            f"candidates={counters.candidates_count} "
            f"missing_url={counters.missing_url_count} "
            f"duplicates={counters.duplicates_count}",
            f"Retrieved {counters.new_record_count} new articles!",
        ]

    def stats(self, command: IngestionStatsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        until = datetime.now(tz=UTC)
        since = until - timedelta(hours=command.hours)
        with open_service(settings) as service:
            summary = service.repository.summarize_runs(since=since, until=until)
            recent = service.repository.list_recent_runs(limit=command.recent_runs)

        lines = [
            f"Window: {since.isoformat()} .. {until.isoformat()} (last {command.hours}h)",
            "Runs: "
            f"{summary.runs_count} "
            f"(succeeded={summary.succeeded_runs_count}, "
            f"failed={summary.failed_runs_count}, "
            f"other={summary.other_runs_count})",
            "Articles: "
            f"new={summary.new_record_count} "
            f"candidates={summary.candidates_count} "
            f"missing_url={summary.missing_url_count} "
            f"duplicates={summary.duplicates_count}",
        ]
        if summary.failures_by_kind:
            failures = " ".join(
                f"{kind}={count}" for kind, count in sorted(summary.failures_by_kind.items())
            )
            lines.append(f"Failures: {failures}")

        if not recent:
            return lines

        lines.append("Recent runs:")
        for run in recent:
            finished_at = run.finished_at.isoformat() if run.finished_at is not None else "-"
            lines.append(
                f"  {run.run_id} source={run.source} status={run.status} "
                f"started={run.started_at.isoformat()} finished={finished_at} "
                f"new={run.new_record_count} candidates={run.candidates_count} "
                f"missing_url={run.missing_url_count} duplicates={run.duplicates_count} "
                f"error={run.error_kind or '-'}",
            )
        return lines
