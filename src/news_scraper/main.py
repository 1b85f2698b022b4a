"""CLI entrypoint for news-scraper."""

from collections.abc import Callable
from pathlib import Path

import rich_click as click

from news_scraper import __version__
from news_scraper.config import LOG_LEVELS, configure_logging
from news_scraper.errors import ScraperError
from news_scraper.ingestion.controllers import (
    IngestionCliController,
    IngestionStatsCommand,
    ScrapeCommand,
)
from news_scraper.notes.controllers import (
    ArticleSaveCommand,
    ArticlesListCommand,
    NoteAddCommand,
    NoteDeleteCommand,
    NotesCliController,
    NotesListCommand,
)

click.rich_click.USE_MARKDOWN = True
INGESTION_CONTROLLER = IngestionCliController()
NOTES_CONTROLLER = NotesCliController()

DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="news-scraper")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    envvar="NEWS_SCRAPER_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    help="Log level for diagnostics written to stderr.",
)
def news_scraper(log_level: str) -> None:
    """News listing scraper with saved articles and notes."""

    configure_logging(log_level)


@news_scraper.command("scrape")
@DB_PATH_OPTION
@click.option("--source-url", default=None, help="Override the listing page URL.")
def scrape(db_path: Path | None, source_url: str | None) -> None:
    """Fetch the listing page and store articles not seen before."""

    _emit_or_fail(
        lambda: INGESTION_CONTROLLER.scrape(ScrapeCommand(db_path=db_path, source_url=source_url)),
        failure_prefix="Scrape failed: new=0 ",
    )


@news_scraper.command("stats")
@DB_PATH_OPTION
@click.option(
    "--hours",
    type=click.IntRange(min=1),
    default=24,
    show_default=True,
    help="Time window for aggregation.",
)
@click.option(
    "--recent-runs",
    type=click.IntRange(min=1, max=50),
    default=5,
    show_default=True,
    help="How many latest runs to display.",
)
def stats(db_path: Path | None, hours: int, recent_runs: int) -> None:
    """Show ingestion run statistics for a time window."""

    _emit_or_fail(
        lambda: INGESTION_CONTROLLER.stats(
            IngestionStatsCommand(db_path=db_path, hours=hours, recent_runs=recent_runs),
        ),
    )


@news_scraper.group()
def articles() -> None:
    """Stored article commands."""


@articles.command("list")
@DB_PATH_OPTION
@click.option(
    "--saved/--unsaved",
    default=False,
    show_default=True,
    help="List saved articles instead of the unsaved feed.",
)
def articles_list(db_path: Path | None, saved: bool) -> None:
    """List stored articles in ingestion order."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.list_articles(ArticlesListCommand(db_path=db_path, saved=saved)),
    )


@articles.command("save")
@DB_PATH_OPTION
@click.argument("article_id", type=int)
def articles_save(db_path: Path | None, article_id: int) -> None:
    """Mark an article as saved."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.set_saved(
            ArticleSaveCommand(db_path=db_path, article_id=article_id, saved=True),
        ),
    )


@articles.command("unsave")
@DB_PATH_OPTION
@click.argument("article_id", type=int)
def articles_unsave(db_path: Path | None, article_id: int) -> None:
    """Return a saved article to the unsaved feed."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.set_saved(
            ArticleSaveCommand(db_path=db_path, article_id=article_id, saved=False),
        ),
    )


@news_scraper.group()
def notes() -> None:
    """Article note commands."""


@notes.command("list")
@DB_PATH_OPTION
@click.argument("article_id", type=int)
def notes_list(db_path: Path | None, article_id: int) -> None:
    """List notes attached to an article."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.list_notes(
            NotesListCommand(db_path=db_path, article_id=article_id),
        ),
    )


@notes.command("add")
@DB_PATH_OPTION
@click.argument("article_id", type=int)
@click.argument("body")
def notes_add(db_path: Path | None, article_id: int, body: str) -> None:
    """Attach a note to an article."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.add_note(
            NoteAddCommand(db_path=db_path, article_id=article_id, body=body),
        ),
    )


@notes.command("delete")
@DB_PATH_OPTION
@click.argument("note_id", type=int)
def notes_delete(db_path: Path | None, note_id: int) -> None:
    """Delete a note."""

    _emit_or_fail(
        lambda: NOTES_CONTROLLER.delete_note(NoteDeleteCommand(db_path=db_path, note_id=note_id)),
    )


def _emit_or_fail(produce: Callable[[], list[str]], *, failure_prefix: str = "") -> None:
    try:
        lines = produce()
    except ScraperError as error:
        raise click.ClickException(f"{failure_prefix}kind={error.code} error={error}") from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    news_scraper()
