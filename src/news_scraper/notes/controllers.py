"""Controllers for article and note CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from news_scraper.config import Settings
from news_scraper.ingestion.models import ArticleView
from news_scraper.service import open_service


@dataclass(slots=True)
class ArticlesListCommand:
    """CLI inputs for article listing."""

    db_path: Path | None
    saved: bool


@dataclass(slots=True)
class ArticleSaveCommand:
    """CLI inputs for save/unsave."""

    db_path: Path | None
    article_id: int
    saved: bool


@dataclass(slots=True)
class NotesListCommand:
    db_path: Path | None
    article_id: int


@dataclass(slots=True)
class NoteAddCommand:
    db_path: Path | None
    article_id: int
    body: str


@dataclass(slots=True)
class NoteDeleteCommand:
    db_path: Path | None
    note_id: int


class NotesCliController:
    """Coordinates article and note command execution."""

    def list_articles(self, command: ArticlesListCommand) -> list[str]:
        with open_service(Settings.from_env(db_path=command.db_path)) as service:
            articles = service.list_articles(saved=command.saved)

        label = "Saved articles" if command.saved else "Articles"
        lines = [f"{label}: {len(articles)}"]
        for article in articles:
            lines.extend(_article_lines(article))
        return lines

    def set_saved(self, command: ArticleSaveCommand) -> list[str]:
        with open_service(Settings.from_env(db_path=command.db_path)) as service:
            service.set_saved(command.article_id, command.saved)

        state = "saved" if command.saved else "unsaved"
        return [f"Article {command.article_id} {state}."]

    def list_notes(self, command: NotesListCommand) -> list[str]:
        with open_service(Settings.from_env(db_path=command.db_path)) as service:
            notes = service.list_notes(command.article_id)

        if not notes:
            return [f"No notes for article {command.article_id} yet."]
        lines = [f"Notes for article {command.article_id}: {len(notes)}"]
        lines.extend(f"  [{note.note_id}] {note.body}" for note in notes)
        return lines

    def add_note(self, command: NoteAddCommand) -> list[str]:
        with open_service(Settings.from_env(db_path=command.db_path)) as service:
            note = service.add_note(command.article_id, command.body)
        return [f"Note {note.note_id} added to article {command.article_id}."]

    def delete_note(self, command: NoteDeleteCommand) -> list[str]:
        with open_service(Settings.from_env(db_path=command.db_path)) as service:
            service.remove_note(command.note_id)
        return [f"Note {command.note_id} deleted."]


def _article_lines(article: ArticleView) -> list[str]:
    lines = [f"  [{article.article_id}] {article.title or '(untitled)'}"]
    lines.append(f"    url={article.article_url}")
    if article.authors:
        lines.append(f"    {article.authors}")
    if article.synopsis:
        lines.append(f"    {article.synopsis}")
    if article.note_ids:
        lines.append(f"    note_refs={len(article.note_ids)}")
    return lines
