"""Article/note relationship rules on top of the store."""

from __future__ import annotations

import logging
import threading
import weakref

from news_scraper.errors import NotFoundError, PersistenceError, ValidationError
from news_scraper.ingestion.models import NoteView
from news_scraper.storage.repository import SQLiteRepository

logger = logging.getLogger(__name__)


class NoteRelationshipManager:
    """Validates note input and keeps article note references in step with notes.

    Note deletion never rewrites the article: ``list_notes`` drops references
    whose note no longer exists.
    """

    def __init__(self, repository: SQLiteRepository) -> None:
        self.repository = repository
        self._article_locks: weakref.WeakValueDictionary[int, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def add_note(self, article_id: int, body: str) -> NoteView:
        text = (body or "").strip()
        if not text:
            raise ValidationError(message="Note body must not be empty.")

        with self._lock_for(article_id):
            self._require_article(article_id)
            note = self.repository.create_note(text)
            try:
                self.repository.append_note_ref(article_id=article_id, note_id=note.note_id)
            except PersistenceError as error:
                self._discard_orphan(note.note_id)
                raise PersistenceError(
                    message=(
                        f"Note {note.note_id} was created but could not be attached "
                        f"to article {article_id}: {error}"
                    ),
                ) from error
        logger.debug("Attached note %s to article %s", note.note_id, article_id)
        return note

    def list_notes(self, article_id: int) -> list[NoteView]:
        article = self.repository.get_article(article_id)
        if article is None:
            raise NotFoundError(
                message=f"Article not found: {article_id}",
                entity="article",
                entity_id=article_id,
            )
        notes = self.repository.get_notes(article.note_ids)
        return [notes[note_id] for note_id in article.note_ids if note_id in notes]

    def remove_note(self, note_id: int) -> bool:
        deleted = self.repository.delete_note(note_id)
        if not deleted:
            logger.info("Note %s already removed", note_id)
        return deleted

    def set_saved(self, article_id: int, saved: bool) -> None:
        if not self.repository.set_saved(article_id, saved):
            raise NotFoundError(
                message=f"Article not found: {article_id}",
                entity="article",
                entity_id=article_id,
            )

    def _require_article(self, article_id: int) -> None:
        if not self.repository.article_exists(article_id):
            raise NotFoundError(
                message=f"Article not found: {article_id}",
                entity="article",
                entity_id=article_id,
            )

    def _discard_orphan(self, note_id: int) -> None:
        try:
            self.repository.delete_note(note_id)
        except PersistenceError:
            logger.warning("Orphaned note %s left in store after failed attach", note_id)

    def _lock_for(self, article_id: int) -> threading.Lock:
        # Entries vanish once no caller holds the lock.
        with self._locks_guard:
            lock = self._article_locks.get(article_id)
            if lock is None:
                lock = threading.Lock()
                self._article_locks[article_id] = lock
            return lock
