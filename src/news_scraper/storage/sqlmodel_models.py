"""SQLModel ORM tables for the article/note store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text
from sqlmodel import Field, SQLModel


class IngestionRun(SQLModel, table=True):
    __tablename__ = "ingestion_runs"  # type: ignore[bad-override]

    run_id: str = Field(primary_key=True)
    source: str = Field(index=True)
    status: str = Field(index=True)
    started_at: datetime = Field(
        sa_column=Column(DateTime(timezone=True), index=True, nullable=False),
    )
    finished_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    candidates_count: int = 0
    missing_url_count: int = 0
    duplicates_count: int = 0
    new_record_count: int = 0
    error_kind: str | None = None
    error_summary: str | None = Field(default=None, sa_column=Column(Text))


class IngestionLock(SQLModel, table=True):
    __tablename__ = "ingestion_locks"  # type: ignore[bad-override]

    source: str = Field(primary_key=True)
    run_id: str
    acquired_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Article(SQLModel, table=True):
    __tablename__ = "articles"  # type: ignore[bad-override]

    article_id: int | None = Field(default=None, primary_key=True)
    article_url: str = Field(sa_column=Column(Text, nullable=False))
    title: str = Field(sa_column=Column(Text, nullable=False, index=True))
    synopsis: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    image_url: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    authors: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    saved: bool = Field(default=False, index=True)
    ingested_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    run_id: str | None = Field(default=None, foreign_key="ingestion_runs.run_id", index=True)


class Note(SQLModel, table=True):
    __tablename__ = "notes"  # type: ignore[bad-override]

    note_id: int | None = Field(default=None, primary_key=True)
    body: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ArticleNote(SQLModel, table=True):
    """Ordered note reference held by an article.

    ``note_id`` has no foreign key: deleting a note leaves the reference in
    place and readers resolve it as already removed.
    """

    __tablename__ = "article_notes"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_article_notes_article_position", "article_id", "position"),)

    position: int | None = Field(default=None, primary_key=True)
    article_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("articles.article_id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    note_id: int = Field(sa_column=Column(Integer, nullable=False, index=True))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
