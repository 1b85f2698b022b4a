"""Selector-template extraction of candidate articles from a listing page."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import soupsieve
from bs4 import BeautifulSoup, Tag
from bs4.builder import ParserRejectedMarkup

from news_scraper.errors import ParseError
from news_scraper.ingestion.models import CANDIDATE_FIELDS, CandidateRecord

logger = logging.getLogger(__name__)

MARKUP_CONTENT_TYPES = frozenset(
    {
        "text/html",
        "application/xhtml+xml",
        "application/xml",
        "text/xml",
    },
)


@dataclass(slots=True, frozen=True)
class FieldRule:
    """Where one field lives inside an item.

    Text rules join the text of every match; attribute rules read the first match.
    """

    selector: str
    attribute: str | None = None


@dataclass(slots=True, frozen=True)
class ExtractionTemplate:
    """Container selector plus per-field rules relative to each container match."""

    container: str
    fields: Mapping[str, FieldRule]

    def validate(self) -> None:
        """Raise ``ParseError`` when field names or selectors are unusable."""

        unknown = sorted(set(self.fields) - CANDIDATE_FIELDS)
        if unknown:
            raise ParseError(message=f"Template has unknown fields: {', '.join(unknown)}")
        if "article_url" not in self.fields:
            raise ParseError(message="Template must define an article_url rule")

        selectors = [self.container, *(rule.selector for rule in self.fields.values())]
        for selector in selectors:
            try:
                soupsieve.compile(selector)
            except soupsieve.SelectorSyntaxError as error:
                raise ParseError(message=f"Invalid selector {selector!r}: {error}") from error


NYT_US_TEMPLATE = ExtractionTemplate(
    container="#latest-panel article.story.theme-summary",
    fields=MappingProxyType(
        {
            "article_url": FieldRule(".story-body>.story-link", attribute="href"),
            "title": FieldRule("h2.headline"),
            "synopsis": FieldRule("p.summary"),
            "image_url": FieldRule("img", attribute="src"),
            "authors": FieldRule("p.byline"),
        },
    ),
)


def extract_candidates(
    document: str,
    template: ExtractionTemplate,
    *,
    content_type: str | None = None,
) -> Iterator[CandidateRecord]:
    """Parse ``document`` now and yield one candidate per container match, in order.

    A blank document, or one where the container matches nothing, gives an
    empty sequence. Content that is not markup at all raises ``ParseError``.
    """

    template.validate()
    _check_content_type(content_type)
    if not document or not document.strip():
        return iter(())

    soup = _parse(document)
    items = soup.select(template.container)
    logger.debug("Template container %r matched %d items", template.container, len(items))
    return _iter_candidates(items, template)


def _parse(document: str) -> BeautifulSoup:
    try:
        soup = BeautifulSoup(document, "html.parser")
    except ParserRejectedMarkup as error:
        raise ParseError(message=f"Markup rejected by parser: {error}") from error

    if soup.find() is None:
        raise ParseError(message="Document contains no markup elements")
    return soup


def _iter_candidates(
    items: Iterable[Tag],
    template: ExtractionTemplate,
) -> Iterator[CandidateRecord]:
    for item in items:
        values = {name: _field_value(item, rule) for name, rule in template.fields.items()}
        yield CandidateRecord(**values)


def _field_value(item: Tag, rule: FieldRule) -> str:
    if rule.attribute is None:
        texts = (element.get_text().strip() for element in item.select(rule.selector))
        return " ".join(text for text in texts if text)

    element = item.select_one(rule.selector)
    if element is None:
        return ""

    value = element.get(rule.attribute)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value).strip()
    return str(value).strip()


def _check_content_type(content_type: str | None) -> None:
    if not content_type:
        return
    media_type = content_type.split(";", 1)[0].strip().lower()
    if media_type and media_type not in MARKUP_CONTENT_TYPES:
        raise ParseError(message=f"Unsupported content type for extraction: {media_type}")
