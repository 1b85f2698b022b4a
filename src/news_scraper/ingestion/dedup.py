"""Title-based deduplication of candidate records against the store."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from news_scraper.ingestion.models import CandidateRecord


@dataclass(slots=True)
class DedupReport:
    """Novel candidates plus what was suppressed and why."""

    novel: list[CandidateRecord] = field(default_factory=list)
    known_count: int = 0
    repeated_count: int = 0

    @property
    def suppressed_count(self) -> int:
        return self.known_count + self.repeated_count


def title_key(title: str, *, normalize: bool = True) -> str:
    """Comparison key for a headline.

    Normalized keys ignore surrounding and repeated whitespace and letter
    case; otherwise the raw title is compared literally.
    """

    if not normalize:
        return title
    return " ".join(title.split()).casefold()


def build_known_keys(titles: Iterable[str], *, normalize: bool = True) -> set[str]:
    return {title_key(title, normalize=normalize) for title in titles}


def filter_novel(
    known_keys: set[str],
    candidates: Iterable[CandidateRecord],
    *,
    normalize: bool = True,
) -> DedupReport:
    """Keep candidates with unseen titles, first occurrence in the batch wins.

    ``known_keys`` must be built with the same ``normalize`` flag.
    """

    report = DedupReport()
    seen_in_batch: set[str] = set()
    for candidate in candidates:
        key = title_key(candidate.title, normalize=normalize)
        if key in known_keys:
            report.known_count += 1
            continue
        if key in seen_in_batch:
            report.repeated_count += 1
            continue
        seen_in_batch.add(key)
        report.novel.append(candidate)
    return report
