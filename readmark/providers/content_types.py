"""Content types for articles, reading progress and highlights."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class HighlightType(str, Enum):
    """Kind of highlight record stored remotely."""

    HIGHLIGHT = "HIGHLIGHT"
    NOTE = "NOTE"
    REDACTION = "REDACTION"


@dataclass(frozen=True)
class Article:
    """Read-only projection of an article held by the remote store."""

    id: str
    title: str
    content: str
    author: str | None = None
    site_name: str | None = None
    url: str | None = None
    saved_at: datetime | None = None
    published_at: datetime | None = None
    reading_progress_percent: float = 0.0
    reading_progress_anchor_index: int = 0


@dataclass(frozen=True)
class ReadingProgress:
    """How far a reader got through one article."""

    article_id: str
    percent: float
    anchor_index: int = 0

    def __post_init__(self) -> None:
        if not 0 < self.percent <= 1:
            raise ValueError(f"percent must be in (0, 1], got {self.percent}")
        if self.anchor_index < 0:
            raise ValueError(f"anchor_index must be >= 0, got {self.anchor_index}")


@dataclass(frozen=True)
class HighlightAnchor:
    """Portable description of a highlighted block.

    quote, prefix and suffix are adjacent, non-overlapping spans of the
    document text. position_anchor_index survives reflow; the context spans
    disambiguate when the index itself shifts after content edits.
    """

    quote: str
    prefix: str = ""
    suffix: str = ""
    patch: str | None = None
    position_percent: float = 0.0
    position_anchor_index: int = 0

    def __post_init__(self) -> None:
        if not self.quote:
            raise ValueError("quote must not be empty")


@dataclass(frozen=True)
class Label:
    """A user label attached to a highlight."""

    id: str
    name: str
    color: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Highlight:
    """A highlight belonging to an article."""

    id: str
    short_id: str
    article_id: str
    anchor: HighlightAnchor
    type: HighlightType = HighlightType.HIGHLIGHT
    color: str = "yellow"
    annotation: str | None = None
    labels: tuple[Label, ...] = field(default_factory=tuple)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    shared_at: datetime | None = None
    created_by_me: bool = True

    def __post_init__(self) -> None:
        # Labels are an ordered set keyed by id
        seen: set[str] = set()
        unique: list[Label] = []
        for label in self.labels:
            if label.id in seen:
                continue
            seen.add(label.id)
            unique.append(label)
        object.__setattr__(self, "labels", tuple(unique))

    @property
    def quote(self) -> str:
        return self.anchor.quote
