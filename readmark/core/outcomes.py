"""Typed results for progress submissions and highlight commits."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from readmark.providers.base import ReaderRemoteError
from readmark.providers.content_types import Highlight, ReadingProgress


class ErrorKind(str, Enum):
    """Classification of failures surfaced to callers."""

    EMPTY_SELECTION = "empty_selection"  # No request issued
    TRANSPORT_FAILURE = "transport_failure"  # Caller may re-trigger
    REMOTE_VALIDATION = "remote_validation"  # Payload rejected remotely


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a store exception onto an ErrorKind."""
    if isinstance(exc, ReaderRemoteError):
        return ErrorKind.REMOTE_VALIDATION
    return ErrorKind.TRANSPORT_FAILURE


@dataclass
class SyncResult:
    """Result of one progress submission."""

    success: bool
    sequence: int
    progress: ReadingProgress | None = None
    stale: bool = False  # A newer submission was issued before this response
    error_type: ErrorKind | None = None
    error_message: str | None = None

    @property
    def accepted(self) -> bool:
        """Whether this response became the current progress."""
        return self.success and not self.stale


@dataclass
class CommitResult:
    """Result of one confirmed highlight."""

    success: bool
    highlight: Highlight | None = None
    error_type: ErrorKind | None = None
    error_message: str | None = None
