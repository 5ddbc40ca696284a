"""Remote store abstraction for reading progress and highlights."""

from __future__ import annotations

from abc import ABC, abstractmethod

from readmark.providers.content_types import Article, Highlight, ReadingProgress


class ReaderApiError(Exception):
    """Base exception for remote store errors."""


class ReaderTransportError(ReaderApiError):
    """Network failure, server error or unreadable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ReaderRemoteError(ReaderApiError):
    """The remote store rejected the request payload."""

    def __init__(self, message: str, codes: tuple[str, ...] = ()):
        super().__init__(message)
        self.codes = codes


class ReaderAuthError(ReaderRemoteError):
    """Authentication failed."""


class ArticleNotFoundError(ReaderRemoteError):
    """No article exists for the requested username and slug."""


class ReaderStore(ABC):
    """Remote operations the reading core depends on."""

    @abstractmethod
    async def fetch_article(self, username: str, slug: str, format: str = "html") -> Article:
        """Fetch an article by owner and slug.

        Raises:
            ArticleNotFoundError: If the article does not exist.
            ReaderApiError: On any other failure.
        """
        ...

    @abstractmethod
    async def save_reading_progress(
        self,
        article_id: str,
        percent: float,
        anchor_index: int | None = None,
    ) -> ReadingProgress:
        """Persist reading progress and return the stored values.

        Idempotent for an identical percent.
        """
        ...

    @abstractmethod
    async def create_highlight(self, highlight: Highlight) -> Highlight:
        """Create a highlight and return the authoritative record.

        Idempotent on highlight.id.
        """
        ...
