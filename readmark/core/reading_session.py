"""One reader session over one article.

Fetches the article, indexes its content and wires page changes to the
progress synchronizer and gestures to the highlight controller.
"""

from __future__ import annotations

import logging
from typing import Any

from bs4.element import PageElement

from readmark.core.anchoring import AnchorBuilder
from readmark.core.document import Document
from readmark.core.highlight_controller import HighlightInteractionController
from readmark.core.outcomes import CommitResult, SyncResult
from readmark.core.pagination import PaginationTracker, initial_page_for
from readmark.core.progress_sync import ProgressSynchronizer
from readmark.core.settings import Settings
from readmark.providers.base import ReaderStore
from readmark.providers.content_types import Article

logger = logging.getLogger(__name__)


class ReadingSession:
    """Reading position and highlight state for an open article."""

    def __init__(
        self,
        article: Article,
        store: ReaderStore,
        settings: Settings,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        self.article = article
        self.settings = settings
        self._log = log or logger
        self.document = Document.from_html(article.content)
        self.synchronizer = ProgressSynchronizer(store, log=self._log)
        self.tracker = PaginationTracker(article.id, self._submit_progress, log=self._log)
        self.tracker.resume(article.reading_progress_percent)
        self.controller = HighlightInteractionController(
            self.document,
            store,
            article.id,
            anchor_builder=AnchorBuilder(
                self.document,
                context_chars=settings.anchor_context_chars,
                include_patch=settings.anchor_patch_enabled,
                log=self._log,
            ),
            color=settings.highlight_color,
            page_percent=lambda: self.tracker.last_percent,
            log=self._log,
        )

    @classmethod
    async def open(
        cls,
        store: ReaderStore,
        username: str,
        slug: str,
        *,
        settings: Settings | None = None,
        log: logging.Logger | None = None,
    ) -> "ReadingSession":
        """Fetch an article and start a session on it.

        Raises:
            ArticleNotFoundError: If the article does not exist.
            ReaderApiError: If the article cannot be fetched.
        """
        settings = settings or Settings.from_env()
        article = await store.fetch_article(username, slug, settings.article_format)
        (log or logger).info(f"Opened article {article.id}: {article.title}")
        return cls(article, store, settings, log=log)

    @property
    def display_options(self) -> dict[str, Any]:
        """Opaque layout inputs for the renderer."""
        return {
            "font_size": self.settings.font_size,
            "columns": self.settings.columns,
            "padding": self.settings.padding,
            "justify": self.settings.justify,
        }

    def _submit_progress(self, article_id: str, percent: float) -> None:
        self.synchronizer.submit_nowait(article_id, percent)

    def initial_page(self, total_pages: int) -> int:
        """Page to open on, from the stored progress."""
        return initial_page_for(self.article.reading_progress_percent, total_pages)

    def on_page_change(self, page_index: int, total_pages: int) -> float | None:
        return self.tracker.on_page_change(page_index, total_pages)

    def arm(self, target: PageElement | None) -> bool:
        return self.controller.arm(target)

    async def confirm(self, target: PageElement | None) -> CommitResult | None:
        return await self.controller.confirm(target)

    async def drain(self) -> list[SyncResult]:
        """Wait for outstanding progress submissions."""
        return await self.synchronizer.drain()
