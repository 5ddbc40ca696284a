from __future__ import annotations

import logging
import math
from typing import Callable

logger = logging.getLogger(__name__)

ProgressSink = Callable[[str, float], object]


def page_percent(page_index: int, total_pages: int) -> float:
    """Progress fraction after reading page_index, always in (0, 1]."""
    if total_pages < 1:
        raise ValueError(f"total_pages must be >= 1, got {total_pages}")
    if not 0 <= page_index < total_pages:
        raise ValueError(f"page_index {page_index} out of range for {total_pages} pages")
    return (page_index + 1) / total_pages


def initial_page_for(percent: float, total_pages: int) -> int:
    """Page to open on for a stored progress fraction."""
    if total_pages < 1:
        raise ValueError(f"total_pages must be >= 1, got {total_pages}")
    if percent <= 0:
        return 0
    # Rounded so (i + 1) / n * n maps back to page i despite float error
    pages_read = math.ceil(round(percent * total_pages, 9))
    return min(total_pages - 1, max(0, pages_read - 1))


class PaginationTracker:
    """Turns page changes into progress values for one article."""

    def __init__(
        self,
        article_id: str,
        sink: ProgressSink,
        *,
        log: logging.Logger | None = None,
    ) -> None:
        self.article_id = article_id
        self._sink = sink
        self._log = log or logger
        self.last_percent: float | None = None

    def resume(self, percent: float) -> None:
        """Seed the last emitted value from stored progress."""
        self.last_percent = percent if percent > 0 else None

    def on_page_change(self, page_index: int, total_pages: int) -> float | None:
        """Emit progress for a page change.

        Returns the emitted percent, or None when it equals the last one.
        """
        percent = page_percent(page_index, total_pages)
        if percent == self.last_percent:
            return None
        self._log.debug(f"Page change {page_index + 1}/{total_pages} -> {percent:.4f}")
        self._sink(self.article_id, percent)
        # Only recorded once the sink took it, so a failed hand-off is retried
        self.last_percent = percent
        return percent
