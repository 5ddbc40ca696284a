"""Reading progress persistence with stale-response protection.

Page navigation can outpace round-trips, so every submission carries a
sequence number and only the response to the newest issued one is
accepted. Failures are absorbed: the next page change submits a fresher
value anyway.
"""

from __future__ import annotations

import asyncio
import logging

from readmark.core.outcomes import SyncResult, classify_error
from readmark.providers.base import ReaderApiError, ReaderStore
from readmark.providers.content_types import ReadingProgress

logger = logging.getLogger(__name__)


def _check_percent(percent: float) -> None:
    if not 0 < percent <= 1:
        raise ValueError(f"percent must be in (0, 1], got {percent}")


class ProgressSynchronizer:
    """Pushes progress changes to the store, last request wins."""

    def __init__(self, store: ReaderStore, *, log: logging.Logger | None = None) -> None:
        self._store = store
        self._log = log or logger
        self._issued = 0
        self._acknowledged = 0
        self._tasks: set[asyncio.Task[SyncResult]] = set()
        self.current: ReadingProgress | None = None

    @property
    def issued(self) -> int:
        """Highest sequence number handed out."""
        return self._issued

    @property
    def acknowledged(self) -> int:
        """Highest sequence number whose response was accepted."""
        return self._acknowledged

    async def submit(
        self,
        article_id: str,
        percent: float,
        anchor_index: int | None = None,
    ) -> SyncResult:
        """Persist progress; never raises for store failures.

        Raises:
            ValueError: If percent is outside (0, 1].
        """
        _check_percent(percent)

        self._issued += 1
        sequence = self._issued
        self._log.debug(f"Submitting progress #{sequence} for {article_id}: {percent:.4f}")

        try:
            progress = await self._store.save_reading_progress(article_id, percent, anchor_index)
        except Exception as e:
            if isinstance(e, ReaderApiError):
                self._log.warning(f"Progress #{sequence} for {article_id} not saved: {e}")
            else:
                self._log.exception(f"Unexpected error saving progress #{sequence} for {article_id}")
            return SyncResult(
                success=False,
                sequence=sequence,
                error_type=classify_error(e),
                error_message=str(e),
            )

        if sequence < self._issued:
            self._log.debug(f"Discarding stale progress #{sequence} (issued #{self._issued})")
            return SyncResult(success=True, sequence=sequence, progress=progress, stale=True)

        self._acknowledged = sequence
        self.current = progress
        return SyncResult(success=True, sequence=sequence, progress=progress)

    def submit_nowait(
        self,
        article_id: str,
        percent: float,
        anchor_index: int | None = None,
    ) -> asyncio.Task[SyncResult]:
        """Schedule submit() on the running loop for synchronous callers."""
        _check_percent(percent)
        task = asyncio.get_running_loop().create_task(
            self.submit(article_id, percent, anchor_index)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> list[SyncResult]:
        """Wait for all scheduled submissions."""
        if not self._tasks:
            return []
        return list(await asyncio.gather(*self._tasks))
