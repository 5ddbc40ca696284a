"""Arm/confirm interaction for creating highlights.

A mark gesture arms one block element and applies a transient marker. The
next confirm gesture consumes the armed token: inside the element it commits
a highlight, anywhere else it cancels. Arming again before confirming
invalidates the previous token, so at most one confirmation is pending.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from bs4 import Tag
from bs4.element import PageElement

from readmark.core.anchoring import AnchorBuilder, EmptySelectionError
from readmark.core.document import Document, StyleMarker
from readmark.core.ids import new_highlight_id, new_short_id
from readmark.core.outcomes import CommitResult, ErrorKind, classify_error
from readmark.providers.base import ReaderApiError, ReaderStore
from readmark.providers.content_types import Highlight, HighlightType

logger = logging.getLogger(__name__)

DEFAULT_HIGHLIGHT_COLOR = "yellow"


class InteractionState(str, Enum):
    """State of the most recent arm/confirm cycle."""

    IDLE = "idle"
    ARMED = "armed"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMMITTING = "committing"
    APPLIED = "applied"
    ROLLED_BACK = "rolled_back"


@dataclass
class ArmedToken:
    """One arm cycle; invalid once consumed or superseded."""

    serial: int
    element: Tag


class HighlightInteractionController:
    """Drives AnchorBuilder and the store from user gestures."""

    def __init__(
        self,
        document: Document,
        store: ReaderStore,
        article_id: str,
        *,
        anchor_builder: AnchorBuilder | None = None,
        marker: StyleMarker | None = None,
        color: str = DEFAULT_HIGHLIGHT_COLOR,
        page_percent: Callable[[], float | None] | None = None,
        on_state_change: Callable[[InteractionState], object] | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.document = document
        self.article_id = article_id
        self.color = color
        self._store = store
        self._builder = anchor_builder or AnchorBuilder(document)
        self._marker = marker or StyleMarker()
        self._page_percent = page_percent
        self._on_state_change = on_state_change
        self._log = log or logger
        self._serial = 0
        self._armed: ArmedToken | None = None
        self._state = InteractionState.IDLE
        self.highlights: dict[str, Highlight] = {}
        self.requests_issued = 0

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def armed_element(self) -> Tag | None:
        return self._armed.element if self._armed else None

    def arm(self, target: PageElement | None) -> bool:
        """Handle a mark gesture. Returns False if nothing was armed."""
        element = self.document.resolve_block(target)
        if element is None:
            self._log.debug("Mark gesture outside any block unit, ignored")
            return False

        self.cancel()
        self._serial += 1
        self._marker.apply(element)
        self._armed = ArmedToken(serial=self._serial, element=element)
        self._enter(InteractionState.ARMED)
        # The token is the single pending confirmation listener
        self._enter(InteractionState.AWAITING_CONFIRMATION)
        self._log.debug(f"Armed <{element.name}> (cycle {self._serial})")
        return True

    def cancel(self) -> bool:
        """Drop the pending arm, if any, and remove its marker."""
        token = self._armed
        if token is None:
            return False
        self._armed = None
        self._marker.remove(token.element)
        self._enter(InteractionState.IDLE)
        self._log.debug(f"Cancelled arm cycle {token.serial}")
        return True

    def _claim(self, target: PageElement | None) -> ArmedToken | None:
        """Consume the armed token for a confirm gesture.

        Returns the token when the gesture is inside the armed element.
        """
        token = self._armed
        if token is None:
            return None
        if not self.document.contains(token.element, target):
            self.cancel()
            return None
        self._armed = None
        self._enter(InteractionState.COMMITTING)
        return token

    async def confirm(self, target: PageElement | None) -> CommitResult | None:
        """Handle a confirm gesture.

        Returns None when nothing was committed (no pending arm, or the
        gesture was outside the armed element).
        """
        token = self._claim(target)
        if token is None:
            return None
        return await self._commit(token)

    def dispatch_confirm(self, target: PageElement | None) -> asyncio.Task[CommitResult] | None:
        """Claim synchronously and commit in a background task."""
        token = self._claim(target)
        if token is None:
            return None
        return asyncio.get_running_loop().create_task(self._commit(token))

    def _enter(self, state: InteractionState) -> None:
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    def _set_state(self, token: ArmedToken, state: InteractionState) -> None:
        # A newer arm cycle owns the state once it exists
        if token.serial == self._serial:
            self._enter(state)

    def _rearmed(self, token: ArmedToken) -> bool:
        return self._armed is not None and self._armed.element is token.element

    def _unmark(self, token: ArmedToken) -> None:
        if not self._rearmed(token):
            self._marker.remove(token.element)

    async def _commit(self, token: ArmedToken) -> CommitResult:
        page_percent = self._page_percent() if self._page_percent else None
        try:
            anchor = self._builder.build(token.element, page_percent=page_percent)
        except EmptySelectionError as e:
            self._unmark(token)
            self._set_state(token, InteractionState.IDLE)
            self._log.debug(f"Nothing to highlight: {e}")
            return CommitResult(
                success=False,
                error_type=ErrorKind.EMPTY_SELECTION,
                error_message=str(e),
            )

        optimistic = Highlight(
            id=new_highlight_id(),
            short_id=new_short_id(),
            article_id=self.article_id,
            anchor=anchor,
            type=HighlightType.HIGHLIGHT,
            color=self.color,
        )
        self.highlights[optimistic.id] = optimistic
        self.requests_issued += 1

        try:
            saved = await self._store.create_highlight(optimistic)
        except Exception as e:
            self.highlights.pop(optimistic.id, None)
            self._unmark(token)
            self._set_state(token, InteractionState.ROLLED_BACK)
            if isinstance(e, ReaderApiError):
                self._log.warning(f"Highlight {optimistic.id} rolled back: {e}")
            else:
                self._log.exception(f"Unexpected error creating highlight {optimistic.id}")
            return CommitResult(
                success=False,
                highlight=optimistic,
                error_type=classify_error(e),
                error_message=str(e),
            )

        # Replace the optimistic record with the authoritative one
        self.highlights.pop(optimistic.id, None)
        self.highlights[saved.id] = saved
        # A pending re-arm of the same element keeps its transient marker
        self._marker.make_permanent(token.element, saved.id, keep_transient=self._rearmed(token))
        self._set_state(token, InteractionState.APPLIED)
        self._log.info(f"Highlight {saved.id} applied ({saved.short_id})")
        return CommitResult(success=True, highlight=saved)
