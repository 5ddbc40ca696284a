"""Build portable highlight anchors from a selected element.

An anchor carries the ordinal index of the enclosing block unit, which is
unchanged by font size or column count, plus the quote with its prefix and
suffix for relocation after content edits.
"""

from __future__ import annotations

import hashlib
import logging
import re

from bs4.element import PageElement

from readmark.core.document import Document, text_content
from readmark.providers.content_types import HighlightAnchor

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_CHARS = 32

_WHITESPACE = re.compile(r"\s+")


class EmptySelectionError(ValueError):
    """The selection does not resolve to a block with visible text."""


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def make_patch(quote: str, anchor_index: int) -> str:
    """Reflow-tolerant token for relocating a quote.

    Hashes the whitespace-normalized quote so re-serialized content with the
    same words still matches.
    """
    normalized = normalize_whitespace(quote)
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:12]
    return f"{anchor_index}:{digest}:{len(normalized)}"


def _trim_context(prefix: str, quote: str, suffix: str) -> tuple[str, str]:
    """Cut repeats of the quote out of its context.

    The prefix keeps only text after the last occurrence, the suffix only
    text before the first, so neither contains the quote.
    """
    cut = prefix.rfind(quote)
    if cut != -1:
        prefix = prefix[cut + len(quote):]
    cut = suffix.find(quote)
    if cut != -1:
        suffix = suffix[:cut]
    return prefix, suffix


class AnchorBuilder:
    """Turns a gesture target into a HighlightAnchor."""

    def __init__(
        self,
        document: Document,
        *,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
        include_patch: bool = True,
        log: logging.Logger | None = None,
    ) -> None:
        if context_chars < 0:
            raise ValueError("context_chars must be >= 0")
        self.document = document
        self.context_chars = context_chars
        self.include_patch = include_patch
        self._log = log or logger

    def build(self, selection: PageElement | None, *, page_percent: float | None = None) -> HighlightAnchor:
        """Build an anchor for the block enclosing the selection.

        Args:
            selection: Element or text node under the user's gesture.
            page_percent: Current page fraction, used as position_percent
                when the block is not part of the indexed document.

        Raises:
            EmptySelectionError: No enclosing block, or it has no visible text.
        """
        unit = self.document.resolve_block(selection)
        if unit is None:
            raise EmptySelectionError("Selection is not inside a block-level unit")

        quote = text_content(unit)
        if not quote.strip():
            raise EmptySelectionError(f"<{unit.name}> has no text to highlight")

        text = self.document.text
        span = self.document.text_span(unit)
        if span is not None:
            start, end = span
            prefix = text[max(0, start - self.context_chars):start]
            suffix = text[end:end + self.context_chars]
            prefix, suffix = _trim_context(prefix, quote, suffix)
            position_percent = start / len(text) if text else 0.0
        else:
            prefix = suffix = ""
            position_percent = page_percent if page_percent is not None else 0.0

        anchor_index = self.document.anchor_index(unit)
        if anchor_index is None:
            anchor_index = 0

        patch = make_patch(quote, anchor_index) if self.include_patch else None

        self._log.debug(
            f"Built anchor for <{unit.name}> idx={anchor_index} "
            f"pos={position_percent:.3f} quote_len={len(quote)}"
        )
        return HighlightAnchor(
            quote=quote,
            prefix=prefix,
            suffix=suffix,
            patch=patch,
            position_percent=position_percent,
            position_anchor_index=anchor_index,
        )
