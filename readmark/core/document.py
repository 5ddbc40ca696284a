"""Parsed article content with block-level unit resolution.

The renderer owns pagination and layout; this module only gives the core a
DOM-like view of the article so gestures can be resolved to block units and
their surrounding text.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

logger = logging.getLogger(__name__)

# Attribute the server assigns to anchorable blocks
ANCHOR_INDEX_ATTR = "data-omnivore-anchor-idx"
HIGHLIGHT_ID_ATTR = "data-highlight-id"

BLOCK_TAGS = frozenset({"p", "code", "pre", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6"})
NON_TEXT_PARENTS = frozenset({"script", "style", "template"})


def is_block(tag: Tag) -> bool:
    """Whether a tag is a block-level highlight target."""
    if tag.has_attr(ANCHOR_INDEX_ATTR):
        return True
    if tag.name == "code":
        return _is_code_block(tag)
    return tag.name in BLOCK_TAGS


def _is_code_block(tag: Tag) -> bool:
    # Inline <code> inside a paragraph belongs to that paragraph
    parent = tag.parent
    if parent is not None and parent.name == "pre":
        return True
    return not any(is_block(ancestor) for ancestor in tag.parents)


def _is_text(node: PageElement) -> bool:
    if not isinstance(node, NavigableString) or isinstance(node, PreformattedString):
        return False
    return node.parent is None or node.parent.name not in NON_TEXT_PARENTS


def text_content(node: PageElement) -> str:
    """Concatenated text of a node, like the DOM's textContent."""
    if isinstance(node, NavigableString):
        return str(node) if _is_text(node) else ""
    return "".join(str(s) for s in node.descendants if _is_text(s))


class Document:
    """Article content as a BeautifulSoup tree plus a text offset index."""

    def __init__(self, soup: BeautifulSoup) -> None:
        self.soup = soup
        self._starts: dict[int, int] = {}
        self._units: list[Tag] = []
        self._ordinals: dict[int, int] = {}
        self.text = ""
        self._build_index()

    @classmethod
    def from_html(cls, html: str | None) -> "Document":
        return cls(BeautifulSoup(html or "", "html.parser"))

    def _build_index(self) -> None:
        parts: list[str] = []
        offset = 0
        for node in self.soup.descendants:
            if isinstance(node, Tag):
                self._starts[id(node)] = offset
            elif _is_text(node):
                parts.append(str(node))
                offset += len(node)
        self.text = "".join(parts)

        self._units = self.soup.find_all(is_block)
        self._ordinals = {id(unit): i for i, unit in enumerate(self._units)}
        logger.debug(f"Indexed document: {len(self.text)} chars, {len(self._units)} block units")

    def block_units(self) -> list[Tag]:
        """All block-level units in document order."""
        return list(self._units)

    def resolve_block(self, node: PageElement | None) -> Tag | None:
        """Nearest block-level ancestor-or-self of a gesture target."""
        current = node if isinstance(node, Tag) else getattr(node, "parent", None)
        while current is not None and current is not self.soup:
            if is_block(current):
                return current
            current = current.parent
        return None

    def contains(self, container: Tag, node: PageElement | None) -> bool:
        if node is None:
            return False
        if node is container:
            return True
        return any(parent is container for parent in node.parents)

    def text_span(self, unit: Tag) -> tuple[int, int] | None:
        """Start/end offsets of a unit in self.text, None if not indexed."""
        start = self._starts.get(id(unit))
        if start is None:
            return None
        return start, start + len(text_content(unit))

    def anchor_index(self, unit: Tag) -> int | None:
        """Server-assigned anchor index, else ordinal among block units."""
        raw = unit.get(ANCHOR_INDEX_ATTR)
        if raw is not None:
            try:
                return int(str(raw).strip())
            except ValueError:
                pass
        return self._ordinals.get(id(unit))

    def find_block(self, text: str) -> Tag | None:
        """First block unit whose text contains the given text."""
        for unit in self._units:
            if text in text_content(unit):
                return unit
        return None


def _parse_style(style: str) -> dict[str, str]:
    props: dict[str, str] = {}
    for declaration in style.split(";"):
        name, sep, value = declaration.partition(":")
        if sep and name.strip():
            props[name.strip().lower()] = value.strip()
    return props


def _format_style(props: dict[str, str]) -> str:
    return "; ".join(f"{name}: {value}" for name, value in props.items())


class StyleMarker:
    """Visual highlight marker applied through inline styles."""

    TRANSIENT = {
        "background-color": "rgb(229 231 235) !important",
        "cursor": "pointer !important",
    }

    def apply(self, element: Tag) -> None:
        props = _parse_style(str(element.get("style", "")))
        props.update(self.TRANSIENT)
        element["style"] = _format_style(props)

    def remove(self, element: Tag) -> None:
        props = _parse_style(str(element.get("style", "")))
        for name in self.TRANSIENT:
            props.pop(name, None)
        if props:
            element["style"] = _format_style(props)
        elif element.has_attr("style"):
            del element["style"]

    def make_permanent(self, element: Tag, highlight_id: str, *, keep_transient: bool = False) -> None:
        if not keep_transient:
            self.remove(element)
        element[HIGHLIGHT_ID_ATTR] = highlight_id

    def is_marked(self, element: Tag) -> bool:
        props = _parse_style(str(element.get("style", "")))
        return all(props.get(name) == value for name, value in self.TRANSIENT.items())
