"""Shared fixtures: an in-memory ReaderStore with controllable completion."""

import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from readmark.core.settings import Settings
from readmark.providers.base import ArticleNotFoundError, ReaderStore
from readmark.providers.content_types import Article, Highlight, ReadingProgress

ARTICLE_HTML = (
    "<article>"
    "<h1>A Field Guide</h1>"
    "<p>The quick brown fox</p>"
    "<p>jumps over <em>the lazy</em> dog</p>"
    "<p>   </p>"
    "<div>loose text</div>"
    "<ul><li>first item</li><li><p>nested paragraph</p></li></ul>"
    "</article>"
)


class FakeStore(ReaderStore):
    """ReaderStore double that records calls.

    With hold_progress / hold_highlights set, each call blocks on an
    asyncio.Event appended to progress_gates / highlight_gates so tests can
    complete requests in any order.
    """

    def __init__(self) -> None:
        self.articles: dict[tuple[str, str], Article] = {}
        self.fetch_calls: list[tuple[str, str, str]] = []
        self.progress_calls: list[tuple[str, float, int | None]] = []
        self.highlight_calls: list[Highlight] = []
        self.progress_error: Exception | None = None
        self.highlight_error: Exception | None = None
        self.hold_progress = False
        self.hold_highlights = False
        self.progress_gates: list[asyncio.Event] = []
        self.highlight_gates: list[asyncio.Event] = []

    async def fetch_article(self, username, slug, format="html"):
        self.fetch_calls.append((username, slug, format))
        try:
            return self.articles[(username, slug)]
        except KeyError:
            raise ArticleNotFoundError("article rejected: NOT_FOUND", ("NOT_FOUND",))

    async def save_reading_progress(self, article_id, percent, anchor_index=None):
        self.progress_calls.append((article_id, percent, anchor_index))
        if self.hold_progress:
            gate = asyncio.Event()
            self.progress_gates.append(gate)
            await gate.wait()
        if self.progress_error is not None:
            raise self.progress_error
        return ReadingProgress(article_id=article_id, percent=percent, anchor_index=anchor_index or 0)

    async def create_highlight(self, highlight):
        self.highlight_calls.append(highlight)
        if self.hold_highlights:
            gate = asyncio.Event()
            self.highlight_gates.append(gate)
            await gate.wait()
        if self.highlight_error is not None:
            raise self.highlight_error
        now = datetime.now(timezone.utc)
        return replace(highlight, created_at=now, updated_at=now)


async def _wait_for(predicate, ticks: int = 50) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(ticks):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def wait_for():
    return _wait_for


@pytest.fixture
def article_html():
    return ARTICLE_HTML


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def article():
    return Article(
        id="article-1",
        title="A Field Guide",
        content=ARTICLE_HTML,
        author="Jane Doe",
        site_name="example.com",
        url="https://example.com/guide",
        reading_progress_percent=0.5,
    )


@pytest.fixture
def settings():
    return Settings(
        api_url="https://reader.test",
        api_token="token",
        article_format="html",
        highlight_color="yellow",
        anchor_context_chars=32,
        anchor_patch_enabled=True,
        http_timeout_seconds=5,
        font_size=1,
        columns=2,
        padding="p-2",
        justify=False,
    )
