"""GraphQL client for the reader API."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from readmark.providers.base import (
    ArticleNotFoundError,
    ReaderAuthError,
    ReaderRemoteError,
    ReaderStore,
    ReaderTransportError,
)
from readmark.providers.content_types import (
    Article,
    Highlight,
    HighlightAnchor,
    HighlightType,
    Label,
    ReadingProgress,
)

logger = logging.getLogger(__name__)

READER_BASE_URL = "https://api-prod.omnivore.app"
GRAPHQL_PATH = "/api/graphql"

# GraphQL extension codes for a request the server refused as invalid
VALIDATION_ERROR_CODES = frozenset({"BAD_USER_INPUT", "GRAPHQL_VALIDATION_FAILED", "GRAPHQL_PARSE_FAILED"})

ARTICLE_QUERY = """
query Article($username: String!, $slug: String!, $format: String!) {
  article(username: $username, slug: $slug, format: $format) {
    __typename
    ... on ArticleSuccess {
      article {
        id
        title
        content
        url
        siteName
        author
        savedAt
        publishedAt
        readingProgressPercent
        readingProgressAnchorIndex
      }
    }
    ... on ArticleError {
      errorCodes
    }
  }
}
"""

SAVE_READING_PROGRESS_MUTATION = """
mutation SaveArticleReadingProgress($input: SaveArticleReadingProgressInput!) {
  saveArticleReadingProgress(input: $input) {
    __typename
    ... on SaveArticleReadingProgressSuccess {
      updatedArticle {
        id
        readingProgressPercent
        readingProgressAnchorIndex
      }
    }
    ... on SaveArticleReadingProgressError {
      errorCodes
    }
  }
}
"""

CREATE_HIGHLIGHT_MUTATION = """
mutation CreateHighlight($input: CreateHighlightInput!) {
  createHighlight(input: $input) {
    __typename
    ... on CreateHighlightSuccess {
      highlight {
        ...HighlightFields
      }
    }
    ... on CreateHighlightError {
      errorCodes
    }
  }
}
fragment HighlightFields on Highlight {
  id
  type
  shortId
  quote
  prefix
  suffix
  patch
  color
  annotation
  createdByMe
  createdAt
  updatedAt
  sharedAt
  highlightPositionPercent
  highlightPositionAnchorIndex
  labels {
    id
    name
    color
    createdAt
  }
}
"""


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _raise_for_codes(operation: str, codes: list[str]) -> None:
    """Map an *Error payload onto the exception hierarchy."""
    normalized = tuple(str(code) for code in codes)
    message = f"{operation} rejected: {', '.join(normalized) or 'unknown error'}"
    if "UNAUTHORIZED" in normalized or "FORBIDDEN" in normalized:
        raise ReaderAuthError(message, normalized)
    if operation == "article" and "NOT_FOUND" in normalized:
        raise ArticleNotFoundError(message, normalized)
    raise ReaderRemoteError(message, normalized)


def _raise_for_graphql_errors(errors: list[dict]) -> None:
    """Map a top-level GraphQL errors array onto the exception hierarchy."""
    messages = "; ".join(err.get("message", "unknown") for err in errors)
    codes = tuple(
        str(err["extensions"]["code"])
        for err in errors
        if isinstance(err.get("extensions"), dict) and err["extensions"].get("code")
    )
    if "UNAUTHENTICATED" in codes or "FORBIDDEN" in codes:
        raise ReaderAuthError(f"GraphQL error: {messages}", codes)
    if any(code in VALIDATION_ERROR_CODES for code in codes):
        raise ReaderRemoteError(f"GraphQL error: {messages}", codes)
    raise ReaderTransportError(f"GraphQL error: {messages}")


class ReaderApiClient(ReaderStore):
    """Async client for the reader GraphQL API.

    Articles are served cache-first: a repeated fetch for the same username,
    slug and format returns the cached projection unless refresh=True.
    """

    def __init__(
        self,
        token: str,
        base_url: str = READER_BASE_URL,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        if not token:
            raise ValueError("Reader API token is required")
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": token, "Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )
        self._articles: dict[tuple[str, str, str], Article] = {}
        self._log = log or logger

    async def close(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "ReaderApiClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL document and return its data object.

        Raises:
            ReaderAuthError: On HTTP 401/403.
            ReaderTransportError: On network errors, other HTTP errors,
                unclassified GraphQL errors or a response without data.
            ReaderRemoteError: On GraphQL errors that reject the input.
        """
        try:
            resp = await self._client.post(
                GRAPHQL_PATH,
                json={"query": query, "variables": variables},
            )
        except httpx.TimeoutException as e:
            raise ReaderTransportError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ReaderTransportError(f"Connection error: {e}") from e

        if resp.status_code in (401, 403):
            raise ReaderAuthError("Invalid reader API token", ("UNAUTHORIZED",))
        # GraphQL servers answer rejected input with 400 and an errors array
        if resp.status_code > 400:
            raise ReaderTransportError(
                f"HTTP error: {resp.status_code}", status_code=resp.status_code
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise ReaderTransportError("Response is not valid JSON", status_code=resp.status_code) from e

        if isinstance(body, dict) and body.get("errors"):
            _raise_for_graphql_errors(body["errors"])
        if resp.status_code == 400:
            raise ReaderTransportError("HTTP error: 400", status_code=400)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ReaderTransportError("Response has no data")
        return data

    async def fetch_article(
        self,
        username: str,
        slug: str,
        format: str = "html",
        *,
        refresh: bool = False,
    ) -> Article:
        key = (username, slug, format)
        if not refresh and key in self._articles:
            return self._articles[key]

        data = await self._execute(
            ARTICLE_QUERY,
            {"username": username, "slug": slug, "format": format},
        )
        result = data.get("article") or {}
        if result.get("__typename") != "ArticleSuccess":
            _raise_for_codes("article", result.get("errorCodes") or ["NOT_FOUND"])

        article = self._parse_article(result["article"])
        self._articles[key] = article
        self._log.debug(f"Fetched article {article.id} ({username}/{slug})")
        return article

    async def save_reading_progress(
        self,
        article_id: str,
        percent: float,
        anchor_index: int | None = None,
    ) -> ReadingProgress:
        payload: dict[str, Any] = {"id": article_id, "readingProgressPercent": percent}
        if anchor_index is not None:
            payload["readingProgressAnchorIndex"] = anchor_index

        data = await self._execute(SAVE_READING_PROGRESS_MUTATION, {"input": payload})
        result = data.get("saveArticleReadingProgress") or {}
        if result.get("__typename") != "SaveArticleReadingProgressSuccess":
            _raise_for_codes("saveArticleReadingProgress", result.get("errorCodes") or [])

        updated = result["updatedArticle"]
        try:
            return ReadingProgress(
                article_id=updated.get("id") or article_id,
                percent=float(updated["readingProgressPercent"]),
                anchor_index=int(updated.get("readingProgressAnchorIndex") or 0),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ReaderTransportError(f"Malformed progress response: {e}") from e

    async def create_highlight(self, highlight: Highlight) -> Highlight:
        anchor = highlight.anchor
        payload: dict[str, Any] = {
            "id": highlight.id,
            "shortId": highlight.short_id,
            "type": highlight.type.value,
            "color": highlight.color,
            "prefix": anchor.prefix,
            "suffix": anchor.suffix,
            "quote": anchor.quote,
            "articleId": highlight.article_id,
            "highlightPositionPercent": anchor.position_percent,
            "highlightPositionAnchorIndex": anchor.position_anchor_index,
        }
        if anchor.patch is not None:
            payload["patch"] = anchor.patch
        if highlight.annotation is not None:
            payload["annotation"] = highlight.annotation

        data = await self._execute(CREATE_HIGHLIGHT_MUTATION, {"input": payload})
        result = data.get("createHighlight") or {}
        if result.get("__typename") != "CreateHighlightSuccess":
            _raise_for_codes("createHighlight", result.get("errorCodes") or [])

        try:
            return self._parse_highlight(result["highlight"], highlight.article_id)
        except (KeyError, TypeError, ValueError) as e:
            raise ReaderTransportError(f"Malformed highlight response: {e}") from e

    def _parse_article(self, doc: dict) -> Article:
        """Convert an API article object to an Article DTO."""
        return Article(
            id=doc["id"],
            title=doc.get("title") or "Untitled",
            content=doc.get("content") or "",
            author=doc.get("author"),
            site_name=doc.get("siteName"),
            url=doc.get("url"),
            saved_at=_parse_datetime(doc.get("savedAt")),
            published_at=_parse_datetime(doc.get("publishedAt")),
            reading_progress_percent=float(doc.get("readingProgressPercent") or 0.0),
            reading_progress_anchor_index=int(doc.get("readingProgressAnchorIndex") or 0),
        )

    def _parse_highlight(self, doc: dict, article_id: str) -> Highlight:
        """Convert an API highlight object to a Highlight DTO."""
        anchor = HighlightAnchor(
            quote=doc["quote"],
            prefix=doc.get("prefix") or "",
            suffix=doc.get("suffix") or "",
            patch=doc.get("patch"),
            position_percent=float(doc.get("highlightPositionPercent") or 0.0),
            position_anchor_index=int(doc.get("highlightPositionAnchorIndex") or 0),
        )
        labels = tuple(
            Label(
                id=label["id"],
                name=label.get("name", ""),
                color=label.get("color", ""),
                created_at=_parse_datetime(label.get("createdAt")),
            )
            for label in doc.get("labels") or []
        )
        return Highlight(
            id=doc["id"],
            short_id=doc["shortId"],
            article_id=article_id,
            anchor=anchor,
            type=HighlightType(doc.get("type") or HighlightType.HIGHLIGHT.value),
            color=doc.get("color") or "yellow",
            annotation=doc.get("annotation"),
            labels=labels,
            created_at=_parse_datetime(doc.get("createdAt")),
            updated_at=_parse_datetime(doc.get("updatedAt")),
            shared_at=_parse_datetime(doc.get("sharedAt")),
            created_by_me=bool(doc.get("createdByMe", True)),
        )
