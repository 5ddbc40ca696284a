from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    api_url: str
    api_token: str
    article_format: str
    highlight_color: str
    anchor_context_chars: int
    anchor_patch_enabled: bool
    http_timeout_seconds: int
    # Display options are opaque to the core and only passed through
    font_size: int
    columns: int
    padding: str
    justify: bool

    @staticmethod
    def from_env() -> "Settings":
        def _b(name: str, default: str) -> bool:
            return os.getenv(name, default).strip() in ("1", "true", "True", "yes", "YES")

        def _i(name: str, default: str) -> int:
            return int(os.getenv(name, default).strip())

        return Settings(
            api_url=os.getenv("READMARK_API_URL", "https://api-prod.omnivore.app").strip(),
            api_token=os.getenv("READMARK_API_TOKEN", "").strip(),
            article_format=os.getenv("READMARK_ARTICLE_FORMAT", "html").strip(),
            highlight_color=os.getenv("READMARK_HIGHLIGHT_COLOR", "yellow").strip(),
            anchor_context_chars=_i("READMARK_ANCHOR_CONTEXT_CHARS", "32"),
            anchor_patch_enabled=_b("READMARK_ANCHOR_PATCH", "1"),
            http_timeout_seconds=_i("READMARK_HTTP_TIMEOUT", "30"),
            font_size=_i("READMARK_FONT_SIZE", "1"),
            columns=_i("READMARK_COLUMNS", "1"),
            padding=os.getenv("READMARK_PADDING", "p-2").strip(),
            justify=_b("READMARK_JUSTIFY", "0"),
        )
