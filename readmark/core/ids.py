"""Identifier generation for optimistic highlights."""

from __future__ import annotations

import secrets
import uuid

# URL-safe alphabet, same set nanoid draws from
SHORT_ID_ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
SHORT_ID_LENGTH = 8


def new_highlight_id() -> str:
    """Random 128-bit identifier (UUID4)."""
    return str(uuid.uuid4())


def new_short_id(size: int = SHORT_ID_LENGTH) -> str:
    """Short sharing token, 8 characters by default (48 bits)."""
    return "".join(secrets.choice(SHORT_ID_ALPHABET) for _ in range(size))
