"""Escaping and truncation for text that ends up in HTML-rendered messages."""

from __future__ import annotations

import html

DEFAULT_MAX_LENGTH = 5000


def truncate(value: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    if not value:
        return ""
    return value[:max_length]


def sanitize_field(value: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Truncate to *max_length* characters, then escape ``& < > " '``."""
    return html.escape(truncate(value, max_length), quote=True)


def clip_escaped(text: str, limit: int) -> str:
    """
    Cut already-escaped text to at most *limit* characters without
    leaving half an entity (``&am``) dangling at the end.
    """
    if len(text) <= limit:
        return text
    cut = text[:limit]
    amp = cut.rfind("&")
    if amp != -1 and ";" not in cut[amp:]:
        cut = cut[:amp]
    return cut
