"""HTML helpers for Telegram's HTML parse mode."""

from __future__ import annotations

import html
from typing import Any


def escape_html(value: Any) -> str:
    """Escape ``&``, ``<`` and ``>``; Telegram does not require quote escaping."""
    if value is None:
        return ""
    return html.escape(str(value), quote=False)


def bold(text: str) -> str:
    return f"<b>{text}</b>"


def code(text: str) -> str:
    return f"<code>{text}</code>"


def italic(text: str) -> str:
    return f"<i>{text}</i>"


__all__ = ["bold", "code", "escape_html", "italic"]
