"""Normalize inbound chat input into lookup requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

from services.lookup_errors import QueryValidationError

MOBILE_PATTERN = re.compile(r"^[6-9]\d{9}$")
_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class LookupRequested:
    """A validated lookup for ``query_key`` issued by chat user ``user_id``."""

    user_id: str
    query_key: str
    display_name: str = ""
    handle: str = ""


def is_valid_mobile(value: Optional[str]) -> bool:
    return bool(value) and MOBILE_PATTERN.match(value) is not None


def validate_query_key(raw_value: Any) -> str:
    """Strip non-digits from ``raw_value`` and require a 10-digit number starting with 6-9."""
    text = "" if raw_value is None else str(raw_value)
    digits = _NON_DIGITS.sub("", text)
    if not is_valid_mobile(digits):
        raise QueryValidationError(text)
    return digits


def from_info_command(
    user_id: Any,
    argument: str,
    *,
    display_name: str = "",
    handle: str = "",
) -> LookupRequested:
    """Build a request from ``/info <number>``; formatting characters in the number are ignored."""
    return LookupRequested(
        user_id=str(user_id),
        query_key=validate_query_key(argument),
        display_name=display_name,
        handle=handle,
    )


def from_bare_text(
    user_id: Any,
    text: Optional[str],
    *,
    display_name: str = "",
    handle: str = "",
) -> Optional[LookupRequested]:
    """Build a request when the whole message is a mobile number, else ``None``."""
    candidate = (text or "").strip()
    if not is_valid_mobile(candidate):
        return None
    return LookupRequested(
        user_id=str(user_id),
        query_key=candidate,
        display_name=display_name,
        handle=handle,
    )


def looks_like_mobile(text: Optional[str]) -> bool:
    """True when the digits in ``text`` form a valid mobile number."""
    return is_valid_mobile(_NON_DIGITS.sub("", (text or "").strip()))


__all__ = [
    "LookupRequested",
    "MOBILE_PATTERN",
    "from_bare_text",
    "from_info_command",
    "is_valid_mobile",
    "looks_like_mobile",
    "validate_query_key",
]
