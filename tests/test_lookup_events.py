from __future__ import annotations

import pytest

from services.lookup_errors import QueryValidationError
from services.lookup_events import (
    from_bare_text,
    from_info_command,
    is_valid_mobile,
    looks_like_mobile,
    validate_query_key,
)


@pytest.mark.parametrize("value", ["9876543210", "6000000000"])
def test_valid_mobile_numbers(value: str) -> None:
    assert is_valid_mobile(value)


@pytest.mark.parametrize("value", ["5876543210", "987654321", "98765432100", "", None])
def test_invalid_mobile_numbers(value) -> None:
    assert not is_valid_mobile(value)


def test_validate_query_key_strips_formatting() -> None:
    assert validate_query_key("+98765 43210") == "9876543210"
    assert validate_query_key("(987) 654-3210") == "9876543210"


def test_validate_query_key_rejects_country_code() -> None:
    with pytest.raises(QueryValidationError) as excinfo:
        validate_query_key("+91 9876543210")
    assert excinfo.value.raw_value == "+91 9876543210"


def test_info_command_builds_request() -> None:
    request = from_info_command(42, " 98765-43210 ", display_name="Ravi", handle="ravi")

    assert request.user_id == "42"
    assert request.query_key == "9876543210"
    assert request.display_name == "Ravi"


def test_bare_text_must_be_exactly_a_number() -> None:
    assert from_bare_text(42, " 9876543210 ").query_key == "9876543210"
    assert from_bare_text(42, "98765 43210") is None
    assert from_bare_text(42, "call 9876543210") is None
    assert from_bare_text(42, None) is None


def test_looks_like_mobile_ignores_separators() -> None:
    assert looks_like_mobile("98765 43210")
    assert not looks_like_mobile("hello")
