"""Exception types shared by the lookup bot services."""

from __future__ import annotations

from typing import Optional


class LookupServiceError(RuntimeError):
    """Base class for failures raised by the lookup bot services."""


class StoreUnavailableError(LookupServiceError):
    """Raised when the user record document cannot be read or written."""

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class QueryValidationError(ValueError):
    """Raised when a lookup query key does not match the accepted mobile format."""

    def __init__(self, raw_value: str) -> None:
        super().__init__(f"Invalid mobile number: {raw_value!r}")
        self.raw_value = raw_value


class TelegramApiError(LookupServiceError):
    """Raised when the Telegram Bot API rejects a call or cannot be reached."""

    def __init__(self, method: str, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(f"{method} failed: {message}")
        self.method = method
        self.status_code = status_code


__all__ = [
    "LookupServiceError",
    "QueryValidationError",
    "StoreUnavailableError",
    "TelegramApiError",
]
