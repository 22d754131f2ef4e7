"""JSON-document store for per-user entitlement and usage records.

The whole document is loaded, mutated and written back on every operation.
The on-disk layout keeps the field names of the legacy bot so an existing
``users.json`` keeps working::

    {"users": {"<chat id>": {"chatId": ..., "freeSearchesUsed": 0, ...}},
     "subscriptions": {}}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from core.logging import get_logger
from services.lookup_errors import StoreUnavailableError

logger = get_logger(__name__)

Clock = Callable[[], datetime]

FREE_TRIAL_ALLOWANCE = 1

# Python attribute -> persisted document key.
_FIELD_KEYS: Dict[str, str] = {
    "display_name": "firstName",
    "handle": "username",
    "joined_at": "joinDate",
    "free_trials_used": "freeSearchesUsed",
    "total_lookups": "totalSearches",
    "subscription_active": "isSubscribed",
    "subscription_expires_at": "subscriptionExpiry",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (``Z`` suffix accepted); naive values are UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning("Ignoring unparseable timestamp %r in user store.", value)
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _non_negative_int(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class UserRecord:
    """Entitlement and usage state for one chat user."""

    id: str
    display_name: str = ""
    handle: str = ""
    joined_at: datetime = field(default_factory=utc_now)
    free_trials_used: int = 0
    total_lookups: int = 0
    subscription_active: bool = False
    subscription_expires_at: Optional[datetime] = None

    @property
    def free_trials_remaining(self) -> int:
        return max(FREE_TRIAL_ALLOWANCE - self.free_trials_used, 0)

    def to_document(self) -> Dict[str, Any]:
        return {
            "chatId": self.id,
            "username": self.handle,
            "firstName": self.display_name,
            "joinDate": format_timestamp(self.joined_at),
            "freeSearchesUsed": self.free_trials_used,
            "totalSearches": self.total_lookups,
            "isSubscribed": self.subscription_active,
            "subscriptionExpiry": format_timestamp(self.subscription_expires_at),
        }

    @classmethod
    def from_document(cls, user_id: str, payload: Mapping[str, Any]) -> "UserRecord":
        joined_at = parse_timestamp(payload.get("joinDate")) or utc_now()
        return cls(
            id=str(user_id),
            display_name=str(payload.get("firstName") or ""),
            handle=str(payload.get("username") or ""),
            joined_at=joined_at,
            free_trials_used=_non_negative_int(payload.get("freeSearchesUsed")),
            total_lookups=_non_negative_int(payload.get("totalSearches")),
            subscription_active=bool(payload.get("isSubscribed")),
            subscription_expires_at=parse_timestamp(payload.get("subscriptionExpiry")),
        )


class RecordStore(Protocol):
    """Keyed user record storage consumed by the entitlement service and pipeline."""

    def get(self, user_id: Any) -> UserRecord:
        ...

    def update(self, user_id: Any, **fields: Any) -> bool:
        ...

    def list_all(self) -> List[UserRecord]:
        ...


def _empty_document() -> Dict[str, Any]:
    return {"users": {}, "subscriptions": {}}


class UserStore:
    """Persist ``UserRecord`` entries in a single JSON document."""

    def __init__(
        self,
        path: Path,
        *,
        degrade_on_error: bool = False,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._path = Path(path)
        self._degrade_on_error = degrade_on_error
        self._clock = clock or utc_now
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Document I/O
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Write an empty document when none exists yet."""
        with self._lock:
            if self._path.exists():
                return
            self._write_document(_empty_document())
            self._logger.info("Created user store at %s", self._path)

    def _handle_load_failure(self, exc: Exception) -> Dict[str, Any]:
        if self._degrade_on_error:
            self._logger.warning(
                "User store %s is unreadable (%s); serving an EMPTY store. "
                "All entitlement state is reset until the file is repaired.",
                self._path,
                exc,
            )
            return _empty_document()
        self._logger.error("User store %s is unreadable: %s", self._path, exc)
        raise StoreUnavailableError(f"User store is unreadable: {exc}", path=str(self._path)) from exc

    def _read_document(self) -> Dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _empty_document()
        except OSError as exc:
            return self._handle_load_failure(exc)

        try:
            payload = json.loads(raw)
            if not isinstance(payload, dict):
                raise ValueError("root is not an object")
            users = payload.setdefault("users", {})
            if not isinstance(users, dict):
                raise ValueError("'users' is not an object")
            if not isinstance(payload.setdefault("subscriptions", {}), dict):
                raise ValueError("'subscriptions' is not an object")
        except (json.JSONDecodeError, ValueError) as exc:
            return self._handle_load_failure(exc)
        return payload

    def _write_document(self, payload: Mapping[str, Any]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", dir=str(self._path.parent))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(payload, handle, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            self._logger.error("Failed to save user store %s: %s", self._path, exc)
            raise StoreUnavailableError(f"User store could not be saved: {exc}", path=str(self._path)) from exc

    def ping(self) -> Tuple[bool, Optional[str]]:
        """Return whether the backing document can be read, ignoring degrade mode."""
        try:
            raw = self._path.read_text(encoding="utf-8")
            json.loads(raw)
        except FileNotFoundError:
            return True, None
        except (OSError, ValueError) as exc:
            return False, str(exc)
        return True, None

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    def get(self, user_id: Any) -> UserRecord:
        """Return the record for ``user_id``, creating and persisting it on first sight."""
        key = str(user_id)
        with self._lock:
            document = self._read_document()
            existing = document["users"].get(key)
            if isinstance(existing, Mapping):
                return UserRecord.from_document(key, existing)

            record = UserRecord(id=key, joined_at=self._clock())
            document["users"][key] = record.to_document()
            self._write_document(document)
            self._logger.info("New user registered: %s", key)
            return record

    def find(self, user_id: Any) -> Optional[UserRecord]:
        """Return the record for ``user_id`` without creating one."""
        key = str(user_id)
        with self._lock:
            existing = self._read_document()["users"].get(key)
        if not isinstance(existing, Mapping):
            return None
        return UserRecord.from_document(key, existing)

    def update(self, user_id: Any, **fields: Any) -> bool:
        """Overwrite ``fields`` on an existing record. Returns False when the user is unknown."""
        unknown = sorted(set(fields) - set(_FIELD_KEYS))
        if unknown:
            raise ValueError(f"Unknown user record fields: {', '.join(unknown)}")

        key = str(user_id)
        with self._lock:
            document = self._read_document()
            existing = document["users"].get(key)
            if not isinstance(existing, Mapping):
                self._logger.debug("Skipping update for unknown user %s", key)
                return False
            record = replace(UserRecord.from_document(key, existing), **fields)
            merged = dict(existing)
            merged.update(record.to_document())
            document["users"][key] = merged
            self._write_document(document)
            return True

    def list_all(self) -> List[UserRecord]:
        with self._lock:
            users = self._read_document()["users"]
        return [
            UserRecord.from_document(key, payload)
            for key, payload in users.items()
            if isinstance(payload, Mapping)
        ]


__all__ = [
    "FREE_TRIAL_ALLOWANCE",
    "RecordStore",
    "UserRecord",
    "UserStore",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
