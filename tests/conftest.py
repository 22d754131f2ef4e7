from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from core.settings import BotSettings
from services.lookup_errors import TelegramApiError
from services.reply_templates import OutboundMessage
from services.user_store import UserStore

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Wall clock that only moves when a test advances it."""

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 1000.0

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class RecordingTransport:
    """Captures outbound Telegram calls instead of sending them."""

    def __init__(self, *, fail_sends_to: Optional[set] = None) -> None:
        self.sent: List[OutboundMessage] = []
        self.edited: List[Dict[str, Any]] = []
        self.deleted: List[Dict[str, Any]] = []
        self.answered: List[str] = []
        self.fail_sends_to = fail_sends_to or set()
        self._next_message_id = 100

    async def send_message(self, message: OutboundMessage) -> Dict[str, Any]:
        if message.chat_id in self.fail_sends_to:
            raise TelegramApiError("sendMessage", "Forbidden: bot was blocked by the user", status_code=403)
        self.sent.append(message)
        self._next_message_id += 1
        return {"message_id": self._next_message_id, "chat": {"id": message.chat_id}}

    async def edit_message_text(self, message: OutboundMessage, *, message_id: int) -> Dict[str, Any]:
        self.edited.append({"message": message, "message_id": message_id})
        return {"message_id": message_id}

    async def delete_message(self, chat_id: str, message_id: int) -> bool:
        self.deleted.append({"chat_id": chat_id, "message_id": message_id})
        return True

    async def answer_callback_query(self, callback_query_id: str) -> bool:
        self.answered.append(callback_query_id)
        return True

    def texts(self) -> List[str]:
        return [message.text for message in self.sent]


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture()
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "users.json"


@pytest.fixture()
def user_store(store_path: Path, clock: FixedClock) -> UserStore:
    return UserStore(store_path, clock=clock)


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def bot_settings(store_path: Path) -> Callable[..., BotSettings]:
    """Return a factory building settings rooted at the temporary store path."""

    def _factory(**overrides: Any) -> BotSettings:
        values: Dict[str, Any] = {
            "bot_token": "123:test-token",
            "webhook_url": None,
            "admin_chat_id": "999",
            "admin_username": "lookup_admin",
            "lookup_api_base_url": "https://lookup.test/INFO.php",
            "lookup_api_key": "test-key",
            "lookup_timeout_seconds": 15.0,
            "rate_limit_ms": 2000,
            "user_store_path": store_path,
            "degrade_on_store_error": False,
            "telegram_api_base_url": "https://telegram.test",
            "telegram_poll_timeout": 0,
        }
        values.update(overrides)
        return BotSettings(**values)

    return _factory


@pytest.fixture()
def lookup_api() -> Callable[..., httpx.AsyncClient]:
    """Return a factory for an ``AsyncClient`` answering every lookup with a canned response."""

    def _factory(
        payload: Any = None,
        *,
        status_code: int = 200,
        text: Optional[str] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
        calls: Optional[List[httpx.Request]] = None,
    ) -> httpx.AsyncClient:
        def _respond(request: httpx.Request) -> httpx.Response:
            if calls is not None:
                calls.append(request)
            if handler is not None:
                return handler(request)
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=payload)

        return httpx.AsyncClient(transport=httpx.MockTransport(_respond))

    return _factory
