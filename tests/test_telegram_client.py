from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List

import httpx
import pytest

from services.lookup_errors import TelegramApiError
from services.reply_templates import InlineButton, OutboundMessage
from services.telegram_client import TelegramClient


def _client(responses: List[Dict[str, Any]], seen: List[httpx.Request], *, status_code: int = 200) -> TelegramClient:
    def _respond(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, json=responses.pop(0))

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_respond))
    return TelegramClient("123:abc", base_url="https://telegram.test/", http_client=http_client)


def test_send_message_posts_html_payload_with_keyboard() -> None:
    seen: List[httpx.Request] = []
    client = _client([{"ok": True, "result": {"message_id": 5}}], seen)
    message = OutboundMessage(
        chat_id="42",
        text="<b>hi</b>",
        buttons=[[InlineButton(label="Check", callback_data="check_subscription")]],
    )

    result = asyncio.run(client.send_message(message))

    assert result == {"message_id": 5}
    assert seen[0].url.host == "telegram.test"
    assert seen[0].url.path.endswith("/sendMessage")
    body = json.loads(seen[0].content)
    assert body["chat_id"] == "42"
    assert body["parse_mode"] == "HTML"
    assert body["reply_markup"] == {
        "inline_keyboard": [[{"text": "Check", "callback_data": "check_subscription"}]]
    }


def test_plain_messages_omit_parse_mode_and_markup() -> None:
    seen: List[httpx.Request] = []
    client = _client([{"ok": True, "result": {"message_id": 6}}], seen)

    asyncio.run(client.send_message(OutboundMessage(chat_id="1", text="plain", parse_mode=None)))

    body = json.loads(seen[0].content)
    assert "parse_mode" not in body
    assert "reply_markup" not in body


def test_api_rejection_raises() -> None:
    seen: List[httpx.Request] = []
    client = _client([{"ok": False, "description": "Forbidden: bot was blocked"}], seen, status_code=403)

    with pytest.raises(TelegramApiError) as excinfo:
        asyncio.run(client.delete_message("1", 10))

    assert excinfo.value.status_code == 403
    assert excinfo.value.method == "deleteMessage"


def test_transport_errors_raise_telegram_api_error() -> None:
    def _raise(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    client = TelegramClient(
        "123:abc",
        base_url="https://telegram.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(_raise)),
    )

    with pytest.raises(TelegramApiError):
        asyncio.run(client.answer_callback_query("cb-1"))


def test_get_updates_sends_offset() -> None:
    seen: List[httpx.Request] = []
    client = _client([{"ok": True, "result": [{"update_id": 7}]}], seen)

    updates = asyncio.run(client.get_updates(offset=7, timeout=0))

    assert updates == [{"update_id": 7}]
    body = json.loads(seen[0].content)
    assert body["offset"] == 7
    assert body["allowed_updates"] == ["message", "callback_query"]


def test_missing_token_is_rejected() -> None:
    with pytest.raises(ValueError):
        TelegramClient("")
