"""Tests for Telegram update routing."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import httpx
import pytest

from services.bot_commands import BotCommandRouter, parse_command
from services.lookup_context import LookupContext

ADMIN_ID = "999"
PAYLOAD = {"name": "A", "mobile": "9876543210"}


def _message(text: str, chat_id: int = 42, *, first_name: str = "Ravi", username: str = "ravi") -> Dict[str, Any]:
    return {
        "update_id": 1,
        "message": {
            "message_id": 10,
            "chat": {"id": chat_id, "type": "private"},
            "from": {"id": chat_id, "first_name": first_name, "username": username},
            "text": text,
        },
    }


def _callback(data: str, chat_id: int = 42) -> Dict[str, Any]:
    return {
        "update_id": 2,
        "callback_query": {
            "id": "cb-1",
            "data": data,
            "message": {"message_id": 55, "chat": {"id": chat_id}},
        },
    }


@pytest.fixture()
def api_calls() -> List[httpx.Request]:
    return []


@pytest.fixture()
def context(bot_settings, lookup_api, api_calls, clock, monotonic) -> LookupContext:
    return LookupContext.from_settings(
        bot_settings(admin_chat_id=ADMIN_ID),
        http_client=lookup_api(PAYLOAD, calls=api_calls),
        clock=clock,
        monotonic=monotonic,
    )


@pytest.fixture()
def router(context: LookupContext, transport) -> BotCommandRouter:
    return BotCommandRouter(context, transport)


def _dispatch(router: BotCommandRouter, update: Dict[str, Any]) -> None:
    asyncio.run(router.dispatch_update(update))


def test_parse_command() -> None:
    assert parse_command("/info 9876543210") == ("info", "9876543210")
    assert parse_command("/START@lookup_bot") == ("start", "")
    assert parse_command("9876543210") is None


def test_start_registers_user_and_sends_welcome(router, transport, context) -> None:
    _dispatch(router, _message("/start"))

    assert len(transport.sent) == 1
    welcome = transport.sent[0]
    assert "Welcome to Flipcart Info Bot!" in welcome.text
    assert "0/1 searches used" in welcome.text
    assert welcome.reply_markup()["inline_keyboard"][0][0]["callback_data"] == "get_subscription"
    record = context.store.get("42")
    assert record.display_name == "Ravi"
    assert record.handle == "ravi"


def test_info_and_bare_number_take_the_same_path(router, transport, api_calls, monotonic) -> None:
    _dispatch(router, _message("/info 98765-43210"))
    monotonic.advance(3)
    _dispatch(router, _message("9876543210", chat_id=43))

    assert [call.url.params["mobile"] for call in api_calls] == ["9876543210", "9876543210"]
    results = [message for message in transport.sent if "Flipcart Information" in message.text]
    assert [message.chat_id for message in results] == ["42", "43"]


def test_info_with_invalid_number_replies_with_format_help(router, transport, api_calls) -> None:
    _dispatch(router, _message("/info 12345"))
    _dispatch(router, _message("/info"))

    assert len(transport.sent) == 2
    assert all("Invalid mobile number format!" in text for text in transport.texts())
    assert api_calls == []


def test_unknown_text_gets_unknown_input_reply(router, transport) -> None:
    _dispatch(router, _message("hello there"))

    assert "Unknown command or invalid input" in transport.sent[0].text


def test_spaced_bare_number_is_ignored(router, transport, api_calls) -> None:
    _dispatch(router, _message("98765 43210"))

    assert transport.sent == []
    assert api_calls == []


def test_unhandled_commands_are_ignored(router, transport) -> None:
    _dispatch(router, _message("/settings"))

    assert transport.sent == []


def test_subscription_command_reports_status(router, transport, context) -> None:
    context.entitlements.grant_subscription("42", 30)

    _dispatch(router, _message("/subscription"))

    text = transport.sent[0].text
    assert "Active Subscriber" in text
    assert "2024-01-31" in text


def test_help_mentions_lookup_endpoint(router, transport) -> None:
    _dispatch(router, _message("/help"))

    assert "https://lookup.test/INFO.php" in transport.sent[0].text


def test_non_admin_cannot_run_admin_commands(router, transport, context) -> None:
    _dispatch(router, _message("/adduser 42 30"))

    assert transport.texts() == ["❌ Unauthorized access!"]
    assert context.store.find("42") is None


def test_admin_grants_subscription_and_user_is_notified(router, transport, context) -> None:
    _dispatch(router, _message("/adduser 42 30", chat_id=int(ADMIN_ID)))

    assert transport.sent[0].chat_id == ADMIN_ID
    assert transport.sent[0].text == "✅ Added 30 days subscription for user 42"
    assert transport.sent[1].chat_id == "42"
    assert "Subscription Activated!" in transport.sent[1].text
    assert "2024-01-31" in transport.sent[1].text
    assert context.store.get("42").subscription_active is True


def test_grant_is_kept_when_user_notification_fails(router, transport, context) -> None:
    transport.fail_sends_to = {"42"}

    _dispatch(router, _message("/adduser 42 7", chat_id=int(ADMIN_ID)))

    assert transport.texts() == ["✅ Added 7 days subscription for user 42"]
    assert context.store.get("42").subscription_active is True


@pytest.mark.parametrize("arguments", ["", "42", "42 zero", "42 0", "42 3651", "42 99999999"])
def test_adduser_usage(router, transport, context, arguments: str) -> None:
    _dispatch(router, _message(f"/adduser {arguments}".strip(), chat_id=int(ADMIN_ID)))

    assert transport.texts() == ["Usage: /adduser <user_id> <days>"]
    assert context.store.find("42") is None


def test_removeuser_reports_unknown_users(router, transport, context) -> None:
    _dispatch(router, _message("/removeuser 404", chat_id=int(ADMIN_ID)))

    assert transport.texts() == ["⚠️ User 404 not found"]
    assert context.store.find("404") is None


def test_removeuser_clears_subscription(router, transport, context) -> None:
    context.entitlements.grant_subscription("42", 30)

    _dispatch(router, _message("/removeuser 42", chat_id=int(ADMIN_ID)))

    assert transport.texts() == ["✅ Removed subscription for user 42"]
    assert context.store.get("42").subscription_active is False


def test_userinfo_alias_returns_snapshot(router, transport, context) -> None:
    context.store.get("42")
    context.store.update("42", display_name="<Ravi>")

    _dispatch(router, _message("/usrinfo 42", chat_id=int(ADMIN_ID)))

    text = transport.sent[0].text
    assert "User Information" in text
    assert "&lt;Ravi&gt;" in text


def test_admin_panel_shows_stats(router, transport, context) -> None:
    context.store.get("1")
    context.entitlements.grant_subscription("2", 30)

    _dispatch(router, _message("/admin", chat_id=int(ADMIN_ID)))

    text = transport.sent[0].text
    assert "Total Users: 2" in text
    assert "Subscribed Users: 1" in text
    assert "Free Users: 1" in text


def test_check_subscription_callback_edits_message(router, transport) -> None:
    _dispatch(router, _callback("check_subscription"))

    assert transport.sent == []
    assert len(transport.edited) == 1
    assert transport.edited[0]["message_id"] == 55
    assert "No Active Subscription" in transport.edited[0]["message"].text
    assert transport.answered == ["cb-1"]


def test_unknown_callback_is_still_answered(router, transport) -> None:
    _dispatch(router, _callback("something_else"))

    assert transport.edited == []
    assert transport.answered == ["cb-1"]


def test_back_to_start_callback_renders_welcome(router, transport) -> None:
    _dispatch(router, _callback("back_to_start"))

    assert "Welcome to Flipcart Info Bot!" in transport.edited[0]["message"].text


def test_unreadable_store_replies_service_unavailable(router, transport, store_path) -> None:
    store_path.write_text("{corrupt", encoding="utf-8")

    _dispatch(router, _message("/start"))

    assert "Service temporarily unavailable" in transport.sent[0].text


def test_adduser_accepts_the_longest_duration(router, transport, context) -> None:
    _dispatch(router, _message("/adduser 42 3650", chat_id=int(ADMIN_ID)))

    assert transport.sent[0].text == "✅ Added 3650 days subscription for user 42"
    assert context.store.get("42").subscription_active is True


def test_unexpected_handler_error_becomes_critical_reply(router, transport, context, monkeypatch) -> None:
    def _explode() -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr(context.entitlements, "summarize_users", _explode)

    _dispatch(router, _message("/admin", chat_id=int(ADMIN_ID)))

    assert len(transport.sent) == 1
    assert transport.sent[0].chat_id == ADMIN_ID
    assert "Critical Error!" in transport.sent[0].text


def test_malformed_update_is_dropped_silently(router, transport) -> None:
    _dispatch(router, {"update_id": 3, "callback_query": {"id": "cb-2", "message": "gone"}})
    _dispatch(router, {"update_id": 4, "message": {"chat": "oops", "text": "/start"}})

    assert transport.sent == []
    assert transport.answered == ["cb-2"]
