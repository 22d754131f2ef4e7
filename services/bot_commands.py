"""Route Telegram updates to user commands, admin commands and the lookup pipeline."""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional, Protocol, Tuple

from services import reply_templates as replies
from services.entitlement_service import MAX_SUBSCRIPTION_DAYS, EntitlementService
from services.lookup_context import LookupContext
from services.lookup_errors import QueryValidationError, StoreUnavailableError, TelegramApiError
from services.lookup_events import from_bare_text, from_info_command, looks_like_mobile
from services.reply_templates import OutboundMessage
from services.user_store import UserRecord

logger = logging.getLogger(__name__)

_COMMAND_PATTERN = re.compile(r"^/(?P<name>[A-Za-z_]+)(?:@\w+)?(?:\s+(?P<args>.*))?$", re.DOTALL)
_ADD_USER_ARGS = re.compile(r"^(\d+)\s+(\d+)$")
_USER_ID_ARG = re.compile(r"^(\d+)$")

_ADMIN_COMMANDS = {"admin", "adduser", "removeuser", "userinfo", "usrinfo"}


class ReplyTransport(Protocol):
    async def send_message(self, message: OutboundMessage) -> Any:
        ...

    async def edit_message_text(self, message: OutboundMessage, *, message_id: int) -> Any:
        ...

    async def delete_message(self, chat_id: str, message_id: int) -> Any:
        ...

    async def answer_callback_query(self, callback_query_id: str) -> Any:
        ...


class LoadingIndicator:
    """Post a "fetching" message while a lookup runs and delete it afterwards."""

    def __init__(self, transport: ReplyTransport) -> None:
        self._transport = transport

    async def started(self, chat_id: str) -> Optional[int]:
        try:
            sent = await self._transport.send_message(replies.loading_message(chat_id))
        except TelegramApiError as exc:
            logger.warning("Failed to send loading message to %s: %s", chat_id, exc)
            return None
        return (sent or {}).get("message_id")

    async def finished(self, chat_id: str, token: Optional[int]) -> None:
        if token is None:
            return
        try:
            await self._transport.delete_message(chat_id, token)
        except TelegramApiError as exc:
            logger.warning("Failed to delete loading message for %s: %s", chat_id, exc)


def parse_command(text: str) -> Optional[Tuple[str, str]]:
    """Split ``/name@bot args`` into ``(name, args)``; ``None`` when ``text`` is not a command."""
    match = _COMMAND_PATTERN.match(text.strip())
    if not match:
        return None
    return match.group("name").lower(), (match.group("args") or "").strip()


class BotCommandRouter:
    """Handle one Telegram update at a time. Every update ends in a reply or silence."""

    def __init__(self, context: LookupContext, transport: ReplyTransport) -> None:
        self._context = context
        self._transport = transport
        self._store = context.store
        self._entitlements: EntitlementService = context.entitlements
        self._admin = context.admin
        self._pipeline = context.build_pipeline(progress=LoadingIndicator(transport))

    async def dispatch_update(self, update: Mapping[str, Any]) -> None:
        chat_id = _update_chat_id(update)
        try:
            if isinstance(update.get("callback_query"), Mapping):
                await self._handle_callback(update["callback_query"])
            elif isinstance(update.get("message"), Mapping):
                await self._handle_message(update["message"])
        except StoreUnavailableError as exc:
            logger.error("User store unavailable while handling update %s: %s", update.get("update_id"), exc)
            if chat_id:
                await self._safe_send(replies.service_unavailable_message(chat_id))
        except TelegramApiError as exc:
            logger.warning("Telegram delivery failed for update %s: %s", update.get("update_id"), exc)
        except Exception:
            logger.exception("Unhandled error while handling update %s", update.get("update_id"))
            if chat_id:
                await self._safe_send(replies.critical_error_message(chat_id))

    async def _safe_send(self, message: OutboundMessage) -> None:
        try:
            await self._transport.send_message(message)
        except TelegramApiError as exc:
            logger.warning("Failed to deliver message to %s: %s", message.chat_id, exc)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _handle_message(self, message: Mapping[str, Any]) -> None:
        text = message.get("text")
        chat = message.get("chat")
        if not isinstance(text, str) or not isinstance(chat, Mapping) or "id" not in chat:
            return
        chat_id = str(chat["id"])
        sender: Mapping[str, Any] = message.get("from") or {}
        display_name = str(sender.get("first_name") or "")
        handle = str(sender.get("username") or "")

        command = parse_command(text)
        if command is None:
            request = from_bare_text(chat_id, text, display_name=display_name, handle=handle)
            if request is not None:
                await self._send_optional(await self._pipeline.handle_lookup(request))
            elif not looks_like_mobile(text):
                await self._transport.send_message(replies.unknown_input_message(chat_id))
            return

        name, args = command
        if name in _ADMIN_COMMANDS:
            await self._handle_admin_command(chat_id, name, args)
            return

        if name == "start":
            record = self._register_profile(chat_id, display_name, handle)
            await self._transport.send_message(replies.welcome_message(chat_id, record, self._admin))
        elif name == "help":
            await self._transport.send_message(
                replies.help_message(
                    chat_id,
                    admin=self._admin,
                    api_base_url=self._context.lookup_client.base_url,
                )
            )
        elif name == "subscription":
            record = self._entitlements.refresh(chat_id)
            await self._transport.send_message(replies.subscription_status_message(chat_id, record, self._admin))
        elif name == "info":
            try:
                request = from_info_command(chat_id, args, display_name=display_name, handle=handle)
            except QueryValidationError:
                await self._transport.send_message(replies.invalid_number_message(chat_id))
                return
            await self._send_optional(await self._pipeline.handle_lookup(request))
        else:
            logger.debug("Ignoring unsupported command /%s from %s", name, chat_id)

    async def _send_optional(self, reply: Optional[OutboundMessage]) -> None:
        if reply is not None:
            await self._transport.send_message(reply)

    def _register_profile(self, chat_id: str, display_name: str, handle: str) -> UserRecord:
        record = self._store.get(chat_id)
        if (display_name, handle) != (record.display_name, record.handle):
            self._store.update(chat_id, display_name=display_name, handle=handle)
            record.display_name = display_name
            record.handle = handle
        return record

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    async def _handle_admin_command(self, chat_id: str, name: str, args: str) -> None:
        if chat_id != self._admin.chat_id:
            logger.warning("Rejected admin command /%s from %s", name, chat_id)
            await self._transport.send_message(replies.unauthorized_message(chat_id))
            return

        if name == "admin":
            stats = self._entitlements.summarize_users()
            await self._transport.send_message(replies.admin_panel_message(chat_id, stats))
            return

        if name == "adduser":
            match = _ADD_USER_ARGS.match(args)
            days = int(match.group(2)) if match else 0
            if not match or not 1 <= days <= MAX_SUBSCRIPTION_DAYS:
                await self._transport.send_message(_usage(chat_id, "/adduser <user_id> <days>"))
                return
            target = match.group(1)
            record = self._entitlements.grant_subscription(target, days)
            await self._transport.send_message(replies.subscription_granted_ack(chat_id, target, days))
            await self._safe_send(replies.subscription_activated_notice(record))
            return

        match = _USER_ID_ARG.match(args)
        if not match:
            await self._transport.send_message(_usage(chat_id, f"/{name} <user_id>"))
            return
        target = match.group(1)
        if name == "removeuser":
            found = self._entitlements.revoke_subscription(target)
            await self._transport.send_message(replies.subscription_revoked_ack(chat_id, target, found=found))
        else:
            record = self._entitlements.get_user_snapshot(target)
            await self._transport.send_message(replies.user_info_message(chat_id, record))

    # ------------------------------------------------------------------
    # Callback queries
    # ------------------------------------------------------------------

    async def _handle_callback(self, callback: Mapping[str, Any]) -> None:
        message = callback.get("message")
        message = message if isinstance(message, Mapping) else {}
        chat = message.get("chat")
        chat = chat if isinstance(chat, Mapping) else {}
        data = callback.get("data")
        try:
            if "id" in chat and "message_id" in message:
                chat_id = str(chat["id"])
                reply = self._callback_reply(chat_id, data)
                if reply is not None:
                    await self._transport.edit_message_text(reply, message_id=message["message_id"])
        finally:
            if callback.get("id"):
                try:
                    await self._transport.answer_callback_query(str(callback["id"]))
                except TelegramApiError as exc:
                    logger.debug("answerCallbackQuery failed: %s", exc)

    def _callback_reply(self, chat_id: str, data: Any) -> Optional[OutboundMessage]:
        if data == replies.CALLBACK_GET_SUBSCRIPTION:
            return replies.subscription_plans_message(chat_id, self._admin)
        if data == replies.CALLBACK_CHECK_SUBSCRIPTION:
            return replies.subscription_check_message(chat_id, self._entitlements.refresh(chat_id))
        if data == replies.CALLBACK_BACK_TO_START:
            return replies.welcome_message(chat_id, self._store.get(chat_id), self._admin)
        logger.debug("Ignoring unknown callback data %r from %s", data, chat_id)
        return None


def _usage(chat_id: str, syntax: str) -> OutboundMessage:
    return OutboundMessage(chat_id=chat_id, text=f"Usage: {syntax}", parse_mode=None)


def _update_chat_id(update: Mapping[str, Any]) -> Optional[str]:
    container: Any = {}
    if isinstance(update.get("message"), Mapping):
        container = update["message"]
    elif isinstance(update.get("callback_query"), Mapping):
        container = update["callback_query"].get("message")
    chat = container.get("chat") if isinstance(container, Mapping) else None
    if not isinstance(chat, Mapping) or "id" not in chat:
        return None
    return str(chat["id"])


__all__ = ["BotCommandRouter", "LoadingIndicator", "ReplyTransport", "parse_command"]
