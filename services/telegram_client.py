"""Minimal async Telegram Bot API client."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from core.settings import DEFAULT_TELEGRAM_API_BASE_URL
from services.lookup_errors import TelegramApiError
from services.reply_templates import OutboundMessage

logger = logging.getLogger(__name__)


class TelegramClient:
    """Call Bot API methods over HTTPS and unwrap the ``{"ok", "result"}`` envelope."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_TELEGRAM_API_BASE_URL,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not token:
            raise ValueError("BOT_TOKEN is required for the Telegram client.")
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def call(self, method: str, payload: Optional[Dict[str, Any]] = None, *, timeout: Optional[float] = None) -> Any:
        url = f"{self._base_url}/bot{self._token}/{method}"
        client = await self._client()
        try:
            response = await client.post(url, json=payload or {}, timeout=timeout or self._timeout)
        except httpx.HTTPError as exc:
            raise TelegramApiError(method, exc.__class__.__name__) from exc

        try:
            body = response.json()
        except ValueError:
            body = {"ok": False, "description": response.text[:200]}
        if response.status_code >= 400 or not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            logger.warning("Telegram %s failed (%s): %s", method, response.status_code, description)
            raise TelegramApiError(method, description, status_code=response.status_code)
        return body.get("result")

    @staticmethod
    def _message_payload(message: OutboundMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"chat_id": message.chat_id, "text": message.text}
        if message.parse_mode:
            payload["parse_mode"] = message.parse_mode
        markup = message.reply_markup()
        if markup:
            payload["reply_markup"] = markup
        return payload

    async def send_message(self, message: OutboundMessage) -> Dict[str, Any]:
        return await self.call("sendMessage", self._message_payload(message))

    async def edit_message_text(self, message: OutboundMessage, *, message_id: int) -> Any:
        payload = self._message_payload(message)
        payload["message_id"] = message_id
        return await self.call("editMessageText", payload)

    async def delete_message(self, chat_id: str, message_id: int) -> bool:
        return bool(await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id}))

    async def answer_callback_query(self, callback_query_id: str) -> bool:
        return bool(await self.call("answerCallbackQuery", {"callback_query_id": callback_query_id}))

    async def set_webhook(self, url: str) -> bool:
        return bool(
            await self.call("setWebhook", {"url": url, "allowed_updates": ["message", "callback_query"]})
        )

    async def delete_webhook(self) -> bool:
        return bool(await self.call("deleteWebhook"))

    async def get_updates(self, *, offset: Optional[int] = None, timeout: int = 10) -> List[Dict[str, Any]]:
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ["message", "callback_query"]}
        if offset is not None:
            payload["offset"] = offset
        result = await self.call("getUpdates", payload, timeout=timeout + self._timeout)
        return list(result or [])


__all__ = ["TelegramClient"]
