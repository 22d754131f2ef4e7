"""Lookup request orchestration: rate limit, entitlement, fetch, usage commit, reply."""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Any, Optional, Protocol

from services.entitlement_service import EntitlementService, SearchReason
from services.lookup_client import LookupClient
from services.lookup_errors import StoreUnavailableError
from services.lookup_events import LookupRequested
from services.lookup_formatter import format_lookup_payload
from services.lookup_rate_limiter import LookupRateLimiter
from services.reply_templates import (
    AdminContact,
    OutboundMessage,
    critical_error_message,
    limit_reached_message,
    lookup_error_message,
    lookup_reply,
    service_unavailable_message,
)
from services.user_store import RecordStore

logger = logging.getLogger(__name__)


class LookupProgress(Protocol):
    """Transport hook shown while the external lookup is in flight."""

    async def started(self, chat_id: str) -> Any:
        ...

    async def finished(self, chat_id: str, token: Any) -> None:
        ...


class LookupPipeline:
    """Run one lookup request end to end and return the reply (``None`` = silent drop).

    Requests for the same user are serialized so the usage commit is never
    interleaved with another lookup for that user.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        rate_limiter: LookupRateLimiter,
        entitlements: EntitlementService,
        lookup_client: LookupClient,
        admin: AdminContact,
        progress: Optional[LookupProgress] = None,
    ) -> None:
        self._store = store
        self._rate_limiter = rate_limiter
        self._entitlements = entitlements
        self._lookup_client = lookup_client
        self._admin = admin
        self._progress = progress
        self._user_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    async def handle_lookup(self, request: LookupRequested) -> Optional[OutboundMessage]:
        user_id = request.user_id
        if not self._rate_limiter.allow(user_id):
            return None

        lock = self._lock_for(user_id)
        async with lock:
            try:
                return await self._run(request)
            except StoreUnavailableError as exc:
                logger.error("User store unavailable while serving %s: %s", user_id, exc)
                return service_unavailable_message(user_id)
            except Exception:
                logger.exception("Lookup pipeline failed for user %s", user_id)
                return critical_error_message(user_id)

    def _refresh_profile(self, request: LookupRequested) -> None:
        record = self._store.get(request.user_id)
        changes = {}
        if request.display_name and request.display_name != record.display_name:
            changes["display_name"] = request.display_name
        if request.handle and request.handle != record.handle:
            changes["handle"] = request.handle
        if changes:
            self._store.update(request.user_id, **changes)

    async def _run(self, request: LookupRequested) -> OutboundMessage:
        user_id = request.user_id
        self._refresh_profile(request)

        decision = self._entitlements.can_search(user_id)
        if not decision.allowed:
            logger.info("Lookup denied for user %s: %s", user_id, decision.reason.value)
            return limit_reached_message(user_id, self._admin)

        token = await self._progress.started(user_id) if self._progress else None
        try:
            result = await self._lookup_client.fetch(request.query_key)
        finally:
            if self._progress:
                await self._progress.finished(user_id, token)

        if not result.ok:
            logger.info("Lookup for user %s failed: %s", user_id, result.outcome.value)
            return lookup_error_message(user_id, result)

        record = self._store.get(user_id)
        used_trial = decision.reason is SearchReason.FREE_TRIAL
        updates = {"total_lookups": record.total_lookups + 1}
        if used_trial:
            updates["free_trials_used"] = record.free_trials_used + 1
        self._store.update(user_id, **updates)
        logger.info("Lookup served for user %s (%s)", user_id, decision.reason.value)

        formatted = format_lookup_payload(result.payload)
        return lookup_reply(
            user_id,
            formatted,
            free_trial_consumed=used_trial and record.free_trials_used == 0,
            admin=self._admin,
        )


__all__ = ["LookupPipeline", "LookupProgress"]
