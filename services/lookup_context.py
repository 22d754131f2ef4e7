"""Explicit wiring of the lookup services for one process."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from core.settings import BotSettings
from services.entitlement_service import EntitlementService
from services.lookup_client import LookupClient
from services.lookup_pipeline import LookupPipeline, LookupProgress
from services.lookup_rate_limiter import LookupRateLimiter
from services.reply_templates import AdminContact
from services.user_store import Clock, UserStore


@dataclass
class LookupContext:
    """Owns the store, rate limiter and clients shared by every request."""

    settings: BotSettings
    store: UserStore
    rate_limiter: LookupRateLimiter
    entitlements: EntitlementService
    lookup_client: LookupClient
    admin: AdminContact

    @classmethod
    def from_settings(
        cls,
        settings: BotSettings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Clock] = None,
        monotonic: Optional[Callable[[], float]] = None,
    ) -> "LookupContext":
        store = UserStore(
            settings.user_store_path,
            degrade_on_error=settings.degrade_on_store_error,
            clock=clock,
        )
        return cls(
            settings=settings,
            store=store,
            rate_limiter=LookupRateLimiter(settings.rate_limit_ms, clock=monotonic),
            entitlements=EntitlementService(store, clock=clock),
            lookup_client=LookupClient(
                settings.lookup_api_base_url,
                settings.lookup_api_key,
                timeout=settings.lookup_timeout_seconds,
                http_client=http_client,
            ),
            admin=AdminContact(chat_id=settings.admin_chat_id, username=settings.admin_username),
        )

    def build_pipeline(self, progress: Optional[LookupProgress] = None) -> LookupPipeline:
        return LookupPipeline(
            store=self.store,
            rate_limiter=self.rate_limiter,
            entitlements=self.entitlements,
            lookup_client=self.lookup_client,
            admin=self.admin,
            progress=progress,
        )


__all__ = ["LookupContext"]
