"""Free-trial and subscription entitlement checks for lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, List, Optional

from services import metrics
from services.user_store import FREE_TRIAL_ALLOWANCE, Clock, RecordStore, UserRecord, utc_now

logger = logging.getLogger(__name__)

MAX_SUBSCRIPTION_DAYS = 3650


class SearchReason(str, Enum):
    SUBSCRIBED = "subscribed"
    FREE_TRIAL = "free_trial"
    LIMIT_REACHED = "limit_reached"

    def __str__(self) -> str:  # pragma: no cover - convenience
        return self.value


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: SearchReason


@dataclass(frozen=True)
class UserStats:
    total: int
    subscribed: int

    @property
    def free(self) -> int:
        return self.total - self.subscribed


def subscription_is_current(record: UserRecord, now: datetime) -> bool:
    return bool(
        record.subscription_active
        and record.subscription_expires_at is not None
        and record.subscription_expires_at > now
    )


class EntitlementService:
    """Decide whether a user may run a lookup and apply admin subscription changes.

    Expired subscriptions are cleared lazily when ``can_search`` observes
    them; there is no background sweep.
    """

    def __init__(self, store: RecordStore, *, clock: Optional[Clock] = None) -> None:
        self._store = store
        self._clock = clock or utc_now

    def refresh(self, user_id: Any) -> UserRecord:
        """Load ``user_id`` and clear its subscription if it has lapsed."""
        record = self._store.get(user_id)
        if record.subscription_active and not subscription_is_current(record, self._clock()):
            logger.info("Subscription for user %s expired at %s", record.id, record.subscription_expires_at)
            self._store.update(record.id, subscription_active=False, subscription_expires_at=None)
            record.subscription_active = False
            record.subscription_expires_at = None
        return record

    def can_search(self, user_id: Any) -> EntitlementDecision:
        record = self.refresh(user_id)

        if record.subscription_active:
            return self._decide(True, SearchReason.SUBSCRIBED)

        if record.free_trials_used < FREE_TRIAL_ALLOWANCE:
            return self._decide(True, SearchReason.FREE_TRIAL)
        return self._decide(False, SearchReason.LIMIT_REACHED)

    @staticmethod
    def _decide(allowed: bool, reason: SearchReason) -> EntitlementDecision:
        metrics.record_entitlement(reason.value)
        return EntitlementDecision(allowed=allowed, reason=reason)

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def grant_subscription(self, user_id: Any, duration_days: int) -> UserRecord:
        """Activate a subscription ending ``duration_days`` from now (overwrites any previous one)."""
        if not 1 <= duration_days <= MAX_SUBSCRIPTION_DAYS:
            raise ValueError(f"duration_days must be between 1 and {MAX_SUBSCRIPTION_DAYS}")
        record = self._store.get(user_id)
        expires_at = self._clock() + timedelta(days=duration_days)
        self._store.update(record.id, subscription_active=True, subscription_expires_at=expires_at)
        logger.info("Granted %d day subscription to user %s (expires %s)", duration_days, record.id, expires_at)
        record.subscription_active = True
        record.subscription_expires_at = expires_at
        return record

    def revoke_subscription(self, user_id: Any) -> bool:
        """Clear the subscription of an existing user. Returns False for unknown users."""
        updated = self._store.update(user_id, subscription_active=False, subscription_expires_at=None)
        if updated:
            logger.info("Revoked subscription for user %s", user_id)
        return updated

    def get_user_snapshot(self, user_id: Any) -> UserRecord:
        return self._store.get(user_id)

    def list_all_users(self) -> List[UserRecord]:
        return self._store.list_all()

    def summarize_users(self) -> UserStats:
        users = self._store.list_all()
        subscribed = sum(1 for user in users if user.subscription_active)
        return UserStats(total=len(users), subscribed=subscribed)


__all__ = [
    "EntitlementDecision",
    "EntitlementService",
    "MAX_SUBSCRIPTION_DAYS",
    "SearchReason",
    "UserStats",
    "subscription_is_current",
]
