"""Schemas for the subscription admin API."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from services.entitlement_service import MAX_SUBSCRIPTION_DAYS
from services.user_store import UserRecord


class AdminUserResponse(BaseModel):
    id: str
    displayName: str
    handle: str
    joinedAt: datetime
    freeTrialsUsed: int
    totalLookups: int
    subscriptionActive: bool
    subscriptionExpiresAt: Optional[datetime]

    @classmethod
    def from_record(cls, record: UserRecord) -> "AdminUserResponse":
        return cls(
            id=record.id,
            displayName=record.display_name,
            handle=record.handle,
            joinedAt=record.joined_at,
            freeTrialsUsed=record.free_trials_used,
            totalLookups=record.total_lookups,
            subscriptionActive=record.subscription_active,
            subscriptionExpiresAt=record.subscription_expires_at,
        )


class AdminUserListResponse(BaseModel):
    users: List[AdminUserResponse]


class SubscriptionGrantRequest(BaseModel):
    durationDays: int = Field(..., ge=1, le=MAX_SUBSCRIPTION_DAYS, description="Subscription length in days from now.")


class AdminStatsResponse(BaseModel):
    totalUsers: int
    subscribedUsers: int
    freeUsers: int


__all__ = [
    "AdminStatsResponse",
    "AdminUserListResponse",
    "AdminUserResponse",
    "SubscriptionGrantRequest",
]
