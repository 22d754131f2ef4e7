"""Admin endpoints for subscription management and user inspection."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.logging import get_logger
from schemas.api.admin import (
    AdminStatsResponse,
    AdminUserListResponse,
    AdminUserResponse,
    SubscriptionGrantRequest,
)
from services.lookup_context import LookupContext
from services.lookup_errors import StoreUnavailableError
from web.deps import get_lookup_context
from web.deps_admin import AdminSession, require_admin_session

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin_session)])


def _store_unavailable(exc: StoreUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={"code": "store.unavailable", "message": str(exc)},
    )


def _user_not_found(user_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "admin.user_not_found", "message": f"User {user_id} is not registered."},
    )


@router.get("/stats", response_model=AdminStatsResponse)
def read_admin_stats(context: LookupContext = Depends(get_lookup_context)) -> AdminStatsResponse:
    try:
        stats = context.entitlements.summarize_users()
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    return AdminStatsResponse(totalUsers=stats.total, subscribedUsers=stats.subscribed, freeUsers=stats.free)


@router.get("/users", response_model=AdminUserListResponse)
def list_admin_users(
    subscribed: Optional[bool] = Query(None, description="Filter by subscription state."),
    context: LookupContext = Depends(get_lookup_context),
) -> AdminUserListResponse:
    try:
        records = context.entitlements.list_all_users()
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    if subscribed is not None:
        records = [record for record in records if record.subscription_active is subscribed]
    records.sort(key=lambda record: record.joined_at)
    return AdminUserListResponse(users=[AdminUserResponse.from_record(record) for record in records])


@router.get("/users/{user_id}", response_model=AdminUserResponse)
def read_admin_user(user_id: str, context: LookupContext = Depends(get_lookup_context)) -> AdminUserResponse:
    try:
        record = context.store.find(user_id)
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    if record is None:
        raise _user_not_found(user_id)
    return AdminUserResponse.from_record(record)


@router.post("/users/{user_id}/subscription", response_model=AdminUserResponse)
def grant_user_subscription(
    user_id: str,
    payload: SubscriptionGrantRequest,
    context: LookupContext = Depends(get_lookup_context),
    session: AdminSession = Depends(require_admin_session),
) -> AdminUserResponse:
    try:
        record = context.entitlements.grant_subscription(user_id, payload.durationDays)
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "admin.invalid_payload", "message": str(exc)},
        ) from exc
    logger.info("Subscription for %s granted by %s for %d days.", user_id, session.actor, payload.durationDays)
    return AdminUserResponse.from_record(record)


@router.delete("/users/{user_id}/subscription", response_model=AdminUserResponse)
def revoke_user_subscription(
    user_id: str,
    context: LookupContext = Depends(get_lookup_context),
) -> AdminUserResponse:
    try:
        if not context.entitlements.revoke_subscription(user_id):
            raise _user_not_found(user_id)
        record = context.store.find(user_id)
    except StoreUnavailableError as exc:
        raise _store_unavailable(exc) from exc
    if record is None:
        raise _user_not_found(user_id)
    return AdminUserResponse.from_record(record)


__all__ = ["router"]
