"""Telegram webhook endpoint."""

from __future__ import annotations

import hmac
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, status

from core.logging import get_logger
from services.bot_commands import BotCommandRouter
from services.lookup_context import LookupContext
from web.deps import get_bot_router, get_lookup_context

logger = get_logger(__name__)

router = APIRouter(tags=["Telegram"])


@router.post("/webhook/{token}", include_in_schema=False)
async def receive_update(
    token: str,
    background_tasks: BackgroundTasks,
    update: Dict[str, Any] = Body(...),
    context: LookupContext = Depends(get_lookup_context),
    bot_router: BotCommandRouter = Depends(get_bot_router),
):
    """Acknowledge the update immediately and handle it after the response is sent."""
    expected = context.settings.bot_token or ""
    if not expected or not hmac.compare_digest(token, expected):
        logger.warning("Rejected webhook call with an invalid token.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "telegram.invalid_token", "message": "Webhook token mismatch."},
        )
    background_tasks.add_task(bot_router.dispatch_update, update)
    return {"ok": True}


__all__ = ["router"]
