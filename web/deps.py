"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request, status

from services.bot_commands import BotCommandRouter
from services.lookup_context import LookupContext


def get_lookup_context(request: Request) -> LookupContext:
    """Return the process-wide lookup context attached at startup."""
    context: Optional[LookupContext] = getattr(request.app.state, "lookup_context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "service.not_ready", "message": "Lookup services are not initialised."},
        )
    return context


def get_bot_router(request: Request) -> BotCommandRouter:
    router: Optional[BotCommandRouter] = getattr(request.app.state, "bot_router", None)
    if router is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "telegram.disabled", "message": "BOT_TOKEN is not configured."},
        )
    return router


__all__ = ["get_bot_router", "get_lookup_context"]
