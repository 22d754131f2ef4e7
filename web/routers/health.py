"""Health-related API endpoints."""

from __future__ import annotations

from typing import Optional, Tuple

from fastapi import APIRouter, Request

from services.lookup_context import LookupContext

router = APIRouter(prefix="/health", tags=["Health"])


def ping_store(context: Optional[LookupContext]) -> Tuple[bool, Optional[str]]:
    """Return user store readability and optional error message."""
    if context is None:
        return False, "lookup services are not initialised"
    return context.store.ping()


@router.get(
    "/status",
    summary="Service runtime status",
    description="Aggregated service health information used by liveness and readiness probes.",
)
def read_service_status(request: Request):
    context: Optional[LookupContext] = getattr(request.app.state, "lookup_context", None)
    store_ok, store_error = ping_store(context)
    payload = {
        "status": "ok" if store_ok else "degraded",
        "store": {"ok": store_ok},
        "telegram": {"enabled": getattr(request.app.state, "bot_router", None) is not None},
    }
    if store_error:
        payload["store"]["error"] = store_error
    if context is not None:
        payload["rateLimitMs"] = context.rate_limiter.interval_ms
    return payload


__all__ = ["router", "ping_store"]
