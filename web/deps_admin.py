"""Admin authentication dependencies."""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import HTTPException, Request, status

from core.env import env_str
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AdminSession:
    """Represents a validated administrator credential."""

    actor: str
    token_hint: Optional[str] = None


def _forbidden(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"code": code, "message": message})


def _mask_token(token: str) -> str:
    if not token:
        return ""
    if len(token) <= 4:
        return "*" * len(token)
    return f"{token[:2]}***{token[-2:]}"


def load_admin_token_map() -> Dict[str, str]:
    """Map accepted tokens to actor names from ``ADMIN_API_TOKENS`` (``actor:token,...``) and ``ADMIN_API_TOKEN``."""
    mapping: Dict[str, str] = {}
    default_actor = env_str("ADMIN_API_ACTOR", "admin") or "admin"

    for entry in (env_str("ADMIN_API_TOKENS") or "").split(","):
        entry = entry.strip()
        if not entry:
            continue
        actor, _, token = entry.rpartition(":")
        token = token.strip()
        if token:
            mapping[token] = (actor.strip() or default_actor)

    single_token = env_str("ADMIN_API_TOKEN")
    if single_token:
        mapping[single_token] = default_actor
    return mapping


def _extract_admin_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        candidate = auth_header[7:].strip()
        if candidate:
            return candidate
    header_token = request.headers.get("x-admin-token")
    if header_token:
        return header_token.strip()
    return None


def require_admin_session(request: Request) -> AdminSession:
    """Validate the bearer or ``X-Admin-Token`` credential on an admin request."""

    token_map = load_admin_token_map()
    if not token_map:
        logger.error("ADMIN_API_TOKEN or ADMIN_API_TOKENS is not configured; admin access blocked.")
        raise _forbidden("admin.unauthorized", "Admin API credentials are not configured.")

    provided = _extract_admin_token(request)
    if not provided:
        logger.warning("Admin access denied: missing credential.")
        raise _forbidden("admin.unauthorized", "An admin token is required.")

    actor = next((name for token, name in token_map.items() if hmac.compare_digest(token, provided)), None)
    if actor is None:
        logger.warning("Admin access denied: invalid token %s.", _mask_token(provided))
        raise _forbidden("admin.unauthorized", "The admin token is not valid.")

    session = AdminSession(actor=actor, token_hint=_mask_token(provided))
    request.state.admin_session = session
    return session


__all__ = ["AdminSession", "load_admin_token_map", "require_admin_session"]
