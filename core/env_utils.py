"""Helpers for loading an optional .env file and checking required variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv  # type: ignore

from core.logging import get_logger

logger = get_logger(__name__)


def load_dotenv_if_available(path: Optional[Path] = None) -> bool:
    """Load variables from ``path`` (default ``.env``) without overriding the process env."""

    env_path = path or Path(".env")
    try:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            logger.debug("Loaded environment variables from %s", env_path)
            return True
    except Exception as exc:  # pragma: no cover - best effort
        logger.warning("Failed to load .env file %s: %s", env_path, exc)
    return False


def missing_env_vars(required: Sequence[str]) -> list[str]:
    return sorted(name for name in required if not (os.getenv(name) or "").strip())


def require_env_vars(required: Sequence[str], *, context: Optional[str] = None) -> None:
    """Raise ``RuntimeError`` naming every variable in ``required`` that is unset."""

    missing = missing_env_vars(required)
    if not missing:
        return

    prefix = f"[{context}] " if context else ""
    raise RuntimeError(
        f"{prefix}Missing required environment variables: {', '.join(missing)}. "
        "Populate your .env or configure runtime secrets."
    )


__all__ = ["load_dotenv_if_available", "missing_env_vars", "require_env_vars"]
