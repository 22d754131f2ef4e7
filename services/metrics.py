"""Lightweight Prometheus helpers with graceful degradation."""

from __future__ import annotations

from typing import Optional, Sequence

from core.logging import get_logger

logger = get_logger(__name__)

try:  # pragma: no cover - optional dependency
    from prometheus_client import REGISTRY, Counter  # type: ignore
except ImportError:  # pragma: no cover - optional dependency
    Counter = None  # type: ignore
    REGISTRY = None  # type: ignore


def _lookup_collector(name: str):
    if REGISTRY is None:
        return None
    existing = getattr(REGISTRY, "_names_to_collectors", None)
    if isinstance(existing, dict):
        return existing.get(name)
    return None


def build_counter(name: str, documentation: str, labelnames: Sequence[str]):
    """Create a Counter, returning the registered one when ``name`` already exists."""

    if Counter is None:
        return None
    try:
        return Counter(name, documentation, tuple(labelnames))
    except ValueError:
        collector = _lookup_collector(name)
        if collector is None:
            logger.debug("Counter %s already registered but not found in registry.", name)
        return collector


_RATE_LIMIT_COUNTER: Optional["Counter"] = build_counter(  # type: ignore[name-defined]
    "lookup_rate_limit_total",
    "Per-user lookup rate limiter decisions",
    ("scope", "result"),
)
_LOOKUP_COUNTER: Optional["Counter"] = build_counter(  # type: ignore[name-defined]
    "lookup_requests_total",
    "External lookup requests by classified outcome",
    ("outcome",),
)
_ENTITLEMENT_COUNTER: Optional["Counter"] = build_counter(  # type: ignore[name-defined]
    "lookup_entitlement_total",
    "Entitlement decisions by reason",
    ("reason",),
)


def record_rate_limit(scope: str, allowed: bool) -> None:
    """Increment the rate limit counter for ``scope``."""

    if _RATE_LIMIT_COUNTER is None:
        return
    _RATE_LIMIT_COUNTER.labels(scope=scope, result="allowed" if allowed else "blocked").inc()


def record_lookup(outcome: str) -> None:
    if _LOOKUP_COUNTER is None:
        return
    _LOOKUP_COUNTER.labels(outcome=outcome).inc()


def record_entitlement(reason: str) -> None:
    if _ENTITLEMENT_COUNTER is None:
        return
    _ENTITLEMENT_COUNTER.labels(reason=reason).inc()


__all__ = ["build_counter", "record_entitlement", "record_lookup", "record_rate_limit"]
