"""HTTP client for the external mobile-number lookup API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from services import metrics

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


class LookupOutcome(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    API_ERROR = "api_error"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"


@dataclass(frozen=True)
class LookupResult:
    """Classified outcome of one lookup call.

    ``message`` carries raw upstream or transport text; it is escaped when the
    reply is rendered, never here.
    """

    outcome: LookupOutcome
    payload: Any = None
    message: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.outcome is LookupOutcome.SUCCESS

    def describe(self) -> str:
        """Plain-text description of a failed lookup for the user."""
        if self.outcome is LookupOutcome.NOT_FOUND:
            return 'The API returned a "not found" response for this number.'
        if self.outcome is LookupOutcome.API_ERROR:
            return f"API reported an issue: {self.message or 'unknown error'}"
        if self.outcome is LookupOutcome.HTTP_ERROR:
            suffix = f" {self.message}" if self.message else ""
            return f"HTTP Error: {self.status_code}{suffix}"
        if self.outcome is LookupOutcome.TIMEOUT:
            return f"Network/API failure: {self.message or 'Request timed out.'}"
        if self.outcome is LookupOutcome.NETWORK_FAILURE:
            return f"Network/API failure: {self.message or 'connection error'}"
        return ""


def _decode_body(response: httpx.Response) -> Any:
    text = response.text
    content_type = response.headers.get("Content-Type", "").lower()
    stripped = text.strip()
    if "json" in content_type or stripped.startswith(("{", "[")):
        try:
            return json.loads(stripped)
        except json.JSONDecodeError:
            logger.debug("Lookup API body is not valid JSON; treating it as text.")
    return text


def _structured_error(payload: Any) -> Optional[str]:
    """Return the upstream error message when ``payload`` is an error object."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if error:
        return error if isinstance(error, str) else json.dumps(error, ensure_ascii=False)
    if payload.get("status") == "error":
        return json.dumps(payload, ensure_ascii=False)
    return None


class LookupClient:
    """Issue a single GET per lookup and classify the outcome.

    The client never retries; callers decide whether a failure is worth
    another attempt.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url
        self._api_key = api_key
        self._timeout = timeout
        self._http_client = http_client

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get(self, params: Dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(self._base_url, params=params, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.get(self._base_url, params=params)

    async def fetch(self, query_key: str) -> LookupResult:
        """Look up ``query_key``, which the caller has already validated."""
        params = {"api_key": self._api_key, "mobile": query_key}
        try:
            response = await self._get(params)
        except httpx.TimeoutException as exc:
            logger.warning("Lookup API timed out after %.0fs: %s", self._timeout, exc)
            result = LookupResult(LookupOutcome.TIMEOUT, message=f"Request timed out ({self._timeout:g}s).")
            metrics.record_lookup(result.outcome.value)
            return result
        except httpx.HTTPError as exc:
            logger.error("Lookup API request failed: %s", exc)
            result = LookupResult(LookupOutcome.NETWORK_FAILURE, message=str(exc) or exc.__class__.__name__)
            metrics.record_lookup(result.outcome.value)
            return result

        result = self._classify(response)
        metrics.record_lookup(result.outcome.value)
        return result

    def _classify(self, response: httpx.Response) -> LookupResult:
        payload = _decode_body(response)

        if isinstance(payload, str) and "not found" in payload:
            return LookupResult(LookupOutcome.NOT_FOUND, status_code=response.status_code)

        api_error = _structured_error(payload)
        if api_error is not None:
            logger.warning("Lookup API reported an error (status=%s): %s", response.status_code, api_error)
            return LookupResult(LookupOutcome.API_ERROR, message=api_error, status_code=response.status_code)

        if not response.is_success:
            logger.warning("Lookup API returned HTTP %s", response.status_code)
            return LookupResult(
                LookupOutcome.HTTP_ERROR,
                message=response.reason_phrase or None,
                status_code=response.status_code,
            )

        return LookupResult(LookupOutcome.SUCCESS, payload=payload, status_code=response.status_code)


__all__ = ["DEFAULT_TIMEOUT_SECONDS", "LookupClient", "LookupOutcome", "LookupResult"]
