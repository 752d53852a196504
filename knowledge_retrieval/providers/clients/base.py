"""HTTP plumbing shared by model provider clients: retries, backoff and error mapping."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from knowledge_retrieval.exceptions import ExternalProviderError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": "knowledge-retrieval-engine",
    "Accept": "application/json",
}

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})

# Selection calls sit on the search path, so the budget is small.
DEFAULT_MAX_ATTEMPTS = 2
BACKOFF_MULTIPLIER = 0.25
BACKOFF_MIN_SECONDS = 0.25
BACKOFF_MAX_SECONDS = 2.0

EXCERPT_CHARS = 200


class ClientError(ExternalProviderError):
    """Base exception for provider HTTP failures."""


class NotFoundError(ClientError):
    """The endpoint or model does not exist (HTTP 404)."""


class RateLimitedError(ClientError):
    """The provider throttled the request (HTTP 429) and retries ran out."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejectedError(ClientError):
    """The provider refused the request as malformed or not permitted (HTTP 4xx)."""

    def __init__(self, status: int, message: str, body_excerpt: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body_excerpt = body_excerpt


class UnauthorizedError(RequestRejectedError):
    """Missing or invalid API key (HTTP 401)."""


class ForbiddenError(RequestRejectedError):
    """The key is valid but lacks access (HTTP 403)."""


class UpstreamError(ClientError):
    """The provider failed, was unreachable, or returned an unusable body."""


class RetryableResponseError(Exception):
    """Carries a throttled or failed response through the retry loop."""

    def __init__(self, response: requests.Response):
        super().__init__(f"Retryable status {response.status_code}")
        self.response = response


def retry_after_seconds(header: Optional[str]) -> Optional[float]:
    """Seconds to wait according to a ``Retry-After`` header (delta or HTTP date)."""

    if not header:
        return None
    header = header.strip()
    if header.isdigit():
        return float(header)
    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


_exponential = wait_exponential(
    multiplier=BACKOFF_MULTIPLIER, min=BACKOFF_MIN_SECONDS, max=BACKOFF_MAX_SECONDS
)


def backoff_seconds(retry_state: RetryCallState) -> float:
    """Wait for the provider's ``Retry-After`` hint (capped), else jittered exponential backoff."""

    outcome = retry_state.outcome
    if outcome is not None and outcome.failed:
        error = outcome.exception()
        if isinstance(error, RetryableResponseError):
            hinted = retry_after_seconds(error.response.headers.get("Retry-After"))
            if hinted is not None:
                return min(hinted, BACKOFF_MAX_SECONDS)

    base = _exponential(retry_state)
    return random.uniform(base * 0.5, min(base * 1.5, BACKOFF_MAX_SECONDS))


def _log_before_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug("Provider request attempt %s failed (%s); retrying", retry_state.attempt_number, error)


def body_excerpt(response: requests.Response) -> Optional[str]:
    """First :data:`EXCERPT_CHARS` characters of the body with whitespace collapsed."""

    try:
        text = response.text
    except (UnicodeDecodeError, LookupError):
        return None
    collapsed = " ".join(text.split())
    return collapsed[:EXCERPT_CHARS] or None


def raise_for_provider_status(response: requests.Response) -> requests.Response:
    """Map an HTTP error status onto the :class:`ClientError` hierarchy; pass 2xx/3xx through."""

    status = response.status_code
    if status < 400:
        return response
    if status == 404:
        raise NotFoundError(f"Provider resource not found ({status})")
    if status == 429:
        raise RateLimitedError(
            f"Provider rate limit exceeded ({status})",
            retry_after=retry_after_seconds(response.headers.get("Retry-After")),
        )

    excerpt = body_excerpt(response)
    detail = f": {excerpt}" if excerpt else ""
    if status >= 500:
        raise UpstreamError(f"Provider error ({status}){detail}")
    if status == 401:
        raise UnauthorizedError(status, f"Unauthorized ({status}){detail}", body_excerpt=excerpt)
    if status == 403:
        raise ForbiddenError(status, f"Forbidden ({status}){detail}", body_excerpt=excerpt)
    raise RequestRejectedError(status, f"Request rejected ({status}){detail}", body_excerpt=excerpt)


class BaseHttpClient:
    """JSON-over-HTTP client with a bounded retry budget.

    Transport errors and :data:`RETRYABLE_STATUS_CODES` are retried up to
    ``max_attempts`` times in total. Whatever is left after that surfaces as a
    :class:`ClientError`, itself an
    :class:`~knowledge_retrieval.exceptions.ExternalProviderError`.
    """

    BASE_URL = ""

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if session is None:
            session = requests.Session()
            session.headers.update(DEFAULT_HEADERS)
        self.session = session
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self._retrying = Retrying(
            stop=stop_after_attempt(max(1, max_attempts)),
            wait=backoff_seconds,
            retry=retry_if_exception_type((requests.RequestException, RetryableResponseError)),
            before_sleep=_log_before_retry,
            reraise=True,
        )

    def _attempt(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise RetryableResponseError(response)
        return response

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method.upper(), url)
        try:
            response = self._retrying.copy()(self._attempt, method, url, **kwargs)
        except RetryableResponseError as exc:
            response = exc.response
        except requests.RequestException as exc:
            raise UpstreamError(f"Provider request failed: {exc}") from exc
        return raise_for_provider_status(response)

    def _post_json(
        self, path: str, payload: Dict[str, Any], *, headers: Optional[Dict[str, str]] = None
    ) -> Any:
        response = self._request("POST", path, json=payload, headers=headers)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError("Provider response body is not valid JSON") from exc


__all__ = [
    "BaseHttpClient",
    "ClientError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitedError",
    "RequestRejectedError",
    "RetryableResponseError",
    "UnauthorizedError",
    "UpstreamError",
    "backoff_seconds",
    "raise_for_provider_status",
    "retry_after_seconds",
]
