"""Bounded-retry HTTP GET executor for uncooperative upstreams."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping
from urllib.parse import urlsplit, urlunsplit

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from .errors import UpstreamStatusError, UpstreamUnavailableError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({403, 429})

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Capped exponential backoff; delays are in seconds.

    ``jitter`` adds up to that many random seconds to each delay. The sum is
    still clamped to ``max_delay``.
    """

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 3.0
    jitter: float = 0.0

    def wait_strategy(self) -> wait_base:
        if self.jitter > 0:
            return wait_exponential_jitter(
                initial=self.base_delay, max=self.max_delay, jitter=self.jitter
            )
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay)


def redact_url(url: str) -> str:
    """Strip the query string so api keys never end up in messages or logs."""

    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def is_retryable(exc: BaseException) -> bool:
    """Retry 403/429 answers and transport failures that produced no response."""

    if isinstance(exc, UpstreamStatusError):
        return exc.status in RETRYABLE_STATUSES
    if isinstance(exc, UpstreamUnavailableError):
        return isinstance(exc.__cause__, httpx.TransportError)
    return False


class BackoffExecutor:
    """Issues GET requests over a shared client, retrying transient failures.

    Timeouts, connection failures without a status and 403/429 responses are
    retried up to ``max_attempts``. Any other status >= 400, and request errors
    such as redirect loops, are raised at once.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: BackoffPolicy | None = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._client = client
        self._policy = policy or BackoffPolicy()
        self._sleep = sleep

    @property
    def policy(self) -> BackoffPolicy:
        return self._policy

    async def _attempt(
        self,
        url: str,
        safe_url: str,
        attempt: int,
        *,
        headers: Mapping[str, str] | None,
        params: Mapping[str, str | int] | None,
        timeout: float,
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, headers=headers, params=params, timeout=timeout)
        except httpx.RequestError as exc:
            raise UpstreamUnavailableError(
                f"GET {safe_url} failed: {exc.__class__.__name__}",
                url=safe_url,
                attempts=attempt,
            ) from exc
        if response.status_code >= 400:
            raise UpstreamStatusError(
                f"GET {safe_url} returned HTTP {response.status_code}",
                url=safe_url,
                status=response.status_code,
                attempts=attempt,
            )
        return response

    async def get(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str | int] | None = None,
        timeout: float = 5.0,
        max_attempts: int | None = None,
    ) -> httpx.Response:
        attempts = max(1, max_attempts or self._policy.max_attempts)
        safe_url = redact_url(url)

        def _log_retry(retry_state: RetryCallState) -> None:
            logger.warning(
                "GET %s attempt %d/%d: %s",
                safe_url,
                retry_state.attempt_number,
                attempts,
                retry_state.outcome.exception() if retry_state.outcome else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=self._policy.wait_strategy(),
            retry=retry_if_exception(is_retryable),
            before_sleep=_log_retry,
            sleep=self._sleep,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._attempt(
                        url,
                        safe_url,
                        attempt.retry_state.attempt_number,
                        headers=headers,
                        params=params,
                        timeout=timeout,
                    )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            status = getattr(last, "status", None)
            if status is not None:
                message = f"GET {safe_url} still HTTP {status} after {attempts} attempts"
            else:
                message = f"GET {safe_url} failed after {attempts} attempts: {last}"
            cause = last.__cause__ if last is not None and last.__cause__ is not None else last
            raise UpstreamUnavailableError(
                message, url=safe_url, status=status, attempts=attempts
            ) from cause
        return response
