"""Retrying HTTP transport with exponential backoff.

``RetryTransport`` wraps another ``httpx`` transport and retries requests
that fail with a retryable status (bad gateway, service unavailable,
gateway timeout, too many requests) or a network error. Callers see only
the final response, so neither bulk indexing nor querying carries retry
logic of its own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_all,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

RETRY_ON_STATUS: frozenset[int] = frozenset({502, 503, 504, 429})
MAX_ATTEMPTS = 5

# Interval x = 0.5s * 1.5^(attempt - 1), capped at 60s, randomized to [x/2, 3x/2]
DEFAULT_WAIT: wait_base = wait_exponential(multiplier=0.25, exp_base=1.5, max=30) + wait_random_exponential(
    multiplier=0.5, exp_base=1.5, max=60
)

ABORT_EXTENSION = "locindex.abort"
"""Request extension holding an ``asyncio.Event``; once set, the request is not retried."""

RETRIES_EXTENSION = "locindex.retries"
"""Response extension recording how many retries the request needed."""


def _aborted(abort: asyncio.Event | None) -> bool:
    return abort is not None and abort.is_set()


def _last_outcome(retry_state: RetryCallState) -> httpx.Response:
    assert retry_state.outcome is not None
    return retry_state.outcome.result()


def _log_retry(request: httpx.Request, max_attempts: int, retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    assert outcome is not None
    if outcome.failed:
        error = outcome.exception()
        reason = f"{type(error).__name__}: {error}"
    else:
        reason = f"status {outcome.result().status_code}"
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Retrying %s %s after %s (attempt %d/%d, waiting %.2fs)",
        request.method,
        request.url.path,
        reason,
        retry_state.attempt_number,
        max_attempts,
        delay,
    )


class RetryTransport(httpx.AsyncBaseTransport):
    """An async transport that retries retryable failures with backoff.

    Each request gets its own :class:`tenacity.AsyncRetrying`, so the
    backoff starts again from the initial interval for every request. The
    abort event is checked before each backoff and again before each new
    attempt; once it is set, the last response is returned (or the last
    network error raised) as is.

    Args:
        transport: The wrapped transport. Defaults to ``httpx.AsyncHTTPTransport``.
        retry_on_status: Status codes that trigger a retry.
        max_attempts: Maximum attempts per request, the first one included.
        wait: tenacity wait strategy between attempts.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        retry_on_status: frozenset[int] = RETRY_ON_STATUS,
        max_attempts: int = MAX_ATTEMPTS,
        wait: wait_base = DEFAULT_WAIT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._retry_on_status = retry_on_status
        self._max_attempts = max_attempts
        self._wait = wait
        self._sleep = sleep

    def _retrying(self, request: httpx.Request, abort: asyncio.Event | None) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait,
            retry=retry_all(
                retry_if_exception_type(httpx.NetworkError)
                | retry_if_result(lambda response: response.status_code in self._retry_on_status),
                lambda retry_state: not _aborted(abort),
            ),
            sleep=self._sleep,
            before_sleep=partial(_log_retry, request, self._max_attempts),
            retry_error_callback=_last_outcome,
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        abort: asyncio.Event | None = request.extensions.get(ABORT_EXTENSION)
        response: httpx.Response | None = None
        error: BaseException | None = None
        retries = 0

        async for attempt in self._retrying(request, abort):
            if attempt.retry_state.attempt_number > 1 and _aborted(abort):
                break
            if response is not None:
                await response.aclose()
            response, error = None, None

            with attempt:
                response = await self._transport.handle_async_request(request)
            outcome = attempt.retry_state.outcome
            if outcome is not None and outcome.failed:
                error = outcome.exception()
            else:
                retries = attempt.retry_state.attempt_number - 1
                attempt.retry_state.set_result(response)

        if response is None:
            assert error is not None
            raise error
        response.extensions[RETRIES_EXTENSION] = retries
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
