"""
Feed fetching with timeouts and bounded retries

Handles:
- One HTTP GET per attempt, fully buffered and decoded as JSON
- A wall-clock timeout per attempt; a timed-out request is cancelled
- Retries with linearly growing backoff (attempt k waits k * step)
- Classifying failures as network-like or other, for logs and provenance
"""

import asyncio
import contextlib
import json
import logging
import socket
from typing import Any, Awaitable, Callable, Optional, Tuple

import aiohttp
from tenacity import (AsyncRetrying, RetryCallState, retry_if_exception_type,
                      stop_after_attempt, wait_incrementing)

from .config import DEFAULT_USER_AGENT, RetryPolicy
from .errors import (NETWORK, OTHER, FeedDecodeError, FeedError, FeedHTTPError,
                     TankWatchError)

logger = logging.getLogger(__name__)

ACCEPT = "application/json,text/plain,*/*"

# Exceptions a single attempt may raise that warrant another attempt
RETRYABLE_ERRORS = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    FeedHTTPError,
    FeedDecodeError,
)

NETWORK_MESSAGE_HINTS = (
    'reset', 'refused', 'timed out', 'timeout', 'dns', 'econn', 'enotfound',
    'eai_again', 'getaddrinfo', 'name or service not known', 'socket',
    'network', 'abort', 'fetch failed', 'disconnected',
)


def classify_failure(exc: BaseException) -> Tuple[str, str]:
    """Map an exception to ``(kind, code)``; kind is "network" or "other\""""
    if isinstance(exc, FeedError):
        return exc.kind, exc.code
    if isinstance(exc, asyncio.TimeoutError):
        return NETWORK, 'timeout'
    if isinstance(exc, socket.gaierror):
        return NETWORK, 'dns'
    if isinstance(exc, aiohttp.ClientConnectorError):
        if isinstance(exc.os_error, socket.gaierror):
            return NETWORK, 'dns'
        return NETWORK, 'connection'
    if isinstance(exc, aiohttp.ServerDisconnectedError):
        return NETWORK, 'disconnected'
    if isinstance(exc, ConnectionResetError):
        return NETWORK, 'reset'
    if isinstance(exc, ConnectionRefusedError):
        return NETWORK, 'refused'
    if isinstance(exc, (ConnectionError, aiohttp.ClientConnectionError)):
        return NETWORK, 'connection'
    if isinstance(exc, aiohttp.ClientPayloadError):
        return NETWORK, 'transport'
    if isinstance(exc, TankWatchError):
        return exc.kind, exc.code

    message = str(exc).lower()
    if any(hint in message for hint in NETWORK_MESSAGE_HINTS):
        return NETWORK, 'transport'
    return OTHER, type(exc).__name__.lower()


def _log_retry(description: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState):
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        kind, code = classify_failure(exc) if exc else (OTHER, 'unknown')
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Attempt {retry_state.attempt_number} for {description} failed [{kind}/{code}]: {exc}; "
            f"retrying in {wait:.1f}s"
        )
    return before_sleep


async def retry_with_backoff(operation: Callable[[], Awaitable[Any]], policy: RetryPolicy,
                             description: str,
                             sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                             gate: Optional[asyncio.Semaphore] = None) -> Any:
    """Run ``operation`` until it succeeds or the attempt ceiling is hit

    Each attempt is bounded by ``policy.timeout_seconds``, counted from when
    it passes ``gate`` so time spent queued is not charged to it. When every attempt
    fails the last error is wrapped in ``FeedError`` with its classification.
    """
    attempts = 0
    result = None
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max(policy.max_attempts, 1)),
            wait=wait_incrementing(start=policy.backoff_seconds, increment=policy.backoff_seconds),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=_log_retry(description),
            sleep=sleep,
            reraise=True,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                async with gate or contextlib.nullcontext():
                    result = await asyncio.wait_for(operation(), timeout=policy.timeout_seconds)
    except RETRYABLE_ERRORS as e:
        kind, code = classify_failure(e)
        logger.warning(f"Giving up on {description} after {attempts} attempt(s) [{kind}/{code}]")
        raise FeedError(description, kind, code, attempts, str(e) or type(e).__name__) from e

    return result


class FeedFetcher:
    """Fetches JSON feeds over a shared aiohttp session

    At most ``max_concurrent_requests`` attempts are in flight at once, matching
    the connector limit of ``create_session`` so an admitted request never
    waits in the connector queue.
    """

    def __init__(self, session: aiohttp.ClientSession,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 max_concurrent_requests: int = 8):
        self.session = session
        self.sleep = sleep
        self.gate = asyncio.Semaphore(max(1, max_concurrent_requests))

    async def fetch_once(self, url: str, user_agent: str = DEFAULT_USER_AGENT) -> Any:
        """Single attempt: GET, check status, decode the whole body"""
        headers = {'User-Agent': user_agent, 'Accept': ACCEPT}
        async with self.session.get(url, headers=headers) as response:
            if response.status < 200 or response.status >= 300:
                raise FeedHTTPError(url, response.status)
            body = await response.read()

        try:
            return json.loads(body)
        except ValueError as e:
            raise FeedDecodeError(url, str(e)) from e

    async def fetch(self, url: str, policy: RetryPolicy, user_agent: str = DEFAULT_USER_AGENT) -> Any:
        return await retry_with_backoff(
            lambda: self.fetch_once(url, user_agent), policy, url, sleep=self.sleep, gate=self.gate
        )


def create_session(max_concurrent_requests: int = 8,
                   timeout: Optional[aiohttp.ClientTimeout] = None) -> aiohttp.ClientSession:
    """HTTP session with connection pooling; call from inside the event loop"""
    connector = aiohttp.TCPConnector(limit=max_concurrent_requests)
    return aiohttp.ClientSession(
        connector=connector,
        timeout=timeout or aiohttp.ClientTimeout(total=None),
        headers={'Accept': ACCEPT},
    )
