"""Bounded retry with exponential backoff for transient oracle failures."""

import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from talent_screen.errors import OracleUnavailable

log = logging.getLogger(__name__)

T = TypeVar("T")


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, OracleUnavailable) and exc.retryable


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    what: str,
    max_attempts: int = 3,
    backoff_min: float = 2.0,
    backoff_max: float = 10.0,
) -> T:
    """
    Call ``fn`` until it succeeds, retrying only retryable OracleUnavailable errors.
    OracleResponseInvalid and every other exception propagate on the first occurrence.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=backoff_min, min=backoff_min, max=backoff_max),
        reraise=True,
        before_sleep=lambda rs: log.warning(
            "%s oracle unavailable (attempt %d/%d): %s; retrying",
            what,
            rs.attempt_number,
            max_attempts,
            rs.outcome.exception(),
        ),
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
