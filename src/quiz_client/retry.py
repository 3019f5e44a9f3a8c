"""
Exponential backoff, retry decisions, and the single-item retry wrapper.

The backoff schedule doubles from the base: with the default 1 s base,
attempt 1 → wait 1 s, attempt 2 → wait 2 s, attempt 3 → wait 4 s, capped at
``backoff_cap``.  Waits go through ``asyncio.sleep`` so other tasks keep
running while a generation is backing off.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from .config import BACKOFF_BASE_SECONDS, BACKOFF_CAP_SECONDS, MAX_ATTEMPTS
from .errors import ConfigurationError, GenerationError, RetryExhaustedError
from .executor import CompletionBackend, generate_quiz_item
from .models import GeneratedQuizItem, GenerationOutcome, GenerationRequest

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt limit, backoff shape, and which errors are retried.

    ``retry_permanent_errors=True`` retries every error kind uniformly up to
    the attempt limit.  Set it to ``False`` to stop immediately on errors
    flagged non-retryable (credential rejections).
    """

    max_attempts: int = MAX_ATTEMPTS
    backoff_base: float = BACKOFF_BASE_SECONDS
    backoff_cap: float | None = BACKOFF_CAP_SECONDS
    retry_permanent_errors: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"max_attempts must be at least 1 (got {self.max_attempts})."
            )


# ---------------------------------------------------------------------------
# Backoff helpers
# ---------------------------------------------------------------------------

def exponential_backoff(
    attempt: int,
    base: float = BACKOFF_BASE_SECONDS,
    cap: float | None = BACKOFF_CAP_SECONDS,
) -> float:
    """
    Return the wait in seconds after a failed attempt.

    Args:
        attempt: 1-based attempt number that just failed.
        base: Wait after the first failure.
        cap: Upper bound on any single wait; ``None`` for no cap.

    Returns:
        ``base * 2 ** (attempt - 1)``, limited to ``cap``.
    """
    delay = base * 2 ** (attempt - 1)
    if cap is not None:
        delay = min(delay, cap)
    return delay


def should_retry(error: GenerationError, attempt: int, policy: RetryPolicy) -> bool:
    """
    Decide whether another attempt should follow a failure.

    Args:
        error: Error raised by the attempt that just failed.
        attempt: The 1-based attempt number that just failed.
        policy: Active retry policy.

    Returns:
        ``True`` if the call should be retried.
    """
    if attempt >= policy.max_attempts:
        return False

    if policy.retry_permanent_errors:
        return True

    return error.retryable


# ---------------------------------------------------------------------------
# Retry wrapper
# ---------------------------------------------------------------------------

async def attempt_generation(
    request: GenerationRequest,
    backend: CompletionBackend,
) -> GenerationOutcome:
    """Run one generation attempt and capture its result as an outcome."""
    try:
        item = await generate_quiz_item(request, backend)
    except GenerationError as exc:
        return GenerationOutcome.failure(exc)
    return GenerationOutcome.success(item)


async def generate_with_retry(
    request: GenerationRequest,
    backend: CompletionBackend,
    policy: RetryPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> GeneratedQuizItem:
    """
    Generate one quiz item, retrying failed attempts with exponential backoff.

    Each attempt is an independent call through :func:`generate_quiz_item`.

    Args:
        request: Validated generation request.
        backend: Completion backend handle.
        policy: Retry policy; defaults from configuration.
        sleep: Awaitable used for backoff waits.

    Returns:
        The first successfully generated item.

    Raises:
        RetryExhaustedError: After the final failed attempt, chained to the
            last underlying error.
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        outcome = await attempt_generation(request, backend)
        if outcome.ok:
            if attempt > 1:
                logger.info("Quiz generation succeeded on attempt %d/%d", attempt, policy.max_attempts)
            return outcome.item

        error = outcome.error
        logger.warning(
            "Quiz generation attempt %d/%d failed [%s]: %s",
            attempt,
            policy.max_attempts,
            type(error).__name__,
            str(error)[:200],
        )

        if not should_retry(error, attempt, policy):
            break

        delay = exponential_backoff(attempt, policy.backoff_base, policy.backoff_cap)
        logger.info("Retrying quiz generation in %.1fs", delay)
        await sleep(delay)

    raise RetryExhaustedError(attempt, error) from error
