"""
Multi-item batch orchestration and tabular export of batch results.

Items are generated strictly one after another in index order.  A position
that exhausts its retries is recorded as a failure and the batch moves on;
the batch call itself never raises a generation error.
"""

from __future__ import annotations

import asyncio
import logging
import time

import pandas as pd

from .config import PACING_DELAY_SECONDS
from .errors import GenerationError
from .executor import CompletionBackend
from .models import BatchFailure, BatchResult, GenerationRequest
from .retry import RetryPolicy, Sleep, generate_with_retry

logger = logging.getLogger(__name__)

ITEM_COLUMNS: list[str] = [
    "question",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_answer",
    "explanation",
    "topic",
    "difficulty",
    "generated_at",
]

BATCH_FRAME_COLUMNS: list[str] = ["index", "status", *ITEM_COLUMNS, "error_type", "error_message"]


async def generate_batch(
    request: GenerationRequest,
    backend: CompletionBackend,
    policy: RetryPolicy | None = None,
    pacing_delay: float = PACING_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> BatchResult:
    """
    Generate ``request.count`` quiz items, tolerating per-item failures.

    Execution order:
    - Positions 1..count are processed sequentially; each is fully resolved
      (success or exhausted retries) before the next begins.
    - ``pacing_delay`` seconds separate consecutive positions (applied
      between items, not after the last, and not between retry attempts).

    Args:
        request: Validated generation request.
        backend: Completion backend handle.
        policy: Retry policy for each item.
        pacing_delay: Seconds to wait between consecutive items.
        sleep: Awaitable used for pacing and backoff waits.

    Returns:
        :class:`BatchResult` accounting for every requested position.
    """
    result = BatchResult(requested=request.count)
    batch_start = time.monotonic()

    logger.info(
        "Starting batch: %d quiz item(s) on %r (difficulty %d)",
        request.count,
        request.topic,
        request.difficulty,
    )

    for index in range(1, request.count + 1):
        try:
            item = await generate_with_retry(request, backend, policy=policy, sleep=sleep)
        except GenerationError as exc:
            result.failures.append(BatchFailure(index=index, error=exc))
            logger.error("Quiz %d/%d failed: %s", index, request.count, exc)
        else:
            result.items.append(item)
            logger.info("Quiz %d/%d generated", index, request.count)

        if index < request.count:
            await sleep(pacing_delay)

    duration = time.monotonic() - batch_start
    logger.info(
        "Batch complete: %d/%d generated, %d failed in %.1fs",
        len(result.items),
        request.count,
        len(result.failures),
        duration,
    )
    return result


def batch_to_frame(result: BatchResult) -> pd.DataFrame:
    """
    Flatten a batch result into one row per requested position.

    Successful and failed positions are interleaved by ``index`` so the frame
    reads in the order the batch was attempted.  Successes occupy the
    positions not listed in ``failures``, in order.

    Args:
        result: Output of :func:`generate_batch`.

    Returns:
        DataFrame with columns :data:`BATCH_FRAME_COLUMNS`.
    """
    failed = {failure.index: failure.error for failure in result.failures}
    items = iter(result.items)

    rows: list[dict] = []
    for index in range(1, result.requested + 1):
        if index in failed:
            error = failed[index]
            row = {col: None for col in ITEM_COLUMNS}
            row.update({
                "index": index,
                "status": "failed",
                "error_type": type(error).__name__,
                "error_message": str(error),
            })
        else:
            row = next(items).to_dict()
            row.update({
                "index": index,
                "status": "success",
                "error_type": None,
                "error_message": None,
            })
        rows.append(row)

    return pd.DataFrame(rows, columns=BATCH_FRAME_COLUMNS)
