"""
Command-line runner for quiz generation.

Usage (from project root):
    python -m src.quiz_client.runner --topic "Photosynthesis" --difficulty 2 --count 3
    python -m src.quiz_client.runner --topic "TCP handshakes" --output quizzes.csv
    python -m src.quiz_client.runner --check

Or programmatically:
    from src.quiz_client.runner import run_generation
    result = asyncio.run(run_generation(request, backend))
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .batch import batch_to_frame, generate_batch
from .config import PACING_DELAY_SECONDS
from .errors import ConfigurationError, InvalidRequestError
from .executor import ChatBackend, CompletionBackend, check_connection
from .models import BatchResult, GenerationRequest
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="quiz_client",
        description="Generate multiple-choice quiz items with a language model.",
    )
    parser.add_argument("--topic", help="Quiz topic (max 100 characters).")
    parser.add_argument("--difficulty", type=int, default=1, help="Difficulty 1-5 (default 1).")
    parser.add_argument("--count", type=int, default=1, help="Number of items 1-10 (default 1).")
    parser.add_argument("--output", type=Path, help="Write the batch to this CSV file.")
    parser.add_argument(
        "--strict-retry",
        action="store_true",
        help="Do not retry errors that cannot resolve themselves (invalid API key).",
    )
    parser.add_argument(
        "--pacing",
        type=float,
        default=PACING_DELAY_SECONDS,
        help=f"Seconds between items (default {PACING_DELAY_SECONDS}).",
    )
    parser.add_argument("--check", action="store_true", help="Only test backend connectivity.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def print_batch_summary(result: BatchResult) -> None:
    """Print a human-readable summary block for a finished batch."""
    summary = result.summary
    sep = "=" * 60
    print(f"\n{sep}")
    print("BATCH COMPLETE")
    print(f"  Requested: {summary['requested']}")
    print(f"  Generated: {summary['generated']}")
    print(f"  Failed:    {summary['failed']}")
    for failure in result.failures:
        print(f"    #{failure.index}: {failure.error.user_message}")
    print(f"{sep}\n")


async def run_generation(
    request: GenerationRequest,
    backend: CompletionBackend,
    policy: RetryPolicy | None = None,
    pacing_delay: float = PACING_DELAY_SECONDS,
    output: Path | None = None,
) -> BatchResult:
    """
    Run one batch, print its summary, and optionally export it as CSV.

    Returns:
        The :class:`BatchResult` from :func:`generate_batch`.
    """
    result = await generate_batch(request, backend, policy=policy, pacing_delay=pacing_delay)
    print_batch_summary(result)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        batch_to_frame(result).to_csv(output, index=False)
        logger.info("Batch written to %s", output)

    return result


async def _main_async(args: argparse.Namespace) -> int:
    # ChatBackend.from_env raises ConfigurationError; handled by main()
    async with ChatBackend.from_env() as backend:
        if args.check:
            status = await check_connection(backend)
            if status["success"]:
                print(f"Connection OK: {status['response']}")
                return 0
            print(f"Connection FAILED: {status['error']}")
            return 1

        request = GenerationRequest(
            topic=args.topic or "",
            difficulty=args.difficulty,
            count=args.count,
        )
        policy = RetryPolicy(retry_permanent_errors=not args.strict_retry)
        result = await run_generation(
            request,
            backend,
            policy=policy,
            pacing_delay=args.pacing,
            output=args.output,
        )
        return 0 if result.items else 1


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return asyncio.run(_main_async(args))
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return 1
    except InvalidRequestError as exc:
        logger.error("Invalid request: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
