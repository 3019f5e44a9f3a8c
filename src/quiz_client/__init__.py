"""
src/quiz_client - language-model quiz generation client.

Module layout
-------------
config.py    - endpoint, model tiers, sampling params, retry/pacing tunables
errors.py    - error taxonomy and HTTP failure classification
models.py    - GenerationRequest, GeneratedQuizItem, outcomes, BatchResult
prompts.py   - prompt construction and model-tier selection
parser.py    - completion extraction, JSON object extraction, field validation
executor.py  - request construction, HTTP backend, single-item generation
retry.py     - exponential backoff, retry policy, single-item retry wrapper
batch.py     - sequential batch orchestration, DataFrame export
runner.py    - command-line entry point

Public interface
----------------
Build the backend once at startup:
    backend = ChatBackend.from_env()

Generate one item (no retry / with retry):
    await generate_quiz_item(request, backend)
    await generate_with_retry(request, backend, policy=RetryPolicy())

Generate a batch:
    await generate_batch(request, backend)
    batch_to_frame(result)
"""

from .batch import batch_to_frame, generate_batch
from .errors import (
    AuthError,
    BackendFault,
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    MalformedResponseError,
    RateLimitError,
    RetryExhaustedError,
    TransportError,
)
from .executor import ChatBackend, check_connection, generate_quiz_item
from .models import (
    BatchFailure,
    BatchResult,
    GeneratedQuizItem,
    GenerationOutcome,
    GenerationRequest,
)
from .prompts import build_prompt, select_model_tier
from .retry import RetryPolicy, generate_with_retry

__all__ = [
    # Generation
    "generate_quiz_item",
    "generate_with_retry",
    "generate_batch",
    "batch_to_frame",
    "check_connection",
    "build_prompt",
    "select_model_tier",
    "ChatBackend",
    "RetryPolicy",
    # Data model
    "GenerationRequest",
    "GeneratedQuizItem",
    "GenerationOutcome",
    "BatchFailure",
    "BatchResult",
    # Errors
    "ConfigurationError",
    "InvalidRequestError",
    "GenerationError",
    "TransportError",
    "AuthError",
    "RateLimitError",
    "BackendFault",
    "MalformedResponseError",
    "RetryExhaustedError",
]
