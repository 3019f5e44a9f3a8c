"""
Request construction, backend calls, and single-item quiz generation.

Design notes:
- The backend is an explicitly constructed handle passed into every call;
  nothing here reads process-wide client state.  Anything with an async
  ``complete(messages, model, max_tokens, temperature, top_p)`` returning a
  chat-completions body can stand in for :class:`ChatBackend`.
- :func:`generate_quiz_item` makes exactly one backend call and never
  retries; retrying is the job of :mod:`retry`.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Protocol

import httpx

from .config import (
    API_BASE_URL,
    CHAT_COMPLETIONS_PATH,
    CONNECTION_CHECK_MAX_TOKENS,
    MODEL_TIERS,
    REQUEST_TIMEOUT_SECONDS,
    SAMPLING_PARAMS,
    STANDARD_TIER,
    load_api_key,
)
from .errors import (
    BackendFault,
    GenerationError,
    MalformedResponseError,
    TransportError,
    classify_http_error,
)
from .models import GeneratedQuizItem, GenerationRequest
from .parser import extract_response_content, get_token_usage, parse_quiz_completion
from .prompts import build_prompt

logger = logging.getLogger(__name__)

CONNECTION_CHECK_PROMPT = "This is a connection test. Reply with 'connection OK'."


class CompletionBackend(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
    ) -> dict[str, Any]: ...


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------

def build_request_headers(api_key: str) -> dict[str, str]:
    """Bearer-auth JSON headers for the chat-completions endpoint."""
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def build_request_payload(
    messages: list[dict[str, str]],
    model: str,
    max_tokens: int,
    temperature: float,
    top_p: float,
) -> dict:
    """
    Construct the JSON request body.

    Returns:
        Dict suitable for the ``json=`` argument of ``httpx.AsyncClient.post()``.
    """
    return {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "top_p": top_p,
    }


# ---------------------------------------------------------------------------
# HTTP backend
# ---------------------------------------------------------------------------

class ChatBackend:
    """
    Chat-completions backend over ``httpx.AsyncClient``.

    Owns its HTTP client unless one is passed in.  Use as an async context
    manager, or call :meth:`aclose` when done.  ``transport`` is handed to the
    owned client (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = base_url.rstrip("/") + CHAT_COMPLETIONS_PATH
        self._headers = build_request_headers(api_key)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)

    @classmethod
    def from_env(cls, **kwargs: Any) -> ChatBackend:
        """
        Build a backend with the credential from the environment.

        Raises:
            ConfigurationError: If the API key is not set.
        """
        return cls(load_api_key(), **kwargs)

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int,
        temperature: float,
        top_p: float,
    ) -> dict[str, Any]:
        """
        Send one chat-completions request and return the decoded body.

        Raises:
            httpx.HTTPStatusError: On non-2xx status.
            httpx.TransportError: On connection failure or timeout.
            MalformedResponseError: If the body is not JSON.
        """
        payload = build_request_payload(messages, model, max_tokens, temperature, top_p)
        response = await self._client.post(self.endpoint, headers=self._headers, json=payload)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError("Backend response body is not JSON.") from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ChatBackend:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


async def _call_backend(
    backend: CompletionBackend,
    messages: list[dict[str, str]],
    model: str,
    max_tokens: int,
) -> dict[str, Any]:
    """
    Invoke the backend, translating any failure into the error taxonomy.

    httpx errors are classified by status; other ``OSError`` subclasses
    become :class:`TransportError`; anything else that is not already a
    :class:`GenerationError` becomes :class:`BackendFault`.  Cancellation is
    a ``BaseException`` and passes through.
    """
    try:
        return await backend.complete(
            messages=messages,
            model=model,
            max_tokens=max_tokens,
            temperature=SAMPLING_PARAMS["temperature"],
            top_p=SAMPLING_PARAMS["top_p"],
        )
    except GenerationError:
        raise
    except httpx.HTTPError as exc:
        raise classify_http_error(exc) from exc
    except OSError as exc:
        raise TransportError(f"Backend connection failed: {exc}") from exc
    except Exception as exc:
        raise BackendFault(f"Backend call failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Single-item generation
# ---------------------------------------------------------------------------

async def generate_quiz_item(
    request: GenerationRequest,
    backend: CompletionBackend,
) -> GeneratedQuizItem:
    """
    Generate and validate one quiz item with a single backend call.

    Args:
        request: Validated generation request (``count`` is ignored here).
        backend: Completion backend handle.

    Returns:
        :class:`GeneratedQuizItem` stamped with topic, difficulty and the
        current UTC time.

    Raises:
        TransportError, AuthError, RateLimitError, BackendFault:
            The backend call failed.
        MalformedResponseError: The completion held no valid quiz record.
    """
    prompt = build_prompt(request.topic, request.difficulty)
    tier = MODEL_TIERS[prompt.model_tier]
    model_id = str(tier["model_id"])

    usage: dict[str, int] | None = None
    outcome = "incomplete"
    start = time.monotonic()
    try:
        response_json = await _call_backend(
            backend, prompt.as_messages(), model_id, int(tier["max_tokens"])
        )
        usage = get_token_usage(response_json)
        fields = parse_quiz_completion(extract_response_content(response_json))
        outcome = "success"
    except GenerationError as exc:
        outcome = type(exc).__name__
        raise
    finally:
        latency = round(time.monotonic() - start, 3)
        _log_generation(prompt.model_tier, model_id, usage, latency, outcome)

    logger.debug(
        "Explanation length [%s]: %d chars",
        model_id,
        len(fields["explanation"]),
    )

    return GeneratedQuizItem(
        question=fields["question"],
        option_a=fields["option_a"],
        option_b=fields["option_b"],
        option_c=fields["option_c"],
        option_d=fields["option_d"],
        correct_answer=fields["correct_answer"],
        explanation=fields["explanation"],
        topic=request.topic,
        difficulty=request.difficulty,
        generated_at=datetime.now(timezone.utc),
    )


def _log_generation(
    model_tier: str,
    model_id: str,
    usage: dict[str, int] | None,
    latency: float,
    outcome: str,
) -> None:
    usage = usage or {}
    level = logging.INFO if outcome == "success" else logging.WARNING
    logger.log(
        level,
        "Quiz generation %s [tier=%s model=%s tokens=%s latency=%.3fs]",
        outcome,
        model_tier,
        model_id,
        usage.get("total_tokens", "n/a"),
        latency,
        extra={
            "model_tier": model_tier,
            "model": model_id,
            "prompt_tokens": usage.get("prompt_tokens"),
            "completion_tokens": usage.get("completion_tokens"),
            "total_tokens": usage.get("total_tokens"),
            "latency_seconds": latency,
            "outcome": outcome,
        },
    )


# ---------------------------------------------------------------------------
# Connection check
# ---------------------------------------------------------------------------

async def check_connection(backend: CompletionBackend) -> dict:
    """
    Send a tiny request to confirm the backend is reachable and accepts the key.

    Never raises for backend failures; the result dict reports them.

    Returns:
        ``{"success": True, "response": str, "usage": dict | None}`` or
        ``{"success": False, "error": str}``.
    """
    model_id = str(MODEL_TIERS[STANDARD_TIER]["model_id"])
    logger.info("Checking backend connection with model %s", model_id)
    try:
        response_json = await _call_backend(
            backend,
            [{"role": "user", "content": CONNECTION_CHECK_PROMPT}],
            model_id,
            CONNECTION_CHECK_MAX_TOKENS,
        )
        text = extract_response_content(response_json)
    except GenerationError as exc:
        logger.error("Backend connection check failed: %s", exc)
        return {"success": False, "error": str(exc)}

    logger.info("Backend connection check succeeded")
    return {"success": True, "response": text, "usage": get_token_usage(response_json)}
