"""
Unit tests for src/quiz_client/executor.py and HTTP error classification.

Covers:
- generate_quiz_item: valid item, metadata stamping, tier parameters,
  malformed completions, no retry on failure, structured log record.
- ChatBackend over httpx.MockTransport: request shape, status-code and
  transport-error classification, non-JSON bodies, closed client.
- Non-httpx backend exceptions: OSError -> TransportError, others ->
  BackendFault.
- check_connection: success and failure reporting without raising.
- load_api_key / ChatBackend.from_env: missing credential.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest

from src.quiz_client.config import MODEL_TIERS, SAMPLING_PARAMS, load_api_key
from src.quiz_client.errors import (
    AuthError,
    BackendFault,
    ConfigurationError,
    MalformedResponseError,
    RateLimitError,
    TransportError,
)
from src.quiz_client.executor import (
    ChatBackend,
    build_request_headers,
    build_request_payload,
    check_connection,
    generate_quiz_item,
)
from src.quiz_client.models import GenerationRequest


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mock_backend(handler) -> ChatBackend:
    """ChatBackend whose HTTP client is served by ``handler``."""
    return ChatBackend(
        api_key="test-key",
        base_url="https://llm.test/v1",
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# generate_quiz_item
# ---------------------------------------------------------------------------

class TestGenerateQuizItem:

    @pytest.mark.asyncio
    async def test_returns_validated_item(self, scripted_backend, good_completion, easy_request):
        backend = scripted_backend([good_completion()])
        item = await generate_quiz_item(easy_request, backend)

        assert item.correct_answer == "A"
        assert item.question.startswith("Which gas")
        for field in ("question", "option_a", "option_b", "option_c", "option_d"):
            assert getattr(item, field)

    @pytest.mark.asyncio
    async def test_stamps_request_metadata(self, scripted_backend, good_completion):
        request = GenerationRequest(topic="  Volcanoes ", difficulty=2)
        before = datetime.now(timezone.utc)
        item = await generate_quiz_item(request, scripted_backend([good_completion()]))
        after = datetime.now(timezone.utc)

        assert item.topic == "Volcanoes"
        assert item.difficulty == 2
        assert before <= item.generated_at <= after

    @pytest.mark.asyncio
    async def test_standard_tier_parameters(self, scripted_backend, good_completion, easy_request):
        backend = scripted_backend([good_completion()])
        await generate_quiz_item(easy_request, backend)

        call = backend.calls[0]
        assert call["model"] == MODEL_TIERS["standard"]["model_id"]
        assert call["max_tokens"] == MODEL_TIERS["standard"]["max_tokens"]
        assert call["temperature"] == SAMPLING_PARAMS["temperature"]
        assert [m["role"] for m in call["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_high_tier_gets_larger_token_budget(
        self, scripted_backend, good_completion, hard_request
    ):
        backend = scripted_backend([good_completion()])
        await generate_quiz_item(hard_request, backend)

        call = backend.calls[0]
        assert call["model"] == MODEL_TIERS["high"]["model_id"]
        assert call["max_tokens"] > MODEL_TIERS["standard"]["max_tokens"]

    @pytest.mark.asyncio
    async def test_prose_wrapped_json_accepted(self, scripted_backend, text_completion, quiz_payload,
                                               easy_request):
        content = f"Here is a quiz for you:\n```json\n{json.dumps(quiz_payload)}\n```"
        item = await generate_quiz_item(easy_request, scripted_backend([text_completion(content)]))
        assert item.explanation == quiz_payload["explanation"]

    @pytest.mark.asyncio
    async def test_no_json_is_malformed(self, scripted_backend, text_completion, easy_request):
        backend = scripted_backend([text_completion("Sorry, I can't do that.")])
        with pytest.raises(MalformedResponseError):
            await generate_quiz_item(easy_request, backend)

    @pytest.mark.asyncio
    async def test_invalid_letter_is_malformed(self, scripted_backend, good_completion, easy_request):
        backend = scripted_backend([good_completion(correct_answer="E")])
        with pytest.raises(MalformedResponseError) as exc_info:
            await generate_quiz_item(easy_request, backend)
        assert exc_info.value.field == "correct_answer"

    @pytest.mark.asyncio
    async def test_failure_is_not_retried(self, scripted_backend, good_completion, easy_request):
        backend = scripted_backend([RateLimitError("slow down"), good_completion()])
        with pytest.raises(RateLimitError):
            await generate_quiz_item(easy_request, backend)
        assert len(backend.calls) == 1

    @pytest.mark.asyncio
    async def test_os_error_from_backend_is_transport_error(self, scripted_backend, easy_request):
        backend = scripted_backend([ConnectionResetError("peer reset")])
        with pytest.raises(TransportError, match="peer reset") as exc_info:
            await generate_quiz_item(easy_request, backend)
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_unexpected_backend_exception_is_backend_fault(
        self, scripted_backend, easy_request
    ):
        backend = scripted_backend([RuntimeError("SDK exploded")])
        with pytest.raises(BackendFault, match="SDK exploded") as exc_info:
            await generate_quiz_item(easy_request, backend)
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_logs_tier_usage_and_outcome(self, scripted_backend, good_completion,
                                               easy_request, caplog):
        usage = {"prompt_tokens": 300, "completion_tokens": 150, "total_tokens": 450}
        backend = scripted_backend([good_completion(usage=usage)])

        with caplog.at_level(logging.INFO, logger="src.quiz_client.executor"):
            await generate_quiz_item(easy_request, backend)

        records = [r for r in caplog.records if getattr(r, "outcome", None) is not None]
        assert len(records) == 1
        record = records[0]
        assert record.outcome == "success"
        assert record.model_tier == "standard"
        assert record.total_tokens == 450

    @pytest.mark.asyncio
    async def test_logs_failure_outcome(self, scripted_backend, text_completion,
                                        easy_request, caplog):
        backend = scripted_backend([text_completion("no json here")])

        with caplog.at_level(logging.INFO, logger="src.quiz_client.executor"):
            with pytest.raises(MalformedResponseError):
                await generate_quiz_item(easy_request, backend)

        record = next(r for r in caplog.records if getattr(r, "outcome", None))
        assert record.outcome == "MalformedResponseError"
        assert record.levelno == logging.WARNING


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------

class TestRequestConstruction:

    def test_bearer_headers(self):
        headers = build_request_headers("sk-test")
        assert headers["Authorization"] == "Bearer sk-test"
        assert headers["Content-Type"] == "application/json"

    def test_payload_fields(self):
        messages = [{"role": "user", "content": "hi"}]
        payload = build_request_payload(messages, "gpt-4o", 800, 0.7, 1.0)
        assert payload == {
            "model": "gpt-4o",
            "messages": messages,
            "max_tokens": 800,
            "temperature": 0.7,
            "top_p": 1.0,
        }


# ---------------------------------------------------------------------------
# ChatBackend over HTTP
# ---------------------------------------------------------------------------

class TestChatBackend:

    @pytest.mark.asyncio
    async def test_posts_to_chat_completions(self, good_completion, easy_request):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=good_completion())

        async with _mock_backend(handler) as backend:
            item = await generate_quiz_item(easy_request, backend)

        assert item.correct_answer == "A"
        request = seen[0]
        assert str(request.url) == "https://llm.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["model"] == MODEL_TIERS["standard"]["model_id"]
        assert body["temperature"] == SAMPLING_PARAMS["temperature"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, expected",
        [
            (401, AuthError),
            (403, AuthError),
            (429, RateLimitError),
            (500, BackendFault),
            (503, BackendFault),
            (400, BackendFault),
        ],
    )
    async def test_status_classification(self, status, expected, easy_request):
        handler = lambda request: httpx.Response(status, json={"error": "x"})  # noqa: E731
        async with _mock_backend(handler) as backend:
            with pytest.raises(expected) as exc_info:
                await generate_quiz_item(easy_request, backend)
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    @pytest.mark.asyncio
    async def test_backend_fault_keeps_status(self, easy_request):
        async with _mock_backend(lambda request: httpx.Response(502)) as backend:
            with pytest.raises(BackendFault) as exc_info:
                await generate_quiz_item(easy_request, backend)
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self, easy_request):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _mock_backend(handler) as backend:
            with pytest.raises(TransportError):
                await generate_quiz_item(easy_request, backend)

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self, easy_request):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        async with _mock_backend(handler) as backend:
            with pytest.raises(TransportError, match="timed out"):
                await generate_quiz_item(easy_request, backend)

    @pytest.mark.asyncio
    async def test_non_json_body_is_malformed(self, easy_request):
        handler = lambda request: httpx.Response(200, text="<html>oops</html>")  # noqa: E731
        async with _mock_backend(handler) as backend:
            with pytest.raises(MalformedResponseError):
                await generate_quiz_item(easy_request, backend)

    @pytest.mark.asyncio
    async def test_closed_client_is_backend_fault(self, easy_request):
        backend = _mock_backend(lambda request: httpx.Response(200))
        await backend.aclose()

        with pytest.raises(BackendFault) as exc_info:
            await generate_quiz_item(easy_request, backend)
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with ChatBackend(api_key="k", client=client):
            pass
        assert not client.is_closed
        await client.aclose()


# ---------------------------------------------------------------------------
# Connection check
# ---------------------------------------------------------------------------

class TestCheckConnection:

    @pytest.mark.asyncio
    async def test_success(self, scripted_backend, text_completion):
        usage = {"prompt_tokens": 12, "completion_tokens": 3, "total_tokens": 15}
        backend = scripted_backend([text_completion("connection OK", usage=usage)])

        status = await check_connection(backend)

        assert status == {"success": True, "response": "connection OK", "usage": usage}
        assert backend.calls[0]["max_tokens"] == 50

    @pytest.mark.asyncio
    async def test_failure_reported_not_raised(self):
        async with _mock_backend(lambda request: httpx.Response(401)) as backend:
            status = await check_connection(backend)

        assert status["success"] is False
        assert "401" in status["error"]

    @pytest.mark.asyncio
    async def test_os_error_reported_not_raised(self, scripted_backend):
        backend = scripted_backend([ConnectionResetError("peer reset")])

        status = await check_connection(backend)

        assert status["success"] is False
        assert "peer reset" in status["error"]


# ---------------------------------------------------------------------------
# Credential loading
# ---------------------------------------------------------------------------

class TestCredentials:

    def test_missing_key_raises(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
                load_api_key()

    def test_blank_key_raises(self):
        with patch.dict("os.environ", {"OPENAI_API_KEY": "   "}):
            with pytest.raises(ConfigurationError):
                load_api_key()

    def test_key_loaded(self):
        with patch.dict("os.environ", {"OPENAI_API_KEY": "sk-live"}):
            assert load_api_key() == "sk-live"

    def test_from_env_requires_key(self):
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ConfigurationError):
                ChatBackend.from_env()
