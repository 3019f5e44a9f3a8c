"""
Shared pytest fixtures for the quiz client tests.

The scripted backend stands in for the language-model service: each call
pops the next step from its script and either returns it (a response body)
or raises it (an exception instance).  Sleeps are recorded rather than
awaited so no test waits on the clock.
"""

from __future__ import annotations

import json

import pytest

from src.quiz_client.models import GenerationRequest


VALID_QUIZ = {
    "question": "Which gas do plants absorb during photosynthesis?",
    "option_a": "Carbon dioxide",
    "option_b": "Oxygen",
    "option_c": "Nitrogen",
    "option_d": "Helium",
    "correct_answer": "A",
    "explanation": (
        "Plants take in carbon dioxide {CO2} and release oxygen. Oxygen is a "
        "product, nitrogen is not fixed by leaves, and helium is inert."
    ),
}


def make_completion(content: str, usage: dict | None = None) -> dict:
    """Build a chat-completions response body around ``content``."""
    body: dict = {"choices": [{"message": {"role": "assistant", "content": content}}]}
    if usage is not None:
        body["usage"] = usage
    return body


class ScriptedBackend:
    """In-memory backend that replays a fixed script of responses/errors."""

    def __init__(self, script: list) -> None:
        self.script = list(script)
        self.calls: list[dict] = []

    async def complete(self, messages, model, max_tokens, temperature, top_p):
        self.calls.append({
            "messages": messages,
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "top_p": top_p,
        })
        assert self.script, "backend called more times than scripted"
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step


class SleepRecorder:
    """Awaitable replacement for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def quiz_payload() -> dict:
    """A fresh copy of a valid quiz JSON object."""
    return dict(VALID_QUIZ)


@pytest.fixture
def good_completion():
    """Factory: completion body holding a valid quiz, with optional overrides."""
    def _make(usage: dict | None = None, **overrides) -> dict:
        payload = {**VALID_QUIZ, **overrides}
        return make_completion(json.dumps(payload), usage=usage)
    return _make


@pytest.fixture
def text_completion():
    """Factory: completion body holding arbitrary text."""
    return make_completion


@pytest.fixture
def scripted_backend():
    """Factory: build a ScriptedBackend from a list of steps."""
    return ScriptedBackend


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def easy_request() -> GenerationRequest:
    return GenerationRequest(topic="Photosynthesis", difficulty=1, count=1)


@pytest.fixture
def hard_request() -> GenerationRequest:
    return GenerationRequest(topic="Group theory", difficulty=4, count=1)
