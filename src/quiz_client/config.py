"""
Backend configuration, model tiers, and retry/pacing tunables.

All constants used across the quiz client modules are centralized here so
that config is separated from logic.  Numeric tunables and model ids can be
overridden through environment variables; the API key is read lazily by
:func:`load_api_key` so importing this module never fails.
"""

from __future__ import annotations

import os

from .errors import ConfigurationError


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Environment variable '{name}' must be a number, got {raw!r}."
        ) from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"Environment variable '{name}' must be an integer, got {raw!r}."
        ) from exc


# ---------------------------------------------------------------------------
# Backend endpoint and credentials
# ---------------------------------------------------------------------------

API_KEY_ENV = "OPENAI_API_KEY"

API_BASE_URL: str = os.getenv("QUIZGEN_API_BASE_URL", "https://api.openai.com/v1")
CHAT_COMPLETIONS_PATH = "/chat/completions"

REQUEST_TIMEOUT_SECONDS: float = _env_float("QUIZGEN_REQUEST_TIMEOUT", 60.0)


def load_api_key(env_var: str = API_KEY_ENV) -> str:
    """
    Return the backend credential from the environment.

    Absence is a startup-fatal condition for the process, not a per-call
    error, so callers should resolve the key once when building the backend.

    Raises:
        ConfigurationError: If the environment variable is unset or blank.
    """
    api_key = os.getenv(env_var, "").strip()
    if not api_key:
        raise ConfigurationError(
            f"API key not found. Set the '{env_var}' environment variable "
            "before starting the quiz generator."
        )
    return api_key


# ---------------------------------------------------------------------------
# Model tiers
# ---------------------------------------------------------------------------

STANDARD_TIER = "standard"
HIGH_TIER = "high"

# Difficulty at or above which the high-capability tier is used
HIGH_TIER_MIN_DIFFICULTY = 3

# MODEL_TIERS: one entry per tier.  Larger token budget on the high tier
# leaves room for longer, more rigorous explanations.
MODEL_TIERS: dict[str, dict[str, str | int]] = {
    STANDARD_TIER: {
        "model_id": os.getenv("QUIZGEN_STANDARD_MODEL", "gpt-3.5-turbo"),
        "max_tokens": 650,
    },
    HIGH_TIER: {
        "model_id": os.getenv("QUIZGEN_HIGH_MODEL", "gpt-4o"),
        "max_tokens": 800,
    },
}

# Sampling parameters shared by both tiers
SAMPLING_PARAMS: dict[str, float] = {
    "temperature": 0.7,
    "top_p": 1.0,
}

# Token budget for the connection check
CONNECTION_CHECK_MAX_TOKENS = 50

# ---------------------------------------------------------------------------
# Request bounds
# ---------------------------------------------------------------------------

MAX_TOPIC_LENGTH = 100
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
MIN_COUNT = 1
MAX_COUNT = 10

# ---------------------------------------------------------------------------
# Response contract
# ---------------------------------------------------------------------------

REQUIRED_FIELDS: tuple[str, ...] = (
    "question",
    "option_a",
    "option_b",
    "option_c",
    "option_d",
    "correct_answer",
)
VALID_ANSWERS: frozenset[str] = frozenset({"A", "B", "C", "D"})

# Soft guideline stated in the prompt; not enforced on the response
EXPLANATION_TARGET_CHARS = (200, 300)

# ---------------------------------------------------------------------------
# Retry and pacing
# ---------------------------------------------------------------------------

MAX_ATTEMPTS: int = _env_int("QUIZGEN_MAX_ATTEMPTS", 3)
BACKOFF_BASE_SECONDS: float = _env_float("QUIZGEN_BACKOFF_BASE", 1.0)
BACKOFF_CAP_SECONDS: float = _env_float("QUIZGEN_BACKOFF_CAP", 30.0)
PACING_DELAY_SECONDS: float = _env_float("QUIZGEN_PACING_DELAY", 1.0)
