"""
Error taxonomy for quiz generation and HTTP failure classification.

Every per-attempt failure is a :class:`GenerationError`.  The ``retryable``
flag drives the strict retry policy in :mod:`retry`; the uniform baseline
policy ignores it.  :class:`InvalidRequestError` and
:class:`ConfigurationError` sit outside ``GenerationError`` because they are
caller or deployment mistakes, never retried.
"""

from __future__ import annotations

import httpx


class QuizClientError(Exception):
    """Root of every error raised by the quiz client."""


class ConfigurationError(QuizClientError):
    """Missing credential or unusable tunable; fatal at startup."""


class InvalidRequestError(QuizClientError):
    """Request values outside the accepted bounds."""


# ---------------------------------------------------------------------------
# Generation failures
# ---------------------------------------------------------------------------

class GenerationError(QuizClientError):
    """
    A single generation attempt (or a whole retried generation) failed.

    Attributes:
        retryable: Whether a later attempt could plausibly succeed.
        user_message: Short text suitable for showing to an end user.
    """

    retryable: bool = True
    user_message: str = (
        "The AI service is temporarily unavailable. Please try again later."
    )


class TransportError(GenerationError):
    """The backend could not be reached (DNS, refused connection, timeout)."""

    user_message = "Network error while contacting the AI service. Check connectivity."


class AuthError(GenerationError):
    """The backend rejected the credential."""

    retryable = False
    user_message = "The AI service API key is invalid. Check the configuration."


class RateLimitError(GenerationError):
    """The backend is throttling requests."""

    user_message = "The AI service rate limit was reached. Wait a moment and retry."


class BackendFault(GenerationError):
    """The backend answered with a server-side (or otherwise unexpected) status."""

    user_message = "The AI service reported an internal error. Please retry shortly."

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(GenerationError):
    """The completion text did not hold a valid quiz record."""

    user_message = "The AI service returned an unreadable quiz. Please retry."

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class RetryExhaustedError(GenerationError):
    """Terminal failure after the retry orchestrator gave up."""

    def __init__(self, attempts: int, last_error: GenerationError) -> None:
        super().__init__(
            f"Quiz generation failed after {attempts} attempt(s): "
            f"[{type(last_error).__name__}] {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
        self.retryable = last_error.retryable


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

def classify_http_error(error: httpx.HTTPError) -> GenerationError:
    """
    Map an httpx exception raised during a backend call onto the taxonomy.

    - 401 / 403 → :class:`AuthError`
    - 429 → :class:`RateLimitError`
    - any other non-2xx status → :class:`BackendFault`
    - timeouts and connection problems → :class:`TransportError`

    Args:
        error: Exception raised by ``httpx`` or by ``raise_for_status()``.

    Returns:
        A new :class:`GenerationError`; the caller chains it with ``from``.
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status in (401, 403):
            return AuthError(f"Backend rejected credentials (HTTP {status}).")
        if status == 429:
            return RateLimitError("Backend rate limit exceeded (HTTP 429).")
        return BackendFault(f"Backend returned HTTP {status}.", status_code=status)

    if isinstance(error, httpx.TimeoutException):
        return TransportError(f"Backend request timed out: {error}")

    return TransportError(f"Could not reach backend: {error}")
