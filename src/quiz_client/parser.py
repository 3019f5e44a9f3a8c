"""
Completion parsing, JSON object extraction, and quiz field validation.

No I/O occurs here; all functions are pure transformations of strings/dicts
to support easy unit testing.  Every failure surfaces as
:class:`MalformedResponseError` so callers handle one error kind for any
unusable completion.
"""

from __future__ import annotations

import json

from .config import REQUIRED_FIELDS, VALID_ANSWERS
from .errors import MalformedResponseError


def extract_response_content(response_json: dict) -> str:
    """
    Extract the completion text from a chat-completions response body.

    Expected shape: ``choices[0].message.content``.

    Args:
        response_json: Raw JSON-decoded response from the backend.

    Returns:
        Completion text, stripped.

    Raises:
        MalformedResponseError: If the body does not carry completion text.
    """
    try:
        content = response_json["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        keys = list(response_json) if isinstance(response_json, dict) else []
        raise MalformedResponseError(
            f"Unrecognized completion format. Top-level keys present: {keys}"
        ) from exc

    if not isinstance(content, str) or not content.strip():
        raise MalformedResponseError("Completion text is empty.")
    return content.strip()


def get_token_usage(response_json: dict) -> dict[str, int] | None:
    """
    Extract token counts from a response body, if the backend reported them.

    Returns:
        Dict with ``prompt_tokens``, ``completion_tokens`` and
        ``total_tokens``, or ``None`` when no usage block is present.
    """
    usage = response_json.get("usage") if isinstance(response_json, dict) else None
    if not isinstance(usage, dict):
        return None

    prompt_tokens = usage.get("prompt_tokens") or 0
    completion_tokens = usage.get("completion_tokens") or 0
    total_tokens = usage.get("total_tokens") or prompt_tokens + completion_tokens
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": total_tokens,
    }


def find_json_object(text: str) -> str | None:
    """
    Locate the first balanced ``{...}`` substring in free text.

    Scans with a depth counter that ignores braces inside JSON strings
    (including escaped quotes), so nested braces in explanation text do not
    cut the object short.  Prose and Markdown code fences around the object
    are skipped naturally.

    Args:
        text: Raw completion text.

    Returns:
        The candidate substring, or ``None`` if no opening brace is ever
        balanced.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            char = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def extract_json_object(text: str) -> dict:
    """
    Extract and decode the first JSON object in ``text``.

    Raises:
        MalformedResponseError: No object found, invalid JSON, or the decoded
            value is not an object.
    """
    candidate = find_json_object(text)
    if candidate is None:
        raise MalformedResponseError("No JSON object found in completion text.")

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(f"Completion JSON could not be parsed: {exc}") from exc

    if not isinstance(parsed, dict):
        raise MalformedResponseError("Completion JSON is not an object.")
    return parsed


def validate_quiz_fields(data: dict) -> dict[str, str]:
    """
    Check the six required fields and normalize the quiz payload.

    Each required field must be a non-empty string; ``correct_answer`` must
    be exactly one of ``A``-``D`` after stripping whitespace.  The optional
    ``explanation`` is kept verbatim (empty string when absent).

    Args:
        data: Decoded JSON object from :func:`extract_json_object`.

    Returns:
        Dict with the six required fields (stripped) and ``explanation``.

    Raises:
        MalformedResponseError: With ``field`` set to the first offending key.
    """
    cleaned: dict[str, str] = {}
    for name in REQUIRED_FIELDS:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            raise MalformedResponseError(
                f"Required field '{name}' is missing or empty.", field=name
            )
        cleaned[name] = value.strip()

    if cleaned["correct_answer"] not in VALID_ANSWERS:
        raise MalformedResponseError(
            "correct_answer must be one of A, B, C, D "
            f"(got {cleaned['correct_answer']!r}).",
            field="correct_answer",
        )

    explanation = data.get("explanation")
    cleaned["explanation"] = explanation.strip() if isinstance(explanation, str) else ""
    return cleaned


def parse_quiz_completion(content: str) -> dict[str, str]:
    """Extract, decode, and validate a quiz record from completion text."""
    return validate_quiz_fields(extract_json_object(content))
