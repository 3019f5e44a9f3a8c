"""
Request, quiz item, and result types exchanged between the client layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .config import (
    MAX_COUNT,
    MAX_DIFFICULTY,
    MAX_TOPIC_LENGTH,
    MIN_COUNT,
    MIN_DIFFICULTY,
)
from .errors import GenerationError, InvalidRequestError


@dataclass(frozen=True)
class GenerationRequest:
    """
    One inbound generation call: a topic, a difficulty, and how many items.

    Values are re-checked on construction even though the routing layer
    validates them first.  ``topic`` is stored stripped.

    Raises:
        InvalidRequestError: On an empty or over-long topic, or difficulty /
            count outside their ranges.
    """

    topic: str
    difficulty: int = 1
    count: int = 1

    def __post_init__(self) -> None:
        if not isinstance(self.topic, str) or not self.topic.strip():
            raise InvalidRequestError("Topic is required.")
        topic = self.topic.strip()
        if len(topic) > MAX_TOPIC_LENGTH:
            raise InvalidRequestError(
                f"Topic must be at most {MAX_TOPIC_LENGTH} characters "
                f"(got {len(topic)})."
            )
        # bool is an int subclass; reject it explicitly
        if isinstance(self.difficulty, bool) or not isinstance(self.difficulty, int):
            raise InvalidRequestError("Difficulty must be an integer.")
        if not MIN_DIFFICULTY <= self.difficulty <= MAX_DIFFICULTY:
            raise InvalidRequestError(
                f"Difficulty must be between {MIN_DIFFICULTY} and "
                f"{MAX_DIFFICULTY} (got {self.difficulty})."
            )
        if isinstance(self.count, bool) or not isinstance(self.count, int):
            raise InvalidRequestError("Count must be an integer.")
        if not MIN_COUNT <= self.count <= MAX_COUNT:
            raise InvalidRequestError(
                f"Count must be between {MIN_COUNT} and {MAX_COUNT} "
                f"(got {self.count})."
            )
        object.__setattr__(self, "topic", topic)


@dataclass
class GeneratedQuizItem:
    """A validated four-option quiz question, not yet persisted."""

    question: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_answer: str
    explanation: str
    topic: str
    difficulty: int
    generated_at: datetime

    def to_dict(self) -> dict:
        """Convert to a flat dict for the persistence layer."""
        return {
            "question": self.question,
            "option_a": self.option_a,
            "option_b": self.option_b,
            "option_c": self.option_c,
            "option_d": self.option_d,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "topic": self.topic,
            "difficulty": self.difficulty,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class GenerationOutcome:
    """Result of one attempt: exactly one of ``item`` or ``error`` is set."""

    item: GeneratedQuizItem | None = None
    error: GenerationError | None = None

    @classmethod
    def success(cls, item: GeneratedQuizItem) -> GenerationOutcome:
        return cls(item=item)

    @classmethod
    def failure(cls, error: GenerationError) -> GenerationOutcome:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.item is not None


@dataclass(frozen=True)
class BatchFailure:
    """A batch position whose retries were exhausted."""

    index: int  # 1-based position in the requested batch
    error: GenerationError


@dataclass
class BatchResult:
    """
    Outcome of a multi-item request.

    ``items`` holds successes in attempt order; ``failures`` holds the rest.
    Together they account for every requested position exactly once.
    """

    requested: int
    items: list[GeneratedQuizItem] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        return {
            "requested": self.requested,
            "generated": len(self.items),
            "failed": len(self.failures),
        }
