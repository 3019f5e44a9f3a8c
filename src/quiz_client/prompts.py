"""
Prompt construction and model-tier selection.

Pure functions only: the same (topic, difficulty) always yields the same
prompt text and tier.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import (
    EXPLANATION_TARGET_CHARS,
    HIGH_TIER,
    HIGH_TIER_MIN_DIFFICULTY,
    STANDARD_TIER,
)

DIFFICULTY_LEGEND = (
    "1=beginner, 2=elementary, 3=intermediate, 4=upper-intermediate, 5=advanced"
)

_JSON_CONTRACT = (
    "Respond with a single valid JSON object and nothing else. It must contain "
    'the string fields "question", "option_a", "option_b", "option_c", '
    '"option_d", "correct_answer" and "explanation". "correct_answer" must be '
    'exactly one letter: "A", "B", "C" or "D".'
)

STANDARD_SYSTEM_PROMPT = (
    "You are an excellent educator who helps learners build real understanding. "
    "In quiz explanations, do not just state the answer: explain the reasoning "
    "and background, and why each other option is wrong. "
    + _JSON_CONTRACT
)

HIGH_SYSTEM_PROMPT = (
    "You are an expert educator writing high-difficulty questions where complete "
    "accuracy is mandatory. Avoid any error in mathematical facts, scientific "
    "principles, and logical reasoning; never misstate fundamental theorems or "
    "formulas. Give the most precise and instructive explanation possible. "
    + _JSON_CONTRACT
)

_USER_TEMPLATE = """\
Create one educational quiz question with the following specification:
- Topic: {topic}
- Difficulty: {difficulty}/5 ({legend})
- Format: multiple choice with four options
- Requirements: accurate, educational, pitched at the stated difficulty

The explanation must cover:
1. Why the correct answer is right, with the underlying principle
2. Why each of the other options is wrong
3. Key points worth remembering
4. A practical application or related fact, where possible

Keep the explanation to roughly {min_chars}-{max_chars} characters.

Answer only with JSON in exactly this shape:
{{
  "question": "question text",
  "option_a": "option A",
  "option_b": "option B",
  "option_c": "option C",
  "option_d": "option D",
  "correct_answer": "A",
  "explanation": "detailed explanation"
}}"""


@dataclass(frozen=True)
class PromptBundle:
    """Role-tagged instruction text plus the tier it was written for."""

    system_text: str
    user_text: str
    model_tier: str

    def as_messages(self) -> list[dict[str, str]]:
        """Return chat-style messages for the backend call."""
        return [
            {"role": "system", "content": self.system_text},
            {"role": "user", "content": self.user_text},
        ]


def select_model_tier(difficulty: int) -> str:
    """
    Map difficulty to a model tier.

    Difficulty 3 and above uses the high-capability tier; 1-2 use the
    standard tier.
    """
    return HIGH_TIER if difficulty >= HIGH_TIER_MIN_DIFFICULTY else STANDARD_TIER


def build_prompt(topic: str, difficulty: int) -> PromptBundle:
    """
    Build the system and user instructions for one quiz item.

    Args:
        topic: Subject of the question, already validated.
        difficulty: Level 1-5.

    Returns:
        :class:`PromptBundle` with the instruction text and selected tier.
    """
    tier = select_model_tier(difficulty)
    system_text = HIGH_SYSTEM_PROMPT if tier == HIGH_TIER else STANDARD_SYSTEM_PROMPT
    min_chars, max_chars = EXPLANATION_TARGET_CHARS
    user_text = _USER_TEMPLATE.format(
        topic=topic,
        difficulty=difficulty,
        legend=DIFFICULTY_LEGEND,
        min_chars=min_chars,
        max_chars=max_chars,
    )
    return PromptBundle(system_text=system_text, user_text=user_text, model_tier=tier)
