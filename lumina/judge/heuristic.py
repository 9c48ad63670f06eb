"""Deterministic reflection judge: a length floor plus a filler-phrase check."""

from __future__ import annotations

from typing import Sequence

from lumina.learning.models import Verdict

DEFAULT_MIN_CHARS = 30

PASS_FEEDBACK = "Thanks, that's a thoughtful reflection. Move on to the next lesson."
FILLER_FEEDBACK = (
    "Your reflection looks like filler or placeholder text. "
    "Please describe what you actually learned."
)


def too_short_feedback(remaining: int) -> str:
    return (
        f"Your reflection is too short. Write at least {remaining} more characters "
        "and describe something concrete you learned."
    )


class HeuristicJudge:
    """Rejects reflections that are too short or contain banned filler phrases."""

    def __init__(self, *, min_chars: int = DEFAULT_MIN_CHARS, banned_phrases: Sequence[str] = ()) -> None:
        self.min_chars = min_chars
        self.banned_phrases = [phrase for phrase in banned_phrases if phrase]

    def evaluate(self, title: str, description: str, text: str) -> Verdict:
        trimmed = text.strip()
        if len(trimmed) < self.min_chars:
            return Verdict(passed=False, feedback=too_short_feedback(self.min_chars - len(trimmed)))
        if any(phrase in trimmed for phrase in self.banned_phrases):
            return Verdict(passed=False, feedback=FILLER_FEEDBACK)
        return Verdict(passed=True, feedback=PASS_FEEDBACK)


__all__ = ["DEFAULT_MIN_CHARS", "FILLER_FEEDBACK", "HeuristicJudge", "PASS_FEEDBACK", "too_short_feedback"]
