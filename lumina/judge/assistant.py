"""Lesson-scoped Q&A assistant backed by the judge's language model."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from lumina.learning.models import ChatMessage, Module

from .settings import llm_judge_disabled

LOGGER = logging.getLogger(__name__)

ASSISTANT_UNAVAILABLE = "The lesson assistant is not available right now. Please try again later."
NO_ANSWER = "Sorry, I couldn't come up with an answer to that."


class LessonAssistant:
    def __init__(self, program: Callable[..., Any] | None = None, *, history_limit: int = 8) -> None:
        self.program = program
        self.history_limit = history_limit

    @property
    def available(self) -> bool:
        return self.program is not None and not llm_judge_disabled()

    def ask(self, module: Module, question: str, history: Sequence[ChatMessage] = ()) -> str:
        if not self.available:
            return ASSISTANT_UNAVAILABLE
        recent = list(history)[-self.history_limit :] if self.history_limit else []
        transcript = "\n".join(f"{message.role}: {message.text}" for message in recent)
        try:
            prediction = self.program(
                lesson=f"{module.title}\n\n{module.description}".strip(),
                history=transcript,
                question=question,
            )
        except Exception:
            LOGGER.exception("Lesson assistant failed for module %s", module.id)
            return ASSISTANT_UNAVAILABLE
        answer = str(getattr(prediction, "answer", "") or "").strip()
        return answer or NO_ANSWER


__all__ = ["ASSISTANT_UNAVAILABLE", "LessonAssistant", "NO_ANSWER"]
