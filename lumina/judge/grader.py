"""Language-model reflection judge with the heuristic judge as floor and fallback."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict

from lumina.core.config import JudgeConfig
from lumina.learning.models import Verdict

from .heuristic import HeuristicJudge
from .settings import llm_judge_disabled

LOGGER = logging.getLogger(__name__)

DEFAULT_PASS_FEEDBACK = "Reflection accepted. Continue to the next lesson."
DEFAULT_REJECT_FEEDBACK = "Try to connect the lesson to something concrete from your own work."


class LanguageModelJudge:
    """Grades reflections with an LM program when one is available.

    The heuristic judge runs first; its rejections (too short, filler text)
    stand without spending an LM call. When the LM is disabled, fails, or
    returns unparseable output, the heuristic verdict is used.
    """

    def __init__(
        self,
        fallback: HeuristicJudge,
        *,
        program: Callable[..., Any] | None = None,
        max_chars: int = 4000,
    ) -> None:
        self.fallback = fallback
        self.program = program
        self._max_chars = max_chars
        self._use_llm = program is not None and not llm_judge_disabled()

    @property
    def uses_llm(self) -> bool:
        return self._use_llm

    def evaluate(self, title: str, description: str, text: str) -> Verdict:
        floor = self.fallback.evaluate(title, description, text)
        if not floor.passed or not self._use_llm:
            return floor

        payload = self._call_program(title, description, text)
        if payload is None:
            return floor
        passed = bool(payload.get("passed"))
        feedback = str(payload.get("feedback") or "").strip()
        if not feedback:
            feedback = DEFAULT_PASS_FEEDBACK if passed else DEFAULT_REJECT_FEEDBACK
        return Verdict(passed=passed, feedback=feedback)

    # ------------------------------------------------------------------

    def _call_program(self, title: str, description: str, text: str) -> Dict[str, Any] | None:
        lesson = f"{title}\n\n{description}".strip()
        try:
            prediction = self.program(lesson=lesson, reflection=self._trim_text(text.strip()))
        except Exception as exc:
            LOGGER.warning("Reflection judge LM call failed: %s", exc)
            return None
        raw = getattr(prediction, "verdict", prediction)
        return self._extract_json(self._normalize_lm_output(raw))

    @staticmethod
    def _normalize_lm_output(raw: Any) -> str:
        if isinstance(raw, dict):
            return json.dumps(raw)
        if isinstance(raw, list):
            return "\n".join(str(part) for part in raw)
        return str(raw)

    @staticmethod
    def _extract_json(text: str) -> Dict[str, Any] | None:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end == -1 or end <= start:
            return None
        snippet = text[start : end + 1]
        try:
            data = json.loads(snippet)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or "passed" not in data:
            return None
        return data

    def _trim_text(self, text: str) -> str:
        if len(text) <= self._max_chars:
            return text
        return text[: self._max_chars] + "\n\n[Truncated for evaluation]"


def build_judge(judge_cfg: JudgeConfig, *, lm: object | None = None, lm_factory: Callable[[JudgeConfig], object] | None = None):
    """Return the judge the portal should use for `judge_cfg`.

    `lm_factory` defaults to `build_judge_lm`; a missing API key downgrades to
    the heuristic judge instead of failing startup.
    """

    heuristic = HeuristicJudge(min_chars=judge_cfg.min_chars, banned_phrases=judge_cfg.banned_phrases)
    if not judge_cfg.use_llm or llm_judge_disabled():
        return heuristic

    if lm is None:
        from lumina.core.dspy_runtime import DSPyConfigurationError, build_judge_lm

        factory = lm_factory or build_judge_lm
        try:
            lm = factory(judge_cfg)
        except DSPyConfigurationError as exc:
            LOGGER.warning("LM judge unavailable, using heuristic judge: %s", exc)
            return heuristic

    from .programs import build_judge_program

    return LanguageModelJudge(heuristic, program=build_judge_program(lm=lm), max_chars=judge_cfg.max_chars)


__all__ = ["LanguageModelJudge", "build_judge"]
