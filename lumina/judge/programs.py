"""Factory helpers for the DSPy programs behind the judge and the lesson assistant."""

from __future__ import annotations

import dspy

from .signatures import AnswerLessonQuestion, JudgeReflection


def build_judge_program(*, lm: object | None = None) -> dspy.Module:
    """Return a JudgeReflection predictor, optionally pinned to `lm`."""

    return _wrap_with_lm(dspy.Predict(JudgeReflection), lm)


def build_assistant_program(*, lm: object | None = None) -> dspy.Module:
    return _wrap_with_lm(dspy.Predict(AnswerLessonQuestion), lm)


def _wrap_with_lm(program: dspy.Module, lm_handle: object | None) -> dspy.Module:
    if lm_handle is None:
        return program
    return _LMScopedProgram(program, lm_handle)


class _LMScopedProgram:
    """Wrapper that temporarily swaps DSPy's active LM before execution."""

    def __init__(self, program: dspy.Module, lm_handle: object) -> None:
        self._program = program
        self._lm = lm_handle

    def __call__(self, *args, **kwargs):
        # dspy.context is thread-local, request handlers run on worker threads
        with dspy.context(lm=self._lm):
            return self._program(*args, **kwargs)


__all__ = ["build_assistant_program", "build_judge_program"]
