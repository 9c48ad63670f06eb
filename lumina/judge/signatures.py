"""DSPy signature definitions for reflection grading and lesson Q&A."""

from __future__ import annotations

import dspy


class JudgeReflection(dspy.Signature):
    """Decide whether a learner's reflection shows genuine engagement with a video lesson."""

    lesson = dspy.InputField(
        desc="Lesson title and description the learner just watched."
    )
    reflection = dspy.InputField(
        desc="The learner's free-text reflection (may be truncated)."
    )
    verdict = dspy.OutputField(
        desc='JSON object: {"passed": true/false, "feedback": "one or two encouraging sentences"}.'
    )


class AnswerLessonQuestion(dspy.Signature):
    """Answer a learner's question in the context of the lesson they are watching."""

    lesson = dspy.InputField(
        desc="Lesson title and description."
    )
    history = dspy.InputField(
        desc="Recent chat turns, oldest first, one 'role: text' per line."
    )
    question = dspy.InputField(
        desc="The learner's new question."
    )
    answer = dspy.OutputField(
        desc="Concise, beginner-friendly answer that steers off-topic questions back to the lesson."
    )


__all__ = ["AnswerLessonQuestion", "JudgeReflection"]
