"""Reflection judges and the lesson assistant.

Only the heuristic pieces are imported eagerly; the DSPy programs load on
first use so the core stays importable without an LM configured.
"""

from .assistant import LessonAssistant
from .grader import LanguageModelJudge, build_judge
from .heuristic import HeuristicJudge

__all__ = ["HeuristicJudge", "LanguageModelJudge", "LessonAssistant", "build_judge"]
