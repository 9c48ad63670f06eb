import os
import unittest
from types import SimpleNamespace
from unittest import mock

from lumina.core.config import JudgeConfig
from lumina.core.dspy_runtime import DSPyConfigurationError
from lumina.judge.assistant import ASSISTANT_UNAVAILABLE, NO_ANSWER, LessonAssistant
from lumina.judge.grader import DEFAULT_REJECT_FEEDBACK, LanguageModelJudge, build_judge
from lumina.judge.heuristic import FILLER_FEEDBACK, PASS_FEEDBACK, HeuristicJudge
from lumina.judge.settings import DISABLE_LLM_ENV
from lumina.learning.models import ChatMessage

from tests.mocks.learning import make_module

LONG_TEXT = "The fee tiers depend on how many prescriptions the pharmacy fills each month."


class HeuristicJudgeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.judge = HeuristicJudge(min_chars=30, banned_phrases=["aaa", "test", "asdf"])

    def test_counts_remaining_characters_after_trimming(self) -> None:
        verdict = self.judge.evaluate("Lesson", "", "   0123456789   ")
        self.assertFalse(verdict.passed)
        self.assertIn("20 more characters", verdict.feedback)

    def test_filler_phrase_is_rejected(self) -> None:
        verdict = self.judge.evaluate("Lesson", "", "asdf " * 10)
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.feedback, FILLER_FEEDBACK)

    def test_substantive_text_passes(self) -> None:
        verdict = self.judge.evaluate("Lesson", "", LONG_TEXT)
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.feedback, PASS_FEEDBACK)


class LanguageModelJudgeTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.dict(os.environ, {}, clear=False)
        patcher.start()
        self.addCleanup(patcher.stop)
        os.environ.pop(DISABLE_LLM_ENV, None)
        self.floor = HeuristicJudge(min_chars=30)

    def test_heuristic_rejection_skips_the_lm(self) -> None:
        program = mock.Mock()
        judge = LanguageModelJudge(self.floor, program=program)
        self.assertFalse(judge.evaluate("Lesson", "", "too short").passed)
        program.assert_not_called()

    def test_lm_verdict_is_parsed_from_json(self) -> None:
        program = mock.Mock(return_value=SimpleNamespace(verdict='Sure: {"passed": false, "feedback": "Name a drug."}'))
        judge = LanguageModelJudge(self.floor, program=program)
        verdict = judge.evaluate("Fees", "Base fee tiers", LONG_TEXT)
        self.assertFalse(verdict.passed)
        self.assertEqual(verdict.feedback, "Name a drug.")
        kwargs = program.call_args.kwargs
        self.assertEqual(kwargs["lesson"], "Fees\n\nBase fee tiers")
        self.assertEqual(kwargs["reflection"], LONG_TEXT)

    def test_missing_feedback_gets_default_text(self) -> None:
        program = mock.Mock(return_value=SimpleNamespace(verdict={"passed": False}))
        verdict = LanguageModelJudge(self.floor, program=program).evaluate("Fees", "", LONG_TEXT)
        self.assertEqual(verdict.feedback, DEFAULT_REJECT_FEEDBACK)

    def test_unparseable_output_falls_back_to_heuristic(self) -> None:
        program = mock.Mock(return_value=SimpleNamespace(verdict="I think it is fine"))
        verdict = LanguageModelJudge(self.floor, program=program).evaluate("Fees", "", LONG_TEXT)
        self.assertTrue(verdict.passed)
        self.assertEqual(verdict.feedback, PASS_FEEDBACK)

    def test_lm_exception_falls_back_to_heuristic(self) -> None:
        program = mock.Mock(side_effect=RuntimeError("rate limited"))
        judge = LanguageModelJudge(self.floor, program=program)
        with self.assertLogs("lumina.judge.grader", level="WARNING"):
            verdict = judge.evaluate("Fees", "", LONG_TEXT)
        self.assertTrue(verdict.passed)

    def test_long_reflections_are_trimmed(self) -> None:
        program = mock.Mock(return_value=SimpleNamespace(verdict='{"passed": true}'))
        judge = LanguageModelJudge(self.floor, program=program, max_chars=100)
        judge.evaluate("Fees", "", "x" * 500)
        self.assertIn("[Truncated for evaluation]", program.call_args.kwargs["reflection"])

    def test_env_toggle_disables_lm(self) -> None:
        program = mock.Mock()
        with mock.patch.dict(os.environ, {DISABLE_LLM_ENV: "1"}):
            judge = LanguageModelJudge(self.floor, program=program)
        self.assertFalse(judge.uses_llm)
        judge.evaluate("Fees", "", LONG_TEXT)
        program.assert_not_called()


class BuildJudgeTests(unittest.TestCase):
    def test_heuristic_when_llm_disabled_in_config(self) -> None:
        judge = build_judge(JudgeConfig(use_llm=False, min_chars=12))
        self.assertIsInstance(judge, HeuristicJudge)
        self.assertEqual(judge.min_chars, 12)

    def test_missing_key_downgrades_to_heuristic(self) -> None:
        factory = mock.Mock(side_effect=DSPyConfigurationError("no key"))
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertLogs("lumina.judge.grader", level="WARNING"):
                judge = build_judge(JudgeConfig(use_llm=True), lm_factory=factory)
        self.assertIsInstance(judge, HeuristicJudge)

    @mock.patch("lumina.judge.programs.dspy")
    def test_lm_judge_wraps_program(self, mock_dspy) -> None:
        lm = object()
        with mock.patch.dict(os.environ, {}, clear=True):
            judge = build_judge(JudgeConfig(use_llm=True), lm=lm)
        self.assertIsInstance(judge, LanguageModelJudge)
        self.assertTrue(judge.uses_llm)
        mock_dspy.Predict.assert_called_once()


class LessonAssistantTests(unittest.TestCase):
    def setUp(self) -> None:
        self.module = make_module("c1", 1, title="Fees", description="Base fee tiers")

    def test_unavailable_without_program(self) -> None:
        self.assertEqual(LessonAssistant().ask(self.module, "What is a tier?"), ASSISTANT_UNAVAILABLE)

    def test_history_is_limited_to_recent_messages(self) -> None:
        program = mock.Mock(return_value=SimpleNamespace(answer="Tiers follow volume."))
        history = [ChatMessage(id=str(i), role="user", text=f"q{i}", timestamp=i) for i in range(12)]
        with mock.patch.dict(os.environ, {}, clear=True):
            answer = LessonAssistant(program, history_limit=8).ask(self.module, "Why?", history)
        self.assertEqual(answer, "Tiers follow volume.")
        transcript = program.call_args.kwargs["history"]
        self.assertNotIn("q3", transcript)
        self.assertIn("q4", transcript)
        self.assertIn("q11", transcript)

    def test_empty_answer_and_failures(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            empty = LessonAssistant(mock.Mock(return_value=SimpleNamespace(answer="  ")))
            self.assertEqual(empty.ask(self.module, "Why?"), NO_ANSWER)
            broken = LessonAssistant(mock.Mock(side_effect=RuntimeError("down")))
            with self.assertLogs("lumina.judge.assistant", level="ERROR"):
                self.assertEqual(broken.ask(self.module, "Why?"), ASSISTANT_UNAVAILABLE)


if __name__ == "__main__":
    unittest.main()
