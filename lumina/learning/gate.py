"""Reflection gate: a judged submission is required before a module completes."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .errors import SubmissionInFlightError, UnknownModuleError
from .models import Course, CourseProgress, Module, Verdict
from .progress import advance

LOGGER = logging.getLogger(__name__)

RETRY_FEEDBACK = "Something went wrong while checking your reflection. Please try again."
ALREADY_COMPLETED_FEEDBACK = "This lesson is already complete."


class Judge(Protocol):
    def evaluate(self, title: str, description: str, text: str) -> Verdict: ...


class GateState(str, Enum):
    IDLE = "IDLE"
    SUBMITTING = "SUBMITTING"
    PASSED = "PASSED"
    REJECTED = "REJECTED"


@dataclass(frozen=True, slots=True)
class GateResult:
    """Outcome of one submission.

    `progress` is the value the caller should persist and display; it is the
    input progress untouched unless `advanced` is True.
    """

    verdict: Verdict
    state: GateState
    progress: CourseProgress | None
    advanced: bool = False


class ReflectionSession:
    """Submission state for one user viewing one module."""

    def __init__(self, course: Course, module: Module, judge: Judge) -> None:
        if course.find_module(module.id) is None:
            raise UnknownModuleError(course.id, module.id)
        self.course = course
        self.module = module
        self.judge = judge
        self._state = GateState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def reset(self) -> None:
        """Return to IDLE, e.g. after the passing update could not be saved."""

        self._state = GateState.IDLE

    def submit(self, text: str, progress: CourseProgress | None) -> GateResult:
        if not self._lock.acquire(blocking=False):
            raise SubmissionInFlightError(f"A reflection for module {self.module.id} is already being checked")
        try:
            return self._submit_locked(text, progress)
        finally:
            self._lock.release()

    def _submit_locked(self, text: str, progress: CourseProgress | None) -> GateResult:
        if self._state is GateState.PASSED or (progress is not None and progress.has_completed(self.module.id)):
            self._state = GateState.PASSED
            return GateResult(
                verdict=Verdict(passed=True, feedback=ALREADY_COMPLETED_FEEDBACK),
                state=self._state,
                progress=progress,
            )

        self._state = GateState.SUBMITTING
        verdict = self._judge(text)
        if not verdict.passed:
            self._state = GateState.REJECTED
            return GateResult(verdict=verdict, state=self._state, progress=progress)

        updated = advance(self.course, self.module, progress)
        self._state = GateState.PASSED
        return GateResult(verdict=verdict, state=self._state, progress=updated, advanced=True)

    def _judge(self, text: str) -> Verdict:
        try:
            verdict = self.judge.evaluate(self.module.title, self.module.description, text)
        except Exception:
            LOGGER.exception("Judge failed for module %s in course %s", self.module.id, self.course.id)
            return Verdict(passed=False, feedback=RETRY_FEEDBACK)
        if not isinstance(verdict, Verdict):
            LOGGER.warning("Judge returned %r instead of a Verdict for module %s", type(verdict), self.module.id)
            return Verdict(passed=False, feedback=RETRY_FEEDBACK)
        return verdict


class ReflectionGate:
    """Hands out one session per (user, course, module) for the length of a submission.

    Callers `release` the session once the outcome has been persisted, so the
    registry only holds submissions that are being judged or saved.
    """

    def __init__(self, judge: Judge) -> None:
        self.judge = judge
        self._sessions: dict[tuple[str, str, str], ReflectionSession] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def session(self, user_id: str, course: Course, module: Module) -> ReflectionSession:
        key = (user_id, course.id, module.id)
        with self._guard:
            session = self._sessions.get(key)
            if session is not None and (session.in_flight or (session.course == course and session.module == module)):
                return session
            session = ReflectionSession(course, module, self.judge)
            self._sessions[key] = session
            return session

    def release(self, user_id: str, session: ReflectionSession) -> None:
        """Forget `session` unless a submission is still running on it."""

        key = (user_id, session.course.id, session.module.id)
        with self._guard:
            if self._sessions.get(key) is session and not session.in_flight:
                del self._sessions[key]


__all__ = [
    "ALREADY_COMPLETED_FEEDBACK",
    "GateResult",
    "GateState",
    "Judge",
    "RETRY_FEEDBACK",
    "ReflectionGate",
    "ReflectionSession",
]
