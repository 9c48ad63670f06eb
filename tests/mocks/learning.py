"""Builders and scripted collaborators shared by the Lumina tests."""

from __future__ import annotations

import threading
from typing import Iterable, List

from lumina.learning.models import Course, CourseProgress, JobTitle, Module, Role, User, Verdict


def make_module(course_id: str, order: int, **fields) -> Module:
    payload = {
        "id": f"{course_id}-m{order}",
        "title": f"Lesson {order}",
        "description": f"What lesson {order} covers.",
        "duration": "10:00",
        "order": order,
    }
    payload.update(fields)
    return Module(**payload)


def make_course(course_id: str = "c1", modules: int = 2, **fields) -> Course:
    payload = {
        "id": course_id,
        "title": f"Course {course_id}",
        "modules": [make_module(course_id, order) for order in range(1, modules + 1)],
    }
    payload.update(fields)
    return Course(**payload)


def make_user(user_id: str = "u1", *, role: Role = Role.STUDENT, job_title: JobTitle = JobTitle.OTHER, **fields) -> User:
    payload = {
        "id": user_id,
        "email": f"{user_id}@example.com",
        "name": f"User {user_id}",
        "role": role,
        "job_title": job_title,
        "is_verified": fields.pop("is_verified", True),
    }
    payload.update(fields)
    return User(**payload)


def progress_at(current: str, completed: Iterable[str] = (), *, unlocked: bool | None = None) -> CourseProgress:
    return CourseProgress(current_module_id=current, completed_module_ids=list(completed), is_unlocked=unlocked)


class ScriptedJudge:
    """Returns queued verdicts in order and records every call."""

    def __init__(self, *verdicts: Verdict | Exception) -> None:
        self._queue: List[Verdict | Exception] = list(verdicts)
        self.calls: List[tuple[str, str, str]] = []

    def evaluate(self, title: str, description: str, text: str) -> Verdict:
        self.calls.append((title, description, text))
        outcome = self._queue.pop(0) if self._queue else Verdict(passed=True, feedback="ok")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class BlockingJudge:
    """Holds evaluations open until released, to exercise in-flight refusal.

    With `block_on` set, only texts containing that marker wait; others pass at once.
    """

    def __init__(self, block_on: str | None = None) -> None:
        self.block_on = block_on
        self.entered = threading.Event()
        self.release = threading.Event()

    def evaluate(self, title: str, description: str, text: str) -> Verdict:
        if self.block_on is None or self.block_on in text:
            self.entered.set()
            self.release.wait(timeout=5)
        return Verdict(passed=True, feedback="ok")
