"""Per-user progress bookkeeping: code unlocks, module completion, and notes.

All updates are immutable: every operation returns a new `CourseProgress`
(and the book swaps it in as a single assignment) so a failed persistence
write can fall back to the previous value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import UnknownModuleError
from .models import Course, CourseProgress, Module, UserProgress

LOGGER = logging.getLogger(__name__)

CODE_ACCEPTED = "Access code accepted. The course is now available."
CODE_REJECTED = "That access code is not valid. Please check the purchase page for the correct code."
COURSE_EMPTY = "This course has no lessons yet."


@dataclass(frozen=True, slots=True)
class UnlockResult:
    accepted: bool
    message: str
    progress: CourseProgress | None = None


def start_progress(course: Course, *, unlocked: bool | None = None) -> CourseProgress:
    """Fresh progress with the pointer on the course's first module."""

    first = course.first_module()
    if first is None:
        raise UnknownModuleError(course.id, "<first>")
    return CourseProgress(
        completed_module_ids=[],
        current_module_id=first.id,
        is_unlocked=unlocked,
        memos={},
    )


def advance(course: Course, module: Module, progress: CourseProgress | None) -> CourseProgress:
    """Mark `module` complete and move the pointer to the next module by order.

    The pointer stays where it was when there is no successor.
    """

    base = progress or CourseProgress(current_module_id=module.id)
    completed = list(base.completed_module_ids)
    if module.id not in completed:
        completed.append(module.id)
    successor = course.module_at(module.order + 1)
    pointer = successor.id if successor is not None else base.current_module_id
    return base.model_copy(update={"completed_module_ids": completed, "current_module_id": pointer})


def match_access_code(course: Course, candidate: str) -> bool:
    return course.access_code is not None and candidate == course.access_code


def unlock(course: Course, candidate_code: str) -> UnlockResult:
    """Exact, case-sensitive code match; a match resets progress for the course."""

    if not match_access_code(course, candidate_code):
        LOGGER.info("Rejected access code for course %s", course.id)
        return UnlockResult(accepted=False, message=CODE_REJECTED)
    if not course.modules:
        LOGGER.warning("Course %s accepted an access code but has no modules", course.id)
        return UnlockResult(accepted=False, message=COURSE_EMPTY)
    return UnlockResult(accepted=True, message=CODE_ACCEPTED, progress=start_progress(course, unlocked=True))


class ProgressBook:
    """In-memory view of one user's progress across every course."""

    def __init__(self, user_id: str, progress: UserProgress | None = None) -> None:
        self.user_id = user_id
        self._progress = progress or UserProgress()

    @property
    def snapshot(self) -> UserProgress:
        return self._progress

    def get(self, course_id: str) -> CourseProgress | None:
        return self._progress.get(course_id)

    def replace(self, course_id: str, progress: CourseProgress) -> UserProgress:
        """Return the candidate snapshot without committing it."""

        return self._progress.with_course(course_id, progress)

    def commit(self, snapshot: UserProgress) -> None:
        self._progress = snapshot

    def memo(self, course_id: str, module_id: str) -> str:
        progress = self.get(course_id)
        return progress.memo_for(module_id) if progress else ""


__all__ = [
    "CODE_ACCEPTED",
    "CODE_REJECTED",
    "COURSE_EMPTY",
    "ProgressBook",
    "UnlockResult",
    "advance",
    "match_access_code",
    "start_progress",
    "unlock",
]
