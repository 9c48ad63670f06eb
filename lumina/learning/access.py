"""Pure access-policy predicates.

Every function here takes the state it needs as arguments and never touches
storage, so the UI can call them on every render.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, assert_never

from .models import Course, CourseProgress, JobTitle, Module, Role, User


def requires_license_check(job_title: JobTitle) -> bool:
    """Return True for job classifications whose access depends on a verified license."""

    match job_title:
        case JobTitle.PHARMACIST:
            return True
        case JobTitle.DOCTOR | JobTitle.MEDICAL_CLERK | JobTitle.DISPENSING_CLERK | JobTitle.OTHER:
            return False
        case _:
            assert_never(job_title)


def is_effectively_verified(user: User) -> bool:
    """The stored flag only counts for license-checked jobs; everyone else is verified."""

    if not requires_license_check(user.job_title):
        return True
    return user.is_verified


def role_satisfies(user_role: Role, required_role: Role) -> bool:
    """Flat role gate: admin passes everything, the open tier admits everyone, else exact match."""

    if user_role is Role.ADMIN:
        return True
    match required_role:
        case Role.STUDENT:
            return True
        case Role.ADVANCED | Role.ADMIN:
            return user_role is required_role
        case _:
            assert_never(required_role)


def is_course_unlocked(course: Course, progress: CourseProgress | None, user: User | None = None) -> bool:
    if course.access_code is None:
        return True
    if user is not None and user.role is Role.ADMIN:
        return True
    return progress is not None and progress.is_unlocked is True


def can_access_course(user: User | None, course: Course) -> bool:
    if user is None:
        return False
    if user.role is Role.ADMIN:
        return True
    if not is_effectively_verified(user):
        return False
    return role_satisfies(user.role, course.required_role)


def is_module_completed(progress: CourseProgress | None, module: Module) -> bool:
    return progress is not None and progress.has_completed(module.id)


def is_module_locked(progress: CourseProgress | None, module: Module) -> bool:
    """Deny by default: only completed modules and the current pointer are open.

    Without any progress the first module is open so a learner can start.
    """

    if progress is None:
        return module.order != 1
    if progress.has_completed(module.id):
        return False
    if progress.current_module_id == module.id:
        return False
    return True


def is_module_locked_by_id(course: Course, progress: CourseProgress | None, module_id: str) -> bool:
    """Lock check for a raw id; ids that no longer exist in the course report locked."""

    module = course.find_module(module_id)
    if module is None:
        return True
    return is_module_locked(progress, module)


@dataclass(frozen=True, slots=True)
class ModuleState:
    module_id: str
    order: int
    locked: bool
    completed: bool
    current: bool


@dataclass(frozen=True, slots=True)
class CourseState:
    """Everything a course card or module list needs for one render."""

    course_id: str
    accessible: bool
    unlocked: bool
    needs_code: bool
    license_pending: bool
    modules: List[ModuleState]

    @property
    def completed_count(self) -> int:
        return sum(1 for module in self.modules if module.completed)


def module_states(course: Course, progress: CourseProgress | None) -> List[ModuleState]:
    states: List[ModuleState] = []
    for module in course.ordered_modules():
        states.append(
            ModuleState(
                module_id=module.id,
                order=module.order,
                locked=is_module_locked(progress, module),
                completed=is_module_completed(progress, module),
                current=progress is not None and progress.current_module_id == module.id,
            )
        )
    return states


def course_state(user: User | None, course: Course, progress: CourseProgress | None) -> CourseState:
    unlocked = is_course_unlocked(course, progress, user)
    license_pending = user is not None and user.role is not Role.ADMIN and not is_effectively_verified(user)
    return CourseState(
        course_id=course.id,
        accessible=can_access_course(user, course),
        unlocked=unlocked,
        needs_code=course.is_code_gated and not unlocked,
        license_pending=license_pending,
        modules=module_states(course, progress),
    )


def lock_map(course: Course, progress: CourseProgress | None) -> Dict[str, bool]:
    return {state.module_id: state.locked for state in module_states(course, progress)}


__all__ = [
    "CourseState",
    "ModuleState",
    "can_access_course",
    "course_state",
    "is_course_unlocked",
    "is_effectively_verified",
    "is_module_completed",
    "is_module_locked",
    "is_module_locked_by_id",
    "lock_map",
    "module_states",
    "requires_license_check",
    "role_satisfies",
]
