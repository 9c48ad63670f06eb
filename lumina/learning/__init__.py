"""Progress gating, access policy, reflection gate, and course catalog."""

from .access import (
    CourseState,
    ModuleState,
    can_access_course,
    course_state,
    is_course_unlocked,
    is_effectively_verified,
    is_module_completed,
    is_module_locked,
    is_module_locked_by_id,
)
from .catalog import CourseCatalog, CourseDraft
from .gate import GateResult, GateState, Judge, ReflectionGate, ReflectionSession
from .models import Course, CourseProgress, JobTitle, Module, Role, User, UserProgress, Verdict
from .progress import ProgressBook, UnlockResult, advance, unlock

__all__ = [
    "Course",
    "CourseCatalog",
    "CourseDraft",
    "CourseProgress",
    "CourseState",
    "GateResult",
    "GateState",
    "JobTitle",
    "Judge",
    "Module",
    "ModuleState",
    "ProgressBook",
    "ReflectionGate",
    "ReflectionSession",
    "Role",
    "UnlockResult",
    "User",
    "UserProgress",
    "Verdict",
    "advance",
    "can_access_course",
    "course_state",
    "is_course_unlocked",
    "is_effectively_verified",
    "is_module_completed",
    "is_module_locked",
    "is_module_locked_by_id",
    "unlock",
]
