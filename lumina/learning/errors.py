"""Exceptions raised by the learning core."""

from __future__ import annotations


class LearningError(RuntimeError):
    """Base class for recoverable learning-core failures."""


class PermissionDeniedError(LearningError):
    """Raised when the caller's role does not allow the requested action."""


class CatalogError(LearningError):
    pass


class CourseNotFoundError(CatalogError):
    def __init__(self, course_id: str) -> None:
        super().__init__(f"Course {course_id} not found")
        self.course_id = course_id


class UnknownModuleError(CatalogError):
    def __init__(self, course_id: str, module_id: str) -> None:
        super().__init__(f"Module {module_id} not found in course {course_id}")
        self.course_id = course_id
        self.module_id = module_id


class CatalogIntegrityError(CatalogError):
    """Raised when a course draft would break module ordering."""

    def __init__(self, course_id: str, errors: list[str]) -> None:
        super().__init__(f"Course {course_id} failed validation: {'; '.join(errors)}")
        self.course_id = course_id
        self.errors = errors


class SubmissionInFlightError(LearningError):
    """Raised when a reflection is submitted while another is being judged."""


class UserNotFoundError(LearningError):
    def __init__(self, user_id: str) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


__all__ = [
    "CatalogError",
    "CatalogIntegrityError",
    "CourseNotFoundError",
    "LearningError",
    "PermissionDeniedError",
    "SubmissionInFlightError",
    "UnknownModuleError",
    "UserNotFoundError",
]
