"""Admin-maintained course catalog and the edit drafts used to change it."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, List
from uuid import uuid4

from lumina.core.validation import ValidationResult, validate_module_order

from .errors import CatalogIntegrityError, CourseNotFoundError, UnknownModuleError
from .models import Course, Module, Role

LOGGER = logging.getLogger(__name__)

DEFAULT_COURSE_TITLE = "New course"
DEFAULT_COURSE_DESCRIPTION = "Describe what this course covers."
DEFAULT_MODULE_TITLE = "New lesson"
DEFAULT_MODULE_DURATION = "10:00"


def _new_id(prefix: str) -> str:
    return f"{prefix}{uuid4().hex[:12]}"


class CourseDraft:
    """A private deep copy of one course, edited then committed as a whole."""

    def __init__(self, course: Course, *, is_new: bool = False) -> None:
        self._course = course.model_copy(deep=True)
        self.is_new = is_new

    @property
    def course_id(self) -> str:
        return self._course.id

    @property
    def modules(self) -> List[Module]:
        return list(self._course.modules)

    def snapshot(self) -> Course:
        return self._course.model_copy(deep=True)

    def update(self, **fields: object) -> None:
        if "id" in fields or "modules" in fields:
            raise ValueError("Use the module helpers to change modules; course ids are fixed")
        self._course = Course.model_validate({**self._course.model_dump(), **fields})

    def add_module(self, **fields: object) -> Module:
        """Append a module with order = current module count + 1."""

        payload = {
            "id": f"{self._course.id}-m{uuid4().hex[:8]}",
            "title": DEFAULT_MODULE_TITLE,
            "duration": DEFAULT_MODULE_DURATION,
            **fields,
            "order": len(self._course.modules) + 1,
        }
        module = Module.model_validate(payload)
        if self._course.find_module(module.id) is not None:
            raise CatalogIntegrityError(self._course.id, [f"Duplicate module id {module.id}"])
        self._course = self._course.model_copy(update={"modules": [*self._course.modules, module]})
        return module

    def update_module(self, module_id: str, **fields: object) -> Module:
        if "id" in fields or "order" in fields:
            raise ValueError("Module id and order are managed by the draft")
        modules = list(self._course.modules)
        for index, module in enumerate(modules):
            if module.id == module_id:
                modules[index] = Module.model_validate({**module.model_dump(), **fields})
                self._course = self._course.model_copy(update={"modules": modules})
                return modules[index]
        raise UnknownModuleError(self._course.id, module_id)

    def delete_module(self, module_id: str) -> None:
        """Remove a module and renumber the survivors to 1..n."""

        if self._course.find_module(module_id) is None:
            raise UnknownModuleError(self._course.id, module_id)
        survivors = [module for module in self._course.ordered_modules() if module.id != module_id]
        renumbered = [module.model_copy(update={"order": index}) for index, module in enumerate(survivors, start=1)]
        self._course = self._course.model_copy(update={"modules": renumbered})


class CourseCatalog:
    """Ordered courses. Reads hand out the stored values; writes replace whole courses."""

    def __init__(self, courses: Iterable[Course] = ()) -> None:
        self._courses: List[Course] = list(courses)

    def __iter__(self) -> Iterator[Course]:
        return iter(list(self._courses))

    def __len__(self) -> int:
        return len(self._courses)

    @property
    def courses(self) -> List[Course]:
        return list(self._courses)

    def find(self, course_id: str) -> Course | None:
        return next((course for course in self._courses if course.id == course_id), None)

    def get(self, course_id: str) -> Course:
        course = self.find(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        return course

    def get_module(self, course_id: str, module_id: str) -> tuple[Course, Module]:
        course = self.get(course_id)
        module = course.find_module(module_id)
        if module is None:
            raise UnknownModuleError(course_id, module_id)
        return course, module

    # ------------------------------------------------------------------
    # Admin mutations

    def new_draft(self, **fields: object) -> CourseDraft:
        course = Course.model_validate(
            {
                "title": DEFAULT_COURSE_TITLE,
                "description": DEFAULT_COURSE_DESCRIPTION,
                "required_role": Role.STUDENT,
                "is_note_exclusive": False,
                **fields,
                "id": _new_id("c-"),
                "modules": [],
            }
        )
        return CourseDraft(course, is_new=True)

    def edit(self, course_id: str) -> CourseDraft:
        return CourseDraft(self.get(course_id))

    def validate(self, course: Course) -> ValidationResult:
        return validate_module_order(course)

    def commit(self, draft: CourseDraft) -> Course:
        """Insert or replace-by-id with the draft's full course value."""

        course = draft.snapshot()
        result = self.validate(course)
        if not result.valid:
            raise CatalogIntegrityError(course.id, result.errors)
        for index, existing in enumerate(self._courses):
            if existing.id == course.id:
                self._courses[index] = course
                LOGGER.info("Replaced course %s (%d modules)", course.id, len(course.modules))
                return course
        self._courses.append(course)
        LOGGER.info("Created course %s", course.id)
        return course

    def replace(self, course: Course) -> Course:
        """Full replacement of an existing course from a caller-supplied value."""

        self.get(course.id)
        return self.commit(CourseDraft(course))

    def delete(self, course_id: str) -> Course:
        """Remove a course. Progress that references it is left orphaned."""

        course = self.get(course_id)
        self._courses = [existing for existing in self._courses if existing.id != course_id]
        LOGGER.info("Deleted course %s", course_id)
        return course

    def integrity_report(self) -> dict[str, ValidationResult]:
        return {course.id: self.validate(course) for course in self._courses}


__all__ = [
    "CourseCatalog",
    "CourseDraft",
]
