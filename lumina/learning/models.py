"""Typed records shared by the catalog, progress, and access-policy layers."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator


class Role(str, Enum):
    """Static access tiers. `STUDENT` is the open tier."""

    STUDENT = "STUDENT"
    ADVANCED = "ADVANCED"
    ADMIN = "ADMIN"


class JobTitle(str, Enum):
    DOCTOR = "doctor"
    PHARMACIST = "pharmacist"
    MEDICAL_CLERK = "medical_clerk"
    DISPENSING_CLERK = "dispensing_clerk"
    OTHER = "other"


class User(BaseModel):
    """A portal member. Credentials live with the auth provider, not here."""

    id: str
    email: str
    name: str
    role: Role = Role.STUDENT
    job_title: JobTitle = JobTitle.OTHER
    avatar_url: str = ""
    license_image_url: Optional[str] = None
    is_verified: bool = False


class ResourceLink(BaseModel):
    title: str
    url: str


class Module(BaseModel):
    """A single lesson inside a course."""

    id: str
    title: str
    description: str = ""
    video_url: str = ""
    duration: str = ""
    order: int = Field(..., ge=1)
    resources: List[ResourceLink] = Field(default_factory=list)


class Course(BaseModel):
    id: str
    title: str
    description: str = ""
    thumbnail_url: str = ""
    modules: List[Module] = Field(default_factory=list)
    required_role: Role = Role.STUDENT
    access_code: Optional[str] = None
    is_note_exclusive: bool = False

    @field_validator("access_code", mode="before")
    @classmethod
    def blank_code_is_none(cls, value: object) -> object:
        if isinstance(value, str) and not value:
            return None
        return value

    @property
    def is_code_gated(self) -> bool:
        return self.access_code is not None

    def ordered_modules(self) -> List[Module]:
        return sorted(self.modules, key=lambda module: module.order)

    def first_module(self) -> Module | None:
        ordered = self.ordered_modules()
        return ordered[0] if ordered else None

    def find_module(self, module_id: str) -> Module | None:
        return next((module for module in self.modules if module.id == module_id), None)

    def module_at(self, order: int) -> Module | None:
        return next((module for module in self.modules if module.order == order), None)


class CourseProgress(BaseModel):
    """One user's state for one course.

    `completed_module_ids` is treated as a set; list order only records the
    sequence in which modules were passed.
    """

    model_config = ConfigDict(frozen=True)

    completed_module_ids: List[str] = Field(default_factory=list)
    current_module_id: str
    is_unlocked: Optional[bool] = None
    memos: Dict[str, str] = Field(default_factory=dict)

    def has_completed(self, module_id: str) -> bool:
        return module_id in self.completed_module_ids

    def memo_for(self, module_id: str) -> str:
        return self.memos.get(module_id, "")


class UserProgress(RootModel[Dict[str, CourseProgress]]):
    """Progress keyed by course id."""

    root: Dict[str, CourseProgress] = Field(default_factory=dict)

    def get(self, course_id: str) -> CourseProgress | None:
        return self.root.get(course_id)

    def with_course(self, course_id: str, progress: CourseProgress) -> "UserProgress":
        return UserProgress({**self.root, course_id: progress})

    def __contains__(self, course_id: object) -> bool:
        return course_id in self.root

    def __len__(self) -> int:
        return len(self.root)


class Verdict(BaseModel):
    """Judge output for a single reflection."""

    passed: bool
    feedback: str


class Announcement(BaseModel):
    id: str
    date: str
    title: str
    url: str


class Comment(BaseModel):
    id: str
    author_id: str
    author_name: str
    content: str
    timestamp: int


class ForumPost(BaseModel):
    id: str
    author_id: str
    author_name: str
    title: str
    content: str
    timestamp: int
    tags: List[str] = Field(default_factory=list)
    replies: List[Comment] = Field(default_factory=list)

    def matches(self, query: str) -> bool:
        needle = query.lower()
        return (
            needle in self.title.lower()
            or needle in self.content.lower()
            or any(needle in tag.lower() for tag in self.tags)
        )


class ChatMessage(BaseModel):
    id: str
    role: str = Field(..., pattern="^(user|model)$")
    text: str
    timestamp: int


__all__ = [
    "Announcement",
    "ChatMessage",
    "Comment",
    "Course",
    "CourseProgress",
    "ForumPost",
    "JobTitle",
    "Module",
    "ResourceLink",
    "Role",
    "User",
    "UserProgress",
    "Verdict",
]
