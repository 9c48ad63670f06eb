"""Learner and admin operations wired over the store, the judge, and the activity log.

Every method re-reads what it needs from the store. Policy decisions are
delegated to `lumina.learning.access`; this layer only sequences calls,
persists results, and turns collaborator failures into user-facing messages.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple
from uuid import uuid4

from lumina.core.provenance import ActivityLogger
from lumina.judge.assistant import LessonAssistant
from lumina.learning.access import (
    CourseState,
    can_access_course,
    course_state,
    is_course_unlocked,
    is_module_locked,
    requires_license_check,
)
from lumina.learning.catalog import CourseCatalog
from lumina.learning.errors import PermissionDeniedError, UserNotFoundError
from lumina.learning.gate import GateResult, GateState, Judge, ReflectionGate, ReflectionSession
from lumina.learning.models import (
    Announcement,
    ChatMessage,
    Comment,
    Course,
    CourseProgress,
    ForumPost,
    JobTitle,
    Module,
    Role,
    User,
    UserProgress,
    Verdict,
)
from lumina.learning.progress import ProgressBook, UnlockResult, advance, unlock
from lumina.storage.store import LuminaStore, StoreError

LOGGER = logging.getLogger(__name__)

SAVE_FAILED_FEEDBACK = "Your reflection passed, but we could not save your progress. Please submit it again."
UNLOCK_SAVE_FAILED = "We could not save your access right now. Please try again."
DEFAULT_AVATAR = "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}"


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    verdict: Verdict
    state: GateState
    progress: CourseProgress | None
    saved: bool


@dataclass(frozen=True, slots=True)
class CourseView:
    course: Course
    state: CourseState
    progress: CourseProgress | None


def _now_ms() -> int:
    return int(time.time() * 1000)


def _merge_completion(progress: UserProgress, course: Course, module: Module) -> UserProgress:
    existing = progress.get(course.id)
    if existing is not None and existing.has_completed(module.id):
        return progress
    return progress.with_course(course.id, advance(course, module, existing))


class LearningService:
    def __init__(
        self,
        store: LuminaStore,
        judge: Judge,
        *,
        activity: ActivityLogger | None = None,
        assistant: LessonAssistant | None = None,
        forum_page_size: int = 5,
        admin_post_tags: Sequence[str] = ("announcement", "important"),
    ) -> None:
        self.store = store
        self.gate = ReflectionGate(judge)
        self.activity = activity or ActivityLogger.disabled()
        self.assistant = assistant or LessonAssistant()
        self.forum_page_size = forum_page_size
        self.admin_post_tags = list(admin_post_tags)

    # ------------------------------------------------------------------
    # Lookups

    def get_user(self, user_id: str) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise PermissionDeniedError(f"Unknown user {user_id}")
        return user

    def catalog(self) -> CourseCatalog:
        return CourseCatalog(self.store.get_courses())

    def progress_book(self, user: User) -> ProgressBook:
        return ProgressBook(user.id, self.store.get_user_progress(user.id))

    def _record(self, action: str, message: str, actor: User | None, **fields: Any) -> None:
        payload = fields.pop("payload", {})
        try:
            self.activity.log(
                {
                    "action": action,
                    "message": message,
                    "actor": actor.id if actor else "system",
                    "payload": payload,
                    **fields,
                }
            )
        except OSError as exc:
            LOGGER.warning("Could not append %s to the activity log: %s", action, exc)

    @staticmethod
    def _require_admin(user: User) -> None:
        if user.role is not Role.ADMIN:
            raise PermissionDeniedError("Administrator role required")

    # ------------------------------------------------------------------
    # Learner views

    def overview(self, user: User) -> List[CourseView]:
        book = self.progress_book(user)
        views: List[CourseView] = []
        for course in self.catalog():
            progress = book.get(course.id)
            views.append(CourseView(course=course, state=course_state(user, course, progress), progress=progress))
        return views

    def course_view(self, user: User, course_id: str) -> CourseView:
        """Course detail for a learner who may both see and open it."""

        course = self.catalog().get(course_id)
        if not can_access_course(user, course):
            raise PermissionDeniedError(f"Course {course_id} is not available for this account")
        progress = self.progress_book(user).get(course_id)
        if not is_course_unlocked(course, progress, user):
            raise PermissionDeniedError(f"Course {course_id} requires an access code")
        return CourseView(course=course, state=course_state(user, course, progress), progress=progress)

    def open_module(self, user: User, course_id: str, module_id: str) -> Tuple[CourseView, Module]:
        view = self.course_view(user, course_id)
        _, module = self.catalog().get_module(course_id, module_id)
        if is_module_locked(view.progress, module) and user.role is not Role.ADMIN:
            raise PermissionDeniedError(f"Module {module_id} is locked")
        return view, module

    # ------------------------------------------------------------------
    # Learner mutations

    def unlock_course(self, user: User, course_id: str, candidate_code: str) -> UnlockResult:
        course = self.catalog().get(course_id)
        if not can_access_course(user, course):
            raise PermissionDeniedError(f"Course {course_id} is not available for this account")

        result = unlock(course, candidate_code)
        self._record(
            "unlock_attempt",
            "Access code accepted" if result.accepted else "Access code rejected",
            user,
            course_id=course_id,
            payload={"accepted": result.accepted},
        )
        if not result.accepted or result.progress is None:
            return result

        try:
            self.store.update_user_progress(user.id, lambda stored: stored.with_course(course_id, result.progress))
        except StoreError:
            LOGGER.exception("Failed to persist unlock of %s for %s", course_id, user.id)
            return UnlockResult(accepted=False, message=UNLOCK_SAVE_FAILED)
        return result

    def submit_reflection(self, user: User, course_id: str, module_id: str, text: str) -> SubmissionOutcome:
        view, module = self.open_module(user, course_id, module_id)
        session = self.gate.session(user.id, view.course, module)
        try:
            return self._submit(user, view.course, module, session, text, view.progress)
        finally:
            self.gate.release(user.id, session)

    def _submit(
        self,
        user: User,
        course: Course,
        module: Module,
        session: ReflectionSession,
        text: str,
        progress: CourseProgress | None,
    ) -> SubmissionOutcome:
        result: GateResult = session.submit(text, progress)

        self._record(
            "reflection",
            "Reflection passed" if result.verdict.passed else "Reflection rejected",
            user,
            course_id=course.id,
            module_id=module.id,
            payload={"passed": result.verdict.passed, "advanced": result.advanced, "chars": len(text.strip())},
        )
        if not result.advanced:
            return SubmissionOutcome(verdict=result.verdict, state=result.state, progress=result.progress, saved=False)

        # Judging can take seconds; merge into whatever was stored meanwhile.
        try:
            stored = self.store.update_user_progress(user.id, lambda fresh: _merge_completion(fresh, course, module))
        except StoreError:
            LOGGER.exception("Failed to persist progress for %s in course %s", user.id, course.id)
            session.reset()
            return SubmissionOutcome(
                verdict=Verdict(passed=False, feedback=SAVE_FAILED_FEEDBACK),
                state=session.state,
                progress=progress,
                saved=False,
            )
        return SubmissionOutcome(verdict=result.verdict, state=result.state, progress=stored.get(course.id), saved=True)

    def save_memo(self, user: User, course_id: str, module_id: str, text: str) -> UserProgress | None:
        """Persist a note; returns None when the store rejected the write."""

        view, module = self.open_module(user, course_id, module_id)
        first = view.course.first_module()
        pointer = first.id if first is not None else module.id
        try:
            updated = self.store.save_memo(user.id, course_id, module.id, text, default_pointer=pointer)
        except StoreError:
            LOGGER.exception("Failed to save memo for %s/%s", course_id, module_id)
            return None
        self._record("memo", "Memo saved", user, course_id=course_id, module_id=module_id, payload={"chars": len(text)})
        return updated

    def ask_assistant(
        self, user: User, course_id: str, module_id: str, question: str, history: Sequence[ChatMessage] = ()
    ) -> ChatMessage:
        _, module = self.open_module(user, course_id, module_id)
        answer = self.assistant.ask(module, question, history)
        return ChatMessage(id=f"m-{uuid4().hex[:10]}", role="model", text=answer, timestamp=_now_ms())

    # ------------------------------------------------------------------
    # Accounts

    def register(self, email: str, name: str, job_title: JobTitle) -> User:
        user = User(
            id=f"u{uuid4().hex[:10]}",
            email=email,
            name=name,
            role=Role.STUDENT,
            job_title=job_title,
            avatar_url=DEFAULT_AVATAR.format(seed=name),
            is_verified=not requires_license_check(job_title),
        )
        self.store.register_user(user)
        self._record("register", "User registered", user, payload={"job_title": job_title.value})
        return user

    def update_profile(
        self,
        user: User,
        *,
        name: str | None = None,
        job_title: JobTitle | None = None,
        license_image_url: str | None = None,
    ) -> User:
        """Self-edit. Moving into or staying in a license-checked job keeps
        verification only when it was already granted and no new license was
        uploaded; every other job is verified outright.
        """

        new_job = job_title or user.job_title
        new_license = license_image_url or user.license_image_url
        if requires_license_check(new_job):
            verified = requires_license_check(user.job_title) and user.is_verified
            if license_image_url is not None and license_image_url != user.license_image_url:
                verified = False
        else:
            verified = True

        updated = user.model_copy(
            update={
                "name": name or user.name,
                "job_title": new_job,
                "license_image_url": new_license,
                "is_verified": verified,
            }
        )
        self.store.update_user(updated)
        self._record("profile", "Profile updated", user, payload={"job_title": new_job.value, "verified": verified})
        return updated

    # ------------------------------------------------------------------
    # Admin: users

    def list_users(self, admin: User) -> List[User]:
        self._require_admin(admin)
        return self.store.get_all_users()

    def verify_user(self, admin: User, user_id: str) -> User:
        self._require_admin(admin)
        target = self.store.get_user(user_id)
        if target is None:
            raise UserNotFoundError(user_id)
        updated = self.store.update_user(target.model_copy(update={"is_verified": True}))
        self._record("verify_user", f"Verified {user_id}", admin, payload={"user_id": user_id})
        return updated

    # ------------------------------------------------------------------
    # Admin: catalog

    def _save_catalog(self, catalog: CourseCatalog, admin: User, action: str, course_id: str) -> None:
        self.store.save_courses(catalog.courses)
        self._record(action, f"{action} {course_id}", admin, course_id=course_id)

    def create_course(self, admin: User, **fields: Any) -> Course:
        self._require_admin(admin)
        catalog = self.catalog()
        course = catalog.commit(catalog.new_draft(**fields))
        self._save_catalog(catalog, admin, "course_create", course.id)
        return course

    def replace_course(self, admin: User, course: Course) -> Course:
        self._require_admin(admin)
        catalog = self.catalog()
        saved = catalog.replace(course)
        self._save_catalog(catalog, admin, "course_replace", saved.id)
        return saved

    def delete_course(self, admin: User, course_id: str) -> Course:
        self._require_admin(admin)
        catalog = self.catalog()
        removed = catalog.delete(course_id)
        self._save_catalog(catalog, admin, "course_delete", course_id)
        return removed

    def add_module(self, admin: User, course_id: str, **fields: Any) -> Module:
        self._require_admin(admin)
        catalog = self.catalog()
        draft = catalog.edit(course_id)
        module = draft.add_module(**fields)
        catalog.commit(draft)
        self._save_catalog(catalog, admin, "module_add", course_id)
        return module

    def update_module(self, admin: User, course_id: str, module_id: str, **fields: Any) -> Module:
        self._require_admin(admin)
        catalog = self.catalog()
        draft = catalog.edit(course_id)
        module = draft.update_module(module_id, **fields)
        catalog.commit(draft)
        self._save_catalog(catalog, admin, "module_update", course_id)
        return module

    def delete_module(self, admin: User, course_id: str, module_id: str) -> Course:
        self._require_admin(admin)
        catalog = self.catalog()
        draft = catalog.edit(course_id)
        draft.delete_module(module_id)
        course = catalog.commit(draft)
        self._save_catalog(catalog, admin, "module_delete", course_id)
        return course

    # ------------------------------------------------------------------
    # Announcements & forum

    def announcements(self) -> List[Announcement]:
        return self.store.get_announcements()

    def add_announcement(self, admin: User, *, date: str, title: str, url: str) -> Announcement:
        self._require_admin(admin)
        announcement = Announcement(id=f"a{uuid4().hex[:10]}", date=date, title=title, url=url)
        self.store.add_announcement(announcement)
        self._record("announcement", "Announcement added", admin, payload={"id": announcement.id})
        return announcement

    def list_posts(self, page: int = 1, query: str = "") -> Tuple[List[ForumPost], int]:
        return self.store.get_posts(page, self.forum_page_size, query.strip())

    def get_post(self, post_id: str) -> ForumPost | None:
        return self.store.get_post(post_id)

    def create_post(self, admin: User, *, title: str, content: str) -> ForumPost:
        """Moderated board: only admins open threads."""

        self._require_admin(admin)
        if not title.strip() or not content.strip():
            raise ValueError("Post title and content are required")
        post = ForumPost(
            id=f"p{uuid4().hex[:10]}",
            author_id=admin.id,
            author_name=admin.name,
            title=title.strip(),
            content=content.strip(),
            timestamp=_now_ms(),
            tags=list(self.admin_post_tags),
        )
        self.store.create_post(post)
        self._record("post", "Forum post created", admin, payload={"id": post.id})
        return post

    def add_reply(self, user: User, post_id: str, content: str) -> ForumPost:
        if not content.strip():
            raise ValueError("Reply content is required")
        reply = Comment(
            id=f"r{uuid4().hex[:10]}",
            author_id=user.id,
            author_name=user.name,
            content=content.strip(),
            timestamp=_now_ms(),
        )
        return self.store.add_reply(post_id, reply)


__all__ = ["CourseView", "LearningService", "SubmissionOutcome"]
