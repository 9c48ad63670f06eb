"""Lightweight SQLite key-value store for the Lumina portal.

Documents are stored whole, mirroring a browser key-value store: the course
list, the announcement list, and the forum are single JSON arrays; progress
is one document per user.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Callable, Iterable, List, Tuple

from pydantic import TypeAdapter, ValidationError

from lumina.learning.models import (
    Announcement,
    Comment,
    Course,
    CourseProgress,
    ForumPost,
    User,
    UserProgress,
)

USERS_KEY = "users"
COURSES_KEY = "courses"
ANNOUNCEMENTS_KEY = "announcements"
POSTS_KEY = "posts"
SEEDED_KEY = "initialized"
PROGRESS_PREFIX = "progress:"

_USERS = TypeAdapter(List[User])
_COURSES = TypeAdapter(List[Course])
_ANNOUNCEMENTS = TypeAdapter(List[Announcement])
_POSTS = TypeAdapter(List[ForumPost])


class StoreError(RuntimeError):
    """Raised when the backing store cannot be read or written."""


class LuminaStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        """Create a connection, ensuring the parent directory exists."""

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.db_path)

    def _ensure_schema(self) -> None:
        schema_sql = Path(__file__).with_name("schema.sql").read_text(encoding="utf-8")
        try:
            with self._connect() as con:
                con.executescript(schema_sql)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot initialise store at {self.db_path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Raw documents

    def get_document(self, key: str, default: Any = None) -> Any:
        try:
            with self._connect() as con:
                row = con.execute("SELECT value FROM documents WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read {key}: {exc}") from exc
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise StoreError(f"Corrupt document {key}: {exc}") from exc

    def set_document(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        try:
            with self._connect() as con:
                con.execute(
                    "INSERT INTO documents(key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (key, payload),
                )
                con.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write {key}: {exc}") from exc

    def keys(self, prefix: str = "") -> List[str]:
        try:
            with self._connect() as con:
                rows = con.execute(
                    "SELECT key FROM documents WHERE substr(key, 1, ?) = ? ORDER BY key", (len(prefix), prefix)
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to list keys: {exc}") from exc
        return [row[0] for row in rows]

    def _load(self, key: str, adapter: TypeAdapter, default: Any) -> Any:
        raw = self.get_document(key)
        if raw is None:
            return default
        try:
            return adapter.validate_python(raw)
        except ValidationError as exc:
            raise StoreError(f"Document {key} does not match its schema: {exc}") from exc

    def _dump(self, key: str, adapter: TypeAdapter, value: Any) -> None:
        self.set_document(key, adapter.dump_python(value, mode="json"))

    # ------------------------------------------------------------------
    # Seed

    def is_seeded(self) -> bool:
        return bool(self.get_document(SEEDED_KEY, False))

    def seed(
        self,
        *,
        courses: Iterable[Course] = (),
        users: Iterable[User] = (),
        announcements: Iterable[Announcement] = (),
        posts: Iterable[ForumPost] = (),
        progress: dict[str, UserProgress] | None = None,
    ) -> None:
        self.save_courses(list(courses))
        self._dump(USERS_KEY, _USERS, list(users))
        self._dump(ANNOUNCEMENTS_KEY, _ANNOUNCEMENTS, list(announcements))
        self._dump(POSTS_KEY, _POSTS, list(posts))
        for user_id, user_progress in (progress or {}).items():
            self.save_user_progress(user_id, user_progress)
        self.set_document(SEEDED_KEY, True)

    # ------------------------------------------------------------------
    # Users

    def get_all_users(self) -> List[User]:
        return self._load(USERS_KEY, _USERS, [])

    def get_user(self, user_id: str) -> User | None:
        return next((user for user in self.get_all_users() if user.id == user_id), None)

    def register_user(self, user: User) -> User:
        users = self.get_all_users()
        if any(existing.email == user.email for existing in users):
            raise StoreError(f"Email {user.email} is already registered")
        self._dump(USERS_KEY, _USERS, [*users, user])
        return user

    def update_user(self, user: User) -> User:
        users = self.get_all_users()
        if not any(existing.id == user.id for existing in users):
            raise StoreError(f"User {user.id} does not exist")
        self._dump(USERS_KEY, _USERS, [user if existing.id == user.id else existing for existing in users])
        return user

    # ------------------------------------------------------------------
    # Courses

    def get_courses(self) -> List[Course]:
        return self._load(COURSES_KEY, _COURSES, [])

    def save_courses(self, courses: List[Course]) -> None:
        self._dump(COURSES_KEY, _COURSES, courses)

    # ------------------------------------------------------------------
    # Progress

    def get_user_progress(self, user_id: str) -> UserProgress:
        raw = self.get_document(PROGRESS_PREFIX + user_id)
        if raw is None:
            return UserProgress()
        try:
            return UserProgress.model_validate(raw)
        except ValidationError as exc:
            raise StoreError(f"Progress for {user_id} does not match its schema: {exc}") from exc

    def save_user_progress(self, user_id: str, progress: UserProgress) -> None:
        self.set_document(PROGRESS_PREFIX + user_id, progress.model_dump(mode="json"))

    def update_user_progress(self, user_id: str, mutate: Callable[[UserProgress], UserProgress]) -> UserProgress:
        """Apply `mutate` to the stored progress inside one write transaction.

        The row is re-read under the write lock, so changes committed by other
        requests since the caller last looked are kept.
        """

        key = PROGRESS_PREFIX + user_id
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            con = sqlite3.connect(self.db_path, isolation_level=None, timeout=10)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open store for {key}: {exc}") from exc
        try:
            con.execute("BEGIN IMMEDIATE")
            try:
                row = con.execute("SELECT value FROM documents WHERE key = ?", (key,)).fetchone()
                current = UserProgress() if row is None else UserProgress.model_validate(json.loads(row[0]))
                updated = mutate(current)
                con.execute(
                    "INSERT INTO documents(key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (key, json.dumps(updated.model_dump(mode="json"), ensure_ascii=False)),
                )
            except BaseException:
                con.execute("ROLLBACK")
                raise
            con.execute("COMMIT")
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to update {key}: {exc}") from exc
        except (json.JSONDecodeError, ValidationError) as exc:
            raise StoreError(f"Progress for {user_id} does not match its schema: {exc}") from exc
        finally:
            con.close()
        return updated

    def save_memo(self, user_id: str, course_id: str, module_id: str, text: str, *, default_pointer: str) -> UserProgress:
        """Write one note; creates course progress pointing at `default_pointer` when missing."""

        def _with_memo(progress: UserProgress) -> UserProgress:
            course_progress = progress.get(course_id) or CourseProgress(current_module_id=default_pointer)
            course_progress = course_progress.model_copy(update={"memos": {**course_progress.memos, module_id: text}})
            return progress.with_course(course_id, course_progress)

        return self.update_user_progress(user_id, _with_memo)

    def progress_user_ids(self) -> List[str]:
        return [key[len(PROGRESS_PREFIX) :] for key in self.keys(PROGRESS_PREFIX)]

    # ------------------------------------------------------------------
    # Announcements

    def get_announcements(self) -> List[Announcement]:
        return self._load(ANNOUNCEMENTS_KEY, _ANNOUNCEMENTS, [])

    def add_announcement(self, announcement: Announcement) -> None:
        self._dump(ANNOUNCEMENTS_KEY, _ANNOUNCEMENTS, [announcement, *self.get_announcements()])

    # ------------------------------------------------------------------
    # Forum

    def get_posts(self, page: int, limit: int, query: str = "") -> Tuple[List[ForumPost], int]:
        """Return one 1-based page of posts matching `query` plus the total match count."""

        posts: List[ForumPost] = self._load(POSTS_KEY, _POSTS, [])
        if query:
            posts = [post for post in posts if post.matches(query)]
        start = max(page - 1, 0) * limit
        return posts[start : start + limit], len(posts)

    def get_post(self, post_id: str) -> ForumPost | None:
        posts: List[ForumPost] = self._load(POSTS_KEY, _POSTS, [])
        return next((post for post in posts if post.id == post_id), None)

    def create_post(self, post: ForumPost) -> None:
        posts = self._load(POSTS_KEY, _POSTS, [])
        self._dump(POSTS_KEY, _POSTS, [post, *posts])

    def add_reply(self, post_id: str, reply: Comment) -> ForumPost:
        posts: List[ForumPost] = self._load(POSTS_KEY, _POSTS, [])
        updated: ForumPost | None = None
        for index, post in enumerate(posts):
            if post.id == post_id:
                updated = post.model_copy(update={"replies": [*post.replies, reply]})
                posts[index] = updated
        if updated is None:
            raise StoreError(f"Post {post_id} does not exist")
        self._dump(POSTS_KEY, _POSTS, posts)
        return updated


__all__ = ["LuminaStore", "StoreError"]
