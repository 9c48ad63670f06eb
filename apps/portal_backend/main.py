from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from lumina.bootstrap import bootstrap_service
from lumina.learning.access import CourseState
from lumina.learning.errors import (
    CatalogIntegrityError,
    CourseNotFoundError,
    PermissionDeniedError,
    SubmissionInFlightError,
    UnknownModuleError,
    UserNotFoundError,
)
from lumina.learning.models import (
    Announcement,
    ChatMessage,
    Course,
    CourseProgress,
    ForumPost,
    JobTitle,
    Module,
    ResourceLink,
    Role,
    User,
)
from lumina.service import CourseView, LearningService
from lumina.storage.store import StoreError

REPO_ROOT = Path(__file__).resolve().parents[2]


class PortalSettings(BaseModel):
    """Runtime configuration for the portal backend."""

    repo_root: Path = Field(default=REPO_ROOT)
    config_path: Path | None = Field(default=None)


@lru_cache
def get_settings() -> PortalSettings:
    config_path = os.getenv("LUMINA_CONFIG")
    default_config = REPO_ROOT / "config" / "lumina.yaml"
    if config_path:
        resolved = Path(config_path).expanduser().resolve()
    elif default_config.exists():
        resolved = default_config
    else:
        resolved = None
    return PortalSettings(config_path=resolved)


@lru_cache
def _cached_service(config_path: Path | None, repo_root: Path) -> LearningService:
    return bootstrap_service(config_path, repo_root=repo_root)


def get_service(settings: PortalSettings = Depends(get_settings)) -> LearningService:
    return _cached_service(settings.config_path, settings.repo_root)


def get_current_user(
    x_user_id: str | None = Header(default=None),
    service: LearningService = Depends(get_service),
) -> User:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return service.get_user(x_user_id)


# ----------------------------------------------------------------------
# Payloads


class HealthResponse(BaseModel):
    status: str
    course_count: int


class ModuleStatus(BaseModel):
    id: str
    title: str
    order: int
    duration: str
    locked: bool
    completed: bool
    current: bool


class CourseSummary(BaseModel):
    id: str
    title: str
    description: str
    thumbnail_url: str
    required_role: Role
    is_note_exclusive: bool
    accessible: bool
    unlocked: bool
    needs_code: bool
    license_pending: bool
    module_count: int
    completed_count: int


class CourseDetail(CourseSummary):
    modules: List[ModuleStatus] = Field(default_factory=list)
    current_module_id: str | None = None


class ModuleDetail(BaseModel):
    course_id: str
    module: Module
    completed: bool
    memo: str = ""


class UnlockRequest(BaseModel):
    code: str


class UnlockResponse(BaseModel):
    accepted: bool
    message: str
    progress: CourseProgress | None = None


class ReflectionRequest(BaseModel):
    text: str


class ReflectionResponse(BaseModel):
    passed: bool
    feedback: str
    state: str
    saved: bool
    progress: CourseProgress | None = None


class MemoRequest(BaseModel):
    text: str


class MemoResponse(BaseModel):
    saved: bool
    memo: str


class AssistantRequest(BaseModel):
    question: str = Field(..., min_length=1)
    history: List[ChatMessage] = Field(default_factory=list)


class RegisterRequest(BaseModel):
    email: str
    name: str
    job_title: JobTitle


class ProfileUpdate(BaseModel):
    name: str | None = None
    job_title: JobTitle | None = None
    license_image_url: str | None = None


class AnnouncementCreate(BaseModel):
    date: str
    title: str
    url: str


class PostCreate(BaseModel):
    title: str
    content: str


class ReplyCreate(BaseModel):
    content: str


class PostPage(BaseModel):
    posts: List[ForumPost]
    total: int
    page: int
    page_size: int


class CourseCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    thumbnail_url: str | None = None
    required_role: Role | None = None
    access_code: str | None = None
    is_note_exclusive: bool | None = None


class ModuleCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    video_url: str | None = None
    duration: str | None = None
    resources: List[ResourceLink] | None = None


app = FastAPI(title="Lumina Portal API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PermissionDeniedError)
def _permission_denied(request: Request, exc: PermissionDeniedError) -> JSONResponse:
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(CourseNotFoundError)
@app.exception_handler(UnknownModuleError)
@app.exception_handler(UserNotFoundError)
def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SubmissionInFlightError)
def _in_flight(request: Request, exc: SubmissionInFlightError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(CatalogIntegrityError)
def _integrity(request: Request, exc: CatalogIntegrityError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})


@app.exception_handler(StoreError)
def _store_unavailable(request: Request, exc: StoreError) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": "Storage is temporarily unavailable. Please retry."})


# ----------------------------------------------------------------------
# Learner routes


@app.get("/health", response_model=HealthResponse)
def health(service: LearningService = Depends(get_service)) -> HealthResponse:
    return HealthResponse(status="ok", course_count=len(service.catalog()))


@app.post("/users", response_model=User, status_code=201)
def register(payload: RegisterRequest, service: LearningService = Depends(get_service)) -> User:
    try:
        return service.register(payload.email, payload.name, payload.job_title)
    except StoreError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@app.get("/me", response_model=User)
def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@app.patch("/me", response_model=User)
def update_me(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> User:
    return service.update_profile(
        user, name=payload.name, job_title=payload.job_title, license_image_url=payload.license_image_url
    )


@app.get("/courses", response_model=List[CourseSummary])
def list_courses(
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> List[CourseSummary]:
    return [_summary(view.course, view.state) for view in service.overview(user)]


@app.get("/courses/{course_id}", response_model=CourseDetail)
def get_course(
    course_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> CourseDetail:
    return _detail(service.course_view(user, course_id))


@app.post("/courses/{course_id}/unlock", response_model=UnlockResponse)
def unlock_course(
    course_id: str,
    payload: UnlockRequest,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> UnlockResponse:
    result = service.unlock_course(user, course_id, payload.code)
    return UnlockResponse(accepted=result.accepted, message=result.message, progress=result.progress)


@app.get("/courses/{course_id}/modules/{module_id}", response_model=ModuleDetail)
def get_module(
    course_id: str,
    module_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ModuleDetail:
    view, module = service.open_module(user, course_id, module_id)
    progress = view.progress
    return ModuleDetail(
        course_id=course_id,
        module=module,
        completed=bool(progress and progress.has_completed(module.id)),
        memo=progress.memo_for(module.id) if progress else "",
    )


@app.post("/courses/{course_id}/modules/{module_id}/reflection", response_model=ReflectionResponse)
def submit_reflection(
    course_id: str,
    module_id: str,
    payload: ReflectionRequest,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ReflectionResponse:
    outcome = service.submit_reflection(user, course_id, module_id, payload.text)
    return ReflectionResponse(
        passed=outcome.verdict.passed,
        feedback=outcome.verdict.feedback,
        state=outcome.state.value,
        saved=outcome.saved,
        progress=outcome.progress,
    )


@app.put("/courses/{course_id}/modules/{module_id}/memo", response_model=MemoResponse)
def save_memo(
    course_id: str,
    module_id: str,
    payload: MemoRequest,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> MemoResponse:
    updated = service.save_memo(user, course_id, module_id, payload.text)
    if updated is None:
        return MemoResponse(saved=False, memo=payload.text)
    course_progress = updated.get(course_id)
    return MemoResponse(saved=True, memo=course_progress.memo_for(module_id) if course_progress else payload.text)


@app.post("/courses/{course_id}/modules/{module_id}/assistant", response_model=ChatMessage)
def ask_assistant(
    course_id: str,
    module_id: str,
    payload: AssistantRequest,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ChatMessage:
    return service.ask_assistant(user, course_id, module_id, payload.question, payload.history)


@app.get("/announcements", response_model=List[Announcement])
def list_announcements(service: LearningService = Depends(get_service)) -> List[Announcement]:
    return service.announcements()


@app.get("/forum/posts", response_model=PostPage)
def list_posts(
    page: int = Query(1, ge=1, description="1-based page number"),
    q: str = Query("", description="Case-insensitive search over title, content, and tags"),
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> PostPage:
    posts, total = service.list_posts(page, q)
    return PostPage(posts=posts, total=total, page=page, page_size=service.forum_page_size)


@app.get("/forum/posts/{post_id}", response_model=ForumPost)
def get_post(
    post_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ForumPost:
    post = service.get_post(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=f"Post {post_id} not found")
    return post


@app.post("/forum/posts/{post_id}/replies", response_model=ForumPost, status_code=201)
def add_reply(
    post_id: str,
    payload: ReplyCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ForumPost:
    if service.get_post(post_id) is None:
        raise HTTPException(status_code=404, detail=f"Post {post_id} not found")
    try:
        return service.add_reply(user, post_id, payload.content)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


# ----------------------------------------------------------------------
# Admin routes


@app.post("/forum/posts", response_model=ForumPost, status_code=201)
def create_post(
    payload: PostCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> ForumPost:
    try:
        return service.create_post(user, title=payload.title, content=payload.content)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.post("/admin/announcements", response_model=Announcement, status_code=201)
def add_announcement(
    payload: AnnouncementCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Announcement:
    return service.add_announcement(user, date=payload.date, title=payload.title, url=payload.url)


@app.get("/admin/users", response_model=List[User])
def list_users(user: User = Depends(get_current_user), service: LearningService = Depends(get_service)) -> List[User]:
    return service.list_users(user)


@app.post("/admin/users/{user_id}/verify", response_model=User)
def verify_user(
    user_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> User:
    return service.verify_user(user, user_id)


@app.get("/admin/courses", response_model=List[Course])
def admin_courses(user: User = Depends(get_current_user), service: LearningService = Depends(get_service)) -> List[Course]:
    if user.role is not Role.ADMIN:
        raise PermissionDeniedError("Administrator role required")
    return service.catalog().courses


@app.post("/admin/courses", response_model=Course, status_code=201)
def create_course(
    payload: CourseCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Course:
    return service.create_course(user, **payload.model_dump(exclude_none=True))


@app.put("/admin/courses/{course_id}", response_model=Course)
def replace_course(
    course_id: str,
    payload: Course,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Course:
    if payload.id != course_id:
        raise HTTPException(status_code=400, detail="Course id in the body does not match the URL")
    return service.replace_course(user, payload)


@app.delete("/admin/courses/{course_id}", response_model=Course)
def delete_course(
    course_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Course:
    return service.delete_course(user, course_id)


@app.post("/admin/courses/{course_id}/modules", response_model=Module, status_code=201)
def add_module(
    course_id: str,
    payload: ModuleCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Module:
    return service.add_module(user, course_id, **payload.model_dump(exclude_none=True))


@app.patch("/admin/courses/{course_id}/modules/{module_id}", response_model=Module)
def update_module(
    course_id: str,
    module_id: str,
    payload: ModuleCreate,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Module:
    return service.update_module(user, course_id, module_id, **payload.model_dump(exclude_none=True))


@app.delete("/admin/courses/{course_id}/modules/{module_id}", response_model=Course)
def delete_module(
    course_id: str,
    module_id: str,
    user: User = Depends(get_current_user),
    service: LearningService = Depends(get_service),
) -> Course:
    return service.delete_module(user, course_id, module_id)


# ----------------------------------------------------------------------
# Helpers


def _summary(course: Course, state: CourseState) -> CourseSummary:
    return CourseSummary(
        id=course.id,
        title=course.title,
        description=course.description,
        thumbnail_url=course.thumbnail_url,
        required_role=course.required_role,
        is_note_exclusive=course.is_note_exclusive,
        accessible=state.accessible,
        unlocked=state.unlocked,
        needs_code=state.needs_code,
        license_pending=state.license_pending,
        module_count=len(course.modules),
        completed_count=state.completed_count,
    )


def _detail(view: CourseView) -> CourseDetail:
    modules_by_id = {module.id: module for module in view.course.modules}
    summary = _summary(view.course, view.state)
    return CourseDetail(
        **summary.model_dump(),
        modules=[
            ModuleStatus(
                id=state.module_id,
                title=modules_by_id[state.module_id].title,
                order=state.order,
                duration=modules_by_id[state.module_id].duration,
                locked=state.locked,
                completed=state.completed,
                current=state.current,
            )
            for state in view.state.modules
        ],
        current_module_id=view.progress.current_module_id if view.progress else None,
    )
