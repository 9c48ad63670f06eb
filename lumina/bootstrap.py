"""Bootstrap helpers: load config and seed data, then assemble the service."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from lumina.core.config import LuminaConfig, load_config
from lumina.core.dspy_runtime import DSPyConfigurationError, build_judge_lm
from lumina.core.provenance import ActivityLogger
from lumina.core.validation import ValidationFailure, strict_validation, validate_module_order
from lumina.judge.assistant import LessonAssistant
from lumina.judge.grader import build_judge
from lumina.judge.settings import llm_judge_disabled
from lumina.learning.gate import Judge
from lumina.learning.models import Announcement, Course, ForumPost, User, UserProgress
from lumina.service import LearningService
from lumina.storage.store import LuminaStore

LOGGER = logging.getLogger(__name__)


class SeedBundle(BaseModel):
    """Initial catalog and demo content written on first start."""

    courses: List[Course] = Field(default_factory=list)
    users: List[User] = Field(default_factory=list)
    announcements: List[Announcement] = Field(default_factory=list)
    posts: List[ForumPost] = Field(default_factory=list)
    progress: Dict[str, UserProgress] = Field(default_factory=dict)


def load_seed_bundle(path: Path) -> SeedBundle:
    """Parse and validate a seed YAML; module orders must already be contiguous."""

    try:
        data = strict_validation.validate_yaml_file(path).data or {}
    except ValidationFailure as exc:
        raise ValueError(f"Invalid seed file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"Seed file {path} must define a mapping")

    result = strict_validation.validate_pydantic_model(data, SeedBundle) if data else None
    bundle = result.data if result is not None else SeedBundle()
    problems = [
        f"{course.id}: {error}"
        for course in bundle.courses
        for error in validate_module_order(course).errors
    ]
    if problems:
        raise ValueError(f"Seed file {path} has inconsistent module orders: {'; '.join(problems)}")
    return bundle


def seed_store(store: LuminaStore, bundle: SeedBundle, *, force: bool = False) -> bool:
    """Write the bundle unless the store was seeded before. Returns True when written."""

    if store.is_seeded() and not force:
        return False
    store.seed(
        courses=bundle.courses,
        users=bundle.users,
        announcements=bundle.announcements,
        posts=bundle.posts,
        progress=bundle.progress,
    )
    LOGGER.info("Seeded store %s with %d course(s)", store.db_path, len(bundle.courses))
    return True


def bootstrap_service(
    config_path: Path | None = None,
    *,
    repo_root: Path | None = None,
    config: LuminaConfig | None = None,
    judge: Judge | None = None,
    lm: object | None = None,
) -> LearningService:
    """
    Load configuration and environment, seed the store if needed, and build the service.

    Parameters
    ----------
    config_path:
        Path to the portal YAML. Falls back to ``LUMINA_CONFIG`` then defaults.
    repo_root:
        Directory holding the optional ``.env`` file. Defaults to ``Path.cwd()``.
    config:
        Pre-built config; skips file loading entirely.
    judge:
        Judge override (tests pass scripted judges here).
    lm:
        Pre-built DSPy LM for the judge and assistant.
    """

    repo_root = (repo_root or Path.cwd()).resolve()
    load_dotenv(repo_root / ".env")
    config = config or load_config(config_path)

    store = LuminaStore(config.storage.sqlite_path.expanduser().resolve())
    if config.seed.seed_on_startup and config.seed.catalog_path is not None:
        seed_store(store, load_seed_bundle(config.seed.catalog_path))

    activity = ActivityLogger(config.activity.log_path) if config.activity.enabled else ActivityLogger.disabled()
    if lm is None and judge is None and config.judge.use_llm and not llm_judge_disabled():
        try:
            lm = build_judge_lm(config.judge)
        except DSPyConfigurationError as exc:
            LOGGER.warning("Language model unavailable, judging reflections heuristically: %s", exc)
    judge_cfg = config.judge if lm is not None else config.judge.model_copy(update={"use_llm": False})
    resolved_judge = judge or build_judge(judge_cfg, lm=lm)

    assistant = LessonAssistant(history_limit=config.judge.assistant_history)
    if lm is not None:
        from lumina.judge.programs import build_assistant_program

        assistant = LessonAssistant(build_assistant_program(lm=lm), history_limit=config.judge.assistant_history)

    return LearningService(
        store,
        resolved_judge,
        activity=activity,
        assistant=assistant,
        forum_page_size=config.forum.page_size,
        admin_post_tags=config.forum.admin_post_tags,
    )


__all__ = ["SeedBundle", "bootstrap_service", "load_seed_bundle", "seed_store"]
