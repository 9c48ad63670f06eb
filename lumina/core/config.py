"""
Typed configuration for the Lumina portal.

The YAML file is optional: every section has defaults so tests and the admin
CLI can build a config in code.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

CONFIG_ENV_VAR = "LUMINA_CONFIG"
STORE_ENV_VAR = "LUMINA_STORE"

DEFAULT_BANNED_PHRASES = ["aaa", "test", "asdf"]


class RoleModelConfig(BaseModel):
    """Provider-specific configuration for a single LM role."""

    model_config = ConfigDict(extra="allow")

    provider: Literal["openai"] = "openai"
    model: str = "gpt-5-mini"
    temperature: float | None = Field(default=None, ge=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, ge=64)
    api_key_env: str | None = None
    api_base: str | None = None
    api_base_env: str | None = None

    @property
    def extra_kwargs(self) -> Dict[str, Any]:
        return getattr(self, "model_extra", {}) or {}


class JudgeConfig(BaseModel):
    """Reflection judge thresholds plus the optional LM used to grade."""

    min_chars: int = Field(default=30, ge=1)
    banned_phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_BANNED_PHRASES))
    use_llm: bool = False
    model: RoleModelConfig = Field(default_factory=RoleModelConfig)
    default_temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    default_max_tokens: int = Field(default=1024, ge=64)
    max_chars: int = Field(default=4000, ge=100, description="Reflection excerpt length sent to the LM.")
    assistant_history: int = Field(default=8, ge=0, description="Chat messages replayed to the lesson assistant.")

    @field_validator("banned_phrases", mode="before")
    @classmethod
    def strip_items(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [item.strip() for item in value if isinstance(item, str) and item.strip()]
        return value


class StorageConfig(BaseModel):
    sqlite_path: Path = Field(default=Path("outputs/lumina.sqlite"))

    @field_validator("sqlite_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class ActivityConfig(BaseModel):
    log_path: Path = Field(default=Path("outputs/activity.jsonl"))
    enabled: bool = True

    @field_validator("log_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser()


class SeedConfig(BaseModel):
    catalog_path: Path | None = None
    seed_on_startup: bool = True

    @field_validator("catalog_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value).expanduser()


class ForumConfig(BaseModel):
    page_size: int = Field(default=5, ge=1, le=100)
    admin_post_tags: List[str] = Field(default_factory=lambda: ["announcement", "important"])


class LuminaConfig(BaseModel):
    """Top-level configuration for the portal backend and admin CLI."""

    storage: StorageConfig = Field(default_factory=StorageConfig)
    judge: JudgeConfig = Field(default_factory=JudgeConfig)
    activity: ActivityConfig = Field(default_factory=ActivityConfig)
    seed: SeedConfig = Field(default_factory=SeedConfig)
    forum: ForumConfig = Field(default_factory=ForumConfig)


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _resolve_config_path(value: Any, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    else:
        path = path.resolve()
    return str(path)


def _absolutize_paths(data: Dict[str, Any], base_dir: Path) -> None:
    for section, key in (("storage", "sqlite_path"), ("activity", "log_path"), ("seed", "catalog_path")):
        block = data.get(section)
        if isinstance(block, dict) and block.get(key):
            block[key] = _resolve_config_path(block[key], base_dir)


def load_config(path: Path | None = None, *, base_dir: Path | None = None) -> LuminaConfig:
    """Load the portal config, honouring LUMINA_CONFIG and LUMINA_STORE overrides."""

    if path is None:
        env_path = os.getenv(CONFIG_ENV_VAR)
        path = Path(env_path) if env_path else None

    data: Dict[str, Any] = {}
    if path is not None:
        path = path.expanduser().resolve()
        data = read_yaml_file(path)
        _absolutize_paths(data, base_dir=(base_dir or path.parent).resolve())

    store_override = os.getenv(STORE_ENV_VAR)
    if store_override:
        data.setdefault("storage", {})["sqlite_path"] = str(Path(store_override).expanduser().resolve())

    try:
        return LuminaConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid Lumina config in {path or '<defaults>'}") from exc


__all__ = [
    "ActivityConfig",
    "CONFIG_ENV_VAR",
    "ForumConfig",
    "JudgeConfig",
    "LuminaConfig",
    "RoleModelConfig",
    "STORE_ENV_VAR",
    "SeedConfig",
    "StorageConfig",
    "load_config",
    "read_yaml_file",
]
