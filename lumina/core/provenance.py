"""Append-only JSONL activity trail for progress and admin changes."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field


class ActivityEvent(BaseModel):
    """Structured record for learner and admin activity."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    action: str = Field(..., description="Short verb, e.g. 'unlock_attempt' or 'reflection'.")
    message: str = Field(..., description="Human-readable description of the event.")
    actor: str = Field(default="system", description="User id that triggered the event.")
    course_id: str | None = None
    module_id: str | None = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class ActivityLogger:
    """Append-only JSONL logger for audit and debugging."""

    def __init__(self, output_path: Path | None):
        self.output_path = output_path
        self._lock = threading.Lock()
        if self.output_path is not None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

    @classmethod
    def disabled(cls) -> "ActivityLogger":
        return cls(None)

    @property
    def enabled(self) -> bool:
        return self.output_path is not None

    def log(self, event: ActivityEvent | Dict[str, Any]) -> ActivityEvent:
        """Write a single event to disk and return the normalized object."""
        if not isinstance(event, ActivityEvent):
            event = ActivityEvent(**event)
        if self.output_path is None:
            return event
        line = event.model_dump_json()
        with self._lock, self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        return event

    def extend(self, events: Iterable[ActivityEvent | Dict[str, Any]]) -> None:
        """Batch-write multiple events."""
        for event in events:
            self.log(event)

    def read(self) -> List[ActivityEvent]:
        if self.output_path is None or not self.output_path.exists():
            return []
        with self.output_path.open("r", encoding="utf-8") as handle:
            return [ActivityEvent.model_validate_json(line) for line in handle if line.strip()]


__all__ = ["ActivityEvent", "ActivityLogger"]
