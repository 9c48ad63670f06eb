"""Shared helpers for toggling the language-model judge."""

from __future__ import annotations

import os

DISABLE_LLM_ENV = "LUMINA_DISABLE_LLM_JUDGE"


def llm_judge_disabled() -> bool:
    """Return True when the LM judge and assistant should stay offline."""

    value = os.getenv(DISABLE_LLM_ENV)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}
