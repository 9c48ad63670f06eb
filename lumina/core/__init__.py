"""
Configuration, activity logging, and validation utilities for Lumina.

The DSPy runtime is deliberately not re-exported here so the core can be
imported without the language-model stack.
"""

from .config import JudgeConfig, LuminaConfig, load_config
from .provenance import ActivityEvent, ActivityLogger
from .validation import ValidationFailure, ValidationResult, validate_module_order

__all__ = [
    "ActivityEvent",
    "ActivityLogger",
    "JudgeConfig",
    "LuminaConfig",
    "ValidationFailure",
    "ValidationResult",
    "load_config",
    "validate_module_order",
]
