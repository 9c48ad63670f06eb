"""Validation helpers for seed files, config payloads, and catalog integrity."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Type

import yaml
from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from lumina.learning.models import Course


class ValidationFailure(ValueError):
    """Raised by strict validators when a check fails."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__(f"Validation failed: {'; '.join(errors)}")
        self.errors = errors


@dataclass
class ValidationResult:
    """Result of a validation check."""

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Any = None

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def raise_if_invalid(self) -> None:
        if not self.valid:
            raise ValidationFailure(self.errors)


class ValidationFramework:
    """File and model validation shared by the config loader and the seed CLI."""

    def __init__(self, *, strict: bool = True, log_level: str = "INFO"):
        """Initialize validation framework.

        Args:
            strict: If True, raise ValidationFailure on validation failure
            log_level: Logging level for validation messages
        """
        self.strict = strict
        self.logger = logging.getLogger(__name__)
        self.logger.setLevel(getattr(logging, log_level.upper()))

    def _finish(self, result: ValidationResult, label: str) -> ValidationResult:
        if not result.valid:
            self.logger.error("%s validation failed: %s", label, result.errors)
        elif result.has_warnings:
            self.logger.warning("%s validation warnings: %s", label, result.warnings)
        if self.strict and not result.valid:
            result.raise_if_invalid()
        return result

    def validate_file_exists(self, path: Path | str) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        path_obj = Path(path)

        if not path_obj.exists():
            errors.append(f"File does not exist: {path}")
        elif not path_obj.is_file():
            errors.append(f"Path is not a file: {path}")
        elif not path_obj.stat().st_size:
            warnings.append(f"File is empty: {path}")

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings, data=path_obj if not errors else None)
        return self._finish(result, "File")

    def validate_yaml_file(self, path: Path | str) -> ValidationResult:
        """Validate and load a YAML file."""
        file_result = self.validate_file_exists(path)
        if not file_result.valid:
            return file_result

        errors: List[str] = []
        warnings: List[str] = []
        data = None
        path_obj = Path(path)
        try:
            content = path_obj.read_text(encoding="utf-8")
            if not content.strip():
                errors.append(f"YAML file is empty: {path}")
            else:
                data = yaml.safe_load(content)
                if data is None:
                    warnings.append(f"YAML file contains only null/empty data: {path}")
                    data = {}
                self.logger.info("Loaded YAML from %s", path)
        except yaml.YAMLError as exc:
            errors.append(f"Invalid YAML in {path}: {exc}")
        except OSError as exc:
            errors.append(f"Error reading YAML file {path}: {exc}")

        result = ValidationResult(valid=not errors, errors=errors, warnings=warnings, data=data)
        return self._finish(result, "YAML")

    def validate_pydantic_model(self, data: Dict[str, Any], model_class: Type[BaseModel]) -> ValidationResult:
        errors: List[str] = []
        validated = None
        try:
            validated = model_class.model_validate(data)
        except ValidationError as exc:
            for error in exc.errors():
                location = ".".join(str(loc) for loc in error["loc"])
                errors.append(f"{location}: {error['msg']}")

        result = ValidationResult(valid=not errors, errors=errors, data=validated)
        return self._finish(result, model_class.__name__)


def validate_module_order(course: "Course") -> ValidationResult:
    """Module orders must be exactly 1..n with unique module ids."""

    errors: List[str] = []
    warnings: List[str] = []

    id_counts = Counter(module.id for module in course.modules)
    duplicate_ids = sorted(module_id for module_id, count in id_counts.items() if count > 1)
    if duplicate_ids:
        errors.append(f"Duplicate module ids: {duplicate_ids}")

    order_counts = Counter(module.order for module in course.modules)
    duplicate_orders = sorted(order for order, count in order_counts.items() if count > 1)
    if duplicate_orders:
        errors.append(f"Duplicate module orders: {duplicate_orders}")

    expected = set(range(1, len(course.modules) + 1))
    missing = sorted(expected - set(order_counts))
    if missing and not duplicate_orders:
        errors.append(f"Module orders have gaps; missing {missing}")

    if not course.modules:
        warnings.append(f"Course {course.id} has no modules")

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, data=course)


validation = ValidationFramework(strict=False)
strict_validation = ValidationFramework(strict=True)


__all__ = [
    "ValidationFailure",
    "ValidationFramework",
    "ValidationResult",
    "strict_validation",
    "validate_module_order",
    "validation",
]
