"""Settings loading and validation."""

from .validator import (
    ConfigValidator,
    ConfigValidationError,
    ValidationResult,
    load_settings,
)

__all__ = [
    "ConfigValidator",
    "ConfigValidationError",
    "ValidationResult",
    "load_settings",
]
