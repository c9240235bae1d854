"""Settings validation for taxlot."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TAXLOT_CONFIG"

# Merged lot prices carry this many decimal places
STORED_PRICE_PLACES = 8


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Configuration validation failed: {'; '.join(errors)}")


@dataclass
class ValidationResult:
    """Result of configuration validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


# Configuration schema with validation rules
CONFIG_SCHEMA = {
    "logging": {
        "level": {
            "type": str,
            "required": False,
            "default": "WARNING",
            "env_var": "TAXLOT_LOG_LEVEL",
            "choices": ["DEBUG", "INFO", "WARNING", "ERROR"],
        },
        "file": {"type": str, "required": False, "default": None},
        "json_format": {"type": bool, "required": False, "default": False},
    },
    "output": {
        "price_places": {"type": int, "required": False, "default": 2, "min": 0, "max": 18},
        "quantity_places": {"type": int, "required": False, "default": 8, "min": 0, "max": 18},
        "include_lot_id": {"type": bool, "required": False, "default": True},
    },
}


class ConfigValidator:
    """Validates taxlot settings."""

    def __init__(self, schema: dict = None):
        self.schema = schema or CONFIG_SCHEMA

    def validate(self, config: dict) -> ValidationResult:
        """
        Validate configuration against schema.

        Args:
            config: Configuration dictionary to validate

        Returns:
            ValidationResult with errors and warnings
        """
        errors = []
        warnings = []

        if config is not None and not isinstance(config, dict):
            return ValidationResult(
                valid=False,
                errors=[f"Expected a mapping at top level, got {type(config).__name__}"],
            )

        self._validate_section(config, self.schema, "", errors, warnings)
        self._validate_unknown_keys(config, self.schema, "", warnings)

        if not errors:
            self._validate_cross_fields(config, errors, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_section(
        self,
        config: dict,
        schema: dict,
        path: str,
        errors: list,
        warnings: list,
    ) -> None:
        """Recursively validate a configuration section."""
        if config is not None and not isinstance(config, dict):
            errors.append(f"{path}: Expected a section, got {type(config).__name__}")
            return

        for key, rules in schema.items():
            full_path = f"{path}.{key}" if path else key
            value = config.get(key) if config else None

            # Check if this is a nested section
            if isinstance(rules, dict) and "type" not in rules:
                self._validate_section(
                    config.get(key, {}) if config else {},
                    rules,
                    full_path,
                    errors,
                    warnings,
                )
                continue

            self._validate_field(full_path, value, rules, errors, warnings)

    def _validate_field(
        self,
        path: str,
        value: Any,
        rules: dict,
        errors: list,
        warnings: list,
    ) -> None:
        """Validate a single field against its rules."""
        # Check environment variable fallback
        if value is None or value == "":
            env_var = rules.get("env_var")
            if env_var:
                value = os.getenv(env_var)

        if rules.get("required") and (value is None or value == ""):
            errors.append(f"{path}: Required field is missing")
            return

        if value is None:
            return

        expected_type = rules.get("type")
        if expected_type:
            if expected_type is int and isinstance(value, bool):
                errors.append(f"{path}: Expected int, got bool")
                return
            if not isinstance(value, expected_type):
                errors.append(
                    f"{path}: Expected {expected_type.__name__}, got {type(value).__name__}"
                )
                return

        if isinstance(value, int) and not isinstance(value, bool):
            if "min" in rules and value < rules["min"]:
                errors.append(f"{path}: Value {value} is below minimum {rules['min']}")
            if "max" in rules and value > rules["max"]:
                errors.append(f"{path}: Value {value} exceeds maximum {rules['max']}")

        if "choices" in rules and value not in rules["choices"]:
            errors.append(f"{path}: Value must be one of {rules['choices']}")

    def _validate_unknown_keys(
        self,
        config: dict,
        schema: dict,
        path: str,
        warnings: list,
    ) -> None:
        """Warn about keys the schema does not know."""
        if not isinstance(config, dict):
            return
        for key, value in config.items():
            full_path = f"{path}.{key}" if path else str(key)
            rules = schema.get(key)
            if rules is None:
                warnings.append(f"{full_path}: Unknown setting, ignored")
            elif "type" not in rules:
                self._validate_unknown_keys(value, rules, full_path, warnings)

    def _validate_cross_fields(
        self,
        config: dict,
        errors: list,
        warnings: list,
    ) -> None:
        """Validate relationships between fields."""
        output = (config or {}).get("output") or {}
        price_places = output.get("price_places")
        if price_places is not None and price_places > STORED_PRICE_PLACES:
            warnings.append(
                f"output.price_places ({price_places}) exceeds the {STORED_PRICE_PLACES} "
                f"places merged prices are stored with, extra places will be zeros"
            )

        log_settings = (config or {}).get("logging") or {}
        if log_settings.get("json_format") and log_settings.get("level") == "DEBUG":
            warnings.append("DEBUG logging in JSON format emits one record per lot touched")

    def apply_defaults(self, config: dict) -> dict:
        """Apply environment and default values to missing configuration fields."""
        return self._apply_defaults_section(config, self.schema)

    def _apply_defaults_section(self, config: dict, schema: dict) -> dict:
        """Recursively apply defaults to a section."""
        result = dict(config) if config else {}

        for key, rules in schema.items():
            if isinstance(rules, dict) and "type" not in rules:
                result[key] = self._apply_defaults_section(
                    result.get(key, {}),
                    rules,
                )
            elif result.get(key) is None:
                env_value = os.getenv(rules["env_var"]) if "env_var" in rules else None
                if env_value:
                    result[key] = env_value
                elif "default" in rules:
                    result[key] = rules["default"]

        return result


def _read_yaml(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_settings(config_path: Optional[str] = None) -> dict:
    """
    Load and validate settings, raising on errors.

    The path defaults to the TAXLOT_CONFIG environment variable. With
    neither set, the defaults are returned.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated settings dict with defaults applied

    Raises:
        ConfigValidationError: If validation fails
        FileNotFoundError: If config file doesn't exist
    """
    config_path = config_path or os.getenv(CONFIG_ENV_VAR)
    config = _read_yaml(Path(config_path)) if config_path else {}

    validator = ConfigValidator()
    result = validator.validate(config)

    if not result.valid:
        raise ConfigValidationError(result.errors)

    for warning in result.warnings:
        logger.warning(f"Config warning: {warning}")

    return validator.apply_defaults(config)
