"""Configuration loader for the housing alert jobs."""

from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (Path("config.yaml"), Path("config") / "config.yaml")


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load the YAML configuration and the environment.

    Lookup order for the file: ``config_path`` if given, then ``config.yaml``,
    then ``config/config.yaml``.

    Args:
        config_path: Optional explicit path to the configuration file

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid, or
            an environment variable is malformed
    """
    config_file = _find_config_file(config_path)
    app_config = parse_config_dict(_read_yaml(config_file))
    env_config = load_environment_config()
    return app_config, env_config


def parse_config_dict(config_dict) -> AppConfig:
    """Validate a raw configuration mapping into an AppConfig.

    Raises:
        ConfigurationError: If the mapping is empty or fails validation
    """
    if not config_dict:
        raise ConfigurationError(
            "Configuration file is empty",
            suggestions=["Copy config.example.yaml to config.yaml"],
        )
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            "Configuration root must be a mapping",
            suggestions=["Review config.example.yaml for the expected layout"],
        )

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=_describe_validation_errors(e),
            suggestions=[
                "Review config.example.yaml for correct format",
                "Durations look like '45m', '1h30m', 'PT45M' or '1d'",
            ],
        ) from e


def _read_yaml(config_file: Path):
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file {config_file}: {e}",
            suggestions=[f"Ensure {config_file} exists and is readable"],
        ) from e


def _describe_validation_errors(error: ValidationError) -> List[str]:
    messages = []
    for item in error.errors():
        field_path = " -> ".join(str(loc) for loc in item["loc"]) or "(root)"
        if item["type"] == "missing":
            messages.append(f"Missing required field: {field_path}")
        elif item["type"].endswith("_type"):
            expected = item["type"][: -len("_type")]
            messages.append(
                f"Invalid type for '{field_path}': expected {expected}, got {item.get('input')!r}"
            )
        else:
            messages.append(f"{field_path}: {item['msg']}")
    return messages


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    """Resolve the configuration file location.

    Raises:
        ConfigurationError: If no candidate file exists
    """
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists", "Check the path and try again"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
        suggestions=[
            "Copy config.example.yaml to config.yaml",
            "Use --config to point at a custom location",
        ],
    )


def validate_config_file(config_path: Path) -> bool:
    """
    Validate a configuration file without touching the environment.

    Prints a one-line verdict (and the problems, if any) for the CLI.

    Returns:
        True if valid, False otherwise
    """
    try:
        parse_config_dict(_read_yaml(config_path))
    except ConfigurationError as e:
        print(f"Configuration validation failed:\n{e}")
        return False

    print(f"Configuration file {config_path} is valid")
    return True
