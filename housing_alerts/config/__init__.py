"""Configuration management for the housing alert jobs."""

from .duration import DurationParseError, parse_duration, validate_duration_range
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config_dict, validate_config_file
from .models import (
    AdvancedConfig,
    AppConfig,
    BoundingBox,
    DetailDepth,
    EmailConfig,
    HarvesterConfig,
    JobsConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MatcherConfig,
    NotifierConfig,
    RegionConfig,
    RetentionConfig,
)

__all__ = [
    "load_config",
    "parse_config_dict",
    "validate_config_file",
    "load_environment_config",
    "parse_duration",
    "validate_duration_range",
    "AppConfig",
    "JobsConfig",
    "HarvesterConfig",
    "RegionConfig",
    "BoundingBox",
    "MatcherConfig",
    "NotifierConfig",
    "RetentionConfig",
    "EmailConfig",
    "LoggingConfig",
    "AdvancedConfig",
    "EnvironmentConfig",
    "DetailDepth",
    "LogLevel",
    "LogFormat",
    "ConfigurationError",
    "DurationParseError",
]
