"""
Configuration Management Module.

Handles loading and validation of the Jira Xray connection settings
from an optional YAML/JSON file and the process environment.
"""

from xray_reporter.config.loader import ConfigLoader, ConfigurationError, TrackerSettings
from xray_reporter.config.schema import SchemaValidationError, validate_tracker_config

__all__ = [
    "ConfigLoader",
    "ConfigurationError",
    "TrackerSettings",
    "SchemaValidationError",
    "validate_tracker_config",
]
