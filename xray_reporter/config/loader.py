"""
Configuration Loader Module.

Builds the Jira Xray connection settings for a run:
- Reads an optional YAML or JSON configuration file.
- Validates it against the packaged JSON schema.
- Overlays JIRA_URL, JIRA_USERNAME, JIRA_PASSWORD and JIRA_TIMEOUT
  from the environment.

Settings are read once when the reporter is created and are treated as
immutable for the rest of the run. Missing credentials are a legal state:
tracker reporting is skipped, not failed.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from loguru import logger

from xray_reporter.config.schema import SchemaValidationError, validate_tracker_config

CONFIG_PATH_ENV = "XRAY_REPORTER_CONFIG"

# environment variable -> settings field
ENV_OVERRIDES = {
    "JIRA_URL": "base_url",
    "JIRA_USERNAME": "username",
    "JIRA_PASSWORD": "password",
    "JIRA_TIMEOUT": "timeout_sec",
}


class ConfigurationError(Exception):
    """Raised when a configuration file is invalid or cannot be loaded."""

    pass


@dataclass(frozen=True)
class TrackerSettings:
    """
    Connection settings for the Jira Xray server.

    Attributes:
        base_url: Jira base URL (e.g., "https://jira.example.com").
        username: Jira user name for Basic auth.
        password: Password or personal access token.
        timeout_sec: Per-request timeout in seconds.
        verify_ssl: Whether to verify TLS certificates.
    """

    base_url: str = ""
    username: str = ""
    password: str = ""
    timeout_sec: float = 30.0
    verify_ssl: bool = True

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def __repr__(self) -> str:
        masked = "***" if self.password else ""
        return (
            f"TrackerSettings(base_url={self.base_url!r}, username={self.username!r}, "
            f"password={masked!r}, timeout_sec={self.timeout_sec}, "
            f"verify_ssl={self.verify_ssl})"
        )


class ConfigLoader:
    """
    Loads TrackerSettings from a file and the environment.

    Usage::

        settings = ConfigLoader().load_tracker_settings("xray.yaml")
        if not settings.has_credentials:
            ...
    """

    SUPPORTED_EXTENSIONS = {".yaml", ".yml", ".json"}

    def load_tracker_settings(
        self,
        path: str | Path | None = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> TrackerSettings:
        """
        Build the tracker settings for this run.

        Args:
            path: Optional configuration file. Defaults to the file named by
                  XRAY_REPORTER_CONFIG, if any.
            environ: Environment mapping (defaults to os.environ).

        Returns:
            Resolved TrackerSettings.

        Raises:
            ConfigurationError: If the file is unreadable, malformed, fails
                schema validation, or the timeout is not a positive number.
            FileNotFoundError: If an explicit configuration file is missing.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        path = path or environ.get(CONFIG_PATH_ENV) or None
        if path:
            values.update(self._load_file(Path(path)))

        for env_name, field_name in ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw:
                values[field_name] = raw

        if "timeout_sec" in values:
            try:
                values["timeout_sec"] = float(values["timeout_sec"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(
                    f"Invalid request timeout: {values['timeout_sec']!r}"
                ) from e
            if not values["timeout_sec"] > 0:
                raise ConfigurationError(
                    f"Request timeout must be positive: {values['timeout_sec']}"
                )

        if "base_url" in values:
            values["base_url"] = values["base_url"].rstrip("/")

        settings = TrackerSettings(**values)
        logger.info(f"Tracker settings loaded: {settings!r}")
        return settings

    def _load_file(self, file_path: Path) -> Dict[str, Any]:
        """Read, validate and flatten the `jira` section of a config file."""
        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        data = self._read_file(file_path)
        try:
            validate_tracker_config(data)
        except SchemaValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed for {file_path}: {e}"
            ) from e

        jira = data.get("jira", {})
        values: Dict[str, Any] = {}
        if "url" in jira:
            values["base_url"] = jira["url"]
        for key in ("username", "password", "timeout_sec", "verify_ssl"):
            if key in jira:
                values[key] = jira[key]

        logger.info(f"Configuration loaded from: {file_path}")
        return values

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        """Read and parse a YAML or JSON file."""
        suffix = file_path.suffix.lower()
        if suffix not in self.SUPPORTED_EXTENSIONS:
            raise ConfigurationError(
                f"Unsupported file format '{suffix}'. "
                f"Supported: {sorted(self.SUPPORTED_EXTENSIONS)}"
            )

        try:
            content = file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read file {file_path}: {e}") from e

        try:
            if suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(content)
            else:
                data = json.loads(content)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Failed to parse {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping (dict), "
                f"got {type(data).__name__}: {file_path}"
            )

        return data
