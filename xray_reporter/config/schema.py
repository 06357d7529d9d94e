"""
Tracker configuration schema.

The `jira` section of a configuration file is checked against the
Draft 7 schema packaged next to this module.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Mapping

import jsonschema
from loguru import logger

TRACKER_SCHEMA_PATH = Path(__file__).parent / "schemas" / "tracker_config_schema.json"


class SchemaValidationError(Exception):
    """Raised when a tracker configuration does not match the schema."""

    def __init__(self, message: str, errors: List[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


@lru_cache(maxsize=None)
def tracker_schema() -> Dict[str, Any]:
    """Packaged tracker schema, read once per process."""
    return json.loads(TRACKER_SCHEMA_PATH.read_text(encoding="utf-8"))


def validate_tracker_config(data: Mapping[str, Any]) -> None:
    """
    Check a parsed configuration file against the tracker schema.

    Raises:
        SchemaValidationError: Listing every violation as "[path] message".
    """
    validator = jsonschema.Draft7Validator(tracker_schema())
    errors = [
        f"[{' -> '.join(str(p) for p in error.absolute_path) or '(root)'}] {error.message}"
        for error in sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    ]
    if errors:
        raise SchemaValidationError("; ".join(errors), errors=errors)

    logger.debug("Tracker configuration matches schema")
