"""
Root conftest.py — Shared Pytest fixtures.

Provides fixtures for:
- A colorless console writer over an in-memory stream.
- Building TestRunInfo / TestOutcome values.
- Tracker settings and mocked HTTP sessions/responses for the Xray client.
"""

from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from unittest.mock import MagicMock

import pytest

from xray_reporter.collector import ResultCollector, TestError, TestOutcome, TestRunInfo
from xray_reporter.config.loader import TrackerSettings
from xray_reporter.jira_client.xray_client import XrayClient
from xray_reporter.reporting.console import ConsoleWriter


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


@pytest.fixture
def stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(stream: io.StringIO) -> ConsoleWriter:
    """Console without colors and with a fixed width."""
    return ConsoleWriter(stream, no_colors=True, width=120)


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@pytest.fixture
def run_bounds() -> tuple:
    """Fixed start/end of a run, 95 seconds apart."""
    start = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)
    end = datetime(2024, 5, 1, 10, 1, 35, tzinfo=timezone.utc)
    return start, end


@pytest.fixture
def make_info() -> Callable[..., TestRunInfo]:
    """Factory for TestRunInfo: `make_info(failed=True)` / `make_info(skipped=True)`."""

    def _make(failed: bool = False, skipped: bool = False, duration_ms: float = 10.0) -> TestRunInfo:
        errors = [TestError(message="AssertionError: boom")] if failed else []
        return TestRunInfo(duration_ms=duration_ms, errors=errors, skipped=skipped)

    return _make


@pytest.fixture
def record(make_info: Callable[..., TestRunInfo]) -> Callable[..., TestOutcome]:
    """
    Record outcomes into a shared collector.

    Usage: `record("name", test_key="ABC-1", plan_key="ABC-9", failed=True)`.
    """
    collector = ResultCollector()

    def _record(
        name: str,
        test_key: Optional[str] = None,
        plan_key: Optional[str] = None,
        **info_kwargs: Any,
    ) -> TestOutcome:
        metadata: Dict[str, Any] = {}
        if test_key is not None:
            metadata["externalTestKey"] = test_key
        if plan_key is not None:
            metadata["externalPlanKey"] = plan_key
        return collector.record(name, make_info(**info_kwargs), metadata)

    _record.collector = collector  # type: ignore[attr-defined]
    return _record


# ---------------------------------------------------------------------------
# Xray client
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> TrackerSettings:
    return TrackerSettings(
        base_url="https://tracker.example",
        username="ci-bot",
        password="secret",
    )


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for mocked `requests.Response` objects."""

    def _make(status_code: int, body: Any = None, text: Optional[str] = None) -> MagicMock:
        response = MagicMock()
        response.status_code = status_code
        if body is None:
            response.json.side_effect = ValueError("No JSON object could be decoded")
        else:
            response.json.return_value = body
        if text is None:
            text = json.dumps(body) if body is not None else ""
        response.text = text
        return response

    return _make


@pytest.fixture
def session() -> MagicMock:
    """Mocked `requests.Session`; set `session.request.return_value` / `side_effect`."""
    return MagicMock()


@pytest.fixture
def client(settings: TrackerSettings, session: MagicMock) -> XrayClient:
    return XrayClient(settings, session=session)
