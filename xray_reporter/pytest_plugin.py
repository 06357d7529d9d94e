"""
Pytest Plugin — drives the Xray console reporter from a pytest session.

Link tests to Jira Xray with a marker::

    @pytest.mark.xray("WEB-101", plan="WEB-900")
    def test_login(): ...

and enable reporting with ``pytest --xray``. Hooks map onto the reporter's
lifecycle callbacks:

- collection finished      -> report_task_start
- first test of a module   -> report_fixture_start
- teardown report received -> report_test_done (setup/call/teardown folded)
- session finished         -> report_task_done

Credentials come from JIRA_URL / JIRA_USERNAME / JIRA_PASSWORD or the file
given with ``--xray-config``.
"""

from __future__ import annotations

import platform
import sys
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import pytest
from loguru import logger

from xray_reporter.collector import (
    PLAN_KEY_FIELD,
    TEST_KEY_FIELD,
    QuarantineInfo,
    TestError,
    TestRunInfo,
)
from xray_reporter.reporter import LifecycleReporter, TaskResult, XrayConsoleReporter
from xray_reporter.reporting.console import ConsoleWriter

BRIDGE_PLUGIN_NAME = "xray-reporter-bridge"


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add the Xray reporting CLI options."""
    group = parser.getgroup("xray", "Jira Xray reporting")
    group.addoption(
        "--xray",
        action="store_true",
        default=False,
        help="Render the Xray console report and import results into Jira Xray.",
    )
    group.addoption(
        "--xray-config",
        default=None,
        help="YAML/JSON file with Jira connection settings. Default: $XRAY_REPORTER_CONFIG",
    )


@pytest.hookimpl(trylast=True)
def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "xray(test_key, plan=None): link the test to a Jira Xray Test issue and Test Plan",
    )
    if not config.getoption("--xray"):
        return

    terminal = config.pluginmanager.get_plugin("terminalreporter")
    if terminal is not None:
        console = ConsoleWriter(terminal, no_colors=not config.get_terminal_writer().hasmarkup)
    else:
        console = ConsoleWriter(sys.stdout)

    reporter = XrayConsoleReporter(console, config_path=config.getoption("--xray-config"))
    config.pluginmanager.register(XrayPytestBridge(reporter), BRIDGE_PLUGIN_NAME)
    logger.info("Xray reporting enabled")


def xray_metadata(item: Any) -> Dict[str, Any]:
    """
    Build reporter metadata from an item's `xray` marker.

    The Test key is the first positional argument (or `test_key=`), the
    Test Plan key is `plan=`. Values are passed through unvalidated.
    """
    marker = item.get_closest_marker("xray")
    if marker is None:
        return {}

    metadata: Dict[str, Any] = {}
    test_key = marker.args[0] if marker.args else marker.kwargs.get("test_key")
    if test_key is not None:
        metadata[TEST_KEY_FIELD] = test_key
    if marker.kwargs.get("plan") is not None:
        metadata[PLAN_KEY_FIELD] = marker.kwargs["plan"]
    return metadata


def environment_description() -> List[str]:
    return [
        f"Python {platform.python_version()} ({platform.python_implementation()})",
        f"pytest {pytest.__version__} on {platform.platform()}",
    ]


def _error_from_report(report: Any) -> TestError:
    details = getattr(report, "longreprtext", "") or str(report.longrepr or "")
    crash = getattr(report.longrepr, "reprcrash", None)
    if crash is not None and getattr(crash, "message", ""):
        message = crash.message
    else:
        lines = [line for line in details.splitlines() if line.strip()]
        message = lines[-1] if lines else f"{report.when} failed"
    return TestError(message=message, details=details, phase=report.when)


@dataclass
class _PendingTest:
    """Phase reports seen so far for one test."""

    duration_sec: float = 0.0
    skipped: bool = False
    errors: List[TestError] = field(default_factory=list)
    attempts: List[bool] = field(default_factory=list)


class XrayPytestBridge:
    """
    Translates pytest hook calls into lifecycle reporter callbacks.

    Usage::

        config.pluginmanager.register(XrayPytestBridge(reporter), "xray-reporter-bridge")
    """

    def __init__(self, reporter: LifecycleReporter) -> None:
        self.reporter = reporter
        self._items: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self._pending: Dict[str, _PendingTest] = {}
        self._current_fixture: Optional[str] = None
        self._started = False
        self._warnings: List[str] = []
        self.passed = 0
        self.failed = 0
        self.skipped = 0

    def pytest_collection_modifyitems(self, items: List[Any]) -> None:
        for item in items:
            self._items[item.nodeid] = (item.name, xray_metadata(item))

    def pytest_collection_finish(self, session: Any) -> None:
        self._started = True
        self.reporter.report_task_start(
            datetime.now(), environment_description(), len(session.items)
        )

    def pytest_runtest_logstart(self, nodeid: str, location: Tuple[str, Any, str]) -> None:
        fixture = nodeid.split("::", 1)[0]
        if fixture != self._current_fixture:
            self._current_fixture = fixture
            self.reporter.report_fixture_start(fixture, location[0], {})

    def pytest_runtest_logreport(self, report: Any) -> None:
        pending = self._pending.setdefault(report.nodeid, _PendingTest())
        pending.duration_sec += report.duration

        if report.outcome == "rerun":
            # failed quarantine attempt; the next attempt starts from scratch
            pending.attempts.append(False)
            pending.errors = []
            pending.skipped = False
            return

        if report.skipped:
            pending.skipped = True
        elif report.failed:
            pending.errors.append(_error_from_report(report))

        if report.when == "teardown":
            self._finish_test(report.nodeid, self._pending.pop(report.nodeid))

    def _finish_test(self, nodeid: str, pending: _PendingTest) -> None:
        name, metadata = self._items.get(nodeid, (nodeid.split("::")[-1], {}))

        quarantine: Dict[int, QuarantineInfo] = {}
        unstable = False
        if pending.attempts:
            final_passed = not pending.errors and not pending.skipped
            attempts = pending.attempts + [final_passed]
            quarantine = {idx: QuarantineInfo(passed=ok) for idx, ok in enumerate(attempts, start=1)}
            unstable = final_passed

        info = TestRunInfo(
            duration_ms=pending.duration_sec * 1000,
            errors=pending.errors,
            skipped=pending.skipped and not pending.errors,
            unstable=unstable,
            quarantine=quarantine,
        )

        if info.skipped:
            self.skipped += 1
        elif info.has_errors:
            self.failed += 1
        else:
            self.passed += 1

        self.reporter.report_test_done(name, info, metadata)

    def pytest_warning_recorded(self, warning_message: Any, when: str, nodeid: str, location: Any) -> None:
        self._warnings.append(str(warning_message.message))

    def pytest_sessionfinish(self, session: Any, exitstatus: int) -> None:
        if not self._started:
            return
        self.reporter.report_task_done(
            datetime.now(),
            self.passed,
            list(self._warnings),
            TaskResult(
                passed_count=self.passed,
                failed_count=self.failed,
                skipped_count=self.skipped,
            ),
        )
