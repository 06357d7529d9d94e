"""
Lifecycle Reporter Module.

Defines the four-callback contract a host test runner drives, and the
console reporter that renders the run and syncs results to Jira Xray
when the run finishes.

Callback order per run:

    report_task_start -> N x (report_fixture_start?, report_test_done)
                      -> report_task_done
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional, Protocol, Sequence

from loguru import logger

from xray_reporter.collector import RunContext, TestOutcome, TestRunInfo
from xray_reporter.config.loader import ConfigLoader, ConfigurationError, TrackerSettings
from xray_reporter.jira_client.sync import SyncState, TrackerSync
from xray_reporter.jira_client.xray_client import XrayClient
from xray_reporter.reporting import console as view
from xray_reporter.reporting.console import ConsoleWriter


@dataclass(frozen=True)
class TaskResult:
    """Final counts reported by the host runner."""

    passed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0


class LifecycleReporter(Protocol):
    """Anything that can receive the host runner's lifecycle callbacks."""

    def report_task_start(
        self, start_time: datetime, user_agents: Sequence[str], test_count: int
    ) -> None: ...

    def report_fixture_start(self, name: str, path: str, metadata: Mapping[str, Any]) -> None: ...

    def report_test_done(self, name: str, info: TestRunInfo, metadata: Mapping[str, Any]) -> None: ...

    def report_task_done(
        self,
        end_time: datetime,
        passed: int,
        warnings: Sequence[str],
        result: TaskResult,
    ) -> None: ...


class XrayConsoleReporter:
    """
    Console reporter with Jira Xray execution import.

    Renders each lifecycle step to the console and, once the run is done,
    authenticates against Jira and imports one Test Execution per Test
    Plan. Tracker problems are printed and logged; they never change the
    outcome of the run.

    Usage::

        reporter = XrayConsoleReporter(ConsoleWriter(sys.stdout))
        reporter.report_task_start(datetime.now(), ["Python 3.12"], 3)
        ...
        reporter.report_task_done(datetime.now(), 3, [], TaskResult(3, 0, 0))
    """

    def __init__(
        self,
        console: ConsoleWriter,
        settings: Optional[TrackerSettings] = None,
        client: Optional[XrayClient] = None,
        config_path: str | Path | None = None,
    ) -> None:
        """
        Args:
            console: Destination for all user-visible output.
            settings: Tracker settings; loaded from `config_path` and the
                environment if omitted.
            client: Pre-built client; built from `settings` if omitted.
            config_path: Optional tracker configuration file.
        """
        self.console = console
        self.context = RunContext()
        self.config_error: Optional[str] = None
        if client is None:
            if settings is None:
                settings = self._load_settings(config_path)
            client = XrayClient(settings)
        self.client = client
        self.sync_state = SyncState.NOT_STARTED

    def _load_settings(self, config_path: str | Path | None) -> TrackerSettings:
        try:
            return ConfigLoader().load_tracker_settings(config_path)
        except (ConfigurationError, FileNotFoundError) as e:
            logger.error(f"Tracker configuration unusable: {e}")
            self.config_error = str(e)
            return TrackerSettings()

    @property
    def outcomes(self) -> Sequence[TestOutcome]:
        return self.context.collector.outcomes

    def report_task_start(
        self, start_time: datetime, user_agents: Sequence[str], test_count: int
    ) -> None:
        self.context.begin(start_time)
        logger.info(f"Run started with {test_count} test(s)")

        view.log_header(self.console, "Configuration")
        view.log_current_time(self.console)
        view.log_environment(self.console, user_agents)

        view.log_header(self.console, "Test Execution")

    def report_fixture_start(self, name: str, path: str, metadata: Mapping[str, Any]) -> None:
        logger.debug(f"Fixture started: {name} ({path})")
        view.log_fixture(self.console, name)

    def report_test_done(self, name: str, info: TestRunInfo, metadata: Mapping[str, Any]) -> None:
        outcome = self.context.collector.record(name, info, metadata)
        view.log_test_run(self.console, outcome.sequence, name, info, outcome.metadata)

        if info.has_errors:
            view.log_error(self.console, info.errors)

    def report_task_done(
        self,
        end_time: datetime,
        passed: int,
        warnings: Sequence[str],
        result: TaskResult,
    ) -> None:
        self.context.finish(end_time)
        logger.info(
            f"Run finished: {result.passed_count} passed, {result.failed_count} failed, "
            f"{result.skipped_count} skipped"
        )

        if warnings:
            view.log_header(self.console, "Warnings")
            for warning in warnings:
                view.log_jira(self.console, f"- {warning}")

        view.log_header(self.console, "Results")
        view.log_results(
            self.console,
            self.context.start_time,
            end_time,
            result.passed_count,
            result.failed_count,
            result.skipped_count,
        )

        view.log_header(self.console, "Jira Reporting")
        self.sync_state = self._sync_tracker()

        view.log_header(self.console, "End")
        self.console.newline()

    def _sync_tracker(self) -> SyncState:
        if self.config_error:
            view.log_jira_error(self.console, self.config_error)
        sync = TrackerSync(self.client, self.console)
        try:
            return sync.run(self.context)
        finally:
            self.client.close()
