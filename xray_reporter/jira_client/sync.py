"""
Tracker Sync Module.

Runs the end-of-run Xray reporting pass:

    NOT_STARTED -> AUTHENTICATING -> AUTH_FAILED (terminal)
                                  -> AUTHENTICATED -> PARTITIONING
                                       -> PARTITION_FAILED (terminal)
                                       -> SUBMITTING -> DONE (terminal)

Every failure is written to the console as a diagnostic line and ends or
narrows the pass; none of them is raised to the test runner.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, List

from loguru import logger

from xray_reporter.collector import RunContext
from xray_reporter.jira_client.partitioner import PartitionError, partition
from xray_reporter.jira_client.result_reporter import ExecutionReporter, GroupSubmission
from xray_reporter.jira_client.xray_client import XrayClient, XrayClientError
from xray_reporter.reporting.console import ConsoleWriter, log_jira, log_jira_error


class SyncState(Enum):
    """States of the reporting pass."""

    NOT_STARTED = "not_started"
    AUTHENTICATING = "authenticating"
    AUTH_FAILED = "auth_failed"
    AUTHENTICATED = "authenticated"
    PARTITIONING = "partitioning"
    PARTITION_FAILED = "partition_failed"
    SUBMITTING = "submitting"
    DONE = "done"


TRANSITIONS: Dict[SyncState, FrozenSet[SyncState]] = {
    SyncState.NOT_STARTED: frozenset({SyncState.AUTHENTICATING}),
    SyncState.AUTHENTICATING: frozenset({SyncState.AUTH_FAILED, SyncState.AUTHENTICATED}),
    SyncState.AUTHENTICATED: frozenset({SyncState.PARTITIONING}),
    SyncState.PARTITIONING: frozenset({SyncState.PARTITION_FAILED, SyncState.SUBMITTING}),
    SyncState.SUBMITTING: frozenset({SyncState.DONE}),
    SyncState.AUTH_FAILED: frozenset(),
    SyncState.PARTITION_FAILED: frozenset(),
    SyncState.DONE: frozenset(),
}

NO_TICKETS_MESSAGE = "No test execution tickets will be made"


class TrackerSync:
    """
    One-shot driver for the Xray reporting pass of a run.

    Usage::

        sync = TrackerSync(client, console)
        final_state = sync.run(context)
    """

    def __init__(self, client: XrayClient, console: ConsoleWriter) -> None:
        self._client = client
        self._console = console
        self._state = SyncState.NOT_STARTED
        self.submissions: List[GroupSubmission] = []

    @property
    def state(self) -> SyncState:
        return self._state

    def _transition(self, new_state: SyncState) -> None:
        if new_state not in TRANSITIONS[self._state]:
            raise RuntimeError(
                f"Illegal tracker sync transition: {self._state.value} -> {new_state.value}"
            )
        logger.debug(f"Tracker sync: {self._state.value} -> {new_state.value}")
        self._state = new_state

    def run(self, context: RunContext) -> SyncState:
        """
        Authenticate, partition the run's outcomes and submit each group.

        Args:
            context: The finished run. Both timestamps must be set.

        Returns:
            The terminal state reached.
        """
        if context.start_time is None or context.end_time is None:
            raise RuntimeError("Tracker sync requires a finished run")

        console = self._console

        self._transition(SyncState.AUTHENTICATING)
        try:
            identity = self._client.authenticate()
        except XrayClientError as e:
            self._transition(SyncState.AUTH_FAILED)
            log_jira_error(console, str(e))
            log_jira_error(console, NO_TICKETS_MESSAGE)
            return self._state

        self._transition(SyncState.AUTHENTICATED)
        log_jira(
            console,
            "\nAuthenticated with the user:\n  "
            f"{console.style(identity.display_name, 'cyan', 'bold')} "
            f"({console.style(identity.name, 'cyan', 'bold')})",
        )

        self._transition(SyncState.PARTITIONING)
        try:
            groups = partition(context.collector.outcomes)
        except PartitionError as e:
            self._transition(SyncState.PARTITION_FAILED)
            log_jira_error(console, str(e))
            log_jira_error(console, NO_TICKETS_MESSAGE)
            return self._state

        self._transition(SyncState.SUBMITTING)
        if not groups:
            log_jira(console, "\nNo tests with a Test Issue key to report")

        reporter = ExecutionReporter(self._client)
        self.submissions = reporter.report(
            context.start_time,
            context.end_time,
            groups,
            on_submission=self._log_submission,
        )

        self._transition(SyncState.DONE)
        return self._state

    def _log_submission(self, submission: GroupSubmission) -> None:
        console = self._console
        subject = submission.record.subject
        console.newline()

        if submission.error is not None:
            log_jira_error(
                console,
                f"Unable to import execution results for {subject}. {submission.error}",
            )
            body = getattr(submission.error, "body", "")
            if body:
                log_jira(console, f"{console.style('Request response:', 'bold')} {body}")
            return

        receipt = submission.receipt
        log_jira(
            console,
            f"Successfully created execution {console.style(receipt.key, 'bold')}\n"
            f"to contain all tests for {subject}",
        )
        log_jira(
            console,
            "\n".join(
                " - " + console.style(f"[{row.test_key}]", "blue")
                for row in submission.record.rows
            ),
        )

        if receipt.info_messages:
            log_jira_error(console, "Errors from creating execution ticket:")
            for message in receipt.info_messages:
                log_jira_error(console, f" - {message}")
