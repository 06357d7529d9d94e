"""
Result Reporter Module.

Turns partitioned outcomes into Xray JSON execution imports and sends
them one group at a time. A rejected group is recorded and the remaining
groups are still attempted.

Xray JSON format reference:
https://docs.getxray.app/display/XRAY/Import+Execution+Results+-+REST
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from xray_reporter.collector import TestOutcome
from xray_reporter.jira_client.xray_client import ExecutionReceipt, SubmitError, XrayClient

DESCRIPTION = "This test execution was automatically generated."
UNASSOCIATED_SUBJECT = "all unassociated tests"


def format_iso(value: datetime) -> str:
    """ISO-8601 timestamp with the local UTC offset, second precision."""
    return value.astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class TestRow:
    """One test entry of an execution import."""

    __test__ = False

    test_key: str
    status: str

    # Xray-compatible status values produced by the reporter
    VALID_STATUSES = ("PASS", "FAIL", "TODO")

    def __post_init__(self) -> None:
        if self.status not in self.VALID_STATUSES:
            raise ValueError(
                f"Invalid status '{self.status}' for {self.test_key}. "
                f"Valid: {self.VALID_STATUSES}"
            )


@dataclass(frozen=True)
class SubmissionRecord:
    """
    One Test Execution import, covering a single Test Plan group.

    Attributes:
        start: Run start, shared by every group.
        end: Run end, shared by every group.
        plan_key: Test Plan key, or None for unassociated tests.
        rows: Test key / status pairs in collection order.
    """

    start: datetime
    end: datetime
    plan_key: Optional[str] = None
    rows: Sequence[TestRow] = field(default_factory=tuple)

    @property
    def subject(self) -> str:
        return f"test plan {self.plan_key}" if self.plan_key else UNASSOCIATED_SUBJECT

    @property
    def summary(self) -> str:
        return f"Execution of {self.subject}"

    @property
    def description(self) -> str:
        return DESCRIPTION

    def to_xray_json(self) -> Dict[str, Any]:
        """
        Convert the record to the Xray JSON import body.

        Returns:
            Dictionary with `info` and `tests` sections.
        """
        start = format_iso(self.start)
        finish = format_iso(self.end)

        info: Dict[str, Any] = {
            "summary": self.summary,
            "description": self.description,
            "startDate": start,
            "finishDate": finish,
        }
        if self.plan_key:
            info["testPlanKey"] = self.plan_key

        return {
            "info": info,
            "tests": [
                {
                    "start": start,
                    "finish": finish,
                    "testKey": row.test_key,
                    "status": row.status,
                }
                for row in self.rows
            ],
        }


def build_submission(
    start: datetime,
    end: datetime,
    plan_key: Optional[str],
    outcomes: Sequence[TestOutcome],
) -> SubmissionRecord:
    """Build the import record for one partition."""
    rows = []
    for outcome in outcomes:
        if outcome.test_key is None:
            raise ValueError(f"Outcome ({outcome.sequence}) {outcome.name} has no Test key")
        rows.append(TestRow(test_key=outcome.test_key, status=outcome.status))
    return SubmissionRecord(start=start, end=end, plan_key=plan_key, rows=tuple(rows))


@dataclass(frozen=True)
class GroupSubmission:
    """
    Outcome of importing one group.

    Exactly one of `receipt` and `error` is set.
    """

    plan_key: Optional[str]
    record: SubmissionRecord
    receipt: Optional[ExecutionReceipt] = None
    error: Optional[SubmitError] = None

    @property
    def ok(self) -> bool:
        return self.receipt is not None


class ExecutionReporter:
    """
    Sends one execution import per Test Plan group, sequentially.

    Usage::

        reporter = ExecutionReporter(client)
        for submission in reporter.report(start, end, partition(outcomes)):
            print(submission.plan_key, submission.ok)
    """

    def __init__(self, client: XrayClient) -> None:
        self._client = client

    def report(
        self,
        start: datetime,
        end: datetime,
        groups: Mapping[Optional[str], Sequence[TestOutcome]],
        on_submission: Optional[Callable[[GroupSubmission], None]] = None,
    ) -> List[GroupSubmission]:
        """
        Import every group, in the mapping's iteration order.

        Args:
            start: Run start time.
            end: Run end time.
            groups: Plan key -> outcomes, as returned by `partition`.
            on_submission: Called after each group with its result.

        Returns:
            One GroupSubmission per group.
        """
        submissions: List[GroupSubmission] = []

        for plan_key, outcomes in groups.items():
            record = build_submission(start, end, plan_key, outcomes)
            logger.info(f"Submitting {len(record.rows)} result(s) for {record.subject}")

            try:
                receipt = self._client.submit_execution(record)
            except SubmitError as e:
                logger.warning(f"Submission for {record.subject} failed: {e}")
                submission = GroupSubmission(plan_key=plan_key, record=record, error=e)
            else:
                submission = GroupSubmission(plan_key=plan_key, record=record, receipt=receipt)

            submissions.append(submission)
            if on_submission is not None:
                on_submission(submission)

        succeeded = sum(1 for s in submissions if s.ok)
        logger.info(f"Execution import finished: {succeeded}/{len(submissions)} group(s) created")
        return submissions
