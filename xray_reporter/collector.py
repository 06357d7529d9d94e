"""
Result Collector Module.

Accumulates per-test outcomes emitted by the host test runner into an
ordered list, tagging each with a 1-based sequence number in completion
order. The list lives in a RunContext owned by a single reporter instance,
so separate runs never share state.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from loguru import logger

TEST_KEY_FIELD = "externalTestKey"
PLAN_KEY_FIELD = "externalPlanKey"

# Jira issue key, e.g. "ABC-123"
EXTERNAL_KEY_PATTERN = re.compile(r"[A-Z]+-\d+")


def is_valid_key(value: Any) -> bool:
    """Check that a value is a string shaped like a Jira issue key."""
    return isinstance(value, str) and EXTERNAL_KEY_PATTERN.fullmatch(value) is not None


@dataclass(frozen=True)
class TestError:
    """
    A single structured failure attached to a test.

    Attributes:
        message: One-line description of the failure.
        details: Full traceback or assertion report, if available.
        phase: Runner phase the failure occurred in ("setup", "call", "teardown").
    """

    __test__ = False

    message: str
    details: str = ""
    phase: str = "call"


@dataclass(frozen=True)
class QuarantineInfo:
    """Outcome of one quarantine (re-run) attempt."""

    passed: bool


@dataclass
class TestRunInfo:
    """
    Execution facts reported by the host runner for one test.

    Attributes:
        duration_ms: Wall-clock duration in milliseconds.
        errors: Ordered failure records; empty iff the test passed.
        skipped: Whether the test was skipped.
        unstable: Whether the test passed only after quarantine attempts.
        warnings: Warning messages emitted during the test.
        quarantine: Attempt index -> attempt outcome.
    """

    __test__ = False

    duration_ms: float = 0.0
    errors: List[TestError] = field(default_factory=list)
    skipped: bool = False
    unstable: bool = False
    warnings: List[str] = field(default_factory=list)
    quarantine: Dict[int, QuarantineInfo] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


@dataclass(frozen=True)
class TestOutcome:
    """
    Result of one completed test, as recorded by the collector.

    Attributes:
        sequence: 1-based position in completion order.
        name: Display name of the test.
        info: Execution facts from the host runner.
        metadata: Author-supplied metadata (read-only view).
    """

    __test__ = False

    sequence: int
    name: str
    info: TestRunInfo
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str:
        """Xray status for this outcome: TODO, FAIL or PASS."""
        if self.info.skipped:
            return "TODO"
        if self.info.has_errors:
            return "FAIL"
        return "PASS"

    @property
    def test_key(self) -> Optional[str]:
        """The external Test issue key, or None when missing or malformed."""
        value = self.metadata.get(TEST_KEY_FIELD)
        return value if is_valid_key(value) else None

    @property
    def plan_key(self) -> Optional[str]:
        """The external Test Plan key, or None when missing or malformed."""
        value = self.metadata.get(PLAN_KEY_FIELD)
        return value if is_valid_key(value) else None


class ResultCollector:
    """
    Append-only, ordered store of TestOutcome records.

    Usage::

        collector = ResultCollector()
        outcome = collector.record("logs in", TestRunInfo(duration_ms=120.0),
                                   {"externalTestKey": "WEB-12"})
        assert outcome.sequence == 1
    """

    def __init__(self) -> None:
        self._outcomes: List[TestOutcome] = []
        self._lock = threading.Lock()

    def record(
        self,
        name: str,
        info: TestRunInfo,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> TestOutcome:
        """
        Assign the next sequence number and append the outcome.

        Args:
            name: Display name of the test (must be non-empty).
            info: Execution facts from the host runner.
            metadata: Author-supplied metadata, copied on record.

        Returns:
            The recorded TestOutcome.

        Raises:
            ValueError: If the name is empty.
        """
        if not name:
            raise ValueError("Test outcome name must be non-empty")

        frozen_meta = MappingProxyType(dict(metadata or {}))
        with self._lock:
            outcome = TestOutcome(
                sequence=len(self._outcomes) + 1,
                name=name,
                info=info,
                metadata=frozen_meta,
            )
            self._outcomes.append(outcome)

        logger.debug(f"Outcome recorded: ({outcome.sequence}) {name} -> {outcome.status}")
        return outcome

    @property
    def outcomes(self) -> Tuple[TestOutcome, ...]:
        """Snapshot of all recorded outcomes in recording order."""
        with self._lock:
            return tuple(self._outcomes)

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def __iter__(self) -> Iterator[TestOutcome]:
        return iter(self.outcomes)


@dataclass
class RunContext:
    """
    Per-run state shared across the lifecycle callbacks.

    Attributes:
        collector: Outcomes recorded during this run.
        start_time: Task start, set once by begin().
        end_time: Task end, set once by finish().
    """

    collector: ResultCollector = field(default_factory=ResultCollector)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def begin(self, time: datetime) -> None:
        if self.start_time is not None:
            raise RuntimeError("Run has already started")
        self.start_time = time

    def finish(self, time: datetime) -> None:
        if self.start_time is None:
            raise RuntimeError("Run finished before it started")
        if self.end_time is not None:
            raise RuntimeError("Run has already finished")
        self.end_time = time

    @property
    def duration(self) -> timedelta:
        if self.start_time is None or self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time
