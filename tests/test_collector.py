"""
Unit Tests for the Result Collector Module.

Covers:
- Sequence numbering and ordering.
- Status derivation and external key validation.
- RunContext timestamp handling.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from xray_reporter.collector import (
    ResultCollector,
    RunContext,
    TestError,
    TestRunInfo,
    is_valid_key,
)


class TestResultCollector:
    """Tests for the ResultCollector class."""

    def test_sequence_starts_at_one(self) -> None:
        collector = ResultCollector()
        outcome = collector.record("first", TestRunInfo())
        assert outcome.sequence == 1

    def test_sequences_follow_recording_order(self) -> None:
        collector = ResultCollector()
        names = [f"test {n}" for n in range(7)]
        for name in names:
            collector.record(name, TestRunInfo())

        assert [o.sequence for o in collector.outcomes] == list(range(1, 8))
        assert [o.name for o in collector.outcomes] == names
        assert len(collector) == 7

    def test_concurrent_records_get_unique_sequences(self) -> None:
        """Appends from several threads still yield exactly 1..N."""
        collector = ResultCollector()

        def worker(prefix: str) -> None:
            for n in range(50):
                collector.record(f"{prefix}-{n}", TestRunInfo())

        threads = [threading.Thread(target=worker, args=(str(i),)) for i in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(o.sequence for o in collector.outcomes) == list(range(1, 201))

    def test_len_reads_under_lock(self) -> None:
        collector = ResultCollector()
        collector.record("a", TestRunInfo())
        seen = []

        with collector._lock:
            reader = threading.Thread(target=lambda: seen.append(len(collector)))
            reader.start()
            reader.join(timeout=0.1)
            assert reader.is_alive()

        reader.join()
        assert seen == [1]

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError):
            ResultCollector().record("", TestRunInfo())

    def test_outcomes_is_snapshot(self) -> None:
        collector = ResultCollector()
        collector.record("a", TestRunInfo())
        snapshot = collector.outcomes
        collector.record("b", TestRunInfo())

        assert len(snapshot) == 1
        assert len(collector.outcomes) == 2

    def test_metadata_copied_and_read_only(self) -> None:
        metadata = {"externalTestKey": "ABC-1"}
        outcome = ResultCollector().record("a", TestRunInfo(), metadata)
        metadata["externalTestKey"] = "ABC-2"

        assert outcome.metadata["externalTestKey"] == "ABC-1"
        with pytest.raises(TypeError):
            outcome.metadata["externalTestKey"] = "ABC-3"  # type: ignore[index]


class TestOutcomeStatus:
    """Tests for status derivation on TestOutcome."""

    def test_passed(self) -> None:
        outcome = ResultCollector().record("a", TestRunInfo())
        assert outcome.status == "PASS"

    def test_failed(self) -> None:
        info = TestRunInfo(errors=[TestError(message="boom")])
        assert ResultCollector().record("a", info).status == "FAIL"

    def test_skipped_wins_over_errors(self) -> None:
        info = TestRunInfo(errors=[TestError(message="boom")], skipped=True)
        assert ResultCollector().record("a", info).status == "TODO"


class TestExternalKeys:
    """Tests for external key validation."""

    @pytest.mark.parametrize("value", ["ABC-123", "X-1", "WEB-00042"])
    def test_valid_keys(self, value: str) -> None:
        assert is_valid_key(value)

    @pytest.mark.parametrize(
        "value", ["abc-123", "ABC-1\n", "ABC123", "ABC-", "-123", "ABC-12a", " ABC-1", "AB1-2", "", None, 123]
    )
    def test_invalid_keys(self, value: object) -> None:
        assert not is_valid_key(value)

    def test_lowercase_key_reads_as_absent(self) -> None:
        outcome = ResultCollector().record(
            "a", TestRunInfo(), {"externalTestKey": "abc-123", "externalPlanKey": "PLAN-1"}
        )
        assert outcome.test_key is None
        assert outcome.plan_key == "PLAN-1"


class TestRunContext:
    """Tests for RunContext timestamps."""

    def test_duration(self) -> None:
        context = RunContext()
        start = datetime(2024, 1, 1, 12, 0, 0)
        context.begin(start)
        context.finish(start + timedelta(seconds=42))
        assert context.duration == timedelta(seconds=42)

    def test_begin_twice_rejected(self) -> None:
        context = RunContext()
        context.begin(datetime.now())
        with pytest.raises(RuntimeError):
            context.begin(datetime.now())

    def test_finish_before_begin_rejected(self) -> None:
        with pytest.raises(RuntimeError):
            RunContext().finish(datetime.now())

    def test_contexts_do_not_share_outcomes(self) -> None:
        first, second = RunContext(), RunContext()
        first.collector.record("a", TestRunInfo())
        assert len(second.collector) == 0
