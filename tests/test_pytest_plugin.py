"""
Tests for the Pytest Plugin bridge.

The bridge is fed hand-built item and report objects shaped like pytest's,
and the lifecycle callbacks it makes are checked on a mocked reporter.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, List, Optional
from unittest.mock import MagicMock

import pytest

from xray_reporter.collector import TestRunInfo
from xray_reporter.pytest_plugin import XrayPytestBridge, environment_description, xray_metadata
from xray_reporter.reporter import TaskResult, XrayConsoleReporter


def _item(nodeid: str, marker: Optional[Any] = None) -> SimpleNamespace:
    return SimpleNamespace(
        nodeid=nodeid,
        name=nodeid.split("::")[-1],
        get_closest_marker=lambda name: marker if name == "xray" else None,
    )


def _report(nodeid: str, when: str, outcome: str = "passed", longrepr: Any = None) -> SimpleNamespace:
    return SimpleNamespace(
        nodeid=nodeid,
        when=when,
        outcome=outcome,
        duration=0.5,
        passed=outcome == "passed",
        failed=outcome == "failed",
        skipped=outcome == "skipped",
        longrepr=longrepr,
        longreprtext=str(longrepr) if longrepr else "",
    )


def _run_phases(bridge: XrayPytestBridge, nodeid: str, call: str = "passed", setup: str = "passed",
                teardown: str = "passed", longrepr: Any = None) -> None:
    bridge.pytest_runtest_logstart(nodeid, (nodeid.split("::")[0], 1, nodeid))
    bridge.pytest_runtest_logreport(_report(nodeid, "setup", setup, longrepr if setup == "failed" else None))
    if setup == "passed":
        bridge.pytest_runtest_logreport(_report(nodeid, "call", call, longrepr if call == "failed" else None))
    bridge.pytest_runtest_logreport(
        _report(nodeid, "teardown", teardown, longrepr if teardown == "failed" else None)
    )


def _done_calls(reporter: MagicMock) -> List[Any]:
    return [c.args for c in reporter.report_test_done.call_args_list]


@pytest.fixture
def reporter() -> MagicMock:
    return MagicMock(spec=XrayConsoleReporter)


@pytest.fixture
def bridge(reporter: MagicMock) -> XrayPytestBridge:
    return XrayPytestBridge(reporter)


class TestXrayMetadata:
    """Tests for marker -> metadata translation."""

    def test_key_and_plan(self) -> None:
        item = _item("t.py::a", pytest.mark.xray("WEB-1", plan="WEB-9").mark)
        assert xray_metadata(item) == {"externalTestKey": "WEB-1", "externalPlanKey": "WEB-9"}

    def test_keyword_key(self) -> None:
        item = _item("t.py::a", pytest.mark.xray(test_key="WEB-2").mark)
        assert xray_metadata(item) == {"externalTestKey": "WEB-2"}

    def test_no_marker(self) -> None:
        assert xray_metadata(_item("t.py::a")) == {}


class TestXrayPytestBridge:
    """Tests for the XrayPytestBridge hook translation."""

    def test_task_start_counts_items(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        items = [_item("a.py::one"), _item("a.py::two")]
        bridge.pytest_collection_modifyitems(items)
        bridge.pytest_collection_finish(SimpleNamespace(items=items))

        args = reporter.report_task_start.call_args.args
        assert args[1] == environment_description()
        assert args[2] == 2

    def test_fixture_start_once_per_module(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        for nodeid in ("a.py::one", "a.py::two", "b.py::three"):
            _run_phases(bridge, nodeid)

        fixtures = [c.args[0] for c in reporter.report_fixture_start.call_args_list]
        assert fixtures == ["a.py", "b.py"]

    def test_passed_test(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        bridge.pytest_collection_modifyitems([_item("a.py::one", pytest.mark.xray("WEB-1").mark)])
        _run_phases(bridge, "a.py::one")

        name, info, metadata = _done_calls(reporter)[0]
        assert name == "one"
        assert isinstance(info, TestRunInfo)
        assert info.duration_ms == pytest.approx(1500.0)
        assert not info.errors and not info.skipped
        assert metadata == {"externalTestKey": "WEB-1"}

    def test_failed_call(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        longrepr = "def test():\n>   assert 1 == 2\nE   assert 1 == 2"
        _run_phases(bridge, "a.py::one", call="failed", longrepr=longrepr)

        info = _done_calls(reporter)[0][1]
        assert len(info.errors) == 1
        assert info.errors[0].message == "E   assert 1 == 2"
        assert info.errors[0].phase == "call"
        assert bridge.failed == 1

    def test_skipped_in_setup(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        _run_phases(bridge, "a.py::one", setup="skipped")

        info = _done_calls(reporter)[0][1]
        assert info.skipped
        assert bridge.skipped == 1

    def test_teardown_error_fails_test(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        _run_phases(bridge, "a.py::one", teardown="failed", longrepr="cleanup exploded")

        info = _done_calls(reporter)[0][1]
        assert info.errors[0].phase == "teardown"
        assert info.errors[0].message == "cleanup exploded"

    def test_rerun_marks_unstable(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        nodeid = "a.py::flaky"
        bridge.pytest_runtest_logstart(nodeid, ("a.py", 1, nodeid))
        bridge.pytest_runtest_logreport(_report(nodeid, "setup"))
        bridge.pytest_runtest_logreport(_report(nodeid, "call", "rerun"))
        _run_phases(bridge, nodeid)

        info = _done_calls(reporter)[0][1]
        assert info.unstable
        assert [q.passed for _, q in sorted(info.quarantine.items())] == [False, True]
        assert not info.errors
        assert bridge.passed == 1

    def test_task_done_counts(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        bridge.pytest_collection_finish(SimpleNamespace(items=[]))
        _run_phases(bridge, "a.py::one")
        _run_phases(bridge, "a.py::two", call="failed", longrepr="boom")
        _run_phases(bridge, "a.py::three", call="skipped")
        bridge.pytest_warning_recorded(SimpleNamespace(message=UserWarning("careful")), "runtest", "", None)
        bridge.pytest_sessionfinish(SimpleNamespace(), 1)

        args = reporter.report_task_done.call_args.args
        assert args[1] == 1
        assert args[2] == ["careful"]
        assert args[3] == TaskResult(passed_count=1, failed_count=1, skipped_count=1)

    def test_no_task_done_without_collection(self, bridge: XrayPytestBridge, reporter: MagicMock) -> None:
        bridge.pytest_sessionfinish(SimpleNamespace(), 2)
        reporter.report_task_done.assert_not_called()
