"""Tests for the failure recorder."""

import io

from rerunfails.core.recorder import FailureRecorder
from rerunfails.testing import event_line, package_stream
from rerunfails.testjson import EventDispatcher, EventHandler, ScanConfig, scan_test_output


class CountingHandler(EventHandler):
    def __init__(self):
        self.count = 0

    def event(self, event, execution):
        self.count += 1


def scan(stdout: bytes, handler, execution=None, run_id=0):
    return scan_test_output(
        ScanConfig(
            stdout=io.BytesIO(stdout),
            stderr=io.BytesIO(b""),
            handler=handler,
            execution=execution,
            run_id=run_id,
        )
    )


class TestFailureRecorder:
    """Tests for FailureRecorder."""

    def test_records_failed_tests(self):
        """Test recording failed test events."""
        rec = FailureRecorder()
        scan(package_stream("pkg", {"TestA": "pass", "TestB": "fail", "TestC": "fail"}), rec)

        assert rec.count() == 2
        assert [tc.test for tc in rec.failures] == ["TestB", "TestC"]

    def test_ignores_package_failures(self):
        """Test that package-level failures are not recorded."""
        rec = FailureRecorder()
        scan(event_line("fail", "pkg"), rec)
        assert rec.count() == 0

    def test_records_last_failed_case(self):
        """Test that the latest failed case of a test is recorded."""
        rec = FailureRecorder()
        execution = scan(package_stream("pkg", {"TestA": "fail"}), EventDispatcher())
        scan(package_stream("pkg", {"TestA": "fail"}), rec, execution=execution, run_id=2)

        assert rec.count() == 1
        assert rec.failures[0].run_id == 2

    def test_from_execution(self):
        """Test building a recorder from an execution."""
        execution = scan(package_stream("pkg", {"TestA": "fail", "TestB": "pass"}), EventDispatcher())
        rec = FailureRecorder.from_execution(execution)

        assert [tc.test for tc in rec.failures] == ["TestA"]
        assert rec.last_error is None

    def test_downstream_handler_sees_every_event(self):
        """Test that a dispatcher passes every event on to the next handler."""
        rec = FailureRecorder()
        downstream = CountingHandler()
        scan(package_stream("pkg", {"TestA": "fail"}), EventDispatcher([rec, downstream]))

        assert rec.count() == 1
        assert downstream.count == 5
