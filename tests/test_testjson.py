"""Tests for go test event decoding and scanning."""

import io

import pytest

from rerunfails.errors import ScanError
from rerunfails.testing import event_line, package_stream
from rerunfails.testjson import (
    Action,
    EventDispatcher,
    EventHandler,
    Execution,
    ScanConfig,
    TestEvent,
    TestName,
    scan_test_output,
)


class RecordingHandler(EventHandler):
    """Handler that remembers everything it was given."""

    def __init__(self):
        self.events = []
        self.errors = []

    def event(self, event, execution):
        self.events.append(event)

    def err(self, text):
        self.errors.append(text)


def scan(stdout: bytes, stderr: bytes = b"", handler=None, execution=None, run_id=0):
    return scan_test_output(
        ScanConfig(
            stdout=io.BytesIO(stdout),
            stderr=io.BytesIO(stderr),
            handler=handler or EventDispatcher(),
            execution=execution,
            run_id=run_id,
        )
    )


class TestTestName:
    """Tests for TestName."""

    def test_root_test(self):
        """Test a root test name."""
        name = TestName("TestFoo")
        assert not name.is_subtest()
        assert name.parent() == ""
        assert name.name() == "TestFoo"

    def test_subtest(self):
        """Test a subtest name and its parent."""
        name = TestName("TestFoo/bar/baz")
        assert name.is_subtest()
        assert name.parent() == "TestFoo"
        assert name.segments() == ["TestFoo", "bar", "baz"]


class TestTestEvent:
    """Tests for TestEvent decoding."""

    def test_from_json(self):
        """Test decoding an event."""
        event = TestEvent.from_json(
            '{"Time":"2024-01-01T00:00:00Z","Action":"fail","Package":"pkg","Test":"TestA","Elapsed":0.5}'
        )
        assert event.action == Action.FAIL
        assert event.package == "pkg"
        assert event.test == "TestA"
        assert event.elapsed == 0.5
        assert not event.package_event()

    def test_package_event(self):
        """Test detecting package-level events."""
        event = TestEvent.from_json('{"Action":"pass","Package":"pkg"}')
        assert event.package_event()

    def test_rejects_non_event(self):
        """Test that non-event JSON is rejected."""
        with pytest.raises(ValueError):
            TestEvent.from_json('{"Package":"pkg"}')
        with pytest.raises(ValueError):
            TestEvent.from_json("ok  \tpkg\t0.01s")
        with pytest.raises(ValueError):
            TestEvent.from_json("[1, 2]")


class TestExecution:
    """Tests for Execution bookkeeping."""

    def test_records_results_per_package(self):
        """Test that results are grouped by package."""
        execution = scan(
            package_stream("pkg/b", {"TestB": "fail"})
            + package_stream("pkg/a", {"TestA": "pass", "TestC": "fail", "TestD": "skip"})
        )

        assert [tc.test for tc in execution.failed()] == ["TestC", "TestB"]
        assert [tc.test for tc in execution.passed()] == ["TestA"]
        assert [tc.test for tc in execution.skipped()] == ["TestD"]
        assert execution.total() == 4
        assert execution.package("pkg/a").action == Action.FAIL
        assert execution.package("missing") is None

    def test_last_failed_by_name(self):
        """Test finding the latest failed case of a test."""
        execution = scan(package_stream("pkg", {"TestA": "fail"}), run_id=0)
        scan(package_stream("pkg", {"TestA": "fail"}), execution=execution, run_id=1)

        tc = execution.package("pkg").last_failed_by_name("TestA")
        assert tc.run_id == 1
        assert len(execution.package("pkg").failed) == 2

    def test_detects_panic(self):
        """Test detecting panic output."""
        stream = (
            event_line("run", "pkg", "TestA")
            + event_line("output", "pkg", "TestA", output="panic: runtime error\n")
            + event_line("fail", "pkg", "TestA")
        )
        execution = scan(stream)
        assert execution.has_panic()

    def test_no_panic(self):
        """Test a package without a panic."""
        execution = scan(package_stream("pkg", {"TestA": "fail"}))
        assert not execution.has_panic()


class TestScanTestOutput:
    """Tests for scan_test_output."""

    def test_handler_receives_every_event(self):
        """Test that the handler sees every decoded event."""
        handler = RecordingHandler()
        scan(package_stream("pkg", {"TestA": "pass"}), handler=handler)

        actions = [e.action for e in handler.events]
        assert actions == [Action.START, Action.RUN, Action.OUTPUT, Action.PASS, Action.PASS]

    def test_non_json_stdout_goes_to_err(self):
        """Test that non-JSON stdout is passed to the handler's err."""
        handler = RecordingHandler()
        execution = scan(b"not json\n" + package_stream("pkg", {"TestA": "pass"}), handler=handler)

        assert handler.errors == ["not json"]
        assert execution.errors() == []

    def test_stderr_lines_are_errors(self):
        """Test that build errors on stderr are recorded."""
        handler = RecordingHandler()
        execution = scan(b"", stderr=b"# pkg\n./a.go:1:1: syntax error\n\n", handler=handler)

        assert execution.errors() == ["# pkg", "./a.go:1:1: syntax error"]
        assert handler.errors == execution.errors()

    def test_module_and_debug_output_is_not_an_error(self):
        """Test that go module and GODEBUG output on stderr is shown but not recorded."""
        handler = RecordingHandler()
        stderr = (
            b"go: downloading github.com/x/y v1.0.0\n"
            b"go: finding module for package github.com/x/z\n"
            b"HASH[build example.com/pkg]\n"
            b"testcache: example.com/pkg: test ID abc\n"
        )
        execution = scan(b"", stderr=stderr, handler=handler)

        assert execution.errors() == []
        assert len(handler.errors) == 4

    def test_run_id_is_recorded(self):
        """Test that events carry the run ID."""
        execution = scan(package_stream("pkg", {"TestA": "fail"}), run_id=3)
        assert execution.failed()[0].run_id == 3

    def test_read_failure_raises_scan_error(self):
        """Test that a failing stream raises ScanError."""
        class BrokenStream:
            def __iter__(self):
                raise OSError("pipe closed")

        stopped = []
        config = ScanConfig(
            stdout=BrokenStream(),
            stderr=io.BytesIO(b""),
            handler=EventDispatcher(),
            stop=lambda: stopped.append(True),
        )
        with pytest.raises(ScanError):
            scan_test_output(config)
        assert stopped == [True]


class TestEventDispatcher:
    """Tests for EventDispatcher."""

    def test_dispatches_in_order(self):
        """Test that handlers are called in order."""
        calls = []

        class Named(EventHandler):
            def __init__(self, name):
                self.name = name

            def event(self, event, execution):
                calls.append(self.name)

        dispatcher = EventDispatcher([Named("first")])
        dispatcher.add(Named("second"))
        dispatcher.event(TestEvent(action=Action.RUN, package="pkg"), Execution())

        assert calls == ["first", "second"]
