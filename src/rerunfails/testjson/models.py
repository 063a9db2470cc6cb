"""Data models for `go test -json` events and the executions they build."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class Action(str, Enum):
    """Action field of a test event."""

    RUN = "run"
    PAUSE = "pause"
    CONT = "cont"
    PASS = "pass"
    BENCH = "bench"
    FAIL = "fail"
    OUTPUT = "output"
    SKIP = "skip"
    START = "start"

    @property
    def is_terminal(self) -> bool:
        """True for the actions that end a test or package."""
        return self in (Action.PASS, Action.FAIL, Action.SKIP)


class TestName(str):
    """Name of a test, optionally followed by `/`-separated subtest segments."""

    __test__ = False

    SEPARATOR = "/"

    def is_subtest(self) -> bool:
        return self.SEPARATOR in self

    def name(self) -> str:
        return str(self)

    def parent(self) -> str:
        """Return the root test name, or an empty string for a root test."""
        if not self.is_subtest():
            return ""
        return self.split(self.SEPARATOR, 1)[0]

    def segments(self) -> list[str]:
        return self.split(self.SEPARATOR)


@dataclass
class TestEvent:
    """A single record from the `go test -json` stream."""

    __test__ = False

    action: Action
    package: str = ""
    test: TestName = TestName("")
    time: str = ""
    elapsed: float = 0.0
    output: str = ""
    run_id: int = 0

    def package_event(self) -> bool:
        """True when the event describes the package rather than a test."""
        return not self.test

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestEvent":
        """Create from a decoded JSON object."""
        try:
            action = Action(data["Action"])
        except (KeyError, ValueError) as e:
            raise ValueError(f"not a test event: {data!r}") from e

        return cls(
            action=action,
            package=data.get("Package") or "",
            test=TestName(data.get("Test") or ""),
            time=data.get("Time") or "",
            elapsed=float(data.get("Elapsed") or 0.0),
            output=data.get("Output") or "",
        )

    @classmethod
    def from_json(cls, line: str) -> "TestEvent":
        """Decode one line of output. Raises ValueError for non-event lines."""
        data = json.loads(line)
        if not isinstance(data, dict):
            raise ValueError(f"not a test event: {line!r}")
        return cls.from_dict(data)


@dataclass
class TestCase:
    """One execution of a test. Identity is `(package, test)`."""

    __test__ = False

    package: str
    test: TestName
    id: int = 0
    elapsed: float = 0.0
    run_id: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.package, str(self.test))

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "package": self.package,
            "test": str(self.test),
            "elapsed": self.elapsed,
            "run_id": self.run_id,
        }


def _is_panic(output: str) -> bool:
    return output.startswith("panic: ")


@dataclass
class Package:
    """Results of every test executed in one package, across all runs."""

    name: str
    passed: list[TestCase] = field(default_factory=list)
    failed: list[TestCase] = field(default_factory=list)
    skipped: list[TestCase] = field(default_factory=list)
    running: dict[str, TestCase] = field(default_factory=dict)
    action: Optional[Action] = None
    panicked: bool = False
    _next_id: int = 0

    @property
    def total(self) -> int:
        return len(self.passed) + len(self.failed) + len(self.skipped)

    def add_event(self, event: TestEvent) -> None:
        """Update the package state with an event."""
        if event.action == Action.OUTPUT:
            if _is_panic(event.output):
                self.panicked = True
            return

        if event.package_event():
            if event.action.is_terminal:
                self.action = event.action
            return

        if event.action == Action.RUN:
            self.running[event.test] = self._new_case(event)
            return

        if not event.action.is_terminal:
            return

        tc = self.running.pop(event.test, None)
        if tc is None:
            tc = self._new_case(event)
        tc.elapsed = event.elapsed

        if event.action == Action.PASS:
            self.passed.append(tc)
        elif event.action == Action.FAIL:
            self.failed.append(tc)
        else:
            self.skipped.append(tc)

    def last_failed_by_name(self, name: str) -> TestCase:
        """Return the most recent failed execution of the named test."""
        for tc in reversed(self.failed):
            if tc.test == name:
                return tc
        return TestCase(package=self.name, test=TestName(name))

    def _new_case(self, event: TestEvent) -> TestCase:
        self._next_id += 1
        return TestCase(
            package=self.name,
            test=event.test,
            id=self._next_id,
            run_id=event.run_id,
        )


class Execution:
    """Aggregate state of a test run made of one or more go test processes."""

    def __init__(self) -> None:
        self.packages: dict[str, Package] = {}
        self._errors: list[str] = []

    def add(self, event: TestEvent) -> None:
        """Record an event in the package it belongs to."""
        pkg = self.packages.get(event.package)
        if pkg is None:
            pkg = Package(name=event.package)
            self.packages[event.package] = pkg
        pkg.add_event(event)

    def add_error(self, text: str) -> None:
        self._errors.append(text)

    def package(self, name: str) -> Optional[Package]:
        return self.packages.get(name)

    def package_names(self) -> list[str]:
        return sorted(self.packages)

    def errors(self) -> list[str]:
        return list(self._errors)

    def has_panic(self) -> bool:
        """True when any package printed output that looks like a panic."""
        return any(pkg.panicked for pkg in self.packages.values())

    def failed(self) -> list[TestCase]:
        """Return every failed test case, ordered by package name."""
        return [tc for name in self.package_names() for tc in self.packages[name].failed]

    def passed(self) -> list[TestCase]:
        return [tc for name in self.package_names() for tc in self.packages[name].passed]

    def skipped(self) -> list[TestCase]:
        return [tc for name in self.package_names() for tc in self.packages[name].skipped]

    def total(self) -> int:
        return sum(pkg.total for pkg in self.packages.values())
