"""Test doubles for go test processes.

These replay recorded `go test -json` output so the rerun logic can be
exercised without a Go toolchain.
"""

import io
import json
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from rerunfails.core.command import flag_name
from rerunfails.errors import ProcessExitError


def event_line(action: str, package: str, test: str = "", output: str = "", elapsed: float = 0.0) -> bytes:
    """Encode a single go test event as one line of JSON."""
    data: dict = {"Time": "2024-01-01T00:00:00Z", "Action": action, "Package": package}
    if test:
        data["Test"] = test
    if output:
        data["Output"] = output
    if action in ("pass", "fail", "skip"):
        data["Elapsed"] = elapsed
    return (json.dumps(data) + "\n").encode("utf-8")


def package_stream(package: str, results: dict[str, str]) -> bytes:
    """Build the event stream of a package run.

    Args:
        package: Import path of the package
        results: Test name to final action ("pass", "fail" or "skip"), in run order
    """
    lines = [event_line("start", package)]
    for test, action in results.items():
        lines.append(event_line("run", package, test))
        lines.append(event_line("output", package, test, output=f"=== RUN   {test}\n"))
        lines.append(event_line(action, package, test, elapsed=0.01))
    package_action = "fail" if "fail" in results.values() else "pass"
    lines.append(event_line(package_action, package, elapsed=0.02))
    return b"".join(lines)


class FakeGoTestProcess:
    """A finished go test process with canned output."""

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        returncode: int = 0,
        coverage: Optional[str] = None,
    ):
        self.stdout = io.BytesIO(stdout)
        self.stderr = io.BytesIO(stderr)
        self.returncode = returncode
        self.coverage = coverage
        self.command: list[str] = []

    def wait(self) -> Optional[ProcessExitError]:
        if self.returncode == 0:
            return None
        return ProcessExitError(self.returncode, self.command)


Response = Union[FakeGoTestProcess, Callable[[list[str]], FakeGoTestProcess]]


class FakeGoTestStarter:
    """Stands in for start_go_test, returning scripted processes in order.

    When a process has coverage content and the command requests a
    coverage profile, the content is written to that path, relative to the
    directory the process was started in, as go test would.
    """

    def __init__(self, responses: Sequence[Response]):
        self.responses = list(responses)
        self.calls: list[list[str]] = []

    def __call__(self, scope, directory, args, environment=None) -> FakeGoTestProcess:
        args = list(args)
        self.calls.append(args)
        if not self.responses:
            raise AssertionError(f"unexpected go test invocation: {args}")

        response = self.responses.pop(0)
        proc = response(args) if callable(response) else response
        proc.command = args
        if proc.coverage is not None:
            path = coverprofile_arg(args)
            if path:
                Path(directory or ".", path).write_text(proc.coverage, encoding="utf-8")
        return proc


def coverprofile_arg(args: Sequence[str]) -> Optional[str]:
    for arg in args:
        if arg.startswith("-") and "=" in arg and flag_name(arg) == "coverprofile":
            return arg.split("=", 1)[1]
    return None
