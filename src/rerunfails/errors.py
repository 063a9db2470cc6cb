"""Exceptions raised while running and rerunning go test."""

from typing import Optional, Sequence


class RerunError(Exception):
    """Base class for every error that ends a rerun session."""

    pass


class ProcessSpawnError(RerunError):
    """Raised when the go test process could not be started."""

    pass


class ScanError(RerunError):
    """Raised when the test event stream could not be read."""

    pass


class ProcessExitError(RerunError):
    """A go test process that exited with a non-zero status.

    Exit status 1 means some tests failed and is not fatal on its own, so
    instances are usually recorded rather than raised.
    """

    def __init__(self, returncode: int, command: Optional[Sequence[str]] = None):
        self.returncode = returncode
        self.command = list(command or [])
        super().__init__(f"exit status {returncode}")


class RerunAbortedError(RerunError):
    """Raised when a completed run leaves the session in an unreliable state."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class TooManyFailuresError(RerunError):
    """Raised when the initial run failed more tests than reruns allow."""

    def __init__(self, failed: int, maximum: int):
        self.failed = failed
        self.maximum = maximum
        super().__init__(
            f"number of test failures ({failed}) exceeds maximum ({maximum}) "
            "set by --rerun-fails-max-failures"
        )


class CoverageError(RerunError):
    """Base class for coverage profile errors."""

    pass


class CoverageParseError(CoverageError):
    """Raised when a coverage profile is malformed."""

    pass


class CoverageIOError(CoverageError):
    """Raised when a coverage profile cannot be read or written."""

    pass
