"""go test process execution.

This module starts `go test` processes with piped output so the caller can
scan their event stream while they run, and provides the cancellation scope
shared by every process of a rerun session.
"""

import logging
import os
import subprocess
import threading
import time
from pathlib import Path
from typing import Optional, Protocol, Sequence

from rerunfails.errors import ProcessExitError, ProcessSpawnError

log = logging.getLogger(__name__)


class CancelScope:
    """Cancellation shared by all processes started during one session."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._processes: list[subprocess.Popen] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Cancel the scope and terminate any process still running."""
        self._cancelled.set()
        with self._lock:
            processes = list(self._processes)
        for proc in processes:
            if proc.poll() is None:
                log.debug("Terminating go test process %d", proc.pid)
                proc.terminate()

    def track(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._processes.append(proc)

    def untrack(self, proc: subprocess.Popen) -> None:
        with self._lock:
            if proc in self._processes:
                self._processes.remove(proc)


class GoTestProcess:
    """A running go test process with piped stdout and stderr."""

    def __init__(self, proc: subprocess.Popen, scope: CancelScope, command: Sequence[str]):
        self.proc = proc
        self.scope = scope
        self.command = list(command)
        self.stdout = proc.stdout
        self.stderr = proc.stderr
        self.duration_ms = 0
        self._start_time = time.time()

    def wait(self) -> Optional[ProcessExitError]:
        """Wait for the process to exit.

        Returns:
            None if the process exited with status 0, otherwise a
            ProcessExitError carrying the exit status
        """
        try:
            returncode = self.proc.wait()
        finally:
            self.scope.untrack(self.proc)
            self.duration_ms = int((time.time() - self._start_time) * 1000)
            for stream in (self.proc.stdout, self.proc.stderr):
                if stream is not None:
                    stream.close()

        log.debug("%s exited with %d after %dms", " ".join(self.command), returncode, self.duration_ms)
        if returncode == 0:
            return None
        return ProcessExitError(returncode, self.command)


class GoTestStarter(Protocol):
    """Signature of the function used to start go test processes."""

    def __call__(
        self, scope: CancelScope, directory: Optional[Path], args: Sequence[str]
    ) -> GoTestProcess: ...


def start_go_test(
    scope: CancelScope,
    directory: Optional[Path],
    args: Sequence[str],
    environment: Optional[dict[str, str]] = None,
) -> GoTestProcess:
    """Start a go test process.

    Args:
        scope: Cancellation scope of the session
        directory: Directory to run the command in (None for the current one)
        args: Full command line, e.g. ["go", "test", "-json", "./..."]
        environment: Additional environment variables to set

    Raises:
        ProcessSpawnError: If the scope is cancelled or the process fails to start
    """
    if scope.cancelled:
        raise ProcessSpawnError("session cancelled, not starting go test")

    env = {**os.environ, **(environment or {})}
    log.debug("Running %s", " ".join(args))

    try:
        proc = subprocess.Popen(
            list(args),
            cwd=directory,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
        )
    except OSError as e:
        raise ProcessSpawnError(f"failed to run {' '.join(args)}: {e}") from e

    scope.track(proc)
    return GoTestProcess(proc, scope, args)


def exit_code_with_default(err: Optional[BaseException]) -> int:
    """Return the exit status an error stands for: 0 for None, 127 if unknown."""
    if err is None:
        return 0
    if isinstance(err, ProcessExitError):
        return err.returncode
    return 127
