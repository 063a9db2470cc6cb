"""Scanning of `go test -json` output into an Execution."""

import logging
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional

from rerunfails.errors import ScanError
from rerunfails.testjson.handlers import EventHandler
from rerunfails.testjson.models import Execution, TestEvent

log = logging.getLogger(__name__)


@dataclass
class ScanConfig:
    """Inputs for one call to scan_test_output."""

    stdout: BinaryIO
    stderr: BinaryIO
    handler: EventHandler
    execution: Optional[Execution] = None
    stop: Optional[Callable[[], None]] = None
    run_id: int = 0


_GO_MODULE_PREFIXES = (
    "go: copying",
    "go: creating",
    "go: downloading",
    "go: extracting",
    "go: finding",
)

# Printed by the go command under GODEBUG=gocachehash=1 or gocachetest=1.
_GO_DEBUG_PREFIXES = ("HASH[", "HASH ", "testcache:")


def is_go_module_output(line: str) -> bool:
    """Return True for module download progress printed by the go command."""
    return line.startswith(_GO_MODULE_PREFIXES)


def is_go_debug_output(line: str) -> bool:
    return line.strip().startswith(_GO_DEBUG_PREFIXES)


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def scan_test_output(config: ScanConfig) -> Execution:
    """Read both output streams of a go test process until they close.

    Every stdout line that decodes as a test event is added to the execution
    and passed to the handler. Other stdout lines go to ``handler.err``.
    Stderr lines all go to ``handler.err``. Except for module download
    progress and GODEBUG traces, they are also recorded as execution errors,
    since go test otherwise only writes there when a package fails to build
    or the command itself fails.

    Args:
        config: Streams, handler and the execution to update

    Returns:
        The updated execution (a new one if none was given)

    Raises:
        ScanError: If either stream could not be read
    """
    execution = config.execution if config.execution is not None else Execution()

    stderr_lines: list[str] = []
    stderr_failures: list[Exception] = []

    def read_stderr() -> None:
        try:
            for raw in config.stderr:
                stderr_lines.append(_decode(raw))
        except (OSError, ValueError) as e:
            stderr_failures.append(e)

    reader = threading.Thread(target=read_stderr, name="go-test-stderr", daemon=True)
    reader.start()

    try:
        for raw in config.stdout:
            line = _decode(raw)
            if not line.strip():
                continue
            try:
                event = TestEvent.from_json(line)
            except ValueError:
                config.handler.err(line)
                continue

            event.run_id = config.run_id
            execution.add(event)
            config.handler.event(event, execution)
    except (OSError, ValueError) as e:
        _stop(config)
        raise ScanError(f"failed to read test output: {e}") from e
    finally:
        reader.join()

    if stderr_failures:
        _stop(config)
        raise ScanError(f"failed to read test stderr: {stderr_failures[0]}")

    for line in stderr_lines:
        if not line.strip():
            continue
        log.debug("go test stderr: %s", line)
        config.handler.err(line)
        if is_go_module_output(line) or is_go_debug_output(line):
            continue
        execution.add_error(line)

    return execution


def _stop(config: ScanConfig) -> None:
    if config.stop is not None:
        config.stop()
