"""Rerun orchestration.

Given the execution of an initial go test run, the orchestrator reruns the
failed tests one `-test.run` selection at a time, round after round, until
no failures remain or the attempt limit is reached. Coverage profiles written
by the reruns are merged back into the original profile.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from rerunfails.core.classifier import classify_outcome
from rerunfails.core.command import RerunOptions, go_test_cmd_args
from rerunfails.core.executor import CancelScope, GoTestStarter, start_go_test
from rerunfails.core.filters import rerun_fails_filter
from rerunfails.core.recorder import FailureRecorder
from rerunfails.coverage.accumulator import CoverageAccumulator
from rerunfails.coverage.profile import parse_cover_profile
from rerunfails.errors import (
    CoverageError,
    ProcessExitError,
    RerunAbortedError,
    RerunError,
    TooManyFailuresError,
)
from rerunfails.testjson.handlers import EventDispatcher, EventHandler
from rerunfails.testjson.models import Execution, TestCase
from rerunfails.testjson.scanner import ScanConfig, scan_test_output

log = logging.getLogger(__name__)


class SessionState(str, Enum):
    """How a rerun session that was not aborted ended."""

    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class RerunResult:
    """Result of a rerun session."""

    state: SessionState
    rounds: int
    last_error: Optional[ProcessExitError] = None
    remaining: list[TestCase] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "state": self.state.value,
            "rounds": self.rounds,
            "last_error": str(self.last_error) if self.last_error else None,
            "remaining": [tc.to_dict() for tc in self.remaining],
        }


class RerunOrchestrator:
    """Reruns failed tests until they pass or the attempts run out."""

    def __init__(
        self,
        base_args: Sequence[str],
        max_attempts: int,
        start: GoTestStarter = start_go_test,
        scan: Callable[[ScanConfig], Execution] = scan_test_output,
        working_directory: Optional[Path] = None,
        run_root_cases: bool = False,
        max_failures: int = 10,
        handler: Optional[EventHandler] = None,
    ):
        """Initialize the orchestrator.

        Args:
            base_args: Arguments of the original go test invocation
            max_attempts: Maximum number of rerun rounds
            start: Function that starts a go test process
            scan: Function that consumes a process's event stream
            working_directory: Directory to run go test in
            run_root_cases: Rerun root tests instead of the failed leaves
            max_failures: Refuse to rerun when the initial run failed more tests
            handler: Consumer that sees every event of every rerun
        """
        self.base_args = list(base_args)
        self.max_attempts = max_attempts
        self.start = start
        self.scan = scan
        self.working_directory = working_directory
        self.run_root_cases = run_root_cases
        self.max_failures = max_failures
        self.handler = handler
        self.filter = rerun_fails_filter(run_root_cases)

    def check_initial_run(self, exit_err: Optional[BaseException], execution: Execution) -> None:
        """Verify that the initial run can be rerun.

        Raises:
            RerunAbortedError: If the initial run cannot be trusted
            TooManyFailuresError: If it failed more tests than max_failures
        """
        outcome = classify_outcome(exit_err, execution)
        if outcome.aborted:
            raise RerunAbortedError(outcome.reason)

        failed = len(self.filter(execution.failed()))
        if failed > self.max_failures:
            raise TooManyFailuresError(failed, self.max_failures)

    def run(self, execution: Execution) -> RerunResult:
        """Rerun the failed tests recorded in the execution.

        Events from the reruns are added to the same execution, so it ends up
        holding every run of every test.

        Returns:
            RerunResult with the final state and the last go test exit error

        Raises:
            RerunError: If a process could not be started or scanned, a run
                had to be aborted, or coverage could not be merged
        """
        scope = CancelScope()
        accumulator = self._coverage_accumulator()

        rec = FailureRecorder.from_execution(execution)
        attempt = 0
        try:
            while rec.count() > 0 and attempt < self.max_attempts:
                selected = self.filter(rec.failures)
                if not selected:
                    rec = FailureRecorder()
                    break

                log.info(
                    "Rerunning %d failed test(s), attempt %d of %d",
                    len(selected),
                    attempt + 1,
                    self.max_attempts,
                )
                next_rec = FailureRecorder()
                handlers = [next_rec] if self.handler is None else [next_rec, self.handler]
                dispatcher = EventDispatcher(handlers)

                for index, tc in enumerate(selected):
                    self._rerun_test_case(
                        scope, execution, tc, attempt, index, next_rec, dispatcher, accumulator
                    )

                rec = next_rec
                attempt += 1
        except RerunError:
            scope.cancel()
            if accumulator is not None:
                self._flush_coverage(accumulator)
            raise

        if accumulator is not None:
            accumulator.merge()

        state = SessionState.SUCCESS if rec.count() == 0 else SessionState.EXHAUSTED
        log.info("Rerun finished after %d round(s): %s", attempt, state.value)
        return RerunResult(
            state=state,
            rounds=attempt,
            last_error=rec.last_error,
            remaining=self.filter(rec.failures),
        )

    def _coverage_accumulator(self) -> Optional[CoverageAccumulator]:
        is_coverprofile, main_profile_path = parse_cover_profile(self.base_args)
        if not is_coverprofile:
            return None
        # go test writes profiles relative to the directory it runs in.
        path = Path(main_profile_path)
        if not path.is_absolute() and self.working_directory is not None:
            path = Path(self.working_directory) / path
        return CoverageAccumulator(path)

    def _rerun_test_case(
        self,
        scope: CancelScope,
        execution: Execution,
        tc: TestCase,
        attempt: int,
        index: int,
        rec: FailureRecorder,
        handler: EventHandler,
        accumulator: Optional[CoverageAccumulator],
    ) -> None:
        rerun_opts = RerunOptions.from_test_case(tc)
        profile_path = None
        if accumulator is not None:
            profile_path = accumulator.rerun_profile_path(attempt, index)
            rerun_opts = rerun_opts.with_coverprofile(str(profile_path))

        log.debug("Rerunning %s %s", tc.package, tc.test)
        proc = self.start(scope, self.working_directory, go_test_cmd_args(self.base_args, rerun_opts))
        self.scan(
            ScanConfig(
                stdout=proc.stdout,
                stderr=proc.stderr,
                handler=handler,
                execution=execution,
                stop=scope.cancel,
                run_id=attempt + 1,
            )
        )
        exit_err = proc.wait()
        if exit_err is not None:
            rec.last_error = exit_err

        # Collect coverage before classifying so an aborted run still leaves
        # no temporary profile behind.
        if accumulator is not None and profile_path is not None:
            accumulator.collect(profile_path)

        outcome = classify_outcome(exit_err, execution)
        if outcome.aborted:
            raise RerunAbortedError(outcome.reason)

    @staticmethod
    def _flush_coverage(accumulator: CoverageAccumulator) -> None:
        """Merge what was collected before the session failed, if possible."""
        if not accumulator.partials:
            return
        try:
            accumulator.merge()
        except CoverageError as e:
            log.error("Failed to merge coverage collected before the rerun failed: %s", e)
