"""Deciding whether a rerun session may continue after a go test run."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rerunfails.core.executor import exit_code_with_default
from rerunfails.testjson.models import Execution


class OutcomeKind(str, Enum):
    """How a completed go test run ended."""

    PASSED = "passed"
    EXPECTED_FAILURE = "expected_failure"
    ABORTED = "aborted"


@dataclass(frozen=True)
class RoundOutcome:
    """Outcome of a run; `reason` is set only when the session must abort."""

    kind: OutcomeKind
    reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.kind == OutcomeKind.ABORTED


def classify_outcome(exit_err: Optional[BaseException], execution: Execution) -> RoundOutcome:
    """Classify the result of a go test run.

    Exit status 0 and 1 (some tests failed) allow reruns to continue.
    Recorded errors, any other exit status, or a suspected panic abort the
    whole session, because the results that follow cannot be trusted.
    """
    if execution.errors():
        return RoundOutcome(OutcomeKind.ABORTED, "rerun aborted because previous run had errors")

    code = exit_code_with_default(exit_err)
    if code > 1:
        return RoundOutcome(OutcomeKind.ABORTED, f"unexpected go test exit code: {exit_err}")

    if execution.has_panic():
        return RoundOutcome(
            OutcomeKind.ABORTED,
            "rerun aborted because previous run had a suspected panic and some test may not have run",
        )

    if code == 0:
        return RoundOutcome(OutcomeKind.PASSED)
    return RoundOutcome(OutcomeKind.EXPECTED_FAILURE)
