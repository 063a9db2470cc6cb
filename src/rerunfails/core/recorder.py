"""Recording of failed tests while a rerun streams its events."""

from typing import Iterable, Optional

from rerunfails.errors import ProcessExitError
from rerunfails.testjson.handlers import EventHandler
from rerunfails.testjson.models import Action, Execution, TestCase, TestEvent


class FailureRecorder(EventHandler):
    """Collects the test cases that fail during one round of reruns."""

    def __init__(self, failures: Optional[Iterable[TestCase]] = None):
        self.failures: list[TestCase] = list(failures or [])
        self.last_error: Optional[ProcessExitError] = None

    @classmethod
    def from_execution(cls, execution: Execution) -> "FailureRecorder":
        return cls(execution.failed())

    def event(self, event: TestEvent, execution: Execution) -> None:
        if event.package_event() or event.action != Action.FAIL:
            return
        pkg = execution.package(event.package)
        if pkg is None:
            return
        self.failures.append(pkg.last_failed_by_name(event.test))

    def count(self) -> int:
        return len(self.failures)
