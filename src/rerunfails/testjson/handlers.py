"""Event handler interface and ordered multi-handler dispatch."""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from rerunfails.testjson.models import Execution, TestEvent


class EventHandler(ABC):
    """Abstract base class for consumers of test events."""

    @abstractmethod
    def event(self, event: TestEvent, execution: Execution) -> None:
        """Handle one event after it has been added to the execution.

        Args:
            event: The decoded test event
            execution: The execution the event was recorded in
        """
        pass

    def err(self, text: str) -> None:
        """Handle a line of output that was not a test event."""
        return None


class EventDispatcher(EventHandler):
    """Invokes a list of handlers, in order, for every event."""

    def __init__(self, handlers: Optional[Iterable[EventHandler]] = None):
        self.handlers: list[EventHandler] = list(handlers or [])

    def add(self, handler: EventHandler) -> None:
        self.handlers.append(handler)

    def event(self, event: TestEvent, execution: Execution) -> None:
        for handler in self.handlers:
            handler.event(event, execution)

    def err(self, text: str) -> None:
        for handler in self.handlers:
            handler.err(text)
