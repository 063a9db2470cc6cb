"""Decoding of `go test -json` output."""

from rerunfails.testjson.handlers import EventDispatcher, EventHandler
from rerunfails.testjson.models import Action, Execution, Package, TestCase, TestEvent, TestName
from rerunfails.testjson.scanner import ScanConfig, scan_test_output

__all__ = [
    "Action",
    "EventDispatcher",
    "EventHandler",
    "Execution",
    "Package",
    "ScanConfig",
    "TestCase",
    "TestEvent",
    "TestName",
    "scan_test_output",
]
