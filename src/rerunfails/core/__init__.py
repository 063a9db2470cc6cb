"""Core rerun functionality."""

from rerunfails.core.orchestrator import RerunOrchestrator, RerunResult, SessionState

__all__ = ["RerunOrchestrator", "RerunResult", "SessionState"]
