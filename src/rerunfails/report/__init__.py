"""Rerun reports."""

from rerunfails.report.writer import RerunReportWriter, TestTally, tally_failures, write_rerun_fails_report

__all__ = ["RerunReportWriter", "TestTally", "tally_failures", "write_rerun_fails_report"]
