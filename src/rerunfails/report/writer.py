"""Rerun report generation using Jinja2 templates."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from rerunfails.testjson.models import Execution


@dataclass
class TestTally:
    """Number of runs and failures of one test across a session."""

    __test__ = False

    name: str
    total: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"name": self.name, "total": self.total, "failed": self.failed}


def tally_failures(execution: Execution) -> list[TestTally]:
    """Count the runs of every test that failed at least once.

    Tallies are keyed by "package.test" and sorted by that key. Skipped
    runs are not counted.
    """
    tallies: dict[str, TestTally] = {}
    for failure in execution.failed():
        name = f"{failure.package}.{failure.test.name()}"
        if name in tallies:
            continue

        tally = TestTally(name=name)
        pkg = execution.package(failure.package)
        for tc in pkg.failed:
            if tc.test == failure.test:
                tally.total += 1
                tally.failed += 1
        for tc in pkg.passed:
            if tc.test == failure.test:
                tally.total += 1
        tallies[name] = tally

    return [tallies[name] for name in sorted(tallies)]


class RerunReportWriter:
    """Writes the plain-text rerun report."""

    def __init__(self, template_name: str = "rerun_report.txt"):
        template_dir = Path(__file__).parent / "templates"
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.template_name = template_name

    def render(self, execution: Execution) -> str:
        template = self.env.get_template(self.template_name)
        return template.render(tallies=tally_failures(execution))

    def write(self, execution: Execution, output_path: Path | str) -> Path:
        """Write the report for an execution.

        Args:
            execution: Execution holding the initial run and every rerun
            output_path: File to write, replaced if it exists

        Returns:
            Path to the written report
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.render(execution), encoding="utf-8")
        return output_path


def write_rerun_fails_report(
    execution: Execution, report_file: Optional[str], max_attempts: int
) -> Optional[Path]:
    """Write the report unless reruns are disabled or no report file is set."""
    if max_attempts == 0 or not report_file:
        return None
    return RerunReportWriter().write(execution, report_file)
