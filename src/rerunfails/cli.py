"""Command-line interface for rerunfails."""

import functools
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from rerunfails import __version__
from rerunfails.config import RerunFailsConfig, create_example_config
from rerunfails.errors import ProcessExitError, RerunError
from rerunfails.testjson.handlers import EventHandler
from rerunfails.testjson.models import Action, Execution, TestEvent

console = Console()
log = logging.getLogger("rerunfails")


def print_banner() -> None:
    """Print the rerunfails banner."""
    console.print(
        Panel.fit(
            "[bold blue]rerunfails[/bold blue] - rerun failing Go tests",
            subtitle=f"v{__version__}",
        )
    )


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


class ConsoleHandler(EventHandler):
    """Prints test results as their events arrive."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def event(self, event: TestEvent, execution: Execution) -> None:
        if event.package_event():
            if event.action == Action.FAIL:
                console.print(f"[red]FAIL[/red] {escape(event.package)}")
            return

        name = escape(f"{event.package}.{event.test}")
        if event.action == Action.FAIL:
            console.print(f"  [red]✗[/red] {name} [dim]({event.elapsed:.2f}s)[/dim]")
        elif event.action == Action.PASS and self.verbose:
            console.print(f"  [green]✓[/green] {name} [dim]({event.elapsed:.2f}s)[/dim]")

    def err(self, text: str) -> None:
        console.print(f"[yellow]{escape(text)}[/yellow]")


@click.group()
@click.version_option(version=__version__, prog_name="rerunfails")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: rerunfails.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """rerunfails - run go test and rerun the tests that failed.

    Failed tests are rerun one at a time with a precise -test.run pattern,
    and coverage profiles from the reruns are merged into the original one.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    setup_logging(verbose)


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="rerunfails.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
def init(output: str, force: bool) -> None:
    """Initialize a new rerunfails configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(f"[yellow]Configuration file already exists:[/yellow] {output_path}")
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]Created configuration file:[/green] {output_path}")


def _load_config(config_path: Optional[str]) -> tuple[RerunFailsConfig, Path]:
    if config_path:
        return RerunFailsConfig.from_file(config_path), Path(config_path).parent
    try:
        return RerunFailsConfig.find_and_load(), Path.cwd()
    except FileNotFoundError:
        log.debug("No configuration file found, using defaults")
        return RerunFailsConfig(), Path.cwd()


@main.command(context_settings={"ignore_unknown_options": True})
@click.option("--rerun-fails", "max_attempts", type=int, help="Rerun failed tests up to N times")
@click.option("--rerun-fails-max-failures", "max_failures", type=int, help="Do not rerun if more than N tests failed")
@click.option("--rerun-fails-run-root-test", "run_root_cases", is_flag=True, help="Rerun the root test of failed subtests")
@click.option("--rerun-fails-report", "report_file", type=click.Path(dir_okay=False), help="Write a rerun report to this file")
@click.argument("go_test_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(
    ctx: click.Context,
    max_attempts: Optional[int],
    max_failures: Optional[int],
    run_root_cases: bool,
    report_file: Optional[str],
    go_test_args: tuple[str, ...],
) -> None:
    """Run go test, then rerun the failed tests.

    Arguments after -- are passed to go test.
    """
    from rerunfails.core.command import RerunOptions, go_test_cmd_args
    from rerunfails.core.executor import CancelScope, start_go_test
    from rerunfails.core.orchestrator import RerunOrchestrator
    from rerunfails.report.writer import write_rerun_fails_report
    from rerunfails.testjson.scanner import ScanConfig, scan_test_output

    print_banner()
    verbose = ctx.obj.get("verbose", False)

    try:
        config, base_dir = _load_config(ctx.obj.get("config_path"))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        sys.exit(1)

    if max_attempts is not None:
        config.rerun.max_attempts = max_attempts
    if max_failures is not None:
        config.rerun.max_failures = max_failures
    if run_root_cases:
        config.rerun.run_root_cases = True
    if report_file:
        config.rerun.report_file = report_file

    args = list(go_test_args) or config.test.args
    paths = config.get_absolute_paths(base_dir)
    start = functools.partial(start_go_test, environment=config.test.environment)
    handler = ConsoleHandler(verbose)

    scope = CancelScope()
    try:
        proc = start(scope, paths["working_directory"], go_test_cmd_args(args, RerunOptions()))
        execution = scan_test_output(
            ScanConfig(stdout=proc.stdout, stderr=proc.stderr, handler=handler, stop=scope.cancel)
        )
        final_err: Optional[RerunError] = proc.wait()
    except RerunError as e:
        console.print(f"[red]Error running go test:[/red] {e}")
        sys.exit(1)

    if final_err is not None and config.rerun.max_attempts > 0:
        orchestrator = RerunOrchestrator(
            base_args=args,
            max_attempts=config.rerun.max_attempts,
            start=start,
            working_directory=paths["working_directory"],
            run_root_cases=config.rerun.run_root_cases,
            max_failures=config.rerun.max_failures,
            handler=handler,
        )
        try:
            orchestrator.check_initial_run(final_err, execution)
            final_err = orchestrator.run(execution).last_error
        except RerunError as e:
            final_err = e

    try:
        report_path = write_rerun_fails_report(
            execution,
            str(paths["report_file"]) if paths["report_file"] else None,
            config.rerun.max_attempts,
        )
        if report_path:
            console.print(f"[green]Rerun report written:[/green] {report_path}")
    except OSError as e:
        console.print(f"[red]Error writing rerun report:[/red] {e}")

    _display_results_summary(execution)

    if isinstance(final_err, ProcessExitError):
        sys.exit(final_err.returncode)
    if final_err is not None:
        console.print(f"[red]Error:[/red] {final_err}")
        sys.exit(1)


def _display_results_summary(execution: Execution) -> None:
    """Display a summary of the execution."""
    from rerunfails.report.writer import tally_failures

    console.print("\n" + "=" * 50)
    console.print("[bold]Test Results Summary[/bold]")
    console.print("=" * 50)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Total Runs", str(execution.total()))
    table.add_row("Passed", f"[green]{len(execution.passed())}[/green]")
    table.add_row("Failed", f"[red]{len(execution.failed())}[/red]")
    table.add_row("Skipped", f"[yellow]{len(execution.skipped())}[/yellow]")
    table.add_row("Errors", str(len(execution.errors())))
    console.print(table)

    tallies = tally_failures(execution)
    if not tallies:
        console.print("\n[green]All tests passed![/green]")
        return

    failures = Table(title="Failed Tests")
    failures.add_column("Test")
    failures.add_column("Runs", justify="right")
    failures.add_column("Failures", justify="right", style="red")
    for tally in tallies[:20]:
        failures.add_row(escape(tally.name), str(tally.total), str(tally.failed))
    console.print(failures)
    if len(tallies) > 20:
        console.print(f"  ... and {len(tallies) - 20} more")


if __name__ == "__main__":
    main()
