"""Run command for the freeDView tester runner CLI."""

from typing import Optional

import click

from freedview_runner.constants import DEFAULT_PYTHON
from freedview_runner.models.run import RunResult
from freedview_runner.services.tester_runner import RunnerListener, TesterRunner

OPERATIONS = ["all", "compare", "prepare-ui"]


class EchoListener(RunnerListener):
    """Prints runner notifications to the terminal."""

    def __init__(self, quiet: bool = False):
        self.quiet = quiet
        self.result: Optional[RunResult] = None

    def run_started(self, mode: str) -> None:
        click.echo(f"Run started: {mode}")

    def output_line(self, text: str, is_error: bool) -> None:
        if not self.quiet:
            click.echo(text, err=is_error)

    def progress_updated(self, percent: int, message: str) -> None:
        # Plain status messages only; numeric progress is echoed per task
        if percent < 0:
            click.echo(f"== {message}")

    def task_progress_updated(self, task_key: str, percent: int, message: str) -> None:
        status = "cancelled" if percent < 0 else f"{percent}%"
        click.echo(f"[{task_key}] {status} {message}")

    def run_finished(
        self, success: bool, mode: str, exit_code: int, stdout: str, stderr: str
    ) -> None:
        self.result = RunResult(
            success=success, mode=mode, exit_code=exit_code, stdout=stdout, stderr=stderr
        )
        outcome = "succeeded" if success else "failed"
        click.echo(f"Run {mode} {outcome} (exit code {exit_code})")
        if stderr:
            click.echo(stderr, err=True)


@click.command()
@click.argument("operation", type=click.Choice(OPERATIONS))
@click.option("--tester", "tester_path", required=True, help="freeDView_tester project root")
@click.option("--ini", "ini_path", required=True, help="INI file used when the tester has none")
@click.option(
    "--python",
    "program",
    default=DEFAULT_PYTHON,
    help=f"Interpreter used to run the tester (default: {DEFAULT_PYTHON})",
)
@click.option("--timeout", type=float, default=None, help="Cancel the run after this many seconds")
@click.option("--quiet", is_flag=True, help="Do not echo raw tester output")
def run(operation, tester_path, ini_path, program, timeout, quiet):
    """Run a tester operation and report its progress.

    OPERATION is one of all, compare (followed by prepare-ui) or prepare-ui.
    """
    listener = EchoListener(quiet=quiet)
    runner = TesterRunner(listener=listener, program=program)

    try:
        if operation == "all":
            runner.run_all(tester_path, ini_path)
        elif operation == "compare":
            runner.run_compare_and_prepare(tester_path, ini_path)
        else:
            runner.run_prepare_ui(tester_path, ini_path)

        finished = runner.wait(timeout=timeout)
    except KeyboardInterrupt:
        runner.stop()
        raise click.ClickException("Run cancelled by user")

    if not finished:
        runner.stop()
        raise click.ClickException(f"Run timed out after {timeout} seconds")

    result = listener.result
    if result is None:
        raise click.ClickException("Run did not report a result")
    if not result.success:
        raise click.ClickException(f"Run {result.mode} failed with exit code {result.exit_code}")
