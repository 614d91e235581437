"""Entry point for the freeDView tester runner CLI."""

import logging

import click

from freedview_runner.cli.commands.run import run
from freedview_runner.constants import LOG_DIR
from freedview_runner.utils.logging import setup_logging

DEFAULT_LOG_FILE = LOG_DIR / "freedview-runner.log"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=str(DEFAULT_LOG_FILE),
    show_default=True,
    help="Log file path",
)
def cli(verbose, log_file):
    """freeDView tester runner."""
    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file)


cli.add_command(run)


if __name__ == "__main__":
    cli()
