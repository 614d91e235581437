"""Command building for tester invocations."""

import logging
import os
from pathlib import Path

from freedview_runner.constants import (
    DEFAULT_PYTHON,
    TESTER_ENTRY_SCRIPT,
    TESTER_INI_NAME,
    TESTER_SRC_DIR,
)
from freedview_runner.errors import PreconditionError
from freedview_runner.models.run import LaunchCommand, Verb

logger = logging.getLogger(__name__)


def validate_inputs(tester_path: str, ini_path: str) -> None:
    """Reject empty run inputs before anything is launched."""
    if not tester_path:
        raise PreconditionError("Invalid tester path")
    if not ini_path:
        raise PreconditionError("Invalid INI path")


def resolve_working_directory(tester_path: str) -> str:
    """Return the tester's src folder when present, else the tester root."""
    root = Path(tester_path)
    src_dir = root / TESTER_SRC_DIR
    if src_dir.is_dir():
        return os.path.abspath(src_dir)
    return os.path.abspath(root)


def resolve_ini_path(tester_path: str, ini_path: str) -> str:
    """Prefer the INI shipped with the tester project over the caller's INI."""
    tester_ini = Path(tester_path) / TESTER_INI_NAME
    if tester_ini.exists():
        resolved = os.path.abspath(tester_ini)
        logger.debug(f"Using INI from tester project: {resolved}")
        return resolved
    if not ini_path:
        return ""
    # The tester runs from its own folder; relative paths are the caller's
    resolved = os.path.abspath(ini_path)
    logger.debug(f"Using provided INI: {resolved}")
    return resolved


def build_command(
    tester_path: str,
    ini_path: str,
    verb: Verb,
    program: str = DEFAULT_PYTHON,
) -> LaunchCommand:
    """Build the launch command for one tester subcommand.

    Global flags must precede the subcommand, so ``--ini`` is placed between
    the entry script and the verb.

    Raises:
        PreconditionError: If tester_path or ini_path is empty
    """
    validate_inputs(tester_path, ini_path)

    args = [TESTER_ENTRY_SCRIPT]
    resolved_ini = resolve_ini_path(tester_path, ini_path)
    if resolved_ini:
        args += ["--ini", resolved_ini]
    args.append(Verb(verb).value)

    return LaunchCommand(
        program=program,
        args=args,
        working_directory=resolve_working_directory(tester_path),
    )
