"""Constants for the freeDView tester runner.

This module defines the configuration constants used throughout the runner,
including the layout of the external tester tool, process timeouts and the
application directories used for log files.

The runner launches the Python-based freeDView_tester CLI, streams its merged
output and turns the progress lines it prints into structured notifications.
"""

import os
from pathlib import Path


def _get_float_env(name: str, default: float) -> float:
    """Parse float env var with safe fallback."""
    try:
        return float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default


# =============================================================================
# Tester Tool Layout
# =============================================================================
# Entry script invoked inside the tester's working directory
TESTER_ENTRY_SCRIPT = "main.py"

# INI file shipped with the tester project; preferred over the caller's INI
TESTER_INI_NAME = "freeDView_tester.ini"

# Subdirectory used as working directory when present
TESTER_SRC_DIR = "src"

# Interpreter used to run the tester. Resolved against PATH at launch time.
DEFAULT_PYTHON = os.getenv("FREEDVIEW_PYTHON", "python")

# =============================================================================
# Process Configuration
# =============================================================================
# Grace period between terminate and kill when stopping a run (seconds)
STOP_GRACE_SECONDS = _get_float_env("FREEDVIEW_STOP_GRACE_SECONDS", 2.0)

# Bounded wait for the reader thread to settle after a process exits
EXIT_SETTLE_SECONDS = 1.0

# Maximum bytes read from a process pipe per chunk
READ_CHUNK_SIZE = 4096

# Prefix for output lines coming from the parallel prepare-ui slot
PARALLEL_OUTPUT_PREFIX = "[Phase 4] "

# =============================================================================
# Log Parsing
# =============================================================================
# Folder segment that precedes the task key in tester result paths
TASK_KEY_MARKER = "testSets_results"

# Number of trailing segments forming a task key when the marker is missing
TASK_KEY_FALLBACK_SEGMENTS = 4

# =============================================================================
# Application Directory Structure
# =============================================================================
# Base directory for runner data (~/.freedview-runner)
APP_HOME_DIR = Path(os.getenv("FREEDVIEW_HOME", str(Path.home() / ".freedview-runner")))

# Log file directory
LOG_DIR = APP_HOME_DIR / "logs"
