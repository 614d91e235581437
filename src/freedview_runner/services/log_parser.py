"""Classification of freeDView_tester output lines.

Matchers are tried in a fixed order and the first match wins. Lines that match
nothing come back as ``Unrecognized``; classification never raises.
"""

import logging
import re
from typing import Callable, List, Optional

from freedview_runner.models.events import (
    AggregateProgress,
    LineEvent,
    PhaseCompleted,
    RunCompletedHint,
    TaskCompleted,
    TaskCompletedImplicit,
    TaskProgress,
    TaskStarted,
    Unrecognized,
)

logger = logging.getLogger(__name__)

# Regex patterns for tester output analysis
TASK_STARTED_PATTERN = r"Starting comparison for:\s*(.+)"
# Case-sensitive: "Overall progress:" must not match here
TASK_PROGRESS_PATTERN = r"Progress:\s*(\d+)/(\d+)\s*frames\s*\((\d+)%\)"
OVERALL_PROGRESS_PATTERN = r"Overall progress:\s*(\d+)/(\d+)\s*frames\s*\((\d+)%\)"
CURRENT_FOLDER_PATTERN = r"Current folder:\s*(\d+)/(\d+)\s*frames"
TASK_COMPLETED_PATTERN = r"Successfully completed comparison for:\s*(.+)"
LEGACY_COMPLETED_PATTERN = r"Frame comparison completed"
PHASE_WORD_PATTERN = r"\bPhase(?!s)"
PHASE_NUMBER_PATTERN = r"Phase\s*(\d+)"
COMPLETED_WORD_PATTERN = r"completed"
RUN_COMPLETED_PATTERNS = [
    r"All phases completed",
    r"completed successfully",
]


def _clean_path(raw: str) -> str:
    return raw.strip().strip("\"'")


def _match_task_started(line: str) -> Optional[LineEvent]:
    match = re.search(TASK_STARTED_PATTERN, line)
    if not match:
        return None
    return TaskStarted(path=_clean_path(match.group(1)))


def _match_task_progress(line: str) -> Optional[LineEvent]:
    match = re.search(TASK_PROGRESS_PATTERN, line)
    if not match:
        return None
    return TaskProgress(
        current=int(match.group(1)),
        total=int(match.group(2)),
        percent=int(match.group(3)),
    )


def _match_aggregate_progress(line: str) -> Optional[LineEvent]:
    match = re.search(OVERALL_PROGRESS_PATTERN, line)
    if not match:
        return None

    folder_current = folder_total = None
    folder_match = re.search(CURRENT_FOLDER_PATTERN, line)
    if folder_match:
        folder_current = int(folder_match.group(1))
        folder_total = int(folder_match.group(2))

    return AggregateProgress(
        overall_current=int(match.group(1)),
        overall_total=int(match.group(2)),
        overall_percent=int(match.group(3)),
        folder_current=folder_current,
        folder_total=folder_total,
    )


def _match_task_completed(line: str) -> Optional[LineEvent]:
    match = re.search(TASK_COMPLETED_PATTERN, line)
    if not match:
        return None
    return TaskCompleted(path=_clean_path(match.group(1)))


def _match_legacy_completed(line: str) -> Optional[LineEvent]:
    if re.search(LEGACY_COMPLETED_PATTERN, line, re.IGNORECASE):
        return TaskCompletedImplicit()
    return None


def _match_phase_completed(line: str) -> Optional[LineEvent]:
    if not (
        re.search(PHASE_WORD_PATTERN, line)
        and re.search(COMPLETED_WORD_PATTERN, line, re.IGNORECASE)
    ):
        return None
    number = re.search(PHASE_NUMBER_PATTERN, line)
    return PhaseCompleted(phase=int(number.group(1)) if number else None)


def _match_run_completed(line: str) -> Optional[LineEvent]:
    for pattern in RUN_COMPLETED_PATTERNS:
        if re.search(pattern, line, re.IGNORECASE):
            return RunCompletedHint()
    return None


# Priority order: first match wins
MATCHERS: List[Callable[[str], Optional[LineEvent]]] = [
    _match_task_started,
    _match_task_progress,
    _match_aggregate_progress,
    _match_task_completed,
    _match_legacy_completed,
    _match_phase_completed,
    _match_run_completed,
]


def classify(line: str) -> LineEvent:
    """Classify one complete output line."""
    for matcher in MATCHERS:
        event = matcher(line)
        if event is not None:
            return event
    return Unrecognized(line=line)


def format_frames_message(current: int, total: int) -> str:
    return f"Processing: {current}/{total} frames"
