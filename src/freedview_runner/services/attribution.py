"""Attribution of unlabeled progress lines to active comparison tasks.

The tester runs several comparisons concurrently and prints their progress
interleaved, without naming the task. The only correlation signal is the frame
total each line reports, so attribution is best effort:

1. exactly one active task expects that total: it wins
2. several do: the most recently started of them wins
3. none does: the oldest task with an unknown total (0) wins and records it
4. no candidate at all: the line is not attributed

Tasks that start with the same unknown total and later report identical totals
can be swapped. The tester output carries no stronger key, so this is accepted.
"""

import logging
from collections import OrderedDict
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class AttributionTracker:
    """Active tasks with their expected frame totals, in arrival order."""

    def __init__(self) -> None:
        # Insertion order doubles as the arrival queue
        self._tasks: "OrderedDict[str, int]" = OrderedDict()
        self.current_key: str = ""

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, key: object) -> bool:
        return key in self._tasks

    def keys(self) -> List[str]:
        """Active task keys, oldest first."""
        return list(self._tasks)

    def active(self) -> Dict[str, int]:
        return dict(self._tasks)

    def start(self, key: str) -> None:
        """Register a started task with an unknown total."""
        self._tasks.pop(key, None)
        self._tasks[key] = 0
        self.current_key = key
        logger.debug(f"Task started: {key} ({len(self._tasks)} active)")

    def record_total(self, key: str, total: int) -> None:
        """Record the expected frame total of an active task."""
        if key in self._tasks:
            self._tasks[key] = total

    def resolve(self, total: int) -> Optional[str]:
        """Return the task a progress line with this frame total belongs to."""
        matches = [key for key, expected in self._tasks.items() if expected > 0 and expected == total]

        if len(matches) == 1:
            logger.debug(f"Matched frame total {total} to task {matches[0]}")
            return matches[0]

        if matches:
            # Most recently started wins
            key = matches[-1]
            logger.debug(f"Multiple tasks expect {total} frames {matches}, using most recent: {key}")
            return key

        for key, expected in self._tasks.items():
            if expected == 0:
                self.record_total(key, total)
                logger.debug(f"Assigned frame total {total} to oldest task with unknown total: {key}")
                return key

        logger.debug(f"No task for frame total {total}; active: {dict(self._tasks)}")
        return None

    def complete(self, key: str = "") -> Optional[str]:
        """Remove a completed task and return the key that was completed.

        Falls back to the current task when ``key`` is empty or not active.
        """
        if key and key in self._tasks:
            target = key
        elif self.current_key and self.current_key in self._tasks:
            target = self.current_key
        else:
            logger.debug(f"Completion for {key!r} has no active target")
            return None

        del self._tasks[target]
        if self.current_key == target:
            self.current_key = ""
        logger.debug(f"Task completed: {target} ({len(self._tasks)} active)")
        return target

    def clear(self) -> None:
        self._tasks.clear()
        self.current_key = ""
