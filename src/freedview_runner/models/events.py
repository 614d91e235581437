"""Typed events produced by the tester log classifier.

Each recognised tester output line maps to exactly one of these models. The
set is closed: ``LineEvent`` lists every kind the classifier can return.
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class TaskStarted(_Event):
    """``Starting comparison for: <path>``"""

    path: str


class TaskProgress(_Event):
    """``Progress: <n>/<m> frames (<p>%)``"""

    current: int
    total: int
    percent: int


class AggregateProgress(_Event):
    """``Overall progress: ... - Current folder: <a>/<b> frames``

    The folder figures are optional; older tester versions omit them.
    """

    overall_current: int
    overall_total: int
    overall_percent: int
    folder_current: Optional[int] = None
    folder_total: Optional[int] = None

    @property
    def has_folder(self) -> bool:
        return self.folder_current is not None and self.folder_total is not None


class TaskCompleted(_Event):
    """``Successfully completed comparison for: <path>``"""

    path: str


class TaskCompletedImplicit(_Event):
    """Legacy ``Frame comparison completed`` line without a path."""

    pass


class PhaseCompleted(_Event):
    phase: Optional[int] = None


class RunCompletedHint(_Event):
    pass


class Unrecognized(_Event):
    line: str


LineEvent = Union[
    TaskStarted,
    TaskProgress,
    AggregateProgress,
    TaskCompleted,
    TaskCompletedImplicit,
    PhaseCompleted,
    RunCompletedHint,
    Unrecognized,
]
