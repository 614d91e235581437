"""Run, slot and launch models."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class Verb(str, Enum):
    """Subcommands understood by the tester CLI."""

    ALL = "all"
    COMPARE = "compare"
    PREPARE_UI = "prepare-ui"


class RunMode(str, Enum):
    """Primary slot run mode. The value is the label reported to listeners."""

    NONE = "unknown"
    ALL = "all"
    PREPARE_UI = "prepare-ui"
    COMPARE_THEN_PREPARE = "compare+prepare"


class RunState(str, Enum):
    """Run state machine for the primary slot."""

    IDLE = "idle"
    SINGLE_PHASE = "single_phase"
    PHASE_1 = "phase_1"
    PHASE_2 = "phase_2"


class SlotName(str, Enum):
    PRIMARY = "primary"
    PARALLEL = "parallel"


class SlotState(str, Enum):
    """Liveness of a process slot."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"


class LaunchCommand(BaseModel):
    """Program, arguments and working directory for one tester invocation."""

    program: str
    args: List[str] = Field(default_factory=list)
    working_directory: str


class RunResult(BaseModel):
    """Terminal outcome of a slot run, as carried by run_finished."""

    success: bool
    mode: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @classmethod
    def failed(cls, mode: str, message: str) -> "RunResult":
        """Outcome for runs that never produced an exit code."""
        return cls(success=False, mode=mode, exit_code=-1, stdout="", stderr=message)
