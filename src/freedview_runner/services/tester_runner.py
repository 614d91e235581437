"""Tester runner: launches freeDView_tester and republishes its progress.

The runner owns two process slots. The primary slot runs ``all``, ``compare``
followed by ``prepare-ui``, or a single ``prepare-ui``. The parallel slot runs
``prepare-ui`` on its own while the primary slot may be busy.

All state changes happen on the thread that calls ``process_events`` (or
``wait``). Reader threads only post messages to the queue.
"""

import logging
import queue
import time
from typing import Dict, Optional

from freedview_runner.clients.process import (
    ProcessSlot,
    SlotExited,
    SlotMessage,
    SlotOutput,
)
from freedview_runner.constants import (
    DEFAULT_PYTHON,
    PARALLEL_OUTPUT_PREFIX,
    STOP_GRACE_SECONDS,
)
from freedview_runner.errors import (
    PreconditionError,
    ProcessStartError,
    ProgramNotFoundError,
)
from freedview_runner.models.events import (
    AggregateProgress,
    LineEvent,
    PhaseCompleted,
    RunCompletedHint,
    TaskCompleted,
    TaskCompletedImplicit,
    TaskProgress,
    TaskStarted,
)
from freedview_runner.models.run import (
    LaunchCommand,
    RunMode,
    RunResult,
    RunState,
    SlotName,
    Verb,
)
from freedview_runner.services.attribution import AttributionTracker
from freedview_runner.services.log_parser import classify, format_frames_message
from freedview_runner.utils.command import build_command, validate_inputs
from freedview_runner.utils.task_keys import derive_task_key

logger = logging.getLogger(__name__)

PROCESSING_COMPLETED_MESSAGE = "Processing completed"
PRIMARY_CANCELLED_MESSAGE = "Operation cancelled by user"
PARALLEL_CANCELLED_MESSAGE = "Phase 4 cancelled by user"


class RunnerListener:
    """Receives runner notifications. Override the ones you need."""

    def run_started(self, mode: str) -> None:
        pass

    def output_line(self, text: str, is_error: bool) -> None:
        pass

    def progress_updated(self, percent: int, message: str) -> None:
        """Overall progress; percent is -1 for plain status messages."""
        pass

    def task_progress_updated(self, task_key: str, percent: int, message: str) -> None:
        """Per-task progress; percent is -1 when the task was cancelled."""
        pass

    def run_finished(
        self, success: bool, mode: str, exit_code: int, stdout: str, stderr: str
    ) -> None:
        pass


class TesterRunner:
    """Runs tester commands and attributes their progress output to tasks."""

    def __init__(
        self,
        listener: Optional[RunnerListener] = None,
        program: str = DEFAULT_PYTHON,
        stop_grace_seconds: float = STOP_GRACE_SECONDS,
    ):
        self.listener = listener or RunnerListener()
        self.program = program
        self.stop_grace_seconds = stop_grace_seconds
        self._events: "queue.Queue[SlotMessage]" = queue.Queue()
        self.primary = ProcessSlot(SlotName.PRIMARY, self._events)
        self.parallel = ProcessSlot(SlotName.PARALLEL, self._events)
        self.tracker = AttributionTracker()
        self._mode = RunMode.NONE
        self._state = RunState.IDLE
        self._phase2_queued = False
        self._tester_path = ""
        self._ini_path = ""

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> RunMode:
        return self._mode

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def is_running(self) -> bool:
        """True while a primary slot run is in flight."""
        return self._state != RunState.IDLE or self.primary.is_live()

    @property
    def is_parallel_running(self) -> bool:
        return self.parallel.is_live()

    @property
    def active_tasks(self) -> Dict[str, int]:
        return self.tracker.active()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def run_all(self, tester_path: str, ini_path: str) -> bool:
        """Run every tester phase in a single invocation."""
        return self._start_primary(
            tester_path, ini_path, RunMode.ALL, RunState.SINGLE_PHASE, Verb.ALL
        )

    def run_compare_and_prepare(self, tester_path: str, ini_path: str) -> bool:
        """Run ``compare``, then ``prepare-ui`` once compare has exited."""
        return self._start_primary(
            tester_path, ini_path, RunMode.COMPARE_THEN_PREPARE, RunState.PHASE_1, Verb.COMPARE
        )

    def run_prepare_ui(self, tester_path: str, ini_path: str, parallel: bool = True) -> bool:
        """Run ``prepare-ui``, by default on the parallel slot.

        A parallel request while the parallel slot is busy is dropped as a
        duplicate and produces no notification.
        """
        if not parallel:
            return self._start_primary(
                tester_path, ini_path, RunMode.PREPARE_UI, RunState.SINGLE_PHASE, Verb.PREPARE_UI
            )

        label = RunMode.PREPARE_UI.value
        try:
            validate_inputs(tester_path, ini_path)
        except PreconditionError as e:
            logger.warning(f"{label} request rejected: {e}")
            self._emit_finished(RunResult.failed(label, str(e)))
            return False

        if self.parallel.is_live():
            logger.info("prepare-ui is already running in parallel, skipping duplicate request")
            return False

        command = build_command(tester_path, ini_path, Verb.PREPARE_UI, self.program)
        logger.info(
            f"Starting prepare-ui in parallel (primary running: {self.primary.is_live()})"
        )
        self.listener.run_started(label)
        return self._launch(self.parallel, command, label)

    def stop(self) -> None:
        """Cancel whatever is running. Returns once no slot is live.

        Each cancelled slot gets exactly one failed run_finished. Nothing is
        emitted when no slot is live.
        """
        if self.primary.is_live():
            label = self._mode.value
            self.primary.stop(self.stop_grace_seconds)
            for key in self.tracker.keys():
                self.listener.task_progress_updated(key, -1, "Cancelled")
            self.tracker.clear()
            self.primary.drain_output()
            self._reset_primary()
            self._emit_finished(RunResult.failed(label, PRIMARY_CANCELLED_MESSAGE))

        if self.parallel.is_live():
            self.parallel.stop(self.stop_grace_seconds)
            self.parallel.drain_output()
            self._emit_finished(
                RunResult.failed(RunMode.PREPARE_UI.value, PARALLEL_CANCELLED_MESSAGE)
            )

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def process_events(self, timeout: float = 0.0) -> int:
        """Dispatch queued slot messages on the calling thread.

        Waits up to ``timeout`` seconds for the first message, then drains
        whatever else is queued. Returns the number of messages handled.
        """
        try:
            if timeout > 0:
                message = self._events.get(timeout=timeout)
            else:
                message = self._events.get_nowait()
        except queue.Empty:
            return 0

        handled = 0
        while True:
            self._dispatch(message)
            handled += 1
            try:
                message = self._events.get_nowait()
            except queue.Empty:
                return handled

    def wait(self, timeout: Optional[float] = None, poll_interval: float = 0.1) -> bool:
        """Pump events until neither slot has work. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.is_running or self.is_parallel_running:
            interval = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                interval = min(poll_interval, remaining)
            self.process_events(timeout=interval)
        return True

    def _dispatch(self, message: SlotMessage) -> None:
        slot = self.primary if message.slot == SlotName.PRIMARY else self.parallel
        if message.generation != slot.generation:
            logger.debug(f"Dropping stale {type(message).__name__} for {slot.name.value} slot")
            return

        if isinstance(message, SlotOutput):
            self._handle_lines(slot, slot.feed(message.data))
        elif isinstance(message, SlotExited):
            self._handle_lines(slot, slot.flush())
            slot.mark_exited(message.returncode)
            if slot is self.primary:
                self._on_primary_exited(message.returncode)
            else:
                self._on_parallel_exited(message.returncode)

    # ------------------------------------------------------------------
    # Launching
    # ------------------------------------------------------------------

    def _start_primary(
        self, tester_path: str, ini_path: str, mode: RunMode, state: RunState, verb: Verb
    ) -> bool:
        label = mode.value
        try:
            validate_inputs(tester_path, ini_path)
        except PreconditionError as e:
            logger.warning(f"{label} request rejected: {e}")
            self._emit_finished(RunResult.failed(label, str(e)))
            return False

        if self.is_running:
            logger.warning(
                f"Ignoring {label} request: {self._mode.value} run already in progress"
            )
            return False

        self._tester_path = tester_path
        self._ini_path = ini_path
        self._mode = mode
        self._state = state
        self._phase2_queued = False
        self.tracker.clear()

        command = build_command(tester_path, ini_path, verb, self.program)
        self.listener.run_started(label)
        return self._launch(self.primary, command, label)

    def _launch(self, slot: ProcessSlot, command: LaunchCommand, label: str) -> bool:
        slot.configure_command(command)
        try:
            slot.start()
        except (ProgramNotFoundError, ProcessStartError) as e:
            logger.error(f"Failed to launch {label} on {slot.name.value} slot: {e}")
            if slot is self.primary:
                self._reset_primary()
            self._emit_finished(RunResult.failed(label, str(e)))
            return False
        return True

    def _run_phase_two(self) -> None:
        self._phase2_queued = True
        self._state = RunState.PHASE_2
        command = build_command(self._tester_path, self._ini_path, Verb.PREPARE_UI, self.program)
        logger.info("Compare phase finished, starting prepare-ui")
        self._launch(self.primary, command, self._mode.value)

    def _reset_primary(self) -> None:
        self._mode = RunMode.NONE
        self._state = RunState.IDLE
        self._phase2_queued = False

    # ------------------------------------------------------------------
    # Exit handling
    # ------------------------------------------------------------------

    def _on_primary_exited(self, returncode: int) -> None:
        stdout = ProcessSlot.decode(self.primary.drain_output())

        # Tasks still active never reported completion; they are dropped, not completed
        self.tracker.clear()
        self.listener.progress_updated(100, PROCESSING_COMPLETED_MESSAGE)

        if self._mode == RunMode.COMPARE_THEN_PREPARE and not self._phase2_queued:
            logger.info(f"Phase 1 (compare) exited with code {returncode}")
            self._run_phase_two()
            return

        result = RunResult(
            success=returncode == 0,
            mode=self._mode.value,
            exit_code=returncode,
            stdout=stdout,
            stderr="",
        )
        self._reset_primary()
        self._emit_finished(result)

    def _on_parallel_exited(self, returncode: int) -> None:
        stdout = ProcessSlot.decode(self.parallel.drain_output())
        logger.info(f"prepare-ui (parallel) finished with exit code {returncode}")
        self._emit_finished(
            RunResult(
                success=returncode == 0,
                mode=RunMode.PREPARE_UI.value,
                exit_code=returncode,
                stdout=stdout,
                stderr="",
            )
        )

    def _emit_finished(self, result: RunResult) -> None:
        logger.info(
            f"Run finished: mode={result.mode} success={result.success} "
            f"exit_code={result.exit_code}"
        )
        self.listener.run_finished(
            result.success, result.mode, result.exit_code, result.stdout, result.stderr
        )

    # ------------------------------------------------------------------
    # Output handling
    # ------------------------------------------------------------------

    def _handle_lines(self, slot: ProcessSlot, lines) -> None:
        for raw_line in lines:
            line = raw_line.strip()
            if not line:
                continue
            if slot is self.parallel:
                self.listener.output_line(f"{PARALLEL_OUTPUT_PREFIX}{line}", False)
                continue
            self.listener.output_line(line, False)
            self._handle_event(classify(line))

    def _handle_event(self, event: LineEvent) -> None:
        if isinstance(event, TaskStarted):
            key = derive_task_key(event.path)
            if not key:
                logger.debug(f"Ignoring start of untracked folder: {event.path}")
                return
            self.tracker.start(key)
            self.listener.task_progress_updated(key, 0, "Starting...")

        elif isinstance(event, TaskProgress):
            message = format_frames_message(event.current, event.total)
            self._attribute(event.total, event.percent, message)
            self.listener.progress_updated(event.percent, message)

        elif isinstance(event, AggregateProgress):
            if event.has_folder:
                folder_total = event.folder_total
                folder_percent = (
                    int(event.folder_current * 100 / folder_total) if folder_total > 0 else 0
                )
                self._attribute(
                    folder_total,
                    folder_percent,
                    format_frames_message(event.folder_current, folder_total),
                )
            self.listener.progress_updated(
                event.overall_percent,
                format_frames_message(event.overall_current, event.overall_total),
            )

        elif isinstance(event, (TaskCompleted, TaskCompletedImplicit)):
            key = derive_task_key(event.path) if isinstance(event, TaskCompleted) else ""
            completed = self.tracker.complete(key)
            if completed:
                self.listener.task_progress_updated(completed, 100, "Completed")

        elif isinstance(event, PhaseCompleted):
            if event.phase is not None:
                self.listener.progress_updated(-1, f"Phase {event.phase} completed")

        elif isinstance(event, RunCompletedHint):
            self.listener.progress_updated(100, PROCESSING_COMPLETED_MESSAGE)

    def _attribute(self, total: int, percent: int, message: str) -> None:
        key = self.tracker.resolve(total)
        if key:
            self.listener.task_progress_updated(key, percent, message)
