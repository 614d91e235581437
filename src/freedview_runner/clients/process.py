"""Process slot: one owned tester process and its output stream.

Output is read on a daemon thread per process and posted to the runner's
message queue as raw byte chunks. Decoding, state transitions and everything
downstream happen on the thread that drains the queue.
"""

import logging
import os
import queue
import shutil
import subprocess
import threading
from typing import List, NamedTuple, Optional, Union

from freedview_runner.constants import EXIT_SETTLE_SECONDS, READ_CHUNK_SIZE
from freedview_runner.errors import ProcessStartError, ProgramNotFoundError, SlotBusyError
from freedview_runner.models.run import LaunchCommand, SlotName, SlotState

logger = logging.getLogger(__name__)


class SlotOutput(NamedTuple):
    slot: SlotName
    generation: int
    data: bytes


class SlotExited(NamedTuple):
    slot: SlotName
    generation: int
    returncode: int


SlotMessage = Union[SlotOutput, SlotExited]


class ProcessSlot:
    """Owns at most one live external process with merged stdout/stderr."""

    def __init__(self, name: SlotName, events: "queue.Queue[SlotMessage]"):
        self.name = name
        self.program = ""
        self.args: List[str] = []
        self.working_directory: Optional[str] = None
        self.state = SlotState.NOT_STARTED
        self.returncode: Optional[int] = None
        # Messages tagged with an older generation belong to a process that
        # has already been stopped or replaced
        self.generation = 0
        self._events = events
        self._process: Optional[subprocess.Popen] = None
        self._reader: Optional[threading.Thread] = None
        self._output = bytearray()
        self._partial = bytearray()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def is_live(self) -> bool:
        return self.state in (SlotState.STARTING, SlotState.RUNNING)

    def configure(self, program: str, args: List[str], cwd: Optional[str]) -> None:
        """Set launch parameters for the next start."""
        if self.is_live():
            raise SlotBusyError(f"{self.name.value} slot is busy (pid {self.pid})")
        self.program = program
        self.args = list(args)
        self.working_directory = cwd

    def configure_command(self, command: LaunchCommand) -> None:
        self.configure(command.program, command.args, command.working_directory)

    def resolve_program(self) -> str:
        """Resolve the configured program to an absolute executable path.

        Relative programs are resolved against the caller's working directory,
        not the one the process is launched in.

        Raises:
            ProgramNotFoundError: If the program is neither an executable path
                nor found on PATH
        """
        found = shutil.which(self.program) if self.program else None
        if not found:
            raise ProgramNotFoundError(f"Program not found: {self.program}")
        return os.path.abspath(found)

    def start(self) -> None:
        """Launch the configured program.

        Raises:
            SlotBusyError: If a process is already live in this slot
            ProgramNotFoundError: If the program cannot be resolved
            ProcessStartError: If the operating system fails to spawn it
        """
        if self.is_live():
            raise SlotBusyError(f"{self.name.value} slot is busy (pid {self.pid})")

        executable = self.resolve_program()

        self.generation += 1
        self.returncode = None
        self._output.clear()
        self._partial.clear()
        self.state = SlotState.STARTING

        logger.info(
            f"Starting {self.name.value} process: {executable} {' '.join(self.args)} "
            f"(cwd={self.working_directory})"
        )
        try:
            self._process = self._spawn(executable)
        except OSError as e:
            self.state = SlotState.EXITED
            self._process = None
            raise ProcessStartError(f"Failed to start process: {e}") from e

        self.state = SlotState.RUNNING
        logger.info(f"{self.name.value} process started (pid {self.pid})")

    def _spawn(self, executable: str) -> subprocess.Popen:
        process = subprocess.Popen(
            [executable, *self.args],
            cwd=self.working_directory,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        self._reader = threading.Thread(
            target=self._read_output,
            args=(process, self.generation),
            name=f"{self.name.value}-output-reader",
            daemon=True,
        )
        self._reader.start()
        return process

    def _read_output(self, process: subprocess.Popen, generation: int) -> None:
        """Reader thread body: post raw chunks, then the exit code."""
        stream = process.stdout
        try:
            while True:
                data = stream.read1(READ_CHUNK_SIZE)
                if not data:
                    break
                self._events.put(SlotOutput(self.name, generation, data))
        except (OSError, ValueError) as e:
            # Pipe closed underneath us while the process was being stopped
            logger.debug(f"{self.name.value} output stream closed: {e}")
        finally:
            returncode = process.wait()
            stream.close()
            self._events.put(SlotExited(self.name, generation, returncode))

    def feed(self, data: bytes) -> List[str]:
        """Buffer a raw chunk and return the lines it completed, in order."""
        self._output.extend(data)
        self._partial.extend(data)
        *complete, rest = bytes(self._partial).split(b"\n")
        self._partial = bytearray(rest)
        return [self.decode(line).rstrip("\r") for line in complete]

    def flush(self) -> List[str]:
        """Return the trailing partial line, if any, and clear it."""
        if not self._partial:
            return []
        line = self.decode(bytes(self._partial)).rstrip("\r")
        self._partial.clear()
        return [line]

    def drain_output(self) -> bytes:
        """Return all output retained since the last drain."""
        data = bytes(self._output)
        self._output.clear()
        return data

    @staticmethod
    def decode(data: bytes) -> str:
        return data.decode("utf-8", errors="replace")

    def mark_exited(self, returncode: int) -> None:
        self.state = SlotState.EXITED
        self.returncode = returncode
        logger.info(f"{self.name.value} process exited with code {returncode}")

    def stop(self, grace_timeout: float) -> bool:
        """Terminate the live process, escalating to kill after the grace period.

        Returns False without doing anything when no process is live.
        """
        if not self.is_live():
            return False

        process = self._process
        if process is not None:
            logger.info(f"Stopping {self.name.value} process (pid {process.pid})")
            process.terminate()
            try:
                process.wait(timeout=grace_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{self.name.value} process did not terminate, forcing kill")
                process.kill()
                try:
                    process.wait(timeout=grace_timeout)
                except subprocess.TimeoutExpired:
                    logger.error(f"{self.name.value} process still alive after kill")

        # Late messages from this process must not reach the runner
        self.generation += 1
        self._partial.clear()
        self.state = SlotState.EXITED
        self.returncode = process.returncode if process is not None else None

        if self._reader is not None:
            self._reader.join(timeout=EXIT_SETTLE_SECONDS)
            self._reader = None

        logger.info(f"{self.name.value} process stopped")
        return True
