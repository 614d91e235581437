"""Exceptions raised by the runner."""


class RunnerError(Exception):
    """Base class for runner errors."""

    pass


class PreconditionError(RunnerError):
    """A required run input was missing or empty."""

    pass


class ProgramNotFoundError(RunnerError):
    """The program to launch could not be resolved."""

    pass


class ProcessStartError(RunnerError):
    """The operating system refused to start the process."""

    pass


class SlotBusyError(RunnerError):
    """A process slot was asked to start while its process is still live."""

    pass
