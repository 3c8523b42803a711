class ServiceError(Exception):
    """Base class for all service lifecycle errors."""


class AlreadyRunningError(ServiceError):
    """Raised when start() is called while a worker is already active."""


class NotRunningError(ServiceError):
    """Raised by callers that require an active worker when there is none."""


class SupervisorFailedError(ServiceError):
    """Raised when the supervisor has exhausted its restart policy."""


class ShutdownTimeoutError(ServiceError):
    """Raised when the worker does not cease within the stop timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Worker did not stop within {timeout:.1f} seconds.")
        self.timeout = timeout


class WorkerExitError(ServiceError):
    """Raised by a process worker whose bot process exited with a failure code."""

    def __init__(self, name: str, returncode: int) -> None:
        super().__init__(f"Worker '{name}' exited with code {returncode}.")
        self.name = name
        self.returncode = returncode


class WorkerLoadError(ServiceError):
    """Raised when a worker factory cannot be resolved from its import path."""
