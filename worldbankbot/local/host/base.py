import logging
from enum import IntEnum
from abc import ABC, abstractmethod

from worldbankbot.local.supervisor import Supervisor

log = logging.getLogger(__name__)


class ExitCode(IntEnum):
    """Process exit statuses reported to the OS service manager."""
    OK = 0
    FAILED = 1
    SHUTDOWN_TIMEOUT = 2
    STARTUP_ERROR = 3


class ServiceHost(ABC):
    """
    Binds a supervisor to the environment that runs the process.

    The host calls `start()` once to begin operation and `stop()` once to end
    it. The supervisor reports a fatal failure back through `on_failure`.
    """

    def __init__(self, supervisor: Supervisor) -> None:
        self.supervisor = supervisor
        self.descriptor = supervisor.descriptor
        supervisor.add_failure_listener(self.on_failure)

    def on_failure(self, supervisor: Supervisor) -> None:
        """Called by the supervisor when its restart policy is exhausted."""
        log.critical(
            f"Service '{self.descriptor.name}' entered the FAILED state. "
            f"Last error: {supervisor.last_error}"
        )

    @abstractmethod
    def run(self) -> int:
        """Runs the service to completion and returns the process exit status."""
