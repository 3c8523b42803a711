import time
import threading
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Optional

from worldbankbot.local.config import MergedSettings
import worldbankbot.settings as default_settings


class SupervisorState(Enum):
    """Lifecycle states of the supervisor."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    CRASHED = "crashed"
    RESTARTING = "restarting"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        """True while a worker handle is, or is about to be, held."""
        return self not in (SupervisorState.STOPPED, SupervisorState.FAILED)


@dataclass(frozen=True)
class RestartPolicy:
    """
    How many automatic restarts follow an unexpected worker exit.

    :param max_immediate_restarts: Restarts allowed before the supervisor fails.
    :param restart_delay: Seconds to wait before each restart.
    :param reset_period: If set, a worker that ran at least this long before
        crashing clears the restart count. None keeps the count for the
        whole supervisor lifetime.
    """
    max_immediate_restarts: int = 1
    restart_delay: float = 0.0
    reset_period: Optional[float] = None

    @classmethod
    def from_settings(cls, config: MergedSettings) -> "RestartPolicy":
        return cls(
            max_immediate_restarts=int(config.MAX_IMMEDIATE_RESTARTS),
            restart_delay=float(config.RESTART_DELAY_SECONDS or 0.0),
            reset_period=config.RESTART_RESET_PERIOD,
        )


@dataclass(frozen=True)
class ServiceDescriptor:
    """Static metadata used to register the service with its host."""
    name: str = default_settings.SERVICE_NAME
    display_name: str = default_settings.SERVICE_DISPLAY_NAME
    description: str = default_settings.SERVICE_DESCRIPTION
    run_as: str = default_settings.SERVICE_RUN_AS

    @classmethod
    def from_settings(cls, config: MergedSettings) -> "ServiceDescriptor":
        return cls(
            name=config.SERVICE_NAME,
            display_name=config.SERVICE_DISPLAY_NAME,
            description=config.SERVICE_DESCRIPTION,
            run_as=config.SERVICE_RUN_AS,
        )


@dataclass(eq=False)
class WorkerHandle:
    """The supervisor's reference to one running worker instance."""
    worker: Any
    generation: int
    thread: Optional[threading.Thread] = None
    started_at: float = field(default_factory=time.monotonic)

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at
