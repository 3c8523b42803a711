"""
The Supervisor package.
Manages the lifecycle of the bot worker.

This package contains the central Supervisor class and its helper modules,
which together handle starting, restarting and stopping the worker, the
PID and shutdown-signal files, and process-tree termination.
"""
from .errors import (
    AlreadyRunningError,
    NotRunningError,
    ServiceError,
    ShutdownTimeoutError,
    SupervisorFailedError,
    WorkerExitError,
    WorkerLoadError,
)
from .models import RestartPolicy, ServiceDescriptor, SupervisorState, WorkerHandle
from .supervisor import Supervisor

__all__ = [
    'Supervisor', 'SupervisorState', 'RestartPolicy', 'ServiceDescriptor', 'WorkerHandle',
    'ServiceError', 'AlreadyRunningError', 'NotRunningError', 'SupervisorFailedError',
    'ShutdownTimeoutError', 'WorkerExitError', 'WorkerLoadError',
]
