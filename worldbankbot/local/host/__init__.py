"""
Host package.

Bindings between the supervisor and the environment that runs it: a
foreground console host and a systemd unit installer.
"""
from .base import ExitCode, ServiceHost
from .console import ConsoleHost
from .systemd import SystemdInstaller

__all__ = ["ExitCode", "ServiceHost", "ConsoleHost", "SystemdInstaller"]
