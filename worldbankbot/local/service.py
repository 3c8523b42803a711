"""
Assembles the supervisor, its host and the installer from the effective settings.
"""
import logging
from typing import Optional

from worldbankbot.local.config import MergedSettings
from worldbankbot.local.host import ConsoleHost, SystemdInstaller
from worldbankbot.local.supervisor import RestartPolicy, ServiceDescriptor, Supervisor
from worldbankbot.local.worker import WorkerFactory, default_worker_factory


def build_supervisor(config: MergedSettings, worker_factory: Optional[WorkerFactory] = None,
                     logger: Optional[logging.Logger] = None) -> Supervisor:
    """
    Creates a supervisor configured from the settings.

    :param config: The effective settings.
    :param worker_factory: Overrides the configured worker factory.
    :param logger: Logger for lifecycle events.
    """
    return Supervisor(
        worker_factory or default_worker_factory(config),
        policy=RestartPolicy.from_settings(config),
        descriptor=ServiceDescriptor.from_settings(config),
        stop_timeout=float(config.STOP_TIMEOUT_SECONDS),
        logger=logger or logging.getLogger("worldbankbot.service"),
    )


def build_console_host(config: MergedSettings, supervisor: Supervisor) -> ConsoleHost:
    return ConsoleHost(
        supervisor,
        pid_path=config.PID_FILE_PATH,
        signal_path=config.SHUTDOWN_SIGNAL_PATH,
        poll_interval=float(config.SHUTDOWN_POLL_INTERVAL),
    )


def build_installer(config: MergedSettings) -> SystemdInstaller:
    return SystemdInstaller(
        ServiceDescriptor.from_settings(config),
        RestartPolicy.from_settings(config),
        unit_dir=config.SYSTEMD_UNIT_DIR,
        python_executable=config.PYTHON_EXECUTABLE,
        working_dir=config.BASE_DIR,
        stop_timeout=float(config.STOP_TIMEOUT_SECONDS),
        restart_sec=int(config.SYSTEMD_RESTART_SEC),
    )
