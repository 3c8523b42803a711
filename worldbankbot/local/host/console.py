import os
import time
import signal
import logging
import threading
import setproctitle
from pathlib import Path
from typing import Dict, Optional

from worldbankbot.local.host.base import ExitCode, ServiceHost
from worldbankbot.local.supervisor import Supervisor, SupervisorState, ShutdownTimeoutError
from worldbankbot.local.supervisor import persistence

log = logging.getLogger(__name__)


class ConsoleHost(ServiceHost):
    """
    Runs the supervised service in the foreground of the current process.

    This is the host used under systemd and from the management console. It
    owns the PID file, reacts to SIGINT/SIGTERM and to the shutdown signal
    file, and turns the supervisor's outcome into an exit status.
    """

    def __init__(self, supervisor: Supervisor, pid_path: Optional[Path] = None,
                 signal_path: Optional[Path] = None, poll_interval: float = 1.0,
                 install_signal_handlers: bool = True) -> None:
        super().__init__(supervisor)
        self.pid_path = pid_path
        self.signal_path = signal_path
        self.poll_interval = poll_interval
        self.install_signal_handlers = install_signal_handlers
        self.stop_requested = threading.Event()
        self.start_time: Optional[float] = None
        self._previous_handlers: Dict[int, object] = {}

    def request_stop(self) -> None:
        """Asks a running `run()` to stop the service. Safe from any thread."""
        self.stop_requested.set()

    def _handle_signal(self, signum, frame) -> None:
        log.info(f"Received signal {signal.Signals(signum).name}. Stopping service.")
        self.request_stop()

    def _install_signal_handlers(self) -> None:
        if not self.install_signal_handlers or threading.current_thread() is not threading.main_thread():
            return
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[sig] = signal.signal(sig, self._handle_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

    def run(self) -> int:
        """
        Starts the service, waits for a stop request or a fatal failure, and stops it.

        :return: An ExitCode value.
        """
        name = self.descriptor.name
        if persistence.check_if_already_running(self.pid_path):
            return ExitCode.STARTUP_ERROR

        setproctitle.setproctitle(f"{self.descriptor.display_name} - Service")
        persistence.cleanup_shutdown_files(self.pid_path, self.signal_path)
        persistence.write_pid_file({"service": os.getpid()}, self.pid_path)
        self._install_signal_handlers()

        log.info("=" * 20 + f" {self.descriptor.display_name} Starting " + "=" * 20)
        self.start_time = time.time()
        try:
            try:
                self.supervisor.start()
            except Exception as e:
                log.critical(f"Startup of '{name}' failed: {e}", exc_info=True)
                return ExitCode.STARTUP_ERROR

            self._wait_for_stop()
            return self._shutdown()
        finally:
            self._restore_signal_handlers()
            persistence.cleanup_shutdown_files(self.pid_path, self.signal_path)
            runtime = time.strftime('%H:%M:%S', time.gmtime(time.time() - self.start_time))
            log.info(f"Service '{name}' host exiting. Total runtime: {runtime}")

    def _wait_for_stop(self) -> None:
        """Blocks until a stop is requested or the supervisor reaches a terminal state."""
        while not self.stop_requested.is_set():
            if self.supervisor.wait(self.poll_interval):
                return
            if persistence.check_for_shutdown_signal(self.signal_path):
                return

    def _shutdown(self) -> int:
        if self.supervisor.state is SupervisorState.FAILED:
            log.critical(f"Service '{self.descriptor.name}' failed. Reporting failure to the service manager.")
            return ExitCode.FAILED
        try:
            self.supervisor.stop()
        except ShutdownTimeoutError as e:
            log.critical(f"Shutdown of '{self.descriptor.name}' timed out: {e}")
            return ExitCode.SHUTDOWN_TIMEOUT
        return ExitCode.OK
