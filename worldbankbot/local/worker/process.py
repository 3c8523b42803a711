import logging
import threading
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from worldbankbot.local.supervisor import process_utils
from worldbankbot.local.supervisor.errors import WorkerExitError
from worldbankbot.local.worker.base import Worker

log = logging.getLogger(__name__)


class ProcessWorker(Worker):
    """
    Runs the bot as a child process.

    The child's stdout and stderr are forwarded line by line to the
    `proc.<name>` logger. A worker instance launches its process once;
    the supervisor builds a fresh instance for every (re)start.
    """

    def __init__(self, command: List[str], cwd: Optional[Path] = None, name: str = "bot",
                 grace_period: float = 10.0, env: Optional[Dict[str, str]] = None) -> None:
        """
        :param command: The bot's command line.
        :param cwd: Working directory for the bot process.
        :param name: Logical process name used in log records.
        :param grace_period: Seconds between SIGTERM and a forced kill on stop.
        :param env: Environment for the bot process.
        """
        if not command:
            raise ValueError("ProcessWorker needs a non-empty command.")
        self.command = list(command)
        self.cwd = cwd
        self.name = name
        self.grace_period = grace_period
        self.env = env
        self.returncode: Optional[int] = None
        self._process: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self._stopping = threading.Event()

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def start(self) -> None:
        """
        Launches the bot process and blocks until it exits.

        :raises WorkerExitError: If the process exits with a non-zero code
            while no stop was requested.
        """
        with self._lock:
            if self._stopping.is_set():
                log.info(f"Stop requested before '{self.name}' was launched. Not starting.")
                return
            self._process = process_utils.launch_process(
                self.command, self.name, cwd=self.cwd, env=self.env
            )

        self.returncode = self._process.wait()
        if self._stopping.is_set():
            log.info(f"Process '{self.name}' (PID {self._process.pid}) exited with code {self.returncode}.")
            return
        if self.returncode != 0:
            raise WorkerExitError(self.name, self.returncode)
        log.warning(f"Process '{self.name}' (PID {self._process.pid}) exited on its own with code 0.")

    def stop(self) -> None:
        """Terminates the bot's process tree. Safe to call more than once."""
        self._stopping.set()
        with self._lock:
            process = self._process
        if process is None or process.poll() is not None:
            return

        log.info(f"Stopping process '{self.name}' (PID {process.pid})...")
        if not process_utils.terminate_process_tree(process.pid, self.grace_period):
            log.error(f"Process '{self.name}' (PID {process.pid}) could not be terminated.")
