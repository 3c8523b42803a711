import shutil
import logging
import subprocess
from pathlib import Path
from typing import List, Optional

import worldbankbot.settings as default_settings
from worldbankbot.local.supervisor import RestartPolicy, ServiceDescriptor

log = logging.getLogger(__name__)


class SystemdInstaller:
    """
    Registers the service with systemd.

    The generated unit runs the console host in the foreground and lets
    systemd restart the whole process when it exits with a failure status,
    which happens once the supervisor's own restart policy is exhausted.
    """

    def __init__(self, descriptor: ServiceDescriptor, policy: RestartPolicy,
                 unit_dir: Path, python_executable: str, working_dir: Path,
                 stop_timeout: float, restart_sec: int = 60) -> None:
        self.descriptor = descriptor
        self.policy = policy
        self.unit_dir = Path(unit_dir)
        self.python_executable = python_executable
        self.working_dir = Path(working_dir)
        self.stop_timeout = stop_timeout
        self.restart_sec = restart_sec

    @property
    def unit_name(self) -> str:
        return f"{self.descriptor.name.lower()}.service"

    @property
    def unit_path(self) -> Path:
        return self.unit_dir / self.unit_name

    def render(self) -> str:
        """Returns the unit file contents for this service."""
        # Leave room for the supervisor's own stop timeout before systemd kills the host.
        timeout_stop_sec = int(self.stop_timeout) + 15
        return default_settings.SYSTEMD_UNIT_TEMPLATE.format(
            name=self.descriptor.name,
            max_restarts=self.policy.max_immediate_restarts,
            description=f"{self.descriptor.display_name} - {self.descriptor.description}",
            run_as=self.descriptor.run_as,
            working_dir=self.working_dir,
            exec_start=f"{self.python_executable} -m worldbankbot.main run",
            restart_sec=self.restart_sec,
            timeout_stop_sec=timeout_stop_sec,
        )

    def install(self, reload: bool = True) -> Path:
        """
        Writes the unit file and optionally enables it.

        :param reload: If True, runs `systemctl daemon-reload` and `enable`.
        :return: The path of the written unit file.
        """
        self.unit_dir.mkdir(parents=True, exist_ok=True)
        self.unit_path.write_text(self.render())
        log.info(f"Installed service '{self.descriptor.name}' as {self.unit_path}")
        if reload:
            self._systemctl(["daemon-reload"])
            self._systemctl(["enable", self.unit_name])
        return self.unit_path

    def uninstall(self, reload: bool = True) -> bool:
        """
        Removes the unit file.

        :param reload: If True, disables the unit and reloads systemd first.
        :return: True if a unit file was removed.
        """
        if not self.unit_path.exists():
            log.warning(f"Service '{self.descriptor.name}' is not installed at {self.unit_path}.")
            return False
        if reload:
            self._systemctl(["disable", self.unit_name])
        self.unit_path.unlink()
        if reload:
            self._systemctl(["daemon-reload"])
        log.info(f"Uninstalled service '{self.descriptor.name}'.")
        return True

    def _systemctl(self, args: List[str]) -> Optional[int]:
        systemctl = shutil.which("systemctl")
        if systemctl is None:
            log.warning(f"systemctl not found. Skipping 'systemctl {' '.join(args)}'.")
            return None
        result = subprocess.run([systemctl, *args], timeout=30, check=False, capture_output=True)
        if result.returncode != 0:
            log.error(
                f"'systemctl {' '.join(args)}' failed with code {result.returncode}: "
                f"{result.stderr.decode('utf-8', errors='replace').strip()}"
            )
        return result.returncode
