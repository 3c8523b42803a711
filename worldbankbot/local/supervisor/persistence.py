import json
import logging
from pathlib import Path
from typing import Dict, Optional

from worldbankbot.local import effective_settings as config
from worldbankbot.local.supervisor import process_utils

log = logging.getLogger(__name__)


def get_pid_info(pid_path: Optional[Path] = None) -> Optional[Dict[str, int]]:
    """
    Reads the PID file from disk and returns its contents.

    :param pid_path: PID file location. Defaults to the configured path.
    :return: A dictionary of PIDs if the file exists and is valid, else None.
    """
    pid_path = pid_path or config.PID_FILE_PATH
    if not pid_path.exists():
        return None
    try:
        with pid_path.open("r") as f:
            pids = json.load(f)
        if not isinstance(pids, dict):
            pid_path.unlink()
            return None
        return pids
    except (json.JSONDecodeError, IOError):
        pid_path.unlink(missing_ok=True)
        return None

def write_pid_file(pids: Dict[str, int], pid_path: Optional[Path] = None) -> None:
    """
    Atomically writes the given PIDs to the PID file.

    :param pids: Process names mapped to their PIDs.
    :param pid_path: PID file location. Defaults to the configured path.
    """
    pid_path = pid_path or config.PID_FILE_PATH
    pid_path.parent.mkdir(parents=True, exist_ok=True)
    temp_pid_path = pid_path.with_suffix(".tmp")
    try:
        with temp_pid_path.open("w") as f:
            json.dump(pids, f, indent=4)
        temp_pid_path.replace(pid_path)
    except (IOError, OSError) as e:
        log.error(f"Failed to write PID file: {e}", exc_info=True)
    finally:
        temp_pid_path.unlink(missing_ok=True)

def check_if_already_running(pid_path: Optional[Path] = None) -> bool:
    """
    Checks if the service is already running based on the PID file.

    :param pid_path: PID file location. Defaults to the configured path.
    :return: True if a process listed in the PID file is alive.
    """
    pid_info = get_pid_info(pid_path)
    if pid_info and any(process_utils.pid_exists(p) for p in pid_info.values()):
        log.error("Service appears to be running. Use 'stop' or 'restart'.")
        return True
    return False

def request_shutdown(signal_path: Optional[Path] = None) -> None:
    """Creates the shutdown signal file watched by a running host."""
    signal_path = signal_path or config.SHUTDOWN_SIGNAL_PATH
    signal_path.parent.mkdir(parents=True, exist_ok=True)
    signal_path.touch()

def check_for_shutdown_signal(signal_path: Optional[Path] = None) -> bool:
    """Checks if the shutdown signal file exists."""
    signal_path = signal_path or config.SHUTDOWN_SIGNAL_PATH
    if signal_path.exists():
        log.info("Shutdown signal file detected. Stopping service.")
        return True
    return False

def cleanup_shutdown_files(pid_path: Optional[Path] = None, signal_path: Optional[Path] = None) -> None:
    """Removes the PID file and the shutdown signal file."""
    (pid_path or config.PID_FILE_PATH).unlink(missing_ok=True)
    (signal_path or config.SHUTDOWN_SIGNAL_PATH).unlink(missing_ok=True)
    log.debug("Cleaned up PID and signal files.")
