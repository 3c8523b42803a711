import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger(__name__)


#* --- Process Status ---
def pid_exists(pid: int) -> bool:
    """A wrapper for psutil.pid_exists for easy testing/mocking if needed."""
    return psutil.pid_exists(pid)

def get_process_from_pid(pid: int) -> psutil.Process:
    """A wrapper for psutil.Process for easy testing/mocking if needed."""
    return psutil.Process(pid)

def get_proc_status_string(proc: psutil.Process) -> str:
    """Gets a string representation of a process status."""
    try:
        if proc.status() == psutil.STATUS_ZOMBIE:
            return "zombie"
        return "running"
    except psutil.NoSuchProcess:
        return "stopped"
    except psutil.Error:
        return "unknown"

#* --- Process Creation ---
def get_popen_creation_flags(detached: bool = False) -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for subprocess.Popen.

    :param detached: If True, the child outlives the console that launched it.
    """
    if sys.platform == "win32":
        flags = subprocess.CREATE_NEW_PROCESS_GROUP
        if detached:
            flags |= subprocess.DETACHED_PROCESS | subprocess.CREATE_NO_WINDOW
        return {"creationflags": flags}
    return {"start_new_session": True}

def _read_pipe(pipe, process_name: str, level: int):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            proc_logger.log(level, line)
    except Exception as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str) -> List[threading.Thread]:
    """Starts background threads to consume and log a process's stdout/stderr."""
    readers = []
    if process.stdout:
        readers.append(threading.Thread(
            target=_read_pipe, args=(process.stdout, name, logging.INFO),
            daemon=True, name=f"{name}-stdout",
        ))
    if process.stderr:
        readers.append(threading.Thread(
            target=_read_pipe, args=(process.stderr, name, logging.ERROR),
            daemon=True, name=f"{name}-stderr",
        ))
    for reader in readers:
        reader.start()
    return readers

def launch_process(args: List[str], name: str, cwd: Optional[Path] = None,
                   env: Optional[Dict[str, str]] = None, capture_output: bool = True,
                   detached: bool = False) -> subprocess.Popen:
    """
    Launches a single process, optionally piping its output into the log.

    :param args: The command line to execute.
    :param name: The logical name of the process, used for `proc.<name>` logging.
    :param cwd: Working directory for the child.
    :param env: Environment for the child. Defaults to the current environment.
    :param capture_output: If False, the child's output is discarded.
    :param detached: If True, the child is fully detached from this console.
    :return: The started Popen object.
    """
    log.info(f"Starting process: {name}...")
    try:
        output = subprocess.PIPE if capture_output else subprocess.DEVNULL
        p = subprocess.Popen(
            args,
            stdout=output,
            stderr=output,
            stdin=subprocess.DEVNULL,
            cwd=str(cwd.resolve()) if cwd else None,
            env=env,
            **get_popen_creation_flags(detached),
        )
    except Exception as e:
        log.critical(f"Failed to start process '{name}': {e}", exc_info=True)
        raise

    if capture_output:
        log_process_output(p, name)
    log.info(f"{name.capitalize()} started successfully with PID: {p.pid}")
    return p

#* --- Process Termination ---
def collect_process_tree(pid: int) -> List[psutil.Process]:
    """Returns the process and all of its descendants, parent first."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return []
    procs = [parent]
    try:
        procs.extend(parent.children(recursive=True))
    except psutil.NoSuchProcess:
        log.warning(f"Process {pid} no longer exists, skipping children retrieval.")
    return procs

def _terminate_processes(processes: List[psutil.Process]) -> None:
    """Sends SIGTERM to all processes."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to {proc.name()} (PID {proc.pid})")
            proc.terminate()
        except psutil.NoSuchProcess:
            continue

def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    if not processes:
        return

    log.warning(f"{len(processes)} processes did not terminate gracefully. Forcing shutdown...")
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            continue

def terminate_process_tree(pid: int, timeout: float) -> bool:
    """
    Terminates a process and its children, force-killing any survivors.

    :param pid: PID of the root process.
    :param timeout: Seconds to wait after SIGTERM before killing.
    :return: True if every process ended, False if some survived the kill.
    """
    procs = collect_process_tree(pid)
    if not procs:
        return True

    _terminate_processes(procs)
    try:
        _, alive = psutil.wait_procs(procs, timeout=timeout)
    except psutil.NoSuchProcess:
        alive = []

    if not alive:
        return True

    _forceful_kill(alive)
    _, still_alive = psutil.wait_procs(alive, timeout=5)
    for proc in still_alive:
        log.error(f"Process {proc.pid} survived a forced kill.")
    return not still_alive
