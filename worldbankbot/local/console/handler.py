import time
import psutil
import logging
from typing import List

from worldbankbot.local import effective_settings as config
from worldbankbot.local.host import ExitCode
from worldbankbot.local.service import build_console_host, build_installer, build_supervisor
from worldbankbot.local.supervisor import ServiceError, persistence, process_utils
from worldbankbot.log import set_console_level, setup_logging

log = logging.getLogger(__name__)


#* --- Service Lifecycle ---
def run_service(verbose: bool = False) -> int:
    """
    Runs the service in the foreground until it is stopped or fails.

    :param verbose: If True, sets console logging to DEBUG level.
    :return: The process exit status.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO)
    try:
        supervisor = build_supervisor(config)
    except ServiceError as e:
        log.critical(f"Cannot run service: {e}")
        return ExitCode.STARTUP_ERROR
    return build_console_host(config, supervisor).run()

def start_background() -> bool:
    """Launches the service host as a detached background process."""
    if persistence.check_if_already_running(config.PID_FILE_PATH):
        return False

    args = [config.PYTHON_EXECUTABLE, "-m", "worldbankbot.main", "run"]
    proc = process_utils.launch_process(
        args, "service", cwd=config.BASE_DIR, capture_output=False, detached=True
    )

    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        if persistence.get_pid_info(config.PID_FILE_PATH):
            log.info(f"Service '{config.SERVICE_NAME}' is running in the background (PID {proc.pid}).")
            return True
        if proc.poll() is not None:
            log.error(f"Service host exited during startup with code {proc.returncode}.")
            return False
        time.sleep(0.2)
    log.warning("Service host did not write its PID file within 10 seconds.")
    return False

def stop_background() -> bool:
    """
    Asks a background service host to stop, force-terminating it if it does not.

    :return: True if no service process is left running.
    """
    pid_info = persistence.get_pid_info(config.PID_FILE_PATH)
    if not pid_info:
        log.info("No running service found to stop.")
        persistence.cleanup_shutdown_files(config.PID_FILE_PATH, config.SHUTDOWN_SIGNAL_PATH)
        return True

    persistence.request_shutdown(config.SHUTDOWN_SIGNAL_PATH)
    procs = []
    for pid in pid_info.values():
        if process_utils.pid_exists(pid):
            try:
                procs.append(process_utils.get_process_from_pid(pid))
            except psutil.NoSuchProcess:
                continue

    timeout = float(config.STOP_TIMEOUT_SECONDS) + float(config.WORKER_GRACE_PERIOD)
    log.info(f"Waiting up to {timeout:.0f}s for {len(procs)} service process(es) to stop...")
    _, alive = psutil.wait_procs(procs, timeout=timeout)

    all_stopped = True
    for proc in alive:
        log.warning(f"Service process {proc.pid} did not stop in time. Terminating its process tree.")
        all_stopped = process_utils.terminate_process_tree(proc.pid, float(config.WORKER_GRACE_PERIOD)) and all_stopped

    persistence.cleanup_shutdown_files(config.PID_FILE_PATH, config.SHUTDOWN_SIGNAL_PATH)
    log.info("Service stop sequence completed.")
    return all_stopped

#* --- Status ---
def display_status() -> None:
    """Checks and displays the current status of the service host and the bot processes."""
    pids = persistence.get_pid_info(config.PID_FILE_PATH)
    if not pids:
        print(f"\n{config.SERVICE_DISPLAY_NAME} is STOPPED (No PID file found).\n")
        return

    print(f"\n--- {config.SERVICE_DISPLAY_NAME} Status ---")
    for name, pid in sorted(pids.items()):
        if not process_utils.pid_exists(pid):
            print(f"  - {name:<25} : PID {pid:<8} | Status: STOPPED (Stale PID)")
            print("\nWARNING: The service is stopped but a stale PID file exists.")
            print("You should run 'stop' to clean it up before starting again.")
            continue
        try:
            p = process_utils.get_process_from_pid(pid)
            procs = process_utils.collect_process_tree(pid)
            for proc in procs:
                label = name if proc.pid == pid else f"{name} child"
                cpu = proc.cpu_percent(interval=0.1)
                mem = proc.memory_info().rss
                print(f"  - {proc.name() + ' (' + label + ')':<32} : PID {proc.pid:<8} | "
                      f"Status: {process_utils.get_proc_status_string(proc).upper()} | "
                      f"CPU: {cpu:.1f}% | MEM: {mem/1024/1024:.1f} MB")
            runtime = time.time() - p.create_time()
            print(f"\nRuntime: {time.strftime('%H:%M:%S', time.gmtime(runtime))}")
        except psutil.NoSuchProcess:
            print(f"  - {name:<25} : PID {pid:<8} | Status: STOPPED (Stale PID)")
        except psutil.AccessDenied:
            print(f"  - {name:<25} : PID {pid:<8} | Status: RUNNING (Access Denied)")
    print("-" * 26 + "\n")

#* --- Installation ---
def handle_install_command(args: List[str]) -> bool:
    """Writes the systemd unit for the service. Use '--no-reload' to skip systemctl."""
    installer = build_installer(config)
    try:
        path = installer.install(reload="--no-reload" not in args)
    except OSError as e:
        log.error(f"Failed to install service unit: {e}")
        return False
    print(f"Service unit written to {path}.")
    return True

def handle_uninstall_command(args: List[str]) -> bool:
    """Removes the systemd unit for the service."""
    installer = build_installer(config)
    try:
        return installer.uninstall(reload="--no-reload" not in args)
    except OSError as e:
        log.error(f"Failed to remove service unit: {e}")
        return False

#* --- Configuration ---
def _config_show():
    """Displays the current values of all modifiable settings."""
    print("\n--- Current Service Configuration ---")
    print(f"(Overrides file: {config.OVERRIDES_JSON_PATH})")
    for key in sorted(config.MODIFIABLE_SETTINGS):
        print(f"  {key} = {config.get(key, 'N/A')}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("A restart is required for changes to apply to a running service.")
    print("---------------------------------------\n")

def _config_set(args: List[str]):
    """Sets a modifiable setting and persists it to the overrides file."""
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return

    key, value_str = args[0].upper(), " ".join(args[1:])
    try:
        new_value = config.update_setting(key, value_str)
    except KeyError:
        print(f"Error: '{key}' is not a modifiable setting.")
        return
    except (ValueError, TypeError) as e:
        print(f"Error: Could not convert value '{value_str}' for key '{key}': {e}")
        return

    config.save_overrides()
    print(f"Setting '{key}' updated to '{new_value}'.")
    if persistence.get_pid_info(config.PID_FILE_PATH):
        print("The service is running. Use 'restart' to apply the change.")

def _config_help():
    """Displays help for the config command."""
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Change a setting. Requires a restart to apply.")
    print("  config help                - Show this help message.")

def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands for the 'config' command-line interface.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")

#* --- Console Helpers ---
def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    status = "ON" if config.VERBOSE_LOGGING else "OFF"
    if set_console_level(new_level):
        print(f"Verbose console logging is now {status}.")
        log.debug("Debug logging test: This message should only appear when verbose is ON.")
    else:
        print("Could not find console handler to modify level.")

def print_help():
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  run                    - Run the service in the foreground (used by systemd).")
    print("  start                  - Start the service in the background.")
    print("  stop                   - Stop the background service gracefully.")
    print("  restart                - Stop and then start the service.")
    print("  status                 - Show the current status of the service.")
    print("  install [--no-reload]  - Register the service with systemd.")
    print("  uninstall [--no-reload]- Remove the service from systemd.")
    print("  config <cmd>           - Manage configuration. Use 'config help' for more details.")
    print("  verbose                - Toggle detailed DEBUG log output in the console.")
    print("  exit                   - Exit the management console.")
    print()
