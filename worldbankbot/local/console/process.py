import time
import logging
from typing import List

from worldbankbot.local.console.handler import (
    display_status,
    handle_config_command,
    handle_install_command,
    handle_uninstall_command,
    print_help,
    start_background,
    stop_background,
    toggle_verbose_logging,
)

log = logging.getLogger(__name__)


def execute_command(command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param command: The main command string (e.g., 'start', 'config').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "start": start_background,
        "stop": stop_background,
        "status": display_status,
        "install": lambda: handle_install_command(args),
        "uninstall": lambda: handle_uninstall_command(args),
        "config": lambda: handle_config_command(args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
        "exit": lambda: True
    }

    should_exit = False
    if command in command_map:
        result = command_map[command]()
        if command == "exit" and result is True:
            should_exit = True

    elif command == "restart":
        log.info("Stopping service...")
        stop_background()
        time.sleep(1)
        log.info("Starting service...")
        start_background()

    else:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")

    return should_exit
