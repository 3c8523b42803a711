import sys
import logging
import threading

# Basic console logger for messages BEFORE full setup is complete.
# This logger will be replaced by the full setup later.
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)-8s - [console] - %(message)s',
    stream=sys.stdout
)
log = logging.getLogger("console")

import worldbankbot.local.console as console
from worldbankbot.local import effective_settings as config
from worldbankbot.local.supervisor import persistence
from worldbankbot.log import setup_logging

CONSOLE_LOCK = threading.Lock()


def main() -> None:
    """The main entry point for the service and its management console."""

    # Non-interactive mode for one-off commands
    if len(sys.argv) > 1:
        command, args = sys.argv[1].lower(), sys.argv[2:]
        verbose = "--verbose" in args or config.VERBOSE_LOGGING
        if "--verbose" in args:
            args.remove("--verbose")

        if command == "run":
            # The service host configures its own logging and reports its exit status.
            sys.exit(int(console.run_service(verbose)))

        setup_logging(logging.DEBUG if verbose else logging.INFO)
        config.VERBOSE_LOGGING = verbose
        console.execute_command(command, args)
        return

    setup_logging(logging.INFO)

    # Interactive mode
    print(f"--- {config.SERVICE_DISPLAY_NAME} Management Console ---")
    print("Type 'help' for a list of commands.")

    with CONSOLE_LOCK:
        status = "Running" if persistence.get_pid_info(config.PID_FILE_PATH) else "Stopped"
    print(f"Service is currently {status}.")

    while True:
        try:
            # The input prompt must be outside the lock to not block background threads
            command_line_str = input("> ")
            with CONSOLE_LOCK:
                if not command_line_str.strip():
                    continue
                command_line = command_line_str.strip().split()
                command, args = command_line[0].lower(), command_line[1:]
                log.debug(f"Received command: {command}, args: {args}")

                if command == "run":
                    print("'run' blocks the console. Use 'start' to run the service in the background.")
                    continue
                if console.execute_command(command, args):
                    break

        except (KeyboardInterrupt, EOFError):
            with CONSOLE_LOCK:
                log.warning("\nExiting console.")
                break
        except Exception as e:
            with CONSOLE_LOCK:
                log.error(f"An unexpected error occurred in the console: {e}", exc_info=True)

if __name__ == "__main__":
    main()
