import logging
import sys

from worldbankbot.local.config import effective_settings as config
from worldbankbot.log.handler import LokiHandler


class MainFormatter(logging.Formatter):
    """A custom formatter to handle regular logs and raw bot process output."""

    def __init__(self) -> None:
        super().__init__('%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s')

    def format(self, record):
        # Lines forwarded from the bot process are already formatted by the bot.
        if record.name.startswith('proc.'):
            return record.getMessage()
        return super().format(record)


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configures the root logger for the service.
    This sets up handlers for the console and optionally Loki,
    clearing any previously configured handlers to prevent duplication.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    # Clear any existing handlers to prevent re-adding them on re-runs
    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- Loki Handler (conditional) ---
    if config.LOKI_ENABLED:
        try:
            loki_handler = LokiHandler(
                url=config.LOKI_URL,
                org_id=config.LOKI_ORG_ID,
                job=config.SERVICE_NAME.lower(),
                flush_interval=config.LOG_BUFFER_FLUSH_INTERVAL,
            )
            loki_handler.setLevel(logging.INFO) # Avoid spamming Loki with DEBUG logs
            loki_handler.setFormatter(MainFormatter())
            root_logger.addHandler(loki_handler)
            root_logger.info(f"Grafana Loki logging handler initialized for {config.LOKI_URL}.")
        except Exception as e:
            root_logger.error(f"Failed to initialize Grafana Loki logging handler: {e}")


def set_console_level(level: int) -> bool:
    """
    Changes the level of the console handler installed by setup_logging.

    :return: True if a console handler was found.
    """
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)
            return True
    return False
