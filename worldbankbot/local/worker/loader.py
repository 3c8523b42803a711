import sys
import shlex
import logging
import functools
import importlib

from worldbankbot.local.config import MergedSettings
from worldbankbot.local.supervisor.errors import WorkerLoadError
from worldbankbot.local.worker.base import WorkerFactory
from worldbankbot.local.worker.process import ProcessWorker

log = logging.getLogger(__name__)


def load_worker_factory(path: str) -> WorkerFactory:
    """
    Resolves a worker factory from an import path.

    :param path: A "package.module:attribute" string. The attribute may be
        dotted, e.g. "mybot.service:Bot.create".
    :return: The callable found at that path.
    :raises WorkerLoadError: If the path is malformed, the module cannot be
        imported, or the target is missing or not callable.
    """
    module_name, _, attr_path = path.partition(":")
    if not module_name or not attr_path:
        raise WorkerLoadError(f"Invalid worker factory '{path}'. Expected 'module:attribute'.")

    try:
        target = importlib.import_module(module_name)
    except ImportError as e:
        raise WorkerLoadError(f"Could not import worker module '{module_name}': {e}") from e

    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as e:
            raise WorkerLoadError(f"'{module_name}' has no attribute '{attr_path}'.") from e

    if not callable(target):
        raise WorkerLoadError(f"Worker factory '{path}' is not callable.")
    log.debug(f"Loaded worker factory '{path}'.")
    return target


def default_worker_factory(config: MergedSettings) -> WorkerFactory:
    """
    Builds the worker factory described by the configuration.

    WORKER_FACTORY takes precedence. Otherwise BOT_COMMAND is run as a child
    process.

    :raises WorkerLoadError: If neither setting is present.
    """
    if config.WORKER_FACTORY:
        return load_worker_factory(config.WORKER_FACTORY)

    if config.BOT_COMMAND:
        command = shlex.split(config.BOT_COMMAND, posix=sys.platform != "win32")
        return functools.partial(
            ProcessWorker,
            command,
            cwd=config.BOT_WORKING_DIR,
            name=config.SERVICE_NAME.lower(),
            grace_period=float(config.WORKER_GRACE_PERIOD),
        )

    raise WorkerLoadError("No worker configured. Set WORKER_FACTORY or BOT_COMMAND.")
