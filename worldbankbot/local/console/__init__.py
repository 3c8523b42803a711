"""
This module initializes the console package, exposing command execution,
the foreground service runner, verbose logging toggling and help output.
"""

from .process import execute_command
from .handler import run_service, toggle_verbose_logging, print_help

__all__ = ["execute_command", "run_service", "toggle_verbose_logging", "print_help"]
