"""
Logging module for the service.
This module provides functionality to set up console and Grafana Loki logging.
"""

from .setup import setup_logging, set_console_level

__all__ = ["setup_logging", "set_console_level"]
