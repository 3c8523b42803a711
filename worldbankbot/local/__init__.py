"""
Local package for the WorldBankBot service.

This package provides the effective service configuration together with the
supervisor, host, worker and console subpackages built on top of it.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
