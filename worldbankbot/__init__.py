"""
WorldBankBot service.

Runs the bot as a supervised, restartable background service.
"""

__version__ = "1.0.0"
