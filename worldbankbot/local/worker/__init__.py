"""
Worker package.

Defines the worker contract and the stock workers the service can run.
"""
from .base import Worker, WorkerFactory
from .process import ProcessWorker
from .loader import default_worker_factory, load_worker_factory

__all__ = ["Worker", "WorkerFactory", "ProcessWorker", "default_worker_factory", "load_worker_factory"]
