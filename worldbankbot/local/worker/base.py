from abc import ABC, abstractmethod
from typing import Callable


class Worker(ABC):
    """
    The long-running task whose lifecycle the supervisor manages.

    `start()` runs the worker's main work and blocks until that work ends.
    `stop()` is called from another thread; it must make `start()` return
    and release everything the worker acquired. Any object with these two
    methods can be supervised, subclassing is optional.
    """

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


WorkerFactory = Callable[[], Worker]
