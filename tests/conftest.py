import time
import logging
import threading
from typing import Callable, List, Optional

import pytest

from worldbankbot.local.supervisor import RestartPolicy, ServiceDescriptor, Supervisor


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Polls `predicate` until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class FakeWorker:
    """A worker whose start() blocks until it is stopped, crashed or told to exit."""

    def __init__(self, stubborn: bool = False, stop_error: Optional[Exception] = None):
        self.started = threading.Event()
        self.stop_calls = 0
        self.stubborn = stubborn
        self.stop_error = stop_error
        self._release = threading.Event()
        self._error: Optional[Exception] = None

    def start(self):
        self.started.set()
        self._release.wait()
        if self._error is not None:
            raise self._error

    def stop(self):
        self.stop_calls += 1
        if not self.stubborn:
            self._release.set()
        if self.stop_error is not None:
            raise self.stop_error

    def crash(self, error: Optional[Exception] = None):
        self._error = error or RuntimeError("bot crashed")
        self._release.set()

    def exit(self):
        self._release.set()

    def release(self):
        self._release.set()


class FakeWorkerFactory:
    """Builds FakeWorkers and remembers every instance it created."""

    def __init__(self, **worker_kwargs):
        self.workers: List[FakeWorker] = []
        self.worker_kwargs = worker_kwargs

    def __call__(self) -> FakeWorker:
        worker = FakeWorker(**self.worker_kwargs)
        self.workers.append(worker)
        return worker

    @property
    def current(self) -> FakeWorker:
        return self.workers[-1]


@pytest.fixture
def factory():
    return FakeWorkerFactory()


@pytest.fixture
def make_supervisor(factory):
    created: List[Supervisor] = []
    factories = [factory]

    def _make(policy: Optional[RestartPolicy] = None, worker_factory=None, stop_timeout: float = 2.0):
        supervisor = Supervisor(
            worker_factory or factory,
            policy=policy or RestartPolicy(),
            descriptor=ServiceDescriptor(name="TestBot", display_name="Test Bot", description="Test"),
            stop_timeout=stop_timeout,
            logger=logging.getLogger("tests.supervisor"),
        )
        created.append(supervisor)
        if worker_factory is not None and worker_factory not in factories:
            factories.append(worker_factory)
        return supervisor

    yield _make

    for worker_factory in factories:
        for worker in getattr(worker_factory, "workers", []):
            worker.release()
    for supervisor in created:
        if supervisor.state.is_active:
            try:
                supervisor.stop()
            except Exception:
                pass
