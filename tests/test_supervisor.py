"""
Unit tests for worldbankbot/local/supervisor/supervisor.py - Supervisor lifecycle
"""

import logging
import threading

import pytest

from conftest import FakeWorkerFactory, wait_until
from worldbankbot.local.supervisor import (
    AlreadyRunningError,
    RestartPolicy,
    ServiceDescriptor,
    ShutdownTimeoutError,
    Supervisor,
    SupervisorFailedError,
    SupervisorState,
)


def wait_for_state(supervisor, state, timeout=5.0):
    return wait_until(lambda: supervisor.state is state, timeout)


class TestStartStop:
    """Tests for explicit start() and stop() calls."""

    def test_start_runs_worker(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()

        assert supervisor.state is SupervisorState.RUNNING
        assert supervisor.is_running
        assert factory.current.started.wait(2)
        assert supervisor.handle.worker is factory.current

    def test_start_when_running_raises_without_second_handle(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()
        handle = supervisor.handle

        with pytest.raises(AlreadyRunningError):
            supervisor.start()

        assert len(factory.workers) == 1
        assert supervisor.handle is handle
        assert supervisor.state is SupervisorState.RUNNING

    def test_stop_when_stopped_is_noop(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert factory.workers == []

    def test_stop_releases_handle(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()
        supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert supervisor.handle is None
        assert factory.current.stop_calls == 1

    def test_start_stop_start_stop_leaves_no_handle(self, make_supervisor, factory):
        supervisor = make_supervisor()
        for _ in range(3):
            supervisor.start()
            supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert supervisor.handle is None
        assert len(factory.workers) == 3
        assert all(w.stop_calls == 1 for w in factory.workers)
        assert supervisor.restart_count == 0

    def test_stop_is_not_treated_as_crash(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()
        supervisor.stop()

        assert len(factory.workers) == 1
        assert supervisor.last_error is None

    def test_factory_error_leaves_supervisor_stopped(self, make_supervisor):
        def broken_factory():
            raise RuntimeError("no bot")

        supervisor = make_supervisor(worker_factory=broken_factory)
        with pytest.raises(RuntimeError, match="no bot"):
            supervisor.start()
        assert supervisor.state is SupervisorState.STOPPED
        assert supervisor.handle is None

    def test_worker_stop_error_is_logged_and_stop_completes(self, make_supervisor, caplog):
        factory = FakeWorkerFactory(stop_error=ValueError("socket already closed"))
        supervisor = make_supervisor(worker_factory=factory)
        supervisor.start()

        with caplog.at_level(logging.ERROR, logger="tests.supervisor"):
            supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert "socket already closed" in caplog.text

    def test_wait_returns_after_stop(self, make_supervisor):
        supervisor = make_supervisor()
        supervisor.start()
        assert supervisor.wait(0.05) is False

        threading.Timer(0.05, supervisor.stop).start()
        assert supervisor.wait(5) is True


class TestShutdownTimeout:
    """Tests for the bounded stop."""

    def test_stubborn_worker_raises_timeout(self, make_supervisor):
        factory = FakeWorkerFactory(stubborn=True)
        supervisor = make_supervisor(worker_factory=factory)
        supervisor.start()

        with pytest.raises(ShutdownTimeoutError):
            supervisor.stop(timeout=0.1)

        assert supervisor.state is SupervisorState.STOPPING
        assert supervisor.handle is not None
        with pytest.raises(AlreadyRunningError):
            supervisor.start()

    def test_stop_after_timeout_completes_once_worker_ceases(self, make_supervisor):
        factory = FakeWorkerFactory(stubborn=True)
        supervisor = make_supervisor(worker_factory=factory)
        supervisor.start()
        with pytest.raises(ShutdownTimeoutError):
            supervisor.stop(timeout=0.1)

        factory.current.release()
        supervisor.stop(timeout=2)

        assert supervisor.state is SupervisorState.STOPPED
        assert factory.current.stop_calls == 1


class TestRestartPolicy:
    """Tests for automatic restarts after unexpected worker exits."""

    def test_single_crash_restarts_worker(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()
        first = factory.current

        first.crash()

        assert wait_until(lambda: len(factory.workers) == 2)
        assert wait_for_state(supervisor, SupervisorState.RUNNING)
        assert supervisor.restart_count == 1
        assert isinstance(supervisor.last_error, RuntimeError)
        assert first.stop_calls == 1
        assert supervisor.handle.worker is factory.current

    def test_clean_exit_counts_as_unexpected(self, make_supervisor, factory):
        supervisor = make_supervisor()
        supervisor.start()

        factory.current.exit()

        assert wait_until(lambda: len(factory.workers) == 2)
        assert wait_for_state(supervisor, SupervisorState.RUNNING)
        assert supervisor.last_error is None

    def test_second_crash_fails_without_restart(self, make_supervisor, factory):
        failures = []
        supervisor = make_supervisor()
        supervisor.add_failure_listener(failures.append)
        supervisor.start()

        factory.current.crash()
        assert wait_until(lambda: len(factory.workers) == 2)
        assert wait_for_state(supervisor, SupervisorState.RUNNING)
        factory.current.crash()

        assert wait_for_state(supervisor, SupervisorState.FAILED)
        assert supervisor.wait(1) is True
        assert len(factory.workers) == 2
        assert wait_until(lambda: failures == [supervisor])
        assert supervisor.handle is None

    def test_failed_is_terminal(self, make_supervisor, factory):
        supervisor = make_supervisor(policy=RestartPolicy(max_immediate_restarts=0))
        supervisor.start()
        factory.current.crash()
        assert wait_for_state(supervisor, SupervisorState.FAILED)

        with pytest.raises(SupervisorFailedError):
            supervisor.start()
        supervisor.stop()

        assert supervisor.state is SupervisorState.FAILED
        assert len(factory.workers) == 1

    def test_reset_period_clears_restart_count(self, make_supervisor, factory):
        supervisor = make_supervisor(policy=RestartPolicy(max_immediate_restarts=1, reset_period=0.0))
        supervisor.start()

        for expected_workers in (2, 3):
            factory.current.crash()
            assert wait_until(lambda: len(factory.workers) == expected_workers)
            assert wait_for_state(supervisor, SupervisorState.RUNNING)

        assert supervisor.restart_count == 1

    def test_stop_interrupts_restart_delay(self, make_supervisor, factory):
        supervisor = make_supervisor(policy=RestartPolicy(restart_delay=30))
        supervisor.start()
        factory.current.crash()
        assert wait_for_state(supervisor, SupervisorState.RESTARTING)

        supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert wait_until(lambda: not any(
            t.name.startswith("TestBotWorker") for t in threading.enumerate()
        ))
        assert len(factory.workers) == 1

    def test_failed_replacement_factory_fails_supervisor(self, make_supervisor):
        calls = []
        factory = FakeWorkerFactory()

        def flaky_factory():
            calls.append(1)
            if len(calls) > 1:
                raise OSError("bot binary missing")
            return factory()

        supervisor = make_supervisor(worker_factory=flaky_factory)
        supervisor.start()
        factory.current.crash()

        assert wait_for_state(supervisor, SupervisorState.FAILED)
        assert isinstance(supervisor.last_error, OSError)

    def test_crash_and_restart_are_logged(self, make_supervisor, factory, caplog):
        supervisor = make_supervisor(policy=RestartPolicy(max_immediate_restarts=1))
        with caplog.at_level(logging.INFO, logger="tests.supervisor"):
            supervisor.start()
            factory.current.crash(RuntimeError("rate limited"))
            assert wait_until(lambda: len(factory.workers) == 2)
            assert wait_for_state(supervisor, SupervisorState.RUNNING)
            factory.current.crash()
            assert wait_for_state(supervisor, SupervisorState.FAILED)
            assert wait_until(lambda: any(r.levelno == logging.CRITICAL for r in caplog.records))

        messages = [r.getMessage() for r in caplog.records]
        assert any("started" in m for m in messages)
        assert any("crashed" in m and "rate limited" in m for m in messages)
        assert any("restarted" in m for m in messages)
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)


class InterleavingLogger(logging.Logger):
    """Runs a callback once, right after the supervisor announces a restart."""

    def __init__(self, callback):
        super().__init__("tests.supervisor.interleaving")
        self.callback = callback
        self.fired = False

    def warning(self, msg, *args, **kwargs):
        super().warning(msg, *args, **kwargs)
        if not self.fired and str(msg).startswith("Restarting"):
            self.fired = True
            self.callback()


class TestRestartRaces:
    """Tests for stop() and start() racing a pending restart."""

    def test_stop_and_start_during_restart_keep_one_worker(self, factory):
        def stop_then_start():
            supervisor.stop()
            supervisor.start()

        supervisor = Supervisor(
            factory,
            policy=RestartPolicy(max_immediate_restarts=1),
            descriptor=ServiceDescriptor(name="TestBot", display_name="Test Bot", description="Test"),
            stop_timeout=2.0,
            logger=InterleavingLogger(stop_then_start),
        )
        supervisor.start()
        first = factory.current

        first.crash()

        assert wait_until(lambda: supervisor.log.fired)
        assert wait_until(lambda: not any(
            t.name == "TestBotWorker-1" for t in threading.enumerate()
        ))
        assert len(factory.workers) == 2
        assert supervisor.state is SupervisorState.RUNNING
        assert supervisor.handle.worker is factory.current

        supervisor.stop()

        assert supervisor.state is SupervisorState.STOPPED
        assert all(w.stop_calls == 1 for w in factory.workers)
        assert wait_until(lambda: not any(
            t.name.startswith("TestBotWorker") for t in threading.enumerate()
        ))
