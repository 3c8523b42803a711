"""
Unit tests for worldbankbot/local/worker/process.py - ProcessWorker
"""

import sys
import logging
import threading

import pytest

from conftest import wait_until
from worldbankbot.local.supervisor import WorkerExitError
from worldbankbot.local.worker import ProcessWorker


def python_worker(code, name="testbot", **kwargs):
    return ProcessWorker([sys.executable, "-c", code], name=name, **kwargs)


class TestProcessWorkerStart:
    """Tests for ProcessWorker.start()."""

    def test_clean_exit_returns(self):
        worker = python_worker("pass")
        worker.start()
        assert worker.returncode == 0

    def test_failure_exit_raises(self):
        worker = python_worker("import sys; sys.exit(3)")
        with pytest.raises(WorkerExitError) as excinfo:
            worker.start()
        assert excinfo.value.returncode == 3
        assert excinfo.value.name == "testbot"

    def test_output_is_forwarded_to_process_logger(self, caplog):
        worker = python_worker("print('tweet posted')", name="echobot")
        with caplog.at_level(logging.INFO, logger="proc.echobot"):
            worker.start()
            assert wait_until(lambda: any(
                r.name == "proc.echobot" and r.getMessage() == "tweet posted" for r in caplog.records
            ))

    def test_stderr_is_logged_as_error(self, caplog):
        worker = python_worker("import sys; sys.stderr.write('api down\\n')", name="errbot")
        with caplog.at_level(logging.INFO, logger="proc.errbot"):
            worker.start()
            assert wait_until(lambda: any(
                r.levelno == logging.ERROR and r.getMessage() == "api down" for r in caplog.records
            ))

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ProcessWorker([])


class TestProcessWorkerStop:
    """Tests for ProcessWorker.stop()."""

    def test_stop_terminates_running_process(self):
        worker = python_worker("import time; time.sleep(60)", grace_period=5)
        errors = []

        def run():
            try:
                worker.start()
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
        assert wait_until(lambda: worker.pid is not None)

        worker.stop()
        thread.join(10)

        assert not thread.is_alive()
        assert errors == []
        assert worker.returncode is not None

    def test_stop_before_start_prevents_launch(self):
        worker = python_worker("import time; time.sleep(60)")
        worker.stop()
        worker.start()
        assert worker.pid is None

    def test_stop_after_exit_is_noop(self):
        worker = python_worker("pass")
        worker.start()
        worker.stop()
        worker.stop()
        assert worker.returncode == 0
