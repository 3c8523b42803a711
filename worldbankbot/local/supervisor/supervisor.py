import logging
import threading
from typing import Callable, List, Optional

from worldbankbot.local.supervisor.errors import (
    AlreadyRunningError,
    ShutdownTimeoutError,
    SupervisorFailedError,
)
from worldbankbot.local.supervisor.models import (
    RestartPolicy,
    ServiceDescriptor,
    SupervisorState,
    WorkerHandle,
)

log = logging.getLogger(__name__)

FailureListener = Callable[["Supervisor"], None]


class Supervisor:
    """
    Owns the lifecycle of a single long-running worker.

    The worker's blocking `start()` runs on a dedicated daemon thread. When it
    returns or raises without a stop having been requested, the worker is
    considered crashed and the restart policy decides between a restart with
    a fresh worker instance and the terminal FAILED state.
    """

    def __init__(
        self,
        worker_factory: Callable[[], object],
        policy: Optional[RestartPolicy] = None,
        descriptor: Optional[ServiceDescriptor] = None,
        stop_timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        :param worker_factory: Callable returning a new worker with `start()` and `stop()`.
        :param policy: Restart policy applied to unexpected worker exits.
        :param descriptor: Service metadata, used for log messages.
        :param stop_timeout: Seconds `stop()` waits for the worker to cease.
        :param logger: Logger receiving lifecycle events. Defaults to the module logger.
        """
        self.worker_factory = worker_factory
        self.policy = policy or RestartPolicy()
        self.descriptor = descriptor or ServiceDescriptor()
        self.stop_timeout = stop_timeout
        self.log = logger or log

        self.last_error: Optional[BaseException] = None
        self._cond = threading.Condition()
        self._state = SupervisorState.STOPPED
        self._handle: Optional[WorkerHandle] = None
        self._generation = 0
        self._restart_count = 0
        # Bumped by start() and stop(); a pending restart from an older epoch is dropped.
        self._epoch = 0
        self._stop_requested = threading.Event()
        self._failure_listeners: List[FailureListener] = []

    #* --- Introspection ---
    @property
    def state(self) -> SupervisorState:
        with self._cond:
            return self._state

    @property
    def restart_count(self) -> int:
        with self._cond:
            return self._restart_count

    @property
    def is_running(self) -> bool:
        return self.state is SupervisorState.RUNNING

    @property
    def handle(self) -> Optional[WorkerHandle]:
        with self._cond:
            return self._handle

    def add_failure_listener(self, listener: FailureListener) -> None:
        """Registers a callback invoked once when the supervisor enters FAILED."""
        self._failure_listeners.append(listener)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Blocks until the supervisor is STOPPED or FAILED.

        :param timeout: Maximum seconds to wait, or None to wait forever.
        :return: True if a terminal state was reached, False on timeout.
        """
        with self._cond:
            return self._cond.wait_for(lambda: not self._state.is_active, timeout)

    #* --- Lifecycle ---
    def start(self) -> None:
        """
        Constructs a new worker and starts it on a background thread.

        :raises AlreadyRunningError: If a worker is already active.
        :raises SupervisorFailedError: If the restart policy has been exhausted.
        """
        name = self.descriptor.name
        with self._cond:
            if self._state is SupervisorState.FAILED:
                raise SupervisorFailedError(
                    f"Service '{name}' has failed and must be restarted by an operator."
                )
            if self._state.is_active:
                raise AlreadyRunningError(f"Service '{name}' is already {self._state.value}.")

            self._epoch += 1
            self._stop_requested.clear()
            self._set_state(SupervisorState.STARTING)
            self.log.info(f"Service '{name}' is starting...")
            try:
                handle = self._launch_worker()
            except Exception:
                self._set_state(SupervisorState.STOPPED)
                raise
            self._set_state(SupervisorState.RUNNING)
        self.log.info(f"Service '{name}' started (worker #{handle.generation}).")

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stops the current worker and releases its handle.

        Calling this while STOPPED or FAILED is a no-op.

        :param timeout: Overrides the configured stop timeout.
        :raises ShutdownTimeoutError: If the worker is still running after the timeout.
        """
        timeout = self.stop_timeout if timeout is None else timeout
        name = self.descriptor.name

        with self._cond:
            if not self._state.is_active:
                self.log.info(f"Service '{name}' is {self._state.value}. Nothing to stop.")
                return
            # A repeated stop after a timeout only waits on the same handle again.
            previous_state = self._state
            self._stop_requested.set()
            self._epoch += 1
            self._set_state(SupervisorState.STOPPING)
            handle = self._handle

        self.log.info(f"Service '{name}' is stopping...")
        if handle is not None:
            if previous_state is SupervisorState.RUNNING:
                self._call_worker_stop(handle)
            thread = handle.thread
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout)
                if thread.is_alive():
                    self.log.critical(
                        f"Worker #{handle.generation} of '{name}' did not stop within {timeout:.1f}s."
                    )
                    raise ShutdownTimeoutError(timeout)

        with self._cond:
            self._handle = None
            self._set_state(SupervisorState.STOPPED)
        self.log.info(f"Service '{name}' stopped.")

    #* --- Internals ---
    def _set_state(self, new_state: SupervisorState) -> None:
        """Changes state and wakes waiters. The caller must hold the condition."""
        if new_state is self._state:
            return
        self.log.debug(f"Supervisor state: {self._state.value} -> {new_state.value}")
        self._state = new_state
        self._cond.notify_all()

    def _launch_worker(self) -> WorkerHandle:
        """Creates a worker and its runner thread. The caller must hold the condition."""
        worker = self.worker_factory()
        self._generation += 1
        handle = WorkerHandle(worker=worker, generation=self._generation)
        handle.thread = threading.Thread(
            target=self._run_worker,
            args=(handle,),
            daemon=True,
            name=f"{self.descriptor.name}Worker-{handle.generation}",
        )
        self._handle = handle
        handle.thread.start()
        return handle

    def _run_worker(self, handle: WorkerHandle) -> None:
        """Runner thread target. Drives the worker and reports how it ended."""
        error: Optional[BaseException] = None
        try:
            handle.worker.start()
        except Exception as e:
            error = e
        self._on_worker_exit(handle, error)

    def _call_worker_stop(self, handle: WorkerHandle) -> None:
        try:
            handle.worker.stop()
        except Exception as e:
            self.log.error(f"Worker #{handle.generation} raised while stopping: {e}", exc_info=True)

    def _on_worker_exit(self, handle: WorkerHandle, error: Optional[BaseException]) -> None:
        """Applies the restart policy after the worker's start() has returned."""
        with self._cond:
            if handle is not self._handle or self._stop_requested.is_set():
                return
            self.last_error = error
            self._set_state(SupervisorState.CRASHED)

        if error is not None:
            self.log.error(
                f"Worker #{handle.generation} crashed after {handle.uptime:.1f}s: {error}",
                exc_info=error,
            )
        else:
            self.log.error(f"Worker #{handle.generation} exited unexpectedly after {handle.uptime:.1f}s.")

        # Let the crashed worker release whatever it acquired.
        self._call_worker_stop(handle)

        with self._cond:
            if self._stop_requested.is_set():
                return
            self._handle = None

            reset_period = self.policy.reset_period
            if reset_period is not None and self._restart_count and handle.uptime >= reset_period:
                self.log.info(
                    f"Worker ran for {handle.uptime:.1f}s (>= {reset_period}s). Resetting restart count."
                )
                self._restart_count = 0

            if self._restart_count >= self.policy.max_immediate_restarts:
                self._set_state(SupervisorState.FAILED)
                attempt = None
            else:
                self._restart_count += 1
                attempt = self._restart_count
                epoch = self._epoch
                self._set_state(SupervisorState.RESTARTING)

        if attempt is None:
            self._fail(f"Restart limit of {self.policy.max_immediate_restarts} reached.")
            return

        self.log.warning(
            f"Restarting service '{self.descriptor.name}' "
            f"(attempt {attempt}/{self.policy.max_immediate_restarts})..."
        )
        if self.policy.restart_delay > 0 and self._stop_requested.wait(self.policy.restart_delay):
            return

        with self._cond:
            if (self._stop_requested.is_set() or self._epoch != epoch
                    or self._state is not SupervisorState.RESTARTING or self._handle is not None):
                self.log.info(f"Restart of '{self.descriptor.name}' superseded by a stop request.")
                return
            try:
                new_handle = self._launch_worker()
            except Exception as e:
                self.last_error = e
                self._handle = None
                self._set_state(SupervisorState.FAILED)
                launch_error = e
            else:
                self._set_state(SupervisorState.RUNNING)
                launch_error = None

        if launch_error is not None:
            self.log.error(f"Could not create a replacement worker: {launch_error}", exc_info=launch_error)
            self._fail("Replacement worker could not be created.")
            return
        self.log.info(f"Service '{self.descriptor.name}' restarted (worker #{new_handle.generation}).")

    def _fail(self, reason: str) -> None:
        self.log.critical(
            f"PANIC: Service '{self.descriptor.name}' has failed. {reason} "
            "Automatic restarts are exhausted."
        )
        for listener in list(self._failure_listeners):
            try:
                listener(self)
            except Exception as e:
                self.log.error(f"Failure listener {listener!r} raised: {e}", exc_info=True)
