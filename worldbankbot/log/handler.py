import sys
import socket
import logging
import threading
from typing import Any, Deque, Dict, List, Optional
from collections import deque

import requests


class LokiHandler(logging.Handler):
    """
    A custom logging handler that sends logs to a Grafana Loki instance
    in batches using a background thread.
    """
    def __init__(self, url: str, org_id: Optional[str] = None, job: str = "worldbankbot",
                 flush_interval: float = 10, batch_size: int = 200):
        """
        Initializes the Loki handler.

        :param url: The base URL of the Loki instance.
        :param org_id: The tenant ID for Loki (e.g., 'X-Scope-OrgID').
        :param job: Value of the `job` stream label.
        :param flush_interval: Seconds between periodic flushes.
        :param batch_size: Buffered entries that trigger an immediate flush.
        """
        super().__init__()
        self.url = f"{url.rstrip('/')}/loki/api/v1/push"
        self.org_id = org_id
        self.job = job
        self.log_buffer: Deque[Dict[str, Any]] = deque()
        self.buffer_lock = threading.Lock()
        self.flush_interval = flush_interval
        self.batch_size = batch_size
        self.hostname = socket.gethostname() or 'unknown-host'

        self.stop_event = threading.Event()
        self.flush_thread = threading.Thread(target=self._periodic_flush, daemon=True, name="LokiFlushThread")
        self.flush_thread.start()

    def _periodic_flush(self) -> None:
        """
        Periodically flushes the log buffer. This runs in a background thread.
        The final flush is called when the handler is closed.
        """
        while not self.stop_event.wait(self.flush_interval):
            self.flush()
        self.flush()

    def build_entry(self, record: logging.LogRecord) -> Dict[str, Any]:
        """Converts a log record into a Loki stream entry."""
        if record.name.startswith('proc.'):
            msg = record.getMessage()
            logger_name = record.name.split('.')[-1]
        else:
            msg = self.format(record)
            logger_name = record.name

        return {
            "stream": {
                "job": self.job,
                "level": record.levelname.lower(),
                "hostname": self.hostname,
                "logger": logger_name,
            },
            "values": [
                [str(int(record.created * 1e9)), msg]
            ]
        }

    def emit(self, record: logging.LogRecord) -> None:
        """
        Adds a log record to the internal buffer.
        If the buffer reaches the batch size, it triggers a flush.

        :param record: The log record to be processed.
        """
        try:
            entry = self.build_entry(record)
            with self.buffer_lock:
                self.log_buffer.append(entry)
                should_flush = len(self.log_buffer) >= self.batch_size
            if should_flush:
                self.flush()
        except Exception:
            self.handleError(record)

    def _take_buffer(self) -> List[Dict[str, Any]]:
        with self.buffer_lock:
            entries = list(self.log_buffer)
            self.log_buffer.clear()
        return entries

    def flush(self) -> None:
        """Sends all buffered entries to Loki. The network call is made without holding the lock."""
        logs_to_send = self._take_buffer()
        if not logs_to_send:
            return

        headers = {'Content-Type': 'application/json'}
        if self.org_id:
            headers['X-Scope-OrgID'] = self.org_id
        try:
            response = requests.post(self.url, json={"streams": logs_to_send}, headers=headers, timeout=5)
            # 204 No Content is the success status for Loki push
            if response.status_code != 204:
                print(
                    f"ERROR: Loki returned non-204 status: {response.status_code} - {response.text}",
                    file=sys.stderr,
                )
        except requests.RequestException as e:
            print(f"CRITICAL: Failed to send {len(logs_to_send)} logs to Loki: {e}", file=sys.stderr)

    def close(self) -> None:
        """
        Shuts down the handler, ensuring all buffered logs are flushed and threads are joined.
        """
        self.stop_event.set()
        if self.flush_thread.is_alive():
            self.flush_thread.join(timeout=self.flush_interval + 2)
        super().close()
