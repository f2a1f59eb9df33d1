"""Fixed-interval polling of an external scan job.

A poller goes ``idle -> submitted -> processing -> complete | error``. All
ways of stopping it (terminal status, teardown, a newer scan for the same
user) go through ``ScanPoller.cancel`` so a job never has two timers.
"""
import logging
import threading
import time

from .results import ServiceError

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = ("complete", "error")


class ScanJob:
    def __init__(self, target):
        self.target = target
        self.job_id = ""
        self.status = "idle"
        self.progress = 0
        self.message = ""
        self.result = None
        self.error = None
        self.cancelled = False

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            "target": self.target,
            "job_id": self.job_id,
            "status": self.status,
            "progress": self.progress,
            "message": self.message,
            "result": self.result,
            "error": self.error,
            "cancelled": self.cancelled,
        }


class ScanPoller:
    def __init__(self, client, target, interval=3.0, timeout=0,
                 on_update=None, on_finish=None, clock=time.monotonic):
        self.client = client
        self.interval = interval
        self.timeout = timeout
        self.on_update = on_update
        self.on_finish = on_finish
        self.job = ScanJob(target)
        self._clock = clock
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._thread = None
        self.submit_error = None

    @property
    def active(self):
        return not self._cancelled.is_set() and not self.job.is_terminal

    def snapshot(self):
        with self._lock:
            return self.job.to_dict()

    def start(self, background=True):
        if not self._submit():
            return self.job
        if background:
            self._thread = threading.Thread(
                target=self.run, name=f"scan-poll-{self.job.job_id}", daemon=True
            )
            self._thread.start()
        else:
            self.run()
        return self.job

    def run(self):
        started = self._clock()
        while not self._cancelled.wait(self.interval):
            if self.timeout and self._clock() - started >= self.timeout:
                self._finish("error", error=f"Scan abandoned after {self.timeout} seconds")
                break
            self.poll_once()
            if self.job.is_terminal:
                break

    def poll_once(self):
        try:
            status = self.client.status(self.job.job_id)
        except Exception:
            # Thread marna nahi chahiye; job ko error pe close karo taaki user retry kar sake
            logger.exception("Status check crashed for job %s", self.job.job_id)
            if not self._cancelled.is_set():
                self._finish("error", error="Failed to get scan status")
            return
        if self._cancelled.is_set():
            return
        if status.status == "processing":
            with self._lock:
                self.job.status = "processing"
                self.job.progress = status.progress
                self.job.message = status.message
            self._emit()
        elif status.status == "complete":
            self._finish("complete", result=status.result, message=status.message)
        else:
            self._finish("error", error=status.message or "Scan failed")

    def cancel(self):
        if not self._cancelled.is_set():
            self._cancelled.set()
            with self._lock:
                if not self.job.is_terminal:
                    self.job.cancelled = True

    def join(self, timeout=None):
        if self._thread is not None:
            self._thread.join(timeout)

    def _submit(self):
        try:
            response = self.client.submit(self.job.target)
        except Exception:
            logger.exception("Submit crashed for %s", self.job.target)
            response = ServiceError(error="upstream_unavailable", message="Failed to submit URL for scanning")
        if isinstance(response, ServiceError):
            self.submit_error = response
            self._finish("error", error=response.message, notify=False)
            return False
        with self._lock:
            self.job.job_id = response["uuid"]
            self.job.target = response.get("url") or self.job.target
            self.job.status = "submitted"
            self.job.progress = response.get("progress", 10)
            self.job.message = response.get("message", "")
        self._emit()
        return True

    def _finish(self, status, result=None, error=None, message="", notify=True):
        with self._lock:
            self.job.status = status
            self.job.result = result
            self.job.error = error
            if status == "complete":
                self.job.progress = 100
            self.job.message = message or error or ""
        self.cancel()
        self._emit()
        if notify and self.on_finish:
            try:
                self.on_finish(self.job)
            except Exception:
                logger.exception("Scan finish hook failed for job %s", self.job.job_id)

    def _emit(self):
        if self.on_update:
            self.on_update(self.snapshot())


class PollerRegistry:
    """At most one live poller per key (normally the user id)."""

    def __init__(self):
        self._pollers = {}
        self._lock = threading.Lock()

    def start(self, key, poller, background=True):
        with self._lock:
            previous = self._pollers.get(key)
            self._pollers[key] = poller
        if previous is not None:
            previous.cancel()
        poller.start(background=background)
        return poller

    def get(self, key):
        with self._lock:
            return self._pollers.get(key)

    def cancel(self, key):
        with self._lock:
            poller = self._pollers.pop(key, None)
        if poller is not None:
            poller.cancel()
        return poller

    def cancel_all(self):
        with self._lock:
            pollers = list(self._pollers.values())
            self._pollers.clear()
        for poller in pollers:
            poller.cancel()
