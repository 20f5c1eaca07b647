"""Thread-safe counters for the tail loop and a periodic reporter."""

import logging
import threading

logger = logging.getLogger(__name__)

_COUNTERS = ("received", "emitted", "timeouts", "native_failures", "failures", "resubscriptions")


class TailMetrics:
    def __init__(self):
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(_COUNTERS, 0)
        self._totals = dict.fromkeys(_COUNTERS, 0)

    def _incr(self, name: str):
        with self._lock:
            self._counts[name] += 1
            self._totals[name] += 1

    def record_received(self):
        self._incr("received")

    def record_emitted(self):
        self._incr("emitted")

    def record_timeout(self):
        self._incr("timeouts")

    def record_native_failure(self):
        self._incr("native_failures")

    def record_failure(self):
        self._incr("failures")

    def record_resubscription(self):
        self._incr("resubscriptions")

    def snapshot(self) -> dict:
        with self._lock:
            return dict(self._counts)

    def totals(self) -> dict:
        """Counts since start, unaffected by snapshot_and_reset()."""
        with self._lock:
            return dict(self._totals)

    def snapshot_and_reset(self) -> dict:
        """Atomically read all counters and reset them to zero."""
        with self._lock:
            snapshot = dict(self._counts)
            self._counts = dict.fromkeys(_COUNTERS, 0)
            return snapshot


class MetricsReporter:
    """Background thread that periodically logs metrics summaries."""

    def __init__(self, metrics: TailMetrics, interval: float, shutdown_event: threading.Event):
        self._metrics = metrics
        self._interval = interval
        self._shutdown = shutdown_event
        self._thread: threading.Thread | None = None

    def start(self):
        self._thread = threading.Thread(target=self._report_loop, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread:
            self._thread.join(timeout=5)

    def _report_loop(self):
        while not self._shutdown.is_set():
            self._shutdown.wait(self._interval)
            if self._shutdown.is_set():
                break

            snapshot = self._metrics.snapshot_and_reset()
            logger.info(
                "[metrics] received=%d emitted=%d timeouts=%d native_failures=%d "
                "failures=%d resubscriptions=%d",
                snapshot["received"], snapshot["emitted"], snapshot["timeouts"],
                snapshot["native_failures"], snapshot["failures"],
                snapshot["resubscriptions"],
            )
