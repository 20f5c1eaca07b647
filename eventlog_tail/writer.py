"""EventWriter: consumer thread that drains the event queue to an output stream."""

import json
import logging
import queue
from threading import Thread

from eventlog_tail.models import NormalizedEvent, event_to_dict

logger = logging.getLogger(__name__)

CODECS = ("plain", "json")


def encode_event(event: NormalizedEvent, codec: str = "plain") -> str:
    """Render one event as a single output line (newline included).

    plain: "<@timestamp> <host> <message>"; json: compact NDJSON.
    """
    if codec == "json":
        return json.dumps(event_to_dict(event), separators=(",", ":"), default=str) + "\n"
    if codec == "plain":
        return f"{event.timestamp.isoformat()} {event.host} {event.message}\n"
    raise ValueError(f"Unknown codec {codec!r}, expected one of {CODECS}")


class EventWriter(Thread):
    def __init__(self, q: queue.Queue, stream, codec: str = "plain"):
        super().__init__(daemon=True)
        self._queue = q
        self._stream = stream
        self._codec = codec
        self._running = True
        self._written = 0
        self._failed = 0

    @property
    def written(self) -> int:
        return self._written

    @property
    def failed(self) -> int:
        return self._failed

    def _write(self, event: NormalizedEvent):
        """Write one event; a failure drops that event only."""
        try:
            self._stream.write(encode_event(event, self._codec))
        except Exception:
            self._failed += 1
            logger.exception("Failed to write event from %s", event.path)
            return
        self._written += 1

    def _flush(self):
        try:
            self._stream.flush()
        except Exception:
            logger.exception("Failed to flush event output")

    def run(self):
        while self._running:
            try:
                event = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._write(event)
            self._flush()

    def stop(self, timeout: float = 5.0):
        """Signal shutdown and write whatever is still queued."""
        self._running = False
        if self.is_alive():
            self.join(timeout=timeout)
        if self.is_alive():
            logger.warning("Event writer still busy, %d queued event(s) not written",
                           self._queue.qsize())
            return
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                break
            self._write(event)
        self._flush()
        logger.info("Event writer stopped after %d event(s), %d failed", self._written, self._failed)
