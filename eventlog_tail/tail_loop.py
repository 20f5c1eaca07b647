"""TailLoop: subscribe, wait, normalize, hand off; recover from failures.

States and the outcomes that move between them::

    SUBSCRIBING --subscribed--> WAITING --event--> PROCESSING --processed--> WAITING
    WAITING --timeout / native_failure--> WAITING
    WAITING / PROCESSING --failure--> RECOVERING --recovered--> WAITING
    RECOVERING --subscription_lost--> SUBSCRIBING
    SUBSCRIBING --subscribe_failed--> STOPPED
    any --shutdown--> STOPPED
"""

import logging
import queue
import threading
from enum import Enum

from eventlog_tail.errors import NativeCallError, ShutdownRequested, SubscriptionError
from eventlog_tail.metrics import TailMetrics
from eventlog_tail.subscription import build_wql_query

logger = logging.getLogger(__name__)


class TailState(Enum):
    STOPPED = "stopped"
    SUBSCRIBING = "subscribing"
    WAITING = "waiting"
    PROCESSING = "processing"
    RECOVERING = "recovering"


class Outcome(Enum):
    SUBSCRIBED = "subscribed"
    SUBSCRIBE_FAILED = "subscribe_failed"
    TIMEOUT = "timeout"
    EVENT = "event"
    NATIVE_FAILURE = "native_failure"
    PROCESSED = "processed"
    FAILURE = "failure"
    RECOVERED = "recovered"
    SUBSCRIPTION_LOST = "subscription_lost"
    SHUTDOWN = "shutdown"


_TRANSITIONS = {
    (TailState.SUBSCRIBING, Outcome.SUBSCRIBED): TailState.WAITING,
    (TailState.SUBSCRIBING, Outcome.SUBSCRIBE_FAILED): TailState.STOPPED,
    (TailState.WAITING, Outcome.TIMEOUT): TailState.WAITING,
    (TailState.WAITING, Outcome.NATIVE_FAILURE): TailState.WAITING,
    (TailState.WAITING, Outcome.EVENT): TailState.PROCESSING,
    (TailState.WAITING, Outcome.FAILURE): TailState.RECOVERING,
    (TailState.PROCESSING, Outcome.PROCESSED): TailState.WAITING,
    (TailState.PROCESSING, Outcome.FAILURE): TailState.RECOVERING,
    (TailState.RECOVERING, Outcome.RECOVERED): TailState.WAITING,
    (TailState.RECOVERING, Outcome.SUBSCRIPTION_LOST): TailState.SUBSCRIBING,
}


def transition(state: TailState, outcome: Outcome) -> TailState:
    """Return the state that follows *state* after *outcome*."""
    if outcome is Outcome.SHUTDOWN:
        return TailState.STOPPED
    try:
        return _TRANSITIONS[(state, outcome)]
    except KeyError:
        raise ValueError(f"No transition from {state.name} on {outcome.name}") from None


class TailLoop:
    """Single-worker loop feeding normalized events into a bounded queue.

    *open_subscription* is called with the configured log names and must
    return a Subscription; tests pass a fake one. *sleep* defaults to
    waiting on the shutdown event so the backoff ends early on shutdown.
    """

    def __init__(self, open_subscription, normalizer, sink: queue.Queue,
                 shutdown_event: threading.Event, logfiles,
                 wait_timeout_ms: int = 1000, retry_delay: float = 1.0,
                 metrics: TailMetrics | None = None, sleep=None):
        self._open_subscription = open_subscription
        self._normalizer = normalizer
        self._sink = sink
        self._shutdown = shutdown_event
        self._logfiles = tuple(logfiles)
        self._wait_timeout_ms = wait_timeout_ms
        self._retry_delay = retry_delay
        self._metrics = metrics or TailMetrics()
        self._sleep = sleep or self._shutdown.wait

        self._subscription = None
        self._pending = None
        self._last_error: BaseException | None = None
        self._state = TailState.STOPPED
        self._handlers = {
            TailState.SUBSCRIBING: self._subscribe,
            TailState.WAITING: self._wait,
            TailState.PROCESSING: self._process,
            TailState.RECOVERING: self._recover,
        }

    @property
    def state(self) -> TailState:
        return self._state

    @property
    def metrics(self) -> TailMetrics:
        return self._metrics

    def run(self):
        """Block until shutdown or a fatal subscription failure."""
        logger.debug("Tailing Windows Event Log '%s'", ",".join(self._logfiles))
        self._state = TailState.SUBSCRIBING
        try:
            while self._state is not TailState.STOPPED:
                self.step()
        finally:
            self._close_subscription()
            self._pending = None

    def step(self) -> TailState:
        """Run the handler for the current state and apply its outcome."""
        if self._shutdown.is_set():
            outcome = Outcome.SHUTDOWN
        else:
            outcome = self._handlers[self._state]()
        self._state = transition(self._state, outcome)
        return self._state

    def _subscribe(self) -> Outcome:
        try:
            self._subscription = self._open_subscription(self._logfiles)
        except ShutdownRequested:
            return Outcome.SHUTDOWN
        except SubscriptionError as e:
            return self._fatal(e, e.query)
        except Exception as e:
            return self._fatal(e)
        return Outcome.SUBSCRIBED

    def _fatal(self, error: Exception, query: str = "") -> Outcome:
        logger.critical("Unable to tail Windows Event Log: %s", error, exc_info=error)
        if not query:
            try:
                query = build_wql_query(self._logfiles)
            except ValueError as e:
                query = f"<invalid: {e}>"
        logger.info("Windows Event Log Query: %s", query)
        return Outcome.SUBSCRIBE_FAILED

    def _wait(self) -> Outcome:
        try:
            event = self._subscription.next_event(self._wait_timeout_ms)
        except NativeCallError:
            self._metrics.record_native_failure()
            return Outcome.NATIVE_FAILURE
        except ShutdownRequested:
            return Outcome.SHUTDOWN
        except Exception as e:
            return self._fail(e)

        if event is None:
            self._metrics.record_timeout()
            return Outcome.TIMEOUT
        self._metrics.record_received()
        self._pending = event
        return Outcome.EVENT

    def _process(self) -> Outcome:
        raw, self._pending = self._pending, None
        try:
            record = self._normalizer.normalize(raw)
            self._enqueue(record)
        except ShutdownRequested:
            return Outcome.SHUTDOWN
        except Exception as e:
            return self._fail(e)
        self._metrics.record_emitted()
        return Outcome.PROCESSED

    def _recover(self) -> Outcome:
        error, self._last_error = self._last_error, None
        logger.error("Windows Event Log error: %s", error, exc_info=error)
        self._sleep(self._retry_delay)
        if self._shutdown.is_set():
            return Outcome.SHUTDOWN
        if self._subscription is None or self._subscription.closed:
            logger.info("Subscription lost, subscribing again")
            self._close_subscription()
            self._metrics.record_resubscription()
            return Outcome.SUBSCRIPTION_LOST
        return Outcome.RECOVERED

    def _fail(self, error: Exception) -> Outcome:
        self._metrics.record_failure()
        self._last_error = error
        return Outcome.FAILURE

    def _enqueue(self, record):
        """Block while the sink is full, giving up only on shutdown."""
        timeout = self._wait_timeout_ms / 1000
        while True:
            if self._shutdown.is_set():
                raise ShutdownRequested("Shutdown while waiting for queue space")
            try:
                self._sink.put(record, timeout=timeout)
                return
            except queue.Full:
                continue

    def _close_subscription(self):
        if self._subscription is not None:
            try:
                self._subscription.close()
            except Exception as e:
                logger.warning("Failed to close subscription: %s", e)
            self._subscription = None
