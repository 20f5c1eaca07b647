import threading
from types import SimpleNamespace

import pytest

from eventlog_tail.subscription import Subscription

LOGON_MESSAGE = (
    "An account was successfully logged on.\r\n"
    "\r\n"
    "Subject:\r\n"
    "\tSecurity ID:\t\tS-1-5-18\r\n"
    "\tAccount Name:\t\tDESKTOP-01$\r\n"
    "\r\n"
    "Logon Type:\t\t\t5\r\n"
    "\r\n"
    "New Logon:\r\n"
    "\tSecurity ID:\t\tS-1-5-18\r\n"
    "\tAccount Name:\t\tSYSTEM\r\n"
)


def make_raw_event(**overrides):
    """A stand-in for a Win32_NTLogEvent instance."""
    props = {
        "Category": 12544,
        "CategoryString": "Logon",
        "ComputerName": "DESKTOP-01",
        "EventCode": 4624,
        "EventIdentifier": 4624,
        "EventType": 4,
        "Logfile": "Security",
        "Message": LOGON_MESSAGE,
        "RecordNumber": 1234,
        "SourceName": "Microsoft-Windows-Security-Auditing",
        "TimeGenerated": "20140115093000.000000+060",
        "TimeWritten": "20140115093001.000000+060",
        "Type": "Audit Success",
        "User": None,
        "InsertionStrings": ("S-1-5-18", "DESKTOP-01$"),
        "Data": None,
    }
    props.update(overrides)
    return SimpleNamespace(**props)


class FakeSubscription(Subscription):
    """Replays a script of events, None (timeouts) and exceptions.

    Once the script runs out it sets *shutdown* and keeps timing out.
    """

    def __init__(self, script, shutdown: threading.Event | None = None):
        self.query = "fake"
        self._script = list(script)
        self._shutdown = shutdown
        self._closed = False
        self.waits = 0
        self.timeouts_seen: list[int] = []

    @property
    def closed(self) -> bool:
        return self._closed

    def next_event(self, timeout_ms: int):
        self.waits += 1
        self.timeouts_seen.append(timeout_ms)
        if not self._script:
            if self._shutdown is not None:
                self._shutdown.set()
            return None
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item()
        return item

    def close(self):
        self._closed = True


@pytest.fixture
def raw_event():
    return make_raw_event()


@pytest.fixture
def shutdown():
    return threading.Event()
