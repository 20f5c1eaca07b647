"""WMI change-notification subscription over Win32_NTLogEvent.

pywin32 is imported lazily in WmiSubscription.open() so the rest of the
package (and its tests) can be used on any platform.
"""

import logging

from eventlog_tail.errors import NativeCallError, SubscriptionError, SubscriptionLost

logger = logging.getLogger(__name__)

WMI_MONIKER = "winmgmts://"

# HRESULTs (as signed 32-bit ints, the way pywintypes.com_error reports them)
WBEM_E_TIMED_OUT = -2147209215          # 0x80043001, NextEvent wait elapsed
RPC_S_SERVER_UNAVAILABLE = -2147023174  # 0x800706BA
RPC_E_DISCONNECTED = -2147417848        # 0x80010108
WBEM_E_CALL_CANCELLED = -2147217358     # 0x80041032

_LOST_CODES = {RPC_S_SERVER_UNAVAILABLE, RPC_E_DISCONNECTED, WBEM_E_CALL_CANCELLED}


def build_wql_query(logfiles) -> str:
    """OR together one LogFile clause per configured log name."""
    names = list(dict.fromkeys(logfiles))
    if not names:
        raise ValueError("At least one log file name is required")
    clauses = " OR ".join(f"TargetInstance.LogFile = '{name}'" for name in names)
    return (
        "Select * from __InstanceCreationEvent Where TargetInstance ISA "
        f"'Win32_NTLogEvent' And ({clauses})"
    )


def com_error_codes(error) -> set[int]:
    """Collect the HRESULT and the nested scode carried by a com_error."""
    codes = set()
    args = getattr(error, "args", ())
    if args and isinstance(args[0], int):
        codes.add(args[0])
    if len(args) > 2 and args[2] and len(args[2]) > 5 and isinstance(args[2][5], int):
        codes.add(args[2][5])
    return codes


class Subscription:
    """A live filter over one or more event logs.

    next_event() blocks for at most *timeout_ms* and returns the raw event,
    or None when the wait elapsed with nothing new.
    """

    query: str = ""

    @property
    def closed(self) -> bool:
        raise NotImplementedError

    def next_event(self, timeout_ms: int):
        raise NotImplementedError

    def close(self):
        raise NotImplementedError


class WmiSubscription(Subscription):
    def __init__(self, events, query: str, com_error, uninitialize=None):
        self._events = events
        self.query = query
        self._com_error = com_error
        self._uninitialize = uninitialize
        self._closed = False

    @classmethod
    def open(cls, logfiles, moniker: str = WMI_MONIKER) -> "WmiSubscription":
        """Connect to WMI and register the notification query.

        Must be called on the thread that will call next_event(); COM is
        initialized for that thread here.
        """
        query = build_wql_query(logfiles)
        try:
            import pythoncom
            import pywintypes
            import win32com.client
        except ImportError as e:
            raise SubscriptionError(f"pywin32 is not available: {e}", query) from e

        try:
            pythoncom.CoInitialize()
        except pywintypes.com_error as e:
            raise SubscriptionError(f"COM initialization failed: {e}", query) from e
        try:
            wmi = win32com.client.GetObject(moniker)
            events = wmi.ExecNotificationQuery(query)
        except Exception as e:
            pythoncom.CoUninitialize()
            raise SubscriptionError(str(e), query) from e

        logger.debug("Subscribed with query: %s", query)
        return cls(events, query, pywintypes.com_error, pythoncom.CoUninitialize)

    @property
    def closed(self) -> bool:
        return self._closed

    def next_event(self, timeout_ms: int):
        if self._closed:
            raise SubscriptionLost("Subscription is closed")
        try:
            notification = self._events.NextEvent(timeout_ms)
        except self._com_error as e:
            codes = com_error_codes(e)
            if WBEM_E_TIMED_OUT in codes:
                return None
            if codes & _LOST_CODES:
                self.close()
                raise SubscriptionLost(str(e)) from e
            raise NativeCallError(str(e)) from e
        return notification.TargetInstance

    def close(self):
        if self._closed:
            return
        self._closed = True
        self._events = None
        if self._uninitialize:
            self._uninitialize()
