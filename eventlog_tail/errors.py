"""Exception types raised by the event log input."""


class EventLogError(Exception):
    """Base class for everything the event log input raises on purpose."""


class SubscriptionError(EventLogError):
    """Opening the change-notification subscription failed. Not retried."""

    def __init__(self, message: str, query: str = ""):
        super().__init__(message)
        self.query = query


class SubscriptionLost(EventLogError):
    """The subscription stopped delivering and must be re-opened."""


class NativeCallError(EventLogError):
    """A native call failed during a wait; the wait is simply retried."""


class MalformedTimestamp(EventLogError, ValueError):
    """A WMI datetime string did not match yyyymmddHHMMSS.ffffff+UUU."""


class ShutdownRequested(EventLogError):
    """Raised by collaborators to stop the tail loop cleanly."""
