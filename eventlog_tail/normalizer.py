"""EventNormalizer: turns a Win32_NTLogEvent instance into a NormalizedEvent."""

import logging

from eventlog_tail.insertion import first_line, parse_insertion
from eventlog_tail.models import EVENT_PROPERTIES, NormalizedEvent
from eventlog_tail.timestamp import decode_wmi_timestamp
from eventlog_tail.variants import PassthroughAdapter, ValueAdapter

logger = logging.getLogger(__name__)


def to_unsigned_byte(value: int) -> int:
    """Map a signed short holding a byte onto 0..255."""
    return (value if value >= 0 else value + 256) & 0xFF


def pack_data(values) -> bytes:
    """Pack the event's binary Data array into a byte string."""
    return bytes(to_unsigned_byte(int(v)) for v in values)


def resolve_path(logfile, logfiles: tuple[str, ...]) -> str:
    """Pick the configured log name the event came from.

    Falls back to the comma-joined configured label when the event's
    Logfile property matches none of them.
    """
    if isinstance(logfile, str):
        for name in logfiles:
            if name.lower() == logfile.lower():
                return name
    return ",".join(logfiles)


class EventNormalizer:
    def __init__(self, hostname: str, logfiles: tuple[str, ...], type_tag: str,
                 adapter: ValueAdapter | None = None):
        self._hostname = hostname
        self._logfiles = tuple(logfiles)
        self._type_tag = type_tag
        self._adapter = adapter or PassthroughAdapter()

    def normalize(self, raw) -> NormalizedEvent:
        """Build the outbound record for one raw event.

        Raises MalformedTimestamp when TimeGenerated is unreadable; a
        malformed message body only degrades the insertion mapping.
        """
        properties = {name: getattr(raw, name, None) for name in EVENT_PROPERTIES}
        timestamp = decode_wmi_timestamp(properties["TimeGenerated"])

        insertion_strings = self._adapter.unwrap_array(getattr(raw, "InsertionStrings", None))
        data = pack_data(self._adapter.unwrap_array(getattr(raw, "Data", None)))

        message = properties["Message"] or ""

        return NormalizedEvent(
            host=self._hostname,
            path=resolve_path(properties["Logfile"], self._logfiles),
            type=self._type_tag,
            timestamp=timestamp,
            message=first_line(message),
            properties=properties,
            insertion_strings=insertion_strings,
            data=data,
            insertion=parse_insertion(message),
        )
