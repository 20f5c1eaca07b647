"""Decode WMI CIM_DATETIME strings into timezone-aware datetimes.

The event log stamps events as ``yyyymmddHHMMSS.ffffff+UUU`` where ``UUU``
is the offset from UTC expressed in minutes, not hours and minutes.
See http://technet.microsoft.com/en-us/library/ee198928.aspx
"""

import re
from datetime import datetime, timedelta, timezone

from eventlog_tail.errors import MalformedTimestamp

_WMI_TIME_RE = re.compile(
    r'(?P<date>\d{8})(?P<time>\d{6})\.\d{6}(?P<sign>[+-])(?P<diff>\d{3})'
)


def format_offset(minutes: int) -> str:
    """Render a signed minute offset as ``+HHMM`` (e.g. 60 -> '+0100')."""
    if minutes == 0:
        return "+0000"
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{mins:02d}"


def parse_offset(sign: str, diff: str) -> int:
    """Turn the sign and 3-digit minutes field into a signed minute count."""
    minutes = int(diff)
    return -minutes if sign == "-" else minutes


def decode_wmi_timestamp(value) -> datetime:
    """Convert a WMI datetime string to an aware datetime.

    Microseconds are discarded. A zero offset (either sign) yields UTC.
    Raises MalformedTimestamp when the fixed layout cannot be found.
    """
    if not isinstance(value, str):
        raise MalformedTimestamp(f"Expected a WMI datetime string, got {value!r}")

    m = _WMI_TIME_RE.search(value)
    if not m:
        raise MalformedTimestamp(f"Unrecognized WMI datetime: {value!r}")

    offset = parse_offset(m.group("sign"), m.group("diff"))
    tz = timezone.utc if offset == 0 else timezone(timedelta(minutes=offset))

    try:
        naive = datetime.strptime(m.group("date") + m.group("time"), "%Y%m%d%H%M%S")
    except ValueError as e:
        raise MalformedTimestamp(f"Invalid WMI datetime {value!r}: {e}") from e
    return naive.replace(tzinfo=tz)
