"""Normalized event record emitted for every event log entry."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Win32_NTLogEvent properties copied verbatim onto every record
EVENT_PROPERTIES = (
    "Category",
    "CategoryString",
    "ComputerName",
    "EventCode",
    "EventIdentifier",
    "EventType",
    "Logfile",
    "Message",
    "RecordNumber",
    "SourceName",
    "TimeGenerated",
    "TimeWritten",
    "Type",
    "User",
)


@dataclass(frozen=True)
class NormalizedEvent:
    host: str
    path: str
    type: str
    timestamp: datetime              # aware, from TimeGenerated
    message: str                     # first line of Message
    properties: dict[str, Any] = field(default_factory=dict)
    insertion_strings: list = field(default_factory=list)
    data: bytes = b""
    insertion: dict[str, dict[str, str]] = field(default_factory=dict)


def event_to_dict(event: NormalizedEvent) -> dict[str, Any]:
    """Flatten a NormalizedEvent into JSON-serializable fields."""
    record: dict[str, Any] = {
        "@timestamp": event.timestamp.isoformat(),
        "host": event.host,
        "path": event.path,
        "type": event.type,
    }
    record.update(event.properties)
    record["InsertionStrings"] = list(event.insertion_strings)
    record["Data"] = event.data.hex()
    record["insertion"] = event.insertion
    record["message"] = event.message
    return record
