"""Parser for the "Label:\tvalue" insertion text of event log messages.

Windows renders most security and system messages as a free-text body where
section headers ("Subject:") and field labels ("Account Name:") end with a
colon and are separated from their values by CR, LF or TAB runs::

    An account was successfully logged on.
    Subject:
        Security ID:    S-1-5-18
        Account Name:   DESKTOP-01$

parse_insertion() turns that into
``{"Subject:": {"Security ID:": "S-1-5-18", "Account Name:": "DESKTOP-01$"}}``.
"""

import re
from dataclasses import dataclass
from enum import Enum

DELIMITER = re.compile(r'[\r\n\t]+')


class ParseState(Enum):
    AWAITING_PARENT = "awaiting_parent"
    AWAITING_CHILD = "awaiting_child"
    AWAITING_VALUE = "awaiting_value"


@dataclass(frozen=True)
class Cursor:
    state: ParseState = ParseState.AWAITING_PARENT
    parent: str | None = None
    child: str | None = None


def split_segments(message: str | None) -> list[str]:
    """Split on delimiter runs, dropping empty segments."""
    if not message:
        return []
    return [part for part in DELIMITER.split(message) if part]


def first_line(message: str | None) -> str:
    """Return the text before the first delimiter run."""
    if not message:
        return ""
    return DELIMITER.split(message, maxsplit=1)[0]


def step(cursor: Cursor, segment: str) -> tuple[Cursor, tuple[str, str, str] | None]:
    """Advance the parser by one segment.

    Returns the new cursor and, when the segment completed a pair, the
    ``(parent, child, value)`` triple to store. Segments that fit no
    transition leave the cursor unchanged.
    """
    is_label = ":" in segment

    if cursor.state is ParseState.AWAITING_PARENT:
        if is_label:
            return Cursor(ParseState.AWAITING_CHILD, parent=segment), None

    elif cursor.state is ParseState.AWAITING_CHILD:
        if is_label:
            return Cursor(ParseState.AWAITING_VALUE, cursor.parent, segment), None

    elif cursor.state is ParseState.AWAITING_VALUE:
        if is_label:
            # Two labels in a row: the previous child was really a section header
            return Cursor(ParseState.AWAITING_VALUE, cursor.child, segment), None
        pair = (cursor.parent, cursor.child, segment)
        return Cursor(ParseState.AWAITING_CHILD, cursor.parent, cursor.child), pair

    return cursor, None


def parse_insertion(message: str | None) -> dict[str, dict[str, str]]:
    """Build the parent -> {child: value} mapping for a message.

    Never raises; text that does not follow the convention yields a partial
    or empty mapping.
    """
    insertion: dict[str, dict[str, str]] = {}
    cursor = Cursor()
    for segment in split_segments(message):
        cursor, pair = step(cursor, segment)
        if pair:
            parent, child, value = pair
            insertion.setdefault(parent, {})[child] = value
    return insertion
