"""
ServerQuery line codec.

Only the read-only subset used for presence checks is covered: command
formatting, value escaping, record parsing and the trailing status line.

A reply to one command looks like:

    clid=1 cid=1 client_nickname=SinusBot\\svia\\sTravis\\sCI|clid=2 ...
    error id=0 msg=ok

Lines are terminated by ``\\n\\r``; records by ``|``; fields by spaces.
"""

from __future__ import annotations

import re


LINE_TERMINATOR = b"\n\r"
BANNER = "TS3"

_ESCAPES = [
    ("\\", "\\\\"),
    ("/", "\\/"),
    (" ", "\\s"),
    ("|", "\\p"),
    ("\a", "\\a"),
    ("\b", "\\b"),
    ("\f", "\\f"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\t", "\\t"),
    ("\v", "\\v"),
]

_UNESCAPES = {escaped[1]: raw for raw, escaped in _ESCAPES}

_ESCAPE_SEQUENCE = re.compile(r"\\(.)")

_STATUS_LINE = re.compile(r"^error id=(?P<id>\d+) msg=(?P<msg>\S*)")


def escape(value: str) -> str:
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape(value: str) -> str:
    # Unknown sequences keep the escaped character.
    return _ESCAPE_SEQUENCE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(1)), value)


def format_command(command: str, **params: object) -> bytes:
    """Build one command line, e.g. ``use port=1489``."""
    parts = [command]
    for key, value in params.items():
        if value is None:
            continue
        parts.append(f"{key}={escape(str(value))}")
    return (" ".join(parts) + "\n").encode("utf-8")


def is_status_line(line: str) -> bool:
    return line.startswith("error ")


def parse_status(line: str) -> tuple[int, str]:
    """Parse ``error id=<n> msg=<text>`` into ``(n, text)``."""
    match = _STATUS_LINE.match(line)
    if not match:
        raise ValueError(f"malformed status line: {line!r}")
    return int(match.group("id")), unescape(match.group("msg"))


def parse_records(line: str) -> list[dict[str, str]]:
    """Split a data line into records of unescaped ``key=value`` fields."""
    if not line:
        return []

    records: list[dict[str, str]] = []
    for chunk in line.split("|"):
        record: dict[str, str] = {}
        for field in chunk.split(" "):
            if not field:
                continue
            key, sep, value = field.partition("=")
            record[key] = unescape(value) if sep else ""
        records.append(record)
    return records
