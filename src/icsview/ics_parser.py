from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

from .models import Event

_VEVENT_RE = re.compile(r"BEGIN:VEVENT(.*?)END:VEVENT", re.DOTALL)

# (field, prefix) pairs, checked against the start of each physical line.
_LINE_TAGS: Tuple[Tuple[str, str], ...] = (
    ("summary", "SUMMARY:"),
    ("start", "DTSTART:"),
    ("start", "DTSTART;VALUE=DATE:"),
    ("end", "DTEND:"),
    ("end", "DTEND;VALUE=DATE:"),
    ("description", "DESCRIPTION:"),
    ("location", "LOCATION:"),
)

_DATE_FIELDS = {"start", "end"}


def normalize_ics_date(token: str) -> str:
    """Turn ``20240315`` into ``2024-03-15`` and ``20240315T143000Z`` into ``2024-03-15 14:30``.

    Timezone suffixes are ignored. Short or malformed tokens come back
    truncated rather than raising.
    """
    if len(token) == 8:
        return f"{token[0:4]}-{token[4:6]}-{token[6:8]}"
    return f"{token[0:4]}-{token[4:6]}-{token[6:8]} {token[9:11]}:{token[11:13]}"


def _match_line(line: str) -> Optional[Tuple[str, str]]:
    for field, prefix in _LINE_TAGS:
        if line.startswith(prefix):
            return field, line[len(prefix):]
    return None


def _parse_block(block: str) -> Event:
    values: Dict[str, str] = {}
    for raw_line in block.split("\n"):
        line = raw_line.rstrip("\r")
        tagged = _match_line(line)
        if tagged is None:
            continue
        field, value = tagged
        if field in values:
            continue
        values[field] = normalize_ics_date(value) if field in _DATE_FIELDS else value

    return Event(
        summary=values.get("summary", ""),
        start=values.get("start", ""),
        end=values.get("end", ""),
        description=values.get("description"),
        location=values.get("location"),
    )


def iter_vevent_blocks(text: str) -> List[str]:
    return [m.group(1) for m in _VEVENT_RE.finditer(text)]


def parse_ics(text: str) -> List[Event]:
    """One Event per VEVENT block, in source order. Never raises on bad input."""
    return [_parse_block(block) for block in iter_vevent_blocks(text)]
