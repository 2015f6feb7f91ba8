from __future__ import annotations

import calendar
import csv
import io
from datetime import date
from typing import List, Sequence, Tuple

from .models import Event
from .months import parse_display_datetime

CSV_HEADERS = ["Summary", "Start Date", "End Date", "Location", "Description"]


def filter_events_by_range(events: Sequence[Event], start_date: date, end_date: date) -> List[Event]:
    kept: List[Event] = []
    for e in events:
        start = parse_display_datetime(e.start)
        if start is None:
            continue
        if start_date <= start.date() <= end_date:
            kept.append(e)
    return kept


def export_csv(events: Sequence[Event], start_date: date, end_date: date) -> str:
    """Quoted CSV of the events starting within [start_date, end_date]."""
    buf = io.StringIO()
    # Only event rows are quoted; the header goes out bare.
    buf.write(",".join(CSV_HEADERS) + "\n")
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for e in filter_events_by_range(events, start_date, end_date):
        writer.writerow([e.summary, e.start, e.end, e.location or "", e.description or ""])
    # Rows are newline-joined, not newline-terminated.
    return buf.getvalue()[:-1]


def export_filename(start_date: date, end_date: date) -> str:
    return f"calendar-events-{start_date.isoformat()}-to-{end_date.isoformat()}.csv"


def default_export_range(today: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def parse_range(start: str, end: str) -> Tuple[date, date]:
    try:
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
    except ValueError as exc:
        raise ValueError(f"Invalid export date range: {start!r} to {end!r}") from exc
    return start_date, end_date
