from datetime import date

import pytest

from icsview.csv_export import (
    default_export_range,
    export_csv,
    export_filename,
    filter_events_by_range,
    parse_range,
)
from icsview.models import Event


def test_exports_header_and_matching_rows():
    events = [
        Event(summary="Team Sync", start="2024-03-10", end="2024-03-10", location="", description="Weekly"),
    ]

    text = export_csv(events, date(2024, 3, 1), date(2024, 3, 31))

    lines = text.split("\n")
    assert lines == [
        'Summary,Start Date,End Date,Location,Description',
        '"Team Sync","2024-03-10","2024-03-10","","Weekly"',
    ]
    assert lines[1].startswith('"Team Sync"')


def test_inner_quotes_are_doubled():
    events = [Event(summary='Say "hi"', start="2024-03-10 09:00", end="2024-03-10 10:00")]

    text = export_csv(events, date(2024, 3, 1), date(2024, 3, 31))

    assert '"Say ""hi"""' in text.split("\n")[1]


def test_range_is_inclusive_on_dates():
    events = [
        Event(summary="Before", start="2024-02-29 23:00"),
        Event(summary="First", start="2024-03-01"),
        Event(summary="Last", start="2024-03-31 22:15"),
        Event(summary="After", start="2024-04-01"),
        Event(summary="Undated"),
    ]

    kept = filter_events_by_range(events, date(2024, 3, 1), date(2024, 3, 31))

    assert [e.summary for e in kept] == ["First", "Last"]


def test_no_matches_yields_header_only():
    text = export_csv([], date(2024, 3, 1), date(2024, 3, 31))

    assert text == 'Summary,Start Date,End Date,Location,Description'


def test_filename_includes_range():
    assert export_filename(date(2024, 3, 1), date(2024, 3, 31)) == "calendar-events-2024-03-01-to-2024-03-31.csv"


def test_default_range_covers_current_month():
    assert default_export_range(date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))


def test_parse_range_rejects_bad_dates():
    assert parse_range("2024-03-01", "2024-03-31") == (date(2024, 3, 1), date(2024, 3, 31))

    with pytest.raises(ValueError, match="Invalid export date range"):
        parse_range("March", "2024-03-31")
