from icsview.ics_parser import normalize_ics_date, parse_ics
from icsview.models import Event

SAMPLE = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Example//EN
BEGIN:VEVENT
SUMMARY:Team Sync
DTSTART:20240315T143000Z
DTEND:20240315T153000Z
DESCRIPTION:Weekly
LOCATION:Room 4
END:VEVENT
BEGIN:VEVENT
SUMMARY:Holiday
DTSTART;VALUE=DATE:20240401
DTEND;VALUE=DATE:20240402
END:VEVENT
BEGIN:VEVENT
SUMMARY:Review
DTSTART:20240502T090000
DTEND:20240502T100000
DESCRIPTION:Quarterly review
END:VEVENT
END:VCALENDAR
"""


def test_parses_one_event_per_block_in_source_order():
    events = parse_ics(SAMPLE)

    assert [e.summary for e in events] == ["Team Sync", "Holiday", "Review"]
    assert events[0] == Event(
        summary="Team Sync",
        start="2024-03-15 14:30",
        end="2024-03-15 15:30",
        description="Weekly",
        location="Room 4",
    )


def test_all_day_dates_use_value_date_form():
    holiday = parse_ics(SAMPLE)[1]

    assert holiday.start == "2024-04-01"
    assert holiday.end == "2024-04-02"
    assert holiday.description is None


def test_missing_location_stays_unset_while_other_fields_populate():
    review = parse_ics(SAMPLE)[2]

    assert review.location is None
    assert review.summary == "Review"
    assert review.start == "2024-05-02 09:00"
    assert review.description == "Quarterly review"


def test_document_without_vevents_yields_empty_list():
    assert parse_ics("BEGIN:VCALENDAR\nVERSION:2.0\nEND:VCALENDAR\n") == []
    assert parse_ics("") == []


def test_block_missing_end_marker_is_skipped():
    text = "BEGIN:VEVENT\nSUMMARY:Broken\nDTSTART:20240101\n"

    assert parse_ics(text) == []


def test_missing_fields_default_to_empty_strings():
    events = parse_ics("BEGIN:VEVENT\nUID:abc\nEND:VEVENT")

    assert events == [Event(summary="", start="", end="")]


def test_folded_lines_keep_only_first_physical_line():
    text = (
        "BEGIN:VEVENT\r\n"
        "SUMMARY:Planning\r\n"
        "DESCRIPTION:First line\r\n"
        " continued here\r\n"
        "DTSTART:20240610\r\n"
        "END:VEVENT\r\n"
    )

    event = parse_ics(text)[0]

    assert event.description == "First line"
    assert event.start == "2024-06-10"


def test_first_matching_line_wins_for_each_field():
    text = """BEGIN:VEVENT
SUMMARY:Dentist
DESCRIPTION:Bring forms
BEGIN:VALARM
DESCRIPTION:Reminder
END:VALARM
END:VEVENT"""

    assert parse_ics(text)[0].description == "Bring forms"


def test_dtstart_with_other_parameters_is_not_recognized():
    text = "BEGIN:VEVENT\nDTSTART;TZID=America/Phoenix:20240315T100000\nEND:VEVENT"

    assert parse_ics(text)[0].start == ""


def test_normalize_all_day_token():
    assert normalize_ics_date("20240315") == "2024-03-15"


def test_normalize_date_time_token_ignores_zone_suffix():
    assert normalize_ics_date("20240315T143000Z") == "2024-03-15 14:30"
    assert normalize_ics_date("20240315T143000") == "2024-03-15 14:30"


def test_normalize_is_permissive_for_short_tokens():
    assert normalize_ics_date("2024") == "2024-- :"
    assert normalize_ics_date("") == "-- :"
