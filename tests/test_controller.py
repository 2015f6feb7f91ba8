from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from icsview.controller import CalendarController
from icsview.fetch import IcsFetchError
from icsview.models import Event
from icsview.preferences import CALENDAR_URL_KEY, PreferenceStore

ICS = """BEGIN:VCALENDAR
BEGIN:VEVENT
SUMMARY:Team Sync
DTSTART:20240310T140000Z
DTEND:20240310T153000Z
END:VEVENT
BEGIN:VEVENT
SUMMARY:Planning
DTSTART:20240412T090000Z
DTEND:20240412T100000Z
END:VEVENT
END:VCALENDAR
"""


class StubFetcher:
    def __init__(self, text: str = ICS, error: Exception | None = None):
        self.text = text
        self.error = error
        self.urls: list[str] = []

    def fetch(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.text


def _controller(tmp_path: Path, fetcher: StubFetcher | None = None) -> CalendarController:
    return CalendarController(
        fetcher=fetcher or StubFetcher(),
        preferences=PreferenceStore(tmp_path / "prefs.json", scope="viewer"),
        today=lambda: date(2024, 3, 18),
    )


def test_import_text_replaces_events_and_resets_navigation(tmp_path):
    controller = _controller(tmp_path)
    controller.import_events([Event(summary="Old", start="2023-01-01")], source="seed")

    controller.import_text(ICS)

    assert [e.summary for e in controller.events] == ["Team Sync", "Planning"]
    view = controller.month_view()
    assert view["month"] == "2024-03"
    assert view["total_hours"] == 1.5
    assert view["has_next"] is True


def test_month_paging_clamps(tmp_path):
    controller = _controller(tmp_path)
    controller.import_text(ICS)

    assert controller.next_month()["month"] == "2024-04"
    assert controller.next_month()["month"] == "2024-04"
    assert controller.previous_month()["month"] == "2024-03"
    assert controller.previous_month()["index"] == 0


def test_import_url_saves_url_preference(tmp_path):
    fetcher = StubFetcher()
    controller = _controller(tmp_path, fetcher)

    controller.import_url("https://example.com/cal.ics")

    assert fetcher.urls == ["https://example.com/cal.ics"]
    assert controller.preferences.get(CALENDAR_URL_KEY) == "https://example.com/cal.ics"
    assert len(controller.events) == 2


def test_restore_saved_url_reimports(tmp_path):
    PreferenceStore(tmp_path / "prefs.json", scope="viewer").set(CALENDAR_URL_KEY, "https://example.com/saved.ics")
    fetcher = StubFetcher()
    controller = _controller(tmp_path, fetcher)

    events = controller.restore_saved_url()

    assert fetcher.urls == ["https://example.com/saved.ics"]
    assert len(events) == 2


def test_import_url_without_any_url_sets_error(tmp_path):
    controller = _controller(tmp_path)

    with pytest.raises(ValueError):
        controller.import_url("")

    assert controller.error == "Please enter a calendar URL"


def test_fetch_failure_keeps_previous_events_and_reports_error(tmp_path):
    controller = _controller(tmp_path, StubFetcher(error=IcsFetchError("Failed to fetch ICS file: Not Found")))
    controller.import_events([Event(summary="Keep", start="2024-03-01")], source="seed")

    with pytest.raises(IcsFetchError):
        controller.import_url("https://example.com/missing.ics")

    assert [e.summary for e in controller.events] == ["Keep"]
    assert controller.error == "Failed to fetch ICS file: Not Found"
    assert controller.loading is False


def test_stale_import_completion_is_discarded(tmp_path):
    controller = _controller(tmp_path)

    slow = controller.begin_import("slow")
    fast = controller.begin_import("fast")
    assert controller.loading is True

    assert controller.complete_import(fast, [Event(summary="Fast", start="2024-03-02")]) is True
    assert controller.complete_import(slow, [Event(summary="Slow", start="2024-03-01")]) is False

    assert [e.summary for e in controller.events] == ["Fast"]
    assert controller.loading is False


def test_clear_drops_events_and_outstanding_imports(tmp_path):
    controller = _controller(tmp_path)
    controller.import_text(ICS)
    pending = controller.begin_import("late")

    controller.clear()
    controller.complete_import(pending, [Event(summary="Late", start="2024-03-01")])

    assert controller.events == []
    assert controller.month_view()["month"] is None


def test_export_defaults_to_current_month(tmp_path):
    controller = _controller(tmp_path)
    controller.import_text(ICS)

    filename, text = controller.export()

    assert filename == "calendar-events-2024-03-01-to-2024-03-31.csv"
    assert text.split("\n")[1].startswith('"Team Sync"')
    assert len(text.split("\n")) == 2


def test_import_file_reads_utf8(tmp_path):
    path = tmp_path / "cal.ics"
    path.write_text(ICS, encoding="utf-8")
    controller = _controller(tmp_path)

    events = controller.import_file(path)

    assert len(events) == 2
    assert controller.status()["event_count"] == 2


def test_unexpected_fetch_error_releases_loading_flag(tmp_path):
    controller = _controller(tmp_path, StubFetcher(error=RuntimeError("socket closed")))

    with pytest.raises(RuntimeError):
        controller.import_url("https://example.com/cal.ics")

    assert controller.loading is False
    assert controller.error == "Failed to import calendar"
