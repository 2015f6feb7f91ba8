from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .csv_export import default_export_range, export_csv, export_filename
from .fetch import IcsFetchError, IcsFetcher
from .ics_parser import parse_ics
from .models import Event
from .months import MonthNavigator, month_grid
from .preferences import CALENDAR_URL_KEY, PreferenceStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportTicket:
    seq: int
    source: str


class CalendarController:
    """Owns the viewer state: event list, loading flag, error message and month cursor.

    Imports are sequenced. Each one takes a ticket when it starts, and a
    completion is applied only if no newer import has started since; older
    completions are dropped so a slow fetch cannot overwrite a newer list.
    """

    def __init__(
        self,
        fetcher: Optional[IcsFetcher] = None,
        preferences: Optional[PreferenceStore] = None,
        url_max_age: timedelta = timedelta(days=365),
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.fetcher = fetcher or IcsFetcher()
        self.preferences = preferences
        self.url_max_age = url_max_age
        self.today = today or date.today
        self.events: List[Event] = []
        self.error = ""
        self.navigator = MonthNavigator([], today=self.today())
        self._lock = threading.Lock()
        self._seq = 0
        self._pending: set[int] = set()

    @property
    def loading(self) -> bool:
        with self._lock:
            return bool(self._pending)

    # -- import sequencing -------------------------------------------------

    def begin_import(self, source: str) -> ImportTicket:
        with self._lock:
            self._seq += 1
            self._pending.add(self._seq)
            self.error = ""
            return ImportTicket(seq=self._seq, source=source)

    def complete_import(self, ticket: ImportTicket, events: List[Event]) -> bool:
        with self._lock:
            self._pending.discard(ticket.seq)
            if ticket.seq != self._seq:
                logger.info("Discarding stale import #%d from %s", ticket.seq, ticket.source)
                return False
            self.events = list(events)
            self.navigator = MonthNavigator(self.events, today=self.today())
            logger.info("Loaded %d events from %s", len(self.events), ticket.source)
            return True

    def fail_import(self, ticket: ImportTicket, message: str) -> bool:
        with self._lock:
            self._pending.discard(ticket.seq)
            if ticket.seq != self._seq:
                return False
            self.error = message
            return True

    # -- import sources ----------------------------------------------------

    def import_text(self, text: str, source: str = "upload") -> List[Event]:
        ticket = self.begin_import(source)
        events = parse_ics(text)
        self.complete_import(ticket, events)
        return events

    def import_file(self, path: str | Path) -> List[Event]:
        p = Path(path)
        ticket = self.begin_import(p.name)
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Error reading ICS file %s: %s", p, exc)
            self.fail_import(ticket, "Error parsing ICS file")
            raise
        events = parse_ics(text)
        self.complete_import(ticket, events)
        return events

    def import_url(self, url: Optional[str] = None) -> List[Event]:
        url = (url or self.saved_url() or "").strip()
        if not url:
            self.error = "Please enter a calendar URL"
            raise ValueError(self.error)

        self.save_url(url)
        ticket = self.begin_import(url)
        try:
            text = self.fetcher.fetch(url)
        except IcsFetchError as exc:
            self.fail_import(ticket, str(exc))
            raise
        except Exception:
            logger.exception("Import from %s failed", url)
            self.fail_import(ticket, "Failed to import calendar")
            raise
        events = parse_ics(text)
        self.complete_import(ticket, events)
        return events

    def import_events(self, events: List[Event], source: str) -> None:
        ticket = self.begin_import(source)
        self.complete_import(ticket, events)

    def restore_saved_url(self) -> Optional[List[Event]]:
        """Re-import the last used calendar URL, if one is remembered."""
        url = self.saved_url()
        if not url:
            return None
        try:
            return self.import_url(url)
        except IcsFetchError:
            logger.warning("Could not restore saved calendar URL %s", url)
            return None

    def clear(self) -> None:
        with self._lock:
            # Outstanding imports must not repopulate a cleared list.
            self._seq += 1
            self.events = []
            self.error = ""
            self.navigator = MonthNavigator([], today=self.today())

    # -- preferences -------------------------------------------------------

    def saved_url(self) -> Optional[str]:
        if self.preferences is None:
            return None
        return self.preferences.get(CALENDAR_URL_KEY)

    def save_url(self, url: str) -> None:
        if self.preferences is not None:
            self.preferences.set(CALENDAR_URL_KEY, url, max_age=self.url_max_age)

    # -- month view --------------------------------------------------------

    def next_month(self) -> Dict[str, Any]:
        with self._lock:
            self.navigator.next()
        return self.month_view()

    def previous_month(self) -> Dict[str, Any]:
        with self._lock:
            self.navigator.previous()
        return self.month_view()

    def month_view(self) -> Dict[str, Any]:
        with self._lock:
            nav = self.navigator
            bucket = nav.current
            if bucket is None:
                return {"month": None, "index": 0, "count": 0, "has_previous": False, "has_next": False}
            weeks = [
                [None if cell is None else {"day": cell.day, "events": [e.to_dict() for e in cell.events]}
                 for cell in week]
                for week in month_grid(bucket)
            ]
            return {
                "month": bucket.key,
                "label": bucket.label,
                "total_hours": round(bucket.total_hours, 1),
                "event_count": len(bucket.events),
                "weeks": weeks,
                "index": nav.index,
                "count": len(nav),
                "has_previous": nav.has_previous,
                "has_next": nav.has_next,
            }

    # -- export ------------------------------------------------------------

    def export(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Tuple[str, str]:
        """Return (filename, csv_text) for the current events."""
        if start_date is None or end_date is None:
            default_start, default_end = default_export_range(self.today())
            start_date = start_date or default_start
            end_date = end_date or default_end
        with self._lock:
            events = list(self.events)
        return export_filename(start_date, end_date), export_csv(events, start_date, end_date)

    def status(self) -> Dict[str, Any]:
        return {
            "event_count": len(self.events),
            "loading": self.loading,
            "error": self.error,
            "saved_url": self.saved_url() or "",
        }
