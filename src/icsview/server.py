from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from http import HTTPStatus
from http.cookies import SimpleCookie
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, quote, urlsplit
from zoneinfo import ZoneInfo

from .calendar_google import GoogleCalendarClient, GoogleCalendarError, NotAuthenticatedError
from .config import AppConfig
from .controller import CalendarController
from .csv_export import parse_range
from .fetch import IcsFetchError, IcsFetcher
from .preferences import PreferenceStore

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "google_access_token"


class CalendarRequestHandler(BaseHTTPRequestHandler):
    controller: CalendarController
    fetcher: IcsFetcher
    google: GoogleCalendarClient
    token_max_age_seconds: int = 3600
    secure_cookies: bool = False

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)

    # -- helpers -----------------------------------------------------------

    def _send_json(self, status: int, payload: Any) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_csv(self, filename: str, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "text/csv;charset=utf-8")
        self.send_header("Content-Disposition", f'attachment; filename="{filename}"')
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _redirect(self, location: str, cookie: Optional[str] = None) -> None:
        self.send_response(HTTPStatus.FOUND)
        self.send_header("Location", location)
        if cookie:
            self.send_header("Set-Cookie", cookie)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def _read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", "0"))
        return self.rfile.read(content_length) if content_length else b""

    def _read_json(self) -> Dict[str, Any]:
        raw = self._read_body() or b"{}"
        try:
            data = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON body: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data

    def _query(self) -> Dict[str, str]:
        parsed = parse_qs(urlsplit(self.path).query)
        return {key: values[0] for key, values in parsed.items() if values}

    def _route(self) -> str:
        return urlsplit(self.path).path

    def _access_token(self) -> Optional[str]:
        cookie = SimpleCookie()
        cookie.load(self.headers.get("Cookie", ""))
        morsel = cookie.get(TOKEN_COOKIE)
        return morsel.value if morsel is not None and morsel.value else None

    def _token_cookie(self, token: str) -> str:
        cookie = SimpleCookie()
        cookie[TOKEN_COOKIE] = token
        morsel = cookie[TOKEN_COOKIE]
        morsel["httponly"] = True
        morsel["samesite"] = "Lax"
        morsel["path"] = "/"
        morsel["max-age"] = str(self.token_max_age_seconds)
        if self.secure_cookies:
            morsel["secure"] = True
        return morsel.OutputString()

    # -- routes ------------------------------------------------------------

    def do_GET(self) -> None:  # noqa: N802
        route = self._route()
        try:
            if route == "/status":
                self._send_json(HTTPStatus.OK, self.controller.status())
            elif route == "/api/events":
                self._send_json(HTTPStatus.OK, {"events": [e.to_dict() for e in self.controller.events]})
            elif route == "/api/month":
                self._send_json(HTTPStatus.OK, self.controller.month_view())
            elif route == "/api/export":
                self._handle_export()
            elif route == "/api/google-auth":
                self._send_json(HTTPStatus.OK, {"url": self.google.authorization_url()})
            elif route == "/api/google-callback":
                self._handle_google_callback()
            elif route == "/api/google-events":
                self._handle_google_events()
            else:
                self._send_json(HTTPStatus.NOT_FOUND, {"error": "not_found"})
        except ValueError as exc:
            self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(exc)})
        except Exception as exc:  # noqa: BLE001
            logger.exception("GET %s failed", route)
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)})

    def do_POST(self) -> None:  # noqa: N802
        route = self._route()
        try:
            if route == "/api/fetch-ics":
                self._handle_fetch_ics()
            elif route == "/api/import-url":
                data = self._read_json()
                events = self.controller.import_url(data.get("url") or None)
                self._send_json(HTTPStatus.OK, {"count": len(events), "month": self.controller.month_view()})
            elif route == "/api/upload":
                text = self._read_body().decode("utf-8")
                events = self.controller.import_text(text, source="upload")
                self._send_json(HTTPStatus.OK, {"count": len(events), "month": self.controller.month_view()})
            elif route == "/api/month/next":
                self._send_json(HTTPStatus.OK, self.controller.next_month())
            elif route == "/api/month/previous":
                self._send_json(HTTPStatus.OK, self.controller.previous_month())
            elif route == "/api/google-import":
                self._handle_google_import()
            else:
                self._send_json(HTTPStatus.NOT_FOUND, {"error": "not_found"})
        except IcsFetchError as exc:
            self._send_json(HTTPStatus.BAD_GATEWAY, {"error": str(exc)})
        except (ValueError, UnicodeDecodeError) as exc:
            self._send_json(HTTPStatus.BAD_REQUEST, {"error": str(exc)})
        except Exception as exc:  # noqa: BLE001
            logger.exception("POST %s failed", route)
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)})

    def do_DELETE(self) -> None:  # noqa: N802
        if self._route() != "/api/events":
            self._send_json(HTTPStatus.NOT_FOUND, {"error": "not_found"})
            return
        self.controller.clear()
        self._send_json(HTTPStatus.OK, {"ok": True})

    def _handle_fetch_ics(self) -> None:
        data = self._read_json()
        url = data.get("url")
        if not url:
            self._send_json(HTTPStatus.BAD_REQUEST, {"error": "URL is required"})
            return
        try:
            content = self.fetcher.fetch(url)
        except IcsFetchError as exc:
            logger.error("Error fetching ICS: %s", exc)
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": "Failed to fetch ICS file"})
            return
        self._send_json(HTTPStatus.OK, {"content": content})

    def _handle_export(self) -> None:
        query = self._query()
        start = query.get("start")
        end = query.get("end")
        if start and end:
            filename, text = self.controller.export(*parse_range(start, end))
        else:
            filename, text = self.controller.export()
        self._send_csv(filename, text)

    def _handle_google_callback(self) -> None:
        code = self._query().get("code")
        if not code:
            self._redirect("/?error=no_code")
            return
        try:
            token = self.google.exchange_code(code)
        except GoogleCalendarError as exc:
            logger.error("Google callback error: %s", exc)
            self._redirect(f"/?error={quote(str(exc))}")
            return
        self._redirect("/", cookie=self._token_cookie(token))

    def _handle_google_events(self) -> None:
        query = self._query()
        try:
            resp = self.google.list_events(
                self._access_token(),
                calendar_id=query.get("calendarId"),
                time_min=query.get("timeMin"),
                time_max=query.get("timeMax"),
            )
        except NotAuthenticatedError:
            self._send_json(HTTPStatus.UNAUTHORIZED, {"error": "Not authenticated"})
            return
        except GoogleCalendarError as exc:
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)})
            return
        self._send_json(HTTPStatus.OK, resp)

    def _handle_google_import(self) -> None:
        data = self._read_json()
        try:
            events = self.google.fetch_events(
                self._access_token(),
                calendar_id=data.get("calendarId"),
                time_min=data.get("timeMin"),
                time_max=data.get("timeMax"),
            )
        except NotAuthenticatedError:
            self._send_json(HTTPStatus.UNAUTHORIZED, {"error": "Not authenticated"})
            return
        except GoogleCalendarError as exc:
            self._send_json(HTTPStatus.INTERNAL_SERVER_ERROR, {"error": str(exc)})
            return
        self.controller.import_events(events, source="google")
        self._send_json(HTTPStatus.OK, {"count": len(events), "month": self.controller.month_view()})


def build_handler(cfg: AppConfig, controller: Optional[CalendarController] = None) -> type[CalendarRequestHandler]:
    """A handler class bound to one controller and its collaborators."""
    if controller is None:
        controller = CalendarController(
            fetcher=IcsFetcher(timeout_seconds=cfg.fetch.timeout_seconds, user_agent=cfg.fetch.user_agent),
            preferences=PreferenceStore(cfg.preferences.path, scope="viewer"),
            url_max_age=timedelta(days=cfg.preferences.url_max_age_days),
            today=lambda: datetime.now(tz=ZoneInfo(cfg.timezone)).date(),
        )
    attrs = {
        "controller": controller,
        "fetcher": controller.fetcher,
        "google": GoogleCalendarClient(cfg.google),
        "token_max_age_seconds": cfg.google.token_max_age_seconds,
        "secure_cookies": cfg.google.redirect_uri.startswith("https://"),
    }
    return type("BoundCalendarRequestHandler", (CalendarRequestHandler,), attrs)


def run_server(cfg: AppConfig, host: Optional[str] = None, port: Optional[int] = None) -> None:
    handler = build_handler(cfg)
    handler.controller.restore_saved_url()
    host = host or cfg.server.host
    port = port or cfg.server.port
    server = ThreadingHTTPServer((host, port), handler)
    print(f"icsview listening on http://{host}:{port}")
    server.serve_forever()
