from __future__ import annotations
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import GoogleConfig
from .models import Event

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class NotAuthenticatedError(RuntimeError):
    """No Google access token is available for the request."""


class GoogleCalendarError(RuntimeError):
    """Token exchange or Calendar API call failed."""


def _format_google_time(obj: Dict[str, Any]) -> str:
    # All-day events have "date" not "dateTime"
    if "date" in obj:
        return str(obj["date"])
    raw = obj.get("dateTime")
    if not raw:
        return ""
    raw = str(raw)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        # Keep the wall-clock time in whatever offset Google returned.
        return datetime.fromisoformat(raw).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return raw


def google_item_to_event(item: Dict[str, Any]) -> Event:
    return Event(
        summary=item.get("summary", ""),
        start=_format_google_time(item.get("start", {})),
        end=_format_google_time(item.get("end", {})),
        description=item.get("description"),
        location=item.get("location"),
    )


class GoogleCalendarClient:
    """OAuth authorization-code flow plus read-only Calendar API access."""

    def __init__(self, config: GoogleConfig) -> None:
        self.config = config

    def _client_config(self) -> Dict[str, Any]:
        return {
            "web": {
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.config.redirect_uri],
            }
        }

    def _flow(self) -> Flow:
        if not self.config.configured:
            raise GoogleCalendarError("Google OAuth is not configured (GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET)")
        # The callback arrives on a fresh request, so no PKCE verifier survives between the two legs.
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.config.scopes,
            redirect_uri=self.config.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self) -> str:
        url, _state = self._flow().authorization_url(access_type="offline", prompt="consent")
        return url

    def exchange_code(self, code: str) -> str:
        """Swap an authorization code for an access token and check it against the calendar list."""
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            logger.error("Google token exchange failed: %s", exc)
            raise GoogleCalendarError(f"Failed to exchange code for tokens: {exc}") from exc

        access_token = flow.credentials.token
        if not access_token:
            raise GoogleCalendarError("Failed to exchange code for tokens")
        self.list_calendars(access_token)
        return access_token

    def _service(self, access_token: Optional[str]):
        if not access_token:
            raise NotAuthenticatedError("Not authenticated")
        creds = Credentials(token=access_token)
        return build("calendar", "v3", credentials=creds, cache_discovery=False)

    def list_calendars(self, access_token: Optional[str]) -> List[Dict[str, Any]]:
        service = self._service(access_token)
        try:
            resp = service.calendarList().list().execute()
        except HttpError as exc:
            logger.error("Google calendar list failed: %s", exc)
            raise GoogleCalendarError(f"Failed to fetch calendars: {exc}") from exc
        return resp.get("items", [])

    def list_events(
        self,
        access_token: Optional[str],
        calendar_id: Optional[str] = None,
        time_min: Optional[str] = None,
        time_max: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Raw Calendar API events response; the window defaults to now plus lookahead_days."""
        service = self._service(access_token)
        now = now or datetime.now(timezone.utc)
        try:
            return service.events().list(
                calendarId=calendar_id or self.config.calendar_id,
                timeMin=time_min or now.isoformat(),
                timeMax=time_max or (now + timedelta(days=self.config.lookahead_days)).isoformat(),
                singleEvents=True,
                orderBy="startTime",
            ).execute()
        except HttpError as exc:
            logger.error("Google events fetch failed: %s", exc)
            raise GoogleCalendarError(f"Failed to fetch events: {exc}") from exc

    def fetch_events(self, access_token: Optional[str], **kwargs: Any) -> List[Event]:
        resp = self.list_events(access_token, **kwargs)
        return [google_item_to_event(item) for item in resp.get("items", [])]
