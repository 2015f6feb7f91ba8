from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import yaml

DEFAULT_REDIRECT_URI = "http://localhost:3000/api/google-callback"

@dataclass
class ServerConfig:
    host: str
    port: int

@dataclass
class FetchConfig:
    timeout_seconds: float
    user_agent: str

@dataclass
class PreferencesConfig:
    path: str
    url_max_age_days: int

@dataclass
class GoogleConfig:
    enabled: bool
    redirect_uri: str
    calendar_id: str
    lookahead_days: int
    token_max_age_seconds: int
    scopes: List[str]
    client_id: str = ""
    client_secret: str = ""

    @property
    def configured(self) -> bool:
        return self.enabled and bool(self.client_id and self.client_secret)

@dataclass
class AppConfig:
    timezone: str
    server: ServerConfig
    fetch: FetchConfig
    preferences: PreferencesConfig
    google: GoogleConfig

def load_config(path: Optional[str] = None) -> AppConfig:
    """Load YAML config (every key optional); Google secrets come from the environment."""
    data: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if p.exists():
            data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    server = data.get("server", {})
    fetch = data.get("fetch", {})
    preferences = data.get("preferences", {})
    google = data.get("google", {})

    return AppConfig(
        timezone=str(data.get("timezone", "UTC")),
        server=ServerConfig(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", 3000)),
        ),
        fetch=FetchConfig(
            timeout_seconds=float(fetch.get("timeout_seconds", 15)),
            user_agent=str(fetch.get("user_agent", "icsview/1.0")),
        ),
        preferences=PreferencesConfig(
            path=str(preferences.get("path", "~/.config/icsview/preferences.json")),
            url_max_age_days=int(preferences.get("url_max_age_days", 365)),
        ),
        google=GoogleConfig(
            enabled=bool(google.get("enabled", True)),
            redirect_uri=os.environ.get("REDIRECT_URI") or str(google.get("redirect_uri", DEFAULT_REDIRECT_URI)),
            calendar_id=str(google.get("calendar_id", "primary")),
            lookahead_days=int(google.get("lookahead_days", 30)),
            token_max_age_seconds=int(google.get("token_max_age_seconds", 3600)),
            scopes=list(google.get("scopes", ["https://www.googleapis.com/auth/calendar.readonly"])),
            client_id=os.environ.get("GOOGLE_CLIENT_ID", ""),
            client_secret=os.environ.get("GOOGLE_CLIENT_SECRET", ""),
        ),
    )
