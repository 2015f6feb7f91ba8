from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import json
import logging

logger = logging.getLogger(__name__)

CALENDAR_URL_KEY = "calendar_url"

@dataclass
class Preference:
    value: str
    expires_iso: str = ""  # empty means no expiry

    def expired(self, now: datetime) -> bool:
        if not self.expires_iso:
            return False
        try:
            expires = datetime.fromisoformat(self.expires_iso)
        except ValueError:
            return True
        return now >= expires


class PreferenceStore:
    """JSON-file key/value store, namespaced by scope, with per-key expiry."""

    def __init__(
        self,
        path: str | Path,
        scope: str = "default",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.path = Path(path).expanduser()
        self.scope = scope
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def get(self, key: str) -> Optional[str]:
        prefs = self._load_scope()
        pref = prefs.get(key)
        if pref is None:
            return None
        if pref.expired(self.clock()):
            self.delete(key)
            return None
        return pref.value

    def set(self, key: str, value: str, max_age: Optional[timedelta] = None) -> None:
        expires_iso = (self.clock() + max_age).isoformat() if max_age is not None else ""
        prefs = self._load_scope()
        prefs[key] = Preference(value=value, expires_iso=expires_iso)
        self._save_scope(prefs)

    def delete(self, key: str) -> None:
        prefs = self._load_scope()
        if prefs.pop(key, None) is not None:
            self._save_scope(prefs)

    def _load_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _load_scope(self) -> Dict[str, Preference]:
        raw = self._load_all().get(self.scope, {})
        if not isinstance(raw, dict):
            return {}
        prefs: Dict[str, Preference] = {}
        for key, item in raw.items():
            if not isinstance(item, dict):
                continue
            prefs[key] = Preference(
                value=str(item.get("value", "")),
                expires_iso=str(item.get("expires_iso", "")),
            )
        return prefs

    def _save_scope(self, prefs: Dict[str, Preference]) -> None:
        data = self._load_all()
        data[self.scope] = {key: asdict(pref) for key, pref in prefs.items()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
