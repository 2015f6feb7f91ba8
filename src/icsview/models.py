from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

@dataclass(frozen=True)
class Event:
    summary: str = ""
    start: str = ""                  # "YYYY-MM-DD" or "YYYY-MM-DD HH:MM"
    end: str = ""
    description: Optional[str] = None
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"summary": self.summary, "start": self.start, "end": self.end}
        if self.description is not None:
            data["description"] = self.description
        if self.location is not None:
            data["location"] = self.location
        return data
