from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

# Field names used by the LCSD open-data feed.
VENUE_FIELD = "Venue_Name_EN"
DISTRICT_FIELD = "District_Name_EN"
DATE_FIELD = "Available_Date"
SESSION_START_FIELD = "Session_Start_Time"
SESSION_END_FIELD = "Session_End_Time"
COURTS_FIELD = "Available_Courts"

_DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def count_is_malformed(value: Any) -> bool:
    """True when a present count cannot be read as a non-negative integer."""
    if value is None:
        return False
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value < 0
    if isinstance(value, float):
        return not value.is_integer() or value < 0
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return False
        try:
            return int(raw, 10) < 0
        except ValueError:
            return True
    return True


def parse_count(value: Any) -> int:
    """Parse an availability count; missing or malformed values count as 0."""
    if value is None or count_is_malformed(value):
        return 0
    if isinstance(value, str):
        raw = value.strip()
        return int(raw, 10) if raw else 0
    return int(value)


def format_date_label(date_iso: str) -> str:
    """'2024-01-15' -> 'Mon, 01/15'. Unparsable input is returned unchanged."""
    try:
        d = datetime.strptime(date_iso[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return date_iso
    return f"{_DAY_NAMES[d.weekday()]}, {d.month:02d}/{d.day:02d}"


@dataclass(frozen=True)
class Slot:
    """One bookable session at one venue on one date."""

    venue: str
    district: str
    date: str  # YYYY-MM-DD
    session_start: str
    session_end: str
    available_courts: int = 0

    @property
    def key(self) -> tuple[str, str, str]:
        # sessionEnd and district are deliberately not part of identity.
        return (self.venue, self.date, self.session_start)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Slot":
        return cls(
            venue=_text(record.get(VENUE_FIELD)),
            district=_text(record.get(DISTRICT_FIELD)).strip(),
            date=_text(record.get(DATE_FIELD)),
            session_start=_text(record.get(SESSION_START_FIELD)),
            session_end=_text(record.get(SESSION_END_FIELD)),
            available_courts=parse_count(record.get(COURTS_FIELD)),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            VENUE_FIELD: self.venue,
            DISTRICT_FIELD: self.district,
            DATE_FIELD: self.date,
            SESSION_START_FIELD: self.session_start,
            SESSION_END_FIELD: self.session_end,
            COURTS_FIELD: self.available_courts,
        }


class ChangeKind(str, Enum):
    NEW_AVAILABILITY = "new_availability"
    INCREASED_AVAILABILITY = "increased_availability"


@dataclass(frozen=True)
class Change:
    kind: ChangeKind
    venue: str
    district: str
    date: str
    time_range: str
    current_count: int
    previous_count: int
    message: str

    @property
    def increase(self) -> int:
        return self.current_count - self.previous_count

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.kind.value,
            "venue": self.venue,
            "district": self.district,
            "date": self.date,
            "time": self.time_range,
            "currentCount": self.current_count,
            "previousCount": self.previous_count,
        }
        if self.kind is ChangeKind.INCREASED_AVAILABILITY:
            data["increase"] = self.increase
        data["message"] = self.message
        return data


@dataclass(frozen=True)
class Notification:
    title: str
    body: str
    changes: tuple[Change, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "changes": [c.to_dict() for c in self.changes],
        }


class CourtBotError(RuntimeError):
    """Base error for the court monitor."""


class FetchError(CourtBotError):
    """The feed answered, but not with a list of court records."""


class StoreError(CourtBotError):
    """Saving the snapshot failed. Callers log it; the next cycle diffs against stale data."""
