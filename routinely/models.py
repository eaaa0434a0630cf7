"""Typed dataclasses for the Routinely data model.

All persisted models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import time
from typing import Any

from routinely.errors import InvalidFormat, InvalidInterval


# ── Vocabulary ────────────────────────────────────────────────

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
CATEGORIES = ("work", "study", "leisure", "health", "fitness", "social", "household", "sleep", "other")
GENDERS = ("male", "female", "none")
ROLES = ("user", "admin", "super-admin")

DEFAULT_COLOR = "#808080"

WALL_CLOCK_RE = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


# ── Primitives ────────────────────────────────────────────────


def parse_wall_clock(s: str) -> time:
    """Parse a strict 24-hour 'HH:MM' string."""
    if not isinstance(s, str) or not WALL_CLOCK_RE.match(s):
        raise InvalidFormat(f"Time must be in HH:MM format, got {s!r}")
    return time(int(s[:2]), int(s[3:]))


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


@dataclass
class TimeInterval:
    """A half-open [start, end) wall-clock interval within a single day."""

    start: time
    end: time

    @classmethod
    def from_strings(cls, start: str, end: str) -> TimeInterval:
        interval = cls(parse_wall_clock(start), parse_wall_clock(end))
        interval.duration_minutes()
        return interval

    def duration_minutes(self) -> int:
        span = minutes_of(self.end) - minutes_of(self.start)
        if span <= 0:
            raise InvalidInterval(
                f"End time must be after start time ({self.to_str()})"
            )
        return span

    def overlaps(self, other: TimeInterval) -> bool:
        return self.start < other.end and other.start < self.end

    def start_str(self) -> str:
        return self.start.strftime("%H:%M")

    def end_str(self) -> str:
        return self.end.strftime("%H:%M")

    def to_str(self) -> str:
        return f"{self.start_str()}-{self.end_str()}"


# ── Activities ────────────────────────────────────────────────


@dataclass
class Activity:
    id: str
    interval: TimeInterval
    label: str
    category: str
    routine_id: str = ""
    user_id: str = ""
    weekday: str = ""
    is_completed: bool = False
    color: str = DEFAULT_COLOR
    created_at: str = ""
    updated_at: str = ""

    @property
    def duration(self) -> int:
        return self.interval.duration_minutes()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Activity:
        return cls(
            id=str(d.get("id", "")),
            interval=TimeInterval.from_strings(d.get("startTime", ""), d.get("endTime", "")),
            label=str(d.get("label", "")),
            category=str(d.get("category", "other")),
            routine_id=str(d.get("routineId", "")),
            user_id=str(d.get("userId", "")),
            weekday=str(d.get("day", "")),
            is_completed=bool(d.get("isCompleted", False)),
            color=str(d.get("color") or DEFAULT_COLOR),
            created_at=str(d.get("createdAt", "")),
            updated_at=str(d.get("updatedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "routineId": self.routine_id,
            "userId": self.user_id,
            "day": self.weekday,
            "startTime": self.interval.start_str(),
            "endTime": self.interval.end_str(),
            "duration": self.duration,
            "label": self.label,
            "category": self.category,
            "isCompleted": self.is_completed,
            "color": self.color,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class ActivityInput:
    """A validated create payload, before ids and timestamps are assigned."""

    interval: TimeInterval
    label: str
    category: str
    color: str = DEFAULT_COLOR


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass
class ActivityPatch:
    """Partial update. Fields left as UNSET keep their current value.

    ``color=None`` is an explicit clear and resets the colour to the default.
    """

    start: Any = UNSET
    end: Any = UNSET
    label: Any = UNSET
    category: Any = UNSET
    color: Any = UNSET

    def present_fields(self) -> list[str]:
        return [
            name for name in ("start", "end", "label", "category", "color")
            if getattr(self, name) is not UNSET
        ]

    def is_empty(self) -> bool:
        return not self.present_fields()

    def touches_interval(self) -> bool:
        return self.start is not UNSET or self.end is not UNSET

    def apply_to(self, activity: Activity, default_color: str = DEFAULT_COLOR) -> Activity:
        """Return a patched copy of *activity*; the original is left untouched."""
        interval = activity.interval
        if self.touches_interval():
            interval = TimeInterval(
                self.start if self.start is not UNSET else interval.start,
                self.end if self.end is not UNSET else interval.end,
            )
            interval.duration_minutes()
        changes: dict[str, Any] = {"interval": interval}
        if self.label is not UNSET:
            changes["label"] = self.label
        if self.category is not UNSET:
            changes["category"] = self.category
        if self.color is not UNSET:
            changes["color"] = self.color if self.color is not None else default_color
        return replace(activity, **changes)


@dataclass
class CompletedActivity:
    """Archival snapshot written when an activity is marked completed."""

    id: str = ""
    activity_id: str = ""
    user_id: str = ""
    label: str = ""
    duration_minutes: int = 0
    category: str = ""
    completed_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompletedActivity:
        return cls(
            id=str(d.get("id", "")),
            activity_id=str(d.get("activityId", "")),
            user_id=str(d.get("userId", "")),
            label=str(d.get("label", "")),
            duration_minutes=int(d.get("duration", 0) or 0),
            category=str(d.get("category", "")),
            completed_at=str(d.get("completedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "activityId": self.activity_id,
            "userId": self.user_id,
            "label": self.label,
            "duration": self.duration_minutes,
            "category": self.category,
            "completedAt": self.completed_at,
        }


# ── Users ─────────────────────────────────────────────────────


@dataclass
class User:
    id: str = ""
    name: str = ""
    surname: str = ""
    email: str = ""
    nationality: str = ""
    gender: str = "none"
    birthdate: str = ""  # ISO date
    role: str = "user"
    timezone: str | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> User:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            surname=str(d.get("surname", "")),
            email=str(d.get("email", "")).lower(),
            nationality=str(d.get("nationality", "")),
            gender=str(d.get("gender") or "none"),
            birthdate=str(d.get("birthdate", "")),
            role=str(d.get("role") or "user"),
            timezone=d.get("timeZone") or None,
            created_at=str(d.get("createdAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "surname": self.surname,
            "email": self.email,
            "nationality": self.nationality,
            "gender": self.gender,
            "birthdate": self.birthdate,
            "role": self.role,
            "timeZone": self.timezone,
            "createdAt": self.created_at,
        }

    def is_admin(self) -> bool:
        return self.role in ("admin", "super-admin")
