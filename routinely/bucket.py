"""Day buckets and the weekly routine that owns them.

A DayBucket keeps its activities sorted by start time and free of overlaps.
Every mutation checks first and mutates second, so a failed insert or update
leaves the bucket exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from routinely.errors import NotFound, TimeConflict
from routinely.models import (
    DEFAULT_COLOR,
    WEEKDAYS,
    Activity,
    ActivityPatch,
    TimeInterval,
    minutes_of,
)


@dataclass
class DayBucket:
    weekday: str
    activities: list[Activity] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._sort()

    def __len__(self) -> int:
        return len(self.activities)

    def __iter__(self) -> Iterator[Activity]:
        return iter(self.activities)

    def _sort(self) -> None:
        # list.sort is stable: equal starts keep insertion order
        self.activities.sort(key=lambda a: minutes_of(a.interval.start))

    def conflicts_with(self, interval: TimeInterval, exclude_id: str | None = None) -> list[Activity]:
        return [
            a for a in self.activities
            if a.id != exclude_id and a.interval.overlaps(interval)
        ]

    def _raise_conflict(self, interval: TimeInterval, clashes: list[Activity]) -> None:
        raise TimeConflict(
            "Time conflict with existing activity!",
            [f"{interval.to_str()} overlaps {a.interval.to_str()} {a.label}" for a in clashes],
        )

    def find(self, activity_id: str) -> Activity:
        for a in self.activities:
            if a.id == activity_id:
                return a
        raise NotFound(f"Activity not found on {self.weekday}: {activity_id}")

    def insert(self, activity: Activity) -> Activity:
        clashes = self.conflicts_with(activity.interval)
        if clashes:
            self._raise_conflict(activity.interval, clashes)
        self.activities.append(activity)
        self._sort()
        return activity

    def update(
        self,
        activity_id: str,
        patch: ActivityPatch,
        default_color: str = DEFAULT_COLOR,
    ) -> Activity:
        current = self.find(activity_id)
        updated = patch.apply_to(current, default_color)
        clashes = self.conflicts_with(updated.interval, exclude_id=activity_id)
        if clashes:
            self._raise_conflict(updated.interval, clashes)
        for i, a in enumerate(self.activities):
            if a.id == activity_id:
                self.activities[i] = updated
                break
        self._sort()
        return updated

    def remove(self, activity_id: str) -> Activity:
        for i, a in enumerate(self.activities):
            if a.id == activity_id:
                return self.activities.pop(i)
        raise NotFound(f"Activity not found on {self.weekday}: {activity_id}")

    def total_minutes(self) -> int:
        return sum(a.duration for a in self.activities)


@dataclass
class Routine:
    """Seven day buckets for one user plus the all-time activity counter.

    ``version`` mirrors the store's document version at load time and is the
    expected version for the next conditional replace.
    """

    id: str = ""
    user_id: str = ""
    days: dict[str, DayBucket] = field(default_factory=dict)
    lifetime_activity_count: int = 0
    version: int = 0

    def __post_init__(self) -> None:
        for day in WEEKDAYS:
            self.days.setdefault(day, DayBucket(day))

    def bucket(self, weekday: str) -> DayBucket:
        return self.days[weekday]

    def has_activities(self) -> bool:
        return any(len(b) for b in self.days.values())

    def all_activities(self) -> list[Activity]:
        return [a for day in WEEKDAYS for a in self.days[day]]

    def locate(self, activity_id: str) -> tuple[str, Activity] | None:
        for day in WEEKDAYS:
            for a in self.days[day]:
                if a.id == activity_id:
                    return day, a
        return None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Routine:
        if not d or not isinstance(d, dict):
            return cls()
        days = {
            day: DayBucket(day, [Activity.from_dict(a) for a in (d.get(day) or [])])
            for day in WEEKDAYS
        }
        return cls(
            id=str(d.get("id", "")),
            user_id=str(d.get("userId", "")),
            days=days,
            lifetime_activity_count=int(d.get("lifetimeActivityCount", 0) or 0),
            version=int(d.get("_version", 0) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "lifetimeActivityCount": self.lifetime_activity_count,
        }
        for day in WEEKDAYS:
            d[day] = [a.to_dict() for a in self.days[day]]
        return d
