"""Read-only rollups over activities, archival records and users.

The ``compute_*`` functions are pure: they take plain records and group,
sum and sort. ``StatsAggregator`` loads the records from the store and
delegates, raising NotFound when there is nothing to report.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from routinely.bucket import Routine
from routinely.errors import NotFound
from routinely.models import WEEKDAYS, Activity, CompletedActivity, User
from routinely.pagination import Page, paginate
from routinely.store import DocumentStore
from routinely.workspace import now_utc


# ── Result types ──────────────────────────────────────────────


@dataclass
class CategoryStat:
    category: str
    total_activities: int = 0
    total_duration: int = 0

    @property
    def duration_per_activity(self) -> float:
        if not self.total_activities:
            return 0.0
        return round(self.total_duration / self.total_activities, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "categoryName": self.category,
            "totalActivity": self.total_activities,
            "totalDuration": self.total_duration,
            "durationPerActivity": self.duration_per_activity,
        }


@dataclass
class DayStat:
    weekday: str
    total_activities: int = 0
    categories: list[tuple[str, int]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalActivities": self.total_activities,
            "categories": [{"categoryName": c, "duration": d} for c, d in self.categories],
        }


@dataclass
class SummaryStats:
    total_users: int = 0
    active_activities: int = 0
    total_completed_activities: int = 0
    all_time_activities: int = 0
    new_registrations_today: int = 0
    activities_completed_today: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalUsers": self.total_users,
            "activeActivities": self.active_activities,
            "totalCompletedActivities": self.total_completed_activities,
            "allTimeActivities": self.all_time_activities,
            "newRegistrationsToday": self.new_registrations_today,
            "activitiesCompletedToday": self.activities_completed_today,
        }


@dataclass
class NationalityStat:
    nationality: str
    total: int = 0
    male: int = 0
    female: int = 0
    none: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "nationality": self.nationality,
            "total": self.total,
            "male": self.male,
            "female": self.female,
            "none": self.none,
        }


# ── Pure computations ─────────────────────────────────────────


def _day_of(iso: str) -> date | None:
    if not iso:
        return None
    try:
        return datetime.fromisoformat(iso).date()
    except ValueError:
        return None


def compute_category_stats(activities: list[Activity]) -> list[CategoryStat]:
    """Count and duration per category, longest total first."""
    by_cat: dict[str, CategoryStat] = {}
    for a in activities:
        stat = by_cat.setdefault(a.category, CategoryStat(a.category))
        stat.total_activities += 1
        stat.total_duration += a.duration
    return sorted(by_cat.values(), key=lambda s: s.total_duration, reverse=True)


def compute_day_stats(routines: list[Routine]) -> dict[str, DayStat]:
    """Per weekday (Monday first) category durations, longest first.

    Days with no activities in any routine are omitted.
    """
    durations: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    counts: Counter[str] = Counter()
    for routine in routines:
        for day in WEEKDAYS:
            for a in routine.bucket(day):
                durations[day][a.category] += a.duration
                counts[day] += 1

    result: dict[str, DayStat] = {}
    for day in WEEKDAYS:
        if not counts[day]:
            continue
        cats = sorted(durations[day].items(), key=lambda x: x[1], reverse=True)
        result[day] = DayStat(weekday=day, total_activities=counts[day], categories=cats)
    return result


def compute_completion_stats(records: list[CompletedActivity]) -> list[CategoryStat]:
    """Archived completions per category, most minutes first."""
    by_cat: dict[str, CategoryStat] = {}
    for r in records:
        stat = by_cat.setdefault(r.category, CategoryStat(r.category))
        stat.total_activities += 1
        stat.total_duration += r.duration_minutes
    return sorted(by_cat.values(), key=lambda s: s.total_duration, reverse=True)


def compute_summary(
    users: list[User],
    activities: list[Activity],
    completed: list[CompletedActivity],
    routines: list[Routine],
    today: date,
) -> SummaryStats:
    return SummaryStats(
        total_users=len(users),
        active_activities=len(activities),
        total_completed_activities=len(completed),
        all_time_activities=sum(r.lifetime_activity_count for r in routines),
        new_registrations_today=sum(1 for u in users if _day_of(u.created_at) == today),
        activities_completed_today=sum(1 for c in completed if _day_of(c.completed_at) == today),
    )


def compute_nationality_stats(users: list[User]) -> list[NationalityStat]:
    """Gender breakdown per nationality, largest first (ties by name)."""
    by_nat: dict[str, NationalityStat] = {}
    for u in users:
        stat = by_nat.setdefault(u.nationality, NationalityStat(u.nationality))
        stat.total += 1
        gender = u.gender if u.gender in ("male", "female") else "none"
        setattr(stat, gender, getattr(stat, gender) + 1)
    return sorted(by_nat.values(), key=lambda s: (-s.total, s.nationality))


def compute_birth_year_stats(users: list[User]) -> list[dict[str, int]]:
    """Users per birth year, oldest year first."""
    years: Counter[int] = Counter()
    for u in users:
        try:
            years[date.fromisoformat(u.birthdate).year] += 1
        except ValueError:
            continue
    return [{"year": y, "userCount": n} for y, n in sorted(years.items())]


def compute_registration_stats(users: list[User]) -> list[dict[str, int]]:
    """Registrations per month: years ascending, months descending within a year."""
    months: Counter[tuple[int, int]] = Counter()
    for u in users:
        try:
            created = datetime.fromisoformat(u.created_at)
        except ValueError:
            continue
        months[(created.year, created.month)] += 1
    ordered = sorted(months.items(), key=lambda x: (x[0][0], -x[0][1]))
    return [{"year": y, "month": m, "userCount": n} for (y, m), n in ordered]


# ── Store-backed aggregator ───────────────────────────────────


class StatsAggregator:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def _activities(self) -> list[Activity]:
        return [Activity.from_dict(d) for d in self.store.find("activities")]

    def _completed(self) -> list[CompletedActivity]:
        return [CompletedActivity.from_dict(d) for d in self.store.find("completedActivities")]

    def _routines(self) -> list[Routine]:
        return [Routine.from_dict(d) for d in self.store.find("routines")]

    def _users(self) -> list[User]:
        return [User.from_dict(d) for d in self.store.find("users")]

    def category_stats(self) -> list[CategoryStat]:
        stats = compute_category_stats(self._activities())
        if not stats:
            raise NotFound("No activities found!")
        return stats

    def day_stats(self) -> dict[str, DayStat]:
        stats = compute_day_stats(self._routines())
        if not stats:
            raise NotFound("No activities found!")
        return stats

    def completion_stats(self) -> list[CategoryStat]:
        stats = compute_completion_stats(self._completed())
        if not stats:
            raise NotFound("No completed activities found!")
        return stats

    def summary_stats(self, now: datetime | None = None) -> SummaryStats:
        today = (now or now_utc()).date()
        return compute_summary(
            self._users(), self._activities(), self._completed(), self._routines(), today
        )

    def nationality_stats(self, page: int = 1, limit: int = 10) -> Page:
        return paginate(compute_nationality_stats(self._users()), page, limit)

    def birth_year_stats(self, page: int = 1, limit: int = 10) -> Page:
        return paginate(compute_birth_year_stats(self._users()), page, limit)

    def registration_stats(self, page: int = 1, limit: int = 10) -> Page:
        return paginate(compute_registration_stats(self._users()), page, limit)
