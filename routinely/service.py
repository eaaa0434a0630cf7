"""Scheduling service: the public create/read/update/delete contract.

Every write follows the same shape:
1. Validate the payload (no store access yet)
2. Load the user's routine and note its version
3. Mutate the day bucket in memory (conflict check, re-sort)
4. Commit routine + activity in one store batch, conditional on the version
5. On a version mismatch, start over from step 2 (bounded), then give up
   with Transient
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, TypeVar

from routinely.bucket import Routine
from routinely.errors import Forbidden, InvalidInput, NotFound, Transient, VersionConflict
from routinely.models import Activity, ActivityPatch, CompletedActivity
from routinely.pagination import Page, paginate
from routinely.store import DocumentStore
from routinely.validation import activity_input_from_dict, normalize_weekday, patch_from_dict
from routinely.workspace import Config, now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")


def new_id() -> str:
    return uuid.uuid4().hex


class SchedulingService:
    def __init__(
        self,
        store: DocumentStore,
        config: Config | None = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.config = config or Config()
        self.clock = clock

    # ── helpers ──

    def _now_iso(self) -> str:
        return self.clock().isoformat(timespec="seconds")

    def _load_routine(self, user_id: str) -> Routine | None:
        doc = self.store.find_one("routines", {"userId": user_id})
        return Routine.from_dict(doc) if doc else None

    def _require_routine(self, user_id: str, weekday: str) -> Routine:
        routine = self._load_routine(user_id)
        if routine is None:
            raise NotFound(f"No activity found for {weekday}!")
        return routine

    def _with_retry(self, action: str, attempt: Callable[[], T]) -> T:
        retries = self.config.max_write_retries
        for n in range(1, retries + 1):
            try:
                return attempt()
            except VersionConflict as e:
                logger.warning("%s lost a write race (attempt %d/%d): %s", action, n, retries, e)
        logger.error("%s gave up after %d attempts", action, retries)
        raise Transient(f"Could not {action}: the routine is being modified concurrently, try again")

    # ── reads ──

    def list_routine(self, user_id: str) -> Routine:
        routine = self._load_routine(user_id)
        if routine is None or not routine.has_activities():
            raise NotFound("Routines not found!")
        return routine

    def list_day(self, user_id: str, weekday: str) -> list[Activity]:
        day = normalize_weekday(weekday)
        routine = self._load_routine(user_id)
        if routine is None or not len(routine.bucket(day)):
            raise NotFound(f"No activity found for {day}!")
        return list(routine.bucket(day))

    def get_activity(self, user_id: str, weekday: str, activity_id: str) -> Activity:
        day = normalize_weekday(weekday)
        routine = self._require_routine(user_id, day)
        return routine.bucket(day).find(activity_id)

    def list_routines(self, page: int = 1, limit: int = 10) -> Page:
        """All routines, for admin listings."""
        routines = [Routine.from_dict(d) for d in self.store.find("routines")]
        return paginate(routines, page, limit)

    # ── writes ──

    def create_activity(self, user_id: str, weekday: str, payload: dict[str, Any]) -> Activity:
        day = normalize_weekday(weekday)
        draft = activity_input_from_dict(payload, self.config.default_color)

        def attempt() -> Activity:
            routine = self._load_routine(user_id)
            is_new = routine is None
            if routine is None:
                routine = Routine(id=new_id(), user_id=user_id)
            now = self._now_iso()
            activity = Activity(
                id=new_id(),
                interval=draft.interval,
                label=draft.label,
                category=draft.category,
                routine_id=routine.id,
                user_id=user_id,
                weekday=day,
                color=draft.color,
                created_at=now,
                updated_at=now,
            )
            routine.bucket(day).insert(activity)
            routine.lifetime_activity_count += 1

            with self.store.batch() as s:
                if is_new:
                    if s.find_one("routines", {"userId": user_id}) is not None:
                        raise VersionConflict("routines", routine.id, 0, 1)
                    s.insert("routines", routine.to_dict())
                else:
                    s.replace("routines", routine.to_dict(), routine.version)
                s.insert("activities", activity.to_dict())
            return activity

        activity = self._with_retry("create activity", attempt)
        logger.debug("Created %s %s on %s for %s", activity.id, activity.interval.to_str(), day, user_id)
        return activity

    def update_activity(
        self,
        user_id: str,
        weekday: str,
        activity_id: str,
        patch: ActivityPatch | dict[str, Any],
    ) -> Activity:
        day = normalize_weekday(weekday)
        if not isinstance(patch, ActivityPatch):
            patch = patch_from_dict(patch)
        elif patch.is_empty():
            raise InvalidInput("Patch must change at least one field.")

        def attempt() -> Activity:
            routine = self._require_routine(user_id, day)
            doc = self.store.get("activities", activity_id)
            updated = routine.bucket(day).update(activity_id, patch, self.config.default_color)
            updated.updated_at = self._now_iso()

            with self.store.batch() as s:
                s.replace("routines", routine.to_dict(), routine.version)
                if doc is None:
                    s.insert("activities", updated.to_dict())
                else:
                    s.replace("activities", updated.to_dict(), doc["_version"])
            return updated

        return self._with_retry("update activity", attempt)

    def delete_activity(self, user_id: str, weekday: str, activity_id: str) -> None:
        day = normalize_weekday(weekday)

        def attempt() -> None:
            routine = self._require_routine(user_id, day)
            removed = routine.bucket(day).remove(activity_id)
            with self.store.batch() as s:
                s.replace("routines", routine.to_dict(), routine.version)
                s.delete("activities", removed.id)

        self._with_retry("delete activity", attempt)
        logger.debug("Deleted %s from %s for %s", activity_id, day, user_id)

    def mark_completed(self, user_id: str, activity_id: str, completed: bool) -> Activity:
        """Set the completion flag and write or drop the archival record.

        Redundant transitions are not skipped: marking twice archives twice.
        """

        def attempt() -> Activity:
            doc = self.store.get("activities", activity_id)
            if doc is None:
                raise NotFound(f"No activity found with that ID: {activity_id}")
            activity = Activity.from_dict(doc)
            if activity.user_id != user_id:
                raise Forbidden("You do not have permission to modify this activity.")

            now = self._now_iso()
            activity.is_completed = completed
            activity.updated_at = now

            routine = self._load_routine(user_id)
            if routine is not None:
                located = routine.locate(activity_id)
                if located is not None:
                    located[1].is_completed = completed
                    located[1].updated_at = now

            with self.store.batch() as s:
                s.replace("activities", activity.to_dict(), doc["_version"])
                if routine is not None:
                    s.replace("routines", routine.to_dict(), routine.version)
                if completed:
                    s.insert("completedActivities", CompletedActivity(
                        id=new_id(),
                        activity_id=activity.id,
                        user_id=user_id,
                        label=activity.label,
                        duration_minutes=activity.duration,
                        category=activity.category,
                        completed_at=now,
                    ).to_dict())
                else:
                    records = s.find("completedActivities", {"activityId": activity_id})
                    if records:
                        # stable sort: among equal timestamps the last inserted wins
                        latest = sorted(records, key=lambda r: r.get("completedAt", ""))[-1]
                        s.delete("completedActivities", latest["id"])
            return activity

        return self._with_retry("mark activity", attempt)
