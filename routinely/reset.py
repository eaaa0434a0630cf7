"""Nightly completion reset.

Once a minute, every user whose local wall clock reads 00:00 gets all of
their activities flipped back to not-completed. Archival records are left
alone. A minute missed while the process is down is not caught up.
"""

from __future__ import annotations

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from routinely.models import WEEKDAYS, User
from routinely.store import DocumentStore
from routinely.users import list_users
from routinely.workspace import now_utc, resolve_timezone

logger = logging.getLogger(__name__)

RESET_JOB_ID = "completion-reset"


class CompletionResetScheduler:
    """Holds only the store; the timer that calls ``tick`` lives elsewhere."""

    def __init__(self, store: DocumentStore, default_timezone: str = "UTC") -> None:
        self.store = store
        self.default_timezone = default_timezone

    def is_local_midnight(self, user: User, now: datetime) -> bool:
        tz = resolve_timezone(user.timezone, self.default_timezone)
        return now.astimezone(tz).strftime("%H:%M") == "00:00"

    def reset_user(self, user_id: str) -> int:
        """Clear every completion flag the user owns. Returns activities touched."""
        with self.store.batch() as s:
            n = s.update_many("activities", {"userId": user_id}, {"isCompleted": False})
            routine = s.find_one("routines", {"userId": user_id})
            if routine is not None:
                for day in WEEKDAYS:
                    for a in routine.get(day) or []:
                        a["isCompleted"] = False
                s.replace("routines", routine, routine["_version"])
        return n

    def tick(self, now: datetime | None = None) -> list[str]:
        """Run one pass over all users. Returns the ids that were reset."""
        if now is None:
            now = now_utc()
        reset: list[str] = []
        for user in list_users(self.store):
            if not self.is_local_midnight(user, now):
                continue
            try:
                n = self.reset_user(user.id)
            except Exception:
                logger.exception("Completion reset failed for user %s", user.id)
                continue
            logger.info(
                "Reset %d activities for user %s in the %s time zone",
                n, user.id, user.timezone or self.default_timezone,
            )
            reset.append(user.id)
        return reset


def start_reset_job(
    resetter: CompletionResetScheduler,
    interval_seconds: int = 60,
) -> BackgroundScheduler:
    """Start a background APScheduler running ``resetter.tick`` on a fixed interval."""
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        resetter.tick,
        IntervalTrigger(seconds=interval_seconds),
        id=RESET_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Completion reset job started (every %ds)", interval_seconds)
    return scheduler
