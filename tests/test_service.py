"""Tests for routinely/service.py — create/read/update/delete, marks, retries."""

import pytest

from routinely.errors import (
    Forbidden,
    InvalidFormat,
    InvalidInput,
    NotFound,
    TimeConflict,
    Transient,
    VersionConflict,
)
from routinely.models import ActivityPatch
from routinely.service import SchedulingService
from routinely.store import DocumentStore, StoreSession


def _payload(start: str, end: str, label: str = "Run", category: str = "fitness", **extra) -> dict:
    return {"startTime": start, "endTime": end, "label": label, "category": category, **extra}


# ── create ──


def test_first_create_makes_routine(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    routine = service.list_routine("u1")
    assert routine.lifetime_activity_count == 1
    assert routine.user_id == "u1"
    assert a.routine_id == routine.id
    assert a.weekday == "monday"
    assert a.duration == 30
    assert a.color == "#808080"
    assert a.created_at == "2026-03-02T09:30:00+00:00"
    assert store.count("routines") == 1
    assert store.get("activities", a.id)["label"] == "Run"


def test_conflicting_create_is_rejected(service: SchedulingService, store: DocumentStore):
    service.create_activity("u1", "mon", _payload("07:00", "07:30", "Run"))
    with pytest.raises(TimeConflict):
        service.create_activity("u1", "mon", _payload("07:15", "07:45", "Call"))
    assert len(service.list_day("u1", "monday")) == 1
    assert store.count("activities") == 1
    assert service.list_routine("u1").lifetime_activity_count == 1


def test_list_day_sorted(service: SchedulingService):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.create_activity("u1", "monday", _payload("08:00", "08:30"))
    service.create_activity("u1", "monday", _payload("06:00", "06:30"))
    starts = [a.interval.start_str() for a in service.list_day("u1", "monday")]
    assert starts == ["06:00", "07:00", "08:00"]


def test_same_time_on_other_day_is_fine(service: SchedulingService):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.create_activity("u1", "tuesday", _payload("07:00", "07:30"))
    service.create_activity("u2", "monday", _payload("07:00", "07:30"))
    assert service.list_routine("u1").lifetime_activity_count == 2


def test_create_validation_errors(service: SchedulingService, store: DocumentStore):
    with pytest.raises(InvalidInput):
        service.create_activity("u1", "monday", {"startTime": "07:00"})
    with pytest.raises(InvalidFormat):
        service.create_activity("u1", "monday", _payload("7am", "08:00"))
    with pytest.raises(InvalidInput):
        service.create_activity("u1", "someday", _payload("07:00", "08:00"))
    assert store.count("routines") == 0


def test_create_with_custom_color(service: SchedulingService):
    a = service.create_activity("u1", "friday", _payload("18:00", "19:00", color="#1e90ff"))
    assert a.color == "#1e90ff"


# ── read ──


def test_list_routine_without_any(service: SchedulingService):
    with pytest.raises(NotFound, match="Routines not found"):
        service.list_routine("nobody")


def test_list_routine_after_all_deleted(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.delete_activity("u1", "monday", a.id)
    with pytest.raises(NotFound):
        service.list_routine("u1")


def test_list_day_empty(service: SchedulingService):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    with pytest.raises(NotFound):
        service.list_day("u1", "tuesday")


def test_get_activity(service: SchedulingService):
    a = service.create_activity("u1", "wednesday", _payload("07:00", "07:30"))
    assert service.get_activity("u1", "wed", a.id).label == "Run"
    with pytest.raises(NotFound):
        service.get_activity("u1", "thursday", a.id)
    with pytest.raises(NotFound):
        service.get_activity("u2", "wednesday", a.id)


def test_list_routines_pages(service: SchedulingService):
    for uid in ("u1", "u2", "u3"):
        service.create_activity(uid, "monday", _payload("07:00", "07:30"))
    page = service.list_routines(page=2, limit=2)
    assert page.total_results == 3
    assert page.total_pages == 2
    assert len(page.results) == 1


# ── update ──


def test_update_category_does_not_conflict_with_itself(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    updated = service.update_activity("u1", "monday", a.id, {"category": "health"})
    assert updated.category == "health"
    assert updated.interval == a.interval


def test_update_recomputes_duration(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    updated = service.update_activity("u1", "monday", a.id, {"endTime": "08:15"})
    assert updated.duration == 75
    assert store.get("activities", a.id)["duration"] == 75
    assert service.list_day("u1", "monday")[0].duration == 75


def test_update_conflict_leaves_state(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.create_activity("u1", "monday", _payload("08:00", "08:30"))
    with pytest.raises(TimeConflict):
        service.update_activity("u1", "monday", a.id, {"endTime": "08:10"})
    assert service.get_activity("u1", "monday", a.id).interval.end_str() == "07:30"


def test_update_clear_color(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30", color="#ff0000"))
    assert service.update_activity("u1", "monday", a.id, {"color": None}).color == "#808080"


def test_update_empty_patch(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    with pytest.raises(InvalidInput):
        service.update_activity("u1", "monday", a.id, {})
    with pytest.raises(InvalidInput):
        service.update_activity("u1", "monday", a.id, ActivityPatch())


def test_update_missing_activity(service: SchedulingService):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    with pytest.raises(NotFound):
        service.update_activity("u1", "monday", "nope", {"label": "x"})


# ── delete ──


def test_delete_twice(service: SchedulingService, store: DocumentStore):
    service.create_activity("u1", "monday", _payload("06:00", "06:30"))
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.delete_activity("u1", "monday", a.id)
    assert store.get("activities", a.id) is None
    with pytest.raises(NotFound):
        service.delete_activity("u1", "monday", a.id)


def test_delete_keeps_lifetime_count(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    service.create_activity("u1", "monday", _payload("08:00", "08:30"))
    service.delete_activity("u1", "monday", a.id)
    assert service.list_routine("u1").lifetime_activity_count == 2


# ── completion marks ──


def test_mark_and_unmark(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    marked = service.mark_completed("u1", a.id, True)
    assert marked.is_completed
    assert service.list_day("u1", "monday")[0].is_completed
    records = store.find("completedActivities")
    assert len(records) == 1
    assert records[0]["duration"] == 45
    assert records[0]["activityId"] == a.id

    service.mark_completed("u1", a.id, False)
    assert not store.get("activities", a.id)["isCompleted"]
    assert not service.list_day("u1", "monday")[0].is_completed
    assert store.count("completedActivities") == 0


def test_mark_twice_archives_twice(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    service.mark_completed("u1", a.id, True)
    service.mark_completed("u1", a.id, True)
    assert store.count("completedActivities") == 2
    service.mark_completed("u1", a.id, False)
    assert store.count("completedActivities") == 1


def test_unmark_drops_latest_record_on_timestamp_tie(service: SchedulingService, store: DocumentStore):
    # the fixed clock gives both marks the same completedAt
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    service.mark_completed("u1", a.id, True)
    first = store.find("completedActivities")[0]["id"]
    service.mark_completed("u1", a.id, True)
    service.mark_completed("u1", a.id, False)
    assert [r["id"] for r in store.find("completedActivities")] == [first]


def test_unmark_without_record(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    service.mark_completed("u1", a.id, False)
    assert store.count("completedActivities") == 0


def test_mark_other_users_activity(service: SchedulingService):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    with pytest.raises(Forbidden):
        service.mark_completed("u2", a.id, True)


def test_mark_missing(service: SchedulingService):
    with pytest.raises(NotFound):
        service.mark_completed("u1", "nope", True)


def test_archive_survives_delete(service: SchedulingService, store: DocumentStore):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:45"))
    service.mark_completed("u1", a.id, True)
    service.delete_activity("u1", "monday", a.id)
    assert store.count("completedActivities") == 1


# ── retries ──


def test_lost_races_become_transient(service: SchedulingService, store: DocumentStore, monkeypatch):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    calls = []

    def always_stale(self, collection, doc, expected_version):
        calls.append(collection)
        raise VersionConflict(collection, doc["id"], expected_version, expected_version + 1)

    monkeypatch.setattr(StoreSession, "replace", always_stale)
    with pytest.raises(Transient):
        service.create_activity("u1", "monday", _payload("09:00", "09:30"))
    assert len(calls) == service.config.max_write_retries
    assert store.count("activities") == 1


def test_one_lost_race_is_retried(service: SchedulingService, store: DocumentStore, monkeypatch):
    service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    original = StoreSession.replace
    state = {"failed": False}

    def stale_once(self, collection, doc, expected_version):
        if not state["failed"]:
            state["failed"] = True
            raise VersionConflict(collection, doc["id"], expected_version, expected_version + 1)
        return original(self, collection, doc, expected_version)

    monkeypatch.setattr(StoreSession, "replace", stale_once)
    service.create_activity("u1", "monday", _payload("09:00", "09:30"))
    assert len(service.list_day("u1", "monday")) == 2
    assert service.list_routine("u1").lifetime_activity_count == 2


@pytest.mark.parametrize("patch", [{"category": 0}, {"category": False}, {"category": []}, {"label": []}])
def test_update_rejects_non_string_text_fields(service: SchedulingService, store: DocumentStore, patch):
    a = service.create_activity("u1", "monday", _payload("07:00", "07:30"))
    with pytest.raises(InvalidInput):
        service.update_activity("u1", "monday", a.id, patch)
    stored = store.get("activities", a.id)
    assert stored["category"] == "fitness"
    assert stored["label"] == "Run"
