"""Tests for routinely/models.py — intervals, patches, serialization."""

from datetime import time

import pytest

from routinely.errors import InvalidFormat, InvalidInput, InvalidInterval
from routinely.models import (
    DEFAULT_COLOR,
    Activity,
    ActivityPatch,
    CompletedActivity,
    TimeInterval,
    User,
    UNSET,
    parse_wall_clock,
)


def _activity(start="09:00", end="10:00", **kw) -> Activity:
    return Activity(id="a1", interval=TimeInterval.from_strings(start, end), label="Run", category="fitness", **kw)


def test_parse_wall_clock():
    assert parse_wall_clock("00:00") == time(0, 0)
    assert parse_wall_clock("23:59") == time(23, 59)


@pytest.mark.parametrize("bad", ["24:00", "9:00", "09:60", "0900", "", None, "09:00:00"])
def test_parse_wall_clock_rejects(bad):
    with pytest.raises(InvalidFormat):
        parse_wall_clock(bad)


def test_interval_duration():
    assert TimeInterval.from_strings("09:00", "10:30").duration_minutes() == 90
    assert TimeInterval.from_strings("00:00", "23:59").duration_minutes() == 1439


def test_interval_end_must_follow_start():
    with pytest.raises(InvalidInterval):
        TimeInterval.from_strings("10:00", "10:00")
    with pytest.raises(InvalidInterval):
        TimeInterval.from_strings("23:00", "01:00")


def test_invalid_interval_is_invalid_input():
    assert issubclass(InvalidInterval, InvalidInput)


def test_interval_overlaps_half_open():
    a = TimeInterval(time(9, 0), time(10, 0))
    b = TimeInterval(time(9, 30), time(11, 0))
    c = TimeInterval(time(10, 0), time(11, 0))
    assert a.overlaps(b) is True
    assert b.overlaps(a) is True
    assert a.overlaps(c) is False
    assert c.overlaps(a) is False


def test_interval_to_str():
    assert TimeInterval.from_strings("07:05", "08:00").to_str() == "07:05-08:00"


def test_activity_duration_follows_interval():
    a = _activity("09:00", "09:45")
    assert a.duration == 45
    assert a.to_dict()["duration"] == 45


def test_activity_round_trip():
    a = _activity(user_id="u1", weekday="monday", color="#ff0000", is_completed=True)
    d = a.to_dict()
    assert d["startTime"] == "09:00"
    assert d["userId"] == "u1"
    assert d["isCompleted"] is True
    assert Activity.from_dict(d) == a


def test_activity_from_dict_defaults_color():
    d = _activity().to_dict()
    d["color"] = None
    assert Activity.from_dict(d).color == DEFAULT_COLOR


def test_patch_empty():
    assert ActivityPatch().is_empty()
    assert not UNSET
    assert ActivityPatch(label="x").present_fields() == ["label"]


def test_patch_apply_changes_only_present_fields():
    a = _activity("09:00", "10:00", color="#123456")
    patched = ActivityPatch(label="Swim").apply_to(a)
    assert patched.label == "Swim"
    assert patched.interval == a.interval
    assert patched.color == "#123456"
    assert a.label == "Run"


def test_patch_apply_recomputes_duration():
    a = _activity("09:00", "10:00")
    patched = ActivityPatch(end=time(11, 30)).apply_to(a)
    assert patched.duration == 150


def test_patch_apply_rejects_inverted_interval():
    a = _activity("09:00", "10:00")
    with pytest.raises(InvalidInterval):
        ActivityPatch(start=time(10, 30)).apply_to(a)


def test_patch_color_clear_resets_default():
    a = _activity(color="#123456")
    assert ActivityPatch(color=None).apply_to(a, "#abcdef").color == "#abcdef"


def test_completed_activity_round_trip():
    c = CompletedActivity(id="c1", activity_id="a1", user_id="u1", label="Run",
                          duration_minutes=60, category="fitness", completed_at="2026-03-02T09:30:00+00:00")
    assert c.to_dict()["duration"] == 60
    assert CompletedActivity.from_dict(c.to_dict()) == c


def test_user_from_dict():
    u = User.from_dict({"id": "u1", "email": "A@B.COM", "timeZone": "Europe/Rome", "role": "admin"})
    assert u.email == "a@b.com"
    assert u.timezone == "Europe/Rome"
    assert u.gender == "none"
    assert u.is_admin()
    assert u.to_dict()["timeZone"] == "Europe/Rome"


def test_user_from_empty():
    u = User.from_dict({})
    assert u.role == "user"
    assert u.timezone is None
