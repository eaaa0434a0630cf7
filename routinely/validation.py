"""Payload validation for activity create/update requests.

``validate_*`` helpers return a list of error strings (empty if valid);
the ``*_from_dict`` builders raise the typed errors the engine reports.
"""

from __future__ import annotations

import re
from typing import Any

from routinely.errors import InvalidFormat, InvalidInput
from routinely.models import (
    CATEGORIES,
    DEFAULT_COLOR,
    WALL_CLOCK_RE,
    WEEKDAYS,
    ActivityInput,
    ActivityPatch,
    TimeInterval,
    parse_wall_clock,
)

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

REQUIRED_FIELDS = ("startTime", "endTime", "label", "category")
PATCHABLE_FIELDS = {
    "startTime": "start",
    "endTime": "end",
    "label": "label",
    "category": "category",
    "color": "color",
}


def normalize_weekday(day: str) -> str:
    """Accept 'monday', 'Monday' or 'mon'; return the canonical weekday name."""
    d = str(day or "").strip().lower()
    for name in WEEKDAYS:
        if d == name or d == name[:3]:
            return name
    raise InvalidInput(f"Invalid day: {day!r}. Use one of {', '.join(WEEKDAYS)}")


def _label_of(data: dict[str, Any]) -> Any:
    # older clients send the label as "activity"
    return data.get("label", data.get("activity"))


def _text_field_errors(values: dict[str, Any]) -> list[str]:
    """Label and category must be non-blank strings; category must be known."""
    errors = []
    for key in ("label", "category"):
        if key not in values:
            continue
        value = values[key]
        if not isinstance(value, str):
            errors.append(f"{key} must be a string, got {value!r}")
        elif not value.strip():
            errors.append(f"{key} cannot be blank")
        elif key == "category" and value.strip().lower() not in CATEGORIES:
            errors.append(f"Invalid category: {value}")
    return errors


def validate_activity(data: dict[str, Any]) -> list[str]:
    """Check required fields, text field types and category membership of a create payload."""
    if not isinstance(data, dict):
        return ["Activity payload must be an object"]
    values = {**data, "label": _label_of(data)}
    missing = [f for f in REQUIRED_FIELDS if values.get(f) is None or values.get(f) == ""]
    if missing:
        return [
            "All fields (startTime, endTime, label, category) are required, except color! "
            f"Missing: {', '.join(missing)}"
        ]
    return _text_field_errors(values)


def validate_formats(data: dict[str, Any]) -> list[str]:
    """Check time and colour formats of whichever fields are present."""
    errors = []
    for key in ("startTime", "endTime"):
        value = data.get(key)
        if value is not None and (not isinstance(value, str) or not WALL_CLOCK_RE.match(value)):
            errors.append(f"{key} must be in HH:MM format, got {value!r}")
    color = data.get("color")
    if color not in (None, "") and (not isinstance(color, str) or not HEX_COLOR_RE.match(color)):
        errors.append(f"color must be a hex colour like #1e90ff, got {color!r}")
    return errors


def activity_input_from_dict(data: dict[str, Any], default_color: str = DEFAULT_COLOR) -> ActivityInput:
    """Validate a create payload and build an ActivityInput.

    Order: required fields, text field types and category (InvalidInput), then formats
    (InvalidFormat), then interval ordering (InvalidInterval).
    """
    errors = validate_activity(data)
    if errors:
        raise InvalidInput(errors[0], errors)
    errors = validate_formats(data)
    if errors:
        raise InvalidFormat(errors[0], errors)
    label = _label_of(data).strip()
    return ActivityInput(
        interval=TimeInterval.from_strings(data["startTime"], data["endTime"]),
        label=label,
        category=data["category"].strip().lower(),
        color=str(data.get("color") or default_color),
    )


def patch_from_dict(data: dict[str, Any]) -> ActivityPatch:
    """Build an ActivityPatch from a partial payload.

    Unknown keys are ignored. A key that is present with a null/empty value is
    an explicit clear, which only ``color`` allows.
    """
    if not isinstance(data, dict):
        raise InvalidInput("Patch payload must be an object")
    present = {k: data[k] for k in PATCHABLE_FIELDS if k in data}
    if "label" not in present and "activity" in data:
        present["label"] = data["activity"]
    if not present:
        raise InvalidInput(
            "At least one of startTime, endTime, label, category or color must be provided."
        )

    errors = [
        f"{k} cannot be cleared"
        for k, v in present.items()
        if k != "color" and (v is None or (isinstance(v, str) and not v.strip()))
    ]
    if not errors:
        errors = _text_field_errors(present)
    if errors:
        raise InvalidInput(errors[0], errors)

    errors = validate_formats(present)
    if errors:
        raise InvalidFormat(errors[0], errors)

    patch = ActivityPatch()
    if "startTime" in present:
        patch.start = parse_wall_clock(present["startTime"])
    if "endTime" in present:
        patch.end = parse_wall_clock(present["endTime"])
    if "label" in present:
        patch.label = str(present["label"]).strip()
    if "category" in present:
        patch.category = present["category"].strip().lower()
    if "color" in present:
        patch.color = present["color"] or None
    return patch
