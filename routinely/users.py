"""User records consumed by the completion reset and the stats rollups.

Profiles carry the fields the engine reads (time zone, demographics, role)
plus a bcrypt password hash that the HTTP layer checks on every request.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import bcrypt

from routinely.errors import InvalidInput, NotFound
from routinely.models import GENDERS, ROLES, User
from routinely.store import DocumentStore
from routinely.workspace import now_utc

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8
# bcrypt only reads the first 72 bytes and newer releases reject longer input
MAX_PASSWORD_BYTES = 72
RESERVED_IDS = ("guest",)


def validate_user(data: dict[str, Any]) -> list[str]:
    """Validate user profile fields and return list of errors (empty if valid)."""
    errors = []
    for key in ("name", "surname", "email", "nationality", "birthdate"):
        if not data.get(key):
            errors.append(f"Missing required field: {key}")
    if data.get("email") and not EMAIL_RE.match(str(data["email"])):
        errors.append("Please provide a valid email!")
    if data.get("birthdate"):
        try:
            date.fromisoformat(str(data["birthdate"]))
        except ValueError:
            errors.append(f"Invalid birthdate: {data['birthdate']}")
    if "gender" in data and data["gender"] not in GENDERS:
        errors.append(f"Invalid gender: {data['gender']}")
    if "role" in data and data["role"] not in ROLES:
        errors.append(f"Invalid role: {data['role']}")
    tz = data.get("timeZone")
    if tz:
        try:
            ZoneInfo(str(tz))
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"Unknown time zone: {tz}")
    password = data.get("password")
    if password is not None:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        elif len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            errors.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        elif "passwordConfirm" in data and data["passwordConfirm"] != password:
            errors.append("Passwords are not the same!")
    return errors


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not hashed or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return False
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_user(store: DocumentStore, data: dict[str, Any], now: datetime | None = None) -> User:
    """Register a user profile. Email and id must be unique.

    A ``password`` in *data* is stored only as a bcrypt hash on the user
    document; it never appears in ``User.to_dict()``.
    """
    errors = validate_user(data)
    if errors:
        raise InvalidInput(errors[0], errors)
    user = User.from_dict(data)
    if not user.id:
        user.id = uuid.uuid4().hex
    if user.id in RESERVED_IDS:
        raise InvalidInput(f"User ID is reserved: {user.id}")
    if not user.created_at:
        user.created_at = (now or now_utc()).isoformat(timespec="seconds")
    doc = user.to_dict()
    if data.get("password"):
        doc["passwordHash"] = hash_password(data["password"])
    with store.batch() as s:
        if s.find_one("users", {"email": user.email}):
            raise InvalidInput(f"Email already registered: {user.email}")
        if s.get("users", user.id):
            raise InvalidInput(f"User ID already exists: {user.id}")
        s.insert("users", doc)
    return user


def authenticate(store: DocumentStore, user_id: str, password: str) -> User | None:
    """Return the user when *password* matches their stored hash, else None."""
    doc = store.get("users", user_id)
    if doc is None:
        return None
    if not verify_password(password, doc.get("passwordHash", "")):
        return None
    return User.from_dict(doc)


def find_user(store: DocumentStore, user_id: str) -> User:
    doc = store.get("users", user_id)
    if doc is None:
        raise NotFound(f"No user found with that ID: {user_id}")
    return User.from_dict(doc)


def list_users(store: DocumentStore) -> list[User]:
    return [User.from_dict(d) for d in store.find("users")]
