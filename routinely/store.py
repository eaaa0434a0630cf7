"""JSON document store with versioned conditional writes.

All collections live in one JSON file so that a batch touching several
collections (a routine and its activity, say) is written in a single atomic
rename. Every document carries an ``_version`` counter; ``replace`` only
succeeds when the caller's expected version matches the stored one.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from routinely.errors import VersionConflict
from routinely.fileio import file_lock, read_json, write_json_atomic
from routinely.workspace import store_path

logger = logging.getLogger(__name__)

COLLECTIONS = ("routines", "activities", "completedActivities", "users")


def _matches(doc: dict[str, Any], where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(doc.get(k) == v for k, v in where.items())


class StoreSession:
    """Find/insert/replace/delete against one in-memory snapshot of the store."""

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data
        self.dirty = False

    def _coll(self, collection: str) -> dict[str, dict[str, Any]]:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        return self._data.setdefault(collection, {})

    # ── reads ──

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._coll(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, where: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(doc)
            for doc in self._coll(collection).values()
            if _matches(doc, where)
        ]

    def find_one(self, collection: str, where: dict[str, Any] | None = None) -> dict[str, Any] | None:
        for doc in self._coll(collection).values():
            if _matches(doc, where):
                return copy.deepcopy(doc)
        return None

    def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return sum(1 for doc in self._coll(collection).values() if _matches(doc, where))

    # ── writes ──

    def insert(self, collection: str, doc: dict[str, Any]) -> dict[str, Any]:
        doc_id = doc.get("id")
        if not doc_id:
            raise ValueError(f"{collection}: document has no id")
        coll = self._coll(collection)
        if doc_id in coll:
            raise VersionConflict(collection, doc_id, 0, coll[doc_id].get("_version"))
        stored = {**copy.deepcopy(doc), "_version": 1}
        coll[doc_id] = stored
        self.dirty = True
        return copy.deepcopy(stored)

    def replace(self, collection: str, doc: dict[str, Any], expected_version: int) -> dict[str, Any]:
        doc_id = doc.get("id")
        coll = self._coll(collection)
        current = coll.get(doc_id)
        actual = current.get("_version") if current is not None else None
        if actual != expected_version:
            raise VersionConflict(collection, str(doc_id), expected_version, actual)
        stored = {**copy.deepcopy(doc), "_version": expected_version + 1}
        coll[doc_id] = stored
        self.dirty = True
        return copy.deepcopy(stored)

    def delete(self, collection: str, doc_id: str) -> bool:
        coll = self._coll(collection)
        if doc_id not in coll:
            return False
        del coll[doc_id]
        self.dirty = True
        return True

    def update_many(self, collection: str, where: dict[str, Any] | None, changes: dict[str, Any]) -> int:
        """Set *changes* on every matching document. Returns the match count."""
        n = 0
        for doc in self._coll(collection).values():
            if _matches(doc, where):
                doc.update(copy.deepcopy(changes))
                doc["_version"] = int(doc.get("_version", 0)) + 1
                n += 1
        if n:
            self.dirty = True
        return n


class DocumentStore:
    """File-backed store. Reads see the last committed state; writes lock.

    Single operations open their own batch. Use ``batch()`` to group writes
    across collections: they are applied together or not at all.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lock_path = path.with_name(path.name + ".lock")

    @classmethod
    def open(cls, root: Path | None = None) -> DocumentStore:
        return cls(store_path(root))

    def _load(self) -> dict[str, Any]:
        data = read_json(self.path)
        for name in COLLECTIONS:
            data.setdefault(name, {})
        return data

    @contextmanager
    def batch(self) -> Iterator[StoreSession]:
        with file_lock(self.lock_path):
            session = StoreSession(self._load())
            yield session
            if session.dirty:
                write_json_atomic(self.path, session._data)
                logger.debug("Committed batch to %s", self.path)

    def snapshot(self) -> StoreSession:
        """A read-only view of the current committed state."""
        return StoreSession(self._load())

    # ── single-operation shortcuts ──

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        return self.snapshot().get(collection, doc_id)

    def find(self, collection: str, where: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return self.snapshot().find(collection, where)

    def find_one(self, collection: str, where: dict[str, Any] | None = None) -> dict[str, Any] | None:
        return self.snapshot().find_one(collection, where)

    def count(self, collection: str, where: dict[str, Any] | None = None) -> int:
        return self.snapshot().count(collection, where)

    def insert(self, collection: str, doc: dict[str, Any]) -> dict[str, Any]:
        with self.batch() as s:
            return s.insert(collection, doc)

    def replace(self, collection: str, doc: dict[str, Any], expected_version: int) -> dict[str, Any]:
        with self.batch() as s:
            return s.replace(collection, doc, expected_version)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self.batch() as s:
            return s.delete(collection, doc_id)

    def update_many(self, collection: str, where: dict[str, Any] | None, changes: dict[str, Any]) -> int:
        with self.batch() as s:
            return s.update_many(collection, where, changes)
