"""File I/O for the workspace: YAML config, the JSON store file, lock files.

Writers never leave a half-written file behind: content goes to a sibling
temp file which is fsynced and then renamed over the target. Callers that
read-modify-write hold ``file_lock`` around the whole cycle.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import yaml


def _load_text(path: Path) -> str:
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def read_json(path: Path) -> dict[str, Any]:
    """Parse a JSON object; a missing or blank file reads as {}."""
    text = _load_text(path)
    if not text.strip():
        return {}
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return data


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML mapping; anything else (missing, blank, a list) reads as {}."""
    text = _load_text(path)
    if not text.strip():
        return {}
    result = yaml.safe_load(text)
    return result if isinstance(result, dict) else {}


def replace_file(path: Path, content: str) -> None:
    """Write *content* to a temp file beside *path*, fsync, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    replace_file(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def write_yaml_atomic(path: Path, data: dict[str, Any]) -> None:
    replace_file(path, yaml.safe_dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False))


@contextmanager
def file_lock(path: Path) -> Iterator[None]:
    """Hold an exclusive flock on the sidecar lock file *path* for the block.

    Threads and processes sharing the workspace queue up here.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        fcntl.flock(f.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(f.fileno(), fcntl.LOCK_UN)
