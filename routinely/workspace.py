"""Workspace root, configuration, path and logging helpers for Routinely."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from routinely.fileio import read_yaml, write_yaml_atomic

logger = logging.getLogger(__name__)


def workspace_root() -> Path:
    """Get the workspace root directory (contains config.yaml and data/)."""
    return Path(
        os.environ.get("ROUTINELY_ROOT", str(Path.home() / "routinely"))
    ).expanduser().resolve()


# ── Path helpers ──────────────────────────────────────────────

def config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "config.yaml"


def store_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data" / "store.json"


# ── Configuration ─────────────────────────────────────────────


@dataclass
class Config:
    default_timezone: str = "UTC"
    default_color: str = "#808080"
    max_write_retries: int = 3
    reset_interval_seconds: int = 60
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Config:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            default_timezone=str(d.get("default_timezone", "UTC")),
            default_color=str(d.get("default_color", "#808080")),
            max_write_retries=max(1, int(d.get("max_write_retries", 3))),
            reset_interval_seconds=max(1, int(d.get("reset_interval_seconds", 60))),
            log_level=str(d.get("log_level", "INFO")).upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_timezone": self.default_timezone,
            "default_color": self.default_color,
            "max_write_retries": self.max_write_retries,
            "reset_interval_seconds": self.reset_interval_seconds,
            "log_level": self.log_level,
        }


def load_config(root: Path | None = None) -> Config:
    """Load config.yaml, defaulting every missing key."""
    return Config.from_dict(read_yaml(config_path(root)))


def init_workspace(root: Path | None = None) -> Path:
    """Create the workspace layout and a default config.yaml if absent."""
    if root is None:
        root = workspace_root()
    (root / "data").mkdir(parents=True, exist_ok=True)
    cp = config_path(root)
    if not cp.exists():
        write_yaml_atomic(cp, Config().to_dict())
        logger.info("Initialised workspace at %s", root)
    return root


def configure_logging(level: str | None = None) -> None:
    """Set up root logging for an entry point (web app or TUI)."""
    if level is None:
        level = load_config().log_level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ── Time zones ────────────────────────────────────────────────


def resolve_timezone(name: str | None, default: str = "UTC") -> ZoneInfo:
    """Resolve an IANA zone name, falling back to *default* (then UTC)."""
    for candidate in (name, default):
        if not candidate:
            continue
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone %r, falling back", candidate)
    return ZoneInfo("UTC")


def now_utc() -> datetime:
    return datetime.now(ZoneInfo("UTC"))
