"""Shared test fixtures for Routinely tests."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from routinely import Config, DocumentStore, SchedulingService

FIXED_NOW = datetime(2026, 3, 2, 9, 30, tzinfo=ZoneInfo("UTC"))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with standard structure."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)

    config = {
        "default_timezone": "UTC",
        "default_color": "#808080",
        "max_write_retries": 3,
        "reset_interval_seconds": 60,
        "log_level": "DEBUG",
    }
    (root / "config.yaml").write_text(
        yaml.dump(config, default_flow_style=False), encoding="utf-8"
    )

    # Set env vars
    os.environ["ROUTINELY_ROOT"] = str(root)
    os.environ["ROUTINELY_RESET_JOB"] = "0"
    yield root
    # Cleanup
    for key in ("ROUTINELY_ROOT", "ROUTINELY_RESET_JOB"):
        if key in os.environ:
            del os.environ[key]


@pytest.fixture
def store(workspace: Path) -> DocumentStore:
    return DocumentStore.open(workspace)


@pytest.fixture
def service(store: DocumentStore) -> SchedulingService:
    return SchedulingService(store, Config(), clock=lambda: FIXED_NOW)
