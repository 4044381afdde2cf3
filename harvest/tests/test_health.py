"""
Unit tests for poll-cycle health tracking.

Tests verify:
- record_cycle() counts cycles and tracks consecutive failures.
- The health JSON file is written when a path is configured.
- Write failures are logged, never raised.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-015)

TODO:
- None
"""

from __future__ import annotations

import json
from pathlib import Path

from harvest.src.health import PollerHealth

# ---------------------------------------------------------------------------
# Test: in-memory counters
# ---------------------------------------------------------------------------


class TestRecordCycle:
    """AC1: record_cycle() updates the counters."""

    def test_initial_snapshot_is_empty(self) -> None:
        assert PollerHealth().snapshot() == {
            "cycles": 0,
            "last_cycle_ts": None,
            "last_success_ts": None,
            "consecutive_failures": 0,
        }

    def test_failures_accumulate_until_success(self) -> None:
        health = PollerHealth()

        health.record_cycle(success=False)
        health.record_cycle(success=False)
        assert health.consecutive_failures == 2
        assert health.snapshot()["last_success_ts"] is None

        health.record_cycle(success=True)
        snapshot = health.snapshot()
        assert snapshot["cycles"] == 3
        assert snapshot["consecutive_failures"] == 0
        assert snapshot["last_success_ts"] == snapshot["last_cycle_ts"]


# ---------------------------------------------------------------------------
# Test: health file
# ---------------------------------------------------------------------------


class TestHealthFile:
    """AC2: the health file mirrors the snapshot."""

    def test_file_written_after_each_cycle(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        health = PollerHealth(health_path)

        health.record_cycle(success=True)

        data = json.loads(health_path.read_text())
        assert data["cycles"] == 1
        assert "T" in data["last_cycle_ts"]

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        health_path = tmp_path / "health.json"
        health = PollerHealth(str(health_path))

        health.record_cycle(success=False)

        assert json.loads(health_path.read_text())["consecutive_failures"] == 1

    def test_no_path_writes_nothing(self, tmp_path: Path) -> None:
        health = PollerHealth()

        health.record_cycle(success=True)

        assert list(tmp_path.iterdir()) == []

    def test_unwritable_path_does_not_raise(self, tmp_path: Path) -> None:
        health = PollerHealth(tmp_path / "missing-dir" / "health.json")

        health.record_cycle(success=True)

        assert health.snapshot()["cycles"] == 1
