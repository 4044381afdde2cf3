"""
Poll-cycle health tracking.

Keeps in-memory counters for the poll loop (last cycle, last success,
consecutive failures) that the ``/health`` route reports alongside the
liveness of the poll task. When a path is configured the same state is
written as a JSON file after every cycle, giving container health checks
a simple signal to inspect.

CHANGELOG:
- 2026-10-19: Track cycle outcomes instead of spool/upload state
- 2026-10-19: Initial creation (STORY-015)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class PollerHealth:
    """Records the outcome of each poll cycle.

    Args:
        path: Optional filesystem path for the health JSON file. Accepts
            str or Path; None keeps the state in memory only.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._last_cycle_ts: str | None = None
        self._last_success_ts: str | None = None
        self._consecutive_failures: int = 0
        self._cycles: int = 0

    @property
    def consecutive_failures(self) -> int:
        """Number of failed cycles since the last successful one."""
        return self._consecutive_failures

    def record_cycle(self, *, success: bool) -> None:
        """Record a finished cycle and write the health file."""
        now = datetime.now(tz=UTC).isoformat()
        self._cycles += 1
        self._last_cycle_ts = now
        if success:
            self._last_success_ts = now
            self._consecutive_failures = 0
        else:
            self._consecutive_failures += 1
        self._write()

    def snapshot(self) -> dict[str, Any]:
        """Return the current health state as a JSON-serialisable dict."""
        return {
            "cycles": self._cycles,
            "last_cycle_ts": self._last_cycle_ts,
            "last_success_ts": self._last_success_ts,
            "consecutive_failures": self._consecutive_failures,
        }

    def _write(self) -> None:
        """Write the health JSON file, if a path is configured."""
        if self.path is None:
            return
        try:
            self.path.write_text(json.dumps(self.snapshot()))
        except OSError:
            logger.warning("Failed to write health file %s", self.path, exc_info=True)
