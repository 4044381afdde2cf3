"""
Unit tests for the harvester entrypoint module.

Tests verify:
- Startup logs a config summary without secrets (AC1).
- The JSON formatter emits ts/level/logger/msg and exceptions (AC2).
- configure_logging() installs a single JSON handler on the root logger.
- async_main() builds the app from settings and serves it with uvicorn.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-014)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from harvest.src.config import HarvestSettings
from harvest.src.main import (
    JsonFormatter,
    _masked_token,
    async_main,
    configure_logging,
    log_config_summary,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_settings(**overrides: object) -> HarvestSettings:
    values: dict[str, object] = {
        "database_url": "postgresql+asyncpg://solar:dbpass@db/solar",
        "sems_account": "owner@example.com",
        "sems_password": "super-secret-pwd",
        "sems_station_id": "station-123",
        "forward_base_url": "https://gateway.example.com",
        "forward_api_key": "forward-secret-key",
    }
    values.update(overrides)
    return HarvestSettings(**values)  # type: ignore[arg-type]


@pytest.fixture()
def restore_root_logger() -> Generator[None, None, None]:
    """Restore root handlers and level after configure_logging() runs."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


# ---------------------------------------------------------------------------
# AC1: config summary
# ---------------------------------------------------------------------------


class TestLogConfigSummary:
    """AC1: startup config summary never leaks secrets."""

    def test_summary_contains_station_and_intervals(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="harvest.src.main"):
            log_config_summary(_make_settings())

        assert "station-123" in caplog.text
        assert "poll_interval_s=60" in caplog.text
        assert "forward_base_url=https://gateway.example.com" in caplog.text

    def test_summary_masks_secrets(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="harvest.src.main"):
            log_config_summary(_make_settings())

        assert "super-secret-pwd" not in caplog.text
        assert "forward-secret-key" not in caplog.text
        assert "dbpass" not in caplog.text
        assert _masked_token("super-secret-pwd") in caplog.text

    def test_summary_without_forwarding(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="harvest.src.main"):
            log_config_summary(_make_settings(forward_base_url=None))

        assert "forward_base_url=None" in caplog.text
        assert "forward_api_key_masked=empty" in caplog.text


class TestMaskedToken:
    """Secret fingerprints."""

    def test_empty_values(self) -> None:
        assert _masked_token(None) == "empty"
        assert _masked_token("") == "empty"

    def test_fingerprint_is_stable_and_opaque(self) -> None:
        masked = _masked_token("hunter2")

        assert masked == _masked_token("hunter2")
        assert masked.startswith("len=7 sha256=")
        assert "hunter2" not in masked


# ---------------------------------------------------------------------------
# AC2: structured logging
# ---------------------------------------------------------------------------


class TestJsonLogging:
    """AC2: JSON log lines."""

    def test_formatter_emits_json_fields(self) -> None:
        record = logging.LogRecord(
            "harvest.src.poller", logging.INFO, __file__, 1, "cycle %s", ("ok",), None
        )

        entry = json.loads(JsonFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "harvest.src.poller"
        assert entry["msg"] == "cycle ok"
        assert "T" in entry["ts"]
        assert "exception" not in entry

    def test_formatter_includes_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "harvest", logging.ERROR, __file__, 1, "failed", (), exc_info
        )

        entry = json.loads(JsonFormatter().format(record))

        assert "RuntimeError: boom" in entry["exception"]

    def test_configure_logging_installs_json_handler(
        self, restore_root_logger: None
    ) -> None:
        configure_logging()

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.INFO


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


class TestAsyncMain:
    """async_main() wires settings, app and server."""

    @pytest.mark.asyncio
    async def test_serves_app_on_configured_host_and_port(
        self,
        env_vars_required_only: dict[str, str],
        monkeypatch: pytest.MonkeyPatch,
        restore_root_logger: None,
    ) -> None:
        monkeypatch.setenv("HOST", "127.0.0.1")
        monkeypatch.setenv("PORT", "9100")
        server = MagicMock()
        server.serve = AsyncMock()
        app = MagicMock()

        with (
            patch("harvest.src.api.main.create_app", return_value=app) as mock_create,
            patch("uvicorn.Config") as mock_config,
            patch("uvicorn.Server", return_value=server),
        ):
            await async_main()

        settings = mock_create.call_args.args[0]
        assert settings.sems_station_id == "station-123"
        mock_config.assert_called_once_with(
            app, host="127.0.0.1", port=9100, log_config=None
        )
        server.serve.assert_awaited_once()
