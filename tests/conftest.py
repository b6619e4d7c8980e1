"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across the unit tests.
"""

from pathlib import Path

import pytest

from telemetry_shipper.config import Settings


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Test settings with safe defaults for local testing.

    Storage lives in a per-test temporary directory. Override specific
    settings in individual tests as needed:
        def test_something(test_settings):
            settings = test_settings.model_copy(update={"FLUSH_AT": 1})
    """
    return Settings(
        # === Application ===
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Ingestion endpoint ===
        API_KEY="phc_test_key",
        HOST="https://ingest.test",
        REQUEST_TIMEOUT_SECONDS=10,

        # === Event queue ===
        FLUSH_AT=20,
        FLUSH_INTERVAL_SECONDS=3600,  # Timer never fires during a test
        MAX_QUEUE_SIZE=1000,
        MAX_BATCH_SIZE=50,

        # === Storage ===
        STORAGE_BACKEND="file",
        STORAGE_PATH=str(tmp_path / "telemetry"),

        # === Replay ===
        REPLAY_ENABLED=True,
        REPLAY_FLUSH_INTERVAL_SECONDS=3600,

        # === Monitoring ===
        METRICS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )
