"""Tests for environment-driven settings."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from careledger.config import get_settings


def test_settings_read_prefixed_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CARELEDGER_DATABASE_PATH", str(tmp_path / "ledger.db"))
    monkeypatch.setenv("CARELEDGER_CANDIDATE_THRESHOLD", "0.7")
    monkeypatch.setenv("CARELEDGER_IRS_MILEAGE_RATE", "0.22")
    monkeypatch.setenv("CARELEDGER_LOG_REQUESTS", "false")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.database_path == Path(tmp_path / "ledger.db")
    assert settings.candidate_threshold == 0.7
    assert settings.irs_mileage_rate == Decimal("0.22")
    assert settings.log_requests is False


def test_unparseable_values_keep_defaults(monkeypatch):
    monkeypatch.setenv("CARELEDGER_MAX_CAPTURE_BYTES", "lots")
    monkeypatch.setenv("CARELEDGER_AGI_FLOOR_RATE", "seven percent")
    get_settings.cache_clear()

    settings = get_settings()
    assert settings.max_capture_bytes == 10 * 1024 * 1024
    assert settings.agi_floor_rate == Decimal("0.075")


def test_settings_are_cached(monkeypatch):
    get_settings.cache_clear()
    first = get_settings()
    monkeypatch.setenv("CARELEDGER_CANDIDATE_THRESHOLD", "0.9")
    assert get_settings() is first
