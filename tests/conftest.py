"""Shared pytest fixtures for the careledger test suite."""

from __future__ import annotations

from typing import Generator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from careledger.config import Settings, get_settings
from careledger.db.repository import reset_repository_state
from careledger.server.app import create_app

_ISOLATED_ENV = (
    "CARELEDGER_API_TOKEN",
    "CARELEDGER_OCR_ENDPOINT_URL",
    "CARELEDGER_OCR_API_KEY",
    "CARELEDGER_MILEAGE_ENDPOINT_URL",
    "CARELEDGER_MILEAGE_API_KEY",
)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Ensure each test uses an isolated SQLite database location."""

    db_path = tmp_path / "test_careledger.db"
    monkeypatch.setenv("CARELEDGER_DATABASE_PATH", str(db_path))
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    reset_repository_state()
    yield
    reset_repository_state()
    monkeypatch.delenv("CARELEDGER_DATABASE_PATH", raising=False)
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> Settings:
    return get_settings()


@pytest.fixture()
def app() -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance for each test and reset overrides."""

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)
