"""Shared fixtures: isolated hand-off store, fake API keys, HTTP test client."""

import pytest
from fastapi.testclient import TestClient

from receiptserver import config, store


@pytest.fixture(autouse=True)
def file_store(tmp_path, monkeypatch):
    """Point the hand-off store at a throwaway JSON file, never Postgres."""
    monkeypatch.setattr(store, "USE_PG", False)
    monkeypatch.setattr(store, "DATA_DIR", tmp_path)
    monkeypatch.setattr(store, "DB_FILE", tmp_path / "handoff.json")
    return tmp_path / "handoff.json"


@pytest.fixture
def api_keys(monkeypatch):
    monkeypatch.setattr(config, "RESEND_API_KEY", "re_test_key")
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-test")
    monkeypatch.setattr(config, "RESEND_API_URL", "https://api.resend.test/emails")
    monkeypatch.setattr(config, "OPENAI_API_URL", "https://api.openai.test/v1/chat/completions")


@pytest.fixture
def client():
    from receiptserver.app import app

    return TestClient(app)
