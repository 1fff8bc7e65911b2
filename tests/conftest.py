from __future__ import annotations

import pytest

from noteshelf_api.dependencies import reset_caches


@pytest.fixture(autouse=True)
def clear_provider_caches(tmp_path, monkeypatch):
    monkeypatch.setenv("NOTES_DB_PATH", str(tmp_path / "notes.db"))
    monkeypatch.setenv("NOTES_KDF_ITERATIONS", "100000")
    monkeypatch.delenv("NOTES_STORE_URL", raising=False)
    monkeypatch.delenv("NOTES_LANGUAGE", raising=False)
    monkeypatch.delenv("API_AUTH_MODE", raising=False)
    monkeypatch.delenv("API_AUTH_TOKEN", raising=False)
    reset_caches()
    yield
    reset_caches()
