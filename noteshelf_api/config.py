from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

MIN_KDF_ITERATIONS = 100_000


@dataclass(frozen=True)
class Settings:
    db_path: Path
    store_url: str | None
    store_timeout_s: float
    kdf_iterations: int
    language: str
    api_auth_mode: str
    api_auth_token: str | None
    api_debug_log: bool


def load_settings() -> Settings:
    db_path = Path(os.environ.get("NOTES_DB_PATH", "./notes.db")).resolve()
    store_url = os.environ.get("NOTES_STORE_URL") or None
    store_timeout_s = float(os.environ.get("NOTES_STORE_TIMEOUT_S", "10"))
    kdf_iterations = int(os.environ.get("NOTES_KDF_ITERATIONS", "120000"))
    if kdf_iterations < MIN_KDF_ITERATIONS:
        raise ValueError("kdf_iterations_too_low")
    language = os.environ.get("NOTES_LANGUAGE", "en").lower()
    if language not in {"en", "zh"}:
        language = "en"
    api_auth_mode = os.environ.get("API_AUTH_MODE", "none").lower()
    api_auth_token = os.environ.get("API_AUTH_TOKEN")
    api_debug_log = os.environ.get("API_DEBUG_LOG", "false").lower() == "true"
    return Settings(
        db_path=db_path,
        store_url=store_url,
        store_timeout_s=store_timeout_s,
        kdf_iterations=kdf_iterations,
        language=language,
        api_auth_mode=api_auth_mode,
        api_auth_token=api_auth_token,
        api_debug_log=api_debug_log,
    )
