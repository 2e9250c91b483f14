from __future__ import annotations

import importlib
import os
from pathlib import Path

import shahriar.config as config


def test_settings_reads_database_path(monkeypatch, tmp_path):
    original_env = os.environ.get("DATABASE_PATH")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "db.json"))
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test")

    reloaded = importlib.reload(config)

    try:
        assert reloaded.settings.database_path == Path(tmp_path / "db.json")
        assert reloaded.settings.cors_origins == ["http://a.test", "http://b.test"]
    finally:
        if original_env is None:
            os.environ.pop("DATABASE_PATH", None)
        else:
            os.environ["DATABASE_PATH"] = original_env
        monkeypatch.delenv("CORS_ORIGINS", raising=False)
        importlib.reload(config)
