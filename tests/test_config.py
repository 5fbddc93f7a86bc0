from pathlib import Path

import pytest

from config import DEFAULT_PORT, Settings

ENV_VARS = ("CLAUDE_STATS_FILE", "CLAUDE_DIR", "EXPORTER_PORT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()
    assert settings.stats_file == Path("/data/claude/stats-cache.json")
    assert settings.claude_dir == Path("/data/claude")
    assert settings.exporter_port == DEFAULT_PORT == 9101
    assert settings.projects_dir == Path("/data/claude/projects")


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("CLAUDE_STATS_FILE", str(tmp_path / "stats.json"))
    monkeypatch.setenv("CLAUDE_DIR", str(tmp_path))
    monkeypatch.setenv("EXPORTER_PORT", "9200")
    settings = Settings()
    assert settings.stats_file == tmp_path / "stats.json"
    assert settings.projects_dir == tmp_path / "projects"
    assert settings.exporter_port == 9200


def test_empty_values_use_defaults(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
    settings = Settings()
    assert settings.claude_dir == Path("/data/claude")
    assert settings.exporter_port == 9101


@pytest.mark.parametrize("port", ["abc", "91.5"])
def test_invalid_port_falls_back(monkeypatch, port):
    monkeypatch.setenv("EXPORTER_PORT", port)
    assert Settings().exporter_port == 9101
