"""Tests for environment-variable configuration."""

from __future__ import annotations

import pytest

from codesandbox.config import Config


ENV_VARS = [
    "CODESANDBOX_API_KEY",
    "CODESANDBOX_AUTH_HEADER",
    "CODESANDBOX_WORKSPACE_PATH",
    "CODESANDBOX_ALLOWED_LANGS",
    "CODESANDBOX_TIMEOUT_MS",
    "CODESANDBOX_MAX_MEMORY_MB",
    "CODESANDBOX_CPU_COUNT",
    "CODESANDBOX_PIDS_LIMIT",
    "CODESANDBOX_DISABLE_NETWORK",
    "CODESANDBOX_KEEP_WORKSPACE",
    "CODESANDBOX_LOG_LEVEL",
    "PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_match_fixed_limits():
    config = Config.from_env()
    assert config.timeout_ms == 5000
    assert config.max_memory_mb == 100
    assert config.auth_header == "auth"
    assert config.allowed_langs == ["java", "c", "cpp", "python"]
    assert config.keep_workspace is False

    limits = config.resource_limits()
    assert limits.memory_bytes == 100 * 1000 * 1000
    assert limits.cpu_count == 1
    assert limits.pids_limit == 64
    assert limits.network_disabled is True
    assert limits.read_only_root is True
    assert limits.workdir == "/app"


def test_overrides(monkeypatch):
    monkeypatch.setenv("CODESANDBOX_API_KEY", "secretKey")
    monkeypatch.setenv("CODESANDBOX_AUTH_HEADER", "X-Auth")
    monkeypatch.setenv("CODESANDBOX_ALLOWED_LANGS", " C, java ,,")
    monkeypatch.setenv("CODESANDBOX_TIMEOUT_MS", "2500")
    monkeypatch.setenv("CODESANDBOX_PIDS_LIMIT", "16")
    monkeypatch.setenv("CODESANDBOX_DISABLE_NETWORK", "no")
    monkeypatch.setenv("CODESANDBOX_LOG_LEVEL", "debug")
    monkeypatch.setenv("PORT", "9000")

    config = Config.load()
    assert config.api_key == "secretKey"
    assert config.auth_header == "x-auth"
    assert config.allowed_langs == ["c", "java"]
    assert config.timeout_ms == 2500
    assert config.resource_limits().pids_limit == 16
    assert config.disable_network is False
    assert config.log_level == "DEBUG"
    assert config.port == 9000


def test_invalid_integer(monkeypatch):
    monkeypatch.setenv("CODESANDBOX_TIMEOUT_MS", "soon")
    with pytest.raises(ValueError, match="CODESANDBOX_TIMEOUT_MS"):
        Config.load()


def test_non_positive_limit(monkeypatch):
    monkeypatch.setenv("CODESANDBOX_MAX_MEMORY_MB", "0")
    with pytest.raises(ValueError, match="must be positive"):
        Config.load()
