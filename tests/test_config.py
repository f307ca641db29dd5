"""Tests for chatadapter.config."""

from __future__ import annotations

import pytest
import yaml

from chatadapter.config import AdapterConfig, build_provider, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "CHATADAPTER_MODEL",
        "CHATADAPTER_ENABLE_THINKING",
        "CHATADAPTER_MAX_TOKENS",
        "CHATADAPTER_BASE_URL",
        "ZAI_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config_file(tmp_path):
    data = {
        "api": {"base_url": "https://example.test/v1", "timeout_seconds": 30},
        "chat": {"default_model": "glm-4.7-flash", "unknown_key": 1},
        "models": [
            {"id": "small", "context_window": 8000, "max_output": 1000},
            {"id": "eyes", "context_window": 8000, "max_output": 1000, "supports_vision": True},
        ],
        "profiles": {"fast": {"chat": {"enable_thinking": False}}},
    }
    path = tmp_path / "chatadapter.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestLoadConfig:
    def test_defaults(self):
        cfg = load_config(None)
        assert cfg.api.base_url == "https://api.z.ai/api/coding/paas/v4"
        assert cfg.chat.enable_thinking is True
        assert cfg.chat.default_max_tokens == 4096
        assert cfg.vision.fallback_model == "glm-4.6v"
        assert cfg.models == []

    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "nope.yaml")
        assert cfg.chat.default_model == "glm-4.7"

    def test_file_values(self, config_file):
        cfg = load_config(config_file)
        assert cfg.api.base_url == "https://example.test/v1"
        assert cfg.api.timeout_seconds == 30
        assert cfg.chat.default_model == "glm-4.7-flash"
        assert len(cfg.models) == 2

    def test_profile_overlay(self, config_file):
        assert load_config(config_file).chat.enable_thinking is True
        assert load_config(config_file, profile="fast").chat.enable_thinking is False

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("CHATADAPTER_MODEL", "from-env")
        monkeypatch.setenv("CHATADAPTER_ENABLE_THINKING", "no")
        monkeypatch.setenv("CHATADAPTER_MAX_TOKENS", "123")
        cfg = load_config(config_file)
        assert cfg.chat.default_model == "from-env"
        assert cfg.chat.enable_thinking is False
        assert cfg.chat.default_max_tokens == 123

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("CHATADAPTER_MODEL", "from-env")
        cfg = load_config(None, cli_overrides={"chat.default_model": "from-cli"})
        assert cfg.chat.default_model == "from-cli"

    def test_session_override(self):
        cfg = AdapterConfig()
        cfg.set_override("chat.enable_thinking", False)
        assert cfg.chat.enable_thinking is False
        assert cfg.get_override("chat.enable_thinking") is False
        assert "_overrides" not in cfg.to_dict()


class TestBuildProvider:
    def test_uses_configured_models(self, config_file, monkeypatch):
        monkeypatch.setenv("ZAI_API_KEY", " secret ")
        provider = build_provider(load_config(config_file))
        assert [m.id for m in provider.catalog] == ["small", "eyes"]
        assert provider.catalog.vision_fallback_id() == "eyes"
        assert [i.id for i in provider.chat_information()] == ["small", "eyes"]

    def test_no_key_offers_no_models(self):
        provider = build_provider(load_config(None))
        assert provider.chat_information() == []
        assert len(provider.catalog) == 3
