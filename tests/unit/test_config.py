"""
Unit tests for AdminConfig.
"""

import pytest

from adminserver.config import AdminConfig


class TestDefaults:
    def test_defaults(self):
        config = AdminConfig()

        assert config.host == "0.0.0.0"
        assert config.port == 9990
        assert config.workers == 4
        assert config.abort_methods == ("GET", "POST")
        assert config.health_policy == "count"
        assert config.enable_metrics is False
        assert config.max_initial_line_length == 4096
        assert config.max_header_size == 8192
        assert config.max_content_length == 100 * 1024 * 1024
        config.validate()

    def test_ephemeral_port_is_valid(self):
        AdminConfig(port=0).validate()


class TestValidate:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"port": -1},
            {"port": 65536},
            {"workers": 0},
            {"buffer_size": 512},
            {"backlog": 0},
            {"timeout": 0},
            {"keep_alive_timeout": -1.0},
            {"drain_timeout": 0},
            {"max_header_size": 0},
            {"abort_methods": ()},
            {"abort_methods": ("GET", "PATCH")},
            {"health_policy": "majority"},
            {"log_format": "xml"},
            {"log_level": "LOUD"},
        ],
    )
    def test_rejects(self, overrides):
        with pytest.raises(ValueError):
            AdminConfig(**overrides).validate()

    def test_log_level_case_insensitive(self):
        AdminConfig(log_level="debug").validate()


class TestFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ADMIN_HOST", "127.0.0.1")
        monkeypatch.setenv("ADMIN_PORT", "9991")
        monkeypatch.setenv("ADMIN_WORKERS", "2")
        monkeypatch.setenv("ADMIN_TIMEOUT", "1.5")
        monkeypatch.setenv("ADMIN_HEALTH_POLICY", "first_failure")
        monkeypatch.setenv("ADMIN_METRICS", "yes")
        monkeypatch.setenv("ADMIN_LOG_LEVEL", "debug")
        monkeypatch.setenv("ADMIN_LOG_FORMAT", "json")

        config = AdminConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == 9991
        assert config.workers == 2
        assert config.timeout == 1.5
        assert config.health_policy == "first_failure"
        assert config.enable_metrics is True
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_defaults_without_environment(self, monkeypatch):
        for name in ("ADMIN_HOST", "ADMIN_PORT", "ADMIN_METRICS", "ADMIN_HEALTH_POLICY"):
            monkeypatch.delenv(name, raising=False)

        config = AdminConfig.from_env()

        assert config.port == 9990
        assert config.enable_metrics is False
        assert config.health_policy == "count"
