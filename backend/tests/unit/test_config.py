# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for configuration loading
"""

import dataclasses

import pytest

from flowbridge.core.config import Config, get_smtp_password, load_config


CONFIG_YAML = """
service:
  port: 9001
paths:
  flows: /srv/flows
runs:
  store: file
http:
  timeout: 5
  retry_attempts: 4
auth:
  expiry_skew: 10
runtime:
  emulation_mode: true
email:
  smtp_host: mail.example.com
  from_address: bridge@example.com
logging:
  level: DEBUG
  format: text
"""


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config == Config()

    def test_values_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        path = tmp_path / "flowbridge.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(str(path))

        assert config.service_port == 9001
        assert config.service_host == "0.0.0.0"
        assert config.flows_path == "/srv/flows"
        assert config.run_store == "file"
        assert config.http_timeout == 5.0
        assert config.http_retry_attempts == 4
        assert config.token_expiry_skew == 10.0
        assert config.emulation_mode is True
        assert config.smtp_host == "mail.example.com"
        assert config.email_from == "bridge@example.com"
        assert config.log_level == "DEBUG"
        assert config.log_format == "text"

    def test_log_level_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        path = tmp_path / "flowbridge.yaml"
        path.write_text(CONFIG_YAML)
        assert load_config(str(path)).log_level == "WARNING"

    def test_empty_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == Config()

    def test_config_is_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            Config().service_port = 1


class TestSecrets:
    def test_smtp_password_from_env(self, monkeypatch):
        monkeypatch.setenv("FLOWBRIDGE_SMTP_PASSWORD", "hunter2")
        assert get_smtp_password() == "hunter2"
        assert Config().get_smtp_password() == "hunter2"

    def test_smtp_password_unset(self, monkeypatch):
        monkeypatch.delenv("FLOWBRIDGE_SMTP_PASSWORD", raising=False)
        assert get_smtp_password() is None
