"""
Unit tests for settings loading.
"""

import logging

import pytest
from pydantic import ValidationError

from sourcecontrol.config import Settings
from sourcecontrol.core.log_config import configure_logging


class TestSettings:

    def test_env_prefix(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOURCE_CONTROL_USER_FOLDER", str(tmp_path))
        monkeypatch.setenv("SOURCE_CONTROL_SSH_KEY_NAME", "deploy")

        settings = Settings()

        assert settings.git_folder == tmp_path / "git"
        assert settings.ssh_key_path == tmp_path / "ssh" / "deploy"

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            Settings(secret_key="short")


class TestLogging:

    def test_quiets_third_party_loggers(self, settings):
        configure_logging(settings)

        assert logging.getLogger("git").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
