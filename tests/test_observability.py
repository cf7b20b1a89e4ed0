"""
Tests for logging setup.
"""

import logging
from pathlib import Path

from provisioner.core.observability.logging_config import (
    resolve_level,
    setup_from_env,
    setup_logging,
)


class TestResolveLevel:
    def test_default(self):
        assert resolve_level() == "WARNING"

    def test_flags(self):
        assert resolve_level(debug=True) == "DEBUG"
        assert resolve_level(verbose=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_debug_wins(self):
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"

    def test_env(self, monkeypatch):
        monkeypatch.setenv("PROVISION_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"

    def test_flag_beats_env(self, monkeypatch):
        monkeypatch.setenv("PROVISION_LOG_LEVEL", "DEBUG")
        assert resolve_level(quiet=True) == "ERROR"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "provision.log"
        setup_logging("WARNING", log_file=str(log_file))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("provisioner.test").debug("step trail")
        for handler in root.handlers:
            handler.flush()
        assert "step trail" in log_file.read_text()

    def test_file_level(self, tmp_path: Path):
        log_file = tmp_path / "provision.log"
        setup_logging("ERROR", log_file=str(log_file), log_file_level="INFO")
        assert logging.getLogger().level == logging.INFO


class TestSetupFromEnv:
    def test_env_file(self, tmp_path: Path, monkeypatch):
        log_file = tmp_path / "run.log"
        monkeypatch.setenv("PROVISION_LOG_FILE", str(log_file))
        monkeypatch.setenv("PROVISION_LOG_FILE_LEVEL", "INFO")

        level = setup_from_env(verbose=True)

        assert level == "INFO"
        logging.getLogger("provisioner.test").info("recorded")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "recorded" in log_file.read_text()
