"""Tests for the shared SafeQuery logger."""

import logging

import pytest

from utils.logger import CONFIGURED_MARKER, LOGGER_NAME, Logger, configure_fallback_logging


class TestLogger:
    """Test the Logger facade."""

    def test_singleton(self):
        """Test that every call returns the same instance."""
        assert Logger() is Logger()

    def test_delegates_to_named_logger(self, caplog):
        """Test that level methods reach the SafeQuery logger."""
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            Logger().warning("quota low for %s", "alice")

        assert caplog.records[-1].name == LOGGER_NAME
        assert caplog.records[-1].getMessage() == "quota low for alice"

    def test_unknown_attribute(self):
        """Test that only logging methods are delegated."""
        with pytest.raises(AttributeError):
            Logger().setLevel  # noqa: B018


class TestFallbackLogging:
    """Test standalone handler setup."""

    def test_skipped_when_marker_set(self, monkeypatch, tmp_path):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])
        monkeypatch.setattr(root, CONFIGURED_MARKER, True, raising=False)
        monkeypatch.setenv("SAFEQUERY_LOG_DIR", str(tmp_path / "logs"))

        assert configure_fallback_logging() is False
        assert not (tmp_path / "logs").exists()

    def test_installs_file_and_stdout_handlers(self, monkeypatch, tmp_path):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])
        monkeypatch.delattr(root, CONFIGURED_MARKER, raising=False)
        monkeypatch.setattr(root, "level", root.level)
        monkeypatch.setenv("SAFEQUERY_LOG_DIR", str(tmp_path / "logs"))

        try:
            assert configure_fallback_logging() is True
            installed = list(root.handlers)
            assert {type(h) for h in installed} == {logging.FileHandler, logging.StreamHandler}
            assert len(list((tmp_path / "logs").glob("safequery_*.log"))) == 1
        finally:
            for handler in root.handlers:
                handler.close()
