"""
Unit tests for configuration constants.
"""

from importlib import reload

import core.config
from core.config import (
    AUTO_APPROVE_FINISHED_ASSIGNMENTS, DATABASE_URL, EXTENSION_MAX_MINUTES, EXTENSION_MIN_MINUTES,
    MAX_ALLOCATION_DAYS, _get_bool,
)


class TestConfigConstants:
    """Test cases for configuration constants."""

    def test_default_values(self):
        assert MAX_ALLOCATION_DAYS == 90
        assert AUTO_APPROVE_FINISHED_ASSIGNMENTS is False
        assert (EXTENSION_MIN_MINUTES, EXTENSION_MAX_MINUTES) == (15, 240)
        # DATABASE_URL is overridden in the test environment
        assert DATABASE_URL.startswith(("postgresql://", "sqlite"))

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MAX_ALLOCATION_DAYS", "14")
        monkeypatch.setenv("AUTO_APPROVE_FINISHED_ASSIGNMENTS", "true")

        try:
            reload(core.config)
            assert core.config.MAX_ALLOCATION_DAYS == 14
            assert core.config.AUTO_APPROVE_FINISHED_ASSIGNMENTS is True
        finally:
            monkeypatch.undo()
            reload(core.config)

    def test_get_bool(self, monkeypatch):
        monkeypatch.setenv("SOME_FLAG", " Yes ")
        assert _get_bool("SOME_FLAG", False) is True

        monkeypatch.setenv("SOME_FLAG", "0")
        assert _get_bool("SOME_FLAG", True) is False

        monkeypatch.delenv("SOME_FLAG")
        assert _get_bool("SOME_FLAG", True) is True
