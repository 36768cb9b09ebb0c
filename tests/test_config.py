"""Tests for settings loading and logging setup."""

import logging
from decimal import Decimal

import pytest

from motoshop_engine.config import Settings, configure_logging
from motoshop_engine.errors import InvalidStateError, NotFoundError


class TestSettings:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PAYROLL_STANDARD_WORK_DAYS", "24")
        monkeypatch.setenv("SOCIAL_INSURANCE_RATE", "0.105")
        monkeypatch.setenv("DATABASE_ECHO", "True")

        settings = Settings.from_env()

        assert settings.log_level == "DEBUG"
        assert settings.standard_work_days == 24
        assert settings.social_insurance_rate == Decimal("0.105")
        assert settings.database_echo is True

    def test_defaults(self, monkeypatch):
        for name in ("DEFAULT_MIN_REDEMPTION_POINTS", "PAYROLL_OVERTIME_MULTIPLIER"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.default_min_redemption_points == 100
        assert settings.overtime_multiplier == Decimal("1.5")


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_root_level(self):
        root = logging.getLogger()
        level = root.level
        yield
        root.setLevel(level)

    def test_sets_root_level(self):
        configure_logging("WARNING")

        assert logging.getLogger().level == logging.WARNING

    def test_repeat_calls_keep_one_handler(self):
        configure_logging("INFO")
        handlers = list(logging.getLogger().handlers)

        configure_logging("DEBUG")

        assert logging.getLogger().handlers == handlers
        assert logging.getLogger().level == logging.DEBUG


class TestErrorPayload:
    def test_not_found(self):
        error = NotFoundError("PayrollPeriod", "PP2024-03")

        assert error.to_dict() == {
            "kind": "not_found",
            "message": "PayrollPeriod PP2024-03 not found",
        }

    def test_invalid_state(self):
        error = InvalidStateError("finalized", "draft", "Period is locked")

        assert error.to_dict() == {
            "kind": "invalid_state",
            "message": "Period is locked (Status is 'finalized', requires 'draft')",
        }
