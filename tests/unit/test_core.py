"""
Unit tests for shared utilities, settings, and logging.
"""
import logging

from src.core.config import Settings
from src.core.logging import get_logger, set_level
from src.core.utils import format_time, js_round, parse_time, timer


class TestJsRound:

    def test_half_rounds_up(self):
        assert js_round(2.5) == 3
        assert js_round(0.5) == 1

    def test_negative_half_rounds_toward_positive(self):
        assert js_round(-2.5) == -2

    def test_plain(self):
        assert js_round(1.49) == 1


class TestTime:

    def test_format_is_utc(self):
        assert format_time(1548979200000) == "2019-02-01 00:00:00"

    def test_parse_calendar_string(self):
        assert parse_time("2019-02-01 00:00:00") == 1548979200000

    def test_parse_iso_with_offset(self):
        assert parse_time("2019-02-01T01:00:00+01:00") == 1548979200000

    def test_timer_records_elapsed(self):
        with timer() as t:
            pass
        assert t["elapsed_ms"] >= 0


class TestSettings:

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ARCH_MODE", "1")
        monkeypatch.setenv("MAX_TIMELINE_BUCKETS", "50")
        settings = Settings()
        assert settings.arch_mode == 1
        assert settings.max_timeline_buckets == 50


class TestLogging:

    def test_single_handler(self):
        first = get_logger("console.test.single")
        second = get_logger("console.test.single")
        assert first is second
        assert len(second.handlers) == 1

    def test_set_level_applies_to_known_loggers(self):
        logger = get_logger("console.test.level", level="INFO")
        set_level("debug")
        assert logger.level == logging.DEBUG
        set_level("INFO")
        assert logger.level == logging.INFO
