"""Tests for environment-driven settings."""

import os
from unittest.mock import patch

import pytest

from tongshu.config import Settings, get_settings, reload_settings
from tongshu.errors import InvalidInput
from tongshu.solar_terms import compute_solar_terms


class TestSettings:
    def test_defaults(self):
        settings = Settings.from_env()
        assert settings == Settings()
        assert settings.utc_offset_hours == 8.0
        assert settings.log_level == "WARNING"

    def test_reads_environment(self):
        env = {
            "TONGSHU_SOLAR_TERM_METHOD": "Linear",
            "TONGSHU_LUNAR_MONTH_LENGTHS": "alternating",
            "TONGSHU_UTC_OFFSET_HOURS": "9",
            "TONGSHU_LOG_LEVEL": "debug",
        }
        with patch.dict(os.environ, env):
            settings = Settings.from_env()
        assert settings.solar_term_method == "linear"
        assert settings.lunar_month_lengths == "alternating"
        assert settings.utc_offset_hours == 9.0
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("key, value", [
        ("TONGSHU_SOLAR_TERM_METHOD", "guess"),
        ("TONGSHU_LUNAR_MONTH_LENGTHS", "weekly"),
        ("TONGSHU_UTC_OFFSET_HOURS", "eight"),
        ("TONGSHU_UTC_OFFSET_HOURS", "15"),
        ("TONGSHU_LOG_LEVEL", "LOUD"),
    ])
    def test_rejects_bad_values(self, key, value):
        with patch.dict(os.environ, {key: value}):
            with pytest.raises(InvalidInput) as exc:
                Settings.from_env()
        assert exc.value.field == key

    def test_cached_until_reload(self):
        first = get_settings()
        with patch.dict(os.environ, {"TONGSHU_SOLAR_TERM_METHOD": "linear"}):
            assert get_settings() is first
            assert reload_settings().solar_term_method == "linear"
        assert reload_settings().solar_term_method == "astronomical"


class TestSettingsApplied:
    def test_utc_offset_shifts_term_moments(self):
        beijing = compute_solar_terms(2024)[0].moment
        with patch.dict(os.environ, {"TONGSHU_UTC_OFFSET_HOURS": "0"}):
            reload_settings()
            utc = compute_solar_terms(2024)[0].moment
        assert abs((beijing - utc).total_seconds() - 8 * 3600) <= 1

    def test_method_from_environment(self):
        with patch.dict(os.environ, {"TONGSHU_SOLAR_TERM_METHOD": "linear"}):
            reload_settings()
            linear = compute_solar_terms(2024)
        astronomical = compute_solar_terms(2024, method="astronomical")
        assert linear != astronomical
        assert linear == compute_solar_terms(2024, method="linear")
