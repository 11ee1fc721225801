"""
Runtime settings read from environment variables.

TONGSHU_SOLAR_TERM_METHOD     astronomical | linear        (default astronomical)
TONGSHU_LUNAR_MONTH_LENGTHS   astronomical | alternating   (default astronomical)
TONGSHU_UTC_OFFSET_HOURS      civil offset of chart times  (default 8)
TONGSHU_LOG_LEVEL             logging level name           (default WARNING)
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from tongshu.errors import InvalidInput

SOLAR_TERM_METHODS = ("astronomical", "linear")
MONTH_LENGTH_MODES = ("astronomical", "alternating")


@dataclass(frozen=True)
class Settings:
    solar_term_method: str = "astronomical"
    lunar_month_lengths: str = "astronomical"
    utc_offset_hours: float = 8.0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        method = os.getenv("TONGSHU_SOLAR_TERM_METHOD", "astronomical").lower()
        if method not in SOLAR_TERM_METHODS:
            raise InvalidInput("TONGSHU_SOLAR_TERM_METHOD",
                               f"expected one of {SOLAR_TERM_METHODS}, got {method!r}")

        lengths = os.getenv("TONGSHU_LUNAR_MONTH_LENGTHS", "astronomical").lower()
        if lengths not in MONTH_LENGTH_MODES:
            raise InvalidInput("TONGSHU_LUNAR_MONTH_LENGTHS",
                               f"expected one of {MONTH_LENGTH_MODES}, got {lengths!r}")

        raw_offset = os.getenv("TONGSHU_UTC_OFFSET_HOURS", "8")
        try:
            offset = float(raw_offset)
        except ValueError:
            raise InvalidInput("TONGSHU_UTC_OFFSET_HOURS", f"not a number: {raw_offset!r}")
        if not -12.0 <= offset <= 14.0:
            raise InvalidInput("TONGSHU_UTC_OFFSET_HOURS", f"out of range: {offset}")

        level = os.getenv("TONGSHU_LOG_LEVEL", "WARNING").upper()
        if not isinstance(logging.getLevelName(level), int):
            raise InvalidInput("TONGSHU_LOG_LEVEL", f"unknown level {level!r}")

        return cls(
            solar_term_method=method,
            lunar_month_lengths=lengths,
            utc_offset_hours=offset,
            log_level=level,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
