"""
Lunar-solar (农历) date conversion.

Each lunar year is built from the astronomical engine:
- months begin on the local date of the new moon
- the month containing the Winter Solstice is month 11
- when a solstice-to-solstice span (岁) holds 13 months, the first month
  with no principal term (中气) is the leap month

The resulting tables are cached per year. An "alternating" month-length mode
keeps the simple approximation (odd months 30 days, even and leap months 29,
the last month stretched or shortened to meet the next new year)
anchored on the computed new-year dates.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import Optional

import swisseph as swe

from tongshu.config import MONTH_LENGTH_MODES, get_settings
from tongshu.errors import InvalidInput, SolverConvergenceError, TableLookupMiss
from tongshu.solar_terms import (
    MAX_ITERATIONS,
    SWE_FLAGS,
    TOLERANCE_DEG,
    WINTER_SOLSTICE,
    angle_diff,
    compute_solar_terms,
    local_datetime_from_jd,
    sun_longitude,
)
from tongshu.tables import EARTHLY_BRANCHES, HEAVENLY_STEMS

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

SYNODIC_MONTH = 29.530588853
# Mean new moon of 2000-01-06 18:14 UT
REF_NEW_MOON_JD = 2451550.09766

MONTH_NAMES = ("正", "二", "三", "四", "五", "六", "七", "八", "九", "十", "冬", "腊")
DAY_TENS = ("初", "十", "廿", "三")
DAY_UNITS = ("十", "一", "二", "三", "四", "五", "六", "七", "八", "九")


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class LunarMonth:
    number: int  # 1-12
    leap: bool
    start: date
    length: int  # 29 or 30; the last month in alternating mode can differ

    @property
    def end(self) -> date:
        return self.start + timedelta(days=self.length - 1)

    @property
    def chinese(self) -> str:
        return ("闰" if self.leap else "") + MONTH_NAMES[self.number - 1] + "月"

    def to_dict(self):
        return {
            "number": self.number,
            "leap": self.leap,
            "chinese": self.chinese,
            "start": self.start.isoformat(),
            "length": self.length,
        }


@dataclass(frozen=True)
class LunarYear:
    year: int
    months: tuple

    @property
    def new_year(self) -> date:
        return self.months[0].start

    @property
    def leap_month(self) -> Optional[int]:
        for m in self.months:
            if m.leap:
                return m.number
        return None

    @property
    def days(self) -> int:
        return sum(m.length for m in self.months)

    @property
    def ganzhi(self) -> str:
        return HEAVENLY_STEMS[(self.year - 4) % 10].chinese + EARTHLY_BRANCHES[(self.year - 4) % 12].chinese

    def month(self, number: int, leap: bool = False) -> LunarMonth:
        for m in self.months:
            if m.number == number and m.leap == leap:
                return m
        if leap:
            raise InvalidInput("leap_month", f"lunar year {self.year} has no leap month {number}")
        raise InvalidInput("month", f"lunar year {self.year} has no month {number}")

    def to_dict(self):
        return {
            "year": self.year,
            "ganzhi": self.ganzhi,
            "new_year": self.new_year.isoformat(),
            "leap_month": self.leap_month,
            "days": self.days,
            "months": [m.to_dict() for m in self.months],
        }


@dataclass(frozen=True)
class LunarDate:
    year: int
    month: int
    day: int
    leap: bool = False

    @property
    def chinese(self) -> str:
        month = ("闰" if self.leap else "") + MONTH_NAMES[self.month - 1] + "月"
        if self.day == 10:
            day = "初十"
        elif self.day == 20:
            day = "二十"
        elif self.day == 30:
            day = "三十"
        else:
            day = DAY_TENS[self.day // 10] + DAY_UNITS[self.day % 10]
        return month + day

    def to_dict(self):
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "leap": self.leap,
            "chinese": self.chinese,
        }


# ============================================================
# NEW MOONS
# ============================================================

def moon_sun_elongation(jd: float) -> float:
    """Moon longitude minus Sun longitude, degrees in [0, 360)."""
    pos, _ = swe.calc_ut(jd, swe.MOON, SWE_FLAGS)
    return (pos[0] - sun_longitude(jd)) % 360.0


@lru_cache(maxsize=4096)
def new_moon(lunation: int) -> float:
    """
    Julian Day (UT) of the true new moon nearest mean lunation `lunation`,
    counted from the new moon of 2000-01-06.
    """
    jd = REF_NEW_MOON_JD + lunation * SYNODIC_MONTH
    diff = 0.0
    for _ in range(MAX_ITERATIONS):
        diff = angle_diff(0.0, moon_sun_elongation(jd))
        if abs(diff) < TOLERANCE_DEG:
            return jd
        jd += diff / 360.0 * SYNODIC_MONTH
    raise SolverConvergenceError(f"new moon {lunation}", MAX_ITERATIONS, diff)


def _new_moon_date(lunation: int, utc_offset: float) -> date:
    return local_datetime_from_jd(new_moon(lunation), utc_offset).date()


def _lunation_on_or_before(day: date, jd_hint: float, utc_offset: float) -> int:
    """Lunation whose new-moon date is the last one on or before `day`."""
    k = int((jd_hint - REF_NEW_MOON_JD) // SYNODIC_MONTH)
    while _new_moon_date(k, utc_offset) > day:
        k -= 1
    while _new_moon_date(k + 1, utc_offset) <= day:
        k += 1
    return k


# ============================================================
# MONTH TABLES
# ============================================================

def _sui_months(year: int, utc_offset: float) -> list:
    """
    Months of the sui ending at the Winter Solstice of `year`.

    Returns (start, number, leap) tuples from month 11 of the previous year
    up to, but not including, the month holding this year's solstice, and
    appends that month's start as the closing boundary.
    """
    prev_terms = compute_solar_terms(year - 1, method="astronomical", utc_offset=utc_offset)
    terms = compute_solar_terms(year, method="astronomical", utc_offset=utc_offset)
    prev_solstice = prev_terms[WINTER_SOLSTICE]
    solstice = terms[WINTER_SOLSTICE]

    first = _lunation_on_or_before(prev_solstice.moment.date(), prev_solstice.jd, utc_offset)
    last = _lunation_on_or_before(solstice.moment.date(), solstice.jd, utc_offset)
    starts = [_new_moon_date(k, utc_offset) for k in range(first, last + 1)]

    principal_dates = sorted(
        t.moment.date() for t in prev_terms[WINTER_SOLSTICE:] + terms if not t.is_sectional
    )

    leap_index = None
    if len(starts) - 1 == 13:
        for i in range(1, 13):
            if not any(starts[i] <= d < starts[i + 1] for d in principal_dates):
                leap_index = i
                break

    months = []
    number = 10
    for i, start in enumerate(starts[:-1]):
        if i == leap_index:
            months.append((start, number, True))
        else:
            number = number % 12 + 1
            months.append((start, number, False))
    months.append((starts[-1], None, None))
    return months


@lru_cache(maxsize=256)
def _build_lunar_year(year: int, month_lengths: str, utc_offset: float) -> LunarYear:
    logger.debug("building lunar year %d (%s)", year, month_lengths)
    this_sui = _sui_months(year, utc_offset)
    next_sui = _sui_months(year + 1, utc_offset)

    # Month 1 of this sui through to month 1 of the next
    span = this_sui[:-1] + next_sui
    begin = next(i for i, (_, n, leap) in enumerate(span) if n == 1 and not leap)
    end = next(i for i, (_, n, leap) in enumerate(span) if i > begin and n == 1 and not leap)

    months = []
    if month_lengths == "alternating":
        start = span[begin][0]
        next_new_year = span[end][0]
        for i in range(begin, end):
            _, number, leap = span[i]
            if i == end - 1:
                # The last month runs up to the next new year
                length = (next_new_year - start).days
            else:
                length = 29 if leap or number % 2 == 0 else 30
            months.append(LunarMonth(number, leap, start, length))
            start += timedelta(days=length)
    else:
        for i in range(begin, end):
            start, number, leap = span[i]
            months.append(LunarMonth(number, leap, start, (span[i + 1][0] - start).days))

    return LunarYear(year, tuple(months))


def lunar_year(year: int, month_lengths: Optional[str] = None) -> LunarYear:
    """
    The month table of a lunar year.

    Args:
        year: lunar year, named by the Gregorian year its month 1 starts in
        month_lengths: "astronomical" or "alternating"; defaults to config

    Raises:
        TableLookupMiss: for years outside 1900-2100
    """
    settings = get_settings()
    month_lengths = month_lengths or settings.lunar_month_lengths
    if month_lengths not in MONTH_LENGTH_MODES:
        raise InvalidInput("month_lengths",
                           f"expected one of {MONTH_LENGTH_MODES}, got {month_lengths!r}")
    if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        raise TableLookupMiss("lunar years", year)
    return _build_lunar_year(year, month_lengths, float(settings.utc_offset_hours))


# ============================================================
# CONVERSION
# ============================================================

def lunar_to_solar(year: int, month: int, day: int, leap: bool = False,
                   month_lengths: Optional[str] = None) -> date:
    """
    Convert a lunar date to its Gregorian date.

    Args:
        year: lunar year
        month: lunar month 1-12
        day: day of the lunar month, 1-30
        leap: True for the intercalary copy of `month`
        month_lengths: "astronomical" or "alternating"; defaults to config

    Raises:
        InvalidInput: month out of range, day beyond the month's length, or a
            leap flag on a month that is not this year's leap month
        TableLookupMiss: year outside the table coverage
    """
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise InvalidInput("month", f"expected 1-12, got {month!r}")
    if not isinstance(day, int) or day < 1:
        raise InvalidInput("day", f"expected a positive day, got {day!r}")

    lunar_month = lunar_year(year, month_lengths).month(month, leap)
    if day > lunar_month.length:
        raise InvalidInput("day", f"{year} {lunar_month.chinese} has only {lunar_month.length} days")
    return lunar_month.start + timedelta(days=day - 1)


def solar_to_lunar(d: date, month_lengths: Optional[str] = None) -> LunarDate:
    """Convert a Gregorian date to its lunar date."""
    table = lunar_year(d.year, month_lengths)
    if d < table.new_year:
        table = lunar_year(d.year - 1, month_lengths)
    for m in table.months:
        if m.start <= d <= m.end:
            return LunarDate(table.year, m.number, (d - m.start).days + 1, m.leap)
    raise TableLookupMiss(f"lunar year {table.year}", d.isoformat())
