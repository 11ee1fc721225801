"""
Solar term engine and calendar utilities.

Handles:
- The 24 solar terms (节气) of a solar year, by Newton iteration on the
  Sun's apparent longitude or by the linear mean-year fallback
- Julian Day conversions at the chart's civil UTC offset
- Lookup of the sectional term (节) at or around a moment
- LMT correction for birth longitude
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Optional

import swisseph as swe

from tongshu.config import SOLAR_TERM_METHODS, get_settings
from tongshu.errors import InvalidInput, SolverConvergenceError

logger = logging.getLogger(__name__)

# Moshier analytic ephemeris: no data files needed
SWE_FLAGS = swe.FLG_MOSEPH

TROPICAL_YEAR = 365.2422
MAX_ITERATIONS = 50
TOLERANCE_DEG = 1e-4

MIN_YEAR = 1800
MAX_YEAR = 2200

# Years past this distance from the linear epoch drift by more than an hour
LINEAR_DRIFT_WARN_YEARS = 50


# ============================================================
# SOLAR TERM DEFINITIONS
# ============================================================
#
# A solar year runs from Start of Spring (315°) to Major Cold (300°) of the
# next January. Even indices are sectional terms (节) and open a BaZi month;
# odd indices are principal terms (中气).
#
# Li Chun (315°)    → Tiger month   (branch 2)
# Jing Zhe (345°)   → Rabbit month  (branch 3)
# Qing Ming (15°)   → Dragon month  (branch 4)
# ...
# Da Xue (255°)     → Rat month     (branch 0)
# Xiao Han (285°)   → Ox month      (branch 1)

# (chinese, pinyin, english, 2000 epoch month, day, hour, minute at UTC+8)
TERM_DEFINITIONS = (
    ("立春", "Li Chun", "Start of Spring", 2, 4, 20, 40),
    ("雨水", "Yu Shui", "Rain Water", 2, 19, 16, 33),
    ("惊蛰", "Jing Zhe", "Awakening of Insects", 3, 5, 14, 42),
    ("春分", "Chun Fen", "Spring Equinox", 3, 20, 15, 35),
    ("清明", "Qing Ming", "Pure Brightness", 4, 4, 19, 32),
    ("谷雨", "Gu Yu", "Grain Rain", 4, 20, 2, 39),
    ("立夏", "Li Xia", "Start of Summer", 5, 5, 13, 50),
    ("小满", "Xiao Man", "Grain Buds", 5, 21, 2, 49),
    ("芒种", "Mang Zhong", "Grain in Ear", 6, 5, 17, 58),
    ("夏至", "Xia Zhi", "Summer Solstice", 6, 21, 9, 47),
    ("小暑", "Xiao Shu", "Minor Heat", 7, 7, 4, 13),
    ("大暑", "Da Shu", "Major Heat", 7, 22, 21, 42),
    ("立秋", "Li Qiu", "Start of Autumn", 8, 7, 13, 58),
    ("处暑", "Chu Shu", "End of Heat", 8, 23, 4, 48),
    ("白露", "Bai Lu", "White Dew", 9, 7, 16, 59),
    ("秋分", "Qiu Fen", "Autumn Equinox", 9, 23, 2, 27),
    ("寒露", "Han Lu", "Cold Dew", 10, 8, 8, 38),
    ("霜降", "Shuang Jiang", "Frost's Descent", 10, 23, 11, 47),
    ("立冬", "Li Dong", "Start of Winter", 11, 7, 11, 48),
    ("小雪", "Xiao Xue", "Minor Snow", 11, 22, 9, 19),
    ("大雪", "Da Xue", "Major Snow", 12, 7, 4, 37),
    ("冬至", "Dong Zhi", "Winter Solstice", 12, 21, 22, 37),
    ("小寒", "Xiao Han", "Minor Cold", 1, 6, 8, 0),
    ("大寒", "Da Han", "Major Cold", 1, 21, 1, 23),
)

LINEAR_EPOCH_YEAR = 2000
LINEAR_EPOCH_OFFSET_HOURS = 8.0

START_OF_SPRING = 0
WINTER_SOLSTICE = 21


def term_longitude(index: int) -> float:
    """Apparent solar longitude (degrees) marking term `index`."""
    return float((315 + 15 * index) % 360)


def term_calendar_year(index: int, year: int) -> int:
    """Gregorian year in which term `index` of solar year `year` falls."""
    return year + 1 if index >= 22 else year


@dataclass(frozen=True)
class SolarTerm:
    index: int  # 0 = Start of Spring ... 23 = Major Cold
    chinese: str
    pinyin: str
    english: str
    longitude: float
    moment: datetime  # local civil time, naive
    jd: float  # Julian Day (UT)

    @property
    def is_sectional(self) -> bool:
        return self.index % 2 == 0

    @property
    def month_branch(self) -> Optional[int]:
        """Branch of the BaZi month this term opens (sectional terms only)."""
        if not self.is_sectional:
            return None
        return (2 + self.index // 2) % 12

    def to_dict(self):
        return {
            "index": self.index,
            "chinese": self.chinese,
            "pinyin": self.pinyin,
            "english": self.english,
            "longitude": self.longitude,
            "year": self.moment.year,
            "month": self.moment.month,
            "day": self.moment.day,
            "hour": self.moment.hour,
            "minute": self.moment.minute,
            "sectional": self.is_sectional,
            "month_branch": self.month_branch,
            "jd": round(self.jd, 6),
        }


# ============================================================
# JULIAN DAY HELPERS
# ============================================================

def julian_day_number(d: date) -> int:
    """Integer Julian Day Number of a Gregorian date (JDN of noon)."""
    return int(swe.julday(d.year, d.month, d.day, 12.0))


def jd_from_local_datetime(moment: datetime, utc_offset: float) -> float:
    """Julian Day (UT) of a naive local datetime at the given UTC offset."""
    hour = moment.hour + moment.minute / 60 + moment.second / 3600
    return swe.julday(moment.year, moment.month, moment.day, hour) - utc_offset / 24.0


def local_datetime_from_jd(jd: float, utc_offset: float) -> datetime:
    """Naive local datetime (to the second) of a Julian Day (UT)."""
    y, m, d, h = swe.revjul(jd + utc_offset / 24.0)
    return datetime(y, m, d) + timedelta(seconds=round(h * 3600))


def sun_longitude(jd: float) -> float:
    """Apparent geocentric ecliptic longitude of the Sun, degrees."""
    pos, _ = swe.calc_ut(jd, swe.SUN, SWE_FLAGS)
    return float(pos[0] % 360.0)


def angle_diff(target: float, actual: float) -> float:
    """Signed difference target - actual, normalised to (-180, 180]."""
    diff = (target - actual) % 360.0
    return diff - 360.0 if diff > 180.0 else diff


# ============================================================
# SOLVERS
# ============================================================

def _linear_jd(index: int, year: int) -> float:
    """Mean-year estimate (JD UT) for term `index` of solar year `year`."""
    _, _, _, month, day, hour, minute = TERM_DEFINITIONS[index]
    # Epoch rows are all dated in calendar year 2000, Minor/Major Cold included
    epoch = datetime(LINEAR_EPOCH_YEAR, month, day, hour, minute)
    epoch_jd = jd_from_local_datetime(epoch, LINEAR_EPOCH_OFFSET_HOURS)
    years = term_calendar_year(index, year) - LINEAR_EPOCH_YEAR
    return epoch_jd + years * TROPICAL_YEAR


def solve_sun_longitude(target: float, jd_guess: float) -> float:
    """
    Find the moment the Sun reaches `target` degrees of longitude.

    Newton iteration with the mean solar motion as derivative, starting
    from `jd_guess`, which must be within a few days of the crossing.

    Args:
        target: ecliptic longitude in degrees
        jd_guess: initial Julian Day (UT)

    Returns:
        Julian Day (UT) of the crossing

    Raises:
        SolverConvergenceError: if the residual stays above tolerance
    """
    jd = jd_guess
    diff = 0.0
    for iteration in range(MAX_ITERATIONS):
        diff = angle_diff(target, sun_longitude(jd))
        if abs(diff) < TOLERANCE_DEG:
            logger.debug("sun longitude %.1f converged in %d iterations", target, iteration)
            return jd
        jd += diff / 360.0 * TROPICAL_YEAR
    raise SolverConvergenceError(f"sun longitude {target:.1f}", MAX_ITERATIONS, diff)


def _term_jd(index: int, year: int, method: str) -> float:
    guess = _linear_jd(index, year)
    if method == "linear":
        return guess
    return solve_sun_longitude(term_longitude(index), guess)


@lru_cache(maxsize=512)
def _solar_terms(year: int, method: str, utc_offset: float) -> tuple:
    logger.debug("computing solar terms for %d (%s)", year, method)
    if method == "linear" and abs(year - LINEAR_EPOCH_YEAR) > LINEAR_DRIFT_WARN_YEARS:
        logger.warning("linear solar terms for %d are far from the %d epoch; "
                       "expect drift of hours", year, LINEAR_EPOCH_YEAR)

    terms = []
    for index, (chinese, pinyin, english, *_) in enumerate(TERM_DEFINITIONS):
        jd = _term_jd(index, year, method)
        terms.append(SolarTerm(
            index=index,
            chinese=chinese,
            pinyin=pinyin,
            english=english,
            longitude=term_longitude(index),
            moment=local_datetime_from_jd(jd, utc_offset),
            jd=jd,
        ))
    return tuple(terms)


def compute_solar_terms(year: int, method: Optional[str] = None,
                        utc_offset: Optional[float] = None) -> tuple:
    """
    Compute the 24 solar terms of a solar year.

    Terms run from Start of Spring of `year` to Major Cold of `year + 1`,
    in strictly increasing order. The last two terms (Minor Cold, Major
    Cold) fall in January of `year + 1`.

    Args:
        year: Gregorian year of the Start of Spring
        method: "astronomical" or "linear"; defaults to the configured method
        utc_offset: civil UTC offset in hours; defaults to the configured offset

    Returns:
        Tuple of 24 SolarTerm objects
    """
    settings = get_settings()
    method = method or settings.solar_term_method
    if utc_offset is None:
        utc_offset = settings.utc_offset_hours

    if method not in SOLAR_TERM_METHODS:
        raise InvalidInput("method", f"expected one of {SOLAR_TERM_METHODS}, got {method!r}")
    if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidInput("year", f"solar terms supported for {MIN_YEAR}-{MAX_YEAR}, got {year!r}")

    return _solar_terms(year, method, float(utc_offset))


def sectional_terms(year: int, **kwargs) -> tuple:
    """The 12 sectional terms (节) of a solar year, each opening a month."""
    return tuple(t for t in compute_solar_terms(year, **kwargs) if t.is_sectional)


def principal_terms(year: int, **kwargs) -> tuple:
    """The 12 principal terms (中气) of a solar year."""
    return tuple(t for t in compute_solar_terms(year, **kwargs) if not t.is_sectional)


def start_of_spring(year: int, **kwargs) -> SolarTerm:
    return compute_solar_terms(year, **kwargs)[START_OF_SPRING]


def _sectional_window(moment: datetime, **kwargs) -> list:
    terms = []
    for y in (moment.year - 1, moment.year):
        terms.extend(sectional_terms(y, **kwargs))
    return terms


def previous_sectional_term(moment: datetime, **kwargs) -> SolarTerm:
    """The latest sectional term at or before a local moment."""
    for term in reversed(_sectional_window(moment, **kwargs)):
        if term.moment <= moment:
            return term
    raise InvalidInput("moment", f"no sectional term found before {moment.isoformat()}")


def next_sectional_term(moment: datetime, **kwargs) -> SolarTerm:
    """The earliest sectional term strictly after a local moment."""
    for term in _sectional_window(moment, **kwargs):
        if term.moment > moment:
            return term
    raise InvalidInput("moment", f"no sectional term found after {moment.isoformat()}")


# ============================================================
# LOCAL MEAN TIME
# ============================================================

def lmt_correction(longitude: float, standard_meridian: float = 120.0) -> float:
    """
    Calculate Local Mean Time correction in minutes.

    China uses a single timezone based on 120°E. For locations
    significantly west of this (like Nanning at 108.37°E), the clock
    time differs from solar time.

    Args:
        longitude: birth location longitude in degrees (east positive)
        standard_meridian: timezone standard meridian (120.0 for China/CST)

    Returns:
        Correction in minutes (negative = subtract from clock time)

    Example:
        Nanning (108.37°E): correction = (108.37 - 120.0) * 4 = -46.52 min
    """
    return (longitude - standard_meridian) * 4.0


def apply_lmt(clock_time: datetime, longitude: float,
              standard_meridian: float = 120.0) -> datetime:
    """Convert clock time to Local Mean Time."""
    return clock_time + timedelta(minutes=lmt_correction(longitude, standard_meridian))
