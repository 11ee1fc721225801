"""
BaZi (Four Pillars of Destiny) computation engine.

Handles:
- Gregorian (or lunar) date to BaZi pillar conversion via solar terms
- Hidden stem extraction
- Ten Gods relationship mapping
- Branch interaction detection (combinations, clashes, punishments, harms, breaks)
- Shen sha (auxiliary spirits)
- Luck Pillar computation, with small luck (小运) for the first years
- Element counts and weighted distribution
- Day master strength from month support
- Annual pillar interaction with the natal chart, and the tai sui direction

Design principle: This module COMPUTES and FLAGS. It does not interpret.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from types import MappingProxyType
from typing import Optional

from tongshu import fengshui, lunar
from tongshu.errors import InvalidInput
from tongshu.solar_terms import (
    julian_day_number,
    next_sectional_term,
    previous_sectional_term,
    start_of_spring,
)
from tongshu.tables import (
    ACADEMIC,
    CANOPY,
    CHINESE_BY_ELEMENT,
    CONTROL_CYCLE,
    EARTHLY_BRANCHES,
    HEAVENLY_STEMS,
    NAYIN,
    NOBLEMAN,
    PEACH_BLOSSOM,
    PRODUCTION_CYCLE,
    PROSPERITY,
    RELATION_TABLES,
    SIX_COMBINATIONS,
    STEM_BY_PINYIN,
    TEN_GOD_TABLE,
    THREE_HARMONY,
    TRAVELLING_HORSE,
    TWELVE_STAGES,
    YANG_BLADE,
    EarthlyBranch,
    Element,
    HeavenlyStem,
    Polarity,
    TenGod,
    branch,
    harmony_frame,
    nayin_element,
    stem,
    twelve_stage,
)

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 2100

POSITIONS = ("year", "month", "day", "hour")
GENDERS = ("m", "f")
CALENDAR_TYPES = ("solar", "lunar")

# JDN of 2000-01-07, a Jia Zi day
DAY_CYCLE_EPOCH_JDN = 2451551

LUCK_PILLAR_COUNT = 8
MIN_ONSET_AGE = 1
MAX_ONSET_AGE = 20
SMALL_LUCK_YEARS = 8

# A dominant element needs at least this many of the eight visible slots
DOMINANT_COUNT = 4

# Tai sui direction by year branch index
TAI_SUI_DIRECTIONS = ("N", "NE", "NE", "E", "SE", "SE", "S", "SW", "SW", "W", "NW", "NW")

LUCK_IMPACTS = MappingProxyType({
    "supports": "生扶",
    "controls": "克泄",
    "neutral": "中性",
})


# ============================================================
# STEM-BRANCH PAIRS AND PILLARS
# ============================================================

@dataclass(frozen=True)
class StemBranch:
    stem: HeavenlyStem
    branch: EarthlyBranch

    def __post_init__(self):
        # Only same-parity pairs exist in the sixty cycle
        if (self.stem.index - self.branch.index) % 2 != 0:
            raise InvalidInput("stem_branch",
                               f"{self.stem.chinese}{self.branch.chinese} is not in the sixty cycle")

    @classmethod
    def from_index(cls, cycle_index: int) -> "StemBranch":
        return cls(HEAVENLY_STEMS[cycle_index % 10], EARTHLY_BRANCHES[cycle_index % 12])

    @classmethod
    def from_chinese(cls, text: str) -> "StemBranch":
        if len(text) != 2:
            raise InvalidInput("stem_branch", f"expected two characters, got {text!r}")
        return cls(stem(text[0]), branch(text[1]))

    @property
    def cycle_index(self) -> int:
        return (6 * self.stem.index - 5 * self.branch.index) % 60

    @property
    def chinese(self) -> str:
        return self.stem.chinese + self.branch.chinese

    @property
    def nayin(self) -> str:
        return NAYIN[self.cycle_index // 2]

    @property
    def nayin_element(self) -> Element:
        return nayin_element(self.cycle_index)

    @property
    def void_branches(self) -> tuple:
        """The two branches left over by this pair's ten-day xun (旬空)."""
        head = self.cycle_index - self.cycle_index % 10
        return (EARTHLY_BRANCHES[(head + 10) % 12], EARTHLY_BRANCHES[(head + 11) % 12])

    def shift(self, steps: int) -> "StemBranch":
        return StemBranch.from_index(self.cycle_index + steps)

    def __str__(self):
        return f"{self.stem.pinyin} {self.branch.pinyin} ({self.stem.polarity.value} {self.stem.element.value} {self.branch.animal})"

    def summary(self) -> dict:
        return {
            "chinese": self.chinese,
            "combined": f"{self.stem.pinyin} {self.branch.pinyin}",
            "cycle_index": self.cycle_index,
            "stem": self.stem.chinese,
            "stem_element": self.stem.element.value,
            "stem_polarity": self.stem.polarity.value,
            "branch": self.branch.chinese,
            "branch_animal": self.branch.animal,
            "branch_element": self.branch.element.value,
            "nayin": self.nayin,
        }


@dataclass(frozen=True)
class Pillar(StemBranch):
    position: str  # "year", "month", "day", "hour", "annual"

    @classmethod
    def of(cls, pair: StemBranch, position: str) -> "Pillar":
        return cls(pair.stem, pair.branch, position)

    def hidden_stems(self) -> tuple:
        return hidden_stems(self.branch)

    def to_dict(self, day_master: Optional[HeavenlyStem] = None):
        result = {
            "position": self.position,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "polarity": self.branch.polarity.value,
            },
            "combined": f"{self.stem.pinyin} {self.branch.pinyin}",
            "chinese": self.chinese,
            "cycle_index": self.cycle_index,
            "nayin": self.nayin,
            "void_branches": [b.chinese for b in self.void_branches],
            "description": str(self),
        }
        if day_master is not None:
            result["ten_god"] = ("Day Master" if self.position == "day"
                                 else str(ten_god(day_master, self.stem)))
            result["hidden_stems"] = hidden_stem_gods(day_master, self.branch)
            stage_cn, stage_en = TWELVE_STAGES[twelve_stage(day_master.index, self.branch.index)]
            result["twelve_stage"] = {"chinese": stage_cn, "english": stage_en}
        else:
            result["hidden_stems"] = [
                {"stem": h.chinese, "pinyin": h.pinyin, "element": h.element.value}
                for h in self.hidden_stems()
            ]
        return result


@dataclass(frozen=True)
class FourPillars:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Pillar
    birth_moment: datetime  # local civil start of the birth hour
    solar_year: int  # Gregorian year of the governing Start of Spring

    @property
    def day_master(self) -> HeavenlyStem:
        return self.day.stem

    def as_list(self) -> list:
        return [self.year, self.month, self.day, self.hour]


# ============================================================
# PILLAR COMPUTATION
# ============================================================

def hour_index_for(hour: int) -> int:
    """
    Map a 24h clock hour to its two-hour slot (shi chen).

    23:00-00:59 = Zi (Rat)      = branch 0
    01:00-02:59 = Chou (Ox)     = branch 1
    03:00-04:59 = Yin (Tiger)   = branch 2
    ...
    21:00-22:59 = Hai (Pig)     = branch 11
    """
    if not 0 <= hour <= 23:
        raise InvalidInput("hour", f"expected 0-23, got {hour}")
    if hour == 23 or hour == 0:
        return 0
    return ((hour + 1) // 2) % 12


def check_hour_index(hour_index) -> int:
    if not isinstance(hour_index, int) or not 0 <= hour_index <= 11:
        raise InvalidInput("hour_index", f"expected 0-11, got {hour_index!r}")
    return hour_index


def birth_moment(d: date, hour_index: int) -> datetime:
    """
    Local moment used for solar-term comparisons.

    Slot k >= 1 starts at (2k - 1) o'clock. The Zi slot starts at 23:00 of
    the given date; the day pillar still comes from that date.
    """
    check_hour_index(hour_index)
    start_hour = 23 if hour_index == 0 else 2 * hour_index - 1
    return datetime(d.year, d.month, d.day) + timedelta(hours=start_hour)


def year_pillar(solar_year: int, position: str = "year") -> Pillar:
    """
    Compute the Year Pillar for a solar year (Start of Spring to Start of Spring).

    Stem: (year - 4) % 10 gives index into heavenly stems
    (Year 4 CE was Jia Zi, the start of the cycle)
    """
    return Pillar(
        stem=HEAVENLY_STEMS[(solar_year - 4) % 10],
        branch=EARTHLY_BRANCHES[(solar_year - 4) % 12],
        position=position,
    )


def month_pillar(year_stem_index: int, month_branch_index: int) -> Pillar:
    """
    Compute the Month Pillar using the Five Tigers Escape (Wu Hu Dun) formula.

    The month branch is determined by solar terms.
    The month stem is derived from the year stem.

    Five Tigers Escape rule:
    - Year stem Jia/Ji → month 1 stem starts at Bing
    - Year stem Yi/Geng → month 1 stem starts at Wu
    - Year stem Bing/Xin → month 1 stem starts at Geng
    - Year stem Ding/Ren → month 1 stem starts at Ren
    - Year stem Wu/Gui → month 1 stem starts at Jia

    Args:
        year_stem_index: index of the year's heavenly stem (0-9)
        month_branch_index: index of the month's earthly branch (0-11)
            Note: month 1 (Tiger/Yin) has branch_index 2
    """
    start_stem = tiger_month_stem(year_stem_index)
    months_from_tiger = (month_branch_index - 2) % 12
    stem_index = (start_stem + months_from_tiger) % 10

    return Pillar(
        stem=HEAVENLY_STEMS[stem_index],
        branch=EARTHLY_BRANCHES[month_branch_index],
        position="month",
    )


def tiger_month_stem(year_stem_index: int) -> int:
    """Stem of the Tiger month (or Tiger palace) for a year stem."""
    return (2, 4, 6, 8, 0)[year_stem_index % 5]


def day_pillar(d: date) -> Pillar:
    """
    Compute the Day Pillar from the Julian Day Number.

    The sixty-day cycle is continuous; 2000-01-07 (JDN 2451551) is Jia Zi.
    """
    sexagenary = (julian_day_number(d) - DAY_CYCLE_EPOCH_JDN) % 60
    return Pillar(
        stem=HEAVENLY_STEMS[sexagenary % 10],
        branch=EARTHLY_BRANCHES[sexagenary % 12],
        position="day",
    )


def hour_pillar(day_stem_index: int, hour_index: int) -> Pillar:
    """
    Compute the Hour Pillar using Five Rats Escape (Wu Shu Dun) formula.

    Args:
        day_stem_index: index of the day's heavenly stem (0-9)
        hour_index: two-hour slot 0-11, equal to the hour branch
    """
    check_hour_index(hour_index)
    # Jia/Ji day → Jia Zi hour, Yi/Geng → Bing Zi, Bing/Xin → Wu Zi,
    # Ding/Ren → Geng Zi, Wu/Gui → Ren Zi
    start_stem = (0, 2, 4, 6, 8)[day_stem_index % 5]
    return Pillar(
        stem=HEAVENLY_STEMS[(start_stem + hour_index) % 10],
        branch=EARTHLY_BRANCHES[hour_index],
        position="hour",
    )


def compute_pillars(d: date, hour_index: int) -> FourPillars:
    """
    Compute the four pillars for a Gregorian date and hour slot.

    The year changes at the Start of Spring instant, and the month branch
    comes from the latest sectional term at or before the birth moment.
    """
    moment = birth_moment(d, hour_index)
    spring = start_of_spring(d.year)
    solar_year = d.year if moment >= spring.moment else d.year - 1

    yp = year_pillar(solar_year)
    opening_term = previous_sectional_term(moment)
    mp = month_pillar(yp.stem.index, opening_term.month_branch)
    dp = day_pillar(d)
    hp = hour_pillar(dp.stem.index, hour_index)

    logger.debug("pillars for %s: %s %s %s %s (month opened by %s %s)",
                 moment.isoformat(), yp.chinese, mp.chinese, dp.chinese, hp.chinese,
                 opening_term.chinese, opening_term.moment.isoformat())
    return FourPillars(yp, mp, dp, hp, birth_moment=moment, solar_year=solar_year)


# ============================================================
# TEN GODS (十神) AND HIDDEN STEMS
# ============================================================

def ten_god(day_master: HeavenlyStem, other: HeavenlyStem) -> TenGod:
    """
    Determine the Ten God relationship between the Day Master and another stem.

    Args:
        day_master: the Day Master stem
        other: the stem being evaluated

    Returns:
        TenGod entry from the precomputed table
    """
    return TEN_GOD_TABLE[day_master.index][other.index]


def hidden_stems(b: EarthlyBranch) -> tuple:
    """Hidden stems of a branch: main qi, then middle and residual qi."""
    return tuple(STEM_BY_PINYIN[p] for p in b.hidden_stems)


def hidden_stem_gods(day_master: HeavenlyStem, b: EarthlyBranch) -> list:
    qi_names = ("main", "middle", "residual")
    results = []
    for idx, hidden in enumerate(hidden_stems(b)):
        results.append({
            "qi": qi_names[idx],
            "stem": hidden.chinese,
            "pinyin": hidden.pinyin,
            "element": hidden.element.value,
            "polarity": hidden.polarity.value,
            "ten_god": str(ten_god(day_master, hidden)),
        })
    return results


# ============================================================
# BRANCH INTERACTIONS
# ============================================================

@dataclass(frozen=True)
class BranchInteraction:
    kind: str  # combination, clash, punishment, harm, break, three_harmony
    chinese: str
    branches: tuple  # "label:branch" strings
    element: Optional[Element] = None
    complete: Optional[bool] = None
    missing: Optional[str] = None

    def involves(self, label: str) -> bool:
        return any(b.startswith(f"{label}:") for b in self.branches)

    def to_dict(self):
        result = {"type": self.kind, "chinese": self.chinese, "branches": list(self.branches)}
        if self.element is not None:
            result["result_element"] = self.element.value
        if self.complete is not None:
            result["complete"] = self.complete
        if self.missing is not None:
            result["missing"] = self.missing
        return result


def branch_relationships(a: int, b: int) -> list:
    """
    Every pairwise relation between two branch indices.

    Relations are symmetric and independent: one pair can be both a
    combination and a break (Yin-Hai, Si-Shen), or a punishment and a harm
    (Yin-Si).
    """
    pair = frozenset((a % 12, b % 12))
    return [kind for kind, _, table in RELATION_TABLES if pair in table]


def find_branch_interactions(branches: list, labels: Optional[list] = None) -> list:
    """
    Find all branch interactions between a set of branches.

    Given natal (and optionally annual or luck) branches, report every
    pairwise relation plus complete or partial three-harmony frames.

    Args:
        branches: list of EarthlyBranch objects to check
        labels: optional labels for each branch (e.g., "year", "month", "annual")

    Returns:
        List of BranchInteraction
    """
    if labels is None:
        labels = [f"branch_{i}" for i in range(len(branches))]
    chinese_by_kind = {kind: cn for kind, cn, _ in RELATION_TABLES}

    interactions = []
    n = len(branches)
    for i in range(n):
        for j in range(i + 1, n):
            b1, b2 = branches[i], branches[j]
            involved = (f"{labels[i]}:{b1.chinese}", f"{labels[j]}:{b2.chinese}")
            for kind in branch_relationships(b1.index, b2.index):
                element = None
                if kind == "combination":
                    element = SIX_COMBINATIONS[frozenset((b1.index, b2.index))]
                interactions.append(BranchInteraction(kind, chinese_by_kind[kind], involved, element))

    # Three Harmony (need at least two of the frame)
    first_seen = {}
    for i, b in enumerate(branches):
        first_seen.setdefault(b.index, i)
    for frame, element in THREE_HARMONY.items():
        present = [idx for idx in frame if idx in first_seen]
        if len(present) < 2:
            continue
        involved = tuple(f"{labels[first_seen[idx]]}:{EARTHLY_BRANCHES[idx].chinese}" for idx in present)
        missing = None
        if len(present) == 2:
            missing = next(EARTHLY_BRANCHES[idx].chinese for idx in frame if idx not in first_seen)
        interactions.append(BranchInteraction(
            "three_harmony", "三合", involved, element,
            complete=len(present) == 3, missing=missing,
        ))

    return interactions


# ============================================================
# SHEN SHA (神煞)
# ============================================================

@dataclass(frozen=True)
class Spirit:
    key: str
    chinese: str
    english: str
    basis: str  # "day_stem" or "year_branch"
    positions: tuple  # pillar positions whose branch carries the spirit

    def to_dict(self):
        return {
            "key": self.key,
            "chinese": self.chinese,
            "english": self.english,
            "basis": self.basis,
            "positions": list(self.positions),
        }


def _day_stem_targets(table):
    return lambda day_stem, year_branch: set(_as_tuple(table[day_stem]))


def _year_branch_targets(table):
    return lambda day_stem, year_branch: {table[harmony_frame(year_branch)[1]]}


def _as_tuple(value):
    return value if isinstance(value, tuple) else (value,)


# (key, chinese, english, basis, targets(day_stem, year_branch) -> set of branch indices)
SPIRIT_RULES = (
    ("nobleman", "天乙贵人", "Heavenly Nobleman", "day_stem", _day_stem_targets(NOBLEMAN)),
    ("academic", "文昌", "Academic Star", "day_stem", _day_stem_targets(ACADEMIC)),
    ("prosperity", "禄神", "Prosperity Star", "day_stem", _day_stem_targets(PROSPERITY)),
    ("yang_blade", "羊刃", "Yang Blade", "day_stem", _day_stem_targets(YANG_BLADE)),
    ("travelling_horse", "驿马", "Travelling Horse", "year_branch", _year_branch_targets(TRAVELLING_HORSE)),
    ("peach_blossom", "桃花(咸池)", "Peach Blossom", "year_branch", _year_branch_targets(PEACH_BLOSSOM)),
    ("canopy", "华盖", "Canopy", "year_branch", _year_branch_targets(CANOPY)),
)


def find_spirits(pillars: FourPillars) -> list:
    """
    Evaluate every shen sha rule against the four pillar branches.

    Rules are independent; each spirit appears at most once, listing the
    positions where its target branch sits. Spirits with no hit are omitted.
    """
    day_stem = pillars.day.stem.index
    year_branch = pillars.year.branch.index
    spirits = []
    for key, chinese, english, basis, targets in SPIRIT_RULES:
        hits = targets(day_stem, year_branch)
        positions = tuple(p.position for p in pillars.as_list() if p.branch.index in hits)
        if positions:
            spirits.append(Spirit(key, chinese, english, basis, positions))
    return spirits


# ============================================================
# ELEMENT COUNTS AND DISTRIBUTION
# ============================================================

def element_counts(pillars: list) -> dict:
    """One count per visible stem and branch: eight slots summing to 8."""
    counts = {e.value: 0 for e in Element}
    for pillar in pillars:
        counts[pillar.stem.element.value] += 1
        counts[pillar.branch.element.value] += 1
    return counts


def element_distribution(pillars: list, include_hidden: bool = True) -> dict:
    """
    Count element presence across all pillars.

    Returns element counts weighted by position:
    - Visible stems: weight 1.0
    - Main qi (hidden stem 1): weight 0.7
    - Middle qi (hidden stem 2): weight 0.5
    - Residual qi (hidden stem 3): weight 0.3

    These weights are approximate and debated among practitioners.
    """
    hidden_weights = (0.7, 0.5, 0.3)
    distribution = {e.value: 0.0 for e in Element}

    for pillar in pillars:
        distribution[pillar.stem.element.value] += 1.0
        if include_hidden:
            for idx, hidden in enumerate(hidden_stems(pillar.branch)):
                distribution[hidden.element.value] += hidden_weights[idx]

    return {k: round(v, 2) for k, v in distribution.items()}


# ============================================================
# DAY MASTER STRENGTH
# ============================================================

@dataclass(frozen=True)
class DayMasterStrength:
    day_master: Element
    month_element: Element
    month_supports: bool
    dominant: Element
    dominant_count: int
    weakest: Element
    weakest_count: int
    favourable: tuple  # empty unless one element dominates

    @property
    def strength(self) -> str:
        return "strong" if self.month_supports else "weak"

    def to_dict(self):
        def named(element):
            return {"element": element.value, "chinese": CHINESE_BY_ELEMENT[element]}

        return {
            "day_master": named(self.day_master),
            "month_element": named(self.month_element),
            "month_supports": self.month_supports,
            "strength": self.strength,
            "dominant": {**named(self.dominant), "count": self.dominant_count},
            "weakest": {**named(self.weakest), "count": self.weakest_count},
            "favourable": [named(e) for e in self.favourable],
            "avoid": [named(self.dominant)] if self.favourable else [],
        }


def controller_of(element: Element) -> Element:
    """The element that controls `element` in the control cycle."""
    return next(e for e, target in CONTROL_CYCLE.items() if target == element)


def day_master_strength(pillars: FourPillars) -> DayMasterStrength:
    """
    Rough strength of the day master from the month branch (月令).

    The month supports the day master when its element is the same or
    produces it. When one element fills four or more of the eight visible
    slots, the element it produces (drains it) and the element that controls
    it are listed as favourable.
    """
    dm = pillars.day_master.element
    month_element = pillars.month.branch.element
    supports = month_element == dm or PRODUCTION_CYCLE[month_element] == dm

    counts = element_counts(pillars.as_list())
    # Ties resolve in Element order
    dominant = max(Element, key=lambda e: counts[e.value])
    weakest = min(Element, key=lambda e: counts[e.value])
    favourable = ()
    if counts[dominant.value] >= DOMINANT_COUNT:
        favourable = (PRODUCTION_CYCLE[dominant], controller_of(dominant))

    return DayMasterStrength(dm, month_element, supports,
                             dominant, counts[dominant.value],
                             weakest, counts[weakest.value], favourable)


# ============================================================
# LUCK PILLAR COMPUTATION
# ============================================================

@dataclass(frozen=True)
class LuckPillar:
    number: int
    pillar: StemBranch
    age_start: int
    age_end: int

    def to_dict(self, day_master: Optional[HeavenlyStem] = None):
        result = {"number": self.number, **self.pillar.summary(),
                  "age_start": self.age_start, "age_end": self.age_end}
        if day_master is not None:
            result["ten_god"] = str(ten_god(day_master, self.pillar.stem))
            impact = luck_impact(day_master, self.pillar)
            result["impact"] = {"type": impact, "chinese": LUCK_IMPACTS[impact]}
        result["description"] = (f"LP{self.number}: {self.pillar.chinese} "
                                 f"({self.pillar.branch.animal}) ages {self.age_start}-{self.age_end}")
        return result


@dataclass(frozen=True)
class LuckCycle:
    forward: bool
    onset_age: int
    days_to_term: float
    boundary_term: str
    pillars: tuple

    @property
    def direction(self) -> str:
        return "forward" if self.forward else "backward"

    def to_dict(self, day_master: Optional[HeavenlyStem] = None):
        return {
            "direction": self.direction,
            "onset_age": self.onset_age,
            "days_to_term": round(self.days_to_term, 3),
            "boundary_term": self.boundary_term,
            "pillars": [lp.to_dict(day_master) for lp in self.pillars],
        }


def luck_direction_forward(year_stem_index: int, gender: str) -> bool:
    """
    Direction of count depends on gender + year stem polarity:
    - Yang stem year + Male OR Yin stem year + Female → count FORWARD
    - Yang stem year + Female OR Yin stem year + Male → count BACKWARD
    """
    year_yang = HEAVENLY_STEMS[year_stem_index].polarity == Polarity.YANG
    male = normalize_gender(gender) == "m"
    return year_yang == male


def onset_age(days_to_term: float) -> int:
    """Traditional rule: 3 days = 1 year, floored, clamped to [1, 20]."""
    return min(max(int(days_to_term // 3), MIN_ONSET_AGE), MAX_ONSET_AGE)


def compute_luck_pillars(pillars: FourPillars, gender: str,
                         count: int = LUCK_PILLAR_COUNT) -> LuckCycle:
    """
    Compute Luck Pillars (大运 Da Yun).

    Starting age is calculated from the birth moment to the next (forward)
    or previous (backward) sectional term.

    Args:
        pillars: natal four pillars
        gender: "m" or "f"
        count: how many luck pillars to compute

    Returns:
        LuckCycle with direction, onset age and the pillars
    """
    forward = luck_direction_forward(pillars.year.stem.index, gender)
    moment = pillars.birth_moment
    if forward:
        term = next_sectional_term(moment)
        days = (term.moment - moment).total_seconds() / 86400
    else:
        term = previous_sectional_term(moment)
        days = (moment - term.moment).total_seconds() / 86400
    start_age = onset_age(days)

    step = 1 if forward else -1
    luck = []
    for i in range(1, count + 1):
        age_start = start_age + 10 * (i - 1)
        luck.append(LuckPillar(i, pillars.month.shift(step * i), age_start, age_start + 9))

    return LuckCycle(forward, start_age, days, term.chinese, tuple(luck))


def luck_impact(day_master: HeavenlyStem, pair: StemBranch) -> str:
    """
    Effect of a luck pillar on the day master element.

    "supports" when its stem or branch element produces the day master,
    otherwise "controls" when either controls it, otherwise "neutral".
    """
    dm = day_master.element
    elements = (pair.stem.element, pair.branch.element)
    if any(PRODUCTION_CYCLE[e] == dm for e in elements):
        return "supports"
    if any(CONTROL_CYCLE[e] == dm for e in elements):
        return "controls"
    return "neutral"


@dataclass(frozen=True)
class SmallLuck:
    age: int
    pillar: StemBranch

    def to_dict(self):
        return {"age": self.age, **self.pillar.summary()}


def compute_small_luck(pillars: FourPillars, gender: str,
                       years: int = SMALL_LUCK_YEARS) -> tuple:
    """
    Small luck (小运) for ages 1 to `years`.

    Counts from the hour pillar, one step per year, in the same direction as
    the luck pillars.
    """
    step = 1 if luck_direction_forward(pillars.year.stem.index, gender) else -1
    return tuple(SmallLuck(age, pillars.hour.shift(step * age)) for age in range(1, years + 1))


# ============================================================
# ANNUAL PILLAR
# ============================================================

def annual_pillar(year: int) -> Pillar:
    """Compute the annual pillar for a given year."""
    return year_pillar(year, position="annual")


def tai_sui(year: int) -> dict:
    """Branch of the year (太岁) and the compass direction it occupies."""
    b = EARTHLY_BRANCHES[(year - 4) % 12]
    return {"branch": b.chinese, "animal": b.animal, "direction": TAI_SUI_DIRECTIONS[b.index]}


# ============================================================
# FULL CHART COMPUTATION
# ============================================================

def normalize_gender(gender: str) -> str:
    value = str(gender).lower()
    if value in ("m", "male"):
        return "m"
    if value in ("f", "female"):
        return "f"
    raise InvalidInput("gender", f"expected 'm' or 'f', got {gender!r}")


@dataclass(frozen=True)
class ChartRequest:
    year: int
    month: int
    day: int
    hour_index: int
    gender: str
    calendar_type: str = "solar"
    leap_month: bool = False

    def validate(self) -> None:
        """Reject out-of-domain fields before any calendrical math."""
        if not isinstance(self.year, int) or not MIN_YEAR <= self.year <= MAX_YEAR:
            raise InvalidInput("year", f"expected {MIN_YEAR}-{MAX_YEAR}, got {self.year!r}")
        if not isinstance(self.month, int) or not 1 <= self.month <= 12:
            raise InvalidInput("month", f"expected 1-12, got {self.month!r}")
        if not isinstance(self.day, int) or not 1 <= self.day <= 31:
            raise InvalidInput("day", f"expected 1-31, got {self.day!r}")
        check_hour_index(self.hour_index)
        normalize_gender(self.gender)
        if self.calendar_type not in CALENDAR_TYPES:
            raise InvalidInput("calendar_type",
                               f"expected one of {CALENDAR_TYPES}, got {self.calendar_type!r}")
        if self.leap_month and self.calendar_type != "lunar":
            raise InvalidInput("leap_month", "only meaningful for lunar input")

    def solar_date(self) -> date:
        """Validated Gregorian birth date, converting lunar input."""
        self.validate()
        if self.calendar_type == "lunar":
            return lunar.lunar_to_solar(self.year, self.month, self.day, self.leap_month)
        try:
            return date(self.year, self.month, self.day)
        except ValueError as e:
            raise InvalidInput("day", str(e))


@dataclass(frozen=True)
class Chart:
    request: ChartRequest
    solar_date: date
    pillars: FourPillars
    luck: LuckCycle
    small_luck: tuple
    strength: DayMasterStrength
    spirits: tuple
    interactions: tuple
    element_counts: MappingProxyType
    element_distribution: MappingProxyType
    flying_stars: "fengshui.FlyingStarGrid"
    life_gua: "fengshui.LifeGua" = field(default=None)

    @property
    def day_master(self) -> HeavenlyStem:
        return self.pillars.day_master

    def to_dict(self):
        dm = self.day_master
        return {
            "input": {
                "year": self.request.year,
                "month": self.request.month,
                "day": self.request.day,
                "hour_index": self.request.hour_index,
                "gender": normalize_gender(self.request.gender),
                "calendar_type": self.request.calendar_type,
                "leap_month": self.request.leap_month,
                "solar_date": self.solar_date.isoformat(),
                "birth_moment": self.pillars.birth_moment.isoformat(),
            },
            "day_master": {
                "stem": dm.chinese,
                "pinyin": dm.pinyin,
                "element": dm.element.value,
                "polarity": dm.polarity.value,
                "description": str(dm),
            },
            "zodiac": self.pillars.year.branch.animal,
            "pillars": {p.position: p.to_dict(dm) for p in self.pillars.as_list()},
            "element_counts": dict(self.element_counts),
            "element_distribution": dict(self.element_distribution),
            "strength": self.strength.to_dict(),
            "natal_branch_interactions": [i.to_dict() for i in self.interactions],
            "spirits": [s.to_dict() for s in self.spirits],
            "luck_pillars": self.luck.to_dict(dm),
            "small_luck": [s.to_dict() for s in self.small_luck],
            "flying_stars": self.flying_stars.to_dict(),
            "life_gua": self.life_gua.to_dict() if self.life_gua else None,
        }


def compute_chart(request: ChartRequest) -> Chart:
    """
    Compute a full BaZi chart from birth data.

    Args:
        request: birth date, hour slot, gender and calendar type

    Returns:
        Chart with pillars, ten gods, element statistics, branch
        interactions, spirits, luck pillars and annual flying stars.

    Raises:
        InvalidInput: for any out-of-domain field or impossible date
    """
    solar = request.solar_date()
    pillars = compute_pillars(solar, request.hour_index)
    natal = pillars.as_list()

    interactions = find_branch_interactions([p.branch for p in natal], list(POSITIONS))
    luck = compute_luck_pillars(pillars, request.gender)
    chart = Chart(
        request=request,
        solar_date=solar,
        pillars=pillars,
        luck=luck,
        small_luck=compute_small_luck(pillars, request.gender),
        strength=day_master_strength(pillars),
        spirits=tuple(find_spirits(pillars)),
        interactions=tuple(interactions),
        element_counts=MappingProxyType(element_counts(natal)),
        element_distribution=MappingProxyType(element_distribution(natal)),
        flying_stars=fengshui.flying_stars(pillars.solar_year),
        life_gua=fengshui.life_gua(pillars.solar_year, request.gender),
    )
    logger.info("chart %s: %s %s %s %s, luck %s from age %d",
                solar.isoformat(), *(p.chinese for p in natal), luck.direction, luck.onset_age)
    return chart


def annual_interactions(chart: Chart, year: int) -> dict:
    """
    Compute interactions between the annual pillar and natal chart.

    This is what you run to get the BaZi context for a specific year.
    """
    ap = annual_pillar(year)
    natal = chart.pillars.as_list()

    branches = [p.branch for p in natal] + [ap.branch]
    labels = list(POSITIONS) + ["annual"]
    all_interactions = find_branch_interactions(branches, labels)
    annual_specific = [i for i in all_interactions if i.involves("annual")]

    return {
        "annual_pillar": ap.to_dict(chart.day_master),
        "annual_ten_god": str(ten_god(chart.day_master, ap.stem)),
        "annual_interactions_with_natal": [i.to_dict() for i in annual_specific],
        "all_active_interactions": [i.to_dict() for i in all_interactions],
        "tai_sui": tai_sui(year),
        "flying_stars": fengshui.flying_stars(year).to_dict(),
    }
