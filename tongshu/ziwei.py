"""
Zi Wei Dou Shu (紫微斗数) chart.

Handles:
- Life (命) and body (身) palaces from lunar month and birth hour
- Twelve palace names and stems (Five Tigers rule on the year stem)
- Five-element bureau (五行局) from the life palace na-yin
- The fourteen major stars (Zi Wei and Tian Fu groups)
- Four transformations (四化) by year stem
- Ten-year major periods (大限)

A leap lunar month is placed as the month it repeats.
"""

import logging
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Optional

from tongshu import lunar
from tongshu.bazi import StemBranch, luck_direction_forward, normalize_gender, tiger_month_stem
from tongshu.errors import InvalidInput
from tongshu.tables import EARTHLY_BRANCHES, HEAVENLY_STEMS, Element

logger = logging.getLogger(__name__)

PALACE_NAMES = (
    "命宫", "兄弟宫", "夫妻宫", "子女宫", "财帛宫", "疾厄宫",
    "迁移宫", "奴仆宫", "官禄宫", "田宅宫", "福德宫", "父母宫",
)

BUREAUS = MappingProxyType({
    Element.WATER: (2, "水二局"),
    Element.WOOD: (3, "木三局"),
    Element.METAL: (4, "金四局"),
    Element.EARTH: (5, "土五局"),
    Element.FIRE: (6, "火六局"),
})

# Offsets from Zi Wei, counted backward
ZIWEI_GROUP = (("紫微", 0), ("天机", 1), ("太阳", 3), ("武曲", 4), ("天同", 5), ("廉贞", 8))
# Offsets from Tian Fu, counted forward
TIANFU_GROUP = (("天府", 0), ("太阴", 1), ("贪狼", 2), ("巨门", 3),
                ("天相", 4), ("天梁", 5), ("七杀", 6), ("破军", 10))

TRANSFORMATION_NAMES = ("化禄", "化权", "化科", "化忌")
# Year stem → stars taking 禄, 权, 科, 忌
FOUR_TRANSFORMATIONS = (
    ("廉贞", "破军", "武曲", "太阳"),  # 甲
    ("天机", "天梁", "紫微", "太阴"),  # 乙
    ("天同", "天机", "文昌", "廉贞"),  # 丙
    ("太阴", "天同", "天机", "巨门"),  # 丁
    ("贪狼", "太阴", "右弼", "天机"),  # 戊
    ("武曲", "贪狼", "天梁", "文曲"),  # 己
    ("太阳", "武曲", "太阴", "天同"),  # 庚
    ("巨门", "太阳", "文曲", "文昌"),  # 辛
    ("天梁", "紫微", "左辅", "武曲"),  # 壬
    ("破军", "巨门", "太阴", "贪狼"),  # 癸
)

MAJOR_PERIOD_COUNT = 12


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class Palace:
    name: str
    pair: StemBranch
    stars: tuple  # (star, transformation or None)
    is_body: bool

    def to_dict(self):
        return {
            "name": self.name,
            "stem": self.pair.stem.chinese,
            "branch": self.pair.branch.chinese,
            "stars": [{"name": s, "transformation": t} for s, t in self.stars],
            "is_body": self.is_body,
        }


@dataclass(frozen=True)
class MajorPeriod:
    palace: str
    branch: str
    age_start: int
    age_end: int

    def to_dict(self):
        return {
            "palace": self.palace,
            "branch": self.branch,
            "age_start": self.age_start,
            "age_end": self.age_end,
        }


@dataclass(frozen=True)
class ZiweiChart:
    lunar_date: lunar.LunarDate
    hour_index: int
    gender: str
    year_pair: StemBranch
    life_branch: int
    body_branch: int
    bureau: int
    bureau_name: str
    palaces: tuple  # in palace-name order, starting with 命宫
    transformations: MappingProxyType  # 化禄 → star
    periods: tuple

    def palace_of(self, star: str) -> Optional[Palace]:
        for palace in self.palaces:
            if any(s == star for s, _ in palace.stars):
                return palace
        return None

    def to_dict(self):
        return {
            "lunar_date": self.lunar_date.to_dict(),
            "hour_branch": EARTHLY_BRANCHES[self.hour_index].chinese,
            "gender": self.gender,
            "year": self.year_pair.chinese,
            "life_palace": EARTHLY_BRANCHES[self.life_branch].chinese,
            "body_palace": EARTHLY_BRANCHES[self.body_branch].chinese,
            "bureau": self.bureau,
            "bureau_name": self.bureau_name,
            "transformations": dict(self.transformations),
            "palaces": [p.to_dict() for p in self.palaces],
            "major_periods": [p.to_dict() for p in self.periods],
        }


# ============================================================
# PLACEMENT RULES
# ============================================================

def life_palace(month: int, hour_index: int) -> int:
    """Count from Yin forward to the birth month, then back to the birth hour."""
    return (2 + (month - 1) - hour_index) % 12


def body_palace(month: int, hour_index: int) -> int:
    """Count from Yin forward to the birth month, then forward to the birth hour."""
    return (2 + (month - 1) + hour_index) % 12


def palace_pair(year_stem_index: int, branch_index: int) -> StemBranch:
    """Palace stem by Five Tigers: the Yin palace takes the Tiger month stem."""
    stem_index = (tiger_month_stem(year_stem_index) + (branch_index - 2) % 12) % 10
    return StemBranch(HEAVENLY_STEMS[stem_index], EARTHLY_BRANCHES[branch_index])


def bureau_for(life_pair: StemBranch) -> tuple:
    """(number, name) of the five-element bureau from the life palace na-yin."""
    return BUREAUS[life_pair.nayin_element]


def ziwei_position(day: int, bureau: int) -> int:
    """
    Branch of the Zi Wei star.

    Find the smallest x >= 0 making (day + x) divisible by the bureau; the
    quotient counts from Yin, then step back x palaces when x is odd or
    forward x palaces when it is even.
    """
    if not 1 <= day <= 30:
        raise InvalidInput("day", f"expected a lunar day 1-30, got {day}")
    x = (-day) % bureau
    quotient = (day + x) // bureau
    position = 2 + quotient - 1
    position += -x if x % 2 else x
    return position % 12


def tianfu_position(ziwei: int) -> int:
    """Tian Fu mirrors Zi Wei across the Yin-Shen axis."""
    return (4 - ziwei) % 12


def major_star_positions(ziwei: int) -> dict:
    positions = {star: (ziwei - offset) % 12 for star, offset in ZIWEI_GROUP}
    tianfu = tianfu_position(ziwei)
    positions.update({star: (tianfu + offset) % 12 for star, offset in TIANFU_GROUP})
    return positions


def four_transformations(year_stem_index: int) -> dict:
    return dict(zip(TRANSFORMATION_NAMES, FOUR_TRANSFORMATIONS[year_stem_index]))


# ============================================================
# CHART
# ============================================================

def compute_ziwei(lunar_date: lunar.LunarDate, hour_index: int, gender: str) -> ZiweiChart:
    """
    Compute a Zi Wei chart from a lunar birth date.

    Args:
        lunar_date: lunar year, month and day of birth
        hour_index: two-hour slot 0-11
        gender: "m" or "f"

    Returns:
        ZiweiChart with the twelve palaces, stars, transformations and periods
    """
    if not 0 <= hour_index <= 11:
        raise InvalidInput("hour_index", f"expected 0-11, got {hour_index}")
    gender = normalize_gender(gender)

    year_pair = StemBranch.from_index((lunar_date.year - 4) % 60)
    year_stem = year_pair.stem.index

    life = life_palace(lunar_date.month, hour_index)
    body = body_palace(lunar_date.month, hour_index)
    life_pair = palace_pair(year_stem, life)
    bureau, bureau_name = bureau_for(life_pair)

    ziwei = ziwei_position(lunar_date.day, bureau)
    positions = major_star_positions(ziwei)
    transformations = four_transformations(year_stem)
    transformed = {star: name for name, star in transformations.items()}

    palaces = []
    for i, name in enumerate(PALACE_NAMES):
        b = (life - i) % 12
        stars = tuple((star, transformed.get(star)) for star, pos in positions.items() if pos == b)
        palaces.append(Palace(name, palace_pair(year_stem, b), stars, b == body))

    forward = luck_direction_forward(year_stem, gender)
    step = 1 if forward else -1
    name_by_branch = {(life - i) % 12: name for i, name in enumerate(PALACE_NAMES)}
    periods = []
    for i in range(MAJOR_PERIOD_COUNT):
        b = (life + step * i) % 12
        age_start = bureau + 10 * i
        periods.append(MajorPeriod(name_by_branch[b], EARTHLY_BRANCHES[b].chinese,
                                   age_start, age_start + 9))

    logger.debug("ziwei %s: life %s, %s, zi wei at %s", lunar_date.chinese,
                 EARTHLY_BRANCHES[life].chinese, bureau_name, EARTHLY_BRANCHES[ziwei].chinese)
    return ZiweiChart(
        lunar_date=lunar_date,
        hour_index=hour_index,
        gender=gender,
        year_pair=year_pair,
        life_branch=life,
        body_branch=body,
        bureau=bureau,
        bureau_name=bureau_name,
        palaces=tuple(palaces),
        transformations=MappingProxyType(transformations),
        periods=tuple(periods),
    )


def ziwei_from_solar(d: date, hour_index: int, gender: str) -> ZiweiChart:
    """Convert a Gregorian birth date to lunar and compute the chart."""
    return compute_ziwei(lunar.solar_to_lunar(d), hour_index, gender)
