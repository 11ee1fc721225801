"""
Flying star (玄空飞星) and eight mansion (八宅) feng shui.

Handles:
- Period center star from the 20-year yun table
- Nine palace grid propagated along the Luo Shu flight path
- Annual center star (流年飞星)
- Life gua (命卦) with the east/west group and eight directions
- House matching by sitting direction (命宅)
"""

from dataclasses import dataclass
from types import MappingProxyType

from tongshu.errors import InvalidInput

PERIOD_EPOCH_YEAR = 1864  # first year of period 1 (上元一运)
PERIOD_LENGTH = 20

# Annual star of 2024 (甲辰, 三碧)
ANNUAL_STAR_EPOCH = (2024, 3)


# ============================================================
# STAR AND PALACE DEFINITIONS
# ============================================================

@dataclass(frozen=True)
class FlyingStar:
    number: int
    name: str
    element: str
    nature: str
    luck: str

    @property
    def auspicious(self) -> bool:
        return self.luck in ("吉", "大吉")


FLYING_STARS = MappingProxyType({
    1: FlyingStar(1, "一白贪狼", "水", "文昌", "吉"),
    2: FlyingStar(2, "二黑巨门", "土", "病符", "凶"),
    3: FlyingStar(3, "三碧禄存", "木", "是非", "凶"),
    4: FlyingStar(4, "四绿文昌", "木", "文昌", "吉"),
    5: FlyingStar(5, "五黄廉贞", "土", "大煞", "最凶"),
    6: FlyingStar(6, "六白武曲", "金", "偏财", "吉"),
    7: FlyingStar(7, "七赤破军", "金", "盗贼", "凶"),
    8: FlyingStar(8, "八白左辅", "土", "财星", "大吉"),
    9: FlyingStar(9, "九紫右弼", "火", "喜庆", "吉"),
})

# Palace name, compass direction, grid row and column (south on top)
PALACES = MappingProxyType({
    "中": ("center", 1, 1),
    "乾": ("NW", 2, 2),
    "兑": ("W", 1, 2),
    "艮": ("NE", 2, 0),
    "离": ("S", 0, 1),
    "坎": ("N", 2, 1),
    "坤": ("SW", 0, 2),
    "震": ("E", 1, 0),
    "巽": ("SE", 0, 0),
})

# Luo Shu flight path, starting from the center
FLIGHT_PATH = ("中", "乾", "兑", "艮", "离", "坎", "坤", "震", "巽")


@dataclass(frozen=True)
class PalaceStar:
    palace: str
    direction: str
    row: int
    col: int
    star: FlyingStar

    def to_dict(self):
        return {
            "palace": self.palace,
            "direction": self.direction,
            "row": self.row,
            "col": self.col,
            "star": self.star.number,
            "name": self.star.name,
            "element": self.star.element,
            "nature": self.star.nature,
            "luck": self.star.luck,
        }


@dataclass(frozen=True)
class FlyingStarGrid:
    year: int
    center: int
    cells: tuple  # PalaceStar in flight order

    def star_at(self, palace: str) -> int:
        for cell in self.cells:
            if cell.palace == palace:
                return cell.star.number
        raise InvalidInput("palace", f"unknown palace {palace!r}")

    def rows(self) -> list:
        """3x3 grid of star numbers, south on top."""
        grid = [[0] * 3 for _ in range(3)]
        for cell in self.cells:
            grid[cell.row][cell.col] = cell.star.number
        return grid

    def to_dict(self):
        return {
            "year": self.year,
            "center_star": self.center,
            "grid": self.rows(),
            "palaces": [cell.to_dict() for cell in self.cells],
        }


# ============================================================
# FLYING STAR COMPUTATION
# ============================================================

def period_star(year: int) -> int:
    """
    Center star of the 20-year period containing `year`.

    1984-2003 → 7, 2004-2023 → 8, 2024-2043 → 9, 2044-2063 → 1
    """
    return ((year - PERIOD_EPOCH_YEAR) // PERIOD_LENGTH) % 9 + 1


center_star = period_star


def annual_star(year: int) -> int:
    """Center star of a single year; it steps back by one each year."""
    epoch_year, epoch_star = ANNUAL_STAR_EPOCH
    return (epoch_star - (year - epoch_year) - 1) % 9 + 1


def fly_stars(center: int, year: int = 0) -> FlyingStarGrid:
    """Place `center` in the middle and fly forward along the Luo Shu path."""
    if not 1 <= center <= 9:
        raise InvalidInput("center", f"expected 1-9, got {center}")
    cells = []
    for step, palace in enumerate(FLIGHT_PATH):
        direction, row, col = PALACES[palace]
        number = (center - 1 + step) % 9 + 1
        cells.append(PalaceStar(palace, direction, row, col, FLYING_STARS[number]))
    return FlyingStarGrid(year, center, tuple(cells))


def flying_stars(year: int) -> FlyingStarGrid:
    """Nine palace grid for the period containing `year`."""
    return fly_stars(period_star(year), year)


def annual_flying_stars(year: int) -> FlyingStarGrid:
    """Nine palace grid for the year's own annual star."""
    return fly_stars(annual_star(year), year)


# ============================================================
# LIFE GUA (命卦)
# ============================================================

GUA_NAMES = MappingProxyType({
    1: ("坎", "水"), 2: ("坤", "土"), 3: ("震", "木"), 4: ("巽", "木"),
    6: ("乾", "金"), 7: ("兑", "金"), 8: ("艮", "土"), 9: ("离", "火"),
})

EAST_GROUP = frozenset((1, 3, 4, 9))

AUSPICIOUS = ("生气", "天医", "延年", "伏位")
INAUSPICIOUS = ("祸害", "五鬼", "六煞", "绝命")

# gua → directions for 生气 天医 延年 伏位 祸害 五鬼 六煞 绝命
EIGHT_MANSIONS = MappingProxyType({
    1: ("SE", "E", "S", "N", "W", "NE", "NW", "SW"),
    2: ("NE", "W", "NW", "SW", "E", "SE", "S", "N"),
    3: ("S", "N", "SE", "E", "SW", "NW", "NE", "W"),
    4: ("N", "S", "E", "SE", "NW", "SW", "W", "NE"),
    6: ("W", "NE", "SW", "NW", "SE", "E", "N", "S"),
    7: ("NW", "SW", "NE", "W", "N", "S", "SE", "E"),
    8: ("SW", "NW", "W", "NE", "S", "N", "E", "SE"),
    9: ("E", "SE", "N", "S", "NE", "W", "SW", "NW"),
})


@dataclass(frozen=True)
class LifeGua:
    year: int
    gender: str
    number: int
    name: str
    element: str

    @property
    def group(self) -> str:
        return "east" if self.number in EAST_GROUP else "west"

    def directions(self) -> dict:
        dirs = EIGHT_MANSIONS[self.number]
        return dict(zip(AUSPICIOUS + INAUSPICIOUS, dirs))

    def suitable_houses(self) -> list:
        """Houses of the same east/west group, as (name, sitting direction)."""
        return [(GUA_NAMES[n][0] + "宅", sitting_direction(n))
                for n in sorted(GUA_NAMES) if (n in EAST_GROUP) == (self.number in EAST_GROUP)]

    def to_dict(self):
        dirs = self.directions()
        return {
            "year": self.year,
            "gender": self.gender,
            "gua": self.number,
            "name": self.name + "卦",
            "element": self.element,
            "group": self.group,
            "auspicious": {k: dirs[k] for k in AUSPICIOUS},
            "inauspicious": {k: dirs[k] for k in INAUSPICIOUS},
            "suitable_houses": [{"house": h, "sitting": s} for h, s in self.suitable_houses()],
        }


def sitting_direction(number: int) -> str:
    """A house sits in its own trigram's direction, the 伏位 of that gua."""
    return EIGHT_MANSIONS[number][AUSPICIOUS.index("伏位")]


@dataclass(frozen=True)
class HouseMatch:
    gua: LifeGua
    house: int
    sitting: str

    @property
    def house_group(self) -> str:
        return "east" if self.house in EAST_GROUP else "west"

    @property
    def matches(self) -> bool:
        return self.house_group == self.gua.group

    def to_dict(self):
        return {
            "gua": self.gua.number,
            "group": self.gua.group,
            "house": GUA_NAMES[self.house][0] + "宅",
            "sitting": self.sitting,
            "house_group": self.house_group,
            "matches": self.matches,
            # where the sitting direction falls among the person's eight directions
            "sitting_quality": {v: k for k, v in self.gua.directions().items()}[self.sitting],
        }


def house_match(gua: LifeGua, sitting: str) -> HouseMatch:
    """Match a life gua against a house by the house's sitting direction."""
    by_direction = {sitting_direction(n): n for n in GUA_NAMES}
    key = str(sitting).upper()
    if key not in by_direction:
        raise InvalidInput("sitting", f"expected one of {sorted(by_direction)}, got {sitting!r}")
    return HouseMatch(gua, by_direction[key], key)


def life_gua(year: int, gender: str) -> LifeGua:
    """
    Compute the life gua for a solar (Start of Spring) year.

    Men count down from 2000, women up from 1904; a result of 5 borrows
    Kun (2) for men and Gen (8) for women.
    """
    g = str(gender).lower()[:1]
    if g == "m":
        number = (2000 - year) % 9 or 9
        if number == 5:
            number = 2
    elif g == "f":
        number = (year - 1904) % 9 or 9
        if number == 5:
            number = 8
    else:
        raise InvalidInput("gender", f"expected 'm' or 'f', got {gender!r}")
    name, element = GUA_NAMES[number]
    return LifeGua(year, g, number, name, element)
