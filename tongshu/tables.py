"""
Constant tables shared by every chart engine.

Stems, branches, the five-element cycles, ten gods, na-yin, twelve stages,
branch relations and the shen-sha lookup tables. Everything here is built
once at import time and is immutable afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from tongshu.errors import TableLookupMiss


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"


ELEMENT_BY_CHINESE = MappingProxyType({
    "木": Element.WOOD,
    "火": Element.FIRE,
    "土": Element.EARTH,
    "金": Element.METAL,
    "水": Element.WATER,
})
CHINESE_BY_ELEMENT = MappingProxyType({v: k for k, v in ELEMENT_BY_CHINESE.items()})


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple  # pinyin names of hidden stems (main_qi, middle_qi, residual_qi)

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("Gui",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("Ji", "Gui", "Xin")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("Jia", "Bing", "Wu")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("Yi",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("Wu", "Yi", "Gui")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("Bing", "Wu", "Geng")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("Ding", "Ji")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("Ji", "Ding", "Yi")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("Geng", "Ren", "Wu")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("Xin",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("Wu", "Xin", "Ding")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("Ren", "Jia")),
)

# Lookup helpers
STEM_BY_PINYIN = MappingProxyType({s.pinyin: s for s in HEAVENLY_STEMS})
STEM_BY_CHINESE = MappingProxyType({s.chinese: s for s in HEAVENLY_STEMS})
BRANCH_BY_PINYIN = MappingProxyType({b.pinyin: b for b in EARTHLY_BRANCHES})
BRANCH_BY_CHINESE = MappingProxyType({b.chinese: b for b in EARTHLY_BRANCHES})


def stem(key) -> HeavenlyStem:
    """Resolve a stem from its index, Chinese character or pinyin."""
    if isinstance(key, int):
        return HEAVENLY_STEMS[key % 10]
    found = STEM_BY_CHINESE.get(key) or STEM_BY_PINYIN.get(key)
    if found is None:
        raise TableLookupMiss("heavenly stems", key)
    return found


def branch(key) -> EarthlyBranch:
    """Resolve a branch from its index, Chinese character or pinyin."""
    if isinstance(key, int):
        return EARTHLY_BRANCHES[key % 12]
    found = BRANCH_BY_CHINESE.get(key) or BRANCH_BY_PINYIN.get(key)
    if found is None:
        raise TableLookupMiss("earthly branches", key)
    return found


# ============================================================
# FIVE ELEMENT CYCLES
# ============================================================

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = MappingProxyType({
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
})

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = MappingProxyType({
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
})


def element_relationship(self_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from the first element's perspective."""
    if self_element == other_element:
        return "same"
    elif PRODUCTION_CYCLE[other_element] == self_element:
        return "produces_me"
    elif PRODUCTION_CYCLE[self_element] == other_element:
        return "i_produce"
    elif CONTROL_CYCLE[self_element] == other_element:
        return "i_control"
    elif CONTROL_CYCLE[other_element] == self_element:
        return "controls_me"
    raise TableLookupMiss("five element cycles", (self_element, other_element))


# ============================================================
# TEN GODS (十神)
# ============================================================

@dataclass(frozen=True)
class TenGod:
    chinese: str
    pinyin: str
    english: str

    def __str__(self):
        return f"{self.english} ({self.chinese} {self.pinyin})"


TEN_GODS = MappingProxyType({
    # (relationship, same_polarity): god
    ("same", True): TenGod("比肩", "Bi Jian", "Companion"),
    ("same", False): TenGod("劫财", "Jie Cai", "Rob Wealth"),
    ("produces_me", True): TenGod("偏印", "Pian Yin", "Indirect Resource"),
    ("produces_me", False): TenGod("正印", "Zheng Yin", "Direct Resource"),
    ("i_produce", True): TenGod("食神", "Shi Shen", "Eating God"),
    ("i_produce", False): TenGod("伤官", "Shang Guan", "Hurting Officer"),
    ("i_control", True): TenGod("偏财", "Pian Cai", "Indirect Wealth"),
    ("i_control", False): TenGod("正财", "Zheng Cai", "Direct Wealth"),
    ("controls_me", True): TenGod("七杀", "Qi Sha", "Seven Killings"),
    ("controls_me", False): TenGod("正官", "Zheng Guan", "Direct Officer"),
})


def _build_ten_god_table() -> tuple:
    rows = []
    for day_master in HEAVENLY_STEMS:
        row = []
        for other in HEAVENLY_STEMS:
            relationship = element_relationship(day_master.element, other.element)
            row.append(TEN_GODS[(relationship, day_master.polarity == other.polarity)])
        rows.append(tuple(row))
    return tuple(rows)


# TEN_GOD_TABLE[day_stem][other_stem]
TEN_GOD_TABLE = _build_ten_god_table()


# ============================================================
# NA-YIN (纳音)
# ============================================================

# One name per consecutive pair of the sexagenary cycle; the last
# character is the element.
NAYIN = (
    "海中金", "炉中火", "大林木", "路旁土", "剑锋金", "山头火",
    "涧下水", "城头土", "白蜡金", "杨柳木", "泉中水", "屋上土",
    "霹雳火", "松柏木", "长流水", "砂中金", "山下火", "平地木",
    "壁上土", "金箔金", "覆灯火", "天河水", "大驿土", "钗钏金",
    "桑柘木", "大溪水", "沙中土", "天上火", "石榴木", "大海水",
)


def nayin_element(cycle_index: int) -> Element:
    return ELEMENT_BY_CHINESE[NAYIN[(cycle_index % 60) // 2][-1]]


# ============================================================
# TWELVE STAGES OF LIFE (十二长生)
# ============================================================

TWELVE_STAGES = (
    ("长生", "Growth"),
    ("沐浴", "Bath"),
    ("冠带", "Crown Belt"),
    ("临官", "Coming of Age"),
    ("帝旺", "Prosperous"),
    ("衰", "Weakening"),
    ("病", "Sickness"),
    ("死", "Death"),
    ("墓", "Grave"),
    ("绝", "Extinction"),
    ("胎", "Conceived"),
    ("养", "Nurturing"),
)

# Branch where each stem begins its Growth stage. Yang stems advance
# through the branches clockwise, yin stems counter-clockwise.
GROWTH_BRANCH = (11, 6, 2, 9, 2, 9, 5, 0, 8, 3)


def twelve_stage(stem_index: int, branch_index: int) -> int:
    """Index into TWELVE_STAGES for a stem standing on a branch."""
    start = GROWTH_BRANCH[stem_index]
    if stem_index % 2 == 0:
        return (branch_index - start) % 12
    return (start - branch_index) % 12


# ============================================================
# BRANCH RELATIONS
# ============================================================

def _symmetric(pairs) -> frozenset:
    return frozenset(frozenset(p) for p in pairs)


# Six Combinations (六合), with the element produced if the pair transforms
SIX_COMBINATIONS = MappingProxyType({
    frozenset((0, 1)): Element.EARTH,    # Zi-Chou
    frozenset((2, 11)): Element.WOOD,    # Yin-Hai
    frozenset((3, 10)): Element.FIRE,    # Mao-Xu
    frozenset((4, 9)): Element.METAL,    # Chen-You
    frozenset((5, 8)): Element.WATER,    # Si-Shen
    frozenset((6, 7)): Element.FIRE,     # Wu-Wei
})

# Six Clashes (六冲): branches six apart
SIX_CLASHES = _symmetric((i, i + 6) for i in range(6))

# Six Harms (六害)
SIX_HARMS = _symmetric([(0, 7), (1, 6), (2, 5), (3, 4), (8, 11), (9, 10)])

# Breaks (相破)
BREAKS = _symmetric([(0, 9), (1, 4), (2, 11), (3, 6), (5, 8), (7, 10)])

# Punishments (刑). A frozenset of one element is a self-punishment and
# only fires when the same branch appears twice.
PUNISHMENTS = _symmetric([
    (2, 5), (5, 8), (8, 2),      # Yin-Si-Shen, ungrateful
    (1, 10), (10, 7), (7, 1),    # Chou-Xu-Wei, uncivilized
    (0, 3),                      # Zi-Mao, rude
    (4, 4), (6, 6), (9, 9), (11, 11),  # self
])

RELATION_TABLES = (
    ("combination", "六合", frozenset(SIX_COMBINATIONS)),
    ("clash", "六冲", SIX_CLASHES),
    ("punishment", "刑", PUNISHMENTS),
    ("harm", "六害", SIX_HARMS),
    ("break", "相破", BREAKS),
)

# Three Harmony (三合) frames
THREE_HARMONY = MappingProxyType({
    (8, 0, 4): Element.WATER,     # Shen-Zi-Chen
    (11, 3, 7): Element.WOOD,     # Hai-Mao-Wei
    (2, 6, 10): Element.FIRE,     # Yin-Wu-Xu
    (5, 9, 1): Element.METAL,     # Si-You-Chou
})


def harmony_frame(branch_index: int) -> tuple:
    """The three-harmony frame a branch belongs to."""
    for frame in THREE_HARMONY:
        if branch_index in frame:
            return frame
    raise TableLookupMiss("three harmony frames", branch_index)


# ============================================================
# SHEN SHA (神煞) TABLES
# ============================================================

# Keyed by day stem index → target branch indices
NOBLEMAN = (
    (1, 7), (0, 8), (11, 9), (11, 9), (1, 7),
    (0, 8), (1, 7), (2, 6), (3, 5), (3, 5),
)
ACADEMIC = (5, 6, 8, 9, 8, 9, 11, 0, 2, 3)
YANG_BLADE = (3, 2, 6, 5, 6, 5, 9, 8, 0, 11)
PROSPERITY = (2, 3, 5, 6, 5, 6, 8, 9, 11, 0)

# Keyed by the middle branch of the year branch's three-harmony frame
TRAVELLING_HORSE = MappingProxyType({0: 2, 6: 8, 9: 11, 3: 5})
PEACH_BLOSSOM = MappingProxyType({0: 9, 6: 3, 9: 6, 3: 0})
CANOPY = MappingProxyType({0: 4, 6: 10, 9: 1, 3: 7})
