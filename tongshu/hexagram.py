"""
Six-line hexagram (六爻) casting and lookup.

Handles:
- Three-coin casting with an injectable random source
- King Wen number and name from the upper and lower trigrams
- Eight palace (八宫) membership, generation, world (世) and response (应) lines
- Na-jia (纳甲) stems and branches per line
- Six relatives (六亲) against the palace element
- Six spirits (六神) from the day stem
- The changed hexagram (变卦) from the moving lines
- A trend judgement from the lowest moving line
"""

import random
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional

from tongshu.errors import InvalidInput
from tongshu.tables import (
    ELEMENT_BY_CHINESE,
    element_relationship,
    branch,
    stem,
)


# ============================================================
# TRIGRAMS
# ============================================================

@dataclass(frozen=True)
class Trigram:
    name: str
    pinyin: str
    image: str  # natural image used in full hexagram names
    element: str
    bits: tuple  # bottom to top, 1 = yang

    def complement(self) -> "Trigram":
        return TRIGRAM_BY_BITS[tuple(1 - b for b in self.bits)]


TRIGRAMS = (
    Trigram("乾", "Qian", "天", "金", (1, 1, 1)),
    Trigram("兑", "Dui", "泽", "金", (1, 1, 0)),
    Trigram("离", "Li", "火", "火", (1, 0, 1)),
    Trigram("震", "Zhen", "雷", "木", (1, 0, 0)),
    Trigram("巽", "Xun", "风", "木", (0, 1, 1)),
    Trigram("坎", "Kan", "水", "水", (0, 1, 0)),
    Trigram("艮", "Gen", "山", "土", (0, 0, 1)),
    Trigram("坤", "Kun", "地", "土", (0, 0, 0)),
)
TRIGRAM_BY_BITS = MappingProxyType({t.bits: t for t in TRIGRAMS})

# Row = lower trigram, column = upper trigram, both in this order
KING_WEN_ORDER = ("乾", "震", "坎", "艮", "坤", "巽", "离", "兑")
KING_WEN = (
    (1, 34, 5, 26, 11, 9, 14, 43),
    (25, 51, 3, 27, 24, 42, 21, 17),
    (6, 40, 29, 4, 7, 59, 64, 47),
    (33, 62, 39, 52, 15, 53, 56, 31),
    (12, 16, 8, 23, 2, 20, 35, 45),
    (44, 32, 48, 18, 46, 57, 50, 28),
    (13, 55, 63, 22, 36, 37, 30, 49),
    (10, 54, 60, 41, 19, 61, 38, 58),
)

# Short names in King Wen order
HEXAGRAM_NAMES = (
    ("乾", "Qian"), ("坤", "Kun"), ("屯", "Zhun"), ("蒙", "Meng"),
    ("需", "Xu"), ("讼", "Song"), ("师", "Shi"), ("比", "Bi"),
    ("小畜", "Xiao Xu"), ("履", "Lu"), ("泰", "Tai"), ("否", "Pi"),
    ("同人", "Tong Ren"), ("大有", "Da You"), ("谦", "Qian"), ("豫", "Yu"),
    ("随", "Sui"), ("蛊", "Gu"), ("临", "Lin"), ("观", "Guan"),
    ("噬嗑", "Shi He"), ("贲", "Bi"), ("剥", "Bo"), ("复", "Fu"),
    ("无妄", "Wu Wang"), ("大畜", "Da Xu"), ("颐", "Yi"), ("大过", "Da Guo"),
    ("坎", "Kan"), ("离", "Li"), ("咸", "Xian"), ("恒", "Heng"),
    ("遯", "Dun"), ("大壮", "Da Zhuang"), ("晋", "Jin"), ("明夷", "Ming Yi"),
    ("家人", "Jia Ren"), ("睽", "Kui"), ("蹇", "Jian"), ("解", "Xie"),
    ("损", "Sun"), ("益", "Yi"), ("夬", "Guai"), ("姤", "Gou"),
    ("萃", "Cui"), ("升", "Sheng"), ("困", "Kun"), ("井", "Jing"),
    ("革", "Ge"), ("鼎", "Ding"), ("震", "Zhen"), ("艮", "Gen"),
    ("渐", "Jian"), ("归妹", "Gui Mei"), ("丰", "Feng"), ("旅", "Lu"),
    ("巽", "Xun"), ("兑", "Dui"), ("涣", "Huan"), ("节", "Jie"),
    ("中孚", "Zhong Fu"), ("小过", "Xiao Guo"), ("既济", "Ji Ji"), ("未济", "Wei Ji"),
)


# ============================================================
# NA-JIA, RELATIVES, SPIRITS
# ============================================================

# trigram → (inner stem, inner branches, outer stem, outer branches)
NAJIA = MappingProxyType({
    "乾": ("甲", "子寅辰", "壬", "午申戌"),
    "坎": ("戊", "寅辰午", "戊", "申戌子"),
    "艮": ("丙", "辰午申", "丙", "戌子寅"),
    "震": ("庚", "子寅辰", "庚", "午申戌"),
    "巽": ("辛", "丑亥酉", "辛", "未巳卯"),
    "离": ("己", "卯丑亥", "己", "酉未巳"),
    "坤": ("乙", "未巳卯", "癸", "丑亥酉"),
    "兑": ("丁", "巳卯丑", "丁", "亥酉未"),
})

SIX_RELATIVES = MappingProxyType({
    "same": "兄弟",
    "i_produce": "子孙",
    "produces_me": "父母",
    "i_control": "妻财",
    "controls_me": "官鬼",
})

SIX_SPIRITS = ("青龙", "朱雀", "勾陈", "螣蛇", "白虎", "玄武")
# Day stem index → spirit on the first line
SPIRIT_START = (0, 0, 1, 1, 2, 3, 4, 4, 5, 5)

GENERATIONS = MappingProxyType({
    # (heaven same, man same, earth same): (world line, generation, palace rule)
    (True, True, True): (6, "本宫", "upper"),
    (True, False, False): (2, "二世", "upper"),
    (False, True, True): (5, "五世", "complement"),
    (False, False, True): (4, "四世", "complement"),
    (True, True, False): (1, "一世", "upper"),
    (False, False, False): (3, "三世", "upper"),
    (False, True, False): (4, "游魂", "complement"),
    (True, False, True): (3, "归魂", "lower"),
})

USE_GODS = MappingProxyType({
    "事业": "官鬼",
    "财运": "妻财",
    "婚姻": "妻财",
    "学业": "父母",
    "健康": "官鬼",
    "出行": "父母",
    "求职": "官鬼",
    "诉讼": "官鬼",
    "其他": "妻财",
})
DEFAULT_USE_GOD = "妻财"

JUDGEMENTS = MappingProxyType({
    "static": "平",
    "advancing": "吉",
    "retreating": "凶",
})

LINE_TYPES = MappingProxyType({
    6: ("老阴", False, True),
    7: ("少阳", True, False),
    8: ("少阴", False, False),
    9: ("老阳", True, True),
})


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class Hexagram:
    number: int
    name: str
    pinyin: str
    full_name: str
    upper: Trigram
    lower: Trigram
    palace: Trigram
    generation: str
    world_line: int
    response_line: int

    @property
    def bits(self) -> tuple:
        return self.lower.bits + self.upper.bits

    def najia(self, position: int) -> tuple:
        """(stem, branch) of line `position` (1-6, bottom up)."""
        if position <= 3:
            s, branches, _, _ = NAJIA[self.lower.name]
            return stem(s), branch(branches[position - 1])
        _, _, s, branches = NAJIA[self.upper.name]
        return stem(s), branch(branches[position - 4])

    def to_dict(self):
        return {
            "number": self.number,
            "name": self.name,
            "pinyin": self.pinyin,
            "full_name": self.full_name,
            "upper": self.upper.name,
            "lower": self.lower.name,
            "palace": self.palace.name,
            "palace_element": self.palace.element,
            "generation": self.generation,
            "world_line": self.world_line,
            "response_line": self.response_line,
        }


@dataclass(frozen=True)
class Line:
    position: int  # 1-6, bottom up
    value: int  # 6, 7, 8 or 9
    stem: str
    branch: str
    relative: str
    spirit: Optional[str]
    changes_to: Optional[str] = None  # branch and relative of the changed line

    @property
    def kind(self) -> str:
        return LINE_TYPES[self.value][0]

    @property
    def yang(self) -> bool:
        return LINE_TYPES[self.value][1]

    @property
    def moving(self) -> bool:
        return LINE_TYPES[self.value][2]

    def to_dict(self):
        return {
            "position": self.position,
            "value": self.value,
            "kind": self.kind,
            "yang": self.yang,
            "moving": self.moving,
            "stem": self.stem,
            "branch": self.branch,
            "branch_element": branch(self.branch).element.value,
            "relative": self.relative,
            "spirit": self.spirit,
            "changes_to": self.changes_to,
        }


@dataclass(frozen=True)
class Judgement:
    """Trend read from the lowest moving line: old yang advances, old yin retreats."""
    first_moving: Optional[int]
    kind: Optional[str]

    @property
    def trend(self) -> str:
        if self.first_moving is None:
            return "static"
        return "advancing" if self.kind == "老阳" else "retreating"

    @property
    def verdict(self) -> str:
        return JUDGEMENTS[self.trend]

    def to_dict(self):
        return {
            "first_moving_line": self.first_moving,
            "kind": self.kind,
            "trend": self.trend,
            "verdict": self.verdict,
        }


@dataclass(frozen=True)
class Reading:
    lines: tuple
    primary: Hexagram
    changed: Optional[Hexagram]
    question: Optional[str]
    use_god: str
    day_stem: Optional[str]

    @property
    def moving_lines(self) -> tuple:
        return tuple(line.position for line in self.lines if line.moving)

    def use_god_lines(self) -> tuple:
        return tuple(line.position for line in self.lines if line.relative == self.use_god)

    def judgement(self) -> Judgement:
        first = next((line for line in self.lines if line.moving), None)
        if first is None:
            return Judgement(None, None)
        return Judgement(first.position, first.kind)

    def to_dict(self):
        return {
            "question": self.question,
            "day_stem": self.day_stem,
            "primary": self.primary.to_dict(),
            "changed": self.changed.to_dict() if self.changed else None,
            "moving_lines": list(self.moving_lines),
            "use_god": self.use_god,
            "use_god_lines": list(self.use_god_lines()),
            "judgement": self.judgement().to_dict(),
            "lines": [line.to_dict() for line in self.lines],
        }


# ============================================================
# LOOKUP
# ============================================================

def hexagram_from_bits(bits) -> Hexagram:
    """
    Identify a hexagram from six yin/yang bits, bottom line first.

    The palace and world line come from comparing the heaven (3, 6),
    man (2, 5) and earth (1, 4) line pairs of the two trigrams.
    """
    bits = tuple(int(b) for b in bits)
    if len(bits) != 6 or any(b not in (0, 1) for b in bits):
        raise InvalidInput("lines", f"expected six 0/1 values, got {bits!r}")

    lower = TRIGRAM_BY_BITS[bits[:3]]
    upper = TRIGRAM_BY_BITS[bits[3:]]
    number = KING_WEN[KING_WEN_ORDER.index(lower.name)][KING_WEN_ORDER.index(upper.name)]
    name, pinyin = HEXAGRAM_NAMES[number - 1]
    if upper == lower:
        full_name = f"{upper.name}为{upper.image}"
    else:
        full_name = f"{upper.image}{lower.image}{name}"

    key = (bits[2] == bits[5], bits[1] == bits[4], bits[0] == bits[3])
    world, generation, rule = GENERATIONS[key]
    if rule == "upper":
        palace = upper
    elif rule == "lower":
        palace = lower
    else:
        palace = lower.complement()

    return Hexagram(
        number=number,
        name=name,
        pinyin=pinyin,
        full_name=full_name,
        upper=upper,
        lower=lower,
        palace=palace,
        generation=generation,
        world_line=world,
        response_line=(world + 2) % 6 + 1,
    )


def relative_for(palace: Trigram, branch_chinese: str) -> str:
    """Six relative of a line branch seen from the palace element."""
    palace_element = ELEMENT_BY_CHINESE[palace.element]
    line_element = branch(branch_chinese).element
    return SIX_RELATIVES[element_relationship(palace_element, line_element)]


def use_god(question: Optional[str]) -> str:
    return USE_GODS.get(question, DEFAULT_USE_GOD)


def hexagram_from_lines(lines, day_stem: Optional[str] = None,
                        question: Optional[str] = None) -> Reading:
    """
    Build a reading from six cast line values (6-9), bottom line first.

    Args:
        lines: six values; 6 and 9 are moving lines
        day_stem: Chinese day stem of the casting day, for the six spirits
        question: question category, for the use god

    Returns:
        Reading with the primary and changed hexagrams and per-line detail
    """
    lines = tuple(lines)
    if len(lines) != 6 or any(v not in LINE_TYPES for v in lines):
        raise InvalidInput("lines", f"expected six values from 6-9, got {lines!r}")

    yang = [LINE_TYPES[v][1] for v in lines]
    moving = [LINE_TYPES[v][2] for v in lines]
    primary = hexagram_from_bits(int(y) for y in yang)
    changed = None
    if any(moving):
        # Moving lines flip: old yang becomes yin, old yin becomes yang
        changed = hexagram_from_bits(int(y != m) for y, m in zip(yang, moving))

    spirit_start = None
    if day_stem is not None:
        spirit_start = SPIRIT_START[stem(day_stem).index]

    result = []
    for i, value in enumerate(lines):
        position = i + 1
        s, b = primary.najia(position)
        changes_to = None
        if LINE_TYPES[value][2]:
            _, cb = changed.najia(position)
            changes_to = f"{cb.chinese}{relative_for(primary.palace, cb.chinese)}"
        result.append(Line(
            position=position,
            value=value,
            stem=s.chinese,
            branch=b.chinese,
            relative=relative_for(primary.palace, b.chinese),
            spirit=SIX_SPIRITS[(spirit_start + i) % 6] if spirit_start is not None else None,
            changes_to=changes_to,
        ))

    return Reading(
        lines=tuple(result),
        primary=primary,
        changed=changed,
        question=question,
        use_god=use_god(question),
        day_stem=stem(day_stem).chinese if day_stem is not None else None,
    )


# ============================================================
# CASTING
# ============================================================

def cast_line(rng: random.Random) -> int:
    """Toss three coins: heads count 3, tails 2."""
    return sum(3 if rng.random() < 0.5 else 2 for _ in range(3))


def cast_hexagram(rng: Optional[random.Random] = None, day_stem: Optional[str] = None,
                  question: Optional[str] = None) -> Reading:
    """Cast six lines bottom to top and read the hexagram."""
    rng = rng or random.Random()
    return hexagram_from_lines([cast_line(rng) for _ in range(6)],
                               day_stem=day_stem, question=question)
