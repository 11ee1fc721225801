"""Tests for six-line hexagram casting and lookup."""

import itertools
import random
from collections import Counter

import pytest

from tongshu.errors import InvalidInput
from tongshu.hexagram import (
    DEFAULT_USE_GOD,
    HEXAGRAM_NAMES,
    TRIGRAMS,
    cast_hexagram,
    cast_line,
    hexagram_from_bits,
    hexagram_from_lines,
    use_god,
)

ALL_BITS = list(itertools.product((0, 1), repeat=6))


class TestLookup:
    def test_all_sixty_four_distinct(self):
        numbers = [hexagram_from_bits(bits).number for bits in ALL_BITS]
        assert sorted(numbers) == list(range(1, 65))

    @pytest.mark.parametrize("bits, number, full_name", [
        ((1, 1, 1, 1, 1, 1), 1, "乾为天"),
        ((0, 0, 0, 0, 0, 0), 2, "坤为地"),
        ((1, 0, 0, 0, 1, 0), 3, "水雷屯"),
        ((1, 1, 1, 0, 0, 0), 11, "地天泰"),
        ((0, 0, 0, 1, 1, 1), 12, "天地否"),
        ((0, 1, 1, 1, 1, 1), 44, "天风姤"),
        ((1, 0, 1, 0, 1, 0), 63, "水火既济"),
    ])
    def test_king_wen(self, bits, number, full_name):
        hexagram = hexagram_from_bits(bits)
        assert hexagram.number == number
        assert hexagram.full_name == full_name
        assert hexagram.name == HEXAGRAM_NAMES[number - 1][0]

    @pytest.mark.parametrize("bits, palace, generation, world", [
        ((1, 1, 1, 1, 1, 1), "乾", "本宫", 6),
        ((0, 1, 1, 1, 1, 1), "乾", "一世", 1),
        ((0, 0, 1, 1, 1, 1), "乾", "二世", 2),
        ((0, 0, 0, 1, 1, 1), "乾", "三世", 3),
        ((0, 0, 0, 0, 1, 1), "乾", "四世", 4),
        ((0, 0, 0, 0, 0, 1), "乾", "五世", 5),
        ((0, 0, 0, 1, 0, 1), "乾", "游魂", 4),
        ((1, 1, 1, 1, 0, 1), "乾", "归魂", 3),
        ((1, 0, 0, 0, 1, 0), "坎", "二世", 2),
        ((1, 1, 1, 0, 0, 0), "坤", "三世", 3),
    ])
    def test_palace_and_world(self, bits, palace, generation, world):
        hexagram = hexagram_from_bits(bits)
        assert hexagram.palace.name == palace
        assert hexagram.generation == generation
        assert hexagram.world_line == world
        assert abs(hexagram.world_line - hexagram.response_line) == 3

    def test_each_palace_holds_eight_generations(self):
        by_palace = {}
        for bits in ALL_BITS:
            hexagram = hexagram_from_bits(bits)
            by_palace.setdefault(hexagram.palace.name, []).append(hexagram.generation)
        assert set(by_palace) == {t.name for t in TRIGRAMS}
        for generations in by_palace.values():
            assert len(set(generations)) == 8

    def test_pure_hexagram_heads_its_palace(self):
        for trigram in TRIGRAMS:
            hexagram = hexagram_from_bits(trigram.bits + trigram.bits)
            assert hexagram.palace == trigram
            assert hexagram.generation == "本宫"

    @pytest.mark.parametrize("bits", [(1, 1, 1), (1, 1, 1, 1, 1, 2)])
    def test_bad_bits(self, bits):
        with pytest.raises(InvalidInput):
            hexagram_from_bits(bits)


class TestReading:
    def test_najia_and_relatives_of_qian(self):
        reading = hexagram_from_lines([7] * 6)
        assert "".join(line.branch for line in reading.lines) == "子寅辰午申戌"
        assert [line.relative for line in reading.lines] == [
            "子孙", "妻财", "父母", "官鬼", "兄弟", "父母",
        ]
        assert [line.stem for line in reading.lines] == ["甲"] * 3 + ["壬"] * 3
        assert reading.changed is None
        assert reading.moving_lines == ()

    def test_najia_of_kun(self):
        reading = hexagram_from_lines([8] * 6)
        assert "".join(line.branch for line in reading.lines) == "未巳卯丑亥酉"

    def test_moving_line_changes_hexagram(self):
        reading = hexagram_from_lines([9, 7, 7, 7, 7, 7])
        assert reading.primary.number == 1
        assert reading.changed.number == 44
        assert reading.moving_lines == (1,)
        assert reading.lines[0].kind == "老阳"
        assert reading.lines[0].changes_to == "丑父母"
        assert reading.lines[1].changes_to is None

    def test_old_yin_becomes_yang(self):
        reading = hexagram_from_lines([6, 8, 8, 8, 8, 8])
        assert reading.primary.number == 2
        assert reading.changed.number == 24  # 复

    @pytest.mark.parametrize("day_stem, first, last", [
        ("甲", "青龙", "玄武"),
        ("丙", "朱雀", "青龙"),
        ("戊", "勾陈", "朱雀"),
        ("己", "螣蛇", "勾陈"),
        ("庚", "白虎", "螣蛇"),
        ("癸", "玄武", "白虎"),
    ])
    def test_six_spirits(self, day_stem, first, last):
        reading = hexagram_from_lines([7] * 6, day_stem=day_stem)
        assert reading.lines[0].spirit == first
        assert reading.lines[5].spirit == last
        assert len({line.spirit for line in reading.lines}) == 6

    def test_no_spirits_without_day_stem(self):
        reading = hexagram_from_lines([7] * 6)
        assert all(line.spirit is None for line in reading.lines)

    def test_use_god_lines(self):
        reading = hexagram_from_lines([7] * 6, question="财运")
        assert reading.use_god == "妻财"
        assert reading.use_god_lines() == (2,)

    def test_use_god_default(self):
        assert use_god(None) == DEFAULT_USE_GOD
        assert use_god("事业") == "官鬼"

    def test_to_dict(self):
        result = hexagram_from_lines([9, 7, 7, 7, 7, 7], day_stem="甲", question="事业").to_dict()
        assert result["primary"]["full_name"] == "乾为天"
        assert result["changed"]["full_name"] == "天风姤"
        assert result["moving_lines"] == [1]
        assert result["lines"][0]["branch_element"] == "water"
        assert result["judgement"] == {
            "first_moving_line": 1, "kind": "老阳", "trend": "advancing", "verdict": "吉",
        }

    @pytest.mark.parametrize("lines, first, trend, verdict", [
        ([7, 8, 7, 8, 7, 8], None, "static", "平"),
        ([8, 9, 7, 7, 7, 7], 2, "advancing", "吉"),
        ([7, 7, 6, 7, 7, 7], 3, "retreating", "凶"),
        # The lowest moving line decides
        ([7, 6, 7, 9, 7, 7], 2, "retreating", "凶"),
    ], ids=["static", "old-yang", "old-yin", "lowest-wins"])
    def test_judgement(self, lines, first, trend, verdict):
        judgement = hexagram_from_lines(lines).judgement()
        assert judgement.first_moving == first
        assert judgement.trend == trend
        assert judgement.verdict == verdict

    @pytest.mark.parametrize("lines", [[7] * 5, [7, 7, 7, 7, 7, 5]])
    def test_bad_lines(self, lines):
        with pytest.raises(InvalidInput):
            hexagram_from_lines(lines)


class TestCasting:
    def test_seeded_cast_is_reproducible(self):
        a = cast_hexagram(random.Random(42))
        b = cast_hexagram(random.Random(42))
        assert [line.value for line in a.lines] == [line.value for line in b.lines]

    def test_line_distribution(self):
        rng = random.Random(7)
        counts = Counter(cast_line(rng) for _ in range(16000))
        assert set(counts) == {6, 7, 8, 9}
        assert counts[6] / 16000 == pytest.approx(1 / 8, abs=0.02)
        assert counts[7] / 16000 == pytest.approx(3 / 8, abs=0.02)
