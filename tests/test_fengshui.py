"""Tests for flying stars and the life gua."""

import pytest

from tongshu.errors import InvalidInput
from tongshu.fengshui import (
    AUSPICIOUS,
    EAST_GROUP,
    EIGHT_MANSIONS,
    FLYING_STARS,
    annual_flying_stars,
    annual_star,
    fly_stars,
    flying_stars,
    house_match,
    life_gua,
    period_star,
    sitting_direction,
)

TRIGRAM_DIRECTION = {1: "N", 2: "SW", 3: "E", 4: "SE", 6: "NW", 7: "W", 8: "NE", 9: "S"}


class TestCenterStars:
    @pytest.mark.parametrize("year, star", [
        (1864, 1), (1984, 7), (2003, 7), (2004, 8), (2023, 8), (2024, 9), (2043, 9), (2044, 1),
    ])
    def test_period_star(self, year, star):
        assert period_star(year) == star

    @pytest.mark.parametrize("year, star", [(2000, 9), (2017, 1), (2024, 3), (2025, 2), (2026, 1), (2027, 9)])
    def test_annual_star(self, year, star):
        assert annual_star(year) == star

    def test_annual_star_steps_back_each_year(self):
        for year in range(1900, 2100):
            assert annual_star(year + 1) == (annual_star(year) - 2) % 9 + 1


class TestGrid:
    def test_luo_shu(self):
        assert fly_stars(5).rows() == [[4, 9, 2], [3, 5, 7], [8, 1, 6]]

    def test_period_nine(self):
        grid = flying_stars(2024)
        assert grid.center == 9
        assert grid.rows() == [[8, 4, 6], [7, 9, 2], [3, 5, 1]]
        assert grid.star_at("坎") == 5

    @pytest.mark.parametrize("center", range(1, 10))
    def test_every_star_once(self, center):
        grid = fly_stars(center)
        assert sorted(n for row in grid.rows() for n in row) == list(range(1, 10))
        assert grid.star_at("中") == center

    def test_annual_grid(self):
        assert annual_flying_stars(2025).center == 2

    def test_to_dict(self):
        result = flying_stars(2024).to_dict()
        assert result["center_star"] == 9
        assert len(result["palaces"]) == 9
        center = result["palaces"][0]
        assert center["palace"] == "中"
        assert center["name"] == "九紫右弼"

    def test_star_metadata(self):
        assert FLYING_STARS[8].auspicious
        assert not FLYING_STARS[5].auspicious

    @pytest.mark.parametrize("center", [0, 10])
    def test_bad_center(self, center):
        with pytest.raises(InvalidInput):
            fly_stars(center)

    def test_unknown_palace(self):
        with pytest.raises(InvalidInput):
            fly_stars(5).star_at("X")


class TestLifeGua:
    @pytest.mark.parametrize("year, gender, number", [
        (1990, "m", 1), (1990, "f", 8), (2000, "m", 9), (1985, "m", 6),
        (1986, "m", 2), (1986, "f", 1), (1904, "f", 9), (1977, "f", 1),
    ])
    def test_number(self, year, gender, number):
        assert life_gua(year, gender).number == number

    def test_never_five(self):
        for year in range(1900, 2101):
            assert life_gua(year, "m").number != 5
            assert life_gua(year, "f").number != 5

    def test_group_and_directions(self):
        gua = life_gua(1990, "m")
        assert gua.name == "坎"
        assert gua.group == "east"
        dirs = gua.directions()
        assert dirs["生气"] == "SE"
        assert dirs["绝命"] == "SW"

    @pytest.mark.parametrize("number", sorted(EIGHT_MANSIONS))
    def test_mansions_cover_compass(self, number):
        dirs = EIGHT_MANSIONS[number]
        assert len(set(dirs)) == 8
        assert dirs[AUSPICIOUS.index("伏位")] == TRIGRAM_DIRECTION[number]

    @pytest.mark.parametrize("number", sorted(EIGHT_MANSIONS))
    def test_auspicious_directions_stay_in_group(self, number):
        east_directions = {TRIGRAM_DIRECTION[n] for n in EAST_GROUP}
        auspicious = set(EIGHT_MANSIONS[number][:4])
        assert (auspicious == east_directions) is (number in EAST_GROUP)

    def test_to_dict(self):
        result = life_gua(1990, "f").to_dict()
        assert result["name"] == "艮卦"
        assert result["group"] == "west"
        assert set(result["auspicious"]) == set(AUSPICIOUS)

    def test_bad_gender(self):
        with pytest.raises(InvalidInput):
            life_gua(1990, "x")


class TestHouseMatch:
    @pytest.mark.parametrize("number", sorted(EIGHT_MANSIONS))
    def test_sitting_direction_is_trigram_direction(self, number):
        assert sitting_direction(number) == TRIGRAM_DIRECTION[number]

    def test_suitable_houses_share_the_group(self):
        east = life_gua(1990, "m").suitable_houses()
        assert east == [("坎宅", "N"), ("震宅", "E"), ("巽宅", "SE"), ("离宅", "S")]
        west = life_gua(1990, "f").suitable_houses()
        assert [h for h, _ in west] == ["坤宅", "乾宅", "兑宅", "艮宅"]

    def test_matching_house(self):
        match = house_match(life_gua(1990, "m"), "n")
        assert match.house == 1
        assert match.matches is True
        assert match.to_dict()["sitting_quality"] == "伏位"

    def test_mismatched_house(self):
        match = house_match(life_gua(1990, "m"), "W")
        assert match.house_group == "west"
        assert match.matches is False
        assert match.to_dict() == {
            "gua": 1, "group": "east", "house": "兑宅", "sitting": "W",
            "house_group": "west", "matches": False, "sitting_quality": "祸害",
        }

    def test_to_dict_lists_houses(self):
        result = life_gua(1990, "f").to_dict()
        assert {"house": "艮宅", "sitting": "NE"} in result["suitable_houses"]

    def test_unknown_direction(self):
        with pytest.raises(InvalidInput) as exc:
            house_match(life_gua(1990, "m"), "up")
        assert exc.value.field == "sitting"
