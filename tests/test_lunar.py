"""Tests for the lunar calendar converter."""

from datetime import date, timedelta

import pytest

from tongshu.config import reload_settings
from tongshu.errors import InvalidInput, TableLookupMiss
from tongshu.lunar import (
    LunarDate,
    lunar_to_solar,
    lunar_year,
    new_moon,
    moon_sun_elongation,
    solar_to_lunar,
)
from tongshu.solar_terms import angle_diff


class TestNewMoons:
    @pytest.mark.parametrize("lunation", [-1200, -1, 0, 1, 300, 1200])
    def test_elongation_is_zero(self, lunation):
        assert abs(angle_diff(0.0, moon_sun_elongation(new_moon(lunation)))) < 1e-3

    def test_consecutive_lunations_are_a_month_apart(self):
        gap = new_moon(1) - new_moon(0)
        assert 29.2 < gap < 29.9


class TestLunarYear:
    @pytest.mark.parametrize("year, new_year", [
        (1900, date(1900, 1, 31)),
        (1985, date(1985, 2, 20)),
        (1990, date(1990, 1, 27)),
        (2000, date(2000, 2, 5)),
        (2020, date(2020, 1, 25)),
        (2023, date(2023, 1, 22)),
        (2024, date(2024, 2, 10)),
        (2025, date(2025, 1, 29)),
    ])
    def test_new_year(self, year, new_year):
        assert lunar_year(year).new_year == new_year

    @pytest.mark.parametrize("year, leap", [
        (1984, 10), (2012, 4), (2014, 9), (2017, 6), (2020, 4), (2023, 2), (2025, 6), (2024, None),
    ])
    def test_leap_month(self, year, leap):
        assert lunar_year(year).leap_month == leap

    @pytest.mark.parametrize("year", range(1900, 2101, 7))
    def test_month_structure(self, year):
        table = lunar_year(year)
        assert len(table.months) in (12, 13)
        assert all(m.length in (29, 30) for m in table.months)
        if table.leap_month is None:
            assert 353 <= table.days <= 355
        else:
            assert 383 <= table.days <= 385
            assert len(table.months) == 13
        assert [m.number for m in table.months if not m.leap] == list(range(1, 13))
        if year < 2100:
            assert table.new_year + timedelta(days=table.days) == lunar_year(year + 1).new_year

    def test_months_are_contiguous(self):
        months = lunar_year(2023).months
        for a, b in zip(months, months[1:]):
            assert a.end + timedelta(days=1) == b.start

    def test_ganzhi(self):
        assert lunar_year(2024).ganzhi == "甲辰"
        assert lunar_year(1984).ganzhi == "甲子"

    @pytest.mark.parametrize("year", [1899, 2101])
    def test_out_of_range(self, year):
        with pytest.raises(TableLookupMiss):
            lunar_year(year)

    def test_to_dict(self):
        result = lunar_year(2023).to_dict()
        assert result["leap_month"] == 2
        assert result["months"][2]["chinese"] == "闰二月"
        assert result["new_year"] == "2023-01-22"


class TestConversion:
    @pytest.mark.parametrize("d, expected", [
        (date(2024, 2, 10), LunarDate(2024, 1, 1)),
        (date(2024, 2, 9), LunarDate(2023, 12, 30)),
        (date(2025, 1, 28), LunarDate(2024, 12, 29)),
        (date(2023, 9, 29), LunarDate(2023, 8, 15)),
        (date(2023, 3, 22), LunarDate(2023, 2, 1, leap=True)),
        (date(2000, 2, 5), LunarDate(2000, 1, 1)),
    ], ids=["cny-2024", "eve-2024", "eve-2025", "mid-autumn-2023", "leap-2023", "cny-2000"])
    def test_solar_to_lunar(self, d, expected):
        assert solar_to_lunar(d) == expected

    def test_lunar_to_solar(self):
        assert lunar_to_solar(2024, 1, 1) == date(2024, 2, 10)
        assert lunar_to_solar(2023, 2, 1, leap=True) == date(2023, 3, 22)
        assert lunar_to_solar(2023, 2, 1) == date(2023, 2, 20)
        assert lunar_to_solar(2024, 2, 30) == date(2024, 4, 8)

    def test_roundtrip(self):
        d = date(2000, 1, 1)
        while d < date(2031, 1, 1):
            ld = solar_to_lunar(d)
            assert lunar_to_solar(ld.year, ld.month, ld.day, ld.leap) == d
            d += timedelta(days=11)

    def test_day_beyond_short_month(self):
        with pytest.raises(InvalidInput) as exc:
            lunar_to_solar(2024, 1, 30)
        assert exc.value.field == "day"

    def test_missing_leap_month(self):
        with pytest.raises(InvalidInput) as exc:
            lunar_to_solar(2024, 2, 1, leap=True)
        assert exc.value.field == "leap_month"

    @pytest.mark.parametrize("month, day", [(0, 1), (13, 1), (1, 0)])
    def test_invalid_fields(self, month, day):
        with pytest.raises(InvalidInput):
            lunar_to_solar(2024, month, day)


class TestAlternatingLengths:
    def test_odd_months_long_even_months_short(self):
        table = lunar_year(2023, "alternating")
        assert table.new_year == date(2023, 1, 22)
        lengths = {(m.number, m.leap): m.length for m in table.months}
        assert lengths[(1, False)] == 30
        assert lengths[(2, False)] == 29
        assert lengths[(2, True)] == 29

    def test_day_thirty_of_first_month(self):
        assert lunar_to_solar(2024, 1, 30, month_lengths="alternating") == date(2024, 3, 10)

    @pytest.mark.parametrize("year", range(1990, 2000))
    def test_last_month_reaches_next_new_year(self, year):
        table = lunar_year(year, "alternating")
        next_new_year = lunar_year(year + 1, "alternating").new_year
        assert table.months[-1].end + timedelta(days=1) == next_new_year
        assert table.new_year + timedelta(days=table.days) == next_new_year

        eve = solar_to_lunar(next_new_year - timedelta(days=1), "alternating")
        assert (eve.year, eve.month, eve.leap) == (year, table.months[-1].number, table.months[-1].leap)
        assert eve.day == table.months[-1].length

    def test_every_day_of_a_year_converts(self):
        d = date(1991, 1, 1)
        while d.year == 1991:
            ld = solar_to_lunar(d, "alternating")
            assert lunar_to_solar(ld.year, ld.month, ld.day, ld.leap, month_lengths="alternating") == d
            d += timedelta(days=1)

    def test_selected_from_environment(self, monkeypatch):
        monkeypatch.setenv("TONGSHU_LUNAR_MONTH_LENGTHS", "alternating")
        reload_settings()
        assert lunar_year(2024).months[0].length == 30

    def test_unknown_mode(self):
        with pytest.raises(InvalidInput):
            lunar_year(2024, "weekly")


class TestLunarDate:
    @pytest.mark.parametrize("ld, text", [
        (LunarDate(2023, 2, 1, True), "闰二月初一"),
        (LunarDate(2024, 1, 10), "正月初十"),
        (LunarDate(2024, 8, 15), "八月十五"),
        (LunarDate(2024, 11, 20), "冬月二十"),
        (LunarDate(2024, 12, 21), "腊月廿一"),
        (LunarDate(2023, 12, 30), "腊月三十"),
    ])
    def test_chinese(self, ld, text):
        assert ld.chinese == text
