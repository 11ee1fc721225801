"""Tests for the solar term engine."""

from datetime import datetime

import pytest
import swisseph as swe

from tongshu.errors import InvalidInput
from tongshu.solar_terms import (
    SWE_FLAGS,
    angle_diff,
    apply_lmt,
    compute_solar_terms,
    jd_from_local_datetime,
    lmt_correction,
    local_datetime_from_jd,
    next_sectional_term,
    previous_sectional_term,
    principal_terms,
    sectional_terms,
    start_of_spring,
    sun_longitude,
    term_longitude,
)

MINUTE = 1.0 / 1440


class TestTermTable:
    def test_longitudes(self):
        assert term_longitude(0) == 315.0
        assert term_longitude(3) == 0.0  # Spring Equinox
        assert term_longitude(21) == 270.0  # Winter Solstice

    def test_twenty_four_terms_in_order(self):
        terms = compute_solar_terms(2024)
        assert len(terms) == 24
        assert [t.index for t in terms] == list(range(24))
        assert terms[0].chinese == "立春"
        assert terms[23].chinese == "大寒"

    def test_sectional_and_principal_split(self):
        assert [t.index for t in sectional_terms(2024)] == list(range(0, 24, 2))
        assert [t.index for t in principal_terms(2024)] == list(range(1, 24, 2))

    def test_sectional_terms_open_months_from_tiger(self):
        branches = [t.month_branch for t in sectional_terms(2024)]
        assert branches == [2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 0, 1]
        assert all(t.month_branch is None for t in principal_terms(2024))


class TestAstronomical:
    @pytest.mark.parametrize("year", [1900, 1950, 2000, 2024, 2100])
    def test_sun_reaches_term_longitude(self, year):
        for term in compute_solar_terms(year):
            assert abs(angle_diff(term.longitude, sun_longitude(term.jd))) < 1e-3

    @pytest.mark.parametrize("year", [1901, 1984, 2024, 2099])
    def test_matches_swisseph_crossing(self, year):
        for term in compute_solar_terms(year):
            crossing = swe.solcross_ut(term.longitude, term.jd - 5, SWE_FLAGS)
            assert abs(crossing - term.jd) < 2 * MINUTE

    def test_strictly_increasing_over_supported_range(self):
        previous = None
        for year in range(1900, 2101):
            terms = compute_solar_terms(year)
            for a, b in zip(terms, terms[1:]):
                assert a.jd < b.jd
            if previous is not None:
                assert previous[-1].jd < terms[0].jd
            previous = terms

    def test_last_two_terms_fall_in_next_january(self):
        terms = compute_solar_terms(2024)
        assert terms[21].moment.year == 2024
        assert (terms[22].moment.year, terms[22].moment.month) == (2025, 1)
        assert (terms[23].moment.year, terms[23].moment.month) == (2025, 1)

    @pytest.mark.parametrize("year, index, expected", [
        (2024, 0, datetime(2024, 2, 4, 16, 27)),
        (2024, 11, datetime(2024, 6, 21, 4, 51)),
        (2024, 21, datetime(2024, 12, 21, 17, 21)),
        (2023, 0, datetime(2023, 2, 4, 10, 42)),
    ], ids=["lichun-2024", "xiazhi-2024", "dongzhi-2024", "lichun-2023"])
    def test_published_beijing_times(self, year, index, expected):
        moment = compute_solar_terms(year)[index].moment
        assert abs((moment - expected).total_seconds()) <= 120


class TestLinear:
    def test_close_to_astronomical_near_epoch(self):
        for linear, astro in zip(compute_solar_terms(2001, method="linear"),
                                 compute_solar_terms(2001, method="astronomical")):
            assert abs(linear.jd - astro.jd) < 1.0

    def test_strictly_increasing(self):
        terms = compute_solar_terms(1950, method="linear")
        assert all(a.jd < b.jd for a, b in zip(terms, terms[1:]))

    def test_far_year_logs_drift_warning(self, caplog):
        with caplog.at_level("WARNING", logger="tongshu.solar_terms"):
            compute_solar_terms(1850, method="linear")
        assert "far from" in caplog.text


class TestValidation:
    def test_unknown_method(self):
        with pytest.raises(InvalidInput) as exc:
            compute_solar_terms(2024, method="guess")
        assert exc.value.field == "method"

    @pytest.mark.parametrize("year", [1799, 2201, "2024"])
    def test_year_out_of_range(self, year):
        with pytest.raises(InvalidInput):
            compute_solar_terms(year)


class TestLookup:
    def test_start_of_spring(self):
        assert start_of_spring(2024).moment.date().isoformat() == "2024-02-04"

    def test_previous_term_before_start_of_spring(self):
        term = previous_sectional_term(datetime(2024, 2, 4, 0, 0))
        assert term.chinese == "小寒"
        assert term.month_branch == 1

    def test_previous_term_at_start_of_spring(self):
        spring = start_of_spring(2024)
        assert previous_sectional_term(spring.moment).chinese == "立春"

    def test_next_term_is_strictly_after(self):
        spring = start_of_spring(2024)
        assert next_sectional_term(spring.moment).chinese == "惊蛰"

    def test_next_term_across_new_year(self):
        term = next_sectional_term(datetime(2024, 12, 25))
        assert term.chinese == "小寒"
        assert term.moment.year == 2025


class TestTimeHelpers:
    def test_local_roundtrip(self):
        moment = datetime(1990, 5, 15, 9, 0)
        jd = jd_from_local_datetime(moment, 8.0)
        assert local_datetime_from_jd(jd, 8.0) == moment

    @pytest.mark.parametrize("target, actual, expected", [
        (10.0, 350.0, 20.0),
        (350.0, 10.0, -20.0),
        (180.0, 0.0, 180.0),
    ])
    def test_angle_diff(self, target, actual, expected):
        assert angle_diff(target, actual) == pytest.approx(expected)

    def test_lmt_correction_west_of_meridian(self):
        assert lmt_correction(108.37) == pytest.approx(-46.52)
        assert apply_lmt(datetime(1990, 5, 15, 9, 30), 105.0) == datetime(1990, 5, 15, 8, 30)
