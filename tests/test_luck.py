from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from bazi_compute.bazi import TenGod, cycle_position, derive_chart, step_pillar
from bazi_compute.errors import EphemerisUnavailableError, InvalidBirthDataError
from bazi_compute.luck import (
    RoundingPolicy,
    age_on,
    annual_cycle_for_year,
    compute_annual_cycles,
    compute_luck_cycles,
    current_luck_cycle,
    is_forward,
)

BIRTH = datetime(1990, 3, 15, 10, 30, tzinfo=ZoneInfo("Asia/Shanghai"))


@pytest.fixture
def chart():
    # 庚 year stem: yang metal
    return derive_chart("庚午", "己卯", "己酉", 10)


def test_direction_rule(chart):
    yang = chart.year.stem
    yin = derive_chart("辛未", "辛卯", "己酉", 10).year.stem
    assert is_forward(yang, "male")
    assert not is_forward(yang, "female")
    assert not is_forward(yin, "male")
    assert is_forward(yin, "female")
    with pytest.raises(InvalidBirthDataError):
        is_forward(yang, "other")


def test_rounding_policies():
    assert RoundingPolicy.NEAREST.apply(7.2986) == 7
    assert RoundingPolicy.NEAREST.apply(2.5) == 3
    assert RoundingPolicy.NEAREST.apply(2.4999) == 2
    assert RoundingPolicy.CEIL.apply(7.2986) == 8
    assert RoundingPolicy.CEIL.apply(3.0) == 3
    assert RoundingPolicy.FLOOR.apply(7.9) == 7
    assert RoundingPolicy.parse("floor") is RoundingPolicy.FLOOR
    with pytest.raises(InvalidBirthDataError):
        RoundingPolicy.parse("round")


def test_forward_start_age(chart, jie_terms):
    luck = compute_luck_cycles(chart, "male", BIRTH, terms_for_year=jie_terms)
    assert luck.forward
    assert luck.solar_term.name == "Qing Ming"
    # 1990-03-15 02:30 UTC to 1990-04-06 00:00 UTC
    assert luck.days_to_term == pytest.approx(21 + 21.5 / 24)
    assert luck.start_age_exact == pytest.approx((21 + 21.5 / 24) / 3)
    assert luck.start_age == 7
    assert luck.start_year == 1997
    assert luck.start_moment.year == 1997


@pytest.mark.parametrize("policy,age", [("ceil", 8), ("nearest", 7), ("floor", 7)])
def test_start_age_follows_rounding(chart, jie_terms, policy, age):
    luck = compute_luck_cycles(chart, "male", BIRTH, policy, jie_terms)
    assert luck.start_age == age
    assert luck.cycles[0].start_year == 1990 + age


def test_backward_start_age(chart, jie_terms):
    luck = compute_luck_cycles(chart, "female", BIRTH, terms_for_year=jie_terms)
    assert not luck.forward
    assert luck.solar_term.name == "Jing Zhe"
    assert luck.days_to_term == pytest.approx(9 + 2.5 / 24)
    assert luck.start_age == 3


def test_forward_cycles_increase_from_month_pillar(chart, jie_terms):
    luck = compute_luck_cycles(chart, "male", BIRTH, terms_for_year=jie_terms)
    month_pos = cycle_position(chart.month)
    assert len(luck.cycles) == 10
    assert [c.index for c in luck.cycles] == list(range(1, 11))
    assert [cycle_position(c.pillar) for c in luck.cycles] == [
        (month_pos + i) % 60 for i in range(1, 11)
    ]
    assert luck.cycles[0].pillar.ganzhi == "庚辰"
    assert luck.cycles[1].pillar.ganzhi == "辛巳"


def test_backward_cycles_decrease(chart, jie_terms):
    luck = compute_luck_cycles(chart, "female", BIRTH, terms_for_year=jie_terms)
    assert [c.pillar.ganzhi for c in luck.cycles[:3]] == ["戊寅", "丁丑", "丙子"]


@pytest.mark.parametrize("gender", ["male", "female"])
def test_cycles_are_contiguous(chart, jie_terms, gender):
    cycles = compute_luck_cycles(chart, gender, BIRTH, terms_for_year=jie_terms).cycles
    for cycle in cycles:
        assert cycle.end_age == cycle.start_age + 10
        assert cycle.end_year == cycle.start_year + 10
    for current, following in zip(cycles, cycles[1:]):
        assert following.start_age == current.end_age
        assert following.start_year == current.end_year


def test_cycle_ten_gods(chart, jie_terms):
    first = compute_luck_cycles(chart, "male", BIRTH, terms_for_year=jie_terms).cycles[0]
    # 己 Day Master against 庚辰
    assert first.ten_god == TenGod.HURTING_OFFICER
    assert first.hidden_stem_gods == (TenGod.ROB_WEALTH, TenGod.SEVEN_KILLINGS, TenGod.INDIRECT_WEALTH)


def test_luck_cycles_need_solar_terms(chart):
    with pytest.raises(EphemerisUnavailableError):
        compute_luck_cycles(chart, "male", BIRTH, terms_for_year=lambda year: [])


def test_annual_cycles(chart):
    annual = compute_annual_cycles(chart, 1990)
    assert len(annual) == 100
    assert annual[0].age == 1
    assert annual[0].year == 1991
    assert annual[0].pillar == step_pillar(chart.year, 1)
    assert annual[0].pillar.ganzhi == "辛未"
    assert annual[-1].age == 100
    assert annual[-1].year == 2090
    assert annual[59].pillar == chart.year


def test_annual_cycles_ignore_gender_direction(chart, jie_terms):
    female_backward = compute_luck_cycles(chart, "female", BIRTH, terms_for_year=jie_terms)
    assert not female_backward.forward
    annual = compute_annual_cycles(chart, 1990)
    assert [cycle_position(a.pillar) for a in annual[:3]] == [7, 8, 9]


def test_annual_ten_gods(chart):
    first = compute_annual_cycles(chart, 1990)[0]
    # 己 Day Master against 辛未
    assert first.ten_god == TenGod.EATING_GOD
    assert first.hidden_stem_gods == (TenGod.RIVAL, TenGod.SEVEN_KILLINGS, TenGod.INDIRECT_RESOURCE)


def test_lookups(chart, jie_terms):
    luck = compute_luck_cycles(chart, "male", BIRTH, terms_for_year=jie_terms)
    assert age_on(date(1990, 3, 15), date(2026, 3, 14)) == 35
    assert age_on(date(1990, 3, 15), date(2026, 3, 15)) == 36
    assert current_luck_cycle(luck.cycles, 6) is None
    assert current_luck_cycle(luck.cycles, 7).index == 1
    assert current_luck_cycle(luck.cycles, 36).index == 3
    annual = compute_annual_cycles(chart, 1990)
    assert annual_cycle_for_year(annual, 2026).age == 36
    assert annual_cycle_for_year(annual, 1980) is None
