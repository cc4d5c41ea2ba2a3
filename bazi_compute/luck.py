"""
Luck Pillar (大运 Da Yun) and Annual Pillar (流年 Liu Nian) projection.

Both sequences step through the 60 Jia Zi cycle. Da Yun starts from the
month pillar and runs forward or backward depending on gender and the year
stem's polarity; its starting age comes from the distance between birth and
the nearest Jie solar term. Liu Nian always runs forward from the year pillar.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from bazi_compute.astro_calendar import SolarTerm, find_nearest_jie
from bazi_compute.bazi import (
    Chart,
    HeavenlyStem,
    Pillar,
    Polarity,
    TenGod,
    hidden_stem_gods,
    step_pillar,
    ten_god,
)
from bazi_compute.errors import InvalidBirthDataError

logger = logging.getLogger(__name__)

GENDERS = ("male", "female")
DAYS_PER_LUCK_YEAR = 3.0  # traditional rule: 3 days from birth to the Jie = 1 year
DAYS_PER_YEAR = 365.2425
LUCK_CYCLE_YEARS = 10
NUM_LUCK_CYCLES = 10
ANNUAL_HORIZON = 100


class RoundingPolicy(Enum):
    CEIL = "ceil"
    NEAREST = "nearest"
    FLOOR = "floor"

    def apply(self, value: float) -> int:
        if self is RoundingPolicy.CEIL:
            return math.ceil(value)
        if self is RoundingPolicy.FLOOR:
            return math.floor(value)
        # halves round up, 2.5 -> 3
        return math.floor(value + 0.5)

    @classmethod
    def parse(cls, value) -> "RoundingPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            choices = ", ".join(p.value for p in cls)
            raise InvalidBirthDataError(f"Rounding policy must be one of {choices}, got {value!r}") from exc


def _god_names(gods: list[Optional[TenGod]]) -> list[str]:
    return [g.value if g else "" for g in gods]


@dataclass(frozen=True)
class LuckCycle:
    index: int  # 1-based
    pillar: Pillar
    ten_god: Optional[TenGod]
    hidden_stem_gods: tuple[Optional[TenGod], ...]
    start_age: int  # inclusive
    end_age: int  # exclusive, equals the next cycle's start_age
    start_year: int
    end_year: int

    def to_dict(self):
        return {
            "index": self.index,
            "pillar": self.pillar.ganzhi,
            "ten_god": self.ten_god.value if self.ten_god else "",
            "ten_god_label": self.ten_god.label if self.ten_god else "",
            "hidden_stem_gods": _god_names(self.hidden_stem_gods),
            "start_age": self.start_age,
            "end_age": self.end_age,
            "start_year": self.start_year,
            "end_year": self.end_year,
        }


@dataclass(frozen=True)
class AnnualCycle:
    age: int
    year: int
    pillar: Pillar
    ten_god: Optional[TenGod]
    hidden_stem_gods: tuple[Optional[TenGod], ...]

    def to_dict(self):
        return {
            "age": self.age,
            "year": self.year,
            "pillar": self.pillar.ganzhi,
            "ten_god": self.ten_god.value if self.ten_god else "",
            "ten_god_label": self.ten_god.label if self.ten_god else "",
            "hidden_stem_gods": _god_names(self.hidden_stem_gods),
        }


@dataclass(frozen=True)
class LuckProjection:
    forward: bool
    solar_term: SolarTerm
    days_to_term: float
    start_age_exact: float
    start_age: int
    start_year: int
    start_moment: datetime
    rounding: RoundingPolicy
    cycles: tuple[LuckCycle, ...]

    def to_dict(self):
        return {
            "direction": "forward" if self.forward else "backward",
            "solar_term": self.solar_term.to_dict(),
            "days_to_term": round(self.days_to_term, 4),
            "start_age_exact": round(self.start_age_exact, 4),
            "start_age": self.start_age,
            "start_year": self.start_year,
            "start_moment": self.start_moment.isoformat(),
            "rounding": self.rounding.value,
            "cycles": [c.to_dict() for c in self.cycles],
        }


def is_forward(year_stem: HeavenlyStem, gender: str) -> bool:
    """
    Direction of count for the luck pillars:
    - Yang stem year + Male OR Yin stem year + Female → count FORWARD
    - Yang stem year + Female OR Yin stem year + Male → count BACKWARD
    """
    if gender not in GENDERS:
        raise InvalidBirthDataError(f"Gender must be 'male' or 'female', got {gender!r}")
    year_yang = year_stem.polarity == Polarity.YANG
    return (year_yang and gender == "male") or (not year_yang and gender == "female")


def compute_luck_cycles(chart: Chart, gender: str, birth_instant: datetime,
                        rounding=RoundingPolicy.NEAREST,
                        terms_for_year: Optional[Callable[[int], list]] = None,
                        num_cycles: int = NUM_LUCK_CYCLES) -> LuckProjection:
    """
    Compute Luck Pillars (大运 Da Yun).

    Starting age is the distance from birth to the next (forward) or
    previous (backward) Jie solar term, divided by 3 (3 days ≈ 1 year),
    then rounded with `rounding` to fix the calendar year of the first cycle.

    Args:
        chart: natal four pillars
        gender: "male" or "female"
        birth_instant: aware datetime of birth
        rounding: RoundingPolicy or its string value
        terms_for_year: ephemeris lookup passed through to find_nearest_jie
        num_cycles: how many ten-year cycles to produce

    Returns:
        LuckProjection with the start data and the cycles in order
    """
    rounding = RoundingPolicy.parse(rounding)
    forward = is_forward(chart.year.stem, gender)

    term = find_nearest_jie(birth_instant, forward, terms_for_year)
    days_to_term = abs((term.instant - birth_instant).total_seconds()) / 86400
    start_age_exact = days_to_term / DAYS_PER_LUCK_YEAR
    start_age = rounding.apply(start_age_exact)
    start_year = birth_instant.year + start_age
    logger.debug("Da Yun %s from %s: %.2f days, start age %.2f -> %d",
                 "forward" if forward else "backward", term.name,
                 days_to_term, start_age_exact, start_age)

    day_master = chart.day_master
    step = 1 if forward else -1
    cycles = []
    for i in range(num_cycles):
        pillar = step_pillar(chart.month, step * (i + 1))
        age_start = start_age + i * LUCK_CYCLE_YEARS
        year_start = start_year + i * LUCK_CYCLE_YEARS
        cycles.append(LuckCycle(
            index=i + 1,
            pillar=pillar,
            ten_god=ten_god(day_master, pillar.stem),
            hidden_stem_gods=tuple(hidden_stem_gods(day_master, pillar.branch)),
            start_age=age_start,
            end_age=age_start + LUCK_CYCLE_YEARS,
            start_year=year_start,
            end_year=year_start + LUCK_CYCLE_YEARS,
        ))

    return LuckProjection(
        forward=forward,
        solar_term=term,
        days_to_term=days_to_term,
        start_age_exact=start_age_exact,
        start_age=start_age,
        start_year=start_year,
        start_moment=birth_instant + timedelta(days=start_age_exact * DAYS_PER_YEAR),
        rounding=rounding,
        cycles=tuple(cycles),
    )


def compute_annual_cycles(chart: Chart, birth_year: int,
                          horizon: int = ANNUAL_HORIZON) -> list[AnnualCycle]:
    """
    Compute Annual Pillars (流年 Liu Nian) for ages 1..horizon.

    Always forward from the year pillar, whatever the Da Yun direction.
    """
    day_master = chart.day_master
    annual = []
    for age in range(1, horizon + 1):
        pillar = step_pillar(chart.year, age)
        annual.append(AnnualCycle(
            age=age,
            year=birth_year + age,
            pillar=pillar,
            ten_god=ten_god(day_master, pillar.stem),
            hidden_stem_gods=tuple(hidden_stem_gods(day_master, pillar.branch)),
        ))
    return annual


# ============================================================
# LOOKUPS
# ============================================================

def age_on(birth: date, on: date) -> int:
    """Completed years between birth and `on` (month-aware)."""
    return on.year - birth.year - (
        1 if (on.month, on.day) < (birth.month, birth.day) else 0
    )


def current_luck_cycle(cycles, age: int) -> Optional[LuckCycle]:
    for cycle in cycles:
        if cycle.start_age <= age < cycle.end_age:
            return cycle
    return None


def annual_cycle_for_year(annual, year: int) -> Optional[AnnualCycle]:
    for entry in annual:
        if entry.year == year:
            return entry
    return None
