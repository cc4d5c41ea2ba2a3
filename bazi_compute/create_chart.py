"""
Chart creation library.
Computes a BaZi natal chart with its luck and annual cycles from birth data.

Usage from Python:
    from bazi_compute.create_chart import compute_chart
    result = compute_chart(
        birth_date="1990-03-15", birth_time="10:30",
        gender="male", timezone="Asia/Shanghai",
        rounding="nearest",
    )
    result.to_dict()

Computation is all-or-nothing: any failure raises a BaziError subclass and
no partial chart is returned.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from bazi_compute.astro_calendar import (
    LunarDate,
    jie_terms_for_year,
    lunar_for_birth,
    parse_birth_moment,
    solar_to_lunar,
)
from bazi_compute.bazi import (
    POSITIONS,
    Chart,
    Element,
    TenGod,
    derive_chart,
    favorable_element,
    hidden_stem_gods,
    missing_elements,
    tally_elements,
    ten_god,
)
from bazi_compute.errors import InvalidBirthDataError
from bazi_compute.luck import (
    GENDERS,
    AnnualCycle,
    LuckProjection,
    RoundingPolicy,
    compute_annual_cycles,
    compute_luck_cycles,
)

logger = logging.getLogger(__name__)

DAY_MASTER_LABEL = "日主"


@dataclass(frozen=True)
class ChartResult:
    birth_moment: datetime
    gender: str
    lunar: LunarDate
    chart: Chart
    stem_gods: dict[str, Optional[TenGod]]  # day pillar maps to None (Day Master)
    branch_gods: dict[str, list[Optional[TenGod]]]
    element_counts: dict[Element, int]
    missing_elements: list[Element]
    favorable_element: Element
    luck: LuckProjection
    annual: list[AnnualCycle]

    def to_dict(self):
        day_master = self.chart.day_master
        return {
            "success": True,
            "birth": {
                "moment": self.birth_moment.isoformat(),
                "timezone": str(self.birth_moment.tzinfo),
                "gender": self.gender,
            },
            "lunar": self.lunar.to_dict(),
            "day_master": {
                "chinese": day_master.chinese,
                "pinyin": day_master.pinyin,
                "element": day_master.element.value,
                "polarity": day_master.polarity.value,
                "description": str(day_master),
            },
            "pillars": {pos: p.to_dict() for pos, p in self.chart.pillars().items()},
            "ten_gods": {
                pos: {
                    "stem": god.value if god else DAY_MASTER_LABEL,
                    "stem_label": god.label if god else "Day Master",
                    "branch": [g.value if g else "" for g in self.branch_gods[pos]],
                }
                for pos, god in self.stem_gods.items()
            },
            "five_elements": {e.chinese: n for e, n in self.element_counts.items()},
            "missing_elements": [e.chinese for e in self.missing_elements],
            "favorable_element": self.favorable_element.chinese,
            "da_yun": self.luck.to_dict(),
            "liu_nian": [a.to_dict() for a in self.annual],
        }


def compute_chart(birth_date: str, birth_time: str, gender: str, timezone: str,
                  rounding="nearest", *,
                  calendar: Callable[..., LunarDate] = solar_to_lunar,
                  terms_for_year: Callable[[int], list] = jie_terms_for_year) -> ChartResult:
    """
    Compute a full BaZi chart from birth data.

    Args:
        birth_date: "YYYY-MM-DD" (Gregorian)
        birth_time: "HH:MM" (24h, local clock time)
        gender: "male" or "female", determines luck pillar direction
        timezone: IANA zone name of the birth place, e.g. "Asia/Shanghai"
        rounding: "ceil", "nearest" or "floor" for the luck starting age
        calendar: solar-to-lunar converter (year, month, day, hour, minute)
        terms_for_year: Jie solar term lookup, year -> list of SolarTerm

    Returns:
        ChartResult with pillars, ten gods, elements, Da Yun and Liu Nian
    """
    if gender not in GENDERS:
        raise InvalidBirthDataError(f"Gender must be 'male' or 'female', got {gender!r}")
    rounding = RoundingPolicy.parse(rounding)
    birth = parse_birth_moment(birth_date, birth_time, timezone)
    logger.debug("Computing chart for %s (%s)", birth.isoformat(), gender)

    lunar = lunar_for_birth(birth, calendar)
    chart = derive_chart(lunar.year_ganzhi, lunar.month_ganzhi, lunar.day_ganzhi, birth.hour)
    day_master = chart.day_master

    # Ten Gods
    stem_gods = {}
    branch_gods = {}
    for pos in POSITIONS:
        pillar = getattr(chart, pos)
        stem_gods[pos] = None if pos == "day" else ten_god(day_master, pillar.stem)
        branch_gods[pos] = hidden_stem_gods(day_master, pillar.branch)

    # Elements
    counts = tally_elements(chart)

    # Cycles
    luck = compute_luck_cycles(chart, gender, birth, rounding, terms_for_year)
    annual = compute_annual_cycles(chart, birth.year)

    return ChartResult(
        birth_moment=birth,
        gender=gender,
        lunar=lunar,
        chart=chart,
        stem_gods=stem_gods,
        branch_gods=branch_gods,
        element_counts=counts,
        missing_elements=missing_elements(counts),
        favorable_element=favorable_element(day_master, counts),
        luck=luck,
        annual=annual,
    )
