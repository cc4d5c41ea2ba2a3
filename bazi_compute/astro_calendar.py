"""
Calendar utilities for BaZi calculations.
Handles birth-moment parsing, timezone lookup, solar-to-lunar conversion
and the Jie solar term search used to time the luck cycles.
"""

import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import swisseph as swe
from lunar_python import Solar
from timezonefinder import TimezoneFinder

from bazi_compute.errors import (
    EphemerisUnavailableError,
    InvalidBirthDataError,
    MissingCalendarDataError,
)

logger = logging.getLogger(__name__)

# Point Swiss Ephemeris to data files. Without them it falls back to the
# built-in Moshier ephemeris, which is plenty for minute-level solar terms.
_ephe_path = os.environ.get("BAZI_EPHE_PATH", str(Path(__file__).parent.parent / "ephe"))
swe.set_ephe_path(_ephe_path)

_tf = None

# Reference zone of the lunar calendar tables
BEIJING = ZoneInfo("Asia/Shanghai")


# ============================================================
# BIRTH MOMENT
# ============================================================

def load_zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidBirthDataError(f"Unknown timezone: {tz_name!r}") from exc


def parse_birth_moment(birth_date: str, birth_time: str, tz_name: str) -> datetime:
    """
    Combine "YYYY-MM-DD" and "HH:MM" into an aware datetime in `tz_name`.

    The result carries the local clock reading; convert with astimezone()
    when an absolute instant is needed.
    """
    try:
        local = datetime.strptime(f"{birth_date} {birth_time}", "%Y-%m-%d %H:%M")
    except (TypeError, ValueError) as exc:
        raise InvalidBirthDataError(
            f"Birth date/time must look like YYYY-MM-DD and HH:MM, got {birth_date!r} {birth_time!r}"
        ) from exc
    return local.replace(tzinfo=load_zone(tz_name))


def resolve_timezone(latitude: float, longitude: float) -> str:
    """IANA timezone name for a birth location."""
    global _tf
    if _tf is None:
        _tf = TimezoneFinder()
    tz_name = _tf.timezone_at(lat=latitude, lng=longitude)
    if tz_name is None:
        raise InvalidBirthDataError(f"Could not determine timezone for ({latitude}, {longitude})")
    return tz_name


# ============================================================
# SOLAR TO LUNAR CONVERSION
# ============================================================

@dataclass(frozen=True)
class LunarDate:
    lunar_year: int
    lunar_month: int  # negative for a leap month
    lunar_day: int
    year_ganzhi: str
    month_ganzhi: str
    day_ganzhi: str

    def to_dict(self):
        return {
            "lunar_year": self.lunar_year,
            "lunar_month": abs(self.lunar_month),
            "is_leap_month": self.lunar_month < 0,
            "lunar_day": self.lunar_day,
            "year_ganzhi": self.year_ganzhi,
            "month_ganzhi": self.month_ganzhi,
            "day_ganzhi": self.day_ganzhi,
        }


def solar_to_lunar(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> LunarDate:
    """
    Convert a Gregorian date to its lunar date and ganzhi strings.

    Year and month ganzhi switch at Li Chun and at each Jie, not at the lunar
    new year or new moon, which is what BaZi needs.
    """
    logger.debug("solar_to_lunar %04d-%02d-%02d %02d:%02d", year, month, day, hour, minute)
    try:
        lunar = Solar.fromYmdHms(year, month, day, hour, minute, 0).getLunar()
        eight_char = lunar.getEightChar()
        result = LunarDate(
            lunar_year=lunar.getYear(),
            lunar_month=lunar.getMonth(),
            lunar_day=lunar.getDay(),
            year_ganzhi=eight_char.getYear(),
            month_ganzhi=eight_char.getMonth(),
            day_ganzhi=eight_char.getDay(),
        )
    except (ValueError, IndexError, KeyError) as exc:
        raise MissingCalendarDataError(
            f"Lunar conversion failed for {year:04d}-{month:02d}-{day:02d}"
        ) from exc

    if not (result.year_ganzhi and result.month_ganzhi and result.day_ganzhi):
        raise MissingCalendarDataError(
            f"Lunar conversion for {year:04d}-{month:02d}-{day:02d} is missing ganzhi data"
        )
    return result


def lunar_for_birth(birth: datetime, calendar: Optional[Callable[..., LunarDate]] = None) -> LunarDate:
    """
    Lunar date and ganzhi for an aware birth moment.

    lunar_python places its Jie boundaries in Beijing time, so the year and
    month ganzhi are looked up with the birth instant expressed in
    Asia/Shanghai. The lunar date and day ganzhi follow the local date.
    """
    if calendar is None:
        calendar = solar_to_lunar

    local = calendar(birth.year, birth.month, birth.day, birth.hour, birth.minute)
    beijing = birth.astimezone(BEIJING)
    if beijing.replace(tzinfo=None) == birth.replace(tzinfo=None):
        return local

    seasonal = calendar(beijing.year, beijing.month, beijing.day, beijing.hour, beijing.minute)
    if not (seasonal.year_ganzhi and seasonal.month_ganzhi):
        raise MissingCalendarDataError(
            f"Lunar conversion for {beijing.isoformat()} is missing year/month ganzhi"
        )
    return replace(local, year_ganzhi=seasonal.year_ganzhi, month_ganzhi=seasonal.month_ganzhi)


# ============================================================
# SOLAR TERM COMPUTATION
# ============================================================
#
# The 12 Jie (节) solar terms mark BaZi month boundaries and time the luck
# cycles. The 12 interleaved Qi (气) terms are not used here.
# Each Jie is defined by the Sun reaching a specific ecliptic longitude.
# Swiss Ephemeris swe.solcross_ut() finds the exact crossing moment.

# (longitude, term_name, chinese, branch_index)
JIE_DEFINITIONS = [
    (285, "Xiao Han", "小寒", 1),
    (315, "Li Chun", "立春", 2),
    (345, "Jing Zhe", "驚蟄", 3),
    (15,  "Qing Ming", "清明", 4),
    (45,  "Li Xia", "立夏", 5),
    (75,  "Mang Zhong", "芒種", 6),
    (105, "Xiao Shu", "小暑", 7),
    (135, "Li Qiu", "立秋", 8),
    (165, "Bai Lu", "白露", 9),
    (195, "Han Lu", "寒露", 10),
    (225, "Li Dong", "立冬", 11),
    (255, "Da Xue", "大雪", 0),
]


@dataclass(frozen=True)
class SolarTerm:
    name: str
    chinese: str
    instant: datetime  # UTC
    jd: float
    branch_index: int  # month branch the term opens

    def to_dict(self):
        return {
            "name": self.name,
            "chinese": self.chinese,
            "instant": self.instant.isoformat(),
        }


def jd_to_datetime(jd: float) -> datetime:
    y, m, d, h = swe.revjul(jd)
    return datetime(y, m, d, tzinfo=timezone.utc) + timedelta(hours=h)


def jie_terms_for_year(year: int) -> list[SolarTerm]:
    """
    Compute all 12 Jie solar terms for a given Gregorian year.

    Uses Swiss Ephemeris to find the exact moment the Sun crosses
    each Jie longitude. Only crossings that fall within the year (UT)
    are returned, in chronological order.
    """
    results = []
    jd_year_start = swe.julday(year, 1, 1, 0)

    for lon, name, chinese, branch_idx in JIE_DEFINITIONS:
        jd_cross = swe.solcross_ut(float(lon), jd_year_start, 0)
        instant = jd_to_datetime(jd_cross)
        if instant.year == year:
            results.append(SolarTerm(name, chinese, instant, jd_cross, branch_idx))

    results.sort(key=lambda t: t.instant)
    logger.debug("Computed %d Jie terms for %d", len(results), year)
    return results


def find_nearest_jie(birth_instant: datetime, forward: bool,
                     terms_for_year: Optional[Callable[[int], list]] = None) -> SolarTerm:
    """
    Find the nearest Jie solar term in the given direction from birth.

    Args:
        birth_instant: aware datetime of birth
        forward: True = first Jie strictly after birth, False = last Jie
            strictly before birth
        terms_for_year: ephemeris lookup, year -> list of SolarTerm

    Returns:
        The nearest qualifying SolarTerm
    """
    if terms_for_year is None:
        terms_for_year = jie_terms_for_year

    year = birth_instant.astimezone(timezone.utc).year
    years = [year, year + 1] if forward else [year - 1, year]

    all_jie = []
    for y in years:
        all_jie.extend(terms_for_year(y))
    all_jie.sort(key=lambda t: t.instant)

    if forward:
        for jie in all_jie:
            if jie.instant > birth_instant:
                return jie
    else:
        for jie in reversed(all_jie):
            if jie.instant < birth_instant:
                return jie

    raise EphemerisUnavailableError(
        f"Could not find {'next' if forward else 'previous'} Jie from {birth_instant.isoformat()} "
        f"(searched {years[0]}-{years[-1]}, {len(all_jie)} terms)"
    )
