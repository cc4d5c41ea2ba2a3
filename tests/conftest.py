from datetime import datetime, timezone

import pytest

from bazi_compute.astro_calendar import JIE_DEFINITIONS, LunarDate, SolarTerm


def fixed_jie_terms(year):
    """One Jie on the 6th of every month at midnight UTC."""
    return [
        SolarTerm(name, chinese, datetime(year, month, 6, tzinfo=timezone.utc), 0.0, branch_idx)
        for month, (_, name, chinese, branch_idx) in enumerate(JIE_DEFINITIONS, start=1)
    ]


def fixed_calendar(year, month, day, hour=0, minute=0):
    # 1990-03-15: 庚午年 己卯月 己酉日
    return LunarDate(1990, 2, 19, "庚午", "己卯", "己酉")


LI_CHUN_2024_BEIJING = (2024, 2, 4, 16, 27)


def li_chun_calendar(year, month, day, hour=0, minute=0):
    """Switches to 甲辰年 丙寅月 at Li Chun 2024, read on a Beijing clock."""
    if (year, month, day, hour, minute) >= LI_CHUN_2024_BEIJING:
        year_gz, month_gz = "甲辰", "丙寅"
    else:
        year_gz, month_gz = "癸卯", "乙丑"
    if (month, day) == (2, 4):
        return LunarDate(2023, 12, 25, year_gz, month_gz, "戊戌")
    return LunarDate(2023, 12, 26, year_gz, month_gz, "己亥")


@pytest.fixture
def jie_terms():
    return fixed_jie_terms


@pytest.fixture
def calendar():
    return fixed_calendar


@pytest.fixture
def li_chun():
    return li_chun_calendar
