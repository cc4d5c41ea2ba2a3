"""
BaZi (Four Pillars of Destiny) computation engine.

Handles:
- Heavenly Stem / Earthly Branch tables (element, polarity, hidden stems)
- The 60 Jia Zi sexagenary cycle and stepping through it
- Ten Gods relationship mapping for stems and hidden stems
- Hour pillar derivation and four-pillar chart assembly
- Element tally, missing elements and favorable element

Design principle: This module COMPUTES. It does not interpret, and it never
talks to a calendar or an ephemeris. Those live in astro_calendar.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from bazi_compute.errors import (
    InvalidBirthDataError,
    InvalidSexagenaryPositionError,
    MissingCalendarDataError,
    UnrecognizedStemError,
)


# ============================================================
# FUNDAMENTAL DATA STRUCTURES
# ============================================================

class Polarity(Enum):
    YANG = "yang"
    YIN = "yin"


class Element(Enum):
    WOOD = "wood"
    FIRE = "fire"
    EARTH = "earth"
    METAL = "metal"
    WATER = "water"

    @property
    def chinese(self) -> str:
        return ELEMENT_CHINESE[self]


ELEMENT_CHINESE = {
    Element.WOOD: "木",
    Element.FIRE: "火",
    Element.EARTH: "土",
    Element.METAL: "金",
    Element.WATER: "水",
}


@dataclass(frozen=True)
class HeavenlyStem:
    chinese: str
    pinyin: str
    element: Element
    polarity: Polarity
    index: int  # 0-9 in the cycle

    def __str__(self):
        return f"{self.pinyin} ({self.polarity.value} {self.element.value})"


@dataclass(frozen=True)
class EarthlyBranch:
    chinese: str
    pinyin: str
    animal: str
    element: Element  # primary/season element
    polarity: Polarity
    index: int  # 0-11 in the cycle
    hidden_stems: tuple[str, ...]  # [main_qi, middle_qi, residual_qi]

    @property
    def dominant_stem(self) -> str:
        return self.hidden_stems[0]

    def __str__(self):
        return f"{self.pinyin} ({self.animal})"


# ============================================================
# STEM AND BRANCH DEFINITIONS
# ============================================================

HEAVENLY_STEMS = (
    HeavenlyStem("甲", "Jia", Element.WOOD, Polarity.YANG, 0),
    HeavenlyStem("乙", "Yi", Element.WOOD, Polarity.YIN, 1),
    HeavenlyStem("丙", "Bing", Element.FIRE, Polarity.YANG, 2),
    HeavenlyStem("丁", "Ding", Element.FIRE, Polarity.YIN, 3),
    HeavenlyStem("戊", "Wu", Element.EARTH, Polarity.YANG, 4),
    HeavenlyStem("己", "Ji", Element.EARTH, Polarity.YIN, 5),
    HeavenlyStem("庚", "Geng", Element.METAL, Polarity.YANG, 6),
    HeavenlyStem("辛", "Xin", Element.METAL, Polarity.YIN, 7),
    HeavenlyStem("壬", "Ren", Element.WATER, Polarity.YANG, 8),
    HeavenlyStem("癸", "Gui", Element.WATER, Polarity.YIN, 9),
)

EARTHLY_BRANCHES = (
    EarthlyBranch("子", "Zi", "Rat", Element.WATER, Polarity.YANG, 0,
                  ("癸",)),
    EarthlyBranch("丑", "Chou", "Ox", Element.EARTH, Polarity.YIN, 1,
                  ("己", "癸", "辛")),
    EarthlyBranch("寅", "Yin", "Tiger", Element.WOOD, Polarity.YANG, 2,
                  ("甲", "丙", "戊")),
    EarthlyBranch("卯", "Mao", "Rabbit", Element.WOOD, Polarity.YIN, 3,
                  ("乙",)),
    EarthlyBranch("辰", "Chen", "Dragon", Element.EARTH, Polarity.YANG, 4,
                  ("戊", "乙", "癸")),
    EarthlyBranch("巳", "Si", "Snake", Element.FIRE, Polarity.YIN, 5,
                  ("丙", "戊")),
    EarthlyBranch("午", "Wu", "Horse", Element.FIRE, Polarity.YANG, 6,
                  ("丁", "己")),
    EarthlyBranch("未", "Wei", "Goat", Element.EARTH, Polarity.YIN, 7,
                  ("己", "乙", "丁")),
    EarthlyBranch("申", "Shen", "Monkey", Element.METAL, Polarity.YANG, 8,
                  ("庚", "壬", "戊")),
    EarthlyBranch("酉", "You", "Rooster", Element.METAL, Polarity.YIN, 9,
                  ("辛",)),
    EarthlyBranch("戌", "Xu", "Dog", Element.EARTH, Polarity.YANG, 10,
                  ("戊", "辛", "丁")),
    EarthlyBranch("亥", "Hai", "Pig", Element.WATER, Polarity.YIN, 11,
                  ("壬", "甲")),
)

# Lookup helpers
STEM_BY_CHINESE = {s.chinese: s for s in HEAVENLY_STEMS}
STEM_BY_PINYIN = {s.pinyin: s for s in HEAVENLY_STEMS}
BRANCH_BY_CHINESE = {b.chinese: b for b in EARTHLY_BRANCHES}

# Production cycle: Wood → Fire → Earth → Metal → Water → Wood
PRODUCTION_CYCLE = {
    Element.WOOD: Element.FIRE,
    Element.FIRE: Element.EARTH,
    Element.EARTH: Element.METAL,
    Element.METAL: Element.WATER,
    Element.WATER: Element.WOOD,
}

# Control cycle: Wood → Earth → Water → Fire → Metal → Wood
CONTROL_CYCLE = {
    Element.WOOD: Element.EARTH,
    Element.EARTH: Element.WATER,
    Element.WATER: Element.FIRE,
    Element.FIRE: Element.METAL,
    Element.METAL: Element.WOOD,
}

PRODUCED_BY = {produced: producer for producer, produced in PRODUCTION_CYCLE.items()}
CONTROLLED_BY = {controlled: controller for controller, controlled in CONTROL_CYCLE.items()}


def as_stem(value: Union["HeavenlyStem", str, None]) -> Optional[HeavenlyStem]:
    """Resolve a stem given as an object, a character or a pinyin name."""
    if isinstance(value, HeavenlyStem):
        return value
    if not value:
        return None
    return STEM_BY_CHINESE.get(value) or STEM_BY_PINYIN.get(value)


# ============================================================
# PILLARS AND THE SEXAGENARY CYCLE
# ============================================================

@dataclass(frozen=True)
class Pillar:
    stem: HeavenlyStem
    branch: EarthlyBranch

    def __post_init__(self):
        # Stem and branch advance together, so only same-parity pairs exist.
        if (self.stem.index - self.branch.index) % 2:
            raise InvalidSexagenaryPositionError(
                f"{self.stem.chinese}{self.branch.chinese} is not in the Jia Zi cycle"
            )

    @classmethod
    def from_ganzhi(cls, ganzhi: str) -> "Pillar":
        """Build a pillar from two-character text such as "庚辰"."""
        if not ganzhi or len(ganzhi) != 2:
            raise InvalidSexagenaryPositionError(f"Malformed ganzhi: {ganzhi!r}")
        stem = STEM_BY_CHINESE.get(ganzhi[0])
        if stem is None:
            raise UnrecognizedStemError(f"Unknown heavenly stem: {ganzhi[0]!r}")
        branch = BRANCH_BY_CHINESE.get(ganzhi[1])
        if branch is None:
            raise InvalidSexagenaryPositionError(f"Unknown earthly branch: {ganzhi[1]!r}")
        return cls(stem, branch)

    @property
    def ganzhi(self) -> str:
        return self.stem.chinese + self.branch.chinese

    def __str__(self):
        return f"{self.stem.pinyin} {self.branch.pinyin} ({self.stem.polarity.value} {self.stem.element.value} {self.branch.animal})"

    def to_dict(self):
        return {
            "ganzhi": self.ganzhi,
            "stem": {
                "chinese": self.stem.chinese,
                "pinyin": self.stem.pinyin,
                "element": self.stem.element.value,
                "polarity": self.stem.polarity.value,
            },
            "branch": {
                "chinese": self.branch.chinese,
                "pinyin": self.branch.pinyin,
                "animal": self.branch.animal,
                "element": self.branch.element.value,
                "hidden_stems": list(self.branch.hidden_stems),
            },
            "description": str(self),
        }


# The 60 Jia Zi: position i pairs stem i % 10 with branch i % 12.
JIAZI = tuple(
    HEAVENLY_STEMS[i % 10].chinese + EARTHLY_BRANCHES[i % 12].chinese
    for i in range(60)
)
JIAZI_INDEX = {ganzhi: i for i, ganzhi in enumerate(JIAZI)}


def pillar_at(position: int) -> Pillar:
    """Pillar at a cycle position; any integer is taken modulo 60."""
    position %= 60
    return Pillar(HEAVENLY_STEMS[position % 10], EARTHLY_BRANCHES[position % 12])


def cycle_position(pillar: Union[Pillar, str]) -> int:
    """Index 0-59 of a pillar (or ganzhi text) in the Jia Zi cycle."""
    ganzhi = pillar.ganzhi if isinstance(pillar, Pillar) else pillar
    position = JIAZI_INDEX.get(ganzhi)
    if position is None:
        raise InvalidSexagenaryPositionError(f"{ganzhi!r} is not in the Jia Zi cycle")
    return position


def step_pillar(pillar: Union[Pillar, str], steps: int) -> Pillar:
    """
    Move through the cycle from `pillar`.

    Positive steps go forward (甲子 → 乙丑), negative steps go backward.
    Stepping is computed from the absolute position each time, so repeated
    calls never drift.
    """
    return pillar_at(cycle_position(pillar) + steps)


# ============================================================
# TEN GODS (十神) RELATIONSHIP MAPPING
# ============================================================

class TenGod(Enum):
    RIVAL = "比肩"
    ROB_WEALTH = "劫財"
    EATING_GOD = "食神"
    HURTING_OFFICER = "傷官"
    DIRECT_WEALTH = "正財"
    INDIRECT_WEALTH = "偏財"
    DIRECT_OFFICER = "正官"
    SEVEN_KILLINGS = "七殺"
    DIRECT_RESOURCE = "正印"
    INDIRECT_RESOURCE = "偏印"

    @property
    def label(self) -> str:
        return self.name.replace("_", "-").title()


TEN_GODS = {
    # (relationship, same_polarity): god
    ("same", True): TenGod.RIVAL,
    ("same", False): TenGod.ROB_WEALTH,
    ("i_produce", True): TenGod.EATING_GOD,
    ("i_produce", False): TenGod.HURTING_OFFICER,
    ("i_control", True): TenGod.INDIRECT_WEALTH,
    ("i_control", False): TenGod.DIRECT_WEALTH,
    ("produces_me", True): TenGod.INDIRECT_RESOURCE,
    ("produces_me", False): TenGod.DIRECT_RESOURCE,
    ("controls_me", True): TenGod.SEVEN_KILLINGS,
    ("controls_me", False): TenGod.DIRECT_OFFICER,
}


def element_relationship(day_master_element: Element, other_element: Element) -> str:
    """Determine the elemental relationship from DM's perspective."""
    if day_master_element == other_element:
        return "same"
    elif PRODUCTION_CYCLE[day_master_element] == other_element:
        return "i_produce"
    elif CONTROL_CYCLE[day_master_element] == other_element:
        return "i_control"
    elif PRODUCED_BY[day_master_element] == other_element:
        return "produces_me"
    elif CONTROLLED_BY[day_master_element] == other_element:
        return "controls_me"
    else:
        raise ValueError(f"No valid relationship between {day_master_element} and {other_element}")


def ten_god(day_stem, other_stem) -> Optional[TenGod]:
    """
    Determine the Ten God relationship between the Day Master and another stem.

    Args:
        day_stem: the Day Master, as a HeavenlyStem, character or pinyin
        other_stem: the stem being evaluated, in any of the same forms

    Returns:
        The TenGod, or None when either stem is not recognised
    """
    day_master = as_stem(day_stem)
    other = as_stem(other_stem)
    if day_master is None or other is None:
        return None

    relationship = element_relationship(day_master.element, other.element)
    same_polarity = (day_master.polarity == other.polarity)
    return TEN_GODS[(relationship, same_polarity)]


def hidden_stem_gods(day_stem, branch: Union[EarthlyBranch, str]) -> list[Optional[TenGod]]:
    """Ten Gods of a branch's hidden stems, in hidden-stem order."""
    if not isinstance(branch, EarthlyBranch):
        branch = BRANCH_BY_CHINESE.get(branch)
        if branch is None:
            return []
    return [ten_god(day_stem, hidden) for hidden in branch.hidden_stems]


# ============================================================
# PILLAR COMPUTATION
# ============================================================

POSITIONS = ("year", "month", "day", "hour")


@dataclass(frozen=True)
class Chart:
    year: Pillar
    month: Pillar
    day: Pillar
    hour: Pillar

    @property
    def day_master(self) -> HeavenlyStem:
        return self.day.stem

    def pillars(self) -> dict[str, Pillar]:
        return {position: getattr(self, position) for position in POSITIONS}


def hour_slot(hour: int) -> int:
    """
    Map a clock hour to its double-hour (shi chen) branch index.

    23:00-00:59 = Zi (0), 01:00-02:59 = Chou (1), ... 21:00-22:59 = Hai (11)
    """
    if not 0 <= hour <= 23:
        raise InvalidBirthDataError(f"Hour must be within 0-23, got {hour}")
    return ((hour + 1) // 2) % 12


def hour_pillar(day_stem_index: int, hour: int) -> Pillar:
    """
    Compute the Hour Pillar using the Five Rats Escape (Wu Shu Dun) rule.

    Day stems pair up (Jia/Ji, Yi/Geng, Bing/Xin, Ding/Ren, Wu/Gui) and each
    pair starts its Zi hour two stems after the previous pair:
    Jia Zi, Bing Zi, Wu Zi, Geng Zi, Ren Zi.

    Args:
        day_stem_index: index of the day's heavenly stem (0-9)
        hour: hour in 24h format
    """
    slot = hour_slot(hour)
    stem_index = ((day_stem_index % 5) * 2 + slot) % 10
    return Pillar(HEAVENLY_STEMS[stem_index], EARTHLY_BRANCHES[slot])


def derive_chart(year_ganzhi: str, month_ganzhi: str, day_ganzhi: str, hour: int) -> Chart:
    """
    Assemble the four pillars from calendar ganzhi text and the birth hour.

    The year, month and day pillars come straight from the lunar calendar;
    only the hour pillar is computed here.
    """
    if not (year_ganzhi and month_ganzhi and day_ganzhi):
        raise MissingCalendarDataError("Calendar conversion returned incomplete ganzhi data")

    day_stem = STEM_BY_CHINESE.get(day_ganzhi[0])
    if day_stem is None:
        raise UnrecognizedStemError(f"Unknown day stem: {day_ganzhi[0]!r}")

    return Chart(
        year=Pillar.from_ganzhi(year_ganzhi),
        month=Pillar.from_ganzhi(month_ganzhi),
        day=Pillar.from_ganzhi(day_ganzhi),
        hour=hour_pillar(day_stem.index, hour),
    )


# ============================================================
# ELEMENT DISTRIBUTION ANALYSIS
# ============================================================

def tally_elements(chart: Chart) -> dict[Element, int]:
    """
    Count elements over the four visible stems.

    Branches and hidden stems are deliberately left out of this count.
    """
    counts = {e: 0 for e in Element}
    for pillar in chart.pillars().values():
        counts[pillar.stem.element] += 1
    return counts


def missing_elements(counts: dict[Element, int]) -> list[Element]:
    return [e for e in Element if counts.get(e, 0) == 0]


def favorable_element(day_stem, counts: dict[Element, int]) -> Element:
    """
    Simplified Day Master strength heuristic.

    Strength is the stem count of the Day Master's own element plus the
    element that produces it. Two or more means strong, and the element that
    controls the Day Master is favorable; otherwise the producing element is.
    Branches, hidden stems and the season are not considered.
    """
    day_master = as_stem(day_stem)
    if day_master is None:
        raise UnrecognizedStemError(f"Unknown day stem: {day_stem!r}")

    own = day_master.element
    resource = PRODUCED_BY[own]
    strength = counts.get(own, 0) + counts.get(resource, 0)
    if strength >= 2:
        return CONTROLLED_BY[own]
    return resource
