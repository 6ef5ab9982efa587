"""
Zodiac tables and degree arithmetic shared by the chart components.

Everything here is a read-only constant or a pure function of its
arguments, so it is safe to use from any number of concurrent requests.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class AspectDefinition:
    """Definition of a major aspect with a single natal orb."""
    angle: float
    name: str
    symbol: str
    orb: float


class ChartConfig:
    """Shared configuration for chart calculations."""

    SIGNS = [
        {'name': 'Aries', 'symbol': '♈'},
        {'name': 'Taurus', 'symbol': '♉'},
        {'name': 'Gemini', 'symbol': '♊'},
        {'name': 'Cancer', 'symbol': '♋'},
        {'name': 'Leo', 'symbol': '♌'},
        {'name': 'Virgo', 'symbol': '♍'},
        {'name': 'Libra', 'symbol': '♎'},
        {'name': 'Scorpio', 'symbol': '♏'},
        {'name': 'Sagittarius', 'symbol': '♐'},
        {'name': 'Capricorn', 'symbol': '♑'},
        {'name': 'Aquarius', 'symbol': '♒'},
        {'name': 'Pisces', 'symbol': '♓'},
    ]

    SIGN_NAMES = [sign['name'] for sign in SIGNS]

    # Priority order: widest orbs first, first match wins.
    ASPECTS = [
        AspectDefinition(0, 'Conjunction', '☌', 8),
        AspectDefinition(180, 'Opposition', '☍', 8),
        AspectDefinition(120, 'Trine', '△', 8),
        AspectDefinition(90, 'Square', '□', 8),
        AspectDefinition(60, 'Sextile', '⚹', 6),
    ]

    STRONG_ORB = 3.0

    # Derived mirror points never take part in aspects.
    ASPECT_EXCLUDED_KEYS = frozenset({'southnode'})

    HOUSE_SYSTEMS = {
        'Placidus': b'P',
        'Koch': b'K',
        'Equal (ASC)': b'A',
        'Equal (MC)': b'E',
        'Whole Sign': b'W',
        'Campanus': b'C',
        'Regiomontanus': b'R',
        'Porphyry': b'O',
        'Morinus': b'M',
        'Alcabitius': b'B',
        'Topocentric': b'T',
    }

    # Canonical body key -> display name used in text output.
    BODY_NAMES = {
        'sun': 'Sun',
        'moon': 'Moon',
        'mercury': 'Mercury',
        'venus': 'Venus',
        'mars': 'Mars',
        'jupiter': 'Jupiter',
        'saturn': 'Saturn',
        'uranus': 'Uranus',
        'neptune': 'Neptune',
        'pluto': 'Pluto',
        'chiron': 'Chiron',
        'northnode': 'North Node',
        'southnode': 'South Node',
        'lilith': 'Lilith',
        'midheaven': 'Midheaven',
        'ascendant': 'Ascendant',
    }

    BODY_ORDER = [
        'sun', 'moon', 'mercury', 'venus', 'mars', 'jupiter', 'saturn',
        'uranus', 'neptune', 'pluto', 'chiron', 'northnode', 'southnode', 'lilith',
    ]

    # Long-form names and aliases seen in provider output.
    NAME_ALIASES = {
        'sun': 'sun',
        'moon': 'moon',
        'mercury': 'mercury',
        'venus': 'venus',
        'mars': 'mars',
        'jupiter': 'jupiter',
        'saturn': 'saturn',
        'uranus': 'uranus',
        'neptune': 'neptune',
        'pluto': 'pluto',
        'chiron': 'chiron',
        'north node': 'northnode',
        'northnode': 'northnode',
        'true node': 'northnode',
        'truenode': 'northnode',
        'mean node': 'northnode',
        'meannode': 'northnode',
        'south node': 'southnode',
        'southnode': 'southnode',
        'lilith': 'lilith',
        'mean lilith': 'lilith',
        'meanlilith': 'lilith',
        'black moon lilith': 'lilith',
        'ascendant': 'ascendant',
        'asc': 'ascendant',
        'midheaven': 'midheaven',
        'mc': 'midheaven',
    }


def normalize_degrees(deg: float) -> float:
    """Normalize degrees to 0-360 range."""
    result = deg % 360
    # -1e-17 % 360 == 360.0 in floating point
    return 0.0 if result >= 360 else result


def angular_distance(pos1: float, pos2: float) -> float:
    """
    Calculate the shortest angular distance between two positions.
    Always returns a positive value 0-180.
    """
    diff = abs(normalize_degrees(pos1) - normalize_degrees(pos2))
    return min(diff, 360 - diff)


def sign_index(longitude: float) -> int:
    return int(math.floor(normalize_degrees(longitude) / 30)) % 12


def degree_in_sign(longitude: float) -> float:
    return normalize_degrees(longitude) % 30


def sign_from_name(name: str) -> Optional[int]:
    """Zero-based index of a sign name (case-insensitive), or None."""
    lowered = name.strip().lower()
    for index, sign_name in enumerate(ChartConfig.SIGN_NAMES):
        if sign_name.lower() == lowered:
            return index
    return None


def canonical_body_key(name: str) -> Optional[str]:
    """Map a long-form body or point name to its canonical key."""
    return ChartConfig.NAME_ALIASES.get(' '.join(name.strip().lower().split()))


def split_dms(longitude: float) -> Tuple[int, int, int, float]:
    """
    Split an absolute longitude into (sign index, degrees, minutes, seconds).

    Seconds are rounded to a tenth and carried upwards, so the parts always
    describe a valid position (never 60.0 seconds or 30 degrees).
    """
    tenths = int(round(normalize_degrees(longitude) * 36000)) % (360 * 36000)
    index, rest = divmod(tenths, 30 * 36000)
    degrees, rest = divmod(rest, 36000)
    minutes, rest = divmod(rest, 600)
    return index, degrees, minutes, rest / 10.0


def format_position(longitude: float) -> str:
    """Format as `D° Sign M' S.s"`, the grammar the normalizer reads back."""
    index, degrees, minutes, seconds = split_dms(longitude)
    return f"{degrees}° {ChartConfig.SIGN_NAMES[index]} {minutes}' {seconds:.1f}\""


def format_short(longitude: float) -> str:
    index = sign_index(longitude)
    degree = degree_in_sign(longitude)
    deg_int = int(degree)
    minutes = int((degree - deg_int) * 60)
    return f"{deg_int}°{minutes:02d}' {ChartConfig.SIGN_NAMES[index]}"


def dms_to_degrees(degrees: float, minutes: float, seconds: float) -> float:
    return degrees + minutes / 60.0 + seconds / 3600.0

