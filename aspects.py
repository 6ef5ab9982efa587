"""Pairwise aspect classification between chart points."""

from itertools import combinations
from typing import Mapping, Optional, Tuple

from models import Aspect, CelestialBody, StrengthEnum
from zodiac import AspectDefinition, ChartConfig, angular_distance


def classify_separation(separation: float) -> Optional[Tuple[AspectDefinition, float]]:
    """First aspect in the table whose orb covers the separation, with the observed orb."""
    for definition in ChartConfig.ASPECTS:
        orb = abs(separation - definition.angle)
        if orb <= definition.orb:
            return definition, orb
    return None


def classify_pair(key1: str, longitude1: float, key2: str, longitude2: float) -> Optional[Aspect]:
    match = classify_separation(angular_distance(longitude1, longitude2))
    if match is None:
        return None
    definition, orb = match
    return Aspect(
        planet1=key1,
        planet2=key2,
        aspect=definition.name,
        symbol=definition.symbol,
        angle=definition.angle,
        orb=round(orb, 4),
        strength=StrengthEnum.STRONG if orb < ChartConfig.STRONG_ORB else StrengthEnum.MODERATE,
    )


def calculate_aspects(planets: Mapping[str, CelestialBody]) -> list[Aspect]:
    """
    Classify every unordered pair of bodies.

    Keys listed in ChartConfig.ASPECT_EXCLUDED_KEYS are left out; pairs
    outside every orb produce nothing.
    """
    eligible = [(key, body) for key, body in planets.items()
                if key not in ChartConfig.ASPECT_EXCLUDED_KEYS]
    aspects = []
    for (key1, body1), (key2, body2) in combinations(eligible, 2):
        aspect = classify_pair(key1, body1.longitude, key2, body2.longitude)
        if aspect is not None:
            aspects.append(aspect)
    return aspects
