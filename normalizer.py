"""
Normalization of raw astronomical results into ChartResult.

Raw results come in four shapes: provider ObjectResult, a plain mapping of
body name to longitude, sectioned text with a `Planets:` header and plain
text with one position per line. `sniff` picks the shape from cheap
structural markers and exactly one normalizer handles it.

Text grammar:

    Julian Day: 2450000.5
    Sun          15° Libra 3' 12.0" R
    house  1     19° Libra 11' 24.0"

A trailing `R` marks retrograde and `D` direct; no marker means unknown
motion. Lines that fit neither pattern are skipped.
"""

import logging
import math
import re
from numbers import Real
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from pydantic import ValidationError

from aspects import calculate_aspects
from exceptions import CalculationUnavailable
from models import CelestialBody, ChartResult, HouseCusp, ObjectResult
from zodiac import canonical_body_key, dms_to_degrees, normalize_degrees, sign_from_name

logger = logging.getLogger(__name__)

RAW_OBJECT = "object"
RAW_MAPPING = "mapping"
RAW_SECTIONED_TEXT = "sectioned-text"
RAW_PLAIN_TEXT = "plain-text"

SECTION_MARKER = re.compile(r'^\s*planets\s*:', re.IGNORECASE | re.MULTILINE)
JULIAN_DAY_LINE = re.compile(r'^\s*julian\s+day\s*:?\s*([-+]?\d+(?:\.\d+)?)\s*$', re.IGNORECASE)
HOUSE_LINE = re.compile(r'^\s*house\s+(\d{1,2})\s*:?\s+(.*)$', re.IGNORECASE)
BODY_LINE = re.compile(r'^\s*([A-Za-z](?:[A-Za-z ]*[A-Za-z])?)\s*:?\s*([-+]?\d.*)$')
DMS_POSITION = re.compile(
    r"^(\d{1,2})\s*°\s*([A-Za-z]+)\s+(\d{1,2})\s*'\s*(\d{1,2}(?:\.\d+)?)\s*\"?(?:\s*([RD])\b)?(?:\s.*)?$"
)
DMS_SHAPE = re.compile(r"[°']")
DECIMAL_POSITION = re.compile(r'(\d{1,3}(?:\.\d+)?)\s*([RD])?')


def equal_house_cusps(ascendant: float) -> Dict[int, HouseCusp]:
    """Twelve cusps at 30° steps from the Ascendant."""
    return {
        n: HouseCusp(house=n, longitude=normalize_degrees(ascendant + (n - 1) * 30))
        for n in range(1, 13)
    }


def build_chart(ascendant: float,
                planets: Dict[str, CelestialBody],
                houses: Optional[Dict[int, float]] = None,
                julian_day: Optional[float] = None,
                angles_source: str = "provider",
                missing_sections: Optional[list] = None,
                is_placeholder: bool = False) -> ChartResult:
    """Assemble a ChartResult, synthesizing any house the source did not give."""
    cusps = equal_house_cusps(ascendant)
    for number, longitude in (houses or {}).items():
        if number != 1:
            cusps[number] = HouseCusp(house=number, longitude=longitude)
    missing_sections = list(missing_sections or [])
    return ChartResult(
        julian_day=julian_day,
        ascendant=CelestialBody(key='ascendant', longitude=ascendant),
        planets=planets,
        houses=cusps,
        aspects=calculate_aspects(planets),
        angles_source=angles_source,
        is_placeholder=is_placeholder,
        partial=bool(missing_sections),
        missing_sections=missing_sections,
    )


def sniff(raw: Any) -> str:
    """Name the raw shape without trying to parse it."""
    if isinstance(raw, ObjectResult):
        return RAW_OBJECT
    if isinstance(raw, Mapping):
        return RAW_OBJECT if 'longitudes' in raw else RAW_MAPPING
    if isinstance(raw, str):
        return RAW_SECTIONED_TEXT if SECTION_MARKER.search(raw) else RAW_PLAIN_TEXT
    raise CalculationUnavailable(f"Unsupported raw result type: {type(raw).__name__}")


# Object path
def normalize_object(raw) -> ChartResult:
    if not isinstance(raw, ObjectResult):
        try:
            raw = ObjectResult.model_validate(raw)
        except ValidationError as exc:
            raise CalculationUnavailable(f"Malformed object result: {exc}") from exc
    if raw.angles is None:
        raise CalculationUnavailable("Provider result carries no angles")

    planets = {}
    for name, longitude in raw.longitudes.items():
        key = canonical_body_key(name)
        if key is None:
            logger.debug("Skipping unknown body %r", name)
            continue
        speed = raw.speeds.get(name)
        planets[key] = CelestialBody(
            key=key,
            longitude=longitude,
            retrograde=None if speed is None else speed < 0,
        )
        logger.debug("%s at %.6f (speed %s)", key, longitude, speed)

    node = planets.get('northnode')
    if node is not None and 'southnode' not in planets:
        planets['southnode'] = CelestialBody(
            key='southnode',
            longitude=node.longitude + 180,
            retrograde=node.retrograde,
        )
    planets['midheaven'] = CelestialBody(key='midheaven', longitude=raw.angles.midheaven)

    return build_chart(
        ascendant=raw.angles.ascendant,
        planets=planets,
        julian_day=raw.julian_day,
        angles_source=raw.angles_source,
    )


# Mapping path
def _finite(value) -> Optional[float]:
    if isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    return None


def _mapping_entry(value) -> Optional[Tuple[float, Optional[bool]]]:
    """(longitude, retrograde) from a float or a {longitude, speed|retrograde} dict."""
    if isinstance(value, Real) and not isinstance(value, bool):
        return float(value), None
    if isinstance(value, Mapping):
        longitude = value.get('longitude')
        if not isinstance(longitude, Real) or isinstance(longitude, bool):
            return None
        retrograde = value.get('retrograde')
        speed = value.get('speed')
        if retrograde is None and isinstance(speed, Real):
            retrograde = speed < 0
        return float(longitude), retrograde
    return None


def normalize_mapping(raw: Mapping) -> ChartResult:
    ascendant = None
    planets = {}
    for name, value in raw.items():
        if name in ('julian_day', 'houses'):
            continue
        key = canonical_body_key(str(name))
        entry = _mapping_entry(value)
        if key is None or entry is None or not math.isfinite(entry[0]):
            logger.debug("Skipping mapping entry %r", name)
            continue
        longitude, retrograde = entry
        if key == 'ascendant':
            ascendant = longitude
        else:
            planets[key] = CelestialBody(key=key, longitude=longitude, retrograde=retrograde)

    houses = {}
    for number, longitude in (raw.get('houses') or {}).items():
        if not str(number).isdigit():
            continue
        number = int(number)
        longitude = _finite(longitude)
        if 1 <= number <= 12 and longitude is not None:
            houses[number] = longitude
    if 1 in houses:
        ascendant = houses[1]
    if ascendant is None:
        raise CalculationUnavailable("Mapping has neither an Ascendant nor a first house cusp")

    julian_day = _finite(raw.get('julian_day'))
    if julian_day is None and raw.get('julian_day') is not None:
        logger.debug("Ignoring non-numeric Julian Day %r", raw['julian_day'])

    missing = []
    if not planets:
        missing.append('planets')
    if len(houses) < 12:
        missing.append('houses')
    return build_chart(
        ascendant=ascendant,
        planets=planets,
        houses=houses,
        julian_day=julian_day,
        angles_source='mapping',
        missing_sections=missing,
    )


# Text path
def parse_position(text: str) -> Optional[Tuple[float, Optional[bool]]]:
    """
    Longitude and motion flag from the text after a name or house prefix.

    The DMS form is tried first and may be followed by free text after the
    motion marker. Otherwise the whole remainder must be a single decimal in
    [0, 360) with an optional marker.
    """
    text = text.strip()
    match = DMS_POSITION.match(text)
    if match:
        degrees, sign_name, minutes, seconds, marker = match.groups()
        index = sign_from_name(sign_name)
        degrees, minutes, seconds = int(degrees), int(minutes), float(seconds)
        if index is None or degrees >= 30 or minutes >= 60 or seconds >= 60:
            return None
        longitude = index * 30 + dms_to_degrees(degrees, minutes, seconds)
        return normalize_degrees(longitude), _motion(marker)

    if DMS_SHAPE.search(text):
        return None
    match = DECIMAL_POSITION.fullmatch(text)
    if match is None:
        return None
    longitude = float(match.group(1))
    if not 0 <= longitude < 360:
        return None
    return longitude, _motion(match.group(2))


def _motion(marker: Optional[str]) -> Optional[bool]:
    if marker is None:
        return None
    return marker == 'R'


def normalize_text(raw: str) -> ChartResult:
    julian_day = None
    ascendant_line = None
    planets = {}
    houses = {}

    for line in raw.splitlines():
        if not line.strip():
            continue

        match = JULIAN_DAY_LINE.match(line)
        if match:
            julian_day = float(match.group(1))
            continue

        match = HOUSE_LINE.match(line)
        if match:
            number = int(match.group(1))
            position = parse_position(match.group(2))
            if 1 <= number <= 12 and position is not None:
                houses[number] = position[0]
            else:
                logger.debug("Skipping house line: %r", line)
            continue

        match = BODY_LINE.match(line)
        key = canonical_body_key(match.group(1)) if match else None
        position = parse_position(match.group(2)) if key else None
        if position is None:
            logger.debug("Skipping line: %r", line)
            continue

        longitude, retrograde = position
        if key == 'ascendant':
            ascendant_line = longitude
        else:
            planets[key] = CelestialBody(key=key, longitude=longitude, retrograde=retrograde)

    if 1 in houses:
        ascendant = houses[1]
    elif ascendant_line is not None:
        ascendant = ascendant_line
    else:
        raise CalculationUnavailable("Text has neither an Ascendant nor a first house cusp")

    missing = []
    if not planets:
        missing.append('planets')
    if len(houses) < 12:
        missing.append('houses')
    if missing:
        logger.info("Partial chart text, missing: %s", ", ".join(missing))

    return build_chart(
        ascendant=ascendant,
        planets=planets,
        houses=houses,
        julian_day=julian_day,
        angles_source='text',
        missing_sections=missing,
    )


NORMALIZERS: Dict[str, Callable[[Any], ChartResult]] = {
    RAW_OBJECT: normalize_object,
    RAW_MAPPING: normalize_mapping,
    RAW_SECTIONED_TEXT: normalize_text,
    RAW_PLAIN_TEXT: normalize_text,
}


def normalize(raw: Any) -> ChartResult:
    """Normalize any supported raw result into a ChartResult."""
    kind = sniff(raw)
    logger.debug("Normalizing %s result", kind)
    return NORMALIZERS[kind](raw)
