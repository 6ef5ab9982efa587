"""
Astronomical position calculation using Swiss Ephemeris.

The provider returns raw ecliptic longitudes and daily speeds for the Sun,
Moon, planets, lunar node and Lilith, plus the Ascendant/Midheaven pair when
the house routine succeeds. PositionCalculator wraps any provider, turns
provider failures into CalculationUnavailable and fills absent angles from
a closed-form approximation.
"""

import logging
import math
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Tuple

import pytz
import swisseph as swe
from pydantic import ValidationError

from exceptions import CalculationUnavailable
from models import BirthInput, NodeTypeEnum, ObjectResult, RawAngles
from settings import Settings, get_settings
from zodiac import ChartConfig, normalize_degrees

logger = logging.getLogger(__name__)

J2000 = 2451545.0


@dataclass(frozen=True)
class CivilInstant:
    """Local civil time plus the UTC offset already resolved for it."""
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int = 0
    utc_offset_minutes: int = 0

    def __post_init__(self):
        # Raises ValueError for impossible calendar values
        self.local_datetime()

    @classmethod
    def from_birth(cls, birth: BirthInput, utc_offset_minutes: int) -> "CivilInstant":
        return cls(birth.year, birth.month, birth.day, birth.hour, birth.minute,
                   birth.second, utc_offset_minutes)

    def local_datetime(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    def to_utc(self) -> datetime:
        utc = self.local_datetime() - timedelta(minutes=self.utc_offset_minutes)
        return utc.replace(tzinfo=pytz.UTC)


def julian_day(dt: datetime) -> float:
    """Julian Day (UT) of a UTC datetime."""
    hour_decimal = dt.hour + dt.minute / 60.0 + dt.second / 3600.0 + dt.microsecond / 3600000000.0
    return swe.julday(dt.year, dt.month, dt.day, hour_decimal)


def local_sidereal_time(jd: float, longitude: float) -> float:
    """Local sidereal time in hours, from the IAU 1982 GMST polynomial."""
    d = jd - J2000
    t = d / 36525.0
    gmst = 280.46061837 + 360.98564736629 * d + 0.000387933 * t * t - t ** 3 / 38710000.0
    return normalize_degrees(gmst + longitude) / 15.0


def closed_form_angles(jd: float, latitude: float) -> RawAngles:
    """
    Equal-house approximation of the angles for providers without them.

    RAMC is taken as the fractional part of the Julian Day times 360; this
    ignores longitude and is only a stand-in when no angle data exists.
    """
    ramc = (jd - math.floor(jd)) * 360.0
    ascendant = normalize_degrees(ramc + 90.0 + 15.0 * math.tan(math.radians(latitude)))
    midheaven = normalize_degrees(ramc + 180.0)
    return RawAngles(ascendant=ascendant, midheaven=midheaven)


class SwissEphemerisProvider:
    """Raw positions from pyswisseph (Moshier unless .se1 files are available)."""

    BODIES = {
        'sun': swe.SUN,
        'moon': swe.MOON,
        'mercury': swe.MERCURY,
        'venus': swe.VENUS,
        'mars': swe.MARS,
        'jupiter': swe.JUPITER,
        'saturn': swe.SATURN,
        'uranus': swe.URANUS,
        'neptune': swe.NEPTUNE,
        'pluto': swe.PLUTO,
    }

    # Need ephemeris files; skipped when the data is missing
    OPTIONAL_BODIES = {
        'chiron': swe.CHIRON,
        'lilith': swe.MEAN_APOG,
    }

    def __init__(self, ephemeris_path: Optional[str] = None,
                 node_type: NodeTypeEnum = NodeTypeEnum.TRUE):
        if node_type not in [t.value for t in NodeTypeEnum]:
            raise ValueError(f"Unknown node type: {node_type}")
        self.node_type = NodeTypeEnum(node_type)
        self._use_moshier = True
        self._init_ephemeris(ephemeris_path)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "SwissEphemerisProvider":
        settings = settings or get_settings()
        return cls(ephemeris_path=settings.EPHEMERIS_PATH, node_type=settings.NODE_TYPE)

    def _init_ephemeris(self, ephemeris_path: Optional[str]) -> None:
        if not ephemeris_path or not os.path.isdir(ephemeris_path):
            return
        try:
            files = os.listdir(ephemeris_path)
        except OSError as exc:
            logger.warning("Cannot read ephemeris directory %s: %s", ephemeris_path, exc)
            return
        if any(f.endswith('.se1') for f in files):
            swe.set_ephe_path(ephemeris_path)
            self._use_moshier = False
            logger.info("Using Swiss Ephemeris files from %s", ephemeris_path)

    def _get_calc_flags(self) -> int:
        flags = swe.FLG_MOSEPH if self._use_moshier else swe.FLG_SWIEPH
        return flags | swe.FLG_SPEED

    def _calculate_body(self, jd: float, body_id: int, flags: int) -> Tuple[float, float]:
        result, _ = swe.calc_ut(jd, body_id, flags)
        return result[0], result[3]

    def _calculate_angles(self, jd: float, latitude: float, longitude: float,
                          house_system: str) -> Optional[RawAngles]:
        code = ChartConfig.HOUSE_SYSTEMS[house_system]
        try:
            _, ascmc = swe.houses_ex(jd, latitude, longitude, code)
        except swe.Error as exc:
            logger.warning("House routine %s failed at latitude %.4f: %s", house_system, latitude, exc)
            return None
        return RawAngles(ascendant=ascmc[0], midheaven=ascmc[1])

    def calculate(self, instant: CivilInstant, latitude: float, longitude: float,
                  house_system: str = 'Placidus') -> ObjectResult:
        jd = julian_day(instant.to_utc())
        flags = self._get_calc_flags()
        longitudes = {}
        speeds = {}

        for key, body_id in self.BODIES.items():
            longitudes[key], speeds[key] = self._calculate_body(jd, body_id, flags)

        node_id = swe.TRUE_NODE if self.node_type is NodeTypeEnum.TRUE else swe.MEAN_NODE
        longitudes['northnode'], speeds['northnode'] = self._calculate_body(jd, node_id, flags)

        for key, body_id in self.OPTIONAL_BODIES.items():
            try:
                longitudes[key], speeds[key] = self._calculate_body(jd, body_id, flags)
            except swe.Error as exc:
                logger.debug("%s unavailable: %s", key, exc)

        return ObjectResult(
            julian_day=jd,
            longitudes=longitudes,
            speeds=speeds,
            angles=self._calculate_angles(jd, latitude, longitude, house_system),
        )


class PositionCalculator:
    """Validated access to a position provider, with the angle fallback applied."""

    def __init__(self, provider=None, house_system: Optional[str] = None):
        settings = get_settings()
        self.provider = provider if provider is not None else SwissEphemerisProvider.from_settings(settings)
        self.house_system = house_system or settings.HOUSE_SYSTEM

    def calculate(self, instant: CivilInstant, latitude: float, longitude: float,
                  house_system: Optional[str] = None) -> ObjectResult:
        if not -90 <= latitude <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise ValueError("Longitude must be between -180 and 180")
        house_system = house_system or self.house_system
        if house_system not in ChartConfig.HOUSE_SYSTEMS:
            raise ValueError(f"Unknown house system: {house_system}")

        try:
            raw = self.provider.calculate(instant, latitude, longitude, house_system)
        except CalculationUnavailable:
            raise
        except Exception as exc:
            logger.warning("Position provider %s failed: %s", type(self.provider).__name__, exc)
            raise CalculationUnavailable(f"Position provider failed: {exc}") from exc

        raw = self._validate(raw)

        if raw.angles is None:
            lst = local_sidereal_time(raw.julian_day, longitude)
            angles = closed_form_angles(raw.julian_day, latitude)
            logger.info("Provider returned no angles; closed-form ASC %.4f MC %.4f (LST %.4fh)",
                        angles.ascendant, angles.midheaven, lst)
            raw = raw.model_copy(update={
                'angles': angles,
                'angles_source': 'closed-form',
                'sidereal_time': lst,
            })
        return raw

    @staticmethod
    def _validate(raw) -> ObjectResult:
        if not isinstance(raw, ObjectResult):
            try:
                raw = ObjectResult.model_validate(raw)
            except ValidationError as exc:
                raise CalculationUnavailable(f"Malformed provider result: {exc}") from exc

        if 'sun' not in raw.longitudes:
            raise CalculationUnavailable("Provider result has no Sun position")
        numbers = [raw.julian_day, *raw.longitudes.values(), *raw.speeds.values()]
        if raw.angles is not None:
            numbers.extend([raw.angles.ascendant, raw.angles.midheaven])
        if not all(math.isfinite(n) for n in numbers):
            raise CalculationUnavailable("Provider result contains non-finite numbers")
        return raw


if __name__ == "__main__":
    from chart_text import render_chart_text
    from normalizer import normalize

    # Miami, 8 Oct 1995 19:56 EDT
    instant = CivilInstant(1995, 10, 8, 19, 56, utc_offset_minutes=-240)
    calculator = PositionCalculator()
    raw = calculator.calculate(instant, 25.7617, -80.1918)
    chart = normalize(raw)

    print("=" * 60)
    print("NATAL CHART")
    print("=" * 60)
    print(render_chart_text(chart))
    print()
    print("Aspects:")
    for aspect in chart.aspects:
        print(f"  {aspect.planet1} {aspect.symbol} {aspect.planet2}  orb {aspect.orb:.2f}° ({aspect.strength.value})")
