"""
Chart orchestration: validated input, civil time, positions, normalized chart.

When the position provider is unavailable the service substitutes a
placeholder chart. The placeholder is flagged through
`ChartResult.is_placeholder` and `angles_source == "placeholder"` so it can
never pass for a calculated chart.
"""

import logging
from typing import Optional

from chart_text import render_chart_text
from exceptions import CalculationUnavailable
from inputs import validate_birth_input
from models import BirthInput, CelestialBody, ChartResult, GeoLocation, NatalChartResponse, TimeZoneInfo
from natal import CivilInstant, PositionCalculator
from normalizer import build_chart, normalize
from timezones import CivilTimeResolver, default_civil_time_resolver

logger = logging.getLogger(__name__)

# Sign offsets from the Sun for Mercury through Pluto
PLACEHOLDER_SIGN_OFFSETS = [2, 1, 4, 6, 8, 10, 11]
PLACEHOLDER_PLANETS = ['mercury', 'venus', 'mars', 'jupiter', 'saturn', 'uranus', 'neptune', 'pluto']


def placeholder_chart(birth: BirthInput) -> ChartResult:
    """
    A schematic chart built from the calendar alone.

    The Sun sits in the sign it holds early in the birth month, the Moon
    three signs on and the Ascendant is picked from the birth hour. Motion is
    unknown for every body and there are no aspects.
    """
    sun_index = (birth.month + 8) % 12
    planets = {
        'sun': CelestialBody(key='sun', longitude=sun_index * 30 + birth.day),
        'moon': CelestialBody(key='moon', longitude=((sun_index + 3) % 12) * 30 + 15),
    }
    for index, key in enumerate(PLACEHOLDER_PLANETS):
        offset = PLACEHOLDER_SIGN_OFFSETS[index % len(PLACEHOLDER_SIGN_OFFSETS)]
        sign = (sun_index + offset) % 12
        planets[key] = CelestialBody(key=key, longitude=sign * 30 + (index * 5) % 30)

    ascendant = ((birth.hour + 18) % 12) * 30 + 15
    chart = build_chart(
        ascendant=ascendant,
        planets=planets,
        angles_source='placeholder',
        is_placeholder=True,
    )
    return chart.model_copy(update={'aspects': []})


class ChartService:
    """Runs one chart request through resolver, calculator and normalizer."""

    def __init__(self,
                 civil_time_resolver: Optional[CivilTimeResolver] = None,
                 calculator: Optional[PositionCalculator] = None):
        self.civil_time_resolver = civil_time_resolver or default_civil_time_resolver()
        self.calculator = calculator or PositionCalculator()

    def calculate(self,
                  birth_date: str,
                  birth_time: str,
                  location: str,
                  house_system: Optional[str] = None) -> NatalChartResponse:
        birth = validate_birth_input(birth_date, birth_time, location)
        geo, timezone = self.civil_time_resolver.resolve(birth.location, birth.local_datetime())
        logger.info("Resolved %r to %s (%.4f, %.4f), %s",
                    birth.location, geo.formatted_address, geo.latitude, geo.longitude, timezone.name)

        instant = CivilInstant.from_birth(birth, timezone.total_offset_minutes)
        chart = self.chart_for(birth, instant, geo, house_system)
        text = render_chart_text(chart, preamble=self._preamble(birth, geo, timezone, chart))
        return NatalChartResponse(birth=birth, location=geo, timezone=timezone, chart=chart, text=text)

    def chart_for(self,
                  birth: BirthInput,
                  instant: CivilInstant,
                  geo: GeoLocation,
                  house_system: Optional[str] = None) -> ChartResult:
        try:
            raw = self.calculator.calculate(instant, geo.latitude, geo.longitude, house_system)
            return normalize(raw)
        except CalculationUnavailable as exc:
            logger.warning("Calculation unavailable for %s: %s; returning placeholder chart",
                           geo.formatted_address, exc)
            return placeholder_chart(birth)

    @staticmethod
    def _preamble(birth: BirthInput, geo: GeoLocation, timezone: TimeZoneInfo, chart: ChartResult) -> list:
        lines = [
            f"Date: {birth.day:02d}.{birth.month:02d}.{birth.year} "
            f"{birth.hour:02d}:{birth.minute:02d}:{birth.second:02d}",
            f"Location: {geo.formatted_address} ({geo.latitude:.4f}, {geo.longitude:.4f})",
            f"Time zone: {timezone.name}",
        ]
        if chart.is_placeholder:
            lines.append("Placeholder chart: position data unavailable")
        return lines
