"""Human-readable Planets/Houses rendering in the grammar the normalizer reads."""

from typing import Iterable, Optional

from models import CelestialBody, ChartResult
from zodiac import ChartConfig, format_position

NAME_WIDTH = 12


def _motion_marker(body: CelestialBody) -> str:
    if body.retrograde is None:
        return ""
    return " R" if body.retrograde else " D"


def _line(label: str, longitude: float, marker: str = "") -> str:
    return f"{label.ljust(NAME_WIDTH)} {format_position(longitude)}{marker}"


def render_chart_text(chart: ChartResult, preamble: Optional[Iterable[str]] = None) -> str:
    """
    Render a chart as text.

    Bodies follow ChartConfig.BODY_ORDER; keys outside the known name table
    are not rendered. `R` marks retrograde and `D` direct motion; unknown
    motion carries no marker.
    """
    lines = list(preamble or [])
    if chart.julian_day is not None:
        lines.append(f"Julian Day: {chart.julian_day}")
    if lines:
        lines.append("")

    lines.append("Planets:")
    for key in ChartConfig.BODY_ORDER:
        body = chart.planets.get(key)
        if body is not None:
            lines.append(_line(ChartConfig.BODY_NAMES[key], body.longitude, _motion_marker(body)))

    lines.append("")
    lines.append("Houses:")
    lines.append(_line(ChartConfig.BODY_NAMES['ascendant'], chart.ascendant.longitude))
    midheaven = chart.planets.get('midheaven')
    if midheaven is not None:
        lines.append(_line(ChartConfig.BODY_NAMES['midheaven'], midheaven.longitude, _motion_marker(midheaven)))
    for number in range(1, 13):
        lines.append(_line(f"house {number:2}", chart.houses[number].longitude))

    return "\n".join(lines) + "\n"
