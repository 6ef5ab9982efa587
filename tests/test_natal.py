import math
from datetime import datetime

import pytest
import pytz

from exceptions import CalculationUnavailable
from models import NodeTypeEnum, ObjectResult, RawAngles
from natal import (
    CivilInstant,
    PositionCalculator,
    SwissEphemerisProvider,
    closed_form_angles,
    julian_day,
    local_sidereal_time,
)
from settings import Settings


def test_civil_instant_to_utc():
    instant = CivilInstant(1995, 10, 8, 19, 56, utc_offset_minutes=-240)
    assert instant.to_utc() == datetime(1995, 10, 8, 23, 56, tzinfo=pytz.UTC)


def test_civil_instant_crosses_midnight():
    instant = CivilInstant(2000, 1, 1, 2, 0, utc_offset_minutes=330)
    assert instant.to_utc() == datetime(1999, 12, 31, 20, 30, tzinfo=pytz.UTC)


def test_civil_instant_rejects_impossible_date():
    with pytest.raises(ValueError):
        CivilInstant(2001, 2, 29, 12, 0)


def test_julian_day_j2000():
    assert julian_day(datetime(2000, 1, 1, 12, 0, tzinfo=pytz.UTC)) == pytest.approx(2451545.0)


def test_closed_form_angles_equator():
    angles = closed_form_angles(2451545.25, 0.0)
    # frac 0.25 -> RAMC 90
    assert angles.ascendant == pytest.approx(180.0)
    assert angles.midheaven == pytest.approx(270.0)


def test_closed_form_angles_latitude_term():
    angles = closed_form_angles(2451545.0, 45.0)
    assert angles.ascendant == pytest.approx(105.0)
    assert angles.midheaven == pytest.approx(180.0)


def test_local_sidereal_time_at_j2000():
    # GMST at J2000.0 is 18.697374558 h
    assert local_sidereal_time(2451545.0, 0.0) == pytest.approx(18.697374558, abs=1e-6)
    assert local_sidereal_time(2451545.0, 15.0) == pytest.approx(19.697374558, abs=1e-6)


def test_swiss_ephemeris_sun_at_j2000():
    provider = SwissEphemerisProvider()
    raw = provider.calculate(CivilInstant(2000, 1, 1, 12, 0), 51.5074, -0.1278)
    assert raw.julian_day == pytest.approx(2451545.0)
    assert raw.longitudes['sun'] == pytest.approx(280.37, abs=0.01)
    assert raw.speeds['sun'] > 0
    assert 'northnode' in raw.longitudes
    assert raw.angles is not None
    assert 0 <= raw.angles.ascendant < 360


def test_swiss_ephemeris_mean_node():
    true_raw = SwissEphemerisProvider(node_type='true').calculate(CivilInstant(2000, 1, 1, 12, 0), 0, 0)
    mean_raw = SwissEphemerisProvider(node_type='mean').calculate(CivilInstant(2000, 1, 1, 12, 0), 0, 0)
    # mean node at J2000 is about 125.04°
    assert mean_raw.longitudes['northnode'] == pytest.approx(125.04, abs=0.05)
    assert abs(true_raw.longitudes['northnode'] - mean_raw.longitudes['northnode']) < 2


def test_swiss_ephemeris_rejects_unknown_node_type():
    with pytest.raises(ValueError):
        SwissEphemerisProvider(node_type='osculating')


def test_provider_node_type_from_settings():
    settings = Settings(_env_file=None, NODE_TYPE="Mean")
    provider = SwissEphemerisProvider.from_settings(settings)
    assert provider.node_type is NodeTypeEnum.MEAN
    assert SwissEphemerisProvider(node_type="true").node_type is NodeTypeEnum.TRUE


def test_calculator_passes_provider_angles(fixed_provider):
    raw = PositionCalculator(fixed_provider, 'Placidus').calculate(
        CivilInstant(1995, 10, 8, 19, 56, utc_offset_minutes=-240), 25.76, -80.19)
    assert raw.angles.ascendant == pytest.approx(199.19)
    assert raw.angles_source == 'provider'
    assert fixed_provider.calls[0][3] == 'Placidus'


def test_calculator_fills_missing_angles(angleless_provider):
    raw = PositionCalculator(angleless_provider, 'Placidus').calculate(
        CivilInstant(2000, 1, 1, 18, 0), 0.0, 10.0)
    assert raw.angles_source == 'closed-form'
    assert raw.angles.ascendant == pytest.approx(180.0)
    assert raw.sidereal_time is not None


def test_calculator_wraps_provider_errors(failing_provider):
    calculator = PositionCalculator(failing_provider, 'Placidus')
    with pytest.raises(CalculationUnavailable, match="ephemeris offline"):
        calculator.calculate(CivilInstant(2000, 1, 1, 12, 0), 0.0, 0.0)


class _RawProvider:
    def __init__(self, raw):
        self.raw = raw

    def calculate(self, instant, latitude, longitude, house_system):
        return self.raw


@pytest.mark.parametrize("raw", [
    {'julian_day': 2451545.0, 'longitudes': {'moon': 10.0}},
    {'julian_day': 2451545.0, 'longitudes': {'sun': math.nan}},
    {'longitudes': {'sun': 10.0}},
    "not a result",
    ObjectResult(julian_day=2451545.0, longitudes={'sun': 1.0},
                 angles=RawAngles(ascendant=math.inf, midheaven=0.0)),
])
def test_calculator_rejects_malformed_results(raw):
    calculator = PositionCalculator(_RawProvider(raw), 'Placidus')
    with pytest.raises(CalculationUnavailable):
        calculator.calculate(CivilInstant(2000, 1, 1, 12, 0), 0.0, 0.0)


@pytest.mark.parametrize("latitude,longitude", [(91, 0), (0, 181)])
def test_calculator_validates_coordinates(fixed_provider, latitude, longitude):
    with pytest.raises(ValueError):
        PositionCalculator(fixed_provider, 'Placidus').calculate(
            CivilInstant(2000, 1, 1, 12, 0), latitude, longitude)
