import pytest

from locations import DatabaseLookup, LocationDatabase, LocationLookup, LocationRecord, CoordinateTextLookup
from models import ObjectResult, RawAngles
from timezones import (
    CivilTimeResolver,
    LongitudeBand,
    NearestLocationZone,
    PoliticalOverrides,
    RegisteredZone,
    TimeZoneResolver,
    UnitedStatesZones,
)


def _record(name, admin, country, iso2, iso3, lat, lng, population, zone=None):
    return LocationRecord(
        name=name, ascii_name=name, admin_name=admin, country=country,
        iso2=iso2, iso3=iso3, latitude=lat, longitude=lng,
        population=population, timezone=zone,
    )


@pytest.fixture
def records():
    return [
        _record("Miami", "Florida", "United States", "US", "USA", 25.7617, -80.1918, 6445545, "America/New_York"),
        _record("Miami", "Oklahoma", "United States", "US", "USA", 36.8744, -94.8775, 13000),
        _record("Denver", "Colorado", "United States", "US", "USA", 39.7392, -104.9903, 2876625),
        _record("Honolulu", "Hawaii", "United States", "US", "USA", 21.3069, -157.8583, 833671),
        _record("Mumbai", "Maharashtra", "India", "IN", "IND", 19.0760, 72.8777, 23355000),
        _record("Madrid", "Madrid", "Spain", "ES", "ESP", 40.4168, -3.7038, 6026000),
        _record("Paris", "Ile-de-France", "France", "FR", "FRA", 48.8566, 2.3522, 11027000, "Europe/Paris"),
        _record("Paris", "Texas", "United States", "US", "USA", 33.6609, -95.5555, 24171),
        _record("London", "London, City of", "United Kingdom", "GB", "GBR", 51.5074, -0.1278, 10979000, "Europe/London"),
    ]


@pytest.fixture
def database(records):
    return LocationDatabase(records)


@pytest.fixture
def location_lookup(database):
    return LocationLookup([CoordinateTextLookup(), DatabaseLookup(database)])


@pytest.fixture
def timezone_resolver(database):
    """Offline chain: no timezonefinder, small database."""
    return TimeZoneResolver(
        [
            RegisteredZone(),
            UnitedStatesZones(),
            PoliticalOverrides(),
            NearestLocationZone(database, max_distance=10.0),
            LongitudeBand(),
        ],
        database=database,
        max_distance=10.0,
    )


@pytest.fixture
def civil_time_resolver(location_lookup, timezone_resolver):
    return CivilTimeResolver(location_lookup, timezone_resolver)


class FixedProvider:
    """Position provider returning canned longitudes."""

    def __init__(self, longitudes=None, speeds=None, angles=None, julian_day=2450000.5):
        self.longitudes = longitudes or {'sun': 195.0, 'moon': 285.0, 'mars': 105.0}
        self.speeds = speeds if speeds is not None else {'sun': 0.98, 'moon': 13.2, 'mars': -0.2}
        self.angles = angles
        self.julian_day = julian_day
        self.calls = []

    def calculate(self, instant, latitude, longitude, house_system):
        self.calls.append((instant, latitude, longitude, house_system))
        return ObjectResult(
            julian_day=self.julian_day,
            longitudes=self.longitudes,
            speeds=self.speeds,
            angles=self.angles,
        )


class FailingProvider:
    def calculate(self, instant, latitude, longitude, house_system):
        raise RuntimeError("ephemeris offline")


@pytest.fixture
def fixed_provider():
    return FixedProvider(angles=RawAngles(ascendant=199.19, midheaven=110.5))


@pytest.fixture
def failing_provider():
    return FailingProvider()


@pytest.fixture
def angleless_provider():
    return FixedProvider(angles=None, julian_day=2451545.25)
