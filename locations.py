"""
Location database and free-text location lookup.

Lookup is an ordered chain of strategies. Each strategy either returns a
GeoLocation or None, and the first hit wins:

1. CoordinateTextLookup - "lat, lon" typed directly into the location field
2. DatabaseLookup       - the built-in city table plus an optional CSV
3. GeocoderLookup       - Nominatim via geopy (opt-in, network)

The database is loaded once per process and never mutated afterwards.
"""

import csv
import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from exceptions import InvalidInputFormat, LocationNotFound
from models import GeoLocation
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationRecord:
    """One row of the location database."""
    name: str
    ascii_name: str
    admin_name: str
    country: str
    iso2: str
    iso3: str
    latitude: float
    longitude: float
    population: int = 0
    timezone: Optional[str] = None

    @property
    def formatted_address(self) -> str:
        parts = [self.name]
        if self.admin_name and self.admin_name != self.name:
            parts.append(self.admin_name)
        parts.append(self.country)
        return ", ".join(parts)

    def to_geolocation(self, source: str = "database") -> GeoLocation:
        return GeoLocation(
            latitude=self.latitude,
            longitude=self.longitude,
            formatted_address=self.formatted_address,
            country_code=self.iso2.upper() if self.iso2 else None,
            zone_name=self.timezone,
            source=source,
        )


# name, admin, country, iso2, iso3, lat, lng, population, zone
_BUILTIN_CITIES: Sequence[Tuple] = (
    ("New York", "New York", "United States", "US", "USA", 40.7128, -74.0060, 18713220, "America/New_York"),
    ("Los Angeles", "California", "United States", "US", "USA", 34.0522, -118.2437, 12750807, "America/Los_Angeles"),
    ("Chicago", "Illinois", "United States", "US", "USA", 41.8781, -87.6298, 8604203, "America/Chicago"),
    ("Miami", "Florida", "United States", "US", "USA", 25.7617, -80.1918, 6445545, "America/New_York"),
    ("Denver", "Colorado", "United States", "US", "USA", 39.7392, -104.9903, 2876625, "America/Denver"),
    ("Phoenix", "Arizona", "United States", "US", "USA", 33.4484, -112.0740, 4219697, "America/Phoenix"),
    ("Anchorage", "Alaska", "United States", "US", "USA", 61.2181, -149.9003, 253421, "America/Anchorage"),
    ("Honolulu", "Hawaii", "United States", "US", "USA", 21.3069, -157.8583, 833671, "Pacific/Honolulu"),
    ("Toronto", "Ontario", "Canada", "CA", "CAN", 43.6532, -79.3832, 5429524, "America/Toronto"),
    ("Vancouver", "British Columbia", "Canada", "CA", "CAN", 49.2827, -123.1207, 2264823, "America/Vancouver"),
    ("St. John's", "Newfoundland and Labrador", "Canada", "CA", "CAN", 47.5615, -52.7126, 108860, "America/St_Johns"),
    ("Mexico City", "Ciudad de Mexico", "Mexico", "MX", "MEX", 19.4326, -99.1332, 20996000, "America/Mexico_City"),
    ("Sao Paulo", "Sao Paulo", "Brazil", "BR", "BRA", -23.5505, -46.6333, 22046000, "America/Sao_Paulo"),
    ("Buenos Aires", "Buenos Aires", "Argentina", "AR", "ARG", -34.6037, -58.3816, 16157000, "America/Argentina/Buenos_Aires"),
    ("London", "London, City of", "United Kingdom", "GB", "GBR", 51.5074, -0.1278, 10979000, "Europe/London"),
    ("Paris", "Ile-de-France", "France", "FR", "FRA", 48.8566, 2.3522, 11027000, "Europe/Paris"),
    ("Berlin", "Berlin", "Germany", "DE", "DEU", 52.5200, 13.4050, 3644826, "Europe/Berlin"),
    ("Rome", "Lazio", "Italy", "IT", "ITA", 41.9028, 12.4964, 2872800, "Europe/Rome"),
    ("Madrid", "Madrid", "Spain", "ES", "ESP", 40.4168, -3.7038, 6026000, "Europe/Madrid"),
    ("Moscow", "Moskva", "Russia", "RU", "RUS", 55.7558, 37.6173, 17125000, "Europe/Moscow"),
    ("Istanbul", "Istanbul", "Turkey", "TR", "TUR", 41.0082, 28.9784, 15154000, "Europe/Istanbul"),
    ("Cairo", "Al Qahirah", "Egypt", "EG", "EGY", 30.0444, 31.2357, 19372000, "Africa/Cairo"),
    ("Lagos", "Lagos", "Nigeria", "NG", "NGA", 6.5244, 3.3792, 15279000, "Africa/Lagos"),
    ("Johannesburg", "Gauteng", "South Africa", "ZA", "ZAF", -26.2041, 28.0473, 8500000, "Africa/Johannesburg"),
    ("Dubai", "Dubayy", "United Arab Emirates", "AE", "ARE", 25.2048, 55.2708, 2878344, "Asia/Dubai"),
    ("Delhi", "Delhi", "India", "IN", "IND", 28.7041, 77.1025, 29617000, "Asia/Kolkata"),
    ("Mumbai", "Maharashtra", "India", "IN", "IND", 19.0760, 72.8777, 23355000, "Asia/Kolkata"),
    ("Kolkata", "West Bengal", "India", "IN", "IND", 22.5726, 88.3639, 17560000, "Asia/Kolkata"),
    ("Beijing", "Beijing", "China", "CN", "CHN", 39.9042, 116.4074, 19433000, "Asia/Shanghai"),
    ("Shanghai", "Shanghai", "China", "CN", "CHN", 31.2304, 121.4737, 22120000, "Asia/Shanghai"),
    ("Tokyo", "Tokyo", "Japan", "JP", "JPN", 35.6762, 139.6503, 37977000, "Asia/Tokyo"),
    ("Seoul", "Seoul", "Korea, South", "KR", "KOR", 37.5665, 126.9780, 21794000, "Asia/Seoul"),
    ("Sydney", "New South Wales", "Australia", "AU", "AUS", -33.8688, 151.2093, 4859432, "Australia/Sydney"),
    ("Melbourne", "Victoria", "Australia", "AU", "AUS", -37.8136, 144.9631, 4529500, "Australia/Melbourne"),
    ("Auckland", "Auckland", "New Zealand", "NZ", "NZL", -36.8509, 174.7645, 1534700, "Pacific/Auckland"),
)


def builtin_records() -> List[LocationRecord]:
    return [
        LocationRecord(
            name=name, ascii_name=name, admin_name=admin, country=country,
            iso2=iso2, iso3=iso3, latitude=lat, longitude=lng,
            population=population, timezone=zone,
        )
        for name, admin, country, iso2, iso3, lat, lng, population, zone in _BUILTIN_CITIES
    ]


def read_cities_csv(path: str) -> List[LocationRecord]:
    """
    Read a worldcities.csv-format file.

    Required columns: city, city_ascii, lat, lng, country, iso2. Optional:
    iso3, admin_name, population, timezone. Rows with unusable coordinates
    are skipped.
    """
    records = []
    with open(path, newline='', encoding='utf-8') as handle:
        for row in csv.DictReader(handle):
            try:
                latitude = float(row['lat'])
                longitude = float(row['lng'])
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping city row without coordinates: %s", row)
                continue
            try:
                population = int(float(row.get('population') or 0))
            except ValueError:
                population = 0
            records.append(LocationRecord(
                name=row.get('city') or row.get('city_ascii') or '',
                ascii_name=row.get('city_ascii') or row.get('city') or '',
                admin_name=row.get('admin_name') or '',
                country=row.get('country') or '',
                iso2=row.get('iso2') or '',
                iso3=row.get('iso3') or '',
                latitude=latitude,
                longitude=longitude,
                population=population,
                timezone=row.get('timezone') or None,
            ))
    logger.info("Loaded %d cities from %s", len(records), path)
    return records


class LocationDatabase:
    """Read-only, stably ordered collection of LocationRecord."""

    def __init__(self, records: Iterable[LocationRecord]):
        self._records = tuple(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[LocationRecord]:
        return iter(self._records)

    def lookup(self, name: str, qualifier: Optional[str] = None) -> Optional[LocationRecord]:
        """
        Find the best record for a place name and optional country/region.

        Exact name matches beat substring matches; the qualifier narrows the
        candidates only when it leaves at least one; the most populous
        candidate wins and ties keep input order.
        """
        city = name.strip().lower()
        if not city:
            return None

        matches = [
            record for record in self._records
            if city in (record.name.lower(), record.ascii_name.lower())
        ]
        if not matches:
            matches = [
                record for record in self._records
                if _contains_either(record.name.lower(), city)
                or _contains_either(record.ascii_name.lower(), city)
            ]

        if matches and qualifier and qualifier.strip():
            detail = qualifier.strip().lower()
            filtered = [record for record in matches if _matches_qualifier(record, detail)]
            if filtered:
                matches = filtered

        if not matches:
            return None
        # sorted() is stable, so equal populations keep database order
        return sorted(matches, key=lambda record: -record.population)[0]

    def search(self,
               name: str,
               qualifier: Optional[str] = None,
               limit: Optional[int] = None) -> List[LocationRecord]:
        """
        Every record whose name contains `name`, most populous first.

        Unlike `lookup`, a qualifier that matches nothing yields no results.
        """
        city = name.strip().lower()
        if not city:
            return []
        detail = qualifier.strip().lower() if qualifier and qualifier.strip() else None
        matches = [
            record for record in self._records
            if (city in record.name.lower() or city in record.ascii_name.lower())
            and (detail is None or _matches_qualifier(record, detail))
        ]
        matches.sort(key=lambda record: -record.population)
        return matches if limit is None else matches[:limit]

    def nearest(self,
                latitude: float,
                longitude: float,
                max_distance: Optional[float] = None,
                require_zone: bool = False) -> Optional[LocationRecord]:
        """Closest record by Euclidean distance in (lat, lon); first wins on ties."""
        best = None
        best_distance = math.inf
        for record in self._records:
            if require_zone and not record.timezone:
                continue
            distance = math.hypot(record.latitude - latitude, record.longitude - longitude)
            if distance < best_distance:
                best, best_distance = record, distance
        if best is not None and max_distance is not None and best_distance > max_distance:
            return None
        return best


def _contains_either(candidate: str, query: str) -> bool:
    if not candidate:
        return False
    return query in candidate or candidate in query


def _matches_qualifier(record: LocationRecord, detail: str) -> bool:
    country = record.country.lower()
    admin = record.admin_name.lower()
    return (
        _contains_either(country, detail)
        or _contains_either(admin, detail)
        or record.iso2.lower() == detail
        or record.iso3.lower() == detail
    )


@lru_cache
def get_location_database() -> LocationDatabase:
    """Process-wide database: built-in cities, then the configured CSV."""
    settings = get_settings()
    records = builtin_records()
    if settings.CITIES_CSV:
        records.extend(read_cities_csv(settings.CITIES_CSV))
    return LocationDatabase(records)


def split_location_text(text: str) -> Tuple[str, Optional[str]]:
    """Split "Place, Country" into the place name and the optional qualifier."""
    parts = [part.strip() for part in text.split(',')]
    place = parts[0]
    qualifier = ' '.join(part for part in parts[1:] if part) or None
    return place, qualifier


# Lookup strategies
class CoordinateTextLookup:
    """Accepts decimal "latitude, longitude" typed as the location."""

    name = "coordinates"
    PATTERN = re.compile(r'^\s*(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)\s*$')

    def lookup(self, text: str) -> Optional[GeoLocation]:
        match = self.PATTERN.match(text)
        if not match:
            return None
        latitude = float(match.group(1))
        longitude = float(match.group(2))
        if not (-90 <= latitude <= 90 and -180 <= longitude <= 180):
            raise InvalidInputFormat(
                "Invalid coordinates. Latitude must be between -90 and 90, "
                "longitude between -180 and 180."
            )
        return GeoLocation(
            latitude=latitude,
            longitude=longitude,
            formatted_address=f"Coordinates: {latitude:.4f}, {longitude:.4f}",
            source=self.name,
        )


class DatabaseLookup:
    name = "database"

    def __init__(self, database: LocationDatabase):
        self.database = database

    def lookup(self, text: str) -> Optional[GeoLocation]:
        place, qualifier = split_location_text(text)
        record = self.database.lookup(place, qualifier)
        if record is None:
            return None
        return record.to_geolocation(source=self.name)


class GeocoderLookup:
    """Nominatim geocoding. Failures count as "no match" and are not retried."""

    name = "geocoder"

    def __init__(self, geocoder):
        self.geocoder = geocoder

    @classmethod
    def from_settings(cls, settings: Settings) -> 'GeocoderLookup':
        return cls(Nominatim(user_agent=settings.GEOCODER_USER_AGENT,
                             timeout=settings.GEOCODER_TIMEOUT))

    def lookup(self, text: str) -> Optional[GeoLocation]:
        try:
            result = self.geocoder.geocode(text, addressdetails=True, language='en')
        except GeopyError as e:
            logger.warning("Geocoder failed for %r: %s", text, e)
            return None
        if result is None:
            return None
        address = (result.raw or {}).get('address', {})
        country_code = address.get('country_code')
        return GeoLocation(
            latitude=result.latitude,
            longitude=result.longitude,
            formatted_address=result.address,
            country_code=country_code.upper() if country_code else None,
            source=self.name,
        )


class LocationLookup:
    """Ordered chain of location strategies."""

    def __init__(self, strategies: Sequence):
        self.strategies = list(strategies)

    def locate(self, text: str) -> GeoLocation:
        if not text or not text.strip():
            raise InvalidInputFormat("Please enter a location (city name).")
        for strategy in self.strategies:
            location = strategy.lookup(text)
            if location is not None:
                logger.info("Location %r resolved by %s: %s (%.4f, %.4f)",
                            text, strategy.name, location.formatted_address,
                            location.latitude, location.longitude)
                return location
        raise LocationNotFound(f'Location "{text.strip()}" not found. Please try a different city name.')


def default_location_lookup(database: Optional[LocationDatabase] = None,
                            settings: Optional[Settings] = None) -> LocationLookup:
    settings = settings or get_settings()
    database = database if database is not None else get_location_database()
    strategies = [CoordinateTextLookup(), DatabaseLookup(database)]
    if settings.GEOCODER_ENABLED:
        strategies.append(GeocoderLookup.from_settings(settings))
    return LocationLookup(strategies)
