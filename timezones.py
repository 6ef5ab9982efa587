"""
Civil time resolution: location text or bare coordinates to a UTC offset.

Timezone resolution is an ordered list of strategies tried in sequence;
each returns a TimeZoneInfo or None. The last one, LongitudeBand, always
answers, so resolution never fails. Every strategy emits a label holding
`UTC±HH:MM` and the offset fields are parsed back out of that label, which
keeps all tiers in one representation.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import NamedTuple, Optional, Sequence, Tuple

import pytz
from timezonefinder import TimezoneFinder

from locations import LocationDatabase, LocationLookup, default_location_lookup, get_location_database
from models import GeoLocation, TimeZoneInfo
from settings import Settings, get_settings

logger = logging.getLogger(__name__)

UTC_OFFSET_PATTERN = re.compile(r'UTC([+-])(\d{1,2}):(\d{2})')


def parse_utc_offset(label: str) -> Tuple[int, int, int]:
    """
    Parse `UTC±H:MM` out of a label.

    Returns signed (hours, minutes, total minutes); hours and minutes carry
    the same sign, and total is sign * (H * 60 + MM).
    """
    match = UTC_OFFSET_PATTERN.search(label)
    if not match:
        raise ValueError(f"No UTC offset in label: {label!r}")
    sign = 1 if match.group(1) == '+' else -1
    hours = int(match.group(2))
    minutes = int(match.group(3))
    if minutes >= 60:
        raise ValueError(f"Minutes out of range in label: {label!r}")
    return sign * hours, sign * minutes, sign * (hours * 60 + minutes)


def format_utc_offset(total_minutes: int) -> str:
    sign = '+' if total_minutes >= 0 else '-'
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"UTC{sign}{hours:02d}:{minutes:02d}"


def build_time_zone_info(label: str,
                         source: str,
                         zone_name: Optional[str] = None,
                         is_dst: Optional[bool] = None) -> TimeZoneInfo:
    hours, minutes, total = parse_utc_offset(label)
    return TimeZoneInfo(
        name=label,
        zone_name=zone_name,
        offset_hours=hours,
        offset_minutes=minutes,
        total_offset_minutes=total,
        is_dst=is_dst,
        source=source,
    )


def normalize_longitude(longitude: float) -> float:
    """Bring a longitude into [-180, 180)."""
    while longitude >= 180:
        longitude -= 360
    while longitude < -180:
        longitude += 360
    return longitude


def localize(tz, when: datetime) -> datetime:
    """Attach a pytz zone to a naive local time, settling DST edge cases."""
    try:
        return tz.localize(when, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        return tz.localize(when, is_dst=False)
    except pytz.exceptions.NonExistentTimeError:
        return tz.localize(when, is_dst=True)


def zone_time_zone_info(zone_name: str, when: Optional[datetime], source: str) -> Optional[TimeZoneInfo]:
    """Offset of a registered zone at a local instant (now when omitted)."""
    try:
        tz = pytz.timezone(zone_name)
    except pytz.exceptions.UnknownTimeZoneError:
        logger.warning("Unknown timezone %r from %s", zone_name, source)
        return None

    if when is None:
        local = datetime.now(pytz.UTC).astimezone(tz)
    elif when.tzinfo is not None:
        local = when.astimezone(tz)
    else:
        local = localize(tz, when)

    total_minutes = int(round(local.utcoffset().total_seconds() / 60))
    label = f"{zone_name} ({format_utc_offset(total_minutes)})"
    return build_time_zone_info(label, source, zone_name=zone_name, is_dst=bool(local.dst()))


@dataclass(frozen=True)
class ZoneQuery:
    """Everything a timezone strategy may look at."""
    latitude: float
    longitude: float
    country_code: Optional[str] = None
    zone_name: Optional[str] = None
    when: Optional[datetime] = None


# Timezone strategies
class RegisteredZone:
    """Zone name furnished by the location source."""

    name = "registered"

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        if not query.zone_name:
            return None
        return zone_time_zone_info(query.zone_name, query.when, self.name)


class CoordinateZoneFinder:
    """IANA zone from coordinates via timezonefinder's boundary data."""

    name = "timezonefinder"

    def __init__(self, finder):
        self.finder = finder

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        zone_name = self.finder.timezone_at(lng=query.longitude, lat=query.latitude)
        if not zone_name:
            return None
        return zone_time_zone_info(zone_name, query.when, self.name)


class UnitedStatesZones:
    """Longitude routing across the six US zones, with Hawaii carved out."""

    name = "us-zones"

    # (exclusive upper longitude bound, zone); east of the last bound is Eastern
    THRESHOLDS = [
        (-170, 'America/Adak'),
        (-140, 'America/Anchorage'),
        (-115, 'America/Los_Angeles'),
        (-100, 'America/Denver'),
        (-85, 'America/Chicago'),
    ]
    EASTERN = 'America/New_York'
    HAWAII = 'Pacific/Honolulu'

    @classmethod
    def zone_for(cls, longitude: float, latitude: float) -> str:
        zone_name = cls.EASTERN
        for bound, candidate in cls.THRESHOLDS:
            if longitude < bound:
                zone_name = candidate
                break
        if longitude < -150 and 15 < latitude < 25:
            zone_name = cls.HAWAII
        return zone_name

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        if (query.country_code or '').upper() != 'US':
            return None
        zone_name = self.zone_for(normalize_longitude(query.longitude), query.latitude)
        return zone_time_zone_info(zone_name, query.when, self.name)


class OverrideBox(NamedTuple):
    region: str
    min_longitude: float
    max_longitude: float
    min_latitude: float
    max_latitude: float
    label: str

    def contains(self, longitude: float, latitude: float) -> bool:
        return (self.min_longitude < longitude < self.max_longitude
                and self.min_latitude < latitude < self.max_latitude)


class PoliticalOverrides:
    """Countries whose civil time ignores longitude banding."""

    name = "political-override"

    # India overlaps the China box, so it is checked first
    BOXES = [
        OverrideBox('India', 68, 97, 6, 36, 'UTC+05:30'),
        OverrideBox('China', 73, 135, 18, 54, 'UTC+08:00'),
        OverrideBox('Spain', -10, 3, 35, 44, 'UTC+01:00'),
    ]

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        longitude = normalize_longitude(query.longitude)
        for box in self.BOXES:
            if box.contains(longitude, query.latitude):
                return build_time_zone_info(f"{box.label} ({box.region})", self.name)
        return None


class NearestLocationZone:
    """Zone of the closest database entry that has one."""

    name = "nearest-location"

    def __init__(self, database: LocationDatabase, max_distance: Optional[float] = None):
        self.database = database
        self.max_distance = max_distance

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        record = self.database.nearest(query.latitude, query.longitude,
                                       max_distance=self.max_distance, require_zone=True)
        if record is None:
            return None
        logger.debug("Nearest zoned location to (%.4f, %.4f) is %s",
                     query.latitude, query.longitude, record.formatted_address)
        return zone_time_zone_info(record.timezone, query.when, self.name)


class LongitudeBand:
    """24 bands of 15 degrees centred on Greenwich; always answers."""

    name = "longitude-band"

    @staticmethod
    def offset_hours(longitude: float) -> int:
        return int(math.floor((normalize_longitude(longitude) + 7.5) / 15))

    def resolve(self, query: ZoneQuery) -> Optional[TimeZoneInfo]:
        hours = self.offset_hours(query.longitude)
        return build_time_zone_info(format_utc_offset(hours * 60), self.name)


class TimeZoneResolver:
    """Ordered chain of timezone strategies."""

    def __init__(self,
                 strategies: Sequence,
                 database: Optional[LocationDatabase] = None,
                 max_distance: Optional[float] = None):
        self.strategies = list(strategies)
        self.database = database
        self.max_distance = max_distance
        if not any(isinstance(strategy, LongitudeBand) for strategy in self.strategies):
            self.strategies.append(LongitudeBand())

    def resolve(self, query: ZoneQuery) -> TimeZoneInfo:
        for strategy in self.strategies:
            info = strategy.resolve(query)
            if info is not None:
                logger.info("Timezone for (%.4f, %.4f) resolved by %s: %s",
                            query.latitude, query.longitude, strategy.name, info.name)
                return info
        raise RuntimeError("LongitudeBand must terminate the strategy chain")

    def for_coordinates(self,
                        longitude: float,
                        latitude: float,
                        when: Optional[datetime] = None) -> TimeZoneInfo:
        """Resolve bare coordinates, borrowing the country of the nearest known place."""
        country_code = None
        if self.database is not None:
            record = self.database.nearest(latitude, longitude, max_distance=self.max_distance)
            if record is not None:
                country_code = record.iso2.upper() or None
        return self.resolve(ZoneQuery(latitude=latitude, longitude=longitude,
                                      country_code=country_code, when=when))


@lru_cache
def get_timezone_finder() -> TimezoneFinder:
    return TimezoneFinder()


def default_time_zone_resolver(database: Optional[LocationDatabase] = None,
                               settings: Optional[Settings] = None) -> TimeZoneResolver:
    settings = settings or get_settings()
    database = database if database is not None else get_location_database()
    strategies = [RegisteredZone()]
    if settings.USE_TIMEZONEFINDER:
        strategies.append(CoordinateZoneFinder(get_timezone_finder()))
    strategies.extend([
        UnitedStatesZones(),
        PoliticalOverrides(),
        NearestLocationZone(database, settings.NEAREST_LOCATION_MAX_DISTANCE),
        LongitudeBand(),
    ])
    return TimeZoneResolver(strategies, database=database,
                            max_distance=settings.NEAREST_LOCATION_MAX_DISTANCE)


class CivilTimeResolver:
    """Location text to (GeoLocation, TimeZoneInfo)."""

    def __init__(self, location_lookup: LocationLookup, timezone_resolver: TimeZoneResolver):
        self.location_lookup = location_lookup
        self.timezone_resolver = timezone_resolver

    def resolve(self, text: str, when: Optional[datetime] = None) -> Tuple[GeoLocation, TimeZoneInfo]:
        location = self.location_lookup.locate(text)
        if location.country_code is None and location.zone_name is None:
            timezone = self.timezone_resolver.for_coordinates(location.longitude, location.latitude, when)
        else:
            timezone = self.timezone_resolver.resolve(ZoneQuery(
                latitude=location.latitude,
                longitude=location.longitude,
                country_code=location.country_code,
                zone_name=location.zone_name,
                when=when,
            ))
        return location, timezone


def default_civil_time_resolver(settings: Optional[Settings] = None) -> CivilTimeResolver:
    settings = settings or get_settings()
    database = get_location_database()
    return CivilTimeResolver(
        default_location_lookup(database, settings),
        default_time_zone_resolver(database, settings),
    )


def determine_time_zone(longitude: float, latitude: float, when: Optional[datetime] = None) -> TimeZoneInfo:
    """Timezone for coordinates alone, using the default strategy chain."""
    return default_time_zone_resolver().for_coordinates(longitude, latitude, when)
