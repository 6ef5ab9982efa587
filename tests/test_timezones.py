from datetime import datetime

import pytest
from hypothesis import given, strategies as st
from pydantic import ValidationError

from models import TimeZoneInfo
from timezones import (
    LongitudeBand,
    PoliticalOverrides,
    UnitedStatesZones,
    ZoneQuery,
    build_time_zone_info,
    format_utc_offset,
    normalize_longitude,
    parse_utc_offset,
    zone_time_zone_info,
)


def test_parse_utc_plus_0530():
    info = build_time_zone_info("UTC+05:30", "test")
    assert info.offset_hours == 5
    assert info.offset_minutes == 30
    assert info.total_offset_minutes == 330


def test_parse_negative_offset_signs_both_parts():
    assert parse_utc_offset("America/St_Johns (UTC-3:30)") == (-3, -30, -210)


@given(sign=st.sampled_from('+-'), hours=st.integers(0, 14), minutes=st.integers(0, 59))
def test_total_offset_invariant(sign, hours, minutes):
    label = f"UTC{sign}{hours}:{minutes:02d}"
    direction = 1 if sign == '+' else -1
    info = build_time_zone_info(label, "test")
    assert info.total_offset_minutes == direction * (hours * 60 + minutes)
    assert info.offset_hours * 60 + info.offset_minutes == info.total_offset_minutes


def test_label_without_offset_is_rejected():
    with pytest.raises(ValueError):
        parse_utc_offset("Europe/Paris")


def test_partial_offset_cannot_be_built():
    with pytest.raises(ValidationError):
        TimeZoneInfo(name="broken", offset_hours=5, offset_minutes=30,
                     total_offset_minutes=300, source="test")


@pytest.mark.parametrize("total,label", [(330, "UTC+05:30"), (-210, "UTC-03:30"), (0, "UTC+00:00")])
def test_format_utc_offset(total, label):
    assert format_utc_offset(total) == label


@pytest.mark.parametrize("longitude,expected", [
    (0, 0), (7.4, 0), (7.5, 1), (-7.5, 0), (-7.6, -1),
    (-80.19, -5), (139.65, 9), (179.9, 12), (-179.9, -12), (540.0, -12),
])
def test_longitude_band(longitude, expected):
    assert LongitudeBand.offset_hours(longitude) == expected


def test_longitude_band_always_answers():
    info = LongitudeBand().resolve(ZoneQuery(latitude=0, longitude=-80.19))
    assert info.name == "UTC-05:00"
    assert info.total_offset_minutes == -300
    assert info.zone_name is None


@given(longitude=st.floats(min_value=-1e4, max_value=1e4, allow_nan=False))
def test_normalize_longitude_range(longitude):
    assert -180 <= normalize_longitude(longitude) < 180


@pytest.mark.parametrize("longitude,latitude,zone", [
    (-176.6, 51.9, 'America/Adak'),
    (-149.9, 61.2, 'America/Anchorage'),
    (-157.86, 21.31, 'Pacific/Honolulu'),
    (-122.4, 37.8, 'America/Los_Angeles'),
    (-104.99, 39.74, 'America/Denver'),
    (-87.63, 41.88, 'America/Chicago'),
    (-80.19, 25.76, 'America/New_York'),
])
def test_united_states_routing(longitude, latitude, zone):
    assert UnitedStatesZones.zone_for(longitude, latitude) == zone


def test_united_states_zones_only_for_us():
    query = ZoneQuery(latitude=43.65, longitude=-79.38, country_code='CA')
    assert UnitedStatesZones().resolve(query) is None


@pytest.mark.parametrize("longitude,latitude,total", [
    (72.88, 19.08, 330),
    (77.10, 28.70, 330),
    (116.41, 39.90, 480),
    (87.6, 43.8, 480),
    (-3.70, 40.42, 60),
])
def test_political_overrides(longitude, latitude, total):
    info = PoliticalOverrides().resolve(ZoneQuery(latitude=latitude, longitude=longitude))
    assert info.total_offset_minutes == total
    assert info.is_dst is None


def test_political_override_misses_elsewhere():
    assert PoliticalOverrides().resolve(ZoneQuery(latitude=48.85, longitude=2.35)) is None


def test_dst_from_registered_zone():
    summer = zone_time_zone_info("America/New_York", datetime(1990, 6, 15, 12, 0), "test")
    winter = zone_time_zone_info("America/New_York", datetime(1990, 1, 15, 12, 0), "test")
    assert summer.total_offset_minutes == -240
    assert summer.is_dst is True
    assert summer.name == "America/New_York (UTC-04:00)"
    assert winter.total_offset_minutes == -300
    assert winter.is_dst is False


def test_ambiguous_local_time_takes_standard_offset():
    # 1:30 happens twice on 2021-11-07 in New York
    info = zone_time_zone_info("America/New_York", datetime(2021, 11, 7, 1, 30), "test")
    assert info.total_offset_minutes == -300


def test_nonexistent_local_time_is_resolved():
    info = zone_time_zone_info("America/New_York", datetime(2021, 3, 14, 2, 30), "test")
    assert info.total_offset_minutes in (-240, -300)


def test_unknown_zone_yields_no_match():
    assert zone_time_zone_info("Mars/Olympus_Mons", datetime(2000, 1, 1), "test") is None


def test_resolver_uses_registered_zone(timezone_resolver):
    info = timezone_resolver.resolve(ZoneQuery(
        latitude=48.8566, longitude=2.3522, country_code='FR',
        zone_name='Europe/Paris', when=datetime(2000, 7, 1, 12, 0),
    ))
    assert info.source == 'registered'
    assert info.total_offset_minutes == 120


def test_resolver_routes_us_without_zone(timezone_resolver):
    info = timezone_resolver.resolve(ZoneQuery(
        latitude=39.7392, longitude=-104.9903, country_code='US',
        when=datetime(2000, 1, 10, 9, 0),
    ))
    assert info.source == 'us-zones'
    assert info.zone_name == 'America/Denver'
    assert info.total_offset_minutes == -420


def test_resolver_falls_back_to_nearest_zone(timezone_resolver):
    # Versailles: no zone, no override box, ~0.2° from Paris
    info = timezone_resolver.resolve(ZoneQuery(
        latitude=48.8049, longitude=2.1204, when=datetime(2000, 1, 10, 9, 0),
    ))
    assert info.source == 'nearest-location'
    assert info.zone_name == 'Europe/Paris'


def test_resolver_ends_with_longitude_band(timezone_resolver):
    # Mid-Pacific, far from every database entry
    info = timezone_resolver.resolve(ZoneQuery(latitude=-10.0, longitude=-140.0))
    assert info.source == 'longitude-band'
    assert info.name == 'UTC-09:00'


def test_for_coordinates_borrows_country(timezone_resolver):
    # Near Denver: country inferred from the nearest database entry
    info = timezone_resolver.for_coordinates(-105.2, 40.0, datetime(2000, 1, 10, 9, 0))
    assert info.zone_name == 'America/Denver'


def test_mumbai_forced_to_india_time(civil_time_resolver):
    location, timezone = civil_time_resolver.resolve("Mumbai, IN", datetime(1990, 5, 1, 10, 0))
    assert location.country_code == 'IN'
    assert location.zone_name is None
    assert timezone.total_offset_minutes == 330
    assert timezone.offset_hours == 5
    assert timezone.offset_minutes == 30
    # the bare band for Mumbai's longitude would say UTC+05:00
    assert LongitudeBand.offset_hours(location.longitude) == 5


def test_madrid_forced_to_central_european_time(civil_time_resolver):
    _, timezone = civil_time_resolver.resolve("Madrid, Spain")
    assert timezone.total_offset_minutes == 60


def test_miami_summer_offset(civil_time_resolver):
    location, timezone = civil_time_resolver.resolve("Miami, US", datetime(1995, 10, 8, 19, 56))
    assert location.formatted_address == "Miami, Florida, United States"
    assert timezone.total_offset_minutes == -240
    assert timezone.is_dst is True
