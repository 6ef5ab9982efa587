"""Pydantic models for chart entities, raw provider results and API payloads."""

import math
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from pydantic import ConfigDict

from zodiac import ChartConfig, degree_in_sign, format_short, normalize_degrees
from zodiac import sign_index as zodiac_sign_index


# Enums
class NodeTypeEnum(str, Enum):
    """Type of lunar node calculation."""
    TRUE = "true"
    MEAN = "mean"


class HouseSystemEnum(str, Enum):
    """House systems accepted for angle derivation."""
    PLACIDUS = "Placidus"
    KOCH = "Koch"
    EQUAL_ASC = "Equal (ASC)"
    EQUAL_MC = "Equal (MC)"
    WHOLE_SIGN = "Whole Sign"
    CAMPANUS = "Campanus"
    REGIOMONTANUS = "Regiomontanus"
    PORPHYRY = "Porphyry"
    MORINUS = "Morinus"
    ALCABITIUS = "Alcabitius"
    TOPOCENTRIC = "Topocentric"


class StrengthEnum(str, Enum):
    STRONG = "Strong"
    MODERATE = "Moderate"


# Location and time
class GeoLocation(BaseModel):
    """A resolved place."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    formatted_address: str
    country_code: Optional[str] = None
    zone_name: Optional[str] = Field(
        None,
        description="Registered IANA zone furnished by the lookup source, if any"
    )
    source: str = "database"


class TimeZoneInfo(BaseModel):
    """Civil UTC offset for one location at one instant."""
    model_config = ConfigDict(frozen=True)

    name: str
    zone_name: Optional[str] = None
    offset_hours: int
    offset_minutes: int
    total_offset_minutes: int
    is_dst: Optional[bool] = None
    source: str

    @model_validator(mode='after')
    def validate_offset(self):
        """Hours and minutes must agree in sign and add up to the total."""
        if self.offset_hours * self.offset_minutes < 0:
            raise ValueError("offset_hours and offset_minutes must share a sign")
        if abs(self.offset_minutes) >= 60:
            raise ValueError("offset_minutes must be within (-60, 60)")
        if self.offset_hours * 60 + self.offset_minutes != self.total_offset_minutes:
            raise ValueError("total_offset_minutes does not match hours and minutes")
        return self


class BirthInput(BaseModel):
    """Validated free-text submission."""
    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(..., ge=1, le=12)
    day: int = Field(..., ge=1, le=31)
    hour: int = Field(..., ge=0, le=23)
    minute: int = Field(..., ge=0, le=59)
    second: int = Field(0, ge=0, le=59)
    location: str

    def local_datetime(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)


# Chart entities
class ZodiacPosition(BaseModel):
    """A longitude with its sign decomposition derived on access."""
    model_config = ConfigDict(frozen=True)

    longitude: float

    @field_validator('longitude')
    @classmethod
    def normalize_longitude(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("longitude must be a finite number")
        return normalize_degrees(v)

    @computed_field
    @property
    def sign_index(self) -> int:
        return zodiac_sign_index(self.longitude)

    @computed_field
    @property
    def sign(self) -> str:
        return ChartConfig.SIGNS[self.sign_index]['name']

    @computed_field
    @property
    def sign_symbol(self) -> str:
        return ChartConfig.SIGNS[self.sign_index]['symbol']

    @computed_field
    @property
    def degree(self) -> float:
        return degree_in_sign(self.longitude)

    @computed_field
    @property
    def formatted(self) -> str:
        return format_short(self.longitude)


class CelestialBody(ZodiacPosition):
    """A body or chart point; retrograde is None when motion is unknown."""
    key: str
    retrograde: Optional[bool] = None


class HouseCusp(ZodiacPosition):
    house: int = Field(..., ge=1, le=12)


class Aspect(BaseModel):
    """Aspect between two points."""
    model_config = ConfigDict(frozen=True)

    planet1: str
    planet2: str
    aspect: str
    symbol: str
    angle: float
    orb: float
    strength: StrengthEnum

    @property
    def pair(self) -> frozenset:
        return frozenset((self.planet1, self.planet2))


class ChartResult(BaseModel):
    """Canonical natal chart, whatever provider or text format produced it."""
    model_config = ConfigDict(frozen=True)

    julian_day: Optional[float] = None
    ascendant: CelestialBody
    planets: dict[str, CelestialBody]
    houses: dict[int, HouseCusp]
    aspects: list[Aspect] = []
    angles_source: str = "provider"
    is_placeholder: bool = False
    partial: bool = False
    missing_sections: list[str] = []

    @model_validator(mode='after')
    def validate_houses(self):
        """All twelve houses present, house 1 on the Ascendant."""
        if sorted(self.houses) != list(range(1, 13)):
            raise ValueError(f"house map must contain houses 1-12, got {sorted(self.houses)}")
        for number, cusp in self.houses.items():
            if cusp.house != number:
                raise ValueError(f"house {number} is keyed under the wrong id")
        first = self.houses[1].longitude
        drift = abs(first - self.ascendant.longitude)
        if min(drift, 360 - drift) > 1e-6:
            raise ValueError("house 1 cusp must equal the Ascendant")
        return self


# Raw provider results
class RawAngles(BaseModel):
    ascendant: float
    midheaven: float


class ObjectResult(BaseModel):
    """Object-shaped output of an astronomical position provider."""
    julian_day: float
    longitudes: dict[str, float]
    speeds: dict[str, float] = {}
    angles: Optional[RawAngles] = None
    angles_source: str = "provider"
    sidereal_time: Optional[float] = Field(
        None,
        description="Local sidereal time in hours, when derived locally"
    )


# Request Models
class NatalChartRequest(BaseModel):
    """Request model for natal chart calculation from the free-text form."""

    birth_date: str = Field(
        ...,
        description="Birth date as DD.MM.YYYY",
        examples=["08.10.1995"]
    )
    birth_time: str = Field(
        ...,
        description="Local birth time as HH:MM or HH:MM:SS",
        examples=["19:56"]
    )
    location: str = Field(
        ...,
        description="City, optionally followed by a country or region after a comma",
        examples=["Miami, US"]
    )
    house_system: HouseSystemEnum = Field(
        default=HouseSystemEnum.PLACIDUS,
        description="House system used by the provider to derive the angles"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "birth_date": "08.10.1995",
                "birth_time": "19:56",
                "location": "Miami, US",
                "house_system": "Placidus"
            }]
        }
    )


class NatalChartRequestWithId(NatalChartRequest):
    """Natal chart request with optional ID for batch operations."""
    id: Optional[str] = Field(
        None,
        description="Optional identifier for this chart in batch operations"
    )


class NatalChartBatchRequest(BaseModel):
    """Request model for batch natal chart calculations."""
    charts: list[NatalChartRequestWithId] = Field(
        ...,
        description="List of natal charts to calculate"
    )


class NormalizeRequest(BaseModel):
    """Pre-formatted provider text to normalize."""
    raw: str = Field(..., description="Planets/Houses text in any supported layout")

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [{
                "raw": "Planets:\nSun          15° Libra 0' 0.0\"\n\nHouses:\n"
                       "Ascendant    19° Libra 11' 24.0\"\n"
            }]
        }
    )


# Response Models
class NatalChartResponse(BaseModel):
    """Complete natal chart response."""
    birth: BirthInput
    location: GeoLocation
    timezone: TimeZoneInfo
    chart: ChartResult
    text: str


class ErrorDetail(BaseModel):
    """Error detail for batch operations."""
    type: str
    message: str
    detail: Optional[dict] = None


class BatchResultItem(BaseModel):
    """Single result in a batch operation."""
    id: Optional[str]
    success: bool
    data: Optional[NatalChartResponse] = None
    error: Optional[ErrorDetail] = None


class BatchSummary(BaseModel):
    """Summary statistics for batch operation."""
    total: int
    successful: int
    failed: int


class BatchResponse(BaseModel):
    """Response for batch operations."""
    results: list[BatchResultItem]
    summary: BatchSummary


class AspectDefinitionResponse(BaseModel):
    """Aspect definition with orb."""
    name: str
    symbol: str
    angle: float
    orb: float


class ConfigAspectsResponse(BaseModel):
    """Configuration response for aspects."""
    aspects: list[AspectDefinitionResponse]
    strong_orb: float


class ConfigHouseSystemsResponse(BaseModel):
    """Configuration response for house systems."""
    house_systems: list[str]
