"""Pydantic validation schemas for the listings API.

These schemas are the contract at both edges of the core:
- SearchFilter is the sparse, request-scoped filter the predicate compiler reads
- PropertyCreate carries the multipart form fields into the creation pipeline
- PropertyRead / LocationRead are what every read path returns, always with
  numeric coordinates rather than the database's point encoding

Form and query values arrive as strings; the validators below coerce them and
reject anything malformed instead of letting NaN reach a bound parameter.
"""

import math
from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Query value meaning "do not filter on this dimension"
ANY = "any"


# =============================================================================
# ENUMS
# =============================================================================


class PropertyType(str, Enum):
    """Closed set of property categories known to the store."""

    ROOMS = "Rooms"
    TINYHOUSE = "Tinyhouse"
    APARTMENT = "Apartment"
    VILLA = "Villa"
    TOWNHOUSE = "Townhouse"
    COTTAGE = "Cottage"


# =============================================================================
# LOCATION
# =============================================================================


class Coordinates(BaseModel):
    """A (longitude, latitude) pair in WGS84 degrees.

    (0, 0) is reserved as the marker for an address that could not be
    geocoded. It is never produced as a real lookup result.
    """

    longitude: float = Field(allow_inf_nan=False, description="Longitude in degrees")
    latitude: float = Field(allow_inf_nan=False, description="Latitude in degrees")

    @classmethod
    def unresolved(cls) -> "Coordinates":
        return cls(longitude=0.0, latitude=0.0)

    @property
    def is_unresolved(self) -> bool:
        return self.longitude == 0 and self.latitude == 0


class AddressFields(BaseModel):
    """Free-form postal address as entered by a manager."""

    model_config = ConfigDict(str_strip_whitespace=True)

    address: str = Field(min_length=1, description="Street address")
    city: str = Field(min_length=1)
    state: str = Field(default="", description="State, province or region")
    country: str = Field(min_length=1)
    postal_code: str = Field(default="")

    def as_query(self) -> str:
        """Single free-text line for the geocoding service."""
        return ", ".join(
            [self.address, self.city, self.state, self.country, self.postal_code]
        )


class LocationRead(BaseModel):
    """A stored location with decoded coordinates."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    city: str
    state: str
    country: str
    postal_code: str
    coordinates: Coordinates


# =============================================================================
# PROPERTY
# =============================================================================


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class PropertyCreate(AddressFields):
    """Fields submitted with a create request (multipart form values)."""

    name: str = Field(min_length=1, max_length=200)
    description: str = Field(default="")
    price_per_month: float = Field(ge=0, allow_inf_nan=False)
    security_deposit: float = Field(ge=0, allow_inf_nan=False)
    application_fee: float = Field(ge=0, allow_inf_nan=False)
    beds: int = Field(ge=0)
    baths: float = Field(ge=0, allow_inf_nan=False)
    square_feet: int = Field(ge=0)
    is_pets_allowed: bool = False
    is_parking_included: bool = False
    amenities: list[str] = Field(default_factory=list)
    highlights: list[str] = Field(default_factory=list)
    property_type: PropertyType = PropertyType.APARTMENT

    @field_validator("is_pets_allowed", "is_parking_included", mode="before")
    @classmethod
    def parse_flag(cls, v):
        """Only the literal string "true" (or a real True) sets a flag."""
        if isinstance(v, bool):
            return v
        return v == "true"

    @field_validator("amenities", "highlights", mode="before")
    @classmethod
    def split_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return _split_csv(v)
        return v

    @field_validator("property_type", mode="before")
    @classmethod
    def default_property_type(cls, v):
        if v is None or v == "":
            return PropertyType.APARTMENT
        return v

    def address_fields(self) -> AddressFields:
        return AddressFields(
            address=self.address,
            city=self.city,
            state=self.state,
            country=self.country,
            postal_code=self.postal_code,
        )


class PropertyRead(BaseModel):
    """A property joined with its location."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    price_per_month: float
    security_deposit: float
    application_fee: float
    beds: int
    baths: float
    square_feet: int
    is_pets_allowed: bool
    is_parking_included: bool
    amenities: list[str]
    highlights: list[str]
    photo_urls: list[str]
    property_type: PropertyType
    posted_date: datetime | None = None
    average_rating: float | None = None
    number_of_reviews: int | None = None
    location_id: int
    manager_cognito_id: str
    location: LocationRead


class PropertyCreateResponse(PropertyRead):
    """Creation response; flags which photo URLs are placeholder substitutes."""

    photo_placeholders: list[bool] = Field(
        default_factory=list,
        description="Aligned with photo_urls; True where the upload was replaced by a placeholder"
    )


# =============================================================================
# SEARCH
# =============================================================================


class SearchFilter(BaseModel):
    """Sparse search filter. Every field is optional.

    A missing field, an empty string or the sentinel "any" leaves that
    dimension unfiltered. Field declaration order is the order in which
    predicates are emitted.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    favorite_ids: list[int] | None = Field(default=None, description="Restrict to these property ids")
    price_min: float | None = Field(default=None, allow_inf_nan=False)
    price_max: float | None = Field(default=None, allow_inf_nan=False)
    beds: float | None = Field(default=None, allow_inf_nan=False, description="Minimum number of beds")
    baths: float | None = Field(default=None, allow_inf_nan=False, description="Minimum number of baths")
    property_type: PropertyType | None = None
    square_feet_min: float | None = Field(default=None, allow_inf_nan=False)
    square_feet_max: float | None = Field(default=None, allow_inf_nan=False)
    amenities: list[str] | None = Field(default=None, description="Required amenities (all of them)")
    available_from: date | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90, allow_inf_nan=False)
    longitude: float | None = Field(default=None, ge=-180, le=180, allow_inf_nan=False)

    @field_validator("*", mode="before")
    @classmethod
    def unset_sentinels(cls, v):
        if isinstance(v, str) and v.strip() in ("", ANY):
            return None
        if isinstance(v, float) and math.isnan(v):
            raise ValueError("NaN is not a valid filter value")
        return v

    @field_validator("favorite_ids", "amenities", mode="before")
    @classmethod
    def split_csv(cls, v):
        if isinstance(v, str):
            if v.strip() in ("", ANY):
                return None
            return _split_csv(v) or None
        if isinstance(v, list) and not v:
            return None
        return v

    @model_validator(mode="after")
    def validate_radius_center(self) -> "SearchFilter":
        """A radius search needs both halves of the center point."""
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

    @property
    def has_center(self) -> bool:
        return self.latitude is not None and self.longitude is not None
