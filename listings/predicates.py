"""Search filter compilation.

A SearchFilter is compiled into a PredicateSet: an ordered list of tagged
predicate variants, one per filter dimension that is actually set. The
variants carry only bound values; turning them into SQL is the repository's
job (see repository.render_predicate), so no user-supplied value is ever
spliced into query text.

Predicates always combine with AND. An empty set matches every row.
"""

from datetime import date
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .schemas import PropertyType, SearchFilter

# Radius searches use a fixed radius. The degree conversion is a flat
# 111 km-per-degree approximation, kept for compatibility with existing
# clients. It overstates east-west reach away from the equator and is
# meaningless near the poles.
SEARCH_RADIUS_KM = 1000
KM_PER_DEGREE = 111


def radius_degrees(radius_km: float = SEARCH_RADIUS_KM) -> float:
    """Convert a radius in kilometers to degrees with the linear approximation."""
    return radius_km / KM_PER_DEGREE


# =============================================================================
# PREDICATE VARIANTS
# =============================================================================


class IdMembership(BaseModel):
    """Row id is one of the given ids (favorites filtering)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["id_in"] = "id_in"
    ids: list[int]


class RangeBound(BaseModel):
    """A single inclusive bound on a numeric column."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["range"] = "range"
    field: Literal["price_per_month", "square_feet", "beds", "baths"]
    op: Literal[">=", "<="]
    value: float = Field(allow_inf_nan=False)


class PropertyTypeEquals(BaseModel):
    """Property category equals the given enum member."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["property_type"] = "property_type"
    value: PropertyType


class AmenitiesSuperset(BaseModel):
    """Row's amenity set contains every requested amenity."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["amenities"] = "amenities"
    amenities: list[str]


class LeaseStartedBy(BaseModel):
    """Some lease on the property starts on or before the given date.

    This is what "available from" has always meant in this API. It selects
    properties that already have a lease under way by that date, which is
    likely the opposite of the intended "vacant from" reading. Kept as-is
    until the product question is settled.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["lease_started_by"] = "lease_started_by"
    on_or_before: date


class WithinRadius(BaseModel):
    """Location point lies within `degrees` of the center (planar, SRID 4326)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["within_radius"] = "within_radius"
    latitude: float = Field(allow_inf_nan=False)
    longitude: float = Field(allow_inf_nan=False)
    degrees: float = Field(allow_inf_nan=False)


Predicate = Annotated[
    Union[
        IdMembership,
        RangeBound,
        PropertyTypeEquals,
        AmenitiesSuperset,
        LeaseStartedBy,
        WithinRadius,
    ],
    Field(discriminator="kind"),
]


class PredicateSet(BaseModel):
    """Conjunction of predicates, in filter declaration order."""

    model_config = ConfigDict(frozen=True)

    predicates: list[Predicate] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.predicates

    @property
    def kinds(self) -> list[str]:
        return [p.kind for p in self.predicates]


# =============================================================================
# COMPILATION
# =============================================================================


def compile_filter(search: SearchFilter) -> PredicateSet:
    """Compile a sparse filter into an ordered predicate set.

    Emits exactly one predicate per set field, in the order the fields are
    declared on SearchFilter. Unset fields emit nothing. Never raises: all
    value checking happens when the SearchFilter is validated.
    """
    predicates: list = []

    if search.favorite_ids:
        predicates.append(IdMembership(ids=search.favorite_ids))

    if search.price_min is not None:
        predicates.append(RangeBound(field="price_per_month", op=">=", value=search.price_min))

    if search.price_max is not None:
        predicates.append(RangeBound(field="price_per_month", op="<=", value=search.price_max))

    if search.beds is not None:
        predicates.append(RangeBound(field="beds", op=">=", value=search.beds))

    if search.baths is not None:
        predicates.append(RangeBound(field="baths", op=">=", value=search.baths))

    if search.property_type is not None:
        predicates.append(PropertyTypeEquals(value=search.property_type))

    if search.square_feet_min is not None:
        predicates.append(RangeBound(field="square_feet", op=">=", value=search.square_feet_min))

    if search.square_feet_max is not None:
        predicates.append(RangeBound(field="square_feet", op="<=", value=search.square_feet_max))

    if search.amenities:
        predicates.append(AmenitiesSuperset(amenities=search.amenities))

    if search.available_from is not None:
        predicates.append(LeaseStartedBy(on_or_before=search.available_from))

    if search.has_center:
        predicates.append(
            WithinRadius(
                latitude=search.latitude,
                longitude=search.longitude,
                degrees=radius_degrees(),
            )
        )

    return PredicateSet(predicates=predicates)
