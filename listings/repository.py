"""Storage access for listings.

Renders compiled predicates into SQLAlchemy expressions, runs searches and
lookups, and performs the individual inserts the creation transaction is
built from. Points are written with ST_MakePoint and read back either as
ST_X/ST_Y or as WKT text decoded here, so callers only ever see numeric
coordinates.
"""

import logging
from dataclasses import dataclass

from geoalchemy2 import Geometry
from shapely import wkt
from sqlalchemy import cast, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .models import Lease, Location, Property
from .predicates import (
    AmenitiesSuperset,
    IdMembership,
    LeaseStartedBy,
    PredicateSet,
    PropertyTypeEquals,
    RangeBound,
    WithinRadius,
)
from .schemas import AddressFields, Coordinates, LocationRead, PropertyCreate, PropertyRead

logger = logging.getLogger(__name__)

SRID = 4326

RANGE_COLUMNS = {
    "price_per_month": Property.price_per_month,
    "square_feet": Property.square_feet,
    "beds": Property.beds,
    "baths": Property.baths,
}


# =============================================================================
# Point encoding
# =============================================================================


def make_point(coordinates: Coordinates):
    """SQL expression for a WGS84 point built from bound lon/lat values."""
    return func.ST_SetSRID(func.ST_MakePoint(coordinates.longitude, coordinates.latitude), SRID)


def decode_point(point_wkt: str) -> Coordinates:
    """Decode 'POINT(lng lat)' text into numeric coordinates."""
    geom = wkt.loads(point_wkt)
    if geom.geom_type != "Point":
        raise ValueError(f"Expected a POINT, got {geom.geom_type}")
    return Coordinates(longitude=geom.x, latitude=geom.y)


def location_geometry():
    return cast(Location.coordinates, Geometry)


# =============================================================================
# Predicate rendering
# =============================================================================


def render_predicate(predicate):
    """Turn one predicate variant into a boolean SQL expression.

    Every value goes through a bind parameter.
    """
    if isinstance(predicate, IdMembership):
        return Property.id.in_(predicate.ids)

    if isinstance(predicate, RangeBound):
        column = RANGE_COLUMNS[predicate.field]
        if predicate.op == ">=":
            return column >= predicate.value
        return column <= predicate.value

    if isinstance(predicate, PropertyTypeEquals):
        return Property.property_type == predicate.value

    if isinstance(predicate, AmenitiesSuperset):
        # ARRAY @> ARRAY
        return Property.amenities.contains(predicate.amenities)

    if isinstance(predicate, LeaseStartedBy):
        return (
            select(Lease.id)
            .where(Lease.property_id == Property.id)
            .where(Lease.start_date <= predicate.on_or_before)
            .exists()
        )

    if isinstance(predicate, WithinRadius):
        center = make_point(
            Coordinates(longitude=predicate.longitude, latitude=predicate.latitude)
        )
        return func.ST_DWithin(location_geometry(), center, predicate.degrees)

    raise TypeError(f"Unsupported predicate: {predicate!r}")


def to_clauses(predicate_set: PredicateSet) -> list:
    return [render_predicate(p) for p in predicate_set.predicates]


# =============================================================================
# Composition
# =============================================================================


@dataclass(frozen=True)
class InsertedLocation:
    """A freshly inserted location row, point still in WKT form."""

    id: int
    address: str
    city: str
    state: str
    country: str
    postal_code: str
    coordinates_wkt: str


def location_read(location, coordinates: Coordinates) -> LocationRead:
    return LocationRead(
        id=location.id,
        address=location.address,
        city=location.city,
        state=location.state,
        country=location.country,
        postal_code=location.postal_code,
        coordinates=coordinates,
    )


def compose_property(prop: Property, location: LocationRead) -> PropertyRead:
    """Combine a property row with its decoded location."""
    fields = {
        name: getattr(prop, name)
        for name in PropertyRead.model_fields
        if name != "location"
    }
    return PropertyRead(**fields, location=location)


# =============================================================================
# Repository
# =============================================================================


class ListingRepository:
    """Queries and inserts for properties and their locations."""

    def __init__(self, session: Session):
        self.session = session

    def search(self, predicate_set: PredicateSet) -> list[PropertyRead]:
        geometry = location_geometry()
        stmt = (
            select(
                Property,
                Location,
                func.ST_X(geometry).label("longitude"),
                func.ST_Y(geometry).label("latitude"),
            )
            .join(Location, Property.location_id == Location.id)
            .where(*to_clauses(predicate_set))
            .order_by(Property.id)
        )

        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            logger.exception("Property search failed")
            raise PersistenceError(f"Error retrieving properties: {e}") from e

        logger.info(f"Search with {len(predicate_set.predicates)} predicates returned {len(rows)} properties")
        return [
            compose_property(
                prop,
                location_read(location, Coordinates(longitude=longitude, latitude=latitude)),
            )
            for prop, location, longitude, latitude in rows
        ]

    def get_property(self, property_id: int) -> PropertyRead | None:
        try:
            prop = self.session.get(Property, property_id)
            if prop is None:
                return None
            point_wkt = self.session.execute(
                select(func.ST_AsText(Location.coordinates)).where(Location.id == prop.location_id)
            ).scalar_one()
            location = prop.location
        except SQLAlchemyError as e:
            logger.exception(f"Lookup of property {property_id} failed")
            raise PersistenceError(f"Error retrieving property: {e}") from e

        return compose_property(prop, location_read(location, decode_point(point_wkt)))

    def insert_location(self, address: AddressFields, coordinates: Coordinates) -> InsertedLocation:
        stmt = (
            insert(Location)
            .values(
                address=address.address,
                city=address.city,
                state=address.state,
                country=address.country,
                postal_code=address.postal_code,
                coordinates=make_point(coordinates),
            )
            .returning(
                Location.id,
                Location.address,
                Location.city,
                Location.state,
                Location.country,
                Location.postal_code,
                func.ST_AsText(Location.coordinates).label("coordinates_wkt"),
            )
        )
        row = self.session.execute(stmt).one()
        logger.info(f"Created location {row.id}: {row.coordinates_wkt}")
        return InsertedLocation(
            id=row.id,
            address=row.address,
            city=row.city,
            state=row.state,
            country=row.country,
            postal_code=row.postal_code,
            coordinates_wkt=row.coordinates_wkt,
        )

    def insert_property(
        self,
        location_id: int,
        photo_urls: list[str],
        fields: PropertyCreate,
        manager_cognito_id: str,
    ) -> Property:
        prop = Property(
            name=fields.name,
            description=fields.description,
            price_per_month=fields.price_per_month,
            security_deposit=fields.security_deposit,
            application_fee=fields.application_fee,
            beds=fields.beds,
            baths=fields.baths,
            square_feet=fields.square_feet,
            is_pets_allowed=fields.is_pets_allowed,
            is_parking_included=fields.is_parking_included,
            amenities=list(fields.amenities),
            highlights=list(fields.highlights),
            property_type=fields.property_type,
            photo_urls=list(photo_urls),
            location_id=location_id,
            manager_cognito_id=manager_cognito_id,
        )
        self.session.add(prop)
        self.session.flush()
        return prop
