# tests/utils.py
"""In-memory stand-ins for the database, S3 and predicate evaluation."""

from __future__ import annotations

import itertools
import math
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime

from botocore.exceptions import ClientError
from sqlalchemy.exc import IntegrityError

from listings.models import Property
from listings.predicates import (
    AmenitiesSuperset,
    IdMembership,
    LeaseStartedBy,
    PredicateSet,
    PropertyTypeEquals,
    RangeBound,
    WithinRadius,
)
from listings.repository import InsertedLocation, compose_property, decode_point, location_read
from listings.schemas import AddressFields, Coordinates, PropertyCreate, PropertyRead, PropertyType

DEFAULT_MANAGER = "manager-123"


def make_property_create(**overrides) -> PropertyCreate:
    """PropertyCreate from form-style string values."""
    form = {
        "name": "Sunset Villas",
        "description": "Sea views",
        "price_per_month": "2500",
        "security_deposit": "2500",
        "application_fee": "50",
        "beds": "2",
        "baths": "1.5",
        "square_feet": "900",
        "is_pets_allowed": "true",
        "is_parking_included": "false",
        "amenities": "wifi,parking",
        "highlights": "GreatView",
        "property_type": "Villa",
        "address": "1 Ocean Drive",
        "city": "Nowhere",
        "state": "CA",
        "country": "United States",
        "postal_code": "90000",
    }
    form.update(overrides)
    return PropertyCreate.model_validate(form)


# =============================================================================
# Database stand-ins
# =============================================================================


@dataclass(frozen=True)
class LeaseRow:
    property_id: int
    start_date: date


class InMemoryStore:
    """Committed rows plus writes staged by the current transaction."""

    def __init__(self, managers=(DEFAULT_MANAGER,)):
        self.managers = set(managers)
        self.locations: dict[int, InsertedLocation] = {}
        self.properties: dict[int, Property] = {}
        self.leases: list[LeaseRow] = []
        self._pending: list[tuple[dict, int, object]] = []
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)

    def stage(self, table: dict, row_id: int, row) -> None:
        self._pending.append((table, row_id, row))

    def commit(self) -> None:
        for table, row_id, row in self._pending:
            table[row_id] = row
        self._pending.clear()

    def rollback(self) -> None:
        self._pending.clear()

    def seed_listing(
        self,
        *,
        longitude: float = 0.0,
        latitude: float = 0.0,
        amenities: list[str] | None = None,
        leases: list[date] | None = None,
        **overrides,
    ) -> int:
        """Insert a committed location + property directly."""
        location_id = self.next_id()
        self.locations[location_id] = InsertedLocation(
            id=location_id,
            address="1 Test Street",
            city="Testville",
            state="TS",
            country="Testland",
            postal_code="00000",
            coordinates_wkt=f"POINT({longitude} {latitude})",
        )
        values = {
            "name": "Listing",
            "description": "",
            "price_per_month": 1000.0,
            "security_deposit": 1000.0,
            "application_fee": 25.0,
            "beds": 1,
            "baths": 1.0,
            "square_feet": 500,
            "is_pets_allowed": False,
            "is_parking_included": False,
            "highlights": [],
            "photo_urls": ["https://example.com/photo.jpg"],
            "property_type": PropertyType.APARTMENT,
            "manager_cognito_id": DEFAULT_MANAGER,
        }
        values.update(overrides)
        property_id = self.next_id()
        self.properties[property_id] = Property(
            id=property_id,
            location_id=location_id,
            amenities=list(amenities or []),
            posted_date=datetime(2026, 1, 1),
            average_rating=0.0,
            number_of_reviews=0,
            **values,
        )
        for start in leases or []:
            self.leases.append(LeaseRow(property_id=property_id, start_date=start))
        return property_id


class FakeSession:
    """Session double whose begin() commits or rolls back the store."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    @contextmanager
    def begin(self):
        try:
            yield self
        except BaseException:
            self.store.rollback()
            self.rollbacks += 1
            raise
        else:
            self.store.commit()
            self.commits += 1

    def close(self) -> None:
        self.closed = True


class InMemoryRepository:
    """ListingRepository counterpart backed by InMemoryStore."""

    def __init__(self, store: InMemoryStore):
        self.store = store

    def insert_location(self, address: AddressFields, coordinates: Coordinates) -> InsertedLocation:
        location = InsertedLocation(
            id=self.store.next_id(),
            address=address.address,
            city=address.city,
            state=address.state,
            country=address.country,
            postal_code=address.postal_code,
            coordinates_wkt=f"POINT({coordinates.longitude} {coordinates.latitude})",
        )
        self.store.stage(self.store.locations, location.id, location)
        return location

    def insert_property(self, location_id, photo_urls, fields: PropertyCreate, manager_cognito_id):
        if manager_cognito_id not in self.store.managers:
            raise IntegrityError(
                "INSERT INTO properties ...",
                {},
                Exception('insert or update on table "properties" violates foreign key constraint'),
            )
        prop = Property(
            id=self.store.next_id(),
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
            posted_date=datetime(2026, 1, 1),
            average_rating=0.0,
            number_of_reviews=0,
        )
        self.store.stage(self.store.properties, prop.id, prop)
        return prop

    def _read(self, prop: Property) -> PropertyRead:
        location = self.store.locations[prop.location_id]
        return compose_property(prop, location_read(location, decode_point(location.coordinates_wkt)))

    def get_property(self, property_id: int) -> PropertyRead | None:
        prop = self.store.properties.get(property_id)
        return self._read(prop) if prop is not None else None

    def search(self, predicate_set: PredicateSet) -> list[PropertyRead]:
        rows = [self._read(p) for _, p in sorted(self.store.properties.items())]
        return [
            row for row in rows
            if all(matches(pred, row, self.store.leases) for pred in predicate_set.predicates)
        ]


def matches(predicate, row: PropertyRead, leases: list[LeaseRow]) -> bool:
    """Evaluate one predicate the way PostgreSQL/PostGIS would."""
    if isinstance(predicate, IdMembership):
        return row.id in predicate.ids
    if isinstance(predicate, RangeBound):
        value = getattr(row, predicate.field)
        return value >= predicate.value if predicate.op == ">=" else value <= predicate.value
    if isinstance(predicate, PropertyTypeEquals):
        return row.property_type == predicate.value
    if isinstance(predicate, AmenitiesSuperset):
        return set(row.amenities) >= set(predicate.amenities)
    if isinstance(predicate, LeaseStartedBy):
        return any(
            lease.property_id == row.id and lease.start_date <= predicate.on_or_before
            for lease in leases
        )
    if isinstance(predicate, WithinRadius):
        # ST_DWithin on SRID 4326 geometry: planar distance in degrees
        point = row.location.coordinates
        distance = math.hypot(point.longitude - predicate.longitude, point.latitude - predicate.latitude)
        return distance <= predicate.degrees
    raise TypeError(predicate)


# =============================================================================
# S3 stand-in
# =============================================================================


class FakeS3Client:
    """Records put_object calls; fails or delays uploads by filename."""

    def __init__(self, fail_on: set[str] | None = None, delays: dict[str, float] | None = None):
        self.fail_on = fail_on or set()
        self.delays = delays or {}
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def put_object(self, **kwargs):
        filename = kwargs["Key"].split("-", 2)[2]
        time.sleep(self.delays.get(filename, 0))
        with self._lock:
            self.calls.append(kwargs)
        if filename in self.fail_on:
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "We encountered an internal error"}},
                "PutObject",
            )
        return {"ETag": '"abc"'}
