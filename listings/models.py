"""SQLAlchemy models for rental listings.

Data Architecture Overview:
- Property is the listed unit; each Property owns exactly one Location (1:1),
  written together by the creation pipeline and immutable afterwards
- Location.coordinates is a PostGIS geography point (SRID 4326) and is the
  column the radius search runs against
- Manager is the identity that created a listing (keyed by the auth subject)
- Lease is only read here, by the "available from" search predicate

Coordinates of (0, 0) mark a location whose address could not be geocoded.
"""

from datetime import date, datetime

from geoalchemy2 import Geography
from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base
from .schemas import PropertyType


class Manager(Base):
    """A property manager, identified by the auth provider's subject id."""

    __tablename__ = "managers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cognito_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(30))

    # Relationships
    managed_properties: Mapped[list["Property"]] = relationship(
        "Property", back_populates="manager"
    )

    def __repr__(self) -> str:
        return f"<Manager {self.cognito_id}>"


class Location(Base):
    """Postal address plus its geocoded point."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(100), nullable=False)
    state: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(100), nullable=False)
    postal_code: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    # GeoAlchemy2 adds a GIST index for spatial columns by default
    coordinates: Mapped[str] = mapped_column(
        Geography(geometry_type="POINT", srid=4326), nullable=False
    )

    # Relationships
    property: Mapped["Property"] = relationship(
        "Property", back_populates="location", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Location {self.id}: {self.address}, {self.city}>"


class Property(Base):
    """A rental listing."""

    __tablename__ = "properties"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price_per_month: Mapped[float] = mapped_column(Float, nullable=False)
    security_deposit: Mapped[float] = mapped_column(Float, nullable=False)
    application_fee: Mapped[float] = mapped_column(Float, nullable=False)
    photo_urls: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False)
    amenities: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    highlights: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    is_pets_allowed: Mapped[bool] = mapped_column(Boolean, default=False)
    is_parking_included: Mapped[bool] = mapped_column(Boolean, default=False)
    beds: Mapped[int] = mapped_column(Integer, nullable=False)
    baths: Mapped[float] = mapped_column(Float, nullable=False)
    square_feet: Mapped[int] = mapped_column(Integer, nullable=False)
    property_type: Mapped[PropertyType] = mapped_column(
        SQLEnum(PropertyType, name="property_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PropertyType.APARTMENT,
    )
    posted_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    average_rating: Mapped[float | None] = mapped_column(Float, default=0)
    number_of_reviews: Mapped[int | None] = mapped_column(Integer, default=0)

    location_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("locations.id"), unique=True, nullable=False
    )
    manager_cognito_id: Mapped[str] = mapped_column(
        String(100), ForeignKey("managers.cognito_id"), nullable=False, index=True
    )

    # Relationships
    location: Mapped["Location"] = relationship("Location", back_populates="property")
    manager: Mapped["Manager"] = relationship("Manager", back_populates="managed_properties")
    leases: Mapped[list["Lease"]] = relationship("Lease", back_populates="property")

    __table_args__ = (
        Index("ix_properties_amenities", "amenities", postgresql_using="gin"),
    )

    def __repr__(self) -> str:
        return f"<Property {self.id}: {self.name}>"


class Lease(Base):
    """A tenant's lease on a property."""

    __tablename__ = "leases"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("properties.id"), nullable=False, index=True
    )
    tenant_cognito_id: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent: Mapped[float] = mapped_column(Float, nullable=False)
    deposit: Mapped[float] = mapped_column(Float, nullable=False)

    # Relationships
    property: Mapped["Property"] = relationship("Property", back_populates="leases")

    def __repr__(self) -> str:
        return f"<Lease {self.id} on property {self.property_id}>"
