"""Property creation pipeline.

Resolve the address, ingest the photos, then write the location and the
property in one transaction. The first two steps degrade instead of failing;
only persistence can fail a create request.
"""

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .geocoding import GeocodingResolver
from .media import Blob, MediaIngestor
from .repository import ListingRepository, compose_property, decode_point, location_read
from .schemas import Coordinates, PropertyCreate, PropertyCreateResponse, PropertyRead

logger = logging.getLogger(__name__)


class CreationTransaction:
    """Write a Location and its Property atomically."""

    def __init__(
        self,
        session: Session,
        repository: ListingRepository | None = None,
        log: logging.Logger | None = None,
    ):
        self.session = session
        self.repository = repository or ListingRepository(session)
        self.log = log or logger

    def create(
        self,
        coordinates: Coordinates,
        photo_urls: list[str],
        fields: PropertyCreate,
        manager_cognito_id: str,
    ) -> PropertyRead:
        """Insert both rows and return the composed property.

        A failure anywhere inside the transaction rolls back the location
        insert too, so no orphaned location is left behind.
        """
        try:
            with self.session.begin():
                location = self.repository.insert_location(fields.address_fields(), coordinates)
                prop = self.repository.insert_property(
                    location.id, photo_urls, fields, manager_cognito_id
                )
                created = compose_property(
                    prop, location_read(location, decode_point(location.coordinates_wkt))
                )
        except SQLAlchemyError as e:
            self.log.exception("Database error while creating property")
            raise PersistenceError(f"Error creating property in database: {e}") from e

        self.log.info(f"Property created successfully: {created.id}")
        return created


class PropertyCreationPipeline:
    """Geocode → upload photos → persist, strictly in that order."""

    def __init__(
        self,
        geocoder: GeocodingResolver,
        media: MediaIngestor,
        transaction: CreationTransaction,
    ):
        self.geocoder = geocoder
        self.media = media
        self.transaction = transaction

    async def run(
        self,
        fields: PropertyCreate,
        blobs: list[Blob],
        manager_cognito_id: str,
    ) -> PropertyCreateResponse:
        coordinates = await self.geocoder.resolve(fields.address_fields())
        media = await self.media.ingest(blobs, fields.name)

        created = await asyncio.to_thread(
            self.transaction.create,
            coordinates,
            media.urls,
            fields,
            manager_cognito_id,
        )
        return PropertyCreateResponse(
            **created.model_dump(),
            photo_placeholders=media.placeholders,
        )
