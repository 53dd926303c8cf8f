"""FastAPI application for the rental listings API."""

import logging
from contextlib import asynccontextmanager

import logfire
from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.requests import Request

from . import config
from .auth import Identity, require_manager
from .creation import CreationTransaction, PropertyCreationPipeline
from .database import engine, get_db, init_db
from .errors import PersistenceError, error_body
from .geocoding import GeocodingResolver
from .media import Blob, MediaIngestor
from .predicates import compile_filter
from .repository import ListingRepository
from .schemas import PropertyCreate, PropertyCreateResponse, PropertyRead, SearchFilter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    init_db()
    yield


app = FastAPI(
    title="Rental Listings API",
    description="Property search and listing creation for rental managers",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure Logfire for observability (after app creation)
if config.LOGFIRE_TOKEN:
    logfire.configure()
    logfire.instrument_fastapi(app)
    logfire.instrument_httpx()
    logfire.instrument_sqlalchemy(engine=engine)
    logging.basicConfig(level=logging.INFO, handlers=[logfire.LogfireLoggingHandler()])

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return JSONResponse(error_body(str(exc), exc), status_code=500)


# =============================================================================
# Dependencies
# =============================================================================


def get_repository(db: Session = Depends(get_db)) -> ListingRepository:
    return ListingRepository(db)


def get_creation_transaction(
    db: Session = Depends(get_db),
    repository: ListingRepository = Depends(get_repository),
) -> CreationTransaction:
    return CreationTransaction(db, repository)


def get_geocoder() -> GeocodingResolver:
    return GeocodingResolver()


def get_media_ingestor() -> MediaIngestor:
    return MediaIngestor()


def _validated(model, data: dict):
    """Validate string inputs into a schema, reporting failures as a 422."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


# =============================================================================
# Routes
# =============================================================================


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Rental Listings API"}


@app.get("/properties", response_model=list[PropertyRead], tags=["properties"])
def list_properties(
    favorite_ids: str | None = None,
    price_min: str | None = None,
    price_max: str | None = None,
    beds: str | None = None,
    baths: str | None = None,
    property_type: str | None = None,
    square_feet_min: str | None = None,
    square_feet_max: str | None = None,
    amenities: str | None = None,
    available_from: str | None = None,
    latitude: str | None = None,
    longitude: str | None = None,
    repository: ListingRepository = Depends(get_repository),
):
    """Search properties.

    Every parameter is optional; omitting one, or passing "any", leaves that
    dimension unfiltered. Filters combine with AND. `favorite_ids` and
    `amenities` are comma-separated. `latitude` + `longitude` restrict
    results to a fixed 1000 km radius (flat-degree approximation).
    """
    search = _validated(SearchFilter, {
        "favorite_ids": favorite_ids,
        "price_min": price_min,
        "price_max": price_max,
        "beds": beds,
        "baths": baths,
        "property_type": property_type,
        "square_feet_min": square_feet_min,
        "square_feet_max": square_feet_max,
        "amenities": amenities,
        "available_from": available_from,
        "latitude": latitude,
        "longitude": longitude,
    })
    predicates = compile_filter(search)
    logger.debug(f"Compiled search predicates: {predicates.kinds}")
    return repository.search(predicates)


@app.get("/properties/{property_id}", response_model=PropertyRead, tags=["properties"])
def get_property(
    property_id: int,
    repository: ListingRepository = Depends(get_repository),
):
    """Get a single property with its decoded location."""
    prop = repository.get_property(property_id)
    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")
    return prop


@app.post(
    "/properties",
    response_model=PropertyCreateResponse,
    status_code=201,
    tags=["properties"],
)
async def create_property(
    name: str = Form(...),
    description: str = Form(""),
    price_per_month: str = Form(...),
    security_deposit: str = Form(...),
    application_fee: str = Form(...),
    beds: str = Form(...),
    baths: str = Form(...),
    square_feet: str = Form(...),
    is_pets_allowed: str = Form("false"),
    is_parking_included: str = Form("false"),
    amenities: str = Form(""),
    highlights: str = Form(""),
    property_type: str = Form(""),
    address: str = Form(...),
    city: str = Form(...),
    state: str = Form(""),
    country: str = Form(...),
    postal_code: str = Form(""),
    photos: list[UploadFile] = File(default=[]),
    identity: Identity = Depends(require_manager),
    geocoder: GeocodingResolver = Depends(get_geocoder),
    media: MediaIngestor = Depends(get_media_ingestor),
    transaction: CreationTransaction = Depends(get_creation_transaction),
):
    """Create a property for the calling manager.

    Geocoding and photo uploads never fail the request: an unresolvable
    address is stored at (0, 0) and a failed upload is replaced by a
    placeholder image (flagged in `photo_placeholders`).
    """
    fields = _validated(PropertyCreate, {
        "name": name,
        "description": description,
        "price_per_month": price_per_month,
        "security_deposit": security_deposit,
        "application_fee": application_fee,
        "beds": beds,
        "baths": baths,
        "square_feet": square_feet,
        "is_pets_allowed": is_pets_allowed,
        "is_parking_included": is_parking_included,
        "amenities": amenities,
        "highlights": highlights,
        "property_type": property_type,
        "address": address,
        "city": city,
        "state": state,
        "country": country,
        "postal_code": postal_code,
    })
    logger.info(f"Creating property '{fields.name}' for manager {identity.user_id} with {len(photos)} photos")

    try:
        blobs = [
            Blob(
                filename=photo.filename or f"photo-{i}",
                content_type=photo.content_type or "application/octet-stream",
                data=await photo.read(),
            )
            for i, photo in enumerate(photos)
        ]
        pipeline = PropertyCreationPipeline(geocoder, media, transaction)
        return await pipeline.run(fields, blobs, identity.user_id)
    except PersistenceError:
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in create_property: {e}")
        return JSONResponse(error_body(f"Error creating property: {e}", e), status_code=500)
