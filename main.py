import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

import admin
from availability import compute_availability
from bookings import cancel_booking, create_booking, get_booking, recent_bookings
from config import Settings, configure_logging, load_settings
from database import Database, get_session
from exceptions import ConflictError, DataAccessError, NotFound, ValidationError
from logging_context import REQUEST_ID_HEADER, set_request_id
from pricing import calculate_pricing
from schemas import (
    BookingOut,
    BookingRequest,
    BookingResult,
    BookingSummary,
    PricingBreakdown,
    QuoteRequest,
    SlotAvailability,
)
from timeslots import to_facility_local

logger = logging.getLogger(__name__)

router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _localize(payload: QuoteRequest, settings: Settings):
    """Pin the requested start to naive facility-local time."""
    return payload.model_copy(
        update={"start_time": to_facility_local(payload.start_time, settings.tzinfo)}
    )


# --- GET /availability ---
@router.get("/availability", response_model=List[SlotAvailability])
async def get_availability(
    target_date: date = Query(alias="date"),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await compute_availability(session, target_date, settings.hours)


# --- POST /quote ---
@router.post("/quote", response_model=PricingBreakdown)
async def quote(
    payload: QuoteRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await calculate_pricing(session, _localize(payload, settings))


# --- POST /book ---
@router.post("/book", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def book(
    payload: BookingRequest,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await create_booking(session, _localize(payload, settings), settings.hours)


@router.get("/bookings", response_model=List[BookingSummary])
async def list_recent_bookings(
    limit: Optional[int] = Query(default=None, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    return await recent_bookings(session, limit or settings.recent_bookings_limit)


@router.get("/bookings/{reference}", response_model=BookingSummary)
async def read_booking(reference: str, session: AsyncSession = Depends(get_session)):
    return await get_booking(session, reference)


@router.post("/bookings/{reference}/cancel", response_model=BookingOut)
async def cancel(reference: str, session: AsyncSession = Depends(get_session)):
    return await cancel_booking(session, reference)


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": exc.message})

    @app.exception_handler(ConflictError)
    async def conflict(request: Request, exc: ConflictError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": exc.message, "resource": exc.resource, "remaining": exc.remaining},
        )

    @app.exception_handler(DataAccessError)
    async def data_access_error(request: Request, exc: DataAccessError):
        # The cause was logged where it was raised; never echo it.
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": exc.message}
        )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application.

    ``uvicorn --factory main:create_app`` reads settings from the
    environment; tests pass their own settings and database.
    """
    settings = settings or load_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.db.init()
        logger.info("Database ready")
        yield
        await app.state.db.close()

    app = FastAPI(title="Court Booking Engine", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database or Database(settings.database_url, echo=settings.sql_echo)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(router)
    app.include_router(admin.router)
    return app
