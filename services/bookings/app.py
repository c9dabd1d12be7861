import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session, joinedload

from staybook.config import get_settings
from staybook.database import Base, engine, get_db
from staybook.dependencies import require_auth
from staybook.errors import ApiError, ForbiddenError, NotFoundError, register_error_handlers
from staybook.logging_middleware import add_audit_middleware
from staybook.models import Booking, Spot, User
from staybook.overlap import Candidate, check_date_range, ensure_no_conflict, find_conflict
from staybook.rate_limit import apply_rate_limiter, limiter
from staybook.schemas import (
    AvailabilityRead,
    BookingCreate,
    BookingList,
    BookingPreviewList,
    BookingRead,
    BookingUpdate,
    MessageRead,
    SpotBookingList,
)

logger = logging.getLogger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.run_db_migrations:
        Base.metadata.create_all(bind=engine)
    yield


def create_app() -> FastAPI:
    fastapi_app = FastAPI(title="Bookings Service", version="0.2.0", lifespan=lifespan)
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    apply_rate_limiter(fastapi_app)
    register_error_handlers(fastapi_app)
    add_audit_middleware(fastapi_app, "bookings")
    return fastapi_app


app = create_app()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok", "service": "bookings"}


def _get_spot(db: Session, spot_id: int, lock: bool = False) -> Spot:
    query = db.query(Spot).filter(Spot.id == spot_id)
    if lock:
        # Serializes concurrent writers for the same spot until commit/rollback.
        query = query.with_for_update()
    spot = query.first()
    if not spot:
        raise NotFoundError("Spot couldn't be found")
    return spot


def _get_booking(db: Session, booking_id: int) -> Booking:
    booking = db.get(Booking, booking_id)
    if not booking:
        raise NotFoundError("Booking couldn't be found")
    return booking


def _ensure_availability(db: Session, candidate: Candidate) -> None:
    existing = (
        db.query(Booking)
        .filter(
            Booking.spot_id == candidate.spot_id,
            Booking.start_date <= candidate.end_date,
            Booking.end_date >= candidate.start_date,
        )
        .order_by(Booking.start_date)
        .all()
    )
    ensure_no_conflict(candidate, existing)


@app.get("/bookings/current", response_model=BookingList)
@limiter.limit("60/minute")
def list_my_bookings(
    request: Request,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.spot))
        .filter(Booking.user_id == current_user.id)
        .order_by(Booking.start_date)
        .all()
    )
    return {"Bookings": bookings}


@app.get("/spots/{spot_id}/bookings", response_model=None)
@limiter.limit("60/minute")
def list_spot_bookings(
    request: Request,
    spot_id: int,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> SpotBookingList | BookingPreviewList:
    spot = _get_spot(db, spot_id)
    bookings = (
        db.query(Booking)
        .options(joinedload(Booking.user))
        .filter(Booking.spot_id == spot.id)
        .order_by(Booking.start_date)
        .all()
    )
    if spot.owner_id == current_user.id:
        return SpotBookingList.model_validate({"Bookings": bookings}, from_attributes=True)
    return BookingPreviewList.model_validate({"Bookings": bookings}, from_attributes=True)


@app.post("/spots/{spot_id}/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
def create_booking(
    request: Request,
    spot_id: int,
    booking_in: BookingCreate,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Booking:
    try:
        spot = _get_spot(db, spot_id, lock=True)
        if spot.owner_id == current_user.id:
            raise ForbiddenError()
        check_date_range(booking_in.start_date, booking_in.end_date, date.today())
        _ensure_availability(db, Candidate(spot.id, booking_in.start_date, booking_in.end_date))
    except ApiError:
        db.rollback()
        raise

    booking = Booking(
        user_id=current_user.id,
        spot_id=spot.id,
        start_date=booking_in.start_date,
        end_date=booking_in.end_date,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s created on spot %s by user %s", booking.id, spot.id, current_user.id)
    return booking


@app.put("/bookings/{booking_id}", response_model=BookingRead)
@limiter.limit("20/minute")
def update_booking(
    request: Request,
    booking_id: int,
    booking_update: BookingUpdate,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> Booking:
    today = date.today()
    try:
        booking = _get_booking(db, booking_id)
        if booking.user_id != current_user.id:
            raise ForbiddenError()
        if booking.end_date < today:
            raise ForbiddenError("Past bookings can't be modified")

        data = booking_update.model_dump(exclude_unset=True, exclude_none=True)
        start = data.get("start_date", booking.start_date)
        end = data.get("end_date", booking.end_date)
        check_date_range(start, end, today)

        _get_spot(db, booking.spot_id, lock=True)
        _ensure_availability(db, Candidate(booking.spot_id, start, end, exclude_booking_id=booking.id))
    except ApiError:
        db.rollback()
        raise

    booking.start_date = start
    booking.end_date = end
    db.commit()
    db.refresh(booking)
    return booking


@app.delete("/bookings/{booking_id}", response_model=MessageRead)
@limiter.limit("20/minute")
def delete_booking(
    request: Request,
    booking_id: int,
    current_user: User = Depends(require_auth),
    db: Session = Depends(get_db),
) -> MessageRead:
    booking = _get_booking(db, booking_id)
    if current_user.id not in {booking.user_id, booking.spot.owner_id}:
        raise ForbiddenError()
    if booking.start_date <= date.today():
        raise ForbiddenError("Bookings that have been started can't be deleted")
    db.delete(booking)
    db.commit()
    return MessageRead(message="Successfully deleted")


@app.get("/spots/{spot_id}/availability", response_model=AvailabilityRead, response_model_exclude_none=True)
@limiter.limit("40/minute")
def check_availability(
    request: Request,
    spot_id: int,
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    db: Session = Depends(get_db),
) -> AvailabilityRead:
    spot = _get_spot(db, spot_id)
    check_date_range(start_date, end_date, date.today())
    existing = db.query(Booking).filter(Booking.spot_id == spot.id).all()
    conflict = find_conflict(Candidate(spot.id, start_date, end_date), existing)
    if conflict is None:
        return AvailabilityRead(spot_id=spot.id, available=True)
    return AvailabilityRead(spot_id=spot.id, available=False, errors={conflict.field: conflict.message})
