import logging
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from config import ROUTE_GEOHASH_PRECISION
from errors import InputError, NotFoundError
from geohash import check_coordinate
from models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Gender,
    Ride,
    RideStatus,
    User,
    as_utc,
    is_gender,
)
from route_index import build_route_index, index_points

logger = logging.getLogger(__name__)


def create_ride(session: Session, driver_id: int, *, origin_lat: float, origin_lng: float,
                dest_lat: float, dest_lng: float, polyline: str, departure_time: datetime,
                total_seats: int, price_per_seat: float = 0.0,
                origin_address: Optional[str] = None, dest_address: Optional[str] = None,
                same_company_only: bool = False, gender_preference: str = Gender.ANY.value,
                smoking_allowed: bool = False, pets_allowed: bool = False,
                music_allowed: bool = True) -> Ride:
    """Persist a scheduled ride together with its route geohash index.

    The index covers every polyline point and both endpoints at
    ROUTE_GEOHASH_PRECISION. It is written once here and never recomputed.
    """
    if session.get(User, driver_id) is None:
        raise NotFoundError(f"driver {driver_id} not found")
    check_coordinate(origin_lat, origin_lng)
    check_coordinate(dest_lat, dest_lng)
    if total_seats < 1:
        raise InputError(f"total seats must be at least 1, got {total_seats}")
    if price_per_seat < 0:
        raise InputError(f"price per seat must not be negative, got {price_per_seat}")
    if not is_gender(gender_preference):
        raise InputError(f"unknown gender preference {gender_preference!r}")

    cells = build_route_index(polyline, ROUTE_GEOHASH_PRECISION)
    cells |= index_points([(origin_lat, origin_lng), (dest_lat, dest_lng)], ROUTE_GEOHASH_PRECISION)

    ride = Ride(
        driver_id=driver_id,
        origin_lat=origin_lat,
        origin_lng=origin_lng,
        origin_address=origin_address,
        dest_lat=dest_lat,
        dest_lng=dest_lng,
        dest_address=dest_address,
        polyline=polyline,
        geohashes=sorted(cells),
        departure_time=as_utc(departure_time),
        total_seats=total_seats,
        price_per_seat=price_per_seat,
        status=RideStatus.SCHEDULED.value,
        same_company_only=same_company_only,
        gender_preference=gender_preference,
        smoking_allowed=smoking_allowed,
        pets_allowed=pets_allowed,
        music_allowed=music_allowed,
    )
    session.add(ride)
    session.commit()
    session.refresh(ride)
    logger.info("created ride %s for driver %s with %d geohash cells", ride.id, driver_id, len(cells))
    return ride


def _driver_ride(session: Session, ride_id: int, driver_id: int) -> Ride:
    ride = session.get(Ride, ride_id)
    # another driver's ride is reported as missing, not forbidden
    if ride is None or ride.driver_id != driver_id:
        raise NotFoundError(f"ride {ride_id} not found")
    return ride


def _move(session: Session, ride: Ride, expected: RideStatus, target: RideStatus) -> Ride:
    if ride.status != expected.value:
        raise InputError(f"ride {ride.id} is {ride.status}, expected {expected.value}")
    ride.status = target.value
    session.add(ride)
    return ride


def cancel_ride(session: Session, ride_id: int, driver_id: int) -> int:
    """Cancel a scheduled ride and every booking still holding seats on it."""
    ride = _move(session, _driver_ride(session, ride_id, driver_id), RideStatus.SCHEDULED, RideStatus.CANCELLED)
    bookings = (
        session.query(Booking)
        .filter(Booking.ride_id == ride_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
        .all()
    )
    for b in bookings:
        b.status = BookingStatus.CANCELLED.value
        session.add(b)
    session.commit()
    logger.info("cancelled ride %s and %d bookings", ride.id, len(bookings))
    return len(bookings)


def start_ride(session: Session, ride_id: int, driver_id: int) -> Ride:
    ride = _move(session, _driver_ride(session, ride_id, driver_id), RideStatus.SCHEDULED, RideStatus.ONGOING)
    session.commit()
    session.refresh(ride)
    logger.info("ride %s started", ride_id)
    return ride


def complete_ride(session: Session, ride_id: int, driver_id: int) -> Ride:
    ride = _move(session, _driver_ride(session, ride_id, driver_id), RideStatus.ONGOING, RideStatus.COMPLETED)
    session.commit()
    session.refresh(ride)
    logger.info("ride %s completed", ride_id)
    return ride
