from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import func
from sqlmodel import Session

from errors import NotFoundError
from models import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    DriverSummary,
    PickupPoint,
    Ride,
    RideStatus,
    User,
)


@dataclass
class RideFilter:
    departs_after: Optional[datetime] = None
    departs_before: Optional[datetime] = None
    min_seats: Optional[int] = None
    geohash_in: Optional[Set[str]] = None
    company_eq: Optional[str] = None
    gender_eq: Optional[str] = None
    limit: Optional[int] = None


class RideStore:
    """Read access to rides, drivers and bookings for the matching code.

    Every method reads through the session it was built with; nothing here
    writes.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_ride(self, ride_id: int) -> Ride:
        ride = self.session.get(Ride, ride_id)
        if ride is None:
            raise NotFoundError(f"ride {ride_id} not found")
        return ride

    def get_user(self, user_id: int) -> Optional[User]:
        return self.session.get(User, user_id)

    def _booked_seats(self):
        return (
            self.session.query(Booking.ride_id, func.sum(Booking.seats_booked).label("booked"))
            .filter(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .group_by(Booking.ride_id)
            .subquery()
        )

    def list_scheduled_rides(self, flt: RideFilter) -> List[Ride]:
        """Scheduled rides matching ``flt``, best-rated driver first, then earliest departure."""
        q = (
            self.session.query(Ride)
            .join(User, User.id == Ride.driver_id)
            .filter(Ride.status == RideStatus.SCHEDULED.value)
        )
        if flt.departs_after is not None:
            q = q.filter(Ride.departure_time >= flt.departs_after)
        if flt.departs_before is not None:
            q = q.filter(Ride.departure_time <= flt.departs_before)
        if flt.min_seats is not None:
            booked = self._booked_seats()
            q = q.outerjoin(booked, booked.c.ride_id == Ride.id).filter(
                Ride.total_seats - func.coalesce(booked.c.booked, 0) >= flt.min_seats
            )
        if flt.company_eq is not None:
            q = q.filter(User.company == flt.company_eq)
        if flt.gender_eq is not None:
            q = q.filter(User.gender == flt.gender_eq)
        q = q.order_by(User.rating.desc(), Ride.departure_time.asc(), Ride.id.asc())

        if flt.geohash_in is None:
            if flt.limit is not None:
                q = q.limit(flt.limit)
            return q.all()

        cells = set(flt.geohash_in)
        rides = [r for r in q.all() if cells.intersection(r.geohashes or ())]
        if flt.limit is not None:
            rides = rides[:flt.limit]
        return rides

    def count_active_booked_seats(self, ride_id: int) -> int:
        booked = (
            self.session.query(func.coalesce(func.sum(Booking.seats_booked), 0))
            .filter(Booking.ride_id == ride_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES))
            .scalar()
        )
        return int(booked or 0)

    def get_driver_summary(self, user_id: int) -> DriverSummary:
        user = self.session.get(User, user_id)
        if user is None:
            raise NotFoundError(f"driver {user_id} not found")
        return DriverSummary(
            user_id=user.id,
            rating=user.rating,
            company=user.company,
            gender=user.gender,
            total_rides_as_driver=user.total_rides_as_driver,
        )

    def get_recent_completed_bookings(self, passenger_id: int, n: int) -> List[PickupPoint]:
        rows = (
            self.session.query(Booking)
            .filter(Booking.passenger_id == passenger_id, Booking.status == BookingStatus.COMPLETED.value)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(n)
            .all()
        )
        return [PickupPoint(pickup_lat=b.pickup_lat, pickup_lng=b.pickup_lng) for b in rows]
