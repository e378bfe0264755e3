from typing import Optional, List
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.types import TypeDecorator
from datetime import datetime, timezone
from enum import Enum
from config import DEFAULT_MAX_DEVIATION_KM, DEFAULT_TIME_WINDOW_MINUTES


class RideStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# bookings that hold seats against a ride's capacity
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.ACCEPTED.value)


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"
    OTHER = "OTHER"
    ANY = "ANY"


def is_gender(value) -> bool:
    return isinstance(value, str) and value in Gender.__members__


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware UTC copy of ``value``; naive values are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Stores UTC wall time in a plain DATETIME column and reads it back aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    company: Optional[str] = Field(default=None, index=True)
    gender: Optional[str] = None
    rating: float = 0.0
    total_rides_as_driver: int = 0


class Ride(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    driver_id: int = Field(foreign_key="user.id", index=True)
    origin_lat: float
    origin_lng: float
    origin_address: Optional[str] = None
    dest_lat: float
    dest_lng: float
    dest_address: Optional[str] = None
    polyline: str = ""
    # computed once at creation from the route; never rewritten
    geohashes: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    departure_time: datetime = Field(sa_type=UTCDateTime, index=True)
    total_seats: int = 4
    price_per_seat: float = 0.0
    status: str = Field(default=RideStatus.SCHEDULED.value, index=True)
    same_company_only: bool = False
    gender_preference: str = Gender.ANY.value
    smoking_allowed: bool = False
    pets_allowed: bool = False
    music_allowed: bool = True
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class Booking(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    ride_id: int = Field(foreign_key="ride.id", index=True)
    passenger_id: int = Field(foreign_key="user.id", index=True)
    seats_booked: int = 1
    status: str = Field(default=BookingStatus.PENDING.value, index=True)
    pickup_lat: float
    pickup_lng: float
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)


class DriverSummary(SQLModel):
    user_id: int
    rating: float = 0.0
    company: Optional[str] = None
    gender: Optional[str] = None
    total_rides_as_driver: int = 0


class PickupPoint(SQLModel):
    pickup_lat: float
    pickup_lng: float


class SearchQuery(SQLModel):
    origin_lat: float
    origin_lng: float
    dest_lat: float
    dest_lng: float
    departure_time: datetime
    seats: int = 1
    max_deviation_km: float = DEFAULT_MAX_DEVIATION_KM
    time_window_minutes: int = DEFAULT_TIME_WINDOW_MINUTES
    same_company_only: bool = False
    gender_preference: Optional[str] = None


class MatchResult(SQLModel):
    ride_id: int
    driver_id: int
    origin_lat: float
    origin_lng: float
    origin_address: Optional[str] = None
    dest_lat: float
    dest_lng: float
    dest_address: Optional[str] = None
    departure_time: datetime
    total_seats: int
    price_per_seat: float = 0.0
    driver_rating: float = 0.0
    start_distance: float
    end_distance: float
    total_deviation: float
    actual_available_seats: int
    match_score: float
