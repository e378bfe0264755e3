import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlmodel import SQLModel, create_engine

import db as db_mod
from db import get_session
from models import Booking, User
from rides import create_ride
from route_index import encode_polyline

KORAMANGALA = (12.9716, 77.5946)
MANYATA = (13.0358, 77.6431)


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    """Each test runs against a fresh database file."""
    test_db = f"sqlite:///{tmp_path}/test.db"
    new_engine = create_engine(test_db, echo=False, connect_args={"check_same_thread": False})
    monkeypatch.setattr(db_mod, "engine", new_engine)
    SQLModel.metadata.create_all(new_engine)
    yield
    SQLModel.metadata.drop_all(new_engine)
    new_engine.dispose()


def make_user(name="Alice", company=None, gender=None, rating=4.0, rides_as_driver=0):
    session = get_session()
    u = User(name=name, company=company, gender=gender, rating=rating,
             total_rides_as_driver=rides_as_driver)
    session.add(u)
    session.commit()
    session.refresh(u)
    return u


def make_ride(driver_id, origin=KORAMANGALA, dest=MANYATA,
              departure=datetime(2030, 1, 15, 9, 0, tzinfo=timezone.utc), seats=4, route=None, **prefs):
    session = get_session()
    points = route if route is not None else [origin, dest]
    return create_ride(
        session,
        driver_id,
        origin_lat=origin[0], origin_lng=origin[1],
        dest_lat=dest[0], dest_lng=dest[1],
        polyline=encode_polyline(points),
        departure_time=departure,
        total_seats=seats,
        **prefs,
    )


def make_booking(ride_id, passenger_id, seats=1, status="ACCEPTED", pickup=KORAMANGALA,
                 created_at=None):
    session = get_session()
    b = Booking(ride_id=ride_id, passenger_id=passenger_id, seats_booked=seats, status=status,
                pickup_lat=pickup[0], pickup_lng=pickup[1])
    if created_at is not None:
        b.created_at = created_at
    session.add(b)
    session.commit()
    session.refresh(b)
    return b
