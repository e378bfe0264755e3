from datetime import datetime, timedelta, timezone
from db import init_db, get_session
from models import User, Booking, BookingStatus
from rides import create_ride
from route_index import encode_polyline
import random


def _route(origin, dest, steps=20):
    # straight-line route sampled every few hundred metres
    return [
        (round(origin[0] + (dest[0] - origin[0]) * i / steps, 5),
         round(origin[1] + (dest[1] - origin[1]) * i / steps, 5))
        for i in range(steps + 1)
    ]


def seed():
    init_db()
    session = get_session()
    companies = ["Acme", "Globex", "Initech", None]
    users = [
        User(
            name=f"user{i}",
            company=companies[i % len(companies)],
            gender=random.choice(["MALE", "FEMALE"]),
            rating=round(random.uniform(3.5, 5.0), 1),
            total_rides_as_driver=random.randint(0, 80),
        )
        for i in range(1, 21)
    ]
    session.add_all(users)
    session.commit()
    # commutes from around Koramangala to Manyata Tech Park, Bengaluru
    home = (12.9352, 77.6245)
    office = (13.0358, 77.6431)
    start = datetime.now(timezone.utc).replace(second=0, microsecond=0) + timedelta(days=1)
    rides = []
    for i in range(1, 31):
        driver = users[(i - 1) % len(users)]
        origin = (home[0] + (random.random() - 0.5) * 0.05, home[1] + (random.random() - 0.5) * 0.05)
        dest = (office[0] + (random.random() - 0.5) * 0.02, office[1] + (random.random() - 0.5) * 0.02)
        rides.append(create_ride(
            session,
            driver.id,
            origin_lat=origin[0], origin_lng=origin[1],
            dest_lat=dest[0], dest_lng=dest[1],
            polyline=encode_polyline(_route(origin, dest)),
            departure_time=start + timedelta(minutes=random.randint(-60, 60)),
            total_seats=random.choice([2, 3, 4]),
            price_per_seat=round(random.uniform(50, 150), 0),
        ))
    # some completed history so the recommended feed has pickups to average
    for i, u in enumerate(users[:10]):
        ride = rides[i]
        session.add(Booking(
            ride_id=ride.id,
            passenger_id=u.id,
            seats_booked=1,
            status=BookingStatus.COMPLETED.value,
            pickup_lat=ride.origin_lat,
            pickup_lng=ride.origin_lng,
        ))
    session.commit()
    print("Seeded sample data")


if __name__ == "__main__":
    seed()
