import contextlib
import logging
from datetime import datetime

import anyio
import anyio.to_thread
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.requests import Request
from starlette.routing import Route

from config import (
    DEFAULT_MAX_DEVIATION_KM,
    DEFAULT_TIME_WINDOW_MINUTES,
    LOG_LEVEL,
    SEARCH_TIMEOUT_SECONDS,
)
from db import init_db, get_session
from errors import InputError, NotFoundError
from geocoding import NominatimGeocoder
from matching import search_rides, recommend_rides
from models import Gender, MatchResult, Ride, SearchQuery, as_utc, is_gender
from rides import (
    cancel_ride as cancel_ride_record,
    complete_ride,
    create_ride as create_ride_record,
    start_ride,
)
from store import RideStore

logger = logging.getLogger(__name__)


def ensure_db():
    init_db()


@contextlib.asynccontextmanager
async def lifespan(app):
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    ensure_db()
    yield


# ────────────────────────── payload helpers ─────────────────────────────────

async def _json_body(request: Request) -> dict:
    try:
        payload = await request.json()
    except ValueError:
        raise InputError("request body must be JSON")
    if not isinstance(payload, dict):
        raise InputError("request body must be a JSON object")
    return payload


def _number(payload: dict, key: str, default=None) -> float:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputError(f"{key} must be a number")
    return float(value)


def _integer(payload: dict, key: str, default=None) -> int:
    value = payload.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputError(f"{key} must be an integer")
    return value


def _flag(payload: dict, key: str, default: bool = False) -> bool:
    value = payload.get(key, default)
    if not isinstance(value, bool):
        raise InputError(f"{key} must be true or false")
    return value


def _timestamp(value, key: str) -> datetime:
    if not isinstance(value, str):
        raise InputError(f"{key} must be an ISO 8601 timestamp")
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InputError(f"{key} must be an ISO 8601 timestamp")
    # timestamps without an offset are read as UTC
    return as_utc(ts)


def _user_id(request: Request):
    raw = request.headers.get("x-user-id")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise InputError("X-User-Id must be an integer")


def _missing(payload: dict, required):
    for k in required:
        if payload.get(k) is None:
            return JSONResponse({"error": f"missing {k}"}, status_code=400)
    return None


async def _run_with_deadline(func):
    with anyio.fail_after(SEARCH_TIMEOUT_SECONDS):
        return await anyio.to_thread.run_sync(func, abandon_on_cancel=True)


def _ride_json(ride: Ride) -> dict:
    return {
        "id": ride.id,
        "driverId": ride.driver_id,
        "startLat": ride.origin_lat,
        "startLng": ride.origin_lng,
        "startAddress": ride.origin_address,
        "endLat": ride.dest_lat,
        "endLng": ride.dest_lng,
        "endAddress": ride.dest_address,
        "departureTime": ride.departure_time.isoformat(),
        "totalSeats": ride.total_seats,
        "pricePerSeat": ride.price_per_seat,
        "status": ride.status,
        "geohashes": list(ride.geohashes or []),
        "preferences": {
            "sameCompanyOnly": ride.same_company_only,
            "genderPreference": ride.gender_preference,
            "smokingAllowed": ride.smoking_allowed,
            "petsAllowed": ride.pets_allowed,
            "musicAllowed": ride.music_allowed,
        },
    }


def _match_json(m: MatchResult) -> dict:
    return {
        "rideId": m.ride_id,
        "driverId": m.driver_id,
        "startLat": m.origin_lat,
        "startLng": m.origin_lng,
        "startAddress": m.origin_address,
        "endLat": m.dest_lat,
        "endLng": m.dest_lng,
        "endAddress": m.dest_address,
        "departureTime": m.departure_time.isoformat(),
        "totalSeats": m.total_seats,
        "pricePerSeat": m.price_per_seat,
        "driverRating": m.driver_rating,
        "startDistance": m.start_distance,
        "endDistance": m.end_distance,
        "totalDeviation": m.total_deviation,
        "actualAvailableSeats": m.actual_available_seats,
        "matchScore": m.match_score,
    }


# ────────────────────────── endpoints ───────────────────────────────────────

async def search(request: Request):
    payload = await _json_body(request)
    missing = _missing(payload, ["startLat", "startLng", "endLat", "endLng", "departureTime"])
    if missing is not None:
        return missing
    gender = payload.get("genderPreference")
    if gender is not None and not is_gender(gender):
        return JSONResponse({"error": f"unknown genderPreference {gender!r}"}, status_code=400)
    query = SearchQuery(
        origin_lat=_number(payload, "startLat"),
        origin_lng=_number(payload, "startLng"),
        dest_lat=_number(payload, "endLat"),
        dest_lng=_number(payload, "endLng"),
        departure_time=_timestamp(payload["departureTime"], "departureTime"),
        seats=_integer(payload, "seats", 1),
        max_deviation_km=_number(payload, "maxDeviationKm", DEFAULT_MAX_DEVIATION_KM),
        time_window_minutes=_integer(payload, "timeWindowMinutes", DEFAULT_TIME_WINDOW_MINUTES),
        same_company_only=_flag(payload, "sameCompanyOnly"),
        gender_preference=gender,
    )
    passenger_id = _user_id(request)

    def run():
        with get_session() as session:
            return search_rides(RideStore(session), query, passenger_id)

    results = await _run_with_deadline(run)
    return JSONResponse([_match_json(m) for m in results])


async def recommended(request: Request):
    raw = request.query_params.get("limit", "10")
    try:
        limit = int(raw)
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    if limit < 1:
        return JSONResponse({"error": "limit must be at least 1"}, status_code=400)
    passenger_id = _user_id(request)

    def run():
        with get_session() as session:
            return [_ride_json(r) for r in recommend_rides(RideStore(session), passenger_id, limit)]

    return JSONResponse(await _run_with_deadline(run))


async def create_ride(request: Request):
    driver_id = _user_id(request)
    if driver_id is None:
        return JSONResponse({"error": "missing X-User-Id"}, status_code=400)
    payload = await _json_body(request)
    missing = _missing(payload, ["startLat", "startLng", "endLat", "endLng", "polyline",
                                 "departureTime", "totalSeats"])
    if missing is not None:
        return missing
    if not isinstance(payload["polyline"], str):
        return JSONResponse({"error": "polyline must be a string"}, status_code=400)
    prefs = payload.get("preferences") or {}
    if not isinstance(prefs, dict):
        return JSONResponse({"error": "preferences must be an object"}, status_code=400)
    gender = prefs.get("genderPreference", Gender.ANY.value)
    if not is_gender(gender):
        return JSONResponse({"error": f"unknown genderPreference {gender!r}"}, status_code=400)
    fields = dict(
        origin_lat=_number(payload, "startLat"),
        origin_lng=_number(payload, "startLng"),
        dest_lat=_number(payload, "endLat"),
        dest_lng=_number(payload, "endLng"),
        origin_address=payload.get("startAddress"),
        dest_address=payload.get("endAddress"),
        polyline=payload["polyline"],
        departure_time=_timestamp(payload["departureTime"], "departureTime"),
        total_seats=_integer(payload, "totalSeats"),
        price_per_seat=_number(payload, "pricePerSeat", 0.0),
        same_company_only=_flag(prefs, "sameCompanyOnly"),
        gender_preference=gender,
        smoking_allowed=_flag(prefs, "smokingAllowed"),
        pets_allowed=_flag(prefs, "petsAllowed"),
        music_allowed=_flag(prefs, "musicAllowed", True),
    )

    def run():
        with get_session() as session:
            return _ride_json(create_ride_record(session, driver_id, **fields))

    return JSONResponse(await _run_with_deadline(run), status_code=201)


async def get_ride(request: Request):
    ride_id = request.path_params["ride_id"]

    def run():
        with get_session() as session:
            return _ride_json(RideStore(session).get_ride(ride_id))

    return JSONResponse(await _run_with_deadline(run))


async def cancel_ride(request: Request):
    ride_id = request.path_params["ride_id"]
    driver_id = _user_id(request)
    if driver_id is None:
        return JSONResponse({"error": "missing X-User-Id"}, status_code=400)

    def run():
        with get_session() as session:
            return cancel_ride_record(session, ride_id, driver_id)

    cancelled = await _run_with_deadline(run)
    return JSONResponse({"rideId": ride_id, "status": "CANCELLED", "cancelledBookings": cancelled})


def _status_change(transition):
    async def endpoint(request: Request):
        ride_id = request.path_params["ride_id"]
        driver_id = _user_id(request)
        if driver_id is None:
            return JSONResponse({"error": "missing X-User-Id"}, status_code=400)

        def run():
            with get_session() as session:
                return _ride_json(transition(session, ride_id, driver_id))

        return JSONResponse(await _run_with_deadline(run))
    return endpoint


async def geocode(request: Request):
    q = request.query_params.get("q", "").strip()
    if not q:
        return JSONResponse({"error": "missing q"}, status_code=400)
    coord = await request.app.state.geocoder.geocode(q)
    if coord is None:
        return JSONResponse({"error": "no result"}, status_code=404)
    return JSONResponse({"lat": coord[0], "lng": coord[1]})


# ────────────────────────── error mapping ───────────────────────────────────

async def input_error(request: Request, exc: InputError):
    return JSONResponse({"error": str(exc)}, status_code=400)


async def not_found(request: Request, exc: NotFoundError):
    return JSONResponse({"error": str(exc)}, status_code=404)


async def deadline_exceeded(request: Request, exc: TimeoutError):
    logger.warning("%s %s exceeded %.1fs", request.method, request.url.path, SEARCH_TIMEOUT_SECONDS)
    return JSONResponse({"error": "request timed out"}, status_code=504)


routes = [
    Route("/search", search, methods=["POST"]),
    Route("/recommended", recommended, methods=["GET"]),
    Route("/rides", create_ride, methods=["POST"]),
    Route("/rides/{ride_id:int}", get_ride, methods=["GET"]),
    Route("/rides/{ride_id:int}/cancel", cancel_ride, methods=["POST"]),
    Route("/rides/{ride_id:int}/start", _status_change(start_ride), methods=["POST"]),
    Route("/rides/{ride_id:int}/complete", _status_change(complete_ride), methods=["POST"]),
    Route("/geocode", geocode, methods=["GET"]),
]

exception_handlers = {
    InputError: input_error,
    NotFoundError: not_found,
    TimeoutError: deadline_exceeded,
}

app = Starlette(routes=routes, exception_handlers=exception_handlers, lifespan=lifespan)
app.state.geocoder = NominatimGeocoder()
