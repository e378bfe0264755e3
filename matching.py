import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from math import radians, sin, cos, sqrt, atan2
from typing import List, Optional, Tuple

import config
from errors import InputError, NotFoundError
from geohash import cells_around, check_coordinate
from models import DriverSummary, Gender, MatchResult, Ride, SearchQuery, User, as_utc, is_gender, utcnow
from store import RideFilter, RideStore

logger = logging.getLogger(__name__)


def haversine_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    lat1, lon1 = a
    lat2, lon2 = b
    R = 6371.0
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    rlat1 = radians(lat1)
    rlat2 = radians(lat2)
    a_ = sin(dlat / 2) ** 2 + cos(rlat1) * cos(rlat2) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a_), sqrt(1 - a_))
    return R * c


@dataclass(frozen=True)
class ScoringWeights:
    base: float = 100.0
    start_distance: float = 5.0
    end_distance: float = 5.0
    time_minutes: float = 0.5
    rating: float = 10.0
    same_company_bonus: float = 15.0
    veteran_min_rides: int = 50
    veteran_bonus: float = 10.0
    experienced_min_rides: int = 20
    experienced_bonus: float = 5.0


DEFAULT_WEIGHTS = ScoringWeights()


def match_score(start_km: float, end_km: float, time_diff_minutes: float,
                driver: DriverSummary, passenger_company: Optional[str],
                weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    """Score a candidate ride; higher is better and the result is never negative.

    score = base - w_s*start_km - w_e*end_km - w_t*minutes + w_r*rating + affinity
    where affinity adds the same-company bonus when both sides name the same
    employer, plus one experience tier bonus based on rides given as driver.
    """
    score = weights.base
    score -= start_km * weights.start_distance
    score -= end_km * weights.end_distance
    score -= time_diff_minutes * weights.time_minutes
    score += driver.rating * weights.rating
    # a blank company on either side is not a shared employer
    if driver.company and passenger_company and driver.company == passenger_company:
        score += weights.same_company_bonus
    if driver.total_rides_as_driver > weights.veteran_min_rides:
        score += weights.veteran_bonus
    elif driver.total_rides_as_driver > weights.experienced_min_rides:
        score += weights.experienced_bonus
    return max(0.0, score)


def validate_query(query: SearchQuery) -> None:
    check_coordinate(query.origin_lat, query.origin_lng)
    check_coordinate(query.dest_lat, query.dest_lng)
    if query.seats < 1:
        raise InputError(f"seats must be at least 1, got {query.seats}")
    if query.max_deviation_km <= 0:
        raise InputError(f"maxDeviationKm must be positive, got {query.max_deviation_km}")
    if query.time_window_minutes < 0:
        raise InputError(f"timeWindowMinutes must not be negative, got {query.time_window_minutes}")
    if query.gender_preference is not None and not is_gender(query.gender_preference):
        raise InputError(f"unknown gender preference {query.gender_preference!r}")


def _ride_accepts(store: RideStore, ride: Ride, passenger: Optional[User]) -> bool:
    # preferences the driver set on the ride itself
    if ride.same_company_only:
        driver = store.get_driver_summary(ride.driver_id)
        if passenger is None or not passenger.company or passenger.company != driver.company:
            return False
    if ride.gender_preference and ride.gender_preference != Gender.ANY.value:
        if passenger is None or passenger.gender != ride.gender_preference:
            return False
    return True


def find_candidates(store: RideStore, query: SearchQuery, passenger: Optional[User] = None,
                    scaled: Optional[bool] = None) -> List[Ride]:
    """Scheduled rides whose route index touches the query's origin or destination cells.

    Narrowed by departure window, free seats and preference filters; no
    distance is computed here.
    """
    validate_query(query)
    if scaled is None:
        scaled = config.SCALE_LOOKUP_RINGS
    precision = config.LOOKUP_GEOHASH_PRECISION
    cells = cells_around(query.origin_lat, query.origin_lng, query.max_deviation_km, precision, scaled=scaled)
    cells |= cells_around(query.dest_lat, query.dest_lng, query.max_deviation_km, precision, scaled=scaled)

    window = timedelta(minutes=query.time_window_minutes)
    departure = as_utc(query.departure_time)
    company = None
    if query.same_company_only and passenger is not None and passenger.company:
        company = passenger.company
    gender = None
    if query.gender_preference and query.gender_preference != Gender.ANY.value:
        gender = query.gender_preference

    rides = store.list_scheduled_rides(RideFilter(
        departs_after=departure - window,
        departs_before=departure + window,
        min_seats=query.seats,
        geohash_in=cells,
        company_eq=company,
        gender_eq=gender,
    ))
    candidates = [r for r in rides if _ride_accepts(store, r, passenger)]
    logger.debug("lookup over %d cells: %d rides, %d after ride preferences",
                 len(cells), len(rides), len(candidates))
    return candidates


def score_and_filter(store: RideStore, candidates: List[Ride], query: SearchQuery,
                     passenger: Optional[User] = None,
                     weights: ScoringWeights = DEFAULT_WEIGHTS) -> List[MatchResult]:
    passenger_company = passenger.company if passenger is not None else None
    origin = (query.origin_lat, query.origin_lng)
    dest = (query.dest_lat, query.dest_lng)
    departure = as_utc(query.departure_time)
    results = []
    for ride in candidates:
        start_distance = haversine_km(origin, (ride.origin_lat, ride.origin_lng))
        end_distance = haversine_km(dest, (ride.dest_lat, ride.dest_lng))
        total_deviation = start_distance + end_distance
        if total_deviation > 2 * query.max_deviation_km:
            continue
        available = max(0, ride.total_seats - store.count_active_booked_seats(ride.id))
        if available < query.seats:
            continue
        time_diff = abs((as_utc(ride.departure_time) - departure).total_seconds()) / 60.0
        driver = store.get_driver_summary(ride.driver_id)
        results.append(MatchResult(
            ride_id=ride.id,
            driver_id=ride.driver_id,
            origin_lat=ride.origin_lat,
            origin_lng=ride.origin_lng,
            origin_address=ride.origin_address,
            dest_lat=ride.dest_lat,
            dest_lng=ride.dest_lng,
            dest_address=ride.dest_address,
            departure_time=as_utc(ride.departure_time),
            total_seats=ride.total_seats,
            price_per_seat=ride.price_per_seat,
            driver_rating=driver.rating,
            start_distance=start_distance,
            end_distance=end_distance,
            total_deviation=total_deviation,
            actual_available_seats=available,
            match_score=match_score(start_distance, end_distance, time_diff, driver, passenger_company, weights),
        ))
    results.sort(key=lambda m: (-m.match_score, m.total_deviation, m.departure_time, m.ride_id))
    logger.debug("%d of %d candidates within deviation and seats", len(results), len(candidates))
    return results


def search_rides(store: RideStore, query: SearchQuery, passenger_id: Optional[int] = None,
                 weights: ScoringWeights = DEFAULT_WEIGHTS,
                 scaled: Optional[bool] = None) -> List[MatchResult]:
    """Ranked matches for a passenger search. An empty list is a normal outcome."""
    passenger = None
    if passenger_id is not None:
        passenger = store.get_user(passenger_id)
        if passenger is None:
            raise NotFoundError(f"passenger {passenger_id} not found")
    candidates = find_candidates(store, query, passenger, scaled=scaled)
    return score_and_filter(store, candidates, query, passenger, weights)


def recommend_rides(store: RideStore, passenger_id: Optional[int], limit: int = 10,
                    now: Optional[datetime] = None) -> List[Ride]:
    """Upcoming rides for a feed, without a search query.

    Passengers with completed bookings get rides passing near the centroid of
    their recent pickups; everyone else (including unknown ids) gets the
    best-rated upcoming rides.
    """
    if limit < 1:
        raise InputError(f"limit must be at least 1, got {limit}")
    if now is None:
        now = utcnow()
    history = []
    if passenger_id is not None and store.get_user(passenger_id) is not None:
        history = store.get_recent_completed_bookings(passenger_id, config.RECOMMEND_HISTORY_SIZE)
    if not history:
        return store.list_scheduled_rides(RideFilter(departs_after=now, limit=limit))

    avg_lat = sum(p.pickup_lat for p in history) / len(history)
    avg_lng = sum(p.pickup_lng for p in history) / len(history)
    cells = cells_around(avg_lat, avg_lng, config.RECOMMEND_RADIUS_KM,
                         config.LOOKUP_GEOHASH_PRECISION, scaled=config.SCALE_LOOKUP_RINGS)
    logger.debug("recommending around (%.5f, %.5f) from %d pickups", avg_lat, avg_lng, len(history))
    return store.list_scheduled_rides(RideFilter(departs_after=now, geohash_in=cells, limit=limit))
