from typing import Iterable, List, Set, Tuple

import polyline as polyline_codec

from config import ROUTE_GEOHASH_PRECISION
from errors import InputError
from geohash import check_precision, encode, with_neighbors

POLYLINE_PRECISION = 5


def decode_polyline(encoded: str) -> List[Tuple[float, float]]:
    """Decode a Google encoded polyline (5 decimal digits) into (lat, lng) pairs."""
    if not isinstance(encoded, str):
        raise InputError("polyline must be a string")
    for offset, ch in enumerate(encoded):
        # the codec maps anything below '?' to a value instead of failing
        if not 63 <= ord(ch) <= 126:
            raise InputError(f"invalid polyline character {ch!r} at offset {offset}")
    try:
        return polyline_codec.decode(encoded, POLYLINE_PRECISION)
    except IndexError as exc:
        raise InputError("truncated polyline: last value is incomplete") from exc


def encode_polyline(points: Iterable[Tuple[float, float]]) -> str:
    return polyline_codec.encode(list(points), POLYLINE_PRECISION)


def index_points(points: Iterable[Tuple[float, float]], precision: int = ROUTE_GEOHASH_PRECISION) -> Set[str]:
    check_precision(precision)
    cells: Set[str] = set()
    for lat, lng in points:
        cells |= with_neighbors(encode(lat, lng, precision))
    return cells


def build_route_index(polyline: str, precision: int = ROUTE_GEOHASH_PRECISION) -> Set[str]:
    """Union of the cells (plus neighbours) touched by every point of the route."""
    return index_points(decode_polyline(polyline), precision)
