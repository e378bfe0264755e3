"""Geohash encoding and neighbour lookup.

Cells are handled as integer latitude/longitude indices which are bit
interleaved (longitude first) into the canonical base-32 string. Neighbours
are found by shifting those indices, never by string tables.
"""
import math
from typing import Dict, Set, Tuple

from config import LOOKUP_GEOHASH_PRECISION, MAX_LOOKUP_RINGS
from errors import InputError

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {c: i for i, c in enumerate(BASE32)}
MAX_PRECISION = 12
KM_PER_DEGREE = 111.32

DIRECTIONS = {
    "n": (1, 0),
    "ne": (1, 1),
    "e": (0, 1),
    "se": (-1, 1),
    "s": (-1, 0),
    "sw": (-1, -1),
    "w": (0, -1),
    "nw": (1, -1),
}


def check_precision(precision) -> int:
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InputError(f"geohash precision must be an integer, got {precision!r}")
    if not 1 <= precision <= MAX_PRECISION:
        raise InputError(f"geohash precision must be between 1 and {MAX_PRECISION}, got {precision}")
    return precision


def check_coordinate(lat: float, lng: float) -> None:
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        raise InputError(f"coordinate is not numeric: ({lat!r}, {lng!r})")
    if math.isnan(lat) or math.isnan(lng):
        raise InputError("coordinate contains NaN")
    if not -90.0 <= lat <= 90.0:
        raise InputError(f"latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InputError(f"longitude out of range: {lng}")


def _bit_counts(precision: int) -> Tuple[int, int]:
    total = 5 * precision
    # longitude takes the extra bit when the total is odd
    return total // 2, (total + 1) // 2


def _to_cell(lat_idx: int, lon_idx: int, precision: int) -> str:
    lat_bits, lon_bits = _bit_counts(precision)
    value = 0
    for i in range(lat_bits + lon_bits):
        if i % 2 == 0:
            bit = (lon_idx >> (lon_bits - 1 - i // 2)) & 1
        else:
            bit = (lat_idx >> (lat_bits - 1 - i // 2)) & 1
        value = (value << 1) | bit
    chars = []
    for k in range(precision):
        chars.append(BASE32[(value >> (5 * (precision - 1 - k))) & 0x1F])
    return "".join(chars)


def _from_cell(cell: str) -> Tuple[int, int, int]:
    if not isinstance(cell, str) or not cell:
        raise InputError(f"invalid geohash cell: {cell!r}")
    precision = check_precision(len(cell))
    value = 0
    for c in cell:
        if c not in _DECODE_MAP:
            raise InputError(f"invalid geohash character {c!r} in {cell!r}")
        value = (value << 5) | _DECODE_MAP[c]
    lat_bits, lon_bits = _bit_counts(precision)
    total = lat_bits + lon_bits
    lat_idx = lon_idx = 0
    for i in range(total):
        bit = (value >> (total - 1 - i)) & 1
        if i % 2 == 0:
            lon_idx = (lon_idx << 1) | bit
        else:
            lat_idx = (lat_idx << 1) | bit
    return lat_idx, lon_idx, precision


def encode(lat: float, lng: float, precision: int = LOOKUP_GEOHASH_PRECISION) -> str:
    check_precision(precision)
    check_coordinate(lat, lng)
    lat_bits, lon_bits = _bit_counts(precision)
    lat_cells = 1 << lat_bits
    lon_cells = 1 << lon_bits
    lat_idx = min(int((float(lat) + 90.0) / 180.0 * lat_cells), lat_cells - 1)
    lon_idx = min(int((float(lng) + 180.0) / 360.0 * lon_cells), lon_cells - 1)
    return _to_cell(lat_idx, lon_idx, precision)


def shift(cell: str, dlat: int, dlon: int) -> str:
    """Return the cell ``dlat`` rows and ``dlon`` columns away from ``cell``.

    Longitude wraps across the antimeridian; latitude is clamped at the poles.
    """
    lat_idx, lon_idx, precision = _from_cell(cell)
    lat_bits, lon_bits = _bit_counts(precision)
    lat_idx = min(max(lat_idx + dlat, 0), (1 << lat_bits) - 1)
    lon_idx = (lon_idx + dlon) % (1 << lon_bits)
    return _to_cell(lat_idx, lon_idx, precision)


def neighbors(cell: str) -> Dict[str, str]:
    return {name: shift(cell, dlat, dlon) for name, (dlat, dlon) in DIRECTIONS.items()}


def with_neighbors(cell: str) -> Set[str]:
    cells = set(neighbors(cell).values())
    cells.add(cell)
    return cells


def cell_size_km(precision: int, lat: float = 0.0) -> Tuple[float, float]:
    """Approximate (height, width) of a cell in km at the given latitude."""
    check_precision(precision)
    lat_bits, lon_bits = _bit_counts(precision)
    height = 180.0 / (1 << lat_bits) * KM_PER_DEGREE
    width = 360.0 / (1 << lon_bits) * KM_PER_DEGREE * math.cos(math.radians(lat))
    return height, max(width, 1e-9)


def cells_around(lat: float, lng: float, radius_km: float,
                 precision: int = LOOKUP_GEOHASH_PRECISION, scaled: bool = False,
                 max_rings: int = MAX_LOOKUP_RINGS) -> Set[str]:
    """Cells to look up for a point search.

    Unscaled, this is always the centre cell and its 8 neighbours whatever the
    radius. Scaled, it covers ``ceil(radius_km / cell_size)`` rings, capped at
    ``max_rings``.
    """
    if radius_km is None or radius_km < 0:
        raise InputError(f"radius must be non-negative, got {radius_km!r}")
    center = encode(lat, lng, precision)
    if not scaled:
        return with_neighbors(center)
    height, width = cell_size_km(precision, lat)
    rings = max(1, math.ceil(radius_km / min(height, width)))
    rings = min(rings, max_rings)
    return {
        shift(center, dlat, dlon)
        for dlat in range(-rings, rings + 1)
        for dlon in range(-rings, rings + 1)
    }
