"""
Unit tests for the geohash indexer, the polyline codec and the route index builder.
"""
import random

import pytest

from errors import InputError
from geohash import cell_size_km, cells_around, encode, neighbors, shift
from route_index import build_route_index, decode_polyline, encode_polyline

OPPOSITE = {"n": "s", "ne": "sw", "e": "w", "se": "nw", "s": "n", "sw": "ne", "w": "e", "nw": "se"}
GOOGLE_POINTS = [(38.5, -120.2), (40.7, -120.95), (43.252, -126.453)]
GOOGLE_ENCODED = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


# ────────────────────────── geohash encode ──────────────────────────────────

def test_encode_known_cells():
    assert encode(42.6, -5.6, 5) == "ezs42"
    assert encode(57.64911, 10.40744, 11) == "u4pruydqqvj"


def test_encode_is_deterministic_and_prefix_stable():
    a = encode(12.9716, 77.5946, 7)
    assert a == encode(12.9716, 77.5946, 7)
    assert encode(12.9716, 77.5946, 6) == a[:6]


@pytest.mark.parametrize("precision", [0, -1, 13, "6", 6.0, True])
def test_encode_rejects_bad_precision(precision):
    with pytest.raises(InputError):
        encode(12.9, 77.6, precision)


@pytest.mark.parametrize("lat,lng", [(90.5, 0), (-91, 0), (0, 180.1), (0, -181), (float("nan"), 0)])
def test_encode_rejects_out_of_range(lat, lng):
    with pytest.raises(InputError):
        encode(lat, lng, 6)


def test_encode_accepts_extreme_corners():
    assert len(encode(90, 180, 6)) == 6
    assert len(encode(-90, -180, 6)) == 6


# ────────────────────────── neighbours ──────────────────────────────────────

def test_neighbors_match_shifted_points():
    lat, lng, precision = 42.6, -5.6, 5
    height_deg = 180.0 / (1 << 12)
    width_deg = 360.0 / (1 << 13)
    cell = encode(lat, lng, precision)
    n = neighbors(cell)
    assert n["n"] == encode(lat + height_deg, lng, precision)
    assert n["s"] == encode(lat - height_deg, lng, precision)
    assert n["e"] == encode(lat, lng + width_deg, precision)
    assert n["w"] == encode(lat, lng - width_deg, precision)
    assert n["ne"] == encode(lat + height_deg, lng + width_deg, precision)
    assert n["sw"] == encode(lat - height_deg, lng - width_deg, precision)


def test_neighbors_are_distinct_and_exclude_center():
    cell = encode(12.9716, 77.5946, 6)
    n = neighbors(cell)
    assert len(n) == 8
    assert len(set(n.values())) == 8
    assert cell not in n.values()
    assert all(len(c) == 6 for c in n.values())


def test_neighbor_adjacency_is_symmetric():
    random.seed(7)
    for _ in range(50):
        cell = encode(random.uniform(-40, 40), random.uniform(-179, 179), random.randint(1, 9))
        for direction, other in neighbors(cell).items():
            assert neighbors(other)[OPPOSITE[direction]] == cell


def test_neighbors_wrap_across_antimeridian():
    cell = encode(0.0, 179.99, 5)
    assert neighbors(cell)["e"] == encode(0.0, -179.99, 5)
    assert neighbors(encode(0.0, -179.99, 5))["w"] == cell


def test_neighbors_at_pole_do_not_crash():
    cell = encode(89.99, 0.0, 5)
    n = neighbors(cell)
    assert n["n"] == cell
    assert len(n) == 8


def test_neighbors_reject_invalid_cell():
    with pytest.raises(InputError):
        neighbors("abc")
    with pytest.raises(InputError):
        shift("", 1, 0)


# ────────────────────────── lookup sets ─────────────────────────────────────

def test_cells_around_is_nine_cells_regardless_of_radius():
    small = cells_around(12.9716, 77.5946, 0.1, 6)
    large = cells_around(12.9716, 77.5946, 50.0, 6)
    assert small == large
    assert len(small) == 9
    assert encode(12.9716, 77.5946, 6) in small


def test_cells_around_scaled_grows_with_radius():
    base = cells_around(12.9716, 77.5946, 5.0, 6)
    scaled = cells_around(12.9716, 77.5946, 5.0, 6, scaled=True, max_rings=2)
    assert len(scaled) == 25
    assert base <= scaled
    wider = cells_around(12.9716, 77.5946, 5.0, 6, scaled=True, max_rings=4)
    assert scaled <= wider


def test_cells_around_rejects_negative_radius():
    with pytest.raises(InputError):
        cells_around(12.9, 77.6, -1, 6)


def test_cell_size_shrinks_with_precision():
    h5, w5 = cell_size_km(5)
    h6, w6 = cell_size_km(6)
    assert h6 < h5 and w6 < w5
    assert 0.5 < h6 < 0.7


# ────────────────────────── polyline codec ──────────────────────────────────

def test_decode_known_polyline():
    points = decode_polyline(GOOGLE_ENCODED)
    assert len(points) == 3
    for (lat, lng), (elat, elng) in zip(points, GOOGLE_POINTS):
        assert lat == pytest.approx(elat, abs=1e-5)
        assert lng == pytest.approx(elng, abs=1e-5)


def test_encode_known_polyline():
    assert encode_polyline(GOOGLE_POINTS) == GOOGLE_ENCODED
    assert encode_polyline([]) == ""


def test_polyline_round_trip_within_tolerance():
    random.seed(3)
    points = [(round(random.uniform(12.8, 13.1), 5), round(random.uniform(77.4, 77.8), 5)) for _ in range(100)]
    decoded = decode_polyline(encode_polyline(points))
    assert len(decoded) == len(points)
    for (lat, lng), (elat, elng) in zip(decoded, points):
        assert abs(lat - elat) <= 1e-5
        assert abs(lng - elng) <= 1e-5


def test_decode_empty_polyline():
    assert decode_polyline("") == []


@pytest.mark.parametrize("bad", [GOOGLE_ENCODED[:-1], "_p~iF", "_p~iF~ps|U ", "\x7f\x7f", "!!", "_p~iF~ps|U\n"])
def test_decode_rejects_malformed_polyline(bad):
    with pytest.raises(InputError):
        decode_polyline(bad)


# ────────────────────────── route index ─────────────────────────────────────

def test_route_index_covers_every_route_point():
    route = [(12.9716 + i * 0.003, 77.5946 + i * 0.0025) for i in range(25)]
    route = [(round(a, 5), round(b, 5)) for a, b in route]
    cells = build_route_index(encode_polyline(route), 6)
    for lat, lng in route:
        cell = encode(lat, lng, 6)
        assert cell in cells
        assert set(neighbors(cell).values()) <= cells


def test_route_index_single_point_and_empty():
    assert len(build_route_index(encode_polyline([(12.9716, 77.5946)]), 6)) == 9
    assert build_route_index("", 6) == set()


def test_route_index_rejects_bad_input():
    with pytest.raises(InputError):
        build_route_index(GOOGLE_ENCODED, 0)
    with pytest.raises(InputError):
        build_route_index(GOOGLE_ENCODED[:-1], 6)
