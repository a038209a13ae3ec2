"""Tests des calculs zodiacaux (normalisation, signes, maisons)."""

import math

import pytest

from natal_backend.domain.entities import HouseCusp, ZodiacSign
from natal_backend.domain.zodiac import (
    degree_in_sign,
    forward_arc,
    house_for_longitude,
    normalize_longitude,
    sign_for_longitude,
)

KYIV_CUSPS = (
    146.52, 168.30, 194.10, 225.40, 260.15, 295.60, 326.52, 348.30, 14.10, 45.40, 80.15, 115.60
)


def _cusps(longitudes=KYIV_CUSPS) -> list[HouseCusp]:
    return [
        HouseCusp(number=n, longitude=lon, sign=ZodiacSign.from_longitude(lon))
        for n, lon in enumerate(longitudes, start=1)
    ]


@pytest.mark.parametrize(
    ("value", "expected"),
    [(0.0, 0.0), (360.0, 0.0), (-30.0, 330.0), (720.5, 0.5), (359.5, 359.5)],
)
def test_normalize_longitude(value, expected):
    assert normalize_longitude(value) == pytest.approx(expected)


def test_normalize_longitude_stays_below_full_circle():
    assert normalize_longitude(-1e-20) == 0.0


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_normalize_longitude_rejects_non_finite(value):
    with pytest.raises(ValueError):
        normalize_longitude(value)


@pytest.mark.parametrize(
    ("longitude", "sign"),
    [
        (0.0, ZodiacSign.ARIES),
        (29.999, ZodiacSign.ARIES),
        (30.0, ZodiacSign.TAURUS),
        (227.12, ZodiacSign.SCORPIO),
        (359.99, ZodiacSign.PISCES),
        (-0.5, ZodiacSign.PISCES),
    ],
)
def test_sign_for_longitude(longitude, sign):
    assert sign_for_longitude(longitude) == sign


def test_degree_in_sign():
    assert degree_in_sign(45.0) == pytest.approx(15.0)
    assert degree_in_sign(390.0) == pytest.approx(0.0)


def test_forward_arc_wraps():
    assert forward_arc(350.0, 10.0) == pytest.approx(20.0)
    assert forward_arc(10.0, 350.0) == pytest.approx(340.0)


@pytest.mark.parametrize(
    ("longitude", "house"),
    [
        (146.52, 1),  # sur la cuspide
        (146.51, 12),
        (4.85, 8),  # passage 360°/0°
        (227.12, 4),
        (47.12, 10),
        (359.0, 8),
    ],
)
def test_house_for_longitude(longitude, house):
    assert house_for_longitude(longitude, _cusps()) == house


def test_house_for_longitude_needs_cusps():
    with pytest.raises(ValueError):
        house_for_longitude(10.0, [])
