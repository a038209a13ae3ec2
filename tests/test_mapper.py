"""
Tests du mapper fournisseur -> NatalChart.

Le thème de référence (Kyiv, 1990-03-25 14:30) vient du fournisseur déterministe.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time

import pytest
from hypothesis import given
from hypothesis import strategies as st

from natal_backend.domain.entities import (
    BirthData,
    CelestialBodyType,
    HouseSystem,
    ZodiacSign,
)
from natal_backend.domain.errors import MappingError
from natal_backend.domain.mapper import (
    compute_house_rulers,
    map_chart,
    parse_flag,
    parse_house_number,
)
from natal_backend.domain.raw_chart import RawAngle, RawAspect, RawBody, RawChart, RawHouse
from natal_backend.domain.request_normalizer import normalize_request
from natal_backend.domain.zodiac import house_for_longitude
from natal_backend.infra.providers.fake_deterministic import FakeDeterministicProvider

B = CelestialBodyType
KYIV_CUSPS = (
    146.52, 168.30, 194.10, 225.40, 260.15, 295.60, 326.52, 348.30, 14.10, 45.40, 80.15, 115.60
)
COMPUTED_AT = datetime(2025, 1, 1, tzinfo=UTC)
EXPECTED_BODY_COUNT = 13
EXPECTED_ASPECT_COUNT = 6


@pytest.fixture
def kyiv_raw(kyiv_birth) -> RawChart:
    return FakeDeterministicProvider().fetch_chart(normalize_request(kyiv_birth, "placidus"))


@pytest.fixture
def kyiv_chart(kyiv_raw, kyiv_birth):
    return map_chart(kyiv_raw, kyiv_birth, computed_at=COMPUTED_AT)


def _birth_stub() -> BirthData:
    return BirthData(birth_date=date(2000, 1, 1), birth_time=time(12, 0), timezone="UTC")


def _raw(bodies=None, houses=None, aspects=(), angles=()) -> RawChart:
    if houses is None:
        houses = [RawHouse(n, lon) for n, lon in enumerate(KYIV_CUSPS, start=1)]
    if bodies is None:
        bodies = [RawBody("Sun", 4.85, speed=0.99)]
    return RawChart(
        provider="test",
        bodies=list(bodies),
        houses=list(houses),
        aspects=list(aspects),
        angles=list(angles),
    )


def test_kyiv_chart_structure(kyiv_chart):
    assert len(kyiv_chart.houses) == 12
    assert [h.number for h in kyiv_chart.houses] == list(range(1, 13))
    assert len(kyiv_chart.bodies) == EXPECTED_BODY_COUNT
    assert kyiv_chart.house_system == HouseSystem.PLACIDUS
    assert kyiv_chart.computed_at == COMPUTED_AT
    assert kyiv_chart.angles.ascendant == 146.52
    assert kyiv_chart.angles.midheaven == 45.40


def test_kyiv_body_positions(kyiv_chart):
    sun = kyiv_chart.body(B.SUN)
    assert sun.sign == ZodiacSign.ARIES
    assert sun.house == 8
    assert not sun.retrograde
    mars = kyiv_chart.body(B.MARS)
    assert mars.sign == ZodiacSign.AQUARIUS
    assert mars.house == 6
    pluto = kyiv_chart.body(B.PLUTO)
    assert pluto.retrograde
    assert pluto.sign == ZodiacSign.SCORPIO
    assert kyiv_chart.body(B.LILITH).house == 3


def test_untracked_bodies_are_skipped(kyiv_chart):
    # Chiron est ignoré, le Nœud Sud recalculé
    assert {b.body for b in kyiv_chart.bodies} == set(B)


def test_south_node_is_opposite_true_node(kyiv_chart):
    true_node = kyiv_chart.body(B.TRUE_NODE)
    south = kyiv_chart.body(B.SOUTH_NODE)
    assert true_node.longitude == 47.12
    # la valeur fournisseur (228.0) est ignorée
    assert south.longitude == (47.12 + 180.0) % 360.0
    assert south.sign == ZodiacSign.SCORPIO
    assert south.house == 4
    assert south.retrograde == true_node.retrograde
    assert south.speed == true_node.speed


def test_south_node_wraps_past_zero():
    raw = _raw(bodies=[RawBody("True Node", 200.0)])
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    assert chart.body(B.SOUTH_NODE).longitude == pytest.approx(20.0)
    assert chart.body(B.SOUTH_NODE).sign == ZodiacSign.ARIES


def test_provider_south_node_alone_is_dropped():
    raw = _raw(bodies=[RawBody("Sun", 4.85), RawBody("South_Node", 228.0)])
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    assert chart.body(B.SOUTH_NODE) is None


def test_aspects_ranked_and_filtered(kyiv_chart):
    aspects = kyiv_chart.aspects
    assert len(aspects) == EXPECTED_ASPECT_COUNT
    assert [a.orb for a in aspects] == pytest.approx([0.32, 1.40, 1.75, 5.65, 7.15, 7.35])
    first = aspects[0]
    assert (first.first, first.second) == (B.PLUTO, B.TRUE_NODE)
    assert all(a.orb >= 0 for a in aspects)


def test_aspect_limit(kyiv_raw, kyiv_birth):
    chart = map_chart(kyiv_raw, kyiv_birth, computed_at=COMPUTED_AT, aspect_limit=2)
    assert len(chart.aspects) == 2
    assert chart.aspects[0].orb == pytest.approx(0.32)


def test_house_rulers_traditional(kyiv_chart):
    rulers = {r.house: r for r in kyiv_chart.house_rulers}
    assert len(rulers) == 12
    assert rulers[1].ruler == B.SUN
    assert rulers[1].ruler_house == 8
    assert rulers[4].ruler == B.MARS
    assert rulers[4].ruler_sign == ZodiacSign.AQUARIUS
    assert rulers[4].ruler_house == 6
    assert rulers[12].ruler == B.MOON


def test_house_rulers_modern(kyiv_raw, kyiv_birth):
    chart = map_chart(kyiv_raw, kyiv_birth, computed_at=COMPUTED_AT, rulership_scheme="modern")
    rulers = {r.house: r.ruler for r in chart.house_rulers}
    assert rulers[4] == B.PLUTO
    assert rulers[7] == B.URANUS
    assert rulers[8] == B.NEPTUNE


def test_house_ruler_omitted_when_absent(kyiv_chart):
    only_sun = [b for b in kyiv_chart.bodies if b.body == B.SUN]
    rulers = compute_house_rulers(kyiv_chart.houses, only_sun)
    assert [r.house for r in rulers] == [1]


def test_missing_house_is_fatal():
    houses = [RawHouse(n, lon) for n, lon in enumerate(KYIV_CUSPS[:11], start=1)]
    with pytest.raises(MappingError) as exc:
        map_chart(_raw(houses=houses), _birth_stub())
    assert exc.value.field == "houses"


def test_duplicate_house_is_fatal():
    houses = [RawHouse(n, lon) for n, lon in enumerate(KYIV_CUSPS, start=1)]
    houses[11] = RawHouse(1, 115.60)
    with pytest.raises(MappingError) as exc:
        map_chart(_raw(houses=houses), _birth_stub())
    assert exc.value.field == "houses"


def test_named_houses_are_accepted():
    names = [
        "First House", "Second House", "Third House", "Fourth House", "Fifth House",
        "Sixth House", "Seventh House", "Eighth House", "Ninth House", "Tenth House",
        "Eleventh House", "Twelfth House",
    ]
    houses = [RawHouse(name, lon) for name, lon in zip(names, KYIV_CUSPS, strict=True)]
    chart = map_chart(_raw(houses=houses), _birth_stub(), computed_at=COMPUTED_AT)
    assert chart.house(10).longitude == 45.40


def test_missing_body_longitude_is_fatal():
    with pytest.raises(MappingError) as exc:
        map_chart(_raw(bodies=[RawBody("Sun", None)]), _birth_stub())
    assert exc.value.field == "bodies[Sun].longitude"


def test_no_recognised_body_is_fatal():
    with pytest.raises(MappingError) as exc:
        map_chart(_raw(bodies=[RawBody("Chiron", 98.3)]), _birth_stub())
    assert exc.value.field == "bodies"


def test_longitudes_are_normalised():
    raw = _raw(bodies=[RawBody("Sun", 360.0), RawBody("Moon", -10.0)])
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    assert chart.body(B.SUN).longitude == 0.0
    assert chart.body(B.SUN).sign == ZodiacSign.ARIES
    assert chart.body(B.MOON).longitude == pytest.approx(350.0)


def test_retrograde_flags():
    raw = _raw(
        bodies=[
            RawBody("Sun", 4.85, retrograde="False"),
            RawBody("Mercury", 348.2, retrograde="True"),
            RawBody("Saturn", 293.45, speed=-0.01),
        ]
    )
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    assert not chart.body(B.SUN).retrograde
    assert chart.body(B.MERCURY).retrograde
    assert chart.body(B.SATURN).retrograde


def test_invalid_aspects_are_dropped():
    aspects = [
        RawAspect("Sun", "Sun", "conjunction", 0.0),
        RawAspect("Sun", "Moon", "square", None),
        RawAspect("Sun", "Moon", "septile", 1.0),
        RawAspect("Sun", "Moon", "Inconjunct", 2.0),
    ]
    raw = _raw(bodies=[RawBody("Sun", 4.85), RawBody("Moon", 312.4)], aspects=aspects)
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    assert len(chart.aspects) == 1
    assert chart.aspects[0].type.value == "Quincunx"


def test_angles_fall_back_to_cusps_for_quadrant_systems():
    chart = map_chart(_raw(), _birth_stub(), HouseSystem.PLACIDUS, computed_at=COMPUTED_AT)
    assert chart.angles.ascendant == KYIV_CUSPS[0]
    assert chart.angles.midheaven == KYIV_CUSPS[9]


def test_whole_sign_requires_provider_ascendant():
    with pytest.raises(MappingError) as exc:
        map_chart(_raw(), _birth_stub(), HouseSystem.WHOLE_SIGN)
    assert exc.value.field == "ascendant"


def test_whole_sign_with_angles():
    angles = [RawAngle("Asc", 146.52), RawAngle("MC", 45.4)]
    houses = [RawHouse(n, (120.0 + 30.0 * (n - 1)) % 360.0) for n in range(1, 13)]
    chart = map_chart(
        _raw(houses=houses, angles=angles),
        _birth_stub(),
        HouseSystem.WHOLE_SIGN,
        computed_at=COMPUTED_AT,
    )
    assert chart.angles.ascendant == 146.52
    assert chart.house(1).sign == ZodiacSign.LEO


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (3, 3),
        ("3", 3),
        ("Third House", 3),
        ("Twelfth_House", 12),
        ("13", None),
        (0, None),
        (True, None),
        ("thirteenth house", None),
    ],
)
def test_parse_house_number(value, expected):
    assert parse_house_number(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), ("True", True), (" true ", True), ("False", False), (None, None), (0, False)],
)
def test_parse_flag(value, expected):
    assert parse_flag(value) == expected



any_longitude = st.floats(min_value=-1080.0, max_value=1080.0, allow_nan=False)
circle = st.floats(min_value=0.0, max_value=360.0, exclude_max=True, allow_nan=False)
TRACKED = ["Sun", "Moon", "Mercury", "Venus", "Mars", "Jupiter", "Saturn", "Pluto"]


@given(st.lists(any_longitude, min_size=1, max_size=len(TRACKED)), any_longitude, any_longitude)
def test_every_mapped_longitude_is_on_the_circle(body_lons, cusp_shift, node_lon):
    bodies = [RawBody(name, lon) for name, lon in zip(TRACKED, body_lons, strict=False)]
    bodies.append(RawBody("True Node", node_lon))
    houses = [RawHouse(n, lon + cusp_shift) for n, lon in enumerate(KYIV_CUSPS, start=1)]
    chart = map_chart(_raw(bodies=bodies, houses=houses), _birth_stub(), computed_at=COMPUTED_AT)
    for cusp in chart.houses:
        assert 0.0 <= cusp.longitude < 360.0
    for body in chart.bodies:
        assert 0.0 <= body.longitude < 360.0
        assert body.sign == ZodiacSign.from_longitude(body.longitude)
        assert body.house == house_for_longitude(body.longitude, chart.houses)


@given(circle)
def test_south_node_is_exactly_opposite(node_lon):
    raw = _raw(bodies=[RawBody("True Node", node_lon, speed=-0.05)])
    chart = map_chart(raw, _birth_stub(), computed_at=COMPUTED_AT)
    north, south = chart.body(B.TRUE_NODE), chart.body(B.SOUTH_NODE)
    assert north.longitude == node_lon
    assert south.longitude == (node_lon + 180.0) % 360.0
    assert south.retrograde == north.retrograde
