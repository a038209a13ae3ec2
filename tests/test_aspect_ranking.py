"""Tests du classement des aspects (orbe, puis importance du type à orbe voisin)."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from natal_backend.domain.aspect_ranking import (
    ORB_EPSILON,
    ORB_TOLERANCE,
    precedence,
    rank_aspects,
)
from natal_backend.domain.entities import Aspect, AspectType, CelestialBodyType

B = CelestialBodyType
A = AspectType
PAIRS = [(a, b) for a in list(B)[:6] for b in list(B)[6:12]]


def _aspect(kind: AspectType, orb: float, pair=(B.SUN, B.MOON)) -> Aspect:
    return Aspect(first=pair[0], second=pair[1], type=kind, orb=orb)


def test_orb_is_primary_key():
    ranked = rank_aspects([_aspect(A.CONJUNCTION, 3.0), _aspect(A.SEXTILE, 0.5)])
    assert [a.type for a in ranked] == [A.SEXTILE, A.CONJUNCTION]


def test_type_breaks_near_ties():
    ranked = rank_aspects([_aspect(A.SEXTILE, 1.0), _aspect(A.CONJUNCTION, 1.05)])
    assert [a.type for a in ranked] == [A.CONJUNCTION, A.SEXTILE]


def test_type_ignored_beyond_tolerance():
    ranked = rank_aspects([_aspect(A.SEXTILE, 1.0), _aspect(A.CONJUNCTION, 1.2)])
    assert [a.type for a in ranked] == [A.SEXTILE, A.CONJUNCTION]


@pytest.mark.parametrize("tight, wide", [(0.2, 0.3), (0.3, 0.4), (1.1, 1.2), (2.7, 2.8)])
def test_gap_of_exactly_tolerance_counts_as_near_tie(tight, wide):
    ranked = rank_aspects([_aspect(A.SEXTILE, tight), _aspect(A.CONJUNCTION, wide)])
    assert [a.type for a in ranked] == [A.CONJUNCTION, A.SEXTILE]


def test_near_ties_are_not_transitive():
    ranked = rank_aspects(
        [_aspect(A.TRINE, 1.00), _aspect(A.SEXTILE, 1.08), _aspect(A.CONJUNCTION, 1.16)]
    )
    assert [a.type for a in ranked] == [A.TRINE, A.CONJUNCTION, A.SEXTILE]


def test_equal_keys_keep_input_order():
    pairs = [(B.SUN, B.MOON), (B.MARS, B.VENUS), (B.JUPITER, B.SATURN)]
    aspects = [_aspect(A.SQUARE, 2.0, p) for p in pairs]
    ranked = rank_aspects(aspects)
    assert [(a.first, a.second) for a in ranked] == pairs


def test_limit():
    aspects = [_aspect(A.TRINE, float(i)) for i in range(5)]
    assert len(rank_aspects(aspects, limit=3)) == 3
    assert rank_aspects(aspects, limit=0) == []
    assert rank_aspects([]) == []


def test_precedence_order():
    assert precedence(A.CONJUNCTION) == precedence(A.OPPOSITION)
    assert precedence(A.OPPOSITION) < precedence(A.TRINE) < precedence(A.SEXTILE)
    assert precedence(A.SEXTILE) < precedence(A.QUINCUNX)


aspect_lists = st.lists(
    st.builds(
        _aspect,
        st.sampled_from(list(AspectType)),
        st.floats(min_value=0.0, max_value=10.0, allow_nan=False),
        st.sampled_from(PAIRS),
    ),
    max_size=25,
)


@given(aspect_lists)
def test_ranking_is_a_permutation(aspects):
    ranked = rank_aspects(aspects)
    key = lambda a: (a.orb, a.type.value, a.first.value, a.second.value)  # noqa: E731
    assert sorted(ranked, key=key) == sorted(aspects, key=key)


@given(aspect_lists)
def test_clearly_tighter_orb_always_first(aspects):
    ranked = rank_aspects(aspects)
    for i, earlier in enumerate(ranked):
        for later in ranked[i + 1 :]:
            assert not earlier.orb - later.orb > ORB_TOLERANCE + ORB_EPSILON


@given(aspect_lists)
def test_ranking_is_idempotent(aspects):
    once = rank_aspects(aspects)
    assert rank_aspects(once) == once
