import pytest
from hypothesis import given, strategies as st

from aspects import calculate_aspects, classify_pair, classify_separation
from models import CelestialBody, StrengthEnum

LONGITUDES = st.floats(min_value=0.0, max_value=360.0, exclude_max=True,
                       allow_nan=False, allow_infinity=False)


def _bodies(**longitudes):
    return {key: CelestialBody(key=key, longitude=lon) for key, lon in longitudes.items()}


def test_10_and_100_is_exact_square():
    aspect = classify_pair('sun', 10.0, 'moon', 100.0)
    assert aspect.aspect == 'Square'
    assert aspect.symbol == '□'
    assert aspect.angle == 90
    assert aspect.orb == 0
    assert aspect.strength == StrengthEnum.STRONG


@pytest.mark.parametrize("separation,name,orb", [
    (0.0, 'Conjunction', 0.0),
    (7.9, 'Conjunction', 7.9),
    (8.0, 'Conjunction', 8.0),
    (175.0, 'Opposition', 5.0),
    (113.0, 'Trine', 7.0),
    (96.5, 'Square', 6.5),
    (65.5, 'Sextile', 5.5),
])
def test_classify_separation(separation, name, orb):
    definition, observed = classify_separation(separation)
    assert definition.name == name
    assert observed == pytest.approx(orb)


@pytest.mark.parametrize("separation", [8.1, 30.0, 45.0, 66.5, 105.0, 150.0])
def test_separation_outside_every_orb(separation):
    assert classify_separation(separation) is None


def test_strength_boundary():
    assert classify_pair('a', 0.0, 'b', 2.99).strength == StrengthEnum.STRONG
    assert classify_pair('a', 0.0, 'b', 3.0).strength == StrengthEnum.MODERATE


def test_wraps_across_aries_point():
    aspect = classify_pair('sun', 357.0, 'moon', 3.0)
    assert aspect.aspect == 'Conjunction'
    assert aspect.orb == pytest.approx(6.0)
    assert aspect.strength == StrengthEnum.MODERATE


@given(a=LONGITUDES, b=LONGITUDES)
def test_classification_is_symmetric(a, b):
    forward = classify_pair('x', a, 'y', b)
    backward = classify_pair('y', b, 'x', a)
    if forward is None:
        assert backward is None
    else:
        assert (forward.aspect, forward.orb, forward.strength) == \
            (backward.aspect, backward.orb, backward.strength)
        assert forward.pair == backward.pair


def test_calculate_aspects_enumerates_unordered_pairs():
    aspects = calculate_aspects(_bodies(sun=10.0, moon=100.0, mars=190.0))
    found = {(a.pair, a.aspect) for a in aspects}
    assert found == {
        (frozenset({'sun', 'moon'}), 'Square'),
        (frozenset({'moon', 'mars'}), 'Square'),
        (frozenset({'sun', 'mars'}), 'Opposition'),
    }


def test_south_node_is_excluded():
    aspects = calculate_aspects(_bodies(sun=10.0, northnode=100.0, southnode=280.0))
    assert all('southnode' not in a.pair for a in aspects)
    assert len(aspects) == 1


def test_no_aspects_for_single_body():
    assert calculate_aspects(_bodies(sun=10.0)) == []
