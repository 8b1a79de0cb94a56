import pytest

from src.utils.numeric import (
    clamp, kw_to_bhp, lerp, normal_lerp, power_kw, round_float_to, round_half_away,
    round_to_nearest_hundred, round_up_to_nearest_multiple,
)


@pytest.mark.parametrize("val, expected", [
    (2.5, 3),
    (-2.5, -3),
    (0.5, 1),
    (2.4999, 2),
    (-0.4, 0),
    (40.5, 41),
])
def test_round_half_away(val, expected):
    assert round_half_away(val) == expected


def test_round_float_to():
    assert round_float_to(0.125, 2) == 0.13
    assert round_float_to(0.8049, 2) == 0.8
    assert round_float_to(-0.125, 2) == -0.13


def test_power_and_bhp():
    assert power_kw(286, 1000) == pytest.approx(29.9498, abs=1e-4)
    assert kw_to_bhp(100) == pytest.approx(134.1)


@pytest.mark.parametrize("val, multiple, expected", [
    (30, 50, 50),
    (320, 50, 350),
    (350, 50, 350),
])
def test_round_up_to_nearest_multiple(val, multiple, expected):
    assert round_up_to_nearest_multiple(val, multiple) == expected


def test_lerp_and_clamp():
    assert lerp(0.32, 0.07, 0.5) == pytest.approx(0.195)
    assert clamp(1.5, 0.0, 1.0) == 1.0
    assert clamp(-1.0, 0.0, 1.0) == 0.0


def test_normal_lerp():
    assert normal_lerp(0.32, 0.07, 0.5, 0.2) == pytest.approx(0.195)
    # Out of range inputs are clamped to the curve ends
    assert normal_lerp(0.32, 0.07, 3.0, 0.2) == normal_lerp(0.32, 0.07, 1.0, 0.2)
    assert normal_lerp(0.32, 0.07, 0.9, 0.2) < normal_lerp(0.32, 0.07, 0.6, 0.2)


@pytest.mark.parametrize("val, expected", [
    (4850, 4900),
    (4849, 4800),
    (0.5, 0),
    (6000, 6000),
])
def test_round_to_nearest_hundred(val, expected):
    assert round_to_nearest_hundred(val) == expected
