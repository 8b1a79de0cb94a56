"""Rounding and unit helpers shared by the fabrication formulas."""
import math
from statistics import NormalDist

BHP_PER_KW = 1.341


def round_half_away(val: float) -> int:
    """Round to the nearest integer, halves away from zero.

    Python's round() uses banker's rounding, which would pull 2.5 down to 2;
    every "rounded" quantity in the physics files expects 3.
    """
    if val >= 0:
        return int(math.floor(val + 0.5))
    return -int(math.floor(-val + 0.5))


def round_float_to(val: float, decimal_places: int) -> float:
    factor = 10 ** decimal_places
    return round_half_away(val * factor) / factor


def kw_to_bhp(power_kw: float) -> float:
    return power_kw * BHP_PER_KW


def power_kw(torque_nm: float, rpm: float) -> float:
    return (torque_nm * rpm * 2.0 * math.pi) / (60.0 * 1000.0)


def round_up_to_nearest_multiple(val: int, multiple: int) -> int:
    if val < multiple:
        return multiple
    return ((val + (multiple - 1)) // multiple) * multiple


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def clamp(val: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(val, maximum))


def normal_lerp(minimum: float, maximum: float, t: float, standard_deviation: float) -> float:
    """Interpolate along a normal CDF centred on 0.5 instead of a straight line."""
    dist = NormalDist(mu=0.5, sigma=standard_deviation)
    return minimum + dist.cdf(clamp(t, 0.0, 1.0)) * (maximum - minimum)


def round_to_nearest_hundred(val: float) -> int:
    if int(val) == 0:
        return 0
    return round_half_away(val / 100) * 100
