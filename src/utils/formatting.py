"""Shared formatting utilities for values written to physics files."""
from decimal import Decimal


def format_float(val: float, decimals: int = 6) -> str:
    """Format a float using fixed-point notation (never scientific).

    Args:
        val: The float value to format.
        decimals: Number of decimal places (default 6).

    Returns:
        A string like '123.456000', never '1.23e+02'.
    """
    return f"{val:.{decimals}f}"


def format_value(val) -> str:
    """Render a python value the way the physics files store it.

    Booleans are written as 1/0, numbers via format_number.
    """
    if isinstance(val, bool):
        return "1" if val else "0"
    return format_number(val)


def format_number(val) -> str:
    """Shortest text for a number, never in exponent form; integral floats drop the '.0'."""
    if isinstance(val, float):
        if val.is_integer():
            return str(int(val))
        return format(Decimal(repr(val)), 'f')
    return str(val)
