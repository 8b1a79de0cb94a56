"""Unit tests for src.utils.formatting."""
import struct

import pytest
from src.utils.formatting import format_float, format_number, format_value


class TestFormatFloat:
    """Fixed precision values written with set_float."""

    def test_pads_to_precision(self):
        assert format_float(100.0, 3) == "100.000"

    def test_negative_value(self):
        assert format_float(-45.678, 3) == "-45.678"

    def test_large_value_no_scientific(self):
        result = format_float(25000.0, 1)
        assert result == "25000.0"
        assert "e" not in result.lower()

    def test_small_value_no_scientific(self):
        assert format_float(0.00001, 6) == "0.000010"

    def test_default_decimals_is_six(self):
        assert format_float(3.14) == "3.140000"

    def test_single_precision_input(self):
        unpacked = struct.unpack('<f', struct.pack('<f', 0.45))[0]
        assert format_float(unpacked, 3) == "0.450"


class TestFormatNumber:

    @pytest.mark.parametrize("val, expected", [
        (6000, "6000"),
        (6000.0, "6000"),
        (-2.0, "-2"),
        (0.0026, "0.0026"),
        (40.5, "40.5"),
        (1e-05, "0.00001"),
        (2.5e16, "25000000000000000"),
        (0.1 + 0.2, "0.30000000000000004"),
    ])
    def test_shortest_text(self, val, expected):
        assert format_number(val) == expected

    def test_strings_pass_through(self):
        assert format_number("power.lut") == "power.lut"


class TestFormatValue:

    def test_booleans_are_flags(self):
        assert format_value(True) == "1"
        assert format_value(False) == "0"

    def test_numbers(self):
        assert format_value(0.85) == "0.85"
        assert format_value(3) == "3"
