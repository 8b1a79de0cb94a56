"""Unit tests for src.core.lut."""
import pytest

from src.core.errors import LutParseError, MissingMandatoryProperty
from src.core.ini import Ini
from src.core.lut import (
    LutInterpolator, LutProperty, LutType, parse_inline_lut, parse_lut_text, write_inline_lut,
    write_lut_bytes,
)


class FakeDataInterface:
    def __init__(self, files=None):
        self.files = dict(files or {})
        self.written = {}
        self.deleted = []

    def get_original_file(self, filename):
        return self.files.get(filename)

    def write_file(self, filename, data):
        self.written[filename] = data

    def delete(self, filename):
        self.deleted.append(filename)


class TestFileForm:

    def test_separators_and_comments(self):
        text = "; header\n1000|150\n2000\t180   ; peak\n\n3000 170\n"
        assert parse_lut_text(text) == [(1000.0, 150.0), (2000.0, 180.0), (3000.0, 170.0)]

    def test_typed_keys(self):
        assert parse_lut_text("1000|150.5\n", key_type=int) == [(1000, 150.5)]

    def test_bad_value(self):
        with pytest.raises(ValueError):
            parse_lut_text("1000|abc\n")

    def test_missing_value(self):
        with pytest.raises(ValueError):
            parse_lut_text("1000\n")

    def test_write_is_tab_separated(self):
        assert write_lut_bytes([(1000, 150.0), (2000, 40.5)]) == b"1000\t150\n2000\t40.5\n"


class TestInlineForm:

    def test_parse(self):
        assert parse_inline_lut("(0=0.12|0.97=13|1=0.40)") == [(0.0, 0.12), (0.97, 13.0), (1.0, 0.4)]

    def test_write(self):
        assert write_inline_lut([(0, 0.12), (1000.0, 1.5)]) == "(0=0.12|1000=1.5)"

    def test_missing_separator(self):
        with pytest.raises(ValueError):
            parse_inline_lut("(0=1|2)")


class TestLutProperty:

    def test_file_lut_from_ini(self):
        ini = Ini.load_from_string("[HEADER]\nPOWER_CURVE=power.lut\n")
        data = FakeDataInterface({"power.lut": b"0|100\n1000|150\n"})
        lut = LutProperty.mandatory_from_ini("HEADER", "POWER_CURVE", ini, data)
        assert lut.lut_type == LutType.FILE
        assert lut.filename == "power.lut"
        assert lut.to_list() == [(0.0, 100.0), (1000.0, 150.0)]

        lut.update([(1000, 200.0)])
        lut.update_car_data(ini, data)
        assert ini.get_value("HEADER", "POWER_CURVE") == "power.lut"
        assert data.written["power.lut"] == b"1000\t200\n"

    def test_inline_lut_from_ini(self):
        ini = Ini.load_from_string("[CONTROLLER_0]\nLUT=(0=0|7000=1.2)\n")
        lut = LutProperty.mandatory_from_ini("CONTROLLER_0", "LUT", ini, FakeDataInterface())
        assert lut.lut_type == LutType.INLINE
        assert lut.values() == [0.0, 1.2]
        lut.update([(0, 0.5)])
        lut.update_car_data(ini, FakeDataInterface())
        assert ini.get_value("CONTROLLER_0", "LUT") == "(0=0.5)"

    def test_missing_file(self):
        ini = Ini.load_from_string("[HEADER]\nPOWER_CURVE=power.lut\n")
        with pytest.raises(LutParseError) as exc_info:
            LutProperty.mandatory_from_ini("HEADER", "POWER_CURVE", ini, FakeDataInterface())
        assert exc_info.value.section == "HEADER"
        assert exc_info.value.key == "POWER_CURVE"

    def test_unparsable_file(self):
        ini = Ini.load_from_string("[HEADER]\nPOWER_CURVE=power.lut\n")
        data = FakeDataInterface({"power.lut": b"0|x\n"})
        with pytest.raises(LutParseError):
            LutProperty.mandatory_from_ini("HEADER", "POWER_CURVE", ini, data)

    def test_missing_property(self):
        with pytest.raises(MissingMandatoryProperty):
            LutProperty.mandatory_from_ini("HEADER", "POWER_CURVE", Ini(), FakeDataInterface())
        assert LutProperty.optional_from_ini("HEADER", "POWER_CURVE", Ini(), FakeDataInterface()) is None

    def test_path_only_ignores_updates(self):
        ini = Ini.load_from_string("[HEADER]\nPOWER_CURVE=power.lut\n")
        lut = LutProperty.path_only("HEADER", "POWER_CURVE", ini)
        assert lut.update([(0, 1)]) == []
        assert lut.num_entries() == 0

    def test_delete(self):
        ini = Ini.load_from_string("[HEADER]\nPOWER_CURVE=power.lut\n")
        data = FakeDataInterface()
        LutProperty.new_file("HEADER", "POWER_CURVE", "power.lut", []).delete_from_car_data(ini, data)
        assert ini.get_value("HEADER", "POWER_CURVE") is None
        assert data.deleted == ["power.lut"]


class TestInterpolator:

    def test_interpolates(self):
        interp = LutInterpolator([(0, 0), (1000, 100), (2000, 300)])
        assert interp.get_value(500) == pytest.approx(50)
        assert interp.get_value(1500) == pytest.approx(200)
        assert interp.get_value(1000) == 100

    def test_outside_range(self):
        interp = LutInterpolator([(1000, 100), (2000, 300)])
        assert interp.get_value(999) is None
        assert interp.get_value(2001) is None
        assert LutInterpolator([]).get_value(0) is None
