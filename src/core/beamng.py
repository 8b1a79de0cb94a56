"""Reader for engine mods exported from the authoring tool to BeamNG (.zip)."""
import json
import logging
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Optional, Tuple

from . import jbeam
from .errors import DataIOError, DecodeError

logger = logging.getLogger(__name__)

# Parses the authoring tool's exported car file into nested dicts
CarFileReader = Callable[[bytes], Dict[str, Any]]

MAIN_ENGINE_JBEAM_PREFIX = "camso_engine_"
NOT_MAIN_ENGINE_MARKERS = ("structure", "internals", "balancing")
MIN_UID_PREFIX_LEN = 5


def json_car_file_reader(data: bytes) -> Dict[str, Any]:
    """Car file reader for exports already converted to json."""
    try:
        car_file = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError("car file", str(e))
    if not isinstance(car_file, dict):
        raise DecodeError("car file", "expected a json object")
    return car_file


def main_engine_jbeam_key(uid: str) -> str:
    if len(uid) < MIN_UID_PREFIX_LEN:
        raise DecodeError(uid, f"engine uid must be at least {MIN_UID_PREFIX_LEN} characters")
    return uid[:MIN_UID_PREFIX_LEN]


class BeamNGMod:
    """Contents of a mod zip: info.json, the car file, jbeam files and a license."""

    def __init__(self, path: Path, info_json: Optional[bytes], car_file_data: Optional[bytes],
                 jbeam_files: Dict[str, bytes], license_data: Optional[str]):
        self.path = Path(path)
        self.info_json = info_json
        self.car_file_data = car_file_data
        self.jbeam_files = jbeam_files
        self.license_data = license_data

    @classmethod
    def load_from_path(cls, path) -> 'BeamNGMod':
        path = Path(path)
        info_json = None
        car_file_data = None
        license_data = None
        jbeam_files = {}
        try:
            with zipfile.ZipFile(path) as mod:
                for entry in mod.infolist():
                    if entry.is_dir():
                        continue
                    name = PurePosixPath(entry.filename).name
                    if entry.filename.endswith("info.json"):
                        info_json = mod.read(entry)
                    elif name.endswith(".car"):
                        car_file_data = mod.read(entry)
                    elif name.endswith(".jbeam"):
                        jbeam_files[name] = mod.read(entry)
                    elif name.upper().startswith("LICENSE"):
                        license_data = mod.read(entry).decode('utf-8', errors='replace')
        except (OSError, zipfile.BadZipFile) as e:
            raise DataIOError(path, f"failed to read BeamNG mod. {e}")
        logger.info("Loaded %s: %d jbeam files, car file %s", path.name, len(jbeam_files),
                    "present" if car_file_data is not None else "missing")
        return cls(path, info_json, car_file_data, jbeam_files, license_data)

    @property
    def name(self) -> str:
        return self.path.stem

    def main_engine_jbeam_filename(self, uid: str) -> Optional[str]:
        """Find the engine jbeam for uid, falling back through looser name matches."""
        expected = f"{MAIN_ENGINE_JBEAM_PREFIX}{main_engine_jbeam_key(uid)}.jbeam"
        if expected in self.jbeam_files:
            return expected
        if "camso_engine.jbeam" in self.jbeam_files:
            return "camso_engine.jbeam"
        for filename in self.jbeam_files:
            if MAIN_ENGINE_JBEAM_PREFIX in filename and \
                    not any(marker in filename for marker in NOT_MAIN_ENGINE_MARKERS):
                return filename
        return None

    def main_engine_jbeam(self, uid: str) -> Tuple[str, Dict[str, Any]]:
        filename = self.main_engine_jbeam_filename(uid)
        if filename is None:
            raise DecodeError(self.path, "no main engine jbeam file found")
        try:
            return filename, jbeam.load_bytes(self.jbeam_files[filename])
        except ValueError as e:
            raise DecodeError(f"{self.path}:{filename}", str(e))

    def engine_display_name(self, engine_jbeam: Dict[str, Any]) -> str:
        for key, section in engine_jbeam.items():
            if not isinstance(section, dict):
                continue
            info = section.get("information")
            if isinstance(info, dict) and isinstance(info.get("name"), str):
                return info["name"]
            logger.debug("No information.name under %s", key)
        return self.name

    def read_car_file(self, car_file_reader: CarFileReader) -> Optional[Dict[str, Any]]:
        if self.car_file_data is None:
            return None
        return car_file_reader(self.car_file_data)

