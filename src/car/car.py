"""A car folder and the ini files inside its data source."""
import logging
from pathlib import Path
from typing import Optional

from ..core.constants import ACD_FILENAME, DATA_DIRNAME
from ..core.data_interface import ArchiveInterface, DataInterface, DirectoryInterface
from ..core.errors import DataIOError, InvalidCarError
from ..core.ini import Ini

logger = logging.getLogger(__name__)


class Car:
    """Root folder of a car plus access to its data files.

    An unpacked ``data/`` dir takes precedence over ``data.acd``.
    """

    def __init__(self, root_path: Path, data_interface: DataInterface):
        self.root_path = Path(root_path)
        self.data_interface = data_interface

    @classmethod
    def load_from_path(cls, car_folder_path) -> 'Car':
        car_folder_path = Path(car_folder_path)
        if not car_folder_path.is_dir():
            raise InvalidCarError(f"{car_folder_path} is not a directory")
        data_dir = car_folder_path / DATA_DIRNAME
        if data_dir.is_dir():
            return cls(car_folder_path, DirectoryInterface(data_dir))
        acd_path = car_folder_path / ACD_FILENAME
        if not acd_path.is_file():
            raise InvalidCarError(f"{car_folder_path} doesn't contain a data dir or {ACD_FILENAME} file")
        return cls(car_folder_path, ArchiveInterface(acd_path))

    @classmethod
    def new(cls, root_path) -> 'Car':
        root_path = Path(root_path)
        return cls(root_path, DirectoryInterface.create(root_path / DATA_DIRNAME))

    @property
    def folder_name(self) -> str:
        return self.root_path.name

    @property
    def ui_path(self) -> Path:
        return self.root_path / "ui"

    def commit(self) -> None:
        logger.debug("Committing data updates for %s", self.folder_name)
        self.data_interface.commit()


class CarIniFile:
    """Base for one ini file in a car's data source.

    ``write()`` only stages the new contents; nothing reaches disk until the
    car's data interface is committed.
    """
    FILENAME = ''

    def __init__(self, car: Car, ini: Ini):
        self.car = car
        self.ini = ini

    @classmethod
    def from_car(cls, car: Car):
        """Load the file from the car, None if it doesn't exist."""
        data = car.data_interface.get_file(cls.FILENAME)
        if data is None:
            return None
        return cls(car, Ini.load_from_bytes(data))

    @classmethod
    def mandatory_from_car(cls, car: Car):
        loaded = cls.from_car(car)
        if loaded is None:
            raise InvalidCarError(f"missing {cls.FILENAME} data")
        return loaded

    @property
    def data_interface(self) -> DataInterface:
        return self.car.data_interface

    def write(self) -> None:
        self.car.data_interface.write_file(self.FILENAME, self.ini.to_bytes())


def read_root_file(car: Car, relative_path: str) -> Optional[bytes]:
    path = car.root_path / relative_path
    if not path.is_file():
        return None
    try:
        return path.read_bytes()
    except OSError as e:
        raise DataIOError(path, f"failed to read. {e}")


def write_root_file(car: Car, relative_path: str, data: bytes) -> None:
    path = car.root_path / relative_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise DataIOError(path, f"failed to write. {e}")
