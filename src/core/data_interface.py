"""File access for a car's data, either an unpacked ``data/`` dir or a ``data.acd`` archive.

Writes are staged in memory and only reach disk on ``commit()``.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from .acd import AcdArchive
from .errors import DataIOError

logger = logging.getLogger(__name__)


class DataInterface(ABC):
    """Staged read/update/delete access to the files of one car."""

    @abstractmethod
    def get_original_file(self, filename: str) -> Optional[bytes]:
        """Content as it was before any staged update, None if the file didn't exist."""

    @abstractmethod
    def get_file(self, filename: str) -> Optional[bytes]:
        """Content including staged updates, None if absent or deleted."""

    @abstractmethod
    def contains_file(self, filename: str) -> bool:
        pass

    @abstractmethod
    def write_file(self, filename: str, data: bytes) -> None:
        pass

    @abstractmethod
    def delete(self, filename: str) -> None:
        pass

    @abstractmethod
    def commit(self) -> None:
        pass


class DirectoryInterface(DataInterface):
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        if not self.data_dir.is_dir():
            raise DataIOError(self.data_dir, "directory doesn't exist")
        self._pending: Dict[str, Optional[bytes]] = {}
        self._originals: Dict[str, Optional[bytes]] = {}

    @classmethod
    def create(cls, data_dir: Path) -> 'DirectoryInterface':
        data_dir = Path(data_dir)
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DataIOError(data_dir, f"failed to create directory. {e}")
        return cls(data_dir)

    def _path(self, filename: str) -> Path:
        return self.data_dir / filename

    def get_original_file(self, filename: str) -> Optional[bytes]:
        if filename in self._originals:
            return self._originals[filename]
        path = self._path(filename)
        if not path.is_file():
            return None
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DataIOError(path, f"failed to read. {e}")
        self._originals[filename] = data
        return data

    def get_file(self, filename: str) -> Optional[bytes]:
        if filename in self._pending:
            return self._pending[filename]
        return self.get_original_file(filename)

    def contains_file(self, filename: str) -> bool:
        if filename in self._pending:
            return self._pending[filename] is not None
        return self._path(filename).is_file()

    def write_file(self, filename: str, data: bytes) -> None:
        if filename not in self._originals:
            # Snapshot now so later reads of the original survive the update
            self.get_original_file(filename)
        self._pending[filename] = bytes(data)

    def delete(self, filename: str) -> None:
        if filename not in self._originals:
            self.get_original_file(filename)
        self._pending[filename] = None

    def commit(self) -> None:
        for filename, data in self._pending.items():
            path = self._path(filename)
            try:
                if data is None:
                    if path.exists():
                        path.unlink()
                else:
                    path.write_bytes(data)
            except OSError as e:
                raise DataIOError(path, f"failed to commit. {e}")
        logger.debug("Committed %d file updates to %s", len(self._pending), self.data_dir)
        self._pending.clear()
        self._originals.clear()


class ArchiveInterface(DataInterface):
    def __init__(self, acd_path: Path):
        self.archive = AcdArchive.load_from_acd_file(acd_path)
        self._originals: Dict[str, bytes] = dict(self.archive.files)

    @property
    def acd_path(self) -> Path:
        return self.archive.acd_path

    def get_original_file(self, filename: str) -> Optional[bytes]:
        return self._originals.get(filename)

    def get_file(self, filename: str) -> Optional[bytes]:
        return self.archive.get_file_data(filename)

    def contains_file(self, filename: str) -> bool:
        return self.archive.contains_file(filename)

    def write_file(self, filename: str, data: bytes) -> None:
        self.archive.update_file_data(filename, data)

    def delete(self, filename: str) -> None:
        self.archive.delete_file(filename)

    def commit(self) -> None:
        self.archive.write()
        self._originals = dict(self.archive.files)
