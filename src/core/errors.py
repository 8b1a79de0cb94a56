"""Exception types raised across the toolchain."""
from enum import Enum
from typing import Optional


class EngineCraneError(Exception):
    pass


class ConfigError(EngineCraneError):
    pass


class DataIOError(EngineCraneError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class DecodeError(EngineCraneError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to decode {self.path}. {reason}")


class EncodeError(EngineCraneError):
    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Failed to encode {self.path}. {reason}")


class KeyDerivationError(EngineCraneError):
    def __init__(self, folder_name: str, index: int):
        self.folder_name = folder_name
        self.index = index
        super().__init__(f"Failed to derive key for '{folder_name}' at index {index}")


class IniParseError(EngineCraneError):
    pass


class PropertyParseError(EngineCraneError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Failed to parse '{value}'")


class LutParseError(EngineCraneError):
    def __init__(self, section: str, key: str, reason: str):
        self.section = section
        self.key = key
        self.reason = reason
        super().__init__(f"Failed to load lut {section}.{key}. {reason}")


class MissingMandatoryProperty(EngineCraneError):
    def __init__(self, section: str, key: str):
        self.section = section
        self.key = key
        super().__init__(f"{section}-{key} is missing")


class InvalidCarError(EngineCraneError):
    pass


class CarAlreadyExistsError(EngineCraneError):
    pass


class NoSuchCarError(EngineCraneError):
    pass


class ValidationError(EngineCraneError):
    def __init__(self, key: str, expected=None, actual=None, message: Optional[str] = None):
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(message or f"{key}: {expected} != {actual}")


class CrateEngineError(EngineCraneError):
    pass


class UnsupportedVersionError(CrateEngineError):
    def __init__(self, what: str, version: int):
        self.what = what
        self.version = version
        super().__init__(f"Unsupported {what} version {version}")


class FabricationErrorKind(Enum):
    MISSING_DATA_SOURCE = "MissingDataSource"
    MISSING_DATA_SECTION = "MissingDataSection"
    INVALID_DATA = "InvalidData"
    FAILED_TO_LOAD = "FailedToLoad"
    FAILED_TO_UPDATE = "FailedToUpdate"
    FAILED_TO_WRITE = "FailedToWrite"
    VALIDATION = "Validation"


class FabricationError(EngineCraneError):
    def __init__(self, kind: FabricationErrorKind, resource: str, reason: Optional[str] = None):
        self.kind = kind
        self.resource = resource
        self.reason = reason
        message = f"{kind.value}: {resource}"
        if reason:
            message += f". {reason}"
        super().__init__(message)
