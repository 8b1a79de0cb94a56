"""ui/ui_car.json: the car's name, tags and the spec sheet shown in the game menus."""
import json
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .car import Car
from ..core.errors import DataIOError, InvalidCarError

logger = logging.getLogger(__name__)

UI_INFO_RELATIVE_PATH = Path("ui") / "ui_car.json"


def _flatten_json_text(text: str) -> str:
    # Shipped files often contain raw newlines and tabs inside string values
    return text.replace("\r\n", "\n").replace("\n", " ").replace("\t", "  ")


class UiInfo:
    def __init__(self, path: Path, json_config: dict):
        self.path = Path(path)
        self.json_config = json_config

    @classmethod
    def load(cls, path) -> 'UiInfo':
        path = Path(path)
        try:
            text = path.read_text(encoding='utf-8-sig', errors='replace')
        except OSError as e:
            raise DataIOError(path, f"failed to read ui data. {e}")
        try:
            json_config = json.loads(_flatten_json_text(text))
        except json.JSONDecodeError as e:
            raise InvalidCarError(f"{path} is not valid json. {e}")
        if not isinstance(json_config, dict):
            raise InvalidCarError(f"{path} doesn't contain a json object")
        return cls(path, json_config)

    @classmethod
    def from_car(cls, car: Car) -> 'UiInfo':
        return cls.load(car.root_path / UI_INFO_RELATIVE_PATH)

    def to_string(self) -> str:
        return json.dumps(self.json_config, indent=2, ensure_ascii=False)

    def write(self) -> None:
        try:
            self.path.write_text(self.to_string(), encoding='utf-8')
        except OSError as e:
            raise DataIOError(self.path, f"failed to write ui data. {e}")

    # -------- plain strings --------

    def _get_string(self, key: str) -> Optional[str]:
        val = self.json_config.get(key)
        return val if isinstance(val, str) else None

    def _set_string(self, key: str, value: str) -> None:
        current = self.json_config.get(key)
        if current is None or isinstance(current, str):
            self.json_config[key] = value

    def name(self) -> Optional[str]:
        return self._get_string("name")

    def set_name(self, name: str) -> None:
        self._set_string("name", name)

    def parent(self) -> Optional[str]:
        return self._get_string("parent")

    def set_parent(self, parent: str) -> None:
        self._set_string("parent", parent)

    def brand(self) -> Optional[str]:
        return self._get_string("brand")

    def description(self) -> Optional[str]:
        return self._get_string("description")

    def car_class(self) -> Optional[str]:
        return self._get_string("class")

    # -------- tags --------

    def tags(self) -> Optional[List[str]]:
        tags = self.json_config.get("tags")
        if not isinstance(tags, list):
            return None
        return [t for t in tags if isinstance(t, str)]

    def has_tag(self, tag: str) -> bool:
        tags = self.json_config.get("tags")
        return isinstance(tags, list) and tag in tags

    def _tag_list(self) -> list:
        tags = self.json_config.setdefault("tags", [])
        if not isinstance(tags, list):
            raise InvalidCarError("'tags' element of ui data couldn't be accessed")
        return tags

    def add_tag(self, tag: str) -> None:
        self._tag_list().append(tag)

    def add_tag_if_unique(self, tag: str) -> bool:
        tags = self._tag_list()
        if tag in tags:
            return False
        tags.append(tag)
        return True

    # -------- specs --------

    def specs(self) -> Optional[Dict[str, object]]:
        specs = self.json_config.get("specs")
        return dict(specs) if isinstance(specs, dict) else None

    def update_spec(self, key: str, value: str) -> None:
        specs = self.json_config.setdefault("specs", {})
        if not isinstance(specs, dict):
            raise InvalidCarError("'specs' element of ui data couldn't be accessed")
        specs.pop(key, None)
        specs[key] = value

    # -------- curves --------

    def _load_curve(self, key: str) -> Optional[List[List[str]]]:
        curve = self.json_config.get(key)
        if not isinstance(curve, list):
            return None
        return [[v for v in point if isinstance(v, str)] for point in curve if isinstance(point, list)]

    def _update_curve(self, key: str, data: Sequence[Tuple[int, int]]) -> None:
        current = self.json_config.get(key)
        if current is not None and not isinstance(current, list):
            raise InvalidCarError(f"Couldn't access {key} curve data")
        self.json_config[key] = [[str(rpm), str(val)] for rpm, val in data]

    def torque_curve(self) -> Optional[List[List[str]]]:
        return self._load_curve("torqueCurve")

    def update_torque_curve(self, data: Sequence[Tuple[int, int]]) -> None:
        self._update_curve("torqueCurve", data)

    def power_curve(self) -> Optional[List[List[str]]]:
        return self._load_curve("powerCurve")

    def update_power_curve(self, data: Sequence[Tuple[int, int]]) -> None:
        self._update_curve("powerCurve", data)
