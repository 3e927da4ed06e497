"""
This module defines the data structures for our configuration and the
resolver used to read the sparse CloudFront settings out of it.
"""

import math
import yaml
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

REQUIRED_KEYS = ["team", "service", "environment", "region"]
CONFIG_ROOT = ("custom", "apiCloudFront")


@dataclass
class Config:
    team: str
    service: str
    environment: str
    region: str
    tags: Dict[str, str] = field(default_factory=dict)
    stage: Optional[str] = None

    @classmethod
    def from_dict(cls, config_data: Dict[str, Any]) -> "Config":
        return cls(
            team=config_data["team"],
            service=config_data["service"],
            environment=config_data["environment"],
            region=config_data["region"],
            tags=config_data.get("tags") or {},
            stage=config_data.get("stage"),
        )


def load_config(file_path: str) -> Dict[str, Any]:
    """Load and validate YAML configuration from the given file path."""
    with open(file_path, "r") as file:
        config_data = yaml.safe_load(file)

    if not isinstance(config_data, dict):
        raise ValueError(f"Configuration root must be a mapping, got {type(config_data).__name__}")

    # Ensure required keys exist
    for key in REQUIRED_KEYS:
        if key not in config_data:
            raise ValueError(f"Missing required configuration key: {key}")

    return config_data


class _Absent:
    """Marker for a configuration path that is not set at all."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


@dataclass(frozen=True)
class Explicit:
    value: Any

    @property
    def is_empty(self) -> bool:
        return is_empty(self.value)


Lookup = Union[_Absent, Explicit]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def is_falsy(value: Any) -> bool:
    # Empty lists and mappings are real values, only scalars collapse.
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


class ConfigResolver:
    """
    Reads dotted paths below ``custom.apiCloudFront`` of the user configuration.

    ``lookup`` tells apart an unset path (``ABSENT``) from an explicit value.
    ``resolve`` layers the default handling on top of it:

    - unset path: the default
    - explicitly empty value with ``allow_empty``: the empty value itself
    - any other falsy scalar: the default
    - anything else: the value
    """

    def __init__(self, config_data: Dict[str, Any], root: Sequence[str] = CONFIG_ROOT):
        self.config = config_data or {}
        self.root = tuple(root)

    def lookup(self, path: str) -> Lookup:
        node: Any = self.config
        for segment in self.root + tuple(path.split(".")):
            if not isinstance(node, dict) or segment not in node:
                return ABSENT
            node = node[segment]
        return Explicit(node)

    def resolve(self, path: str, default: Any = None, allow_empty: bool = False) -> Any:
        found = self.lookup(path)
        if found is ABSENT:
            return default
        if allow_empty and found.is_empty:
            return found.value
        if is_falsy(found.value):
            return default
        return found.value
