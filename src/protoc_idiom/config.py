"""Plugin configuration.

protoc passes everything after ``--idiom_opt=`` (or the part of ``--idiom_out``
before the colon) as a single parameter string, ``key=value`` pairs separated
by commas. Boolean keys may be given without a value.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

EXCLUDED_PREFIXES = ("google/", "validate/", "protobuf/", "googleapis/", "grpc/")

LOG_LEVEL_ENV = "PROTOC_IDIOM_LOG_LEVEL"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class ConfigError(ValueError):
    """Raised for unknown or malformed plugin parameters."""


@dataclass(frozen=True)
class GeneratorConfig:
    package_prefix: Optional[str] = None
    services: bool = True
    exclude: List[str] = field(default_factory=list)
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.package_prefix is not None:
            parts = self.package_prefix.split(".")
            if not all(p.isidentifier() for p in parts):
                raise ConfigError(f"package_prefix must be a dotted Python module path, got {self.package_prefix!r}")
        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigError(f"Unknown log_level {self.log_level!r}")

    @property
    def excluded_prefixes(self) -> List[str]:
        return list(EXCLUDED_PREFIXES) + list(self.exclude)

    def is_excluded(self, file_name: str) -> bool:
        return any(file_name.startswith(prefix) for prefix in self.excluded_prefixes)

    @classmethod
    def from_parameter(cls, parameter: str) -> GeneratorConfig:
        options = parse_parameter(parameter)
        kwargs: Dict[str, object] = {}
        for key, value in options.items():
            if key == "package_prefix":
                kwargs[key] = value or None
            elif key == "services":
                kwargs[key] = _parse_bool(key, value)
            elif key == "exclude":
                kwargs[key] = [p for p in value.split(":") if p]
            elif key == "log_level":
                kwargs[key] = value.upper()
            else:
                raise ConfigError(f"Unknown plugin parameter {key!r}")
        if "log_level" not in kwargs and os.environ.get(LOG_LEVEL_ENV):
            kwargs["log_level"] = os.environ[LOG_LEVEL_ENV].upper()
        return cls(**kwargs)


def parse_parameter(parameter: str) -> Dict[str, str]:
    """``"a=1,b"`` -> ``{"a": "1", "b": ""}``"""
    options: Dict[str, str] = {}
    for item in parameter.split(","):
        item = item.strip()
        if not item:
            continue
        key, _, value = item.partition("=")
        key = key.strip()
        if not key:
            raise ConfigError(f"Malformed plugin parameter {item!r}")
        options[key] = value.strip()
    return options


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.lower()
    if lowered == "" or lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"Parameter {key!r} expects a boolean, got {value!r}")
