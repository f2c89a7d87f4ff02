from __future__ import annotations

import keyword
import posixpath
import re
from typing import Iterable, Optional

from protoc_idiom.models import TypeRef

# Names the generated dataclass bodies rely on at class-creation time,
# e.g. ``dataclasses.field(default_factory=list)``.
_CLASS_BODY_NAMES = frozenset({"dataclasses", "dict", "list"})

RESERVED_NAMES = frozenset(keyword.kwlist) | _CLASS_BODY_NAMES

MODEL_MODULE_SUFFIX = "_idiom"
SERVICE_MODULE_SUFFIX = "_idiom_grpc"


def escape(name: str) -> str:
    """Append ``_`` to names that cannot be used as Python identifiers as-is."""
    if name in RESERVED_NAMES:
        return name + "_"
    return name


def is_keyword(name: str) -> bool:
    return keyword.iskeyword(name)


def to_pascal(name: str) -> str:
    parts = re.split(r"[_\-]", name)
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def to_snake(name: str) -> str:
    """Convert names to snake_case.

    - PascalCase/camelCase: GetPerson -> get_person, GetHTTPInfo -> get_http_info
    - snake_case is kept: list_people -> list_people
    - digits stay attached to the preceding word: V2Request -> v2_request
    """
    if not name:
        return name
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    s = re.sub(r"_{2,}", "_", s)
    return s.lower()


def to_upper_snake(name: str) -> str:
    return to_snake(name).upper()


def class_name(ref: TypeRef) -> str:
    """Flattened module-level class name: ``Person.Address`` -> ``PersonAddress``."""
    return escape("".join(ref.path))


def function_stem(ref: TypeRef) -> str:
    return to_snake("".join(ref.path))


def to_idiom_function(ref: TypeRef) -> str:
    return f"{function_stem(ref)}_to_idiom"


def to_host_function(ref: TypeRef) -> str:
    return f"{function_stem(ref)}_to_host"


def host_class_path(ref: TypeRef) -> str:
    """Attribute path of the protoc generated class inside its ``_pb2`` module."""
    return ".".join(ref.path)


def host_module(file_name: str) -> str:
    """Module protoc's Python generator emits for a ``.proto`` file.

    ``acme/people/v1/person-info.proto`` -> ``acme.people.v1.person_info_pb2``
    """
    stem = file_name[: -len(".proto")] if file_name.endswith(".proto") else file_name
    return stem.replace("-", "_").replace("/", ".") + "_pb2"


def _file_stem(file_name: str) -> str:
    base = posixpath.basename(file_name)
    if base.endswith(".proto"):
        base = base[: -len(".proto")]
    return base.replace("-", "_").replace(".", "_")


def _module_package(package: str, prefix: Optional[str]) -> str:
    parts = [p for p in (prefix or "").split(".") if p]
    parts.extend(p for p in package.split(".") if p)
    return ".".join(parts)


def model_module(package: str, file_name: str, prefix: Optional[str] = None) -> str:
    """Module holding the value types and conversions for a ``.proto`` file."""
    return _join_module(_module_package(package, prefix), _file_stem(file_name) + MODEL_MODULE_SUFFIX)


def service_module(package: str, file_name: str, prefix: Optional[str] = None) -> str:
    return _join_module(_module_package(package, prefix), _file_stem(file_name) + SERVICE_MODULE_SUFFIX)


def _join_module(package: str, name: str) -> str:
    if package:
        return f"{package}.{name}"
    return name


def output_path(module: str) -> str:
    """``acme.people.v1.person_idiom`` -> ``acme/people/v1/person_idiom.py``"""
    return module.replace(".", "/") + ".py"


def module_alias(module: str) -> str:
    """Deterministic, collision-free import alias for a dotted module path."""
    return "_" + module.replace(".", "_")


def oneof_type_name(parent: TypeRef, oneof_name: str, taken: Iterable[str] = ()) -> str:
    """Name of the sum type generated for a real oneof.

    Falls back to a ``Oneof`` suffix when the plain name is already used by a
    nested declaration of the same parent.
    """
    name = "".join(parent.path) + to_pascal(oneof_name)
    if name in set(taken):
        name += "Oneof"
    return name


def oneof_variant_name(oneof_type: str, field_name: str) -> str:
    return oneof_type + to_pascal(field_name)
