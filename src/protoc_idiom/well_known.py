from __future__ import annotations

import enum
from typing import FrozenSet, Optional

from protoc_idiom.imports import WELL_KNOWN_RUNTIME, Import, module_import
from protoc_idiom.transform import Transform, TransformTemplate

GOOGLE_PACKAGE_PREFIX = "google."

_DATETIME = Import(module="datetime")
_EMPTY_PB2 = module_import("google.protobuf.empty_pb2")


def _wrapper(full_name: str, annotation: str, scalar: str) -> tuple:
    return (
        full_name,
        annotation,
        "None",
        "%s.value",
        f"_wkt.to_{scalar}_value(%s)",
        frozenset({WELL_KNOWN_RUNTIME}),
    )


class WellKnownType(enum.Enum):
    """Google message types that map onto native Python values.

    Each member carries the message full name, the Python annotation, the
    default expression and the two conversion templates.
    """

    EMPTY = (
        "google.protobuf.Empty",
        "_wkt.Empty",
        "None",
        "_wkt.EMPTY",
        "_google_protobuf_empty_pb2.Empty()",
        frozenset({_EMPTY_PB2, WELL_KNOWN_RUNTIME}),
    )
    TIMESTAMP = (
        "google.protobuf.Timestamp",
        "datetime.datetime",
        "_wkt.EPOCH",
        "_wkt.timestamp_to_datetime(%s)",
        "_wkt.datetime_to_timestamp(%s)",
        frozenset({_DATETIME, WELL_KNOWN_RUNTIME}),
    )
    DURATION = (
        "google.protobuf.Duration",
        "datetime.timedelta",
        "_wkt.ZERO_DURATION",
        "_wkt.duration_to_timedelta(%s)",
        "_wkt.timedelta_to_duration(%s)",
        frozenset({_DATETIME, WELL_KNOWN_RUNTIME}),
    )
    DOUBLE_VALUE = _wrapper("google.protobuf.DoubleValue", "float", "double")
    FLOAT_VALUE = _wrapper("google.protobuf.FloatValue", "float", "float")
    INT64_VALUE = _wrapper("google.protobuf.Int64Value", "int", "int64")
    UINT64_VALUE = _wrapper("google.protobuf.UInt64Value", "int", "uint64")
    INT32_VALUE = _wrapper("google.protobuf.Int32Value", "int", "int32")
    UINT32_VALUE = _wrapper("google.protobuf.UInt32Value", "int", "uint32")
    BOOL_VALUE = _wrapper("google.protobuf.BoolValue", "bool", "bool")
    STRING_VALUE = _wrapper("google.protobuf.StringValue", "str", "string")
    BYTES_VALUE = _wrapper("google.protobuf.BytesValue", "bytes", "bytes")

    def __init__(
        self,
        full_name: str,
        annotation: str,
        default: str,
        to_idiom: str,
        to_host: str,
        imports: FrozenSet[Import],
    ) -> None:
        self.full_name = full_name
        self.annotation = annotation
        self.default = default
        self.imports = imports
        self.to_idiom = Transform(TransformTemplate(to_idiom), imports)
        self.to_host = Transform(TransformTemplate(to_host), imports)

    @classmethod
    def find(cls, full_name: str) -> Optional[WellKnownType]:
        for member in cls:
            if member.full_name == full_name:
                return member
        return None


def is_google_type(full_name: str) -> bool:
    """Types from the ``google.*`` packages are never generated, only referenced."""
    return full_name.startswith(GOOGLE_PACKAGE_PREFIX)
