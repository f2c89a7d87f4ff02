"""Conversions between google.protobuf well-known types and native Python values."""
from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Optional, TypeVar

from google.protobuf import duration_pb2, timestamp_pb2, wrappers_pb2
from google.protobuf.message import Message

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
ZERO_DURATION = datetime.timedelta(0)

M = TypeVar("M", bound=Message)


@dataclass(frozen=True)
class Empty:
    """Value of a set ``google.protobuf.Empty`` field; an unset one is ``None``."""


EMPTY = Empty()


def timestamp_to_datetime(timestamp: timestamp_pb2.Timestamp) -> datetime.datetime:
    """Timezone-aware UTC datetime. Sub-microsecond precision is truncated."""
    return timestamp.ToDatetime(tzinfo=datetime.timezone.utc)


def datetime_to_timestamp(value: datetime.datetime) -> timestamp_pb2.Timestamp:
    # naive datetimes are taken to be UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    timestamp = timestamp_pb2.Timestamp()
    timestamp.FromDatetime(value)
    return timestamp


def duration_to_timedelta(duration: duration_pb2.Duration) -> datetime.timedelta:
    return duration.ToTimedelta()


def timedelta_to_duration(value: datetime.timedelta) -> duration_pb2.Duration:
    """Duration with seconds and nanos of the same sign, as protobuf requires."""
    duration = duration_pb2.Duration()
    duration.FromTimedelta(value)
    return duration


def to_double_value(value: float) -> wrappers_pb2.DoubleValue:
    return wrappers_pb2.DoubleValue(value=value)


def to_float_value(value: float) -> wrappers_pb2.FloatValue:
    return wrappers_pb2.FloatValue(value=value)


def to_int64_value(value: int) -> wrappers_pb2.Int64Value:
    return wrappers_pb2.Int64Value(value=value)


def to_uint64_value(value: int) -> wrappers_pb2.UInt64Value:
    return wrappers_pb2.UInt64Value(value=value)


def to_int32_value(value: int) -> wrappers_pb2.Int32Value:
    return wrappers_pb2.Int32Value(value=value)


def to_uint32_value(value: int) -> wrappers_pb2.UInt32Value:
    return wrappers_pb2.UInt32Value(value=value)


def to_bool_value(value: bool) -> wrappers_pb2.BoolValue:
    return wrappers_pb2.BoolValue(value=value)


def to_string_value(value: str) -> wrappers_pb2.StringValue:
    return wrappers_pb2.StringValue(value=value)


def to_bytes_value(value: bytes) -> wrappers_pb2.BytesValue:
    return wrappers_pb2.BytesValue(value=value)


def copy_message(message: Optional[M]) -> Optional[M]:
    """Detached copy of a host message, so generated values never alias a parent message."""
    if message is None:
        return None
    result = type(message)()
    result.CopyFrom(message)
    return result
