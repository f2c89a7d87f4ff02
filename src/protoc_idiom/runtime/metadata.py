"""Request metadata propagation for generated service handlers.

Every adapter produced by the service generator attaches the incoming call's
invocation metadata before invoking the user implementation, so handlers can
read it without taking a context parameter. grpc.aio runs each call in its own
task, which keeps the value scoped to the call.
"""
from __future__ import annotations

import contextvars
from typing import Optional, Sequence, Tuple, Union

MetadataValue = Union[str, bytes]
Metadata = Tuple[Tuple[str, MetadataValue], ...]

_current: contextvars.ContextVar[Metadata] = contextvars.ContextVar("protoc_idiom_metadata", default=())


def attach(metadata: Optional[Sequence[Tuple[str, MetadataValue]]]) -> contextvars.Token:
    return _current.set(tuple(metadata or ()))


def reset(token: contextvars.Token) -> None:
    _current.reset(token)


def current_metadata() -> Metadata:
    """Metadata of the call being served, empty outside a call."""
    return _current.get()


def metadata_value(key: str, default: Optional[MetadataValue] = None) -> Optional[MetadataValue]:
    key = key.lower()
    for name, value in _current.get():
        if name == key:
            return value
    return default
