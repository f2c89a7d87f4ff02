from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Callable, Iterable, TypeVar, Union

import grpc

T = TypeVar("T")
R = TypeVar("R")


class RpcShape(enum.Enum):
    UNARY = "unary"
    CLIENT_STREAMING = "client_streaming"
    SERVER_STREAMING = "server_streaming"
    BIDI_STREAMING = "bidi_streaming"

    @classmethod
    def from_flags(cls, client_streaming: bool, server_streaming: bool) -> RpcShape:
        if client_streaming and server_streaming:
            return cls.BIDI_STREAMING
        if client_streaming:
            return cls.CLIENT_STREAMING
        if server_streaming:
            return cls.SERVER_STREAMING
        return cls.UNARY


@dataclass(frozen=True)
class RpcMethod:
    """Everything generated bindings need to know about one RPC method."""

    service: str
    name: str
    shape: RpcShape
    request_serializer: Callable[[Any], bytes]
    request_deserializer: Callable[[bytes], Any]
    response_serializer: Callable[[Any], bytes]
    response_deserializer: Callable[[bytes], Any]
    request_to_idiom: Callable[[Any], Any]
    request_to_host: Callable[[Any], Any]
    response_to_idiom: Callable[[Any], Any]
    response_to_host: Callable[[Any], Any]

    @property
    def full_name(self) -> str:
        return f"{self.service}.{self.name}"

    @property
    def path(self) -> str:
        return f"/{self.service}/{self.name}"


class StatusError(Exception):
    """Raised by service implementations to end a call with a gRPC status."""

    def __init__(self, code: grpc.StatusCode, details: str = "") -> None:
        super().__init__(f"{code.name}: {details}" if details else code.name)
        self.code = code
        self.details = details


def unimplemented(method_full_name: str) -> StatusError:
    return StatusError(grpc.StatusCode.UNIMPLEMENTED, f"Method {method_full_name} is unimplemented")


async def map_async(
    items: Union[AsyncIterable[T], Iterable[T]],
    convert: Callable[[T], R],
) -> AsyncIterator[R]:
    """Lazily convert each element of a (possibly synchronous) request stream."""
    if hasattr(items, "__aiter__"):
        async for item in items:
            yield convert(item)
    else:
        for item in items:
            yield convert(item)
