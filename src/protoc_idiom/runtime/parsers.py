from __future__ import annotations

from typing import Callable, Generic, Type, TypeVar

from google.protobuf import json_format
from google.protobuf.message import Message

T = TypeVar("T")


class IdiomParser(Generic[T]):
    """Deserializer that yields the idiomatic value instead of the host message.

    Instances are callable with the serialized bytes, so they can be handed to
    gRPC as a ``response_deserializer`` directly.
    """

    def __init__(self, host_type: Type[Message], to_idiom: Callable[[Message], T]) -> None:
        self._host_type = host_type
        self._to_idiom = to_idiom

    @property
    def host_type(self) -> Type[Message]:
        return self._host_type

    def parse(self, data: bytes) -> T:
        return self._to_idiom(self._host_type.FromString(data))

    def parse_json(self, text: str, ignore_unknown_fields: bool = False) -> T:
        message = self._host_type()
        json_format.Parse(text, message, ignore_unknown_fields=ignore_unknown_fields)
        return self._to_idiom(message)

    def __call__(self, data: bytes) -> T:
        return self.parse(data)

    def __repr__(self) -> str:
        return f"IdiomParser({self._host_type.DESCRIPTOR.full_name})"
