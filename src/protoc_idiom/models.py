from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from protoc_idiom.runtime.rpc import RpcShape

UNRECOGNIZED = "UNRECOGNIZED"


class FieldKind(enum.Enum):
    SCALAR = "scalar"
    ENUM = "enum"
    MESSAGE = "message"


@dataclass(frozen=True)
class TypeRef:
    """Location of a message or enum declaration.

    ``path`` holds the declaration's names from the outermost message inwards,
    e.g. ``("Person", "Address")`` for ``acme.v1.Person.Address``.
    """

    full_name: str
    file: str
    package: str
    path: Tuple[str, ...]

    @property
    def name(self) -> str:
        return self.path[-1]


@dataclass(frozen=True)
class Field:
    name: str
    number: int
    kind: FieldKind
    scalar_type: Optional[str] = None
    type_ref: Optional[TypeRef] = None
    is_repeated: bool = False
    is_explicit_optional: bool = False
    is_map: bool = False
    map_key: Optional[Field] = None
    map_value: Optional[Field] = None
    oneof_name: Optional[str] = None
    deprecated: bool = False

    @property
    def is_message(self) -> bool:
        return self.kind is FieldKind.MESSAGE

    @property
    def is_implicit_optional(self) -> bool:
        """Singular message fields always carry presence."""
        return self.is_message and not self.is_repeated and not self.is_map

    @property
    def has_presence(self) -> bool:
        return self.is_explicit_optional or self.is_implicit_optional

    @property
    def in_oneof(self) -> bool:
        return self.oneof_name is not None


@dataclass(frozen=True)
class OneOf:
    name: str
    fields: List[Field] = field(default_factory=list)


@dataclass(frozen=True)
class EnumValue:
    name: str
    number: int


@dataclass(frozen=True)
class EnumType:
    name: str
    full_name: str
    ref: TypeRef
    values: List[EnumValue] = field(default_factory=list)

    @property
    def declares_unrecognized(self) -> bool:
        return any(v.name == UNRECOGNIZED for v in self.values)

    @property
    def unrecognized_number(self) -> int:
        """Wire number carried by the ``UNRECOGNIZED`` member.

        ``-1`` unless a declared value already uses it, in which case the
        sentinel sits just below the smallest declared number.
        """
        for value in self.values:
            if value.name == UNRECOGNIZED:
                return value.number
        numbers = {v.number for v in self.values}
        if -1 not in numbers:
            return -1
        return min(numbers) - 1


@dataclass(frozen=True)
class MessageType:
    name: str
    full_name: str
    ref: TypeRef
    fields: List[Field] = field(default_factory=list)
    oneofs: List[OneOf] = field(default_factory=list)
    messages: List[MessageType] = field(default_factory=list)
    enums: List[EnumType] = field(default_factory=list)
    # Field names in declaration order, oneof members included.
    declaration_order: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Method:
    name: str
    full_name: str
    input_ref: TypeRef
    output_ref: TypeRef
    client_streaming: bool = False
    server_streaming: bool = False
    deprecated: bool = False

    @property
    def shape(self) -> RpcShape:
        return RpcShape.from_flags(self.client_streaming, self.server_streaming)


@dataclass(frozen=True)
class Service:
    name: str
    full_name: str
    methods: List[Method] = field(default_factory=list)


@dataclass(frozen=True)
class FileUnit:
    name: str
    package: str
    dependencies: List[str] = field(default_factory=list)
    messages: List[MessageType] = field(default_factory=list)
    enums: List[EnumType] = field(default_factory=list)
    services: List[Service] = field(default_factory=list)

    def iter_messages(self) -> List[MessageType]:
        """All messages of the file, nested types before their parent."""
        result: List[MessageType] = []

        def visit(message: MessageType) -> None:
            for nested in message.messages:
                visit(nested)
            result.append(message)

        for message in self.messages:
            visit(message)
        return result

    def iter_enums(self) -> List[EnumType]:
        """All enums of the file, top-level ones first, then nested in message order."""
        result: List[EnumType] = list(self.enums)
        for message in self.iter_messages():
            result.extend(message.enums)
        return result
