from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from google.protobuf import descriptor_pb2 as d2

from protoc_idiom.models import (
    EnumType,
    EnumValue,
    Field,
    FieldKind,
    FileUnit,
    MessageType,
    Method,
    OneOf,
    Service,
    TypeRef,
)

logger = logging.getLogger(__name__)

FDP = d2.FieldDescriptorProto

SCALAR_TYPES: Dict[int, str] = {
    FDP.TYPE_DOUBLE: "double",
    FDP.TYPE_FLOAT: "float",
    FDP.TYPE_INT64: "int64",
    FDP.TYPE_UINT64: "uint64",
    FDP.TYPE_INT32: "int32",
    FDP.TYPE_FIXED64: "fixed64",
    FDP.TYPE_FIXED32: "fixed32",
    FDP.TYPE_BOOL: "bool",
    FDP.TYPE_STRING: "string",
    FDP.TYPE_BYTES: "bytes",
    FDP.TYPE_UINT32: "uint32",
    FDP.TYPE_SFIXED32: "sfixed32",
    FDP.TYPE_SFIXED64: "sfixed64",
    FDP.TYPE_SINT32: "sint32",
    FDP.TYPE_SINT64: "sint64",
}


class ResolutionError(Exception):
    """Raised when a file or type reference cannot be resolved."""


@dataclass
class _Symbol:
    ref: TypeRef
    kind: FieldKind
    descriptor: object


class DescriptorResolver:
    """Turns ``FileDescriptorProto`` objects into the generator's data model.

    Files must be added in dependency order, which is the order protoc uses
    in ``CodeGeneratorRequest.proto_file``.
    """

    def __init__(self) -> None:
        self._symbols: Dict[str, _Symbol] = {}
        self._files: Dict[str, FileUnit] = {}

    @property
    def files(self) -> Dict[str, FileUnit]:
        return dict(self._files)

    def get(self, name: str) -> FileUnit:
        try:
            return self._files[name]
        except KeyError:
            raise ResolutionError(f"File {name} has not been resolved") from None

    def add(self, file_proto: d2.FileDescriptorProto) -> FileUnit:
        for dep in file_proto.dependency:
            if dep not in self._files:
                raise ResolutionError(f"Dependency {dep} not found for file {file_proto.name}")

        self._register(file_proto)
        package = file_proto.package
        unit = FileUnit(
            name=file_proto.name,
            package=package,
            dependencies=list(file_proto.dependency),
            messages=[
                self._build_message(m, file_proto, (m.name,))
                for m in file_proto.message_type
                if not m.options.map_entry
            ],
            enums=[self._build_enum(e, file_proto, (e.name,)) for e in file_proto.enum_type],
            services=[self._build_service(s, package) for s in file_proto.service],
        )
        self._files[unit.name] = unit
        logger.debug("Resolved %s: %d message(s), %d enum(s), %d service(s)",
                     unit.name, len(unit.messages), len(unit.enums), len(unit.services))
        return unit

    # -- symbol table -------------------------------------------------------

    def _register(self, file_proto: d2.FileDescriptorProto) -> None:
        def ref_for(path: Tuple[str, ...]) -> TypeRef:
            return TypeRef(
                full_name=_qualify(file_proto.package, ".".join(path)),
                file=file_proto.name,
                package=file_proto.package,
                path=path,
            )

        def visit(message: d2.DescriptorProto, path: Tuple[str, ...]) -> None:
            ref = ref_for(path)
            self._symbols[ref.full_name] = _Symbol(ref, FieldKind.MESSAGE, message)
            for nested in message.nested_type:
                visit(nested, path + (nested.name,))
            for enum in message.enum_type:
                enum_ref = ref_for(path + (enum.name,))
                self._symbols[enum_ref.full_name] = _Symbol(enum_ref, FieldKind.ENUM, enum)

        for message in file_proto.message_type:
            visit(message, (message.name,))
        for enum in file_proto.enum_type:
            enum_ref = ref_for((enum.name,))
            self._symbols[enum_ref.full_name] = _Symbol(enum_ref, FieldKind.ENUM, enum)

    def _lookup(self, type_name: str, context: str) -> _Symbol:
        symbol = self._symbols.get(type_name.lstrip("."))
        if symbol is None:
            raise ResolutionError(f"Type {type_name} referenced by {context} is not defined")
        return symbol

    # -- builders ------------------------------------------------------------

    def _build_message(
        self,
        desc: d2.DescriptorProto,
        file_proto: d2.FileDescriptorProto,
        path: Tuple[str, ...],
    ) -> MessageType:
        full_name = _qualify(file_proto.package, ".".join(path))
        ref = self._symbols[full_name].ref

        # a oneof is synthetic when it only wraps a proto3 `optional` field
        synthetic = {f.oneof_index for f in desc.field if f.HasField("oneof_index") and f.proto3_optional}

        fields: List[Field] = []
        oneof_fields: Dict[int, List[Field]] = {}
        for fd in desc.field:
            oneof_name: Optional[str] = None
            in_real_oneof = fd.HasField("oneof_index") and fd.oneof_index not in synthetic
            if in_real_oneof:
                oneof_name = desc.oneof_decl[fd.oneof_index].name
            built = self._build_field(fd, f"{full_name}.{fd.name}", oneof_name)
            if in_real_oneof:
                oneof_fields.setdefault(fd.oneof_index, []).append(built)
            else:
                fields.append(built)

        oneofs = [
            OneOf(name=desc.oneof_decl[index].name, fields=members)
            for index, members in sorted(oneof_fields.items())
        ]

        return MessageType(
            name=desc.name,
            full_name=full_name,
            ref=ref,
            fields=fields,
            oneofs=oneofs,
            messages=[
                self._build_message(n, file_proto, path + (n.name,))
                for n in desc.nested_type
                if not n.options.map_entry
            ],
            enums=[self._build_enum(e, file_proto, path + (e.name,)) for e in desc.enum_type],
            declaration_order=[fd.name for fd in desc.field],
        )

    def _build_field(self, fd: d2.FieldDescriptorProto, context: str, oneof_name: Optional[str]) -> Field:
        is_repeated = fd.label == FDP.LABEL_REPEATED
        deprecated = fd.options.deprecated

        if fd.type in (FDP.TYPE_MESSAGE, FDP.TYPE_GROUP, FDP.TYPE_ENUM):
            symbol = self._lookup(fd.type_name, context)
            entry = symbol.descriptor
            if (
                is_repeated
                and symbol.kind is FieldKind.MESSAGE
                and isinstance(entry, d2.DescriptorProto)
                and entry.options.map_entry
            ):
                # map entries always carry the key as field 1 and the value as field 2
                by_number = {f.number: f for f in entry.field}
                return Field(
                    name=fd.name,
                    number=fd.number,
                    kind=FieldKind.MESSAGE,
                    type_ref=symbol.ref,
                    is_map=True,
                    map_key=self._build_field(by_number[1], f"{context}.key", None),
                    map_value=self._build_field(by_number[2], f"{context}.value", None),
                    deprecated=deprecated,
                )
            return Field(
                name=fd.name,
                number=fd.number,
                kind=symbol.kind,
                type_ref=symbol.ref,
                is_repeated=is_repeated,
                is_explicit_optional=fd.proto3_optional,
                oneof_name=oneof_name,
                deprecated=deprecated,
            )

        if fd.type not in SCALAR_TYPES:
            raise ResolutionError(f"Unsupported field type {fd.type} for {context}")
        return Field(
            name=fd.name,
            number=fd.number,
            kind=FieldKind.SCALAR,
            scalar_type=SCALAR_TYPES[fd.type],
            is_repeated=is_repeated,
            is_explicit_optional=fd.proto3_optional,
            oneof_name=oneof_name,
            deprecated=deprecated,
        )

    def _build_enum(
        self,
        desc: d2.EnumDescriptorProto,
        file_proto: d2.FileDescriptorProto,
        path: Tuple[str, ...],
    ) -> EnumType:
        full_name = _qualify(file_proto.package, ".".join(path))
        return EnumType(
            name=desc.name,
            full_name=full_name,
            ref=self._symbols[full_name].ref,
            values=[EnumValue(name=v.name, number=v.number) for v in desc.value],
        )

    def _build_service(self, desc: d2.ServiceDescriptorProto, package: str) -> Service:
        full_name = _qualify(package, desc.name)
        methods = []
        for m in desc.method:
            context = f"{full_name}.{m.name}"
            methods.append(Method(
                name=m.name,
                full_name=context,
                input_ref=self._lookup(m.input_type, context).ref,
                output_ref=self._lookup(m.output_type, context).ref,
                client_streaming=m.client_streaming,
                server_streaming=m.server_streaming,
                deprecated=m.options.deprecated,
            ))
        return Service(name=desc.name, full_name=full_name, methods=methods)


def _qualify(package: str, name: str) -> str:
    if package:
        return f"{package}.{name}"
    return name


def resolve_files(file_protos: Iterable[d2.FileDescriptorProto]) -> DescriptorResolver:
    """Resolve every file, in order."""
    resolver = DescriptorResolver()
    for file_proto in file_protos:
        resolver.add(file_proto)
    return resolver
