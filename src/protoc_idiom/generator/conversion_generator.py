"""Conversion functions between protoc's host messages and the generated value types.

For every message two functions are emitted, ``<stem>_to_idiom(message)`` and
``<stem>_to_host(value)``, plus private helpers per real oneof. Enums get a
pair of lookup tables and the matching two functions. Byte helpers and an
``IdiomParser`` round off each message.
"""
from __future__ import annotations

from typing import List, Set, Tuple

from protoc_idiom import naming
from protoc_idiom.generator.code import FunctionSpec, call_lines, indent_lines, py_string
from protoc_idiom.generator.type_generator import oneof_type_names
from protoc_idiom.imports import PARSERS_RUNTIME, Import
from protoc_idiom.models import UNRECOGNIZED, EnumType, Field, FieldKind, MessageType, OneOf
from protoc_idiom.transform import Transform
from protoc_idiom.type_mapper import TypeMapper

_OPTIONAL = Import(module="typing", name="Optional")


def _host_get(owner: str, f: Field) -> str:
    # protoc keeps keyword-named fields as-is, so they are only reachable through getattr
    if naming.is_keyword(f.name):
        return f"getattr({owner}, {py_string(f.name)})"
    return f"{owner}.{f.name}"


def _host_set(owner: str, f: Field, expr: str) -> str:
    if naming.is_keyword(f.name):
        return f"setattr({owner}, {py_string(f.name)}, {expr})"
    return f"{owner}.{f.name} = {expr}"


class ConversionGenerator:
    def __init__(self, mapper: TypeMapper) -> None:
        self.mapper = mapper
        self.imports: Set[Import] = set()

    def _to_idiom(self, f: Field) -> Transform:
        transform = self.mapper.to_idiom_transform(f)
        self.imports.update(transform.imports)
        return transform

    def _to_host(self, f: Field) -> Transform:
        transform = self.mapper.to_host_transform(f)
        self.imports.update(transform.imports)
        return transform

    def _host_class(self, message: MessageType) -> str:
        host, imports = self.mapper.host_class(message.ref)
        self.imports.update(imports)
        return host

    # -- host -> idiom -------------------------------------------------------

    def idiom_value(self, f: Field, owner: str = "message") -> str:
        """Expression converting field ``f`` of the host ``owner`` message."""
        access = _host_get(owner, f)
        if f.is_map:
            value = self._to_idiom(f.map_value)
            if value.is_identity:
                return f"dict({access})"
            return f"{{key: {value.render('item')} for key, item in {access}.items()}}"

        transform = self._to_idiom(f)
        if f.is_repeated:
            if transform.is_identity:
                return f"list({access})"
            return f"[{transform.render('item')} for item in {access}]"
        if f.has_presence:
            return f"{transform.render(access)} if {owner}.HasField({py_string(f.name)}) else None"
        return transform.render(access)

    def oneof_to_idiom(self, message: MessageType, oneof: OneOf, type_name: str) -> FunctionSpec:
        host = self._host_class(message)
        body = [f"which = message.WhichOneof({py_string(oneof.name)})"]
        for f in oneof.fields:
            variant = naming.oneof_variant_name(type_name, f.name)
            transform = self._to_idiom(f)
            value = transform.render(_host_get("message", f))
            body.append(f"if which == {py_string(f.name)}:")
            body.extend(indent_lines(call_lines(variant, [f"{naming.escape(f.name)}={value}"], prefix="return ")))
        body.append("return None")
        self.imports.add(_OPTIONAL)
        return FunctionSpec(
            name=f"_{naming.function_stem(message.ref)}_{naming.to_snake(oneof.name)}_to_idiom",
            params=[f"message: {host}"],
            returns=f"Optional[{type_name}]",
            body=body,
        )

    def message_to_idiom(self, message: MessageType) -> FunctionSpec:
        host = self._host_class(message)
        cls = naming.class_name(message.ref)
        oneof_names = oneof_type_names(message)
        plain = {f.name: f for f in message.fields}
        oneof_of_field = {f.name: o for o in message.oneofs for f in o.fields}

        arguments: List[str] = []
        seen: Set[str] = set()
        for name in message.declaration_order:
            if name in plain:
                arguments.append(f"{naming.escape(name)}={self.idiom_value(plain[name])}")
                continue
            oneof = oneof_of_field[name]
            if oneof.name in seen:
                continue
            seen.add(oneof.name)
            helper = f"_{naming.function_stem(message.ref)}_{naming.to_snake(oneof.name)}_to_idiom"
            arguments.append(f"{naming.escape(oneof.name)}={helper}(message)")

        return FunctionSpec(
            name=naming.to_idiom_function(message.ref),
            params=[f"message: {host}"],
            returns=cls,
            body=call_lines(cls, arguments, prefix="return "),
            doc=f"Convert a host ``{message.full_name}`` message into :class:`{cls}`.",
        )

    # -- idiom -> host -------------------------------------------------------

    def host_statements(self, f: Field, source: str, owner: str = "message") -> List[str]:
        """Statements copying ``source`` (an idiomatic value) into field ``f`` of ``owner``."""
        access = _host_get(owner, f)
        if f.is_map:
            value = self._to_host(f.map_value)
            if f.map_value.kind is FieldKind.MESSAGE:
                return [
                    f"for key, item in {source}.items():",
                    f"    {access}[key].CopyFrom({value.render('item')})",
                ]
            if value.is_identity:
                return [f"{access}.update({source})"]
            return [f"{access}.update({{key: {value.render('item')} for key, item in {source}.items()}})"]

        transform = self._to_host(f)
        if f.is_repeated:
            if transform.is_identity:
                return [f"{access}.extend({source})"]
            return [f"{access}.extend({transform.render('item')} for item in {source})"]

        if f.kind is FieldKind.MESSAGE and not transform.template.has_hole:
            # e.g. google.protobuf.Empty, which has nothing to copy
            statement = f"{access}.SetInParent()"
        elif f.kind is FieldKind.MESSAGE:
            statement = f"{access}.CopyFrom({transform.render(source)})"
        else:
            statement = _host_set(owner, f, transform.render(source))
        if f.has_presence:
            return [f"if {source} is not None:", f"    {statement}"]
        return [statement]

    def oneof_to_host(self, message: MessageType, oneof: OneOf, type_name: str) -> FunctionSpec:
        host = self._host_class(message)
        body = ["if value is None:", "    return"]
        for index, f in enumerate(oneof.fields):
            variant = naming.oneof_variant_name(type_name, f.name)
            keyword = "if" if index == 0 else "elif"
            body.append(f"{keyword} isinstance(value, {variant}):")
            source = f"value.{naming.escape(f.name)}"
            if f.kind is FieldKind.MESSAGE:
                # a message case holding None still selects the case
                transform = self._to_host(f)
                access = _host_get("message", f)
                body.extend([
                    f"    if {source} is None:",
                    f"        {access}.SetInParent()",
                    "    else:",
                    f"        {access}.CopyFrom({transform.render(source)})",
                ])
            else:
                body.extend(indent_lines(self.host_statements(f, source)))
        body.extend([
            "else:",
            f"    raise TypeError(f\"Unexpected value for oneof {message.full_name}.{oneof.name}: {{value!r}}\")",
        ])
        self.imports.add(_OPTIONAL)
        return FunctionSpec(
            name=f"_{naming.function_stem(message.ref)}_{naming.to_snake(oneof.name)}_to_host",
            params=[f"value: Optional[{type_name}]", f"message: {host}"],
            returns="None",
            body=body,
        )

    def message_to_host(self, message: MessageType) -> FunctionSpec:
        host = self._host_class(message)
        cls = naming.class_name(message.ref)
        plain = {f.name: f for f in message.fields}
        oneof_of_field = {f.name: o for o in message.oneofs for f in o.fields}

        body = [f"message = {host}()"]
        seen: Set[str] = set()
        for name in message.declaration_order:
            if name in plain:
                body.extend(self.host_statements(plain[name], f"value.{naming.escape(name)}"))
                continue
            oneof = oneof_of_field[name]
            if oneof.name in seen:
                continue
            seen.add(oneof.name)
            helper = f"_{naming.function_stem(message.ref)}_{naming.to_snake(oneof.name)}_to_host"
            body.append(f"{helper}(value.{naming.escape(oneof.name)}, message)")
        body.append("return message")

        return FunctionSpec(
            name=naming.to_host_function(message.ref),
            params=[f"value: {cls}"],
            returns=host,
            body=body,
            doc=f"Convert :class:`{cls}` into a host ``{message.full_name}`` message.",
        )

    # -- serialization -------------------------------------------------------

    def serialization_functions(self, message: MessageType) -> List[FunctionSpec]:
        host = self._host_class(message)
        cls = naming.class_name(message.ref)
        return [
            FunctionSpec(
                name=f"{naming.function_stem(message.ref)}_to_bytes",
                params=[f"value: {cls}"],
                returns="bytes",
                body=[f"return {naming.to_host_function(message.ref)}(value).SerializeToString()"],
            ),
            FunctionSpec(
                name=f"{naming.function_stem(message.ref)}_from_bytes",
                params=["data: bytes"],
                returns=cls,
                body=[f"return {naming.to_idiom_function(message.ref)}({host}.FromString(data))"],
            ),
        ]

    def parser(self, message: MessageType) -> dict:
        self.imports.add(PARSERS_RUNTIME)
        return {
            "name": f"{naming.to_upper_snake(''.join(message.ref.path))}_PARSER",
            "idiom": naming.class_name(message.ref),
            "host": self._host_class(message),
            "to_idiom": naming.to_idiom_function(message.ref),
        }

    # -- enums ---------------------------------------------------------------

    def enum_tables(self, enum: EnumType) -> dict:
        host_enum, imports = self.mapper.host_class(enum.ref)
        self.imports.update(imports)
        cls = naming.class_name(enum.ref)
        entries = [
            {"member": naming.escape(v.name), "host": f"{host_enum}.Value({py_string(v.name)})"}
            for v in enum.values
            if v.name != UNRECOGNIZED
        ]
        return {
            "name": cls,
            "const": naming.to_upper_snake("".join(enum.ref.path)),
            "from_host": entries,
            "to_host": entries + [{"member": UNRECOGNIZED, "host": str(enum.unrecognized_number)}],
        }

    def enum_functions(self, enum: EnumType) -> List[FunctionSpec]:
        cls = naming.class_name(enum.ref)
        const = naming.to_upper_snake("".join(enum.ref.path))
        return [
            FunctionSpec(
                name=naming.to_idiom_function(enum.ref),
                params=["number: int"],
                returns=cls,
                body=[f"return _{const}_FROM_HOST.get(number, {cls}.UNRECOGNIZED)"],
                doc=f"Map a host ``{enum.full_name}`` number onto :class:`{cls}`; unknown numbers become ``UNRECOGNIZED``.",
            ),
            FunctionSpec(
                name=naming.to_host_function(enum.ref),
                params=[f"value: {cls}"],
                returns="int",
                body=[f"return _{const}_TO_HOST[value]"],
            ),
        ]


def build_conversions(
    messages: List[MessageType],
    enums: List[EnumType],
    mapper: TypeMapper,
) -> Tuple[List[dict], List[FunctionSpec], List[dict], Set[Import]]:
    """Enum tables, conversion functions and parsers for one file, plus their imports."""
    generator = ConversionGenerator(mapper)
    tables = [generator.enum_tables(e) for e in enums]
    functions: List[FunctionSpec] = []
    for enum in enums:
        functions.extend(generator.enum_functions(enum))
    for message in messages:
        oneof_names = oneof_type_names(message)
        functions.append(generator.message_to_idiom(message))
        for oneof in message.oneofs:
            functions.append(generator.oneof_to_idiom(message, oneof, oneof_names[oneof.name]))
        functions.append(generator.message_to_host(message))
        for oneof in message.oneofs:
            functions.append(generator.oneof_to_host(message, oneof, oneof_names[oneof.name]))
        functions.extend(generator.serialization_functions(message))
    parsers = [generator.parser(m) for m in messages]
    return tables, functions, parsers, generator.imports
