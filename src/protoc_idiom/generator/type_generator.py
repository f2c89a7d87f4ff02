from __future__ import annotations

from typing import Dict, List, Set, Tuple

from protoc_idiom import naming
from protoc_idiom.generator.presence_generator import presence_methods
from protoc_idiom.imports import Import
from protoc_idiom.models import UNRECOGNIZED, EnumType, Field, MessageType, OneOf
from protoc_idiom.type_mapper import TypeMapper

_UNION = Import(module="typing", name="Union")
_OPTIONAL = Import(module="typing", name="Optional")


def oneof_type_names(message: MessageType) -> Dict[str, str]:
    """Sum type name for each real oneof of ``message``, keyed by oneof name."""
    taken = [naming.class_name(n.ref) for n in message.messages]
    taken.extend(naming.class_name(e.ref) for e in message.enums)
    return {o.name: naming.oneof_type_name(message.ref, o.name, taken) for o in message.oneofs}


def build_enum(enum: EnumType) -> dict:
    members = [{"name": naming.escape(v.name), "number": v.number} for v in enum.values]
    if not enum.declares_unrecognized:
        members.append({"name": UNRECOGNIZED, "number": enum.unrecognized_number})
    return {
        "name": naming.class_name(enum.ref),
        "full_name": enum.full_name,
        "members": members,
    }


def _field_entry(f: Field, mapper: TypeMapper, imports: Set[Import]) -> dict:
    mapped = mapper.map_field(f)
    imports.update(mapped.imports)
    comments = []
    if f.deprecated:
        comments.append("Deprecated in the .proto definition.")
    return {
        "name": naming.escape(f.name),
        "annotation": mapped.annotation,
        "default": mapped.default.render(),
        "comments": comments,
    }


def build_oneof(
    message: MessageType,
    oneof: OneOf,
    type_name: str,
    mapper: TypeMapper,
    imports: Set[Import],
) -> List[dict]:
    """One single-field dataclass per case, then the ``Union`` alias over them."""
    declarations = []
    variants = []
    for f in oneof.fields:
        variant = naming.oneof_variant_name(type_name, f.name)
        variants.append(variant)
        declarations.append({
            "kind": "dataclass",
            "name": variant,
            "doc": f"``{f.name}`` case of the ``{message.full_name}.{oneof.name}`` oneof.",
            "fields": [_field_entry(f, mapper, imports)],
            "methods": [],
        })
    imports.add(_UNION)
    declarations.append({"kind": "union", "name": type_name, "variants": variants})
    return declarations


def build_message(message: MessageType, mapper: TypeMapper, imports: Set[Import]) -> List[dict]:
    """Declarations for one message, not including its nested messages."""
    declarations: List[dict] = []
    oneof_names = oneof_type_names(message)
    for oneof in message.oneofs:
        declarations.extend(build_oneof(message, oneof, oneof_names[oneof.name], mapper, imports))

    plain = {f.name: f for f in message.fields}
    oneof_of_field = {f.name: o for o in message.oneofs for f in o.fields}
    fields: List[dict] = []
    emitted_oneofs: Set[str] = set()
    for name in message.declaration_order:
        if name in plain:
            fields.append(_field_entry(plain[name], mapper, imports))
            continue
        oneof = oneof_of_field[name]
        if oneof.name in emitted_oneofs:
            continue
        emitted_oneofs.add(oneof.name)
        imports.add(_OPTIONAL)
        fields.append({
            "name": naming.escape(oneof.name),
            "annotation": f"Optional[{oneof_names[oneof.name]}]",
            "default": "None",
            "comments": [],
        })

    declarations.append({
        "kind": "dataclass",
        "name": naming.class_name(message.ref),
        "doc": f"Value type for ``{message.full_name}``.",
        "fields": fields,
        "methods": presence_methods(message),
    })
    return declarations


def build_types(messages: List[MessageType], enums: List[EnumType], mapper: TypeMapper) -> Tuple[List[dict], List[dict], Set[Import]]:
    """Enum contexts and message declarations, in emission order, plus their imports.

    ``messages`` is expected nested-first, as returned by ``FileUnit.iter_messages``.
    """
    imports: Set[Import] = set()
    if enums:
        imports.add(Import(module="enum"))
    if messages:
        imports.add(Import(module="dataclasses"))

    declarations: List[dict] = []
    for message in messages:
        declarations.extend(build_message(message, mapper, imports))
    return [build_enum(e) for e in enums], declarations, imports
