from __future__ import annotations

from typing import List

from protoc_idiom import naming
from protoc_idiom.generator.code import FunctionSpec
from protoc_idiom.models import Field, MessageType


def presence_method(f: Field) -> FunctionSpec:
    if f.is_explicit_optional:
        doc = f"Whether the optional ``{f.name}`` field was set."
    else:
        doc = f"Whether the ``{f.name}`` message field was set."
    return FunctionSpec(
        name=f"has_{f.name}",
        params=["self"],
        returns="bool",
        body=[f"return self.{naming.escape(f.name)} is not None"],
        doc=doc,
    )


def presence_methods(message: MessageType) -> List[FunctionSpec]:
    """``has_<field>()`` for every field that carries presence outside a oneof."""
    return [presence_method(f) for f in message.fields if f.has_presence and not f.in_oneof]
