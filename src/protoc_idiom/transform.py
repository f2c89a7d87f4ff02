from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet

from protoc_idiom.imports import Import

HOLE = "%s"


@dataclass(frozen=True)
class TransformTemplate:
    """A conversion expression with at most one substitution point.

    ``%s`` marks where the converted expression goes. A template without a
    hole ignores its input, which is how ``google.protobuf.Empty`` converts.
    """

    value: str

    def __post_init__(self) -> None:
        percent = self.value.count("%")
        if percent > 1:
            raise ValueError(f"Transform template {self.value!r} has more than one substitution point")
        if percent == 1 and HOLE not in self.value:
            raise ValueError(f"Transform template {self.value!r} must use '%s' as its substitution point")

    @property
    def has_hole(self) -> bool:
        return HOLE in self.value

    @property
    def is_identity(self) -> bool:
        return self.value == HOLE

    def render(self, expr: str) -> str:
        if not self.has_hole:
            return self.value
        return self.value.replace(HOLE, expr)


IDENTITY = TransformTemplate(HOLE)


@dataclass(frozen=True)
class Transform:
    template: TransformTemplate = IDENTITY
    imports: FrozenSet[Import] = field(default_factory=frozenset)

    def render(self, expr: str) -> str:
        return self.template.render(expr)

    @property
    def is_identity(self) -> bool:
        return self.template.is_identity
