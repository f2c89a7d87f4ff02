from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from protoc_idiom import naming
from protoc_idiom.imports import WELL_KNOWN_RUNTIME, Import, module_import
from protoc_idiom.models import EnumType, Field, FieldKind, FileUnit, TypeRef
from protoc_idiom.transform import IDENTITY, Transform, TransformTemplate
from protoc_idiom.well_known import WellKnownType, is_google_type

# Proto scalar type -> (Python type, zero value)
SCALAR_TYPE_MAP: Dict[str, Tuple[str, str]] = {
    "int32": ("int", "0"),
    "sint32": ("int", "0"),
    "sfixed32": ("int", "0"),
    "uint32": ("int", "0"),
    "fixed32": ("int", "0"),
    "int64": ("int", "0"),
    "sint64": ("int", "0"),
    "sfixed64": ("int", "0"),
    "uint64": ("int", "0"),
    "fixed64": ("int", "0"),
    "float": ("float", "0.0"),
    "double": ("float", "0.0"),
    "bool": ("bool", "False"),
    "string": ("str", '""'),
    "bytes": ("bytes", 'b""'),
}

_OPTIONAL = Import(module="typing", name="Optional")
_LIST = Import(module="typing", name="List")
_DICT = Import(module="typing", name="Dict")


@dataclass(frozen=True)
class DefaultExpr:
    code: str
    # ``code`` names a zero-argument callable for ``dataclasses.field(default_factory=...)``
    factory: bool = False

    def render(self) -> str:
        if self.factory:
            return f"dataclasses.field(default_factory={self.code})"
        return self.code


NONE_DEFAULT = DefaultExpr("None")


@dataclass(frozen=True)
class MappedType:
    annotation: str
    default: DefaultExpr
    imports: FrozenSet[Import] = field(default_factory=frozenset)
    nullable: bool = False


@dataclass(frozen=True)
class ModuleScope:
    """The ``.proto`` file whose generated module is being written."""

    file: str
    package: str
    prefix: Optional[str] = None
    # false for modules that only reference the generated types, e.g. service modules
    declares_types: bool = True

    @property
    def model_module(self) -> str:
        return naming.model_module(self.package, self.file, self.prefix)

    def is_local(self, ref: TypeRef) -> bool:
        return self.declares_types and ref.file == self.file


class TypeMapper:
    """Maps proto fields onto Python annotations, defaults and conversion templates."""

    def __init__(self, scope: ModuleScope, enums: Optional[Mapping[str, EnumType]] = None) -> None:
        self.scope = scope
        self.enums: Mapping[str, EnumType] = enums or {}

    # -- references ----------------------------------------------------------

    def idiom_reference(self, ref: TypeRef, attribute: str) -> Tuple[str, FrozenSet[Import]]:
        """Reference to a module-level name of the generated module declaring ``ref``."""
        if self.scope.is_local(ref):
            return attribute, frozenset()
        module = naming.model_module(ref.package, ref.file, self.scope.prefix)
        return f"{naming.module_alias(module)}.{attribute}", frozenset({module_import(module)})

    def idiom_class(self, ref: TypeRef) -> Tuple[str, FrozenSet[Import]]:
        return self.idiom_reference(ref, naming.class_name(ref))

    def host_class(self, ref: TypeRef) -> Tuple[str, FrozenSet[Import]]:
        module = naming.host_module(ref.file)
        return (
            f"{naming.module_alias(module)}.{naming.host_class_path(ref)}",
            frozenset({module_import(module)}),
        )

    # -- types ---------------------------------------------------------------

    def element_type(self, f: Field) -> MappedType:
        """Type of a single value of ``f``, ignoring repetition and presence."""
        if f.kind is FieldKind.SCALAR:
            annotation, default = SCALAR_TYPE_MAP[f.scalar_type]
            return MappedType(annotation, DefaultExpr(default))

        ref = f.type_ref
        if f.kind is FieldKind.ENUM:
            if is_google_type(ref.full_name):
                # e.g. google.protobuf.NullValue: kept as the host enum number
                return MappedType("int", DefaultExpr("0"))
            annotation, imports = self.idiom_class(ref)
            first = naming.escape(self._first_enum_value(ref))
            return MappedType(annotation, DefaultExpr(f"{annotation}.{first}"), imports)

        wkt = WellKnownType.find(ref.full_name)
        if wkt is not None:
            return MappedType(wkt.annotation, DefaultExpr(wkt.default), wkt.imports)
        if is_google_type(ref.full_name):
            annotation, imports = self.host_class(ref)
            return MappedType(annotation, DefaultExpr(annotation, factory=True), imports)
        annotation, imports = self.idiom_class(ref)
        return MappedType(annotation, DefaultExpr(annotation, factory=True), imports)

    def map_field(self, f: Field) -> MappedType:
        if f.is_map:
            key = self.element_type(f.map_key)
            value = self.element_type(f.map_value)
            return MappedType(
                f"Dict[{key.annotation}, {value.annotation}]",
                DefaultExpr("dict", factory=True),
                key.imports | value.imports | {_DICT},
            )

        base = self.element_type(f)
        if f.is_repeated:
            return MappedType(
                f"List[{base.annotation}]",
                DefaultExpr("list", factory=True),
                base.imports | {_LIST},
            )
        if f.has_presence:
            return MappedType(f"Optional[{base.annotation}]", NONE_DEFAULT, base.imports | {_OPTIONAL}, nullable=True)
        return base

    # -- conversions ---------------------------------------------------------

    def to_idiom_transform(self, f: Field) -> Transform:
        """Conversion of one host value of ``f`` (a map value or list element included)."""
        if f.kind is FieldKind.SCALAR or _is_google_enum(f):
            return Transform(IDENTITY)
        ref = f.type_ref
        if f.kind is FieldKind.MESSAGE:
            wkt = WellKnownType.find(ref.full_name)
            if wkt is not None:
                return wkt.to_idiom
            if is_google_type(ref.full_name):
                _, imports = self.host_class(ref)
                return Transform(TransformTemplate("_wkt.copy_message(%s)"), imports | {WELL_KNOWN_RUNTIME})
        function, imports = self.idiom_reference(ref, naming.to_idiom_function(ref))
        return Transform(TransformTemplate(f"{function}(%s)"), imports)

    def to_host_transform(self, f: Field) -> Transform:
        if f.kind is FieldKind.SCALAR or _is_google_enum(f):
            return Transform(IDENTITY)
        ref = f.type_ref
        if f.kind is FieldKind.MESSAGE:
            wkt = WellKnownType.find(ref.full_name)
            if wkt is not None:
                return wkt.to_host
            if is_google_type(ref.full_name):
                _, imports = self.host_class(ref)
                return Transform(IDENTITY, imports)
        function, imports = self.idiom_reference(ref, naming.to_host_function(ref))
        return Transform(TransformTemplate(f"{function}(%s)"), imports)

    def _first_enum_value(self, ref: TypeRef) -> str:
        enum = self.enums.get(ref.full_name)
        if enum is None or not enum.values:
            raise KeyError(f"Enum {ref.full_name} is not known to the type mapper")
        return enum.values[0].name


def _is_google_enum(f: Field) -> bool:
    return f.kind is FieldKind.ENUM and is_google_type(f.type_ref.full_name)


def index_enums(units: Iterable[FileUnit]) -> Dict[str, EnumType]:
    """Every enum of the given files by full name."""
    return {e.full_name: e for unit in units for e in unit.iter_enums()}
