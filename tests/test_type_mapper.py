from protoc_idiom.imports import Import
from protoc_idiom.models import EnumType, EnumValue, Field, FieldKind, TypeRef
from protoc_idiom.type_mapper import ModuleScope, TypeMapper

PERSON_FILE = "acme/people/v1/person.proto"
COMMON_FILE = "acme/common/v1/common.proto"


def _ref(full_name: str, file: str) -> TypeRef:
    package, _, _ = full_name.rpartition(".")
    if file.startswith("google/"):
        package = "google.protobuf"
    path = tuple(full_name[len(package) + 1:].split("."))
    return TypeRef(full_name=full_name, file=file, package=package, path=path)


COLOR = EnumType(
    name="Color",
    full_name="acme.common.v1.Color",
    ref=_ref("acme.common.v1.Color", COMMON_FILE),
    values=[EnumValue("COLOR_UNSPECIFIED", 0), EnumValue("COLOR_RED", 1)],
)
KIND = EnumType(
    name="Kind",
    full_name="acme.people.v1.Person.Kind",
    ref=TypeRef("acme.people.v1.Person.Kind", PERSON_FILE, "acme.people.v1", ("Person", "Kind")),
    values=[EnumValue("KIND_UNSPECIFIED", 0)],
)


def _mapper() -> TypeMapper:
    enums = {COLOR.full_name: COLOR, KIND.full_name: KIND}
    return TypeMapper(ModuleScope(PERSON_FILE, "acme.people.v1"), enums)


def _scalar(scalar_type, **kwargs) -> Field:
    return Field(name="f", number=1, kind=FieldKind.SCALAR, scalar_type=scalar_type, **kwargs)


def _message(full_name, file=PERSON_FILE, **kwargs) -> Field:
    return Field(name="f", number=1, kind=FieldKind.MESSAGE, type_ref=_ref(full_name, file), **kwargs)


class TestScalars:
    def test_primitive_types_and_defaults(self):
        mapper = _mapper()
        expected = {
            "int32": ("int", "0"),
            "uint64": ("int", "0"),
            "double": ("float", "0.0"),
            "bool": ("bool", "False"),
            "string": ("str", '""'),
            "bytes": ("bytes", 'b""'),
        }
        for scalar, (annotation, default) in expected.items():
            mapped = mapper.map_field(_scalar(scalar))
            assert mapped.annotation == annotation
            assert mapped.default.render() == default
            assert not mapped.nullable

    def test_explicit_optional_is_nullable(self):
        mapped = _mapper().map_field(_scalar("string", is_explicit_optional=True))
        assert mapped.annotation == "Optional[str]"
        assert mapped.default.render() == "None"
        assert mapped.nullable
        assert Import(module="typing", name="Optional") in mapped.imports

    def test_repeated_defaults_to_empty_list(self):
        mapped = _mapper().map_field(_scalar("int32", is_repeated=True))
        assert mapped.annotation == "List[int]"
        assert mapped.default.render() == "dataclasses.field(default_factory=list)"


class TestMessagesAndEnums:
    def test_local_message_is_implicitly_optional(self):
        mapped = _mapper().map_field(_message("acme.people.v1.Team"))
        assert mapped.annotation == "Optional[Team]"
        assert mapped.default.render() == "None"

    def test_nested_message_is_flattened(self):
        ref = TypeRef("acme.people.v1.Person.PhoneNumber", PERSON_FILE, "acme.people.v1", ("Person", "PhoneNumber"))
        f = Field(name="phones", number=1, kind=FieldKind.MESSAGE, type_ref=ref, is_repeated=True)
        assert _mapper().map_field(f).annotation == "List[PersonPhoneNumber]"

    def test_message_from_other_file_is_imported(self):
        mapped = _mapper().map_field(_message("acme.common.v1.Address", COMMON_FILE))
        assert mapped.annotation == "Optional[_acme_common_v1_common_idiom.Address]"
        assert Import(module="acme.common.v1.common_idiom", alias="_acme_common_v1_common_idiom") in mapped.imports

    def test_enum_defaults_to_first_value(self):
        f = Field(name="kind", number=1, kind=FieldKind.ENUM, type_ref=KIND.ref)
        mapped = _mapper().map_field(f)
        assert mapped.annotation == "PersonKind"
        assert mapped.default.render() == "PersonKind.KIND_UNSPECIFIED"

    def test_enum_from_other_file(self):
        f = Field(name="color", number=1, kind=FieldKind.ENUM, type_ref=COLOR.ref)
        mapped = _mapper().map_field(f)
        assert mapped.default.render() == "_acme_common_v1_common_idiom.Color.COLOR_UNSPECIFIED"

    def test_map_values_are_not_nullable(self):
        key = _scalar("string")
        value = _message("acme.common.v1.Address", COMMON_FILE)
        f = Field(name="by_city", number=1, kind=FieldKind.MESSAGE, is_map=True, map_key=key, map_value=value)
        mapped = _mapper().map_field(f)
        assert mapped.annotation == "Dict[str, _acme_common_v1_common_idiom.Address]"
        assert mapped.default.render() == "dataclasses.field(default_factory=dict)"


class TestWellKnown:
    def test_timestamp(self):
        mapped = _mapper().map_field(_message("google.protobuf.Timestamp", "google/protobuf/timestamp.proto"))
        assert mapped.annotation == "Optional[datetime.datetime]"
        assert mapped.default.render() == "None"

    def test_wrapper_becomes_optional_scalar(self):
        mapped = _mapper().map_field(_message("google.protobuf.StringValue", "google/protobuf/wrappers.proto"))
        assert mapped.annotation == "Optional[str]"

    def test_empty_is_an_optional_marker(self):
        mapped = _mapper().map_field(_message("google.protobuf.Empty", "google/protobuf/empty.proto"))
        assert mapped.annotation == "Optional[_wkt.Empty]"
        assert mapped.default.render() == "None"
        assert mapped.nullable

    def test_repeated_empty(self):
        f = _message("google.protobuf.Empty", "google/protobuf/empty.proto", is_repeated=True)
        assert _mapper().map_field(f).annotation == "List[_wkt.Empty]"

    def test_other_google_types_use_host_class(self):
        mapper = _mapper()
        f = _message("google.protobuf.Struct", "google/protobuf/struct.proto")
        mapped = mapper.map_field(f)
        assert mapped.annotation == "Optional[_google_protobuf_struct_pb2.Struct]"
        assert mapper.to_idiom_transform(f).render("message.attrs") == "_wkt.copy_message(message.attrs)"
        assert mapper.to_host_transform(f).is_identity

    def test_repeated_timestamps_are_not_nullable(self):
        f = _message("google.protobuf.Timestamp", "google/protobuf/timestamp.proto", is_repeated=True)
        assert _mapper().map_field(f).annotation == "List[datetime.datetime]"


class TestTransforms:
    def test_scalar_is_identity(self):
        mapper = _mapper()
        assert mapper.to_idiom_transform(_scalar("int32")).is_identity
        assert mapper.to_host_transform(_scalar("int32")).is_identity

    def test_message_uses_conversion_functions(self):
        mapper = _mapper()
        f = _message("acme.common.v1.Address", COMMON_FILE)
        assert mapper.to_idiom_transform(f).render("x") == "_acme_common_v1_common_idiom.address_to_idiom(x)"
        assert mapper.to_host_transform(f).render("x") == "_acme_common_v1_common_idiom.address_to_host(x)"

    def test_service_modules_never_treat_types_as_local(self):
        mapper = TypeMapper(ModuleScope(PERSON_FILE, "acme.people.v1", declares_types=False))
        f = _message("acme.people.v1.Team")
        assert mapper.to_idiom_transform(f).render("x") == "_acme_people_v1_person_idiom.team_to_idiom(x)"
