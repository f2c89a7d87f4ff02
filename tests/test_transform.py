import pytest

from protoc_idiom.imports import Import, render_imports
from protoc_idiom.transform import IDENTITY, TransformTemplate
from protoc_idiom.well_known import WellKnownType


class TestTransformTemplate:
    def test_render_substitutes_hole(self):
        template = TransformTemplate("address_to_idiom(%s)")
        assert template.render("message.address") == "address_to_idiom(message.address)"

    def test_identity(self):
        assert IDENTITY.is_identity
        assert IDENTITY.render("message.name") == "message.name"

    def test_template_without_hole_ignores_input(self):
        template = TransformTemplate("None")
        assert not template.has_hole
        assert template.render("message.ping") == "None"

    def test_more_than_one_hole_is_rejected(self):
        with pytest.raises(ValueError):
            TransformTemplate("f(%s, %s)")

    def test_other_directives_are_rejected(self):
        with pytest.raises(ValueError):
            TransformTemplate("f(%d)")


class TestWellKnownTypes:
    def test_lookup_by_full_name(self):
        assert WellKnownType.find("google.protobuf.Timestamp") is WellKnownType.TIMESTAMP
        assert WellKnownType.find("google.protobuf.Struct") is None

    def test_wrappers_unbox_and_box(self):
        wkt = WellKnownType.INT32_VALUE
        assert wkt.annotation == "int"
        assert wkt.to_idiom.render("message.lucky") == "message.lucky.value"
        assert wkt.to_host.render("value.lucky") == "_wkt.to_int32_value(value.lucky)"

    def test_empty_templates_have_no_hole(self):
        assert WellKnownType.EMPTY.annotation == "_wkt.Empty"
        assert WellKnownType.EMPTY.to_idiom.render("message.marker") == "_wkt.EMPTY"
        assert not WellKnownType.EMPTY.to_idiom.template.has_hole
        assert not WellKnownType.EMPTY.to_host.template.has_hole

    def test_every_template_has_at_most_one_hole(self):
        for wkt in WellKnownType:
            assert wkt.to_idiom.template.value.count("%s") <= 1
            assert wkt.to_host.template.value.count("%s") <= 1


class TestRenderImports:
    def test_standard_library_first_and_typing_merged(self):
        lines = render_imports([
            Import(module="typing", name="Optional"),
            Import(module="acme.v1.person_pb2", alias="_acme_v1_person_pb2"),
            Import(module="dataclasses"),
            Import(module="typing", name="List"),
            Import(module="protoc_idiom.runtime", name="well_known", alias="_wkt"),
        ])
        assert lines == [
            "import dataclasses",
            "from typing import List, Optional",
            "",
            "import acme.v1.person_pb2 as _acme_v1_person_pb2",
            "from protoc_idiom.runtime import well_known as _wkt",
        ]

    def test_duplicates_collapse(self):
        lines = render_imports([Import(module="enum"), Import(module="enum")])
        assert lines == ["import enum"]
