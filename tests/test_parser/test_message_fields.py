"""Tests for specmodel.parser.discovery.message_fields."""

from __future__ import annotations

import pytest

from specmodel.api.model import Typez
from specmodel.exceptions import SpecParseError
from specmodel.parser.discovery.document import Property, Schema
from specmodel.parser.discovery.message_fields import make_field, make_message_fields, scalar_type


def _prop(name: str, **schema) -> Property:
    return Property(name=name, schema=Schema(**schema))


class TestScalarType:
    @pytest.mark.parametrize(
        "type_,format_,expected",
        [
            ("boolean", "", (Typez.BOOL_TYPE, "bool")),
            ("integer", "int32", (Typez.INT32_TYPE, "int32")),
            ("integer", "uint64", (Typez.UINT64_TYPE, "uint64")),
            ("number", "float", (Typez.FLOAT_TYPE, "float")),
            ("number", "double", (Typez.DOUBLE_TYPE, "double")),
            ("string", "", (Typez.STRING_TYPE, "string")),
            ("string", "byte", (Typez.BYTES_TYPE, "bytes")),
            ("string", "date", (Typez.STRING_TYPE, "string")),
            ("string", "int64", (Typez.INT64_TYPE, "int64")),
            ("string", "google-duration", (Typez.MESSAGE_TYPE, ".google.protobuf.Duration")),
            ("string", "google-fieldmask", (Typez.MESSAGE_TYPE, ".google.protobuf.FieldMask")),
            ("string", "date-time", (Typez.MESSAGE_TYPE, ".google.protobuf.Timestamp")),
        ],
    )
    def test_known(self, type_: str, format_: str, expected) -> None:
        assert scalar_type("..Foo", _prop("f", type=type_, format=format_)) == expected

    def test_unknown_type(self) -> None:
        with pytest.raises(SpecParseError, match=r"unknown scalar type for field \.\.Foo\.f: any"):
            scalar_type("..Foo", _prop("f", type="any"))

    def test_unknown_integer_format(self) -> None:
        with pytest.raises(SpecParseError, match=r"unknown integer format \(int128\)"):
            scalar_type("..Foo", _prop("f", type="integer", format="int128"))

    def test_unknown_string_format(self) -> None:
        with pytest.raises(SpecParseError, match=r"unknown string format \(uuid\) for field \.\.Foo\.f"):
            scalar_type("..Foo", _prop("f", type="string", format="uuid"))


class TestMakeField:
    def test_field_attributes(self) -> None:
        prop = _prop("createTime", type="string", format="google-datetime", description="When.", deprecated=True)
        field = make_field(".pkg.Foo", prop)
        assert field.name == "createTime"
        assert field.id == ".pkg.Foo.createTime"
        assert field.json_name == "createTime"
        assert field.documentation == "When."
        assert field.deprecated
        assert field.typez_id == ".google.protobuf.Timestamp"

    @pytest.mark.parametrize("type_", ["array", "object", ""])
    def test_skipped_shapes(self, type_: str) -> None:
        assert make_field(".pkg.Foo", _prop("x", type=type_)) is None

    def test_message_fields_keep_property_order(self) -> None:
        schema = Schema.model_validate(
            {
                "type": "object",
                "properties": {
                    "zeta": {"type": "string"},
                    "items": {"type": "array", "items": {"type": "string"}},
                    "alpha": {"type": "integer", "format": "int32"},
                },
            }
        )
        fields = make_message_fields(".pkg.Foo", schema)
        assert [(f.name, f.typez) for f in fields] == [
            ("alpha", Typez.INT32_TYPE),
            ("zeta", Typez.STRING_TYPE),
        ]
