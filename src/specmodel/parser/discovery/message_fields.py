"""Translate the properties of a Discovery schema into model fields."""

from __future__ import annotations

from typing import Optional

from specmodel.api.model import Field, Typez
from specmodel.exceptions import SpecParseError
from specmodel.parser.discovery.document import Property, Schema

_INTEGER_FORMATS = {
    "int32": (Typez.INT32_TYPE, "int32"),
    "uint32": (Typez.UINT32_TYPE, "uint32"),
    "int64": (Typez.INT64_TYPE, "int64"),
    "uint64": (Typez.UINT64_TYPE, "uint64"),
}

_NUMBER_FORMATS = {
    "float": (Typez.FLOAT_TYPE, "float"),
    "double": (Typez.DOUBLE_TYPE, "double"),
}

_STRING_FORMATS = {
    "": (Typez.STRING_TYPE, "string"),
    "byte": (Typez.BYTES_TYPE, "bytes"),
    "date": (Typez.STRING_TYPE, "string"),
    "google-duration": (Typez.MESSAGE_TYPE, ".google.protobuf.Duration"),
    "date-time": (Typez.MESSAGE_TYPE, ".google.protobuf.Timestamp"),
    "google-datetime": (Typez.MESSAGE_TYPE, ".google.protobuf.Timestamp"),
    "google-fieldmask": (Typez.MESSAGE_TYPE, ".google.protobuf.FieldMask"),
    "int64": (Typez.INT64_TYPE, "int64"),
    "uint64": (Typez.UINT64_TYPE, "uint64"),
}

_FORMATS_BY_TYPE = {
    "integer": _INTEGER_FORMATS,
    "number": _NUMBER_FORMATS,
    "string": _STRING_FORMATS,
}


def make_message_fields(message_id: str, schema: Schema) -> list[Field]:
    """Return one field per scalar property of ``schema``, in property order.

    Array, object and untyped properties are skipped without a field.

    Raises:
        SpecParseError: If a property has an unknown type or format.
    """
    fields = []
    for prop in schema.properties:
        field = make_field(message_id, prop)
        if field is not None:
            fields.append(field)
    return fields


def make_field(message_id: str, prop: Property) -> Optional[Field]:
    if prop.schema_.type in ("", "array", "object"):
        # TODO: map arrays to repeated fields and objects to nested messages.
        return None
    typez, typez_id = scalar_type(message_id, prop)
    return Field(
        name=prop.name,
        id=f"{message_id}.{prop.name}",
        # Discovery property names are already camelCase.
        json_name=prop.name,
        documentation=prop.schema_.description,
        typez=typez,
        typez_id=typez_id,
        deprecated=prop.schema_.deprecated,
    )


def scalar_type(message_id: str, prop: Property) -> tuple[Typez, str]:
    """Map a property's ``type`` and ``format`` to a :class:`Typez` and type ID."""
    base = prop.schema_.type
    if base == "boolean":
        return Typez.BOOL_TYPE, "bool"
    formats = _FORMATS_BY_TYPE.get(base)
    if formats is None:
        raise SpecParseError(f"unknown scalar type for field {message_id}.{prop.name}: {base}")
    try:
        return formats[prop.schema_.format]
    except KeyError:
        raise SpecParseError(
            f"unknown {base} format ({prop.schema_.format}) for field {message_id}.{prop.name}"
        ) from None
