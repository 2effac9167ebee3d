"""Seed the model indices with the ``google.protobuf`` well-known types.

Discovery and OpenAPI documents reference types such as
``.google.protobuf.Timestamp`` without ever defining them, and protobuf
descriptor sets may omit them when they were compiled without
``--include_imports``. The well-known types are added to
:class:`~specmodel.api.model.APIState` only, never to ``API.messages``, so
they resolve as reference targets but are not rendered or validated as
part of the API.
"""

from __future__ import annotations

from specmodel.api.model import APIState, Enum, EnumValue, Message

WELL_KNOWN_PACKAGE = "google.protobuf"

_WELL_KNOWN_MESSAGES = [
    "Any",
    "Struct",
    "Value",
    "ListValue",
    "Empty",
    "FieldMask",
    "Duration",
    "Timestamp",
    "BoolValue",
    "BytesValue",
    "DoubleValue",
    "FloatValue",
    "Int32Value",
    "Int64Value",
    "StringValue",
    "UInt32Value",
    "UInt64Value",
]


def load_well_known_types(state: APIState) -> None:
    """Add the well-known messages and the ``NullValue`` enum to ``state``.

    Entries already present (e.g. decoded from a descriptor set that includes
    ``google/protobuf/*.proto``) are kept as they are.
    """
    for name in _WELL_KNOWN_MESSAGES:
        message_id = f".{WELL_KNOWN_PACKAGE}.{name}"
        state.message_by_id.setdefault(
            message_id,
            Message(
                name=name,
                id=message_id,
                package=WELL_KNOWN_PACKAGE,
                documentation=f"The well-known `{name}` type.",
            ),
        )

    enum_id = f".{WELL_KNOWN_PACKAGE}.NullValue"
    if enum_id not in state.enum_by_id:
        null_value = Enum(
            name="NullValue",
            id=enum_id,
            package=WELL_KNOWN_PACKAGE,
            documentation="The well-known `NullValue` enum.",
        )
        value = EnumValue(name="NULL_VALUE", id=f"{enum_id}.NULL_VALUE", number=0, parent=null_value)
        null_value.values = [value]
        null_value.unique_number_values = [value]
        state.enum_by_id[enum_id] = null_value


def is_well_known(type_id: str) -> bool:
    return type_id.startswith(f".{WELL_KNOWN_PACKAGE}.")
