"""The canonical API model shared by every parser and renderer.

One :class:`API` root owns all top-level :class:`Service`, :class:`Message`
and :class:`Enum` objects; nested messages and enums are owned by their
parent :class:`Message`. Every other link in the graph is a non-owning
reference:

* ``parent`` on messages, enums and enum values,
* ``group`` on fields that belong to a :class:`OneOf`,
* ``model`` and ``service`` on methods, ``model`` on services,
* ``input_type`` / ``output_type`` on methods, resolved from the
  ``*_type_id`` strings by :func:`~specmodel.api.xref.cross_reference`.

Parsers only fill in the string IDs, because the target of a reference may
not exist yet while parsing. The cross-reference pass turns the IDs into
object links through the :class:`APIState` indices.

Back-references are declared with ``compare=False, repr=False`` so that
equality and ``repr`` walk the owned tree only and terminate on cyclic
graphs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional

from specmodel.api.pathtemplate import PathTemplate


class Typez(enum.IntEnum):
    """Field types, numbered as in ``google.protobuf.FieldDescriptorProto.Type``."""

    UNDEFINED_TYPE = 0
    DOUBLE_TYPE = 1
    FLOAT_TYPE = 2
    INT64_TYPE = 3
    UINT64_TYPE = 4
    INT32_TYPE = 5
    FIXED64_TYPE = 6
    FIXED32_TYPE = 7
    BOOL_TYPE = 8
    STRING_TYPE = 9
    GROUP_TYPE = 10
    MESSAGE_TYPE = 11
    BYTES_TYPE = 12
    UINT32_TYPE = 13
    ENUM_TYPE = 14
    SFIXED32_TYPE = 15
    SFIXED64_TYPE = 16
    SINT32_TYPE = 17
    SINT64_TYPE = 18


class FieldBehavior(enum.IntEnum):
    """Field annotations from ``google.api.field_behavior``.

    Regardless of the wire type, some fields must be present for requests to
    succeed, and some are ignored if sent. Code generators use these to
    decide, for example, which fields become constructor parameters.
    """

    FIELD_BEHAVIOR_UNSPECIFIED = 0
    # Emphasises that a field is optional.
    FIELD_BEHAVIOR_OPTIONAL = 1
    # The field must be set in requests, or the request fails with INVALID_ARGUMENT.
    FIELD_BEHAVIOR_REQUIRED = 2
    # Only set in responses; the server ignores it in requests.
    FIELD_BEHAVIOR_OUTPUT_ONLY = 3
    # Only set in requests; never included in responses.
    FIELD_BEHAVIOR_INPUT_ONLY = 4
    # May be set once when the resource is created, never changed after.
    FIELD_BEHAVIOR_IMMUTABLE = 5
    # The service may return the elements of a repeated field in any order.
    FIELD_BEHAVIOR_UNORDERED_LIST = 6
    # An empty value in a request results in a non-empty default in the response.
    FIELD_BEHAVIOR_NON_EMPTY_DEFAULT = 7
    # The `name` field of a resource, used to identify it.
    FIELD_BEHAVIOR_IDENTIFIER = 8


# --- Routing (AIP-4222) ---


@dataclass
class RoutingPathSpec:
    """A sequence of matching segments.

    ``projects/*/locations/*/**`` maps to
    ``["projects", "*", "locations", "*", "**"]``.
    """

    segments: list[str] = field(default_factory=list)


@dataclass
class RoutingInfoVariant:
    """One way to compute a routing header value, stripped of its key name."""

    field_path: list[str] = field(default_factory=list)
    prefix: RoutingPathSpec = field(default_factory=RoutingPathSpec)
    matching: RoutingPathSpec = field(default_factory=RoutingPathSpec)
    suffix: RoutingPathSpec = field(default_factory=RoutingPathSpec)
    codec: Any = field(default=None, compare=False, repr=False)

    def field_name(self) -> str:
        return ".".join(self.field_path)

    def template_as_string(self) -> str:
        return "/".join(self.prefix.segments + self.matching.segments + self.suffix.segments)


@dataclass
class RoutingInfo:
    """A key in ``x-goog-request-params`` and the variants that may produce it.

    AIP-4222 says "the last one wins" when several routing parameters share a
    key. The variants are stored in the *reverse* order of their declaration
    so that a linear scan where the first match wins gives the same result.

    An empty ``name`` marks an explicitly empty ``google.api.routing``
    annotation: no routing headers at all, not even implicit ones.
    """

    name: str = ""
    variants: list[RoutingInfoVariant] = field(default_factory=list)


@dataclass
class RoutingInfoComboItem:
    name: str
    variant: RoutingInfoVariant


@dataclass
class RoutingInfoCombo:
    """A single combination of routing parameters, one variant per key."""

    items: list[RoutingInfoComboItem] = field(default_factory=list)


# --- HTTP bindings and long-running operations ---


@dataclass
class PathBinding:
    """One HTTP verb + path binding of a method."""

    verb: str = ""
    path_template: PathTemplate = field(default_factory=PathTemplate)
    query_parameters: set[str] = field(default_factory=set)
    codec: Any = field(default=None, compare=False, repr=False)


@dataclass
class PathInfo:
    """Normalized request path information.

    ``body_field_path`` is ``"*"`` when the whole request is the body, a field
    name when only that field is sent, and empty when there is no body.
    """

    bindings: list[PathBinding] = field(default_factory=list)
    body_field_path: str = ""
    codec: Any = field(default=None, compare=False, repr=False)


@dataclass
class OperationInfo:
    """Metadata for methods returning a long-running operation."""

    # `.google.protobuf.Empty` when the operation has no metadata.
    metadata_type_id: str = ""
    response_type_id: str = ""
    method: Optional[Method] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)


# --- Messages, enums and fields ---


@dataclass
class OneOf:
    """A group of mutually exclusive fields."""

    name: str = ""
    id: str = ""
    documentation: str = ""
    fields: list[Field] = field(default_factory=list)
    codec: Any = field(default=None, compare=False, repr=False)


@dataclass
class Field:
    """A field in a :class:`Message`.

    At most one of ``repeated`` and ``map`` is true. Booleans are used (rather
    than an enum) because they are easier to consume from templates.
    """

    name: str = ""
    id: str = ""
    documentation: str = ""
    typez: Typez = Typez.UNDEFINED_TYPE
    # The ID of the message or enum for MESSAGE_TYPE and ENUM_TYPE fields.
    typez_id: str = ""
    json_name: str = ""
    optional: bool = False
    repeated: bool = False
    map: bool = False
    deprecated: bool = False
    # True for members of a real oneof, false for proto3 `optional` fields.
    is_one_of: bool = False
    # Helper fields injected by a parser, excluded from serialization.
    synthetic: bool = False
    # The field type refers, possibly indirectly, to the containing message.
    recursive: bool = False
    # Eligible for auto-population per AIP-4235.
    auto_populated: bool = False
    behavior: list[FieldBehavior] = field(default_factory=list)
    group: Optional[OneOf] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def document_as_required(self) -> bool:
        return FieldBehavior.FIELD_BEHAVIOR_REQUIRED in self.behavior

    def singular(self) -> bool:
        return not self.map and not self.repeated

    def name_equal_json_name(self) -> bool:
        return self.json_name == self.name


@dataclass
class PaginationInfo:
    """The response side of an [AIP-4233](https://google.aip.dev/client-libraries/4233) List RPC."""

    next_page_token: Field
    pageable_item: Field


@dataclass
class Message:
    """A message used in requests and responses; nested types are owned here."""

    name: str = ""
    id: str = ""
    documentation: str = ""
    deprecated: bool = False
    fields: list[Field] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    one_ofs: list[OneOf] = field(default_factory=list)
    package: str = ""
    # A synthetic protobuf map-entry type with `key` and `value` fields.
    is_map: bool = False
    pagination: Optional[PaginationInfo] = None
    parent: Optional[Message] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def has_fields(self) -> bool:
        return len(self.fields) != 0

    def scopes(self) -> list[str]:
        """Return the names visible from inside this message, innermost first.

        For ``.test.Parent.Child`` this is
        ``["test.Parent.Child", "test.Parent", "test"]``.
        """
        return [self.id.removeprefix(".")] + _parent_scopes(self.parent, self.package)

    def has_deprecated_entities(self) -> bool:
        return (
            self.deprecated
            or any(f.deprecated for f in self.fields)
            or any(m.has_deprecated_entities() for m in self.messages)
            or any(e.has_deprecated_entities() for e in self.enums)
        )


@dataclass
class EnumValue:
    name: str = ""
    id: str = ""
    documentation: str = ""
    deprecated: bool = False
    number: int = 0
    parent: Optional[Enum] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def scopes(self) -> list[str]:
        # Enum values are scoped by the enum's parent, like in C++.
        if self.parent is None:
            return []
        return self.parent.scopes()


@dataclass
class Enum:
    """An enum; several value names may alias the same number."""

    name: str = ""
    id: str = ""
    documentation: str = ""
    deprecated: bool = False
    values: list[EnumValue] = field(default_factory=list)
    # The first value for each distinct number, in declaration order.
    unique_number_values: list[EnumValue] = field(default_factory=list)
    package: str = ""
    parent: Optional[Message] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def scopes(self) -> list[str]:
        return [self.id.removeprefix(".")] + _parent_scopes(self.parent, self.package)

    def has_deprecated_entities(self) -> bool:
        return self.deprecated or any(v.deprecated for v in self.values)


def _parent_scopes(parent: Optional[Message], package: str) -> list[str]:
    if parent is not None:
        return parent.scopes()
    return [package]


# --- Services and methods ---


@dataclass
class Method:
    """An RPC belonging to a :class:`Service`."""

    name: str = ""
    id: str = ""
    documentation: str = ""
    deprecated: bool = False
    input_type_id: str = ""
    output_type_id: str = ""
    # Protobuf uses `google.protobuf.Empty`, OpenAPI a missing response body.
    returns_empty: bool = False
    path_info: Optional[PathInfo] = None
    # The request `page_token` field of an AIP-4233 List RPC.
    pagination: Optional[Field] = None
    client_side_streaming: bool = False
    server_side_streaming: bool = False
    operation_info: Optional[OperationInfo] = None
    routing: list[RoutingInfo] = field(default_factory=list)
    auto_populated: list[Field] = field(default_factory=list)
    input_type: Optional[Message] = field(default=None, compare=False, repr=False)
    output_type: Optional[Message] = field(default=None, compare=False, repr=False)
    model: Optional[API] = field(default=None, compare=False, repr=False)
    service: Optional[Service] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def routing_combos(self) -> list[RoutingInfoCombo]:
        """Return every combination of routing variants, one per routing key.

        With routing keys ``a: [va1, va2]`` and ``b: [vb1, vb2, vb3]`` this
        is the Cartesian product ``(a, va1), (b, vb1)``, ``(a, va1), (b,
        vb2)``, ... six combinations in total. It is computed on demand and
        never stored in the model.
        """
        combos = [RoutingInfoCombo()]
        for info in self.routing:
            combos = [
                RoutingInfoCombo(
                    items=combo.items + [RoutingInfoComboItem(name=info.name, variant=variant)]
                )
                for combo in combos
                for variant in info.variants
            ]
        return combos

    def has_routing(self) -> bool:
        return len(self.routing) != 0

    def has_auto_populated_fields(self) -> bool:
        return len(self.auto_populated) != 0


@dataclass
class Service:
    name: str = ""
    id: str = ""
    documentation: str = ""
    deprecated: bool = False
    methods: list[Method] = field(default_factory=list)
    # Host fragment of the service URL, e.g. `secretmanager.googleapis.com`.
    default_host: str = ""
    package: str = ""
    model: Optional[API] = field(default=None, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def scopes(self) -> list[str]:
        return [self.id.removeprefix("."), self.package]

    def has_deprecated_entities(self) -> bool:
        return self.deprecated or any(m.deprecated for m in self.methods)


# --- The root ---


@dataclass
class APIState:
    """ID-keyed indices over the model.

    Parsers may add elements that the model does not own (e.g. messages
    imported from other packages, well-known types). After
    :func:`~specmodel.api.xref.cross_reference` every element owned by the
    model is indexed too, and these maps are the only way ID references are
    resolved.
    """

    service_by_id: dict[str, Service] = field(default_factory=dict)
    method_by_id: dict[str, Method] = field(default_factory=dict)
    message_by_id: dict[str, Message] = field(default_factory=dict)
    enum_by_id: dict[str, Enum] = field(default_factory=dict)


@dataclass
class API:
    """An API surface: e.g. Secret Manager, package ``google.cloud.secretmanager.v1``."""

    name: str = ""
    # The package in the source format, e.g. `google.cloud.secretmanager.v1`.
    package_name: str = ""
    title: str = ""
    description: str = ""
    services: list[Service] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    state: APIState = field(default_factory=APIState, compare=False, repr=False)
    codec: Any = field(default=None, compare=False, repr=False)

    def has_messages(self) -> bool:
        return len(self.messages) != 0

    def has_deprecated_entities(self) -> bool:
        return (
            any(m.has_deprecated_entities() for m in self.messages)
            or any(e.has_deprecated_entities() for e in self.enums)
            or any(s.has_deprecated_entities() for s in self.services)
        )


@dataclass
class Pair:
    """A key-value pair, used by renderers for simple annotations."""

    key: str = ""
    value: str = ""
