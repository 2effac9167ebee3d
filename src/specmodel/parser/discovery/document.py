"""Pydantic models for a Google API Discovery document.

Only the subset of the Discovery format needed to build an API model is
declared. JSON objects keyed by name (``properties``, ``resources``,
``methods``, ``parameters`` and the OAuth2 ``scopes``) are decoded into
lists sorted by key, so the resulting model is identical from run to run.

After decoding, :func:`new_disco_document` runs an initialisation pass over
the tree that resolves every ``$ref`` to its top-level schema, classifies
each schema into a :class:`SchemaKind`, and rejects array/object shapes the
generator cannot represent.
"""

from __future__ import annotations

import enum
import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from specmodel.exceptions import SpecParseError


class SchemaKind(enum.Enum):
    """Classifies a :class:`Schema`."""

    # Strings, numbers, booleans and "any".
    SIMPLE = "simple"
    # An object without additional (arbitrary) properties.
    STRUCT = "struct"
    # An object whose additional properties have a non-"any" schema.
    MAP = "map"
    # An object whose additional properties may have any type.
    ANY_STRUCT = "any_struct"
    ARRAY = "array"
    # A `$ref` to a top-level schema.
    REFERENCE = "reference"


class _DiscoModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def _sorted_named(value: Any, key: str = "name") -> Any:
    """Turn a ``{name: object}`` JSON map into a list of objects sorted by name."""
    if isinstance(value, dict):
        return [{**(item or {}), key: name} for name, item in sorted(value.items())]
    return value


class VariantMapItem(_DiscoModel):
    type_value: str = Field(default="", alias="type_value")
    ref: str = Field(default="", alias="$ref")


class Variant(_DiscoModel):
    discriminant: str = ""
    map: list[VariantMapItem] = Field(default_factory=list)


class Schema(_DiscoModel):
    """A JSON schema, restricted to the subset used by Google APIs.

    Union types, arrays of schemas and boolean ``additionalProperties`` are
    not supported.
    """

    id: str = ""
    type: str = ""
    format: str = ""
    description: str = ""
    properties: list[Property] = Field(default_factory=list)
    items: Optional[Schema] = None
    additional_properties: Optional[Schema] = None
    ref: str = Field(default="", alias="$ref")
    default: str = ""
    pattern: str = ""
    enum: list[str] = Field(default_factory=list)
    enum_descriptions: list[str] = Field(default_factory=list)
    deprecated: bool = False
    variant: Optional[Variant] = None

    # Computed by the initialisation pass.
    name: str = Field(default="", exclude=True)
    kind: Optional[SchemaKind] = Field(default=None, exclude=True)
    ref_schema: Optional[Schema] = Field(default=None, exclude=True, repr=False)

    @field_validator("properties", mode="before")
    @classmethod
    def _properties_as_list(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return [{"name": name, "schema": item} for name, item in sorted(value.items())]
        return value

    def init(self, schemas_by_id: dict[str, Schema]) -> None:
        """Resolve references and compute :attr:`kind` for this schema and its children.

        Raises:
            SpecParseError: On an unresolvable ``$ref``, an unknown type, an
                array without ``items`` or a non-array with ``items``.
        """
        if self.ref:
            self.ref_schema = schemas_by_id.get(self.ref)
            if self.ref_schema is None:
                raise SpecParseError(f"could not resolve schema reference {self.ref!r}")
        self.kind = self._init_kind()
        if self.kind == SchemaKind.ARRAY and self.items is None:
            raise SpecParseError(f"schema {self.id or self.name!r}: array does not have items")
        if self.kind != SchemaKind.ARRAY and self.items is not None:
            raise SpecParseError(f"schema {self.id or self.name!r}: non-array has items")
        if self.additional_properties is not None:
            self.additional_properties.init(schemas_by_id)
        if self.items is not None:
            self.items.init(schemas_by_id)
        for prop in self.properties:
            prop.schema_.init(schemas_by_id)

    def _init_kind(self) -> SchemaKind:
        if self.ref:
            return SchemaKind.REFERENCE
        if self.type in ("string", "number", "integer", "boolean", "any"):
            return SchemaKind.SIMPLE
        if self.type == "object":
            if self.additional_properties is not None:
                if self.additional_properties.type == "any":
                    return SchemaKind.ANY_STRUCT
                return SchemaKind.MAP
            return SchemaKind.STRUCT
        if self.type == "array":
            return SchemaKind.ARRAY
        raise SpecParseError(f"unknown type {self.type!r} for schema {self.id or self.name!r}")


class Property(_DiscoModel):
    name: str
    schema_: Schema = Field(alias="schema")


class Parameter(Schema):
    """A method parameter: a schema plus its location in the request."""

    name: str = ""
    required: bool = False
    repeated: bool = False
    location: str = ""


class MediaUploadProtocol(_DiscoModel):
    multipart: bool = False
    path: str = ""


class MediaUpload(_DiscoModel):
    accept: list[str] = Field(default_factory=list)
    max_size: str = ""
    protocols: dict[str, MediaUploadProtocol] = Field(default_factory=dict)


class Method(_DiscoModel):
    """A method of a Discovery resource."""

    name: str = ""
    id: str = ""
    path: str = ""
    flat_path: str = ""
    http_method: str = ""
    description: str = ""
    deprecated: bool = False
    parameters: list[Parameter] = Field(default_factory=list)
    parameter_order: list[str] = Field(default_factory=list)
    request: Optional[Schema] = None
    response: Optional[Schema] = None
    scopes: list[str] = Field(default_factory=list)
    media_upload: Optional[MediaUpload] = None
    supports_media_download: bool = False
    api_version: str = ""

    @field_validator("parameters", mode="before")
    @classmethod
    def _parameters_as_list(cls, value: Any) -> Any:
        return _sorted_named(value)

    def init(self, schemas_by_id: dict[str, Schema]) -> None:
        if self.request is not None:
            self.request.init(schemas_by_id)
        if self.response is not None:
            self.response.init(schemas_by_id)


class Resource(_DiscoModel):
    """A resource; its ``full_name`` is ``{parent.full_name}.{name}``."""

    name: str = ""
    full_name: str = Field(default="", exclude=True)
    methods: list[Method] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)

    @field_validator("methods", "resources", mode="before")
    @classmethod
    def _as_list(cls, value: Any) -> Any:
        return _sorted_named(value)

    def init(self, parent_full_name: str, schemas_by_id: dict[str, Schema]) -> None:
        self.full_name = f"{parent_full_name}.{self.name}"
        for method in self.methods:
            method.init(schemas_by_id)
        for child in self.resources:
            child.init(self.full_name, schemas_by_id)


class Scope(_DiscoModel):
    id: str
    description: str = ""


class Auth(_DiscoModel):
    """The ``auth`` section; only the OAuth2 scopes are retained."""

    oauth2_scopes: list[Scope] = Field(default_factory=list)

    @classmethod
    def from_json(cls, value: Any) -> Auth:
        scopes = ((value or {}).get("oauth2") or {}).get("scopes") or {}
        if not isinstance(scopes, dict):
            raise SpecParseError("auth.oauth2.scopes must be an object")
        return cls(
            oauth2_scopes=[
                Scope(id=scope_id, description=(scopes[scope_id] or {}).get("description", ""))
                for scope_id in sorted(scopes)
            ]
        )


class Document(_DiscoModel):
    """An API Discovery document."""

    id: str = ""
    name: str = ""
    version: str = ""
    title: str = ""
    description: str = ""
    root_url: str = ""
    mtls_root_url: str = ""
    service_path: str = ""
    base_path: str = ""
    documentation_link: str = ""
    auth: Auth = Field(default_factory=Auth)
    features: list[str] = Field(default_factory=list)
    methods: list[Method] = Field(default_factory=list)
    schemas: dict[str, Schema] = Field(default_factory=dict)
    resources: list[Resource] = Field(default_factory=list)

    @field_validator("auth", mode="before")
    @classmethod
    def _decode_auth(cls, value: Any) -> Any:
        if isinstance(value, dict) and "oauth2Scopes" not in value and "oauth2_scopes" not in value:
            return Auth.from_json(value)
        return value

    @field_validator("methods", "resources", mode="before")
    @classmethod
    def _as_list(cls, value: Any) -> Any:
        return _sorted_named(value)

    def init(self) -> None:
        """Resolve references and check schema shapes across the whole document."""
        schemas_by_id = {schema.id or name: schema for name, schema in self.schemas.items()}
        for name, schema in self.schemas.items():
            if schema.ref:
                raise SpecParseError(f"top level schema {name!r} is a reference")
            schema.name = name
            schema.init(schemas_by_id)
        for method in self.methods:
            method.init(schemas_by_id)
        for resource in self.resources:
            resource.init("", schemas_by_id)


Schema.model_rebuild()


def new_disco_document(contents: bytes) -> Document:
    """Decode and initialise a Discovery document.

    Raises:
        SpecParseError: If the bytes are not a valid Discovery document.
    """
    try:
        data = json.loads(contents)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise SpecParseError(f"Invalid Discovery document JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SpecParseError("Discovery document must be a JSON object")
    try:
        doc = Document.model_validate(data)
    except ValidationError as exc:
        raise SpecParseError(f"Invalid Discovery document: {exc}") from exc
    doc.init()
    return doc
