"""Build an API model from an OpenAPI 3.x document.

An OpenAPI document describes one HTTP surface, so the model has exactly
one :class:`~specmodel.api.model.Service`, named after the first non-mixin
API in the service config (``Service`` without one). Each operation becomes
a method:

* the request is a synthetic ``{Operation}Request`` message with one
  ``synthetic`` field per path or query parameter, plus a field for the
  request body named after the body schema in lowerCamel case,
* the response is the message for the JSON schema of the first 2xx
  response; operations without one return ``.google.protobuf.Empty``.
  A response that is not an object is wrapped in a synthetic
  ``{Operation}Response`` message with a single ``items`` field for arrays
  or ``value`` field otherwise.

``components/schemas`` objects become messages and string ``enum`` schemas
become enums. Inline objects nested in a schema become nested messages,
and ``additionalProperties`` becomes a map field backed by a synthetic
map-entry message.

References to object and string enum schemas are kept as references
(``#/components/schemas/Pet`` becomes the ID ``.{package}.Pet``); a reference
to any other schema is replaced by the type it names. Parameters, request bodies and
responses are dereferenced in place with :func:`~specmodel.parser.resolver.deref`.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

from specmodel.api.model import (
    API,
    Enum,
    EnumValue,
    Field,
    FieldBehavior,
    Message,
    Method,
    PathBinding,
    PathInfo,
    Service,
    Typez,
)
from specmodel.api.pathtemplate import parse_path_template
from specmodel.exceptions import SpecParseError
from specmodel.models import ServiceConfig
from specmodel.parser.loader import validate_openapi_version
from specmodel.parser.resolver import deref, ref_name, resolve_ref
from specmodel.parser.svcconfig import extract_package_name

logger = logging.getLogger(__name__)

_HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
_SCHEMA_REF_PREFIX = "#/components/schemas/"
_JSON_CONTENT_TYPES = ("application/json", "application/*+json", "*/*")

_INTEGER_FORMATS = {
    "": Typez.INT64_TYPE,
    "int32": Typez.INT32_TYPE,
    "int64": Typez.INT64_TYPE,
    "uint32": Typez.UINT32_TYPE,
    "uint64": Typez.UINT64_TYPE,
}

_NUMBER_FORMATS = {
    "": Typez.DOUBLE_TYPE,
    "float": Typez.FLOAT_TYPE,
    "double": Typez.DOUBLE_TYPE,
}

_STRING_MESSAGE_FORMATS = {
    "date-time": ".google.protobuf.Timestamp",
    "google-datetime": ".google.protobuf.Timestamp",
    "google-duration": ".google.protobuf.Duration",
    "google-fieldmask": ".google.protobuf.FieldMask",
}

_STRING_SCALAR_FORMATS = {
    "byte": Typez.BYTES_TYPE,
    "binary": Typez.BYTES_TYPE,
    "int32": Typez.INT32_TYPE,
    "int64": Typez.INT64_TYPE,
    "uint32": Typez.UINT32_TYPE,
    "uint64": Typez.UINT64_TYPE,
}

_PLAIN_STRING_FORMATS = frozenset(
    {"", "date", "uuid", "email", "uri", "url", "hostname", "ipv4", "ipv6", "password", "google-etag"}
)


def new_api(service_config: Optional[ServiceConfig], document: dict[str, Any]) -> API:
    """Translate a decoded OpenAPI document into an :class:`API`.

    Args:
        service_config: Overrides the API name, title and description, and
            supplies the package and service name. May be ``None``.
        document: The decoded OpenAPI document.

    Raises:
        SpecParseError: If the document is not OpenAPI 3.x, an operation
            has no ``operationId``, or a schema cannot be represented.
    """
    validate_openapi_version(document)
    builder = _Builder(service_config, document)
    return builder.build()


def _pascal_case(name: str) -> str:
    parts = [p for p in re.split(r"[^0-9A-Za-z]+", name) if p]
    return "".join(p[0].upper() + p[1:] for p in parts)


def _lower_camel_case(name: str) -> str:
    pascal = _pascal_case(name)
    return pascal[:1].lower() + pascal[1:]


def _schema_type(schema: dict[str, Any]) -> str:
    """Return the schema ``type``, picking the first non-null entry of an OpenAPI 3.1 type list."""
    type_value = schema.get("type", "")
    if isinstance(type_value, list):
        non_null = [t for t in type_value if t != "null"]
        return non_null[0] if non_null else ""
    return str(type_value)


def _single_ref(schema: dict[str, Any]) -> Optional[str]:
    """Return the schema reference of ``schema``, unwrapping a one-element ``allOf``."""
    if "$ref" in schema:
        return schema["$ref"]
    all_of = schema.get("allOf")
    if isinstance(all_of, list) and len(all_of) == 1 and isinstance(all_of[0], dict):
        return all_of[0].get("$ref")
    return None


def _names_a_type(schema: dict[str, Any]) -> bool:
    """Whether a top-level schema becomes a message or enum of its own."""
    schema_type = _schema_type(schema)
    if "enum" in schema:
        return schema_type == "string"
    return schema_type in ("object", "")


def _merge_parameters(
    path_params: list[dict[str, Any]], op_params: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters; the operation wins on (name, in)."""
    op_keys = {(p.get("name", ""), p.get("in", "")) for p in op_params}
    merged = [p for p in path_params if (p.get("name", ""), p.get("in", "")) not in op_keys]
    merged.extend(op_params)
    return merged


class _Builder:
    """Holds the document, package and model while the parser walks the document."""

    def __init__(self, service_config: Optional[ServiceConfig], document: dict[str, Any]):
        self.document = document
        info = document.get("info") or {}
        self.model = API(
            name=info.get("title", ""),
            title=info.get("title", ""),
            description=info.get("description", ""),
        )
        self.service_name = "Service"
        if service_config is not None:
            self.model.name = service_config.name.removesuffix(".googleapis.com")
            self.model.title = service_config.title
            if service_config.documentation is not None:
                self.model.description = service_config.documentation.summary
            names = extract_package_name(service_config)
            if names is not None:
                self.model.package_name = names.package_name
                self.service_name = names.service_name
        self.package = self.model.package_name

    def build(self) -> API:
        schemas = (self.document.get("components") or {}).get("schemas") or {}
        for name, schema in sorted(schemas.items()):
            self._add_top_level_schema(name, deref(schema, self.document))
        self._add_service()
        logger.debug(
            "Parsed OpenAPI document: %d messages, %d enums, %d methods",
            len(self.model.messages),
            len(self.model.enums),
            sum(len(s.methods) for s in self.model.services),
        )
        return self.model

    def _type_id(self, name: str) -> str:
        return f".{self.package}.{name}"

    # --- Schemas ---

    def _add_top_level_schema(self, name: str, schema: dict[str, Any]) -> None:
        schema_type = _schema_type(schema)
        if schema_type == "string" and "enum" in schema:
            enum = self._make_enum(name, self._type_id(name), schema)
            self.model.enums.append(enum)
            self.model.state.enum_by_id[enum.id] = enum
            return
        if not _names_a_type(schema):
            logger.debug("Schema %s is not a message, references to it are inlined", name)
            return
        message = self._make_message(name, self._type_id(name), schema)
        self.model.messages.append(message)

    def _make_message(self, name: str, message_id: str, schema: dict[str, Any]) -> Message:
        message = Message(
            name=name,
            id=message_id,
            package=self.package,
            documentation=schema.get("description", ""),
            deprecated=bool(schema.get("deprecated", False)),
        )
        self.model.state.message_by_id[message_id] = message
        required = set(schema.get("required") or [])
        for field_name, prop in (schema.get("properties") or {}).items():
            field = self._make_field(message, field_name, prop, field_name in required)
            message.fields.append(field)
        return message

    def _make_enum(self, name: str, enum_id: str, schema: dict[str, Any]) -> Enum:
        enum = Enum(
            name=name,
            id=enum_id,
            package=self.package,
            documentation=schema.get("description", ""),
            deprecated=bool(schema.get("deprecated", False)),
        )
        for number, value in enumerate(v for v in schema["enum"] if v is not None):
            enum.values.append(EnumValue(name=str(value), id=f"{enum_id}.{value}", number=number))
        return enum

    # --- Fields ---

    def _make_field(
        self, message: Message, name: str, prop: Any, required: bool, synthetic: bool = False
    ) -> Field:
        if not isinstance(prop, dict):
            raise SpecParseError(f"schema for field {message.id}.{name} must be an object")
        ref = _single_ref(prop)
        resolved = deref(prop, self.document) if ref is None else prop
        field = Field(
            name=name,
            id=f"{message.id}.{name}",
            json_name=name,
            documentation=prop.get("description", resolved.get("description", "")),
            deprecated=bool(prop.get("deprecated", False)),
            synthetic=synthetic,
        )
        self._set_field_type(message, field, resolved)
        if required:
            field.behavior.append(FieldBehavior.FIELD_BEHAVIOR_REQUIRED)
        if prop.get("readOnly"):
            field.behavior.append(FieldBehavior.FIELD_BEHAVIOR_OUTPUT_ONLY)
        if prop.get("writeOnly"):
            field.behavior.append(FieldBehavior.FIELD_BEHAVIOR_INPUT_ONLY)
        field.optional = (
            not required
            and field.singular()
            and field.typez not in (Typez.MESSAGE_TYPE, Typez.ENUM_TYPE)
        )
        field.auto_populated = (
            field.typez == Typez.STRING_TYPE
            and field.singular()
            and not required
            and (resolved if ref is None else self._referenced_schema(ref, field.id)).get("format") == "uuid"
        )
        return field

    def _set_field_type(self, message: Message, field: Field, schema: dict[str, Any]) -> None:
        ref = _single_ref(schema)
        if ref is not None:
            target = self._referenced_schema(ref, f"field {message.id}.{field.name}")
            if _names_a_type(target):
                field.typez, field.typez_id = self._ref_type(ref, target)
                return
            schema = target

        schema_type = _schema_type(schema)
        schema_format = schema.get("format", "")
        if schema_type == "boolean":
            field.typez, field.typez_id = Typez.BOOL_TYPE, "bool"
        elif schema_type == "integer":
            field.typez = self._scalar_format(_INTEGER_FORMATS, "integer", message, field, schema_format)
            field.typez_id = field.typez.name.removesuffix("_TYPE").lower()
        elif schema_type == "number":
            field.typez = self._scalar_format(_NUMBER_FORMATS, "number", message, field, schema_format)
            field.typez_id = field.typez.name.removesuffix("_TYPE").lower()
        elif schema_type == "string":
            self._set_string_type(message, field, schema)
        elif schema_type == "array":
            self._set_array_type(message, field, schema)
        elif schema_type == "object" or "properties" in schema:
            self._set_object_type(message, field, schema)
        else:
            field.typez, field.typez_id = Typez.MESSAGE_TYPE, ".google.protobuf.Value"

    def _referenced_schema(self, ref: str, referrer: str) -> dict[str, Any]:
        """Follow ``ref`` through any chain of references to the schema it names.

        ``referrer`` names the field or response holding ``ref`` in error messages.
        """
        seen: set[str] = set()
        while True:
            if not ref.startswith(_SCHEMA_REF_PREFIX):
                raise SpecParseError(
                    f"{referrer} refers to {ref!r}, expected a {_SCHEMA_REF_PREFIX} reference"
                )
            if ref in seen:
                raise SpecParseError(f"Circular $ref chain through '{ref}'")
            seen.add(ref)
            target = resolve_ref(ref, self.document)
            if not isinstance(target, dict):
                raise SpecParseError(f"{ref!r} referenced by {referrer} is not a schema")
            next_ref = _single_ref(target)
            if next_ref is None:
                return target
            ref = next_ref

    def _ref_type(self, ref: str, target: dict[str, Any]) -> tuple[Typez, str]:
        type_id = self._type_id(ref_name(ref))
        if _schema_type(target) == "string":
            return Typez.ENUM_TYPE, type_id
        return Typez.MESSAGE_TYPE, type_id

    def _scalar_format(
        self, formats: dict[str, Typez], base: str, message: Message, field: Field, fmt: str
    ) -> Typez:
        try:
            return formats[fmt]
        except KeyError:
            raise SpecParseError(
                f"unknown {base} format ({fmt}) for field {message.id}.{field.name}"
            ) from None

    def _set_string_type(self, message: Message, field: Field, schema: dict[str, Any]) -> None:
        fmt = schema.get("format", "")
        if "enum" in schema:
            enum_name = _pascal_case(field.name)
            enum = self._make_enum(enum_name, f"{message.id}.{enum_name}", schema)
            message.enums.append(enum)
            self.model.state.enum_by_id[enum.id] = enum
            field.typez, field.typez_id = Typez.ENUM_TYPE, enum.id
        elif fmt in _STRING_MESSAGE_FORMATS:
            field.typez, field.typez_id = Typez.MESSAGE_TYPE, _STRING_MESSAGE_FORMATS[fmt]
        elif fmt in _STRING_SCALAR_FORMATS:
            field.typez = _STRING_SCALAR_FORMATS[fmt]
            field.typez_id = field.typez.name.removesuffix("_TYPE").lower()
        else:
            if fmt not in _PLAIN_STRING_FORMATS:
                logger.warning(
                    "Unknown string format %r for field %s.%s, treating it as a string",
                    fmt,
                    message.id,
                    field.name,
                )
            field.typez, field.typez_id = Typez.STRING_TYPE, "string"

    def _set_array_type(self, message: Message, field: Field, schema: dict[str, Any]) -> None:
        items = schema.get("items")
        if not isinstance(items, dict):
            raise SpecParseError(f"array field {message.id}.{field.name} does not have items")
        resolved = deref(items, self.document) if _single_ref(items) is None else items
        ref = _single_ref(resolved)
        target = resolved if ref is None else self._referenced_schema(ref, f"field {message.id}.{field.name}")
        if _schema_type(target) == "array":
            raise SpecParseError(f"nested arrays are not supported in field {message.id}.{field.name}")
        self._set_field_type(message, field, resolved)
        field.repeated = True

    def _set_object_type(self, message: Message, field: Field, schema: dict[str, Any]) -> None:
        additional = schema.get("additionalProperties")
        if isinstance(additional, dict) and additional and "properties" not in schema:
            entry = self._make_map_entry(message, field, additional)
            field.typez, field.typez_id = Typez.MESSAGE_TYPE, entry.id
            field.map = True
            return
        if not schema.get("properties"):
            field.typez, field.typez_id = Typez.MESSAGE_TYPE, ".google.protobuf.Struct"
            return
        child_name = _pascal_case(field.name)
        child = self._make_message(child_name, f"{message.id}.{child_name}", schema)
        message.messages.append(child)
        field.typez, field.typez_id = Typez.MESSAGE_TYPE, child.id

    def _make_map_entry(self, message: Message, field: Field, value_schema: dict[str, Any]) -> Message:
        entry_name = f"{_pascal_case(field.name)}Entry"
        entry = Message(
            name=entry_name,
            id=f"{message.id}.{entry_name}",
            package=self.package,
            is_map=True,
        )
        self.model.state.message_by_id[entry.id] = entry
        key = Field(name="key", id=f"{entry.id}.key", json_name="key", typez=Typez.STRING_TYPE, typez_id="string")
        value = Field(name="value", id=f"{entry.id}.value", json_name="value")
        resolved = deref(value_schema, self.document) if _single_ref(value_schema) is None else value_schema
        self._set_field_type(entry, value, resolved)
        entry.fields = [key, value]
        message.messages.append(entry)
        return entry

    # --- Service and methods ---

    def _add_service(self) -> None:
        service = Service(
            name=self.service_name,
            id=self._type_id(self.service_name),
            package=self.package,
            documentation=self.model.description,
            default_host=self._default_host(),
        )
        paths = self.document.get("paths") or {}
        for path, path_item in sorted(paths.items()):
            path_item = deref(path_item, self.document)
            if not isinstance(path_item, dict):
                continue
            path_params = path_item.get("parameters") or []
            for verb in _HTTP_METHODS:
                operation = path_item.get(verb)
                if not isinstance(operation, dict):
                    continue
                method = self._make_method(service, path, verb, operation, path_params)
                service.methods.append(method)
                self.model.state.method_by_id[method.id] = method
        if not service.methods:
            logger.debug("OpenAPI document has no operations; no service created")
            return
        self.model.services.append(service)
        self.model.state.service_by_id[service.id] = service

    def _default_host(self) -> str:
        servers = self.document.get("servers") or []
        if not servers:
            return ""
        return urlparse(servers[0].get("url", "")).netloc

    def _make_method(
        self,
        service: Service,
        path: str,
        verb: str,
        operation: dict[str, Any],
        path_params: list[dict[str, Any]],
    ) -> Method:
        operation_id = operation.get("operationId")
        if not operation_id:
            raise SpecParseError(f"operation {verb.upper()} {path} has no operationId")
        method_name = _pascal_case(operation_id)
        method_id = f"{service.id}.{method_name}"
        if method_id in self.model.state.method_by_id:
            raise SpecParseError(f"duplicate operationId {operation_id!r}")

        request = Message(
            name=f"{method_name}Request",
            id=self._type_id(f"{method_name}Request"),
            package=self.package,
            documentation=f"The request message for `{method_name}`.",
        )
        self.model.state.message_by_id[request.id] = request
        self.model.messages.append(request)

        params = [
            deref(p, self.document)
            for p in _merge_parameters(path_params, operation.get("parameters") or [])
        ]
        query_parameters: set[str] = set()
        for param in params:
            location = param.get("in", "")
            if location not in ("path", "query"):
                logger.debug("Ignoring %s parameter %s of %s", location, param.get("name"), method_id)
                continue
            schema = dict(param.get("schema") or {})
            schema.setdefault("description", param.get("description", ""))
            required = location == "path" or bool(param.get("required", False))
            name = param.get("name", "")
            if not name:
                raise SpecParseError(f"a {location} parameter of {method_id} has no name")
            field = self._make_field(request, name, schema, required, synthetic=True)
            request.fields.append(field)
            if location == "query":
                query_parameters.add(field.name)

        body_field_path = self._add_body_field(request, method_name, operation.get("requestBody"))
        output_type_id, returns_empty = self._response_type(method_name, operation.get("responses") or {})

        binding = PathBinding(
            verb=verb.upper(),
            path_template=parse_path_template(path),
            query_parameters=query_parameters,
        )
        return Method(
            name=method_name,
            id=method_id,
            documentation=operation.get("description") or operation.get("summary", ""),
            deprecated=bool(operation.get("deprecated", False)),
            input_type_id=request.id,
            output_type_id=output_type_id,
            returns_empty=returns_empty,
            path_info=PathInfo(bindings=[binding], body_field_path=body_field_path),
            auto_populated=[f for f in request.fields if f.auto_populated],
        )

    def _add_body_field(self, request: Message, method_name: str, body: Any) -> str:
        if body is None:
            return ""
        body = deref(body, self.document)
        schema = self._json_schema(body)
        if schema is None:
            return ""
        ref = _single_ref(schema)
        name = _lower_camel_case(ref_name(ref)) if ref is not None else "body"
        field = self._make_field(request, name, schema, bool(body.get("required", False)))
        request.fields.append(field)
        return field.name

    def _response_type(self, method_name: str, responses: dict[str, Any]) -> tuple[str, bool]:
        # YAML decodes unquoted status codes as integers.
        for status, response in sorted(responses.items(), key=lambda item: str(item[0])):
            if not str(status).startswith("2"):
                continue
            response = deref(response, self.document)
            schema = self._json_schema(response or {})
            if schema is None:
                continue
            ref = _single_ref(schema)
            if ref is not None:
                target = self._referenced_schema(ref, f"the response of {method_name}")
                if _names_a_type(target) and "enum" not in target:
                    return self._type_id(ref_name(ref)), False
                return self._wrap_response(method_name, schema), False
            resolved = deref(schema, self.document)
            if _schema_type(resolved) not in ("object", "") or "enum" in resolved:
                return self._wrap_response(method_name, resolved), False
            name = f"{method_name}Response"
            message = self._make_message(name, self._type_id(name), resolved)
            self.model.messages.append(message)
            return message.id, False
        return ".google.protobuf.Empty", True

    def _wrap_response(self, method_name: str, schema: dict[str, Any]) -> str:
        """Make a ``{Method}Response`` message holding a response that is not an object."""
        name = f"{method_name}Response"
        message = Message(
            name=name,
            id=self._type_id(name),
            package=self.package,
            documentation=f"The response message for `{method_name}`.",
        )
        self.model.state.message_by_id[message.id] = message
        self.model.messages.append(message)
        ref = _single_ref(schema)
        target = schema if ref is None else self._referenced_schema(ref, f"the response of {method_name}")
        field_name = "items" if _schema_type(target) == "array" else "value"
        message.fields.append(self._make_field(message, field_name, schema, False))
        return message.id

    def _json_schema(self, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        content = body.get("content") or {}
        for content_type in _JSON_CONTENT_TYPES:
            media = content.get(content_type)
            if isinstance(media, dict) and isinstance(media.get("schema"), dict):
                return media["schema"]
        return None
