"""Translate Discovery resource methods into model methods."""

from __future__ import annotations

import re
from typing import Optional

from specmodel.api.model import API, Method, PathBinding, PathInfo
from specmodel.api.pathtemplate import parse_path_template
from specmodel.exceptions import SpecParseError
from specmodel.parser.discovery.document import Document, Resource, Schema
from specmodel.parser.discovery.document import Method as DiscoMethod

EMPTY_TYPE_ID = ".google.protobuf.Empty"

# `{+name}` captures reserved expansion, i.e. values that may include `/`.
_RESERVED_EXPANSION = re.compile(r"\{\+([^}]+)\}")


def make_service_methods(model: API, doc: Document, service_id: str, resource: Resource) -> list[Method]:
    return [make_method(model, doc, service_id, m) for m in resource.methods]


def make_method(model: API, doc: Document, service_id: str, method: DiscoMethod) -> Method:
    """Build a :class:`Method` with ID ``{service_id}.{name}``.

    Raises:
        SpecParseError: For media upload methods, or a request or response
            that is not a reference to a top-level schema.
    """
    method_id = f"{service_id}.{method.name}"
    if method.media_upload is not None:
        raise SpecParseError(f"media upload methods are not supported, id={method_id}")
    input_id = _method_type(model, method_id, "request type", method.request)
    output_id = _method_type(model, method_id, "response type", method.response)
    return Method(
        id=method_id,
        name=method.name,
        documentation=method.description,
        deprecated=method.deprecated,
        input_type_id=input_id,
        output_type_id=output_id,
        returns_empty=method.response is None,
        path_info=make_path_info(doc, method),
    )


def make_path_info(doc: Document, method: DiscoMethod) -> PathInfo:
    """Build the HTTP binding of a method from its verb, path and parameters.

    The path is relative to the document's ``servicePath``. Path variables
    written as ``{+var}`` may span several segments and become ``**``
    captures; plain ``{var}`` captures a single segment.
    """
    path = (doc.service_path + method.path).lstrip("/")
    template = parse_path_template("/" + _RESERVED_EXPANSION.sub(r"{\1=**}", path))
    binding = PathBinding(
        verb=method.http_method.upper(),
        path_template=template,
        query_parameters={p.name for p in method.parameters if p.location == "query"},
    )
    return PathInfo(
        bindings=[binding],
        body_field_path="*" if method.request is not None else "",
    )


def _method_type(model: API, method_id: str, kind: str, schema: Optional[Schema]) -> str:
    if schema is None:
        return EMPTY_TYPE_ID
    if not schema.ref:
        raise SpecParseError(f"expected a ref-like schema for {kind} in method {method_id}")
    return f".{model.package_name}.{schema.ref}"
