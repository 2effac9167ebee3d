"""Read specification and service-config sources from a URL or local file.

This module handles the raw I/O of the parsers:

* :func:`load_document` -- load and decode a JSON or YAML document (OpenAPI
  specs, Discovery documents) from an ``http(s)`` URL or a local path.
* :func:`read_bytes` -- read a local file as bytes (Discovery documents,
  serialized descriptor sets).
* :func:`validate_openapi_version` -- reject documents that are not OpenAPI 3.x.

Missing or unreadable sources raise :class:`~specmodel.exceptions.SpecReadError`;
content that cannot be decoded raises
:class:`~specmodel.exceptions.SpecParseError`.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import yaml

from specmodel.exceptions import SpecParseError, SpecReadError


def load_document(source: str) -> dict[str, Any]:
    """Load a JSON or YAML document from a URL or file path.

    The format is detected from the content type or file extension, falling
    back to trying JSON and then YAML.

    Args:
        source: A URL (http/https) or a file path.

    Returns:
        The decoded document as a dictionary.

    Raises:
        SpecReadError: If the source cannot be fetched or read.
        SpecParseError: If the content is not a JSON/YAML object.
    """
    if source.startswith(("http://", "https://")):
        return _load_from_url(source)
    return _load_from_file(source)


def read_bytes(path: str) -> bytes:
    """Read a local file in full.

    Raises:
        SpecReadError: If the file does not exist or cannot be read.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise SpecReadError(f"File not found: {path}")
    try:
        return file_path.read_bytes()
    except OSError as exc:
        raise SpecReadError(f"Failed to read {path}: {exc}") from exc


def _load_from_url(url: str) -> dict[str, Any]:
    try:
        response = httpx.get(url, timeout=30.0, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        raise SpecReadError(f"HTTP {exc.response.status_code} fetching {url}") from exc
    except httpx.RequestError as exc:
        raise SpecReadError(f"Failed to fetch {url}: {exc}") from exc

    content_type = response.headers.get("content-type", "")
    hint = ""
    if "json" in content_type:
        hint = "json"
    elif "yaml" in content_type or "yml" in content_type:
        hint = "yaml"
    return parse_content(response.text, hint=hint)


def _load_from_file(path: str) -> dict[str, Any]:
    content = read_bytes(path).decode("utf-8", errors="replace")
    if not content.strip():
        raise SpecParseError(f"File is empty: {path}")

    suffix = Path(path).suffix.lower()
    hint = ""
    if suffix == ".json":
        hint = "json"
    elif suffix in (".yaml", ".yml"):
        hint = "yaml"
    return parse_content(content, hint=hint)


def parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Decode ``content`` as JSON or YAML.

    JSON is tried first unless ``hint`` is ``"yaml"``; a ``"json"`` hint
    disables the YAML fallback.

    Raises:
        SpecParseError: If the content cannot be decoded, or is not an object.
    """
    json_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            if hint == "json":
                raise SpecParseError(f"Invalid JSON: {exc}") from exc
            json_error = exc
        else:
            return _require_object(result)

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        msg = "Failed to parse document as JSON or YAML"
        if json_error:
            msg += f"\n  JSON error: {json_error}"
        msg += f"\n  YAML error: {exc}"
        raise SpecParseError(msg) from exc
    return _require_object(result)


def _require_object(result: Any) -> dict[str, Any]:
    if not isinstance(result, dict):
        kind = type(result).__name__ if result is not None else "empty document"
        raise SpecParseError(f"Document must be a JSON/YAML object (got {kind})")
    return result


def validate_openapi_version(document: dict[str, Any]) -> str:
    """Validate and return the ``openapi`` version string of an OpenAPI document.

    OpenAPI 3.x is accepted; Swagger 2.x and documents without a version are
    rejected.

    Raises:
        SpecParseError: If the version is missing, unsupported, or Swagger 2.x.
    """
    if "swagger" in document:
        raise SpecParseError(
            f"Swagger {document['swagger']} is not supported. "
            "Only OpenAPI 3.0.x and 3.1.x are supported."
        )
    openapi_version = document.get("openapi")
    if openapi_version is None:
        raise SpecParseError("Missing 'openapi' field. Is this an OpenAPI 3.x document?")
    version_str = str(openapi_version)
    if not version_str.startswith("3."):
        raise SpecParseError(
            f"Unsupported OpenAPI version: {version_str}. Only OpenAPI 3.0.x and 3.1.x are supported."
        )
    return version_str
