"""Build an API model from a Google API Discovery document.

The single public function is :func:`new_api`. Discovery documents do not
name a package; it comes from the service config when one is given, and is
empty otherwise.
"""

from __future__ import annotations

import logging
from typing import Optional

from specmodel.api.model import API, Message
from specmodel.exceptions import SpecParseError
from specmodel.models import ServiceConfig
from specmodel.parser.discovery.document import new_disco_document
from specmodel.parser.discovery.message_fields import make_message_fields
from specmodel.parser.discovery.services import add_service_recursive
from specmodel.parser.svcconfig import extract_package_name

logger = logging.getLogger(__name__)

__all__ = ["new_api"]


def new_api(service_config: Optional[ServiceConfig], contents: bytes) -> API:
    """Parse the Discovery document in ``contents`` into an :class:`API`.

    Args:
        service_config: Overrides the API name, title and description, and
            supplies the package name. May be ``None``.
        contents: The raw JSON document.

    Raises:
        SpecParseError: If the document cannot be decoded or has a shape the
            model cannot represent.
    """
    doc = new_disco_document(contents)
    model = API(name=doc.name, title=doc.title, description=doc.description)

    if service_config is not None:
        model.name = service_config.name.removesuffix(".googleapis.com")
        model.title = service_config.title
        if service_config.documentation is not None:
            model.description = service_config.documentation.summary
        names = extract_package_name(service_config)
        if names is not None:
            model.package_name = names.package_name
    package = model.package_name

    for name, schema in sorted(doc.schemas.items()):
        message_id = f".{package}.{schema.id or name}"
        if schema.type != "object":
            raise SpecParseError(f"schema {message_id} is not an object: {schema.type!r}")
        message = Message(
            name=name,
            id=message_id,
            package=package,
            documentation=schema.description,
            deprecated=schema.deprecated,
            fields=make_message_fields(message_id, schema),
        )
        model.messages.append(message)
        model.state.message_by_id[message_id] = message

    for resource in doc.resources:
        add_service_recursive(model, doc, resource)

    logger.debug(
        "Parsed Discovery document %s: %d messages, %d services",
        doc.id or doc.name,
        len(model.messages),
        len(model.services),
    )
    return model
