"""Translate Discovery resources into model services."""

from __future__ import annotations

import logging

from specmodel.api.model import API, Service
from specmodel.parser.discovery.document import Document, Resource
from specmodel.parser.discovery.methods import make_service_methods

logger = logging.getLogger(__name__)


def add_service_recursive(model: API, doc: Document, resource: Resource) -> None:
    """Add a service for ``resource`` if it has methods, then recurse into its children."""
    if resource.methods:
        add_service(model, doc, resource)
    for child in resource.resources:
        add_service_recursive(model, doc, child)


def add_service(model: API, doc: Document, resource: Resource) -> None:
    """Register the service ``.{package}.{resource}``; an existing ID is left alone."""
    service_id = f".{model.package_name}.{resource.name}"
    methods = make_service_methods(model, doc, service_id, resource)
    if service_id in model.state.service_by_id:
        logger.debug("Service %s already registered", service_id)
        return
    service = Service(
        id=service_id,
        name=resource.name,
        package=model.package_name,
        documentation=f"Service for the `{resource.name}` resource.",
        default_host=default_host(doc),
        methods=methods,
    )
    model.services.append(service)
    model.state.service_by_id[service_id] = service
    for method in methods:
        model.state.method_by_id[method.id] = method


def default_host(doc: Document) -> str:
    """Return the host of ``rootUrl``, e.g. ``compute.googleapis.com``."""
    host = doc.root_url.removeprefix("https://").removeprefix("http://")
    return host.split("/", 1)[0]
