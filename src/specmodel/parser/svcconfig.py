"""Read service config documents and derive the package name they imply."""

from __future__ import annotations

import logging
from typing import NamedTuple, Optional

import yaml
from pydantic import ValidationError

from specmodel.exceptions import SpecParseError
from specmodel.models import ServiceConfig
from specmodel.parser.loader import read_bytes

logger = logging.getLogger(__name__)

_WELL_KNOWN_MIXINS = (
    "google.cloud.location.Location",
    "google.longrunning.Operations",
    "google.iam.v1.IAMPolicy",
)


class ServiceNames(NamedTuple):
    """The package and unqualified name of a service."""

    package_name: str
    service_name: str


def read_service_config(path: str) -> ServiceConfig:
    """Decode the YAML service config at ``path``.

    Raises:
        SpecReadError: If the file cannot be read.
        SpecParseError: If the file is not valid YAML or not a service config.
    """
    contents = read_bytes(path)
    try:
        data = yaml.safe_load(contents)
    except yaml.YAMLError as exc:
        raise SpecParseError(f"Invalid service config YAML in {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SpecParseError(f"Service config {path} must be a YAML mapping")
    try:
        config = ServiceConfig.model_validate(data)
    except ValidationError as exc:
        raise SpecParseError(f"Invalid service config {path}: {exc}") from exc
    logger.debug("Loaded service config %s (%d apis)", path, len(config.apis))
    return config


def extract_package_name(service_config: Optional[ServiceConfig]) -> Optional[ServiceNames]:
    """Return the package and service named by the first non-mixin API.

    Returns ``None`` when there is no service config, or it lists only
    mixins such as ``google.longrunning.Operations``.
    """
    if service_config is None:
        return None
    for api in service_config.apis:
        if _well_known_mixin(api.name):
            continue
        return _split_qualified_service_name(api.name)
    return None


def _split_qualified_service_name(name: str) -> ServiceNames:
    package, dot, service = name.rpartition(".")
    if not dot:
        return ServiceNames(package_name="", service_name=name)
    return ServiceNames(package_name=package, service_name=service)


def _well_known_mixin(qualified_service_name: str) -> bool:
    return qualified_service_name.startswith(_WELL_KNOWN_MIXINS)
