"""Parse a specification and run every model pass over the result.

:func:`create_model` is the entry point used by the CLI and by renderers.
It picks a parser from ``config.general.specification_format`` and then
runs, strictly in this order:

1. :func:`~specmodel.api.xref.cross_reference`
2. :func:`~specmodel.api.skip.skip_model_elements`
3. :func:`~specmodel.api.documentation.patch_documentation`
4. :func:`~specmodel.api.validate.validate`
5. the ``name-override``, ``title-override`` and ``description-override``
   source options.

Each ``parse_*`` function has the same signature,
``(source, service_config_file, options) -> API``, and can be used on its
own when the passes are not wanted.
"""

from __future__ import annotations

import logging
from typing import Optional

from specmodel.api.documentation import patch_documentation
from specmodel.api.model import API
from specmodel.api.skip import skip_model_elements
from specmodel.api.validate import validate
from specmodel.api.xref import cross_reference
from specmodel.config import find_service_config_path
from specmodel.exceptions import ConfigError
from specmodel.models import Config, ServiceConfig
from specmodel.parser import discovery, openapi, protobuf
from specmodel.parser.loader import load_document, read_bytes
from specmodel.parser.svcconfig import read_service_config

logger = logging.getLogger(__name__)


def _service_config(service_config_file: str, options: dict[str, str]) -> Optional[ServiceConfig]:
    if not service_config_file:
        return None
    return read_service_config(find_service_config_path(service_config_file, options))


def parse_disco(source: str, service_config_file: str, options: dict[str, str]) -> API:
    """Parse the Discovery document at ``source``."""
    contents = read_bytes(source)
    return discovery.new_api(_service_config(service_config_file, options), contents)


def parse_openapi(source: str, service_config_file: str, options: dict[str, str]) -> API:
    """Parse the OpenAPI document at ``source`` (a file path or an ``http(s)`` URL)."""
    document = load_document(source)
    return openapi.new_api(_service_config(service_config_file, options), document)


def parse_protobuf(source: str, service_config_file: str, options: dict[str, str]) -> API:
    """Parse protobuf descriptors.

    ``source`` is either a serialized ``FileDescriptorSet`` (``.pb``,
    ``.binpb``, ``.desc`` or ``.protoset``) or a directory of ``.proto``
    files relative to a source root, compiled with ``protoc``.
    """
    if source.endswith(protobuf.DESCRIPTOR_SET_SUFFIXES):
        descriptor_set = protobuf.load_descriptor_set(read_bytes(source))
    else:
        descriptor_set = protobuf.compile_descriptor_set(source, options)
    return protobuf.new_api(_service_config(service_config_file, options), descriptor_set)


_PARSERS = {
    "disco": parse_disco,
    "openapi": parse_openapi,
    "protobuf": parse_protobuf,
}


def create_model(config: Config) -> Optional[API]:
    """Build the cross-referenced, validated model described by ``config``.

    Returns:
        The model, or ``None`` when the specification format is ``"none"``.

    Raises:
        ConfigError: If the format is unknown, or the skip and documentation
            options are inconsistent.
        SpecmodelError: Any error raised by the parser or the model passes.
    """
    general = config.general
    if general.specification_format == "none":
        return None
    parser = _PARSERS.get(general.specification_format)
    if parser is None:
        raise ConfigError(f"unknown parser {general.specification_format!r}")

    logger.debug("Parsing %s as %s", general.specification_source, general.specification_format)
    model = parser(general.specification_source, general.service_config, config.source)
    cross_reference(model)
    skip_model_elements(model, config.source)
    patch_documentation(model, config)
    validate(model)

    if "name-override" in config.source:
        model.name = config.source["name-override"]
    if "title-override" in config.source:
        model.title = config.source["title-override"]
    if "description-override" in config.source:
        model.description = config.source["description-override"]
    return model
