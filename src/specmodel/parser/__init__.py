"""Specification parsers and the model-building pipeline.

This sub-package turns a source document into a
:class:`~specmodel.api.model.API`:

Typical usage::

    from specmodel.models import Config, GeneralConfig
    from specmodel.parser import create_model

    model = create_model(
        Config(
            general=GeneralConfig(
                specification_format="openapi",
                specification_source="https://example.com/openapi.json",
            )
        )
    )

Sub-modules:

* :mod:`~specmodel.parser.discovery` -- Google Discovery documents.
* :mod:`~specmodel.parser.openapi` -- OpenAPI 3.x documents.
* :mod:`~specmodel.parser.protobuf` -- protobuf descriptor sets.
* :mod:`~specmodel.parser.svcconfig` -- service config YAML files.
* :mod:`~specmodel.parser.loader` -- file and URL I/O with JSON/YAML detection.
* :mod:`~specmodel.parser.resolver` -- ``$ref`` pointer resolution.
* :mod:`~specmodel.parser.pipeline` -- :func:`create_model` and the
  ``parse_*`` entry points.
"""

from specmodel.parser.pipeline import create_model, parse_disco, parse_openapi, parse_protobuf

__all__ = ["create_model", "parse_disco", "parse_openapi", "parse_protobuf"]
