"""Pydantic models for the inputs consumed by the model pipeline.

The API graph itself lives in :mod:`specmodel.api.model`; this module holds
the shapes that arrive from *outside* the pipeline, already resolved by the
caller. They fall into two groups:

**Generation configuration** -- the resolved settings for one run:
    :class:`GeneralConfig`, :class:`DocumentationOverride`, and
    :class:`Config`.

**Service config documents** -- the YAML ``google.api.Service`` files
that accompany an API specification and provide its name, title,
documentation summary and list of interfaces:
    :class:`ServiceDocumentation`, :class:`ServiceApi`,
    :class:`MethodSettings`, :class:`Publishing`, and
    :class:`ServiceConfig`.

All models use Pydantic v2. Service-config models use ``extra="allow"``
because real service configs carry many sections (``http``, ``authentication``,
``backend``...) that the model pipeline never reads.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Generation Config ---


class GeneralConfig(BaseModel):
    """Selects the specification to parse for one generation run.

    Example::

        GeneralConfig(
            specification_format="protobuf",
            specification_source="google/cloud/secretmanager/v1",
            service_config="google/cloud/secretmanager/v1/secretmanager_v1.yaml",
        )
    """

    language: str = ""
    specification_format: str = Field(
        default="", description="Source format: disco, openapi, protobuf, none"
    )
    specification_source: str = Field(
        default="", description="Path (or URL for openapi) of the specification"
    )
    service_config: str = Field(
        default="", description="Path to the service config YAML, may be relative to a source root"
    )
    ignored_directories: list[str] = Field(default_factory=list)


class DocumentationOverride(BaseModel):
    """Replaces the first occurrence of ``match`` in the documentation of element ``id``."""

    id: str
    match: str = ""
    replace: str = ""


class Config(BaseModel):
    """The resolved configuration handed to :func:`~specmodel.parser.create_model`.

    ``source`` is the flat string-keyed option map described in
    :mod:`specmodel.config` (``name-override``, ``skipped-ids``,
    ``googleapis-root``, ...). ``codec`` is carried through untouched for
    the per-language renderers.
    """

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    source: dict[str, str] = Field(default_factory=dict)
    codec: dict[str, str] = Field(default_factory=dict)
    comment_overrides: list[DocumentationOverride] = Field(default_factory=list)


# --- Service Config ---


class ServiceDocumentation(BaseModel):
    """The ``documentation`` section of a service config."""

    model_config = ConfigDict(extra="allow")

    summary: str = ""
    overview: str = ""


class ServiceApi(BaseModel):
    """One entry in the service config ``apis`` list, e.g. ``google.cloud.secretmanager.v1.SecretManagerService``."""

    model_config = ConfigDict(extra="allow")

    name: str


class MethodSettings(BaseModel):
    """Per-method publishing settings, used for AIP-4235 auto-populated fields."""

    model_config = ConfigDict(extra="allow")

    selector: str
    auto_populated_fields: list[str] = Field(default_factory=list)


class Publishing(BaseModel):
    """The ``publishing`` section of a service config."""

    model_config = ConfigDict(extra="allow")

    method_settings: list[MethodSettings] = Field(default_factory=list)


class ServiceConfig(BaseModel):
    """A ``google.api.Service`` document, decoded from YAML.

    Only the fields consumed by the parsers are declared. The first
    non-mixin entry of :attr:`apis` determines the package name of the
    model (see :func:`~specmodel.parser.svcconfig.extract_package_name`).
    """

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    name: str = ""
    title: str = ""
    apis: list[ServiceApi] = Field(default_factory=list)
    documentation: Optional[ServiceDocumentation] = None
    publishing: Optional[Publishing] = None
