"""Apply documentation overrides from the configuration.

Upstream comments sometimes contain text that renders badly in a target
language (stray markup, broken links). Each
:class:`~specmodel.models.DocumentationOverride` names an element by ID and
replaces the first occurrence of ``match`` in its documentation with
``replace``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specmodel.api.model import API
from specmodel.exceptions import ConfigError
from specmodel.models import Config

logger = logging.getLogger(__name__)


def patch_documentation(model: API, config: Config) -> None:
    """Rewrite the documentation of the elements named in ``config.comment_overrides``.

    An override may target a service, method, message or enum by its ID, a
    field as ``{message_id}.{field_name}``, or an enum value as
    ``{enum_id}.{value_name}``.

    Raises:
        ConfigError: If an override names an unknown element, or its
            ``match`` text does not occur in the element's documentation.
    """
    for override in config.comment_overrides:
        element = _find_element(model, override.id)
        if element is None:
            raise ConfigError(f"cannot find element {override.id!r} for documentation override")
        if override.match not in element.documentation:
            raise ConfigError(
                f"documentation override for {override.id} does not match: {override.match!r} not found"
            )
        element.documentation = element.documentation.replace(override.match, override.replace, 1)
        logger.debug("Patched documentation of %s", override.id)


def _find_element(model: API, element_id: str) -> Optional[Any]:
    state = model.state
    for index in (state.message_by_id, state.enum_by_id, state.service_by_id, state.method_by_id):
        if element_id in index:
            return index[element_id]
    parent_id, _, name = element_id.rpartition(".")
    message = state.message_by_id.get(parent_id)
    if message is not None:
        return next((f for f in message.fields if f.name == name), None)
    enum = state.enum_by_id.get(parent_id)
    if enum is not None:
        return next((v for v in enum.values if v.name == name), None)
    return None
