"""Remove model elements selected by the ``skipped-ids`` / ``included-ids`` options.

Both options hold comma-separated element IDs, each of which may be a
shell-style glob (``.google.cloud.foo.v1.Legacy*``). ``skipped-ids`` drops
every service, method, message and enum whose ID matches. ``included-ids``
does the opposite and keeps only the matching elements; a service is kept
when it matches or when any of its methods match, and in the latter case
only the matching methods remain. An included message keeps everything
nested in it. A service left without methods is dropped in both modes.

Removed elements, and anything nested in them, are purged from
``model.state`` so the indices only point at elements still in the model.
"""

from __future__ import annotations

import fnmatch
import logging
from typing import Callable

from specmodel.api.model import API, Enum, Message, Service
from specmodel.api.xref import walk_messages
from specmodel.exceptions import ConfigError

logger = logging.getLogger(__name__)

SKIPPED_IDS = "skipped-ids"
INCLUDED_IDS = "included-ids"


def skip_model_elements(model: API, options: dict[str, str]) -> None:
    """Apply the skip or include lists from ``options`` to ``model``.

    Raises:
        ConfigError: If both ``skipped-ids`` and ``included-ids`` are set.
    """
    skipped = _parse_ids(options.get(SKIPPED_IDS, ""))
    included = _parse_ids(options.get(INCLUDED_IDS, ""))
    if skipped and included:
        raise ConfigError(f"only one of {SKIPPED_IDS!r} and {INCLUDED_IDS!r} may be set")
    if skipped:
        _prune(model, lambda element_id: not _matches(element_id, skipped), include=False)
    elif included:
        _prune(model, lambda element_id: _matches(element_id, included), include=True)


def _parse_ids(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _matches(element_id: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatchcase(element_id, pattern) for pattern in patterns)


def _prune(model: API, keep: Callable[[str], bool], include: bool) -> None:
    state = model.state

    services: list[Service] = []
    for service in model.services:
        # An included service keeps all of its methods; a skipped one keeps none.
        if keep(service.id) and include:
            services.append(service)
            continue
        methods = [m for m in service.methods if keep(m.id)] if keep(service.id) or include else []
        if not methods:
            _drop_service(model, service)
            continue
        for method in service.methods:
            if not any(method is m for m in methods):
                logger.debug("Skipping method %s", method.id)
                state.method_by_id.pop(method.id, None)
        service.methods = methods
        services.append(service)
    model.services = services

    model.messages = _prune_messages(model, model.messages, keep, include)
    model.enums = _prune_enums(model, model.enums, keep)


def _drop_service(model: API, service: Service) -> None:
    logger.debug("Skipping service %s", service.id)
    model.state.service_by_id.pop(service.id, None)
    for method in service.methods:
        model.state.method_by_id.pop(method.id, None)


def _prune_messages(
    model: API, messages: list[Message], keep: Callable[[str], bool], include: bool
) -> list[Message]:
    kept: list[Message] = []
    for message in messages:
        if not keep(message.id):
            logger.debug("Skipping message %s", message.id)
            _purge_message(model, message)
            continue
        kept.append(message)
        if include:
            # An included message keeps its nested types, its fields refer to them.
            continue
        message.messages = _prune_messages(model, message.messages, keep, include)
        message.enums = _prune_enums(model, message.enums, keep)
    return kept


def _prune_enums(model: API, enums: list[Enum], keep: Callable[[str], bool]) -> list[Enum]:
    kept: list[Enum] = []
    for enum in enums:
        if not keep(enum.id):
            logger.debug("Skipping enum %s", enum.id)
            model.state.enum_by_id.pop(enum.id, None)
            continue
        kept.append(enum)
    return kept


def _purge_message(model: API, message: Message) -> None:
    for nested in walk_messages([message]):
        model.state.message_by_id.pop(nested.id, None)
        for enum in nested.enums:
            model.state.enum_by_id.pop(enum.id, None)
