"""Resolve ID references and compute derived properties of a parsed model.

Parsers emit string IDs for every link between elements, because the target
of a link may be defined later in the document (or in another file). After
parsing completes, :func:`cross_reference` walks the owned tree once and:

1. indexes every service, method, message and enum in ``model.state``,
2. sets the non-owning back-links (``parent``, ``model``, ``service``,
   ``group``),
3. resolves ``typez_id``, ``input_type_id`` and ``output_type_id`` through
   the indices,
4. normalises and checks map fields,
5. computes ``unique_number_values``, recursive-field labels and AIP-4233
   pagination.

Any reference that cannot be resolved raises
:class:`~specmodel.exceptions.CrossReferenceError`; the model must not be
rendered with dangling links.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

from specmodel.api.model import (
    API,
    APIState,
    Enum,
    EnumValue,
    Field,
    Message,
    Method,
    PaginationInfo,
    Typez,
)
from specmodel.api.wellknown import load_well_known_types
from specmodel.exceptions import CrossReferenceError

logger = logging.getLogger(__name__)

_PAGE_TOKEN_NAMES = ("page_token", "pageToken")
_PAGE_SIZE_NAMES = ("page_size", "pageSize", "max_results", "maxResults")
_NEXT_PAGE_TOKEN_NAMES = ("next_page_token", "nextPageToken")
_PAGE_SIZE_TYPES = (Typez.INT32_TYPE, Typez.UINT32_TYPE, Typez.INT64_TYPE, Typez.UINT64_TYPE)


def cross_reference(model: API) -> None:
    """Index the model and resolve every ID reference in place.

    Elements already present in ``model.state`` that the model does not own
    (imported or well-known types) are kept, so references to them resolve.

    Raises:
        CrossReferenceError: If a field, method or map entry refers to an ID
            that is not in the indices, or a map entry is malformed.
    """
    state = model.state
    load_well_known_types(state)

    for message in walk_messages(model.messages):
        state.message_by_id[message.id] = message
        for one_of in message.one_ofs:
            for member in one_of.fields:
                member.group = one_of
        for child in message.messages:
            child.parent = message
        for enum in message.enums:
            enum.parent = message
    for enum in walk_enums(model):
        state.enum_by_id[enum.id] = enum
        for value in enum.values:
            value.parent = enum
    for service in model.services:
        state.service_by_id[service.id] = service
        service.model = model
        for method in service.methods:
            state.method_by_id[method.id] = method
            method.model = model
            method.service = service
            if method.operation_info is not None:
                method.operation_info.method = method

    for message in walk_messages(model.messages):
        if message.is_map:
            _check_map_entry(message)
        for f in message.fields:
            _resolve_field(message, f, state)
    for enum in walk_enums(model):
        enum.unique_number_values = unique_number_values(enum)
    for service in model.services:
        for method in service.methods:
            _resolve_method(method, state)
    label_recursive_fields(model)
    for service in model.services:
        for method in service.methods:
            _update_pagination(method)
    logger.debug(
        "Cross-referenced %d messages, %d enums, %d services",
        len(state.message_by_id),
        len(state.enum_by_id),
        len(state.service_by_id),
    )


def field_is_map(f: Field, state: APIState) -> bool:
    """Return True if ``f`` is a map, i.e. a singular message field whose target is a map entry."""
    if f.typez != Typez.MESSAGE_TYPE or f.repeated:
        return False
    target = state.message_by_id.get(f.typez_id)
    return target is not None and target.is_map


def label_recursive_fields(model: API) -> None:
    """Set ``recursive`` on every field whose type closure reaches its own message.

    The closure follows message-typed fields transitively with a visited set
    keyed by message ID, so mutually recursive messages terminate.
    """
    state = model.state
    for message in walk_messages(model.messages):
        for f in message.fields:
            if f.typez != Typez.MESSAGE_TYPE:
                continue
            f.recursive = message.id in _reachable_messages(f.typez_id, state)


def unique_number_values(enum: Enum) -> list[EnumValue]:
    """Return the first value for each distinct number, in declaration order."""
    seen: set[int] = set()
    unique: list[EnumValue] = []
    for value in enum.values:
        if value.number in seen:
            continue
        seen.add(value.number)
        unique.append(value)
    return unique


def walk_messages(messages: list[Message]) -> Iterator[Message]:
    """Yield ``messages`` and all of their nested messages, depth first."""
    for message in messages:
        yield message
        yield from walk_messages(message.messages)


def walk_enums(model: API) -> Iterator[Enum]:
    """Yield the top-level enums and the enums nested in any message."""
    yield from model.enums
    for message in walk_messages(model.messages):
        yield from message.enums


# --- Internals ---


def _resolve_field(message: Message, f: Field, state: APIState) -> None:
    if f.typez == Typez.MESSAGE_TYPE:
        target = state.message_by_id.get(f.typez_id)
        if target is None:
            raise CrossReferenceError(
                f"cannot find message type {f.typez_id!r} for field {message.id}.{f.name}"
            )
        if target.is_map:
            f.map = True
            f.repeated = False
        elif f.map:
            raise CrossReferenceError(
                f"field {message.id}.{f.name} is a map but {f.typez_id!r} is not a map entry"
            )
    elif f.typez == Typez.ENUM_TYPE:
        if f.typez_id not in state.enum_by_id:
            raise CrossReferenceError(
                f"cannot find enum type {f.typez_id!r} for field {message.id}.{f.name}"
            )


def _check_map_entry(message: Message) -> None:
    names = sorted(f.name for f in message.fields)
    if names != ["key", "value"]:
        raise CrossReferenceError(
            f"map entry {message.id} must have exactly the fields key and value, got {names}"
        )
    key = next(f for f in message.fields if f.name == "key")
    if key.typez in (Typez.MESSAGE_TYPE, Typez.GROUP_TYPE, Typez.UNDEFINED_TYPE) or key.repeated:
        raise CrossReferenceError(f"map entry {message.id} has an invalid key type {key.typez.name}")


def _resolve_method(method: Method, state: APIState) -> None:
    input_type = state.message_by_id.get(method.input_type_id)
    if input_type is None:
        raise CrossReferenceError(
            f"cannot find input type {method.input_type_id!r} for method {method.id}"
        )
    output_type = state.message_by_id.get(method.output_type_id)
    if output_type is None:
        raise CrossReferenceError(
            f"cannot find output type {method.output_type_id!r} for method {method.id}"
        )
    method.input_type = input_type
    method.output_type = output_type
    if method.operation_info is not None:
        for type_id in (
            method.operation_info.metadata_type_id,
            method.operation_info.response_type_id,
        ):
            if type_id and type_id not in state.message_by_id:
                raise CrossReferenceError(
                    f"cannot find long-running operation type {type_id!r} for method {method.id}"
                )


def _reachable_messages(start_id: str, state: APIState) -> set[str]:
    visited: set[str] = set()
    queue = deque([start_id])
    while queue:
        message_id = queue.popleft()
        if message_id in visited:
            continue
        visited.add(message_id)
        message = state.message_by_id.get(message_id)
        if message is None:
            continue
        for f in message.fields:
            if f.typez == Typez.MESSAGE_TYPE and f.typez_id not in visited:
                queue.append(f.typez_id)
    return visited


def _update_pagination(method: Method) -> None:
    request, response = method.input_type, method.output_type
    if request is None or response is None or method.server_side_streaming:
        return
    page_token = _find_field(request, _PAGE_TOKEN_NAMES, (Typez.STRING_TYPE,))
    page_size = _find_field(request, _PAGE_SIZE_NAMES, _PAGE_SIZE_TYPES)
    if page_token is None or page_size is None:
        return
    next_page_token = _find_field(response, _NEXT_PAGE_TOKEN_NAMES, (Typez.STRING_TYPE,))
    if next_page_token is None:
        return
    items = [f for f in response.fields if f.repeated or f.map]
    if len(items) != 1:
        return
    method.pagination = page_token
    response.pagination = PaginationInfo(next_page_token=next_page_token, pageable_item=items[0])
    logger.debug("Method %s is paginated over %s", method.id, items[0].name)


def _find_field(message: Message, names: tuple[str, ...], types: tuple[Typez, ...]) -> Field | None:
    for f in message.fields:
        if f.name in names and f.typez in types and f.singular():
            return f
    return None
