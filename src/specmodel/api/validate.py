"""Structural checks run on the assembled model right before rendering."""

from __future__ import annotations

from specmodel.api.model import API, Enum, Message
from specmodel.exceptions import ModelValidationError


def validate(model: API) -> None:
    """Verify every service, message and enum belongs to ``model.package_name``.

    Nested messages and enums are checked too. Well-known and imported types
    live only in ``model.state`` and are not checked.

    Raises:
        ModelValidationError: On the first element whose package differs,
            naming the element and both packages.
    """
    for service in model.services:
        _check_package("service", service.id, service.package, model.package_name)
    for message in model.messages:
        _validate_message(message, model.package_name)
    for enum in model.enums:
        _validate_enum(enum, model.package_name)


def _validate_message(message: Message, package: str) -> None:
    _check_package("message", message.id, message.package, package)
    for child in message.messages:
        _validate_message(child, package)
    for enum in message.enums:
        _validate_enum(enum, package)


def _validate_enum(enum: Enum, package: str) -> None:
    _check_package("enum", enum.id, enum.package, package)


def _check_package(kind: str, element_id: str, got: str, want: str) -> None:
    if got != want:
        raise ModelValidationError(
            f"{kind} {element_id} is not in the expected package: got {got!r}, want {want!r}"
        )
