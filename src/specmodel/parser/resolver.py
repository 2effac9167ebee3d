"""Follow ``$ref`` JSON Reference pointers inside a decoded OpenAPI document.

The OpenAPI parser keeps schema references as references, because a
``#/components/schemas/Foo`` pointer becomes a link to the message
``.{package}.Foo`` in the model. Parameters, request bodies and responses
are different: they are inlined where they are used. This module offers
both views:

* :func:`resolve_ref` -- return the value a single ``#/...`` pointer names.
* :func:`deref` -- if an object is a ``{"$ref": ...}`` dict, follow the chain
  of references to the first concrete object.

Only internal references (those starting with ``#/``) are supported.
"""

from __future__ import annotations

from typing import Any

from specmodel.exceptions import SpecParseError


def resolve_ref(ref: str, root: dict[str, Any]) -> Any:
    """Resolve a single ``$ref`` string against ``root``.

    Handles RFC 6901 escaping (``~0`` for ``~``, ``~1`` for ``/``).

    Args:
        ref: The pointer, e.g. ``"#/components/schemas/Pet"``.
        root: The document to resolve against.

    Returns:
        The value found at the referenced path.

    Raises:
        SpecParseError: If the reference is external, or any segment of the
            pointer does not exist in the document.
    """
    if not ref.startswith("#/"):
        raise SpecParseError(
            f"External $ref not supported: {ref}. Only internal references (#/...) are handled."
        )

    current: Any = root
    for segment in ref[2:].split("/"):
        segment = segment.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if segment not in current:
                raise SpecParseError(f"Cannot resolve $ref '{ref}': key '{segment}' not found at path")
            current = current[segment]
        elif isinstance(current, list):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError) as exc:
                raise SpecParseError(
                    f"Cannot resolve $ref '{ref}': invalid array index '{segment}'"
                ) from exc
        else:
            raise SpecParseError(
                f"Cannot resolve $ref '{ref}': cannot navigate into {type(current).__name__}"
            )
    return current


def deref(obj: Any, root: dict[str, Any]) -> Any:
    """Follow ``obj`` through any chain of ``$ref`` dicts.

    Non-reference values are returned unchanged.

    Raises:
        SpecParseError: If a pointer cannot be resolved or the chain loops.
    """
    seen: set[str] = set()
    while isinstance(obj, dict) and "$ref" in obj:
        ref = obj["$ref"]
        if ref in seen:
            raise SpecParseError(f"Circular $ref chain through '{ref}'")
        seen.add(ref)
        obj = resolve_ref(ref, root)
    return obj


def ref_name(ref: str) -> str:
    """Return the last segment of a pointer, e.g. ``Pet`` for ``#/components/schemas/Pet``."""
    return ref.rsplit("/", 1)[-1].replace("~1", "/").replace("~0", "~")
