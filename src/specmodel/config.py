"""Source-root resolution for the flat ``source`` option map.

The pipeline does not load configuration files; it receives a resolved
``dict[str, str]`` (``Config.source``). Input files given as relative
paths are looked up under the *source roots* named in that map:

* ``<name>-root`` keys hold directories, e.g.
  ``googleapis-root = /src/googleapis``.
* ``roots`` optionally selects which of them are used, as a comma-separated
  list of names (``roots = googleapis,protobuf-src``). Without it every
  ``*-root`` key is used, in sorted order.

See :func:`source_roots`, :func:`all_source_roots` and
:func:`find_service_config_path`.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_ROOT_SUFFIX = "-root"
_ROOTS_KEY = "roots"


def source_roots(options: dict[str, str]) -> list[str]:
    """Return the option keys naming the active source roots.

    Example::

        >>> source_roots({"roots": "googleapis", "googleapis-root": "/g", "x-root": "/x"})
        ['googleapis-root']
    """
    selected = options.get(_ROOTS_KEY, "")
    if selected:
        return [f"{name.strip()}{_ROOT_SUFFIX}" for name in selected.split(",") if name.strip()]
    return sorted(key for key in options if key.endswith(_ROOT_SUFFIX))


def all_source_roots(options: dict[str, str]) -> list[str]:
    """Return the directories of the active source roots, skipping names with no value."""
    roots = []
    for key in source_roots(options):
        if key in options:
            roots.append(options[key])
        else:
            logger.debug("Source root %s is selected but not set", key)
    return roots


def find_service_config_path(path: str, options: dict[str, str]) -> str:
    """Resolve ``path`` against the current directory and then each source root.

    The first existing candidate wins. If none exists, ``path`` is returned
    unchanged so the caller reports the original name when reading fails.
    """
    if Path(path).is_absolute() or Path(path).is_file():
        return path
    for root in all_source_roots(options):
        candidate = Path(root) / path
        if candidate.is_file():
            return str(candidate)
    return path
