"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specmodel.exceptions.SpecmodelError` subclass.
CI scripts can inspect the exit code to tell a missing input file apart
from a broken model without parsing stderr.

Example::

    $ specmodel validate --format disco --source compute.v1.json
    $ echo $?
    5   # EXIT_CROSS_REFERENCE_ERROR -- a field points at a missing message
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_READ_ERROR = 3
"""A specification or service-config file could not be read."""

EXIT_SPEC_PARSE_ERROR = 4
"""A source document could not be decoded or has an invalid structure."""

EXIT_CROSS_REFERENCE_ERROR = 5
"""The model contains a reference to an ID that does not exist."""

EXIT_VALIDATION_ERROR = 6
"""The assembled model failed a structural invariant (e.g. package consistency)."""
