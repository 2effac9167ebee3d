"""Exception hierarchy for specmodel.

All exceptions inherit from :class:`SpecmodelError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specmodel.exit_codes`.
Every failure in the model pipeline is terminal for the current run: the
parsers, the cross-referencer and the validator raise and never retry. The
top-level handler in :func:`specmodel.app.main` catches ``SpecmodelError``
and exits with the matching code.

Subclass hierarchy::

    SpecmodelError (exit 1)
    +-- ConfigError           (exit 2)
    +-- SpecReadError         (exit 3)
    +-- SpecParseError        (exit 4)
    +-- CrossReferenceError   (exit 5)
    +-- ModelValidationError  (exit 6)
"""

from specmodel.exit_codes import (
    EXIT_CROSS_REFERENCE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_READ_ERROR,
    EXIT_SPEC_PARSE_ERROR,
    EXIT_VALIDATION_ERROR,
)


class SpecmodelError(Exception):
    """Base exception for all specmodel errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`specmodel.exit_codes`.

    Args:
        message: Human-readable error description, naming the offending
            element ID where there is one.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SpecmodelError):
    """Raised for configuration problems (unknown format, bad skip lists, unmatched overrides)."""

    exit_code = EXIT_INVALID_USAGE


class SpecReadError(SpecmodelError):
    """Raised when a source document or service-config file cannot be read."""

    exit_code = EXIT_READ_ERROR


class SpecParseError(SpecmodelError):
    """Raised when a source document cannot be decoded or has an unsupported shape."""

    exit_code = EXIT_SPEC_PARSE_ERROR


class CrossReferenceError(SpecmodelError):
    """Raised when a type reference cannot be resolved against the model indices."""

    exit_code = EXIT_CROSS_REFERENCE_ERROR


class ModelValidationError(SpecmodelError):
    """Raised when the assembled model breaks a structural invariant.

    Named to avoid confusion with :class:`pydantic.ValidationError`.
    """

    exit_code = EXIT_VALIDATION_ERROR
