"""Path template grammar used by HTTP bindings and request routing.

A :class:`PathTemplate` is an ordered list of :class:`PathSegment` values,
each either a literal string or a :class:`PathVariable`. A variable binds a
(possibly nested) request field, and its capture pattern is itself a list of
literal and wildcard sub-segments:

* ``*`` (:data:`SINGLE_SEGMENT_WILDCARD`) matches any value without ``/``.
* ``**`` (:data:`MULTI_SEGMENT_WILDCARD`) matches any value, ``/`` included.

Templates are usually built fluently::

    template = (
        PathTemplate()
        .with_literal("v1")
        .with_variable(
            PathVariable(["secret", "name"])
            .with_literal("projects")
            .with_match()
            .with_literal("secrets")
            .with_match()
        )
        .with_verb("access")
    )

or parsed from the ``google.api.http`` string form with
:func:`parse_path_template`. No validation beyond the structural shape
happens here; whether a template makes sense for a given wire format is up
to its consumer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from specmodel.exceptions import SpecParseError

SINGLE_SEGMENT_WILDCARD = "*"
"""Matches one path segment: anything that does not include a ``/``."""

MULTI_SEGMENT_WILDCARD = "**"
"""Matches any number of path segments, ``/`` included."""


@dataclass
class PathVariable:
    """A captured request field inside a path template."""

    field_path: list[str] = field(default_factory=list)
    segments: list[str] = field(default_factory=list)

    def with_literal(self, literal: str) -> PathVariable:
        self.segments.append(literal)
        return self

    def with_match(self) -> PathVariable:
        self.segments.append(SINGLE_SEGMENT_WILDCARD)
        return self

    def with_match_recursive(self) -> PathVariable:
        self.segments.append(MULTI_SEGMENT_WILDCARD)
        return self

    def field_name(self) -> str:
        return ".".join(self.field_path)

    def __str__(self) -> str:
        if self.segments == [SINGLE_SEGMENT_WILDCARD]:
            return "{" + self.field_name() + "}"
        return "{" + self.field_name() + "=" + "/".join(self.segments) + "}"


@dataclass
class PathSegment:
    """One segment of a :class:`PathTemplate`; exactly one attribute is set."""

    literal: Optional[str] = None
    variable: Optional[PathVariable] = None

    def __str__(self) -> str:
        if self.variable is not None:
            return str(self.variable)
        return self.literal or ""


@dataclass
class PathTemplate:
    """An HTTP path broken into literal and variable segments, plus an optional custom verb."""

    segments: list[PathSegment] = field(default_factory=list)
    verb: Optional[str] = None

    def with_literal(self, literal: str) -> PathTemplate:
        self.segments.append(PathSegment(literal=literal))
        return self

    def with_variable(self, variable: PathVariable) -> PathTemplate:
        self.segments.append(PathSegment(variable=variable))
        return self

    def with_variable_named(self, *field_path: str) -> PathTemplate:
        """Add a variable capturing a single segment, i.e. ``{field_path}``."""
        return self.with_variable(PathVariable(list(field_path)).with_match())

    def with_verb(self, verb: str) -> PathTemplate:
        self.verb = verb
        return self

    def variables(self) -> list[PathVariable]:
        return [s.variable for s in self.segments if s.variable is not None]

    def __str__(self) -> str:
        path = "/" + "/".join(str(s) for s in self.segments)
        if self.verb is not None:
            path += ":" + self.verb
        return path


# --- Parsing ---


def parse_path_template(text: str) -> PathTemplate:
    """Parse a ``google.api.http`` path such as ``/v1/{name=projects/*/secrets/*}:access``.

    The grammar is::

        Template = "/" Segments [ Verb ] ;
        Segments = Segment { "/" Segment } ;
        Segment  = LITERAL | Variable ;
        Variable = "{" FieldPath [ "=" Segments ] "}" ;
        Verb     = ":" LITERAL ;

    Wildcards are only accepted inside a variable's capture pattern.

    Raises:
        SpecParseError: If the text does not follow the grammar above.
    """
    if not text.startswith("/"):
        raise SpecParseError(f"path template {text!r} must start with '/'")
    body, verb = _split_verb(text[1:], text)
    template = PathTemplate()
    for token in _split_segments(body, text):
        if token.startswith("{"):
            template.with_variable(_parse_variable(token, text))
        elif token in (SINGLE_SEGMENT_WILDCARD, MULTI_SEGMENT_WILDCARD):
            raise SpecParseError(
                f"path template {text!r}: wildcards are only supported inside variables"
            )
        elif "{" in token or "}" in token:
            raise SpecParseError(f"path template {text!r}: malformed segment {token!r}")
        else:
            template.with_literal(token)
    if verb is not None:
        template.with_verb(verb)
    return template


def parse_routing_template(text: str) -> tuple[str, list[str], list[str], list[str]]:
    """Split an AIP-4222 ``path_template`` into its routing key and three matchers.

    ``projects/*/{database=databases/*}/**`` yields
    ``("database", ["projects", "*"], ["databases", "*"], ["**"])``. A
    template without any variable is an error; an empty template is handled
    by the caller (it routes the whole field value).

    Returns:
        A ``(name, prefix, matching, suffix)`` tuple of segment lists.
    """
    name = ""
    prefix: list[str] = []
    matching: list[str] = []
    suffix: list[str] = []
    for token in _split_segments(text, text):
        if token.startswith("{"):
            if name:
                raise SpecParseError(f"routing template {text!r} has more than one variable")
            variable = _parse_variable(token, text)
            name = variable.field_name()
            matching = variable.segments
        elif name:
            suffix.append(token)
        else:
            prefix.append(token)
    if not name:
        raise SpecParseError(f"routing template {text!r} has no variable")
    return name, prefix, matching, suffix


def _split_verb(body: str, text: str) -> tuple[str, Optional[str]]:
    depth = 0
    colon = -1
    for index, char in enumerate(body):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        elif char == "/" and depth == 0:
            colon = -1
        elif char == ":" and depth == 0:
            colon = index
    if colon == -1:
        return body, None
    verb = body[colon + 1 :]
    if not verb:
        raise SpecParseError(f"path template {text!r} has an empty verb")
    return body[:colon], verb


def _split_segments(body: str, text: str) -> list[str]:
    tokens: list[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "{":
            depth += 1
            if depth > 1:
                raise SpecParseError(f"template {text!r} has nested variables")
        elif char == "}":
            depth -= 1
            if depth < 0:
                raise SpecParseError(f"template {text!r} has unbalanced braces")
        if char == "/" and depth == 0:
            tokens.append(current)
            current = ""
            continue
        current += char
    if depth != 0:
        raise SpecParseError(f"template {text!r} has unbalanced braces")
    tokens.append(current)
    if any(not t for t in tokens):
        raise SpecParseError(f"template {text!r} has an empty segment")
    return tokens


def _parse_variable(token: str, text: str) -> PathVariable:
    if not token.endswith("}"):
        raise SpecParseError(f"template {text!r}: malformed variable {token!r}")
    name, sep, pattern = token[1:-1].partition("=")
    field_path = name.split(".")
    if any(not f.isidentifier() for f in field_path):
        raise SpecParseError(f"template {text!r}: invalid field path {name!r}")
    variable = PathVariable(field_path)
    if not sep:
        return variable.with_match()
    segments = pattern.split("/")
    if any(not s or "{" in s or "}" in s for s in segments):
        raise SpecParseError(f"template {text!r}: invalid capture pattern {pattern!r}")
    for segment in segments:
        variable.with_literal(segment)
    return variable
