"""The canonical API model and the passes that run over it.

* :mod:`specmodel.api.model` -- the graph of services, methods, messages,
  enums and fields.
* :mod:`specmodel.api.pathtemplate` -- HTTP path and routing templates.
* :mod:`specmodel.api.xref` -- ID resolution and derived properties.
* :mod:`specmodel.api.skip` and :mod:`specmodel.api.documentation` --
  configuration-driven edits.
* :mod:`specmodel.api.validate` -- the final package-consistency check.
"""

from specmodel.api.documentation import patch_documentation
from specmodel.api.model import (
    API,
    APIState,
    Enum,
    EnumValue,
    Field,
    FieldBehavior,
    Message,
    Method,
    OneOf,
    OperationInfo,
    PaginationInfo,
    Pair,
    PathBinding,
    PathInfo,
    RoutingInfo,
    RoutingInfoCombo,
    RoutingInfoComboItem,
    RoutingInfoVariant,
    RoutingPathSpec,
    Service,
    Typez,
)
from specmodel.api.pathtemplate import (
    MULTI_SEGMENT_WILDCARD,
    SINGLE_SEGMENT_WILDCARD,
    PathSegment,
    PathTemplate,
    PathVariable,
    parse_path_template,
    parse_routing_template,
)
from specmodel.api.skip import skip_model_elements
from specmodel.api.validate import validate
from specmodel.api.wellknown import load_well_known_types
from specmodel.api.xref import cross_reference, field_is_map, label_recursive_fields

__all__ = [
    "API",
    "APIState",
    "Enum",
    "EnumValue",
    "Field",
    "FieldBehavior",
    "MULTI_SEGMENT_WILDCARD",
    "Message",
    "Method",
    "OneOf",
    "OperationInfo",
    "PaginationInfo",
    "Pair",
    "PathBinding",
    "PathInfo",
    "PathSegment",
    "PathTemplate",
    "PathVariable",
    "RoutingInfo",
    "RoutingInfoCombo",
    "RoutingInfoComboItem",
    "RoutingInfoVariant",
    "RoutingPathSpec",
    "SINGLE_SEGMENT_WILDCARD",
    "Service",
    "Typez",
    "cross_reference",
    "field_is_map",
    "label_recursive_fields",
    "load_well_known_types",
    "parse_path_template",
    "parse_routing_template",
    "patch_documentation",
    "skip_model_elements",
    "validate",
]
