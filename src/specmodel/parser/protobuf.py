"""Build an API model from protobuf descriptors.

The input is a ``google.protobuf.FileDescriptorSet``, either decoded from a
file produced by ``protoc --descriptor_set_out`` or compiled on the fly by
:func:`compile_descriptor_set`. The set usually contains the files of the
API itself plus everything they import. Only the files in
``files_to_generate`` contribute services, messages and enums to the model;
every other file is indexed in ``model.state`` so references into it
resolve.

The parser reads these annotations through the ``google.api`` and
``google.longrunning`` extensions shipped in ``googleapis-common-protos``:

* ``google.api.http`` -- HTTP bindings, including ``additional_bindings``,
* ``google.api.routing`` -- AIP-4222 routing headers,
* ``google.api.field_behavior`` and ``google.api.field_info``,
* ``google.api.default_host``,
* ``google.longrunning.operation_info``.
"""

from __future__ import annotations

import logging
import re
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from google.api import (
    annotations_pb2,
    client_pb2,
    field_behavior_pb2,
    field_info_pb2,
    http_pb2,
    routing_pb2,
)
from google.longrunning import operations_proto_pb2
from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from specmodel.api.model import (
    API,
    Enum,
    EnumValue,
    Field,
    FieldBehavior,
    Message,
    Method,
    OneOf,
    OperationInfo,
    PathBinding,
    PathInfo,
    RoutingInfo,
    RoutingInfoVariant,
    RoutingPathSpec,
    Service,
    Typez,
)
from specmodel.api.pathtemplate import (
    MULTI_SEGMENT_WILDCARD,
    PathVariable,
    parse_path_template,
    parse_routing_template,
)
from specmodel.config import all_source_roots
from specmodel.exceptions import SpecParseError, SpecReadError
from specmodel.models import ServiceConfig
from specmodel.parser.svcconfig import extract_package_name

logger = logging.getLogger(__name__)

DESCRIPTOR_SET_SUFFIXES = (".pb", ".binpb", ".desc", ".protoset")

# Field numbers in `FileDescriptorProto` and friends, used to match
# `SourceCodeInfo.Location.path` entries to elements.
_FILE_MESSAGE_TYPE = 4
_FILE_ENUM_TYPE = 5
_FILE_SERVICE = 6
_MESSAGE_FIELD = 2
_MESSAGE_NESTED_TYPE = 3
_MESSAGE_ENUM_TYPE = 4
_MESSAGE_ONEOF_DECL = 8
_ENUM_VALUE = 2
_SERVICE_METHOD = 2

_KNOWN_BEHAVIORS = frozenset(b.value for b in FieldBehavior)
_HTTP_PATTERNS = ("get", "put", "post", "delete", "patch")
_EMPTY_TYPE_ID = ".google.protobuf.Empty"
_VERSION_SEGMENT = re.compile(r"v\d+\w*")


def load_descriptor_set(data: bytes) -> descriptor_pb2.FileDescriptorSet:
    """Decode a serialized ``FileDescriptorSet``.

    Raises:
        SpecParseError: If the bytes are not a valid descriptor set.
    """
    try:
        return descriptor_pb2.FileDescriptorSet.FromString(data)
    except DecodeError as exc:
        raise SpecParseError(f"Invalid FileDescriptorSet: {exc}") from exc


def compile_descriptor_set(source: str, options: dict[str, str]) -> descriptor_pb2.FileDescriptorSet:
    """Run ``protoc`` over the ``.proto`` files in ``source``.

    ``source`` is a directory (or a single ``.proto`` file) relative to one
    of the source roots in ``options``; every root is passed to ``protoc``
    as an include path.

    Raises:
        SpecReadError: If ``source`` is not found under any root, or
            ``protoc`` cannot be launched.
        SpecParseError: If ``protoc`` rejects the files.
    """
    roots = all_source_roots(options)
    files = _proto_files(source, roots)
    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "descriptors.pb"
        args = ["protoc", "--include_imports", "--include_source_info", f"--descriptor_set_out={output}"]
        args.extend(f"--proto_path={root}" for root in roots)
        args.extend(files)
        logger.debug("Running %s", " ".join(args))
        try:
            result = subprocess.run(args, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise SpecReadError(f"Cannot run protoc: {exc}") from exc
        if result.returncode != 0:
            raise SpecParseError(f"protoc failed for {source}:\n{result.stderr.strip()}")
        return load_descriptor_set(output.read_bytes())


def _proto_files(source: str, roots: list[str]) -> list[str]:
    for root in roots or ["."]:
        candidate = Path(root) / source
        if candidate.is_file() and candidate.suffix == ".proto":
            return [source]
        if candidate.is_dir():
            files = sorted(p.relative_to(root).as_posix() for p in candidate.glob("*.proto"))
            if files:
                return files
    raise SpecReadError(f"No .proto files found for {source!r} under {roots or ['.']}")


def new_api(
    service_config: Optional[ServiceConfig],
    descriptor_set: descriptor_pb2.FileDescriptorSet,
    files_to_generate: Optional[list[str]] = None,
) -> API:
    """Translate a descriptor set into an :class:`API`.

    Args:
        service_config: Supplies the name, title, description, package and
            AIP-4235 method settings. May be ``None``.
        descriptor_set: The decoded descriptors, imports included.
        files_to_generate: The files whose elements the model owns. Defaults
            to the files in the package named by the service config, or in
            the package of the last file in the set.

    Raises:
        SpecParseError: If a path or routing template is malformed.
    """
    return _Builder(service_config, descriptor_set, files_to_generate).build()


def _default_name(package: str) -> str:
    parts = package.split(".")
    if len(parts) > 1 and _VERSION_SEGMENT.fullmatch(parts[-1]):
        return parts[-2]
    return parts[-1]


def _qualified(prefix: str, name: str) -> str:
    return f"{prefix}.{name}"


def _clean_comment(text: str) -> str:
    lines = [line[1:] if line.startswith(" ") else line for line in text.splitlines()]
    return "\n".join(lines).strip()


def _source_comments(file: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], str]:
    return {
        tuple(location.path): _clean_comment(location.leading_comments)
        for location in file.source_code_info.location
        if location.leading_comments
    }


def _operation_type_id(type_name: str, package: str) -> str:
    # `operation_info` types may be unqualified, relative to the file package.
    if "." in type_name:
        return "." + type_name.removeprefix(".")
    return f".{package}.{type_name}"


class _Builder:
    def __init__(
        self,
        service_config: Optional[ServiceConfig],
        descriptor_set: descriptor_pb2.FileDescriptorSet,
        files_to_generate: Optional[list[str]],
    ):
        self.service_config = service_config
        self.descriptor_set = descriptor_set
        self.model = API()
        self.uuid4_fields: set[str] = set()

        names = extract_package_name(service_config)
        if names is not None:
            package = names.package_name
        elif files_to_generate:
            package = next(
                (f.package for f in descriptor_set.file if f.name == files_to_generate[-1]), ""
            )
        elif descriptor_set.file:
            package = descriptor_set.file[-1].package
        else:
            package = ""
        self.model.package_name = package
        if files_to_generate is None:
            files_to_generate = [f.name for f in descriptor_set.file if f.package == package]
        self.files_to_generate = set(files_to_generate)

        self.model.name = _default_name(package)
        if service_config is not None:
            if service_config.name:
                self.model.name = service_config.name.removesuffix(".googleapis.com")
            self.model.title = service_config.title
            if service_config.documentation is not None:
                self.model.description = service_config.documentation.summary

    def build(self) -> API:
        pending: list[tuple[descriptor_pb2.FileDescriptorProto, dict[tuple[int, ...], str]]] = []
        for file in self.descriptor_set.file:
            owned = file.name in self.files_to_generate
            comments = _source_comments(file)
            prefix = f".{file.package}" if file.package else ""
            for index, proto in enumerate(file.message_type):
                message = self._make_message(proto, prefix, file.package, None, comments, (_FILE_MESSAGE_TYPE, index))
                if owned:
                    self.model.messages.append(message)
            for index, proto in enumerate(file.enum_type):
                enum = self._make_enum(proto, prefix, file.package, None, comments, (_FILE_ENUM_TYPE, index))
                if owned:
                    self.model.enums.append(enum)
            if owned:
                pending.append((file, comments))
            else:
                logger.debug("Indexed %s without adding it to the model", file.name)

        # Services need every message indexed to compute query parameters.
        for file, comments in pending:
            prefix = f".{file.package}" if file.package else ""
            for index, proto in enumerate(file.service):
                service = self._make_service(proto, prefix, file.package, comments, (_FILE_SERVICE, index))
                self.model.services.append(service)
        self._update_auto_populated_fields()
        logger.debug(
            "Parsed %d descriptor files: %d messages, %d enums, %d services",
            len(self.descriptor_set.file),
            len(self.model.messages),
            len(self.model.enums),
            len(self.model.services),
        )
        return self.model

    # --- Messages and enums ---

    def _make_message(
        self,
        proto: descriptor_pb2.DescriptorProto,
        prefix: str,
        package: str,
        parent: Optional[Message],
        comments: dict[tuple[int, ...], str],
        path: tuple[int, ...],
    ) -> Message:
        message = Message(
            name=proto.name,
            id=_qualified(prefix, proto.name),
            package=package,
            documentation=comments.get(path, ""),
            deprecated=proto.options.deprecated,
            is_map=proto.options.map_entry,
            parent=parent,
        )
        self.model.state.message_by_id[message.id] = message

        for index, nested in enumerate(proto.nested_type):
            message.messages.append(
                self._make_message(nested, message.id, package, message, comments, path + (_MESSAGE_NESTED_TYPE, index))
            )
        for index, nested in enumerate(proto.enum_type):
            message.enums.append(
                self._make_enum(nested, message.id, package, message, comments, path + (_MESSAGE_ENUM_TYPE, index))
            )

        one_ofs: dict[int, OneOf] = {}
        for index, field_proto in enumerate(proto.field):
            field = self._make_field(field_proto, message, comments, path + (_MESSAGE_FIELD, index))
            message.fields.append(field)
            if field.is_one_of:
                group = one_ofs.get(field_proto.oneof_index)
                if group is None:
                    decl = proto.oneof_decl[field_proto.oneof_index]
                    group = OneOf(
                        name=decl.name,
                        id=_qualified(message.id, decl.name),
                        documentation=comments.get(path + (_MESSAGE_ONEOF_DECL, field_proto.oneof_index), ""),
                    )
                    one_ofs[field_proto.oneof_index] = group
                    message.one_ofs.append(group)
                group.fields.append(field)
                field.group = group
        return message

    def _make_field(
        self,
        proto: descriptor_pb2.FieldDescriptorProto,
        message: Message,
        comments: dict[tuple[int, ...], str],
        path: tuple[int, ...],
    ) -> Field:
        field = Field(
            name=proto.name,
            id=_qualified(message.id, proto.name),
            documentation=comments.get(path, ""),
            typez=Typez(proto.type),
            typez_id=proto.type_name,
            json_name=proto.json_name or proto.name,
            optional=proto.proto3_optional,
            repeated=proto.label == descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED,
            deprecated=proto.options.deprecated,
            is_one_of=proto.HasField("oneof_index") and not proto.proto3_optional,
            behavior=[
                FieldBehavior(b)
                for b in proto.options.Extensions[field_behavior_pb2.field_behavior]
                if b in _KNOWN_BEHAVIORS
            ],
        )
        if proto.options.HasExtension(field_info_pb2.field_info):
            info = proto.options.Extensions[field_info_pb2.field_info]
            if info.format == field_info_pb2.FieldInfo.UUID4:
                self.uuid4_fields.add(field.id)
        return field

    def _make_enum(
        self,
        proto: descriptor_pb2.EnumDescriptorProto,
        prefix: str,
        package: str,
        parent: Optional[Message],
        comments: dict[tuple[int, ...], str],
        path: tuple[int, ...],
    ) -> Enum:
        enum = Enum(
            name=proto.name,
            id=_qualified(prefix, proto.name),
            package=package,
            documentation=comments.get(path, ""),
            deprecated=proto.options.deprecated,
            parent=parent,
        )
        for index, value in enumerate(proto.value):
            enum.values.append(
                EnumValue(
                    name=value.name,
                    id=_qualified(enum.id, value.name),
                    number=value.number,
                    documentation=comments.get(path + (_ENUM_VALUE, index), ""),
                    deprecated=value.options.deprecated,
                    parent=enum,
                )
            )
        self.model.state.enum_by_id[enum.id] = enum
        return enum

    # --- Services and methods ---

    def _make_service(
        self,
        proto: descriptor_pb2.ServiceDescriptorProto,
        prefix: str,
        package: str,
        comments: dict[tuple[int, ...], str],
        path: tuple[int, ...],
    ) -> Service:
        service = Service(
            name=proto.name,
            id=_qualified(prefix, proto.name),
            package=package,
            documentation=comments.get(path, ""),
            deprecated=proto.options.deprecated,
            default_host=proto.options.Extensions[client_pb2.default_host],
        )
        self.model.state.service_by_id[service.id] = service
        for index, method_proto in enumerate(proto.method):
            method = self._make_method(method_proto, service, package, comments, path + (_SERVICE_METHOD, index))
            service.methods.append(method)
            self.model.state.method_by_id[method.id] = method
        return service

    def _make_method(
        self,
        proto: descriptor_pb2.MethodDescriptorProto,
        service: Service,
        package: str,
        comments: dict[tuple[int, ...], str],
        path: tuple[int, ...],
    ) -> Method:
        method = Method(
            name=proto.name,
            id=_qualified(service.id, proto.name),
            documentation=comments.get(path, ""),
            deprecated=proto.options.deprecated,
            input_type_id=proto.input_type,
            output_type_id=proto.output_type,
            returns_empty=proto.output_type == _EMPTY_TYPE_ID,
            client_side_streaming=proto.client_streaming,
            server_side_streaming=proto.server_streaming,
            service=service,
        )
        options = proto.options
        if options.HasExtension(annotations_pb2.http):
            method.path_info = self._make_path_info(method, options.Extensions[annotations_pb2.http])
        if options.HasExtension(operations_proto_pb2.operation_info):
            info = options.Extensions[operations_proto_pb2.operation_info]
            method.operation_info = OperationInfo(
                response_type_id=_operation_type_id(info.response_type, package),
                metadata_type_id=(
                    _operation_type_id(info.metadata_type, package) if info.metadata_type else _EMPTY_TYPE_ID
                ),
                method=method,
            )
        if options.HasExtension(routing_pb2.routing):
            method.routing = _make_routing(method, options.Extensions[routing_pb2.routing])
        return method

    def _make_path_info(self, method: Method, rule: http_pb2.HttpRule) -> PathInfo:
        info = PathInfo(body_field_path=rule.body)
        for binding_rule in [rule, *rule.additional_bindings]:
            info.bindings.append(self._make_binding(method, binding_rule))
        return info

    def _make_binding(self, method: Method, rule: http_pb2.HttpRule) -> PathBinding:
        pattern = rule.WhichOneof("pattern")
        if pattern in _HTTP_PATTERNS:
            verb, path = pattern.upper(), getattr(rule, pattern)
        elif pattern == "custom":
            verb, path = rule.custom.kind, rule.custom.path
        else:
            raise SpecParseError(f"method {method.id} has an http rule without a pattern")
        template = parse_path_template(path)
        return PathBinding(
            verb=verb,
            path_template=template,
            query_parameters=self._query_parameters(method, template.variables(), rule.body),
        )

    def _query_parameters(self, method: Method, variables: list[PathVariable], body: str) -> set[str]:
        if body == "*":
            return set()
        request = self.model.state.message_by_id.get(method.input_type_id)
        if request is None:
            return set()
        in_path = {v.field_path[0] for v in variables if v.field_path}
        return {f.name for f in request.fields if f.name not in in_path and f.name != body}

    def _update_auto_populated_fields(self) -> None:
        """Mark the AIP-4235 fields listed in the service config ``publishing`` section."""
        if self.service_config is None or self.service_config.publishing is None:
            return
        for settings in self.service_config.publishing.method_settings:
            method = self.model.state.method_by_id.get("." + settings.selector)
            if method is None:
                logger.debug("No method for publishing selector %s", settings.selector)
                continue
            request = self.model.state.message_by_id.get(method.input_type_id)
            if request is None:
                continue
            for name in settings.auto_populated_fields:
                field = next((f for f in request.fields if f.name == name), None)
                if field is None or not self._can_auto_populate(field):
                    logger.debug("Field %s of %s cannot be auto-populated", name, method.id)
                    continue
                field.auto_populated = True
                method.auto_populated.append(field)

    def _can_auto_populate(self, field: Field) -> bool:
        return (
            field.typez == Typez.STRING_TYPE
            and field.singular()
            and not field.document_as_required()
            and field.id in self.uuid4_fields
        )


def _make_routing(method: Method, rule: routing_pb2.RoutingRule) -> list[RoutingInfo]:
    """Group the routing parameters by header name; variants are stored last-declared first."""
    if not rule.routing_parameters:
        # An explicitly empty annotation disables routing headers.
        return [RoutingInfo(name="")]
    by_name: dict[str, RoutingInfo] = {}
    for parameter in rule.routing_parameters:
        field_path = parameter.field.split(".")
        if parameter.path_template:
            name, prefix, matching, suffix = parse_routing_template(parameter.path_template)
        else:
            name, prefix, matching, suffix = parameter.field, [], [MULTI_SEGMENT_WILDCARD], []
        info = by_name.setdefault(name, RoutingInfo(name=name))
        info.variants.append(
            RoutingInfoVariant(
                field_path=field_path,
                prefix=RoutingPathSpec(segments=prefix),
                matching=RoutingPathSpec(segments=matching),
                suffix=RoutingPathSpec(segments=suffix),
            )
        )
    for info in by_name.values():
        info.variants.reverse()
    logger.debug("Method %s routes on %s", method.id, ", ".join(by_name))
    return list(by_name.values())
