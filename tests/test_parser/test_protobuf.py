"""Tests for specmodel.parser.protobuf.

The descriptor sets are built in code so the tests do not need ``protoc``.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from google.api import annotations_pb2, client_pb2, field_behavior_pb2, field_info_pb2, routing_pb2
from google.longrunning import operations_proto_pb2
from google.protobuf import descriptor_pb2

from specmodel.api.model import FieldBehavior, RoutingInfo, Typez
from specmodel.api.validate import validate
from specmodel.api.xref import cross_reference
from specmodel.exceptions import SpecParseError, SpecReadError
from specmodel.models import MethodSettings, Publishing, ServiceApi, ServiceConfig
from specmodel.parser.protobuf import compile_descriptor_set, load_descriptor_set, new_api

F = descriptor_pb2.FieldDescriptorProto


def _field(message, name: str, number: int, type_=F.TYPE_STRING, type_name: str = "", repeated: bool = False):
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = type_
    field.label = F.LABEL_REPEATED if repeated else F.LABEL_OPTIONAL
    if type_name:
        field.type_name = type_name
    return field


def _method(service, name: str, input_type: str, output_type: str):
    method = service.method.add()
    method.name = name
    method.input_type = input_type
    method.output_type = output_type
    return method


def _operations_file() -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(
        name="google/longrunning/operations.proto", package="google.longrunning", syntax="proto3"
    )
    _field(file.message_type.add(name="Operation"), "name", 1)
    return file


def _secrets_file() -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(
        name="test/v1/secrets.proto", package="test.v1", syntax="proto3"
    )

    # message Secret
    secret = file.message_type.add(name="Secret")
    name = _field(secret, "name", 1)
    name.options.Extensions[field_behavior_pb2.field_behavior].append(field_behavior_pb2.IDENTIFIER)
    entry = secret.nested_type.add(name="LabelsEntry")
    entry.options.map_entry = True
    _field(entry, "key", 1)
    _field(entry, "value", 2)
    _field(secret, "labels", 2, F.TYPE_MESSAGE, ".test.v1.Secret.LabelsEntry", repeated=True)
    secret.oneof_decl.add(name="expiration")
    expire = _field(secret, "expire_time", 3, F.TYPE_MESSAGE, ".google.protobuf.Timestamp")
    expire.oneof_index = 0
    ttl = _field(secret, "ttl", 4, F.TYPE_MESSAGE, ".google.protobuf.Duration")
    ttl.oneof_index = 0
    secret.oneof_decl.add(name="_etag")
    etag = _field(secret, "etag", 5)
    etag.oneof_index = 1
    etag.proto3_optional = True
    state = secret.enum_type.add(name="State")
    state.options.allow_alias = True
    state.value.add(name="STATE_UNSPECIFIED", number=0)
    state.value.add(name="ENABLED", number=1)
    state.value.add(name="ACTIVE", number=1)
    _field(secret, "state", 6, F.TYPE_ENUM, ".test.v1.Secret.State")
    old = _field(secret, "legacy", 7)
    old.options.deprecated = True

    # Requests and responses
    get_request = file.message_type.add(name="GetSecretRequest")
    get_name = _field(get_request, "name", 1)
    get_name.options.Extensions[field_behavior_pb2.field_behavior].append(field_behavior_pb2.REQUIRED)

    list_request = file.message_type.add(name="ListSecretsRequest")
    _field(list_request, "parent", 1)
    _field(list_request, "page_size", 2, F.TYPE_INT32)
    page_token = _field(list_request, "page_token", 3)
    page_token.json_name = "pageToken"

    list_response = file.message_type.add(name="ListSecretsResponse")
    _field(list_response, "secrets", 1, F.TYPE_MESSAGE, ".test.v1.Secret", repeated=True)
    _field(list_response, "next_page_token", 2)

    create_request = file.message_type.add(name="CreateSecretRequest")
    _field(create_request, "parent", 1)
    _field(create_request, "secret", 2, F.TYPE_MESSAGE, ".test.v1.Secret")
    request_id = _field(create_request, "request_id", 3)
    request_id.options.Extensions[field_info_pb2.field_info].format = field_info_pb2.FieldInfo.UUID4

    top_enum = file.enum_type.add(name="Visibility")
    top_enum.value.add(name="VISIBILITY_UNSPECIFIED", number=0)

    # service SecretService
    service = file.service.add(name="SecretService")
    service.options.Extensions[client_pb2.default_host] = "secrets.example.com"

    get = _method(service, "GetSecret", ".test.v1.GetSecretRequest", ".test.v1.Secret")
    http = get.options.Extensions[annotations_pb2.http]
    http.get = "/v1/{name=projects/*/secrets/*}"
    http.additional_bindings.add().get = "/v1/{name=projects/*/locations/*/secrets/*}"
    routing = get.options.Extensions[routing_pb2.routing]
    for field_name, template in (
        ("name", "{project=projects/*}/**"),
        ("name", "projects/*/{location=locations/*}/**"),
        ("name", "{project=projects/*}/locations/*/**"),
        ("name", ""),
    ):
        parameter = routing.routing_parameters.add()
        parameter.field = field_name
        parameter.path_template = template

    list_method = _method(service, "ListSecrets", ".test.v1.ListSecretsRequest", ".test.v1.ListSecretsResponse")
    list_method.options.Extensions[annotations_pb2.http].get = "/v1/{parent=projects/*}/secrets"

    create = _method(service, "CreateSecret", ".test.v1.CreateSecretRequest", ".google.longrunning.Operation")
    create_http = create.options.Extensions[annotations_pb2.http]
    create_http.post = "/v1/{parent=projects/*}/secrets"
    create_http.body = "secret"
    create.options.Extensions[operations_proto_pb2.operation_info].response_type = "Secret"
    create.options.Extensions[routing_pb2.routing].SetInParent()

    delete = _method(service, "DeleteSecret", ".test.v1.GetSecretRequest", ".google.protobuf.Empty")
    custom = delete.options.Extensions[annotations_pb2.http].custom
    custom.kind = "PURGE"
    custom.path = "/v1/{name=projects/*/secrets/*}:purge"
    delete.options.deprecated = True

    watch = _method(service, "WatchSecrets", ".test.v1.ListSecretsRequest", ".test.v1.ListSecretsResponse")
    watch.server_streaming = True

    # Comments: message 0, field 0 of message 0, service 0, method 0.
    for path, text in (
        ([4, 0], " A secret value.\n"),
        ([4, 0, 2, 0], " The resource name.\n"),
        ([6, 0], " Manages secrets.\n"),
        ([6, 0, 2, 0], " Gets a secret.\n Second line.\n"),
        ([4, 0, 4, 0, 2, 1], " Enabled.\n"),
    ):
        location = file.source_code_info.location.add()
        location.path.extend(path)
        location.leading_comments = text
    return file


@pytest.fixture
def descriptor_set() -> descriptor_pb2.FileDescriptorSet:
    return descriptor_pb2.FileDescriptorSet(file=[_operations_file(), _secrets_file()])


@pytest.fixture
def service_config() -> ServiceConfig:
    return ServiceConfig(
        name="secrets.example.com",
        title="Secrets API",
        apis=[ServiceApi(name="google.longrunning.Operations"), ServiceApi(name="test.v1.SecretService")],
        publishing=Publishing(
            method_settings=[
                MethodSettings(
                    selector="test.v1.SecretService.CreateSecret",
                    auto_populated_fields=["request_id", "parent"],
                )
            ]
        ),
    )


@pytest.fixture
def model(descriptor_set):
    api = new_api(None, descriptor_set)
    cross_reference(api)
    validate(api)
    return api


def _method_by_name(model, name: str):
    return model.state.method_by_id[f".test.v1.SecretService.{name}"]


# ---------------------------------------------------------------------------
# Files and packages
# ---------------------------------------------------------------------------


class TestModelShape:
    def test_package_and_name(self, model) -> None:
        assert model.package_name == "test.v1"
        assert model.name == "test"

    def test_owned_elements(self, model) -> None:
        assert [m.name for m in model.messages] == [
            "Secret",
            "GetSecretRequest",
            "ListSecretsRequest",
            "ListSecretsResponse",
            "CreateSecretRequest",
        ]
        assert [e.name for e in model.enums] == ["Visibility"]
        assert [s.id for s in model.services] == [".test.v1.SecretService"]

    def test_imported_messages_are_indexed_only(self, model) -> None:
        assert ".google.longrunning.Operation" in model.state.message_by_id
        assert ".google.longrunning.Operation" not in [m.id for m in model.messages]

    def test_service_config_overrides(self, descriptor_set, service_config) -> None:
        api = new_api(service_config, descriptor_set)
        assert api.package_name == "test.v1"
        assert api.name == "secrets.example.com"
        assert api.title == "Secrets API"

    def test_explicit_files_to_generate(self, descriptor_set) -> None:
        api = new_api(None, descriptor_set, files_to_generate=["google/longrunning/operations.proto"])
        assert api.package_name == "google.longrunning"
        assert [m.name for m in api.messages] == ["Operation"]
        assert api.services == []

    def test_comments(self, model) -> None:
        secret = model.messages[0]
        assert secret.documentation == "A secret value."
        assert secret.fields[0].documentation == "The resource name."
        assert model.services[0].documentation == "Manages secrets."
        assert _method_by_name(model, "GetSecret").documentation == "Gets a secret.\nSecond line."
        assert secret.enums[0].values[1].documentation == "Enabled."


# ---------------------------------------------------------------------------
# Messages and fields
# ---------------------------------------------------------------------------


class TestMessages:
    def test_field_types_and_behavior(self, model) -> None:
        secret = model.state.message_by_id[".test.v1.Secret"]
        fields = {f.name: f for f in secret.fields}
        assert fields["name"].typez == Typez.STRING_TYPE
        assert fields["name"].behavior == [FieldBehavior.FIELD_BEHAVIOR_IDENTIFIER]
        assert fields["state"].typez == Typez.ENUM_TYPE
        assert fields["state"].typez_id == ".test.v1.Secret.State"
        assert fields["legacy"].deprecated
        assert secret.has_deprecated_entities()

    def test_map_field(self, model) -> None:
        secret = model.state.message_by_id[".test.v1.Secret"]
        labels = next(f for f in secret.fields if f.name == "labels")
        assert labels.map
        assert not labels.repeated
        assert secret.messages[0].is_map

    def test_oneof_and_proto3_optional(self, model) -> None:
        secret = model.state.message_by_id[".test.v1.Secret"]
        assert [g.name for g in secret.one_ofs] == ["expiration"]
        group = secret.one_ofs[0]
        assert group.id == ".test.v1.Secret.expiration"
        assert [f.name for f in group.fields] == ["expire_time", "ttl"]
        assert all(f.is_one_of and f.group is group for f in group.fields)
        etag = next(f for f in secret.fields if f.name == "etag")
        assert etag.optional
        assert not etag.is_one_of
        assert etag.group is None

    def test_enum_aliases(self, model) -> None:
        state = model.state.enum_by_id[".test.v1.Secret.State"]
        assert [v.name for v in state.values] == ["STATE_UNSPECIFIED", "ENABLED", "ACTIVE"]
        assert [v.name for v in state.unique_number_values] == ["STATE_UNSPECIFIED", "ENABLED"]
        assert state.parent is model.messages[0]

    def test_json_name(self, model) -> None:
        request = model.state.message_by_id[".test.v1.ListSecretsRequest"]
        page_token = next(f for f in request.fields if f.name == "page_token")
        assert page_token.json_name == "pageToken"
        assert not page_token.name_equal_json_name()


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------


class TestMethods:
    def test_default_host(self, model) -> None:
        assert model.services[0].default_host == "secrets.example.com"

    def test_http_bindings(self, model) -> None:
        method = _method_by_name(model, "GetSecret")
        assert method.path_info is not None
        assert [b.verb for b in method.path_info.bindings] == ["GET", "GET"]
        assert [str(b.path_template) for b in method.path_info.bindings] == [
            "/v1/{name=projects/*/secrets/*}",
            "/v1/{name=projects/*/locations/*/secrets/*}",
        ]
        assert method.path_info.bindings[0].query_parameters == set()
        assert method.input_type.name == "GetSecretRequest"

    def test_query_parameters_exclude_path_and_body(self, model) -> None:
        list_method = _method_by_name(model, "ListSecrets")
        assert list_method.path_info.bindings[0].query_parameters == {"page_size", "page_token"}
        create = _method_by_name(model, "CreateSecret")
        assert create.path_info.body_field_path == "secret"
        assert create.path_info.bindings[0].verb == "POST"
        assert create.path_info.bindings[0].query_parameters == {"request_id"}

    def test_custom_verb(self, model) -> None:
        delete = _method_by_name(model, "DeleteSecret")
        binding = delete.path_info.bindings[0]
        assert binding.verb == "PURGE"
        assert binding.path_template.verb == "purge"
        assert delete.returns_empty
        assert model.services[0].has_deprecated_entities()

    def test_streaming_without_http(self, model) -> None:
        watch = _method_by_name(model, "WatchSecrets")
        assert watch.server_side_streaming
        assert not watch.client_side_streaming
        assert watch.path_info is None
        assert watch.pagination is None

    def test_pagination(self, model) -> None:
        list_method = _method_by_name(model, "ListSecrets")
        assert list_method.pagination.name == "page_token"
        response = model.state.message_by_id[".test.v1.ListSecretsResponse"]
        assert response.pagination.pageable_item.name == "secrets"

    def test_operation_info(self, model) -> None:
        create = _method_by_name(model, "CreateSecret")
        assert create.operation_info is not None
        assert create.operation_info.response_type_id == ".test.v1.Secret"
        assert create.operation_info.metadata_type_id == ".google.protobuf.Empty"
        assert create.operation_info.method is create


class TestRouting:
    def test_variants_grouped_and_reversed(self, model) -> None:
        routing = _method_by_name(model, "GetSecret").routing
        assert [info.name for info in routing] == ["project", "location", "name"]
        project = routing[0]
        assert [v.template_as_string() for v in project.variants] == [
            "projects/*/locations/*/**",
            "projects/*/**",
        ]
        location = routing[1].variants[0]
        assert location.prefix.segments == ["projects", "*"]
        assert location.matching.segments == ["locations", "*"]
        assert location.suffix.segments == ["**"]
        whole = routing[2].variants[0]
        assert whole.field_name() == "name"
        assert whole.matching.segments == ["**"]
        assert len(_method_by_name(model, "GetSecret").routing_combos()) == 2

    def test_empty_annotation(self, model) -> None:
        assert _method_by_name(model, "CreateSecret").routing == [RoutingInfo(name="")]

    def test_no_annotation(self, model) -> None:
        assert _method_by_name(model, "ListSecrets").routing == []


class TestAutoPopulated:
    def test_uuid4_field_from_publishing_settings(self, descriptor_set, service_config) -> None:
        api = new_api(service_config, descriptor_set)
        create = api.state.method_by_id[".test.v1.SecretService.CreateSecret"]
        assert [f.name for f in create.auto_populated] == ["request_id"]
        assert create.has_auto_populated_fields()
        parent = next(f for f in api.messages[4].fields if f.name == "parent")
        assert not parent.auto_populated

    def test_without_service_config(self, model) -> None:
        create = _method_by_name(model, "CreateSecret")
        assert create.auto_populated == []


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_same_descriptors_same_model(self, descriptor_set, service_config) -> None:
        def build():
            api = new_api(service_config, load_descriptor_set(descriptor_set.SerializeToString()))
            cross_reference(api)
            return api

        first, second = build(), build()
        assert first == second
        assert first is not second
        assert first.messages[0] is not second.messages[0]


# ---------------------------------------------------------------------------
# Descriptor set I/O
# ---------------------------------------------------------------------------


class TestDescriptorSetIO:
    def test_load_round_trip(self, descriptor_set) -> None:
        decoded = load_descriptor_set(descriptor_set.SerializeToString())
        assert [f.name for f in decoded.file] == [f.name for f in descriptor_set.file]

    def test_load_invalid(self) -> None:
        with pytest.raises(SpecParseError, match="FileDescriptorSet"):
            load_descriptor_set(b"\xff\xff\xff")

    def test_compile_missing_source(self, tmp_path: Path) -> None:
        with pytest.raises(SpecReadError, match="No .proto files"):
            compile_descriptor_set("missing/v1", {"googleapis-root": str(tmp_path)})

    def test_compile_runs_protoc(self, tmp_path: Path, descriptor_set) -> None:
        (tmp_path / "test" / "v1").mkdir(parents=True)
        (tmp_path / "test" / "v1" / "secrets.proto").write_text('syntax = "proto3";\n')

        def fake_run(args, **kwargs):
            out = next(a for a in args if a.startswith("--descriptor_set_out="))
            Path(out.split("=", 1)[1]).write_bytes(descriptor_set.SerializeToString())
            assert f"--proto_path={tmp_path}" in args
            assert args[-1] == "test/v1/secrets.proto"

            class Result:
                returncode = 0
                stderr = ""

            return Result()

        with patch("specmodel.parser.protobuf.subprocess.run", side_effect=fake_run):
            decoded = compile_descriptor_set("test/v1", {"googleapis-root": str(tmp_path)})
        assert len(decoded.file) == 2

    def test_compile_failure(self, tmp_path: Path) -> None:
        (tmp_path / "bad.proto").write_text("nonsense")

        class Result:
            returncode = 1
            stderr = "bad.proto:1:1: Expected top-level statement\n"

        with patch("specmodel.parser.protobuf.subprocess.run", return_value=Result()):
            with pytest.raises(SpecParseError, match="Expected top-level statement"):
                compile_descriptor_set("bad.proto", {"googleapis-root": str(tmp_path)})

    def test_protoc_not_installed(self, tmp_path: Path) -> None:
        (tmp_path / "a.proto").write_text('syntax = "proto3";\n')
        with patch("specmodel.parser.protobuf.subprocess.run", side_effect=FileNotFoundError("protoc")):
            with pytest.raises(SpecReadError, match="Cannot run protoc"):
                compile_descriptor_set("a.proto", {"googleapis-root": str(tmp_path)})
