"""Tests for specmodel.api.model."""

from __future__ import annotations

from specmodel.api.model import (
    API,
    Enum,
    EnumValue,
    Field,
    FieldBehavior,
    Message,
    Method,
    RoutingInfo,
    RoutingInfoCombo,
    RoutingInfoComboItem,
    RoutingInfoVariant,
    RoutingPathSpec,
    Service,
    Typez,
)


# ---------------------------------------------------------------------------
# Scopes
# ---------------------------------------------------------------------------


class TestScopes:
    def test_message_scopes(self) -> None:
        parent = Message(name="Parent", id=".test.Parent", package="test")
        child = Message(name="Child", id=".test.Parent.Child", package="test", parent=parent)
        assert parent.scopes() == ["test.Parent", "test"]
        assert child.scopes() == ["test.Parent.Child", "test.Parent", "test"]

    def test_enum_scopes(self) -> None:
        parent = Message(name="Parent", id=".test.Parent", package="test")
        top = Enum(name="Top", id=".test.Top", package="test")
        nested = Enum(name="Nested", id=".test.Parent.Nested", package="test", parent=parent)
        assert top.scopes() == ["test.Top", "test"]
        assert nested.scopes() == ["test.Parent.Nested", "test.Parent", "test"]

    def test_enum_value_uses_enum_scopes(self) -> None:
        enum = Enum(name="Color", id=".test.Color", package="test")
        value = EnumValue(name="RED", id=".test.Color.RED", parent=enum)
        assert value.scopes() == ["test.Color", "test"]

    def test_enum_value_without_parent(self) -> None:
        assert EnumValue(name="RED").scopes() == []

    def test_service_scopes(self) -> None:
        service = Service(name="Service", id=".test.Service", package="test")
        assert service.scopes() == ["test.Service", "test"]


# ---------------------------------------------------------------------------
# Deprecation
# ---------------------------------------------------------------------------


class TestDeprecatedEntities:
    def test_empty_model(self) -> None:
        assert API().has_deprecated_entities() is False

    def test_deprecated_field(self) -> None:
        message = Message(fields=[Field(name="old", deprecated=True)])
        model = API(messages=[message])
        assert message.has_deprecated_entities()
        assert model.has_deprecated_entities()

    def test_deprecated_nested_enum_value(self) -> None:
        enum = Enum(values=[EnumValue(name="A"), EnumValue(name="B", deprecated=True)])
        outer = Message(messages=[Message(enums=[enum])])
        assert API(messages=[outer]).has_deprecated_entities()

    def test_deprecated_method(self) -> None:
        service = Service(methods=[Method(name="Old", deprecated=True)])
        assert service.has_deprecated_entities()
        assert API(services=[service]).has_deprecated_entities()

    def test_deprecated_top_level_enum(self) -> None:
        assert API(enums=[Enum(deprecated=True)]).has_deprecated_entities()


# ---------------------------------------------------------------------------
# Fields
# ---------------------------------------------------------------------------


class TestField:
    def test_document_as_required(self) -> None:
        f = Field(behavior=[FieldBehavior.FIELD_BEHAVIOR_REQUIRED])
        assert f.document_as_required()
        assert not Field(behavior=[FieldBehavior.FIELD_BEHAVIOR_OUTPUT_ONLY]).document_as_required()

    def test_singular(self) -> None:
        assert Field().singular()
        assert not Field(repeated=True).singular()
        assert not Field(map=True).singular()

    def test_name_equal_json_name(self) -> None:
        assert Field(name="parent", json_name="parent").name_equal_json_name()
        assert not Field(name="page_token", json_name="pageToken").name_equal_json_name()

    def test_typez_matches_descriptor_numbering(self) -> None:
        assert Typez.MESSAGE_TYPE == 11
        assert Typez.ENUM_TYPE == 14
        assert Typez.SINT64_TYPE == 18


class TestEquality:
    def test_back_references_are_ignored(self) -> None:
        a = Message(name="M", id=".test.M")
        b = Message(name="M", id=".test.M", parent=Message(name="Other"))
        assert a == b

    def test_repr_terminates_on_cycles(self) -> None:
        parent = Message(name="Parent", id=".test.Parent")
        child = Message(name="Child", id=".test.Parent.Child", parent=parent)
        parent.messages.append(child)
        assert "Child" in repr(parent)


# ---------------------------------------------------------------------------
# Routing combinations
# ---------------------------------------------------------------------------


def _variant(name: str) -> RoutingInfoVariant:
    return RoutingInfoVariant(field_path=[name])


class TestRoutingCombos:
    def test_no_routing(self) -> None:
        method = Method()
        assert method.routing_combos() == [RoutingInfoCombo()]
        assert not method.has_routing()

    def test_cartesian_product(self) -> None:
        va1, va2 = _variant("va1"), _variant("va2")
        vb1, vb2, vb3 = _variant("vb1"), _variant("vb2"), _variant("vb3")
        method = Method(
            routing=[
                RoutingInfo(name="a", variants=[va1, va2]),
                RoutingInfo(name="b", variants=[vb1, vb2, vb3]),
            ]
        )
        combos = method.routing_combos()
        assert len(combos) == 6
        assert combos[0] == RoutingInfoCombo(
            items=[RoutingInfoComboItem("a", va1), RoutingInfoComboItem("b", vb1)]
        )
        assert combos[1].items[1].variant == vb2
        assert combos[3] == RoutingInfoCombo(
            items=[RoutingInfoComboItem("a", va2), RoutingInfoComboItem("b", vb1)]
        )
        assert combos[5].items[0].name == "a"
        assert combos[5].items[1].variant == vb3

    def test_variant_helpers(self) -> None:
        variant = RoutingInfoVariant(
            field_path=["request", "name"],
            prefix=RoutingPathSpec(["projects", "*"]),
            matching=RoutingPathSpec(["instances", "*"]),
            suffix=RoutingPathSpec(["**"]),
        )
        assert variant.field_name() == "request.name"
        assert variant.template_as_string() == "projects/*/instances/*/**"


class TestHelpers:
    def test_has_messages(self) -> None:
        assert not API().has_messages()
        assert API(messages=[Message()]).has_messages()

    def test_has_fields(self) -> None:
        assert not Message().has_fields()
        assert Message(fields=[Field()]).has_fields()

    def test_auto_populated_fields(self) -> None:
        assert not Method().has_auto_populated_fields()
        assert Method(auto_populated=[Field(name="request_id")]).has_auto_populated_fields()
