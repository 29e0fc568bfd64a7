"""Tests for HandlerDescriptor normalization and self-validation."""

from __future__ import annotations

import pytest

from skillweave.registry.descriptor import OPEN_OBJECT_SCHEMA, HandlerDescriptor, HandlerKind


class TestHandlerKind:
    @pytest.mark.parametrize("value", ["skill", "SKILL", " Skill ", HandlerKind.SKILL])
    def test_parse(self, value):
        assert HandlerKind.parse(value) is HandlerKind.SKILL

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="unknown handler kind"):
            HandlerKind.parse("tool")


class TestHandlerDescriptor:
    def test_normalizes_loose_inputs(self):
        descriptor = HandlerDescriptor(
            id="adr-drafter",
            kind="agent",
            capability_tags=["adr", "drafting"],
            target_processes=["architecture-review"],
            related_handlers=["adr-reviewer"],
        )
        assert descriptor.kind is HandlerKind.AGENT
        assert descriptor.capability_tags == frozenset({"adr", "drafting"})
        assert descriptor.target_processes == frozenset({"architecture-review"})
        assert descriptor.related_handlers == ("adr-reviewer",)
        assert descriptor.input_schema == OPEN_OBJECT_SCHEMA

    def test_hashable(self, make_descriptor):
        descriptor = make_descriptor("a", "x")
        assert {descriptor: 1}[descriptor] == 1

    def test_has_capabilities(self, make_descriptor):
        descriptor = make_descriptor("a", "adr", "drafting")
        assert descriptor.has_capabilities(["adr"])
        assert descriptor.has_capabilities(["adr", "drafting"])
        assert not descriptor.has_capabilities(["adr", "review"])

    def test_valid_descriptor_has_no_problems(self, make_descriptor, value_schema):
        assert make_descriptor("a", "x", output_schema=value_schema).problems() == []

    def test_problems(self):
        descriptor = HandlerDescriptor(
            id=" ",
            kind="skill",
            capability_tags=frozenset(),
            input_schema={"type": "blob"},
        )
        problems = descriptor.problems()
        assert "id must be a non-empty string" in problems
        assert "capability_tags must not be empty" in problems
        assert "input_schema $: unknown type 'blob'" in problems

    def test_blank_tag(self):
        descriptor = HandlerDescriptor(id="a", kind="skill", capability_tags={"ok", " "})
        assert descriptor.problems() == ["capability tags must be non-empty strings"]

    def test_self_relation(self):
        descriptor = HandlerDescriptor(
            id="a", kind="skill", capability_tags={"x"}, related_handlers=("a",)
        )
        assert descriptor.problems() == ["a handler cannot list itself as related"]

    def test_dict_round_trip(self, make_descriptor, value_schema):
        descriptor = make_descriptor(
            "adr-drafter",
            "drafting",
            "adr",
            kind="agent",
            output_schema=value_schema,
            target_processes=frozenset({"p"}),
            name="ADR Drafter",
            metadata={"domain": "architecture"},
        )
        data = descriptor.to_dict()
        assert data["capability_tags"] == ["adr", "drafting"]
        assert data["kind"] == "agent"
        restored = HandlerDescriptor.from_dict(data)
        assert restored == descriptor
