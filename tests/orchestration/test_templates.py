"""Tests for ${step.path} references and tree-walk substitution."""

from __future__ import annotations

import pytest

from skillweave.orchestration.templates import (
    ABSENT,
    TemplateRef,
    find_references,
    parse_reference,
    referenced_steps,
    substitute,
    walk_path,
)


class TestParseReference:
    @pytest.mark.parametrize(
        "text, step_id, path",
        [
            ("${input}", "input", ()),
            ("${input.title}", "input", ("title",)),
            ("${draft}", "draft", ()),
            ("${draft.sections[0].heading}", "draft", ("sections", 0, "heading")),
            ("${review.comments.2}", "review", ("comments", 2)),
            ("${ draft.text }", "draft", ("text",)),
            ("${adr-drafter.result}", "adr-drafter", ("result",)),
        ],
    )
    def test_references(self, text, step_id, path):
        ref = parse_reference(text)
        assert ref is not None
        assert ref.step_id == step_id
        assert ref.path == path

    @pytest.mark.parametrize(
        "value",
        [
            "draft.text",
            "Title: ${input.title}",
            "${draft.text} and more",
            "${}",
            "${draft..text}",
            "${[0]}",
            42,
            None,
            {"ref": "${draft}"},
        ],
    )
    def test_not_references(self, value):
        assert parse_reference(value) is None

    def test_is_input(self):
        assert parse_reference("${input.title}").is_input
        assert not parse_reference("${draft}").is_input

    def test_str(self):
        assert str(parse_reference("${draft.sections[0]}")) == "draft.sections[0]"


class TestFindReferences:
    def test_nested_first_seen_order_without_duplicates(self):
        template = {
            "title": "${input.title}",
            "body": {"text": "${draft.text}", "again": "${draft.text}"},
            "notes": ["${lint.findings}", "plain", 3],
        }
        refs = find_references(template)
        assert [str(r) for r in refs] == ["input.title", "draft.text", "lint.findings"]

    def test_referenced_steps_excludes_input(self):
        template = {"a": "${input.x}", "b": "${draft.y}", "c": "${draft.z}", "d": ["${lint}"]}
        assert referenced_steps(template) == ["draft", "lint"]

    def test_no_references(self):
        assert find_references({"mode": "strict", "n": [1, 2]}) == []


class TestWalkPath:
    DATA = {"sections": [{"heading": "Context"}, {"heading": "Decision"}], "count": 2}

    def test_walk(self):
        assert walk_path(self.DATA, ("sections", 1, "heading")) == "Decision"
        assert walk_path(self.DATA, ()) is self.DATA

    @pytest.mark.parametrize(
        "path",
        [("missing",), ("sections", 5), ("count", "x"), ("sections", "heading")],
    )
    def test_absent(self, path):
        assert walk_path(self.DATA, path) is ABSENT

    def test_numeric_key_in_mapping(self):
        assert walk_path({"2": "two"}, (2,)) == "two"

    def test_absent_is_falsy_singleton(self):
        assert not ABSENT
        assert repr(ABSENT) == "ABSENT"
        assert type(ABSENT)() is ABSENT


class TestSubstitute:
    def test_types_are_preserved(self):
        values = {"draft.count": 3, "draft.tags": ["a", "b"], "input.flag": False}

        def resolve(ref: TemplateRef):
            return values[str(ref)]

        result = substitute(
            {"n": "${draft.count}", "tags": "${draft.tags}", "flag": "${input.flag}", "k": "v"},
            resolve,
        )
        assert result == {"n": 3, "tags": ["a", "b"], "flag": False, "k": "v"}

    def test_template_is_not_mutated(self):
        template = {"a": ["${x}"], "b": {"c": "${x}"}}
        substitute(template, lambda ref: 1)
        assert template == {"a": ["${x}"], "b": {"c": "${x}"}}

    def test_absent_drops_members_and_nulls_items(self):
        result = substitute(
            {"keep": "${x}", "drop": "${gone}", "list": ["${gone}", "${x}"]},
            lambda ref: ABSENT if ref.step_id == "gone" else "v",
        )
        assert result == {"keep": "v", "list": [None, "v"]}

    def test_errors_propagate(self):
        def resolve(ref):
            raise KeyError(ref.step_id)

        with pytest.raises(KeyError):
            substitute({"a": "${missing}"}, resolve)

    def test_scalar_template(self):
        assert substitute("${x}", lambda ref: {"whole": True}) == {"whole": True}
        assert substitute(7, lambda ref: None) == 7
