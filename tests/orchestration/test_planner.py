"""Tests for structural validation and planning of process definitions."""

from __future__ import annotations

import pytest

from skillweave.core.errors import (
    CyclicDependencyError,
    DuplicateStepError,
    ForwardStepReferenceError,
    ProcessStructureError,
    UnknownStepReferenceError,
)
from skillweave.orchestration.planner import plan_process, resolution_report
from skillweave.orchestration.process import (
    FailurePolicy,
    ProcessDefaults,
    ProcessDefinition,
    StepSpec,
)
from skillweave.registry.resolver import HandlerRequest, Resolver


def _step(step_id: str, context=None, depends_on=(), **kwargs) -> StepSpec:
    return StepSpec(
        step_id,
        HandlerRequest.by_id(step_id),
        context_template=context,
        depends_on=depends_on,
        **kwargs,
    )


def _process(*steps: StepSpec, process_id: str = "p") -> ProcessDefinition:
    return ProcessDefinition(id=process_id, steps=steps)


class TestStepSpec:
    def test_dependencies(self):
        step = _step("publish", {"adr": "${review.adr}", "t": "${input.title}"}, depends_on=("lint",))
        assert step.output_dependencies == ["review"]
        assert step.all_dependencies == ["lint", "review"]

    def test_string_depends_on_and_policy_parsing(self):
        step = _step("b", depends_on="a", on_failure="skip")
        assert step.depends_on == ("a",)
        assert step.on_failure is FailurePolicy.SKIP

    def test_no_template_means_no_output_dependencies(self):
        assert _step("a").output_dependencies == []

    def test_to_dict(self):
        step = StepSpec(
            "draft",
            HandlerRequest.by_capability("adr", "drafting", kind="skill"),
            context_template={"t": "${input.title}"},
            on_failure=FailurePolicy.CONTINUE,
            max_retries=1,
        )
        assert step.to_dict() == {
            "id": "draft",
            "capabilities": ["adr", "drafting"],
            "kind": "skill",
            "context": {"t": "${input.title}"},
            "on_failure": "continue",
            "max_retries": 1,
        }


class TestProcessDefinition:
    def test_lookup_helpers(self):
        definition = ProcessDefinition(
            id="p",
            steps=[_step("a"), _step("b")],
            defaults=ProcessDefaults(max_retries=1),
        )
        assert definition.step_ids() == ["a", "b"]
        assert definition.get_step("b").step_id == "b"
        assert definition.get_step("zzz") is None
        assert definition.step_index("b") == 1
        assert definition.to_dict()["defaults"] == {"max_retries": 1}
        with pytest.raises(ValueError):
            definition.step_index("zzz")


class TestPlanProcess:
    def test_linear(self):
        plan = plan_process(
            _process(_step("a"), _step("b", {"x": "${a.value}"}), _step("c", {"x": "${b.value}"}))
        )
        assert plan.order == ("a", "b", "c")
        assert plan.levels == (("a",), ("b",), ("c",))
        assert plan.roots() == ["a"]
        assert plan.descendants("a") == ["b", "c"]

    def test_diamond_levels(self):
        plan = plan_process(
            _process(
                _step("draft"),
                _step("review", {"adr": "${draft.adr}"}),
                _step("lint", {"adr": "${draft.adr}"}),
                _step("publish", {"r": "${review}", "l": "${lint}"}),
            )
        )
        assert plan.levels == (("draft",), ("review", "lint"), ("publish",))
        assert plan.dependents["draft"] == ("review", "lint")
        assert plan.output_dependencies["publish"] == ("review", "lint")

    def test_longest_path_depth(self):
        plan = plan_process(
            _process(_step("a"), _step("b", depends_on=("a",)), _step("c", depends_on=("a", "b")))
        )
        assert plan.levels == (("a",), ("b",), ("c",))

    def test_completion_only_dependency(self):
        plan = plan_process(_process(_step("a"), _step("b", depends_on=("a",))))
        assert plan.dependencies["b"] == ("a",)
        assert plan.output_dependencies["b"] == ()

    def test_explicit_forward_dependency_is_allowed(self):
        plan = plan_process(
            _process(_step("b", {"x": "${a.v}"}, depends_on=("a",)), _step("a"))
        )
        assert plan.order == ("a", "b")

    def test_duplicate(self):
        with pytest.raises(DuplicateStepError):
            plan_process(_process(_step("a"), _step("a")))

    def test_reserved_input_id(self):
        with pytest.raises(ProcessStructureError, match="reserved"):
            plan_process(_process(_step("input")))

    def test_unknown_reference(self):
        with pytest.raises(UnknownStepReferenceError) as exc_info:
            plan_process(_process(_step("a", {"x": "${ghost.v}"}, depends_on=("phantom",))))
        assert exc_info.value.missing == ["ghost", "phantom"]

    def test_self_reference(self):
        with pytest.raises(CyclicDependencyError) as exc_info:
            plan_process(_process(_step("a", {"x": "${a.v}"})))
        assert exc_info.value.cycle == ["a", "a"]

    def test_forward_template_reference(self):
        with pytest.raises(ForwardStepReferenceError) as exc_info:
            plan_process(_process(_step("a", {"x": "${b.v}"}), _step("b")))
        assert exc_info.value.referenced == "b"

    def test_cycle(self):
        definition = _process(
            _step("a", depends_on=("c",)),
            _step("b", {"x": "${a.v}"}),
            _step("c", {"x": "${b.v}"}),
        )
        with pytest.raises(CyclicDependencyError) as exc_info:
            plan_process(definition)
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}

    def test_to_dict(self):
        data = plan_process(_process(_step("a"), _step("b", {"x": "${a}"}))).to_dict()
        assert data["levels"] == [["a"], ["b"]]
        assert data["output_dependencies"] == {"a": [], "b": ["a"]}


class TestResolutionReport:
    def test_report(self, registry, make_descriptor):
        registry.register(make_descriptor("drafter-1", "drafting"))
        registry.register(make_descriptor("drafter-2", "drafting"))
        registry.register(make_descriptor("reviewer", "review"))
        definition = ProcessDefinition(
            id="p",
            steps=[
                StepSpec("draft", HandlerRequest.by_capability("drafting")),
                StepSpec("review", HandlerRequest.by_capability("review")),
                StepSpec("publish", HandlerRequest.by_id("publisher")),
            ],
        )
        report = resolution_report(definition, Resolver(registry))
        assert report["review"] == {"handler_id": "reviewer"}
        assert report["draft"]["error"]["error_type"] == "AmbiguousCapabilityError"
        assert report["draft"]["error"]["candidates"] == ["drafter-1", "drafter-2"]
        assert report["publish"]["error"]["error_type"] == "HandlerNotFoundError"
