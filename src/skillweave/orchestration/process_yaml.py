"""Pydantic models for Process YAML documents.

Process authors can declare processes in YAML instead of Python.  The
document is validated with pydantic, converted into the same
:class:`ProcessDefinition` code-first authors build, and structurally
checked with :func:`plan_process`.

Usage::

    from skillweave.orchestration.process_yaml import load_process_yaml

    definition = load_process_yaml("processes/adr-flow.yaml")

Example YAML::

    apiVersion: skillweave.io/v1
    kind: Process
    metadata:
      name: adr-flow
      description: Draft and review an architecture decision record
    spec:
      defaults:
        timeout_seconds: 120
        max_retries: 1
      steps:
        - id: draft
          capabilities: [adr, drafting]
          kind: skill
          context:
            title: ${input.title}
        - id: review
          handler: adr-reviewer
          context:
            adr: ${draft.adr}
          on_failure: skip

Tags:
    skillweave, orchestration, yaml, declarative

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from skillweave.orchestration.planner import plan_process
from skillweave.orchestration.process import (
    FailurePolicy,
    ProcessDefaults,
    ProcessDefinition,
    StepSpec,
)
from skillweave.registry.descriptor import HandlerKind
from skillweave.registry.resolver import HandlerRequest

API_VERSION = "skillweave.io/v1"


class ProcessMetadataSpec(BaseModel):
    """Metadata section of a process document."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, description="Unique process id")
    description: str = Field(default="", description="Human-readable description")
    labels: dict[str, str] = Field(default_factory=dict, description="Free-form labels")


class ProcessDefaultsSpec(BaseModel):
    """Defaults inherited by every step."""

    model_config = ConfigDict(extra="forbid")

    timeout_seconds: float | None = Field(default=None, gt=0)
    max_retries: int | None = Field(default=None, ge=0)
    max_in_flight: int | None = Field(default=None, ge=1)

    def to_defaults(self) -> ProcessDefaults:
        return ProcessDefaults(
            timeout_seconds=self.timeout_seconds,
            max_retries=self.max_retries,
            max_in_flight=self.max_in_flight,
        )


class ProcessStepSpec(BaseModel):
    """One step; exactly one of ``handler`` or ``capabilities`` is required."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="Unique step id within the process")
    description: str = Field(default="")
    handler: str | None = Field(default=None, description="Concrete handler id")
    capabilities: list[str] = Field(default_factory=list, description="Capability query tags")
    kind: HandlerKind | None = Field(default=None, description="Preferred kind for capability queries")
    context: Any = Field(default=None, description="Context template (None = initial context)")
    depends_on: list[str] = Field(default_factory=list, description="Completion dependencies")
    on_failure: FailurePolicy = Field(default=FailurePolicy.ABORT)
    timeout_seconds: float | None = Field(default=None, gt=0)
    max_retries: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def validate_request(self) -> ProcessStepSpec:
        if bool(self.handler) == bool(self.capabilities):
            raise ValueError(
                f"Step '{self.id}' must set exactly one of 'handler' or 'capabilities'"
            )
        if self.kind is not None and self.handler:
            raise ValueError(f"Step '{self.id}': 'kind' only applies to capability queries")
        return self

    def to_step(self) -> StepSpec:
        if self.handler:
            request = HandlerRequest.by_id(self.handler)
        else:
            request = HandlerRequest.by_capability(*self.capabilities, kind=self.kind)
        return StepSpec(
            step_id=self.id,
            request=request,
            context_template=self.context,
            depends_on=tuple(self.depends_on),
            on_failure=self.on_failure,
            timeout_seconds=self.timeout_seconds,
            max_retries=self.max_retries,
            description=self.description,
        )

    @classmethod
    def from_step(cls, step: StepSpec) -> ProcessStepSpec:
        request = step.request
        return cls(
            id=step.step_id,
            description=step.description,
            handler=request.handler_id,
            capabilities=sorted(request.tags),
            kind=request.kind,
            context=step.context_template,
            depends_on=list(step.depends_on),
            on_failure=step.on_failure,
            timeout_seconds=step.timeout_seconds,
            max_retries=step.max_retries,
        )


class ProcessSpecSection(BaseModel):
    """The 'spec' section containing defaults and steps."""

    model_config = ConfigDict(extra="forbid")

    defaults: ProcessDefaultsSpec = Field(default_factory=ProcessDefaultsSpec)
    steps: list[ProcessStepSpec] = Field(..., min_length=1)


class ProcessSpec(BaseModel):
    """Root model of a Process YAML document."""

    model_config = ConfigDict(extra="forbid")

    apiVersion: Literal["skillweave.io/v1"] = Field(default=API_VERSION)
    kind: Literal["Process"] = Field(default="Process")
    metadata: ProcessMetadataSpec
    spec: ProcessSpecSection

    def to_definition(self) -> ProcessDefinition:
        """Convert to a :class:`ProcessDefinition` (structure not yet checked)."""
        return ProcessDefinition(
            id=self.metadata.name,
            steps=tuple(step.to_step() for step in self.spec.steps),
            description=self.metadata.description,
            defaults=self.spec.defaults.to_defaults(),
            metadata=dict(self.metadata.labels),
        )

    @classmethod
    def from_definition(cls, definition: ProcessDefinition) -> ProcessSpec:
        defaults = definition.defaults
        return cls(
            metadata=ProcessMetadataSpec(
                name=definition.id,
                description=definition.description,
                labels={str(k): str(v) for k, v in definition.metadata.items()},
            ),
            spec=ProcessSpecSection(
                defaults=ProcessDefaultsSpec(
                    timeout_seconds=defaults.timeout_seconds,
                    max_retries=defaults.max_retries,
                    max_in_flight=defaults.max_in_flight,
                ),
                steps=[ProcessStepSpec.from_step(step) for step in definition.steps],
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_content: str) -> ProcessSpec:
        """Parse and validate YAML content.

        Raises:
            ValueError: Invalid YAML.
            pydantic.ValidationError: Document does not match the schema.
        """
        try:
            data = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}") from e
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> ProcessSpec:
        return cls.from_yaml(Path(path).read_text(encoding="utf-8"))

    def to_yaml(self) -> str:
        data = self.model_dump(mode="json", exclude_none=True, exclude_defaults=False)
        return yaml.safe_dump(data, sort_keys=False)


def _looks_like_path(source: str | Path) -> bool:
    if isinstance(source, Path):
        return True
    return "\n" not in source and Path(source).suffix in (".yaml", ".yml")


def load_process_yaml(source: str | Path) -> ProcessDefinition:
    """Load a process from YAML text or a ``.yaml``/``.yml`` file.

    The definition is structurally validated before it is returned.

    Raises:
        ValueError: Invalid YAML.
        pydantic.ValidationError: Schema violations.
        ProcessStructureError: Cycles, unknown or forward references, duplicates.
    """
    if _looks_like_path(source):
        spec = ProcessSpec.from_yaml_file(source)
    else:
        spec = ProcessSpec.from_yaml(str(source))
    definition = spec.to_definition()
    plan_process(definition)
    return definition


def dump_process_yaml(definition: ProcessDefinition) -> str:
    """Serialize a definition back into a Process YAML document."""
    return ProcessSpec.from_definition(definition).to_yaml()


__all__ = [
    "API_VERSION",
    "ProcessSpec",
    "ProcessSpecSection",
    "ProcessStepSpec",
    "ProcessDefaultsSpec",
    "ProcessMetadataSpec",
    "load_process_yaml",
    "dump_process_yaml",
]
