"""
skillweave orchestration — processes, runs and their results.

MODULE MAP
──────────
1. process.py       ─ ProcessDefinition, StepSpec, FailurePolicy
2. templates.py     ─ ${step.path} references, tree-walk substitution
3. context.py       ─ ExecutionContext (append-only, per run)
4. planner.py       ─ structural validation + topological levels
5. step_result.py   ─ StepResult, ProcessResult, statuses
6. executor.py      ─ ProcessExecutor, RunHandle
7. snapshots.py     ─ SnapshotSink, InMemorySnapshotSink, JsonlSnapshotSink
8. process_yaml.py  ─ Process YAML documents (pydantic)
"""

from skillweave.orchestration.context import ExecutionContext
from skillweave.orchestration.executor import ProcessExecutor, RunHandle, StepState
from skillweave.orchestration.planner import ProcessPlan, plan_process, resolution_report
from skillweave.orchestration.process import (
    FailurePolicy,
    HandlerRequest,
    ProcessDefaults,
    ProcessDefinition,
    StepSpec,
)
from skillweave.orchestration.process_yaml import (
    ProcessSpec,
    dump_process_yaml,
    load_process_yaml,
)
from skillweave.orchestration.snapshots import (
    InMemorySnapshotSink,
    JsonlSnapshotSink,
    SnapshotSink,
)
from skillweave.orchestration.step_result import (
    ProcessResult,
    RunStatus,
    StepError,
    StepResult,
    StepStatus,
)
from skillweave.orchestration.templates import (
    ABSENT,
    TemplateRef,
    find_references,
    parse_reference,
    substitute,
)

__all__ = [
    "ExecutionContext",
    "ProcessExecutor",
    "RunHandle",
    "StepState",
    "ProcessPlan",
    "plan_process",
    "resolution_report",
    "FailurePolicy",
    "HandlerRequest",
    "ProcessDefaults",
    "ProcessDefinition",
    "StepSpec",
    "ProcessSpec",
    "dump_process_yaml",
    "load_process_yaml",
    "InMemorySnapshotSink",
    "JsonlSnapshotSink",
    "SnapshotSink",
    "ProcessResult",
    "RunStatus",
    "StepError",
    "StepResult",
    "StepStatus",
    "ABSENT",
    "TemplateRef",
    "find_references",
    "parse_reference",
    "substitute",
]
