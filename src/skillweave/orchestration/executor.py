"""Process Executor — runs a process definition as a dependency-driven DAG.

Manifesto:
    Steps that do not depend on each other should not wait for each
other.  The executor launches every Ready step as its own asyncio task and
is woken whenever one settles, so one slow handler never blocks the rest
of the run.  Failures never escape as bare exceptions: every step ends in
a terminal ``StepResult`` and the run in a ``ProcessResult``.

ARCHITECTURE
────────────
::

    start_run(definition, initial_context) → RunHandle
      │
      ├─ plan_process()          structural errors raised here, nothing runs
      │
      └─ run task ───────────────────────────────────────────────────────
           loop:
             settle unrunnable steps (upstream output missing → SKIPPED)
             admit Ready steps in declaration order (≤ max_in_flight)
             asyncio.wait(step tasks + cancel event, FIRST_COMPLETED)
             settle finished steps per on_failure
           step task:
             render template → resolve handler → invoke (retry w/ backoff)

    Step states    BLOCKED → READY → RUNNING → SUCCEEDED | FAILED | SKIPPED | CANCELLED
    Run states     PENDING → RUNNING → SUCCEEDED | FAILED | CANCELLED

Failure policies::

    ABORT     step FAILED, its unstarted descendants SKIPPED, independent
              branches still run, run FAILED
    SKIP      step SKIPPED (error kept); steps referencing its output are
              SKIPPED; steps that only depend on its completion still run
    CONTINUE  step FAILED with an empty placeholder output; references into
              it resolve to absent and are dropped

Related modules:
    planner.py      — structural validation and levels
    context.py      — append-only output store
    step_result.py  — StepResult / ProcessResult
    ../execution/invocation.py — the guarded handler call

Example::

    executor = ProcessExecutor(registry, implementations)
    handle = executor.start_run(definition, {"title": "Use Postgres"})
    result = await handle.await_result()
    result.status        # RunStatus.SUCCEEDED
    result.outputs       # {"draft": {...}, "review": {...}}

Tags:
    skillweave, orchestration, executor, asyncio, DAG, retries, cancellation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import copy
import uuid
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from skillweave.core.errors import WeaveError
from skillweave.core.logging import LogContext, get_logger
from skillweave.core.settings import WeaveSettings, get_settings
from skillweave.execution.implementations import ImplementationTable
from skillweave.execution.invocation import InvocationBoundary
from skillweave.execution.retry import RetryStrategy, backoff_from_settings
from skillweave.orchestration.context import ExecutionContext
from skillweave.orchestration.planner import ProcessPlan, plan_process
from skillweave.orchestration.process import FailurePolicy, ProcessDefinition, StepSpec
from skillweave.orchestration.snapshots import JsonlSnapshotSink, SnapshotSink
from skillweave.orchestration.step_result import (
    ProcessResult,
    RunStatus,
    StepResult,
    StepStatus,
)
from skillweave.registry.handler_registry import HandlerRegistry
from skillweave.registry.resolver import Resolver

logger = get_logger(__name__)

CANCELLED_REASON = "run cancelled"


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class StepState(str, Enum):
    """Live state of a step inside a run."""

    BLOCKED = "BLOCKED"
    READY = "READY"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


class RunHandle:
    """Handle on a started run: cancel it or await its result."""

    def __init__(self, run: _Run, task: asyncio.Task):
        self._run = run
        self._task = task

    @property
    def run_id(self) -> str:
        return self._run.context.run_id

    @property
    def process_id(self) -> str:
        return self._run.definition.id

    @property
    def status(self) -> RunStatus:
        return self._run.status

    def step_state(self, step_id: str) -> StepState:
        return self._run.states[step_id]

    def cancel(self) -> bool:
        """Request cancellation; False when the run already finished."""
        if self._task.done():
            return False
        self._run.cancel_event.set()
        return True

    @property
    def cancel_requested(self) -> bool:
        return self._run.cancel_event.is_set()

    def done(self) -> bool:
        return self._task.done()

    async def await_result(self) -> ProcessResult:
        return await asyncio.shield(self._task)

    def __repr__(self) -> str:
        return f"RunHandle(run_id={self.run_id!r}, status={self.status.value})"


class _Run:
    """State of one run; owned by a single asyncio task."""

    def __init__(
        self,
        executor: ProcessExecutor,
        definition: ProcessDefinition,
        plan: ProcessPlan,
        context: ExecutionContext,
        max_in_flight: int | None,
    ):
        self.executor = executor
        self.definition = definition
        self.plan = plan
        self.context = context
        self.max_in_flight = max_in_flight
        self.cancel_event = asyncio.Event()
        self.status = RunStatus.PENDING
        self.states: dict[str, StepState] = {s.step_id: StepState.BLOCKED for s in definition.steps}
        self.results: dict[str, StepResult] = {}
        self.attempts: dict[str, int] = {}
        self.handlers: dict[str, str] = {}
        self.started: dict[str, datetime] = {}
        self.aborted_by: str | None = None
        self.stalled = False
        self.sequence = 0
        self.steps = {s.step_id: s for s in definition.steps}

    # ── Main loop ────────────────────────────────────────────────

    async def execute(self) -> ProcessResult:
        started_at = utcnow()
        async with LogContext(run_id=self.context.run_id, process_id=self.definition.id):
            self.status = RunStatus.RUNNING
            logger.info(
                "run.start",
                step_count=len(self.definition.steps),
                max_in_flight=self.max_in_flight,
            )
            pending: dict[asyncio.Task, str] = {}
            try:
                await self._drive(pending)
            except asyncio.CancelledError:
                # Outer task cancelled: treat like a cancel request, then propagate
                self.cancel_event.set()
                await self._cancel_in_flight(pending)
                self._skip_unstarted(CANCELLED_REASON)
                self.status = RunStatus.CANCELLED
                raise

            result = self._finish(started_at)
        return result

    async def _drive(self, pending: dict[asyncio.Task, str]) -> None:
        while True:
            if not self.cancel_event.is_set():
                self._skip_unrunnable()
                for step in self._admit(len(pending)):
                    task = asyncio.create_task(
                        self._execute_step(step), name=f"step:{step.step_id}"
                    )
                    pending[task] = step.step_id
                    self.states[step.step_id] = StepState.RUNNING

            if not pending:
                break

            cancel_waiter = asyncio.ensure_future(self.cancel_event.wait())
            try:
                done, _ = await asyncio.wait(
                    {*pending, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                cancel_waiter.cancel()

            for task in [t for t in done if t in pending]:
                self._settle_task(pending.pop(task), task)

            if self.cancel_event.is_set():
                await self._cancel_in_flight(pending)
                break

        if self.cancel_event.is_set():
            self._skip_unstarted(CANCELLED_REASON)
        elif any(s in (StepState.BLOCKED, StepState.READY) for s in self.states.values()):
            # Nothing in flight and nothing admitted: the run cannot progress
            self.stalled = True
            logger.error("run.stalled")
            self._skip_unstarted("dependencies never settled")

    def _admit(self, in_flight: int) -> list[StepSpec]:
        ready = []
        for step in self.definition.steps:
            if self.states[step.step_id] != StepState.BLOCKED:
                continue
            if all(dep in self.results for dep in self.plan.dependencies[step.step_id]):
                self.states[step.step_id] = StepState.READY
            if self.states[step.step_id] == StepState.READY:
                ready.append(step)
        if self.max_in_flight is not None:
            ready = ready[: max(0, self.max_in_flight - in_flight)]
        return ready

    def _skip_unrunnable(self) -> None:
        """Skip blocked steps whose referenced outputs can never exist."""
        changed = True
        while changed:
            changed = False
            for step in self.definition.steps:
                if self.states[step.step_id] not in (StepState.BLOCKED, StepState.READY):
                    continue
                missing = [
                    dep
                    for dep in self.plan.output_dependencies[step.step_id]
                    if dep in self.results and not self.context.has_output(dep)
                ]
                if missing:
                    self._record(
                        StepResult.skipped(
                            step.step_id, f"output of {', '.join(missing)} unavailable"
                        )
                    )
                    changed = True

    def _skip_unstarted(self, reason: str) -> None:
        for step in self.definition.steps:
            if self.states[step.step_id] in (StepState.BLOCKED, StepState.READY):
                self._record(StepResult.skipped(step.step_id, reason))

    async def _cancel_in_flight(self, pending: dict[asyncio.Task, str]) -> None:
        if not pending:
            return
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task, step_id in list(pending.items()):
            # A task may have finished before it saw the cancellation
            self._settle_task(step_id, task)
        pending.clear()

    # ── Settling ─────────────────────────────────────────────────

    def _settle_task(self, step_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            self._record(
                StepResult.cancelled(
                    step_id,
                    attempts=self.attempts.get(step_id, 0),
                    handler_id=self.handlers.get(step_id),
                    started_at=self.started.get(step_id),
                )
            )
            return
        error = task.exception()
        if error is not None:
            logger.error("step.crashed", step_id=step_id, error=repr(error))
            outcome = StepResult.failed(
                step_id,
                error,
                attempts=self.attempts.get(step_id, 0),
                handler_id=self.handlers.get(step_id),
                started_at=self.started.get(step_id),
            )
        else:
            outcome = task.result()
        self._apply_policy(self.steps[step_id], outcome)

    def _apply_policy(self, step: StepSpec, outcome: StepResult) -> None:
        if outcome.status == StepStatus.SUCCEEDED:
            self.context.record(step.step_id, outcome.output)
            self._record(outcome)
            return

        policy = step.on_failure
        logger.warning(
            "step.failed",
            step_id=step.step_id,
            policy=policy.value,
            error_kind=outcome.error.kind if outcome.error else None,
            attempts=outcome.attempts,
        )
        if policy == FailurePolicy.SKIP:
            self._record(outcome.as_skipped("failed with on_failure=skip"))
        elif policy == FailurePolicy.CONTINUE:
            self.context.record(step.step_id, {}, sentinel=True)
            self._record(outcome)
        else:
            if self.aborted_by is None:
                self.aborted_by = step.step_id
                logger.error("run.aborting", step_id=step.step_id)
            self._record(outcome)
            reason = f"run aborted after step '{step.step_id}' failed"
            for step_id in self.plan.descendants(step.step_id):
                if self.states[step_id] in (StepState.BLOCKED, StepState.READY):
                    self._record(StepResult.skipped(step_id, reason))

    def _record(self, result: StepResult) -> None:
        self.results[result.step_id] = result
        self.states[result.step_id] = StepState(result.status.value)
        self.sequence += 1
        self.executor._write_snapshot(
            {
                "run_id": self.context.run_id,
                "process_id": self.definition.id,
                "sequence": self.sequence,
                **result.to_dict(),
            }
        )

    def _finish(self, started_at: datetime) -> ProcessResult:
        steps = {s.step_id: self.results[s.step_id] for s in self.definition.steps}
        if self.cancel_event.is_set():
            self.status = RunStatus.CANCELLED
        elif self.aborted_by is None and not self.stalled and all(
            r.status in (StepStatus.SUCCEEDED, StepStatus.SKIPPED) for r in steps.values()
        ):
            self.status = RunStatus.SUCCEEDED
        else:
            self.status = RunStatus.FAILED

        completed_at = utcnow()
        failed = [sid for sid, r in steps.items() if r.status == StepStatus.FAILED]
        logger.info(
            "run.complete",
            status=self.status.value,
            duration_seconds=(completed_at - started_at).total_seconds(),
            succeeded=sum(r.status == StepStatus.SUCCEEDED for r in steps.values()),
            failed=len(failed),
            skipped=sum(r.status == StepStatus.SKIPPED for r in steps.values()),
        )
        return ProcessResult(
            run_id=self.context.run_id,
            process_id=self.definition.id,
            status=self.status,
            steps=steps,
            started_at=started_at,
            completed_at=completed_at,
            failed_step=self.aborted_by or (failed[0] if failed else None),
        )

    # ── One step ─────────────────────────────────────────────────

    async def _execute_step(self, step: StepSpec) -> StepResult:
        step_id = step.step_id
        started_at = utcnow()
        self.started[step_id] = started_at
        self.attempts[step_id] = 0

        try:
            if step.context_template is None:
                payload = copy.deepcopy(dict(self.context.initial))
            else:
                payload = self.context.render(step.context_template)
            descriptor = self.executor.resolver.resolve(step.request)
        except WeaveError as e:
            return StepResult.failed(step_id, e.with_context(step_id=step_id), started_at=started_at)

        self.handlers[step_id] = descriptor.id
        strategy = self.executor._strategy_for(step, self.definition)
        timeout = self.executor._timeout_for(step, self.definition)

        while True:
            attempt = self.attempts[step_id] + 1
            self.attempts[step_id] = attempt
            logger.debug("step.start", step_id=step_id, handler_id=descriptor.id, attempt=attempt)
            try:
                invocation = await self.executor.boundary.invoke(
                    descriptor,
                    payload,
                    timeout=timeout,
                    cancel_event=self.cancel_event,
                    attempt=attempt,
                )
            except WeaveError as e:
                e.with_context(step_id=step_id, attempt=attempt)
                if strategy.should_retry(attempt - 1, e):
                    delay = strategy.next_delay(attempt - 1)
                    logger.info(
                        "step.retry",
                        step_id=step_id,
                        attempt=attempt,
                        delay_seconds=round(delay, 3),
                        error=e.message,
                    )
                    await self.executor.sleep(delay)
                    continue
                return StepResult.failed(
                    step_id,
                    e,
                    attempts=attempt,
                    handler_id=descriptor.id,
                    started_at=started_at,
                )

            logger.debug("step.complete", step_id=step_id, handler_id=descriptor.id, attempt=attempt)
            return StepResult.succeeded(
                step_id,
                invocation.output,
                attempts=attempt,
                handler_id=descriptor.id,
                started_at=started_at,
            )


class ProcessExecutor:
    """Runs :class:`ProcessDefinition` objects against a registry.

    Args:
        registry: Descriptors to resolve steps against.
        implementations: Opaque implementations bound by handler id.
        settings: Defaults for timeouts, retries and concurrency.
        retry_strategy: Overrides the settings-derived backoff; per-step and
            per-process ``max_retries`` still apply on top of it.
        snapshot_sink: Receives one record per settled step; defaults to a
            JSONL file when ``settings.snapshot_path`` is set.
        max_in_flight: Concurrency bound per run (overrides settings and
            the process default).
        sleep: Awaitable used for backoff delays (injectable for tests).
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        implementations: ImplementationTable,
        *,
        settings: WeaveSettings | None = None,
        retry_strategy: RetryStrategy | None = None,
        snapshot_sink: SnapshotSink | None = None,
        max_in_flight: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.registry = registry
        self.resolver = Resolver(registry)
        self.boundary = InvocationBoundary(
            implementations, default_timeout=self.settings.default_timeout_seconds
        )
        self.retry_strategy = retry_strategy or backoff_from_settings(self.settings)
        if snapshot_sink is None and self.settings.snapshot_path is not None:
            snapshot_sink = JsonlSnapshotSink(self.settings.snapshot_path)
        self.snapshot_sink = snapshot_sink
        if max_in_flight is not None and max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1, got {max_in_flight}")
        self.max_in_flight = max_in_flight
        self.sleep = sleep

    def start_run(
        self,
        definition: ProcessDefinition,
        initial_context: Mapping[str, Any] | None = None,
        *,
        run_id: str | None = None,
    ) -> RunHandle:
        """Validate ``definition`` and start running it in a new task.

        Must be called from inside a running event loop.

        Raises:
            ProcessStructureError: Invalid structure; no handler has run.
        """
        if initial_context is not None and not isinstance(initial_context, Mapping):
            raise TypeError("initial_context must be a mapping")
        plan = plan_process(definition)
        context = ExecutionContext.create(
            definition.id, initial_context, run_id=run_id or str(uuid.uuid4())
        )
        run = _Run(self, definition, plan, context, self._max_in_flight_for(definition))
        task = asyncio.get_running_loop().create_task(
            run.execute(), name=f"run:{definition.id}:{context.run_id}"
        )
        return RunHandle(run, task)

    async def run(
        self,
        definition: ProcessDefinition,
        initial_context: Mapping[str, Any] | None = None,
        *,
        run_id: str | None = None,
    ) -> ProcessResult:
        """Start a run and wait for its result."""
        return await self.start_run(definition, initial_context, run_id=run_id).await_result()

    # ── Effective per-step settings ─────────────────────────────

    def _max_in_flight_for(self, definition: ProcessDefinition) -> int | None:
        for value in (
            self.max_in_flight,
            definition.defaults.max_in_flight,
            self.settings.max_in_flight,
        ):
            if value is not None:
                return value
        return None

    def _timeout_for(self, step: StepSpec, definition: ProcessDefinition) -> float | None:
        if step.timeout_seconds is not None:
            return step.timeout_seconds
        if definition.defaults.timeout_seconds is not None:
            return definition.defaults.timeout_seconds
        return self.settings.default_timeout_seconds

    def _strategy_for(self, step: StepSpec, definition: ProcessDefinition) -> RetryStrategy:
        if step.max_retries is not None:
            return self.retry_strategy.with_max_retries(step.max_retries)
        if definition.defaults.max_retries is not None:
            return self.retry_strategy.with_max_retries(definition.defaults.max_retries)
        return self.retry_strategy

    def _write_snapshot(self, record: dict[str, Any]) -> None:
        if self.snapshot_sink is None:
            return
        try:
            self.snapshot_sink.write(record)
        except Exception as e:  # noqa: BLE001 - auditing must not fail a run
            logger.warning(
                "snapshot.write_failed",
                step_id=record.get("step_id"),
                error=repr(e),
            )


__all__ = ["ProcessExecutor", "RunHandle", "StepState"]
