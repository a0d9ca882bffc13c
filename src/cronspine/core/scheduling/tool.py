"""Agent-facing schedule tool.

``ScheduleTool`` turns a flat request (the shape an LLM tool call produces)
into scheduler operations: create, update, delete, list, get, pause and
resume.  It is also where the approval policy is enforced: a payload that
the policy flags goes through the approval callback before the scheduler
ever sees it.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULE TOOL                                                                │
│                                                                               │
│   execute(ScheduleToolAction)                                                 │
│      │                                                                        │
│      ├── create ─► require name/schedule/task_action                          │
│      │            ─► schedule must look like 5 cron fields                    │
│      │            ─► evaluate_cron_policy ─► approval callback if flagged     │
│      │            ─► scheduler.create ─► executor.log_created                 │
│      ├── update ─► policy again only if the payload changes                   │
│      ├── delete / get / pause / resume ─► require job_id                      │
│      └── list                                                                 │
│                                                                               │
│   Returns Result[ScheduleToolResult]; never raises.                           │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from cronspine.core.errors import JobNotFoundError, PolicyError, ToolInputError
from cronspine.core.logging import get_logger
from cronspine.core.result import Err, Ok, Result
from cronspine.core.scheduling.expression import describe
from cronspine.core.scheduling.executor import CronExecutor
from cronspine.core.scheduling.models import (
    UNSET,
    CronJob,
    CronJobCreate,
    CronJobPayload,
    CronJobUpdate,
    JobStatus,
    UnsetType,
)
from cronspine.core.scheduling.policy import CronPolicyResult, evaluate_cron_policy
from cronspine.core.scheduling.scheduler import CronScheduler

logger = get_logger(__name__)

CRON_EXPRESSION_PATTERN = re.compile(r"^[\d*,/\-]+(\s+[\d*,/\-]+){4}$")


@dataclass(frozen=True)
class ApprovalRequest:
    """What the approval callback is asked to decide on."""

    action: str
    reason: str


ApprovalCallback = Callable[[ApprovalRequest], Awaitable[bool]]


@dataclass
class ScheduleToolAction:
    """One tool call.

    Only ``action`` is always required; the other fields matter per action.
    ``max_runs`` distinguishes "not given" (``UNSET``) from "no cap" (``None``).
    """

    action: str
    name: str | None = None
    description: str | None = None
    schedule: str | None = None
    timezone: str | None = None
    task_action: str | None = None
    task_parameters: dict[str, Any] | None = None
    max_runs: int | None | UnsetType = UNSET
    tags: list[str] | None = None
    job_id: str | None = None


@dataclass
class ScheduleToolResult:
    success: bool
    message: str
    job: CronJob | None = None
    jobs: list[CronJob] = field(default_factory=list)
    policy_check: CronPolicyResult | None = None


def is_cron_expression(value: str) -> bool:
    return CRON_EXPRESSION_PATTERN.match(value.strip()) is not None


class ScheduleTool:
    """Schedule management facade over a ``CronScheduler``.

    Args:
        scheduler: Scheduler that owns the jobs
        on_approval_required: Async callback deciding flagged payloads;
            without one, flagged payloads are rejected
        executor: When given, lifecycle events are written to its audit log
    """

    def __init__(
        self,
        scheduler: CronScheduler,
        on_approval_required: ApprovalCallback | None = None,
        executor: CronExecutor | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.on_approval_required = on_approval_required
        self.executor = executor

    async def execute(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        handlers = {
            "create": self._create,
            "update": self._update,
            "delete": self._delete,
            "list": self._list,
            "get": self._get,
            "pause": self._pause,
            "resume": self._resume,
        }
        handler = handlers.get(request.action)
        if handler is None:
            return Err(ToolInputError(
                f"Unknown schedule action: {request.action}",
                code="CRON_UNKNOWN_ACTION",
            ))
        return await handler(request)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def _create(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        if not request.name or not request.name.strip():
            return Err(ToolInputError(
                "Schedule create requires a non-empty name",
                code="CRON_TOOL_NAME_REQUIRED",
            ))
        if not request.schedule or not request.schedule.strip():
            return Err(ToolInputError(
                "Schedule create requires a schedule expression",
                code="CRON_TOOL_SCHEDULE_REQUIRED",
            ))
        if not request.task_action or not request.task_action.strip():
            return Err(ToolInputError(
                "Schedule create requires a task_action",
                code="CRON_TOOL_ACTION_REQUIRED",
            ))

        schedule = _resolve_schedule(request.schedule)
        if schedule.is_err():
            return Err(schedule.error)

        payload = CronJobPayload(
            action=request.task_action,
            parameters=dict(request.task_parameters or {}),
        )
        policy = await self._evaluate_and_approve(payload)
        if policy.is_err():
            return Err(policy.error)

        created = self.scheduler.create(CronJobCreate(
            name=request.name,
            description=request.description or "",
            schedule=schedule.value,
            timezone=request.timezone,
            payload=payload,
            max_runs=None if request.max_runs is UNSET else request.max_runs,
            tags=request.tags,
        ))
        if created.is_err():
            return Err(created.error)

        job = created.value
        if self.executor is not None:
            self.executor.log_created(job)

        return Ok(ScheduleToolResult(
            success=True,
            message=f"Schedule created ({describe(job.schedule)})",
            job=job,
            policy_check=policy.value,
        ))

    async def _update(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        job_id = _require_job_id(request)
        if job_id.is_err():
            return Err(job_id.error)

        existing = self._require_job(job_id.value)
        if existing.is_err():
            return Err(existing.error)
        current = existing.value

        changes = CronJobUpdate(
            name=_given(request.name),
            description=_given(request.description),
            timezone=_given(request.timezone),
            max_runs=request.max_runs,
            tags=_given(request.tags),
        )

        if request.schedule:
            schedule = _resolve_schedule(request.schedule)
            if schedule.is_err():
                return Err(schedule.error)
            changes.schedule = schedule.value

        policy_check: CronPolicyResult | None = None
        if request.task_action is not None or request.task_parameters is not None:
            payload = CronJobPayload(
                action=request.task_action if request.task_action is not None else current.payload.action,
                parameters=dict(
                    request.task_parameters
                    if request.task_parameters is not None
                    else current.payload.parameters
                ),
            )
            policy = await self._evaluate_and_approve(payload)
            if policy.is_err():
                return Err(policy.error)
            policy_check = policy.value
            changes.payload = payload

        updated = self.scheduler.update(job_id.value, changes)
        if updated.is_err():
            return Err(updated.error)

        if self.executor is not None:
            self.executor.log_updated(updated.value)

        return Ok(ScheduleToolResult(
            success=True,
            message="Schedule updated",
            job=updated.value,
            policy_check=policy_check,
        ))

    async def _delete(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        job_id = _require_job_id(request)
        if job_id.is_err():
            return Err(job_id.error)

        existing = self.scheduler.get_job(job_id.value)
        if existing.is_err():
            return Err(existing.error)

        removed = self.scheduler.remove(job_id.value)
        if removed.is_err():
            return Err(removed.error)

        job = existing.value
        if self.executor is not None and job is not None:
            self.executor.log_deleted(job.id, job.name, action=job.payload.action)

        return Ok(ScheduleToolResult(success=True, message="Schedule deleted"))

    async def _list(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        listed = self.scheduler.list_jobs()
        if listed.is_err():
            return Err(listed.error)
        return Ok(ScheduleToolResult(
            success=True,
            message="Schedules listed",
            jobs=listed.value,
        ))

    async def _get(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        job_id = _require_job_id(request)
        if job_id.is_err():
            return Err(job_id.error)

        fetched = self.scheduler.get_job(job_id.value)
        if fetched.is_err():
            return Err(fetched.error)
        if fetched.value is None:
            return Ok(ScheduleToolResult(
                success=False,
                message=f"Schedule not found: {job_id.value}",
            ))
        return Ok(ScheduleToolResult(success=True, message="Schedule fetched", job=fetched.value))

    async def _pause(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        return self._set_status(request, JobStatus.PAUSED, "Schedule paused")

    async def _resume(self, request: ScheduleToolAction) -> Result[ScheduleToolResult]:
        return self._set_status(request, JobStatus.ACTIVE, "Schedule resumed")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_status(
        self,
        request: ScheduleToolAction,
        status: JobStatus,
        message: str,
    ) -> Result[ScheduleToolResult]:
        job_id = _require_job_id(request)
        if job_id.is_err():
            return Err(job_id.error)

        updated = self.scheduler.update(job_id.value, CronJobUpdate(status=status))
        if updated.is_err():
            return Err(updated.error)

        if self.executor is not None:
            if status == JobStatus.PAUSED:
                self.executor.log_paused(updated.value)
            else:
                self.executor.log_resumed(updated.value)

        return Ok(ScheduleToolResult(success=True, message=message, job=updated.value))

    def _require_job(self, job_id: str) -> Result[CronJob]:
        fetched = self.scheduler.get_job(job_id)
        if fetched.is_err():
            return Err(fetched.error)
        if fetched.value is None:
            return Err(JobNotFoundError(job_id))
        return Ok(fetched.value)

    async def _evaluate_and_approve(self, payload: CronJobPayload) -> Result[CronPolicyResult]:
        check = evaluate_cron_policy(payload)
        if not check.allowed:
            return Err(PolicyError(check.reason, code="CRON_POLICY_DENIED"))
        if not check.requires_approval:
            return Ok(check)

        if self.on_approval_required is None:
            return Err(PolicyError(
                "Cron action requires approval but no approval handler is configured",
                code="CRON_APPROVAL_REQUIRED",
            ))

        approved = await self.on_approval_required(
            ApprovalRequest(action=payload.action, reason=check.reason)
        )
        if not approved:
            logger.info("cron_approval_denied", action=payload.action)
            return Err(PolicyError(
                "Cron action requires approval and was denied",
                code="CRON_APPROVAL_DENIED",
            ))

        logger.info("cron_approval_granted", action=payload.action)
        return Ok(check)


def _require_job_id(request: ScheduleToolAction) -> Result[str]:
    if not request.job_id or not request.job_id.strip():
        return Err(ToolInputError(
            f"Schedule {request.action} requires a job_id",
            code="CRON_TOOL_JOB_ID_REQUIRED",
        ))
    return Ok(request.job_id.strip())


def _resolve_schedule(schedule: str) -> Result[str]:
    if is_cron_expression(schedule):
        return Ok(schedule.strip())
    return Err(ToolInputError(
        f"Could not parse schedule: '{schedule}'. Please use a 5-field cron expression.",
        code="CRON_TOOL_SCHEDULE_PARSE_FAILED",
    ))


def _given(value: Any) -> Any:
    return UNSET if value is None else value


__all__ = [
    "ApprovalCallback",
    "ApprovalRequest",
    "CRON_EXPRESSION_PATTERN",
    "ScheduleTool",
    "ScheduleToolAction",
    "ScheduleToolResult",
    "is_cron_expression",
]
