"""Tests for the agent-facing ScheduleTool."""

from datetime import UTC, datetime

import pytest

from cronspine.core.scheduling import (
    UNSET,
    ApprovalRequest,
    AuditEventType,
    JobStatus,
    ScheduleTool,
    ScheduleToolAction,
    UnsetType,
)
from cronspine.core.scheduling.tool import is_cron_expression


class Approver:
    """Async approval callback with a fixed answer."""

    def __init__(self, answer: bool) -> None:
        self.answer = answer
        self.requests: list[ApprovalRequest] = []

    async def __call__(self, request: ApprovalRequest) -> bool:
        self.requests.append(request)
        return self.answer


@pytest.fixture
def executor(make_executor, handler):
    return make_executor(handler)


@pytest.fixture
def tool(scheduler, executor):
    return ScheduleTool(scheduler, executor=executor)


def create_action(**overrides) -> ScheduleToolAction:
    fields = {
        "action": "create",
        "name": "daily-report",
        "schedule": "0 9 * * *",
        "task_action": "report.generate",
        "task_parameters": {"format": "pdf"},
    }
    fields.update(overrides)
    return ScheduleToolAction(**fields)


class TestCreate:
    """Creating schedules through the tool."""

    @pytest.mark.asyncio
    async def test_create(self, tool, scheduler, audit_log):
        result = (await tool.execute(create_action(tags=["reports"], max_runs=5))).unwrap()

        assert result.success is True
        assert result.message == "Schedule created (At 09:00)"
        assert result.policy_check.requires_approval is False
        job = result.job
        assert job.payload.action == "report.generate"
        assert job.payload.parameters == {"format": "pdf"}
        assert job.max_runs == 5
        assert job.tags == ["reports"]
        assert job.next_run_at == datetime(2026, 2, 12, 9, 0, tzinfo=UTC)
        assert scheduler.get_job(job.id).unwrap() == job
        assert [e.event_type for e in audit_log.get_entries()] == [AuditEventType.CREATED]

    @pytest.mark.asyncio
    async def test_create_without_max_runs_is_uncapped(self, tool):
        result = (await tool.execute(create_action())).unwrap()
        assert result.job.max_runs is None

    def test_max_runs_defaults_to_unset_marker(self):
        action = ScheduleToolAction(action="create")
        assert action.max_runs is UNSET
        assert isinstance(action.max_runs, UnsetType)
        assert UnsetType() is UNSET

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("overrides", "code"),
        [
            ({"name": " "}, "CRON_TOOL_NAME_REQUIRED"),
            ({"name": None}, "CRON_TOOL_NAME_REQUIRED"),
            ({"schedule": ""}, "CRON_TOOL_SCHEDULE_REQUIRED"),
            ({"task_action": None}, "CRON_TOOL_ACTION_REQUIRED"),
            ({"schedule": "every day at 9am"}, "CRON_TOOL_SCHEDULE_PARSE_FAILED"),
            ({"schedule": "0 9 * *"}, "CRON_TOOL_SCHEDULE_PARSE_FAILED"),
            ({"schedule": "0 25 * * *"}, "CRON_EXPRESSION_INVALID"),
            ({"timezone": "Nowhere/City"}, "CRON_TIMEZONE_INVALID"),
        ],
    )
    async def test_create_validation(self, tool, scheduler, overrides, code):
        result = await tool.execute(create_action(**overrides))
        assert result.is_err()
        assert result.error.code == code
        assert scheduler.list_jobs().unwrap() == []

    @pytest.mark.asyncio
    async def test_approval_required_without_callback(self, tool, scheduler):
        result = await tool.execute(create_action(task_action="billing.charge"))
        assert result.error.code == "CRON_APPROVAL_REQUIRED"
        assert scheduler.list_jobs().unwrap() == []

    @pytest.mark.asyncio
    async def test_approval_granted(self, scheduler, executor):
        approver = Approver(True)
        tool = ScheduleTool(scheduler, on_approval_required=approver, executor=executor)

        result = (await tool.execute(create_action(task_action="schedule.create"))).unwrap()

        assert result.success is True
        assert result.policy_check.requires_approval is True
        [request] = approver.requests
        assert request.action == "schedule.create"
        assert "cron" in request.reason

    @pytest.mark.asyncio
    async def test_approval_denied(self, scheduler):
        tool = ScheduleTool(scheduler, on_approval_required=Approver(False))
        result = await tool.execute(create_action(task_action="refund.issue"))
        assert result.error.code == "CRON_APPROVAL_DENIED"
        assert scheduler.list_jobs().unwrap() == []


class TestOtherActions:
    """update, delete, list, get, pause and resume."""

    @pytest.mark.asyncio
    async def test_update_fields(self, tool, audit_log):
        job = (await tool.execute(create_action())).unwrap().job
        result = (await tool.execute(ScheduleToolAction(
            action="update", job_id=job.id, name="renamed", schedule="30 7 * * *",
        ))).unwrap()

        assert result.message == "Schedule updated"
        assert result.job.name == "renamed"
        assert result.job.schedule == "30 7 * * *"
        assert result.job.payload.action == "report.generate"
        assert result.policy_check is None
        assert audit_log.get_entries_by_type(AuditEventType.UPDATED)[0].job_id == job.id

    @pytest.mark.asyncio
    async def test_update_payload_reevaluates_policy(self, tool):
        job = (await tool.execute(create_action())).unwrap().job
        result = await tool.execute(ScheduleToolAction(
            action="update", job_id=job.id, task_action="payment.send",
        ))
        assert result.error.code == "CRON_APPROVAL_REQUIRED"

    @pytest.mark.asyncio
    async def test_update_parameters_keep_action(self, tool):
        job = (await tool.execute(create_action())).unwrap().job
        result = (await tool.execute(ScheduleToolAction(
            action="update", job_id=job.id, task_parameters={"format": "csv"},
        ))).unwrap()
        assert result.job.payload.action == "report.generate"
        assert result.job.payload.parameters == {"format": "csv"}
        assert result.policy_check.requires_approval is False

    @pytest.mark.asyncio
    async def test_update_unknown_job(self, tool):
        result = await tool.execute(ScheduleToolAction(action="update", job_id="missing", name="x"))
        assert result.error.code == "CRON_JOB_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_update_bad_schedule(self, tool):
        job = (await tool.execute(create_action())).unwrap().job
        result = await tool.execute(ScheduleToolAction(action="update", job_id=job.id, schedule="soon"))
        assert result.error.code == "CRON_TOOL_SCHEDULE_PARSE_FAILED"

    @pytest.mark.asyncio
    async def test_delete(self, tool, scheduler, audit_log):
        job = (await tool.execute(create_action())).unwrap().job
        result = (await tool.execute(ScheduleToolAction(action="delete", job_id=job.id))).unwrap()

        assert result.message == "Schedule deleted"
        assert scheduler.get_job(job.id).unwrap() is None
        [deleted] = audit_log.get_entries_by_type(AuditEventType.DELETED)
        assert (deleted.job_id, deleted.job_name, deleted.action) == (job.id, "daily-report", "report.generate")

    @pytest.mark.asyncio
    async def test_delete_missing_job_is_not_audited(self, tool, audit_log):
        result = (await tool.execute(ScheduleToolAction(action="delete", job_id="ghost"))).unwrap()
        assert result.success is True
        assert audit_log.get_entries_by_type(AuditEventType.DELETED) == []

    @pytest.mark.asyncio
    async def test_list(self, tool):
        await tool.execute(create_action(name="one"))
        await tool.execute(create_action(name="two"))
        result = (await tool.execute(ScheduleToolAction(action="list"))).unwrap()
        assert result.message == "Schedules listed"
        assert sorted(job.name for job in result.jobs) == ["one", "two"]

    @pytest.mark.asyncio
    async def test_get(self, tool):
        job = (await tool.execute(create_action())).unwrap().job
        found = (await tool.execute(ScheduleToolAction(action="get", job_id=job.id))).unwrap()
        assert found.success is True
        assert found.job == job

        missing = (await tool.execute(ScheduleToolAction(action="get", job_id="ghost"))).unwrap()
        assert missing.success is False
        assert missing.message == "Schedule not found: ghost"

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, tool, audit_log):
        job = (await tool.execute(create_action())).unwrap().job

        paused = (await tool.execute(ScheduleToolAction(action="pause", job_id=job.id))).unwrap()
        assert paused.message == "Schedule paused"
        assert paused.job.status == JobStatus.PAUSED
        assert paused.job.next_run_at is None

        resumed = (await tool.execute(ScheduleToolAction(action="resume", job_id=job.id))).unwrap()
        assert resumed.message == "Schedule resumed"
        assert resumed.job.status == JobStatus.ACTIVE
        assert resumed.job.next_run_at is not None

        types = [e.event_type for e in audit_log.get_entries()]
        assert types[-2:] == [AuditEventType.PAUSED, AuditEventType.RESUMED]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["update", "delete", "get", "pause", "resume"])
    async def test_job_id_required(self, tool, action):
        result = await tool.execute(ScheduleToolAction(action=action, job_id="  "))
        assert result.error.code == "CRON_TOOL_JOB_ID_REQUIRED"

    @pytest.mark.asyncio
    async def test_unknown_action(self, tool):
        result = await tool.execute(ScheduleToolAction(action="explode"))
        assert result.error.code == "CRON_UNKNOWN_ACTION"

    @pytest.mark.asyncio
    async def test_works_without_executor(self, scheduler):
        tool = ScheduleTool(scheduler)
        result = (await tool.execute(create_action())).unwrap()
        assert result.success is True


class TestIsCronExpression:
    """Shape check used before parsing."""

    @pytest.mark.parametrize("value", ["* * * * *", " 0 9 * * 1-5 ", "*/5 0,12 1 1 0"])
    def test_accepts(self, value):
        assert is_cron_expression(value)

    @pytest.mark.parametrize("value", ["", "tomorrow", "* * * *", "0 9 * * MON", "* * * * * *"])
    def test_rejects(self, value):
        assert not is_cron_expression(value)
