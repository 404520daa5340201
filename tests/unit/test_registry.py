"""
Tests for the active workflow registry.
"""

import pytest

from claimflow.core.enums import WorkflowStatus, WorkflowType
from claimflow.schemas.workflow import WorkflowExecution
from claimflow.services.registry import WorkflowRegistry
from claimflow.utils.errors import WorkflowConflictError


def new_run(claim_id: str = "CLM-001") -> WorkflowExecution:
    return WorkflowExecution(claim_id=claim_id, workflow_type=WorkflowType.STANDARD)


@pytest.fixture
def registry():
    return WorkflowRegistry()


class TestRegistration:
    """Test registration and conflicts."""

    @pytest.mark.asyncio
    async def test_register_and_get(self, registry):
        run = new_run()
        await registry.register(run)
        assert await registry.get(run.workflow_id) is run
        assert await registry.list_active() == [run]

    @pytest.mark.asyncio
    async def test_second_run_for_claim_conflicts(self, registry):
        first = new_run()
        await registry.register(first)
        with pytest.raises(WorkflowConflictError) as exc_info:
            await registry.register(new_run())
        assert exc_info.value.workflow_id == first.workflow_id

    @pytest.mark.asyncio
    async def test_concurrent_run_allowed_when_forced(self, registry):
        await registry.register(new_run())
        await registry.register(new_run(), allow_concurrent=True)
        assert len(await registry.list_active()) == 2

    @pytest.mark.asyncio
    async def test_remove_frees_claim(self, registry):
        run = new_run()
        await registry.register(run)
        await registry.remove(run.workflow_id)
        assert await registry.get(run.workflow_id) is None
        await registry.register(new_run())


class TestLifecycle:
    """Test running, cancellation and the pending queue."""

    @pytest.mark.asyncio
    async def test_mark_running(self, registry):
        run = new_run()
        await registry.register(run)
        assert await registry.mark_running(run.workflow_id) is True
        assert run.status == WorkflowStatus.RUNNING
        assert await registry.mark_running(run.workflow_id) is False

    @pytest.mark.asyncio
    async def test_cancel_pending_run(self, registry):
        run = new_run()
        await registry.register(run)
        cancelled = await registry.request_cancel(run.workflow_id)
        assert cancelled is run
        assert run.status == WorkflowStatus.CANCELLED
        assert await registry.get(run.workflow_id) is None

    @pytest.mark.asyncio
    async def test_cancel_running_run_is_flagged(self, registry):
        run = new_run()
        await registry.register(run)
        await registry.mark_running(run.workflow_id)
        assert await registry.request_cancel(run.workflow_id) is run
        assert run.status == WorkflowStatus.RUNNING
        assert await registry.is_cancel_requested(run.workflow_id) is True

    @pytest.mark.asyncio
    async def test_cancel_unknown_run(self, registry):
        assert await registry.request_cancel("missing") is None

    @pytest.mark.asyncio
    async def test_pop_pending_skips_cancelled(self, registry):
        first, second = new_run("CLM-001"), new_run("CLM-002")
        for run in (first, second):
            await registry.register(run)
            await registry.enqueue(run.workflow_id)
        assert await registry.pending_count() == 2

        await registry.request_cancel(first.workflow_id)
        assert await registry.pop_pending() is second
        assert await registry.pop_pending() is None
