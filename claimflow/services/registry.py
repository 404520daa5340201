"""
Active Workflow Registry.

Tracks runs that have not reached a terminal state, the claims they belong
to, the queue of pending runs and cancellation requests. The lock guards
bookkeeping only and is never held while a step executes.
"""

import asyncio
from collections import deque
from typing import Optional

from claimflow.core.enums import WorkflowStatus
from claimflow.schemas.workflow import WorkflowExecution
from claimflow.utils.errors import WorkflowConflictError


class WorkflowRegistry:
    """Registry of active workflow runs."""

    def __init__(self):
        """Initialize WorkflowRegistry."""
        self._active: dict[str, WorkflowExecution] = {}
        self._by_claim: dict[str, set[str]] = {}
        self._pending: deque[str] = deque()
        self._cancel_requested: set[str] = set()
        self._lock = asyncio.Lock()

    async def register(
        self,
        execution: WorkflowExecution,
        allow_concurrent: bool = False,
    ) -> None:
        """
        Register a new run.

        Raises:
            WorkflowConflictError: If the claim already has an active run
        """
        async with self._lock:
            existing = self._by_claim.get(execution.claim_id)
            if existing and not allow_concurrent:
                raise WorkflowConflictError(execution.claim_id, sorted(existing)[0])
            self._active[execution.workflow_id] = execution
            self._by_claim.setdefault(execution.claim_id, set()).add(execution.workflow_id)

    async def get(self, workflow_id: str) -> Optional[WorkflowExecution]:
        async with self._lock:
            return self._active.get(workflow_id)

    async def list_active(self) -> list[WorkflowExecution]:
        async with self._lock:
            return list(self._active.values())

    async def remove(self, workflow_id: str) -> None:
        """Drop a run that reached a terminal state."""
        async with self._lock:
            self._remove_locked(workflow_id)

    def _remove_locked(self, workflow_id: str) -> None:
        execution = self._active.pop(workflow_id, None)
        self._cancel_requested.discard(workflow_id)
        if execution is None:
            return
        claim_runs = self._by_claim.get(execution.claim_id)
        if claim_runs is not None:
            claim_runs.discard(workflow_id)
            if not claim_runs:
                del self._by_claim[execution.claim_id]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def mark_running(self, workflow_id: str) -> bool:
        """
        Move a pending run to running.

        Returns:
            False if the run is no longer pending (e.g. cancelled while queued)
        """
        async with self._lock:
            execution = self._active.get(workflow_id)
            if execution is None or execution.status != WorkflowStatus.PENDING:
                return False
            execution.transition(WorkflowStatus.RUNNING)
            return True

    async def request_cancel(self, workflow_id: str) -> Optional[WorkflowExecution]:
        """
        Request cancellation of an active run.

        A pending run is cancelled immediately and removed from the registry.
        A running run is flagged and stops before its next step or, after
        its last step, before its result is compiled.

        Returns:
            The run if cancellation was accepted, None otherwise
        """
        async with self._lock:
            execution = self._active.get(workflow_id)
            if execution is None or execution.status.is_terminal:
                return None
            if execution.status == WorkflowStatus.PENDING:
                execution.transition(WorkflowStatus.CANCELLED)
                execution.error = "Cancelled before start"
                self._remove_locked(workflow_id)
            else:
                self._cancel_requested.add(workflow_id)
            return execution

    async def is_cancel_requested(self, workflow_id: str) -> bool:
        async with self._lock:
            return workflow_id in self._cancel_requested

    # =========================================================================
    # Pending Queue
    # =========================================================================

    async def enqueue(self, workflow_id: str) -> None:
        async with self._lock:
            self._pending.append(workflow_id)

    async def pop_pending(self) -> Optional[WorkflowExecution]:
        """Next queued run that is still pending, skipping cancelled ones."""
        async with self._lock:
            while self._pending:
                workflow_id = self._pending.popleft()
                execution = self._active.get(workflow_id)
                if execution is not None and execution.status == WorkflowStatus.PENDING:
                    return execution
            return None

    async def pending_count(self) -> int:
        async with self._lock:
            return len(self._pending)
