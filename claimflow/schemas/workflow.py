"""
Workflow Run Schemas.

Step State Diagram:
    PENDING -> IN_PROGRESS | SKIPPED
    IN_PROGRESS -> COMPLETED | FAILED

Run State Diagram:
    PENDING -> RUNNING | CANCELLED
    RUNNING -> COMPLETED | FAILED | CANCELLED
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

from claimflow.core.enums import (
    AlertCode,
    AlertSeverity,
    AuditEventType,
    FinalStatus,
    NotificationTrigger,
    ProcessingMode,
    StepId,
    StepStatus,
    WorkflowPriority,
    WorkflowStatus,
    WorkflowType,
)
from claimflow.schemas.stages import StageResult
from claimflow.utils.errors import (
    InvalidRunTransitionError,
    InvalidStepTransitionError,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(start: Optional[datetime], end: Optional[datetime]) -> Optional[int]:
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() * 1000)


# =============================================================================
# Valid Transitions Definition
# =============================================================================


VALID_STEP_TRANSITIONS: dict[StepStatus, frozenset[StepStatus]] = {
    StepStatus.PENDING: frozenset({StepStatus.IN_PROGRESS, StepStatus.SKIPPED}),
    StepStatus.IN_PROGRESS: frozenset({StepStatus.COMPLETED, StepStatus.FAILED}),
    StepStatus.COMPLETED: frozenset(),
    StepStatus.FAILED: frozenset(),
    StepStatus.SKIPPED: frozenset(),
}

VALID_RUN_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({WorkflowStatus.RUNNING, WorkflowStatus.CANCELLED}),
    WorkflowStatus.RUNNING: frozenset(
        {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.COMPLETED: frozenset(),
    WorkflowStatus.FAILED: frozenset(),
    WorkflowStatus.CANCELLED: frozenset(),
}


# =============================================================================
# Steps
# =============================================================================


class WorkflowStep(BaseModel):
    """A single step of a workflow run."""

    id: StepId
    name: str
    description: str = ""
    critical: bool = False
    status: StepStatus = StepStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    result: Optional[StageResult] = None
    error: Optional[str] = None
    skip_reason: Optional[str] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_ms(self) -> Optional[int]:
        return _elapsed_ms(self.start_time, self.end_time)

    @property
    def reached(self) -> bool:
        """True once the step has been started."""
        return self.start_time is not None

    def transition(self, target: StepStatus) -> None:
        """
        Move the step to a new status.

        Raises:
            InvalidStepTransitionError: If the move is not forward
        """
        if target not in VALID_STEP_TRANSITIONS[self.status]:
            raise InvalidStepTransitionError(
                f"Step {self.id.value} cannot move from "
                f"{self.status.value} to {target.value}",
                step_id=self.id.value,
            )
        self.status = target

    def start(self) -> None:
        self.transition(StepStatus.IN_PROGRESS)
        self.start_time = _utcnow()

    def complete(self, result: Any) -> None:
        self.transition(StepStatus.COMPLETED)
        self.result = result
        self.end_time = _utcnow()

    def fail(self, error: str) -> None:
        self.transition(StepStatus.FAILED)
        self.error = error
        self.end_time = _utcnow()

    def skip(self, reason: str) -> None:
        self.transition(StepStatus.SKIPPED)
        self.skip_reason = reason


# =============================================================================
# Options, Metadata and Results
# =============================================================================


class ProcessClaimOptions(BaseModel):
    """Caller options for process_claim."""

    workflow_type: Optional[WorkflowType] = None
    priority: Optional[WorkflowPriority] = None
    processing_mode: ProcessingMode = ProcessingMode.AUTOMATIC
    initiated_by: str = "system"
    force_reprocess: bool = False
    timeout_minutes: Optional[float] = Field(default=None, gt=0)


class WorkflowMetadata(BaseModel):
    """Descriptive metadata of a run."""

    initiated_by: str = "system"
    priority: WorkflowPriority = WorkflowPriority.LOW
    processing_mode: ProcessingMode = ProcessingMode.AUTOMATIC
    estimated_completion_time: Optional[datetime] = None


class WorkflowAlert(BaseModel):
    """Alert attached to a compiled result."""

    code: AlertCode
    severity: AlertSeverity
    message: str


class WorkflowResult(BaseModel):
    """Compiled outcome of a completed run."""

    claim_id: str
    workflow_id: str
    workflow_type: WorkflowType
    decision_id: Optional[str] = None
    final_status: FinalStatus

    # Amounts
    approved_amount: Decimal = Decimal("0.00")
    member_responsibility: Decimal = Decimal("0.00")
    insurer_responsibility: Decimal = Decimal("0.00")
    provider_discount: Decimal = Decimal("0.00")

    processing_time_ms: int = 0
    steps_executed: list[StepId] = Field(default_factory=list)
    alerts: list[WorkflowAlert] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    denial_reasons: list[str] = Field(default_factory=list)

    # Scores
    quality_score: int = Field(default=100, ge=0, le=100)
    compliance_score: int = Field(default=100, ge=0, le=100)
    audit_required: bool = False

    eob_generated: bool = False
    payment_estimated: bool = False

    def has_alert(self, code: AlertCode) -> bool:
        return any(alert.code == code for alert in self.alerts)


class WorkflowExecution(BaseModel):
    """A workflow run and its steps."""

    workflow_id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    workflow_type: WorkflowType
    status: WorkflowStatus = WorkflowStatus.PENDING
    steps: list[WorkflowStep] = Field(default_factory=list)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)
    options: ProcessClaimOptions = Field(default_factory=ProcessClaimOptions)
    created_at: datetime = Field(default_factory=_utcnow)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    final_result: Optional[WorkflowResult] = None
    error: Optional[str] = None
    failed_step: Optional[StepId] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_duration_ms(self) -> Optional[int]:
        return _elapsed_ms(self.start_time, self.end_time)

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal

    def transition(self, target: WorkflowStatus) -> None:
        """
        Move the run to a new status.

        Raises:
            InvalidRunTransitionError: If the lifecycle forbids the move
        """
        if target not in VALID_RUN_TRANSITIONS[self.status]:
            raise InvalidRunTransitionError(
                f"Workflow {self.workflow_id} cannot move from "
                f"{self.status.value} to {target.value}",
                claim_id=self.claim_id,
                workflow_id=self.workflow_id,
            )
        self.status = target
        if target == WorkflowStatus.RUNNING:
            self.start_time = _utcnow()
        elif target.is_terminal:
            self.end_time = _utcnow()

    def get_step(self, step_id: StepId) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def result_of(self, step_id: StepId) -> Any:
        """Result of a completed step, or None."""
        step = self.get_step(step_id)
        if step is None or step.status != StepStatus.COMPLETED:
            return None
        return step.result

    @property
    def steps_executed(self) -> list[StepId]:
        return [step.id for step in self.steps if step.reached]

    @property
    def failed_steps(self) -> list[WorkflowStep]:
        return [step for step in self.steps if step.status == StepStatus.FAILED]


# =============================================================================
# Batch, Audit and Notifications
# =============================================================================


class BatchFailure(BaseModel):
    """A claim that could not be processed within a batch."""

    claim_id: str
    error_type: str
    message: str
    workflow_id: Optional[str] = None


class BatchResult(BaseModel):
    """Aggregated outcome of a batch submission."""

    batch_id: str = Field(default_factory=lambda: str(uuid4()))
    total: int = 0
    results: list[WorkflowResult] = Field(default_factory=list)
    failures: list[BatchFailure] = Field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> int:
        return len(self.failures)


class AuditEvent(BaseModel):
    """Append-only audit record."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: AuditEventType
    workflow_id: str
    claim_id: str
    workflow_type: WorkflowType
    status: WorkflowStatus
    timestamp: datetime = Field(default_factory=_utcnow)
    details: dict[str, Any] = Field(default_factory=dict)


class Notification(BaseModel):
    """Outbound notification handed to a dispatcher."""

    notification_id: str = Field(default_factory=lambda: str(uuid4()))
    trigger: NotificationTrigger
    claim_id: str
    workflow_id: str
    message: str
    severity: AlertSeverity = AlertSeverity.INFO
    created_at: datetime = Field(default_factory=_utcnow)
