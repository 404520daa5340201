"""
Workflow Routing, Audit and Scoring Functions.

Pure functions used by the orchestrator: workflow type and priority
selection, completion estimates, timeouts, alerts, next steps, quality and
compliance scores and the audit flag.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from claimflow.core.config import WorkflowSettings
from claimflow.core.enums import (
    AdjudicationStatus,
    AlertCode,
    AlertSeverity,
    ClinicalReviewDecision,
    FinalStatus,
    ProcessingMode,
    RiskLevel,
    StepId,
    StepStatus,
    WorkflowPriority,
    WorkflowType,
)
from claimflow.schemas.adjudication import AdjudicationDecision
from claimflow.schemas.claim import Claim
from claimflow.schemas.stages import (
    ClinicalReviewResult,
    FraudAnalysisResult,
    MedicalNecessityResult,
)
from claimflow.schemas.workflow import WorkflowAlert, WorkflowExecution

ESTIMATED_DURATIONS = {
    WorkflowType.EXPEDITED: timedelta(minutes=5),
    WorkflowType.STANDARD: timedelta(minutes=30),
    WorkflowType.MANUAL_REVIEW: timedelta(hours=24),
    WorkflowType.INVESTIGATION: timedelta(hours=72),
}

# Steps whose completion is required for a fully compliant run
COMPLIANCE_STEPS = (
    StepId.CLAIM_VALIDATION,
    StepId.ELIGIBILITY_VERIFICATION,
    StepId.FINANCIAL_CALCULATION,
)

FAILED_STEP_PENALTY = 10
SLOW_RUN_PENALTY = 10
COMPLIANCE_PENALTY = 25

AUDIT_FRAUD_LEVELS = frozenset({RiskLevel.HIGH, RiskLevel.CRITICAL})

NEXT_STEPS = {
    FinalStatus.APPROVED: [
        "Process payment to provider",
        "Generate and send EOB to member",
    ],
    FinalStatus.PARTIALLY_APPROVED: [
        "Process payment to provider",
        "Generate and send EOB to member",
        "Notify member of uncovered amount",
    ],
    FinalStatus.DENIED: [
        "Send denial letter to member",
        "Notify provider of denial",
    ],
    FinalStatus.UNDER_REVIEW: [
        "Assign to clinical reviewer",
        "Request additional documentation if needed",
    ],
    FinalStatus.INVESTIGATION_REQUIRED: [
        "Initiate fraud investigation",
        "Place claim on hold",
    ],
}


# =============================================================================
# Routing
# =============================================================================


def determine_workflow_type(
    claim: Claim,
    settings: WorkflowSettings,
    now: Optional[datetime] = None,
) -> WorkflowType:
    """Select the workflow type for a claim."""
    now = now or datetime.now(timezone.utc)
    if claim.amount > settings.INVESTIGATION_THRESHOLD:
        return WorkflowType.INVESTIGATION
    if claim.amount > settings.MANUAL_REVIEW_THRESHOLD or claim.fraud_risk_level == RiskLevel.HIGH:
        return WorkflowType.MANUAL_REVIEW
    if claim.amount < settings.EXPEDITED_MAX_AMOUNT and claim.submission_date is not None:
        submitted = claim.submission_date
        if submitted.tzinfo is None:
            submitted = submitted.replace(tzinfo=timezone.utc)
        if now - submitted <= timedelta(hours=settings.EXPEDITED_MAX_AGE_HOURS):
            return WorkflowType.EXPEDITED
    return WorkflowType.STANDARD


def determine_priority(amount: Decimal, settings: WorkflowSettings) -> WorkflowPriority:
    """Priority band for a claim amount."""
    if amount > settings.PRIORITY_URGENT_THRESHOLD:
        return WorkflowPriority.URGENT
    if amount > settings.PRIORITY_HIGH_THRESHOLD:
        return WorkflowPriority.HIGH
    if amount > settings.PRIORITY_MEDIUM_THRESHOLD:
        return WorkflowPriority.MEDIUM
    return WorkflowPriority.LOW


def estimate_completion_time(
    workflow_type: WorkflowType,
    start: Optional[datetime] = None,
) -> datetime:
    start = start or datetime.now(timezone.utc)
    return start + ESTIMATED_DURATIONS[workflow_type]


def resolve_timeout_seconds(
    workflow_type: WorkflowType,
    processing_mode: ProcessingMode,
    settings: WorkflowSettings,
    requested_minutes: Optional[float] = None,
) -> float:
    """
    Per-run timeout in seconds.

    The requested or configured timeout is capped at the ceiling for the run's
    mode: the automatic ceiling for automatic standard and expedited runs, the
    manual ceiling otherwise.
    """
    minutes = requested_minutes or settings.PROCESSING_TIMEOUT_MINUTES
    manual = processing_mode == ProcessingMode.MANUAL or workflow_type in (
        WorkflowType.MANUAL_REVIEW,
        WorkflowType.INVESTIGATION,
    )
    if manual:
        ceiling = settings.MANUAL_TIMEOUT_CEILING_HOURS * 60
    else:
        ceiling = settings.AUTOMATIC_TIMEOUT_CEILING_MINUTES
    return min(minutes, ceiling) * 60


# =============================================================================
# Result Compilation
# =============================================================================


def final_status_for(decision: AdjudicationDecision) -> FinalStatus:
    if decision.status == AdjudicationStatus.UNDER_REVIEW and decision.investigation_required:
        return FinalStatus.INVESTIGATION_REQUIRED
    return FinalStatus(decision.status.value)


def build_alerts(
    decision: AdjudicationDecision,
    fraud: Optional[FraudAnalysisResult],
    necessity: Optional[MedicalNecessityResult],
    clinical_review: Optional[ClinicalReviewResult],
    settings: WorkflowSettings,
) -> list[WorkflowAlert]:
    """Alerts for a compiled result, in a fixed order."""
    alerts: list[WorkflowAlert] = []

    if fraud is not None and fraud.risk_level in AUDIT_FRAUD_LEVELS:
        alerts.append(
            WorkflowAlert(
                code=AlertCode.FRAUD_RISK,
                severity=AlertSeverity.CRITICAL
                if fraud.risk_level == RiskLevel.CRITICAL
                else AlertSeverity.WARNING,
                message=f"Fraud risk {fraud.risk_level.value} (score {fraud.risk_score:.1f})",
            )
        )
    if decision.investigation_required:
        alerts.append(
            WorkflowAlert(
                code=AlertCode.INVESTIGATION_REQUIRED,
                severity=AlertSeverity.WARNING,
                message="Claim requires investigation before payment",
            )
        )
    if decision.status == AdjudicationStatus.DENIED:
        alerts.append(
            WorkflowAlert(
                code=AlertCode.MEMBER_NOTIFICATION_REQUIRED,
                severity=AlertSeverity.INFO,
                message="Member must be notified of the denial",
            )
        )
    if decision.is_payable and decision.approved_amount > settings.HIGH_VALUE_ALERT_THRESHOLD:
        alerts.append(
            WorkflowAlert(
                code=AlertCode.HIGH_VALUE_REVIEW,
                severity=AlertSeverity.WARNING,
                message=f"High value approval of {decision.approved_amount}",
            )
        )
    review_pending = (
        clinical_review is not None
        and clinical_review.decision == ClinicalReviewDecision.PENDING
    )
    if (necessity is not None and necessity.requires_clinical_review) or review_pending:
        alerts.append(
            WorkflowAlert(
                code=AlertCode.CLINICAL_REVIEW_REQUIRED,
                severity=AlertSeverity.INFO,
                message="Clinical review required",
            )
        )
    return alerts


def build_next_steps(
    final_status: FinalStatus,
    fraud: Optional[FraudAnalysisResult],
) -> list[str]:
    steps = list(NEXT_STEPS[final_status])
    if (
        fraud is not None
        and fraud.risk_level == RiskLevel.CRITICAL
        and final_status != FinalStatus.INVESTIGATION_REQUIRED
    ):
        steps += NEXT_STEPS[FinalStatus.INVESTIGATION_REQUIRED]
    return steps


def calculate_quality_score(
    execution: WorkflowExecution,
    duration_seconds: float,
    settings: WorkflowSettings,
) -> int:
    """100 minus 10 per failed step, minus 10 for a slow run, floored at 0."""
    score = 100 - FAILED_STEP_PENALTY * len(execution.failed_steps)
    if duration_seconds > settings.QUALITY_DURATION_THRESHOLD_SECONDS:
        score -= SLOW_RUN_PENALTY
    return max(0, score)


def calculate_compliance_score(execution: WorkflowExecution) -> int:
    """100 minus 25 when a required step in the run did not complete."""
    incomplete = [
        step
        for step in execution.steps
        if step.id in COMPLIANCE_STEPS and step.status != StepStatus.COMPLETED
    ]
    return max(0, 100 - (COMPLIANCE_PENALTY if incomplete else 0))


def is_audit_required(
    execution: WorkflowExecution,
    decision: AdjudicationDecision,
    fraud: Optional[FraudAnalysisResult],
    settings: WorkflowSettings,
) -> bool:
    if decision.approved_amount > settings.AUDIT_AMOUNT_THRESHOLD:
        return True
    if execution.failed_steps:
        return True
    return fraud is not None and fraud.risk_level in AUDIT_FRAUD_LEVELS
