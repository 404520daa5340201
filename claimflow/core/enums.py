"""
Core Enumerations for the Claims Workflow Orchestrator.
"""

from enum import Enum


# =============================================================================
# Workflow Enums
# =============================================================================


class WorkflowType(str, Enum):
    """Named variant of the step list selected for a claim."""

    STANDARD = "standard"
    EXPEDITED = "expedited"  # Small, freshly submitted claims
    MANUAL_REVIEW = "manual_review"  # Adds a manual clinical review step
    INVESTIGATION = "investigation"  # High-value claims, enhanced review, no EOB


class WorkflowStatus(str, Enum):
    """Workflow run lifecycle status.

    State Machine Transitions:
    PENDING -> RUNNING | CANCELLED
    RUNNING -> COMPLETED | FAILED | CANCELLED
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are possible."""
        return self in (
            WorkflowStatus.COMPLETED,
            WorkflowStatus.FAILED,
            WorkflowStatus.CANCELLED,
        )


class StepStatus(str, Enum):
    """Status of a single step within a run."""

    PENDING = "pending"  # Never reached
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # Deliberately bypassed


class WorkflowPriority(str, Enum):
    """Run priority, derived from amount bands."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProcessingMode(str, Enum):
    """How the run is driven."""

    AUTOMATIC = "automatic"
    MANUAL = "manual"


class StepId(str, Enum):
    """Identifiers of the steps a workflow can contain."""

    CLAIM_VALIDATION = "claim_validation"
    ELIGIBILITY_VERIFICATION = "eligibility_verification"
    FRAUD_DETECTION = "fraud_detection"
    MEDICAL_NECESSITY_VALIDATION = "medical_necessity_validation"
    MANUAL_CLINICAL_REVIEW = "manual_clinical_review"
    ENHANCED_REVIEW = "enhanced_review"
    FINANCIAL_CALCULATION = "financial_calculation"
    CLAIMS_ADJUDICATION = "claims_adjudication"
    EOB_GENERATION = "eob_generation"


# =============================================================================
# Stage Outcome Enums
# =============================================================================


class RiskLevel(str, Enum):
    """Fraud risk classification (score 0-100)."""

    NONE = "none"  # 0
    LOW = "low"  # > 0
    MEDIUM = "medium"  # >= 40
    HIGH = "high"  # >= 70
    CRITICAL = "critical"  # >= 85


class IndicatorSeverity(str, Enum):
    """Severity of a single fraud indicator."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FraudType(str, Enum):
    """Dominant fraud pattern for a claim."""

    NONE = "none"
    BILLING_FRAUD = "billing_fraud"
    DUPLICATE = "duplicate"


class NecessityOutcome(str, Enum):
    """Medical necessity verdict."""

    PASS = "pass"  # Score >= 80
    REVIEW_REQUIRED = "review_required"  # Score 40-79
    FAIL = "fail"  # Score < 40


class DiagnosisSupport(str, Enum):
    """Strength of the evidence supporting a diagnosis."""

    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class ProcedureCategory(str, Enum):
    """Procedure categories relevant to necessity review."""

    CONSULTATION = "consultation"
    DIAGNOSTIC = "diagnostic"
    SURGERY = "surgery"
    THERAPY = "therapy"
    PREVENTIVE = "preventive"
    EXPERIMENTAL = "experimental"
    COSMETIC = "cosmetic"


class ClinicalReviewDecision(str, Enum):
    """Outcome recorded by a clinical reviewer."""

    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"


class AdjudicationStatus(str, Enum):
    """Disposition produced by the decision engine."""

    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"
    DENIED = "denied"
    UNDER_REVIEW = "under_review"


class FinalStatus(str, Enum):
    """Final status reported on a compiled workflow result."""

    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"
    DENIED = "denied"
    UNDER_REVIEW = "under_review"
    INVESTIGATION_REQUIRED = "investigation_required"


# =============================================================================
# Reference Data Enums
# =============================================================================


class MemberStatus(str, Enum):
    """Member enrollment status."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class Gender(str, Enum):
    """Member gender as recorded on enrollment."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


# =============================================================================
# Alerting, Notification and Audit Enums
# =============================================================================


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertCode(str, Enum):
    """Alerts raised on a compiled workflow result."""

    FRAUD_RISK = "fraud_risk"
    INVESTIGATION_REQUIRED = "investigation_required"
    MEMBER_NOTIFICATION_REQUIRED = "member_notification_required"
    HIGH_VALUE_REVIEW = "high_value_review"
    CLINICAL_REVIEW_REQUIRED = "clinical_review_required"


class NotificationTrigger(str, Enum):
    """Events that may trigger an outbound notification."""

    CLAIM_SUBMITTED = "claim_submitted"
    ELIGIBILITY_VERIFIED = "eligibility_verified"
    MEDICAL_REVIEW_REQUIRED = "medical_review_required"
    FRAUD_DETECTED = "fraud_detected"
    CLAIM_APPROVED = "claim_approved"
    CLAIM_DENIED = "claim_denied"
    PAYMENT_PROCESSED = "payment_processed"


class AuditEventType(str, Enum):
    """Audit log event types."""

    WORKFLOW_STARTED = "workflow_started"
    WORKFLOW_FINISHED = "workflow_finished"


class EOBFormat(str, Enum):
    """Output encodings for the explanation of benefits."""

    JSON = "json"  # Structured
    HTML = "html"  # Rendered markup
    TEXT = "text"  # Plain text
