"""
Stage Result Schemas.

Every stage executor returns one of these models. They form a tagged union
discriminated on ``kind`` so a step's result can be stored and re-read
without losing its type.
"""

from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from claimflow.core.enums import (
    ClinicalReviewDecision,
    DiagnosisSupport,
    EOBFormat,
    FraudType,
    IndicatorSeverity,
    NecessityOutcome,
    RiskLevel,
)
from claimflow.schemas.adjudication import AdjudicationDecision, BenefitApplication
from claimflow.schemas.eob import EOBDocument


class ClaimValidationResult(BaseModel):
    """Structural validation of the claim record."""

    kind: Literal["claim_validation"] = "claim_validation"
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class EligibilityCheck(BaseModel):
    """Result of a single eligibility check."""

    name: str
    passed: bool
    message: Optional[str] = None


class EligibilityResult(BaseModel):
    """Member, policy and benefit eligibility."""

    kind: Literal["eligibility"] = "eligibility"
    eligible: bool
    denial_reasons: list[str] = Field(default_factory=list)
    checks: list[EligibilityCheck] = Field(default_factory=list)
    remaining_benefit_limit: Optional[Decimal] = None  # None means unlimited


# =============================================================================
# Fraud
# =============================================================================


class FraudIndicator(BaseModel):
    """A single fraud indicator contributing to the rule score."""

    code: str
    description: str
    severity: IndicatorSeverity
    weight: int


class FraudAnalysisResult(BaseModel):
    """Fraud risk analysis."""

    kind: Literal["fraud"] = "fraud"
    risk_score: float = Field(..., ge=0, le=100)
    rule_score: float = 0.0
    model_score: Optional[float] = None
    risk_level: RiskLevel
    fraud_type: FraudType = FraudType.NONE
    indicators: list[FraudIndicator] = Field(default_factory=list)
    investigation_required: bool = False
    recommendations: list[str] = Field(default_factory=list)
    action_items: list[str] = Field(default_factory=list)


# =============================================================================
# Medical Necessity and Reviews
# =============================================================================


class MedicalNecessityResult(BaseModel):
    """Medical necessity validation against clinical guidelines."""

    kind: Literal["medical_necessity"] = "medical_necessity"
    score: float = Field(..., ge=0, le=100)
    outcome: NecessityOutcome
    diagnosis_support: DiagnosisSupport
    diagnosis_score: float = 0.0
    procedure_score: float = 0.0
    guideline_score: float = 0.0
    demographic_penalty: float = 0.0
    requires_clinical_review: bool = False
    guideline_references: list[str] = Field(default_factory=list)
    confidence_level: float = Field(default=0.0, ge=0, le=1)
    risk_indicators: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ClinicalReviewResult(BaseModel):
    """Manual clinical review status."""

    kind: Literal["clinical_review"] = "clinical_review"
    decision: ClinicalReviewDecision
    reviewer: str = ""
    notes: str = ""
    enqueued: bool = False
    reasons: list[str] = Field(default_factory=list)


class EnhancedReviewResult(BaseModel):
    """Investigation hold for high value or high risk claims."""

    kind: Literal["enhanced_review"] = "enhanced_review"
    investigation_required: bool = True
    recommendation: str = "hold_for_manual_review"
    review_flags: list[str] = Field(default_factory=list)


# =============================================================================
# Financial and Documents
# =============================================================================


class FinancialResult(BaseModel):
    """Split of the billed amount between member, insurer and discount."""

    kind: Literal["financial"] = "financial"
    original_amount: Decimal
    provider_discount: Decimal = Decimal("0.00")
    deductible_applied: Decimal = Decimal("0.00")
    copay_applied: Decimal = Decimal("0.00")
    coinsurance_applied: Decimal = Decimal("0.00")
    uncovered_amount: Decimal = Decimal("0.00")
    member_responsibility: Decimal
    insurer_responsibility: Decimal
    benefit_application: BenefitApplication
    necessity_denied: bool = False

    # Summary percentages of the original amount
    member_pct: Decimal = Decimal("0.00")
    insurer_pct: Decimal = Decimal("0.00")
    discount_pct: Decimal = Decimal("0.00")


class EOBResult(BaseModel):
    """Generated explanation of benefits."""

    kind: Literal["eob"] = "eob"
    eob_number: str
    document: EOBDocument
    rendered: dict[EOBFormat, str] = Field(default_factory=dict)


StageResult = Annotated[
    Union[
        ClaimValidationResult,
        EligibilityResult,
        FraudAnalysisResult,
        MedicalNecessityResult,
        ClinicalReviewResult,
        EnhancedReviewResult,
        FinancialResult,
        AdjudicationDecision,
        EOBResult,
    ],
    Field(discriminator="kind"),
]
