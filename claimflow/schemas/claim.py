"""
Pydantic Schemas for Claims and Reference Data.

Reference records are supplied by a ReferenceDataProvider and are read-only
inputs to the stage executors.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.enums import (
    ClinicalReviewDecision,
    Gender,
    MemberStatus,
    ProcedureCategory,
    RiskLevel,
)


class Claim(BaseModel):
    """A submitted claim. Immutable for the duration of a run."""

    model_config = ConfigDict(frozen=True)

    claim_id: str = Field(..., min_length=1)
    member_id: str = ""
    provider_id: str = ""
    benefit_id: str = ""
    amount: Decimal = Field(..., description="Billed amount, checked by validation")
    currency: str = "USD"
    service_date: Optional[date] = None
    submission_date: Optional[datetime] = None
    description: str = ""
    diagnosis_codes: list[str] = Field(default_factory=list)
    procedure_codes: list[str] = Field(default_factory=list)

    # Routing hint from an earlier screening, only used to pick a workflow type
    fraud_risk_level: Optional[RiskLevel] = None


# =============================================================================
# Reference Records
# =============================================================================


class MemberRecord(BaseModel):
    """Member enrollment record."""

    member_id: str
    policy_id: str
    name: str = ""
    status: MemberStatus = MemberStatus.ACTIVE
    enrollment_date: date
    date_of_birth: Optional[date] = None
    gender: Gender = Gender.UNKNOWN

    def age_on(self, on: date) -> Optional[int]:
        """Age in whole years on the given date."""
        if self.date_of_birth is None:
            return None
        dob = self.date_of_birth
        return on.year - dob.year - ((on.month, on.day) < (dob.month, dob.day))


class PolicyRecord(BaseModel):
    """Policy coverage window."""

    policy_id: str
    is_active: bool = True
    effective_date: Optional[date] = None
    termination_date: Optional[date] = None

    def is_effective_on(self, on: date) -> bool:
        if self.effective_date and on < self.effective_date:
            return False
        if self.termination_date and on > self.termination_date:
            return False
        return True


class BenefitRecord(BaseModel):
    """Benefit definition with cost sharing parameters."""

    benefit_id: str
    name: str = ""
    category: str = ""
    waiting_period_days: int = Field(default=0, ge=0)
    annual_limit: Optional[Decimal] = Field(default=None, ge=0)  # None means unlimited
    preauth_required: bool = False
    provider_discount_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    deductible: Decimal = Field(default=Decimal("0"), ge=0)
    copay: Decimal = Field(default=Decimal("0"), ge=0)
    coinsurance_pct: Decimal = Field(default=Decimal("0"), ge=0, le=100)


class ProviderRecord(BaseModel):
    """Provider network record."""

    provider_id: str
    name: str = ""
    in_network: bool = True
    address: str = ""
    phone: str = ""


class ClinicalGuideline(BaseModel):
    """Clinical guideline matched against diagnosis and procedure codes."""

    guideline_id: str
    name: str
    source: str = ""
    diagnosis_codes: list[str] = Field(default_factory=list)
    procedure_codes: list[str] = Field(default_factory=list)
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    genders: list[Gender] = Field(default_factory=list)  # Empty means any
    criteria: list[str] = Field(default_factory=list)

    def matches(self, diagnosis_codes: list[str], procedure_codes: list[str]) -> bool:
        """A guideline matches when it shares a diagnosis and a procedure code."""
        dx = set(self.diagnosis_codes) & set(diagnosis_codes)
        px = set(self.procedure_codes) & set(procedure_codes)
        return bool(dx) and bool(px)

    def fits_age(self, age: Optional[int]) -> bool:
        if age is None:
            return True
        if self.min_age is not None and age < self.min_age:
            return False
        if self.max_age is not None and age > self.max_age:
            return False
        return True

    def fits_gender(self, gender: Gender) -> bool:
        return not self.genders or gender in self.genders


class ProcedureRecord(BaseModel):
    """Procedure code table entry."""

    code: str
    description: str = ""
    category: ProcedureCategory = ProcedureCategory.CONSULTATION


class FraudSignals(BaseModel):
    """Precomputed fraud signals for a claim."""

    provider_average_claim_amount: Optional[Decimal] = None
    duplicate_suspected: bool = False
    upcoding_suspected: bool = False
    provider_outlier: bool = False
    provider_network_compliant: bool = True
    member_distinct_providers_90d: int = Field(default=0, ge=0)
    clinical_anomalies: list[str] = Field(default_factory=list)
    compliance_issues: list[str] = Field(default_factory=list)
    model_score: Optional[float] = Field(default=None, ge=0, le=100)


class ClinicalReviewOutcome(BaseModel):
    """Outcome recorded by a clinical reviewer."""

    reviewer: str = ""
    decision: ClinicalReviewDecision
    notes: str = ""
    reviewed_at: Optional[datetime] = None
