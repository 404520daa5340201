"""
Pydantic Schemas for Claim Adjudication.

An AdjudicationDecision is a new record for every run. Re-processing a claim
never mutates an earlier decision.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from claimflow.core.enums import AdjudicationStatus


class BenefitApplication(BaseModel):
    """Coverage parameters applied by the financial calculation."""

    benefit_id: str
    benefit_name: str = ""
    in_network: bool = True
    provider_discount_pct: Decimal = Decimal("0")
    deductible: Decimal = Decimal("0")
    copay: Decimal = Decimal("0")
    coinsurance_pct: Decimal = Decimal("0")
    annual_limit: Optional[Decimal] = None
    remaining_benefit_limit: Optional[Decimal] = None


class AdjudicationDecision(BaseModel):
    """Final adjudication decision for one run."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["adjudication"] = "adjudication"
    decision_id: str = Field(default_factory=lambda: str(uuid4()))
    claim_id: str
    status: AdjudicationStatus

    # Amounts
    approved_amount: Decimal = Decimal("0.00")
    member_responsibility: Decimal = Decimal("0.00")
    insurer_responsibility: Decimal = Decimal("0.00")

    # Rationale
    denial_reasons: list[str] = Field(default_factory=list)
    review_reasons: list[str] = Field(default_factory=list)
    applied_rules: list[str] = Field(default_factory=list)
    investigation_required: bool = False
    source_stages: list[str] = Field(
        default_factory=list,
        description="Step ids of the stage results consulted",
    )

    decided_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_payable(self) -> bool:
        return self.status in (
            AdjudicationStatus.APPROVED,
            AdjudicationStatus.PARTIALLY_APPROVED,
        )

    def primary_reason(self) -> Optional[str]:
        reasons = self.denial_reasons or self.review_reasons
        return reasons[0] if reasons else None
