"""
Financial Responsibility Stage.

Splits the billed amount between member, insurer and provider discount.

Order is fixed: network discount, deductible, copay, coinsurance. The
insurer share is derived as original - member - discount so the three parts
always add back to the billed amount exactly. Any insurer share above the
remaining benefit limit moves to the member as an uncovered amount.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from claimflow.core.enums import ClinicalReviewDecision, NecessityOutcome
from claimflow.schemas.adjudication import BenefitApplication
from claimflow.schemas.claim import BenefitRecord, Claim
from claimflow.schemas.stages import (
    ClinicalReviewResult,
    EligibilityResult,
    FinancialResult,
    MedicalNecessityResult,
)
from claimflow.services.adapters.base import ReferenceDataProvider
from claimflow.utils.errors import ReferenceDataUnavailableError

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


def to_money(value: Decimal) -> Decimal:
    """Quantize to cents, rounding half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class FinancialResponsibilityCalculator:
    """Calculates member and insurer responsibility for a claim."""

    def __init__(self, reference_data: ReferenceDataProvider):
        self.reference_data = reference_data

    async def execute(
        self,
        claim: Claim,
        eligibility: Optional[EligibilityResult] = None,
        necessity: Optional[MedicalNecessityResult] = None,
        clinical_review: Optional[ClinicalReviewResult] = None,
    ) -> FinancialResult:
        """
        Calculate financial responsibility.

        Args:
            claim: Claim being adjudicated
            eligibility: Eligibility result supplying the remaining benefit limit
            necessity: Medical necessity result, a FAIL shifts the full amount to the member
            clinical_review: Manual review result, a rejection counts as a necessity FAIL

        Raises:
            ReferenceDataUnavailableError: If the benefit cannot be loaded
        """
        benefit = await self.reference_data.get_benefit(claim.benefit_id)
        if benefit is None:
            raise ReferenceDataUnavailableError(
                f"Benefit {claim.benefit_id} not found",
                claim_id=claim.claim_id,
            )
        provider = await self.reference_data.get_provider(claim.provider_id)
        in_network = provider is not None and provider.in_network

        if eligibility is not None:
            remaining_limit = eligibility.remaining_benefit_limit
        else:
            remaining_limit = await self._remaining_limit(claim, benefit)

        application = BenefitApplication(
            benefit_id=benefit.benefit_id,
            benefit_name=benefit.name,
            in_network=in_network,
            provider_discount_pct=benefit.provider_discount_pct,
            deductible=benefit.deductible,
            copay=benefit.copay,
            coinsurance_pct=benefit.coinsurance_pct,
            annual_limit=benefit.annual_limit,
            remaining_benefit_limit=remaining_limit,
        )

        necessity_denied = (
            necessity is not None and necessity.outcome == NecessityOutcome.FAIL
        ) or (
            clinical_review is not None
            and clinical_review.decision == ClinicalReviewDecision.REJECTED
        )

        return self.calculate(claim.amount, application, necessity_denied)

    def calculate(
        self,
        amount: Decimal,
        application: BenefitApplication,
        necessity_denied: bool = False,
    ) -> FinancialResult:
        """Apply discount, deductible, copay, coinsurance and the benefit limit."""
        original = to_money(amount)

        if necessity_denied:
            return self._summarize(
                original=original,
                application=application,
                discount=ZERO,
                deductible=ZERO,
                copay=ZERO,
                coinsurance=ZERO,
                uncovered=original,
                member=original,
                insurer=ZERO,
                necessity_denied=True,
            )

        discount = ZERO
        if application.in_network:
            discount = to_money(original * application.provider_discount_pct / HUNDRED)
        remaining = original - discount

        deductible = to_money(min(application.deductible, remaining))
        remaining -= deductible

        copay = to_money(min(application.copay, remaining))
        remaining -= copay

        coinsurance = to_money(remaining * application.coinsurance_pct / HUNDRED)

        member = deductible + copay + coinsurance
        insurer = original - member - discount

        uncovered = ZERO
        limit = application.remaining_benefit_limit
        if limit is not None and insurer > limit:
            uncovered = to_money(insurer - limit)
            insurer -= uncovered
            member += uncovered
            logger.info(f"Benefit limit reached, {uncovered} moved to member responsibility")

        return self._summarize(
            original=original,
            application=application,
            discount=discount,
            deductible=deductible,
            copay=copay,
            coinsurance=coinsurance,
            uncovered=uncovered,
            member=member,
            insurer=insurer,
        )

    def _summarize(
        self,
        *,
        original: Decimal,
        application: BenefitApplication,
        discount: Decimal,
        deductible: Decimal,
        copay: Decimal,
        coinsurance: Decimal,
        uncovered: Decimal,
        member: Decimal,
        insurer: Decimal,
        necessity_denied: bool = False,
    ) -> FinancialResult:
        def pct(part: Decimal) -> Decimal:
            return to_money(part / original * HUNDRED) if original else ZERO

        return FinancialResult(
            original_amount=original,
            provider_discount=discount,
            deductible_applied=deductible,
            copay_applied=copay,
            coinsurance_applied=coinsurance,
            uncovered_amount=uncovered,
            member_responsibility=member,
            insurer_responsibility=insurer,
            benefit_application=application,
            necessity_denied=necessity_denied,
            member_pct=pct(member),
            insurer_pct=pct(insurer),
            discount_pct=pct(discount),
        )

    async def _remaining_limit(
        self, claim: Claim, benefit: BenefitRecord
    ) -> Optional[Decimal]:
        if benefit.annual_limit is None:
            return None
        year = claim.service_date.year if claim.service_date else None
        if year is None:
            return benefit.annual_limit
        used = await self.reference_data.get_benefit_utilization(
            claim.member_id, claim.benefit_id, year
        )
        return max(ZERO, benefit.annual_limit - used)
