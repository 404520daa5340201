"""
Eligibility Stage.

Checks, in order: policy active on the service date, member active, waiting
period satisfied, benefit limit remaining, provider in network and
pre-authorization present when required. Every failing check contributes a
denial reason so the member sees all of them at once.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from claimflow.core.enums import MemberStatus
from claimflow.schemas.claim import BenefitRecord, Claim
from claimflow.schemas.stages import EligibilityCheck, EligibilityResult
from claimflow.services.adapters.base import ReferenceDataProvider

logger = logging.getLogger(__name__)


class EligibilityChecker:
    """Verifies member, policy, benefit and provider eligibility."""

    def __init__(self, reference_data: ReferenceDataProvider):
        self.reference_data = reference_data

    async def execute(self, claim: Claim) -> EligibilityResult:
        """
        Check eligibility for a claim.

        Args:
            claim: Claim to check

        Returns:
            EligibilityResult, eligible only when no check failed

        Raises:
            ReferenceDataUnavailableError: If a lookup fails
        """
        service_date = claim.service_date or date.today()
        checks: list[EligibilityCheck] = []

        member = await self.reference_data.get_member(claim.member_id)
        policy = (
            await self.reference_data.get_policy(member.policy_id) if member else None
        )
        benefit = await self.reference_data.get_benefit(claim.benefit_id)
        provider = await self.reference_data.get_provider(claim.provider_id)

        # Policy active
        policy_ok = (
            policy is not None
            and policy.is_active
            and policy.is_effective_on(service_date)
        )
        checks.append(
            EligibilityCheck(
                name="policy_active",
                passed=policy_ok,
                message=None if policy_ok else "Policy period not active",
            )
        )

        # Member active
        member_ok = member is not None and member.status == MemberStatus.ACTIVE
        checks.append(
            EligibilityCheck(
                name="member_active",
                passed=member_ok,
                message=None if member_ok else "Member coverage not active",
            )
        )

        # Waiting period
        if benefit is None:
            waiting_ok = False
            waiting_message = f"Benefit {claim.benefit_id} not found"
        elif member is None:
            waiting_ok = False
            waiting_message = (
                f"Waiting period of {benefit.waiting_period_days} days not satisfied"
            )
        else:
            waiting_ok = (
                member.enrollment_date + timedelta(days=benefit.waiting_period_days)
                <= service_date
            )
            waiting_message = (
                f"Waiting period of {benefit.waiting_period_days} days not satisfied"
            )
        checks.append(
            EligibilityCheck(
                name="waiting_period",
                passed=waiting_ok,
                message=None if waiting_ok else waiting_message,
            )
        )

        # Benefit limit, a missing benefit is already reported above
        remaining = await self._remaining_limit(claim, benefit, service_date.year)
        limit_ok = benefit is not None and (remaining is None or remaining > 0)
        checks.append(
            EligibilityCheck(
                name="benefit_limit",
                passed=limit_ok,
                message=None
                if limit_ok or benefit is None
                else f"Benefit limit of {benefit.annual_limit} exhausted",
            )
        )

        # Provider network
        network_ok = provider is not None and provider.in_network
        checks.append(
            EligibilityCheck(
                name="provider_network",
                passed=network_ok,
                message=None if network_ok else "Provider not in network",
            )
        )

        # Pre-authorization
        preauth_ok = True
        if benefit is not None and benefit.preauth_required:
            preauth_ok = await self.reference_data.has_preauthorization(
                claim.member_id, claim.benefit_id, claim.service_date
            )
        checks.append(
            EligibilityCheck(
                name="preauthorization",
                passed=preauth_ok,
                message=None if preauth_ok else "Pre-authorization required but not found",
            )
        )

        denial_reasons = [c.message for c in checks if not c.passed and c.message]
        if denial_reasons:
            logger.info(
                f"Claim {claim.claim_id} ineligible: {', '.join(denial_reasons)}"
            )

        return EligibilityResult(
            eligible=not denial_reasons,
            denial_reasons=denial_reasons,
            checks=checks,
            remaining_benefit_limit=remaining,
        )

    async def _remaining_limit(
        self,
        claim: Claim,
        benefit: Optional[BenefitRecord],
        year: int,
    ) -> Optional[Decimal]:
        """Annual limit minus utilization, None for unlimited benefits."""
        if benefit is None:
            return Decimal("0.00")
        if benefit.annual_limit is None:
            return None
        used = await self.reference_data.get_benefit_utilization(
            claim.member_id, claim.benefit_id, year
        )
        return max(Decimal("0.00"), benefit.annual_limit - used)
