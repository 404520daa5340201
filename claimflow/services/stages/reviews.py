"""
Review Stages.

ClinicalReviewStage backs the manual clinical review step of manual_review
workflows. EnhancedReviewStage backs the enhanced review step of
investigation workflows and always places the claim on hold.
"""

import logging
from typing import Optional

from claimflow.core.enums import ClinicalReviewDecision, RiskLevel
from claimflow.schemas.claim import Claim
from claimflow.schemas.stages import (
    ClinicalReviewResult,
    EnhancedReviewResult,
    FraudAnalysisResult,
)
from claimflow.services.adapters.base import ClinicalReviewQueue

logger = logging.getLogger(__name__)


class ClinicalReviewStage:
    """Consults the clinical review queue for a recorded outcome."""

    def __init__(self, review_queue: ClinicalReviewQueue):
        self.review_queue = review_queue

    async def execute(
        self,
        claim: Claim,
        fraud: Optional[FraudAnalysisResult] = None,
    ) -> ClinicalReviewResult:
        """
        Return the recorded review outcome, or enqueue the claim and report
        it as pending.
        """
        outcome = await self.review_queue.get_outcome(claim.claim_id)
        if outcome is not None and outcome.decision != ClinicalReviewDecision.PENDING:
            return ClinicalReviewResult(
                decision=outcome.decision,
                reviewer=outcome.reviewer,
                notes=outcome.notes,
            )

        reasons = [f"Claim amount {claim.amount} {claim.currency} requires clinical review"]
        if fraud is not None and fraud.risk_level != RiskLevel.NONE:
            reasons.append(f"Fraud risk level {fraud.risk_level.value}")
        if outcome is None:
            await self.review_queue.enqueue(claim.claim_id, reasons)
            logger.info(f"Claim {claim.claim_id} queued for clinical review")

        return ClinicalReviewResult(
            decision=ClinicalReviewDecision.PENDING,
            enqueued=outcome is None,
            reasons=reasons,
        )


class EnhancedReviewStage:
    """Produces an investigation hold with review flags."""

    async def execute(
        self,
        claim: Claim,
        fraud: Optional[FraudAnalysisResult] = None,
    ) -> EnhancedReviewResult:
        flags = [f"High value claim: {claim.amount} {claim.currency}"]
        if fraud is not None:
            flags.append(f"Fraud risk {fraud.risk_level.value} (score {fraud.risk_score:.1f})")
            flags.extend(indicator.description for indicator in fraud.indicators)
        return EnhancedReviewResult(
            investigation_required=True,
            recommendation="hold_for_manual_review",
            review_flags=flags,
        )
