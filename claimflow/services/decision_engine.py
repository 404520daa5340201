"""
Adjudication Decision Engine.

Combines stage results into a single AdjudicationDecision. Rules are applied
in precedence order and the first match wins:

1. Eligibility missing raises DecisionError; ineligible claims are denied
2. Medical necessity failed, or clinical review rejected: denied
3. Fraud risk medium or above: denied, investigation required
4. Enhanced review hold, uncleared necessity review or pending clinical
   review: under review
5. Financial result missing raises DecisionError
6. Member bears responsibility beyond cost sharing: partially approved
7. Otherwise approved, or under review when auto approval is disabled
"""

import logging
from typing import Optional

from claimflow.core.enums import (
    AdjudicationStatus,
    ClinicalReviewDecision,
    NecessityOutcome,
    RiskLevel,
    StepId,
)
from claimflow.schemas.adjudication import AdjudicationDecision, BenefitApplication
from claimflow.schemas.claim import Claim
from claimflow.schemas.stages import (
    ClinicalReviewResult,
    EligibilityResult,
    EnhancedReviewResult,
    FinancialResult,
    FraudAnalysisResult,
    MedicalNecessityResult,
)
from claimflow.services.stages.financial import ZERO, to_money
from claimflow.utils.errors import DecisionError

logger = logging.getLogger(__name__)


# Rule identifiers recorded on decisions
RULE_ELIGIBILITY_DENIED = "ADJ001"
RULE_NECESSITY_FAILED = "ADJ002"
RULE_CLINICAL_REVIEW_REJECTED = "ADJ003"
RULE_FRAUD_INVESTIGATION = "ADJ004"
RULE_ENHANCED_REVIEW_HOLD = "ADJ005"
RULE_NECESSITY_REVIEW = "ADJ006"
RULE_CLINICAL_REVIEW_PENDING = "ADJ007"
RULE_PARTIAL_APPROVAL = "ADJ008"
RULE_APPROVED = "ADJ009"
RULE_AUTO_APPROVAL_DISABLED = "ADJ010"
RULE_OUT_OF_NETWORK = "ADJ011"

FRAUD_DENIAL_LEVELS = frozenset({RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL})

NECESSITY_DENIAL_REASON = "Medical necessity not established"
FRAUD_DENIAL_REASON = "Fraud indicators detected - requires investigation"


class DecisionEngine:
    """Derives the final adjudication decision from stage results."""

    def __init__(
        self,
        enable_auto_approval: bool = True,
        partial_approval_on_cost_sharing: bool = False,
    ):
        self.enable_auto_approval = enable_auto_approval
        self.partial_approval_on_cost_sharing = partial_approval_on_cost_sharing

    def decide(
        self,
        claim: Claim,
        eligibility: Optional[EligibilityResult],
        necessity: Optional[MedicalNecessityResult],
        fraud: Optional[FraudAnalysisResult],
        benefit_application: Optional[BenefitApplication],
        financial: Optional[FinancialResult],
        *,
        clinical_review: Optional[ClinicalReviewResult] = None,
        enhanced_review: Optional[EnhancedReviewResult] = None,
    ) -> AdjudicationDecision:
        """
        Decide a claim.

        Raises:
            DecisionError: If eligibility, or financial for a payable claim, is missing
        """
        sources = self._source_stages(
            eligibility, necessity, fraud, financial, clinical_review, enhanced_review
        )
        full_amount = to_money(claim.amount)

        def denied(reasons: list[str], rules: list[str], investigation: bool = False):
            return AdjudicationDecision(
                claim_id=claim.claim_id,
                status=AdjudicationStatus.DENIED,
                approved_amount=ZERO,
                member_responsibility=full_amount,
                insurer_responsibility=ZERO,
                denial_reasons=reasons,
                applied_rules=rules,
                investigation_required=investigation,
                source_stages=sources,
            )

        # 1. Eligibility
        if eligibility is None:
            raise DecisionError(
                "Eligibility result is required for a decision",
                claim_id=claim.claim_id,
                step_id=StepId.CLAIMS_ADJUDICATION.value,
            )
        if not eligibility.eligible:
            return denied(list(eligibility.denial_reasons), [RULE_ELIGIBILITY_DENIED])

        # 2. Medical necessity
        review_decision = clinical_review.decision if clinical_review else None
        if necessity is not None and necessity.outcome == NecessityOutcome.FAIL:
            return denied([NECESSITY_DENIAL_REASON], [RULE_NECESSITY_FAILED])
        if review_decision == ClinicalReviewDecision.REJECTED:
            return denied([NECESSITY_DENIAL_REASON], [RULE_CLINICAL_REVIEW_REJECTED])

        # 3. Fraud
        if fraud is not None and fraud.risk_level in FRAUD_DENIAL_LEVELS:
            return denied([FRAUD_DENIAL_REASON], [RULE_FRAUD_INVESTIGATION], investigation=True)

        # 4. Holds
        review_reasons: list[str] = []
        rules: list[str] = []
        investigation = False
        if enhanced_review is not None and enhanced_review.investigation_required:
            review_reasons.append("Enhanced review hold: " + enhanced_review.recommendation)
            rules.append(RULE_ENHANCED_REVIEW_HOLD)
            investigation = True
        if (
            necessity is not None
            and necessity.outcome == NecessityOutcome.REVIEW_REQUIRED
            and review_decision != ClinicalReviewDecision.APPROVED
        ):
            review_reasons.append("Medical necessity requires clinical review")
            rules.append(RULE_NECESSITY_REVIEW)
        if review_decision == ClinicalReviewDecision.PENDING:
            review_reasons.append("Clinical review pending")
            rules.append(RULE_CLINICAL_REVIEW_PENDING)
        if review_reasons:
            return self._under_review(claim, financial, review_reasons, rules, investigation, sources)

        # 5. Financial
        if financial is None:
            raise DecisionError(
                "Financial result is required to approve a claim",
                claim_id=claim.claim_id,
                step_id=StepId.CLAIMS_ADJUDICATION.value,
            )

        application = benefit_application or financial.benefit_application
        rules = [RULE_OUT_OF_NETWORK] if not application.in_network else []

        # 6. Partial approval
        if self.partial_approval_on_cost_sharing:
            partial = financial.member_responsibility > 0
        else:
            partial = financial.uncovered_amount > 0

        if not self.enable_auto_approval:
            return self._under_review(
                claim,
                financial,
                ["Automatic approval disabled"],
                rules + [RULE_AUTO_APPROVAL_DISABLED],
                False,
                sources,
            )

        status = AdjudicationStatus.PARTIALLY_APPROVED if partial else AdjudicationStatus.APPROVED
        rules.append(RULE_PARTIAL_APPROVAL if partial else RULE_APPROVED)
        decision = AdjudicationDecision(
            claim_id=claim.claim_id,
            status=status,
            approved_amount=financial.insurer_responsibility,
            member_responsibility=financial.member_responsibility,
            insurer_responsibility=financial.insurer_responsibility,
            applied_rules=rules,
            source_stages=sources,
        )
        logger.info(
            f"Claim {claim.claim_id} {status.value}: approved {decision.approved_amount}"
        )
        return decision

    def _under_review(
        self,
        claim: Claim,
        financial: Optional[FinancialResult],
        reasons: list[str],
        rules: list[str],
        investigation: bool,
        sources: list[str],
    ) -> AdjudicationDecision:
        member = financial.member_responsibility if financial else ZERO
        insurer = financial.insurer_responsibility if financial else ZERO
        return AdjudicationDecision(
            claim_id=claim.claim_id,
            status=AdjudicationStatus.UNDER_REVIEW,
            approved_amount=ZERO,
            member_responsibility=member,
            insurer_responsibility=insurer,
            review_reasons=reasons,
            applied_rules=rules,
            investigation_required=investigation,
            source_stages=sources,
        )

    def _source_stages(
        self,
        eligibility: Optional[EligibilityResult],
        necessity: Optional[MedicalNecessityResult],
        fraud: Optional[FraudAnalysisResult],
        financial: Optional[FinancialResult],
        clinical_review: Optional[ClinicalReviewResult],
        enhanced_review: Optional[EnhancedReviewResult],
    ) -> list[str]:
        present = [
            (StepId.ELIGIBILITY_VERIFICATION, eligibility),
            (StepId.FRAUD_DETECTION, fraud),
            (StepId.MEDICAL_NECESSITY_VALIDATION, necessity),
            (StepId.MANUAL_CLINICAL_REVIEW, clinical_review),
            (StepId.ENHANCED_REVIEW, enhanced_review),
            (StepId.FINANCIAL_CALCULATION, financial),
        ]
        return [step.value for step, result in present if result is not None]


# =============================================================================
# Factory Functions
# =============================================================================


def create_decision_engine(
    enable_auto_approval: bool = True,
    partial_approval_on_cost_sharing: bool = False,
) -> DecisionEngine:
    """Create a new DecisionEngine instance."""
    return DecisionEngine(enable_auto_approval, partial_approval_on_cost_sharing)
