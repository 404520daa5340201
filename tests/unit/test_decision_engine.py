"""
Tests for the adjudication decision engine.
"""

from decimal import Decimal

import pytest

from claimflow.core.enums import (
    AdjudicationStatus,
    ClinicalReviewDecision,
    DiagnosisSupport,
    NecessityOutcome,
    RiskLevel,
)
from claimflow.schemas.adjudication import BenefitApplication
from claimflow.schemas.stages import (
    ClinicalReviewResult,
    EligibilityResult,
    EnhancedReviewResult,
    FinancialResult,
    FraudAnalysisResult,
    MedicalNecessityResult,
)
from claimflow.services.decision_engine import (
    FRAUD_DENIAL_REASON,
    NECESSITY_DENIAL_REASON,
    DecisionEngine,
    create_decision_engine,
)
from claimflow.utils.errors import DecisionError

ELIGIBLE = EligibilityResult(eligible=True)


def necessity(outcome: NecessityOutcome, score: float = 90) -> MedicalNecessityResult:
    return MedicalNecessityResult(
        score=score, outcome=outcome, diagnosis_support=DiagnosisSupport.STRONG
    )


def fraud(level: RiskLevel, score: float = 0) -> FraudAnalysisResult:
    return FraudAnalysisResult(risk_score=score, risk_level=level)


def financial(
    member: str = "70.00",
    insurer: str = "930.00",
    uncovered: str = "0.00",
    in_network: bool = True,
) -> FinancialResult:
    return FinancialResult(
        original_amount=Decimal("1000.00"),
        member_responsibility=Decimal(member),
        insurer_responsibility=Decimal(insurer),
        uncovered_amount=Decimal(uncovered),
        benefit_application=BenefitApplication(benefit_id="BEN-BASIC", in_network=in_network),
    )


@pytest.fixture
def engine():
    return create_decision_engine()


class TestDecisionPrecedence:
    """Test that rules apply in precedence order."""

    def test_approved(self, engine, claim):
        fin = financial()
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.PASS), fraud(RiskLevel.NONE),
            fin.benefit_application, fin,
        )
        assert decision.status == AdjudicationStatus.APPROVED
        assert decision.approved_amount == Decimal("930.00")
        assert decision.member_responsibility == Decimal("70.00")
        assert decision.applied_rules == ["ADJ009"]
        assert decision.is_payable is True
        assert decision.source_stages == [
            "eligibility_verification",
            "fraud_detection",
            "medical_necessity_validation",
            "financial_calculation",
        ]

    def test_ineligible_denied_with_reasons(self, engine, claim):
        eligibility = EligibilityResult(
            eligible=False, denial_reasons=["Policy period not active"]
        )
        decision = engine.decide(claim, eligibility, None, None, None, None)
        assert decision.status == AdjudicationStatus.DENIED
        assert decision.denial_reasons == ["Policy period not active"]
        assert decision.approved_amount == Decimal("0.00")
        assert decision.member_responsibility == Decimal("1000.00")
        assert decision.primary_reason() == "Policy period not active"

    def test_missing_eligibility_raises(self, engine, claim):
        with pytest.raises(DecisionError):
            engine.decide(claim, None, None, None, None, financial())

    def test_necessity_failure_beats_fraud(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.FAIL, 20),
            fraud(RiskLevel.CRITICAL, 95), None, financial(),
        )
        assert decision.status == AdjudicationStatus.DENIED
        assert decision.denial_reasons == [NECESSITY_DENIAL_REASON]
        assert decision.investigation_required is False

    def test_rejected_clinical_review_denied(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, None, None, None, financial(),
            clinical_review=ClinicalReviewResult(decision=ClinicalReviewDecision.REJECTED),
        )
        assert decision.status == AdjudicationStatus.DENIED
        assert decision.applied_rules == ["ADJ003"]

    @pytest.mark.parametrize("level", [RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL])
    def test_fraud_denied_for_investigation(self, engine, claim, level):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.PASS), fraud(level, 75), None, financial()
        )
        assert decision.status == AdjudicationStatus.DENIED
        assert decision.denial_reasons == [FRAUD_DENIAL_REASON]
        assert decision.investigation_required is True

    def test_low_fraud_does_not_deny(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.PASS), fraud(RiskLevel.LOW, 10),
            None, financial(),
        )
        assert decision.status == AdjudicationStatus.APPROVED

    def test_fraud_beats_review_hold(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.REVIEW_REQUIRED, 60),
            fraud(RiskLevel.HIGH, 72), None, None,
            enhanced_review=EnhancedReviewResult(),
        )
        assert decision.status == AdjudicationStatus.DENIED


class TestReviewHolds:
    """Test under review outcomes."""

    def test_enhanced_review_hold(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, None, fraud(RiskLevel.NONE), None, None,
            enhanced_review=EnhancedReviewResult(),
        )
        assert decision.status == AdjudicationStatus.UNDER_REVIEW
        assert decision.investigation_required is True
        assert decision.approved_amount == Decimal("0.00")

    def test_necessity_review_required(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.REVIEW_REQUIRED, 60), None, None, financial()
        )
        assert decision.status == AdjudicationStatus.UNDER_REVIEW
        assert decision.review_reasons == ["Medical necessity requires clinical review"]
        assert decision.member_responsibility == Decimal("70.00")

    def test_approved_review_clears_necessity_hold(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.REVIEW_REQUIRED, 60), None, None, financial(),
            clinical_review=ClinicalReviewResult(decision=ClinicalReviewDecision.APPROVED),
        )
        assert decision.status == AdjudicationStatus.APPROVED

    def test_pending_clinical_review(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, None, None, None, financial(),
            clinical_review=ClinicalReviewResult(decision=ClinicalReviewDecision.PENDING),
        )
        assert decision.status == AdjudicationStatus.UNDER_REVIEW
        assert decision.applied_rules == ["ADJ007"]

    def test_auto_approval_disabled(self, claim):
        engine = DecisionEngine(enable_auto_approval=False)
        decision = engine.decide(
            claim, ELIGIBLE, necessity(NecessityOutcome.PASS), None, None, financial()
        )
        assert decision.status == AdjudicationStatus.UNDER_REVIEW
        assert decision.review_reasons == ["Automatic approval disabled"]


class TestPartialApproval:
    """Test partial approval rules."""

    def test_cost_sharing_alone_is_approval(self, engine, claim):
        decision = engine.decide(claim, ELIGIBLE, None, None, None, financial())
        assert decision.status == AdjudicationStatus.APPROVED

    def test_uncovered_amount_is_partial(self, engine, claim):
        decision = engine.decide(
            claim, ELIGIBLE, None, None, None,
            financial(member="400.00", insurer="600.00", uncovered="330.00"),
        )
        assert decision.status == AdjudicationStatus.PARTIALLY_APPROVED
        assert decision.approved_amount == Decimal("600.00")
        assert decision.applied_rules == ["ADJ008"]

    def test_cost_sharing_flag(self, claim):
        engine = DecisionEngine(partial_approval_on_cost_sharing=True)
        decision = engine.decide(claim, ELIGIBLE, None, None, None, financial())
        assert decision.status == AdjudicationStatus.PARTIALLY_APPROVED

    def test_out_of_network_rule_recorded(self, engine, claim):
        decision = engine.decide(claim, ELIGIBLE, None, None, None, financial(in_network=False))
        assert decision.applied_rules == ["ADJ011", "ADJ009"]

    def test_missing_financial_raises(self, engine, claim):
        with pytest.raises(DecisionError):
            engine.decide(claim, ELIGIBLE, necessity(NecessityOutcome.PASS), None, None, None)

    def test_each_decision_is_new(self, engine, claim):
        first = engine.decide(claim, ELIGIBLE, None, None, None, financial())
        second = engine.decide(claim, ELIGIBLE, None, None, None, financial())
        assert first.decision_id != second.decision_id
