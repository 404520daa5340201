"""
Fraud Risk Stage.

Rule-based risk scoring from precomputed fraud signals, optionally blended
with an external model score.
"""

import logging
from decimal import Decimal
from typing import Optional

from claimflow.core.enums import FraudType, IndicatorSeverity, RiskLevel
from claimflow.schemas.claim import Claim, FraudSignals
from claimflow.schemas.stages import FraudAnalysisResult, FraudIndicator
from claimflow.services.adapters.base import ReferenceDataProvider

logger = logging.getLogger(__name__)


class FraudRiskAnalyzer:
    """
    Scores fraud risk for a claim.

    Rule score is the sum of indicator weights scaled by severity, capped at
    100. When the signals carry a model score the final score is a 60/40
    blend of rule and model.
    """

    # Risk thresholds (0-100)
    CRITICAL_THRESHOLD = 85
    HIGH_THRESHOLD = 70
    MEDIUM_THRESHOLD = 40

    SEVERITY_FACTORS = {
        IndicatorSeverity.HIGH: 1.0,
        IndicatorSeverity.MEDIUM: 0.7,
        IndicatorSeverity.LOW: 0.4,
    }

    RULE_WEIGHT = 0.6
    MODEL_WEIGHT = 0.4

    HIGH_BILLING_MULTIPLIER = Decimal("3")
    PROVIDER_SHOPPING_LIMIT = 5

    INVESTIGATION_LEVELS = frozenset({RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL})

    def __init__(self, reference_data: ReferenceDataProvider):
        self.reference_data = reference_data

    async def execute(self, claim: Claim) -> FraudAnalysisResult:
        """
        Analyze fraud risk for a claim.

        Raises:
            ReferenceDataUnavailableError: If fraud signals cannot be loaded
        """
        signals = await self.reference_data.get_fraud_signals(claim)
        indicators = self.build_indicators(claim, signals)

        rule_score = self.rule_score(indicators)
        risk_score = self.blend(rule_score, signals.model_score)
        risk_level = self.get_risk_level(risk_score)
        fraud_type = self._get_fraud_type(indicators)
        investigation_required = risk_level in self.INVESTIGATION_LEVELS

        if investigation_required:
            logger.warning(
                f"Claim {claim.claim_id} fraud risk {risk_level.value} "
                f"(score={risk_score:.1f}, indicators={len(indicators)})"
            )

        return FraudAnalysisResult(
            risk_score=risk_score,
            rule_score=rule_score,
            model_score=signals.model_score,
            risk_level=risk_level,
            fraud_type=fraud_type,
            indicators=indicators,
            investigation_required=investigation_required,
            recommendations=self._get_recommendations(risk_level, indicators),
            action_items=self._get_action_items(
                risk_level, investigation_required, fraud_type
            ),
        )

    def build_indicators(self, claim: Claim, signals: FraudSignals) -> list[FraudIndicator]:
        """Translate fraud signals into weighted indicators."""
        indicators: list[FraudIndicator] = []

        average = signals.provider_average_claim_amount
        if average and claim.amount > average * self.HIGH_BILLING_MULTIPLIER:
            indicators.append(
                FraudIndicator(
                    code="high_billing",
                    description=(
                        f"Amount {claim.amount} exceeds 3x provider average {average}"
                    ),
                    severity=IndicatorSeverity.HIGH,
                    weight=20,
                )
            )
        if signals.duplicate_suspected:
            indicators.append(
                FraudIndicator(
                    code="duplicate_billing",
                    description="Possible duplicate of an earlier claim",
                    severity=IndicatorSeverity.HIGH,
                    weight=25,
                )
            )
        if signals.upcoding_suspected:
            indicators.append(
                FraudIndicator(
                    code="upcoding",
                    description="Procedure coding above the documented service level",
                    severity=IndicatorSeverity.MEDIUM,
                    weight=15,
                )
            )
        if signals.provider_outlier:
            indicators.append(
                FraudIndicator(
                    code="provider_outlier",
                    description="Provider billing pattern is a statistical outlier",
                    severity=IndicatorSeverity.MEDIUM,
                    weight=10,
                )
            )
        if not signals.provider_network_compliant:
            indicators.append(
                FraudIndicator(
                    code="network_compliance",
                    description="Provider not compliant with network agreement",
                    severity=IndicatorSeverity.MEDIUM,
                    weight=10,
                )
            )
        if signals.member_distinct_providers_90d > self.PROVIDER_SHOPPING_LIMIT:
            indicators.append(
                FraudIndicator(
                    code="provider_shopping",
                    description=(
                        f"Member saw {signals.member_distinct_providers_90d} "
                        "providers in 90 days"
                    ),
                    severity=IndicatorSeverity.LOW,
                    weight=5,
                )
            )
        for anomaly in signals.clinical_anomalies:
            indicators.append(
                FraudIndicator(
                    code="clinical_anomaly",
                    description=anomaly,
                    severity=IndicatorSeverity.MEDIUM,
                    weight=10,
                )
            )
        for issue in signals.compliance_issues:
            indicators.append(
                FraudIndicator(
                    code="compliance_issue",
                    description=issue,
                    severity=IndicatorSeverity.MEDIUM,
                    weight=10,
                )
            )
        return indicators

    def rule_score(self, indicators: list[FraudIndicator]) -> float:
        total = sum(i.weight * self.SEVERITY_FACTORS[i.severity] for i in indicators)
        return round(min(100.0, total), 2)

    def blend(self, rule_score: float, model_score: Optional[float]) -> float:
        if model_score is None:
            return rule_score
        return round(self.RULE_WEIGHT * rule_score + self.MODEL_WEIGHT * model_score, 2)

    def get_risk_level(self, score: float) -> RiskLevel:
        """Determine risk level from score."""
        if score >= self.CRITICAL_THRESHOLD:
            return RiskLevel.CRITICAL
        elif score >= self.HIGH_THRESHOLD:
            return RiskLevel.HIGH
        elif score >= self.MEDIUM_THRESHOLD:
            return RiskLevel.MEDIUM
        elif score > 0:
            return RiskLevel.LOW
        return RiskLevel.NONE

    def _get_fraud_type(self, indicators: list[FraudIndicator]) -> FraudType:
        codes = {i.code for i in indicators}
        if "duplicate_billing" in codes:
            return FraudType.DUPLICATE
        if codes & {"high_billing", "upcoding"}:
            return FraudType.BILLING_FRAUD
        return FraudType.NONE

    def _get_recommendations(
        self, level: RiskLevel, indicators: list[FraudIndicator]
    ) -> list[str]:
        recommendations: list[str] = []
        if level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
            recommendations += [
                "Immediate investigation required",
                "Suspend payments pending investigation",
                "Conduct provider audit",
            ]
        elif level == RiskLevel.MEDIUM:
            recommendations += [
                "Review claim documentation",
                "Verify provider credentials",
                "Monitor future claims from this provider",
            ]
        elif level == RiskLevel.LOW:
            recommendations += ["Monitor claim processing", "Review patterns quarterly"]

        codes = {i.code for i in indicators}
        if "duplicate_billing" in codes:
            recommendations.append("Check for exact duplicate claims")
        if "upcoding" in codes:
            recommendations.append("Verify procedure coding accuracy")
        if "network_compliance" in codes:
            recommendations.append("Confirm provider network participation")
        return recommendations

    def _get_action_items(
        self,
        level: RiskLevel,
        investigation_required: bool,
        fraud_type: FraudType,
    ) -> list[str]:
        items: list[str] = []
        if investigation_required:
            items += [
                "Assign to fraud investigation team",
                "Request additional documentation",
                "Contact provider for clarification",
            ]
        if level == RiskLevel.CRITICAL:
            items += [
                "Escalate to senior fraud analyst",
                "Report to regulatory authorities",
            ]
        if fraud_type == FraudType.DUPLICATE:
            items.append("Cross-reference with all claims database")
        elif fraud_type == FraudType.BILLING_FRAUD:
            items.append("Review all claims from this provider for the past 12 months")
        return items
