"""
Stage executors.

Each stage exposes ``async execute(claim, ...)`` returning a stage result
model and raises a StageError subclass when it cannot produce a verdict.
"""

from claimflow.services.stages.claim_validation import ClaimValidator
from claimflow.services.stages.eligibility import EligibilityChecker
from claimflow.services.stages.financial import FinancialResponsibilityCalculator
from claimflow.services.stages.fraud import FraudRiskAnalyzer
from claimflow.services.stages.medical_necessity import MedicalNecessityValidator
from claimflow.services.stages.reviews import ClinicalReviewStage, EnhancedReviewStage

__all__ = [
    "ClaimValidator",
    "ClinicalReviewStage",
    "EligibilityChecker",
    "EnhancedReviewStage",
    "FinancialResponsibilityCalculator",
    "FraudRiskAnalyzer",
    "MedicalNecessityValidator",
]
