"""
Medical Necessity Stage.

Scores a claim's diagnosis and procedure codes against the clinical guideline
table. The score is built from three sub-scores minus a demographic fit
penalty:

- diagnosis support: strong 40 (guideline match), moderate 25 (known
  diagnosis), weak 10
- procedure appropriateness: 30 when procedures are known and a guideline
  matches
- guideline compliance: 30 x compliance, where compliance starts at 100% and
  loses 20 points per age range miss and 15 per gender miss

Score >= 80 passes, 40-79 requires clinical review, below 40 fails.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from claimflow.core.enums import (
    DiagnosisSupport,
    Gender,
    NecessityOutcome,
    ProcedureCategory,
)
from claimflow.schemas.claim import Claim, ClinicalGuideline, ProcedureRecord
from claimflow.schemas.stages import MedicalNecessityResult
from claimflow.services.adapters.base import ReferenceDataProvider

logger = logging.getLogger(__name__)


@dataclass
class GuidelineFit:
    """Demographic fit of a claim against matched guidelines."""

    compliance_pct: float = 100.0
    age_misfit: bool = False
    gender_misfit: bool = False
    notes: list[str] = field(default_factory=list)


class MedicalNecessityValidator:
    """Validates medical necessity against clinical guidelines."""

    PASS_THRESHOLD = 80
    REVIEW_THRESHOLD = 40

    DIAGNOSIS_SCORES = {
        DiagnosisSupport.STRONG: 40,
        DiagnosisSupport.MODERATE: 25,
        DiagnosisSupport.WEAK: 10,
    }
    CONFIDENCE = {
        DiagnosisSupport.STRONG: 0.9,
        DiagnosisSupport.MODERATE: 0.6,
        DiagnosisSupport.WEAK: 0.3,
    }
    PROCEDURE_SCORE = 30
    GUIDELINE_WEIGHT = 30

    AGE_COMPLIANCE_PENALTY = 20
    GENDER_COMPLIANCE_PENALTY = 15
    AGE_MISFIT_PENALTY = 10
    GENDER_MISFIT_PENALTY = 10

    REVIEW_CATEGORIES = frozenset({ProcedureCategory.EXPERIMENTAL, ProcedureCategory.COSMETIC})

    def __init__(self, reference_data: ReferenceDataProvider):
        self.reference_data = reference_data

    async def execute(self, claim: Claim) -> MedicalNecessityResult:
        """
        Validate medical necessity of a claim.

        Raises:
            ReferenceDataUnavailableError: If guideline or code lookups fail
        """
        member = await self.reference_data.get_member(claim.member_id)
        age: Optional[int] = None
        gender = Gender.UNKNOWN
        if member is not None:
            age = member.age_on(claim.service_date or date.today())
            gender = member.gender

        guidelines = await self.reference_data.get_clinical_guidelines(
            claim.diagnosis_codes, claim.procedure_codes
        )
        matched = [
            g for g in guidelines if g.matches(claim.diagnosis_codes, claim.procedure_codes)
        ]

        procedures: list[ProcedureRecord] = []
        unknown_procedures: list[str] = []
        for code in claim.procedure_codes:
            record = await self.reference_data.get_procedure(code)
            if record is None:
                unknown_procedures.append(code)
            else:
                procedures.append(record)

        support = await self._diagnosis_support(claim, matched)
        diagnosis_score = float(self.DIAGNOSIS_SCORES[support])

        procedures_known = bool(claim.procedure_codes) and not unknown_procedures
        procedure_score = float(self.PROCEDURE_SCORE) if procedures_known and matched else 0.0

        fit = self._guideline_fit(matched, age, gender)
        guideline_score = (
            round(self.GUIDELINE_WEIGHT * fit.compliance_pct / 100, 2) if matched else 0.0
        )
        penalty = float(
            (self.AGE_MISFIT_PENALTY if fit.age_misfit else 0)
            + (self.GENDER_MISFIT_PENALTY if fit.gender_misfit else 0)
        )

        score = max(0.0, min(100.0, diagnosis_score + procedure_score + guideline_score - penalty))
        outcome = self.get_outcome(score)

        risk_indicators = list(fit.notes)
        if not matched:
            risk_indicators.append("No guideline matches the diagnosis and procedure codes")
        for code in unknown_procedures:
            risk_indicators.append(f"Unknown procedure code {code}")
        flagged = [p for p in procedures if p.category in self.REVIEW_CATEGORIES]
        for procedure in flagged:
            risk_indicators.append(f"{procedure.category.value.capitalize()} procedure {procedure.code}")

        requires_review = outcome == NecessityOutcome.REVIEW_REQUIRED or bool(flagged)

        logger.debug(
            f"Necessity for claim {claim.claim_id}: score={score:.1f} outcome={outcome.value}"
        )

        return MedicalNecessityResult(
            score=score,
            outcome=outcome,
            diagnosis_support=support,
            diagnosis_score=diagnosis_score,
            procedure_score=procedure_score,
            guideline_score=guideline_score,
            demographic_penalty=penalty,
            requires_clinical_review=requires_review,
            guideline_references=[f"{g.guideline_id}: {g.name}" for g in matched],
            confidence_level=self.CONFIDENCE[support],
            risk_indicators=risk_indicators,
            recommendations=self._get_recommendations(outcome, fit),
        )

    def get_outcome(self, score: float) -> NecessityOutcome:
        if score >= self.PASS_THRESHOLD:
            return NecessityOutcome.PASS
        if score >= self.REVIEW_THRESHOLD:
            return NecessityOutcome.REVIEW_REQUIRED
        return NecessityOutcome.FAIL

    async def _diagnosis_support(
        self, claim: Claim, matched: list[ClinicalGuideline]
    ) -> DiagnosisSupport:
        if matched:
            return DiagnosisSupport.STRONG
        for code in claim.diagnosis_codes:
            if await self.reference_data.get_diagnosis_description(code) is not None:
                return DiagnosisSupport.MODERATE
        return DiagnosisSupport.WEAK

    def _guideline_fit(
        self,
        matched: list[ClinicalGuideline],
        age: Optional[int],
        gender: Gender,
    ) -> GuidelineFit:
        fit = GuidelineFit()
        for guideline in matched:
            if not guideline.fits_age(age):
                fit.compliance_pct -= self.AGE_COMPLIANCE_PENALTY
                fit.age_misfit = True
                fit.notes.append(
                    f"Age {age} outside guideline range for {guideline.guideline_id}"
                )
            if not guideline.fits_gender(gender):
                fit.compliance_pct -= self.GENDER_COMPLIANCE_PENALTY
                fit.gender_misfit = True
                fit.notes.append(f"Gender not covered by guideline {guideline.guideline_id}")
        fit.compliance_pct = max(0.0, fit.compliance_pct)
        return fit

    def _get_recommendations(self, outcome: NecessityOutcome, fit: GuidelineFit) -> list[str]:
        if outcome == NecessityOutcome.FAIL:
            recommendations = [
                "Procedure does not meet medical necessity criteria",
                "Consider alternative treatment options",
                "Document additional clinical information if available",
            ]
        elif outcome == NecessityOutcome.REVIEW_REQUIRED:
            recommendations = [
                "Clinical review recommended by medical professional",
                "Additional documentation may be required",
            ]
        else:
            recommendations = [
                "Procedure meets medical necessity criteria",
                "Proceed with standard claims process",
            ]
        if fit.notes:
            recommendations.append("Ensure all medical necessity criteria are documented")
        return recommendations
