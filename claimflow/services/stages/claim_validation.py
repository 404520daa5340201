"""
Claim Validation Stage.

Structural checks run before any reference data is consulted: required
identifiers, a positive amount, a plausible service date and a known
currency.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from claimflow.schemas.claim import Claim
from claimflow.schemas.stages import ClaimValidationResult
from claimflow.utils.errors import ClaimValidationError

logger = logging.getLogger(__name__)


class ClaimValidator:
    """Validates the structure of a submitted claim."""

    KNOWN_CURRENCIES = frozenset(
        {"USD", "EUR", "GBP", "CAD", "AUD", "CHF", "JPY", "AED", "SAR", "INR"}
    )

    # Service date window relative to today
    MAX_FUTURE_DAYS = 365
    MAX_PAST_DAYS = 730

    async def execute(
        self,
        claim: Claim,
        today: Optional[date] = None,
    ) -> ClaimValidationResult:
        """
        Validate a claim.

        Args:
            claim: Claim to validate
            today: Reference date for the service date window

        Returns:
            ClaimValidationResult with any non-blocking warnings

        Raises:
            ClaimValidationError: With every error found
        """
        today = today or date.today()
        errors: list[str] = []
        warnings: list[str] = []

        if not claim.member_id:
            errors.append("Member ID is required")
        if not claim.provider_id:
            errors.append("Provider ID is required")
        if not claim.benefit_id:
            errors.append("Benefit ID is required")

        if claim.amount <= Decimal("0"):
            errors.append("Claim amount must be greater than zero")

        if claim.service_date is None:
            errors.append("Service date is required")
        else:
            if claim.service_date > today + timedelta(days=self.MAX_FUTURE_DAYS):
                errors.append("Service date is more than one year in the future")
            if claim.service_date < today - timedelta(days=self.MAX_PAST_DAYS):
                errors.append("Service date is more than two years in the past")

        if claim.currency.upper() not in self.KNOWN_CURRENCIES:
            errors.append(f"Unknown currency code {claim.currency}")

        if not claim.diagnosis_codes:
            warnings.append("No diagnosis codes submitted")
        if not claim.procedure_codes:
            warnings.append("No procedure codes submitted")

        if errors:
            logger.info(f"Claim {claim.claim_id} failed validation: {len(errors)} errors")
            raise ClaimValidationError(claim.claim_id, errors)

        return ClaimValidationResult(is_valid=True, warnings=warnings)
