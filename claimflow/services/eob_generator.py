"""
Explanation of Benefits (EOB) Document Generator.

Builds one EOBDocument from an adjudication decision and its financial
breakdown, then renders it into each requested format.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from claimflow.core.enums import AdjudicationStatus, EOBFormat
from claimflow.schemas.adjudication import AdjudicationDecision
from claimflow.schemas.claim import Claim, ProcedureRecord
from claimflow.schemas.eob import AppealInfo, EOBDocument, EOBLineItem, EOBSummary
from claimflow.schemas.stages import EOBResult, FinancialResult
from claimflow.services.adapters.base import DocumentRenderer, ReferenceDataProvider
from claimflow.services.stages.financial import ZERO, to_money

logger = logging.getLogger(__name__)


class DocumentGenerator:
    """
    Generates Explanation of Benefits documents for adjudicated claims.

    The EOB contains:
    - Claim identification and dates
    - Member and provider information
    - Service line items with amounts
    - Payment summary and member responsibility
    - Messages, denial reasons and appeal instructions
    """

    # Standard messages based on decision status
    STANDARD_MESSAGES = {
        AdjudicationStatus.APPROVED: [
            "This is not a bill. Your provider may bill you for the amount shown as 'Your Responsibility'.",
            "If you have questions about this explanation, please call Member Services.",
        ],
        AdjudicationStatus.PARTIALLY_APPROVED: [
            "This is not a bill. Part of this claim was not covered by your plan.",
            "You may be responsible for the amounts shown. Please review each line item.",
            "If you have questions about uncovered amounts, please call Member Services.",
        ],
        AdjudicationStatus.DENIED: [
            "This claim has been denied. Please review the reasons listed below.",
            "You may appeal this decision within 180 days of this notice.",
            "For assistance with your appeal, please call Member Services.",
        ],
        AdjudicationStatus.UNDER_REVIEW: [
            "This claim is pending additional review.",
            "No action is required from you at this time.",
            "You will receive an updated EOB once processing is complete.",
        ],
    }

    STATUS_TEXT = {
        AdjudicationStatus.APPROVED: "Processed and Paid",
        AdjudicationStatus.PARTIALLY_APPROVED: "Partially Processed",
        AdjudicationStatus.DENIED: "Denied",
        AdjudicationStatus.UNDER_REVIEW: "Pending Review",
    }

    APPEAL_INSTRUCTIONS = """To appeal this decision:
1. Write a letter explaining why you disagree with the decision
2. Include your Member ID, claim number, and date of service
3. Attach any supporting documentation from your provider
4. Mail to: Appeals Department, PO Box 12345, City, ST 12345
5. Or fax to: (555) 123-4567

You have {days} days from the date of this notice to file an appeal.
For questions, call Member Services at 1-800-555-0123."""

    LEGAL_DISCLOSURES = [
        "This explanation of benefits is provided for informational purposes and is not a bill.",
        "Coverage is subject to the terms, conditions and exclusions of your plan documents.",
        "Assistance is available in other languages and formats on request at no cost.",
    ]

    PAYMENT_DELAY_DAYS = 14

    def __init__(
        self,
        reference_data: ReferenceDataProvider,
        renderer: DocumentRenderer,
        appeal_deadline_days: int = 180,
    ):
        self.reference_data = reference_data
        self.renderer = renderer
        self.appeal_deadline_days = appeal_deadline_days

    async def generate(
        self,
        claim: Claim,
        decision: AdjudicationDecision,
        financial: Optional[FinancialResult],
        formats: list[EOBFormat],
    ) -> EOBResult:
        """
        Build and render an EOB.

        Args:
            claim: Adjudicated claim
            decision: Decision of the current run
            financial: Financial breakdown, absent for denials before calculation
            formats: Output formats to render

        Returns:
            EOBResult with the document and one rendering per format

        Raises:
            ReferenceDataUnavailableError: If member or provider lookups fail
        """
        document = await self.build_document(claim, decision, financial)
        rendered = {fmt: self.renderer.render(document, fmt) for fmt in formats}
        logger.debug(f"EOB {document.eob_number} rendered in {len(rendered)} formats")
        return EOBResult(
            eob_number=document.eob_number,
            document=document,
            rendered=rendered,
        )

    async def build_document(
        self,
        claim: Claim,
        decision: AdjudicationDecision,
        financial: Optional[FinancialResult],
    ) -> EOBDocument:
        member = await self.reference_data.get_member(claim.member_id)
        provider = await self.reference_data.get_provider(claim.provider_id)
        benefit = await self.reference_data.get_benefit(claim.benefit_id)

        generated = decision.decided_at.date()
        summary = self._build_summary(claim, decision, financial)
        line_items = await self._build_line_items(claim, decision, summary)

        messages = list(self.STANDARD_MESSAGES[decision.status])
        appeal = None
        if decision.status in (
            AdjudicationStatus.DENIED,
            AdjudicationStatus.PARTIALLY_APPROVED,
        ):
            appeal = AppealInfo(
                deadline_days=self.appeal_deadline_days,
                deadline_date=generated + timedelta(days=self.appeal_deadline_days),
                instructions=self.APPEAL_INSTRUCTIONS.format(days=self.appeal_deadline_days),
            )

        return EOBDocument(
            eob_number=self._generate_eob_number(),
            claim_id=claim.claim_id,
            decision_id=decision.decision_id,
            generated_date=generated,
            service_date=claim.service_date,
            payment_date=self._calculate_payment_date(decision),
            member_name=member.name if member else "",
            member_id_display=self._mask_member_id(claim.member_id),
            provider_name=provider.name if provider else "",
            provider_address=provider.address if provider and provider.address else None,
            benefit_name=benefit.name if benefit else "",
            line_items=line_items,
            summary=summary,
            claim_status=self.STATUS_TEXT[decision.status],
            messages=messages,
            denial_reasons=list(decision.denial_reasons),
            appeal=appeal,
            legal_disclosures=list(self.LEGAL_DISCLOSURES),
        )

    def _build_summary(
        self,
        claim: Claim,
        decision: AdjudicationDecision,
        financial: Optional[FinancialResult],
    ) -> EOBSummary:
        total = to_money(claim.amount)
        if financial is None:
            return EOBSummary(
                total_charges=total,
                plan_paid=ZERO,
                your_responsibility=decision.member_responsibility,
                not_covered_amount=decision.member_responsibility,
            )
        plan_paid = decision.approved_amount
        return EOBSummary(
            total_charges=total,
            provider_discount=financial.provider_discount,
            plan_paid=plan_paid,
            your_responsibility=decision.member_responsibility,
            applied_to_deductible=financial.deductible_applied,
            copay_amount=financial.copay_applied,
            coinsurance_amount=financial.coinsurance_applied,
            not_covered_amount=financial.uncovered_amount,
        )

    async def _build_line_items(
        self,
        claim: Claim,
        decision: AdjudicationDecision,
        summary: EOBSummary,
    ) -> list[EOBLineItem]:
        """Spread summary amounts evenly over the billed procedures."""
        codes = claim.procedure_codes or ["N/A"]
        charged = self._split(summary.total_charges, len(codes))
        paid = self._split(summary.plan_paid, len(codes))
        owed = self._split(summary.your_responsibility, len(codes))

        if decision.status == AdjudicationStatus.DENIED:
            status, remark = "denied", decision.primary_reason()
        elif decision.status == AdjudicationStatus.UNDER_REVIEW:
            status, remark = "pending", "Under review"
        else:
            status, remark = "processed", None

        items = []
        for index, code in enumerate(codes):
            record: Optional[ProcedureRecord] = None
            if code != "N/A":
                record = await self.reference_data.get_procedure(code)
            items.append(
                EOBLineItem(
                    line_number=index + 1,
                    service_date=claim.service_date,
                    procedure_code=code,
                    procedure_description=(
                        record.description if record else claim.description or None
                    ),
                    charged_amount=charged[index],
                    plan_paid=paid[index],
                    your_responsibility=owed[index],
                    status=status,
                    remark=remark,
                )
            )
        return items

    def _split(self, amount: Decimal, parts: int) -> list[Decimal]:
        """Split an amount into equal cents, the last part takes the remainder."""
        share = to_money(amount / parts)
        shares = [share] * (parts - 1)
        shares.append(amount - share * (parts - 1))
        return shares

    def _generate_eob_number(self) -> str:
        """Generate unique EOB number."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        unique_id = str(uuid4())[:8].upper()
        return f"EOB-{timestamp}-{unique_id}"

    def _calculate_payment_date(self, decision: AdjudicationDecision) -> Optional[date]:
        if decision.is_payable and decision.approved_amount > 0:
            return (decision.decided_at + timedelta(days=self.PAYMENT_DELAY_DAYS)).date()
        return None

    def _mask_member_id(self, member_id: str) -> str:
        if len(member_id) <= 4:
            return member_id
        return "*" * (len(member_id) - 4) + member_id[-4:]


# =============================================================================
# Factory Functions
# =============================================================================


def create_document_generator(
    reference_data: ReferenceDataProvider,
    renderer: DocumentRenderer,
    appeal_deadline_days: int = 180,
) -> DocumentGenerator:
    """Create a new DocumentGenerator instance."""
    return DocumentGenerator(reference_data, renderer, appeal_deadline_days)
