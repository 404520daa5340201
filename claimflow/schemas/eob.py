"""
Pydantic Schemas for the Explanation of Benefits.

One EOBDocument is built per generated EOB and rendered into each requested
format by a DocumentRenderer.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class EOBLineItem(BaseModel):
    """Line item for EOB."""

    line_number: int
    service_date: Optional[date] = None
    procedure_code: str
    procedure_description: Optional[str] = None

    # Amounts
    charged_amount: Decimal
    plan_paid: Decimal
    your_responsibility: Decimal

    status: str = "processed"  # processed, denied, pending
    remark: Optional[str] = None


class EOBSummary(BaseModel):
    """Summary section of EOB."""

    total_charges: Decimal
    provider_discount: Decimal = Decimal("0.00")
    plan_paid: Decimal
    your_responsibility: Decimal

    # Breakdown
    applied_to_deductible: Decimal = Decimal("0.00")
    copay_amount: Decimal = Decimal("0.00")
    coinsurance_amount: Decimal = Decimal("0.00")
    not_covered_amount: Decimal = Decimal("0.00")


class AppealInfo(BaseModel):
    """Appeal rights for denied or partially approved claims."""

    deadline_days: int = 180
    deadline_date: date
    instructions: str


class ContactInfo(BaseModel):
    """Member services contact details."""

    member_services_phone: str = "1-800-555-0123"
    appeals_address: str = "Appeals Department, PO Box 12345, City, ST 12345"
    appeals_fax: str = "(555) 123-4567"
    website: str = "https://members.example.com"


class EOBDocument(BaseModel):
    """Complete Explanation of Benefits document."""

    # Identifiers
    eob_number: str
    claim_id: str
    decision_id: str

    # Dates
    generated_date: date
    service_date: Optional[date] = None
    payment_date: Optional[date] = None

    # Parties
    member_name: str
    member_id_display: str  # Masked member ID
    provider_name: str
    provider_address: Optional[str] = None
    benefit_name: str = ""

    line_items: list[EOBLineItem] = Field(default_factory=list)
    summary: EOBSummary

    # Messages
    claim_status: str = "Processed"
    messages: list[str] = Field(default_factory=list)
    denial_reasons: list[str] = Field(default_factory=list)
    appeal: Optional[AppealInfo] = None
    contact: ContactInfo = Field(default_factory=ContactInfo)
    legal_disclosures: list[str] = Field(default_factory=list)
