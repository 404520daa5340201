"""
Collaborator Interfaces.

Abstract interfaces the orchestrator and stage executors depend on. Each
interface can be backed by demo (in-memory) data or by a live system.
"""

from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from claimflow.core.enums import EOBFormat
from claimflow.schemas.claim import (
    BenefitRecord,
    Claim,
    ClinicalGuideline,
    ClinicalReviewOutcome,
    FraudSignals,
    MemberRecord,
    PolicyRecord,
    ProcedureRecord,
    ProviderRecord,
)
from claimflow.schemas.eob import EOBDocument
from claimflow.schemas.workflow import AuditEvent, Notification, WorkflowExecution


class AdapterMode(str, Enum):
    """Adapter operating mode."""

    DEMO = "demo"
    LIVE = "live"


class BaseAdapter(ABC):
    """
    Abstract base class for collaborators.

    Provides the demo/live mode switch shared by every collaborator.
    """

    def __init__(self, mode: AdapterMode = AdapterMode.DEMO):
        """
        Initialize adapter.

        Args:
            mode: Operating mode (demo or live)
        """
        self._mode = mode

    @property
    def mode(self) -> AdapterMode:
        """Get current operating mode."""
        return self._mode

    def is_demo_mode(self) -> bool:
        """Check if running in demo mode."""
        return self._mode == AdapterMode.DEMO


# =============================================================================
# Claims and Reference Data
# =============================================================================


class ClaimStore(BaseAdapter):
    """Source of submitted claims and sink for claim status updates."""

    @abstractmethod
    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        """Get a claim by id, None when unknown."""

    @abstractmethod
    async def update_claim_status(self, claim_id: str, status: str, note: str = "") -> None:
        """Record the claim's processing status."""


class ReferenceDataProvider(BaseAdapter):
    """
    Read-only reference data for stage executors.

    Implementations raise ReferenceDataUnavailableError when a backing
    system cannot be reached. A missing record is reported as None.
    """

    @abstractmethod
    async def get_member(self, member_id: str) -> Optional[MemberRecord]:
        """Get member enrollment record."""

    @abstractmethod
    async def get_policy(self, policy_id: str) -> Optional[PolicyRecord]:
        """Get policy record."""

    @abstractmethod
    async def get_benefit(self, benefit_id: str) -> Optional[BenefitRecord]:
        """Get benefit definition."""

    @abstractmethod
    async def get_benefit_utilization(
        self, member_id: str, benefit_id: str, year: int
    ) -> Decimal:
        """Amount of the benefit already used in the plan year."""

    @abstractmethod
    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        """Get provider record."""

    @abstractmethod
    async def has_preauthorization(
        self, member_id: str, benefit_id: str, service_date: Optional[date]
    ) -> bool:
        """Check for a pre-authorization covering the service."""

    @abstractmethod
    async def get_clinical_guidelines(
        self, diagnosis_codes: list[str], procedure_codes: list[str]
    ) -> list[ClinicalGuideline]:
        """Guidelines sharing any diagnosis or procedure code."""

    @abstractmethod
    async def get_diagnosis_description(self, code: str) -> Optional[str]:
        """Description of a known diagnosis code, None when unknown."""

    @abstractmethod
    async def get_procedure(self, code: str) -> Optional[ProcedureRecord]:
        """Procedure table entry, None when unknown."""

    @abstractmethod
    async def get_fraud_signals(self, claim: Claim) -> FraudSignals:
        """Precomputed fraud signals for a claim."""


# =============================================================================
# Audit, Notifications and Documents
# =============================================================================


class AuditLogSink(BaseAdapter):
    """Append-only audit log."""

    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        """Append an event."""

    @abstractmethod
    async def events_for(self, workflow_id: str) -> list[AuditEvent]:
        """Events recorded for a run, oldest first."""


class NotificationDispatcher(BaseAdapter):
    """Fire-and-forget notification delivery."""

    @abstractmethod
    async def dispatch(self, notification: Notification) -> None:
        """Hand a notification over for delivery."""


class DocumentRenderer(BaseAdapter):
    """Renders EOB documents into output encodings."""

    @abstractmethod
    def render(self, document: EOBDocument, fmt: EOBFormat) -> str:
        """Render a document in the requested format."""


class ClinicalReviewQueue(BaseAdapter):
    """Queue of claims awaiting manual clinical review."""

    @abstractmethod
    async def get_outcome(self, claim_id: str) -> Optional[ClinicalReviewOutcome]:
        """Recorded review outcome, None when not yet reviewed."""

    @abstractmethod
    async def enqueue(self, claim_id: str, reasons: list[str]) -> None:
        """Queue a claim for review."""


class WorkflowResultStore(BaseAdapter):
    """Historical store of workflow runs."""

    @abstractmethod
    async def save(self, execution: WorkflowExecution) -> None:
        """Persist a snapshot of a run."""

    @abstractmethod
    async def get(self, workflow_id: str) -> Optional[WorkflowExecution]:
        """Stored snapshot of a run, None when unknown."""

    @abstractmethod
    async def latest_for_claim(self, claim_id: str) -> Optional[WorkflowExecution]:
        """Most recent completed run for a claim."""

    @abstractmethod
    async def history(self, claim_id: str) -> list[WorkflowExecution]:
        """All stored runs for a claim, oldest first."""
