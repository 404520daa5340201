"""
In-Memory Collaborators.

Demo-mode implementations of every collaborator interface. The reference
data provider is seeded with a small default data set that can be replaced
or extended with the add_* methods.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

from claimflow.core.enums import (
    Gender,
    MemberStatus,
    ProcedureCategory,
    WorkflowStatus,
)
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
from claimflow.schemas.workflow import AuditEvent, Notification, WorkflowExecution
from claimflow.services.adapters.base import (
    AdapterMode,
    AuditLogSink,
    ClaimStore,
    ClinicalReviewQueue,
    NotificationDispatcher,
    ReferenceDataProvider,
    WorkflowResultStore,
)
from claimflow.utils.errors import ReferenceDataUnavailableError


class InMemoryClaimStore(ClaimStore):
    """Claim store backed by a dict."""

    def __init__(self, claims: Optional[list[Claim]] = None):
        super().__init__(AdapterMode.DEMO)
        self._claims: dict[str, Claim] = {c.claim_id: c for c in claims or []}
        self.status_history: dict[str, list[tuple[str, str]]] = {}

    def add_claim(self, claim: Claim) -> None:
        self._claims[claim.claim_id] = claim

    async def get_claim(self, claim_id: str) -> Optional[Claim]:
        return self._claims.get(claim_id)

    async def update_claim_status(self, claim_id: str, status: str, note: str = "") -> None:
        self.status_history.setdefault(claim_id, []).append((status, note))

    def current_status(self, claim_id: str) -> Optional[str]:
        history = self.status_history.get(claim_id)
        return history[-1][0] if history else None


class InMemoryReferenceData(ReferenceDataProvider):
    """
    Reference data provider backed by dicts.

    Lookups named in ``unavailable`` raise ReferenceDataUnavailableError,
    which lets callers exercise a backing system outage.
    """

    def __init__(self, seed_defaults: bool = True):
        super().__init__(AdapterMode.DEMO)
        self.members: dict[str, MemberRecord] = {}
        self.policies: dict[str, PolicyRecord] = {}
        self.benefits: dict[str, BenefitRecord] = {}
        self.providers: dict[str, ProviderRecord] = {}
        self.utilization: dict[tuple[str, str, int], Decimal] = {}
        self.preauthorizations: set[tuple[str, str]] = set()
        self.guidelines: list[ClinicalGuideline] = []
        self.diagnoses: dict[str, str] = {}
        self.procedures: dict[str, ProcedureRecord] = {}
        self.fraud_signals: dict[str, FraudSignals] = {}
        self.unavailable: set[str] = set()
        if seed_defaults:
            self._seed_defaults()

    def _seed_defaults(self) -> None:
        """Seed default code tables and guidelines."""
        self.diagnoses.update(
            {
                "E11.9": "Type 2 diabetes mellitus without complications",
                "I10": "Essential (primary) hypertension",
                "J06.9": "Acute upper respiratory infection, unspecified",
                "M54.5": "Low back pain",
                "Z00.00": "General adult medical examination",
            }
        )
        for procedure in [
            ProcedureRecord(code="99213", description="Office visit, established patient, 15 min"),
            ProcedureRecord(code="99214", description="Office visit, established patient, 25 min"),
            ProcedureRecord(
                code="83036",
                description="Hemoglobin A1C",
                category=ProcedureCategory.DIAGNOSTIC,
            ),
            ProcedureRecord(
                code="72148",
                description="MRI lumbar spine without contrast",
                category=ProcedureCategory.DIAGNOSTIC,
            ),
            ProcedureRecord(
                code="97110",
                description="Therapeutic exercises",
                category=ProcedureCategory.THERAPY,
            ),
            ProcedureRecord(
                code="15780",
                description="Dermabrasion, total face",
                category=ProcedureCategory.COSMETIC,
            ),
            ProcedureRecord(
                code="0100T",
                description="Retinal prosthesis placement",
                category=ProcedureCategory.EXPERIMENTAL,
            ),
        ]:
            self.procedures[procedure.code] = procedure
        self.guidelines.extend(
            [
                ClinicalGuideline(
                    guideline_id="GL-DM-001",
                    name="Diabetes monitoring",
                    source="ADA Standards of Care",
                    diagnosis_codes=["E11.9"],
                    procedure_codes=["83036", "99213", "99214"],
                    min_age=18,
                    criteria=["HbA1c testing every 3-6 months"],
                ),
                ClinicalGuideline(
                    guideline_id="GL-LBP-001",
                    name="Low back pain imaging",
                    source="ACR Appropriateness Criteria",
                    diagnosis_codes=["M54.5"],
                    procedure_codes=["72148", "97110"],
                    min_age=18,
                    criteria=["Conservative therapy for 6 weeks before imaging"],
                ),
                ClinicalGuideline(
                    guideline_id="GL-HTN-001",
                    name="Hypertension management",
                    source="ACC/AHA Guideline",
                    diagnosis_codes=["I10"],
                    procedure_codes=["99213", "99214"],
                    min_age=18,
                ),
            ]
        )

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_member(self, member: MemberRecord) -> None:
        self.members[member.member_id] = member

    def add_policy(self, policy: PolicyRecord) -> None:
        self.policies[policy.policy_id] = policy

    def add_benefit(self, benefit: BenefitRecord) -> None:
        self.benefits[benefit.benefit_id] = benefit

    def add_provider(self, provider: ProviderRecord) -> None:
        self.providers[provider.provider_id] = provider

    def set_utilization(
        self, member_id: str, benefit_id: str, year: int, amount: Decimal
    ) -> None:
        self.utilization[(member_id, benefit_id, year)] = amount

    def add_preauthorization(self, member_id: str, benefit_id: str) -> None:
        self.preauthorizations.add((member_id, benefit_id))

    def set_fraud_signals(self, claim_id: str, signals: FraudSignals) -> None:
        self.fraud_signals[claim_id] = signals

    def _check(self, lookup: str) -> None:
        if lookup in self.unavailable:
            raise ReferenceDataUnavailableError(f"Reference data lookup {lookup} unavailable")

    # =========================================================================
    # ReferenceDataProvider
    # =========================================================================

    async def get_member(self, member_id: str) -> Optional[MemberRecord]:
        self._check("get_member")
        return self.members.get(member_id)

    async def get_policy(self, policy_id: str) -> Optional[PolicyRecord]:
        self._check("get_policy")
        return self.policies.get(policy_id)

    async def get_benefit(self, benefit_id: str) -> Optional[BenefitRecord]:
        self._check("get_benefit")
        return self.benefits.get(benefit_id)

    async def get_benefit_utilization(
        self, member_id: str, benefit_id: str, year: int
    ) -> Decimal:
        self._check("get_benefit_utilization")
        return self.utilization.get((member_id, benefit_id, year), Decimal("0"))

    async def get_provider(self, provider_id: str) -> Optional[ProviderRecord]:
        self._check("get_provider")
        return self.providers.get(provider_id)

    async def has_preauthorization(
        self, member_id: str, benefit_id: str, service_date: Optional[date]
    ) -> bool:
        self._check("has_preauthorization")
        return (member_id, benefit_id) in self.preauthorizations

    async def get_clinical_guidelines(
        self, diagnosis_codes: list[str], procedure_codes: list[str]
    ) -> list[ClinicalGuideline]:
        self._check("get_clinical_guidelines")
        dx, px = set(diagnosis_codes), set(procedure_codes)
        return [
            g
            for g in self.guidelines
            if dx & set(g.diagnosis_codes) or px & set(g.procedure_codes)
        ]

    async def get_diagnosis_description(self, code: str) -> Optional[str]:
        self._check("get_diagnosis_description")
        return self.diagnoses.get(code)

    async def get_procedure(self, code: str) -> Optional[ProcedureRecord]:
        self._check("get_procedure")
        return self.procedures.get(code)

    async def get_fraud_signals(self, claim: Claim) -> FraudSignals:
        self._check("get_fraud_signals")
        return self.fraud_signals.get(claim.claim_id, FraudSignals())


# =============================================================================
# Audit, Notifications, Reviews and Results
# =============================================================================


class InMemoryAuditLog(AuditLogSink):
    """Append-only audit log kept in a list."""

    def __init__(self):
        super().__init__(AdapterMode.DEMO)
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    async def events_for(self, workflow_id: str) -> list[AuditEvent]:
        return [e for e in self.events if e.workflow_id == workflow_id]


class InMemoryNotificationDispatcher(NotificationDispatcher):
    """Collects dispatched notifications."""

    def __init__(self):
        super().__init__(AdapterMode.DEMO)
        self.sent: list[Notification] = []

    async def dispatch(self, notification: Notification) -> None:
        self.sent.append(notification)


class InMemoryClinicalReviewQueue(ClinicalReviewQueue):
    """Review queue with outcomes recorded by reviewers."""

    def __init__(self):
        super().__init__(AdapterMode.DEMO)
        self.outcomes: dict[str, ClinicalReviewOutcome] = {}
        self.queued: dict[str, list[str]] = {}

    def record_outcome(self, claim_id: str, outcome: ClinicalReviewOutcome) -> None:
        self.outcomes[claim_id] = outcome
        self.queued.pop(claim_id, None)

    async def get_outcome(self, claim_id: str) -> Optional[ClinicalReviewOutcome]:
        return self.outcomes.get(claim_id)

    async def enqueue(self, claim_id: str, reasons: list[str]) -> None:
        self.queued[claim_id] = list(reasons)


class InMemoryWorkflowResultStore(WorkflowResultStore):
    """Stores deep copies of terminal runs per claim."""

    def __init__(self):
        super().__init__(AdapterMode.DEMO)
        self._runs: dict[str, list[WorkflowExecution]] = {}
        self._lock = asyncio.Lock()

    async def save(self, execution: WorkflowExecution) -> None:
        async with self._lock:
            self._runs.setdefault(execution.claim_id, []).append(
                execution.model_copy(deep=True)
            )

    async def get(self, workflow_id: str) -> Optional[WorkflowExecution]:
        for runs in self._runs.values():
            for execution in reversed(runs):
                if execution.workflow_id == workflow_id:
                    return execution.model_copy(deep=True)
        return None

    async def latest_for_claim(self, claim_id: str) -> Optional[WorkflowExecution]:
        for execution in reversed(self._runs.get(claim_id, [])):
            if execution.status == WorkflowStatus.COMPLETED:
                return execution.model_copy(deep=True)
        return None

    async def history(self, claim_id: str) -> list[WorkflowExecution]:
        return [e.model_copy(deep=True) for e in self._runs.get(claim_id, [])]


def create_demo_reference_data() -> InMemoryReferenceData:
    """
    Create a reference data provider with one demo member, policy, benefit
    and provider.
    """
    data = InMemoryReferenceData()
    data.add_policy(PolicyRecord(policy_id="POL-001", effective_date=date(2020, 1, 1)))
    data.add_member(
        MemberRecord(
            member_id="MEM-001",
            policy_id="POL-001",
            name="John Doe",
            status=MemberStatus.ACTIVE,
            enrollment_date=date(2020, 1, 1),
            date_of_birth=date(1980, 5, 15),
            gender=Gender.MALE,
        )
    )
    data.add_benefit(
        BenefitRecord(
            benefit_id="BEN-OUTPATIENT",
            name="Outpatient Services",
            category="outpatient",
            annual_limit=Decimal("50000"),
            provider_discount_pct=Decimal("10"),
            deductible=Decimal("50"),
            copay=Decimal("20"),
            coinsurance_pct=Decimal("20"),
        )
    )
    data.add_provider(
        ProviderRecord(
            provider_id="PRV-001",
            name="City Medical Group",
            in_network=True,
            address="100 Main St, City, ST 12345",
        )
    )
    return data
