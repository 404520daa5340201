"""
Tests for the claims workflow orchestrator.
"""

import asyncio
from decimal import Decimal
from typing import Optional

import pytest

from claimflow.core.enums import (
    AlertCode,
    AuditEventType,
    ClinicalReviewDecision,
    FinalStatus,
    NotificationTrigger,
    StepId,
    StepStatus,
    WorkflowPriority,
    WorkflowStatus,
    WorkflowType,
)
from claimflow.schemas.claim import Claim, ClinicalReviewOutcome, FraudSignals, PolicyRecord
from claimflow.schemas.workflow import ProcessClaimOptions
from claimflow.services.adapters.base import ClaimStore, NotificationDispatcher
from claimflow.services.adapters.memory import InMemoryReferenceData
from claimflow.services.orchestrator import create_demo_orchestrator, create_orchestrator
from claimflow.utils.errors import (
    ClaimNotFoundError,
    ConfigurationError,
    MalformedClaimError,
    WorkflowCancelledError,
    WorkflowConflictError,
    WorkflowFailedError,
)


class SlowReferenceData(InMemoryReferenceData):
    """Reference data whose fraud signal lookup sleeps."""

    def __init__(self, base: InMemoryReferenceData, delay: float):
        super().__init__(seed_defaults=False)
        self.__dict__.update(base.__dict__)
        self.delay = delay

    async def get_fraud_signals(self, claim: Claim) -> FraudSignals:
        await asyncio.sleep(self.delay)
        return await super().get_fraud_signals(claim)


class GatedReferenceData(InMemoryReferenceData):
    """Reference data whose fraud signal lookup waits for a release."""

    def __init__(self, base: InMemoryReferenceData):
        super().__init__(seed_defaults=False)
        self.__dict__.update(base.__dict__)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def get_fraud_signals(self, claim: Claim) -> FraudSignals:
        self.entered.set()
        await self.release.wait()
        return await super().get_fraud_signals(claim)


class BrokenReferenceData(InMemoryReferenceData):
    """Reference data whose named lookups raise connection errors."""

    def __init__(self, base: InMemoryReferenceData, broken: set[str]):
        super().__init__(seed_defaults=False)
        self.__dict__.update(base.__dict__)
        self.broken = broken

    async def get_member(self, member_id: str):
        if "get_member" in self.broken:
            raise ConnectionError("member database unreachable")
        return await super().get_member(member_id)

    async def get_fraud_signals(self, claim: Claim) -> FraudSignals:
        if "get_fraud_signals" in self.broken:
            raise ConnectionError("fraud model endpoint unreachable")
        return await super().get_fraud_signals(claim)


class GatedDocumentGenerator:
    """Wraps a document generator and holds generate until released."""

    def __init__(self, inner):
        self.inner = inner
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def generate(self, *args, **kwargs):
        self.entered.set()
        await self.release.wait()
        return await self.inner.generate(*args, **kwargs)


class RawClaimStore(ClaimStore):
    """Claim store returning raw records."""

    def __init__(self, records: dict):
        super().__init__()
        self.records = records

    async def get_claim(self, claim_id: str) -> Optional[dict]:
        return self.records.get(claim_id)

    async def update_claim_status(self, claim_id: str, status: str, note: str = "") -> None:
        pass


class FailingDispatcher(NotificationDispatcher):
    async def dispatch(self, notification) -> None:
        raise RuntimeError("smtp down")


def high_fraud_signals() -> FraudSignals:
    return FraudSignals(
        duplicate_suspected=True,
        upcoding_suspected=True,
        provider_outlier=True,
        provider_network_compliant=False,
        clinical_anomalies=["Unusual procedure mix", "Repeat lab panel", "Short visit interval"],
    )


def build(orchestrator, **overrides):
    """Orchestrator sharing collaborators with ``orchestrator`` but with overrides."""
    values = {
        "claim_store": orchestrator.claim_store,
        "reference_data": orchestrator.reference_data,
        "audit_log": orchestrator.audit_log,
        "notifier": orchestrator.notifier,
        "result_store": orchestrator.result_store,
        "review_queue": orchestrator.review_queue,
        "settings": orchestrator.settings,
    }
    values.update(overrides)
    return create_orchestrator(**values)


def triggers(notifier, workflow_id: str) -> list[NotificationTrigger]:
    return [n.trigger for n in notifier.sent if n.workflow_id == workflow_id]


class TestScenarios:
    """End-to-end adjudication scenarios."""

    @pytest.mark.asyncio
    async def test_clean_claim_approved(self, orchestrator, claim_store, claim, notifier):
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.workflow_type == WorkflowType.STANDARD
        assert result.final_status == FinalStatus.APPROVED
        assert result.approved_amount == Decimal("930.00")
        assert result.member_responsibility == Decimal("70.00")
        assert result.insurer_responsibility == Decimal("930.00")
        assert result.provider_discount == Decimal("0.00")
        assert result.steps_executed == [
            StepId.CLAIM_VALIDATION,
            StepId.ELIGIBILITY_VERIFICATION,
            StepId.FRAUD_DETECTION,
            StepId.MEDICAL_NECESSITY_VALIDATION,
            StepId.FINANCIAL_CALCULATION,
            StepId.CLAIMS_ADJUDICATION,
            StepId.EOB_GENERATION,
        ]
        assert result.alerts == []
        assert result.quality_score == 100
        assert result.compliance_score == 100
        assert result.audit_required is False
        assert result.eob_generated is True
        assert result.payment_estimated is True
        assert claim_store.current_status(claim.claim_id) == "approved"
        assert triggers(notifier, result.workflow_id) == [
            NotificationTrigger.CLAIM_SUBMITTED,
            NotificationTrigger.ELIGIBILITY_VERIFIED,
            NotificationTrigger.CLAIM_APPROVED,
            NotificationTrigger.PAYMENT_PROCESSED,
        ]

    @pytest.mark.asyncio
    async def test_inactive_policy_denied(self, orchestrator, claim_store, reference_data, claim):
        reference_data.add_policy(PolicyRecord(policy_id="POL-001", is_active=False))
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.final_status == FinalStatus.DENIED
        assert result.approved_amount == Decimal("0.00")
        assert result.member_responsibility == Decimal("1000.00")
        assert result.denial_reasons == ["Policy period not active"]
        assert result.steps_executed == [
            StepId.CLAIM_VALIDATION,
            StepId.ELIGIBILITY_VERIFICATION,
            StepId.CLAIMS_ADJUDICATION,
        ]
        assert result.has_alert(AlertCode.MEMBER_NOTIFICATION_REQUIRED)
        assert result.eob_generated is False

        execution = await orchestrator.get_workflow_status(result.workflow_id)
        skipped = [s for s in execution.steps if s.status == StepStatus.SKIPPED]
        assert {s.id for s in skipped} == {
            StepId.FRAUD_DETECTION,
            StepId.MEDICAL_NECESSITY_VALIDATION,
            StepId.FINANCIAL_CALCULATION,
            StepId.EOB_GENERATION,
        }
        assert all(s.skip_reason == "Claim not eligible" for s in skipped)

    @pytest.mark.asyncio
    async def test_high_value_claim_investigated(self, orchestrator, claim_store, make_claim):
        claim = make_claim(amount=Decimal("30000.00"))
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.workflow_type == WorkflowType.INVESTIGATION
        assert result.final_status == FinalStatus.INVESTIGATION_REQUIRED
        assert StepId.ENHANCED_REVIEW in result.steps_executed
        assert StepId.EOB_GENERATION not in result.steps_executed
        assert result.has_alert(AlertCode.INVESTIGATION_REQUIRED)
        assert result.approved_amount == Decimal("0.00")
        assert claim_store.current_status(claim.claim_id) == "investigation_required"

        execution = await orchestrator.get_workflow_status(result.workflow_id)
        assert execution.metadata.priority == WorkflowPriority.HIGH
        assert execution.get_step(StepId.EOB_GENERATION) is None

    @pytest.mark.asyncio
    async def test_high_fraud_risk_denied(self, orchestrator, claim_store, reference_data, claim, notifier):
        reference_data.set_fraud_signals(claim.claim_id, high_fraud_signals())
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.final_status == FinalStatus.DENIED
        assert result.has_alert(AlertCode.INVESTIGATION_REQUIRED)
        assert result.has_alert(AlertCode.FRAUD_RISK)
        assert result.audit_required is True
        assert result.approved_amount == Decimal("0.00")
        assert NotificationTrigger.FRAUD_DETECTED in triggers(notifier, result.workflow_id)
        assert NotificationTrigger.CLAIM_DENIED in triggers(notifier, result.workflow_id)

    @pytest.mark.asyncio
    async def test_cancel_pending_and_completed_runs(self, orchestrator, claim_store, make_claim, result_store):
        claim_store.add_claim(make_claim(claim_id="CLM-A"))
        claim_store.add_claim(make_claim(claim_id="CLM-B"))

        pending_id = await orchestrator.enqueue_claim("CLM-A")
        assert await orchestrator.cancel_workflow(pending_id) is True
        cancelled = await orchestrator.get_workflow_status(pending_id)
        assert cancelled.status == WorkflowStatus.CANCELLED

        result = await orchestrator.process_claim("CLM-B")
        before = await result_store.history("CLM-B")
        assert await orchestrator.cancel_workflow(result.workflow_id) is False
        after = await result_store.history("CLM-B")
        assert after == before
        assert after[0].status == WorkflowStatus.COMPLETED


class TestRunRecords:
    """Test audit, idempotency and history."""

    @pytest.mark.asyncio
    async def test_exactly_one_start_and_end_event(self, orchestrator, claim_store, claim, audit_log):
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)
        events = await audit_log.events_for(result.workflow_id)
        assert [e.event_type for e in events] == [
            AuditEventType.WORKFLOW_STARTED,
            AuditEventType.WORKFLOW_FINISHED,
        ]
        assert events[1].status == WorkflowStatus.COMPLETED
        assert events[1].details["final_status"] == "approved"

    @pytest.mark.asyncio
    async def test_completed_result_returned_again(self, orchestrator, claim_store, claim):
        claim_store.add_claim(claim)
        first = await orchestrator.process_claim(claim.claim_id)
        second = await orchestrator.process_claim(claim.claim_id)
        assert second.workflow_id == first.workflow_id
        assert len(await orchestrator.get_workflow_history(claim.claim_id)) == 1

    @pytest.mark.asyncio
    async def test_force_reprocess_creates_new_decision(self, orchestrator, claim_store, claim):
        claim_store.add_claim(claim)
        first = await orchestrator.process_claim(claim.claim_id)
        second = await orchestrator.process_claim(
            claim.claim_id, ProcessClaimOptions(force_reprocess=True)
        )
        assert second.workflow_id != first.workflow_id
        assert second.decision_id != first.decision_id
        history = await orchestrator.get_workflow_history(claim.claim_id)
        assert [e.workflow_id for e in history] == [first.workflow_id, second.workflow_id]

    @pytest.mark.asyncio
    async def test_reprocessing_is_deterministic(self, orchestrator, claim_store, make_claim):
        claim = make_claim(benefit_id="BEN-OUTPATIENT")
        claim_store.add_claim(claim)
        options = ProcessClaimOptions(force_reprocess=True, workflow_type=WorkflowType.STANDARD)

        first = await orchestrator.process_claim(claim.claim_id, options)
        second = await orchestrator.process_claim(claim.claim_id, options)

        assert second.workflow_id != first.workflow_id
        for field_name in (
            "final_status",
            "approved_amount",
            "member_responsibility",
            "insurer_responsibility",
            "provider_discount",
            "steps_executed",
            "denial_reasons",
        ):
            assert getattr(second, field_name) == getattr(first, field_name)
        assert first.provider_discount == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_active_run_conflicts(self, orchestrator, claim_store, claim):
        claim_store.add_claim(claim)
        pending_id = await orchestrator.enqueue_claim(claim.claim_id)
        with pytest.raises(WorkflowConflictError) as exc_info:
            await orchestrator.process_claim(claim.claim_id)
        assert exc_info.value.workflow_id == pending_id
        active = await orchestrator.get_active_workflows()
        assert [e.workflow_id for e in active] == [pending_id]

    @pytest.mark.asyncio
    async def test_unknown_claim(self, orchestrator, audit_log):
        with pytest.raises(ClaimNotFoundError):
            await orchestrator.process_claim("CLM-404")
        assert audit_log.events == []

    @pytest.mark.asyncio
    async def test_malformed_claim(self, orchestrator, audit_log):
        store = RawClaimStore({"CLM-BAD": {"claim_id": "CLM-BAD", "amount": "lots"}})
        orchestrator = build(orchestrator, claim_store=store)
        with pytest.raises(MalformedClaimError):
            await orchestrator.process_claim("CLM-BAD")
        assert audit_log.events == []

    @pytest.mark.asyncio
    async def test_raw_claim_records_accepted(self, orchestrator, claim):
        store = RawClaimStore({claim.claim_id: claim.model_dump()})
        orchestrator = build(orchestrator, claim_store=store)
        result = await orchestrator.process_claim(claim.claim_id)
        assert result.final_status == FinalStatus.APPROVED

    @pytest.mark.asyncio
    async def test_status_of_unknown_workflow(self, orchestrator):
        assert await orchestrator.get_workflow_status("missing") is None


class TestFailures:
    """Test critical and advisory step failures."""

    @pytest.mark.asyncio
    async def test_invalid_claim_fails_run(self, orchestrator, claim_store, make_claim, audit_log):
        claim = make_claim(amount=Decimal("0"))
        claim_store.add_claim(claim)
        with pytest.raises(WorkflowFailedError) as exc_info:
            await orchestrator.process_claim(claim.claim_id)
        error = exc_info.value
        assert error.step_id == "claim_validation"
        assert "Claim amount must be greater than zero" in error.reason

        execution = await orchestrator.get_workflow_status(error.workflow_id)
        assert execution.status == WorkflowStatus.FAILED
        assert execution.failed_step == StepId.CLAIM_VALIDATION
        assert all(s.status == StepStatus.PENDING for s in execution.steps[1:])
        assert claim_store.current_status(claim.claim_id) == "processing_failed"
        assert len(await audit_log.events_for(error.workflow_id)) == 2

    @pytest.mark.asyncio
    async def test_critical_lookup_outage_fails_run(self, orchestrator, claim_store, reference_data, claim):
        reference_data.unavailable.add("get_member")
        claim_store.add_claim(claim)
        with pytest.raises(WorkflowFailedError) as exc_info:
            await orchestrator.process_claim(claim.claim_id)
        assert exc_info.value.step_id == "eligibility_verification"

    @pytest.mark.asyncio
    async def test_advisory_failure_continues(self, orchestrator, claim_store, reference_data, claim):
        reference_data.unavailable.add("get_fraud_signals")
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.final_status == FinalStatus.APPROVED
        assert StepId.FRAUD_DETECTION in result.steps_executed
        assert result.quality_score == 90
        assert result.audit_required is True

        execution = await orchestrator.get_workflow_status(result.workflow_id)
        fraud = execution.get_step(StepId.FRAUD_DETECTION)
        assert fraud.status == StepStatus.FAILED
        assert "get_fraud_signals" in fraud.error

    @pytest.mark.asyncio
    async def test_unexpected_advisory_error_continues(self, orchestrator, claim_store, reference_data, claim):
        broken = BrokenReferenceData(reference_data, {"get_fraud_signals"})
        orchestrator = build(orchestrator, reference_data=broken)
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.final_status == FinalStatus.APPROVED
        assert result.audit_required is True
        execution = await orchestrator.get_workflow_status(result.workflow_id)
        assert execution.status == WorkflowStatus.COMPLETED
        fraud = execution.get_step(StepId.FRAUD_DETECTION)
        assert fraud.status == StepStatus.FAILED
        assert fraud.error == "ConnectionError: fraud model endpoint unreachable"

    @pytest.mark.asyncio
    async def test_unexpected_critical_error_fails_run(self, orchestrator, claim_store, reference_data, claim):
        broken = BrokenReferenceData(reference_data, {"get_member"})
        orchestrator = build(orchestrator, reference_data=broken)
        claim_store.add_claim(claim)
        with pytest.raises(WorkflowFailedError) as exc_info:
            await orchestrator.process_claim(claim.claim_id)
        assert exc_info.value.step_id == "eligibility_verification"
        assert "member database unreachable" in exc_info.value.reason

        execution = await orchestrator.get_workflow_status(exc_info.value.workflow_id)
        assert execution.failed_step == StepId.ELIGIBILITY_VERIFICATION
        assert execution.get_step(StepId.ELIGIBILITY_VERIFICATION).status == StepStatus.FAILED
        assert all(
            s.status == StepStatus.PENDING
            for s in execution.steps
            if s.id not in (StepId.CLAIM_VALIDATION, StepId.ELIGIBILITY_VERIFICATION)
        )

    @pytest.mark.asyncio
    async def test_run_timeout(self, orchestrator, claim_store, reference_data, claim):
        orchestrator = build(orchestrator, reference_data=SlowReferenceData(reference_data, 0.5))
        claim_store.add_claim(claim)
        with pytest.raises(WorkflowFailedError) as exc_info:
            await orchestrator.process_claim(
                claim.claim_id, ProcessClaimOptions(timeout_minutes=0.001)
            )
        assert exc_info.value.step_id == "fraud_detection"
        assert "timed out" in exc_info.value.reason

        execution = await orchestrator.get_workflow_status(exc_info.value.workflow_id)
        assert execution.status == WorkflowStatus.FAILED
        assert execution.get_step(StepId.FRAUD_DETECTION).status == StepStatus.FAILED

    @pytest.mark.asyncio
    async def test_notification_failure_is_ignored(self, orchestrator, claim_store, claim):
        orchestrator = build(orchestrator, notifier=FailingDispatcher())
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)
        assert result.final_status == FinalStatus.APPROVED


class TestCancellation:
    """Test cooperative cancellation of running runs."""

    @pytest.mark.asyncio
    async def test_running_run_stops_after_current_step(self, orchestrator, claim_store, reference_data, claim, audit_log):
        gated = GatedReferenceData(reference_data)
        orchestrator = build(orchestrator, reference_data=gated)
        claim_store.add_claim(claim)

        task = asyncio.create_task(orchestrator.process_claim(claim.claim_id))
        await asyncio.wait_for(gated.entered.wait(), timeout=5)

        active = await orchestrator.get_active_workflows()
        workflow_id = active[0].workflow_id
        assert await orchestrator.cancel_workflow(workflow_id) is True
        gated.release.set()

        with pytest.raises(WorkflowCancelledError):
            await task

        execution = await orchestrator.get_workflow_status(workflow_id)
        assert execution.status == WorkflowStatus.CANCELLED
        assert execution.get_step(StepId.FRAUD_DETECTION).status == StepStatus.COMPLETED
        assert execution.get_step(StepId.MEDICAL_NECESSITY_VALIDATION).status == StepStatus.PENDING
        assert execution.final_result is None
        assert await orchestrator.get_active_workflows() == []
        assert len(await audit_log.events_for(workflow_id)) == 2

    @pytest.mark.asyncio
    async def test_cancel_during_last_step(self, orchestrator, claim_store, claim, notifier):
        gated = GatedDocumentGenerator(orchestrator.document_generator)
        orchestrator.document_generator = gated
        claim_store.add_claim(claim)

        task = asyncio.create_task(orchestrator.process_claim(claim.claim_id))
        await asyncio.wait_for(gated.entered.wait(), timeout=5)

        workflow_id = (await orchestrator.get_active_workflows())[0].workflow_id
        assert await orchestrator.cancel_workflow(workflow_id) is True
        gated.release.set()

        with pytest.raises(WorkflowCancelledError):
            await task

        execution = await orchestrator.get_workflow_status(workflow_id)
        assert execution.status == WorkflowStatus.CANCELLED
        assert execution.get_step(StepId.EOB_GENERATION).status == StepStatus.COMPLETED
        assert execution.final_result is None
        assert claim_store.current_status(claim.claim_id) is None
        assert NotificationTrigger.CLAIM_APPROVED not in triggers(notifier, workflow_id)


class TestConfiguration:
    """Test runtime configuration changes."""

    @pytest.mark.asyncio
    async def test_fraud_detection_disabled(self, orchestrator, claim_store, reference_data, claim):
        orchestrator.update_configuration(enable_fraud_detection=False)
        reference_data.set_fraud_signals(claim.claim_id, high_fraud_signals())
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)

        assert result.final_status == FinalStatus.APPROVED
        assert StepId.FRAUD_DETECTION not in result.steps_executed
        execution = await orchestrator.get_workflow_status(result.workflow_id)
        assert execution.get_step(StepId.FRAUD_DETECTION).skip_reason == "Fraud detection disabled"

    @pytest.mark.asyncio
    async def test_auto_approval_disabled(self, orchestrator, claim_store, claim):
        orchestrator.update_configuration(ENABLE_AUTO_APPROVAL=False)
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)
        assert result.final_status == FinalStatus.UNDER_REVIEW
        assert result.eob_generated is False

    @pytest.mark.asyncio
    async def test_disabled_trigger_not_sent(self, orchestrator, claim_store, claim, notifier):
        orchestrator.update_configuration(notify_claim_submitted=False)
        claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)
        assert NotificationTrigger.CLAIM_SUBMITTED not in triggers(notifier, result.workflow_id)

    def test_unknown_key_rejected(self, orchestrator):
        with pytest.raises(ConfigurationError):
            orchestrator.update_configuration(bogus=True)


class TestManualReview:
    """Test the manual clinical review workflow."""

    @pytest.mark.asyncio
    async def test_review_pending_then_approved(self, orchestrator, claim_store, review_queue, make_claim, notifier):
        claim = make_claim(amount=Decimal("15000.00"))
        claim_store.add_claim(claim)

        pending = await orchestrator.process_claim(claim.claim_id)
        assert pending.workflow_type == WorkflowType.MANUAL_REVIEW
        assert pending.final_status == FinalStatus.UNDER_REVIEW
        assert pending.has_alert(AlertCode.CLINICAL_REVIEW_REQUIRED)
        assert pending.eob_generated is False
        assert claim.claim_id in review_queue.queued
        assert NotificationTrigger.MEDICAL_REVIEW_REQUIRED in triggers(notifier, pending.workflow_id)

        review_queue.record_outcome(
            claim.claim_id,
            ClinicalReviewOutcome(reviewer="dr.smith", decision=ClinicalReviewDecision.APPROVED),
        )
        approved = await orchestrator.process_claim(
            claim.claim_id, ProcessClaimOptions(force_reprocess=True)
        )
        assert approved.final_status == FinalStatus.APPROVED
        assert approved.approved_amount == Decimal("14930.00")
        assert approved.has_alert(AlertCode.HIGH_VALUE_REVIEW)
        assert approved.eob_generated is True


class TestDemoOrchestrator:
    """Test the demo wiring."""

    @pytest.mark.asyncio
    async def test_demo_claim(self, make_claim, settings):
        orchestrator = create_demo_orchestrator(settings)
        claim = make_claim(benefit_id="BEN-OUTPATIENT")
        orchestrator.claim_store.add_claim(claim)
        result = await orchestrator.process_claim(claim.claim_id)
        assert result.final_status == FinalStatus.APPROVED
        assert result.provider_discount == Decimal("100.00")
        assert (
            result.member_responsibility + result.insurer_responsibility + result.provider_discount
            == claim.amount
        )
