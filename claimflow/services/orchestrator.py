"""
Claims Workflow Orchestrator.

Runs a claim through the steps of its workflow type, derives the final
decision and compiles an auditable WorkflowResult.

Run lifecycle:
    PENDING -> RUNNING -> COMPLETED | FAILED | CANCELLED
    PENDING -> CANCELLED (queued runs)

Every run records exactly one start and one end audit event. A critical
step failure fails the run at once and leaves later steps pending. Advisory
step failures are recorded and the run continues.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from pydantic import ValidationError

from claimflow.core.config import WorkflowSettings, get_workflow_settings
from claimflow.core.enums import (
    AdjudicationStatus,
    AlertCode,
    AlertSeverity,
    AuditEventType,
    FinalStatus,
    NotificationTrigger,
    StepId,
    StepStatus,
    WorkflowStatus,
)
from claimflow.schemas.claim import Claim
from claimflow.schemas.workflow import (
    AuditEvent,
    Notification,
    ProcessClaimOptions,
    WorkflowExecution,
    WorkflowMetadata,
    WorkflowResult,
    WorkflowStep,
)
from claimflow.services import scoring
from claimflow.services.adapters.base import (
    AuditLogSink,
    ClaimStore,
    ClinicalReviewQueue,
    DocumentRenderer,
    NotificationDispatcher,
    ReferenceDataProvider,
    WorkflowResultStore,
)
from claimflow.services.adapters.renderer import FormattedDocumentRenderer
from claimflow.services.decision_engine import DecisionEngine
from claimflow.services.eob_generator import DocumentGenerator
from claimflow.services.registry import WorkflowRegistry
from claimflow.services.stages import (
    ClaimValidator,
    ClinicalReviewStage,
    EligibilityChecker,
    EnhancedReviewStage,
    FinancialResponsibilityCalculator,
    FraudRiskAnalyzer,
    MedicalNecessityValidator,
)
from claimflow.services.stages.financial import ZERO
from claimflow.services.workflow_definitions import build_steps
from claimflow.utils.errors import (
    ClaimNotFoundError,
    MalformedClaimError,
    StageError,
    StageTimeoutError,
    WorkflowCancelledError,
    WorkflowFailedError,
)
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)

PROCESSING_FAILED_STATUS = "processing_failed"


@dataclass
class RunContext:
    """Per-run inputs and stage results, owned by the run's task."""

    claim: Claim
    settings: WorkflowSettings
    results: dict[StepId, Any] = field(default_factory=dict)

    def get(self, step_id: StepId) -> Any:
        return self.results.get(step_id)


StepHandler = Callable[[RunContext], Awaitable[Any]]


class ClaimsWorkflowOrchestrator:
    """
    Orchestrates claims adjudication workflows.

    Collaborators are injected. The registry is owned by the orchestrator
    instance and is the only state shared between concurrent runs.
    """

    def __init__(
        self,
        claim_store: ClaimStore,
        reference_data: ReferenceDataProvider,
        audit_log: AuditLogSink,
        notifier: NotificationDispatcher,
        result_store: WorkflowResultStore,
        review_queue: ClinicalReviewQueue,
        renderer: Optional[DocumentRenderer] = None,
        settings: Optional[WorkflowSettings] = None,
        registry: Optional[WorkflowRegistry] = None,
    ):
        self.claim_store = claim_store
        self.reference_data = reference_data
        self.audit_log = audit_log
        self.notifier = notifier
        self.result_store = result_store
        self.review_queue = review_queue
        self.settings = settings or get_workflow_settings()
        self.registry = registry or WorkflowRegistry()

        self.claim_validator = ClaimValidator()
        self.eligibility_checker = EligibilityChecker(reference_data)
        self.fraud_analyzer = FraudRiskAnalyzer(reference_data)
        self.necessity_validator = MedicalNecessityValidator(reference_data)
        self.financial_calculator = FinancialResponsibilityCalculator(reference_data)
        self.clinical_review = ClinicalReviewStage(review_queue)
        self.enhanced_review = EnhancedReviewStage()
        self.document_generator = DocumentGenerator(
            reference_data,
            renderer or FormattedDocumentRenderer(),
            appeal_deadline_days=self.settings.APPEAL_DEADLINE_DAYS,
        )

        self._handlers: dict[StepId, StepHandler] = {
            StepId.CLAIM_VALIDATION: self._run_claim_validation,
            StepId.ELIGIBILITY_VERIFICATION: self._run_eligibility,
            StepId.FRAUD_DETECTION: self._run_fraud_detection,
            StepId.MEDICAL_NECESSITY_VALIDATION: self._run_medical_necessity,
            StepId.MANUAL_CLINICAL_REVIEW: self._run_clinical_review,
            StepId.ENHANCED_REVIEW: self._run_enhanced_review,
            StepId.FINANCIAL_CALCULATION: self._run_financial,
            StepId.CLAIMS_ADJUDICATION: self._run_adjudication,
            StepId.EOB_GENERATION: self._run_eob_generation,
        }

    # =========================================================================
    # Public Operations
    # =========================================================================

    async def process_claim(
        self,
        claim_id: str,
        options: Optional[ProcessClaimOptions] = None,
    ) -> WorkflowResult:
        """
        Process a claim through its workflow.

        Returns the stored result of the latest completed run unless
        ``force_reprocess`` is set.

        Raises:
            ClaimNotFoundError: If the claim does not exist
            MalformedClaimError: If the stored claim cannot be read
            WorkflowConflictError: If the claim already has an active run
            WorkflowFailedError: If the run failed
            WorkflowCancelledError: If the run was cancelled
        """
        options = options or ProcessClaimOptions()
        claim = await self._load_claim(claim_id)

        if not options.force_reprocess:
            latest = await self.result_store.latest_for_claim(claim_id)
            if latest is not None and latest.final_result is not None:
                logger.info(
                    f"Returning stored result of workflow {latest.workflow_id} for claim {claim_id}"
                )
                return latest.final_result

        execution = await self._create_execution(claim, options)
        if not await self.registry.mark_running(execution.workflow_id):
            raise WorkflowCancelledError(execution.workflow_id, claim_id)
        return await self._run(execution, claim)

    async def get_workflow_status(self, workflow_id: str) -> Optional[WorkflowExecution]:
        """Snapshot of an active or stored run."""
        execution = await self.registry.get(workflow_id)
        if execution is not None:
            return execution.model_copy(deep=True)
        return await self.result_store.get(workflow_id)

    async def cancel_workflow(self, workflow_id: str) -> bool:
        """
        Cancel an active run.

        A pending run is cancelled at once. A running run finishes its current
        step and stops before the next one. A cancel accepted during the last
        step ends the run cancelled without a compiled result.

        Returns:
            True if cancellation was accepted, False for unknown or finished runs
        """
        execution = await self.registry.request_cancel(workflow_id)
        if execution is None:
            return False
        if execution.status == WorkflowStatus.CANCELLED:
            await self._finish(execution)
        logger.info(f"Cancellation requested for workflow {workflow_id}")
        return True

    async def get_active_workflows(self) -> list[WorkflowExecution]:
        return [e.model_copy(deep=True) for e in await self.registry.list_active()]

    def update_configuration(self, **partial: Any) -> WorkflowSettings:
        """
        Replace configuration values. Runs already in flight keep the
        configuration they started with.

        Raises:
            ConfigurationError: On unknown keys or invalid values
        """
        self.settings = self.settings.with_updates(**partial)
        logger.info(f"Workflow configuration updated: {', '.join(sorted(partial))}")
        return self.settings

    async def enqueue_claim(
        self,
        claim_id: str,
        options: Optional[ProcessClaimOptions] = None,
    ) -> str:
        """
        Create a pending run for the queue worker.

        Returns:
            Workflow id of the pending run, or of the latest completed run
            when the claim was already processed and not forced
        """
        options = options or ProcessClaimOptions()
        claim = await self._load_claim(claim_id)
        if not options.force_reprocess:
            latest = await self.result_store.latest_for_claim(claim_id)
            if latest is not None:
                return latest.workflow_id

        execution = await self._create_execution(claim, options)
        await self.registry.enqueue(execution.workflow_id)
        return execution.workflow_id

    async def drain_queue(self) -> list[WorkflowExecution]:
        """
        Run every queued pending run.

        Returns:
            Snapshots of the runs that were started
        """
        drained: list[WorkflowExecution] = []
        while True:
            execution = await self.registry.pop_pending()
            if execution is None:
                break
            if not await self.registry.mark_running(execution.workflow_id):
                continue

            try:
                claim = await self._load_claim(execution.claim_id)
            except (ClaimNotFoundError, MalformedClaimError) as e:
                execution.error = e.message
                execution.transition(WorkflowStatus.FAILED)
                await self._finish(execution)
                drained.append(execution.model_copy(deep=True))
                continue

            try:
                await self._run(execution, claim)
            except (WorkflowFailedError, WorkflowCancelledError) as e:
                logger.warning(f"Queued workflow ended without result: {e.message}")
            drained.append(execution.model_copy(deep=True))

        if drained:
            logger.info(f"Drained {len(drained)} queued workflows")
        return drained

    async def get_workflow_history(self, claim_id: str) -> list[WorkflowExecution]:
        return await self.result_store.history(claim_id)

    # =========================================================================
    # Run Setup
    # =========================================================================

    async def _load_claim(self, claim_id: str) -> Claim:
        try:
            raw = await self.claim_store.get_claim(claim_id)
        except ValidationError as e:
            raise MalformedClaimError(f"Claim {claim_id} is malformed: {e}", claim_id=claim_id) from e
        if raw is None:
            raise ClaimNotFoundError(claim_id)
        if isinstance(raw, Claim):
            return raw
        try:
            return Claim.model_validate(raw)
        except ValidationError as e:
            raise MalformedClaimError(f"Claim {claim_id} is malformed: {e}", claim_id=claim_id) from e

    async def _create_execution(
        self,
        claim: Claim,
        options: ProcessClaimOptions,
    ) -> WorkflowExecution:
        settings = self.settings
        workflow_type = options.workflow_type or scoring.determine_workflow_type(claim, settings)
        priority = options.priority or scoring.determine_priority(claim.amount, settings)

        execution = WorkflowExecution(
            claim_id=claim.claim_id,
            workflow_type=workflow_type,
            steps=build_steps(workflow_type),
            metadata=WorkflowMetadata(
                initiated_by=options.initiated_by,
                priority=priority,
                processing_mode=options.processing_mode,
                estimated_completion_time=scoring.estimate_completion_time(workflow_type),
            ),
            options=options,
        )
        await self.registry.register(execution, allow_concurrent=options.force_reprocess)
        await self.audit_log.record(
            AuditEvent(
                event_type=AuditEventType.WORKFLOW_STARTED,
                workflow_id=execution.workflow_id,
                claim_id=claim.claim_id,
                workflow_type=workflow_type,
                status=execution.status,
                details={
                    "priority": priority.value,
                    "initiated_by": options.initiated_by,
                    "processing_mode": options.processing_mode.value,
                    "force_reprocess": options.force_reprocess,
                },
            )
        )
        logger.info(
            f"Workflow {execution.workflow_id} created for claim {claim.claim_id}: "
            f"type={workflow_type.value} priority={priority.value}"
        )
        await self._notify(
            NotificationTrigger.CLAIM_SUBMITTED,
            execution,
            f"Claim {claim.claim_id} received for processing",
        )
        return execution

    # =========================================================================
    # Run Execution
    # =========================================================================

    async def _run(self, execution: WorkflowExecution, claim: Claim) -> WorkflowResult:
        ctx = RunContext(claim=claim, settings=self.settings)
        run_log = get_logger(__name__, workflow_id=execution.workflow_id, claim_id=claim.claim_id)
        timeout_seconds = scoring.resolve_timeout_seconds(
            execution.workflow_type,
            execution.metadata.processing_mode,
            ctx.settings,
            execution.options.timeout_minutes,
        )
        run_log.info(
            f"Workflow {execution.workflow_id} started ({len(execution.steps)} steps, "
            f"timeout {timeout_seconds:.0f}s)"
        )

        try:
            try:
                failed_step, reason, cancelled = await self._execute_steps(
                    execution, ctx, timeout_seconds
                )
                if cancelled:
                    execution.error = "Cancelled by request"
                    execution.transition(WorkflowStatus.CANCELLED)
                elif failed_step is not None:
                    execution.failed_step = failed_step
                    execution.error = reason
                    execution.transition(WorkflowStatus.FAILED)
                else:
                    execution.final_result = self._compile_result(execution, ctx)
                    execution.transition(WorkflowStatus.COMPLETED)
            except asyncio.CancelledError:
                if not execution.status.is_terminal:
                    execution.error = "Run task cancelled"
                    execution.transition(WorkflowStatus.CANCELLED)
                raise
            except Exception as e:
                run_log.exception(f"Workflow {execution.workflow_id} crashed: {e}")
                if not execution.status.is_terminal:
                    execution.error = str(e)
                    execution.transition(WorkflowStatus.FAILED)
                raise WorkflowFailedError(
                    execution.workflow_id, None, str(e), execution.claim_id
                ) from e
        finally:
            await self._finish(execution, ctx)

        if execution.status == WorkflowStatus.FAILED:
            raise WorkflowFailedError(
                execution.workflow_id,
                execution.failed_step.value if execution.failed_step else None,
                execution.error or "unknown error",
                execution.claim_id,
            )
        if execution.status == WorkflowStatus.CANCELLED:
            raise WorkflowCancelledError(execution.workflow_id, execution.claim_id)
        return execution.final_result

    async def _execute_steps(
        self,
        execution: WorkflowExecution,
        ctx: RunContext,
        timeout_seconds: float,
    ) -> tuple[Optional[StepId], Optional[str], bool]:
        """
        Execute pending steps in order.

        Returns:
            Tuple of (failed critical step, failure reason, cancelled)
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        run_log = get_logger(__name__, workflow_id=execution.workflow_id, claim_id=execution.claim_id)

        for step in execution.steps:
            if step.status != StepStatus.PENDING:
                continue
            if await self.registry.is_cancel_requested(execution.workflow_id):
                run_log.info(f"Workflow {execution.workflow_id} cancelled before {step.id.value}")
                return None, None, True
            if step.id == StepId.FRAUD_DETECTION and not ctx.settings.ENABLE_FRAUD_DETECTION:
                step.skip("Fraud detection disabled")
                continue

            step.start()
            remaining = deadline - loop.time()
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                result = await asyncio.wait_for(self._handlers[step.id](ctx), timeout=remaining)
            except asyncio.TimeoutError:
                timeout = StageTimeoutError(
                    f"Step timed out: run timeout of {timeout_seconds:.0f}s exceeded",
                    claim_id=execution.claim_id,
                    workflow_id=execution.workflow_id,
                    step_id=step.id.value,
                )
                step.fail(timeout.message)
                run_log.error(f"Workflow {execution.workflow_id} {step.id.value}: {timeout.message}")
                return step.id, timeout.message, False
            except StageError as e:
                step.fail(e.message)
                if step.critical:
                    run_log.error(
                        f"Workflow {execution.workflow_id} critical step {step.id.value} failed: {e.message}"
                    )
                    return step.id, e.message, False
                run_log.warning(
                    f"Workflow {execution.workflow_id} advisory step {step.id.value} failed: {e.message}"
                )
                continue
            except Exception as e:
                reason = f"{type(e).__name__}: {e}"
                step.fail(reason)
                if step.critical:
                    run_log.exception(
                        f"Workflow {execution.workflow_id} critical step {step.id.value} raised: {reason}"
                    )
                    return step.id, reason, False
                run_log.warning(
                    f"Workflow {execution.workflow_id} advisory step {step.id.value} raised: {reason}"
                )
                continue

            step.complete(result)
            ctx.results[step.id] = result
            self._apply_skips(execution, step, result)

        # A cancel accepted during the last step
        if await self.registry.is_cancel_requested(execution.workflow_id):
            run_log.info(f"Workflow {execution.workflow_id} cancelled after its last step")
            return None, None, True

        return None, None, False

    def _apply_skips(self, execution: WorkflowExecution, step: WorkflowStep, result: Any) -> None:
        if step.id == StepId.ELIGIBILITY_VERIFICATION and not result.eligible:
            for other in execution.steps:
                if other.status == StepStatus.PENDING and other.id != StepId.CLAIMS_ADJUDICATION:
                    other.skip("Claim not eligible")
            logger.info(f"Workflow {execution.workflow_id}: claim not eligible, skipping to decision")
        elif (
            step.id == StepId.CLAIMS_ADJUDICATION
            and result.status == AdjudicationStatus.UNDER_REVIEW
        ):
            eob = execution.get_step(StepId.EOB_GENERATION)
            if eob is not None and eob.status == StepStatus.PENDING:
                eob.skip("Claim held for review")

    # =========================================================================
    # Step Handlers
    # =========================================================================

    async def _run_claim_validation(self, ctx: RunContext) -> Any:
        return await self.claim_validator.execute(ctx.claim)

    async def _run_eligibility(self, ctx: RunContext) -> Any:
        return await self.eligibility_checker.execute(ctx.claim)

    async def _run_fraud_detection(self, ctx: RunContext) -> Any:
        return await self.fraud_analyzer.execute(ctx.claim)

    async def _run_medical_necessity(self, ctx: RunContext) -> Any:
        return await self.necessity_validator.execute(ctx.claim)

    async def _run_clinical_review(self, ctx: RunContext) -> Any:
        return await self.clinical_review.execute(
            ctx.claim, fraud=ctx.get(StepId.FRAUD_DETECTION)
        )

    async def _run_enhanced_review(self, ctx: RunContext) -> Any:
        return await self.enhanced_review.execute(
            ctx.claim, fraud=ctx.get(StepId.FRAUD_DETECTION)
        )

    async def _run_financial(self, ctx: RunContext) -> Any:
        return await self.financial_calculator.execute(
            ctx.claim,
            eligibility=ctx.get(StepId.ELIGIBILITY_VERIFICATION),
            necessity=ctx.get(StepId.MEDICAL_NECESSITY_VALIDATION),
            clinical_review=ctx.get(StepId.MANUAL_CLINICAL_REVIEW),
        )

    async def _run_adjudication(self, ctx: RunContext) -> Any:
        engine = DecisionEngine(
            enable_auto_approval=ctx.settings.ENABLE_AUTO_APPROVAL,
            partial_approval_on_cost_sharing=ctx.settings.PARTIAL_APPROVAL_ON_COST_SHARING,
        )
        financial = ctx.get(StepId.FINANCIAL_CALCULATION)
        return engine.decide(
            ctx.claim,
            ctx.get(StepId.ELIGIBILITY_VERIFICATION),
            ctx.get(StepId.MEDICAL_NECESSITY_VALIDATION),
            ctx.get(StepId.FRAUD_DETECTION),
            financial.benefit_application if financial else None,
            financial,
            clinical_review=ctx.get(StepId.MANUAL_CLINICAL_REVIEW),
            enhanced_review=ctx.get(StepId.ENHANCED_REVIEW),
        )

    async def _run_eob_generation(self, ctx: RunContext) -> Any:
        return await self.document_generator.generate(
            ctx.claim,
            ctx.get(StepId.CLAIMS_ADJUDICATION),
            ctx.get(StepId.FINANCIAL_CALCULATION),
            ctx.settings.EOB_FORMATS,
        )

    # =========================================================================
    # Result Compilation
    # =========================================================================

    def _compile_result(self, execution: WorkflowExecution, ctx: RunContext) -> WorkflowResult:
        settings = ctx.settings
        decision = ctx.get(StepId.CLAIMS_ADJUDICATION)
        fraud = ctx.get(StepId.FRAUD_DETECTION)
        necessity = ctx.get(StepId.MEDICAL_NECESSITY_VALIDATION)
        clinical_review = ctx.get(StepId.MANUAL_CLINICAL_REVIEW)
        financial = ctx.get(StepId.FINANCIAL_CALCULATION)

        final_status = scoring.final_status_for(decision)
        elapsed = datetime.now(timezone.utc) - (execution.start_time or execution.created_at)
        duration_seconds = elapsed.total_seconds()

        provider_discount = (
            financial.provider_discount
            if financial is not None and decision.status != AdjudicationStatus.DENIED
            else ZERO
        )
        eob_step = execution.get_step(StepId.EOB_GENERATION)

        return WorkflowResult(
            claim_id=execution.claim_id,
            workflow_id=execution.workflow_id,
            workflow_type=execution.workflow_type,
            decision_id=decision.decision_id,
            final_status=final_status,
            approved_amount=decision.approved_amount,
            member_responsibility=decision.member_responsibility,
            insurer_responsibility=decision.insurer_responsibility,
            provider_discount=provider_discount,
            processing_time_ms=int(duration_seconds * 1000),
            steps_executed=execution.steps_executed,
            alerts=scoring.build_alerts(decision, fraud, necessity, clinical_review, settings),
            next_steps=scoring.build_next_steps(final_status, fraud),
            denial_reasons=list(decision.denial_reasons),
            quality_score=scoring.calculate_quality_score(execution, duration_seconds, settings),
            compliance_score=scoring.calculate_compliance_score(execution),
            audit_required=scoring.is_audit_required(execution, decision, fraud, settings),
            eob_generated=eob_step is not None and eob_step.status == StepStatus.COMPLETED,
            payment_estimated=decision.is_payable and decision.approved_amount > 0,
        )

    # =========================================================================
    # Run Completion
    # =========================================================================

    async def _finish(
        self,
        execution: WorkflowExecution,
        ctx: Optional[RunContext] = None,
    ) -> None:
        """Unregister, persist, audit and notify for a terminal run."""
        await self.registry.remove(execution.workflow_id)
        await self.result_store.save(execution)

        result = execution.final_result
        await self.audit_log.record(
            AuditEvent(
                event_type=AuditEventType.WORKFLOW_FINISHED,
                workflow_id=execution.workflow_id,
                claim_id=execution.claim_id,
                workflow_type=execution.workflow_type,
                status=execution.status,
                details={
                    "final_status": result.final_status.value if result else None,
                    "error": execution.error,
                    "failed_step": execution.failed_step.value if execution.failed_step else None,
                    "steps_executed": [s.value for s in execution.steps_executed],
                    "total_duration_ms": execution.total_duration_ms,
                },
            )
        )

        if execution.status == WorkflowStatus.COMPLETED and result is not None:
            await self.claim_store.update_claim_status(
                execution.claim_id,
                result.final_status.value,
                f"Workflow {execution.workflow_id}",
            )
            await self._dispatch_result_notifications(execution, result, ctx)
        elif execution.status == WorkflowStatus.FAILED:
            await self.claim_store.update_claim_status(
                execution.claim_id,
                PROCESSING_FAILED_STATUS,
                execution.error or "",
            )

        logger.info(
            f"Workflow {execution.workflow_id} {execution.status.value} "
            f"in {execution.total_duration_ms or 0}ms"
        )

    async def _dispatch_result_notifications(
        self,
        execution: WorkflowExecution,
        result: WorkflowResult,
        ctx: Optional[RunContext],
    ) -> None:
        eligibility = ctx.get(StepId.ELIGIBILITY_VERIFICATION) if ctx else None
        if eligibility is not None and eligibility.eligible:
            await self._notify(
                NotificationTrigger.ELIGIBILITY_VERIFIED,
                execution,
                f"Eligibility verified for claim {execution.claim_id}",
            )
        if result.has_alert(AlertCode.CLINICAL_REVIEW_REQUIRED):
            await self._notify(
                NotificationTrigger.MEDICAL_REVIEW_REQUIRED,
                execution,
                f"Claim {execution.claim_id} requires clinical review",
                AlertSeverity.WARNING,
            )
        if result.has_alert(AlertCode.FRAUD_RISK) or result.has_alert(
            AlertCode.INVESTIGATION_REQUIRED
        ):
            await self._notify(
                NotificationTrigger.FRAUD_DETECTED,
                execution,
                f"Claim {execution.claim_id} flagged for investigation",
                AlertSeverity.CRITICAL,
            )
        if result.final_status in (FinalStatus.APPROVED, FinalStatus.PARTIALLY_APPROVED):
            await self._notify(
                NotificationTrigger.CLAIM_APPROVED,
                execution,
                f"Claim {execution.claim_id} {result.final_status.value}: "
                f"{result.approved_amount} approved",
            )
        if result.final_status == FinalStatus.DENIED:
            await self._notify(
                NotificationTrigger.CLAIM_DENIED,
                execution,
                f"Claim {execution.claim_id} denied: {'; '.join(result.denial_reasons)}",
                AlertSeverity.WARNING,
            )
        if result.payment_estimated:
            await self._notify(
                NotificationTrigger.PAYMENT_PROCESSED,
                execution,
                f"Payment of {result.insurer_responsibility} estimated for claim {execution.claim_id}",
            )

    async def _notify(
        self,
        trigger: NotificationTrigger,
        execution: WorkflowExecution,
        message: str,
        severity: AlertSeverity = AlertSeverity.INFO,
    ) -> None:
        """Dispatch a notification when its trigger is enabled. Failures are logged."""
        if not self.settings.is_trigger_enabled(trigger):
            return
        notification = Notification(
            trigger=trigger,
            claim_id=execution.claim_id,
            workflow_id=execution.workflow_id,
            message=message,
            severity=severity,
        )
        try:
            await self.notifier.dispatch(notification)
        except Exception as e:
            logger.warning(
                f"Notification {trigger.value} for workflow {execution.workflow_id} failed: {e}"
            )


# =============================================================================
# Factory Functions
# =============================================================================


def create_orchestrator(
    claim_store: ClaimStore,
    reference_data: ReferenceDataProvider,
    audit_log: AuditLogSink,
    notifier: NotificationDispatcher,
    result_store: WorkflowResultStore,
    review_queue: ClinicalReviewQueue,
    renderer: Optional[DocumentRenderer] = None,
    settings: Optional[WorkflowSettings] = None,
) -> ClaimsWorkflowOrchestrator:
    """Create a new orchestrator with its own registry."""
    return ClaimsWorkflowOrchestrator(
        claim_store=claim_store,
        reference_data=reference_data,
        audit_log=audit_log,
        notifier=notifier,
        result_store=result_store,
        review_queue=review_queue,
        renderer=renderer,
        settings=settings,
        registry=WorkflowRegistry(),
    )


def create_demo_orchestrator(
    settings: Optional[WorkflowSettings] = None,
) -> ClaimsWorkflowOrchestrator:
    """Create an orchestrator wired to in-memory demo collaborators."""
    from claimflow.services.adapters.memory import (
        InMemoryAuditLog,
        InMemoryClaimStore,
        InMemoryClinicalReviewQueue,
        InMemoryNotificationDispatcher,
        InMemoryWorkflowResultStore,
        create_demo_reference_data,
    )

    return create_orchestrator(
        claim_store=InMemoryClaimStore(),
        reference_data=create_demo_reference_data(),
        audit_log=InMemoryAuditLog(),
        notifier=InMemoryNotificationDispatcher(),
        result_store=InMemoryWorkflowResultStore(),
        review_queue=InMemoryClinicalReviewQueue(),
        settings=settings,
    )
