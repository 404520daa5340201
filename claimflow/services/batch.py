"""
Batch Submission and Queue Worker.

BatchSubmitter fans a list of claims out to the orchestrator with bounded
concurrency. BatchQueueWorker drains queued pending runs at a fixed
interval in its own task until stopped.
"""

import asyncio
import time
from typing import Optional

from claimflow.schemas.workflow import (
    BatchFailure,
    BatchResult,
    ProcessClaimOptions,
    WorkflowResult,
)
from claimflow.services.orchestrator import ClaimsWorkflowOrchestrator
from claimflow.utils.errors import ClaimsWorkflowError, ConfigurationError
from claimflow.utils.logging import get_logger

logger = get_logger(__name__)


class BatchSubmitter:
    """Submits claims to the orchestrator in bulk."""

    def __init__(self, orchestrator: ClaimsWorkflowOrchestrator):
        self.orchestrator = orchestrator

    async def submit(
        self,
        claim_ids: list[str],
        options: Optional[ProcessClaimOptions] = None,
    ) -> BatchResult:
        """
        Process claims concurrently and aggregate the outcomes.

        Each claim is processed independently. A failing claim is reported in
        ``failures`` and never affects the others.

        Raises:
            ConfigurationError: If batch processing is disabled or the batch
                exceeds MAX_BATCH_SIZE
        """
        settings = self.orchestrator.settings
        if not settings.ENABLE_BATCH_PROCESSING:
            raise ConfigurationError("Batch processing is disabled")
        if len(claim_ids) > settings.MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"Batch of {len(claim_ids)} claims exceeds maximum of {settings.MAX_BATCH_SIZE}"
            )

        start = time.perf_counter()
        semaphore = asyncio.Semaphore(settings.BATCH_MAX_CONCURRENCY)

        async def process_with_semaphore(claim_id: str) -> WorkflowResult:
            async with semaphore:
                return await self.orchestrator.process_claim(claim_id, options)

        outcomes = await asyncio.gather(
            *[process_with_semaphore(claim_id) for claim_id in claim_ids],
            return_exceptions=True,
        )

        batch = BatchResult(total=len(claim_ids))
        for claim_id, outcome in zip(claim_ids, outcomes):
            if isinstance(outcome, ClaimsWorkflowError):
                batch.failures.append(
                    BatchFailure(
                        claim_id=claim_id,
                        error_type=type(outcome).__name__,
                        message=outcome.message,
                        workflow_id=outcome.workflow_id,
                    )
                )
            elif isinstance(outcome, Exception):
                logger.warning(
                    f"Batch claim {claim_id} raised {type(outcome).__name__}: {outcome}"
                )
                batch.failures.append(
                    BatchFailure(
                        claim_id=claim_id,
                        error_type=type(outcome).__name__,
                        message=str(outcome),
                    )
                )
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                batch.results.append(outcome)

        batch.processing_time_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"Batch {batch.batch_id}: {batch.succeeded} succeeded, "
            f"{batch.failed} failed of {batch.total}"
        )
        return batch


class BatchQueueWorker:
    """
    Background task draining the orchestrator's pending queue.

    Usage:
        async with BatchQueueWorker(orchestrator) as worker:
            await orchestrator.enqueue_claim("CLM-001")
    """

    def __init__(
        self,
        orchestrator: ClaimsWorkflowOrchestrator,
        interval_seconds: Optional[float] = None,
    ):
        self.orchestrator = orchestrator
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else orchestrator.settings.QUEUE_DRAIN_INTERVAL_SECONDS
        )
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.drained_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain loop. Starting a running worker is a no-op."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Queue worker started (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current drain to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info(f"Queue worker stopped after draining {self.drained_count} runs")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            drained = await self.orchestrator.drain_queue()
            self.drained_count += len(drained)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    async def __aenter__(self) -> "BatchQueueWorker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


# =============================================================================
# Factory Functions
# =============================================================================


def create_batch_submitter(orchestrator: ClaimsWorkflowOrchestrator) -> BatchSubmitter:
    return BatchSubmitter(orchestrator)


def create_queue_worker(
    orchestrator: ClaimsWorkflowOrchestrator,
    interval_seconds: Optional[float] = None,
) -> BatchQueueWorker:
    """Create a queue worker; call start() or use it as an async context manager."""
    return BatchQueueWorker(orchestrator, interval_seconds)
