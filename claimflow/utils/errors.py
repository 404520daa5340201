"""
Custom Exceptions
Error hierarchy for claims workflow orchestration.

Input errors are raised before a run exists. Stage errors are caught by the
orchestrator and recorded on the failing step. Run-level errors are raised
from process_claim once the run has been recorded.
"""

from typing import Optional


class ClaimsWorkflowError(Exception):
    """Base exception for the claims workflow."""

    def __init__(
        self,
        message: str,
        *,
        claim_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        step_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.claim_id = claim_id
        self.workflow_id = workflow_id
        self.step_id = step_id

    def context(self) -> dict[str, Optional[str]]:
        """Structured context for logs and audit records."""
        return {
            "claim_id": self.claim_id,
            "workflow_id": self.workflow_id,
            "step_id": self.step_id,
        }


# =============================================================================
# Input Errors
# =============================================================================


class ClaimNotFoundError(ClaimsWorkflowError):
    """Raised when the claim store has no record for a claim id."""

    def __init__(self, claim_id: str):
        super().__init__(f"Claim {claim_id} not found", claim_id=claim_id)


class MalformedClaimError(ClaimsWorkflowError):
    """Raised when a stored claim cannot be interpreted."""


# =============================================================================
# Stage Errors
# =============================================================================


class StageError(ClaimsWorkflowError):
    """Raised by a stage executor when it cannot produce a verdict."""


class ClaimValidationError(StageError):
    """Raised when a claim fails structural validation."""

    def __init__(self, claim_id: str, errors: list[str]):
        super().__init__(
            f"Claim validation failed: {'; '.join(errors)}",
            claim_id=claim_id,
        )
        self.errors = errors


class ReferenceDataUnavailableError(StageError):
    """Raised when a reference data lookup fails or returns nothing."""


class StageTimeoutError(StageError):
    """Raised when a step exceeds the remaining run deadline."""


class DecisionError(StageError):
    """Raised when the decision engine lacks a required stage result."""


# =============================================================================
# Run-Level Errors
# =============================================================================


class WorkflowFailedError(ClaimsWorkflowError):
    """Raised by process_claim when a run ends in the failed state."""

    def __init__(
        self,
        workflow_id: str,
        step_id: Optional[str],
        reason: str,
        claim_id: Optional[str] = None,
    ):
        where = f" at step {step_id}" if step_id else ""
        super().__init__(
            f"Workflow {workflow_id} failed{where}: {reason}",
            claim_id=claim_id,
            workflow_id=workflow_id,
            step_id=step_id,
        )
        self.reason = reason


class WorkflowCancelledError(ClaimsWorkflowError):
    """Raised by process_claim when a run was cancelled."""

    def __init__(self, workflow_id: str, claim_id: Optional[str] = None):
        super().__init__(
            f"Workflow {workflow_id} was cancelled",
            claim_id=claim_id,
            workflow_id=workflow_id,
        )


class WorkflowConflictError(ClaimsWorkflowError):
    """Raised when a claim already has an active run."""

    def __init__(self, claim_id: str, active_workflow_id: str):
        super().__init__(
            f"Claim {claim_id} already has active workflow {active_workflow_id}",
            claim_id=claim_id,
            workflow_id=active_workflow_id,
        )


class InvalidStepTransitionError(ClaimsWorkflowError):
    """Raised when a step status would move backwards or be re-entered."""


class ConfigurationError(ClaimsWorkflowError):
    """Raised when a configuration update is rejected."""


class InvalidRunTransitionError(ClaimsWorkflowError):
    """Raised when a run status change is not allowed by the lifecycle."""
