"""
Workflow Definitions.

Declarative step table per workflow type. The orchestrator builds a run's
steps from this table and dispatches each step by id.

Critical steps fail the run when they fail. Advisory steps are recorded as
failed and the run continues.
"""

from dataclasses import dataclass

from claimflow.core.enums import StepId, WorkflowType
from claimflow.schemas.workflow import WorkflowStep


@dataclass(frozen=True)
class StepDescriptor:
    """Static description of a workflow step."""

    id: StepId
    name: str
    description: str
    critical: bool

    def new_step(self) -> WorkflowStep:
        return WorkflowStep(
            id=self.id,
            name=self.name,
            description=self.description,
            critical=self.critical,
        )


# =============================================================================
# Step Descriptors
# =============================================================================


CLAIM_VALIDATION = StepDescriptor(
    id=StepId.CLAIM_VALIDATION,
    name="Claim Validation",
    description="Validate required fields, amount, service date and currency",
    critical=True,
)
ELIGIBILITY_VERIFICATION = StepDescriptor(
    id=StepId.ELIGIBILITY_VERIFICATION,
    name="Eligibility Verification",
    description="Verify policy, member, waiting period, benefit limit, network and pre-authorization",
    critical=True,
)
FRAUD_DETECTION = StepDescriptor(
    id=StepId.FRAUD_DETECTION,
    name="Fraud Detection",
    description="Score fraud risk from claim signals",
    critical=False,
)
MEDICAL_NECESSITY_VALIDATION = StepDescriptor(
    id=StepId.MEDICAL_NECESSITY_VALIDATION,
    name="Medical Necessity Validation",
    description="Validate diagnosis and procedures against clinical guidelines",
    critical=False,
)
MANUAL_CLINICAL_REVIEW = StepDescriptor(
    id=StepId.MANUAL_CLINICAL_REVIEW,
    name="Manual Clinical Review",
    description="Obtain a clinical reviewer's determination",
    critical=True,
)
ENHANCED_REVIEW = StepDescriptor(
    id=StepId.ENHANCED_REVIEW,
    name="Enhanced Review",
    description="Hold high value claims for investigation",
    critical=True,
)
FINANCIAL_CALCULATION = StepDescriptor(
    id=StepId.FINANCIAL_CALCULATION,
    name="Financial Calculation",
    description="Split the billed amount between member, insurer and discount",
    critical=True,
)
CLAIMS_ADJUDICATION = StepDescriptor(
    id=StepId.CLAIMS_ADJUDICATION,
    name="Claims Adjudication",
    description="Derive the final decision from stage results",
    critical=True,
)
EOB_GENERATION = StepDescriptor(
    id=StepId.EOB_GENERATION,
    name="EOB Generation",
    description="Generate the explanation of benefits",
    critical=False,
)


WORKFLOW_DEFINITIONS: dict[WorkflowType, tuple[StepDescriptor, ...]] = {
    WorkflowType.STANDARD: (
        CLAIM_VALIDATION,
        ELIGIBILITY_VERIFICATION,
        FRAUD_DETECTION,
        MEDICAL_NECESSITY_VALIDATION,
        FINANCIAL_CALCULATION,
        CLAIMS_ADJUDICATION,
        EOB_GENERATION,
    ),
    WorkflowType.EXPEDITED: (
        CLAIM_VALIDATION,
        ELIGIBILITY_VERIFICATION,
        FINANCIAL_CALCULATION,
        CLAIMS_ADJUDICATION,
        EOB_GENERATION,
    ),
    WorkflowType.INVESTIGATION: (
        CLAIM_VALIDATION,
        ELIGIBILITY_VERIFICATION,
        FRAUD_DETECTION,
        ENHANCED_REVIEW,
        CLAIMS_ADJUDICATION,
    ),
    WorkflowType.MANUAL_REVIEW: (
        CLAIM_VALIDATION,
        ELIGIBILITY_VERIFICATION,
        FRAUD_DETECTION,
        MANUAL_CLINICAL_REVIEW,
        FINANCIAL_CALCULATION,
        CLAIMS_ADJUDICATION,
        EOB_GENERATION,
    ),
}


def build_steps(workflow_type: WorkflowType) -> list[WorkflowStep]:
    """Create fresh pending steps for a workflow type."""
    return [descriptor.new_step() for descriptor in WORKFLOW_DEFINITIONS[workflow_type]]
