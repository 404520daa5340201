"""
Demo runner for the claims workflow orchestrator.

Processes one claim against the in-memory demo member, provider and benefit
and prints the compiled result.

Usage:
    python -m claimflow [--amount 1000] [--benefit-id BEN-OUTPATIENT] [--eob]

Options:
    --claim-id      Claim identifier (default: CLM-DEMO-001)
    --amount        Billed amount (default: 1000.00)
    --benefit-id    Benefit to bill against (default: BEN-OUTPATIENT)
    --diagnosis     Diagnosis code, repeatable (default: E11.9)
    --procedure     Procedure code, repeatable (default: 83036)
    --eob           Print the text EOB instead of the JSON result
"""

import argparse
import asyncio
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

from claimflow.core.config import get_workflow_settings
from claimflow.core.enums import EOBFormat, StepId
from claimflow.schemas.claim import Claim
from claimflow.services.orchestrator import create_demo_orchestrator
from claimflow.utils.errors import ClaimsWorkflowError
from claimflow.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a demo claim through the workflow")
    parser.add_argument("--claim-id", default="CLM-DEMO-001")
    parser.add_argument("--amount", default="1000.00")
    parser.add_argument("--benefit-id", default="BEN-OUTPATIENT")
    parser.add_argument("--diagnosis", action="append", dest="diagnosis_codes")
    parser.add_argument("--procedure", action="append", dest="procedure_codes")
    parser.add_argument("--eob", action="store_true", help="Print the text EOB")
    return parser.parse_args(argv)


async def run_demo(args: argparse.Namespace) -> int:
    """
    Process the demo claim.

    Returns:
        Process exit code
    """
    try:
        amount = Decimal(args.amount)
    except InvalidOperation:
        logger.error(f"Invalid amount: {args.amount}")
        return 2

    orchestrator = create_demo_orchestrator()
    claim = Claim(
        claim_id=args.claim_id,
        member_id="MEM-001",
        provider_id="PRV-001",
        benefit_id=args.benefit_id,
        amount=amount,
        service_date=date.today() - timedelta(days=7),
        submission_date=datetime.now(timezone.utc),
        description="Demo claim",
        diagnosis_codes=args.diagnosis_codes or ["E11.9"],
        procedure_codes=args.procedure_codes or ["83036"],
    )
    orchestrator.claim_store.add_claim(claim)

    try:
        result = await orchestrator.process_claim(claim.claim_id)
    except ClaimsWorkflowError as e:
        logger.error(f"Demo claim failed: {e.message}")
        return 1

    if args.eob:
        execution = await orchestrator.get_workflow_status(result.workflow_id)
        eob = execution.result_of(StepId.EOB_GENERATION)
        if eob is None or EOBFormat.TEXT not in eob.rendered:
            logger.warning(f"No EOB generated for claim {claim.claim_id}")
            return 1
        print(eob.rendered[EOBFormat.TEXT])
    else:
        print(result.model_dump_json(indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    settings = get_workflow_settings()
    setup_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
    return asyncio.run(run_demo(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
