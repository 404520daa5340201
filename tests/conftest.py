"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from claimflow.core.config import WorkflowSettings
from claimflow.schemas.claim import BenefitRecord, Claim
from claimflow.services.adapters.memory import (
    InMemoryAuditLog,
    InMemoryClaimStore,
    InMemoryClinicalReviewQueue,
    InMemoryNotificationDispatcher,
    InMemoryWorkflowResultStore,
    create_demo_reference_data,
)
from claimflow.services.orchestrator import create_orchestrator


@pytest.fixture
def settings():
    """Default workflow settings, isolated from the cached singleton."""
    return WorkflowSettings()


@pytest.fixture
def reference_data():
    """
    Demo reference data plus a basic benefit without discount or
    coinsurance (deductible 50, copay 20).
    """
    data = create_demo_reference_data()
    data.add_benefit(
        BenefitRecord(
            benefit_id="BEN-BASIC",
            name="Basic Outpatient",
            category="outpatient",
            annual_limit=Decimal("50000"),
            deductible=Decimal("50"),
            copay=Decimal("20"),
            coinsurance_pct=Decimal("0"),
        )
    )
    return data


@pytest.fixture
def make_claim():
    """Factory for claims against the demo member, provider and basic benefit."""

    def _make(**overrides) -> Claim:
        values = {
            "claim_id": "CLM-001",
            "member_id": "MEM-001",
            "provider_id": "PRV-001",
            "benefit_id": "BEN-BASIC",
            "amount": Decimal("1000.00"),
            "service_date": date.today() - timedelta(days=10),
            "submission_date": datetime.now(timezone.utc) - timedelta(days=3),
            "description": "Diabetes follow-up",
            "diagnosis_codes": ["E11.9"],
            "procedure_codes": ["83036"],
        }
        values.update(overrides)
        return Claim(**values)

    return _make


@pytest.fixture
def claim(make_claim):
    return make_claim()


@pytest.fixture
def claim_store():
    return InMemoryClaimStore()


@pytest.fixture
def audit_log():
    return InMemoryAuditLog()


@pytest.fixture
def notifier():
    return InMemoryNotificationDispatcher()


@pytest.fixture
def result_store():
    return InMemoryWorkflowResultStore()


@pytest.fixture
def review_queue():
    return InMemoryClinicalReviewQueue()


@pytest.fixture
def orchestrator(
    claim_store, reference_data, audit_log, notifier, result_store, review_queue, settings
):
    """Orchestrator wired to in-memory collaborators."""
    return create_orchestrator(
        claim_store=claim_store,
        reference_data=reference_data,
        audit_log=audit_log,
        notifier=notifier,
        result_store=result_store,
        review_queue=review_queue,
        settings=settings,
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
