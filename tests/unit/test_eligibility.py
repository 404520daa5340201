"""
Tests for the eligibility stage.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from claimflow.core.enums import MemberStatus
from claimflow.schemas.claim import BenefitRecord, MemberRecord, PolicyRecord, ProviderRecord
from claimflow.services.stages import EligibilityChecker
from claimflow.utils.errors import ReferenceDataUnavailableError


@pytest.fixture
def checker(reference_data):
    return EligibilityChecker(reference_data)


class TestEligibilityChecker:
    """Test member, policy, benefit and provider checks."""

    @pytest.mark.asyncio
    async def test_eligible_claim(self, checker, claim):
        result = await checker.execute(claim)
        assert result.eligible is True
        assert result.denial_reasons == []
        assert result.remaining_benefit_limit == Decimal("50000")
        assert [c.name for c in result.checks] == [
            "policy_active",
            "member_active",
            "waiting_period",
            "benefit_limit",
            "provider_network",
            "preauthorization",
        ]

    @pytest.mark.asyncio
    async def test_inactive_policy(self, checker, reference_data, claim):
        reference_data.add_policy(PolicyRecord(policy_id="POL-001", is_active=False))
        result = await checker.execute(claim)
        assert result.eligible is False
        assert result.denial_reasons == ["Policy period not active"]

    @pytest.mark.asyncio
    async def test_policy_terminated_before_service(self, checker, reference_data, make_claim):
        reference_data.add_policy(
            PolicyRecord(
                policy_id="POL-001",
                effective_date=date(2020, 1, 1),
                termination_date=date(2021, 1, 1),
            )
        )
        result = await checker.execute(make_claim())
        assert "Policy period not active" in result.denial_reasons

    @pytest.mark.asyncio
    async def test_suspended_member(self, checker, reference_data, claim):
        member = reference_data.members["MEM-001"]
        reference_data.add_member(member.model_copy(update={"status": MemberStatus.SUSPENDED}))
        result = await checker.execute(claim)
        assert result.denial_reasons == ["Member coverage not active"]

    @pytest.mark.asyncio
    async def test_unknown_member(self, checker, make_claim):
        result = await checker.execute(make_claim(member_id="MEM-404"))
        assert result.eligible is False
        assert "Policy period not active" in result.denial_reasons
        assert "Member coverage not active" in result.denial_reasons

    @pytest.mark.asyncio
    async def test_waiting_period(self, checker, reference_data, make_claim):
        service_date = date.today() - timedelta(days=10)
        reference_data.add_member(
            MemberRecord(
                member_id="MEM-NEW",
                policy_id="POL-001",
                enrollment_date=service_date - timedelta(days=30),
            )
        )
        reference_data.add_benefit(
            BenefitRecord(benefit_id="BEN-WAIT", waiting_period_days=90)
        )
        result = await checker.execute(
            make_claim(member_id="MEM-NEW", benefit_id="BEN-WAIT", service_date=service_date)
        )
        assert result.denial_reasons == ["Waiting period of 90 days not satisfied"]

    @pytest.mark.asyncio
    async def test_unknown_benefit(self, checker, make_claim):
        result = await checker.execute(make_claim(benefit_id="BEN-404"))
        assert result.eligible is False
        assert result.denial_reasons == ["Benefit BEN-404 not found"]

    @pytest.mark.asyncio
    async def test_exhausted_benefit_limit(self, checker, reference_data, claim):
        reference_data.set_utilization(
            "MEM-001", "BEN-BASIC", claim.service_date.year, Decimal("50000")
        )
        result = await checker.execute(claim)
        assert result.denial_reasons == ["Benefit limit of 50000 exhausted"]
        assert result.remaining_benefit_limit == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unlimited_benefit(self, checker, reference_data, make_claim):
        reference_data.add_benefit(BenefitRecord(benefit_id="BEN-UNLIMITED"))
        result = await checker.execute(make_claim(benefit_id="BEN-UNLIMITED"))
        assert result.eligible is True
        assert result.remaining_benefit_limit is None

    @pytest.mark.asyncio
    async def test_out_of_network_provider(self, checker, reference_data, make_claim):
        reference_data.add_provider(ProviderRecord(provider_id="PRV-OON", in_network=False))
        result = await checker.execute(make_claim(provider_id="PRV-OON"))
        assert result.denial_reasons == ["Provider not in network"]

    @pytest.mark.asyncio
    async def test_preauthorization(self, checker, reference_data, make_claim):
        reference_data.add_benefit(BenefitRecord(benefit_id="BEN-AUTH", preauth_required=True))
        claim = make_claim(benefit_id="BEN-AUTH")

        result = await checker.execute(claim)
        assert result.denial_reasons == ["Pre-authorization required but not found"]

        reference_data.add_preauthorization("MEM-001", "BEN-AUTH")
        result = await checker.execute(claim)
        assert result.eligible is True

    @pytest.mark.asyncio
    async def test_all_failures_reported(self, checker, reference_data, make_claim):
        reference_data.add_policy(PolicyRecord(policy_id="POL-001", is_active=False))
        reference_data.add_provider(ProviderRecord(provider_id="PRV-OON", in_network=False))
        result = await checker.execute(make_claim(provider_id="PRV-OON"))
        assert result.denial_reasons == ["Policy period not active", "Provider not in network"]

    @pytest.mark.asyncio
    async def test_lookup_outage_raises(self, checker, reference_data, claim):
        reference_data.unavailable.add("get_member")
        with pytest.raises(ReferenceDataUnavailableError):
            await checker.execute(claim)
