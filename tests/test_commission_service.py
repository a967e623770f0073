# tests/test_commission_service.py
"""
Tests for commission rates, overrides and the seller/vault split.

Run:
    pytest tests/test_commission_service.py -v
"""
from decimal import Decimal

import pytest

from config import Config
from progression_system.errors import InvalidAmount, PartnerNotFound, ValidationError
from progression_system.events.event_bus import ProgressionEvents
from progression_system.services.commission_service import CommissionService, validate_rate

from tests.conftest import ADMIN_ID


@pytest.fixture
def commission(session, ladder):
    return CommissionService(session, ladder)


# =============================================================================
# TEST CLASS: earnings split
# =============================================================================

class TestCalculateEarnings:

    def test_simple_split(self):
        split = CommissionService.calculateEarnings(100, 40)
        assert split.sellerEarnings == Decimal("40.00")
        assert split.vaultShare == Decimal("60.00")

    def test_rounds_half_up_to_cents(self):
        split = CommissionService.calculateEarnings("99.99", "33")
        assert split.sellerEarnings == Decimal("33.00")
        assert split.vaultShare == Decimal("66.99")

    def test_parts_add_up(self):
        for amount in ("0.01", "10.05", "1234.56", "7.77"):
            split = CommissionService.calculateEarnings(amount, "32.5")
            assert split.sellerEarnings + split.vaultShare == split.amount

    def test_zero_amount(self):
        split = CommissionService.calculateEarnings(0, 45)
        assert split.sellerEarnings == Decimal("0.00")
        assert split.vaultShare == Decimal("0.00")

    def test_negative_amount(self):
        with pytest.raises(InvalidAmount):
            CommissionService.calculateEarnings(-5, 40)

    def test_non_numeric_amount(self):
        with pytest.raises(InvalidAmount):
            CommissionService.calculateEarnings("lots", 40)

    @pytest.mark.parametrize("rate", [-1, "100.01", "abc"])
    def test_bad_rate(self, rate):
        with pytest.raises(ValidationError) as exc:
            CommissionService.calculateEarnings(100, rate)
        assert exc.value.kind == "invalid_rate"

    def test_rate_bounds_inclusive(self):
        assert validate_rate(0) == Decimal("0")
        assert validate_rate("100") == Decimal("100")


# =============================================================================
# TEST CLASS: effective rate and overrides
# =============================================================================

class TestOverride:

    @pytest.mark.asyncio
    async def test_rate_follows_rank(self, commission, make_partner, load_partner):
        partnerId = await make_partner(xp=1000)
        partner = load_partner(partnerId)

        assert commission.effectiveRate(partner) == Decimal("25")
        assert partner.commissionRate == Decimal("25")

    @pytest.mark.asyncio
    async def test_set_override(self, commission, make_partner, load_partner, entries):
        partnerId = await make_partner()

        newRate = await commission.setCommissionOverride(partnerId, "33.5", ADMIN_ID)

        partner = load_partner(partnerId)
        assert newRate == Decimal("33.5")
        assert partner.commissionRate == Decimal("33.5")
        assert partner.commissionRateOverride == Decimal("33.5")

        audit = entries(partnerId, "commission_override")
        assert len(audit) == 1
        assert audit[0].xpValue == 0
        assert audit[0].entryMetadata["changed_by"] == ADMIN_ID
        assert Decimal(audit[0].entryMetadata["old_rate"]) == Decimal("20")
        assert Decimal(audit[0].entryMetadata["new_rate"]) == Decimal("33.5")

    @pytest.mark.asyncio
    async def test_clear_override(self, commission, make_partner, load_partner, entries):
        partnerId = await make_partner(xp=2000)
        await commission.setCommissionOverride(partnerId, 50, ADMIN_ID)

        newRate = await commission.setCommissionOverride(partnerId, None, ADMIN_ID)

        partner = load_partner(partnerId)
        assert newRate == Decimal("30")
        assert partner.commissionRate == Decimal("30")
        assert partner.commissionRateOverride is None
        assert len(entries(partnerId, "commission_override")) == 2

    @pytest.mark.asyncio
    async def test_invalid_override_writes_nothing(self, commission, make_partner, load_partner, entries):
        partnerId = await make_partner()

        with pytest.raises(ValidationError):
            await commission.setCommissionOverride(partnerId, 150, ADMIN_ID)

        assert entries(partnerId) == []
        assert load_partner(partnerId).commissionRate == Decimal("20")

    @pytest.mark.asyncio
    async def test_unknown_partner(self, commission):
        with pytest.raises(PartnerNotFound):
            await commission.setCommissionOverride(4242, 30, ADMIN_ID)

    @pytest.mark.asyncio
    async def test_override_event(self, commission, make_partner, recorded_events):
        partnerId = await make_partner()

        await commission.setCommissionOverride(partnerId, 35, ADMIN_ID)

        assert [name for name, _ in recorded_events] == [ProgressionEvents.COMMISSION_CHANGED]
        data = recorded_events[0][1]
        assert data["oldRate"] == Decimal("20")
        assert data["newRate"] == Decimal("35")
        assert data["changedBy"] == ADMIN_ID

    @pytest.mark.asyncio
    async def test_partner_earnings_use_effective_rate(self, commission, make_partner, load_partner):
        partnerId = await make_partner(xp=7000)
        partner = load_partner(partnerId)

        split = commission.calculatePartnerEarnings(partner, 250)

        assert split.rate == Decimal("40")
        assert split.sellerEarnings == Decimal("100.00")
        assert split.vaultShare == Decimal("150.00")


class TestProSubscription:

    @pytest.mark.asyncio
    async def test_activation_pins_pro_rate(self, commission, make_partner, load_partner, entries):
        Config.set(Config.PRO_SUBSCRIPTION_RATE, Decimal("45"))
        partnerId = await make_partner(xp=1000)

        rate = await commission.syncProSubscription(partnerId, True)

        partner = load_partner(partnerId)
        assert rate == Decimal("45")
        assert partner.commissionRateOverride == Decimal("45")
        assert partner.currentRank == "Apprentice"
        assert entries(partnerId, "commission_override")[0].entryMetadata["changed_by"] is None

    @pytest.mark.asyncio
    async def test_cancellation_restores_rank_rate(self, commission, make_partner, load_partner):
        partnerId = await make_partner(xp=1000)
        await commission.syncProSubscription(partnerId, True)

        rate = await commission.syncProSubscription(partnerId, False)

        assert rate == Decimal("25")
        assert load_partner(partnerId).commissionRateOverride is None
