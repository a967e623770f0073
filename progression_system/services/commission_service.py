"""
Commission rates and earnings split.

The effective rate of a partner is the override when one is set, otherwise the
commission rate of the current rank. Partner.commissionRate stores the
effective rate and is rewritten on every transition.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

from sqlalchemy.orm import Session

from config import Config
from core.db import transactional
from models.partner import Partner
from progression_system.config.events import EventType
from progression_system.config.ranks import RankLadder, get_rank_ladder
from progression_system.errors import InvalidAmount, ValidationError
from progression_system.events.event_bus import eventBus, ProgressionEvents
from progression_system.services.activity_ledger import ActivityLedger
from progression_system.utils.partner_lock import lock_partner

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class EarningsSplit:
    amount: Decimal
    rate: Decimal
    sellerEarnings: Decimal
    vaultShare: Decimal


def _toDecimal(value, field: str) -> Decimal:
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a number: {value!r}", kind="invalid_rate", value=value)


def validate_rate(rate) -> Decimal:
    """
    Raises:
        ValidationError: kind="invalid_rate" outside 0..100
    """
    rate = _toDecimal(rate, "rate")
    if not rate.is_finite() or rate < 0 or rate > HUNDRED:
        raise ValidationError(f"Commission rate must be within 0..100, got {rate}", kind="invalid_rate", rate=str(rate))
    return rate


class CommissionService:
    """Effective commission rates, overrides and the seller/vault split."""

    def __init__(
            self,
            session: Session,
            ladder: Optional[RankLadder] = None,
            ledger: Optional[ActivityLedger] = None
    ):
        self.session = session
        self.ladder = ladder or get_rank_ladder()
        self.ledger = ledger or ActivityLedger(session)

    def effectiveRate(self, partner: Partner) -> Decimal:
        if partner.commissionRateOverride is not None:
            return Decimal(partner.commissionRateOverride)
        return self.ladder.get(partner.currentRank).commissionRate

    def applyEffectiveRate(self, partner: Partner) -> Decimal:
        """Recompute and store Partner.commissionRate. Does not commit."""
        rate = self.effectiveRate(partner)
        partner.commissionRate = rate
        return rate

    async def setCommissionOverride(
            self,
            partnerId: int,
            rate: Optional[Union[Decimal, int, str]],
            actingAdminId: Optional[int]
    ) -> Decimal:
        """
        Set or clear (rate=None) the commission override.

        Writes a commission_override audit entry.

        Returns:
            New effective rate
        """
        if rate is not None:
            rate = validate_rate(rate)

        with transactional(self.session):
            partner = lock_partner(self.session, partnerId)
            oldRate = Decimal(partner.commissionRate)

            partner.commissionRateOverride = rate
            newRate = self.applyEffectiveRate(partner)

            self.ledger.append(
                partnerId,
                EventType.COMMISSION_OVERRIDE,
                0,
                description=(
                    f"Commission override set to {rate}%" if rate is not None
                    else "Commission override cleared"
                ),
                metadata={
                    "old_rate": str(oldRate),
                    "new_rate": str(newRate),
                    "override": str(rate) if rate is not None else None,
                    "changed_by": actingAdminId,
                }
            )

        logger.info(
            f"Partner {partnerId} commission {oldRate}% -> {newRate}% "
            f"(override={rate}, by={actingAdminId})"
        )

        await eventBus.emit(ProgressionEvents.COMMISSION_CHANGED, {
            "partnerId": partnerId,
            "oldRate": oldRate,
            "newRate": newRate,
            "override": rate,
            "changedBy": actingAdminId,
        })
        return newRate

    async def syncProSubscription(self, partnerId: int, active: bool) -> Decimal:
        """
        Apply the Partner Pro subscription state from the payment gateway.

        An active subscription pins the commission to the Pro rate;
        a cancelled one drops back to the rank rate.
        """
        rate = Config.get(Config.PRO_SUBSCRIPTION_RATE, Decimal("45")) if active else None
        logger.info(f"Partner {partnerId} Pro subscription active={active}")
        return await self.setCommissionOverride(partnerId, rate, actingAdminId=None)

    @staticmethod
    def calculateEarnings(amount, rate) -> EarningsSplit:
        """
        Split a sale between the seller and the vault.

        sellerEarnings = amount * rate / 100, vaultShare = the rest,
        both rounded half-up to cents.

        Raises:
            InvalidAmount: negative amount
            ValidationError: rate outside 0..100
        """
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise InvalidAmount(f"Sale amount is not a number: {amount!r}", amount=amount)
        if not amount.is_finite() or amount < 0:
            raise InvalidAmount(f"Sale amount cannot be negative: {amount}", amount=str(amount))

        rate = validate_rate(rate)
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        seller = (amount * rate / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)

        return EarningsSplit(
            amount=amount,
            rate=rate,
            sellerEarnings=seller,
            vaultShare=amount - seller
        )

    def calculatePartnerEarnings(self, partner: Partner, amount) -> EarningsSplit:
        return self.calculateEarnings(amount, self.effectiveRate(partner))
