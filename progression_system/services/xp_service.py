"""
XP accumulator.

Partner.currentXp is a cached copy of SUM(ActivityLog.xpValue); the only way to
raise it is a ledger entry. The cache itself is rewritten by the ledger
listener, see models/listeners/xp_listeners.py.
"""
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from models.partner import Partner
from progression_system.config.events import EventType
from progression_system.errors import InvalidAmount
from progression_system.services.activity_ledger import ActivityLedger

logger = logging.getLogger(__name__)


def validate_amount(amount) -> int:
    """
    Check an XP grant amount.

    Raises:
        InvalidAmount: amount is not a positive integer
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"XP amount must be an integer, got {amount!r}", amount=amount)
    if amount <= 0:
        raise InvalidAmount(f"XP amount must be positive, got {amount}", amount=amount)
    return amount


class XpService:
    """Ledger-backed XP totals."""

    def __init__(self, session: Session, ledger: Optional[ActivityLedger] = None):
        self.session = session
        self.ledger = ledger or ActivityLedger(session)

    def totalXp(self, partnerId: int) -> int:
        """XP recomputed from the ledger, independent of the cached column."""
        return self.ledger.sumXp(partnerId)

    def addXp(
            self,
            partner: Partner,
            amount: int,
            eventType: Union[EventType, str] = EventType.XP_GRANT,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None,
            dedupKey: Optional[str] = None
    ) -> int:
        """
        Append an XP entry for a partner whose row the caller has locked.

        Does not commit; the caller owns the transaction.

        Returns:
            New XP total
        """
        validate_amount(amount)

        self.ledger.append(
            partner.partnerID,
            eventType,
            amount,
            description=description,
            metadata=metadata,
            dedupKey=dedupKey
        )

        newTotal = partner.currentXp
        logger.info(f"Partner {partner.partnerID} +{amount} XP ({eventType}), total={newTotal}")
        return newTotal
