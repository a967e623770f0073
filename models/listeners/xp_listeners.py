# models/listeners/xp_listeners.py
"""
XP Event Listeners - Auto-sync Partner.currentXp on ledger changes.

Architecture:
    ActivityLog (INSERT) → Partner.currentXp = SUM(ActivityLog.xpValue)

This keeps Partner.currentXp equal to SUM(xpValue) of the partner's ledger.
The value is recalculated from the ledger, never incremented, so a grant
cannot be lost to a stale read of the cached total.

NOTE: All XP changes MUST go through the ledger.
      Direct Partner.currentXp = X is FORBIDDEN.
"""
import logging
import traceback

from sqlalchemy import event, func, select

logger = logging.getLogger(__name__)


def recalc_partner_xp(connection, partner_id: int) -> int:
    """
    Full recalculation of Partner.currentXp from the ledger.

    Formula: Partner.currentXp = SUM(ActivityLog.xpValue) WHERE partnerID=X

    Returns:
        The recalculated total
    """
    from models.activity_log import ActivityLog
    from models.partner import Partner

    ledger = ActivityLog.__table__
    partners = Partner.__table__

    result = connection.execute(
        select(func.coalesce(func.sum(ledger.c.xpValue), 0))
        .where(ledger.c.partnerID == partner_id)
    )
    real_xp = int(result.scalar())

    # Overwrite (NOT increment!)
    connection.execute(
        partners.update()
        .where(partners.c.partnerID == partner_id)
        .values(currentXp=real_xp)
    )
    return real_xp


def register_xp_listeners():
    """
    Register event listeners for XP synchronization.

    Called once during application startup from models/listeners/__init__.py
    """
    from models.activity_log import ActivityLog

    def on_ledger_insert(mapper, connection, target):
        real_xp = recalc_partner_xp(connection, target.partnerID)

        if target.xpValue:
            logger.info(
                f"XP RECALC: partner={target.partnerID}, "
                f"new_total={real_xp}, trigger={target.eventType}"
            )

    def on_ledger_mutation(mapper, connection, target):
        # Ledger is append-only; keep the cache right anyway, but make it loud.
        logger.warning(
            f"ActivityLog entry {target.entryID} modified/deleted for partner "
            f"{target.partnerID}; ledger rows are meant to be immutable"
        )
        recalc_partner_xp(connection, target.partnerID)

    event.listen(ActivityLog, 'after_insert', on_ledger_insert)
    event.listen(ActivityLog, 'after_update', on_ledger_mutation)
    event.listen(ActivityLog, 'after_delete', on_ledger_mutation)


# =========================================================================
# SAFETY: Prevent direct XP modification
# =========================================================================

def register_xp_protection():
    """
    Log warnings when Partner.currentXp is modified directly.
    """
    from models.partner import Partner

    @event.listens_for(Partner.currentXp, 'set')
    def warn_direct_xp_set(target, value, oldvalue, initiator):
        """Warn when currentXp is set directly (not via listener)."""
        if isinstance(oldvalue, int) and value != oldvalue:
            stack = ''.join(traceback.format_stack()[-5:-1])

            logger.warning(
                f"DIRECT currentXp modification detected! "
                f"partner={target.partnerID}, {oldvalue} → {value}\n"
                f"Stack:\n{stack}"
            )
