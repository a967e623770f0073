"""
Per-partner mutual exclusion.

Every write path loads the partner row with SELECT ... FOR UPDATE, so on
PostgreSQL and MySQL two concurrent operations on the same partner serialize
on the row.

SQLite ignores FOR UPDATE, so operations are not serialized there. Ledger
appends from two sessions still interleave safely: currentXp is recomputed
as SUM(ledger) inside each insert. A write to the partner row itself (rank,
commission, hold) is checked against Partner.version instead. When another
session changed the row first, the flush raises StaleDataError, which is a
PersistenceError, and the whole operation is rolled back. The caller may
retry it.
"""
from sqlalchemy.orm import Session

from models.partner import Partner
from progression_system.errors import PartnerNotFound


def lock_partner(session: Session, partnerId: int) -> Partner:
    """
    Load and lock a partner row for the rest of the transaction.

    The row is re-read even if the session already holds the object, so
    changes committed by other sessions are visible. On SQLite the lock is
    a no-op, see the module docstring.

    Raises:
        PartnerNotFound: no partner with this id
    """
    partner = (
        session.query(Partner)
        .filter(Partner.partnerID == partnerId)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if partner is None:
        raise PartnerNotFound(f"Partner {partnerId} not found", partnerId=partnerId)
    return partner


def get_partner(session: Session, partnerId: int) -> Partner:
    """
    Read a partner without locking.

    Raises:
        PartnerNotFound: no partner with this id
    """
    partner = session.query(Partner).filter(Partner.partnerID == partnerId).first()
    if partner is None:
        raise PartnerNotFound(f"Partner {partnerId} not found", partnerId=partnerId)
    return partner
