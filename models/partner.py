# models/partner.py
"""
Partner model - progression state of a single partner.

currentXp is a denormalized copy of SUM(ActivityLog.xpValue) for the partner.
It is written only by the ledger listener (models/listeners/xp_listeners.py).
Direct assignment is forbidden and logged.
"""
from sqlalchemy import Column, Integer, BigInteger, String, DECIMAL, Boolean
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin


class Partner(Base, AuditMixin):
    __tablename__ = 'partners'

    # Primary key
    partnerID = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    displayName = Column(String, nullable=True)
    telegramID = Column(BigInteger, nullable=True, index=True)

    # Progression
    currentXp = Column(Integer, nullable=False, default=0)
    currentRank = Column(String, nullable=False)
    highestRank = Column(String, nullable=False)

    # Set after an admin transition left the rank below what XP alone justifies.
    # Natural promotion is suppressed while set.
    promotionHold = Column(Boolean, nullable=False, default=False)

    # Commission (percent). commissionRate = override ?? rank rate, kept in sync on every transition.
    commissionRate = Column(DECIMAL(5, 2), nullable=False)
    commissionRateOverride = Column(DECIMAL(5, 2), nullable=True)

    # Optimistic concurrency
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Note: createdAt, updatedAt - from AuditMixin

    # Relationships
    activity = relationship(
        'ActivityLog',
        back_populates='partner',
        order_by='ActivityLog.createdAt',
        lazy='dynamic'
    )

    def __repr__(self):
        return (
            f"<Partner(partnerID={self.partnerID}, rank={self.currentRank}, "
            f"xp={self.currentXp}, commission={self.commissionRate})>"
        )
