# models/activity_log.py
"""
ActivityLog model - append-only ledger of XP-affecting and task-affecting events.

Every XP grant is summed from this table, and task completions recorded here
are the idempotency source for "was this action already credited".
Rows are never updated or deleted.
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, JSON, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from models.base import Base, _get_current_time


class ActivityLog(Base):
    __tablename__ = 'partner_activity_log'

    __table_args__ = (
        # NULL dedupKey values never collide, so only keyed events are constrained
        UniqueConstraint('partnerID', 'eventType', 'dedupKey', name='uq_activity_dedup'),
        Index('ix_activity_partner_type', 'partnerID', 'eventType'),
    )

    # Primary key
    entryID = Column(Integer, primary_key=True, autoincrement=True)

    # Relations
    partnerID = Column(Integer, ForeignKey('partners.partnerID'), nullable=False)

    # Event
    eventType = Column(String(50), nullable=False)
    xpValue = Column(Integer, nullable=False, default=0)
    description = Column(String, nullable=True)
    entryMetadata = Column('metadata', JSON, nullable=False, default=dict)
    dedupKey = Column(String, nullable=True)

    createdAt = Column(DateTime, default=_get_current_time, nullable=False, index=True)

    # Relationships
    partner = relationship('Partner', back_populates='activity')

    @property
    def lessonId(self):
        """Lesson id of task_completed / quiz_completed entries, None otherwise."""
        return (self.entryMetadata or {}).get("lesson_id")

    @property
    def isAdminBypass(self) -> bool:
        return bool((self.entryMetadata or {}).get("admin_bypass", False))

    def __repr__(self):
        return (
            f"<ActivityLog(entryID={self.entryID}, partner={self.partnerID}, "
            f"type={self.eventType}, xp={self.xpValue})>"
        )
