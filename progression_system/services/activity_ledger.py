"""
Activity ledger - append-only log of XP-affecting and task-affecting events.

The ledger is both the source XP totals are summed from and the completion
record used for "was this already credited" checks. Entries are never
updated or deleted.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.activity_log import ActivityLog
from models.partner import Partner
from progression_system.config.events import EventType, coerce_event_type, validate_metadata
from progression_system.errors import InvalidAmount

logger = logging.getLogger(__name__)

EventTypeLike = Union[EventType, str]


class ActivityLedger:
    """Append and query ActivityLog entries for a partner."""

    def __init__(self, session: Session):
        self.session = session

    def append(
            self,
            partnerId: int,
            eventType: EventTypeLike,
            xpValue: int = 0,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None,
            dedupKey: Optional[str] = None
    ) -> ActivityLog:
        """
        Write one ledger entry and flush it.

        Duplicates are not rejected here; callers that need at-most-once
        crediting use appendOnce() or check exists() first. The table-level
        unique constraint on (partnerID, eventType, dedupKey) is the backstop.

        Raises:
            ValidationError: unknown event type or missing metadata keys
            InvalidAmount: negative xpValue
        """
        eventType = coerce_event_type(eventType)
        metadata = dict(metadata or {})
        validate_metadata(eventType, metadata)

        if isinstance(xpValue, bool) or not isinstance(xpValue, int):
            raise InvalidAmount(f"xpValue must be an integer, got {xpValue!r}", amount=xpValue)
        if xpValue < 0:
            raise InvalidAmount(f"xpValue cannot be negative: {xpValue}", amount=xpValue)

        entry = ActivityLog(
            partnerID=partnerId,
            eventType=eventType.value,
            xpValue=xpValue,
            description=description,
            entryMetadata=metadata,
            dedupKey=dedupKey
        )
        self.session.add(entry)
        self.session.flush()

        # The XP listener rewrote partners.currentXp; drop the stale cached copy
        self._expirePartnerXp(partnerId)

        logger.debug(
            f"Ledger append: partner={partnerId}, type={eventType.value}, "
            f"xp={xpValue}, entry={entry.entryID}"
        )
        return entry

    def appendOnce(
            self,
            partnerId: int,
            eventType: EventTypeLike,
            dedupKey: str,
            xpValue: int = 0,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[ActivityLog]:
        """
        Append unless an entry with the same (eventType, dedupKey) exists.

        Returns:
            The new entry, or None if the action was already recorded
        """
        if self.exists(partnerId, eventType, dedupKey):
            logger.debug(f"Ledger skip duplicate: partner={partnerId}, key={dedupKey}")
            return None

        return self.append(
            partnerId, eventType, xpValue,
            description=description,
            metadata=metadata,
            dedupKey=dedupKey
        )

    def exists(self, partnerId: int, eventType: EventTypeLike, dedupKey: str) -> bool:
        eventType = coerce_event_type(eventType)
        found = self.session.query(ActivityLog.entryID).filter(
            ActivityLog.partnerID == partnerId,
            ActivityLog.eventType == eventType.value,
            ActivityLog.dedupKey == dedupKey
        ).first()
        return found is not None

    def findByMetadata(
            self,
            partnerId: int,
            eventType: EventTypeLike,
            key: str,
            value: Any
    ) -> Optional[ActivityLog]:
        """First entry of this type whose metadata[key] equals value."""
        eventType = coerce_event_type(eventType)
        return self.session.query(ActivityLog).filter(
            ActivityLog.partnerID == partnerId,
            ActivityLog.eventType == eventType.value,
            ActivityLog.entryMetadata[key].as_string() == str(value)
        ).order_by(ActivityLog.createdAt, ActivityLog.entryID).first()

    def queryByPartnerAndType(
            self,
            partnerId: int,
            eventTypes: Optional[Iterable[EventTypeLike]] = None,
            since: Optional[datetime] = None,
            until: Optional[datetime] = None
    ) -> List[ActivityLog]:
        """
        Entries for a partner, oldest first.

        Args:
            eventTypes: restrict to these types, all types if None
            since: inclusive lower bound on createdAt
            until: exclusive upper bound on createdAt
        """
        query = self.session.query(ActivityLog).filter(ActivityLog.partnerID == partnerId)

        if eventTypes is not None:
            values = [coerce_event_type(t).value for t in eventTypes]
            query = query.filter(ActivityLog.eventType.in_(values))
        if since is not None:
            query = query.filter(ActivityLog.createdAt >= since)
        if until is not None:
            query = query.filter(ActivityLog.createdAt < until)

        return query.order_by(ActivityLog.createdAt, ActivityLog.entryID).all()

    def sumXp(self, partnerId: int) -> int:
        total = self.session.query(
            func.coalesce(func.sum(ActivityLog.xpValue), 0)
        ).filter(ActivityLog.partnerID == partnerId).scalar()
        return int(total)

    def _expirePartnerXp(self, partnerId: int):
        key = self.session.identity_key(Partner, partnerId)
        partner = self.session.identity_map.get(key)
        if partner is not None:
            self.session.expire(partner, ['currentXp'])
