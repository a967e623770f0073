"""
Task requirement tracker.

Required tasks are per rank; a task counts as done when the partner's ledger
holds a task_completed or quiz_completed entry carrying its lesson_id.
"""
import logging
from typing import Optional, Set, Union

from sqlalchemy.orm import Session

from progression_system.config.events import (
    COMPLETION_EVENT_TYPES, EventType, lesson_dedup_key
)
from progression_system.config.ranks import Rank, RankLadder, get_rank_ladder
from progression_system.services.activity_ledger import ActivityLedger

logger = logging.getLogger(__name__)


class TaskTracker:
    """Diff a rank's required tasks against the partner's completion record."""

    def __init__(
            self,
            session: Session,
            ladder: Optional[RankLadder] = None,
            ledger: Optional[ActivityLedger] = None
    ):
        self.session = session
        self.ladder = ladder or get_rank_ladder()
        self.ledger = ledger or ActivityLedger(session)

    def completedTaskIds(self, partnerId: int) -> Set[str]:
        entries = self.ledger.queryByPartnerAndType(partnerId, COMPLETION_EVENT_TYPES)
        return {e.lessonId for e in entries if e.lessonId}

    def outstandingTasks(self, partnerId: int, rank: Union[Rank, str]) -> Set[str]:
        if not isinstance(rank, Rank):
            rank = self.ladder.get(rank)
        return set(rank.requiredTaskIds) - self.completedTaskIds(partnerId)

    def autoCompleteOutstanding(
            self,
            partnerId: int,
            rank: Union[Rank, str],
            actingAdminId: int
    ) -> int:
        """
        Record every outstanding required task of `rank` as completed by admin.

        Only outstanding tasks are written, so a second call is a no-op.
        Does not commit.

        Returns:
            Number of entries appended
        """
        if not isinstance(rank, Rank):
            rank = self.ladder.get(rank)

        outstanding = self.outstandingTasks(partnerId, rank)
        for taskId in sorted(outstanding):
            self.ledger.append(
                partnerId,
                EventType.TASK_COMPLETED,
                0,
                description=f"Admin bypass: {taskId}",
                metadata={
                    "lesson_id": taskId,
                    "target_rank": rank.name,
                    "admin_bypass": True,
                    "bypassed_by": actingAdminId,
                },
                dedupKey=lesson_dedup_key(taskId)
            )

        if outstanding:
            logger.info(
                f"Auto-completed {len(outstanding)} task(s) for partner {partnerId} "
                f"towards {rank.name} (admin {actingAdminId})"
            )
        return len(outstanding)
