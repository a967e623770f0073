"""
Daily tasks.

Every partner of a rank sees the same tasks on the same calendar day:
slot1 = pool[dayOfYear % n], and for the Pro tier slot2 = pool[(dayOfYear + 1) % n].
Nothing is persisted for the assignment itself; completions go to the ledger.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Union

from sqlalchemy.orm import Session

from progression_system.config.daily_tasks import DAILY_TASKS_BY_RANK, DailyTask
from progression_system.config.events import EventType, daily_task_dedup_key
from progression_system.config.ranks import Rank, RankLadder, get_rank_ladder
from progression_system.errors import ValidationError
from progression_system.services.progression_service import ProgressionService
from progression_system.utils.partner_lock import get_partner
from progression_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DailyTaskAssignment:
    date: date
    rank: str
    slot1: Optional[DailyTask]
    slot2: Optional[DailyTask] = None
    partnerId: Optional[int] = None

    @property
    def tasks(self) -> List[DailyTask]:
        return [t for t in (self.slot1, self.slot2) if t is not None]


def day_of_year(onDate: date) -> int:
    """1 for January 1st."""
    return onDate.timetuple().tm_yday


def select_daily_tasks(
        onDate: date,
        rank: Union[Rank, str],
        ladder: Optional[RankLadder] = None,
        pools: Optional[Dict[str, Sequence[DailyTask]]] = None
) -> DailyTaskAssignment:
    """
    Pure selection of the day's task slots for a rank.

    A rank without a pool gets no tasks.
    """
    ladder = ladder or get_rank_ladder()
    pools = DAILY_TASKS_BY_RANK if pools is None else pools
    if not isinstance(rank, Rank):
        rank = ladder.get(rank)

    pool = pools.get(rank.name) or []
    if not pool:
        return DailyTaskAssignment(date=onDate, rank=rank.name, slot1=None)

    d = day_of_year(onDate)
    slot1 = pool[d % len(pool)]
    slot2 = pool[(d + 1) % len(pool)] if rank.isProTier else None

    return DailyTaskAssignment(date=onDate, rank=rank.name, slot1=slot1, slot2=slot2)


class DailyTaskService:
    """Daily task lookup and completion for partners."""

    def __init__(
            self,
            session: Session,
            ladder: Optional[RankLadder] = None,
            pools: Optional[Dict[str, Sequence[DailyTask]]] = None
    ):
        self.session = session
        self.ladder = ladder or get_rank_ladder()
        self.pools = DAILY_TASKS_BY_RANK if pools is None else pools
        self.progression = ProgressionService(session, self.ladder)

    def getDailyTasks(self, onDate: Optional[date], rank: Union[Rank, str]) -> DailyTaskAssignment:
        return select_daily_tasks(onDate or timeMachine.today, rank, self.ladder, self.pools)

    def getPartnerDailyTasks(self, partnerId: int, onDate: Optional[date] = None) -> DailyTaskAssignment:
        partner = get_partner(self.session, partnerId)
        assignment = self.getDailyTasks(onDate, partner.currentRank)
        return DailyTaskAssignment(
            date=assignment.date,
            rank=assignment.rank,
            slot1=assignment.slot1,
            slot2=assignment.slot2,
            partnerId=partnerId
        )

    def completedDailyTaskIds(self, partnerId: int, onDate: Optional[date] = None) -> Set[str]:
        onDate = onDate or timeMachine.today
        ids = set()
        for entry in self.progression.ledger.queryByPartnerAndType(partnerId, [EventType.TASK_COMPLETED]):
            meta = entry.entryMetadata or {}
            if meta.get("daily_task_id") and meta.get("task_date") == onDate.isoformat():
                ids.add(meta["daily_task_id"])
        return ids

    async def completeDailyTask(
            self,
            partnerId: int,
            taskId: str,
            onDate: Optional[date] = None
    ) -> Optional[int]:
        """
        Credit one of today's task slots.

        Raises:
            ValidationError: kind="task_not_available" if taskId is not one of
                the partner's slots for the date

        Returns:
            New XP total, or None if already credited for the date
        """
        onDate = onDate or timeMachine.today
        assignment = self.getPartnerDailyTasks(partnerId, onDate)

        task = next((t for t in assignment.tasks if t.id == taskId), None)
        if task is None:
            raise ValidationError(
                f"Daily task {taskId} is not available for partner {partnerId} on {onDate}",
                kind="task_not_available",
                partnerId=partnerId,
                taskId=taskId,
                date=onDate.isoformat()
            )

        newTotal = await self.progression.creditOnce(
            partnerId,
            EventType.TASK_COMPLETED,
            daily_task_dedup_key(task.id, onDate),
            xpValue=task.xpReward,
            description=f"Daily task: {task.title}",
            metadata={
                "daily_task_id": task.id,
                "task_date": onDate.isoformat(),
                "rank": assignment.rank,
            }
        )

        if newTotal is None:
            logger.info(f"Partner {partnerId} already completed daily task {taskId} on {onDate}")
        return newTotal
