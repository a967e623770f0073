"""
Weekly challenges.

Four challenge sets rotate through the year. Progress is counted from ledger
entries inside the ISO week (Monday to Sunday) that contains the date; the
reward is granted at most once per challenge per week.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple, Union

from sqlalchemy.orm import Session

from progression_system.config.challenges import (
    REQUIREMENT_EVENT_TYPES, WEEKLY_CHALLENGES, WeeklyChallenge
)
from progression_system.config.events import EventType, challenge_dedup_key
from progression_system.config.ranks import Rank, RankLadder, get_rank_ladder
from progression_system.errors import AlreadyClaimed, ChallengeNotCompleted, ValidationError
from progression_system.services.progression_service import ProgressionService
from progression_system.services.rank_resolver import RankResolver
from progression_system.utils.partner_lock import get_partner
from progression_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChallengeProgress:
    challenge: WeeklyChallenge
    weekKey: str
    current: int
    target: int
    claimed: bool

    @property
    def completed(self) -> bool:
        return self.current >= self.target


def current_week(onDate: date) -> int:
    """
    Rotation week 1..4.

    Weeks are counted from January 1st, with Sunday-start calendar rows.
    """
    jan1 = date(onDate.year, 1, 1)
    daysSinceJan1 = (onDate - jan1).days
    jan1Weekday = (jan1.weekday() + 1) % 7  # Sunday = 0
    weekOfYear = math.ceil((daysSinceJan1 + jan1Weekday + 1) / 7)
    return ((weekOfYear - 1) % 4) + 1


def week_key(onDate: date) -> str:
    year, week, _ = onDate.isocalendar()
    return f"{year}-W{week:02d}"


def week_bounds(onDate: date) -> Tuple[datetime, datetime]:
    """[Monday 00:00, next Monday 00:00) UTC around the date."""
    monday = onDate - timedelta(days=onDate.weekday())
    start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=7)


class ChallengeService:
    """Weekly challenge catalog, progress and claims."""

    def __init__(
            self,
            session: Session,
            ladder: Optional[RankLadder] = None,
            catalog: Optional[Dict[int, Sequence[WeeklyChallenge]]] = None
    ):
        self.session = session
        self.ladder = ladder or get_rank_ladder()
        self.catalog = WEEKLY_CHALLENGES if catalog is None else catalog
        self.resolver = RankResolver(self.ladder)
        self.progression = ProgressionService(session, self.ladder)

    def currentWeek(self, onDate: Optional[date] = None) -> int:
        return current_week(onDate or timeMachine.today)

    def getWeeklyChallenges(self, onDate: Optional[date], rank: Union[Rank, str]) -> List[WeeklyChallenge]:
        """This week's challenges the rank is eligible for."""
        week = self.currentWeek(onDate)
        eligible = []
        for challenge in self.catalog.get(week, []):
            minRank = self.ladder.find(challenge.minRank)
            if minRank is not None and self.resolver.isAtLeast(rank, minRank):
                eligible.append(challenge)
        return eligible

    def challengeProgress(
            self,
            partnerId: int,
            challenge: WeeklyChallenge,
            onDate: Optional[date] = None
    ) -> ChallengeProgress:
        onDate = onDate or timeMachine.today
        start, end = week_bounds(onDate)
        key = week_key(onDate)

        eventTypes = REQUIREMENT_EVENT_TYPES.get(challenge.requirementType, frozenset())
        entries = self.progression.ledger.queryByPartnerAndType(
            partnerId, eventTypes, since=start, until=end
        ) if eventTypes else []

        if challenge.requirementType == "login_days":
            current = len({(e.entryMetadata or {}).get("login_date") for e in entries})
        else:
            current = len(entries)

        claimed = self.progression.ledger.exists(
            partnerId, EventType.CHALLENGE_COMPLETED, challenge_dedup_key(challenge.id, key)
        )

        return ChallengeProgress(
            challenge=challenge,
            weekKey=key,
            current=min(current, challenge.target),
            target=challenge.target,
            claimed=claimed
        )

    def getPartnerChallenges(self, partnerId: int, onDate: Optional[date] = None) -> List[ChallengeProgress]:
        onDate = onDate or timeMachine.today
        partner = get_partner(self.session, partnerId)
        return [
            self.challengeProgress(partnerId, challenge, onDate)
            for challenge in self.getWeeklyChallenges(onDate, partner.currentRank)
        ]

    async def claimChallenge(
            self,
            partnerId: int,
            challengeId: str,
            onDate: Optional[date] = None
    ) -> int:
        """
        Grant a completed challenge's reward.

        Raises:
            ValidationError: kind="challenge_not_available"
            ChallengeNotCompleted: target not reached yet
            AlreadyClaimed: reward already granted this week

        Returns:
            New XP total
        """
        onDate = onDate or timeMachine.today
        partner = get_partner(self.session, partnerId)

        challenge = next(
            (c for c in self.getWeeklyChallenges(onDate, partner.currentRank) if c.id == challengeId),
            None
        )
        if challenge is None:
            raise ValidationError(
                f"Challenge {challengeId} is not available to partner {partnerId} this week",
                kind="challenge_not_available",
                partnerId=partnerId,
                challengeId=challengeId
            )

        progress = self.challengeProgress(partnerId, challenge, onDate)
        if progress.claimed:
            raise AlreadyClaimed(
                f"Challenge {challengeId} already claimed for {progress.weekKey}",
                partnerId=partnerId, challengeId=challengeId, weekKey=progress.weekKey
            )
        if not progress.completed:
            raise ChallengeNotCompleted(
                f"Challenge {challengeId} progress {progress.current}/{progress.target}",
                partnerId=partnerId, challengeId=challengeId,
                current=progress.current, target=progress.target
            )

        newTotal = await self.progression.creditOnce(
            partnerId,
            EventType.CHALLENGE_COMPLETED,
            challenge_dedup_key(challenge.id, progress.weekKey),
            xpValue=challenge.xpReward,
            description=f"Weekly challenge: {challenge.title}",
            metadata={
                "challenge_id": challenge.id,
                "week_key": progress.weekKey,
                "challenge_type": challenge.challengeType,
            }
        )
        if newTotal is None:
            raise AlreadyClaimed(
                f"Challenge {challengeId} already claimed for {progress.weekKey}",
                partnerId=partnerId, challengeId=challengeId, weekKey=progress.weekKey
            )

        logger.info(f"Partner {partnerId} claimed {challengeId} (+{challenge.xpReward} XP)")
        return newTotal
