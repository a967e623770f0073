"""
Progression controller - rank transitions for partners.

Transitions:
- promote (natural): XP reached the next rank's threshold
- advance (admin): one rank up
- demote (admin): one rank down, XP and highestRank untouched
- setRank (admin): any rank
- bypassToVerified (admin): setRank to Verified

Every admin transition towards a rank completes its outstanding required
tasks and tops XP up to its threshold. Each public operation is a single
transaction on a locked partner row; events go out after commit.

Demotion hold:
    After an admin transition leaves the partner below the rank its XP would
    resolve to, Partner.promotionHold is set and natural promotion is
    suspended until the next admin transition. Without it the next XP grant
    would immediately undo the demotion.
"""
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from core.db import transactional
from models.listeners import listeners_registered, register_all_listeners
from models.partner import Partner
from progression_system.config.events import (
    EventType, coerce_event_type, dedup_key_for, validate_metadata, lesson_dedup_key, login_dedup_key
)
from progression_system.config.ranks import Rank, RankLadder, VERIFIED_RANK_NAME, get_rank_ladder
from progression_system.errors import AlreadyMaxRank, AlreadyMinRank, InvalidAmount, SameRank
from progression_system.events.event_bus import eventBus, ProgressionEvents
from progression_system.services.activity_ledger import ActivityLedger
from progression_system.services.commission_service import CommissionService
from progression_system.services.rank_resolver import RankResolver
from progression_system.services.task_tracker import TaskTracker
from progression_system.services.xp_service import XpService, validate_amount
from progression_system.utils.partner_lock import get_partner, lock_partner
from progression_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionResult:
    partnerId: int
    transition: str  # advance, demote, set_rank, bypass
    oldRank: str
    newRank: str
    highestRank: str
    xp: int
    tasksCompleted: int
    xpToppedUp: int
    commissionRate: Decimal
    promotionHold: bool


@dataclass(frozen=True)
class ProgressSnapshot:
    partnerId: int
    xp: int
    rank: str
    highestRank: str
    nextRank: Optional[str]
    xpToNextRank: int
    progressPercentage: float
    outstandingTasks: List[str]
    effectiveCommissionRate: Decimal
    commissionOverride: Optional[Decimal]
    promotionHold: bool


class ProgressionService:
    """Rank transitions, XP grants and the partner-side crediting paths."""

    def __init__(self, session: Session, ladder: Optional[RankLadder] = None):
        if not listeners_registered():
            logger.warning("Ledger listeners not registered, registering now so currentXp follows the ledger")
            register_all_listeners()

        self.session = session
        self.ladder = ladder or get_rank_ladder()
        self.resolver = RankResolver(self.ladder)
        self.ledger = ActivityLedger(session)
        self.xp = XpService(session, self.ledger)
        self.tasks = TaskTracker(session, self.ladder, self.ledger)
        self.commission = CommissionService(session, self.ladder, self.ledger)
        self._pendingEvents: List[Tuple[str, Dict[str, Any]]] = []

    # =========================================================================
    # PARTNERS
    # =========================================================================

    async def createPartner(
            self,
            displayName: Optional[str] = None,
            telegramID: Optional[int] = None
    ) -> Partner:
        """New partner at the lowest rank with 0 XP."""
        lowest = self.ladder.lowest

        with transactional(self.session):
            partner = Partner(
                displayName=displayName,
                telegramID=telegramID,
                currentXp=0,
                currentRank=lowest.name,
                highestRank=lowest.name,
                promotionHold=False,
                commissionRate=lowest.commissionRate,
            )
            self.session.add(partner)
            self.session.flush()
            partnerId = partner.partnerID

        logger.info(f"Partner {partnerId} created at {lowest.name}")
        return partner

    async def getProgress(self, partnerId: int) -> ProgressSnapshot:
        partner = get_partner(self.session, partnerId)
        rank = self.ladder.get(partner.currentRank)
        progress = self.resolver.progressToNext(partner.currentXp, rank)

        return ProgressSnapshot(
            partnerId=partner.partnerID,
            xp=partner.currentXp,
            rank=rank.name,
            highestRank=partner.highestRank,
            nextRank=progress.next.name if progress.next else None,
            xpToNextRank=progress.xpToNext,
            progressPercentage=progress.percentage,
            outstandingTasks=sorted(self.tasks.outstandingTasks(partnerId, rank)),
            effectiveCommissionRate=self.commission.effectiveRate(partner),
            commissionOverride=(
                Decimal(partner.commissionRateOverride)
                if partner.commissionRateOverride is not None else None
            ),
            promotionHold=bool(partner.promotionHold),
        )

    # =========================================================================
    # XP
    # =========================================================================

    async def grantXp(
            self,
            partnerId: int,
            amount: int,
            eventType: Union[EventType, str] = EventType.XP_GRANT,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[int]:
        """
        Add XP to a partner and apply any natural promotion it triggers.

        Entries whose metadata names a lesson, daily task, login day or
        challenge week are credited at most once, like the dedicated
        record* methods.

        Raises:
            InvalidAmount: amount <= 0
            ValidationError: unknown event type or missing metadata
            PartnerNotFound: no such partner

        Returns:
            New XP total, or None if that lesson/day/claim was already credited
        """
        validate_amount(amount)
        eventType = coerce_event_type(eventType)
        validate_metadata(eventType, metadata or {})

        return await self._credit(
            partnerId, eventType, amount,
            description=description or f"{eventType.value} +{amount} XP",
            metadata=metadata
        )

    async def creditOnce(
            self,
            partnerId: int,
            eventType: Union[EventType, str],
            dedupKey: str,
            xpValue: int = 0,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[int]:
        """
        Record an action at most once per dedupKey, granting xpValue with it.

        Returns:
            New XP total, or None if the action was already recorded
        """
        if isinstance(xpValue, bool) or not isinstance(xpValue, int) or xpValue < 0:
            raise InvalidAmount(f"XP value must be a non-negative integer, got {xpValue!r}", amount=xpValue)
        eventType = coerce_event_type(eventType)
        validate_metadata(eventType, metadata or {})

        return await self._credit(
            partnerId, eventType, xpValue,
            description=description,
            metadata=metadata,
            dedupKey=dedupKey
        )

    async def recordTaskCompletion(
            self,
            partnerId: int,
            lessonId: str,
            xpReward: int = 0,
            targetRank: Optional[str] = None,
            quiz: bool = False
    ) -> Optional[int]:
        """
        Partner completed a required task or quiz. Credited once per lesson.

        Returns:
            New XP total, or None if the lesson was already credited
        """
        metadata = {"lesson_id": lessonId}
        if targetRank:
            metadata["target_rank"] = self.ladder.get(targetRank).name

        eventType = EventType.QUIZ_COMPLETED if quiz else EventType.TASK_COMPLETED
        return await self.creditOnce(
            partnerId, eventType, lesson_dedup_key(lessonId),
            xpValue=xpReward,
            description=f"Completed {lessonId}",
            metadata=metadata
        )

    async def recordLoginDay(self, partnerId: int, loginDate: Optional[date] = None) -> bool:
        """
        Record one login per calendar day.

        Returns:
            True if this is the first login recorded for the date
        """
        loginDate = loginDate or timeMachine.today
        result = await self.creditOnce(
            partnerId, EventType.LOGIN_DAY, login_dedup_key(loginDate),
            description=f"Login {loginDate.isoformat()}",
            metadata={"login_date": loginDate.isoformat()}
        )
        return result is not None

    async def recordActivity(
            self,
            partnerId: int,
            eventType: Union[EventType, str],
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None,
            dedupKey: Optional[str] = None
    ) -> bool:
        """
        Track a zero-XP activity (client added, deal logged, ...) used by
        weekly challenges.

        Returns:
            False if dedupKey was given and already recorded
        """
        eventType = coerce_event_type(eventType)
        validate_metadata(eventType, metadata or {})

        result = await self._credit(
            partnerId, eventType, 0,
            description=description,
            metadata=metadata,
            dedupKey=dedupKey
        )
        return result is not None

    async def _credit(
            self,
            partnerId: int,
            eventType: EventType,
            amount: int,
            description: Optional[str] = None,
            metadata: Optional[Dict[str, Any]] = None,
            dedupKey: Optional[str] = None
    ) -> Optional[int]:
        self._pendingEvents = []
        if dedupKey is None:
            dedupKey = dedup_key_for(eventType, metadata)

        try:
            with transactional(self.session):
                partner = lock_partner(self.session, partnerId)

                if dedupKey is not None and self.ledger.exists(partnerId, eventType, dedupKey):
                    logger.debug(f"Partner {partnerId}: {eventType.value} {dedupKey} already recorded")
                    return None

                if amount > 0:
                    newTotal = self.xp.addXp(
                        partner, amount, eventType,
                        description=description,
                        metadata=metadata,
                        dedupKey=dedupKey
                    )
                else:
                    self.ledger.append(
                        partnerId, eventType, 0,
                        description=description,
                        metadata=metadata,
                        dedupKey=dedupKey
                    )
                    newTotal = partner.currentXp

                if amount > 0:
                    self._queue(ProgressionEvents.XP_GRANTED, {
                        "partnerId": partnerId,
                        "telegramId": partner.telegramID,
                        "displayName": partner.displayName,
                        "amount": amount,
                        "total": newTotal,
                        "eventType": eventType.value,
                        "description": description,
                    })

                self._applyNaturalPromotion(partner)
        except Exception:
            self._pendingEvents = []
            raise

        await self._flushEvents()
        return newTotal

    def _applyNaturalPromotion(self, partner: Partner) -> List[Tuple[Rank, Rank]]:
        """Step the partner up one rank at a time while XP covers the next threshold."""
        if partner.promotionHold:
            logger.debug(f"Partner {partner.partnerID}: promotion hold, skipping natural promotion")
            return []

        promotions = []
        xp = partner.currentXp
        current = self.ladder.get(partner.currentRank)
        nextRank = self.resolver.next(current)

        while nextRank is not None and xp >= nextRank.xpThreshold:
            self._changeRank(partner, nextRank)
            self._logRankChange(partner, current, nextRank, {"promotion": "natural"})
            promotions.append((current, nextRank))

            logger.info(f"Partner {partner.partnerID} promoted {current.name} -> {nextRank.name} at {xp} XP")
            self._queue(ProgressionEvents.RANK_ACHIEVED, {
                "partnerId": partner.partnerID,
                "telegramId": partner.telegramID,
                "displayName": partner.displayName,
                "oldRank": current.name,
                "newRank": nextRank.name,
                "xp": xp,
                "commissionRate": partner.commissionRate,
            })

            current = nextRank
            nextRank = self.resolver.next(current)

        return promotions

    # =========================================================================
    # ADMIN TRANSITIONS
    # =========================================================================

    async def advance(self, partnerId: int, actingAdminId: int) -> TransitionResult:
        """
        Raises:
            AlreadyMaxRank: partner is at the top of the ladder
        """
        def target(partner):
            nextRank = self.resolver.next(partner.currentRank)
            if nextRank is None:
                raise AlreadyMaxRank(
                    f"Partner {partnerId} is already at the highest rank {partner.currentRank}",
                    partnerId=partnerId, rank=partner.currentRank
                )
            return nextRank

        return await self._adminTransition(
            partnerId, actingAdminId, "advance", target,
            flags={"admin_bypass": True, "bypassed_by": actingAdminId}
        )

    async def demote(self, partnerId: int, actingAdminId: int) -> TransitionResult:
        """
        One rank down. XP and highestRank are not reduced.

        Raises:
            AlreadyMinRank: partner is at the bottom of the ladder
        """
        def target(partner):
            previous = self.resolver.previous(partner.currentRank)
            if previous is None:
                raise AlreadyMinRank(
                    f"Partner {partnerId} is already at the lowest rank {partner.currentRank}",
                    partnerId=partnerId, rank=partner.currentRank
                )
            return previous

        return await self._adminTransition(
            partnerId, actingAdminId, "demote", target,
            flags={"admin_demotion": True, "demoted_by": actingAdminId},
            completeRequirements=False
        )

    async def setRank(self, partnerId: int, targetRank: str, actingAdminId: int) -> TransitionResult:
        """
        Raises:
            UnknownRank: targetRank is not on the ladder
            SameRank: partner already holds targetRank
        """
        rank = self.ladder.get(targetRank)

        def target(partner):
            if partner.currentRank == rank.name:
                raise SameRank(
                    f"Partner {partnerId} already has rank {rank.name}",
                    partnerId=partnerId, rank=rank.name
                )
            return rank

        return await self._adminTransition(
            partnerId, actingAdminId, "set_rank", target,
            flags={"set_rank": True, "set_by": actingAdminId}
        )

    async def bypassToVerified(self, partnerId: int, actingAdminId: int) -> TransitionResult:
        """
        setRank to Verified with all of its required tasks and its XP floor.

        On a partner already at Verified the outstanding tasks and XP are
        still completed, without a rank change.
        """
        verified = self.ladder.get(VERIFIED_RANK_NAME)

        return await self._adminTransition(
            partnerId, actingAdminId, "bypass", lambda partner: verified,
            flags={
                "set_rank": True,
                "admin_bypass": True,
                "bypass_to_verified": True,
                "set_by": actingAdminId,
            }
        )

    async def _adminTransition(
            self,
            partnerId: int,
            actingAdminId: int,
            transition: str,
            chooseTarget,
            flags: Dict[str, Any],
            completeRequirements: bool = True
    ) -> TransitionResult:
        self._pendingEvents = []

        try:
            with transactional(self.session):
                partner = lock_partner(self.session, partnerId)
                oldRank = self.ladder.get(partner.currentRank)
                target = chooseTarget(partner)

                tasksCompleted = 0
                toppedUp = 0
                if completeRequirements:
                    tasksCompleted = self.tasks.autoCompleteOutstanding(partnerId, target, actingAdminId)
                    toppedUp = self._topUpXp(partner, target, actingAdminId)

                if target.name != oldRank.name:
                    self._changeRank(partner, target)
                    self._logRankChange(partner, oldRank, target, dict(flags))

                partner.promotionHold = self.resolver.compare(
                    self.resolver.resolve(partner.currentXp), target
                ) > 0

                result = TransitionResult(
                    partnerId=partnerId,
                    transition=transition,
                    oldRank=oldRank.name,
                    newRank=target.name,
                    highestRank=partner.highestRank,
                    xp=partner.currentXp,
                    tasksCompleted=tasksCompleted,
                    xpToppedUp=toppedUp,
                    commissionRate=Decimal(partner.commissionRate),
                    promotionHold=partner.promotionHold,
                )

                if target.name != oldRank.name:
                    eventName = (
                        ProgressionEvents.RANK_DEMOTED if transition == "demote"
                        else ProgressionEvents.RANK_ASSIGNED
                    )
                    self._queue(eventName, {
                        "partnerId": partnerId,
                        "telegramId": partner.telegramID,
                        "displayName": partner.displayName,
                        "oldRank": oldRank.name,
                        "newRank": target.name,
                        "xp": partner.currentXp,
                        "commissionRate": partner.commissionRate,
                        "adminId": actingAdminId,
                    })
        except Exception:
            self._pendingEvents = []
            raise

        logger.info(
            f"Admin {actingAdminId} {transition}: partner {partnerId} "
            f"{result.oldRank} -> {result.newRank}, tasks={result.tasksCompleted}, "
            f"topUp={result.xpToppedUp}, hold={result.promotionHold}"
        )

        await self._flushEvents()
        return result

    def _topUpXp(self, partner: Partner, target: Rank, actingAdminId: int) -> int:
        shortfall = target.xpThreshold - partner.currentXp
        if shortfall <= 0:
            return 0

        self.xp.addXp(
            partner,
            shortfall,
            EventType.ADMIN_GRANT,
            description=f"XP top-up to {target.name} threshold",
            metadata={
                "granted_by": actingAdminId,
                "admin_bypass": True,
                "top_up": True,
                "target_rank": target.name,
            }
        )
        return shortfall

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _changeRank(self, partner: Partner, newRank: Rank):
        """Set rank, highestRank and commission together. Does not touch XP."""
        partner.currentRank = newRank.name
        if partner.highestRank not in self.ladder:
            partner.highestRank = newRank.name
        else:
            partner.highestRank = self.resolver.higher(partner.highestRank, newRank).name
        self.commission.applyEffectiveRate(partner)

    def _logRankChange(self, partner: Partner, oldRank: Rank, newRank: Rank, flags: Dict[str, Any]):
        metadata = {
            "old_rank": oldRank.name,
            "new_rank": newRank.name,
            "xp_at_change": partner.currentXp,
            "commission_rate": str(partner.commissionRate),
        }
        metadata.update(flags)

        self.ledger.append(
            partner.partnerID,
            EventType.RANK_UP,
            0,
            description=f"Rank changed: {oldRank.name} -> {newRank.name}",
            metadata=metadata
        )

    def _queue(self, eventName: str, data: Dict[str, Any]):
        self._pendingEvents.append((eventName, data))

    async def _flushEvents(self):
        events, self._pendingEvents = self._pendingEvents, []
        for eventName, data in events:
            await eventBus.emit(eventName, data)
