# handlers/admin/progression_commands.py
"""
Partner progression admin commands.

Commands:
    &grantxp <partnerID> <amount> [description] - Grant XP
    &advance <partnerID>                       - Force one rank up
    &demote <partnerID>                        - One rank down (XP kept)
    &setrank <partnerID> <rank name>           - Move to any rank
    &bypass <partnerID>                        - Bypass to Verified
    &progress <partnerID>                      - Show progress
    &commission <partnerID> <rate|reset>       - Commission override
    &dailytasks [rank name]                    - Today's daily tasks
"""
import logging
from html import escape

from aiogram import Router, F
from aiogram.types import Message
from sqlalchemy.orm import Session

from config import Config
from core.utils import parse_int, parse_decimal, format_rate
from progression_system.config.events import EventType
from progression_system.config.ranks import get_rank_ladder
from progression_system.errors import ProgressionError
from progression_system.services.commission_service import CommissionService
from progression_system.services.daily_task_service import select_daily_tasks
from progression_system.services.progression_service import ProgressionService, TransitionResult
from progression_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)

progression_router = Router(name="admin_progression")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

async def _reply_error(message: Message, e: ProgressionError):
    await message.reply(
        f"❌ <b>{escape(e.kind)}</b>\n{escape(str(e))}",
        parse_mode="HTML"
    )


async def _parse_partner_id(message: Message, parts: list, usage: str):
    partnerId = parse_int(parts[1]) if len(parts) > 1 else None
    if partnerId is None:
        await message.reply(f"Usage: <code>{escape(usage)}</code>", parse_mode="HTML")
    return partnerId


def _format_transition(result: TransitionResult) -> str:
    lines = [
        f"✅ <b>Partner {result.partnerId}: {escape(result.oldRank)} → {escape(result.newRank)}</b>\n",
        f"XP: {result.xp}",
        f"Highest rank: {escape(result.highestRank)}",
        f"Commission: {format_rate(result.commissionRate)}",
    ]
    if result.tasksCompleted:
        lines.append(f"Tasks auto-completed: {result.tasksCompleted}")
    if result.xpToppedUp:
        lines.append(f"XP topped up: +{result.xpToppedUp}")
    if result.promotionHold:
        lines.append("⚠️ Promotion hold: rank is below what XP would give")
    return "\n".join(lines)


# =============================================================================
# &grantxp
# =============================================================================

@progression_router.message(F.text.regexp(r'^&grantxp\b'))
async def cmd_grantxp(message: Message, session: Session):
    """
    Usage:
        &grantxp <partnerID> <amount> [description]
    """
    if not Config.is_admin(message.from_user.id):
        return

    parts = message.text.strip().split(maxsplit=3)
    if len(parts) < 3:
        await message.reply(
            "Usage: <code>&grantxp &lt;partnerID&gt; &lt;amount&gt; [description]</code>",
            parse_mode="HTML"
        )
        return

    partnerId = parse_int(parts[1])
    amount = parse_int(parts[2])
    if partnerId is None or amount is None:
        await message.reply("❌ partnerID and amount must be numbers.")
        return

    description = parts[3] if len(parts) > 3 else f"Admin grant by {message.from_user.id}"

    try:
        newTotal = await ProgressionService(session).grantXp(
            partnerId,
            amount,
            eventType=EventType.ADMIN_GRANT,
            description=description,
            metadata={"granted_by": message.from_user.id}
        )
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    logger.info(f"Admin {message.from_user.id} granted {amount} XP to partner {partnerId}")
    await message.reply(
        f"✅ +{amount} XP for partner {partnerId}\nTotal: <b>{newTotal}</b> XP",
        parse_mode="HTML"
    )


# =============================================================================
# RANK TRANSITIONS
# =============================================================================

@progression_router.message(F.text.regexp(r'^&advance\b'))
async def cmd_advance(message: Message, session: Session):
    if not Config.is_admin(message.from_user.id):
        return

    partnerId = await _parse_partner_id(message, message.text.split(), "&advance <partnerID>")
    if partnerId is None:
        return

    try:
        result = await ProgressionService(session).advance(partnerId, message.from_user.id)
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    await message.reply(_format_transition(result), parse_mode="HTML")


@progression_router.message(F.text.regexp(r'^&demote\b'))
async def cmd_demote(message: Message, session: Session):
    if not Config.is_admin(message.from_user.id):
        return

    partnerId = await _parse_partner_id(message, message.text.split(), "&demote <partnerID>")
    if partnerId is None:
        return

    try:
        result = await ProgressionService(session).demote(partnerId, message.from_user.id)
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    await message.reply(_format_transition(result), parse_mode="HTML")


@progression_router.message(F.text.regexp(r'^&setrank\b'))
async def cmd_setrank(message: Message, session: Session):
    """
    Usage:
        &setrank                         - Show ladder
        &setrank <partnerID> <rank name> - Move partner to rank
    """
    if not Config.is_admin(message.from_user.id):
        return

    ladder = get_rank_ladder()
    parts = message.text.strip().split(maxsplit=2)

    if len(parts) < 3:
        lines = ["📊 <b>Rank ladder:</b>\n"]
        for rank in ladder:
            lines.append(
                f"• {escape(rank.name)} - {rank.xpThreshold} XP, {format_rate(rank.commissionRate)}"
            )
        lines.append("\nUsage: <code>&setrank &lt;partnerID&gt; &lt;rank name&gt;</code>")
        await message.reply("\n".join(lines), parse_mode="HTML")
        return

    partnerId = parse_int(parts[1])
    if partnerId is None:
        await message.reply("❌ Invalid partnerID. Must be a number.")
        return

    # Accept any casing of the rank name
    rank = ladder.find(parts[2])
    rankName = rank.name if rank else parts[2]

    try:
        result = await ProgressionService(session, ladder).setRank(partnerId, rankName, message.from_user.id)
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    await message.reply(_format_transition(result), parse_mode="HTML")


@progression_router.message(F.text.regexp(r'^&bypass\b'))
async def cmd_bypass(message: Message, session: Session):
    if not Config.is_admin(message.from_user.id):
        return

    partnerId = await _parse_partner_id(message, message.text.split(), "&bypass <partnerID>")
    if partnerId is None:
        return

    try:
        result = await ProgressionService(session).bypassToVerified(partnerId, message.from_user.id)
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    await message.reply(_format_transition(result), parse_mode="HTML")


# =============================================================================
# &progress
# =============================================================================

@progression_router.message(F.text.regexp(r'^&progress\b'))
async def cmd_progress(message: Message, session: Session):
    if not Config.is_admin(message.from_user.id):
        return

    partnerId = await _parse_partner_id(message, message.text.split(), "&progress <partnerID>")
    if partnerId is None:
        return

    try:
        snapshot = await ProgressionService(session).getProgress(partnerId)
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    lines = [
        f"📈 <b>Partner {snapshot.partnerId}</b>\n",
        f"Rank: <b>{escape(snapshot.rank)}</b> (best: {escape(snapshot.highestRank)})",
        f"XP: {snapshot.xp}",
    ]
    if snapshot.nextRank:
        lines.append(
            f"Next: {escape(snapshot.nextRank)} in {snapshot.xpToNextRank} XP "
            f"({snapshot.progressPercentage:.0f}%)"
        )
    else:
        lines.append("Next: max rank reached")

    lines.append(f"Commission: {format_rate(snapshot.effectiveCommissionRate)}"
                 + (" (override)" if snapshot.commissionOverride is not None else ""))

    if snapshot.outstandingTasks:
        lines.append(f"\nOutstanding tasks ({len(snapshot.outstandingTasks)}):")
        lines.extend(f"• <code>{escape(t)}</code>" for t in snapshot.outstandingTasks)
    if snapshot.promotionHold:
        lines.append("\n⚠️ Promotion hold active")

    await message.reply("\n".join(lines), parse_mode="HTML")


# =============================================================================
# &commission
# =============================================================================

@progression_router.message(F.text.regexp(r'^&commission\b'))
async def cmd_commission(message: Message, session: Session):
    """
    Usage:
        &commission <partnerID> <rate>  - Set override, e.g. 42.5
        &commission <partnerID> reset   - Clear override
    """
    if not Config.is_admin(message.from_user.id):
        return

    parts = message.text.strip().split()
    if len(parts) < 3:
        await message.reply(
            "Usage: <code>&commission &lt;partnerID&gt; &lt;rate|reset&gt;</code>",
            parse_mode="HTML"
        )
        return

    partnerId = parse_int(parts[1])
    if partnerId is None:
        await message.reply("❌ Invalid partnerID. Must be a number.")
        return

    if parts[2].lower() == "reset":
        rate = None
    else:
        rate = parse_decimal(parts[2])
        if rate is None:
            await message.reply("❌ Rate must be a number or 'reset'.")
            return

    try:
        newRate = await CommissionService(session).setCommissionOverride(
            partnerId, rate, message.from_user.id
        )
    except ProgressionError as e:
        await _reply_error(message, e)
        return

    await message.reply(
        f"💰 Partner {partnerId} commission: <b>{format_rate(newRate)}</b>"
        + (" (override)" if rate is not None else ""),
        parse_mode="HTML"
    )


# =============================================================================
# &dailytasks
# =============================================================================

@progression_router.message(F.text.regexp(r'^&dailytasks\b'))
async def cmd_dailytasks(message: Message, session: Session):
    if not Config.is_admin(message.from_user.id):
        return

    ladder = get_rank_ladder()
    parts = message.text.strip().split(maxsplit=1)
    rank = ladder.find(parts[1]) if len(parts) > 1 else ladder.proRank or ladder.highest

    if rank is None:
        await message.reply(f"❌ Unknown rank: {escape(parts[1])}")
        return

    today = timeMachine.today
    assignment = select_daily_tasks(today, rank, ladder)

    lines = [f"📅 <b>Daily tasks {today.isoformat()} - {escape(rank.name)}</b>\n"]
    for slot, task in (("1", assignment.slot1), ("2", assignment.slot2)):
        if task is None:
            lines.append(f"Slot {slot}: -")
        else:
            lines.append(f"Slot {slot}: {escape(task.title)} (+{task.xpReward} XP) <code>{task.id}</code>")

    await message.reply("\n".join(lines), parse_mode="HTML")
