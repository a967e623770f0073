# progression_system/events/handlers.py
"""
Event handlers that turn progression events into notification messages.
"""
import asyncio
import logging
from typing import Dict, Any, Optional, Set

from core.utils import safe_format, format_rate
from notification_system.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

XP_GRANTED_TEMPLATE = "⭐ {partner} earned +{amount} XP ({eventType}). Total: {total} XP"
RANK_ACHIEVED_TEMPLATE = "🏆 {partner} reached {newRank}! Commission is now {rate}"
RANK_ASSIGNED_TEMPLATE = "🔧 {partner} moved {oldRank} → {newRank} by admin {adminId}. Commission {rate}"
RANK_DEMOTED_TEMPLATE = "⬇️ {partner} demoted {oldRank} → {newRank} by admin {adminId}. XP kept at {xp}"
COMMISSION_CHANGED_TEMPLATE = "💰 Partner {partnerId} commission {oldRate} → {newRate}"

_notificationService: Optional[NotificationService] = None

# Strong references to in-flight deliveries
_pendingDeliveries: Set[asyncio.Task] = set()


def set_notification_service(service: Optional[NotificationService]):
    global _notificationService
    _notificationService = service


def get_notification_service() -> NotificationService:
    global _notificationService
    if _notificationService is None:
        _notificationService = NotificationService()
    return _notificationService


def _schedulePublish(message: str) -> asyncio.Task:
    """Deliver in the background; the operation that raised the event does not wait for the webhook."""
    task = asyncio.create_task(get_notification_service().publish(message))
    _pendingDeliveries.add(task)
    task.add_done_callback(_pendingDeliveries.discard)
    return task


async def wait_for_pending_notifications():
    """Wait until every scheduled delivery has finished."""
    if _pendingDeliveries:
        await asyncio.gather(*list(_pendingDeliveries), return_exceptions=True)


def _partnerLabel(data: Dict[str, Any]) -> str:
    name = data.get("displayName")
    partnerId = data.get("partnerId")
    return f"{name} (#{partnerId})" if name else f"Partner #{partnerId}"


async def handle_xp_granted(data: Dict[str, Any]):
    message = safe_format(
        XP_GRANTED_TEMPLATE,
        partner=_partnerLabel(data),
        amount=data.get("amount"),
        eventType=data.get("eventType"),
        total=data.get("total")
    )
    _schedulePublish(message)


async def handle_rank_achieved(data: Dict[str, Any]):
    message = safe_format(
        RANK_ACHIEVED_TEMPLATE,
        partner=_partnerLabel(data),
        newRank=data.get("newRank"),
        rate=format_rate(data.get("commissionRate"))
    )
    _schedulePublish(message)


async def handle_rank_assigned(data: Dict[str, Any]):
    message = safe_format(
        RANK_ASSIGNED_TEMPLATE,
        partner=_partnerLabel(data),
        oldRank=data.get("oldRank"),
        newRank=data.get("newRank"),
        adminId=data.get("adminId"),
        rate=format_rate(data.get("commissionRate"))
    )
    _schedulePublish(message)


async def handle_rank_demoted(data: Dict[str, Any]):
    message = safe_format(
        RANK_DEMOTED_TEMPLATE,
        partner=_partnerLabel(data),
        oldRank=data.get("oldRank"),
        newRank=data.get("newRank"),
        adminId=data.get("adminId"),
        xp=data.get("xp")
    )
    _schedulePublish(message)


async def handle_commission_changed(data: Dict[str, Any]):
    message = safe_format(
        COMMISSION_CHANGED_TEMPLATE,
        partnerId=data.get("partnerId"),
        oldRate=format_rate(data.get("oldRate")),
        newRate=format_rate(data.get("newRate"))
    )
    _schedulePublish(message)
