# partnerbot/notification_system/services/notification_service.py
"""
Notification sink for progression announcements.

Best-effort: delivery failures are logged and never reach the caller, so a
broken webhook can not fail or roll back a progression transition.
"""
import logging
from typing import Optional

from config import Config
from notification_system.providers.webhook_provider import WebhookProvider
from progression_system.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Publishes formatted messages to the configured webhook.

    Usage:
        notification_service = NotificationService()
        await notification_service.publish("Partner 12 reached Agent")
    """

    def __init__(self, provider: Optional[WebhookProvider] = None):
        self.provider = provider
        if self.provider is None:
            url = Config.get(Config.NOTIFICATION_WEBHOOK_URL)
            if url:
                self.provider = WebhookProvider(url, timeout=Config.get(Config.NOTIFICATION_TIMEOUT, 10))
            else:
                logger.warning("Notification webhook not configured, messages will only be logged")

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    async def publish(self, message: str) -> bool:
        """
        Send a message to the sink.

        Returns:
            True if delivered
        """
        if not self.enabled:
            logger.info(f"Notification (not sent): {message}")
            return False

        try:
            await self.provider.send(message)
            return True
        except NotificationError as e:
            logger.error(f"Notification failed [{e.kind}]: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error while publishing notification: {e}", exc_info=True)
            return False
