# partnerbot/notification_system/providers/webhook_provider.py
"""
Webhook provider - posts formatted messages to an HTTP endpoint.
"""
import logging
import asyncio
import aiohttp

from progression_system.errors import NotificationError

logger = logging.getLogger(__name__)


class WebhookProvider:
    """POST {"text": message} to a webhook URL (Slack/Discord-style sinks)."""

    def __init__(self, url: str, timeout: int = 10):
        """
        Initialize webhook provider.

        Args:
            url: Webhook endpoint
            timeout: Total request timeout in seconds
        """
        self.url = url
        self.timeout = timeout

        logger.info(f"WebhookProvider initialized: timeout={timeout}s")

    async def send(self, text: str) -> None:
        """
        Deliver one message.

        Raises:
            NotificationError: non-2xx response or transport failure
        """
        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                        self.url,
                        json={"text": text},
                        timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if 200 <= response.status < 300:
                        logger.debug(f"Webhook delivered (status {response.status})")
                        return

                    error_text = await response.text()
                    raise NotificationError(
                        f"Webhook error: {response.status} - {error_text}",
                        kind="webhook_rejected",
                        status=response.status
                    )

        except aiohttp.ClientError as e:
            raise NotificationError(f"HTTP error while posting webhook: {e}", kind="webhook_unreachable")
        except asyncio.TimeoutError as e:
            raise NotificationError(f"Webhook timed out after {self.timeout}s", kind="webhook_timeout") from e
