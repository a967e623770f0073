# partnerbot/core/system_services.py
"""
System services for the partner progression bot.
Bot info, polling and graceful shutdown.
"""
import asyncio
import logging
import signal
from typing import Dict, Any
from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError

from progression_system.events.handlers import wait_for_pending_notifications
from progression_system.events.setup import teardown_progression_event_handlers

logger = logging.getLogger(__name__)


async def get_bot_info(bot: Bot) -> Dict[str, Any]:
    """
    Get bot information from Telegram.

    Returns:
        Dict with bot info (id, username, first_name)
    """
    try:
        me = await bot.get_me()
        return {
            "id": me.id,
            "username": me.username,
            "first_name": me.first_name,
        }
    except TelegramAPIError as e:
        logger.error(f"Failed to get bot info: {e}")
        return {}


async def start_bot_polling(bot: Bot, dp: Dispatcher) -> None:
    """Start bot polling."""
    try:
        logger.info("Starting bot polling...")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    except Exception as e:
        logger.error(f"Error during polling: {e}", exc_info=True)
        raise


# ═══════════════════════════════════════════════════════════════════════════
# GRACEFUL SHUTDOWN
# ═══════════════════════════════════════════════════════════════════════════

async def shutdown(signal_type: signal.Signals, bot: Bot, dp: Dispatcher) -> None:
    """
    Cleanup tasks on shutdown.

    Args:
        signal_type: Signal that triggered shutdown
        bot: Bot instance
        dp: Dispatcher instance
    """
    logger.info(f"Received exit signal {signal_type.name}...")

    teardown_progression_event_handlers()

    logger.info("Flushing pending notifications...")
    await wait_for_pending_notifications()

    logger.info("Stopping bot polling...")
    await dp.stop_polling()

    logger.info("Closing bot session...")
    if bot.session:
        await bot.session.close()

    logger.info("✓ Shutdown complete")


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, bot: Bot, dp: Dispatcher) -> None:
    """Setup signal handlers for graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(shutdown(s, bot, dp))
            )
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.warning(f"Signal handler for {sig} not available on this platform")


__all__ = [
    'get_bot_info',
    'start_bot_polling',
    'shutdown',
    'setup_signal_handlers',
]
