# handlers/__init__.py
"""
Handlers initialization.
"""
import logging
from aiogram import Dispatcher, Bot

from handlers.admin import setup_admin_handlers

logger = logging.getLogger(__name__)


def register_all_handlers(dp: Dispatcher, bot: Bot):
    """Register all handlers."""
    setup_admin_handlers(dp, bot)

    logger.info("All handlers registered")
