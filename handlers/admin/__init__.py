# handlers/admin/__init__.py
"""
Administrative commands module for the partner progression bot.

Structure:
    __init__.py              - Router setup, middleware, exports
    progression_commands.py  - &grantxp, &advance, &demote, &setrank, &bypass,
                               &progress, &commission, &dailytasks
"""
import logging
from typing import Any, Callable, Awaitable

from aiogram import Router, Bot, Dispatcher
from aiogram.types import Message, CallbackQuery, TelegramObject
from aiogram import BaseMiddleware

from config import Config
from core.session_middleware import SessionMiddleware

logger = logging.getLogger(__name__)


# =============================================================================
# ADMIN MIDDLEWARE
# =============================================================================

class AdminMiddleware(BaseMiddleware):
    """
    Middleware to check admin permissions.

    Applied to admin router - blocks non-admin users from commands starting with '&'.
    """

    def __init__(self, bot: Bot = None):
        self.bot = bot
        super().__init__()

    async def __call__(
            self,
            handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
            event: TelegramObject,
            data: dict[str, Any]
    ) -> Any:
        if self.bot:
            data["bot"] = self.bot

        if isinstance(event, (Message, CallbackQuery)):
            user_id = event.from_user.id

            if not Config.is_admin(user_id):
                logger.warning(f"Non-admin user {user_id} attempted to access admin function")

                if isinstance(event, Message) and event.text:
                    await event.answer("⛔ You don't have permission to use admin commands.")
                elif isinstance(event, CallbackQuery):
                    await event.answer("⛔ Access denied", show_alert=True)

                return None

            if isinstance(event, Message) and event.text:
                logger.info(f"Admin {user_id} executed command: {event.text}")

        return await handler(event, data)


# =============================================================================
# MAIN ADMIN ROUTER
# =============================================================================

admin_router = Router(name="admin")

from .progression_commands import progression_router

admin_router.include_router(progression_router)


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_admin_handlers(dp: Dispatcher, bot: Bot):
    """
    Register admin handlers with middleware.

    Args:
        dp: Dispatcher instance
        bot: Bot instance
    """
    logger.info("Setting up admin handlers")

    admin_router.message.middleware(AdminMiddleware(bot))
    admin_router.message.middleware(SessionMiddleware())

    dp.include_router(admin_router)

    logger.info("Admin handlers setup complete")


__all__ = [
    'admin_router',
    'setup_admin_handlers',
    'AdminMiddleware',
]
