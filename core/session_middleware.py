# partnerbot/core/session_middleware.py
"""
Middleware injecting a database session into handlers.
"""
import logging
from typing import Callable, Any
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from core.db import get_session

logger = logging.getLogger(__name__)


class SessionMiddleware(BaseMiddleware):
    """
    Opens one session per update and passes it to the handler as `session`.

    Services commit their own units of work; whatever is left is rolled back
    on error and the session is always closed.
    """

    def __init__(self, session_factory: Callable = None):
        self.session_factory = session_factory or get_session
        super().__init__()

    async def __call__(
            self,
            handler: Callable[[TelegramObject, dict[str, Any]], Any],
            event: TelegramObject,
            data: dict[str, Any]
    ) -> Any:
        session = self.session_factory()
        data['session'] = session

        try:
            result = await handler(event, data)
            session.commit()
            return result
        except Exception as e:
            logger.error(f"Error in SessionMiddleware: {e}", exc_info=True)
            session.rollback()
            raise
        finally:
            session.close()
