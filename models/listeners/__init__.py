"""
SQLAlchemy Event Listeners Package.

Registers all event listeners for the application.
Import this module once during app startup to activate listeners.

Listeners:
    - xp_listeners: Sync Partner.currentXp on ledger changes
"""
import logging

logger = logging.getLogger(__name__)

_listeners_registered = False


def register_all_listeners():
    """
    Register all event listeners.

    Safe to call multiple times - listeners are registered only once.

    Call this from application startup, e.g.:
        from models.listeners import register_all_listeners
        register_all_listeners()
    """
    global _listeners_registered

    if _listeners_registered:
        logger.debug("Listeners already registered, skipping")
        return

    from models.listeners.xp_listeners import (
        register_xp_listeners,
        register_xp_protection
    )

    register_xp_listeners()
    logger.info("XP sync listeners registered (ActivityLog)")

    register_xp_protection()
    logger.info("XP protection listeners registered (direct modification warnings)")

    _listeners_registered = True
    logger.info("All event listeners registered successfully")


def listeners_registered() -> bool:
    return _listeners_registered
