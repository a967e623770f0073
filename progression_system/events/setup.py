# progression_system/events/setup.py
"""
Setup progression event handlers.
Register all event handlers with the event bus.
"""
import logging

from progression_system.events.event_bus import eventBus, ProgressionEvents
from progression_system.events.handlers import (
    handle_xp_granted,
    handle_rank_achieved,
    handle_rank_assigned,
    handle_rank_demoted,
    handle_commission_changed,
)

logger = logging.getLogger(__name__)

_SUBSCRIPTIONS = [
    (ProgressionEvents.XP_GRANTED, handle_xp_granted),
    (ProgressionEvents.RANK_ACHIEVED, handle_rank_achieved),
    (ProgressionEvents.RANK_ASSIGNED, handle_rank_assigned),
    (ProgressionEvents.RANK_DEMOTED, handle_rank_demoted),
    (ProgressionEvents.COMMISSION_CHANGED, handle_commission_changed),
]


def setup_progression_event_handlers():
    """
    Register all progression event handlers with the event bus.

    This function should be called during bot initialization.
    """
    logger.info("Setting up progression event handlers...")

    for eventName, handler in _SUBSCRIPTIONS:
        eventBus.subscribe(eventName, handler)
        logger.debug(f"Registered handler for {eventName}")

    logger.info("Progression event handlers registered successfully")


def teardown_progression_event_handlers():
    """
    Unregister all progression event handlers.
    Useful for testing or shutdown.
    """
    logger.info("Tearing down progression event handlers...")

    for eventName, handler in _SUBSCRIPTIONS:
        eventBus.unsubscribe(eventName, handler)

    logger.info("Progression event handlers unregistered")
