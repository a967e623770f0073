"""
Database models for the partner progression bot.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, AuditMixin

# Core models
from models.partner import Partner
from models.activity_log import ActivityLog

# Event listeners
from models.listeners import register_all_listeners

__all__ = [
    # Base
    'Base',
    'AuditMixin',

    # Core
    'Partner',
    'ActivityLog',

    # Listeners
    'register_all_listeners',
]
