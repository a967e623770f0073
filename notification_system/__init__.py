# partnerbot/notification_system/__init__.py
"""
Notification system for the partner progression bot.
Pushes progression announcements to a webhook sink.
"""
from notification_system.services.notification_service import NotificationService
from notification_system.providers.webhook_provider import WebhookProvider

__all__ = ['NotificationService', 'WebhookProvider']
