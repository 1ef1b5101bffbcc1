"""Notifications: subscriber storage, chat/email providers, and fan-out."""

from adoption_tracker.notifications.channels import (
    ChatWebhookProvider,
    DeliveryError,
    EmailProvider,
    NotificationProvider,
    ProviderConfigError,
    build_provider,
    validate_channel_config,
)
from adoption_tracker.notifications.config import NotificationsConfig
from adoption_tracker.notifications.dispatcher import DispatchResult, NotificationDispatcher
from adoption_tracker.notifications.repository import NotificationRepository
from adoption_tracker.notifications.schemas import Message, NotificationConfig, NotificationLog

__all__ = [
    "ChatWebhookProvider",
    "DeliveryError",
    "DispatchResult",
    "EmailProvider",
    "Message",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationLog",
    "NotificationProvider",
    "NotificationRepository",
    "NotificationsConfig",
    "ProviderConfigError",
    "build_provider",
    "validate_channel_config",
]
