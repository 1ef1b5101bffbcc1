"""Notification providers for chat webhooks and SMTP email.

Each provider validates its channel payload in ``__init__`` and raises
``ProviderConfigError`` when required fields are missing, so a bad
subscriber is rejected when it is saved and reported separately from
send failures during fan-out. ``send`` raises ``DeliveryError``.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from typing import Any

import httpx

from adoption_tracker.config.settings import Settings, get_settings
from adoption_tracker.notifications.config import NotificationsConfig
from adoption_tracker.notifications.schemas import (
    CHANNEL_CHAT,
    CHANNEL_EMAIL,
    Message,
    NotificationConfig,
)

logger = logging.getLogger(__name__)


class ProviderConfigError(ValueError):
    """A subscriber's channel payload is missing required fields."""


class DeliveryError(Exception):
    """A provider could not deliver a message."""


class NotificationProvider(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def type(self) -> str:
        """Channel type tag ('chat' or 'email')."""

    @abstractmethod
    async def send(self, message: Message) -> None:
        """Deliver a message.

        Raises:
            DeliveryError: If the channel rejected or never received the message.
        """


class ChatWebhookProvider(NotificationProvider):
    """Posts Block Kit formatted messages to an incoming webhook.

    Payload fields: ``webhook_url`` (required), ``channel`` (optional).
    """

    def __init__(self, payload: dict[str, Any], timeout: float = 10.0) -> None:
        url = payload.get("webhook_url")
        if not isinstance(url, str) or not url.strip():
            raise ProviderConfigError("webhook_url is required")
        if not url.startswith(("http://", "https://")):
            raise ProviderConfigError("webhook_url must be an http(s) URL")
        self._webhook_url = url.strip()
        self._channel = payload.get("channel") or None
        self._timeout = timeout

    @property
    def type(self) -> str:
        return CHANNEL_CHAT

    def _build_payload(self, message: Message) -> dict:
        """Build the Block Kit payload for a project or plain-text message."""
        blocks: list[dict] = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": "🐳 New DHI Adoption"},
            },
        ]

        project = message.project
        if project is not None:
            fields = [
                {
                    "type": "mrkdwn",
                    "text": f"*Repository:*\n<{project.github_url}|{project.repo_full_name}>",
                },
                {"type": "mrkdwn", "text": f"*Stars:*\n{project.stars} ⭐"},
            ]
            if project.source_type:
                fields.append({"type": "mrkdwn", "text": f"*Source:*\n{project.source_type}"})
            if project.adopted_at:
                fields.append({
                    "type": "mrkdwn",
                    "text": f"*Adopted:*\n{project.adopted_at:%Y-%m-%d}",
                })
            blocks.append({"type": "section", "fields": fields})

            if project.description:
                blocks.append({
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": f"*Description:*\n{project.description}"},
                })
            if project.adoption_commit:
                blocks.append({
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": f"<{project.adoption_commit}|View Adoption Commit>",
                    },
                })
        else:
            blocks[0]["text"]["text"] = message.subject
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": message.body},
            })

        payload: dict = {"text": message.subject, "blocks": blocks}
        if self._channel:
            payload["channel"] = self._channel
        return payload

    async def send(self, message: Message) -> None:
        payload = self._build_payload(message)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._webhook_url, json=payload)
        except httpx.TimeoutException as e:
            raise DeliveryError("chat webhook timed out") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"sending chat webhook: {e}") from e

        if not resp.is_success:
            raise DeliveryError(f"chat webhook returned status {resp.status_code}")


class EmailProvider(NotificationProvider):
    """Sends plain-text email through an authenticated SMTP relay.

    Payload fields: ``to`` (required, comma-separated for several
    recipients), ``from`` (optional, overrides the relay default).
    Relay host and credentials come from application settings.
    """

    def __init__(
        self,
        payload: dict[str, Any],
        settings: Settings | None = None,
        timeout: float = 30.0,
    ) -> None:
        settings = settings or get_settings()

        to = payload.get("to")
        recipients = [r.strip() for r in to.split(",") if r.strip()] if isinstance(to, str) else []
        if not recipients:
            raise ProviderConfigError("recipient email (to) is required")
        if not settings.smtp_password:
            raise ProviderConfigError("SMTP_PASSWORD is required for email notifications")

        self._recipients = recipients
        self._from = payload.get("from") or settings.smtp_from
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._timeout = timeout

    @property
    def type(self) -> str:
        return CHANNEL_EMAIL

    def _build_mime(self, message: Message) -> MIMEText:
        mime = MIMEText(message.body, "plain", "utf-8")
        mime["Subject"] = message.subject
        mime["From"] = self._from
        mime["To"] = ", ".join(self._recipients)
        return mime

    def _send_sync(self, mime: MIMEText) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(self._username, self._password)
            server.sendmail(self._from, self._recipients, mime.as_string())

    async def send(self, message: Message) -> None:
        mime = self._build_mime(message)
        try:
            await asyncio.to_thread(self._send_sync, mime)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"sending email: {e}") from e


def build_provider(
    config: NotificationConfig,
    settings: Settings | None = None,
    notifications_config: NotificationsConfig | None = None,
) -> NotificationProvider:
    """Resolve a subscriber to its provider.

    Raises:
        ProviderConfigError: Unknown channel type or invalid payload.
    """
    nc = notifications_config or NotificationsConfig()
    if config.type == CHANNEL_CHAT:
        return ChatWebhookProvider(config.config, timeout=nc.webhook_timeout_seconds)
    if config.type == CHANNEL_EMAIL:
        return EmailProvider(config.config, settings=settings, timeout=nc.smtp_timeout_seconds)
    raise ProviderConfigError(f"unknown notification type: {config.type}")


def validate_channel_config(
    channel_type: str,
    payload: dict[str, Any],
    settings: Settings | None = None,
) -> None:
    """Raise ProviderConfigError if the payload cannot build a provider."""
    build_provider(
        NotificationConfig(name="validation", type=channel_type, config=payload),
        settings=settings,
    )
