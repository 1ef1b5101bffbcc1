"""Schema definitions for notification subscribers and their delivery log.

``NotificationConfig`` maps to ``notification_configs``: one subscriber
with a channel type and an opaque channel payload (webhook URL for chat,
recipient for email). ``NotificationLog`` maps to ``notification_logs``,
one row per delivery attempt.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from adoption_tracker.projects.schemas import Project

ChannelType = Literal["chat", "email"]

CHANNEL_CHAT = "chat"
CHANNEL_EMAIL = "email"
VALID_CHANNEL_TYPES: frozenset[str] = frozenset({CHANNEL_CHAT, CHANNEL_EMAIL})

STATUS_SENT = "sent"
STATUS_FAILED = "failed"
VALID_LOG_STATUSES: frozenset[str] = frozenset({STATUS_SENT, STATUS_FAILED})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class NotificationConfig:
    """A notification subscriber.

    ``type`` is not validated here: rows written by older versions may
    carry a type this build does not know, and the dispatcher reports
    those as delivery failures instead of refusing to load them.
    """

    name: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    id: int | None = None
    last_triggered_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "enabled": self.enabled,
            "config": self.config,
            "last_triggered_at": _iso(self.last_triggered_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    @staticmethod
    def decode_payload(raw: Any) -> dict[str, Any]:
        """Normalize a JSONB column value (dict, JSON string, or NULL)."""
        if raw is None:
            return {}
        if isinstance(raw, str):
            return json.loads(raw) if raw else {}
        return dict(raw)


@dataclass
class NotificationLog:
    """One delivery attempt. ``project_id`` is None for test sends and provider errors."""

    config_id: int
    status: str
    project_id: int | None = None
    error_message: str = ""
    id: int | None = None
    sent_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.status not in VALID_LOG_STATUSES:
            raise ValueError(
                f"Invalid status {self.status!r}. "
                f"Must be one of: {sorted(VALID_LOG_STATUSES)}"
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "config_id": self.config_id,
            "project_id": self.project_id,
            "status": self.status,
            "error_message": self.error_message,
            "sent_at": _iso(self.sent_at),
        }


@dataclass
class Message:
    """Channel-agnostic notification content.

    Providers that can render richer output (chat blocks) use ``project``
    when present and fall back to ``body`` otherwise.
    """

    subject: str
    body: str
    project: Project | None = None
