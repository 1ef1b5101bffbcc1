"""Configuration for notification delivery."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationsConfig(BaseSettings):
    """Timeouts and message branding for notification channels."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    product_name: str = Field(
        default="DHI OSS Tracker",
        description="Name used in message subjects and test notifications",
    )
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="HTTP timeout for chat webhook posts",
    )
    smtp_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Socket timeout for the SMTP relay",
    )
    log_default_limit: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Default number of delivery log rows returned per config",
    )
