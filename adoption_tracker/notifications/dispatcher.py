"""Notification fan-out for newly adopted projects.

For every enabled subscriber the dispatcher builds a provider, sends one
message per project, and writes one log row per attempt. A subscriber
whose provider cannot be built gets a single failed log row and is
skipped; a failing send never stops the remaining sends. Each processed
subscriber's ``last_triggered_at`` is updated even when every send failed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from adoption_tracker.config.settings import Settings
from adoption_tracker.notifications.channels import (
    NotificationProvider,
    ProviderConfigError,
    build_provider,
    validate_channel_config,
)
from adoption_tracker.notifications.config import NotificationsConfig
from adoption_tracker.notifications.repository import NotificationRepository
from adoption_tracker.notifications.schemas import (
    STATUS_FAILED,
    STATUS_SENT,
    Message,
    NotificationConfig,
    NotificationLog,
)
from adoption_tracker.observability.metrics import get_metrics
from adoption_tracker.projects.schemas import Project

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[NotificationConfig], NotificationProvider]


@dataclass
class DispatchResult:
    """Counts from one fan-out pass."""

    configs_processed: int = 0
    sent: int = 0
    failed: int = 0
    provider_errors: list[str] = field(default_factory=list)


def build_project_message(project: Project, product_name: str = "DHI OSS Tracker") -> Message:
    """Render every project field into a plain-text message."""
    lines = [
        "New DHI Adoption Detected!",
        "",
        f"Repository: {project.repo_full_name}",
        f"Stars: {project.stars} ⭐",
        f"Description: {project.description}",
        f"Language: {project.primary_language}",
        f"GitHub: {project.github_url}",
        f"File: {project.dockerfile_path}",
    ]
    if project.file_url:
        lines.append(f"File URL: {project.file_url}")
    lines.append(f"Source: {project.source_type}")
    if project.adopted_at:
        lines.append(f"Adopted: {project.adopted_at:%Y-%m-%d}")
    if project.adoption_commit:
        lines.append(f"Commit: {project.adoption_commit}")
    if project.first_seen_at:
        lines.append(f"First seen: {project.first_seen_at:%Y-%m-%d}")
    lines.extend(["", f"-- {product_name}"])

    return Message(
        subject=f"New DHI Adoption: {project.repo_full_name} ({project.stars}⭐)",
        body="\n".join(lines) + "\n",
        project=project,
    )


def build_test_message(
    config: NotificationConfig,
    product_name: str = "DHI OSS Tracker",
    now: datetime | None = None,
) -> Message:
    now = now or datetime.now(timezone.utc)
    return Message(
        subject=f"{product_name} - Test Notification",
        body=(
            f"This is a test notification from {product_name}.\n\n"
            f"Notification: {config.name}\n"
            f"Type: {config.type}\n"
            f"Time: {now:%a, %d %b %Y %H:%M:%S %Z}"
        ),
    )


class NotificationDispatcher:
    """Delivers new-adoption messages to every enabled subscriber."""

    def __init__(
        self,
        repository: NotificationRepository,
        settings: Settings | None = None,
        config: NotificationsConfig | None = None,
        provider_factory: ProviderFactory | None = None,
    ) -> None:
        self._repo = repository
        self._settings = settings
        self._config = config or NotificationsConfig()
        self._provider_factory = provider_factory or self._default_factory

    def _default_factory(self, config: NotificationConfig) -> NotificationProvider:
        return build_provider(config, settings=self._settings, notifications_config=self._config)

    def validate_config(self, channel_type: str, payload: dict) -> None:
        """Raise ProviderConfigError if a subscriber with this payload could not be served."""
        validate_channel_config(channel_type, payload, settings=self._settings)

    async def notify_new_projects(self, projects: list[Project]) -> DispatchResult:
        """Send one message per project to every enabled subscriber.

        Raises:
            Exception: Only if the subscriber list itself cannot be loaded.
        """
        result = DispatchResult()
        if not projects:
            return result

        configs = await self._repo.list_enabled()
        logger.info(
            "Dispatching %d new projects to %d subscribers",
            len(projects), len(configs),
        )

        for config in configs:
            result.configs_processed += 1
            try:
                provider = self._provider_factory(config)
            except ProviderConfigError as e:
                error = f"failed to create provider: {e}"
                logger.warning(
                    "Notification config %s (%s): %s", config.id, config.name, error,
                )
                result.provider_errors.append(f"{config.id}: {error}")
                result.failed += 1
                get_metrics().record_notification(config.type, STATUS_FAILED)
                await self._log(config.id, None, STATUS_FAILED, error)
                continue

            for project in projects:
                message = build_project_message(project, self._config.product_name)
                try:
                    await provider.send(message)
                except Exception as e:
                    logger.warning(
                        "Notification to config %s failed for %s: %s",
                        config.id, project.repo_full_name, e,
                    )
                    result.failed += 1
                    get_metrics().record_notification(provider.type, STATUS_FAILED)
                    await self._log(config.id, project.id, STATUS_FAILED, str(e))
                else:
                    result.sent += 1
                    get_metrics().record_notification(provider.type, STATUS_SENT)
                    await self._log(config.id, project.id, STATUS_SENT, "")

            try:
                await self._repo.mark_triggered(config.id)
            except Exception as e:
                logger.error("Failed to update last_triggered for config %s: %s", config.id, e)

        logger.info(
            "Notification pass finished: %d sent, %d failed", result.sent, result.failed,
        )
        return result

    async def send_test(self, config_id: int) -> None:
        """Send a static message describing the subscriber itself.

        Raises:
            LookupError: Unknown subscriber id.
            ProviderConfigError: The subscriber's payload is invalid.
            DeliveryError: The provider failed to deliver.
        """
        config = await self._repo.get(config_id)
        if config is None:
            raise LookupError(f"notification config {config_id} not found")

        try:
            provider = self._provider_factory(config)
        except ProviderConfigError as e:
            await self._log(config_id, None, STATUS_FAILED, f"failed to create provider: {e}")
            raise

        message = build_test_message(config, self._config.product_name)
        try:
            await provider.send(message)
        except Exception as e:
            get_metrics().record_notification(provider.type, STATUS_FAILED)
            await self._log(config_id, None, STATUS_FAILED, str(e))
            raise

        get_metrics().record_notification(provider.type, STATUS_SENT)
        await self._log(config_id, None, STATUS_SENT, "")

    async def _log(
        self,
        config_id: int | None,
        project_id: int | None,
        status: str,
        error_message: str,
    ) -> None:
        """Write an audit row. Failures are logged and swallowed."""
        if config_id is None:
            return
        try:
            await self._repo.create_log(
                NotificationLog(
                    config_id=config_id,
                    project_id=project_id,
                    status=status,
                    error_message=error_message,
                )
            )
        except Exception as e:
            logger.error("Failed to write notification log for config %s: %s", config_id, e)
