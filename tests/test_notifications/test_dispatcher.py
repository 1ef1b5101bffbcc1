"""Tests for NotificationDispatcher fan-out and test sends."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from adoption_tracker.notifications.channels import DeliveryError, ProviderConfigError
from adoption_tracker.notifications.dispatcher import (
    NotificationDispatcher,
    build_project_message,
    build_test_message,
)
from adoption_tracker.notifications.schemas import NotificationConfig
from adoption_tracker.projects.schemas import Project


def _provider(channel: str = "chat", fail_for: set[str] | None = None):
    """Provider mock that raises DeliveryError for the named repositories."""
    fail_for = fail_for or set()
    provider = MagicMock()
    provider.type = channel

    async def send(message):
        if message.project is not None and message.project.repo_full_name in fail_for:
            raise DeliveryError(f"rejected {message.project.repo_full_name}")

    provider.send = AsyncMock(side_effect=send)
    return provider


def _projects(*names: str) -> list[Project]:
    return [
        Project(id=i, repo_full_name=name, github_url=f"https://github.com/{name}", stars=10 * i)
        for i, name in enumerate(names, start=1)
    ]


# ── Fan-out ─────────────────────────────────


class TestNotifyNewProjects:
    """One attempt and one log row per (subscriber, project)."""

    @pytest.mark.asyncio
    async def test_no_projects_is_noop(self, mock_notification_repo):
        dispatcher = NotificationDispatcher(mock_notification_repo)

        result = await dispatcher.notify_new_projects([])

        assert result.configs_processed == 0
        mock_notification_repo.list_enabled.assert_not_called()

    @pytest.mark.asyncio
    async def test_every_pair_attempted(self, mock_notification_repo, chat_config, email_config, logged_statuses):
        mock_notification_repo.list_enabled.return_value = [chat_config, email_config]
        providers = {1: _provider("chat"), 2: _provider("email")}
        dispatcher = NotificationDispatcher(
            mock_notification_repo, provider_factory=lambda c: providers[c.id],
        )

        result = await dispatcher.notify_new_projects(_projects("a/x", "b/y"))

        assert result.configs_processed == 2
        assert result.sent == 4
        assert result.failed == 0
        assert logged_statuses() == [
            (1, 1, "sent"), (1, 2, "sent"),
            (2, 1, "sent"), (2, 2, "sent"),
        ]
        assert mock_notification_repo.mark_triggered.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_send_does_not_stop_others(self, mock_notification_repo, chat_config, logged_statuses):
        mock_notification_repo.list_enabled.return_value = [chat_config]
        provider = _provider(fail_for={"a/x"})
        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=lambda c: provider)

        result = await dispatcher.notify_new_projects(_projects("a/x", "b/y"))

        assert provider.send.await_count == 2
        assert result.sent == 1
        assert result.failed == 1
        assert logged_statuses() == [(1, 1, "failed"), (1, 2, "sent")]
        failed_log = mock_notification_repo.create_log.call_args_list[0].args[0]
        assert failed_log.error_message == "rejected a/x"
        mock_notification_repo.mark_triggered.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_all_sends_failing_still_marks_triggered(self, mock_notification_repo, chat_config):
        mock_notification_repo.list_enabled.return_value = [chat_config]
        provider = _provider(fail_for={"a/x", "b/y"})
        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=lambda c: provider)

        result = await dispatcher.notify_new_projects(_projects("a/x", "b/y"))

        assert result.failed == 2
        mock_notification_repo.mark_triggered.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_provider_error_logs_once_and_skips(
        self, mock_notification_repo, chat_config, email_config, logged_statuses,
    ):
        mock_notification_repo.list_enabled.return_value = [email_config, chat_config]
        chat = _provider("chat")

        def factory(config):
            if config.type == "email":
                raise ProviderConfigError("recipient email (to) is required")
            return chat

        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=factory)

        result = await dispatcher.notify_new_projects(_projects("a/x", "b/y", "c/z"))

        assert logged_statuses() == [
            (2, None, "failed"),
            (1, 1, "sent"), (1, 2, "sent"), (1, 3, "sent"),
        ]
        first_log = mock_notification_repo.create_log.call_args_list[0].args[0]
        assert first_log.error_message.startswith("failed to create provider")
        assert result.provider_errors == ["2: failed to create provider: recipient email (to) is required"]
        # Only the subscriber that was actually served is marked
        mock_notification_repo.mark_triggered.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_log_write_failure_is_contained(self, mock_notification_repo, chat_config):
        mock_notification_repo.list_enabled.return_value = [chat_config]
        mock_notification_repo.create_log.side_effect = RuntimeError("db gone")
        provider = _provider()
        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=lambda c: provider)

        result = await dispatcher.notify_new_projects(_projects("a/x"))

        assert result.sent == 1

    @pytest.mark.asyncio
    async def test_subscriber_load_failure_propagates(self, mock_notification_repo):
        mock_notification_repo.list_enabled.side_effect = RuntimeError("db gone")
        dispatcher = NotificationDispatcher(mock_notification_repo)

        with pytest.raises(RuntimeError):
            await dispatcher.notify_new_projects(_projects("a/x"))


# ── Test sends ─────────────────────────────────


class TestSendTest:
    @pytest.mark.asyncio
    async def test_unknown_config(self, mock_notification_repo):
        dispatcher = NotificationDispatcher(mock_notification_repo)

        with pytest.raises(LookupError):
            await dispatcher.send_test(99)
        mock_notification_repo.create_log.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_logged_without_project(self, mock_notification_repo, chat_config, logged_statuses):
        mock_notification_repo.get.return_value = chat_config
        provider = _provider()
        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=lambda c: provider)

        await dispatcher.send_test(1)

        message = provider.send.call_args.args[0]
        assert "Test Notification" in message.subject
        assert "team chat" in message.body
        assert logged_statuses() == [(1, None, "sent")]

    @pytest.mark.asyncio
    async def test_delivery_error_logged_and_raised(self, mock_notification_repo, chat_config, logged_statuses):
        mock_notification_repo.get.return_value = chat_config
        provider = _provider()
        provider.send.side_effect = DeliveryError("chat webhook returned status 500")
        dispatcher = NotificationDispatcher(mock_notification_repo, provider_factory=lambda c: provider)

        with pytest.raises(DeliveryError):
            await dispatcher.send_test(1)
        assert logged_statuses() == [(1, None, "failed")]

    @pytest.mark.asyncio
    async def test_invalid_payload_raised(self, mock_notification_repo, logged_statuses):
        mock_notification_repo.get.return_value = NotificationConfig(id=3, name="bad", type="chat", config={})
        dispatcher = NotificationDispatcher(mock_notification_repo)

        with pytest.raises(ProviderConfigError):
            await dispatcher.send_test(3)
        assert logged_statuses() == [(3, None, "failed")]


class TestMessages:
    def test_project_message_fields(self, sample_project):
        message = build_project_message(sample_project, "Tracker")

        assert message.subject == "New DHI Adoption: acme/widget (1250⭐)"
        assert "Repository: acme/widget" in message.body
        assert "File: build/Dockerfile" in message.body
        assert "Adopted: 2024-01-15" in message.body
        assert "Commit: https://github.com/acme/widget/commit/abc123" in message.body
        assert message.body.rstrip().endswith("-- Tracker")
        assert message.project is sample_project

    def test_test_message(self, chat_config):
        now = datetime(2024, 1, 16, 12, 0, tzinfo=timezone.utc)
        message = build_test_message(chat_config, "Tracker", now=now)

        assert message.subject == "Tracker - Test Notification"
        assert "Type: chat" in message.body
        assert "Tue, 16 Jan 2024 12:00:00 UTC" in message.body
        assert message.project is None
