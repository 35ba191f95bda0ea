"""Tests for IRC notification formatting and delivery."""

import pytest

from acc_admin.jobs.models import Job
from acc_admin.jobs.types import JobStatus
from acc_admin.repositories.bans import INDEFINITE, Ban
from acc_admin.services.notifications import IrcNotificationHelper


class RecordingRepo:
    def __init__(self, fail=False):
        self.rows: list[tuple[int, str]] = []
        self.fail = fail

    async def insert(self, notification_type, text):
        if self.fail:
            raise ConnectionError("connection refused")
        self.rows.append((notification_type, text))


def job():
    return Job(id=42, task="UserCreationTask", status=JobStatus.FAILED)


class TestFormatting:
    def test_prefixes_instance_name(self, settings):
        helper = IrcNotificationHelper(settings, RecordingRepo(), "Operator")
        assert helper.format_message("hello") == "\x0f\x02[acc-test]\x0f: hello"

    def test_blacklisted_tokens_are_replaced(self, settings):
        helper = IrcNotificationHelper(settings, RecordingRepo(), "Operator")
        message = helper.format_message("PRIVMSG #channel :DCC SEND")
        assert "PRIVMSG" not in message
        assert "DCC" not in message
        assert message.count("(IRC Blacklist)") == 2


class TestDelivery:
    @pytest.mark.asyncio
    async def test_job_acknowledged(self, settings):
        repo = RecordingRepo()
        helper = IrcNotificationHelper(settings, repo, "Operator")

        assert await helper.job_acknowledged(job()) is True
        notification_type, text = repo.rows[0]
        assert notification_type == settings.irc_notification_type
        assert text.endswith("Job 42 (UserCreationTask) acknowledged by Operator")

    @pytest.mark.asyncio
    async def test_job_requeued(self, settings):
        repo = RecordingRepo()
        helper = IrcNotificationHelper(settings, repo, "Operator")

        await helper.job_requeued(job())
        assert repo.rows[0][1].endswith("Job 42 (UserCreationTask) requeued by Operator")

    @pytest.mark.asyncio
    async def test_indefinite_ban(self, settings):
        repo = RecordingRepo()
        helper = IrcNotificationHelper(settings, repo, "Operator")
        ban = Ban(type="Name", target="Vandal", user_id=7, reason="spam", duration=INDEFINITE)

        await helper.banned(ban)
        assert repo.rows[0][1].endswith("Vandal banned by Operator for 'spam' indefinitely")

    @pytest.mark.asyncio
    async def test_timed_ban_shows_expiry(self, settings):
        repo = RecordingRepo()
        helper = IrcNotificationHelper(settings, repo, "Operator")
        ban = Ban(type="IP", target="192.0.2.1", user_id=7, reason="spam", duration=1718928000)

        await helper.banned(ban)
        assert "until 2024-06-21 00:00 UTC" in repo.rows[0][1]

    @pytest.mark.asyncio
    async def test_failure_disables_for_rest_of_request(self, settings):
        repo = RecordingRepo(fail=True)
        helper = IrcNotificationHelper(settings, repo, "Operator")

        assert await helper.job_requeued(job()) is False
        assert helper.enabled is False

        repo.fail = False
        assert await helper.job_requeued(job()) is False
        assert repo.rows == []

    @pytest.mark.asyncio
    async def test_disabled_by_settings(self, settings):
        settings = settings.model_copy(update={"irc_notifications_enabled": False})
        repo = RecordingRepo()
        helper = IrcNotificationHelper(settings, repo, "Operator")

        assert await helper.job_acknowledged(job()) is False
        assert repo.rows == []

    @pytest.mark.asyncio
    async def test_no_repository_means_disabled(self, settings):
        helper = IrcNotificationHelper(settings, None, "Operator")
        assert helper.enabled is False
        assert await helper.send("anything") is False
