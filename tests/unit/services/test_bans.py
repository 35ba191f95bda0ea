"""Tests for ban workflows."""

from datetime import datetime, timezone

import pytest

from acc_admin.core.errors import NotFoundError, OptimisticLockConflictError, ValidationError
from acc_admin.repositories.bans import INDEFINITE, Ban
from acc_admin.repositories.requests import AccountRequest
from acc_admin.services.bans import (
    BanFormDefaults,
    BanService,
    resolve_duration,
    trusted_client_ip,
    validate_target,
)
from acc_admin.services.notifications import IrcNotificationHelper

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc).timestamp()


class TestResolveDuration:
    def test_indefinite(self):
        assert resolve_duration("-1", now=NOW) == INDEFINITE

    def test_seconds_from_now(self):
        assert resolve_duration("86400", now=NOW) == int(NOW) + 86400

    def test_other_date(self):
        assert resolve_duration("other", "2024-07-01", now=NOW) == int(
            datetime(2024, 7, 1, tzinfo=timezone.utc).timestamp()
        )

    def test_other_datetime_with_offset(self):
        expected = int(datetime(2024, 7, 1, 10, 0, tzinfo=timezone.utc).timestamp())
        assert resolve_duration("other", "2024-07-01T12:00:00+02:00", now=NOW) == expected

    def test_other_in_past(self):
        with pytest.raises(ValidationError, match="already expired"):
            resolve_duration("other", "2024-01-01", now=NOW)

    def test_other_unparseable(self):
        with pytest.raises(ValidationError, match="Invalid ban time"):
            resolve_duration("other", "next tuesday", now=NOW)

    @pytest.mark.parametrize("value", ["", None, "soon", "0", "-5"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="Invalid ban duration"):
            resolve_duration(value, now=NOW)


class TestValidateTarget:
    def test_ip(self):
        validate_target("IP", "192.0.2.1", [])
        validate_target("IP", "2001:db8::1", [])

    def test_bad_ip(self):
        with pytest.raises(ValidationError, match="IP address expected"):
            validate_target("IP", "not-an-ip", [])

    def test_protected_proxy(self):
        with pytest.raises(ValidationError, match="protected list"):
            validate_target("IP", "10.0.0.1", ["10.0.0.1", "10.0.0.2"])

    def test_email(self):
        validate_target("EMail", "someone@example.org", [])
        with pytest.raises(ValidationError, match="email address expected"):
            validate_target("EMail", "someone at example", [])

    @pytest.mark.parametrize(
        "target",
        [
            "a..b@example.com",
            "user@-example.com",
            "user@example..com",
            ".user@example.com",
            "Vandal <vandal@example.org>",
        ],
    )
    def test_malformed_email(self, target):
        with pytest.raises(ValidationError, match="email address expected"):
            validate_target("EMail", target, [])

    def test_name_accepts_anything(self):
        validate_target("Name", "Any Name At All", [])

    def test_unknown_type(self):
        with pytest.raises(ValidationError, match="Unknown ban type"):
            validate_target("Range", "192.0.2.0/24", [])



class TestTrustedClientIp:
    PROXIES = ["10.0.0.1", "10.0.0.2"]

    def test_direct_connection(self):
        assert trusted_client_ip("192.0.2.1", None, self.PROXIES) == "192.0.2.1"

    def test_skips_trusted_proxy(self):
        assert trusted_client_ip("10.0.0.1", "198.51.100.7", self.PROXIES) == "198.51.100.7"

    def test_walks_chain_of_trusted_proxies(self):
        forwarded = "198.51.100.7, 10.0.0.2"
        assert trusted_client_ip("10.0.0.1", forwarded, self.PROXIES) == "198.51.100.7"

    def test_stops_at_untrusted_hop(self):
        forwarded = "198.51.100.7, 203.0.113.9"
        assert trusted_client_ip("10.0.0.1", forwarded, self.PROXIES) == "203.0.113.9"

    def test_all_trusted_returns_origin(self):
        assert trusted_client_ip("10.0.0.1", "10.0.0.2", self.PROXIES) == "10.0.0.2"

    def test_empty(self):
        assert trusted_client_ip(None, None, self.PROXIES) == ""

# =============================================================================
# Service
# =============================================================================


class InMemoryBanRepository:
    def __init__(self, bans=None):
        self.rows = {b.id: b for b in bans or []}
        self.calls: list[tuple] = []

    async def get(self, ban_id):
        return self.rows.get(ban_id)

    async def lock_target(self, target, conn):
        self.calls.append(("lock_target", target, conn))

    async def list_active(self, target=None, conn=None):
        self.calls.append(("list_active", target, conn))
        return [
            b for b in self.rows.values()
            if b.active and (target is None or b.target == target)
        ]

    async def insert(self, ban, conn=None):
        ban.id = max(self.rows, default=0) + 1
        ban.update_version = 0
        self.rows[ban.id] = ban
        return ban

    async def deactivate(self, ban, expected_version=None, conn=None):
        version = ban.update_version if expected_version is None else expected_version
        if self.rows[ban.id].update_version != version:
            raise OptimisticLockConflictError("Ban", ban.id, version)
        ban.active = False
        ban.update_version = version + 1
        return ban


class InMemoryRequestRepository:
    def __init__(self, requests=None):
        self.rows = {r.id: r for r in requests or []}

    async def get(self, request_id, conn=None):
        return self.rows.get(request_id)


class RecordingAuditLog:
    def __init__(self):
        self.entries = []

    async def write(self, object_type, object_id, user_id, action, comment=None, conn=None):
        self.entries.append((object_type, object_id, user_id, action, comment))


class RecordingNotifications:
    def __init__(self):
        self.sent = []

    async def insert(self, notification_type, text):
        self.sent.append(text)


def existing_ban(**overrides):
    data = dict(
        id=3,
        type="Name",
        target="Vandal",
        user_id=1,
        reason="spam",
        duration=INDEFINITE,
        active=True,
        update_version=2,
    )
    data.update(overrides)
    return Ban(**data)


@pytest.fixture
def bans():
    return InMemoryBanRepository([existing_ban()])


@pytest.fixture
def audit_log():
    return RecordingAuditLog()


@pytest.fixture
def requests_repo():
    return InMemoryRequestRepository(
        [
            AccountRequest(
                id=100,
                name="Vandal2",
                email="vandal@example.org",
                ip="10.0.0.1",
                forwarded_ip="198.51.100.7, 10.0.0.2",
                status="Open",
            )
        ]
    )


@pytest.fixture
def service(mock_pool, bans, audit_log, requests_repo):
    return BanService(mock_pool, bans, audit_log, requests_repo)


class TestSetBan:
    @pytest.mark.asyncio
    async def test_sets_and_audits(self, service, bans, audit_log, ctx, settings):
        notifications = RecordingNotifications()
        notifier = IrcNotificationHelper(settings, notifications, ctx.username)

        ban = await service.set_ban(
            ctx, "IP", " 192.0.2.50 ", "open proxy", "-1", notifier=notifier
        )

        assert ban.id == 4
        assert ban.target == "192.0.2.50"
        assert ban.user_id == 7
        assert ban.is_indefinite
        assert audit_log.entries == [("Ban", 4, 7, "Banned", "open proxy")]
        assert "192.0.2.50 banned by Operator" in notifications.sent[0]

    @pytest.mark.asyncio
    async def test_runs_in_transaction(self, service, mock_conn, ctx):
        await service.set_ban(ctx, "Name", "Spammer", "spam", "3600")
        mock_conn.transaction.assert_called_once()

    @pytest.mark.asyncio
    async def test_already_banned(self, service, audit_log, ctx):
        with pytest.raises(ValidationError, match="already banned"):
            await service.set_ban(ctx, "Name", "Vandal", "again", "-1")
        assert audit_log.entries == []

    @pytest.mark.asyncio
    async def test_checks_existing_ban_under_target_lock(self, service, bans, mock_conn, ctx):
        await service.set_ban(ctx, "Name", "Spammer", "spam", "-1")

        assert bans.calls == [
            ("lock_target", "Spammer", mock_conn),
            ("list_active", "Spammer", mock_conn),
        ]

    @pytest.mark.asyncio
    async def test_protected_proxy_from_settings(self, service, ctx):
        with pytest.raises(ValidationError, match="protected list"):
            await service.set_ban(ctx, "IP", "10.0.0.2", "proxy", "-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "target,reason,message",
        [
            ("Spammer", "", "ban reason"),
            ("Spammer", None, "ban reason"),
            ("  ", "spam", "target to be banned"),
            (None, "spam", "target to be banned"),
        ],
    )
    async def test_required_fields(self, service, ctx, target, reason, message):
        with pytest.raises(ValidationError, match=message):
            await service.set_ban(ctx, "Name", target, reason, "-1")


class TestResolveTarget:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ban_type,expected",
        [
            ("EMail", "vandal@example.org"),
            ("Name", "Vandal2"),
            ("IP", "198.51.100.7"),
        ],
    )
    async def test_target_from_request(self, service, settings, ban_type, expected):
        defaults = await service.resolve_target(ban_type, 100, settings)
        assert defaults == BanFormDefaults(ban_type=ban_type, target=expected)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ban_type", ["Range", "", None])
    async def test_unknown_type(self, service, settings, ban_type):
        defaults = await service.resolve_target(ban_type, 100, settings)
        assert defaults == BanFormDefaults()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_id", [0, None])
    async def test_no_request(self, service, settings, request_id):
        defaults = await service.resolve_target("EMail", request_id, settings)
        assert defaults == BanFormDefaults()

    @pytest.mark.asyncio
    async def test_missing_request(self, service, settings):
        defaults = await service.resolve_target("IP", 999, settings)
        assert defaults == BanFormDefaults(ban_type="IP", target="")


class TestRemoveBan:
    @pytest.mark.asyncio
    async def test_removes_and_audits(self, service, bans, audit_log, ctx, settings):
        notifications = RecordingNotifications()
        notifier = IrcNotificationHelper(settings, notifications, ctx.username)

        ban = await service.remove_ban(ctx, 3, "appeal accepted", 2, notifier=notifier)

        assert ban.active is False
        assert ban.update_version == 3
        assert audit_log.entries == [("Ban", 3, 7, "Unbanned", "appeal accepted")]
        assert "Vandal unbanned by Operator (appeal accepted)" in notifications.sent[0]

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, service, audit_log, ctx):
        with pytest.raises(OptimisticLockConflictError):
            await service.remove_ban(ctx, 3, "appeal accepted", 1)
        assert audit_log.entries == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ban_id", [None, 0])
    async def test_missing_id(self, service, ctx, ban_id):
        with pytest.raises(NotFoundError, match="appears to be missing"):
            await service.remove_ban(ctx, ban_id, "reason", 2)

    @pytest.mark.asyncio
    async def test_unknown_or_inactive(self, mock_pool, audit_log, ctx):
        service = BanService(
            mock_pool, InMemoryBanRepository([existing_ban(active=False)]), audit_log
        )
        with pytest.raises(NotFoundError, match="not currently active"):
            await service.remove_ban(ctx, 3, "reason", 2)
        with pytest.raises(NotFoundError, match="not currently active"):
            await service.remove_ban(ctx, 99, "reason", 2)

    @pytest.mark.asyncio
    async def test_reason_required(self, service, ctx):
        with pytest.raises(ValidationError, match="No unban reason"):
            await service.remove_ban(ctx, 3, " ", 2)

    @pytest.mark.asyncio
    async def test_version_required(self, service, ctx):
        with pytest.raises(ValidationError, match="update_version"):
            await service.remove_ban(ctx, 3, "reason", None)


@pytest.mark.asyncio
async def test_list_active(service):
    active = await service.list_active()
    assert [b.target for b in active] == ["Vandal"]
