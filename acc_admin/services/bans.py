"""Setting and lifting bans against IPs, requested names and emails."""

import ipaddress
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import pydantic
import structlog
from pydantic import EmailStr, TypeAdapter

from acc_admin.config import Settings
from acc_admin.core.context import RequestContext
from acc_admin.core.errors import NotFoundError, ValidationError
from acc_admin.repositories.audit_log import AuditLogRepository
from acc_admin.repositories.bans import INDEFINITE, Ban, BanRepository
from acc_admin.repositories.requests import AccountRequest, RequestRepository
from acc_admin.services.audit import AuditLogger
from acc_admin.services.notifications import IrcNotificationHelper

logger = structlog.get_logger(__name__)

BAN_TYPES = ("IP", "Name", "EMail")

_EMAIL_ADAPTER = TypeAdapter(EmailStr)


def resolve_duration(
    duration: Optional[str],
    other_duration: Optional[str] = None,
    now: Optional[float] = None,
) -> int:
    """
    Turn the submitted duration into a stored expiry.

    Args:
        duration: "-1" for indefinite, "other" to use ``other_duration``,
            otherwise a number of seconds from now
        other_duration: ISO 8601 date or datetime (UTC if no offset)
        now: Current unix time, for tests

    Returns:
        Unix timestamp of expiry, or INDEFINITE

    Raises:
        ValidationError: If the duration is malformed or already past
    """
    now = time.time() if now is None else now
    duration = (duration or "").strip()

    if duration == "other":
        try:
            expiry = datetime.fromisoformat((other_duration or "").strip())
        except ValueError:
            raise ValidationError("Invalid ban time")
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        timestamp = int(expiry.timestamp())
        if timestamp <= now:
            raise ValidationError("Ban time has already expired!")
        return timestamp

    if duration == str(INDEFINITE):
        return INDEFINITE

    try:
        seconds = int(duration)
    except ValueError:
        raise ValidationError("Invalid ban duration")
    if seconds <= 0:
        raise ValidationError("Invalid ban duration")
    return int(now) + seconds


def validate_target(ban_type: Optional[str], target: str, protected_proxies: list[str]) -> None:
    """
    Check the target is well-formed for its ban type.

    Raises:
        ValidationError: If the type is unknown or the target is invalid
    """
    if ban_type == "IP":
        try:
            ipaddress.ip_address(target)
        except ValueError:
            raise ValidationError("Invalid target - IP address expected.")
        if target in protected_proxies:
            raise ValidationError(
                "This IP address is on the protected list of proxies, and cannot be banned."
            )
    elif ban_type == "EMail":
        validate_email_target(target)
    elif ban_type != "Name":
        raise ValidationError("Unknown ban type")


def validate_email_target(target: str) -> None:
    """
    Check the target is a bare email address.

    Display-name forms such as ``Name <user@example.org>`` are rejected;
    only the address itself can be banned.

    Raises:
        ValidationError: If the target is not a valid email address
    """
    if "<" in target or ">" in target:
        raise ValidationError("Invalid target - email address expected.")
    try:
        _EMAIL_ADAPTER.validate_python(target)
    except pydantic.ValidationError:
        raise ValidationError("Invalid target - email address expected.")


def trusted_client_ip(
    ip: Optional[str], forwarded_ip: Optional[str], trusted_proxies: list[str]
) -> str:
    """
    Find the client address behind a chain of trusted proxies.

    Walks the X-Forwarded-For chain from the connecting address back
    towards the client and stops at the first hop that is not a trusted
    proxy.
    """
    chain = [hop.strip() for hop in (forwarded_ip or "").split(",") if hop.strip()]
    if ip:
        chain.append(ip.strip())
    if not chain:
        return ""

    for hop in reversed(chain):
        if hop not in trusted_proxies:
            return hop
    return chain[0]


@dataclass
class BanFormDefaults:
    """Pre-filled values for the set-ban form."""

    ban_type: str = ""
    target: str = ""


class BanService:
    """Ban workflows. Each write and its audit entry commit together."""

    def __init__(
        self,
        pool,
        bans: BanRepository,
        audit_log: AuditLogRepository,
        requests: Optional[RequestRepository] = None,
    ):
        self._pool = pool
        self._bans = bans
        self._audit = AuditLogger(audit_log)
        self._requests = requests or RequestRepository(pool)

    @classmethod
    def from_pool(cls, pool) -> "BanService":
        return cls(pool, BanRepository(pool), AuditLogRepository(pool), RequestRepository(pool))

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Any]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def list_active(self) -> list[Ban]:
        return await self._bans.list_active()

    async def resolve_target(
        self, ban_type: Optional[str], request_id: Optional[int], settings: Settings
    ) -> BanFormDefaults:
        """
        Work out the ban target for a request.

        The email, name or trusted client IP of the request, depending on
        the ban type. Unknown types and missing requests give empty
        defaults rather than an error.
        """
        if ban_type not in BAN_TYPES or not request_id:
            return BanFormDefaults()

        request = await self._requests.get(request_id)
        if request is None:
            logger.info("ban_target_request_not_found", request_id=request_id)
            return BanFormDefaults(ban_type=ban_type)

        return BanFormDefaults(
            ban_type=ban_type,
            target=self._target_for(ban_type, request, settings.protected_proxies),
        )

    @staticmethod
    def _target_for(
        ban_type: str, request: AccountRequest, trusted_proxies: list[str]
    ) -> str:
        if ban_type == "EMail":
            return request.email or ""
        if ban_type == "IP":
            return trusted_client_ip(request.ip, request.forwarded_ip, trusted_proxies)
        return request.name or ""

    async def set_ban(
        self,
        ctx: RequestContext,
        ban_type: Optional[str],
        target: Optional[str],
        reason: Optional[str],
        duration: Optional[str],
        other_duration: Optional[str] = None,
        notifier: Optional[IrcNotificationHelper] = None,
    ) -> Ban:
        """
        Ban a target.

        Raises:
            ValidationError: If any input is missing or invalid, or the
                target is already actively banned
        """
        if reason is None or not reason.strip():
            raise ValidationError("You must specify a ban reason")
        if target is None or not target.strip():
            raise ValidationError("You must specify a target to be banned")
        target = target.strip()

        expiry = resolve_duration(duration, other_duration)
        validate_target(ban_type, target, ctx.settings.protected_proxies)

        ban = Ban(
            type=ban_type,
            target=target,
            user_id=ctx.user_id,
            reason=reason,
            duration=expiry,
        )
        async with self._transaction() as conn:
            await self._bans.lock_target(target, conn=conn)
            if await self._bans.list_active(target=target, conn=conn):
                raise ValidationError("This target is already banned!")
            await self._bans.insert(ban, conn=conn)
            await self._audit.banned(ban, reason, ctx.user_id, conn=conn)

        logger.info(
            "ban_set",
            ban_id=ban.id,
            ban_type=ban.type,
            duration=ban.duration,
            user_id=ctx.user_id,
        )
        if notifier is not None:
            await notifier.banned(ban)
        return ban

    async def remove_ban(
        self,
        ctx: RequestContext,
        ban_id: Optional[int],
        reason: Optional[str],
        update_version: Optional[int],
        notifier: Optional[IrcNotificationHelper] = None,
    ) -> Ban:
        """
        Lift an active ban.

        Raises:
            NotFoundError: If the ban is missing or no longer active
            ValidationError: If no reason or version was supplied
            OptimisticLockConflictError: If the ban changed since it was read
        """
        if not ban_id:
            raise NotFoundError("The ban ID appears to be missing")
        ban = await self._bans.get(ban_id)
        if ban is None or not ban.active:
            raise NotFoundError("The specified ban is not currently active, or doesn't exist.")
        if reason is None or not reason.strip():
            raise ValidationError("No unban reason specified")
        if update_version is None:
            raise ValidationError("update_version is required")

        async with self._transaction() as conn:
            await self._bans.deactivate(ban, expected_version=update_version, conn=conn)
            await self._audit.unbanned(ban, reason, ctx.user_id, conn=conn)

        logger.info("ban_removed", ban_id=ban.id, user_id=ctx.user_id)
        if notifier is not None:
            await notifier.unbanned(ban, reason)
        return ban
