"""Best-effort IRC notifications.

Messages are written to the notification table, from which a relay bot
posts them to IRC. Delivery must never block the primary operation.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from acc_admin.config import Settings
from acc_admin.jobs.models import Job
from acc_admin.repositories.bans import Ban
from acc_admin.repositories.notifications import NotificationRepository

logger = structlog.get_logger(__name__)

# IRC control codes
IRC_BOLD = "\x02"
IRC_RESET = "\x0f"

BLACKLIST = ("DCC", "CCTP", "PRIVMSG")
BLACKLIST_REPLACEMENT = "(IRC Blacklist)"


class IrcNotificationHelper:
    """
    Request-scoped notification sender.

    The first delivery failure disables notifications for the remainder
    of the request; the exception is logged and suppressed.
    """

    def __init__(
        self,
        settings: Settings,
        repo: Optional[NotificationRepository],
        current_username: str,
    ):
        self._repo = repo
        self._notification_type = settings.irc_notification_type
        self._instance = settings.irc_instance_name
        self._current_username = current_username
        self.enabled = settings.irc_notifications_enabled and repo is not None

    def format_message(self, message: str) -> str:
        for token in BLACKLIST:
            message = message.replace(token, BLACKLIST_REPLACEMENT)
        return f"{IRC_RESET}{IRC_BOLD}[{self._instance}]{IRC_RESET}: {message}"

    async def send(self, message: str) -> bool:
        """Send a notification. Returns True if it was written."""
        if not self.enabled:
            return False

        try:
            await self._repo.insert(self._notification_type, self.format_message(message))
        except Exception as e:
            self.enabled = False
            logger.warning("irc_notification_failed_disabling", error=str(e))
            return False
        return True

    async def job_acknowledged(self, job: Job) -> bool:
        return await self.send(
            f"Job {job.id} ({job.task}) acknowledged by {self._current_username}"
        )

    async def job_requeued(self, job: Job) -> bool:
        return await self.send(
            f"Job {job.id} ({job.task}) requeued by {self._current_username}"
        )

    async def banned(self, ban: Ban) -> bool:
        if ban.is_indefinite:
            until = "indefinitely"
        else:
            expiry = datetime.fromtimestamp(ban.duration, tz=timezone.utc)
            until = f"until {expiry:%Y-%m-%d %H:%M} UTC"
        return await self.send(
            f"{ban.target} banned by {self._current_username} for '{ban.reason}' {until}"
        )

    async def unbanned(self, ban: Ban, reason: str) -> bool:
        return await self.send(
            f"{ban.target} unbanned by {self._current_username} ({reason})"
        )
