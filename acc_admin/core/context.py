"""Per-request execution context passed explicitly into operations."""

from dataclasses import dataclass

from acc_admin.config import Settings


@dataclass(frozen=True)
class RequestContext:
    """Who is acting, and under which configuration.

    Built once per request by the admin dependencies; services never look
    up the current user or site configuration on their own.
    """

    user_id: int
    username: str
    settings: Settings
