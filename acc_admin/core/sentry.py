"""Sentry initialization."""

import os
from typing import Optional

import sentry_sdk
import structlog
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from acc_admin import __version__
from acc_admin.config import Settings
from acc_admin.core.errors import AppError, ErrorKind

logger = structlog.get_logger(__name__)


def _before_send(event: dict, hint: dict) -> Optional[dict]:
    """
    Drop client errors.

    4xx responses and user-facing domain errors (not found, conflicts,
    validation) are expected traffic. Unsupported-operation errors are
    defects and are kept.
    """
    if "exc_info" in hint:
        _exc_type, exc_value, _tb = hint["exc_info"]
        if isinstance(exc_value, AppError):
            if exc_value.kind != ErrorKind.UNSUPPORTED_OPERATION:
                return None
        elif hasattr(exc_value, "status_code") and 400 <= exc_value.status_code < 500:
            return None

    response = event.get("contexts", {}).get("response", {})
    if 400 <= response.get("status_code", 0) < 500:
        return None

    return event


def init_sentry(settings: Settings) -> bool:
    """
    Initialize Sentry if a DSN is configured.

    Returns True if Sentry was initialized.
    """
    if not settings.sentry_dsn:
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=os.environ.get("GIT_SHA", f"acc-admin@{__version__}"),
        integrations=[
            LoggingIntegration(level=None, event_level="ERROR"),
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        traces_sample_rate=settings.sentry_traces_sample_rate,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
        send_default_pii=False,
        attach_stacktrace=True,
        before_send=_before_send,
    )
    sentry_sdk.set_tag("service", "acc-admin")
    sentry_sdk.set_tag("instance", settings.irc_instance_name)

    logger.info(
        "sentry_initialized",
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    return True
