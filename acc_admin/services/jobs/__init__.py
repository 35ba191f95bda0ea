"""Job queue operator workflows."""

from acc_admin.services.jobs.lifecycle import (
    ActionResult,
    JobLifecycleService,
    JobListing,
    JobView,
    can_acknowledge,
    can_requeue,
)

__all__ = [
    "ActionResult",
    "JobLifecycleService",
    "JobListing",
    "JobView",
    "can_acknowledge",
    "can_requeue",
]
