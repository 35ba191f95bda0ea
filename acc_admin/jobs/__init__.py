"""Background job queue domain: statuses, task types and the Job record."""

from acc_admin.jobs.models import Job
from acc_admin.jobs.types import (
    ATTENTION_STATUSES,
    JobStatus,
    STATUS_DESCRIPTIONS,
    TASK_DESCRIPTIONS,
)

__all__ = [
    "ATTENTION_STATUSES",
    "Job",
    "JobStatus",
    "STATUS_DESCRIPTIONS",
    "TASK_DESCRIPTIONS",
]
