"""Job queue data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from acc_admin.jobs.types import JobStatus


@dataclass
class Job:
    """A background job record.

    ``acknowledged`` is tri-state: None means nobody has decided yet.
    ``update_version`` mirrors the stored optimistic-lock counter and is
    bumped in place by the repository after every successful update.
    """

    task: str
    status: JobStatus = JobStatus.READY
    trigger_user_id: Optional[int] = None
    request_id: Optional[int] = None
    email_template_id: Optional[int] = None
    parent_id: Optional[int] = None
    parameters: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    acknowledged: Optional[bool] = None
    enqueue: Optional[datetime] = None
    update_version: int = 0
    id: Optional[int] = field(default=None)

    @property
    def is_new(self) -> bool:
        """True until the record has been inserted."""
        return self.id is None

    @classmethod
    def from_row(cls, row) -> "Job":
        """Create from database row."""
        return cls(
            id=row["id"],
            task=row["task"],
            status=JobStatus(row["status"]),
            trigger_user_id=row["user_id"],
            request_id=row["request_id"],
            email_template_id=row["email_template_id"],
            parent_id=row["parent_id"],
            parameters=row["parameters"],
            error=row["error"],
            acknowledged=row["acknowledged"],
            enqueue=row["enqueue"],
            update_version=row["update_version"],
        )
