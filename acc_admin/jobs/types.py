"""Job queue type definitions."""

from enum import Enum


class JobStatus(str, Enum):
    """Job lifecycle statuses.

    Jobs are created READY. The external job runner moves them through
    WAITING -> RUNNING -> COMPLETE or FAILED. Operators may HOLD or
    CANCEL them, and FAILED jobs are either acknowledged or requeued.
    """

    READY = "ready"
    WAITING = "waiting"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"
    HELD = "held"

    @property
    def is_terminal(self) -> bool:
        """Check if the runner will never touch a job in this status again."""
        return self in (JobStatus.COMPLETE, JobStatus.FAILED, JobStatus.CANCELLED)


STATUS_DESCRIPTIONS: dict[JobStatus, str] = {
    JobStatus.CANCELLED: "The job was cancelled",
    JobStatus.COMPLETE: "The job completed successfully",
    JobStatus.FAILED: "The job encountered an error",
    JobStatus.READY: "The job is ready to be picked up by the next job runner execution",
    JobStatus.RUNNING: "The job is being run right now by the job runner",
    JobStatus.WAITING: "The job has been picked up by a job runner",
    JobStatus.HELD: "The job has manually held from processing",
}

# Task key -> human description
TASK_DESCRIPTIONS: dict[str, str] = {
    "BotCreationTask": "Create account (via bot)",
    "UserCreationTask": "Create account (via OAuth)",
    "WelcomeUserTask": "Welcome user",
}

# Statuses shown on the queue dashboard (still needing operator attention)
ATTENTION_STATUSES: tuple[JobStatus, ...] = (
    JobStatus.READY,
    JobStatus.WAITING,
    JobStatus.RUNNING,
    JobStatus.FAILED,
)
