"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    WORKFLOW_STEP = "workflow_step"  # Execute the current node of a workflow execution
    SEND_EMAIL = "send_email"  # Deliver a queued mail message


class JobStatus(str, Enum):
    """Status of background jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
