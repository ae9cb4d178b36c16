"""Form-related enums."""

from enum import Enum


class SubmissionStatus(str, Enum):
    """Review state of a form submission."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
