"""Workflow-related enums."""

from enum import Enum


class WorkflowTrigger(str, Enum):
    """Events that start a workflow."""

    SUBMISSION = "submission"


class WorkflowExecutionStatus(str, Enum):
    """Lifecycle of a workflow execution."""

    PENDING = "pending"
    RUNNING = "running"
    WAITING_APPROVAL = "waiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


class WorkflowNodeType(str, Enum):
    """Node types understood by the workflow engine."""

    START = "start"
    END = "end"
    API_CALL = "api_call"
    APPROVAL = "approval"
    CONDITION = "condition"
    TRANSFORM = "transform"
    EMAIL = "email"
    DELAY = "delay"


class ApprovalStatus(str, Enum):
    """Status of an approval request raised by a workflow."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class WorkflowConditionOperator(str, Enum):
    """Operators for condition nodes."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


class TransformOperation(str, Enum):
    """Operations for transform nodes."""

    COPY = "copy"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TRIM = "trim"
    JSON_ENCODE = "json_encode"
    JSON_DECODE = "json_decode"
