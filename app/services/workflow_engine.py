"""Workflow engine - runs node/edge workflows one step per queued job.

Execution status is an explicit state machine:

    pending -> running
    running -> waiting_approval | completed | failed | stopped
    waiting_approval -> running | failed | stopped

Every transition appends to the execution log. Retries belong to the job
queue; the engine only advances or terminates executions.
"""

from __future__ import annotations

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any

import httpx
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import InvalidTransitionError, SsrfBlockedError
from app.core.url_validation import validate_outbound_url
from app.db.enums import (
    ApprovalStatus,
    TransformOperation,
    WorkflowConditionOperator,
    WorkflowExecutionStatus,
    WorkflowNodeType,
    WorkflowTrigger,
)
from app.db.models import ApprovalRequest, FormSubmission, Workflow, WorkflowExecution
from app.jobs.handlers import workflows as workflow_jobs
from app.jobs.utils import mask_email, safe_url
from app.services import audit_service, email_sender, email_template_service
from app.services.email_sender import MailMessage
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

Status = WorkflowExecutionStatus

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    Status.PENDING.value: frozenset({Status.RUNNING.value}),
    Status.RUNNING.value: frozenset(
        {
            Status.WAITING_APPROVAL.value,
            Status.COMPLETED.value,
            Status.FAILED.value,
            Status.STOPPED.value,
        }
    ),
    Status.WAITING_APPROVAL.value: frozenset(
        {Status.RUNNING.value, Status.FAILED.value, Status.STOPPED.value}
    ),
}
TERMINAL_STATUSES = frozenset({Status.COMPLETED.value, Status.FAILED.value, Status.STOPPED.value})

MAX_API_TIMEOUT_SECONDS = 600
DEFAULT_API_TIMEOUT_SECONDS = 30
ASYNC_API_TIMEOUT_SECONDS = 5
# Retry pauses block the worker loop; cap on total pause per api_call step
MAX_API_RETRY_SLEEP_SECONDS = 60
DEFAULT_DELAY_SECONDS = 5
MAX_DELAY_SECONDS = 3600
SENSITIVE_HEADERS = frozenset({"authorization", "x-api-key", "api-key", "token", "x-token"})
BODY_METHODS = frozenset({"post", "put", "patch"})

_VARIABLE_RE = re.compile(r"\{\{([^}]+)\}\}")
_MISSING = object()


@dataclass
class StepResult:
    success: bool = True
    wait: bool = False
    branch: str | None = None
    delay: int = 0
    error: str | None = None


# =============================================================================
# Context helpers
# =============================================================================

def get_path(data: Any, path: str, default: Any = None) -> Any:
    """Dotted lookup through dicts and lists ("submission.items.0.name")."""
    if not path:
        return data
    current = data
    for segment in path.split("."):
        if isinstance(current, dict) and segment in current:
            current = current[segment]
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return default
    return current


def set_path(data: dict, path: str, value: Any) -> None:
    """Dotted assignment, creating intermediate dicts."""
    if not path:
        return
    segments = path.split(".")
    current = data
    for segment in segments[:-1]:
        nested = current.get(segment)
        if not isinstance(nested, dict):
            nested = {}
            current[segment] = nested
        current = nested
    current[segments[-1]] = value


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def replace_variables(template: str, context: dict) -> str:
    """Replace {{ dotted.path }} tokens from context; unknown tokens stay as-is."""

    def replace_var(match: re.Match) -> str:
        value = get_path(context, match.group(1).strip(), _MISSING)
        if value is _MISSING:
            return match.group(0)
        return _stringify(value)

    return _VARIABLE_RE.sub(replace_var, template or "")


def replace_variables_in_mapping(items: dict, context: dict) -> dict[str, str]:
    """Template header names and values; names lose stray colons/whitespace."""
    result = {}
    for key, value in (items or {}).items():
        sanitized_key = replace_variables(str(key), context).strip().rstrip(":")
        if sanitized_key:
            result[sanitized_key] = replace_variables(_stringify(value), context)
    return result


def context_keys(data: dict, prefix: str = "") -> list[str]:
    keys = []
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            keys.extend(context_keys(value, full_key))
        else:
            keys.append(f"{{{full_key}}}")
    return keys


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0 or value == "0"
    if isinstance(value, (int, float)):
        return value == 0
    return False


def _to_number(value: Any) -> float:
    return float(value if value not in (None, "") else 0)


def evaluate_condition(operator: str, field_value: Any, compare_value: str) -> bool:
    """Evaluate a single condition node comparison."""
    if operator == WorkflowConditionOperator.EQUALS.value:
        return _stringify(field_value) == compare_value

    if operator == WorkflowConditionOperator.NOT_EQUALS.value:
        return _stringify(field_value) != compare_value

    if operator == WorkflowConditionOperator.CONTAINS.value:
        return compare_value in _stringify(field_value)

    if operator == WorkflowConditionOperator.IS_EMPTY.value:
        return _is_empty(field_value)

    if operator == WorkflowConditionOperator.IS_NOT_EMPTY.value:
        return not _is_empty(field_value)

    if operator == WorkflowConditionOperator.GREATER_THAN.value:
        try:
            return _to_number(field_value) > _to_number(compare_value)
        except (TypeError, ValueError):
            return _stringify(field_value) > compare_value

    if operator == WorkflowConditionOperator.LESS_THAN.value:
        try:
            return _to_number(field_value) < _to_number(compare_value)
        except (TypeError, ValueError):
            return _stringify(field_value) < compare_value

    return False


def apply_transform(operation: str, value: Any) -> Any:
    if operation == TransformOperation.UPPERCASE.value:
        return _stringify(value).upper()
    if operation == TransformOperation.LOWERCASE.value:
        return _stringify(value).lower()
    if operation == TransformOperation.TRIM.value:
        return _stringify(value).strip()
    if operation == TransformOperation.JSON_ENCODE.value:
        return json.dumps(value, ensure_ascii=False)
    if operation == TransformOperation.JSON_DECODE.value:
        try:
            return json.loads(value) if isinstance(value, str) else None
        except ValueError:
            return None
    # copy and unknown operations pass the value through
    return value


def _find_node(workflow: Workflow, node_id: str | None) -> dict | None:
    if node_id is None:
        return None
    return next((node for node in workflow.nodes or [] if node.get("id") == node_id), None)


def _first_edge(workflow: Workflow, source_id: str, branch: str | None = None) -> dict | None:
    for edge in workflow.edges or []:
        if edge.get("source") != source_id:
            continue
        if branch is not None and (edge.get("sourceHandle") or "default") != branch:
            continue
        return edge
    return None


def _masked_headers(headers: dict[str, str]) -> dict[str, str]:
    return {
        key: (value[:10] + "***MASKED***") if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


class WorkflowEngine:
    """
    Executes workflow graphs for form submissions.

    Each step runs inside a WORKFLOW_STEP job; the engine schedules the next
    job itself after a step succeeds.
    """

    def __init__(self, http_transport: httpx.BaseTransport | None = None) -> None:
        self.http_transport = http_transport

    # -------------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------------

    def transition(
        self,
        execution: WorkflowExecution,
        target: WorkflowExecutionStatus,
        message: str,
        data: dict | None = None,
    ) -> None:
        """Move execution to target status, or raise InvalidTransitionError."""
        current = execution.status
        if target.value not in ALLOWED_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(current, target.value)

        execution.status = target.value
        if target == Status.RUNNING and execution.started_at is None:
            execution.started_at = utcnow()
        if target.value in TERMINAL_STATUSES:
            execution.completed_at = utcnow()
        execution.add_log(message, data)

    def complete(self, db: Session, execution: WorkflowExecution) -> None:
        self.transition(execution, Status.COMPLETED, "Workflow completed")
        audit_service.log_workflow_executed(db, execution)

    def fail(self, db: Session, execution: WorkflowExecution, message: str) -> None:
        self.transition(execution, Status.FAILED, message)
        self._close_pending_approvals(db, execution)
        audit_service.log_workflow_executed(db, execution)

    def stop(self, db: Session, execution: WorkflowExecution, message: str = "Workflow stopped") -> None:
        self.transition(execution, Status.STOPPED, message)
        self._close_pending_approvals(db, execution)
        audit_service.log_workflow_executed(db, execution)

    def _close_pending_approvals(self, db: Session, execution: WorkflowExecution) -> None:
        """Reject approval links still open on a finished execution."""
        pending = (
            db.query(ApprovalRequest)
            .filter(
                ApprovalRequest.workflow_execution_id == execution.id,
                ApprovalRequest.status == ApprovalStatus.PENDING.value,
            )
            .all()
        )
        for approval in pending:
            # Sessions do not autoflush; an answer set in memory wins
            if approval.status != ApprovalStatus.PENDING.value:
                continue
            approval.status = ApprovalStatus.REJECTED.value
            approval.responded_at = utcnow()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def trigger_for_submission(self, db: Session, submission: FormSubmission) -> list[WorkflowExecution]:
        """Start every active submission-triggered workflow bound to the form."""
        workflows = (
            db.query(Workflow)
            .filter(
                Workflow.form_id == submission.form_id,
                Workflow.is_active.is_(True),
                Workflow.trigger_on == WorkflowTrigger.SUBMISSION.value,
            )
            .all()
        )
        return [self.start_execution(db, workflow, submission) for workflow in workflows]

    def start_execution(
        self, db: Session, workflow: Workflow, submission: FormSubmission
    ) -> WorkflowExecution:
        user = submission.user
        execution = WorkflowExecution(
            workflow_id=workflow.id,
            submission_id=submission.id,
            status=Status.PENDING.value,
            context={
                "submission": submission.data or {},
                "form": {
                    "id": str(submission.form_id),
                    "name": submission.form.name if submission.form else None,
                },
                "user": (
                    {
                        "id": str(user.id),
                        "name": user.name,
                        "email": user.email,
                        "login": user.login,
                    }
                    if user
                    else None
                ),
            },
            logs=[],
        )
        execution.workflow = workflow
        db.add(execution)
        db.flush()

        self.transition(execution, Status.RUNNING, "Workflow started")

        start_node = next(
            (node for node in workflow.nodes or [] if node.get("type") == WorkflowNodeType.START.value),
            None,
        )
        if start_node:
            first_edge = _first_edge(workflow, start_node["id"])
            if first_edge:
                execution.current_node_id = first_edge["target"]
                workflow_jobs.dispatch_workflow_step(db, execution)

        db.commit()
        logger.info("Workflow execution started execution_id=%s workflow_id=%s", execution.id, workflow.id)
        return execution

    def continue_execution(self, db: Session, execution: WorkflowExecution) -> None:
        """Resume after an approval was granted."""
        self.transition(execution, Status.RUNNING, "Continuing after approval")

        next_edge = _first_edge(execution.workflow, execution.current_node_id)
        if next_edge:
            execution.current_node_id = next_edge["target"]
            workflow_jobs.dispatch_workflow_step(db, execution)
        else:
            self.complete(db, execution)
        db.commit()

    def execute_step(self, db: Session, execution: WorkflowExecution) -> None:
        """Run the current node, then schedule the next one or finish."""
        if execution.status != Status.RUNNING.value:
            logger.info(
                "Skipping workflow step execution_id=%s status=%s", execution.id, execution.status
            )
            return

        workflow = execution.workflow
        node = _find_node(workflow, execution.current_node_id)
        if node is None or node.get("type") == WorkflowNodeType.END.value:
            self.complete(db, execution)
            db.commit()
            return

        label = (node.get("data") or {}).get("label") or node.get("type")
        execution.add_log(f"Executing step: {label}")

        try:
            result = self.execute_node(db, execution, node)
            if not result.wait:
                next_edge = _first_edge(workflow, node["id"], result.branch)
                if next_edge:
                    execution.current_node_id = next_edge["target"]
                    workflow_jobs.dispatch_workflow_step(db, execution, delay_seconds=result.delay)
                else:
                    self.complete(db, execution)
        except Exception as exc:
            logger.exception("Workflow step failed execution_id=%s node=%s", execution.id, node.get("id"))
            self.fail(db, execution, f"Error: {exc}")

        db.commit()

    def test_workflow(self, workflow: Workflow, test_data: dict) -> dict[str, Any]:
        """Dry run: list the steps reached by following first edges."""
        steps = []
        context = {"submission": test_data}

        start_node = next(
            (node for node in workflow.nodes or [] if node.get("type") == WorkflowNodeType.START.value),
            None,
        )
        current_id = None
        if start_node:
            first_edge = _first_edge(workflow, start_node["id"])
            current_id = first_edge["target"] if first_edge else None

        visited: set[str] = set()
        while current_id and current_id not in visited:
            visited.add(current_id)
            node = _find_node(workflow, current_id)
            if node is None or node.get("type") == WorkflowNodeType.END.value:
                break
            data = node.get("data") or {}
            steps.append(
                {
                    "node_id": current_id,
                    "type": node.get("type"),
                    "label": data.get("label") or node.get("type"),
                    "config": data,
                }
            )
            next_edge = _first_edge(workflow, current_id)
            current_id = next_edge["target"] if next_edge else None

        return {"steps": steps, "context": context}

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def execute_node(self, db: Session, execution: WorkflowExecution, node: dict) -> StepResult:
        node_type = node.get("type")
        if node_type == WorkflowNodeType.API_CALL.value:
            return self._execute_api_call(execution, node)
        if node_type == WorkflowNodeType.APPROVAL.value:
            return self._execute_approval(db, execution, node)
        if node_type == WorkflowNodeType.CONDITION.value:
            return self._execute_condition(execution, node)
        if node_type == WorkflowNodeType.TRANSFORM.value:
            return self._execute_transform(execution, node)
        if node_type == WorkflowNodeType.EMAIL.value:
            return self._execute_email(db, execution, node)
        if node_type == WorkflowNodeType.DELAY.value:
            return self._execute_delay(execution, node)
        return StepResult()

    def _http_client(self, timeout: float, verify: bool = True) -> httpx.Client:
        return httpx.Client(timeout=timeout, verify=verify, transport=self.http_transport)

    def _send(self, client: httpx.Client, method: str, url: str, headers: dict, body_data: Any) -> httpx.Response:
        if method in BODY_METHODS:
            return client.request(method.upper(), url, headers=headers, json=body_data)
        return client.request(method.upper(), url, headers=headers)

    def _execute_api_call(self, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        context = dict(execution.context or {})
        execution.add_log("Available variables: " + ", ".join(context_keys(context)))

        url = replace_variables(config.get("url") or "", context)
        method = (config.get("method") or "get").lower()
        headers = replace_variables_in_mapping(config.get("headers") or {}, context)
        body = replace_variables(config.get("body") or "", context)
        timeout = min(int(config.get("timeout") or DEFAULT_API_TIMEOUT_SECONDS), MAX_API_TIMEOUT_SECONDS)
        is_async = bool(config.get("async", False))
        insecure = bool(config.get("insecure", False))
        retry_count = max(int(config.get("retry_count") or 0), 0)
        retry_delay = max(int(config.get("retry_delay", 5) or 0), 0)

        try:
            url = validate_outbound_url(url)
        except SsrfBlockedError as exc:
            execution.add_log(f"SSRF protection: {exc} - URL: {safe_url(url)}")
            return StepResult(success=False, error=f"SSRF protection: {exc}")

        flags = (" (async)" if is_async else "") + (" (insecure)" if insecure else "")
        execution.add_log(f"API call: {method.upper()} {safe_url(url)}{flags} [timeout: {timeout}s]")
        execution.add_log(
            "Request headers: " + json.dumps(_masked_headers(headers), ensure_ascii=False)
        )

        try:
            body_data = json.loads(body) if body else {}
        except ValueError:
            body_data = {}
        if body and method in BODY_METHODS:
            execution.add_log(f"Request body: {body}")

        if is_async:
            # Fire and forget: the response is not waited for or stored
            try:
                with self._http_client(ASYNC_API_TIMEOUT_SECONDS, verify=False) as client:
                    self._send(client, method, url, headers, body_data)
                execution.add_log("Async API call sent (response not awaited)")
            except httpx.HTTPError as exc:
                execution.add_log(f"Async API call sent (error ignored: {type(exc).__name__})")
            return StepResult()

        max_attempts = retry_count + 1
        slept = 0
        for attempt in range(1, max_attempts + 1):
            try:
                with self._http_client(timeout, verify=not insecure) as client:
                    response = self._send(client, method, url, headers, body_data)
            except httpx.HTTPError as exc:
                execution.add_log(f"API error (attempt {attempt}/{max_attempts}): {exc}")
                if attempt >= max_attempts:
                    self._store_api_response(
                        execution, {"status": 0, "error": str(exc), "body": None}
                    )
                    return StepResult(success=False, error=str(exc))
            else:
                try:
                    response_body = response.json()
                except ValueError:
                    response_body = response.text
                success = response.is_success
                suffix = f" (attempt {attempt})" if attempt > 1 else ""
                execution.add_log(
                    f"API response: {response.status_code}{suffix}",
                    {"status": response.status_code, "body": response_body},
                )
                self._store_api_response(
                    execution, {"status": response.status_code, "body": response_body}
                )
                if success or attempt >= max_attempts:
                    return StepResult(success=success)

            pause = min(retry_delay, MAX_API_RETRY_SLEEP_SECONDS - slept)
            if pause > 0:
                time.sleep(pause)
                slept += pause

        return StepResult(success=False)

    def _store_api_response(self, execution: WorkflowExecution, response: dict) -> None:
        # Reassign so the JSON column is flagged dirty.
        execution.context = {**(execution.context or {}), "last_api_response": response}

    def _execute_approval(self, db: Session, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        approver_email = replace_variables(config.get("approver_email") or "", execution.context or {})

        approval = ApprovalRequest(
            workflow_execution_id=execution.id,
            node_id=node["id"],
            approver_email=approver_email,
        )
        db.add(approval)
        db.flush()

        self.transition(
            execution, Status.WAITING_APPROVAL, f"Waiting for approval from: {approver_email}"
        )

        approval_url = f"{settings.APP_URL.rstrip('/')}/approvals/{approval.token}"
        text = (
            "Bola vám priradená žiadosť na schválenie.\n\n"
            "Kliknutím na odkaz môžete schváliť alebo zamietnuť:\n"
            f"{approval_url}"
        )
        email_sender.send_email(
            approver_email,
            MailMessage(subject="Žiadosť o schválenie", html="", text=text),
        )
        logger.info(
            "Approval requested execution_id=%s approver=%s", execution.id, mask_email(approver_email)
        )
        return StepResult(wait=True)

    def _execute_condition(self, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        context = execution.context or {}
        field = config.get("field") or ""
        operator = config.get("operator") or WorkflowConditionOperator.EQUALS.value
        value = _stringify(config.get("value", ""))

        field_value = get_path(context, field)
        result = evaluate_condition(operator, field_value, replace_variables(value, context))

        execution.add_log(f"Condition: {field} {operator} {value} = {'true' if result else 'false'}")
        return StepResult(branch="true" if result else "false")

    def _execute_transform(self, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        context = json.loads(json.dumps(execution.context or {}))

        for transform in config.get("transformations") or []:
            source_value = get_path(context, transform.get("source") or "")
            operation = transform.get("operation") or TransformOperation.COPY.value
            set_path(context, transform.get("target") or "", apply_transform(operation, source_value))

        execution.context = context
        execution.add_log("Transformation applied")
        return StepResult()

    def _execute_email(self, db: Session, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        context = execution.context or {}

        to = replace_variables(config.get("to") or "", context).strip()
        if not to:
            to = get_path(context, "user.email") or ""
        if not to:
            execution.add_log("Email not sent - missing recipient")
            return StepResult(success=False)

        template_id = config.get("template_id")
        if template_id:
            template = email_template_service.get_template(db, _coerce_uuid(template_id))
            if template is None:
                execution.add_log(f"Email not sent - template {template_id} does not exist")
                return StepResult(success=False)
            if execution.submission is None:
                execution.add_log("Email not sent - execution has no submission")
                return StepResult(success=False)

            message = MailMessage(
                subject=email_template_service.render_subject(template, execution.submission),
                html=email_template_service.render_html(template, execution.submission),
                text=email_template_service.render_text(template, execution.submission),
            )
            email_sender.send_email(to, message)
            execution.add_log(f"Email sent to: {mask_email(to)} (template: {template.name})")
        else:
            subject = replace_variables(config.get("subject") or "Notifikácia", context)
            body = replace_variables(config.get("body") or "", context)
            email_sender.send_email(to, MailMessage(subject=subject, html="", text=body))
            execution.add_log(f"Email sent to: {mask_email(to)}")

        return StepResult()

    def _execute_delay(self, execution: WorkflowExecution, node: dict) -> StepResult:
        config = node.get("data") or {}
        configured = config.get("delay_seconds")
        delay_seconds = DEFAULT_DELAY_SECONDS if configured is None else int(configured)
        delay_seconds = min(max(delay_seconds, 0), MAX_DELAY_SECONDS)
        execution.add_log(f"Waiting: {delay_seconds} seconds (scheduled)")
        return StepResult(delay=delay_seconds)


def _coerce_uuid(value: Any) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


# Singleton instance
engine = WorkflowEngine()
