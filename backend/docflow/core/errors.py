"""Workflow error taxonomy.

Each error carries the HTTP status it maps to so the API layer can render
it without a lookup table. ``retryable`` tells callers whether repeating
the same request later may succeed.
"""
from typing import Any


class WorkflowError(Exception):
    status_code: int = 400
    code: str = "workflow_error"
    retryable: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(WorkflowError):
    """Malformed input, empty approver set, self-approval, bad flow type, missing comment."""

    status_code = 400
    code = "validation_error"


class ForbiddenError(WorkflowError):
    """Actor is not entitled to act (wrong actor, terminal flow, role)."""

    status_code = 403
    code = "forbidden"


class NotFoundError(WorkflowError):
    status_code = 404
    code = "not_found"


class ConflictError(WorkflowError):
    """Lost a concurrent race, double action, or an active flow already exists."""

    status_code = 409
    code = "conflict"


class FlowTimeoutError(WorkflowError):
    """The flow was built but is not yet readable; confirmation is pending."""

    status_code = 504
    code = "flow_pending_confirmation"
    retryable = True
