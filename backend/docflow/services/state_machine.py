"""Flow state machine: applies one approve/reject decision to one step.

Pure in-memory transition over ORM objects. It never touches the session;
the caller commits the mutated flow together with the document update in
one transaction (see ``services.approval.act_on_document``).

Standard flows are strictly sequential: approving the current step moves
``current_step`` forward, approving the last step approves the flow, and a
rejection anywhere rejects the flow. Quick flows are decided by the first
step that leaves ``pending``; the remaining steps stay ``pending`` but are
unreachable once the flow is terminal.
"""
import enum
import logging
import uuid
from datetime import datetime

from docflow.core.errors import ConflictError, ForbiddenError, ValidationError
from docflow.db.base import utcnow
from docflow.models.approval_flow import (
    ApprovalAction,
    ApprovalFlow,
    ApprovalStatus,
    FlowType,
)

logger = logging.getLogger(__name__)


class ActionOutcome(str, enum.Enum):
    advanced = "advanced"
    approved = "approved"
    rejected = "rejected"


def parse_action(action: str) -> ApprovalAction:
    try:
        return ApprovalAction(action)
    except ValueError:
        raise ValidationError(
            f"Invalid action '{action}'. Must be 'approve' or 'reject'."
        ) from None


def apply_action(
    flow: ApprovalFlow,
    step_order: int,
    actor_id: uuid.UUID,
    action: str,
    comment: str | None = None,
    now: datetime | None = None,
) -> tuple[ApprovalFlow, ActionOutcome]:
    """Apply ``action`` by ``actor_id`` to the step at ``step_order``.

    Returns the mutated flow and the outcome tag the status synchronizer
    consumes.

    Raises:
        ValidationError: unknown action, unknown step, or reject without comment.
        ConflictError: flow already terminal or step no longer pending
            (includes re-applying an action that already took effect).
        ForbiddenError: actor is not the step's approver, or the step is not
            the current one of a standard flow.
    """
    decision = parse_action(action)

    step = flow.get_step(step_order)
    if step is None:
        raise ValidationError(f"Flow {flow.id} has no step {step_order}.")

    if flow.is_terminal:
        raise ConflictError(f"Flow {flow.id} is already {flow.status}.")
    if step.status != ApprovalStatus.pending.value:
        raise ConflictError(
            f"Step {step_order} of flow {flow.id} is already {step.status}."
        )
    if str(step.approver_id) != str(actor_id):
        raise ForbiddenError(f"Actor {actor_id} is not the approver of step {step_order}.")
    if flow.flow_type == FlowType.standard.value and step_order != flow.current_step:
        raise ForbiddenError(
            f"Step {step_order} is not actionable; flow {flow.id} is at step {flow.current_step}."
        )

    comment = (comment or "").strip() or None
    if decision is ApprovalAction.reject and comment is None:
        raise ValidationError("A comment is required when rejecting.")

    now = now or utcnow()
    step.comment = comment
    step.action_date = now
    flow.updated_at = now

    if decision is ApprovalAction.reject:
        step.status = ApprovalStatus.rejected.value
        flow.status = ApprovalStatus.rejected.value
        outcome = ActionOutcome.rejected
    else:
        step.status = ApprovalStatus.approved.value
        if flow.flow_type == FlowType.quick.value or step_order == len(flow.steps):
            flow.status = ApprovalStatus.approved.value
            outcome = ActionOutcome.approved
        else:
            flow.current_step = step_order + 1
            outcome = ActionOutcome.advanced

    logger.info(
        "Flow transition: flow=%s type=%s step=%s actor=%s action=%s outcome=%s",
        flow.id, flow.flow_type, step_order, actor_id, decision.value, outcome.value,
    )
    return flow, outcome
