"""Step authorization gate.

``can_act`` decides, without side effects, whether an actor may approve or
reject right now. The API uses it for UI gating and the action path
re-evaluates it inside the same transaction that commits the decision.
"""
import enum
import uuid
from dataclasses import dataclass

from docflow.core.errors import ConflictError, ForbiddenError, WorkflowError
from docflow.models.approval_flow import ApprovalAction, ApprovalFlow, ApprovalStatus, FlowType
from docflow.models.document import Document


class DenialReason(str, enum.Enum):
    flow_mismatch = "flow_mismatch"
    flow_terminal = "flow_terminal"
    already_acted = "already_acted"
    not_current_approver = "not_current_approver"
    not_an_approver = "not_an_approver"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: DenialReason | None = None
    step_order: int | None = None  # actionable step for this actor when allowed

    def to_error(self, raced: bool = False) -> WorkflowError:
        """Translate a denial into the error surfaced to callers.

        A repeated action is a conflict. When the caller already lost an
        optimistic-lock race, a terminal flow is reported the same way.
        """
        if self.reason is DenialReason.already_acted:
            return ConflictError("You have already acted on this approval flow.")
        if raced and self.reason is DenialReason.flow_terminal:
            return ConflictError("Another decision completed this approval flow first.")
        return ForbiddenError(_DENIAL_MESSAGES[self.reason])


_DENIAL_MESSAGES = {
    DenialReason.flow_mismatch: "Approval flow does not belong to this document.",
    DenialReason.flow_terminal: "Approval flow is already completed.",
    DenialReason.not_current_approver: "You are not the approver of the current step.",
    DenialReason.not_an_approver: "You are not an approver on this flow.",
}

_DECISIVE_ACTIONS = (ApprovalAction.approve.value, ApprovalAction.reject.value)


def has_acted(flow: ApprovalFlow, document: Document, actor_id: uuid.UUID) -> bool:
    """True if the actor already has a decisive history entry for this flow."""
    actor = str(actor_id)
    return any(
        str(entry.flow_id) == str(flow.id)
        and str(entry.approver_id) == actor
        and entry.action in _DECISIVE_ACTIONS
        for entry in document.approval_history
    )


def can_act(flow: ApprovalFlow, document: Document, actor_id: uuid.UUID) -> GateDecision:
    if str(flow.document_id) != str(document.id):
        return GateDecision(False, DenialReason.flow_mismatch)
    if has_acted(flow, document, actor_id):
        return GateDecision(False, DenialReason.already_acted)
    if flow.is_terminal:
        return GateDecision(False, DenialReason.flow_terminal)

    actor = str(actor_id)
    pending = ApprovalStatus.pending.value

    if flow.flow_type == FlowType.quick.value:
        for step in flow.steps:
            if step.status == pending and str(step.approver_id) == actor:
                return GateDecision(True, step_order=step.step_order)
        return GateDecision(False, DenialReason.not_an_approver)

    current = flow.get_step(flow.current_step)
    if current is not None and current.status == pending and str(current.approver_id) == actor:
        return GateDecision(True, step_order=current.step_order)
    if any(str(step.approver_id) == actor for step in flow.steps):
        return GateDecision(False, DenialReason.not_current_approver)
    return GateDecision(False, DenialReason.not_an_approver)
