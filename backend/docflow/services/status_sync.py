"""Projects flow outcomes onto the owning document.

``sync`` only mutates objects attached to the caller's session; it never
commits. The flow change and the document change are flushed together by
the caller, so neither is ever visible without the other.
"""
import logging

from sqlalchemy.orm import Session

from docflow.models.approval_flow import (
    ApprovalAction,
    ApprovalFlow,
    ApprovalHistoryEntry,
    ApprovalStatus,
    ApprovalStep,
    FlowType,
)
from docflow.models.document import Document, DocumentStatus
from docflow.services.state_machine import ActionOutcome

logger = logging.getLogger(__name__)

_OUTCOME_STATUS = {
    ActionOutcome.advanced: DocumentStatus.in_review,
    ActionOutcome.approved: DocumentStatus.approved,
    ActionOutcome.rejected: DocumentStatus.rejected,
}

_STEP_ACTION = {
    ApprovalStatus.approved.value: ApprovalAction.approve.value,
    ApprovalStatus.rejected.value: ApprovalAction.reject.value,
}


def entitled_approvers(flow: ApprovalFlow) -> list[str]:
    """Approver ids who may act next: current step for standard, every pending step for quick."""
    if flow.is_terminal:
        return []
    if flow.flow_type == FlowType.quick.value:
        return [str(s.approver_id) for s in flow.pending_steps()]
    current = flow.get_step(flow.current_step)
    if current is None or current.status != ApprovalStatus.pending.value:
        return []
    return [str(current.approver_id)]


def sync(
    db: Session,
    document: Document,
    flow: ApprovalFlow,
    outcome: ActionOutcome,
    acted_step: ApprovalStep,
) -> Document:
    """Apply ``outcome`` to ``document`` and append one history entry."""
    if outcome is ActionOutcome.advanced and flow.flow_type != FlowType.standard.value:
        raise ValueError("Only standard flows can advance.")

    document.status = _OUTCOME_STATUS[outcome].value
    document.current_approver_ids = entitled_approvers(flow)

    entry = ApprovalHistoryEntry(
        document_id=document.id,
        flow_id=flow.id,
        approver_id=acted_step.approver_id,
        step_order=acted_step.step_order,
        action=_STEP_ACTION[acted_step.status],
        comment=acted_step.comment,
        created_at=acted_step.action_date,
    )
    db.add(entry)
    document.approval_history.append(entry)

    logger.info(
        "Document status synced: document=%s flow=%s outcome=%s status=%s",
        document.id, flow.id, outcome.value, document.status,
    )
    return document
