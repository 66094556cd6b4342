"""Tests for the flow state machine (in-memory, no database)."""
import uuid
from datetime import datetime, timezone

import pytest

from docflow.core.errors import ConflictError, ForbiddenError, ValidationError
from docflow.models.approval_flow import ApprovalFlow, ApprovalStep
from docflow.services.state_machine import ActionOutcome, apply_action, parse_action


# ─── Helpers ──────────────────────────────────────────────────────────────────

A, B, C = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


def _flow(flow_type: str = "standard", approvers=(A, B, C)) -> ApprovalFlow:
    flow = ApprovalFlow(
        id=uuid.uuid4(),
        document_id=uuid.uuid4(),
        name="Budget approval flow",
        flow_type=flow_type,
        status="pending",
        current_step=1,
        created_by=uuid.uuid4(),
    )
    for order, approver in enumerate(approvers, start=1):
        flow.steps.append(ApprovalStep(step_order=order, approver_id=approver, status="pending"))
    return flow


# ─── Standard flows ───────────────────────────────────────────────────────────

def test_standard_approve_advances_current_step():
    flow, outcome = apply_action(_flow(), 1, A, "approve", "ok")

    assert outcome is ActionOutcome.advanced
    assert flow.current_step == 2
    assert flow.status == "pending"
    assert flow.get_step(1).status == "approved"
    assert flow.get_step(1).comment == "ok"
    assert flow.get_step(1).action_date is not None


def test_standard_approve_last_step_approves_flow():
    flow = _flow()
    apply_action(flow, 1, A, "approve")
    apply_action(flow, 2, B, "approve")
    flow, outcome = apply_action(flow, 3, C, "approve")

    assert outcome is ActionOutcome.approved
    assert flow.status == "approved"
    assert flow.current_step == 3


def test_standard_out_of_order_is_forbidden():
    """B cannot approve before A has acted."""
    flow = _flow()
    with pytest.raises(ForbiddenError):
        apply_action(flow, 2, B, "approve")
    assert flow.get_step(2).status == "pending"
    assert flow.current_step == 1


def test_standard_reject_terminates_and_leaves_later_steps_pending():
    flow = _flow()
    apply_action(flow, 1, A, "approve")
    flow, outcome = apply_action(flow, 2, B, "reject", "missing signature")

    assert outcome is ActionOutcome.rejected
    assert flow.status == "rejected"
    assert flow.current_step == 2
    assert flow.get_step(3).status == "pending"


def test_wrong_actor_is_forbidden():
    with pytest.raises(ForbiddenError):
        apply_action(_flow(), 1, B, "approve")


def test_unknown_step_is_validation_error():
    with pytest.raises(ValidationError):
        apply_action(_flow(), 7, A, "approve")


# ─── Quick flows ──────────────────────────────────────────────────────────────

def test_quick_any_approver_decides_flow():
    flow, outcome = apply_action(_flow("quick"), 2, B, "approve")

    assert outcome is ActionOutcome.approved
    assert flow.status == "approved"
    assert flow.get_step(1).status == "pending"
    assert flow.get_step(3).status == "pending"


def test_quick_reject_is_immediate():
    flow, outcome = apply_action(_flow("quick"), 3, C, "reject", "wrong totals")
    assert outcome is ActionOutcome.rejected
    assert flow.status == "rejected"


def test_quick_second_responder_conflicts():
    flow = _flow("quick")
    apply_action(flow, 2, B, "approve")
    with pytest.raises(ConflictError):
        apply_action(flow, 1, A, "approve")


# ─── Comments, repeats, parsing ───────────────────────────────────────────────

@pytest.mark.parametrize("comment", [None, "", "   "])
def test_reject_requires_comment(comment):
    flow = _flow()
    with pytest.raises(ValidationError):
        apply_action(flow, 1, A, "reject", comment)
    assert flow.get_step(1).status == "pending"
    assert flow.status == "pending"


def test_repeated_action_is_conflict():
    flow = _flow()
    apply_action(flow, 1, A, "approve")
    with pytest.raises(ConflictError):
        apply_action(flow, 1, A, "approve")
    assert flow.current_step == 2


def test_action_on_terminal_flow_is_conflict():
    flow = _flow()
    apply_action(flow, 1, A, "reject", "no")
    with pytest.raises(ConflictError):
        apply_action(flow, 2, B, "approve")


def test_uses_supplied_timestamp():
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    flow, _ = apply_action(_flow(), 1, A, "approve", now=now)
    assert flow.get_step(1).action_date == now
    assert flow.updated_at == now


def test_parse_action_rejects_unknown():
    with pytest.raises(ValidationError):
        parse_action("escalate")
