"""Tests for the step authorization gate."""
import uuid

import pytest

from docflow.core.errors import ConflictError, ForbiddenError
from docflow.models.approval_flow import ApprovalFlow, ApprovalHistoryEntry, ApprovalStep
from docflow.models.document import Document
from docflow.services.authorization import DenialReason, can_act


OWNER, A, B, C, STRANGER = (uuid.uuid4() for _ in range(5))


def _setup(flow_type: str = "standard"):
    document = Document(id=uuid.uuid4(), title="Policy", owner_id=OWNER, status="pending")
    flow = ApprovalFlow(
        id=uuid.uuid4(),
        document_id=document.id,
        name="Policy approval flow",
        flow_type=flow_type,
        status="pending",
        current_step=1,
        created_by=OWNER,
    )
    for order, approver in enumerate((A, B, C), start=1):
        flow.steps.append(ApprovalStep(step_order=order, approver_id=approver, status="pending"))
    return flow, document


def test_standard_current_approver_allowed():
    flow, document = _setup()
    decision = can_act(flow, document, A)
    assert decision.allowed
    assert decision.step_order == 1


def test_standard_later_approver_not_current():
    flow, document = _setup()
    decision = can_act(flow, document, B)
    assert not decision.allowed
    assert decision.reason is DenialReason.not_current_approver
    assert isinstance(decision.to_error(), ForbiddenError)


def test_stranger_is_not_an_approver():
    flow, document = _setup("quick")
    decision = can_act(flow, document, STRANGER)
    assert decision.reason is DenialReason.not_an_approver


@pytest.mark.parametrize("actor,order", [(A, 1), (B, 2), (C, 3)])
def test_quick_any_pending_approver_allowed(actor, order):
    flow, document = _setup("quick")
    decision = can_act(flow, document, actor)
    assert decision.allowed
    assert decision.step_order == order


def test_terminal_flow_denied():
    flow, document = _setup("quick")
    flow.status = "approved"
    decision = can_act(flow, document, A)
    assert decision.reason is DenialReason.flow_terminal
    assert isinstance(decision.to_error(), ForbiddenError)
    assert isinstance(decision.to_error(raced=True), ConflictError)


def test_flow_of_other_document_denied():
    flow, _ = _setup()
    other = Document(id=uuid.uuid4(), title="Other", owner_id=OWNER, status="pending")
    assert can_act(flow, other, A).reason is DenialReason.flow_mismatch


def test_history_entry_blocks_second_action():
    """A recorded decision denies the actor even if the step still looks pending."""
    flow, document = _setup("quick")
    document.approval_history.append(
        ApprovalHistoryEntry(
            document_id=document.id,
            flow_id=flow.id,
            approver_id=A,
            step_order=1,
            action="approve",
        )
    )
    decision = can_act(flow, document, A)
    assert decision.reason is DenialReason.already_acted
    assert isinstance(decision.to_error(), ConflictError)


def test_history_of_previous_flow_is_ignored():
    flow, document = _setup()
    document.approval_history.append(
        ApprovalHistoryEntry(
            document_id=document.id,
            flow_id=uuid.uuid4(),
            approver_id=A,
            step_order=1,
            action="reject",
            comment="first round",
        )
    )
    assert can_act(flow, document, A).allowed


def test_gate_does_not_mutate():
    flow, document = _setup()
    can_act(flow, document, A)
    can_act(flow, document, B)
    assert flow.current_step == 1
    assert [s.status for s in flow.steps] == ["pending"] * 3
    assert document.approval_history == []
