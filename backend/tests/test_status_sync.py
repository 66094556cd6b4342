"""Tests for projecting flow outcomes onto documents."""
import uuid
from unittest.mock import MagicMock

import pytest

from docflow.models.approval_flow import ApprovalFlow, ApprovalStep
from docflow.models.document import Document
from docflow.services.state_machine import ActionOutcome, apply_action
from docflow.services.status_sync import entitled_approvers, sync


OWNER, A, B = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()


def _setup(flow_type: str = "standard"):
    document = Document(id=uuid.uuid4(), title="Contract", owner_id=OWNER, status="pending")
    flow = ApprovalFlow(
        id=uuid.uuid4(),
        document_id=document.id,
        name="Contract approval flow",
        flow_type=flow_type,
        status="pending",
        current_step=1,
        created_by=OWNER,
    )
    for order, approver in enumerate((A, B), start=1):
        flow.steps.append(ApprovalStep(step_order=order, approver_id=approver, status="pending"))
    document.current_approver_ids = entitled_approvers(flow)
    return flow, document


def test_entitled_approvers_by_flow_type():
    flow, _ = _setup("standard")
    assert entitled_approvers(flow) == [str(A)]
    flow, _ = _setup("quick")
    assert entitled_approvers(flow) == [str(A), str(B)]


def test_advanced_moves_document_to_in_review():
    flow, document = _setup()
    db = MagicMock()
    flow, outcome = apply_action(flow, 1, A, "approve", "ok")

    sync(db, document, flow, outcome, flow.get_step(1))

    assert document.status == "in_review"
    assert document.current_approver == B
    assert len(document.approval_history) == 1
    entry = document.approval_history[0]
    assert entry.approver_id == A
    assert entry.action == "approve"
    assert entry.comment == "ok"
    db.add.assert_called_once_with(entry)
    db.commit.assert_not_called()


@pytest.mark.parametrize("flow_type", ["standard", "quick"])
def test_rejected_clears_current_approver(flow_type):
    flow, document = _setup(flow_type)
    flow, outcome = apply_action(flow, 1, A, "reject", "missing signature")

    sync(MagicMock(), document, flow, outcome, flow.get_step(1))

    assert document.status == "rejected"
    assert document.current_approver_ids == []
    assert document.current_approver is None
    assert document.approval_history[0].action == "reject"


def test_quick_approved_clears_all_approvers():
    flow, document = _setup("quick")
    assert document.current_approver is None  # two entitled approvers
    flow, outcome = apply_action(flow, 2, B, "approve")

    sync(MagicMock(), document, flow, outcome, flow.get_step(2))

    assert document.status == "approved"
    assert document.current_approver_ids == []


def test_advanced_outcome_rejected_for_quick_flows():
    flow, document = _setup("quick")
    with pytest.raises(ValueError):
        sync(MagicMock(), document, flow, ActionOutcome.advanced, flow.get_step(1))
