"""Approval workflow service.

Entry points used by the API layer. All functions take a sync SQLAlchemy
Session and own the transaction boundary of the operation they perform.

A decision (``act_on_document``) touches the flow, one step, the document
and the history log; all of it is committed in one transaction guarded by
the flow's optimistic version. A commit that loses the race is rolled back,
re-read and re-gated once before the conflict is surfaced.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from docflow.core.config import settings
from docflow.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from docflow.models.approval_flow import ApprovalFlow, ApprovalStatus, ApprovalStep, FlowType
from docflow.models.document import Document, DocumentStatus
from docflow.models.user import User
from docflow.services import audit as audit_svc
from docflow.services.authorization import can_act
from docflow.services.consistency import get_latest_flow
from docflow.services.directory import ApproverDisplay, UserDirectory
from docflow.services.flow_builder import build_flow
from docflow.services.state_machine import ActionOutcome, apply_action, parse_action
from docflow.services.status_sync import sync
from docflow.services.templates import get_template

logger = logging.getLogger(__name__)

SUBMITTABLE_STATUSES = (
    DocumentStatus.draft.value,
    DocumentStatus.pending.value,
    DocumentStatus.rejected.value,
)


@dataclass
class ActionResult:
    flow: ApprovalFlow
    document: Document
    outcome: ActionOutcome


@dataclass
class FlowView:
    flow: ApprovalFlow
    document: Document
    approvers: dict[str, ApproverDisplay | None]


@dataclass
class PendingApproval:
    document: Document
    flow: ApprovalFlow
    step: ApprovalStep


def _get_document(db: Session, document_id: uuid.UUID) -> Document:
    document = db.get(Document, document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found.")
    return document


# ─── Submission ───

def submit_for_approval(
    db: Session,
    actor: User,
    document_id: uuid.UUID,
    flow_type: str | None = None,
    approvers: list | None = None,
    template_id: uuid.UUID | None = None,
) -> ApprovalFlow:
    """Submit a document for approval on behalf of ``actor``.

    Only the owner or an ADMIN may submit; observers never may. When no flow
    type is given, a template's default is used, otherwise ``standard``.
    """
    if actor.role == "OBSERVER":
        raise ForbiddenError("Observers cannot submit documents for approval.")

    document = _get_document(db, document_id)
    if str(document.owner_id) != str(actor.id) and actor.role != "ADMIN":
        logger.warning(
            "Submission denied: actor=%s document=%s owner=%s",
            actor.id, document.id, document.owner_id,
        )
        raise ForbiddenError("Only the document owner or an admin can submit it for approval.")

    if document.status == DocumentStatus.in_review.value:
        raise ConflictError(f"Document {document_id} is already under review.")
    if document.status not in SUBMITTABLE_STATUSES:
        raise ValidationError(
            f"Document {document_id} cannot be submitted from status '{document.status}'."
        )

    if flow_type is None:
        flow_type = (
            get_template(db, template_id).default_flow_type
            if template_id is not None
            else FlowType.standard.value
        )

    return build_flow(
        db,
        document_id=document.id,
        owner_id=document.owner_id,
        flow_type=flow_type,
        approvers=approvers,
        template_id=template_id,
        created_by=actor.id,
    )


# ─── Decisions ───

def act_on_document(
    db: Session,
    document_id: uuid.UUID,
    actor_id: uuid.UUID,
    action: str,
    comment: str | None = None,
) -> ActionResult:
    """Approve or reject the actor's actionable step on the document's flow.

    Raises:
        ValidationError: unknown action or reject without comment.
        NotFoundError: document or flow missing.
        ForbiddenError: actor may not act now (gate denial).
        ConflictError: double action, or a concurrent decision won the race.
    """
    decision = parse_action(action)
    raced = False

    for attempt in range(settings.ACTION_CONFLICT_RETRIES + 1):
        document = _get_document(db, document_id)
        flow = get_latest_flow(db, document.id)

        gate = can_act(flow, document, actor_id)
        if not gate.allowed:
            logger.warning(
                "Approval action denied: document=%s flow=%s actor=%s reason=%s",
                document.id, flow.id, actor_id, gate.reason.value,
            )
            raise gate.to_error(raced=raced)

        before = {
            "document_status": document.status,
            "flow_status": flow.status,
            "current_step": flow.current_step,
        }

        flow, outcome = apply_action(flow, gate.step_order, actor_id, decision.value, comment)
        step = flow.get_step(gate.step_order)
        sync(db, document, flow, outcome, step)

        try:
            audit_svc.log(
                db=db,
                action=f"document_{outcome.value}",
                entity_type="document",
                entity_id=document.id,
                actor_id=actor_id,
                before=before,
                after={
                    "document_status": document.status,
                    "flow_status": flow.status,
                    "current_step": flow.current_step,
                    "step_order": step.step_order,
                    "action": decision.value,
                },
                notes=step.comment,
            )
            db.commit()
        except StaleDataError:
            db.rollback()
            raced = True
            logger.warning(
                "Concurrent update on flow %s (attempt %d); re-reading",
                flow.id, attempt + 1,
            )
            continue

        logger.info(
            "Approval decision: document=%s flow=%s actor=%s action=%s outcome=%s",
            document.id, flow.id, actor_id, decision.value, outcome.value,
        )
        return ActionResult(flow=flow, document=document, outcome=outcome)

    raise ConflictError(
        f"Approval flow for document {document_id} kept changing; re-read and try again."
    )


# ─── Reads ───

def get_flow_view(db: Session, document_id: uuid.UUID) -> FlowView:
    document = _get_document(db, document_id)
    flow = get_latest_flow(db, document.id)
    approvers = UserDirectory(db).display_data([s.approver_id for s in flow.steps])
    return FlowView(flow=flow, document=document, approvers=approvers)


def list_pending_for_approver(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[PendingApproval], int]:
    """Documents on which ``user_id`` may act right now, oldest submission first."""
    pending = ApprovalStatus.pending.value
    filters = [
        ApprovalStep.approver_id == user_id,
        ApprovalStep.status == pending,
        ApprovalFlow.status == pending,
        or_(
            ApprovalFlow.flow_type == FlowType.quick.value,
            ApprovalStep.step_order == ApprovalFlow.current_step,
        ),
    ]

    total = db.execute(
        select(func.count(ApprovalStep.id))
        .join(ApprovalFlow, ApprovalStep.flow_id == ApprovalFlow.id)
        .where(*filters)
    ).scalar_one()

    rows = db.execute(
        select(ApprovalStep, ApprovalFlow, Document)
        .join(ApprovalFlow, ApprovalStep.flow_id == ApprovalFlow.id)
        .join(Document, ApprovalFlow.document_id == Document.id)
        .where(*filters)
        .order_by(ApprovalFlow.created_at.asc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    items = [PendingApproval(document=doc, flow=flow, step=step) for step, flow, doc in rows]
    return items, total


def list_flows(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
) -> tuple[list[ApprovalFlow], int]:
    stmt = select(ApprovalFlow).options(selectinload(ApprovalFlow.steps))
    count_stmt = select(func.count(ApprovalFlow.id))
    if status is not None:
        stmt = stmt.where(ApprovalFlow.status == status)
        count_stmt = count_stmt.where(ApprovalFlow.status == status)

    total = db.execute(count_stmt).scalar_one()
    flows = db.execute(
        stmt.order_by(ApprovalFlow.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(flows), total
