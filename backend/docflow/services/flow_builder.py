"""Flow builder: materializes one ApprovalFlow for one document submission."""
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow.core.errors import ConflictError, NotFoundError, ValidationError
from docflow.models.approval_flow import ApprovalFlow, ApprovalStatus, ApprovalStep, FlowType
from docflow.models.document import Document, DocumentStatus
from docflow.services import audit as audit_svc
from docflow.services.directory import UserDirectory
from docflow.services.status_sync import entitled_approvers
from docflow.services.templates import expand_template, get_template

logger = logging.getLogger(__name__)


def parse_flow_type(flow_type: str | None) -> FlowType:
    try:
        return FlowType(flow_type)
    except ValueError:
        raise ValidationError(
            f"Invalid flow type '{flow_type}'. Must be 'quick' or 'standard'."
        ) from None


def _active_flow(db: Session, document_id: uuid.UUID) -> ApprovalFlow | None:
    return db.execute(
        select(ApprovalFlow).where(
            ApprovalFlow.document_id == document_id,
            ApprovalFlow.status == ApprovalStatus.pending.value,
        )
    ).scalars().first()


def _resolve_explicit(directory: UserDirectory, approvers: list) -> list[uuid.UUID]:
    if not approvers:
        raise ValidationError("At least one approver is required.")
    try:
        resolved = [uuid.UUID(str(a)) for a in approvers]
    except ValueError:
        raise ValidationError("Approver ids must be valid UUIDs.") from None
    if len({str(a) for a in resolved}) != len(resolved):
        raise ValidationError("An approver may appear only once in a flow.")

    known = directory.existing_ids(resolved)
    missing = [str(a) for a in resolved if str(a) not in known]
    if missing:
        raise ValidationError(
            "Unknown or inactive approvers.", details={"approver_ids": missing}
        )
    return resolved


def build_flow(
    db: Session,
    document_id: uuid.UUID,
    owner_id: uuid.UUID,
    flow_type: str,
    approvers: list | None = None,
    template_id: uuid.UUID | None = None,
    created_by: uuid.UUID | None = None,
) -> ApprovalFlow:
    """Create and commit a pending flow for ``document_id``.

    Exactly one of ``approvers`` (ordered user ids) or ``template_id`` must
    be given. Every step starts ``pending`` with ``current_step = 1``; the
    document moves to ``pending`` and its current approvers are set to the
    step-1 approver (standard) or to every approver (quick).

    Raises:
        ValidationError: bad flow type or source, empty/unknown approvers,
            duplicate approvers, or the owner among the approvers.
        NotFoundError: document or template missing.
        ConflictError: the document already has a non-terminal flow.
    """
    kind = parse_flow_type(flow_type)
    if (approvers is None) == (template_id is None):
        raise ValidationError("Provide exactly one of an approver list or a template id.")

    document = db.execute(
        select(Document).where(Document.id == document_id).with_for_update()
    ).scalars().first()
    if document is None:
        raise NotFoundError(f"Document {document_id} not found.")
    if str(document.owner_id) != str(owner_id):
        raise ValidationError(f"User {owner_id} does not own document {document_id}.")

    existing = _active_flow(db, document.id)
    if existing is not None:
        raise ConflictError(
            f"Document {document_id} already has an active approval flow.",
            details={"flow_id": str(existing.id)},
        )

    directory = UserDirectory(db)
    if template_id is not None:
        template = get_template(db, template_id)
        approver_ids = expand_template(directory, template, owner_id)
    else:
        approver_ids = _resolve_explicit(directory, approvers)

    if not approver_ids:
        raise ValidationError("At least one approver is required.")
    if any(str(a) == str(owner_id) for a in approver_ids):
        raise ValidationError("The document owner cannot approve their own document.")

    before = {"document_status": document.status}

    flow = ApprovalFlow(
        document_id=document.id,
        name=f"{document.title} approval flow",
        flow_type=kind.value,
        status=ApprovalStatus.pending.value,
        current_step=1,
        template_id=template_id,
        created_by=created_by or owner_id,
    )
    for order, approver_id in enumerate(approver_ids, start=1):
        flow.steps.append(
            ApprovalStep(
                step_order=order,
                approver_id=approver_id,
                status=ApprovalStatus.pending.value,
            )
        )
    db.add(flow)

    document.status = DocumentStatus.pending.value
    document.current_approver_ids = entitled_approvers(flow)

    try:
        db.flush()
        audit_svc.log(
            db=db,
            action="approval_flow_created",
            entity_type="approval_flow",
            entity_id=flow.id,
            actor_id=created_by or owner_id,
            before=before,
            after={
                "document_id": str(document.id),
                "document_status": document.status,
                "flow_type": flow.flow_type,
                "approvers": [str(a) for a in approver_ids],
                "template_id": str(template_id) if template_id else None,
            },
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent flow creation for document %s", document_id)
        raise ConflictError(
            f"Document {document_id} already has an active approval flow."
        ) from None

    logger.info(
        "Approval flow created: flow=%s document=%s type=%s steps=%d",
        flow.id, document.id, flow.flow_type, len(flow.steps),
    )
    return flow
