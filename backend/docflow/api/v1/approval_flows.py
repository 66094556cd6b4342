"""Approval flow API endpoints.

  POST /approval-flows                        — submit a document (build its flow)
  GET  /approval-flows                        — list all flows (ADMIN)
  GET  /approval-flows/pending                — documents the caller may act on
  GET  /approval-flows/{document_id}          — latest flow with approver display data
  POST /approval-flows/{document_id}/actions  — approve or reject as the caller
"""
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session, sessionmaker

from docflow.core.config import settings
from docflow.core.deps import get_current_user, require_role
from docflow.core.errors import FlowTimeoutError
from docflow.core.limiter import limiter
from docflow.db.session import get_db, get_read_session_factory
from docflow.models.approval_flow import ApprovalFlow
from docflow.models.document import Document
from docflow.models.user import User
from docflow.schemas.approval_flow import (
    ApprovalActionRequest,
    ApprovalActionResponse,
    ApprovalFlowListResponse,
    ApprovalFlowOut,
    ApproverOut,
    FlowCreateRequest,
    FlowCreateResponse,
    PendingApprovalListResponse,
    PendingApprovalOut,
)
from docflow.services import approval as approval_svc
from docflow.services.consistency import await_flow_visible, flow_reader

logger = logging.getLogger(__name__)

router = APIRouter()

ACTING_ROLES = ("ADMIN", "MANAGER", "USER")


def _flow_out(flow: ApprovalFlow, document: Document | None = None, approvers: dict | None = None) -> ApprovalFlowOut:
    out = ApprovalFlowOut.model_validate(flow)
    if document is not None:
        out.document_status = document.status
        out.current_approver_ids = [uuid.UUID(a) for a in document.current_approver_ids or []]
    if approvers:
        for step in out.steps:
            display = approvers.get(str(step.approver_id))
            if display is not None:
                step.approver = ApproverOut.model_validate(display)
    return out


# ─── Submit for approval ───

@router.post(
    "",
    response_model=FlowCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a document for approval",
    responses={202: {"description": "Flow created but not yet confirmed readable"}},
)
async def create_flow(
    body: FlowCreateRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    read_sessions: Annotated[sessionmaker, Depends(get_read_session_factory)],
    current_user: Annotated[User, Depends(require_role(*ACTING_ROLES))],
):
    """Build the flow, then confirm it is readable before reporting success.

    When confirmation does not arrive within the configured budget the flow
    still exists; the response is 202 with ``confirmed=false`` so clients can
    re-fetch later instead of treating the submission as failed.
    """
    flow = await run_in_threadpool(
        approval_svc.submit_for_approval,
        db,
        current_user,
        body.document_id,
        body.flow_type,
        body.approvers,
        body.template_id,
    )
    document_status = db.get(Document, body.document_id).status

    try:
        await await_flow_visible(
            flow_reader(read_sessions),
            body.document_id,
            max_attempts=settings.FLOW_VISIBILITY_MAX_ATTEMPTS,
            backoff_schedule=settings.flow_visibility_backoff_list,
            expected_flow_id=flow.id,
            timeout=settings.FLOW_VISIBILITY_TIMEOUT_SECONDS,
        )
    except FlowTimeoutError as exc:
        response.status_code = status.HTTP_202_ACCEPTED
        return FlowCreateResponse(
            flow_id=flow.id,
            status=flow.status,
            document_status=document_status,
            confirmed=False,
            retryable=True,
            detail=exc.message,
        )

    return FlowCreateResponse(
        flow_id=flow.id,
        status=flow.status,
        document_status=document_status,
    )


# ─── List all flows ───

@router.get(
    "",
    response_model=ApprovalFlowListResponse,
    summary="List approval flows, newest first (ADMIN)",
)
def list_flows(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_role("ADMIN"))],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    flow_status: str | None = Query(None, alias="status"),
):
    flows, total = approval_svc.list_flows(db, page=page, limit=limit, status=flow_status)
    return ApprovalFlowListResponse(items=[_flow_out(f) for f in flows], total=total)


# ─── Pending approvals for the caller ───

@router.get(
    "/pending",
    response_model=PendingApprovalListResponse,
    summary="Documents awaiting the current user's decision",
)
def list_my_pending(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    items, total = approval_svc.list_pending_for_approver(
        db, current_user.id, page=page, limit=limit
    )
    return PendingApprovalListResponse(
        items=[
            PendingApprovalOut(
                document_id=item.document.id,
                document_title=item.document.title,
                document_status=item.document.status,
                flow_id=item.flow.id,
                flow_type=item.flow.flow_type,
                step_order=item.step.step_order,
                submitted_at=item.flow.created_at,
            )
            for item in items
        ],
        total=total,
    )


# ─── Flow by document ───

@router.get(
    "/{document_id}",
    response_model=ApprovalFlowOut,
    summary="Get the approval flow of a document",
)
def get_flow(
    document_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    view = approval_svc.get_flow_view(db, document_id)
    return _flow_out(view.flow, view.document, view.approvers)


# ─── Approve / reject ───

@router.post(
    "/{document_id}/actions",
    response_model=ApprovalActionResponse,
    summary="Approve or reject the document as the current user",
)
@limiter.limit(lambda: settings.ACTION_RATE_LIMIT)
def act_on_flow(
    request: Request,
    document_id: uuid.UUID,
    body: ApprovalActionRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_role(*ACTING_ROLES))],
):
    result = approval_svc.act_on_document(
        db,
        document_id=document_id,
        actor_id=current_user.id,
        action=body.action,
        comment=body.comment,
    )
    return ApprovalActionResponse(
        flow_id=result.flow.id,
        flow_status=result.flow.status,
        document_status=result.document.status,
        outcome=result.outcome.value,
        current_step=result.flow.current_step,
        current_approver_ids=[uuid.UUID(a) for a in result.document.current_approver_ids],
    )
