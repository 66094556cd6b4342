"""Pydantic schemas for approval flow API endpoints."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ─── Approver display (joined from the user directory at read time) ───

class ApproverOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    department: str | None
    role: str


# ─── Flow output ───

class ApprovalStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step_order: int
    approver_id: uuid.UUID
    status: str
    comment: str | None
    action_date: datetime | None

    approver: ApproverOut | None = None


class ApprovalFlowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    document_id: uuid.UUID
    name: str
    flow_type: str
    status: str
    current_step: int
    template_id: uuid.UUID | None
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
    steps: list[ApprovalStepOut]

    # Document projection (populated by the endpoint)
    document_status: str | None = None
    current_approver_ids: list[uuid.UUID] = Field(default_factory=list)


class ApprovalFlowListResponse(BaseModel):
    items: list[ApprovalFlowOut]
    total: int


# ─── Create ───

class FlowCreateRequest(BaseModel):
    document_id: uuid.UUID
    flow_type: str | None = None
    approvers: list[uuid.UUID] | None = None
    template_id: uuid.UUID | None = None


class FlowCreateResponse(BaseModel):
    flow_id: uuid.UUID
    status: str
    document_status: str
    confirmed: bool = True
    retryable: bool = False
    detail: str | None = None


# ─── Decisions ───

class ApprovalActionRequest(BaseModel):
    action: str
    comment: str | None = None


class ApprovalActionResponse(BaseModel):
    flow_id: uuid.UUID
    flow_status: str
    document_status: str
    outcome: str
    current_step: int
    current_approver_ids: list[uuid.UUID]


# ─── Pending approvals ───

class PendingApprovalOut(BaseModel):
    document_id: uuid.UUID
    document_title: str
    document_status: str
    flow_id: uuid.UUID
    flow_type: str
    step_order: int
    submitted_at: datetime


class PendingApprovalListResponse(BaseModel):
    items: list[PendingApprovalOut]
    total: int
