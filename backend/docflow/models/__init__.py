from docflow.models.user import User, ROLES
from docflow.models.document import Document, DocumentStatus
from docflow.models.flow_template import FlowTemplate, FlowTemplateStep, SelectorType
from docflow.models.approval_flow import (
    ApprovalAction,
    ApprovalFlow,
    ApprovalHistoryEntry,
    ApprovalStatus,
    ApprovalStep,
    FlowType,
)
from docflow.models.audit import AuditLog

__all__ = [
    "User", "ROLES",
    "Document", "DocumentStatus",
    "FlowTemplate", "FlowTemplateStep", "SelectorType",
    "ApprovalFlow", "ApprovalStep", "ApprovalHistoryEntry",
    "ApprovalStatus", "ApprovalAction", "FlowType",
    "AuditLog",
]
