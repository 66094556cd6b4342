import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docflow.db.base import Base, TimestampMixin, UUIDMixin, utcnow


class FlowType(str, enum.Enum):
    quick = "quick"
    standard = "standard"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApprovalAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"


TERMINAL_STATUSES = (ApprovalStatus.approved.value, ApprovalStatus.rejected.value)


class ApprovalFlow(Base, UUIDMixin, TimestampMixin):
    """One approval-workflow instance bound to a single document submission.

    ``version_id`` is an optimistic lock: every decision rewrites this row, so
    two sessions acting from the same snapshot cannot both commit.
    """

    __tablename__ = "approval_flows"
    __table_args__ = (
        Index(
            "uq_approval_flows_active_document",
            "document_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    flow_type: Mapped[str] = mapped_column(String(20), nullable=False, default=FlowType.standard.value)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.pending.value
    )
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("flow_templates.id"), nullable=True
    )
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    steps: Mapped[list["ApprovalStep"]] = relationship(
        "ApprovalStep",
        back_populates="flow",
        order_by="ApprovalStep.step_order",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def get_step(self, step_order: int) -> "ApprovalStep | None":
        for step in self.steps:
            if step.step_order == step_order:
                return step
        return None

    def pending_steps(self) -> list["ApprovalStep"]:
        return [s for s in self.steps if s.status == ApprovalStatus.pending.value]


class ApprovalStep(Base, UUIDMixin, TimestampMixin):
    """One approver's slot within a flow."""

    __tablename__ = "approval_steps"
    __table_args__ = (
        UniqueConstraint("flow_id", "step_order", name="uq_approval_steps_flow_order"),
    )

    flow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.pending.value
    )
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    action_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    flow: Mapped["ApprovalFlow"] = relationship("ApprovalFlow", back_populates="steps")


class ApprovalHistoryEntry(Base, UUIDMixin):
    """Append-only record of one step transition on a document."""

    __tablename__ = "approval_history"

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    flow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("approval_flows.id", ondelete="CASCADE"), nullable=False, index=True
    )
    approver_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # approve, reject
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    document: Mapped["Document"] = relationship("Document", back_populates="approval_history")
