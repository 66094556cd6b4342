import enum
import uuid

from sqlalchemy import ForeignKey, JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docflow.db.base import Base, TimestampMixin, UUIDMixin


class DocumentStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    in_review = "in_review"
    approved = "approved"
    rejected = "rejected"
    archived = "archived"


class Document(Base, UUIDMixin, TimestampMixin):
    """Document fields relevant to the approval workflow.

    Content, files and metadata belong to the document CRUD collaborator.
    """

    __tablename__ = "documents"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.draft.value, index=True
    )
    # Approvers entitled to act next, as string ids; empty when no flow is active.
    current_approver_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    approval_history: Mapped[list["ApprovalHistoryEntry"]] = relationship(
        "ApprovalHistoryEntry",
        back_populates="document",
        order_by="ApprovalHistoryEntry.created_at",
    )

    @property
    def current_approver(self) -> uuid.UUID | None:
        """The single approver expected to act next, if exactly one is entitled."""
        if len(self.current_approver_ids or []) == 1:
            return uuid.UUID(self.current_approver_ids[0])
        return None
