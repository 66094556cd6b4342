import enum
import uuid

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docflow.db.base import Base, TimestampMixin, UUIDMixin


class SelectorType(str, enum.Enum):
    user = "user"
    role = "role"
    department = "department"


class FlowTemplate(Base, UUIDMixin, TimestampMixin):
    """Reusable named sequence of approver selection criteria."""

    __tablename__ = "flow_templates"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    default_flow_type: Mapped[str] = mapped_column(String(20), nullable=False, default="standard")
    is_shared: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    steps: Mapped[list["FlowTemplateStep"]] = relationship(
        "FlowTemplateStep",
        back_populates="template",
        order_by="FlowTemplateStep.step_order",
        cascade="all, delete-orphan",
    )


class FlowTemplateStep(Base, UUIDMixin):
    __tablename__ = "flow_template_steps"
    __table_args__ = (
        UniqueConstraint("template_id", "step_order", name="uq_flow_template_steps_order"),
    )

    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("flow_templates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    selector_type: Mapped[str] = mapped_column(String(20), nullable=False)  # user, role, department
    selector_value: Mapped[str] = mapped_column(String(255), nullable=False)

    template: Mapped["FlowTemplate"] = relationship("FlowTemplate", back_populates="steps")
