from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from docflow.db.base import Base, TimestampMixin, UUIDMixin

ROLES = ("ADMIN", "MANAGER", "USER", "OBSERVER")


class User(Base, UUIDMixin, TimestampMixin):
    """User directory record. Owned by account management; read-only to the engine."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="USER", index=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
