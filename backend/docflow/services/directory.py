"""User directory lookups.

The engine stores only ``approver_id`` references. Everything else about a
user (name, department, role) is resolved here at read time or during
template expansion.
"""
import logging
import uuid
from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from docflow.core.config import settings
from docflow.core.cooldown import CooldownActive, CooldownCache
from docflow.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApproverDisplay:
    id: uuid.UUID
    name: str
    email: str
    department: str | None
    role: str

    def as_dict(self) -> dict:
        return asdict(self)


_display_cache = CooldownCache(
    ttl=settings.DIRECTORY_CACHE_TTL_SECONDS,
    cooldown=settings.DIRECTORY_FAILURE_COOLDOWN_SECONDS,
)


class UserDirectory:
    def __init__(self, db: Session, cache: CooldownCache | None = None):
        self.db = db
        self.cache = cache or _display_cache

    def _active(self):
        return select(User).where(User.is_active.is_(True))

    def get_user(self, user_id: uuid.UUID) -> User | None:
        return self.db.execute(self._active().where(User.id == user_id)).scalars().first()

    def users_with_role(self, role: str) -> list[User]:
        stmt = self._active().where(User.role == role).order_by(User.name, User.email)
        return list(self.db.execute(stmt).scalars().all())

    def users_in_department(self, department: str) -> list[User]:
        stmt = self._active().where(User.department == department).order_by(User.name, User.email)
        return list(self.db.execute(stmt).scalars().all())

    def existing_ids(self, user_ids: list[uuid.UUID]) -> set[str]:
        if not user_ids:
            return set()
        stmt = select(User.id).where(User.id.in_(user_ids), User.is_active.is_(True))
        return {str(uid) for uid in self.db.execute(stmt).scalars().all()}

    def display_data(self, user_ids: list[uuid.UUID]) -> dict[str, ApproverDisplay | None]:
        """Display fields per user id; ``None`` when the directory cannot answer."""
        result: dict[str, ApproverDisplay | None] = {}
        for user_id in user_ids:
            key = str(user_id)
            if key in result:
                continue
            try:
                result[key] = self.cache.get(key, lambda uid=user_id: self._load_display(uid))
            except CooldownActive as exc:
                logger.info("Directory lookup skipped for %s: %s", key, exc)
                result[key] = None
            except SQLAlchemyError:
                result[key] = None
        return result

    def _load_display(self, user_id: uuid.UUID) -> ApproverDisplay | None:
        user = self.db.execute(select(User).where(User.id == user_id)).scalars().first()
        if user is None:
            return None
        return ApproverDisplay(
            id=user.id,
            name=user.name,
            email=user.email,
            department=user.department,
            role=user.role,
        )
