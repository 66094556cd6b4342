"""Flow template store and template expansion."""
import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from docflow.core.errors import ForbiddenError, NotFoundError, ValidationError
from docflow.models.approval_flow import FlowType
from docflow.models.flow_template import FlowTemplate, FlowTemplateStep, SelectorType
from docflow.models.user import User
from docflow.services import audit as audit_svc
from docflow.services.directory import UserDirectory

logger = logging.getLogger(__name__)

TEMPLATE_EDITOR_ROLES = ("ADMIN", "MANAGER")


# ─── Read ───

def list_templates(db: Session, user: User) -> list[FlowTemplate]:
    """Active templates visible to ``user``: ADMIN sees all, others see shared and their own."""
    stmt = (
        select(FlowTemplate)
        .options(selectinload(FlowTemplate.steps))
        .where(FlowTemplate.is_active.is_(True))
        .order_by(FlowTemplate.created_at.desc())
    )
    if user.role != "ADMIN":
        stmt = stmt.where(
            or_(FlowTemplate.is_shared.is_(True), FlowTemplate.created_by == user.id)
        )
    return list(db.execute(stmt).scalars().all())


def get_template(db: Session, template_id: uuid.UUID) -> FlowTemplate:
    template = db.execute(
        select(FlowTemplate)
        .options(selectinload(FlowTemplate.steps))
        .where(FlowTemplate.id == template_id, FlowTemplate.is_active.is_(True))
    ).scalars().first()
    if template is None:
        raise NotFoundError(f"Flow template {template_id} not found.")
    return template


# ─── Create ───

def create_template(
    db: Session,
    user: User,
    name: str,
    steps: list[dict],
    description: str | None = None,
    default_flow_type: str = FlowType.standard.value,
    is_shared: bool = True,
) -> FlowTemplate:
    """Create a template from ``steps`` (dicts with selector_type/selector_value).

    Steps are numbered in list order starting at 1.
    """
    if user.role not in TEMPLATE_EDITOR_ROLES:
        raise ForbiddenError(f"Role '{user.role}' cannot create flow templates.")

    name = (name or "").strip()
    if not 3 <= len(name) <= 100:
        raise ValidationError("Template name must be between 3 and 100 characters.")
    description = (description or "").strip() or None
    if description and len(description) > 500:
        raise ValidationError("Template description must be at most 500 characters.")
    if default_flow_type not in {t.value for t in FlowType}:
        raise ValidationError(f"Invalid flow type '{default_flow_type}'.")
    if not steps:
        raise ValidationError("A template needs at least one step.")

    template = FlowTemplate(
        name=name,
        description=description,
        default_flow_type=default_flow_type,
        is_shared=is_shared,
        created_by=user.id,
    )
    for order, raw in enumerate(steps, start=1):
        selector_type = raw.get("selector_type")
        selector_value = str(raw.get("selector_value") or "").strip()
        if selector_type not in {s.value for s in SelectorType}:
            raise ValidationError(f"Step {order}: invalid selector type '{selector_type}'.")
        if not selector_value:
            raise ValidationError(f"Step {order}: selector value is required.")
        if selector_type == SelectorType.user.value:
            try:
                uuid.UUID(selector_value)
            except ValueError:
                raise ValidationError(f"Step {order}: '{selector_value}' is not a user id.") from None
        template.steps.append(
            FlowTemplateStep(
                step_order=order,
                selector_type=selector_type,
                selector_value=selector_value,
            )
        )

    db.add(template)
    db.flush()
    audit_svc.log(
        db=db,
        action="flow_template_created",
        entity_type="flow_template",
        entity_id=template.id,
        actor_id=user.id,
        after={
            "name": template.name,
            "default_flow_type": template.default_flow_type,
            "steps": [(s.selector_type, s.selector_value) for s in template.steps],
        },
    )
    db.commit()
    logger.info("Flow template created: %s (%d steps)", template.id, len(template.steps))
    return template


# ─── Expansion ───

def expand_template(
    directory: UserDirectory,
    template: FlowTemplate,
    owner_id: uuid.UUID,
) -> list[uuid.UUID]:
    """Resolve template selectors into an ordered, de-duplicated approver list.

    A ``user`` selector must name an active user. ``role`` and ``department``
    selectors expand to every active match ordered by name, minus the
    document owner. A selector that resolves to nobody is a ValidationError.
    """
    approvers: list[uuid.UUID] = []
    seen: set[str] = set()
    owner = str(owner_id)

    for step in template.steps:
        if step.selector_type == SelectorType.user.value:
            user = directory.get_user(uuid.UUID(step.selector_value))
            if user is None:
                raise ValidationError(
                    f"Template step {step.step_order}: user {step.selector_value} not found or inactive."
                )
            candidates = [user]
        elif step.selector_type == SelectorType.role.value:
            candidates = [u for u in directory.users_with_role(step.selector_value) if str(u.id) != owner]
        elif step.selector_type == SelectorType.department.value:
            candidates = [
                u for u in directory.users_in_department(step.selector_value) if str(u.id) != owner
            ]
        else:
            raise ValidationError(
                f"Template step {step.step_order}: unknown selector type '{step.selector_type}'."
            )

        if not candidates:
            raise ValidationError(
                f"Template step {step.step_order}: no approver found for "
                f"{step.selector_type} '{step.selector_value}'."
            )

        for user in candidates:
            if str(user.id) not in seen:
                seen.add(str(user.id))
                approvers.append(user.id)

    logger.info(
        "Expanded template %s into %d approvers", template.id, len(approvers)
    )
    return approvers
