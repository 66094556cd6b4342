"""Flow template endpoints (read for everyone, create for ADMIN/MANAGER)."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from docflow.core.deps import get_current_user, require_role
from docflow.db.session import get_db
from docflow.models.user import User
from docflow.schemas.flow_template import FlowTemplateIn, FlowTemplateOut
from docflow.services import templates as template_svc

router = APIRouter()


@router.get(
    "",
    response_model=list[FlowTemplateOut],
    summary="List active flow templates visible to the current user",
)
def list_templates(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return [FlowTemplateOut.model_validate(t) for t in template_svc.list_templates(db, current_user)]


@router.get(
    "/{template_id}",
    response_model=FlowTemplateOut,
    summary="Get one flow template",
)
def get_template(
    template_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    return FlowTemplateOut.model_validate(template_svc.get_template(db, template_id))


@router.post(
    "",
    response_model=FlowTemplateOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a flow template (ADMIN, MANAGER)",
)
def create_template(
    body: FlowTemplateIn,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User, Depends(require_role(*template_svc.TEMPLATE_EDITOR_ROLES))],
):
    template = template_svc.create_template(
        db,
        current_user,
        name=body.name,
        description=body.description,
        default_flow_type=body.default_flow_type,
        is_shared=body.is_shared,
        steps=[s.model_dump() for s in body.steps],
    )
    return FlowTemplateOut.model_validate(template)
