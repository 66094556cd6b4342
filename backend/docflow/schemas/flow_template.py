"""Pydantic schemas for flow templates."""
import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FlowTemplateStepIn(BaseModel):
    selector_type: str
    selector_value: str


class FlowTemplateStepOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    step_order: int
    selector_type: str
    selector_value: str


class FlowTemplateIn(BaseModel):
    name: str
    description: str | None = None
    default_flow_type: str = "standard"
    is_shared: bool = True
    steps: list[FlowTemplateStepIn] = Field(default_factory=list)


class FlowTemplateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: str | None
    default_flow_type: str
    is_shared: bool
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime
    steps: list[FlowTemplateStepOut]
