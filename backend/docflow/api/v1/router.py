from fastapi import APIRouter

from docflow.api.v1 import approval_flows, flow_templates

api_router = APIRouter()

api_router.include_router(approval_flows.router, prefix="/approval-flows", tags=["approval-flows"])
api_router.include_router(flow_templates.router, prefix="/flow-templates", tags=["flow-templates"])
