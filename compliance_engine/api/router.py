"""
Top-level API router.
Combines all sub-routers into a single router.
"""

from fastapi import APIRouter

from compliance_engine.api.audit import router as audit_router
from compliance_engine.api.compliance import router as compliance_router
from compliance_engine.api.documents import router as documents_router
from compliance_engine.api.health import router as health_router
from compliance_engine.api.risk import router as risk_router
from compliance_engine.api.workflow import router as workflow_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(documents_router)
api_router.include_router(risk_router)
api_router.include_router(compliance_router)
api_router.include_router(audit_router)
api_router.include_router(workflow_router)
