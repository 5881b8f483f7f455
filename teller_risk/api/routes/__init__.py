"""API routes package."""

from fastapi import APIRouter

from teller_risk.api.routes.alerts import router as alerts_router
from teller_risk.api.routes.approvals import router as approvals_router
from teller_risk.api.routes.audit_logs import router as audit_logs_router
from teller_risk.api.routes.health import router as health_router
from teller_risk.api.routes.members import router as members_router
from teller_risk.api.routes.risk_check import router as risk_check_router
from teller_risk.api.routes.transactions import router as transactions_router

# Create API router with all sub-routers
api_router = APIRouter()

# Register all route modules
api_router.include_router(health_router)
api_router.include_router(transactions_router)
api_router.include_router(risk_check_router)
api_router.include_router(alerts_router)
api_router.include_router(approvals_router)
api_router.include_router(audit_logs_router)
api_router.include_router(members_router)


__all__ = [
    "api_router",
    "alerts_router",
    "approvals_router",
    "audit_logs_router",
    "health_router",
    "members_router",
    "risk_check_router",
    "transactions_router",
]
