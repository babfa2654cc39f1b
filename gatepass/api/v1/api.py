from fastapi import APIRouter
from gatepass.api.v1.endpoints.auth import login, users
from gatepass.api.v1.endpoints.gate_pass import gate_passes
from gatepass.api.v1.endpoints.notification import notifications
from gatepass.api.v1.endpoints.organization import departments

api_router = APIRouter()

# Authentication routes
api_router.include_router(login.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Organization routes
api_router.include_router(departments.router, prefix="/departments", tags=["Organization"])

# Gate pass routes
api_router.include_router(gate_passes.router, prefix="/gate-passes", tags=["Gate Passes"])

# Notification routes
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
