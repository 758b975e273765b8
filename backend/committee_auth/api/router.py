from fastapi import APIRouter

from committee_auth.api.auth import router as auth_router
from committee_auth.api.claude import router as claude_router
from committee_auth.api.health import router as health_router

api_router = APIRouter()

# Include sub-routers
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router)
api_router.include_router(claude_router)
