"""API v1 module."""

from fastapi import APIRouter

from orchestrator.api.v1.endpoints import deposits, redemptions, status

api_router = APIRouter()

# Include routers
api_router.include_router(status.router)
api_router.include_router(deposits.router)
api_router.include_router(redemptions.router)
