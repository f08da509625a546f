"""
Routes Package
Aggregate all route routers
"""
from fastapi import APIRouter

# Import all routers
from .health import router as health_router
from .test_generation import router as test_generation_router
from .jira import router as jira_router
from .mockdata import router as mockdata_router

# Routes mounted under the API prefix
api_router = APIRouter()

api_router.include_router(test_generation_router)
api_router.include_router(jira_router)
api_router.include_router(mockdata_router)

__all__ = ["api_router", "health_router"]
