"""
Health Routes
Health check and configuration status endpoints
"""
from fastapi import APIRouter, Depends
from datetime import datetime

from ..dependencies import Services, get_services

router = APIRouter()


@router.get("/", tags=["Health"])
async def root():
    """Basic health check endpoint"""
    return {
        "message": "User Story to Tests API",
        "status": "healthy",
        "version": "1.0.0",
        "docs_url": "/docs",
        "redoc_url": "/redoc"
    }


@router.get("/health", tags=["Health"])
async def health_check(services: Services = Depends(get_services)):
    """Report whether the LLM and Jira are configured"""
    llm_ready = services.llm_client.is_configured
    jira_ready = services.jira_client is not None

    return {
        "status": "healthy" if llm_ready else "degraded",
        "timestamp": datetime.now().isoformat(),
        "services": {
            "llm": "configured" if llm_ready else "not_configured",
            "jira": "configured" if jira_ready else "not_configured"
        }
    }
