"""
Jira Routes
Read-only story lookup with project fallback, and a credential check
"""
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
import logging

from storytests.exceptions import ConfigurationError
from storytests.issue_resolver import IssueResolver

from ..models.jira import JiraStoryResponse, JiraStoryErrorResponse, AuthCheckResponse
from ..models.test_generation import ErrorResponse
from ..dependencies import get_issue_resolver

router = APIRouter(prefix="/jira", tags=["Jira"])
logger = logging.getLogger(__name__)


@router.get("/story/{issue_id}",
         response_model=JiraStoryResponse,
         response_model_exclude_none=True,
         responses={
             404: {"model": JiraStoryErrorResponse, "description": "Issue not found; candidate issues from the same project"},
             500: {"model": ErrorResponse, "description": "Jira credentials not configured"},
         },
         summary="Fetch a Jira issue as story fields",
         description="Map a Jira issue to storyTitle, description, acceptanceCriteria and additionalInfo. Transient Jira failures are retried once; unknown issues return recent issues from the same project.")
def get_story(
    issue_id: str,
    debug: bool = Query(False, description="Include the raw Jira issue body as rawJiraResponse"),
    resolver: IssueResolver = Depends(get_issue_resolver)
):
    """Fetch a Jira issue and map it to story fields"""
    logger.info(f"Fetching Jira story {issue_id} (debug={debug})")
    resolution = resolver.resolve(issue_id, debug=debug)

    if resolution.ok:
        return resolution.payload

    logger.info(f"Jira story {issue_id} not resolved: status={resolution.status_code}, fallbackIssues={len(resolution.fallback_issues)}")
    return JSONResponse(status_code=resolution.status_code, content=resolution.payload)


@router.get("/auth-check",
         response_model=AuthCheckResponse,
         response_model_exclude_none=True,
         responses={503: {"model": AuthCheckResponse}, 500: {"model": AuthCheckResponse}},
         summary="Check Jira credentials",
         description="Call Jira /myself with the configured credentials. Rejected credentials are reported with ok=false and HTTP 200.")
def auth_check(resolver: IssueResolver = Depends(get_issue_resolver)):
    """Verify the configured Jira credentials"""
    try:
        resolution = resolver.check_auth()
    except ConfigurationError as e:
        return JSONResponse(status_code=500, content={"ok": False, "status": 500, "message": e.message})

    logger.info(f"Jira auth check: ok={resolution.payload.get('ok')} status={resolution.payload.get('status')}")
    if resolution.status_code != 200:
        return JSONResponse(status_code=resolution.status_code, content=resolution.payload)
    return resolution.payload
