"""
Jira Models
Response models for the read-only Jira story and auth-check endpoints
"""
from pydantic import BaseModel, Field
from typing import Optional, List

from storytests.models import IssueFields, FallbackIssue


class JiraStoryResponse(IssueFields):
    """Story fields mapped from a Jira issue"""
    rawJiraResponse: Optional[str] = Field(
        None,
        description="Raw Jira issue body (only when debug=true)"
    )


class JiraStoryErrorResponse(BaseModel):
    """Failure to fetch an issue, with candidate issues when the project search succeeded"""
    error: str = Field(..., examples=["Issue not found or inaccessible"])
    details: Optional[str] = Field(None, description="Bounded snippet of the Jira error body")
    fallbackIssues: Optional[List[FallbackIssue]] = Field(
        None,
        description="Recent issues from the same project"
    )
    rawJiraResponse: Optional[str] = None


class AuthCheckResponse(BaseModel):
    ok: bool = Field(..., description="Whether Jira accepted the configured credentials")
    status: int = Field(..., description="Jira status code (503 after a transient failure)")
    message: str = Field(..., examples=["Authenticated"])
    details: Optional[str] = None
