from typing import Dict, Any, Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator
import json
from dataclasses import dataclass

CATEGORIES = ["Positive", "Negative", "Edge", "Authorization", "Non-Functional"]


class StoryRequest(BaseModel):
    """User story submitted for test case generation"""
    model_config = ConfigDict(extra="ignore")

    storyTitle: str = Field(..., description="User story title")
    acceptanceCriteria: str = Field(..., description="Acceptance criteria text")
    description: Optional[str] = Field(None, description="Longer story description")
    additionalInfo: Optional[str] = Field(None, description="Any additional context")
    categories: Optional[List[str]] = Field(
        None,
        description="Restrict generation to these categories (all categories when empty)",
        examples=[["Positive", "Negative"]]
    )

    @field_validator("storyTitle", "acceptanceCriteria")
    @classmethod
    def _required_text(cls, v: str, info) -> str:
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} is required")
        return v

    @field_validator("categories")
    @classmethod
    def _dedupe_categories(cls, v):
        if v is None:
            return v
        seen = []
        for category in v:
            category = category.strip()
            if category and category not in seen:
                seen.append(category)
        return seen


class TestCase(BaseModel):
    """A single generated test case"""
    __test__ = False

    id: str = Field(..., description="Test case ID, e.g. TC-001")
    title: str
    steps: List[str] = Field(default_factory=list)
    testData: Optional[str] = None
    expectedResult: str
    # Open string; the five known categories are guidance for the model only
    category: str

    @field_validator("testData", mode="before")
    @classmethod
    def _stringify_test_data(cls, v):
        if v is None or isinstance(v, str):
            return v
        return json.dumps(v)


class GenerateResponse(BaseModel):
    cases: List[TestCase] = Field(default_factory=list)
    model: Optional[str] = None
    promptTokens: int = Field(0, ge=0)
    completionTokens: int = Field(0, ge=0)


class IssueFields(BaseModel):
    """Story fields mapped from a Jira issue"""
    storyTitle: str = ""
    description: str = ""
    acceptanceCriteria: str = ""
    additionalInfo: str = ""


class FallbackIssue(BaseModel):
    key: str
    summary: Optional[str] = None


class MockDataRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    rows: int = Field(10, ge=1, le=10000)
    schemaDescription: str = Field(..., min_length=1)
    format: Literal["json", "csv"] = "json"
    seed: Optional[int] = None
    previewOnly: bool = False


class MockDataResponse(BaseModel):
    data: Optional[str] = None
    prompt: Optional[str] = None
    format: Optional[Literal["json", "csv"]] = None


@dataclass
class JiraResponse:
    """Status and body of one Jira HTTP exchange"""
    status: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Dict[str, Any]:
        return json.loads(self.body) if self.body else {}
