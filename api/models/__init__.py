"""
Models Package
Export all API models for easy imports
"""
# Test generation models
from .test_generation import (
    StoryRequest,
    TestCase,
    GenerateResponse,
    ErrorResponse
)

# Jira models
from .jira import (
    JiraStoryResponse,
    JiraStoryErrorResponse,
    AuthCheckResponse
)

# Mock data models
from .mockdata import (
    MockDataRequest,
    MockDataResponse
)

__all__ = [
    "StoryRequest",
    "TestCase",
    "GenerateResponse",
    "ErrorResponse",
    "JiraStoryResponse",
    "JiraStoryErrorResponse",
    "AuthCheckResponse",
    "MockDataRequest",
    "MockDataResponse",
]
