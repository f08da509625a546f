"""
Mock Data Models
Request and response models for the mock data endpoint
"""
from storytests.models import MockDataRequest, MockDataResponse

__all__ = ["MockDataRequest", "MockDataResponse"]
