"""
Exception hierarchy for the story-to-tests service.

Every error carries the HTTP status the API layer should answer with and a
message that is safe to return to callers. Provider and tracker internals stay
on the exception object (and in server logs) and never reach the response body
unless a subclass explicitly opts in.
"""
from typing import Any, Dict, Optional

BODY_SNIPPET_LIMIT = 500


def truncate(text: Optional[str], limit: int = BODY_SNIPPET_LIMIT) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


class StoryTestsError(Exception):
    """Base exception for all service errors"""

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        payload.update(self.details)
        return payload


class ValidationError(StoryTestsError):
    """Request body or parameters failed validation"""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class ConfigurationError(StoryTestsError):
    """Required credentials are missing; the message never names the secret"""

    def __init__(self, message: str = "Jira credentials not configured on server"):
        super().__init__(message, status_code=500)


# LLM errors

class LLMError(StoryTestsError):
    """Base class for failures talking to the LLM provider"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message, status_code=status_code)


class ProviderError(LLMError):
    """Provider answered non-2xx or could not be reached; holds status and reason only"""

    def __init__(self, provider_status: int, reason: str = ""):
        self.provider_status = provider_status
        self.reason = reason
        super().__init__(f"LLM API error: {provider_status} {reason}".strip())


class EmptyResponseError(LLMError):
    def __init__(self, message: str = "No content received from LLM API"):
        super().__init__(message)


class MalformedResponseError(LLMError):
    def __init__(self, message: str = "Invalid JSON response from LLM API"):
        super().__init__(message)


class LLMCallFailed(LLMError):
    """The only LLM error surfaced to HTTP callers"""

    def __init__(self, message: str = "Failed to call LLM API"):
        super().__init__(message)


# Tracker errors

class TrackerError(StoryTestsError):
    pass


class TrackerTransientError(TrackerError):
    def __init__(self, message: str = "Jira site temporarily unavailable"):
        super().__init__(message, status_code=503)


class TrackerPermanentError(TrackerError):
    """Tracker refused the request; status is propagated with a bounded body snippet"""

    def __init__(self, tracker_status: int, body: str = "", message: str = "Failed to fetch Jira issue"):
        self.tracker_status = tracker_status
        self.body = truncate(body)
        super().__init__(message, status_code=tracker_status, details={"details": self.body})
