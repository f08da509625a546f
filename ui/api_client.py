"""
Client for the User Story to Tests API, used by the Streamlit page.
"""
import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = os.getenv("STORYTESTS_API_BASE_URL", "http://localhost:8090/api")


class APIError(Exception):
    """Non-OK API response, carrying the server's error message"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StoryTestsAPIClient:
    """Simple client for the User Story to Tests API"""

    def __init__(self, base_url: str = DEFAULT_API_BASE_URL, timeout: float = 120):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

    @staticmethod
    def _body(response: requests.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _raise_for_error(self, response: requests.Response, data: Dict[str, Any]):
        if not response.ok:
            raise APIError(data.get('error') or f"HTTP {response.status_code}", response.status_code)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        data = self._body(response)
        self._raise_for_error(response, data)
        return data

    def health_check(self) -> dict:
        """Check API health status (served outside the /api prefix)"""
        root = self.base_url[:-len('/api')] if self.base_url.endswith('/api') else self.base_url
        response = self.session.get(f"{root}/health", timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def generate_tests(self, request: Dict[str, Any]) -> dict:
        """Generate test cases for a story"""
        return self._post('/generate-tests', request)

    def fetch_jira_story(self, issue_id: str) -> dict:
        """
        Fetch story fields for a Jira issue.

        Returns ``{"fields": {...}}`` on success or ``{"fallbackIssues": [...]}``
        when the issue was not found but the project search succeeded.

        Raises:
            APIError: Any other failure.
        """
        response = self.session.get(
            f"{self.base_url}/jira/story/{quote(issue_id, safe='')}",
            timeout=self.timeout
        )
        data = self._body(response)

        if not response.ok:
            if data.get('fallbackIssues'):
                return {'fallbackIssues': data['fallbackIssues']}
            raise APIError(data.get('error') or f"HTTP {response.status_code}", response.status_code)

        return {
            'fields': {
                'storyTitle': data.get('storyTitle') or '',
                'description': data.get('description') or '',
                'acceptanceCriteria': data.get('acceptanceCriteria') or '',
                'additionalInfo': data.get('additionalInfo') or ''
            }
        }

    def fetch_mock_data(self, request: Dict[str, Any]) -> dict:
        return self._post('/mockdata', request)

    def preview_mock_prompt(self, request: Dict[str, Any]) -> dict:
        return self._post('/mockdata', {**request, 'previewOnly': True})

    def auth_check(self) -> dict:
        """Check the server's Jira credentials; ok=false bodies are returned, not raised"""
        response = self.session.get(f"{self.base_url}/jira/auth-check", timeout=self.timeout)
        data = self._body(response)
        if 'ok' in data:
            return data
        self._raise_for_error(response, data)
        return data
