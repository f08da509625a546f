import requests
from typing import Optional
import logging
from urllib.parse import quote

from .config import JiraSettings
from .models import JiraResponse

logger = logging.getLogger(__name__)

ISSUE_PATH = '/rest/api/3/issue/{key}'
SEARCH_PATH = '/rest/api/3/search/jql'
LEGACY_SEARCH_PATH = '/rest/api/3/search'
MYSELF_PATH = '/rest/api/3/myself'


class JiraClient:
    """Read-only Jira Cloud client; every call returns the raw status and body"""

    def __init__(self, server_url: str, username: str, api_token: str, timeout: float = 30):
        self.server_url = server_url.rstrip('/')
        self.auth = (username, api_token)
        self.timeout = timeout

        logger.debug(f"JiraClient initialized for {self.server_url}")
        self.session = requests.Session()
        self.session.auth = self.auth
        self.session.headers.update({
            'Accept': 'application/json'
        })

    @classmethod
    def from_settings(cls, settings: JiraSettings) -> Optional["JiraClient"]:
        """Build a client, or None when any credential is missing"""
        if not settings.is_configured:
            return None
        return cls(
            server_url=settings.server_url,
            username=settings.username,
            api_token=settings.api_token,
            timeout=settings.request_timeout
        )

    def _get(self, path: str, params: Optional[dict] = None) -> JiraResponse:
        url = f"{self.server_url}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        logger.info(f"Jira GET {path} -> {response.status_code}")
        return JiraResponse(status=response.status_code, body=response.text or '')

    def get_issue(self, issue_key: str, expand: Optional[str] = 'renderedFields') -> JiraResponse:
        """Fetch one issue; raises requests.RequestException on transport failure"""
        path = ISSUE_PATH.format(key=quote(issue_key, safe=''))
        params = {'expand': expand} if expand else None
        return self._get(path, params)

    def search(self, jql: str, max_results: int = 10, legacy: bool = False) -> JiraResponse:
        """Search issues with JQL on the enhanced endpoint, or the older one when legacy"""
        params = {
            'jql': jql,
            'maxResults': max_results,
            'fields': 'summary'
        }
        return self._get(LEGACY_SEARCH_PATH if legacy else SEARCH_PATH, params)

    def get_myself(self) -> JiraResponse:
        return self._get(MYSELF_PATH)
