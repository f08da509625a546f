import json

import pytest
from unittest.mock import Mock

from storytests.config import LLMSettings, JiraSettings
from storytests.jira_client import JiraClient
from storytests.models import JiraResponse


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep developer .env files and shell credentials out of the tests"""
    for var in ('GROQ_API_KEY', 'GROQ_API_BASE', 'GROQ_MODEL', 'LLM_TIMEOUT',
                'JIRA_BASE_URL', 'JIRA_USER_EMAIL', 'JIRA_API_TOKEN',
                'ENVIRONMENT', 'CORS_ORIGINS', 'LOG_LEVEL', 'HOST', 'PORT',
                'STORYTESTS_CONFIG'):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr('storytests.config.load_dotenv', lambda *args, **kwargs: False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def llm_settings():
    return LLMSettings(api_key='test-key', model='llama3-8b-8192')


@pytest.fixture
def jira_settings():
    return JiraSettings(
        server_url='https://example.atlassian.net',
        username='qa@example.com',
        api_token='token-123'
    )


@pytest.fixture
def sample_issue():
    return {
        'key': 'ABC-1',
        'fields': {
            'summary': 'User can reset password',
            'description': 'Plain description',
            'Acceptance Criteria': 'Given a registered user\nWhen they request a reset\nThen an email is sent',
            'status': {'name': 'To Do'}
        },
        'renderedFields': {
            'description': '<p>Rendered <b>description</b></p>'
        }
    }


@pytest.fixture
def search_result():
    return {
        'issues': [
            {'key': 'ABC-2', 'fields': {'summary': 'Login page'}},
            {'key': 'ABC-3', 'fields': {'summary': 'Signup flow'}}
        ]
    }


@pytest.fixture
def jira_response():
    """Factory for a JiraResponse with a JSON payload or a raw body"""
    def make(status, payload=None, body=None):
        if body is None:
            body = json.dumps(payload) if payload is not None else ''
        return JiraResponse(status=status, body=body)
    return make


@pytest.fixture
def mock_jira_client():
    return Mock(spec=JiraClient)
