"""
Issue Resolver
Resolves a Jira issue key into story fields, retrying once on transient
failures and falling back to a project search when the issue is unreachable.

The control flow is a small state machine. ``transition`` is a pure function
from (state, event) to (next state, action); ``IssueResolver`` performs the
actions against a ``JiraClient`` and feeds the resulting events back in.

    FETCH_PRIMARY --ok--> MAP_FIELDS --ok--> DONE
    FETCH_PRIMARY --transient--> RETRY_ONCE --ok--> MAP_FIELDS
    RETRY_ONCE --anything else--> SEARCH_FALLBACK
    FETCH_PRIMARY --not found/forbidden--> SEARCH_FALLBACK
    FETCH_PRIMARY --other failure--> DONE_WITH_ERROR
    SEARCH_FALLBACK --ok--> DONE_WITH_CANDIDATES
    SEARCH_FALLBACK --gone (410)--> SEARCH_LEGACY --ok--> DONE_WITH_CANDIDATES
    SEARCH_* --failure / no project key--> DONE_WITH_ERROR
"""
import re
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from pydantic import ValidationError as PydanticValidationError

from .jira_client import JiraClient
from .models import FallbackIssue, IssueFields, JiraResponse
from .exceptions import (
    BODY_SNIPPET_LIMIT,
    ConfigurationError,
    TrackerPermanentError,
    TrackerTransientError,
    truncate,
)

logger = logging.getLogger(__name__)

PROJECT_KEY_PATTERN = re.compile(r'^([A-Z][A-Z0-9]+)-')
TRANSIENT_MARKER = re.compile(r'temporarily unavailable', re.IGNORECASE)
# Status reported for the primary fetch when Jira could not be reached at all
UNREACHABLE_STATUS = 502


class State(Enum):
    FETCH_PRIMARY = "fetch_primary"
    RETRY_ONCE = "retry_once"
    SEARCH_FALLBACK = "search_fallback"
    SEARCH_LEGACY = "search_legacy"
    MAP_FIELDS = "map_fields"
    DONE = "done"
    DONE_WITH_CANDIDATES = "done_with_candidates"
    DONE_WITH_ERROR = "done_with_error"


TERMINAL_STATES = {State.DONE, State.DONE_WITH_CANDIDATES, State.DONE_WITH_ERROR}


class Event(Enum):
    OK = "ok"
    TRANSIENT = "transient"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    GONE = "gone"
    NO_PROJECT = "no_project"


class Action(Enum):
    FETCH_ISSUE = "fetch_issue"
    SEARCH = "search"
    SEARCH_LEGACY = "search_legacy"
    MAP_FIELDS = "map_fields"
    RETURN_FIELDS = "return_fields"
    RETURN_CANDIDATES = "return_candidates"
    RETURN_ERROR = "return_error"


_FAIL = (State.DONE_WITH_ERROR, Action.RETURN_ERROR)
_SEARCH = (State.SEARCH_FALLBACK, Action.SEARCH)
_CANDIDATES = (State.DONE_WITH_CANDIDATES, Action.RETURN_CANDIDATES)
_MAP = (State.MAP_FIELDS, Action.MAP_FIELDS)

TRANSITIONS: Dict[Tuple[State, Event], Tuple[State, Action]] = {
    (State.FETCH_PRIMARY, Event.OK): _MAP,
    (State.FETCH_PRIMARY, Event.TRANSIENT): (State.RETRY_ONCE, Action.FETCH_ISSUE),
    (State.FETCH_PRIMARY, Event.NOT_FOUND): _SEARCH,
    (State.FETCH_PRIMARY, Event.FAILED): _FAIL,

    (State.RETRY_ONCE, Event.OK): _MAP,
    (State.RETRY_ONCE, Event.TRANSIENT): _SEARCH,
    (State.RETRY_ONCE, Event.NOT_FOUND): _SEARCH,
    (State.RETRY_ONCE, Event.FAILED): _SEARCH,

    (State.SEARCH_FALLBACK, Event.OK): _CANDIDATES,
    (State.SEARCH_FALLBACK, Event.GONE): (State.SEARCH_LEGACY, Action.SEARCH_LEGACY),
    (State.SEARCH_FALLBACK, Event.FAILED): _FAIL,
    (State.SEARCH_FALLBACK, Event.NO_PROJECT): _FAIL,

    (State.SEARCH_LEGACY, Event.OK): _CANDIDATES,
    (State.SEARCH_LEGACY, Event.FAILED): _FAIL,
    (State.SEARCH_LEGACY, Event.NO_PROJECT): _FAIL,

    (State.MAP_FIELDS, Event.OK): (State.DONE, Action.RETURN_FIELDS),
}


def transition(state: State, event: Event) -> Tuple[State, Action]:
    """Pure transition function of the resolution state machine"""
    if state in TERMINAL_STATES:
        raise ValueError(f"{state.name} is terminal")
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"No transition from {state.name} on {event.name}")


def is_transient(status: int, body: str = "") -> bool:
    return status >= 500 or bool(TRANSIENT_MARKER.search(body or ""))


def classify(response: JiraResponse) -> Event:
    """Classify an issue fetch response"""
    if response.ok:
        return Event.OK
    if is_transient(response.status, response.body):
        return Event.TRANSIENT
    if response.status in (404, 403):
        return Event.NOT_FOUND
    return Event.FAILED


def classify_search(response: JiraResponse) -> Event:
    if response.ok:
        return Event.OK
    if response.status == 410:
        return Event.GONE
    return Event.FAILED


def extract_project_key(issue_key: str) -> Optional[str]:
    match = PROJECT_KEY_PATTERN.match(issue_key)
    return match.group(1) if match else None


def build_project_jql(project_key: str) -> str:
    return f"project={project_key} ORDER BY created DESC"


# Field mapping

@dataclass
class IssuePayload:
    """Typed view of the parts of a Jira issue the mapping rules read"""
    key: str = ""
    fields: Dict[str, Any] = field(default_factory=dict)
    rendered_fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_body(cls, body: str) -> "IssuePayload":
        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError:
            logger.warning("Jira issue body is not valid JSON; mapping empty fields")
            data = {}
        if not isinstance(data, dict):
            data = {}
        fields = data.get('fields') if isinstance(data.get('fields'), dict) else {}
        rendered = data.get('renderedFields') if isinstance(data.get('renderedFields'), dict) else {}
        return cls(key=str(data.get('key') or ''), fields=fields, rendered_fields=rendered)

    def source(self, name: str) -> Dict[str, Any]:
        return self.rendered_fields if name == 'renderedFields' else self.fields


@dataclass(frozen=True)
class FieldRule:
    """One extraction rule: predicate over a field name, extractor over its value"""
    name: str
    source: str
    predicate: Callable[[str], bool]
    # Returns None when the value does not qualify
    extractor: Callable[[Any], Optional[str]]


def _non_empty_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _plain_string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _structured_document(value: Any) -> Optional[str]:
    if isinstance(value, dict) and value.get('content'):
        try:
            return json.dumps(value)
        except (TypeError, ValueError):
            return ""
    return None


def _is_description(name: str) -> bool:
    return name == 'description'


def _looks_like_acceptance(name: str) -> bool:
    return bool(re.search('acceptance', name, re.IGNORECASE) or re.search('criteria', name, re.IGNORECASE))


DESCRIPTION_RULES: List[FieldRule] = [
    FieldRule("rendered-html", "renderedFields", _is_description, _non_empty_string),
    FieldRule("plain-text", "fields", _is_description, _plain_string),
    FieldRule("structured-document", "fields", _is_description, _structured_document),
]

ACCEPTANCE_CRITERIA_RULES: List[FieldRule] = [
    FieldRule("acceptance-or-criteria", "fields", _looks_like_acceptance, _plain_string),
]


def apply_rules(issue: IssuePayload, rules: List[FieldRule]) -> str:
    """Apply rules in order; the first field a rule extracts a value from wins"""
    for rule in rules:
        for name, value in issue.source(rule.source).items():
            if not rule.predicate(name):
                continue
            extracted = rule.extractor(value)
            if extracted is not None:
                logger.debug(f"Field '{name}' matched rule '{rule.name}'")
                return extracted
    return ""


def map_issue_fields(issue: IssuePayload) -> IssueFields:
    summary = issue.fields.get('summary')
    return IssueFields(
        storyTitle=summary if isinstance(summary, str) else '',
        description=apply_rules(issue, DESCRIPTION_RULES),
        acceptanceCriteria=apply_rules(issue, ACCEPTANCE_CRITERIA_RULES),
        additionalInfo=''
    )


def parse_fallback_issues(response: JiraResponse) -> List[FallbackIssue]:
    data = response.json()
    issues = data.get('issues') or []
    candidates = []
    for it in issues:
        if not isinstance(it, dict):
            continue
        fields = it.get('fields') if isinstance(it.get('fields'), dict) else {}
        summary = fields.get('summary')
        candidates.append(FallbackIssue(
            key=str(it.get('key') or ''),
            summary=summary if isinstance(summary, str) else None
        ))
    return candidates


# Driver

@dataclass
class Resolution:
    """Outcome of a resolution: HTTP status for the caller plus a JSON payload"""
    status_code: int
    payload: Dict[str, Any]
    state: Optional[State] = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @property
    def fallback_issues(self) -> List[Dict[str, Any]]:
        return self.payload.get('fallbackIssues', [])


@dataclass
class _Run:
    issue_key: str
    debug: bool
    primary: Optional[JiraResponse] = None
    issue_response: Optional[JiraResponse] = None
    fields: Optional[IssueFields] = None
    candidates: List[FallbackIssue] = field(default_factory=list)


class IssueResolver:
    """Resolves issue keys and checks credentials against one Jira site"""

    def __init__(self, jira_client: Optional[JiraClient], search_max_results: int = 10):
        self.jira_client = jira_client
        self.search_max_results = search_max_results

    def _require_client(self) -> JiraClient:
        if self.jira_client is None:
            raise ConfigurationError()
        return self.jira_client

    def resolve(self, issue_key: str, debug: bool = False) -> Resolution:
        """
        Resolve an issue key to story fields.

        Returns a Resolution with status 200 and mapped fields, 404 with
        ``fallbackIssues`` when the project search succeeded, or the original
        failure's status with an error payload.

        Raises:
            ConfigurationError: Jira credentials are not configured; no request is made.
        """
        client = self._require_client()
        run = _Run(issue_key=issue_key, debug=debug)

        state = State.FETCH_PRIMARY
        event = self._fetch_primary(client, run)

        while True:
            state, action = transition(state, event)
            logger.debug(f"{issue_key}: {event.name} -> {state.name} ({action.name})")

            if action is Action.FETCH_ISSUE:
                event = self._retry(client, run)
            elif action is Action.SEARCH:
                event = self._search(client, run, legacy=False)
            elif action is Action.SEARCH_LEGACY:
                event = self._search(client, run, legacy=True)
            elif action is Action.MAP_FIELDS:
                issue = IssuePayload.from_body(run.issue_response.body)
                run.fields = map_issue_fields(issue)
                event = Event.OK
            elif action is Action.RETURN_FIELDS:
                return self._fields_resolution(run, state)
            elif action is Action.RETURN_CANDIDATES:
                return self._candidates_resolution(run, state)
            else:
                return self._error_resolution(run, state)

    def _fetch_primary(self, client: JiraClient, run: _Run) -> Event:
        try:
            response = client.get_issue(run.issue_key)
        except requests.RequestException as e:
            logger.error(f"Jira request for {run.issue_key} failed: {type(e).__name__}")
            response = JiraResponse(status=UNREACHABLE_STATUS, body='')

        run.primary = response
        if response.ok:
            run.issue_response = response
        else:
            logger.error(f"Jira API returned non-ok for {run.issue_key}: status={response.status}")
            logger.debug(f"Jira error body: {truncate(response.body, 200)}")
        return classify(response)

    def _retry(self, client: JiraClient, run: _Run) -> Event:
        logger.info(f"Transient Jira failure for {run.issue_key}, retrying once")
        try:
            response = client.get_issue(run.issue_key)
        except requests.RequestException as e:
            logger.warning(f"Retry for {run.issue_key} failed: {type(e).__name__}")
            return Event.FAILED

        if response.ok:
            run.issue_response = response
        return classify(response)

    def _search(self, client: JiraClient, run: _Run, legacy: bool) -> Event:
        project_key = extract_project_key(run.issue_key)
        if not project_key:
            logger.info(f"No project key in '{run.issue_key}', skipping fallback search")
            return Event.NO_PROJECT

        jql = build_project_jql(project_key)
        try:
            response = client.search(jql, max_results=self.search_max_results, legacy=legacy)
        except requests.RequestException as e:
            logger.warning(f"Fallback search for project {project_key} failed: {type(e).__name__}")
            return Event.FAILED

        logger.info(f"Jira search ({'legacy' if legacy else 'jql'}) for {project_key}: status={response.status}")
        event = classify_search(response)
        if legacy and event is Event.GONE:
            event = Event.FAILED

        if event is Event.OK:
            try:
                run.candidates = parse_fallback_issues(response)
            except (json.JSONDecodeError, AttributeError, PydanticValidationError) as e:
                logger.warning(f"Unreadable search response for {project_key}: {e}")
                return Event.FAILED
            logger.info(f"Returning fallbackIssues count={len(run.candidates)}")
        return event

    def _fields_resolution(self, run: _Run, state: State) -> Resolution:
        payload = run.fields.model_dump()
        if run.debug:
            payload['rawJiraResponse'] = run.issue_response.body
        return Resolution(status_code=200, payload=payload, state=state)

    def _candidates_resolution(self, run: _Run, state: State) -> Resolution:
        return Resolution(
            status_code=404,
            payload={
                'error': 'Issue not found or inaccessible',
                'details': truncate(run.primary.body),
                'fallbackIssues': [c.model_dump() for c in run.candidates]
            },
            state=state
        )

    def _error_resolution(self, run: _Run, state: State) -> Resolution:
        snippet = truncate(run.primary.body, BODY_SNIPPET_LIMIT)
        return Resolution(
            status_code=run.primary.status,
            payload={
                'error': 'Failed to fetch Jira issue',
                'details': snippet,
                'rawJiraResponse': snippet
            },
            state=state
        )

    def fetch_story(self, issue_key: str) -> IssueFields:
        """Resolve an issue and return its fields, raising on any other outcome"""
        resolution = self.resolve(issue_key)
        if not resolution.ok:
            raise TrackerPermanentError(
                resolution.status_code,
                resolution.payload.get('details', ''),
                message=resolution.payload.get('error', 'Failed to fetch Jira issue')
            )
        return IssueFields(**resolution.payload)

    def check_auth(self) -> Resolution:
        """
        Verify credentials against /myself.

        Transient failures are retried once and reported as 503; any other
        failure (bad credentials included) is reported with HTTP 200 and
        ``ok: false`` so the UI does not treat it as a server error.
        """
        client = self._require_client()

        try:
            response = client.get_myself()
        except requests.RequestException as e:
            response = JiraResponse(status=0, body=str(e))

        if not response.ok and is_transient(response.status, response.body):
            logger.info("Transient Jira failure on /myself, retrying once")
            try:
                response = client.get_myself()
            except requests.RequestException as e:
                logger.warning(f"Retry of /myself failed: {type(e).__name__}")

        if response.ok:
            return Resolution(200, {'ok': True, 'status': response.status, 'message': 'Authenticated'})

        if is_transient(response.status, response.body):
            return Resolution(503, {'ok': False, 'status': 503, 'message': TrackerTransientError().message})

        return Resolution(200, {
            'ok': False,
            'status': response.status,
            'message': 'Jira /myself returned non-OK',
            'details': truncate(response.body)
        })
