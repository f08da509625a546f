"""
Tests for the issue resolver: transition table, classification, field mapping
and the resolution driver against a mocked JiraClient
"""
import json

import pytest
import requests

from storytests.exceptions import ConfigurationError, TrackerPermanentError
from storytests.issue_resolver import (
    Action,
    Event,
    IssuePayload,
    IssueResolver,
    State,
    TERMINAL_STATES,
    apply_rules,
    build_project_jql,
    classify,
    classify_search,
    extract_project_key,
    is_transient,
    map_issue_fields,
    parse_fallback_issues,
    transition,
    ACCEPTANCE_CRITERIA_RULES,
    DESCRIPTION_RULES,
)
from storytests.models import FallbackIssue, JiraResponse


class TestTransition:

    @pytest.mark.parametrize('state, event, expected', [
        (State.FETCH_PRIMARY, Event.OK, (State.MAP_FIELDS, Action.MAP_FIELDS)),
        (State.FETCH_PRIMARY, Event.TRANSIENT, (State.RETRY_ONCE, Action.FETCH_ISSUE)),
        (State.FETCH_PRIMARY, Event.NOT_FOUND, (State.SEARCH_FALLBACK, Action.SEARCH)),
        (State.FETCH_PRIMARY, Event.FAILED, (State.DONE_WITH_ERROR, Action.RETURN_ERROR)),
        (State.RETRY_ONCE, Event.OK, (State.MAP_FIELDS, Action.MAP_FIELDS)),
        (State.RETRY_ONCE, Event.TRANSIENT, (State.SEARCH_FALLBACK, Action.SEARCH)),
        (State.RETRY_ONCE, Event.FAILED, (State.SEARCH_FALLBACK, Action.SEARCH)),
        (State.SEARCH_FALLBACK, Event.OK, (State.DONE_WITH_CANDIDATES, Action.RETURN_CANDIDATES)),
        (State.SEARCH_FALLBACK, Event.GONE, (State.SEARCH_LEGACY, Action.SEARCH_LEGACY)),
        (State.SEARCH_FALLBACK, Event.NO_PROJECT, (State.DONE_WITH_ERROR, Action.RETURN_ERROR)),
        (State.SEARCH_LEGACY, Event.OK, (State.DONE_WITH_CANDIDATES, Action.RETURN_CANDIDATES)),
        (State.SEARCH_LEGACY, Event.FAILED, (State.DONE_WITH_ERROR, Action.RETURN_ERROR)),
        (State.MAP_FIELDS, Event.OK, (State.DONE, Action.RETURN_FIELDS)),
    ])
    def test_table(self, state, event, expected):
        assert transition(state, event) == expected

    @pytest.mark.parametrize('state', sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_have_no_transitions(self, state):
        with pytest.raises(ValueError):
            transition(state, Event.OK)

    def test_retry_happens_at_most_once(self):
        state, _ = transition(State.FETCH_PRIMARY, Event.TRANSIENT)
        state, action = transition(state, Event.TRANSIENT)
        assert action is not Action.FETCH_ISSUE

    def test_legacy_search_is_not_repeated(self):
        with pytest.raises(ValueError):
            transition(State.SEARCH_LEGACY, Event.GONE)


class TestClassification:

    @pytest.mark.parametrize('status, body, expected', [
        (503, '', True),
        (500, '', True),
        (404, '', False),
        (403, '', False),
        (400, 'Site temporarily unavailable', True),
        (404, 'TEMPORARILY UNAVAILABLE', True),
        (401, 'Unauthorized', False),
    ])
    def test_is_transient(self, status, body, expected):
        assert is_transient(status, body) is expected

    @pytest.mark.parametrize('status, body, expected', [
        (200, '{}', Event.OK),
        (503, '', Event.TRANSIENT),
        (404, '', Event.NOT_FOUND),
        (403, '', Event.NOT_FOUND),
        (404, 'temporarily unavailable', Event.TRANSIENT),
        (401, '', Event.FAILED),
        (400, '', Event.FAILED),
    ])
    def test_classify(self, status, body, expected):
        assert classify(JiraResponse(status=status, body=body)) is expected

    @pytest.mark.parametrize('status, expected', [
        (200, Event.OK),
        (410, Event.GONE),
        (400, Event.FAILED),
        (503, Event.FAILED),
    ])
    def test_classify_search(self, status, expected):
        assert classify_search(JiraResponse(status=status)) is expected


class TestProjectKey:

    @pytest.mark.parametrize('issue_key, expected', [
        ('GOOG-123', 'GOOG'),
        ('AB2-7', 'AB2'),
        ('123', None),
        ('abc-1', None),
        ('A-1', None),
        ('1AB-1', None),
    ])
    def test_extract_project_key(self, issue_key, expected):
        assert extract_project_key(issue_key) == expected

    def test_jql(self):
        assert build_project_jql('ABC') == 'project=ABC ORDER BY created DESC'


class TestFieldMapping:

    def test_prefers_rendered_description(self, sample_issue):
        fields = map_issue_fields(IssuePayload.from_body(json.dumps(sample_issue)))

        assert fields.storyTitle == 'User can reset password'
        assert fields.description == '<p>Rendered <b>description</b></p>'
        assert fields.acceptanceCriteria.startswith('Given a registered user')
        assert fields.additionalInfo == ''

    def test_plain_description_when_not_rendered(self, sample_issue):
        sample_issue['renderedFields'] = {'description': ''}
        fields = map_issue_fields(IssuePayload.from_body(json.dumps(sample_issue)))
        assert fields.description == 'Plain description'

    def test_structured_description_is_stringified(self, sample_issue):
        document = {'type': 'doc', 'version': 1, 'content': [{'type': 'paragraph'}]}
        sample_issue['renderedFields'] = {}
        sample_issue['fields']['description'] = document

        fields = map_issue_fields(IssuePayload.from_body(json.dumps(sample_issue)))
        assert json.loads(fields.description) == document

    def test_missing_description(self):
        issue = IssuePayload(fields={'summary': 'Only a title', 'description': None})
        assert map_issue_fields(issue).description == ''

    def test_first_acceptance_match_wins(self):
        issue = IssuePayload(fields={
            'customfield_1': 'ignored, not a match',
            'Acceptance Criteria': 'first',
            'Criteria for escalation': 'second',
        })
        assert apply_rules(issue, ACCEPTANCE_CRITERIA_RULES) == 'first'

    def test_acceptance_skips_non_string_values(self):
        issue = IssuePayload(fields={
            'acceptance_doc': {'type': 'doc'},
            'criteria': 'plain text criteria',
        })
        assert apply_rules(issue, ACCEPTANCE_CRITERIA_RULES) == 'plain text criteria'

    def test_no_acceptance_field(self):
        assert apply_rules(IssuePayload(fields={'summary': 'x'}), ACCEPTANCE_CRITERIA_RULES) == ''

    def test_rule_order(self):
        assert [rule.name for rule in DESCRIPTION_RULES] == ['rendered-html', 'plain-text', 'structured-document']

    def test_unparseable_body_maps_to_empty_fields(self):
        fields = map_issue_fields(IssuePayload.from_body('<html>not json</html>'))
        assert fields.storyTitle == ''
        assert fields.description == ''

    def test_parse_fallback_issues(self, search_result):
        issues = parse_fallback_issues(JiraResponse(200, json.dumps(search_result)))
        assert [(i.key, i.summary) for i in issues] == [('ABC-2', 'Login page'), ('ABC-3', 'Signup flow')]

    def test_parse_fallback_issues_without_summary(self):
        issues = parse_fallback_issues(JiraResponse(200, json.dumps({'issues': [{'key': 'ABC-9'}]})))
        assert issues[0].key == 'ABC-9'
        assert issues[0].summary is None

    def test_parse_fallback_issues_with_odd_values(self):
        body = json.dumps({'issues': [
            {'key': None, 'fields': {'summary': 'No key'}},
            {'key': 'ABC-3', 'fields': {'summary': 12}},
            {'key': 'ABC-4', 'fields': None},
            'not an issue',
        ]})

        issues = parse_fallback_issues(JiraResponse(200, body))

        assert [(i.key, i.summary) for i in issues] == [
            ('', 'No key'),
            ('ABC-3', None),
            ('ABC-4', None),
        ]


class TestResolve:

    def test_unconfigured_makes_no_request(self):
        resolver = IssueResolver(None)
        with pytest.raises(ConfigurationError) as exc_info:
            resolver.resolve('ABC-1')
        assert exc_info.value.status_code == 500
        assert exc_info.value.message == 'Jira credentials not configured on server'

    def test_success(self, mock_jira_client, jira_response, sample_issue):
        mock_jira_client.get_issue.return_value = jira_response(200, sample_issue)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.ok
        assert resolution.state is State.DONE
        assert resolution.payload['storyTitle'] == 'User can reset password'
        assert 'rawJiraResponse' not in resolution.payload
        mock_jira_client.search.assert_not_called()

    def test_debug_includes_raw_body(self, mock_jira_client, jira_response, sample_issue):
        mock_jira_client.get_issue.return_value = jira_response(200, sample_issue)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1', debug=True)

        assert json.loads(resolution.payload['rawJiraResponse']) == sample_issue

    def test_transient_then_success_uses_retried_response(self, mock_jira_client, jira_response, sample_issue):
        mock_jira_client.get_issue.side_effect = [
            jira_response(503, body='Service Unavailable'),
            jira_response(200, sample_issue),
        ]

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1', debug=True)

        assert resolution.ok
        assert mock_jira_client.get_issue.call_count == 2
        assert json.loads(resolution.payload['rawJiraResponse']) == sample_issue

    def test_transient_twice_falls_back_to_search(self, mock_jira_client, jira_response, search_result):
        mock_jira_client.get_issue.return_value = jira_response(503, body='Site temporarily unavailable')
        mock_jira_client.search.return_value = jira_response(200, search_result)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert mock_jira_client.get_issue.call_count == 2
        assert resolution.status_code == 404
        assert resolution.state is State.DONE_WITH_CANDIDATES
        assert resolution.payload['fallbackIssues'] == [
            {'key': 'ABC-2', 'summary': 'Login page'},
            {'key': 'ABC-3', 'summary': 'Signup flow'},
        ]

    def test_retry_network_error_falls_through(self, mock_jira_client, jira_response, search_result):
        mock_jira_client.get_issue.side_effect = [
            jira_response(502, body=''),
            requests.ConnectionError('reset'),
        ]
        mock_jira_client.search.return_value = jira_response(200, search_result)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 404
        assert len(resolution.fallback_issues) == 2

    def test_primary_network_error_counts_as_transient(self, mock_jira_client, jira_response, search_result):
        mock_jira_client.get_issue.side_effect = requests.ConnectionError('refused')
        mock_jira_client.search.return_value = jira_response(200, search_result)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert mock_jira_client.get_issue.call_count == 2
        assert resolution.status_code == 404

    def test_not_found_with_candidates(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='{"errorMessages":["Issue does not exist"]}')
        mock_jira_client.search.return_value = jira_response(200, {
            'issues': [{'key': 'ABC-2', 'fields': {'summary': 'Login page'}}]
        })

        resolution = IssueResolver(mock_jira_client, search_max_results=7).resolve('ABC-1')

        assert resolution.status_code == 404
        assert resolution.payload['error'] == 'Issue not found or inaccessible'
        assert 'Issue does not exist' in resolution.payload['details']
        assert resolution.payload['fallbackIssues'] == [{'key': 'ABC-2', 'summary': 'Login page'}]
        mock_jira_client.get_issue.assert_called_once()
        mock_jira_client.search.assert_called_once_with(
            'project=ABC ORDER BY created DESC', max_results=7, legacy=False
        )

    def test_forbidden_searches_too(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(403, body='Forbidden')
        mock_jira_client.search.return_value = jira_response(200, {'issues': []})

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 404
        assert resolution.payload['fallbackIssues'] == []

    def test_search_gone_uses_legacy_endpoint(self, mock_jira_client, jira_response, search_result):
        mock_jira_client.get_issue.return_value = jira_response(404, body='')
        mock_jira_client.search.side_effect = [
            jira_response(410, body='Gone'),
            jira_response(200, search_result),
        ]

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 404
        assert mock_jira_client.search.call_args_list[0].kwargs['legacy'] is False
        assert mock_jira_client.search.call_args_list[1].kwargs['legacy'] is True

    def test_legacy_search_gone_is_an_error(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='Not here')
        mock_jira_client.search.return_value = jira_response(410, body='Gone')

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert mock_jira_client.search.call_count == 2
        assert resolution.status_code == 404
        assert resolution.state is State.DONE_WITH_ERROR
        assert resolution.payload['error'] == 'Failed to fetch Jira issue'

    def test_no_project_key_skips_search(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='missing')

        resolution = IssueResolver(mock_jira_client).resolve('123')

        mock_jira_client.search.assert_not_called()
        assert resolution.status_code == 404
        assert resolution.state is State.DONE_WITH_ERROR
        assert resolution.payload == {
            'error': 'Failed to fetch Jira issue',
            'details': 'missing',
            'rawJiraResponse': 'missing',
        }

    def test_search_failure_propagates_original_status(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(403, body='No permission')
        mock_jira_client.search.return_value = jira_response(400, body='Bad JQL')

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 403
        assert resolution.payload['details'] == 'No permission'

    def test_candidates_with_null_key_or_numeric_summary(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='')
        mock_jira_client.search.return_value = jira_response(200, {'issues': [
            {'key': None, 'fields': {'summary': 'Orphan'}},
            {'key': 'ABC-2', 'fields': {'summary': 12}},
        ]})

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 404
        assert resolution.state is State.DONE_WITH_CANDIDATES
        assert resolution.payload['fallbackIssues'] == [
            {'key': '', 'summary': 'Orphan'},
            {'key': 'ABC-2', 'summary': None},
        ]

    def test_unusable_search_result_is_an_error(self, mock_jira_client, jira_response, monkeypatch):
        def reject(response):
            return [FallbackIssue(key=None)]

        monkeypatch.setattr('storytests.issue_resolver.parse_fallback_issues', reject)
        mock_jira_client.get_issue.return_value = jira_response(404, body='missing')
        mock_jira_client.search.return_value = jira_response(200, {'issues': []})

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 404
        assert resolution.state is State.DONE_WITH_ERROR
        assert resolution.payload['details'] == 'missing'

    def test_search_body_not_an_object(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='')
        mock_jira_client.search.return_value = jira_response(200, body='[]')

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.state is State.DONE_WITH_ERROR

    def test_search_network_error(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(404, body='')
        mock_jira_client.search.side_effect = requests.Timeout()

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.state is State.DONE_WITH_ERROR

    def test_permanent_failure_has_no_retry_or_search(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(401, body='Unauthorized')

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert resolution.status_code == 401
        mock_jira_client.get_issue.assert_called_once()
        mock_jira_client.search.assert_not_called()

    def test_error_body_is_truncated(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(400, body='x' * 2000)

        resolution = IssueResolver(mock_jira_client).resolve('ABC-1')

        assert len(resolution.payload['details']) == 500
        assert len(resolution.payload['rawJiraResponse']) == 500


class TestFetchStory:

    def test_returns_fields(self, mock_jira_client, jira_response, sample_issue):
        mock_jira_client.get_issue.return_value = jira_response(200, sample_issue)
        story = IssueResolver(mock_jira_client).fetch_story('ABC-1')
        assert story.storyTitle == 'User can reset password'

    def test_raises_on_failure(self, mock_jira_client, jira_response):
        mock_jira_client.get_issue.return_value = jira_response(401, body='Unauthorized')

        with pytest.raises(TrackerPermanentError) as exc_info:
            IssueResolver(mock_jira_client).fetch_story('ABC-1')
        assert exc_info.value.status_code == 401


class TestCheckAuth:

    def test_authenticated(self, mock_jira_client, jira_response):
        mock_jira_client.get_myself.return_value = jira_response(200, {'accountId': 'a1'})

        resolution = IssueResolver(mock_jira_client).check_auth()

        assert resolution.status_code == 200
        assert resolution.payload == {'ok': True, 'status': 200, 'message': 'Authenticated'}

    def test_bad_credentials_reported_as_200(self, mock_jira_client, jira_response):
        mock_jira_client.get_myself.return_value = jira_response(401, body='Client must be authenticated')

        resolution = IssueResolver(mock_jira_client).check_auth()

        assert resolution.status_code == 200
        assert resolution.payload['ok'] is False
        assert resolution.payload['status'] == 401
        assert resolution.payload['message'] == 'Jira /myself returned non-OK'
        assert resolution.payload['details'] == 'Client must be authenticated'
        mock_jira_client.get_myself.assert_called_once()

    def test_transient_after_retry(self, mock_jira_client, jira_response):
        mock_jira_client.get_myself.return_value = jira_response(503, body='')

        resolution = IssueResolver(mock_jira_client).check_auth()

        assert mock_jira_client.get_myself.call_count == 2
        assert resolution.status_code == 503
        assert resolution.payload == {
            'ok': False,
            'status': 503,
            'message': 'Jira site temporarily unavailable',
        }

    def test_transient_then_ok(self, mock_jira_client, jira_response):
        mock_jira_client.get_myself.side_effect = [
            jira_response(502, body=''),
            jira_response(200, {'accountId': 'a1'}),
        ]

        resolution = IssueResolver(mock_jira_client).check_auth()

        assert resolution.payload['ok'] is True

    def test_network_error_counts_as_status_zero(self, mock_jira_client):
        mock_jira_client.get_myself.side_effect = requests.ConnectionError('refused')

        resolution = IssueResolver(mock_jira_client).check_auth()

        assert mock_jira_client.get_myself.call_count == 1
        assert resolution.status_code == 200
        assert resolution.payload['ok'] is False
        assert resolution.payload['status'] == 0

    def test_unconfigured(self):
        with pytest.raises(ConfigurationError):
            IssueResolver(None).check_auth()
