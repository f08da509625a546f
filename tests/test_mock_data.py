"""
Tests for mock data generation
"""
import csv
import io
import json
from datetime import datetime, timezone

import pytest
from unittest.mock import Mock

from storytests.exceptions import LLMCallFailed
from storytests.llm_client import LLMClient
from storytests.mock_data import (
    MockDataGenerator,
    escape_csv,
    format_records,
    generate_local_sample,
    to_csv,
)
from storytests.models import MockDataRequest

NOW = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def llm_client():
    client = Mock(spec=LLMClient)
    client.is_configured = True
    return client


class TestLocalSample:

    @pytest.mark.parametrize('rows', [1, 3, 50])
    def test_row_count_and_stable_keys(self, rows):
        sample = generate_local_sample(rows, 'user id, full name, email, created date', now=NOW)
        assert len(sample) == rows
        assert all(list(r.keys()) == ['id', 'name', 'email', 'created_at'] for r in sample)

    def test_values_derive_from_index(self):
        sample = generate_local_sample(2, 'id, name, email, timestamp', now=NOW)
        assert sample[0] == {
            'id': 1,
            'name': 'Test User 1',
            'email': 'user1@example.com',
            'created_at': '2024-03-10T12:00:00.000Z',
        }
        assert sample[1]['created_at'] == '2024-03-09T12:00:00.000Z'

    def test_default_fields(self):
        sample = generate_local_sample(2, 'products with prices', now=NOW)
        assert sample == [{'id': 1, 'value': 'value_1'}, {'id': 2, 'value': 'value_2'}]

    def test_keyword_detection_is_case_insensitive(self):
        sample = generate_local_sample(1, 'EMAIL only', now=NOW)
        assert list(sample[0].keys()) == ['email']

    def test_substring_matching(self):
        # "valid" contains "id"
        assert 'id' in generate_local_sample(1, 'valid addresses', now=NOW)[0]


class TestCsv:

    @pytest.mark.parametrize('value, expected', [
        ('plain', 'plain'),
        ('a,b', '"a,b"'),
        ('say "hi"', '"say ""hi"""'),
        ('line\nbreak', '"line\nbreak"'),
    ])
    def test_escape(self, value, expected):
        assert escape_csv(value) == expected

    def test_round_trip_with_csv_reader(self):
        records = [
            {'id': 1, 'note': 'comma, inside'},
            {'id': 2, 'note': 'quote "inside"'},
            {'id': 3, 'note': 'multi\nline'},
        ]
        parsed = list(csv.reader(io.StringIO(to_csv(records))))
        assert parsed[0] == ['id', 'note']
        assert [row[1] for row in parsed[1:]] == ['comma, inside', 'quote "inside"', 'multi\nline']

    def test_header_and_rows(self):
        text = to_csv([{'id': 1, 'name': 'A'}, {'id': 2, 'name': None}])
        assert text == 'id,name\n1,A\n2,'

    def test_empty(self):
        assert to_csv([]) == ''

    def test_format_json(self):
        records = [{'id': 1}]
        assert format_records(records, 'json') == json.dumps(records, indent=2)


class TestMockDataGenerator:

    def test_preview_only_returns_prompt(self, llm_client):
        request = MockDataRequest(rows=3, schemaDescription='id,email', previewOnly=True)

        response = MockDataGenerator(llm_client).generate(request)

        assert response.data is None
        assert 'Generate 3 sample rows' in response.prompt
        assert 'id, email' in response.prompt
        llm_client.generate_raw.assert_not_called()

    def test_local_when_llm_not_configured(self, llm_client):
        llm_client.is_configured = False
        request = MockDataRequest(rows=4, schemaDescription='id, name', format='csv')

        response = MockDataGenerator(llm_client).generate(request)

        assert response.format == 'csv'
        assert response.data.splitlines()[0] == 'id,name'
        assert len(response.data.splitlines()) == 5
        llm_client.generate_raw.assert_not_called()

    def test_local_without_client(self):
        response = MockDataGenerator(None).generate(MockDataRequest(rows=2, schemaDescription='email'))
        assert json.loads(response.data) == [{'email': 'user1@example.com'}, {'email': 'user2@example.com'}]

    def test_local_when_llm_fails(self, llm_client):
        llm_client.generate_raw.side_effect = LLMCallFailed()

        response = MockDataGenerator(llm_client).generate(MockDataRequest(rows=3, schemaDescription='id'))

        assert len(json.loads(response.data)) == 3

    def test_llm_json_is_reformatted(self, llm_client):
        llm_client.generate_raw.return_value = '[{"id":1,"email":"a@x.io"}]'

        response = MockDataGenerator(llm_client).generate(MockDataRequest(rows=1, schemaDescription='id,email'))

        assert response.data == '[\n  {\n    "id": 1,\n    "email": "a@x.io"\n  }\n]'
        assert response.format == 'json'
        system_prompt, prompt = llm_client.generate_raw.call_args.args
        assert system_prompt == ''
        assert 'id, email' in prompt

    def test_llm_invalid_json_passes_through(self, llm_client):
        llm_client.generate_raw.return_value = 'Sure! Here is your data: ...'

        response = MockDataGenerator(llm_client).generate(MockDataRequest(rows=1, schemaDescription='id'))

        assert response.data == 'Sure! Here is your data: ...'

    def test_llm_csv_passes_through(self, llm_client):
        llm_client.generate_raw.return_value = 'id,email\n1,a@x.io'

        response = MockDataGenerator(llm_client).generate(
            MockDataRequest(rows=1, schemaDescription='id,email', format='csv')
        )

        assert response.data == 'id,email\n1,a@x.io'
        assert response.format == 'csv'
