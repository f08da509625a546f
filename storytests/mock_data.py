"""
Mock Data Generator
Sample data rows from a natural-language schema description, produced by the
LLM when one is configured and by a deterministic local generator otherwise.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import LLMCallFailed
from .llm_client import LLMClient
from .models import MockDataRequest, MockDataResponse
from .prompts import MOCK_DATA_SYSTEM_PROMPT, build_mock_prompt

logger = logging.getLogger(__name__)


def _detect_fields(schema_description: str) -> List[Tuple[str, str]]:
    """Pick (key, kind) pairs from keywords in the description"""
    lower = schema_description.lower()
    fields = []

    if 'id' in lower:
        fields.append(('id', 'id'))
    if 'name' in lower:
        fields.append(('name', 'name'))
    if 'email' in lower:
        fields.append(('email', 'email'))
    if 'date' in lower or 'timestamp' in lower or 'created' in lower:
        fields.append(('created_at', 'date'))

    if not fields:
        fields = [('id', 'id'), ('value', 'string')]
    return fields


def _iso_utc(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def generate_local_sample(rows: int, schema_description: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Deterministic records derived from the row index; every record has the same keys"""
    now = now or datetime.now(timezone.utc)
    fields = _detect_fields(schema_description)

    sample = []
    for i in range(rows):
        row: Dict[str, Any] = {}
        for key, kind in fields:
            if kind == 'id':
                row[key] = i + 1
            elif kind == 'name':
                row[key] = f"Test User {i + 1}"
            elif kind == 'email':
                row[key] = f"user{i + 1}@example.com"
            elif kind == 'date':
                row[key] = _iso_utc(now - timedelta(days=i))
            else:
                row[key] = f"{key}_{i + 1}"
        sample.append(row)
    return sample


def escape_csv(value: str) -> str:
    """Quote a CSV field containing a comma, quote or newline; double embedded quotes"""
    if ',' in value or '"' in value or '\n' in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def to_csv(records: List[Dict[str, Any]]) -> str:
    keys = list(records[0].keys()) if records else []
    lines = [','.join(escape_csv(k) for k in keys)]
    for record in records:
        cells = ['' if record.get(k) is None else str(record.get(k)) for k in keys]
        lines.append(','.join(escape_csv(cell) for cell in cells))
    return '\n'.join(lines)


def format_records(records: List[Dict[str, Any]], fmt: str) -> str:
    if fmt == 'json':
        return json.dumps(records, indent=2)
    return to_csv(records)


class MockDataGenerator:
    """Serves mock data requests, falling back to local samples when the LLM is unavailable"""

    def __init__(self, llm_client: Optional[LLMClient]):
        self.llm_client = llm_client

    @property
    def llm_available(self) -> bool:
        return self.llm_client is not None and self.llm_client.is_configured

    def _local(self, request: MockDataRequest) -> MockDataResponse:
        sample = generate_local_sample(request.rows, request.schemaDescription)
        return MockDataResponse(data=format_records(sample, request.format), format=request.format)

    def generate(self, request: MockDataRequest) -> MockDataResponse:
        prompt = build_mock_prompt(request.rows, request.schemaDescription, request.format, request.seed)

        if request.previewOnly:
            return MockDataResponse(prompt=prompt, format=request.format)

        if not self.llm_available:
            logger.info("LLM not configured, generating mock data locally")
            return self._local(request)

        try:
            raw = self.llm_client.generate_raw(MOCK_DATA_SYSTEM_PROMPT, prompt)
        except LLMCallFailed:
            logger.warning("LLM error (mockdata), falling back to local sample")
            return self._local(request)

        if request.format == 'json':
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return MockDataResponse(data=raw, format='json')
            return MockDataResponse(data=json.dumps(parsed, indent=2, ensure_ascii=False), format='json')

        return MockDataResponse(data=raw, format=request.format)
