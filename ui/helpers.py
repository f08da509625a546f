"""
UI helpers: HTML cleanup for Jira fields, form validation and result shaping.

Kept free of Streamlit so the page logic can be tested on its own.
"""
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup

from storytests.models import CATEGORIES

CATEGORY_OPTIONS = list(CATEGORIES)

REQUIRED_FIELDS_ERROR = "Story Title and Acceptance Criteria are required"

STORY_FIELDS = ("storyTitle", "description", "acceptanceCriteria", "additionalInfo")

_BLOCK_END = re.compile(r'<(br|/p|/div|/li|/ul|/ol|/tr|/h[1-6]|/td|/th)[^>]*>', re.IGNORECASE)
_LIST_ITEM = re.compile(r'<li[^>]*>', re.IGNORECASE)
_BLANK_RUNS = re.compile(r'\n{3,}')
_WHITESPACE = re.compile(r'\s+')


def strip_html(html: Optional[str]) -> str:
    """
    Convert rendered Jira HTML to plain text while keeping its structure.

    Block-level closing tags and <br> become newlines, list items become
    "- " bullets, runs of blank lines collapse to one and whitespace inside
    each line is squeezed.
    """
    if not html:
        return ''

    with_newlines = _LIST_ITEM.sub('\n- ', _BLOCK_END.sub('\n', html))
    text = BeautifulSoup(with_newlines, 'html.parser').get_text()

    normalized = _BLANK_RUNS.sub('\n\n', text.replace('\r\n', '\n'))
    lines = [_WHITESPACE.sub(' ', line).strip() for line in normalized.split('\n')]
    return '\n'.join(lines).strip()


def validate_story_form(form: Dict[str, Any]) -> Optional[str]:
    """Error message for the banner, or None when the form can be submitted"""
    title = (form.get('storyTitle') or '').strip()
    criteria = (form.get('acceptanceCriteria') or '').strip()
    if not title or not criteria:
        return REQUIRED_FIELDS_ERROR
    return None


def build_generate_payload(form: Dict[str, Any], selected_categories: Iterable[str]) -> Dict[str, Any]:
    """Request body for /generate-tests; categories only when some are selected"""
    payload = {field: form.get(field) or '' for field in STORY_FIELDS}
    chosen = [c for c in CATEGORY_OPTIONS if c in set(selected_categories)]
    if chosen:
        payload['categories'] = chosen
    return payload


def step_rows(test_case: Dict[str, Any]) -> List[Dict[str, str]]:
    """Rows for the expanded step table of one test case"""
    steps = test_case.get('steps') or []
    test_data = test_case.get('testData') or 'N/A'
    last = len(steps) - 1

    rows = []
    for index, step in enumerate(steps):
        rows.append({
            'Step ID': f"S{index + 1:02d}",
            'Step Description': step,
            'Test Data': test_data,
            'Expected Result': test_case.get('expectedResult', '') if index == last else 'Step completed successfully',
        })
    return rows


def results_summary(response: Dict[str, Any]) -> str:
    """e.g. '3 test case(s) generated • Model: llama • Tokens: 420'"""
    parts = [f"{len(response.get('cases') or [])} test case(s) generated"]
    if response.get('model'):
        parts.append(f"Model: {response['model']}")
    prompt_tokens = response.get('promptTokens') or 0
    if prompt_tokens > 0:
        parts.append(f"Tokens: {prompt_tokens + (response.get('completionTokens') or 0)}")
    return ' • '.join(parts)


def apply_story_fields(form: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
    """Merge fetched story fields into the form, cleaning HTML out of the long fields"""
    merged = dict(form)
    for field in STORY_FIELDS:
        if field in fields:
            merged[field] = fields.get(field) or ''
    merged['description'] = strip_html(fields.get('description'))
    merged['acceptanceCriteria'] = strip_html(fields.get('acceptanceCriteria'))
    return merged


def mock_data_filename(fmt: str) -> str:
    return f"mock_data.{fmt}"


def mock_data_mime(fmt: str) -> str:
    return 'application/json' if fmt == 'json' else 'text/csv'


def story_fetch_outcome(form: Dict[str, Any], data: Optional[Dict[str, Any]]) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Form and fallback chips after a story fetch.

    ``data`` is what the API client returned, or None when the fetch failed;
    a failed fetch keeps the form and clears any chips from an earlier fetch.
    """
    if not data:
        return form, []
    if data.get('fallbackIssues'):
        return form, list(data['fallbackIssues'])
    if data.get('fields'):
        return apply_story_fields(form, data['fields']), []
    return form, []
