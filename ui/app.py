"""
Streamlit page: fetch a story from Jira, edit it, generate test cases and mock data.

Run with: streamlit run ui/app.py
"""
import json
from typing import Any, Dict

import requests
import streamlit as st
from dotenv import load_dotenv

from ui.api_client import APIError, StoryTestsAPIClient, DEFAULT_API_BASE_URL
from ui.helpers import (
    CATEGORY_OPTIONS,
    STORY_FIELDS,
    build_generate_payload,
    mock_data_filename,
    mock_data_mime,
    results_summary,
    step_rows,
    story_fetch_outcome,
    validate_story_form,
)

load_dotenv()

st.set_page_config(
    page_title="User Story to Tests",
    page_icon="🧪",
    layout="wide",
    initial_sidebar_state="expanded",
)


def _init_state():
    ss = st.session_state
    ss.setdefault("api_base", DEFAULT_API_BASE_URL)
    ss.setdefault("story_id", "")
    ss.setdefault("form", {field: "" for field in STORY_FIELDS})
    ss.setdefault("selected_categories", set())
    ss.setdefault("fallback_issues", [])
    ss.setdefault("results", None)
    ss.setdefault("error", None)
    ss.setdefault("mock_result", None)


def _client() -> StoryTestsAPIClient:
    return StoryTestsAPIClient(st.session_state.api_base)


def _fetch_story(issue_id: str):
    issue_id = (issue_id or "").strip()
    if not issue_id:
        return
    st.session_state.error = None
    data = None
    try:
        with st.spinner(f"Fetching {issue_id}..."):
            data = _client().fetch_jira_story(issue_id)
    except APIError as e:
        st.session_state.error = e.message or "Failed to fetch story"
    except requests.RequestException:
        st.session_state.error = "Failed to fetch story"

    st.session_state.form, st.session_state.fallback_issues = story_fetch_outcome(st.session_state.form, data)


def _select_fallback(key: str):
    st.session_state.story_id = key
    _fetch_story(key)


def _mock_request(rows: int, schema: str, fmt: str, seed: Any) -> Dict[str, Any]:
    request = {"rows": int(rows), "schemaDescription": schema, "format": fmt}
    if seed not in (None, ""):
        request["seed"] = int(seed)
    return request


_init_state()

# Sidebar: mock data panel
with st.sidebar:
    st.markdown("## 🧪 Mock Data")

    with st.expander("Advanced settings", expanded=False):
        st.session_state.api_base = st.text_input("API Base URL", value=st.session_state.api_base)
        if st.button("Check Jira credentials", use_container_width=True):
            try:
                result = _client().auth_check()
                (st.success if result.get("ok") else st.warning)(result.get("message", ""))
            except APIError as e:
                st.error(e.message)
        if st.button("Check API status", use_container_width=True):
            try:
                health = _client().health_check()
                services = health.get("services", {})
                st.info(f"API {health.get('status')} • LLM: {services.get('llm')} • Jira: {services.get('jira')}")
            except requests.RequestException as e:
                st.error(f"API unreachable: {e}")

    mock_rows = st.number_input("Rows", min_value=1, max_value=10000, value=10, step=1)
    mock_format = st.radio("Format", ["json", "csv"], horizontal=True)
    mock_schema = st.text_area("Schema description", value="id, name, email")
    mock_seed = st.text_input("Seed (optional)", value="")

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Generate", key="mock_generate", use_container_width=True):
            try:
                with st.spinner("Generating mock data..."):
                    res = _client().fetch_mock_data(_mock_request(mock_rows, mock_schema, mock_format, mock_seed))
                st.session_state.mock_result = res.get("data")
            except (APIError, ValueError) as e:
                st.session_state.mock_result = f"Error: {e}"
    with c2:
        if st.button("Preview prompt", use_container_width=True):
            try:
                res = _client().preview_mock_prompt(_mock_request(mock_rows, mock_schema, mock_format, mock_seed))
                st.session_state.mock_result = res.get("prompt")
            except (APIError, ValueError) as e:
                st.session_state.mock_result = f"Error: {e}"

    if st.session_state.mock_result:
        st.code(st.session_state.mock_result, language="json" if mock_format == "json" else None)
        st.download_button(
            "⬇️ Download",
            data=st.session_state.mock_result,
            file_name=mock_data_filename(mock_format),
            mime=mock_data_mime(mock_format),
            use_container_width=True,
        )

# Header
st.markdown("# 🧪 User Story to Tests")
st.caption("Generate comprehensive test cases from your user stories")

# Story fetch
col_id, col_fetch = st.columns([3, 1])
with col_id:
    st.session_state.story_id = st.text_input(
        "Jira story ID",
        value=st.session_state.story_id,
        placeholder="PROJ-123",
    )
with col_fetch:
    st.write("")
    if st.button("Fetch story", use_container_width=True, disabled=not st.session_state.story_id.strip()):
        _fetch_story(st.session_state.story_id)

if st.session_state.fallback_issues:
    st.info("Issue not found. Recent issues from the same project:")
    for issue in st.session_state.fallback_issues:
        label = f"{issue['key']} - {issue.get('summary') or ''}".rstrip(" -")
        st.button(label, key=f"fallback_{issue['key']}", on_click=_select_fallback, args=(issue["key"],))

# Story form
with st.form("story_form"):
    form = st.session_state.form
    story_title = st.text_input("Story Title *", value=form.get("storyTitle", ""))
    description = st.text_area("Description", value=form.get("description", ""), height=150)
    acceptance = st.text_area("Acceptance Criteria *", value=form.get("acceptanceCriteria", ""), height=150)
    additional = st.text_area("Additional Info", value=form.get("additionalInfo", ""), height=100)

    st.markdown("**Test categories** (none selected = all)")
    category_cols = st.columns(len(CATEGORY_OPTIONS))
    checked = {}
    for col, option in zip(category_cols, CATEGORY_OPTIONS):
        with col:
            checked[option] = st.checkbox(option, value=option in st.session_state.selected_categories)

    submitted = st.form_submit_button("Generate", type="primary")

if submitted:
    st.session_state.form = {
        "storyTitle": story_title,
        "description": description,
        "acceptanceCriteria": acceptance,
        "additionalInfo": additional,
    }
    selected = {option for option, is_checked in checked.items() if is_checked}
    st.session_state.selected_categories = selected

    st.session_state.error = validate_story_form(st.session_state.form)
    if not st.session_state.error:
        try:
            with st.spinner("Generating test cases..."):
                payload = build_generate_payload(st.session_state.form, selected)
                st.session_state.results = _client().generate_tests(payload)
        except APIError as e:
            st.session_state.error = e.message or "Failed to generate tests"
        except requests.RequestException:
            st.session_state.error = "Failed to generate tests"

if st.session_state.error:
    st.error(st.session_state.error)

# Results
results = st.session_state.results
if results:
    st.markdown("## Generated Test Cases")
    st.caption(results_summary(results))

    st.dataframe(
        [
            {
                "Test Case ID": case.get("id"),
                "Title": case.get("title"),
                "Category": case.get("category"),
                "Expected Result": case.get("expectedResult"),
            }
            for case in results.get("cases", [])
        ],
        use_container_width=True,
        hide_index=True,
    )

    for case in results.get("cases", []):
        with st.expander(f"Test Steps for {case.get('id')}: {case.get('title')}"):
            st.table(step_rows(case))

    st.download_button(
        "⬇️ Download test cases (JSON)",
        data=json.dumps(results, indent=2, ensure_ascii=False),
        file_name="test_cases.json",
        mime="application/json",
    )
