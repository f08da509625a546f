"""
Shared Dependencies
Services built once at startup and handed to routes through FastAPI Depends
"""
from dataclasses import dataclass
from typing import Optional
from fastapi import Request
import logging

from storytests.config import Config
from storytests.jira_client import JiraClient
from storytests.llm_client import LLMClient
from storytests.case_generator import TestCaseGenerator
from storytests.issue_resolver import IssueResolver
from storytests.mock_data import MockDataGenerator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything the routes need, stored on app.state"""
    config: Config
    llm_client: LLMClient
    jira_client: Optional[JiraClient]
    test_generator: TestCaseGenerator
    issue_resolver: IssueResolver
    mock_data_generator: MockDataGenerator


def initialize_services(config: Config) -> Services:
    """Initialize all clients and services"""
    logger.info("Initializing services...")

    llm_settings = config.get_llm_settings()
    jira_settings = config.get_jira_settings()

    llm_client = LLMClient(llm_settings)
    logger.info(f"LLM client initialized (model: {llm_settings.model})")

    jira_client = JiraClient.from_settings(jira_settings)
    if jira_client:
        logger.info(f"Jira client initialized for {jira_settings.server_url}")
    else:
        logger.warning("Jira credentials not configured - Jira endpoints will return 500")

    services = Services(
        config=config,
        llm_client=llm_client,
        jira_client=jira_client,
        test_generator=TestCaseGenerator(llm_client),
        issue_resolver=IssueResolver(jira_client, search_max_results=jira_settings.search_max_results),
        mock_data_generator=MockDataGenerator(llm_client),
    )
    logger.info("Services initialized successfully")
    return services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise RuntimeError("Services not initialized - ensure startup completed")
    return services


def get_test_generator(request: Request) -> TestCaseGenerator:
    """Get TestCaseGenerator instance"""
    return get_services(request).test_generator


def get_issue_resolver(request: Request) -> IssueResolver:
    """Get IssueResolver instance"""
    return get_services(request).issue_resolver


def get_mock_data_generator(request: Request) -> MockDataGenerator:
    """Get MockDataGenerator instance"""
    return get_services(request).mock_data_generator
