"""
Centralized Prompt Templates
All LLM prompts are defined here for better maintainability and consistency.

This module aggregates prompts from category-specific modules behind the
Prompts class interface and exposes the two builders used by the services.
"""
from typing import Optional, Tuple

from .test_generation import TestGenerationPrompts
from .mock_data import MockDataPrompts
from ..models import StoryRequest


class Prompts:
    """Centralized prompt templates organized by category"""

    # ==========================================
    # TEST GENERATION PROMPTS
    # ==========================================

    @staticmethod
    def get_test_generation_system_prompt() -> str:
        """Get the system prompt for structured test case generation"""
        return TestGenerationPrompts.get_system_prompt()

    # ==========================================
    # MOCK DATA PROMPTS
    # ==========================================

    @staticmethod
    def get_mock_data_system_prompt() -> str:
        """Get the system prompt for raw mock data generation"""
        return MockDataPrompts.get_system_prompt()


SYSTEM_PROMPT = Prompts.get_test_generation_system_prompt()
MOCK_DATA_SYSTEM_PROMPT = Prompts.get_mock_data_system_prompt()


def build_test_prompt(request: StoryRequest) -> str:
    """Build the user prompt for a validated story request"""
    return TestGenerationPrompts.build_story_prompt(
        story_title=request.storyTitle,
        acceptance_criteria=request.acceptanceCriteria,
        description=request.description,
        additional_info=request.additionalInfo,
        categories=request.categories
    )


def build_test_prompts(request: StoryRequest) -> Tuple[str, str]:
    """Return the (system, user) prompt pair for test case generation"""
    return SYSTEM_PROMPT, build_test_prompt(request)


def build_mock_prompt(rows: int, schema_description: str, format: str = "json", seed: Optional[int] = None) -> str:
    """Build the user prompt asking for sample rows in the requested format"""
    return MockDataPrompts.build_prompt(rows, schema_description, format, seed)


__all__ = [
    "Prompts",
    "TestGenerationPrompts",
    "MockDataPrompts",
    "SYSTEM_PROMPT",
    "MOCK_DATA_SYSTEM_PROMPT",
    "build_test_prompt",
    "build_test_prompts",
    "build_mock_prompt",
]
