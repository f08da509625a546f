import logging
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from .exceptions import LLMCallFailed, MalformedResponseError
from .llm_client import LLMClient
from .models import StoryRequest, GenerateResponse
from .prompts import build_test_prompts

logger = logging.getLogger(__name__)


def _assign_missing_ids(cases: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for index, case in enumerate(cases, start=1):
        if isinstance(case, dict) and not case.get('id'):
            case['id'] = f"TC-{index:03d}"
    return cases


class TestCaseGenerator:
    """Generates structured test cases for a user story through the LLM gateway"""
    __test__ = False

    def __init__(self, llm_client: LLMClient):
        self.llm_client = llm_client

    def generate(self, request: StoryRequest) -> GenerateResponse:
        """
        Generate test cases for a validated story request.

        Raises:
            LLMCallFailed: the provider failed or its output does not match the
                GenerateResponse schema. Raw model output is only logged at DEBUG.
        """
        system_prompt, user_prompt = build_test_prompts(request)
        logger.info(f"Generating test cases for story '{request.storyTitle[:80]}'"
                    f" (categories: {', '.join(request.categories) if request.categories else 'all'})")

        result = self.llm_client.generate_structured(system_prompt, user_prompt)

        parsed = dict(result.parsed)
        parsed['cases'] = _assign_missing_ids(list(parsed.get('cases') or []))
        try:
            response = GenerateResponse.model_validate(parsed)
        except PydanticValidationError as e:
            logger.error(f"LLM output does not match the test case schema ({e.error_count()} errors)")
            logger.debug(f"Rejected LLM content: {result.content[:500]}")
            raise LLMCallFailed() from MalformedResponseError("LLM output does not match the test case schema")

        response.model = result.model or response.model
        if result.prompt_tokens or result.completion_tokens:
            response.promptTokens = result.prompt_tokens
            response.completionTokens = result.completion_tokens

        logger.info(f"Generated {len(response.cases)} test cases")
        return response
