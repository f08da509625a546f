"""
Mock Data Prompts
Prompts for generating sample data rows from a natural-language schema.
"""
import re
from typing import Optional


class MockDataPrompts:
    """Prompts for mock data generation"""

    @staticmethod
    def get_system_prompt() -> str:
        # Raw generation sends an empty system message
        return ""

    @staticmethod
    def normalize_schema_description(schema_description: str) -> str:
        """Render comma-separated field lists as 'a, b, c'"""
        return re.sub(r'\s*,\s*', ', ', schema_description.strip())

    @staticmethod
    def build_prompt(rows: int, schema_description: str, format: str = "json", seed: Optional[int] = None) -> str:
        schema = MockDataPrompts.normalize_schema_description(schema_description)
        prompt = (
            f"Generate {rows} sample rows of data matching the following schema: {schema}.\n"
            f"Return the data as {format.upper()} only (no explanatory text)."
        )
        if seed is not None:
            prompt += f" Use seed {seed} for deterministic output."
        return prompt
