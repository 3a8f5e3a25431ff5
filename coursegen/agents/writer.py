"""Course writer agent configuration."""

import os
from typing import Optional

from pydantic_ai import Agent

from coursegen.agents.prompts import COURSE_WRITER_SYSTEM_PROMPT
from coursegen.config import get_settings


def create_writer_agent(model: Optional[str] = None) -> Agent[None, str]:
    """Create the course writer agent.

    Args:
        model: Model name overriding the configured ``text_model``

    Returns:
        A PydanticAI Agent producing plain text.
    """
    settings = get_settings()

    # Set environment variable for pydantic-ai to pick up
    if settings.anthropic_api_key:
        os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key

    return Agent(
        model or settings.text_model,
        system_prompt=COURSE_WRITER_SYSTEM_PROMPT,
        output_type=str,
        retries=2,
    )
