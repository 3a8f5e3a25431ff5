"""PydanticAI agent configuration and prompts for course writing."""

from coursegen.agents.prompts import COURSE_WRITER_SYSTEM_PROMPT
from coursegen.agents.writer import create_writer_agent

__all__ = [
    "COURSE_WRITER_SYSTEM_PROMPT",
    "create_writer_agent",
]
