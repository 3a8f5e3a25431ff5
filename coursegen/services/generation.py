"""Text generation for course content."""

import logging
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from coursegen.agents import prompts
from coursegen.models.course import CourseParams, Subtopic, Topic
from coursegen.utils.errors import ContentParseError, GenerationError
from coursegen.utils.lenient_json import parse_lenient_json

logger = logging.getLogger(__name__)

MAX_IMAGE_PROMPT_LENGTH = 300


class TextGenerator(Protocol):
    """Black-box text generation: prompt in, raw text out."""

    async def generate(self, prompt: str) -> str:
        ...


class AgentTextGenerator:
    """TextGenerator backed by a PydanticAI agent."""

    def __init__(self, agent: Any) -> None:
        self.agent = agent

    async def generate(self, prompt: str) -> str:
        """
        Run the agent on a prompt.

        Raises:
            GenerationError: If the agent fails or returns nothing
        """
        try:
            result = await self.agent.run(prompt)
        except Exception as e:
            raise GenerationError(f"Text generation failed: {e}")

        if not result or not result.output:
            raise GenerationError("Text generation returned no output")
        return result.output


class SectionOutline(BaseModel):
    title: str = Field(min_length=1)
    theory: str = ""


class TopicOutline(BaseModel):
    title: str = Field(min_length=1)
    theory: str = ""
    subtopics: list[SectionOutline] = Field(default_factory=list)


class ContentGenerator:
    """Course-specific generation calls built on a TextGenerator."""

    def __init__(self, text: TextGenerator) -> None:
        self.text = text

    async def expand_description(self, description: str) -> str:
        expanded = (await self.text.generate(prompts.description_prompt(description))).strip()
        return expanded or description

    async def topic_outline(self, params: CourseParams, topic_index: int) -> Topic:
        """
        Generate the structure of one topic.

        Topic 0 comes back with written theory for itself and its subtopics;
        other topics only carry titles.

        Raises:
            GenerationError: If the call fails
            ContentParseError: If the response cannot be read as a topic
        """
        raw = await self.text.generate(prompts.topic_outline_prompt(params, topic_index))
        data = parse_lenient_json(raw)
        if isinstance(data, dict) and isinstance(data.get("topic"), dict):
            data = data["topic"]

        try:
            outline = TopicOutline.model_validate(data)
        except ValidationError as e:
            raise ContentParseError(f"Unexpected topic structure: {e}")

        realized = topic_index == 0
        return Topic(
            title=outline.title,
            content=outline.theory if realized else "",
            order=topic_index,
            subtopics=[
                Subtopic(
                    title=section.title,
                    content=section.theory if realized else "",
                    order=position,
                    status="complete" if realized and section.theory else "incomplete",
                )
                for position, section in enumerate(outline.subtopics)
            ],
        )

    async def section_content(self, topic_title: str, section_title: Optional[str] = None) -> str:
        """
        Generate the body of a topic overview (no section title) or a subtopic.

        Raises:
            GenerationError: If the call fails
            ContentParseError: If the response holds no content
        """
        raw = await self.text.generate(
            prompts.section_content_prompt(topic_title, section_title or topic_title)
        )
        data = parse_lenient_json(raw)
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ContentParseError(f"No content generated for {section_title or topic_title}")
        return content

    async def image_prompt(self, subject: str, course_title: str) -> str:
        """Short visual description of a course or topic, used to prompt the image model."""
        description = (await self.text.generate(prompts.image_prompt(subject, course_title))).strip()
        if not description:
            description = f"{subject} - {course_title}"
        return description[:MAX_IMAGE_PROMPT_LENGTH]
