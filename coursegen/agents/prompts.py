"""Prompt builders for course content generation."""

from coursegen.models.course import CourseParams

COURSE_WRITER_SYSTEM_PROMPT = """
You are an instructional designer writing self-paced online courses.

TONE: Clear, friendly, precise. You teach from basics to advanced concepts.

RULES:
- Explanations are educational, concise and easy to follow
- Include practical examples or use cases where they help
- Put code inside an HTML <code> tag and use no other HTML tags
- Never add links, images or unrelated content
- When asked for JSON, answer with JSON only
"""


def topic_outline_prompt(params: CourseParams, topic_index: int) -> str:
    """Prompt for the structure of one topic; only the first topic gets written content."""
    realized = topic_index == 0
    theory = (
        '"Detailed content explaining the topic, with context and examples."'
        if realized
        else '""'
    )
    subtopic_theory = (
        '"Detailed content explaining the subtopic, with examples."' if realized else '""'
    )
    requirement = (
        'Write detailed content in every "theory" field, with relevant examples.'
        if realized
        else 'Leave every "theory" field empty.'
    )
    hints = ""
    if params.subtopics:
        quoted = ", ".join(f'"{s}"' for s in params.subtopics)
        hints = f"\n- Reference these subtopics where relevant: {quoted}."

    return f"""
Generate the structure for one topic of the course titled "{params.title}".
The course description is: "{params.description}".
Course type: "{params.type}".
This is topic {topic_index + 1} of {params.num_topics}.

Answer with a JSON object of this shape:
{{
  "topic": {{
    "title": "Topic Title",
    "theory": {theory},
    "subtopics": [
      {{"title": "Subtopic Title", "theory": {subtopic_theory}}}
    ]
  }}
}}

Requirements:
- The topic is relevant to the course description and distinct from other topics.
- Subtopics are logically related to the topic.
- {requirement}{hints}
""".strip()


def section_content_prompt(topic_title: str, section_title: str) -> str:
    """Prompt for the body of a topic overview or a subtopic."""
    return f"""
Explain "{section_title}" in detail within the context of the main topic "{topic_title}".
Include clear definitions, practical examples and explanations that build on the main topic.

Answer with a JSON object of this shape:
{{
  "title": "{section_title}",
  "content": "Detailed explanation."
}}
""".strip()


def description_prompt(description: str) -> str:
    return f"""
Expand the following course description into an engaging summary of around 300 characters:
"{description}"
Keep it clear and educational, highlighting the core objectives and value of the course.
Answer with the summary text only.
""".strip()


def image_prompt(subject: str, course_title: str) -> str:
    """Prompt asking for a short visual description used as an image prompt."""
    if subject == course_title:
        scope = f"the course titled '{course_title}'"
    else:
        scope = f"the topic '{subject}' within the course '{course_title}'"
    return f"""
Generate a visual description for {scope}.
Highlight the key visual elements that reflect its theme in 150 characters or fewer.
Answer with the description text only.
""".strip()
