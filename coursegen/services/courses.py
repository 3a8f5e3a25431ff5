"""Course repository: where processors read and write generated content."""

import asyncio
import logging
from typing import Any, Optional, Protocol

from coursegen.models.course import Course, Subtopic, Topic
from coursegen.models.progress import utcnow
from coursegen.utils.errors import DatabaseError, NotFoundError

logger = logging.getLogger(__name__)

COURSES_TABLE = "courses"


class CourseRepository(Protocol):
    async def get_course(self, course_id: str) -> Optional[Course]:
        ...

    async def find_by_job(self, job_id: str) -> Optional[Course]:
        """Course created by a course-generation job, if any."""
        ...

    async def save_course(self, course: Course) -> Course:
        """Insert or replace a course."""
        ...


async def load_topic(repo: CourseRepository, course_id: str, topic_id: str) -> tuple[Course, Topic]:
    """
    Fetch a course and one of its topics.

    Raises:
        NotFoundError: If either does not exist
    """
    course = await repo.get_course(course_id)
    if course is None:
        raise NotFoundError(f"Course not found: {course_id}")
    topic = course.get_topic(topic_id)
    if topic is None:
        raise NotFoundError(f"Topic not found: {topic_id}")
    return course, topic


async def load_subtopic(
    repo: CourseRepository, course_id: str, topic_id: str, subtopic_id: str
) -> tuple[Course, Topic, Subtopic]:
    """
    Fetch a course, a topic and one of its subtopics.

    Raises:
        NotFoundError: If any of them does not exist
    """
    course, topic = await load_topic(repo, course_id, topic_id)
    subtopic = topic.get_subtopic(subtopic_id)
    if subtopic is None:
        raise NotFoundError(f"Subtopic not found: {subtopic_id}")
    return course, topic, subtopic


class InMemoryCourseRepository:
    """Process-local course storage."""

    def __init__(self) -> None:
        self._courses: dict[str, Course] = {}
        self._lock = asyncio.Lock()

    async def get_course(self, course_id: str) -> Optional[Course]:
        course = self._courses.get(course_id)
        return course.model_copy(deep=True) if course else None

    async def find_by_job(self, job_id: str) -> Optional[Course]:
        for course in self._courses.values():
            if course.job_id == job_id:
                return course.model_copy(deep=True)
        return None

    async def save_course(self, course: Course) -> Course:
        async with self._lock:
            course.updated_at = utcnow()
            self._courses[course.course_id] = course.model_copy(deep=True)
        return course


class SupabaseCourseRepository:
    """Service for course persistence in Supabase.

    Each course is one row of the ``courses`` table; topics and subtopics
    are kept in a JSON column.
    """

    def __init__(self, supabase_client: Any, table: str = COURSES_TABLE) -> None:
        """
        Initialize the SupabaseCourseRepository.

        Args:
            supabase_client: Supabase client instance
            table: Name of the courses table
        """
        self.supabase = supabase_client
        self.table = table

    async def get_course(self, course_id: str) -> Optional[Course]:
        return await self._find_one("course_id", course_id)

    async def find_by_job(self, job_id: str) -> Optional[Course]:
        return await self._find_one("job_id", job_id)

    async def _find_one(self, field: str, value: str) -> Optional[Course]:
        try:
            result = self.supabase.table(self.table).select("*").eq(field, value).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to get course by {field}={value}: {e}")

        if not result.data:
            return None
        return Course.model_validate(result.data[0])

    async def save_course(self, course: Course) -> Course:
        """
        Insert the course, or update it when it already exists.

        Raises:
            DatabaseError: If the write fails
        """
        course.updated_at = utcnow()
        row = course.model_dump(mode="json")
        try:
            result = (
                self.supabase.table(self.table)
                .update(row)
                .eq("course_id", course.course_id)
                .execute()
            )
            if not result.data:
                result = self.supabase.table(self.table).insert(row).execute()
        except Exception as e:
            raise DatabaseError(f"Failed to save course {course.course_id}: {e}")

        if not result.data:
            raise DatabaseError(f"Failed to save course {course.course_id}")

        logger.info(f"Saved course {course.course_id}")
        return course

