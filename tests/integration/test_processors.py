"""Integration tests for the per-family processors running behind their queues."""

import asyncio

import pytest

from coursegen.models.job import JobFamily
from coursegen.models.progress import JobProgress
from coursegen.runtime import JobRuntime
from coursegen.services.courses import InMemoryCourseRepository
from tests.fakes import FakeImageGenerator, FakeTextGenerator, make_course, make_runtime, wait_for_status


async def wait_for_failed_envelope(runtime: JobRuntime, family: JobFamily, timeout: float = 5.0) -> None:
    """Wait until the family's queue gives up on an item."""

    async def poll() -> None:
        while not await runtime.queues[family].failed_jobs():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(poll(), timeout)


class TestSubtopicProcessor:
    """Subtopic jobs only generate what is missing."""

    @pytest.mark.asyncio
    async def test_nothing_missing_means_no_generation(self) -> None:
        text, images = FakeTextGenerator(), FakeImageGenerator()
        courses = InMemoryCourseRepository()
        course = await courses.save_course(make_course(subtopic_content="Written", with_images=True))
        topic = course.topics[0]
        runtime = make_runtime(text, images, courses=courses)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.SUBTOPIC,
                {"course_id": course.course_id, "topic_id": topic.id, "subtopic_id": topic.subtopics[0].id},
            )
            record = await wait_for_status(runtime.store, job_id)
        finally:
            await runtime.shutdown()

        assert record.status == "completed"
        assert record.progress == 100
        assert record.result == {
            "content": "Written",
            "thumbnail": "https://images.test/existing.jpg",
            "banner": "https://images.test/existing.jpg",
        }
        assert text.calls == []
        assert images.calls == []

    @pytest.mark.asyncio
    async def test_missing_content_only(self) -> None:
        text, images = FakeTextGenerator(), FakeImageGenerator()
        courses = InMemoryCourseRepository()
        course = await courses.save_course(make_course(with_images=True))
        topic = course.topics[0]
        subtopic = topic.subtopics[1]
        runtime = make_runtime(text, images, courses=courses)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.SUBTOPIC,
                {"course_id": course.course_id, "topic_id": topic.id, "subtopic_id": subtopic.id},
            )
            record = await wait_for_status(runtime.store, job_id)
            stored = await courses.get_course(course.course_id)
        finally:
            await runtime.shutdown()

        assert record.status == "completed"
        assert len(text.calls) == 1
        assert images.calls == []
        saved = stored.topics[0].get_subtopic(subtopic.id)
        assert saved.content == f"Content for {subtopic.title}"
        assert saved.status == "complete"

    @pytest.mark.asyncio
    async def test_missing_subtopic_fails_job(self) -> None:
        courses = InMemoryCourseRepository()
        course = await courses.save_course(make_course())
        runtime = make_runtime(courses=courses)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.SUBTOPIC,
                {"course_id": course.course_id, "topic_id": course.topics[0].id, "subtopic_id": "nope"},
            )
            await wait_for_failed_envelope(runtime, JobFamily.SUBTOPIC)
            record = await runtime.store.get_progress(job_id)
        finally:
            await runtime.shutdown()

        assert record.status == "failed"
        assert "Subtopic not found" in record.error


class TestTopicProcessor:
    """Topic jobs write the overview, images and, in full mode, subtopics."""

    @pytest.mark.asyncio
    async def test_full_mode_reports_subtopic_counters(self) -> None:
        text, images = FakeTextGenerator(), FakeImageGenerator()
        courses = InMemoryCourseRepository()
        course = await courses.save_course(make_course(subtopics=2))
        topic = course.topics[0]
        runtime = make_runtime(text, images, courses=courses)

        snapshots: list[JobProgress] = []
        subscription = runtime.broadcaster.subscribe("topic-job")
        runtime.start()
        try:
            await runtime.submitter.submit(
                JobFamily.TOPIC,
                {"job_id": "topic-job", "course_id": course.course_id, "topic_id": topic.id, "mode": "full"},
            )
            record = await wait_for_status(runtime.store, "topic-job")
            while True:
                snapshot = await subscription.get(timeout=0.05)
                if snapshot is None:
                    break
                snapshots.append(snapshot)
            stored = await courses.get_course(course.course_id)
        finally:
            await runtime.shutdown()

        assert record.status == "completed"
        assert record.details["subtopicsCompleted"] == 2
        assert record.details["totalSubtopics"] == 2
        counters = [s.details.get("subtopicsCompleted") for s in snapshots if "subtopicsCompleted" in s.details]
        assert counters == sorted(counters)
        assert [size for _, size, _ in images.calls] == ["thumbnail", "banner"]

        saved = stored.topics[0]
        assert saved.status == "complete"
        assert saved.content == "Content for Closures"
        assert all(s.status == "complete" and s.content for s in saved.subtopics)

    @pytest.mark.asyncio
    async def test_partial_mode_leaves_subtopics(self) -> None:
        text, images = FakeTextGenerator(), FakeImageGenerator()
        courses = InMemoryCourseRepository()
        course = await courses.save_course(make_course(subtopics=2))
        runtime = make_runtime(text, images, courses=courses)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.TOPIC, {"course_id": course.course_id, "topic_id": course.topics[0].id}
            )
            record = await wait_for_status(runtime.store, job_id)
            stored = await courses.get_course(course.course_id)
        finally:
            await runtime.shutdown()

        assert record.status == "completed"
        assert "subtopicsCompleted" not in record.details
        assert stored.topics[0].content
        assert stored.topics[0].status == "incomplete"
        assert all(not s.content for s in stored.topics[0].subtopics)


class TestImageProcessor:
    """Image jobs return the stored URL."""

    @pytest.mark.asyncio
    async def test_image_job_result(self) -> None:
        images = FakeImageGenerator()
        runtime = make_runtime(images=images)
        runtime.start()
        try:
            handle = await runtime.submitter.dispatch(
                JobFamily.IMAGE, {"prompt": "a lighthouse", "size": "banner", "course_id": "course-1"}
            )
            url = await handle.wait(timeout=5)
            record = await runtime.store.get_progress(handle.job_id)
        finally:
            await runtime.shutdown()

        assert url == "https://images.test/course-1/banner-1.jpg"
        assert record.status == "completed"
        assert record.result == {"imageUrl": url}
        assert record.details["currentImage"] == "a lighthouse"

    @pytest.mark.asyncio
    async def test_image_job_retried_once(self) -> None:
        images = FakeImageGenerator(fail_times=1)
        runtime = make_runtime(images=images)
        runtime.start()
        try:
            handle = await runtime.submitter.dispatch(
                JobFamily.IMAGE, {"prompt": "a lighthouse", "size": "thumbnail", "course_id": "course-1"}
            )
            await handle.wait(timeout=5)
            record = await runtime.store.get_progress(handle.job_id)
        finally:
            await runtime.shutdown()

        assert len(images.calls) == 2
        assert record.status == "completed"
        assert record.attempt == 2
        assert record.error is None


class TestCourseProcessorFailure:
    """A failed course job keeps the counters it reached."""

    @pytest.mark.asyncio
    async def test_failure_keeps_details(self, course_params) -> None:
        images = FakeImageGenerator(fail_times=1000)
        runtime = make_runtime(images=images)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.COURSE, {"course": course_params}, user_id="user-1"
            )
            await wait_for_failed_envelope(runtime, JobFamily.COURSE, timeout=10)
            record = await runtime.store.get_progress(job_id)
            failed_images = await runtime.queues[JobFamily.IMAGE].failed_jobs()
        finally:
            await runtime.shutdown()

        assert record.status == "failed"
        assert record.attempt == 3
        assert "image job" in record.error
        assert record.details["totalTopics"] == 3
        assert record.details["totalImages"] == 4
        assert record.details["imagesCompleted"] == 0
        assert record.details["courseName"] == course_params.title
        # One exhausted thumbnail sub-job per course attempt
        assert len(failed_images) == 3
