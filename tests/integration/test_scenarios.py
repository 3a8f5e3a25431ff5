"""End-to-end job scenarios: course generation, retries and concurrent writes."""

import asyncio
from typing import List

import pytest

from coursegen.models.course import CourseParams
from coursegen.models.job import JobFamily
from coursegen.models.progress import JobProgress
from coursegen.progress.fanout import Subscription
from coursegen.progress.store import InMemoryProgressStore
from coursegen.services.courses import InMemoryCourseRepository
from coursegen.utils.errors import SubJobFailedError
from tests.fakes import FakeImageGenerator, FakeTextGenerator, make_runtime, wait_for_status


async def collect_until_terminal(subscription: Subscription, timeout: float = 5.0) -> List[JobProgress]:
    """Snapshots delivered to a subscriber until the job finishes."""
    received: List[JobProgress] = []

    async def collect() -> None:
        async for snapshot in subscription:
            received.append(snapshot)
            if snapshot.status == "completed":
                return

    await asyncio.wait_for(collect(), timeout)
    return received


class TestCourseGeneration:
    """A course job from submission to completion."""

    @pytest.mark.asyncio
    async def test_course_job_completes(self, course_params: CourseParams) -> None:
        text, images = FakeTextGenerator(), FakeImageGenerator()
        courses = InMemoryCourseRepository()
        runtime = make_runtime(text, images, courses=courses)
        subscription = runtime.broadcaster.subscribe("course-job")
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(
                JobFamily.COURSE,
                {"job_id": "course-job", "course": course_params},
                user_id="user-1",
            )
            snapshots = await collect_until_terminal(subscription)
            record = await runtime.store.get_progress(job_id)
            course = await courses.find_by_job(job_id)
        finally:
            await runtime.shutdown()

        assert job_id == "course-job"
        assert snapshots[0].status == "pending"
        assert snapshots[0].current_step == "Initializing"
        progress = [s.progress for s in snapshots]
        assert progress == sorted(progress)

        assert record.status == "completed"
        assert record.progress == 100
        assert record.user_id == "user-1"
        assert record.details["topicsCompleted"] == 3
        assert record.details["totalTopics"] == 3
        assert record.details["imagesCompleted"] == 4
        assert record.details["totalImages"] == 4
        assert record.result["course_id"] == course.course_id

        assert course.description == "An expanded, engaging course description."
        assert course.thumbnail and course.banner
        assert len(course.topics) == 3
        first, *rest = course.topics
        assert first.status == "complete"
        assert first.thumbnail and first.banner
        assert all(s.status == "complete" for s in first.subtopics)
        assert all(t.status == "incomplete" and not t.content for t in rest)
        assert len(images.calls) == 4

    @pytest.mark.asyncio
    async def test_image_sub_jobs_have_their_own_records(self, course_params: CourseParams) -> None:
        store = InMemoryProgressStore()
        runtime = make_runtime(store=store)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(JobFamily.COURSE, {"course": course_params}, user_id="u")
            await wait_for_status(store, job_id, statuses=("completed",))
        finally:
            await runtime.shutdown()

        # The course job plus one record per image sub-job
        assert len(store) == 5

    @pytest.mark.asyncio
    async def test_full_mode_realizes_every_topic(self) -> None:
        params = CourseParams(
            title="Python Basics", description="From syntax to packaging.", num_topics=3, generation_mode="full"
        )
        images = FakeImageGenerator()
        store = InMemoryProgressStore()
        courses = InMemoryCourseRepository()
        runtime = make_runtime(images=images, store=store, courses=courses)
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(JobFamily.COURSE, {"course": params}, user_id="u")
            record = await wait_for_status(store, job_id, statuses=("completed",))
            course = await courses.find_by_job(job_id)
        finally:
            await runtime.shutdown()

        topics = record.result["topics"]
        assert len(topics) == 3
        assert all(topic["status"] == "complete" for topic in topics)
        assert all(topic["content"] and topic["thumbnail"] and topic["banner"] for topic in topics)
        assert all(s["status"] == "complete" and s["content"] for topic in topics for s in topic["subtopics"])
        assert all(topic.status == "complete" for topic in course.topics)
        assert "topicJobIds" not in record.details
        assert record.details["imagesCompleted"] == 8
        assert record.details["totalImages"] == 8
        assert len(images.calls) == 8
        # Every image went through its own image job
        assert len(store) == 1 + 8


class TestRetryReopensJob:
    """A failed attempt followed by a successful retry ends completed."""

    @pytest.mark.asyncio
    async def test_transient_failure_then_success(self, course_params: CourseParams) -> None:
        text = FakeTextGenerator(fail_times=1)
        runtime = make_runtime(text=text)
        statuses: List[str] = []
        subscription = runtime.broadcaster.subscribe("course-job")
        runtime.start()
        try:
            await runtime.submitter.submit(
                JobFamily.COURSE, {"job_id": "course-job", "course": course_params}, user_id="u"
            )
            snapshots = await collect_until_terminal(subscription)
            statuses = [s.status for s in snapshots]
            record = await runtime.store.get_progress("course-job")
            failed = await runtime.queues[JobFamily.COURSE].failed_jobs()
        finally:
            await runtime.shutdown()

        assert "failed" in statuses
        assert statuses[-1] == "completed"
        assert record.status == "completed"
        assert record.attempt == 2
        assert record.error is None
        assert failed == []

    @pytest.mark.asyncio
    async def test_late_report_after_completion_is_ignored(self, course_params: CourseParams) -> None:
        runtime = make_runtime()
        runtime.start()
        try:
            job_id = await runtime.submitter.submit(JobFamily.COURSE, {"course": course_params}, user_id="u")
            done = await wait_for_status(runtime.store, job_id, statuses=("completed",))
            await runtime.reporter.report(job_id, status="processing", progress=10)
            after = await runtime.store.get_progress(job_id)
        finally:
            await runtime.shutdown()

        assert after == done


class TestResubmission:
    """Submitting a finished job id again starts a new run of it."""

    @pytest.mark.asyncio
    async def test_failed_job_id_runs_again(self) -> None:
        images = FakeImageGenerator(fail_times=2)
        runtime = make_runtime(images=images)
        payload = {"job_id": "image-job", "prompt": "a lighthouse", "size": "thumbnail", "course_id": "c"}
        runtime.start()
        try:
            first = await runtime.submitter.dispatch(JobFamily.IMAGE, payload)
            with pytest.raises(SubJobFailedError):
                await first.wait(timeout=5)
            failed = await runtime.store.get_progress("image-job")

            second = await runtime.submitter.dispatch(JobFamily.IMAGE, payload)
            url = await second.wait(timeout=5)
            record = await runtime.store.get_progress("image-job")
        finally:
            await runtime.shutdown()

        assert failed.status == "failed"
        assert failed.attempt == 2
        assert record.status == "completed"
        assert record.attempt == 3
        assert record.error is None
        assert record.result == {"imageUrl": url}

    @pytest.mark.asyncio
    async def test_completed_job_id_runs_again(self) -> None:
        images = FakeImageGenerator()
        runtime = make_runtime(images=images)
        payload = {"job_id": "image-job", "prompt": "a lighthouse", "size": "banner", "course_id": "c"}
        runtime.start()
        try:
            first_url = await (await runtime.submitter.dispatch(JobFamily.IMAGE, payload)).wait(timeout=5)
            second_url = await (await runtime.submitter.dispatch(JobFamily.IMAGE, payload)).wait(timeout=5)
            record = await runtime.store.get_progress("image-job")
        finally:
            await runtime.shutdown()

        assert first_url != second_url
        assert record.status == "completed"
        assert record.attempt == 2
        assert record.result == {"imageUrl": second_url}


class TestConcurrentSubmissions:
    """Seed writes and processor writes for many jobs at once."""

    @pytest.mark.asyncio
    async def test_one_record_per_job(self) -> None:
        store = InMemoryProgressStore()
        runtime = make_runtime(store=store)
        runtime.start()
        try:
            handles = await asyncio.gather(
                *(
                    runtime.submitter.dispatch(
                        JobFamily.IMAGE, {"prompt": f"image {i}", "size": "thumbnail", "course_id": "c"}
                    )
                    for i in range(10)
                )
            )
            await asyncio.gather(*(handle.wait(timeout=5) for handle in handles))
            records = [await store.get_progress(handle.job_id) for handle in handles]
        finally:
            await runtime.shutdown()

        assert len(store) == 10
        assert len({handle.job_id for handle in handles}) == 10
        assert all(record.status == "completed" for record in records)
