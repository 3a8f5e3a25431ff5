"""Property-based tests for the progress store and reporter.

Properties 1-3: single record per job, terminal states are final, details merge
"""

import asyncio
from typing import Any, Dict, List

from hypothesis import given, settings, strategies as st

from coursegen.models.progress import JobProgress, ProgressUpdate
from coursegen.progress.fanout import ProgressBroadcaster
from coursegen.progress.reporter import ProgressReporter
from coursegen.progress.store import InMemoryProgressStore, merge_progress

# ==================== Strategies ====================

job_ids = st.text(
    alphabet=st.characters(whitelist_categories=("Ll", "Nd")), min_size=1, max_size=12
)
step_labels = st.text(min_size=1, max_size=30).filter(lambda s: s.strip())
detail_keys = st.sampled_from(
    ["topicsCompleted", "totalTopics", "imagesCompleted", "totalImages", "currentTopic", "currentImage"]
)
detail_values = st.one_of(st.integers(min_value=0, max_value=50), st.text(max_size=20))
details_maps = st.dictionaries(detail_keys, detail_values, max_size=6)


@st.composite
def open_updates(draw: Any) -> Dict[str, Any]:
    """Updates that keep a job pending or processing."""
    return {
        "status": draw(st.sampled_from(["pending", "processing"])),
        "progress": draw(st.floats(min_value=0, max_value=100, allow_nan=False)),
        "current_step": draw(step_labels),
        "details": draw(details_maps),
    }


@st.composite
def any_updates(draw: Any) -> Dict[str, Any]:
    update = draw(open_updates())
    update["status"] = draw(st.sampled_from(["pending", "processing", "completed", "failed"]))
    return update


# ==================== Property Tests ====================


class TestProperty1SingleRecordPerJob:
    """
    Property 1: Single Record Per Job

    *For any* sequence of concurrent seed and processor writes using the same
    job id, exactly one record exists afterwards and its fields reflect the
    last applied update.
    """

    @settings(max_examples=100, deadline=None)
    @given(job_id=job_ids, updates=st.lists(open_updates(), min_size=1, max_size=10))
    def test_concurrent_writes_converge_to_one_record(
        self, job_id: str, updates: List[Dict[str, Any]]
    ) -> None:
        store = InMemoryProgressStore()

        async def run() -> JobProgress:
            await asyncio.gather(
                *(store.upsert_progress(job_id, ProgressUpdate(**u)) for u in updates)
            )
            return await store.get_progress(job_id)

        record = asyncio.run(run())

        assert len(store) == 1
        last = updates[-1]
        assert record.job_id == job_id
        assert record.status == last["status"]
        assert record.progress == last["progress"]
        assert record.current_step == last["current_step"]

    @settings(max_examples=50, deadline=None)
    @given(job_id=job_ids, updates=st.lists(open_updates(), min_size=2, max_size=6))
    def test_created_at_set_once_and_updated_at_refreshed(
        self, job_id: str, updates: List[Dict[str, Any]]
    ) -> None:
        store = InMemoryProgressStore()

        async def run() -> List[JobProgress]:
            return [await store.upsert_progress(job_id, ProgressUpdate(**u)) for u in updates]

        records = asyncio.run(run())

        assert len({r.created_at for r in records}) == 1
        for earlier, later in zip(records, records[1:]):
            assert later.updated_at >= earlier.updated_at


class TestProperty2TerminalStatesAreFinal:
    """
    Property 2: Monotonic Terminality

    *For any* job that reached completed or failed, a later report does not
    change its status; only a newer queue attempt may reopen it.
    """

    @settings(max_examples=100, deadline=None)
    @given(
        terminal=st.sampled_from(["completed", "failed"]),
        later=any_updates(),
    )
    def test_report_after_terminal_is_ignored(self, terminal: str, later: Dict[str, Any]) -> None:
        store = InMemoryProgressStore()
        reporter = ProgressReporter(store, ProgressBroadcaster())

        async def run() -> tuple:
            await reporter.report("job-1", status="processing", attempt=1)
            final = await reporter.report("job-1", status=terminal, error="boom", result={"ok": True})
            after = await reporter.report("job-1", **later)
            return final, after

        final, after = asyncio.run(run())

        assert after.status == terminal
        assert after == final

    @settings(max_examples=50, deadline=None)
    @given(stale_attempt=st.integers(min_value=0, max_value=1))
    def test_stale_attempt_cannot_reopen(self, stale_attempt: int) -> None:
        store = InMemoryProgressStore()

        async def run() -> JobProgress:
            await store.upsert_progress("job-1", ProgressUpdate(status="failed", attempt=1))
            return await store.upsert_progress(
                "job-1", ProgressUpdate(status="processing", attempt=stale_attempt)
            )

        assert asyncio.run(run()).status == "failed"

    def test_new_attempt_reopens_failed_job(self) -> None:
        store = InMemoryProgressStore()

        async def run() -> JobProgress:
            await store.upsert_progress(
                "job-1", ProgressUpdate(status="failed", error="timeout", attempt=1)
            )
            return await store.upsert_progress(
                "job-1", ProgressUpdate(status="processing", error=None, attempt=2)
            )

        record = asyncio.run(run())
        assert record.status == "processing"
        assert record.error is None
        assert record.attempt == 2


class TestProperty3DetailsMerge:
    """
    Property 3: Merge Semantics

    *For any* stored details and any update details, the result holds every
    stored key, with keys from the update overwriting.
    """

    @settings(max_examples=100, deadline=None)
    @given(existing=details_maps, incoming=details_maps)
    def test_details_merged_one_level_deep(
        self, existing: Dict[str, Any], incoming: Dict[str, Any]
    ) -> None:
        record = merge_progress("job-1", None, ProgressUpdate(details=existing))
        merged = merge_progress("job-1", record, ProgressUpdate(details=incoming))

        assert merged.details == {**existing, **incoming}

    def test_documented_example(self) -> None:
        store = InMemoryProgressStore()

        async def run() -> JobProgress:
            await store.upsert_progress(
                "job-1", ProgressUpdate(details={"topicsCompleted": 2, "totalTopics": 5})
            )
            return await store.upsert_progress(
                "job-1", ProgressUpdate(details={"currentTopic": "X"})
            )

        record = asyncio.run(run())
        assert record.details == {"topicsCompleted": 2, "totalTopics": 5, "currentTopic": "X"}

    @settings(max_examples=50, deadline=None)
    @given(first=open_updates(), second=step_labels)
    def test_unset_fields_are_kept(self, first: Dict[str, Any], second: str) -> None:
        record = merge_progress("job-1", None, ProgressUpdate(**first))
        merged = merge_progress("job-1", record, ProgressUpdate(sub_step=second))

        assert merged.status == first["status"]
        assert merged.progress == first["progress"]
        assert merged.current_step == first["current_step"]
        assert merged.sub_step == second


class TestReporterFailureHandling:
    """A failing store never raises into the job."""

    def test_store_failure_is_swallowed(self) -> None:
        class BrokenStore:
            async def upsert_progress(self, job_id: str, update: ProgressUpdate) -> JobProgress:
                raise ConnectionError("store unavailable")

            async def get_progress(self, job_id: str) -> None:
                return None

        broadcaster = ProgressBroadcaster()
        reporter = ProgressReporter(BrokenStore(), broadcaster)

        async def run() -> Any:
            subscription = broadcaster.subscribe("job-1")
            result = await reporter.report("job-1", status="processing", progress=10)
            return result, await subscription.get(timeout=0.05)

        result, delivered = asyncio.run(run())
        assert result is None
        assert delivered is None

    def test_publishes_full_snapshot(self) -> None:
        broadcaster = ProgressBroadcaster()
        reporter = ProgressReporter(InMemoryProgressStore(), broadcaster)

        async def run() -> JobProgress:
            subscription = broadcaster.subscribe("job-1")
            await reporter.report("job-1", status="processing", details={"totalTopics": 3})
            await reporter.report("job-1", progress=40)
            await subscription.get(timeout=1)
            return await subscription.get(timeout=1)

        snapshot = asyncio.run(run())
        assert snapshot.status == "processing"
        assert snapshot.progress == 40
        assert snapshot.details == {"totalTopics": 3}

    def test_ignored_update_is_not_republished(self) -> None:
        broadcaster = ProgressBroadcaster()
        reporter = ProgressReporter(InMemoryProgressStore(), broadcaster)

        async def run() -> Any:
            subscription = broadcaster.subscribe("job-1")
            await reporter.report("job-1", status="completed", progress=100, result={"ok": True})
            late = await reporter.report("job-1", status="processing", progress=10)
            first = await subscription.get(timeout=1)
            second = await subscription.get(timeout=0.05)
            return late, first, second

        late, first, second = asyncio.run(run())
        assert late.status == "completed"
        assert first.status == "completed"
        assert second is None
