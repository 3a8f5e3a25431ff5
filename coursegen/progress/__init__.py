"""Progress store, fan-out and reporter."""

from coursegen.progress.fanout import ProgressBroadcaster, Subscription
from coursegen.progress.reporter import ProgressReporter
from coursegen.progress.store import InMemoryProgressStore, ProgressStore, merge_progress
from coursegen.progress.supabase_store import SupabaseProgressStore

__all__ = [
    "ProgressStore",
    "InMemoryProgressStore",
    "SupabaseProgressStore",
    "merge_progress",
    "ProgressBroadcaster",
    "Subscription",
    "ProgressReporter",
]
