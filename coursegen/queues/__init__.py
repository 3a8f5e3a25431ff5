"""Job queues, one per job family."""

from coursegen.queues.backends import (
    InMemoryQueueBackend,
    QueueBackend,
    RedisQueueBackend,
    create_redis_client,
)
from coursegen.queues.policy import DEFAULT_POLICIES, RetryPolicy, policies_from_settings
from coursegen.queues.queue import Handler, JobHandle, JobQueue

__all__ = [
    "QueueBackend",
    "InMemoryQueueBackend",
    "RedisQueueBackend",
    "create_redis_client",
    "RetryPolicy",
    "DEFAULT_POLICIES",
    "policies_from_settings",
    "Handler",
    "JobHandle",
    "JobQueue",
]
