from __future__ import annotations

from redis import Redis
from rq import Queue, Retry

from pixelcut.config import settings


def get_redis_connection() -> Redis:
    return Redis.from_url(settings.redis_url)


def get_queue(connection: Redis | None = None) -> Queue:
    return Queue(
        settings.queue_name,
        connection=connection or get_redis_connection(),
        default_timeout=settings.job_timeout_seconds,
    )


def retry_policy() -> Retry | None:
    if settings.job_retry_max <= 0:
        return None
    intervals = settings.job_retry_intervals
    if not intervals:
        return Retry(max=settings.job_retry_max)
    return Retry(max=settings.job_retry_max, interval=list(intervals))


def enqueue_cleanup(queue: Queue, older_than_seconds: int | None = None):
    return queue.enqueue(
        "pixelcut.tasks.maintenance_jobs.cleanup_expired_files_job",
        older_than_seconds if older_than_seconds is not None else settings.cleanup_older_than_seconds,
        result_ttl=settings.job_result_ttl_seconds,
        failure_ttl=settings.job_failure_ttl_seconds,
        retry=retry_policy(),
    )
