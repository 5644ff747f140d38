from __future__ import annotations

import os


class Settings:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    reload: bool = os.getenv("RELOAD", "false").lower() == "true"

    storage_root: str = os.getenv("STORAGE_ROOT", "storage")
    max_image_bytes: int = int(os.getenv("MAX_IMAGE_BYTES", str(10 * 1024 * 1024)))
    max_image_pixels: int = int(os.getenv("MAX_IMAGE_PIXELS", str(20_000_000)))
    default_tolerance: int = int(os.getenv("DEFAULT_TOLERANCE", "40"))

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
    cors_allow_origins: tuple[str, ...] = tuple(
        x.strip() for x in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if x.strip()
    )

    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    queue_name: str = os.getenv("QUEUE_NAME", "pixelcut")
    job_timeout_seconds: int = int(os.getenv("JOB_TIMEOUT_SECONDS", "600"))
    job_result_ttl_seconds: int = int(os.getenv("JOB_RESULT_TTL_SECONDS", "3600"))
    job_failure_ttl_seconds: int = int(os.getenv("JOB_FAILURE_TTL_SECONDS", "86400"))
    job_retry_max: int = int(os.getenv("JOB_RETRY_MAX", "2"))
    job_retry_intervals: tuple[int, ...] = tuple(
        int(x.strip()) for x in os.getenv("JOB_RETRY_INTERVALS", "5,20").split(",") if x.strip()
    )
    worker_concurrency: int = int(os.getenv("WORKER_CONCURRENCY", "1"))

    cleanup_enabled: bool = os.getenv("CLEANUP_ENABLED", "true").lower() == "true"
    cleanup_interval_seconds: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "300"))
    cleanup_older_than_seconds: int = int(os.getenv("CLEANUP_OLDER_THAN_SECONDS", "300"))


settings = Settings()
