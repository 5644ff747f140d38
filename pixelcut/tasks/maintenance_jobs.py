from __future__ import annotations

import logging
import time

from pixelcut.infrastructure.file_storage import LocalFileStorage

logger = logging.getLogger("pixelcut.tasks")

storage = LocalFileStorage()


def cleanup_expired_files_job(older_than_seconds: int) -> dict[str, int]:
    now = int(time.time())
    deleted = 0
    scanned = 0

    for item in storage.iter_files():
        scanned += 1
        modified_ts = int(item["last_modified"].timestamp())
        age_seconds = now - modified_ts
        if age_seconds < older_than_seconds:
            continue
        try:
            storage.delete(item["path"])
        except OSError as exc:
            logger.warning("failed to delete %s: %s", item["path"], exc)
            continue
        deleted += 1

    logger.info("cleanup scanned=%d deleted=%d", scanned, deleted)
    return {"scanned": scanned, "deleted": deleted}
