from __future__ import annotations

import logging
import multiprocessing
import threading
import time

from rq import Queue, Worker

from pixelcut.config import settings
from pixelcut.infrastructure.jobs import enqueue_cleanup, get_queue, get_redis_connection

logger = logging.getLogger("pixelcut.worker")


class CleanupScheduler(threading.Thread):
    def __init__(self, queue: Queue) -> None:
        super().__init__(daemon=True)
        self._queue = queue

    def run(self) -> None:
        while True:
            if settings.cleanup_enabled:
                try:
                    enqueue_cleanup(self._queue)
                except Exception:  # noqa: BLE001
                    logger.exception("failed to enqueue cleanup job")
            time.sleep(max(60, settings.cleanup_interval_seconds))


def run_worker_instance(index: int) -> None:
    connection = get_redis_connection()
    worker = Worker([settings.queue_name], connection=connection, name=f"pixelcut-worker-{index}")
    worker.work()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    CleanupScheduler(get_queue()).start()

    worker_count = max(1, settings.worker_concurrency)
    if worker_count == 1:
        run_worker_instance(1)
    else:
        processes: list[multiprocessing.Process] = []
        for idx in range(worker_count):
            process = multiprocessing.Process(target=run_worker_instance, args=(idx + 1,))
            process.start()
            processes.append(process)
        for process in processes:
            process.join()
