from __future__ import annotations

import argparse

from pixelcut.config import settings
from pixelcut.tasks.maintenance_jobs import cleanup_expired_files_job


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--older-than", type=int, default=settings.cleanup_older_than_seconds)
    args = parser.parse_args()

    result = cleanup_expired_files_job(args.older_than)
    print(result)
