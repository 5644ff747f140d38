from __future__ import annotations

import logging

import uvicorn

from pixelcut.config import settings

logger = logging.getLogger("pixelcut.server")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    logger.info("serving on http://%s:%s, storage at %s", settings.host, settings.port, settings.storage_root)
    uvicorn.run(
        "pixelcut.presentation.api:app",
        host=settings.host,
        port=settings.port,
        log_level="info",
        reload=settings.reload,
    )
