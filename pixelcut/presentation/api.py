from __future__ import annotations

import json
import logging
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles
from rq.job import Job
from rq.registry import FailedJobRegistry, StartedJobRegistry
from starlette.middleware.base import BaseHTTPMiddleware

from pixelcut.application import image_transformations
from pixelcut.application.image_transformations import TransformationError, TransformResult
from pixelcut.application.remove_background_use_case import (
    RemoveBackgroundOptions,
    RemoveBackgroundUseCase,
)
from pixelcut.config import settings
from pixelcut.infrastructure.file_storage import PROCESSED, UPLOADS, LocalFileStorage
from pixelcut.infrastructure.image_validation import ImageValidationError, validate_image_bytes
from pixelcut.infrastructure.jobs import enqueue_cleanup, get_queue, get_redis_connection
from pixelcut.infrastructure.metrics import metrics
from pixelcut.presentation.schemas import (
    AdjustRequest,
    ConvertRequest,
    CropRequest,
    FilterRequest,
    RemoveBackgroundRequest,
    ResizeRequest,
    RotateRequest,
)

logger = logging.getLogger("pixelcut.api")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)

app = FastAPI(title="pixelcut")

redis_connection = get_redis_connection()
queue = get_queue(redis_connection)
storage = LocalFileStorage()
storage.ensure_directories()
remove_background_use_case = RemoveBackgroundUseCase()


@dataclass
class SlidingWindow:
    timestamps: deque[float]


class RequestContextMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: FastAPI) -> None:
        super().__init__(app)
        self._buckets: dict[str, SlidingWindow] = defaultdict(lambda: SlidingWindow(deque()))
        self._last_sweep = 0.0

    def _evict_idle(self, window_start: float) -> None:
        idle = [
            ip
            for ip, bucket in self._buckets.items()
            if not bucket.timestamps or bucket.timestamps[-1] < window_start
        ]
        for ip in idle:
            del self._buckets[ip]

    def _allow(self, client_ip: str, now: float) -> bool:
        window_start = now - 60.0
        if now - self._last_sweep >= 60.0:
            self._evict_idle(window_start)
            self._last_sweep = now

        bucket = self._buckets[client_ip]
        while bucket.timestamps and bucket.timestamps[0] < window_start:
            bucket.timestamps.popleft()

        if len(bucket.timestamps) >= settings.rate_limit_per_minute:
            return False
        bucket.timestamps.append(now)
        return True

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        start = time.perf_counter()

        request.state.request_id = request_id
        metrics.incr("http_requests_total")

        if request.url.path.startswith("/api/"):
            client_ip = request.client.host if request.client else "unknown"
            if not self._allow(client_ip, time.time()):
                metrics.incr("rate_limited_total")
                return Response(
                    content='{"detail":"Rate limit exceeded. Try again in a minute."}',
                    status_code=429,
                    media_type="application/json",
                    headers={"x-request-id": request_id},
                )

        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        response.headers["x-request-id"] = request_id
        logger.info(
            json.dumps(
                {
                    "request_id": request_id,
                    "method": request.method,
                    "path": str(request.url.path),
                    "status": response.status_code,
                    "elapsed_ms": elapsed_ms,
                }
            )
        )
        return response


app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_methods=["*"],
    allow_headers=["*"],
)


def _ensure_image_content_type(file: UploadFile) -> None:
    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail=f"{file.filename or 'file'} is not an image")


def _validate_upload(file: UploadFile, image_bytes: bytes) -> None:
    _ensure_image_content_type(file)
    if len(image_bytes) > settings.max_image_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"{file.filename or 'file'} is too large. Max size is {settings.max_image_bytes // (1024 * 1024)} MB",
        )
    try:
        validate_image_bytes(image_bytes, max_pixels=settings.max_image_pixels)
    except ImageValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _validate_tolerance(tolerance: int) -> int:
    if tolerance < 0:
        raise HTTPException(status_code=400, detail="tolerance must be a non-negative integer")
    return tolerance


def _source_path(filename: str) -> Path:
    try:
        return storage.resolve(UPLOADS, filename)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="File not found") from exc


def _run_operation(
    filename: str,
    operation: str,
    message: str,
    failure: str,
    process: Callable[[bytes], TransformResult],
) -> dict:
    source = _source_path(filename)
    start = time.perf_counter()

    try:
        result = process(source.read_bytes())
        output_name = storage.save_output(result.data, result.extension)
        file_info = storage.describe(PROCESSED, output_name)
    except TransformationError as exc:
        metrics.incr(f"{operation}_rejected_total")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        metrics.incr(f"{operation}_rejected_total")
        logger.warning("%s rejected for %s: %s", operation, filename, exc)
        raise HTTPException(status_code=400, detail=failure) from exc
    except Exception as exc:  # noqa: BLE001
        metrics.incr(f"{operation}_failed_total")
        logger.exception("%s failed for %s", operation, filename)
        raise HTTPException(status_code=500, detail=failure) from exc

    metrics.incr(f"{operation}_total")
    metrics.observe(operation, (time.perf_counter() - start) * 1000)
    return {"message": message, "file": file_info}


def _queue_stats() -> tuple[int, int, int]:
    try:
        started_registry = StartedJobRegistry(name=queue.name, connection=redis_connection)
        failed_registry = FailedJobRegistry(name=queue.name, connection=redis_connection)
        return queue.count, len(started_registry.get_job_ids()), len(failed_registry.get_job_ids())
    except Exception:  # noqa: BLE001
        return 0, 0, 0


def _refresh_queue_gauges() -> None:
    queue_depth, queue_started, queue_failed = _queue_stats()
    metrics.set_gauge("queue_depth", queue_depth)
    metrics.set_gauge("queue_started", queue_started)
    metrics.set_gauge("queue_failed", queue_failed)


@app.post("/api/image/upload")
async def upload_image(image: UploadFile = File(...)) -> dict:
    image_bytes = await image.read()
    _validate_upload(image, image_bytes)

    filename = storage.save_upload(image_bytes, image.filename or "")
    metrics.incr("uploads_total")
    return {"message": "Upload successful", "file": storage.describe(UPLOADS, filename)}


@app.post("/api/image/remove-bg/{filename}")
def remove_bg(filename: str, options: RemoveBackgroundRequest | None = None) -> dict:
    opts = options or RemoveBackgroundRequest()
    tolerance = _validate_tolerance(opts.tolerance)

    def process(image_bytes: bytes) -> TransformResult:
        png = remove_background_use_case.execute(image_bytes, RemoveBackgroundOptions(tolerance=tolerance))
        return TransformResult(data=png, extension="png")

    return _run_operation(filename, "remove_bg", "Background removed", "Remove background failed", process)


@app.post("/api/image/resize/{filename}")
def resize_image(filename: str, options: ResizeRequest) -> dict:
    return _run_operation(
        filename,
        "resize",
        "Resized",
        "Resize failed",
        lambda data: image_transformations.resize(data, options.width, options.height),
    )


@app.post("/api/image/crop/{filename}")
def crop_image(filename: str, options: CropRequest) -> dict:
    return _run_operation(
        filename,
        "crop",
        "Cropped",
        "Crop failed",
        lambda data: image_transformations.crop(
            data, options.width, options.height, left=options.left, top=options.top
        ),
    )


@app.post("/api/image/rotate/{filename}")
def rotate_image(filename: str, options: RotateRequest | None = None) -> dict:
    opts = options or RotateRequest()
    return _run_operation(
        filename,
        "rotate",
        "Rotated",
        "Rotate failed",
        lambda data: image_transformations.rotate(data, opts.angle),
    )


@app.post("/api/image/filter/{filename}")
def filter_image(filename: str, options: FilterRequest) -> dict:
    return _run_operation(
        filename,
        "filter",
        f"{options.filter} applied",
        "Filter failed",
        lambda data: image_transformations.apply_filter(data, options.filter),
    )


@app.post("/api/image/adjust/{filename}")
def adjust_image(filename: str, options: AdjustRequest | None = None) -> dict:
    opts = options or AdjustRequest()
    return _run_operation(
        filename,
        "adjust",
        "Adjustments applied",
        "Adjustment failed",
        lambda data: image_transformations.adjust(data, opts.brightness, opts.saturation),
    )


@app.post("/api/image/convert/{filename}")
def convert_image(filename: str, options: ConvertRequest) -> dict:
    return _run_operation(
        filename,
        "convert",
        f"Converted to {options.format}",
        "Convert failed",
        lambda data: image_transformations.convert(data, options.format, options.quality),
    )


def _file_response(area: str, filename: str) -> FileResponse:
    try:
        path = storage.resolve(area, filename)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Not found") from exc
    return FileResponse(path)


@app.get("/api/image/uploads/{filename}")
def get_uploaded_file(filename: str) -> FileResponse:
    return _file_response(UPLOADS, filename)


@app.get("/api/image/processed/{filename}")
def get_processed_file(filename: str) -> FileResponse:
    return _file_response(PROCESSED, filename)


@app.post("/api/admin/cleanup")
def run_cleanup() -> dict[str, str]:
    try:
        job = enqueue_cleanup(queue)
    except Exception as exc:  # noqa: BLE001
        logger.exception("failed to enqueue cleanup job")
        raise HTTPException(status_code=503, detail="Job queue unavailable") from exc
    return {"cleanup_job_id": job.id, "status": "queued"}


@app.get("/api/jobs/{job_id}")
def get_job_status(job_id: str) -> dict:
    try:
        job = Job.fetch(job_id, connection=redis_connection)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=404, detail="Job not found") from exc

    status = job.get_status(refresh=True)
    payload: dict = {"job_id": job.id, "status": status, "result": None, "error": None}
    if status == "finished":
        payload["result"] = job.return_value()
    elif status == "failed":
        payload["error"] = "Job failed"
    return payload


@app.get("/api/metrics")
def get_metrics() -> dict:
    _refresh_queue_gauges()
    snapshot = metrics.snapshot()
    snapshot["timestamp"] = int(datetime.now(timezone.utc).timestamp())
    return snapshot


@app.get("/api/metrics/prometheus")
def get_prometheus_metrics() -> PlainTextResponse:
    _refresh_queue_gauges()
    return PlainTextResponse(metrics.to_prometheus_text(), media_type="text/plain; version=0.0.4")


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


app.mount("/uploads", StaticFiles(directory=storage.directory(UPLOADS)), name="uploads")
app.mount("/processed", StaticFiles(directory=storage.directory(PROCESSED)), name="processed")
