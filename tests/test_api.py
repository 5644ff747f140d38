from __future__ import annotations

import io
from types import SimpleNamespace

from fastapi.testclient import TestClient
from PIL import Image

from pixelcut.infrastructure.file_storage import UPLOADS
from pixelcut.presentation import api


class FakeQueue:
    def __init__(self) -> None:
        self.calls = []

    def enqueue(self, *args, **kwargs):
        self.calls.append((args, kwargs))
        return SimpleNamespace(id='job-123')


def _image_bytes(size: int = 20) -> bytes:
    img = Image.new('RGB', (size, size), (255, 255, 255))
    img.paste((10, 60, 200), (5, 5, 15, 15))
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def _upload(client: TestClient, data: bytes | None = None) -> dict:
    res = client.post(
        '/api/image/upload',
        files={'image': ('Sample.PNG', data or _image_bytes(), 'image/png')},
    )
    assert res.status_code == 200
    return res.json()['file']


def test_health() -> None:
    client = TestClient(api.app)
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.json()['status'] == 'ok'
    assert res.headers['x-request-id']


def test_request_id_is_echoed() -> None:
    client = TestClient(api.app)
    res = client.get('/api/health', headers={'x-request-id': 'abc-1'})
    assert res.headers['x-request-id'] == 'abc-1'


def test_upload_returns_file_metadata() -> None:
    client = TestClient(api.app)

    file = _upload(client)

    assert file['filename'].endswith('.png')
    assert file['path'] == f"/uploads/{file['filename']}"
    assert file['width'] == 20
    assert file['height'] == 20
    assert file['size'] == len(_image_bytes())


def test_upload_rejects_non_image() -> None:
    client = TestClient(api.app)
    res = client.post('/api/image/upload', files={'image': ('a.txt', b'hello', 'text/plain')})
    assert res.status_code == 400


def test_upload_rejects_corrupt_image() -> None:
    client = TestClient(api.app)
    res = client.post('/api/image/upload', files={'image': ('a.png', b'not a png', 'image/png')})
    assert res.status_code == 400


def test_upload_rejects_large_file(monkeypatch) -> None:
    monkeypatch.setattr(api.settings, 'max_image_bytes', 10)
    client = TestClient(api.app)
    res = client.post('/api/image/upload', files={'image': ('a.png', _image_bytes(), 'image/png')})
    assert res.status_code == 413


def test_remove_bg_makes_background_transparent() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/remove-bg/{uploaded['filename']}", json={'tolerance': 5})

    assert res.status_code == 200
    body = res.json()
    assert body['message'] == 'Background removed'
    assert body['file']['filename'].endswith('.png')
    assert body['file']['path'] == f"/processed/{body['file']['filename']}"
    assert (body['file']['width'], body['file']['height']) == (20, 20)

    download = client.get(body['file']['path'])
    assert download.status_code == 200
    result = Image.open(io.BytesIO(download.content))
    assert result.getpixel((0, 0))[3] == 0
    assert result.getpixel((10, 10)) == (10, 60, 200, 255)


def test_remove_bg_without_body_uses_default_tolerance() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/remove-bg/{uploaded['filename']}")

    assert res.status_code == 200
    download = client.get(f"/api/image/processed/{res.json()['file']['filename']}")
    assert download.status_code == 200


def test_remove_bg_missing_file() -> None:
    client = TestClient(api.app)
    res = client.post('/api/image/remove-bg/does-not-exist.png', json={'tolerance': 5})
    assert res.status_code == 404
    assert res.json()['detail'] == 'File not found'


def test_remove_bg_rejects_negative_tolerance() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/remove-bg/{uploaded['filename']}", json={'tolerance': -1})

    assert res.status_code == 400


def test_remove_bg_rejects_non_numeric_tolerance() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/remove-bg/{uploaded['filename']}", json={'tolerance': 'lots'})

    assert res.status_code == 422


def test_remove_bg_on_undecodable_upload() -> None:
    (api.storage.directory(UPLOADS) / 'broken.png').write_bytes(b'garbage')
    client = TestClient(api.app)

    res = client.post('/api/image/remove-bg/broken.png', json={'tolerance': 5})

    assert res.status_code == 400
    assert res.json()['detail'] == 'Remove background failed'


def test_remove_bg_unexpected_error(monkeypatch) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError('disk on fire')

    monkeypatch.setattr(api.remove_background_use_case, 'execute', explode)
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/remove-bg/{uploaded['filename']}")

    assert res.status_code == 500
    assert res.json()['detail'] == 'Remove background failed'


def test_resize_endpoint() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/resize/{uploaded['filename']}", json={'width': 10})

    assert res.status_code == 200
    assert res.json()['message'] == 'Resized'
    assert res.json()['file']['filename'].endswith('.jpg')
    assert (res.json()['file']['width'], res.json()['file']['height']) == (10, 10)


def test_crop_endpoint_rejects_out_of_bounds() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(
        f"/api/image/crop/{uploaded['filename']}",
        json={'left': 15, 'top': 0, 'width': 10, 'height': 10},
    )

    assert res.status_code == 400


def test_rotate_endpoint_defaults() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/rotate/{uploaded['filename']}")

    assert res.status_code == 200
    assert res.json()['message'] == 'Rotated'


def test_filter_endpoint() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/filter/{uploaded['filename']}", json={'filter': 'sepia'})

    assert res.status_code == 200
    assert res.json()['message'] == 'sepia applied'


def test_filter_endpoint_unknown_filter() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/filter/{uploaded['filename']}", json={'filter': 'glow'})

    assert res.status_code == 400
    assert 'Unknown filter' in res.json()['detail']


def test_adjust_endpoint() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(
        f"/api/image/adjust/{uploaded['filename']}",
        json={'brightness': 1.2, 'saturation': 0.8},
    )

    assert res.status_code == 200
    assert res.json()['message'] == 'Adjustments applied'


def test_convert_endpoint() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/convert/{uploaded['filename']}", json={'format': 'webp', 'quality': 60})

    assert res.status_code == 200
    assert res.json()['message'] == 'Converted to webp'
    assert res.json()['file']['filename'].endswith('.webp')


def test_get_uploaded_file() -> None:
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.get(f"/api/image/uploads/{uploaded['filename']}")

    assert res.status_code == 200
    assert res.content == _image_bytes()


def test_get_missing_processed_file() -> None:
    client = TestClient(api.app)
    res = client.get('/api/image/processed/nope.png')
    assert res.status_code == 404
    assert res.json()['detail'] == 'Not found'


def test_admin_cleanup_enqueues_job(monkeypatch) -> None:
    fake = FakeQueue()
    monkeypatch.setattr(api, 'queue', fake)

    client = TestClient(api.app)
    res = client.post('/api/admin/cleanup')

    assert res.status_code == 200
    assert res.json() == {'cleanup_job_id': 'job-123', 'status': 'queued'}
    args, kwargs = fake.calls[0]
    assert args[0] == 'pixelcut.tasks.maintenance_jobs.cleanup_expired_files_job'
    assert args[1] == api.settings.cleanup_older_than_seconds
    assert 'result_ttl' in kwargs


def test_admin_cleanup_queue_unavailable(monkeypatch) -> None:
    class BrokenQueue:
        def enqueue(self, *args, **kwargs):
            raise ConnectionError('redis down')

    monkeypatch.setattr(api, 'queue', BrokenQueue())
    client = TestClient(api.app)
    res = client.post('/api/admin/cleanup')
    assert res.status_code == 503


def test_job_status(monkeypatch) -> None:
    class DummyJob:
        id = 'job-c'

        def get_status(self, refresh=True):  # noqa: ARG002
            return 'finished'

        def return_value(self):
            return {'scanned': 4, 'deleted': 1}

    monkeypatch.setattr(api.Job, 'fetch', lambda *args, **kwargs: DummyJob())  # noqa: ARG005
    client = TestClient(api.app)
    res = client.get('/api/jobs/job-c')
    assert res.status_code == 200
    assert res.json() == {
        'job_id': 'job-c',
        'status': 'finished',
        'result': {'scanned': 4, 'deleted': 1},
        'error': None,
    }


def test_job_status_not_found(monkeypatch) -> None:
    def missing(*args, **kwargs):
        raise LookupError('no such job')

    monkeypatch.setattr(api.Job, 'fetch', missing)
    client = TestClient(api.app)
    res = client.get('/api/jobs/unknown')
    assert res.status_code == 404


def test_metrics_endpoint(monkeypatch) -> None:
    monkeypatch.setattr(api, '_queue_stats', lambda: (0, 0, 0))
    client = TestClient(api.app)
    res = client.get('/api/metrics')
    assert res.status_code == 200
    assert 'timestamp' in res.json()
    assert res.json()['queue_depth'] == 0


def test_prometheus_metrics(monkeypatch) -> None:
    monkeypatch.setattr(api, '_queue_stats', lambda: (2, 1, 0))
    client = TestClient(api.app)
    res = client.get('/api/metrics/prometheus')
    assert res.status_code == 200
    assert 'pixelcut_queue_depth 2' in res.text


def test_resize_endpoint_rejects_oversized_output(monkeypatch) -> None:
    monkeypatch.setattr(api.settings, 'max_image_pixels', 10_000)
    client = TestClient(api.app)
    uploaded = _upload(client)

    res = client.post(f"/api/image/resize/{uploaded['filename']}", json={'width': 3000, 'height': 3000})

    assert res.status_code == 400
    assert 'too large' in res.json()['detail']


def test_rate_limit_rejects_after_budget(monkeypatch) -> None:
    monkeypatch.setattr(api.settings, 'rate_limit_per_minute', 2)
    middleware = api.RequestContextMiddleware(api.app)

    assert middleware._allow('10.0.0.1', 100.0)
    assert middleware._allow('10.0.0.1', 101.0)
    assert not middleware._allow('10.0.0.1', 102.0)
    assert middleware._allow('10.0.0.1', 161.5)


def test_rate_limit_evicts_idle_clients() -> None:
    middleware = api.RequestContextMiddleware(api.app)

    middleware._allow('10.0.0.1', 100.0)
    middleware._allow('10.0.0.2', 150.0)
    middleware._allow('10.0.0.3', 200.0)

    assert '10.0.0.1' not in middleware._buckets
    assert set(middleware._buckets) == {'10.0.0.2', '10.0.0.3'}
