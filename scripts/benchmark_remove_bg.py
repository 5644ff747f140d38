from __future__ import annotations

import argparse
import io
import time

import requests
from PIL import Image, ImageDraw


def make_image(size: int) -> bytes:
    img = Image.new('RGB', (size, size), 'white')
    draw = ImageDraw.Draw(img)
    draw.rectangle((size // 6, size // 6, size - size // 6, size - size // 6), fill='green')
    out = io.BytesIO()
    img.save(out, format='PNG')
    return out.getvalue()


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument('--url', default='http://127.0.0.1:8000')
    parser.add_argument('--count', type=int, default=10)
    parser.add_argument('--size', type=int, default=1024)
    parser.add_argument('--tolerance', type=int, default=40)
    args = parser.parse_args()

    upload = requests.post(
        f"{args.url}/api/image/upload",
        files={'image': ('bench.png', make_image(args.size), 'image/png')},
        timeout=30,
    )
    upload.raise_for_status()
    filename = upload.json()['file']['filename']

    started = time.time()
    for _ in range(args.count):
        resp = requests.post(
            f"{args.url}/api/image/remove-bg/{filename}",
            json={'tolerance': args.tolerance},
            timeout=60,
        )
        resp.raise_for_status()

    elapsed = time.time() - started
    print({'processed': args.count, 'size': args.size, 'elapsed_sec': round(elapsed, 2), 'rps': round(args.count / elapsed, 2)})


if __name__ == '__main__':
    main()
