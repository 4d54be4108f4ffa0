# Shared test fixtures: a fake requests session serving canned pages, PNG
# payloads built with Pillow, and a temporary data root.

import io
import json

import pytest
import requests
from PIL import Image

from freefall_sync.config import SyncConfig

# --- Fake HTTP -------------------------------------------------------------------------------

class FakeResponse:
    def __init__(self, body=b"", status_code=200):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.content = body
        self.status_code = status_code

    @property
    def text(self):
        return self.content.decode("utf-8")

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Serves registered URLs; anything else is a 404."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.closed = False

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        body = self.routes.get(url)
        if isinstance(body, Exception):
            raise body
        if body is None:
            return FakeResponse(b"", status_code=404)
        return FakeResponse(body)

    def close(self):
        self.closed = True

# --- Content builders ------------------------------------------------------------------------

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def make_png(width=4, height=3):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), (255, 0, 0)).save(buf, format="PNG")
    return buf.getvalue()


def make_page(number, month="Jan", day=5, year=2020, images=None):
    images = images if images is not None else [f"/ff3500/fc{number:05d}.png"]
    tags = "\n".join(f'<img src="{src}" alt="">' for src in images)
    return (
        "<html><head>\n"
        f"<title>Freefall {number} {month} {day}, {year}</title>\n"
        f"</head><body>\n{tags}\n</body></html>"
    )


def make_feed(*numbers):
    entries = [{"i": n, "h": 300, "ext": "png"} for n in numbers]
    return "FreefallData(" + json.dumps(entries) + ")"


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def config(tmp_path):
    return SyncConfig(root=tmp_path)


@pytest.fixture
def write_reader(config):
    def _write(entries):
        path = config.reader_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path
    return _write
