# tests/utils.py
"""
Single source of truth for test data, factories, and fakes.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterable
from io import BytesIO
from pathlib import Path
from typing import Any

from PIL import Image

from mediasend.schemas.models import DeliveryPayload, SendPolicy

# -------------------------
# Signature samples
# -------------------------

# (expected extension, leading bytes); padded to 32 bytes by `signature_sample`
SIGNATURE_SAMPLES: list[tuple[str, bytes]] = [
    ("jpg", b"\xff\xd8\xff\xe0\x00\x10JFIF"),
    ("png", b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"),
    ("gif", b"GIF89a"),
    ("webp", b"RIFF\x24\x00\x00\x00WEBPVP8 "),
    ("bmp", b"BM\x36\x00\x00\x00"),
    ("tif", b"II*\x00\x08\x00"),
    ("tif", b"MM\x00*\x00\x08"),
    ("psd", b"8BPS\x00\x01"),
    ("pdf", b"%PDF-1.7\n"),
    ("hwp", b"HWP Document File\x00"),
    ("doc", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"),
    ("rtf", b"{\\rtf1\\ansi"),
    ("zip", b"PK\x03\x04\x14\x00"),
    ("rar", b"Rar!\x1a\x07\x00"),
    ("7z", b"7z\xbc\xaf\x27\x1c\x00\x04"),
    ("gz", b"\x1f\x8b\x08\x00"),
    ("bz2", b"BZh91AY"),
    ("alz", b"ALZ\x01\x0a\x00"),
    ("lzh", b"\x1a\x00-lh5-"),
    ("avi", b"RIFF\x00\x00\x00\x00AVI LIST"),
    ("wav", b"RIFF\x00\x00\x00\x00WAVEfmt "),
    ("mp4", b"\x00\x00\x00\x18ftypmp42"),
    ("mkv", b"\x1a\x45\xdf\xa3\x01\x00"),
    ("flv", b"FLV\x01\x05"),
    ("wmv", b"\x30\x26\xb2\x75\x8e\x66\xcf\x11\xa6\xd9\x00\xaa\x00\x62\xce\x6c"),
    ("mpg", b"\x00\x00\x01\xba\x44\x00"),
    ("ts", b"\x47\x40\x00\x10"),
    ("ogg", b"OggS\x00\x02"),
    ("mp3", b"ID3\x03\x00"),
    ("mp3", b"\xff\xfb\x90\x64"),
    ("flac", b"fLaC\x00\x00"),
    ("aac", b"\xff\xf1\x50\x80"),
]


def signature_sample(head: bytes, size: int = 32) -> bytes:
    """Pad a signature head with zero bytes so offset signatures have room."""
    return head + b"\x00" * max(0, size - len(head))


# -------------------------
# Image payloads
# -------------------------


def png_bytes(width: int = 16, height: int = 16, color: tuple[int, int, int] = (240, 240, 240)) -> bytes:
    """Render a small PNG in memory (no compression so sizes stay predictable)."""
    buf = BytesIO()
    Image.new("RGB", (width, height), color=color).save(buf, format="PNG", compress_level=0)
    return buf.getvalue()


def jpeg_bytes(width: int = 16, height: int = 16) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), color=(10, 20, 30)).save(buf, format="JPEG")
    return buf.getvalue()


def as_data_url(payload: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(payload).decode('ascii')}"


# -------------------------
# Policy
# -------------------------


def make_policy(tmp_path: Path, **overrides: Any) -> SendPolicy:
    """Policy rooted in a test's tmp dir; transient files go to <tmp>/scratch."""
    base: dict[str, Any] = {
        "media_root": tmp_path / "media",
        "scratch_dir": tmp_path / "scratch",
        "timeout_s": 5.0,
        "sniff_timeout_s": 1.0,
        "user_agent": "TestAgent/1.0",
    }
    base.update(overrides)
    return SendPolicy(**base)


# -------------------------
# HTTP fakes
# -------------------------


class _FakeResp:
    def __init__(self, *, status: int = 200, headers: dict[str, str] | None = None, body: bytes = b"", chunk: int = 1024):
        self.status_code = status
        self.headers = headers or {}
        self._body = body
        self._chunk = chunk
        self.closed = False

    def iter_content(self, chunk_size: int = 1024) -> Iterable[bytes]:
        sz = max(1, min(chunk_size, self._chunk))
        for i in range(0, len(self._body), sz):
            yield self._body[i : i + sz]

    def close(self) -> None:  # requests API compat
        self.closed = True


def fake_http(routes: dict[str, bytes], calls: list[tuple[str, dict[str, str]]] | None = None) -> Callable[..., _FakeResp]:
    """
    Build a `requests.get` replacement serving `routes` (url → body).

    Ranged requests get the first bytes with HTTP 206; unknown URLs get 404.
    Every call is appended to `calls` as (url, headers).
    """

    def _get(url: str, *, headers: dict[str, str], timeout: Any, stream: bool) -> _FakeResp:
        assert stream is True
        if calls is not None:
            calls.append((url, dict(headers)))
        if url not in routes:
            return _FakeResp(status=404)
        body = routes[url]
        rng = headers.get("Range")
        if rng:
            end = int(rng.split("-", 1)[1])
            return _FakeResp(status=206, body=body[: end + 1])
        return _FakeResp(status=200, body=body, chunk=7)

    return _get


def full_downloads(calls: list[tuple[str, dict[str, str]]], url: str | None = None) -> int:
    """Number of non-ranged GETs recorded (optionally for a single URL)."""
    return sum(1 for u, h in calls if "Range" not in h and (url is None or u == url))


# -------------------------
# Collaborator fakes
# -------------------------


class RecordingDispatcher:
    def __init__(self, fail: bool = False) -> None:
        self.payloads: list[DeliveryPayload] = []
        self.fail = fail

    def deliver(self, payload: DeliveryPayload) -> None:
        if self.fail:
            raise RuntimeError("client unavailable")
        self.payloads.append(payload)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.paths: list[Path] = []
        self.fail = fail

    def notify(self, path: Path) -> None:
        if self.fail:
            raise OSError("media scanner unavailable")
        self.paths.append(path)


class StaticDirectory:
    def __init__(self, rooms: dict[str, int]) -> None:
        self.rooms = rooms

    def channel_id_for(self, room: str) -> int | None:
        return self.rooms.get(room)


class RecordingLauncher:
    def __init__(self) -> None:
        self.launched: list[str] = []

    def launch(self, package_name: str) -> None:
        self.launched.append(package_name)


class ManualScheduler:
    """Collects delayed callbacks; tests decide when to run them."""

    def __init__(self) -> None:
        self.scheduled: list[tuple[float, Callable[[], object]]] = []

    def __call__(self, delay_s: float, fn: Callable[[], object]) -> None:
        self.scheduled.append((delay_s, fn))

    def run_all(self) -> None:
        while self.scheduled:
            _, fn = self.scheduled.pop(0)
            fn()


class SequentialRunner:
    """TaskRunner that runs tasks inline; lets tests drive the deferred-index path deterministically."""

    def __init__(self) -> None:
        self.batches: list[int] = []

    def run(self, tasks, timeout_s):
        self.batches.append(len(tasks))
        out = []
        for task in tasks:
            try:
                out.append(task())
            except Exception:  # noqa: BLE001
                out.append(None)
        return out


class TickClock:
    """Monotonic fake clock in milliseconds."""

    def __init__(self, start: int = 1_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now
