# mediasend/tools/delivery.py
"""
Handoff construction and delayed housekeeping for the host messaging client.

- build_payload(...)     → DeliveryPayload (single `send` or `send_multiple`)
- DelayedTask            → cancellable timer owned by whoever scheduled it
- schedule_cleanup(...)  → delete transient files after a delay (log-only failures)
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from mediasend.core.log import get_logger
from mediasend.schemas.models import AcquisitionResult, DeliveryPayload, SendPolicy

logger = get_logger(__name__)

MULTI_MIME = "*/*"

HANDOFF_FLAGS: tuple[str, ...] = (
    "FLAG_ACTIVITY_NEW_TASK",
    "FLAG_ACTIVITY_CLEAR_TOP",
    "FLAG_GRANT_READ_URI_PERMISSION",
)


def _is_text(mime: str) -> bool:
    return mime.lower().startswith("text/")


def build_payload(
    channel_id: int,
    results: Sequence[AcquisitionResult],
    *,
    multiple: bool,
    policy: SendPolicy | None = None,
) -> DeliveryPayload:
    """
    Build the handoff for `results`.

    A single non-text item is shared with its own MIME type. Batches and text
    items go through the multi-item action with '*/*' (the client drops single
    text shares).
    """
    if not results:
        raise ValueError("nothing to deliver")
    pol = policy or SendPolicy()

    as_multiple = multiple or len(results) > 1 or _is_text(results[0].mime)
    return DeliveryPayload(
        action="send_multiple" if as_multiple else "send",
        package=pol.target_package,
        mime_type=MULTI_MIME if as_multiple else results[0].mime,
        uris=[r.local_path.resolve().as_uri() for r in results],
        channel_id=channel_id,
        extras={
            "key_id": channel_id,
            "key_type": 1,
            "key_from_direct_share": True,
        },
        flags=list(HANDOFF_FLAGS),
    )


class DelayedTask:
    """A daemon `threading.Timer` that can be cancelled before it fires."""

    def __init__(self, delay_s: float, fn: Callable[[], object], *, name: str = "mediasend-delayed") -> None:
        self.delay_s = delay_s
        self._timer = threading.Timer(delay_s, fn)
        self._timer.daemon = True
        self._timer.name = name

    def start(self) -> DelayedTask:
        self._timer.start()
        return self

    def cancel(self) -> None:
        self._timer.cancel()

    @property
    def finished(self) -> bool:
        return self._timer.finished.is_set()

    def join(self, timeout: float | None = None) -> None:
        self._timer.join(timeout)


def delete_files(paths: Iterable[Path]) -> int:
    """Delete every path that still exists; return how many were removed."""
    removed = 0
    for path in paths:
        try:
            if path.exists():
                path.unlink()
                removed += 1
        except OSError as exc:
            logger.warning("cleanup failed for %s: %s", path, exc)
    return removed


def start_delayed(delay_s: float, fn: Callable[[], object]) -> DelayedTask:
    return DelayedTask(delay_s, fn).start()


# (delay_s, fn) -> handle; injectable so tests can run callbacks synchronously
Scheduler = Callable[[float, Callable[[], object]], object]


def schedule_cleanup(
    paths: Sequence[Path],
    delay_s: float = 60.0,
    *,
    scheduler: Scheduler | None = None,
) -> object | None:
    """Delete `paths` after `delay_s` seconds; returns None when there is nothing to do."""
    targets = [Path(p) for p in paths]
    if not targets:
        return None

    def _run() -> None:
        n = delete_files(targets)
        logger.debug("cleanup removed %d of %d transient files", n, len(targets))

    if scheduler is not None:
        return scheduler(delay_s, _run)
    return DelayedTask(delay_s, _run, name="mediasend-cleanup").start()


__all__ = [
    "MULTI_MIME",
    "HANDOFF_FLAGS",
    "build_payload",
    "DelayedTask",
    "delete_files",
    "start_delayed",
    "Scheduler",
    "schedule_cleanup",
]
