# mediasend/core/media/base.py
"""
Cross-layer contracts for the collaborators that live outside mediasend.

This module defines:
- `TaskRunner`: runs a batch of zero-argument tasks, order-preserving and
  best-effort (a failed or timed-out task yields None).
- `MediaIndexNotifier`: tells the OS media indexer that a file exists.
- `Dispatcher`: hands a DeliveryPayload to the messaging client.
- `ChannelDirectory`: resolves a human-readable room name to a channel id.
- `ForegroundLauncher`: brings an application package back to the foreground.

Concrete implementations belong to the host application; mediasend only ships
`ThreadPoolTaskRunner` (core/media/batch.py) and the dry-run dispatcher used by
the CLI.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from mediasend.schemas.models import DeliveryPayload

T = TypeVar("T")


@runtime_checkable
class TaskRunner(Protocol):
    def run(self, tasks: Sequence[Callable[[], T]], timeout_s: float) -> list[T | None]:
        """
        Run every task and return their results in submission order.

        A task that raises or does not finish within `timeout_s` contributes None.
        """
        ...


@runtime_checkable
class MediaIndexNotifier(Protocol):
    def notify(self, path: Path) -> None:
        """Announce a new or updated media file at `path`."""
        ...


@runtime_checkable
class Dispatcher(Protocol):
    def deliver(self, payload: DeliveryPayload) -> None:
        """Hand the payload to the messaging client (fire-and-forget)."""
        ...


@runtime_checkable
class ChannelDirectory(Protocol):
    def channel_id_for(self, room: str) -> int | None:
        """Return the channel id for `room`, or None when unknown."""
        ...


@runtime_checkable
class ForegroundLauncher(Protocol):
    def launch(self, package_name: str) -> None:
        """Bring `package_name` to the foreground."""
        ...


__all__ = [
    "TaskRunner",
    "MediaIndexNotifier",
    "Dispatcher",
    "ChannelDirectory",
    "ForegroundLauncher",
]
