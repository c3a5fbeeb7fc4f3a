# mediasend/tools/media_sender.py
"""
Public send surface: acquire → build handoff → dispatch → schedule cleanup.

    sender = MediaSender(policy, dispatcher=my_dispatcher, directory=my_rooms)
    sender.send("Family", ["https://…/a.jpg", "/sdcard/b.png"], use_cache=True)
    sender.schedule_return_to_foreground()
    sender.clear_cache()

Every public method returns a bool and never raises; failures are logged.
`send` returning True means the handoff was dispatched, not that anyone
received it.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from mediasend.core.cache import ContentCache
from mediasend.core.fetch.errors import DestinationError
from mediasend.core.log import get_logger
from mediasend.core.media.acquirer import Acquirer
from mediasend.core.media.base import ChannelDirectory, Dispatcher, ForegroundLauncher, MediaIndexNotifier, TaskRunner
from mediasend.core.media.batch import BatchOrchestrator, FileNameTemplate
from mediasend.schemas.models import AcquisitionResult, SendPolicy

from .delivery import Scheduler, build_payload, schedule_cleanup, start_delayed

logger = get_logger(__name__)


def _is_batch(value: object) -> bool:
    return isinstance(value, (list, tuple))


class MediaSender:
    """Wire acquisition, delivery and housekeeping behind three boolean operations."""

    def __init__(
        self,
        policy: SendPolicy | None = None,
        *,
        dispatcher: Dispatcher,
        directory: ChannelDirectory | None = None,
        notifier: MediaIndexNotifier | None = None,
        task_runner: TaskRunner | None = None,
        launcher: ForegroundLauncher | None = None,
        cache: ContentCache | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.policy = policy or SendPolicy.from_env()
        self.cache = cache or ContentCache.from_policy(self.policy)
        self.acquirer = Acquirer(self.policy, cache=self.cache, notifier=notifier)
        self.batch = BatchOrchestrator(self.acquirer, task_runner=task_runner)
        self.dispatcher = dispatcher
        self.directory = directory
        self.launcher = launcher
        self.scheduler: Scheduler = scheduler or start_delayed

    # -------------------------
    # Destination
    # -------------------------

    def resolve_channel(self, destination: int | str) -> int:
        """A digits-only destination is a channel id; anything else is looked up by room name."""
        if isinstance(destination, bool):
            raise DestinationError(f"invalid destination: {destination!r}")
        if isinstance(destination, int):
            return destination
        text = str(destination).strip()
        if text.isdigit():
            return int(text)
        if not text:
            raise DestinationError("empty destination")
        if self.directory is None:
            raise DestinationError(f"no channel directory to resolve {text!r}")
        channel_id = self.directory.channel_id_for(text)
        if channel_id is None:
            raise DestinationError(f"unknown room: {text!r}")
        return int(channel_id)

    # -------------------------
    # Public API
    # -------------------------

    def send(
        self,
        destination: int | str,
        path_or_paths: object,
        timeout_s: float | None = None,
        file_name: FileNameTemplate = None,
        use_cache: bool = False,
    ) -> bool:
        """
        Acquire one input (or a list of inputs) and hand it to the messaging client.

        Args:
            destination:   Channel id (int or digits) or a room name.
            path_or_paths: A single input or a list/tuple of inputs.
            timeout_s:     Per-acquisition timeout in seconds (policy default if None).
            file_name:     Explicit name for a single input; a template or per-item names for a list.
            use_cache:     Route inline and remote inputs through the content cache.
        """
        try:
            channel_id = self.resolve_channel(destination)
        except Exception as exc:  # noqa: BLE001
            logger.error("send aborted, destination %r not resolved: %s", destination, exc)
            return False

        timeout = float(timeout_s if timeout_s is not None else self.policy.timeout_s)
        dest_dir = self.policy.transient_dir
        multiple = _is_batch(path_or_paths)

        try:
            results = self._acquire(path_or_paths, dest_dir, timeout, file_name, use_cache, multiple)
        except Exception:  # noqa: BLE001
            logger.exception("send to %s failed during acquisition", channel_id)
            return False

        if not results:
            logger.warning("send to %s: nothing was acquired", channel_id)
            return False

        try:
            payload = build_payload(channel_id, results, multiple=multiple, policy=self.policy)
            self.dispatcher.deliver(payload)
            logger.info("dispatched %d item(s) to %s (%s)", len(results), channel_id, payload.action)
            return True
        except Exception:  # noqa: BLE001
            logger.exception("send to %s failed during dispatch", channel_id)
            return False
        finally:
            self._schedule_cleanup(results)

    def schedule_return_to_foreground(self, package_name: str | None = None, delay_s: float | None = None) -> bool:
        """Bring `package_name` (the host app by default) back to the foreground after a delay."""
        package = package_name or self.policy.host_package
        delay = float(delay_s if delay_s is not None else self.policy.foreground_delay_s)
        if self.launcher is None:
            logger.warning("no foreground launcher configured; cannot return to %s", package)
            return False

        launcher = self.launcher

        def _launch() -> None:
            try:
                launcher.launch(package)
            except Exception:  # noqa: BLE001
                logger.exception("failed to bring %s to the foreground", package)

        try:
            self.scheduler(delay, _launch)
            return True
        except Exception:  # noqa: BLE001
            logger.exception("could not schedule return to %s", package)
            return False

    def clear_cache(self, target: str | Sequence[str] | None = None) -> bool:
        """Clear the whole cache, or only the entries named by `target` ('<digest>.<ext>')."""
        try:
            removed = self.cache.clear(target)
            logger.info("cache cleared (%d entries removed)", removed)
            return True
        except Exception:  # noqa: BLE001
            logger.exception("cache clear failed")
            return False

    # -------------------------
    # Internals
    # -------------------------

    def _acquire(
        self,
        value: object,
        dest_dir: Path,
        timeout: float,
        file_name: FileNameTemplate,
        use_cache: bool,
        multiple: bool,
    ) -> list[AcquisitionResult]:
        if multiple:
            results = self.batch.acquire_batch(list(value), dest_dir, timeout, file_name, use_cache)  # type: ignore[arg-type]
            return [r for r in results if r is not None]

        if file_name is not None and not isinstance(file_name, str):
            raise TypeError("a single input takes a single file name")
        return [self.acquirer.acquire(value, dest_dir, timeout, file_name=file_name, use_cache=use_cache)]

    def _schedule_cleanup(self, results: Sequence[AcquisitionResult]) -> None:
        transient = list(dict.fromkeys(r.local_path for r in results if r.downloaded))
        if not transient:
            return
        try:
            schedule_cleanup(transient, self.policy.cleanup_delay_s, scheduler=self.scheduler)
        except Exception as exc:  # noqa: BLE001
            logger.warning("could not schedule cleanup: %s", exc)


__all__ = ["MediaSender"]
