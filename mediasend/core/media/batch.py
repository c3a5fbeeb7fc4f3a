# mediasend/core/media/batch.py
"""
Batch acquisition: dedupe inputs, fan out, merge cache metadata once, and
expand results back to the caller's order (duplicates included).

Two execution paths:
  - with a TaskRunner: every unique input is an isolated task working on its own
    copy of the cache index; touched entries come back as `meta_update` and are
    merged, evicted and saved in one pass after all tasks finish.
  - without one: strictly sequential; a single live index is shared across the
    pass and saved once at the end.

Eviction at the end of a pass never deletes a file this pass returned.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from pathlib import Path
from typing import TypeVar

from mediasend.core.log import get_logger
from mediasend.core.media.acquirer import Acquirer, sanitize_file_name
from mediasend.core.media.base import TaskRunner
from mediasend.schemas.models import AcquisitionResult, CacheIndex

logger = get_logger(__name__)

T = TypeVar("T")

# Per-item explicit names, or a template expanded to "<template>_<n>"
FileNameTemplate = str | Sequence[str | None] | None


class ThreadPoolTaskRunner:
    """Order-preserving, best-effort task runner backed by a thread pool."""

    def __init__(self, max_workers: int = 4) -> None:
        self.max_workers = max_workers

    def run(self, tasks: Sequence[Callable[[], T]], timeout_s: float) -> list[T | None]:
        if not tasks:
            return []
        results: list[T | None] = [None] * len(tasks)
        executor = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(tasks))))
        try:
            futures = [executor.submit(task) for task in tasks]
            _done, not_done = wait(futures, timeout=timeout_s)
            for idx, future in enumerate(futures):
                if future in not_done:
                    future.cancel()
                    logger.warning("task %d did not finish within %.1fs", idx, timeout_s)
                    continue
                exc = future.exception()
                if exc is not None:
                    logger.warning("task %d failed: %s", idx, exc)
                    continue
                results[idx] = future.result()
        finally:
            # running tasks past their deadline are abandoned, not joined
            executor.shutdown(wait=False, cancel_futures=True)
        return results


class BatchOrchestrator:
    """Acquire many inputs with deduplication and a single cache index write."""

    def __init__(self, acquirer: Acquirer, *, task_runner: TaskRunner | None = None) -> None:
        self.acquirer = acquirer
        self.task_runner = task_runner

    @staticmethod
    def _dedupe_key(value: object, name: str | None) -> Hashable | None:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return None  # binary payloads are never deduplicated
        try:
            hash(value)
        except TypeError:
            return None
        return (type(value).__name__, value, name)

    @staticmethod
    def _names_for(values: Sequence[object], file_name_template: FileNameTemplate) -> list[str | None]:
        if file_name_template is None or isinstance(file_name_template, str):
            return [None] * len(values)
        names = list(file_name_template)
        if len(names) != len(values):
            raise ValueError(f"expected {len(values)} file names, got {len(names)}")
        return names

    def plan(self, values: Sequence[object], file_name_template: FileNameTemplate = None) -> tuple[list[tuple[object, str | None]], list[int]]:
        """
        Return (unique items, slot of every input index).

        Unique items keep first-occurrence order; each is (value, explicit name).
        """
        names = self._names_for(values, file_name_template)
        unique: list[tuple[object, str | None]] = []
        slots: list[int] = []
        seen: dict[Hashable, int] = {}
        for value, name in zip(values, names):
            key = self._dedupe_key(value, name)
            if key is not None and key in seen:
                slots.append(seen[key])
                continue
            slot = len(unique)
            unique.append((value, name))
            if key is not None:
                seen[key] = slot
            slots.append(slot)

        if isinstance(file_name_template, str):
            template = sanitize_file_name(file_name_template)
            unique = [(value, f"{template}_{i + 1}") for i, (value, _) in enumerate(unique)]
        return unique, slots

    def _acquire_one(
        self,
        slot: int,
        value: object,
        name: str | None,
        dest_dir: Path,
        timeout_s: float,
        *,
        use_cache: bool,
        index: CacheIndex | None,
        defer_index: bool,
    ) -> AcquisitionResult | None:
        try:
            return self.acquirer.acquire(
                value,
                dest_dir,
                timeout_s,
                position=slot,
                file_name=name,
                use_cache=use_cache,
                index=index,
                defer_index=defer_index,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("batch item %d failed: %s", slot, exc)
            return None

    def acquire_batch(
        self,
        values: Sequence[object],
        dest_dir: Path,
        timeout_s: float,
        file_name_template: FileNameTemplate = None,
        use_cache: bool = False,
    ) -> list[AcquisitionResult | None]:
        """Acquire every value; the result list matches `values` index for index."""
        unique, slots = self.plan(values, file_name_template)
        if not unique:
            return []

        if self.task_runner is not None:
            results = self._run_parallel(unique, dest_dir, timeout_s, use_cache)
        else:
            results = self._run_sequential(unique, dest_dir, timeout_s, use_cache)

        return [results[slot] for slot in slots]

    def _run_sequential(
        self,
        unique: list[tuple[object, str | None]],
        dest_dir: Path,
        timeout_s: float,
        use_cache: bool,
    ) -> list[AcquisitionResult | None]:
        if not use_cache:
            return [
                self._acquire_one(i, v, n, dest_dir, timeout_s, use_cache=False, index=None, defer_index=False)
                for i, (v, n) in enumerate(unique)
            ]
        index = self.acquirer.cache.load()
        results = [
            self._acquire_one(i, v, n, dest_dir, timeout_s, use_cache=True, index=index, defer_index=False)
            for i, (v, n) in enumerate(unique)
        ]
        return self._commit(index, results)

    def _run_parallel(
        self,
        unique: list[tuple[object, str | None]],
        dest_dir: Path,
        timeout_s: float,
        use_cache: bool,
    ) -> list[AcquisitionResult | None]:
        assert self.task_runner is not None
        snapshot = self.acquirer.cache.load() if use_cache else None

        def _task(i: int, value: object, name: str | None) -> Callable[[], AcquisitionResult | None]:
            return lambda: self._acquire_one(
                i, value, name, dest_dir, timeout_s, use_cache=use_cache, index=snapshot, defer_index=use_cache
            )

        tasks = [_task(i, v, n) for i, (v, n) in enumerate(unique)]
        results = list(self.task_runner.run(tasks, timeout_s))
        if len(results) < len(unique):
            results.extend([None] * (len(unique) - len(results)))

        if not use_cache:
            return results
        index = self.acquirer.cache.load()
        for result in results:
            if result is not None and result.meta_update:
                self.acquirer.cache.merge(index, result.meta_update)
        return self._commit(index, results)

    def _commit(self, index: CacheIndex, results: list[AcquisitionResult | None]) -> list[AcquisitionResult | None]:
        """
        Evict and save once, keeping this pass's files alive until handoff.

        Entries used by this pass are evicted last. When the limit still forces
        one out, its cache file becomes transient: results pointing at it are
        flagged `downloaded` for delayed cleanup, and a file no result points at
        is deleted now.
        """
        cache = self.acquirer.cache
        in_use = {r.digest for r in results if r is not None and r.digest}
        released = in_use.intersection(cache.evict(index, protect=in_use))
        cache.save(index)
        if not released:
            return results

        cache_dir = cache.cache_dir.resolve()
        handed_off: set[str] = set()
        out: list[AcquisitionResult | None] = []
        for result in results:
            if result is not None and result.digest in released and result.local_path.parent == cache_dir:
                result = result.model_copy(update={"downloaded": True})
                handed_off.add(result.digest)
            out.append(result)
        for digest in released - handed_off:
            cache.purge_files(digest)
        logger.info("released %d in-use cache files to delayed cleanup", len(handed_off))
        return out


__all__ = ["ThreadPoolTaskRunner", "BatchOrchestrator", "FileNameTemplate"]
