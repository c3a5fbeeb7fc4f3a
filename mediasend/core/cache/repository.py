# mediasend/core/cache/repository.py
"""
Persistent, bounded, content-addressed media cache.

Layout (under <media_root>/.cache/):
  - index.json          {"v": 1, "items": {<digest>: {file, mime, ext, lastUsed, size}}}
  - <digest>.<ext>      one file per entry

The index is always handled as a whole document: load → mutate in memory →
evict → save. `transaction()` packages that cycle so a batch of operations
reads and writes the index exactly once.

There is no cross-process locking; two processes mutating the same cache
directory can lose index updates.
"""

from __future__ import annotations

import json
import os
import tempfile
import time
from collections.abc import Callable, Collection, Iterable, Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from mediasend.core.fetch.errors import IndexCorruptionError
from mediasend.core.log import get_logger
from mediasend.core.media.signatures import mime_for
from mediasend.schemas.models import CacheEntry, CacheIndex, SendPolicy

from .keys import digest_from_name

logger = get_logger(__name__)

# Writer used by put(): receives the final target path and must create it.
FileWriter = Callable[[Path], object]
CacheSource = bytes | bytearray | memoryview | FileWriter


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _atomic_write_bytes(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(prefix="put_", suffix=".part", delete=False, dir=str(target.parent)) as tf:
        tmp_path = Path(tf.name)
        tf.write(data)
    try:
        tmp_path.replace(target)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class ContentCache:
    """Own load/save/evict for one cache directory."""

    def __init__(
        self,
        cache_dir: Path,
        *,
        max_entries: int = 200,
        index_name: str = "index.json",
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.max_entries = max_entries
        self.index_name = index_name
        self._clock = clock or _now_ms

    @classmethod
    def from_policy(cls, policy: SendPolicy, *, clock: Callable[[], int] | None = None) -> ContentCache:
        return cls(
            policy.cache_dir,
            max_entries=policy.cache_max_entries,
            index_name=policy.cache_index_name,
            clock=clock,
        )

    @property
    def index_path(self) -> Path:
        return self.cache_dir / self.index_name

    def path_for(self, entry: CacheEntry) -> Path:
        return self.cache_dir / entry.file

    # -------------------------
    # Persistence
    # -------------------------

    def _read_index(self) -> CacheIndex:
        try:
            data = json.loads(self.index_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise IndexCorruptionError(f"Invalid cache index at {self.index_path}: {exc}") from exc
        if not isinstance(data, dict):
            raise IndexCorruptionError(f"Cache index at {self.index_path} is not an object")
        try:
            return CacheIndex.model_validate(data)
        except ValidationError as exc:
            raise IndexCorruptionError(f"Cache index at {self.index_path} failed validation: {exc}") from exc

    def load(self) -> CacheIndex:
        """Load the index; a missing or corrupted document yields an empty index."""
        if not self.index_path.exists():
            return CacheIndex()
        try:
            return self._read_index()
        except IndexCorruptionError as exc:
            logger.warning("resetting cache index: %s", exc)
            return CacheIndex()
        except OSError as exc:
            logger.warning("cache index unreadable, starting empty: %s", exc)
            return CacheIndex()

    def save(self, index: CacheIndex) -> None:
        payload = json.dumps(index.to_document(), separators=(",", ":"))
        _atomic_write_bytes(self.index_path, payload.encode("utf-8"))

    @contextmanager
    def transaction(self, protect: Collection[str] = ()) -> Iterator[CacheIndex]:
        """
        Load once, yield the live index, then evict and save once.

        `protect` is read at exit, so callers may fill it while the block runs.
        """
        index = self.load()
        yield index
        self.evict(index, protect=protect)
        self.save(index)

    # -------------------------
    # Entry operations
    # -------------------------

    def get(self, index: CacheIndex, digest: str) -> CacheEntry | None:
        """Return the entry for `digest` and mark it used; a missing file is a stale miss."""
        entry = index.items.get(digest)
        if entry is None:
            return None
        if not self.path_for(entry).is_file():
            logger.debug("stale cache entry %s (file %s missing)", digest, entry.file)
            index.items.pop(digest, None)
            return None
        entry.last_used = self._clock()
        return entry

    def put(
        self,
        index: CacheIndex,
        digest: str,
        source: CacheSource,
        ext: str,
        *,
        mime: str | None = None,
    ) -> CacheEntry:
        """
        Ensure `<digest>.<ext>` exists and is recorded in `index`.

        `source` is either the raw bytes or a writer that creates the target path
        (e.g. a streaming download). An existing entry under a different file name
        is replaced; its old file stays on disk until eviction or clear().
        """
        ext = ext.lower().lstrip(".")
        file_name = f"{digest}.{ext}"
        target = self.cache_dir / file_name

        existing = index.items.get(digest)
        if existing is not None and existing.file == file_name and target.is_file():
            existing.last_used = self._clock()
            return existing

        if isinstance(source, (bytes, bytearray, memoryview)):
            _atomic_write_bytes(target, bytes(source))
        else:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            source(target)

        entry = CacheEntry(
            file=file_name,
            mime=mime or mime_for(ext),
            ext=ext,
            last_used=self._clock(),
            size=target.stat().st_size,
        )
        index.items[digest] = entry
        logger.debug("cached %s (%d bytes)", file_name, entry.size)
        return entry

    def rename_extension(self, index: CacheIndex, digest: str, ext: str) -> CacheEntry:
        """Move a cached file to `<digest>.<ext>` and update its entry (post-download correction)."""
        entry = index.items[digest]
        ext = ext.lower().lstrip(".")
        if entry.ext == ext:
            return entry
        new_name = f"{digest}.{ext}"
        self.path_for(entry).replace(self.cache_dir / new_name)
        updated = entry.model_copy(update={"file": new_name, "ext": ext, "mime": mime_for(ext)})
        index.items[digest] = updated
        return updated

    def merge(self, index: CacheIndex, updates: Mapping[str, CacheEntry]) -> None:
        """Fold deferred entries into `index`; the newest `last_used` wins per digest."""
        for digest, entry in updates.items():
            current = index.items.get(digest)
            if current is None or current.file != entry.file or entry.last_used >= current.last_used:
                index.items[digest] = entry.model_copy()

    def _unlink(self, file_name: str) -> None:
        try:
            (self.cache_dir / file_name).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("could not delete cache file %s: %s", file_name, exc)

    def evict(self, index: CacheIndex, *, protect: Collection[str] = ()) -> list[str]:
        """
        Drop least-recently-used entries until the index is within `max_entries`.

        Unprotected entries go first, each group ordered by (last_used, digest)
        ascending. A protected entry that still has to go loses its record but
        keeps its file; the caller owns that file from then on. File deletion
        failures are logged; the record is removed regardless.
        """
        overflow = len(index.items) - self.max_entries
        if overflow <= 0:
            return []
        protected = set(protect)
        oldest = sorted(index.items.items(), key=lambda kv: (kv[0] in protected, kv[1].last_used, kv[0]))[:overflow]
        removed: list[str] = []
        for digest, entry in oldest:
            if digest in protected:
                logger.debug("released in-use cache file %s", entry.file)
            else:
                self._unlink(entry.file)
            index.items.pop(digest, None)
            removed.append(digest)
        logger.info("evicted %d cache entries", len(removed))
        return removed

    def purge_files(self, digest: str) -> int:
        """Delete every file whose name stem is exactly `digest`; returns the count."""
        if not digest or not self.cache_dir.is_dir():
            return 0
        count = 0
        for path in self.cache_dir.iterdir():
            if path.is_file() and path.name != self.index_name and path.name.split(".", 1)[0] == digest:
                self._unlink(path.name)
                count += 1
        return count

    def _remove_digest(self, index: CacheIndex, digest: str) -> bool:
        entry = index.items.pop(digest, None)
        if entry is not None:
            self._unlink(entry.file)
        # leftovers from extension correction share the digest stem
        self.purge_files(digest)
        return entry is not None

    def clear(self, target: str | Iterable[str] | None = None) -> int:
        """
        Remove cache content.

        - None        → every file except the index document; index reset to empty
        - "ab12.png"  → the entry (and files) for digest "ab12"
        - [..]        → each item as above
        Unknown targets are no-ops. Returns the number of index records removed.
        """
        if target is None:
            index = self.load()
            count = len(index.items)
            if self.cache_dir.is_dir():
                for path in self.cache_dir.iterdir():
                    if path.is_file() and path.name != self.index_name:
                        self._unlink(path.name)
            self.save(CacheIndex())
            return count

        targets = [target] if isinstance(target, str) else list(target)
        removed = 0
        with self.transaction() as index:
            for item in targets:
                digest = digest_from_name(os.fspath(item))
                if self._remove_digest(index, digest):
                    removed += 1
        return removed


__all__ = ["ContentCache", "CacheSource", "FileWriter"]
