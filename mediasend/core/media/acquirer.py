# mediasend/core/media/acquirer.py
"""
Resolve one logical input into a local file ready for handoff.

Dispatch on the classified source kind:
  - inline (bytes / base64 / data URL): decode, sniff, cache or write to scratch
  - remote URL: cache-first download, or direct download to scratch
  - local path: use in place (managed media dir) or copy to scratch

Cache index handling is chosen by the caller:
  - `index=...`          mutate a shared live index, never persist (sequential batch)
  - `defer_index=True`   work on a private copy, return touched entries as
                         `meta_update` (parallel batch)
  - neither              own load → mutate → evict → save cycle (single send)
"""

from __future__ import annotations

import re
import secrets
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from mediasend.core.cache import ContentCache, digest_for_bytes, digest_for_url
from mediasend.core.fetch.downloader import download_to_file
from mediasend.core.fetch.errors import InvalidNameError, NotFoundError, media_error_guard
from mediasend.core.log import get_logger
from mediasend.core.media.base import MediaIndexNotifier
from mediasend.core.media.signatures import (
    DEFAULT_EXTENSION,
    MIME_MAP,
    detect_from_bytes,
    extension_for_mime,
    extension_from_path,
    guess_local_extension,
    mime_for,
)
from mediasend.core.media.sources import (
    DataUrlSource,
    InlineSource,
    LocalPathSource,
    RemoteUrlSource,
    classify_source,
)
from mediasend.schemas.models import AcquisitionResult, CacheEntry, CacheIndex, SendPolicy

logger = get_logger(__name__)

_RESERVED_NAME_CHARS = re.compile(r'[\\/:*?"<>|\x00]')


def validate_file_name(name: str) -> str:
    """Return `name` if it is a plain file name; raise InvalidNameError otherwise."""
    if not name or name in (".", "..") or _RESERVED_NAME_CHARS.search(name):
        raise InvalidNameError(f"invalid file name: {name!r}")
    return name


def sanitize_file_name(name: str) -> str:
    return _RESERVED_NAME_CHARS.sub("_", name)


def _with_extension(name: str, ext: str) -> str:
    suffix = Path(name).suffix.lower().lstrip(".")
    return name if suffix in MIME_MAP else f"{name}.{ext}"


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def _read_head(path: Path, limit: int) -> bytes:
    with path.open("rb") as f:
        return f.read(limit)


class Acquirer:
    """Turn media references into local files, optionally through the content cache."""

    def __init__(
        self,
        policy: SendPolicy | None = None,
        *,
        cache: ContentCache | None = None,
        notifier: MediaIndexNotifier | None = None,
    ) -> None:
        self.policy = policy or SendPolicy()
        self.cache = cache or ContentCache.from_policy(self.policy)
        self.notifier = notifier

    # -------------------------
    # Public API
    # -------------------------

    def acquire(
        self,
        value: object,
        dest_dir: Path | None = None,
        timeout_s: float | None = None,
        *,
        position: int | None = None,
        file_name: str | None = None,
        use_cache: bool = False,
        index: CacheIndex | None = None,
        defer_index: bool = False,
    ) -> AcquisitionResult:
        """
        Materialize `value` as a local file.

        Args:
            value:       bytes, a data URL, base64 text, an http(s) URL, or a local path.
            dest_dir:    Folder for transient files (defaults to the policy's scratch dir).
            timeout_s:   Download timeout in seconds (defaults to the policy timeout).
            position:    Disambiguates generated names inside a batch.
            file_name:   Explicit output file name (validated; extension appended if missing).
            use_cache:   Route inline/remote inputs through the content cache.
            index:       Shared live cache index (sequential batch); never persisted here.
            defer_index: Work on a private index copy and return `meta_update`.

        Raises:
            InvalidNameError, DecodeError, NotFoundError, TransportError, MediaSendError
        """
        if file_name is not None:
            validate_file_name(file_name)
        dest = Path(dest_dir) if dest_dir is not None else self.policy.transient_dir
        timeout = float(timeout_s if timeout_s is not None else self.policy.timeout_s)

        with media_error_guard():
            source = classify_source(value, storage_prefixes=self.policy.storage_prefixes)

            if isinstance(source, LocalPathSource):
                result = self._acquire_local(source, dest, position, file_name)
            elif not use_cache:
                if isinstance(source, RemoteUrlSource):
                    result = self._download_direct(source, dest, timeout, position, file_name)
                else:
                    result = self._write_inline(source, dest, position, file_name)
            else:
                with self._index_session(index, defer_index) as (live, touched):
                    if isinstance(source, RemoteUrlSource):
                        digest, entry = self._cache_remote(live, source, timeout)
                    else:
                        digest, entry = self._cache_inline(live, source)
                    touched[digest] = entry
                    result = self._from_cache(digest, entry, source.kind, dest, file_name)
                    if defer_index:
                        result = result.model_copy(update={"meta_update": {d: e.model_copy() for d, e in touched.items()}})

        self._notify(result.local_path)
        return result

    # -------------------------
    # Index sessions
    # -------------------------

    @contextmanager
    def _index_session(
        self, shared: CacheIndex | None, defer: bool
    ) -> Iterator[tuple[CacheIndex, dict[str, CacheEntry]]]:
        touched: dict[str, CacheEntry] = {}
        if shared is not None and not defer:
            yield shared, touched
        elif defer:
            private = shared.model_copy(deep=True) if shared is not None else self.cache.load()
            yield private, touched
        else:
            with self.cache.transaction(protect=touched) as live:
                yield live, touched

    # -------------------------
    # Inline payloads
    # -------------------------

    def _inline_extension(self, source: InlineSource, payload: bytes) -> str:
        ext = detect_from_bytes(payload[: self.policy.sniff_bytes])
        if ext is None and isinstance(source, DataUrlSource):
            ext = extension_for_mime(source.mime)
        return ext or DEFAULT_EXTENSION

    def _cache_inline(self, index: CacheIndex, source: InlineSource) -> tuple[str, CacheEntry]:
        payload = source.decode()
        digest = digest_for_bytes(payload)
        entry = self.cache.get(index, digest)
        if entry is not None:
            return digest, entry
        return digest, self.cache.put(index, digest, payload, self._inline_extension(source, payload))

    def _write_inline(
        self,
        source: InlineSource,
        dest: Path,
        position: int | None,
        file_name: str | None,
    ) -> AcquisitionResult:
        payload = source.decode()
        ext = self._inline_extension(source, payload)
        target = dest / (_with_extension(file_name, ext) if file_name else self._fresh_name(ext, position))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(payload)
        return AcquisitionResult(local_path=target.resolve(), mime=mime_for(ext), downloaded=True, kind=source.kind)

    # -------------------------
    # Remote URLs
    # -------------------------

    def _guess_remote_extension(self, url: str) -> str:
        return extension_from_path(
            url,
            range_bytes=self.policy.sniff_bytes,
            connect_timeout_s=self.policy.sniff_timeout_s,
            read_timeout_s=self.policy.sniff_timeout_s,
            user_agent=self.policy.user_agent,
        )

    def _download(self, url: str, target: Path, timeout: float) -> None:
        download_to_file(
            url,
            target,
            timeout_s=timeout,
            chunk_size=self.policy.buffer_size,
            user_agent=self.policy.user_agent,
        )

    def _sniffed_extension(self, path: Path) -> str | None:
        try:
            return detect_from_bytes(_read_head(path, self.policy.sniff_bytes))
        except OSError:
            return None

    def _cache_remote(self, index: CacheIndex, source: RemoteUrlSource, timeout: float) -> tuple[str, CacheEntry]:
        digest = digest_for_url(source.url)
        entry = self.cache.get(index, digest)
        if entry is not None:
            logger.debug("cache hit for %s", source.url)
            return digest, entry

        ext = self._guess_remote_extension(source.url)
        entry = self.cache.put(index, digest, lambda target: self._download(source.url, target, timeout), ext)
        sniffed = self._sniffed_extension(self.cache.path_for(entry))
        if sniffed and sniffed != entry.ext:
            logger.debug("correcting extension of %s: %s → %s", entry.file, entry.ext, sniffed)
            entry = self.cache.rename_extension(index, digest, sniffed)
        return digest, entry

    def _download_direct(
        self,
        source: RemoteUrlSource,
        dest: Path,
        timeout: float,
        position: int | None,
        file_name: str | None,
    ) -> AcquisitionResult:
        ext = self._guess_remote_extension(source.url)
        target = dest / (_with_extension(file_name, ext) if file_name else self._fresh_name(ext, position))
        self._download(source.url, target, timeout)

        sniffed = self._sniffed_extension(target)
        if sniffed and sniffed != ext and file_name is None:
            corrected = target.with_suffix(f".{sniffed}")
            target.replace(corrected)
            target, ext = corrected, sniffed
        return AcquisitionResult(local_path=target.resolve(), mime=mime_for(ext), downloaded=True, kind=source.kind)

    # -------------------------
    # Cache → result
    # -------------------------

    def _from_cache(
        self, digest: str, entry: CacheEntry, kind: str, dest: Path, file_name: str | None
    ) -> AcquisitionResult:
        cached = self.cache.path_for(entry)
        if not file_name:
            return AcquisitionResult(
                local_path=cached.resolve(), mime=entry.mime, downloaded=False, kind=kind, digest=digest
            )

        target = dest / _with_extension(file_name, entry.ext)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(cached, target)
        return AcquisitionResult(local_path=target.resolve(), mime=entry.mime, downloaded=True, kind=kind, digest=digest)

    # -------------------------
    # Local paths
    # -------------------------

    def _acquire_local(
        self, source: LocalPathSource, dest: Path, position: int | None, file_name: str | None
    ) -> AcquisitionResult:
        path = source.path
        if not path.is_file():
            raise NotFoundError(f"file not found: {path}")

        ext = guess_local_extension(path, sniff_bytes=self.policy.sniff_bytes)
        mime = mime_for(ext)

        if file_name is None and _is_within(path, self.policy.media_root):
            return AcquisitionResult(local_path=path.resolve(), mime=mime, downloaded=False, kind=source.kind)

        if file_name:
            target = dest / _with_extension(file_name, ext)
        elif path.parent.resolve() == dest.resolve():
            target = path
        else:
            # same base name from different folders, or an earlier send's copy
            stem = path.stem if position is None else f"{path.stem}_{position}"
            target = dest / f"{stem}{path.suffix}"
            if target.exists():
                target = dest / f"{stem}_{secrets.token_hex(3)}{path.suffix}"
        target.parent.mkdir(parents=True, exist_ok=True)
        if target.exists() and target.resolve() == path.resolve():
            return AcquisitionResult(local_path=path.resolve(), mime=mime, downloaded=False, kind=source.kind)
        shutil.copyfile(path, target)
        return AcquisitionResult(local_path=target.resolve(), mime=mime, downloaded=True, kind=source.kind)

    # -------------------------
    # Helpers
    # -------------------------

    @staticmethod
    def _fresh_name(ext: str, position: int | None) -> str:
        stamp = int(time.time() * 1000)
        # batch positions are unique per pass; single sends need a random tail
        tail = position if position is not None else secrets.token_hex(3)
        return f"{stamp}_{tail}.{ext}"

    def _notify(self, path: Path) -> None:
        if self.notifier is None or not path.exists():
            return
        try:
            self.notifier.notify(path)
        except Exception as exc:  # noqa: BLE001
            logger.debug("media index notification failed for %s: %s", path, exc)


__all__ = ["Acquirer", "validate_file_name", "sanitize_file_name"]
