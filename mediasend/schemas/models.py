# mediasend/schemas/models.py

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =========================
# Configuration
# =========================


class SendPolicy(BaseModel):
    """
    Deterministic send policy for the acquisition engine and the sender facade.

    Defines where media lives on disk, how large the content cache may grow,
    how long network operations may take, and what the outbound handoff
    looks like for the host messaging client.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="ignore")

    media_root: Path = Field(
        default=Path("data/media"),
        description="Managed media directory. Local files below it are sent in place; the cache lives in <media_root>/.cache.",
    )
    scratch_dir: Path | None = Field(
        None,
        description="Folder for transient (cleanup-eligible) files. Defaults to <media_root>/tmp.",
    )
    storage_prefixes: tuple[str, ...] = Field(
        ("sdcard/", "storage/emulated/0/"),
        description="On-device storage prefixes (with or without a leading '/') that always denote local paths.",
    )

    cache_max_entries: int = Field(200, ge=1, description="Maximum number of entries kept in the cache index.")
    cache_index_name: str = Field("index.json", description="File name of the persisted index inside the cache directory.")

    timeout_s: float = Field(30.0, gt=0, description="Default acquisition timeout in seconds (download + batch runner).")
    sniff_bytes: int = Field(256, ge=16, description="Read window for signature sniffing of remote files.")
    sniff_timeout_s: float = Field(5.0, gt=0, description="Connect/read timeout for ranged sniffing requests.")
    buffer_size: int = Field(16384, ge=1024, description="Chunk size used when streaming downloads and copies.")
    user_agent: str = Field(
        "mediasend/0.3 (+content-cache)",
        description="User-Agent string used in HTTP requests.",
    )

    cleanup_delay_s: float = Field(60.0, ge=0, description="Delay before transient files are deleted after dispatch.")
    foreground_delay_s: float = Field(5.0, ge=0, description="Default delay before returning the host app to the foreground.")

    target_package: str = Field("com.kakao.talk", description="Package of the messaging client receiving the handoff.")
    host_package: str = Field("com.xfl.msgbot", description="Package brought back to the foreground after a send.")

    @field_validator("storage_prefixes")
    @classmethod
    def _strip_leading_slash(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(p.lstrip("/") for p in v if p.strip("/"))

    @property
    def cache_dir(self) -> Path:
        return self.media_root / ".cache"

    @property
    def index_path(self) -> Path:
        return self.cache_dir / self.cache_index_name

    @property
    def transient_dir(self) -> Path:
        return self.scratch_dir if self.scratch_dir is not None else self.media_root / "tmp"

    @classmethod
    def from_env(cls, **overrides: object) -> SendPolicy:
        """Build a policy from MEDIASEND_* environment variables plus explicit overrides."""
        env_map = {
            "MEDIASEND_MEDIA_ROOT": "media_root",
            "MEDIASEND_SCRATCH_DIR": "scratch_dir",
            "MEDIASEND_CACHE_MAX_ENTRIES": "cache_max_entries",
            "MEDIASEND_TIMEOUT_S": "timeout_s",
            "MEDIASEND_CLEANUP_DELAY_S": "cleanup_delay_s",
            "MEDIASEND_USER_AGENT": "user_agent",
            "MEDIASEND_TARGET_PACKAGE": "target_package",
        }
        values: dict[str, object] = {}
        for env_key, field_name in env_map.items():
            raw = os.getenv(env_key)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        values.update(overrides)
        return cls.model_validate(values)


# =========================
# Content cache
# =========================


class CacheEntry(BaseModel):
    """
    One cached file, keyed in the index by its digest.

    `file` is relative to the cache directory and is always `<digest>.<ext>`.
    The entry may outlive its file (deletion raced); readers treat that as a miss.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file: str = Field(..., min_length=1, description="Cache-relative file name (<digest>.<ext>).")
    mime: str = Field("application/octet-stream", description="MIME type derived from the extension.")
    ext: str = Field(..., description="Lowercase extension without the dot.")
    last_used: int = Field(0, alias="lastUsed", ge=0, description="Last access time, epoch milliseconds.")
    size: int = Field(0, ge=0, description="Size of the cached file in bytes.")


class CacheIndex(BaseModel):
    """
    Persisted cache index document: {"v": 1, "items": {<digest>: CacheEntry}}.

    The whole document is read, mutated in memory, and written back.
    """

    model_config = ConfigDict(extra="ignore")

    v: int = Field(1, description="Schema version.")
    items: dict[str, CacheEntry] = Field(default_factory=dict, description="Entries keyed by digest.")

    def to_document(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)


# =========================
# Acquisition results
# =========================

SourceKind = Literal["bytes", "data-url", "base64", "remote-url", "local-path"]


class AcquisitionResult(BaseModel):
    """
    A single input resolved into a local file, ready for handoff.

    `downloaded` marks transient files (scratch copies, direct downloads) that are
    scheduled for delayed cleanup; stable cache files and in-place media are not.
    `meta_update` carries the index entries touched by this acquisition when the
    index write was deferred to the caller (parallel batches).
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="ignore")

    local_path: Path = Field(..., description="Absolute path of the materialized file.")
    mime: str = Field(..., description="MIME type used for the handoff.")
    downloaded: bool = Field(False, description="True if the file is transient and eligible for cleanup.")
    kind: SourceKind = Field(..., description="How the input was classified.")
    digest: str | None = Field(None, description="Cache digest when the file was served through the content cache.")
    meta_update: dict[str, CacheEntry] | None = Field(
        None, description="Deferred cache index entries to merge after a parallel batch."
    )


# =========================
# Delivery
# =========================

DeliveryAction = Literal["send", "send_multiple"]


class DeliveryPayload(BaseModel):
    """
    The outbound handoff for the host messaging client.

    Built once per send and passed to the dispatcher as an opaque message.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    action: DeliveryAction = Field(..., description="Single-item or multi-item share action.")
    package: str = Field(..., description="Package that should receive the handoff.")
    mime_type: str = Field(..., description="MIME type of the share ('*/*' for multi-item).")
    uris: list[str] = Field(default_factory=list, description="File URIs to share, in delivery order.")
    channel_id: int = Field(..., description="Numeric channel identifier (key_id extra).")
    extras: dict[str, int | bool | str] = Field(default_factory=dict, description="Client-specific extras.")
    flags: list[str] = Field(default_factory=list, description="Activity flags requested for the handoff.")


__all__ = [
    "SendPolicy",
    "CacheEntry",
    "CacheIndex",
    "SourceKind",
    "AcquisitionResult",
    "DeliveryAction",
    "DeliveryPayload",
]
