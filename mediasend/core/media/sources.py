# mediasend/core/media/sources.py
"""
Source classification: turn an arbitrary input value into exactly one tagged
source kind, once, so acquisition can dispatch on the type.

Rules, in priority order:
  1) bytes / bytearray / memoryview            → BytesSource
  2) "data:<mime>[;base64],<payload>"          → DataUrlSource
  3) "base64:<payload>" / "base64,<payload>"   → Base64Source(labeled=True)
  4) http:// or https://                        → RemoteUrlSource
  5) existing absolute path / storage prefix    → LocalPathSource
  6) long, base64-alphabet-only, decodable      → Base64Source(labeled=False)
  7) anything else                              → LocalPathSource (optimistic)
"""

from __future__ import annotations

import base64
import binascii
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Union
from urllib.parse import unquote_to_bytes

from mediasend.core.fetch.errors import ClassificationError, DecodeError

_BASE64_LABELS = ("base64:", "base64,")
_BASE64_ALPHABET = re.compile(r"^[A-Za-z0-9+/\-_]+={0,2}$")
_MIN_UNLABELED_BASE64 = 64
_WHITESPACE = re.compile(r"\s+")

_DEFAULT_STORAGE_PREFIXES = ("sdcard/", "storage/emulated/0/")


# ---------------------------
# Tagged source kinds
# ---------------------------


@dataclass(frozen=True)
class BytesSource:
    payload: bytes
    kind = "bytes"

    def decode(self) -> bytes:
        return self.payload


@dataclass(frozen=True)
class DataUrlSource:
    mime: str | None
    text: str
    is_base64: bool = True
    kind = "data-url"

    def decode(self) -> bytes:
        if not self.is_base64:
            return unquote_to_bytes(self.text)
        return decode_base64(self.text)


@dataclass(frozen=True)
class Base64Source:
    text: str
    labeled: bool = True
    kind = "base64"

    def decode(self) -> bytes:
        return decode_base64(self.text)


@dataclass(frozen=True)
class RemoteUrlSource:
    url: str
    kind = "remote-url"


@dataclass(frozen=True)
class LocalPathSource:
    path: Path
    kind = "local-path"


MediaSource = Union[BytesSource, DataUrlSource, Base64Source, RemoteUrlSource, LocalPathSource]
InlineSource = Union[BytesSource, DataUrlSource, Base64Source]


# ---------------------------
# Base64 helpers
# ---------------------------


def _pad(text: str) -> str:
    return text + "=" * (-len(text) % 4)


def decode_base64(text: str) -> bytes:
    """
    Decode standard or URL-safe base64, tolerating whitespace and missing padding.

    Tries the standard alphabet, then the URL-safe alphabet, then the standard
    alphabet after substituting '-'→'+' and '_'→'/' (mixed inputs).
    """
    cleaned = _pad(_WHITESPACE.sub("", text or ""))
    if not cleaned:
        raise DecodeError("empty base64 payload")

    attempts = (
        lambda: base64.b64decode(cleaned, validate=True),
        lambda: base64.b64decode(cleaned, altchars=b"-_", validate=True),
        lambda: base64.b64decode(cleaned.replace("-", "+").replace("_", "/"), validate=True),
    )
    for attempt in attempts:
        try:
            return attempt()
        except (binascii.Error, ValueError):
            continue
    raise DecodeError(f"invalid base64 payload ({len(cleaned)} chars)")


def _looks_like_unlabeled_base64(text: str) -> bytes | None:
    cleaned = _WHITESPACE.sub("", text)
    if len(cleaned) < _MIN_UNLABELED_BASE64 or not _BASE64_ALPHABET.match(cleaned):
        return None
    try:
        return decode_base64(cleaned)
    except DecodeError:
        return None


# ---------------------------
# Path helpers
# ---------------------------


def has_storage_prefix(text: str, prefixes: tuple[str, ...] = _DEFAULT_STORAGE_PREFIXES) -> bool:
    # at most one leading slash: "/sdcard/x" and "sdcard/x" both qualify
    bare = text[1:] if text.startswith("/") else text
    return any(bare.startswith(p) for p in prefixes)


def _parse_data_url(text: str) -> DataUrlSource:
    header, _, payload = text.partition(",")
    meta = header[len("data:") :]
    parts = [p.strip() for p in meta.split(";")]
    mime = parts[0].lower() if parts and parts[0] else None
    is_b64 = any(p.lower() == "base64" for p in parts[1:])
    return DataUrlSource(mime=mime, text=payload, is_base64=is_b64)


# ---------------------------
# Public API
# ---------------------------


def classify_source(
    value: object,
    *,
    storage_prefixes: tuple[str, ...] = _DEFAULT_STORAGE_PREFIXES,
) -> MediaSource:
    """Classify `value` into a tagged source kind. Only unsupported types raise."""
    if isinstance(value, (BytesSource, DataUrlSource, Base64Source, RemoteUrlSource, LocalPathSource)):
        return value

    if isinstance(value, (bytes, bytearray, memoryview)):
        return BytesSource(payload=bytes(value))

    if isinstance(value, os.PathLike):
        return LocalPathSource(path=Path(os.fspath(value)))

    if not isinstance(value, str):
        raise ClassificationError(f"unsupported input type: {type(value).__name__}")

    text = value.strip()
    lowered = text[:16].lower()

    if lowered.startswith("data:") and "," in text:
        return _parse_data_url(text)

    for label in _BASE64_LABELS:
        if lowered.startswith(label):
            return Base64Source(text=text[len(label) :], labeled=True)

    if lowered.startswith(("http://", "https://")):
        return RemoteUrlSource(url=text)

    if (os.path.isabs(text) and os.path.exists(text)) or has_storage_prefix(text, storage_prefixes):
        return LocalPathSource(path=Path(text))

    if _looks_like_unlabeled_base64(text) is not None:
        return Base64Source(text=text, labeled=False)

    return LocalPathSource(path=Path(text))


__all__ = [
    "BytesSource",
    "DataUrlSource",
    "Base64Source",
    "RemoteUrlSource",
    "LocalPathSource",
    "MediaSource",
    "InlineSource",
    "decode_base64",
    "has_storage_prefix",
    "classify_source",
]
