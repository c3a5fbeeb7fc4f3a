# mediasend/core/fetch/errors.py
"""
Typed errors + utilities for media acquisition.

Exports
-------
- MediaSendError, ClassificationError, DecodeError, NotFoundError,
  InvalidNameError, TransportError, IndexCorruptionError, DestinationError
- MEDIA_ERRORS
- classify_media_error(exc)
- media_error_guard()
"""

from __future__ import annotations

import binascii
from collections.abc import Iterator
from contextlib import contextmanager

import requests

# =========================
# Exception types
# =========================


class MediaSendError(RuntimeError):
    """Base class for media acquisition and delivery failures."""


class ClassificationError(MediaSendError):
    """The kind of an input value could not be determined."""


class DecodeError(MediaSendError):
    """A base64 payload or data URL could not be decoded."""


class NotFoundError(MediaSendError):
    """A local path does not exist."""


class InvalidNameError(MediaSendError):
    """An explicit file name contains separators or reserved characters."""


class TransportError(MediaSendError):
    """HTTP/transport failure while downloading or sniffing a remote file."""


class IndexCorruptionError(MediaSendError):
    """The persisted cache index could not be parsed."""


class DestinationError(MediaSendError):
    """A destination room name could not be resolved to a channel id."""


# Selector tuple for grouped exception handling
MEDIA_ERRORS = (
    ClassificationError,
    DecodeError,
    NotFoundError,
    InvalidNameError,
    TransportError,
    IndexCorruptionError,
    DestinationError,
)

# =========================
# Classification helpers
# =========================


def classify_media_error(exc: Exception) -> MediaSendError:
    """
    Map arbitrary exceptions raised during acquisition to a typed MediaSendError.

    Heuristics:
      - Any MediaSendError subclass → passed through
      - requests.* errors → TransportError
      - FileNotFoundError → NotFoundError
      - binascii.Error / UnicodeError → DecodeError
      - Fallback → MediaSendError
    """
    if isinstance(exc, MediaSendError):
        return exc

    msg = f"{type(exc).__name__}: {exc}"

    if isinstance(exc, requests.RequestException):
        return TransportError(msg)
    if isinstance(exc, FileNotFoundError):
        return NotFoundError(msg)
    if isinstance(exc, (binascii.Error, UnicodeError)):
        return DecodeError(msg)

    return MediaSendError(msg)


@contextmanager
def media_error_guard() -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from acquisition internals."""
    try:
        yield
    except MediaSendError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_media_error(exc) from exc


__all__ = [
    "MediaSendError",
    "ClassificationError",
    "DecodeError",
    "NotFoundError",
    "InvalidNameError",
    "TransportError",
    "IndexCorruptionError",
    "DestinationError",
    "MEDIA_ERRORS",
    "classify_media_error",
    "media_error_guard",
]
