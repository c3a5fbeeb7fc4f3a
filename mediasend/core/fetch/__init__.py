# mediasend/core/fetch/__init__.py
from .downloader import download_to_file, fetch_head_bytes
from .errors import (
    MEDIA_ERRORS,
    ClassificationError,
    DecodeError,
    DestinationError,
    IndexCorruptionError,
    InvalidNameError,
    MediaSendError,
    NotFoundError,
    TransportError,
    classify_media_error,
    media_error_guard,
)

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
    "fetch_head_bytes",
    "download_to_file",
]
