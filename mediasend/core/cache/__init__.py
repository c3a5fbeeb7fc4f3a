# mediasend/core/cache/__init__.py
from .keys import BYTES_DOMAIN, URL_DOMAIN, digest_for_bytes, digest_for_url, digest_from_name
from .repository import CacheSource, ContentCache, FileWriter

__all__ = [
    "ContentCache",
    "CacheSource",
    "FileWriter",
    "URL_DOMAIN",
    "BYTES_DOMAIN",
    "digest_for_url",
    "digest_for_bytes",
    "digest_from_name",
]
