# mediasend/core/cache/keys.py
"""
Cache keys for the content-addressed media cache.

Remote references and raw payloads hash in separate domains so the digest of a
URL string can never collide with the digest of bytes equal to that string.
"""

from __future__ import annotations

from hashlib import sha256

URL_DOMAIN = b"URL|"
BYTES_DOMAIN = b"\x00BYTES|"


def digest_for_url(url: str) -> str:
    h = sha256(URL_DOMAIN)
    h.update(url.encode("utf-8", errors="surrogatepass"))
    return h.hexdigest()


def digest_for_bytes(payload: bytes | bytearray | memoryview) -> str:
    h = sha256(BYTES_DOMAIN)
    h.update(payload)
    return h.hexdigest()


def digest_from_name(name: str) -> str:
    """Strip directories and every extension: '/x/.cache/ab12.png' → 'ab12'."""
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    return base.split(".", 1)[0]


__all__ = ["URL_DOMAIN", "BYTES_DOMAIN", "digest_for_url", "digest_for_bytes", "digest_from_name"]
