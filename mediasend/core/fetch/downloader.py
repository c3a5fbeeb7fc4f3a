# mediasend/core/fetch/downloader.py
"""
HTTP helpers for acquisition: ranged head reads for signature sniffing and
streamed downloads into a target path.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import requests

from mediasend.core.log import get_logger

from .errors import TransportError

logger = get_logger(__name__)

_DEFAULT_UA = "mediasend/0.3 (+content-cache)"
_DEFAULT_CHUNK = 16384


def _headers(user_agent: str | None, extra: dict[str, str] | None = None) -> dict[str, str]:
    hdrs = {"User-Agent": user_agent or _DEFAULT_UA, "Accept": "*/*", "Connection": "close"}
    if extra:
        hdrs.update(extra)
    return hdrs


def fetch_head_bytes(
    url: str,
    *,
    limit: int = 256,
    connect_timeout_s: float = 5.0,
    read_timeout_s: float = 5.0,
    user_agent: str | None = None,
) -> bytes | None:
    """
    Read up to `limit` leading bytes of a remote resource with a Range request.

    Returns None on any failure (timeout, non-200/206 status, transport error).
    The response is always closed.
    """
    resp = None
    try:
        resp = requests.get(
            url,
            headers=_headers(user_agent, {"Range": f"bytes=0-{limit - 1}"}),
            timeout=(connect_timeout_s, read_timeout_s),
            stream=True,
        )
        if resp.status_code not in (200, 206):
            logger.debug("range probe %s returned HTTP %s", url, resp.status_code)
            return None
        buf = bytearray()
        for chunk in resp.iter_content(chunk_size=limit):
            if chunk:
                buf.extend(chunk)
            if len(buf) >= limit:
                break
        return bytes(buf[:limit]) if buf else None
    except (requests.RequestException, OSError, ValueError) as exc:
        logger.debug("range probe failed for %s: %s", url, exc)
        return None
    finally:
        if resp is not None:
            resp.close()


def download_to_file(
    url: str,
    target: Path,
    *,
    timeout_s: float = 30.0,
    chunk_size: int = _DEFAULT_CHUNK,
    user_agent: str | None = None,
) -> int:
    """
    Stream `url` into `target` through a `.part` file in the same directory.

    Returns the number of bytes written. Raises TransportError on HTTP >= 400 or
    any transport failure; no partial file is left behind.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    resp = None
    try:
        resp = requests.get(url, headers=_headers(user_agent), timeout=timeout_s, stream=True)
        if resp.status_code >= 400:
            raise TransportError(f"HTTP {resp.status_code} for {url}")

        written = 0
        with tempfile.NamedTemporaryFile(prefix="dl_", suffix=".part", delete=False, dir=str(target.parent)) as tf:
            tmp_path = Path(tf.name)
            for chunk in resp.iter_content(chunk_size=chunk_size):
                if chunk:
                    tf.write(chunk)
                    written += len(chunk)

        tmp_path.replace(target)
        tmp_path = None
        logger.debug("downloaded %s → %s (%d bytes)", url, target, written)
        return written
    except requests.RequestException as exc:
        raise TransportError(f"{type(exc).__name__}: {exc}") from exc
    finally:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        if resp is not None:
            resp.close()


__all__ = ["fetch_head_bytes", "download_to_file"]
