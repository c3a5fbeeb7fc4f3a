# mediasend/core/media/signatures.py
"""
File type detection from content signatures and URL/path heuristics.

Detection order for a path or URL (`extension_from_path`):
  1) allow-listed extension in the URL path
  2) allow-listed extension inside a query parameter value
  3) allow-listed extension of the raw string (query/fragment stripped),
     only when it follows the last '/'
  4) http(s) only: ranged fetch of the first bytes + signature sniffing
  5) DEFAULT_EXTENSION

Only extensions present in MIME_MAP are trusted; anything else falls through to
signature sniffing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from mediasend.core.fetch.downloader import fetch_head_bytes

DEFAULT_EXTENSION = "jpg"
DEFAULT_MIME = "application/octet-stream"

MIME_MAP: dict[str, str] = {
    # images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "png": "image/png",
    "tif": "image/tiff",
    "tiff": "image/tiff",
    "tga": "image/x-tga",
    "psd": "image/vnd.adobe.photoshop",
    "ai": "application/postscript",
    "webp": "image/webp",
    # video
    "mp4": "video/mp4",
    "m4v": "video/mp4",
    "avi": "video/x-msvideo",
    "asf": "video/x-ms-asf",
    "wmv": "video/x-ms-wmv",
    "mkv": "video/x-matroska",
    "ts": "video/mp2t",
    "mpg": "video/mpeg",
    "mpeg": "video/mpeg",
    "mov": "video/quicktime",
    "flv": "video/x-flv",
    "ogv": "video/ogg",
    # audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "tta": "audio/x-tta",
    "tak": "audio/x-tak",
    "aac": "audio/aac",
    "wma": "audio/x-ms-wma",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    # documents
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "hwp": "application/x-hwp",
    "txt": "text/plain",
    "rtf": "application/rtf",
    "xml": "application/xml",
    "pdf": "application/pdf",
    "wks": "application/vnd.ms-works",
    "xps": "application/vnd.ms-xpsdocument",
    "md": "text/markdown",
    "odf": "application/vnd.oasis.opendocument.text",
    "odt": "application/vnd.oasis.opendocument.text",
    "ods": "application/vnd.oasis.opendocument.spreadsheet",
    "odp": "application/vnd.oasis.opendocument.presentation",
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "pages": "application/x-iwork-pages-sffpages",
    "key": "application/x-iwork-keynote-sffkey",
    "numbers": "application/x-iwork-numbers-sffnumbers",
    "show": "application/octet-stream",
    "ce": "application/octet-stream",
    # archives
    "zip": "application/zip",
    "gz": "application/gzip",
    "bz2": "application/x-bzip2",
    "rar": "application/x-rar-compressed",
    "7z": "application/x-7z-compressed",
    "lzh": "application/x-lzh",
    "alz": "application/x-alz-compressed",
}


@dataclass(frozen=True)
class Signature:
    exts: tuple[str, ...]
    magic: bytes
    offset: int = 0
    secondary: bytes | None = None
    secondary_offset: int = 0

    def matches(self, buf: bytes) -> bool:
        end = self.offset + len(self.magic)
        if len(buf) < end or buf[self.offset : end] != self.magic:
            return False
        if self.secondary is None:
            return True
        s_end = self.secondary_offset + len(self.secondary)
        return len(buf) >= s_end and buf[self.secondary_offset : s_end] == self.secondary


# Priority order matters: first match wins.
SIGNATURES: tuple[Signature, ...] = (
    Signature(("jpg", "jpeg"), b"\xff\xd8\xff"),
    Signature(("png",), b"\x89PNG\r\n\x1a\n"),
    Signature(("gif",), b"GIF8"),
    Signature(("webp",), b"WEBP", offset=8),
    Signature(("bmp",), b"BM"),
    Signature(("tif", "tiff"), b"II*\x00"),
    Signature(("tif", "tiff"), b"MM\x00*"),
    Signature(("psd",), b"8BPS"),
    Signature(("ai",), b"%!"),
    Signature(("pdf",), b"%PDF"),
    Signature(("hwp",), b"HWP Document File"),
    Signature(("doc", "xls", "ppt"), b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"),
    Signature(("rtf",), b"{\\rtf1"),
    Signature(("zip", "docx", "xlsx", "pptx", "odt", "pages", "key", "numbers"), b"PK\x03\x04"),
    Signature(("rar",), b"Rar!\x1a\x07"),
    Signature(("7z",), b"7z\xbc\xaf\x27\x1c"),
    Signature(("gz",), b"\x1f\x8b"),
    Signature(("bz2",), b"BZh"),
    Signature(("alz",), b"ALZ\x01"),
    Signature(("lzh",), b"-lh", offset=2),
    Signature(("avi",), b"RIFF", secondary=b"AVI ", secondary_offset=8),
    Signature(("wav",), b"RIFF", secondary=b"WAVE", secondary_offset=8),
    Signature(("mp4", "m4v", "m4a", "mov"), b"ftyp", offset=4),
    Signature(("mkv",), b"\x1a\x45\xdf\xa3"),
    Signature(("flv",), b"FLV"),
    Signature(
        ("wmv", "asf", "wma"),
        b"\x30\x26\xb2\x75\x8e\x66\xcf\x11\xa6\xd9\x00\xaa\x00\x62\xce\x6c",
    ),
    Signature(("mpg", "mpeg"), b"\x00\x00\x01\xba"),
    Signature(("ts",), b"\x47"),
    Signature(("ogg", "ogv"), b"OggS"),
    Signature(("mp3",), b"ID3"),
    Signature(("mp3",), b"\xff\xfb"),
    Signature(("mp3",), b"\xff\xfa"),
    Signature(("mp3",), b"\xff\xf3"),
    Signature(("mp3",), b"\xff\xf2"),
    Signature(("flac",), b"fLaC"),
    Signature(("aac",), b"\xff\xf1"),
)


def _build_first_byte_index(
    table: tuple[Signature, ...],
) -> tuple[dict[int, tuple[tuple[int, Signature], ...]], tuple[tuple[int, Signature], ...]]:
    by_first: dict[int, list[tuple[int, Signature]]] = {}
    with_offset: list[tuple[int, Signature]] = []
    for pos, sig in enumerate(table):
        if sig.offset == 0:
            by_first.setdefault(sig.magic[0], []).append((pos, sig))
        else:
            with_offset.append((pos, sig))
    return {k: tuple(v) for k, v in by_first.items()}, tuple(with_offset)


_BY_FIRST_BYTE, _OFFSET_SIGNATURES = _build_first_byte_index(SIGNATURES)


# ---------------------------
# Content sniffing
# ---------------------------


def detect_from_bytes(buf: bytes | bytearray | memoryview | None) -> str | None:
    """
    Return the primary extension of the first signature matching `buf`, or None.

    Zero-offset signatures are looked up by first byte; offset signatures are
    always scanned. Candidates are evaluated in SIGNATURES order.
    """
    if not buf:
        return None
    data = bytes(buf)
    candidates = list(_BY_FIRST_BYTE.get(data[0], ())) + list(_OFFSET_SIGNATURES)
    candidates.sort(key=lambda item: item[0])
    for _pos, sig in candidates:
        if sig.matches(data):
            return sig.exts[0]
    return None


def detect_from_url_range(
    url: str,
    range_bytes: int = 256,
    connect_timeout_s: float = 5.0,
    read_timeout_s: float = 5.0,
    *,
    user_agent: str | None = None,
) -> str | None:
    """Fetch the first `range_bytes` of `url` and sniff them. Never raises."""
    head = fetch_head_bytes(
        url,
        limit=range_bytes,
        connect_timeout_s=connect_timeout_s,
        read_timeout_s=read_timeout_s,
        user_agent=user_agent,
    )
    return detect_from_bytes(head) if head else None


# ---------------------------
# Path / URL heuristics
# ---------------------------


def _allowed_suffix(text: str) -> str | None:
    dot = text.rfind(".")
    if dot == -1 or dot == len(text) - 1:
        return None
    ext = text[dot + 1 :].lower()
    return ext if ext in MIME_MAP else None


def extension_from_path(
    path_or_url: str | Path,
    *,
    range_bytes: int = 256,
    connect_timeout_s: float = 5.0,
    read_timeout_s: float = 5.0,
    user_agent: str | None = None,
) -> str:
    """Lowercase extension for a local path or URL; DEFAULT_EXTENSION when nothing matches."""
    raw = str(path_or_url)

    try:
        parsed = urlparse(raw)
        ext = _allowed_suffix(parsed.path)
        if ext:
            return ext
        if parsed.query:
            for param in parsed.query.split("&"):
                ext = _allowed_suffix(param)
                if ext:
                    return ext
    except ValueError:
        pass

    bare = raw.split("?", 1)[0].split("#", 1)[0]
    dot = bare.rfind(".")
    if dot != -1 and dot < len(bare) - 1 and dot > bare.rfind("/"):
        ext = _allowed_suffix(bare)
        if ext:
            return ext

    if raw.lower().startswith(("http://", "https://")):
        sniffed = detect_from_url_range(
            raw,
            range_bytes,
            connect_timeout_s,
            read_timeout_s,
            user_agent=user_agent,
        )
        if sniffed:
            return sniffed

    return DEFAULT_EXTENSION


def guess_local_extension(path: Path, *, sniff_bytes: int = 256) -> str:
    """Allow-listed suffix of a local file, else its content signature, else the default."""
    ext = _allowed_suffix(path.name)
    if ext:
        return ext
    try:
        with path.open("rb") as f:
            head = f.read(sniff_bytes)
    except OSError:
        return DEFAULT_EXTENSION
    return detect_from_bytes(head) or DEFAULT_EXTENSION


def mime_for(ext: str) -> str:
    return MIME_MAP.get(ext.lower().lstrip("."), DEFAULT_MIME)


def extension_for_mime(mime: str | None) -> str | None:
    """First allow-listed extension whose MIME type equals `mime` (parameters ignored)."""
    if not mime:
        return None
    base = mime.split(";", 1)[0].strip().lower()
    if not base or base == DEFAULT_MIME:
        return None
    for ext, value in MIME_MAP.items():
        if value == base:
            return ext
    return None


__all__ = [
    "DEFAULT_EXTENSION",
    "DEFAULT_MIME",
    "MIME_MAP",
    "Signature",
    "SIGNATURES",
    "detect_from_bytes",
    "detect_from_url_range",
    "extension_from_path",
    "guess_local_extension",
    "mime_for",
    "extension_for_mime",
]
