# tests/unit/test_schemas_sendpolicy.py
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mediasend.schemas.models import CacheEntry, CacheIndex, SendPolicy


def test_send_policy_defaults_are_sane() -> None:
    p = SendPolicy()
    assert p.cache_max_entries == 200
    assert abs(p.timeout_s - 30.0) < 1e-9
    assert p.sniff_bytes == 256
    assert p.buffer_size == 16384
    assert abs(p.cleanup_delay_s - 60.0) < 1e-9
    assert p.cache_dir == p.media_root / ".cache"
    assert p.index_path.name == "index.json"
    assert p.transient_dir == p.media_root / "tmp"


def test_send_policy_scratch_and_prefixes(tmp_path: Path) -> None:
    p = SendPolicy(media_root=tmp_path, scratch_dir=tmp_path / "s", storage_prefixes=("/mnt/usb/", "/", "sdcard/"))
    assert p.transient_dir == tmp_path / "s"
    assert p.storage_prefixes == ("mnt/usb/", "sdcard/")


def test_send_policy_is_frozen_and_validated() -> None:
    p = SendPolicy()
    with pytest.raises(ValidationError):
        p.timeout_s = 1.0  # type: ignore[misc]
    with pytest.raises(ValidationError):
        SendPolicy(cache_max_entries=0)


def test_send_policy_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("MEDIASEND_MEDIA_ROOT", str(tmp_path))
    monkeypatch.setenv("MEDIASEND_CACHE_MAX_ENTRIES", "12")
    monkeypatch.setenv("MEDIASEND_TIMEOUT_S", "2.5")
    monkeypatch.setenv("MEDIASEND_USER_AGENT", "  ")  # blank values are ignored

    p = SendPolicy.from_env(cleanup_delay_s=1.0)
    assert p.media_root == tmp_path
    assert p.cache_max_entries == 12
    assert abs(p.timeout_s - 2.5) < 1e-9
    assert abs(p.cleanup_delay_s - 1.0) < 1e-9
    assert p.user_agent == SendPolicy().user_agent


def test_cache_index_document_uses_last_used_alias() -> None:
    idx = CacheIndex(items={"ab": CacheEntry(file="ab.png", mime="image/png", ext="png", last_used=5, size=3)})
    doc = idx.to_document()
    assert doc == {"v": 1, "items": {"ab": {"file": "ab.png", "mime": "image/png", "ext": "png", "lastUsed": 5, "size": 3}}}

    back = CacheIndex.model_validate(doc)
    assert back.items["ab"].last_used == 5
